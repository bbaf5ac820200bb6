from __future__ import annotations

import re
from typing import Final, TypedDict

SOURCE_WINDOW: Final[int] = 2000

# Checked in order; the first token found in the header block wins.
PROVIDER_TOKENS: Final[tuple[tuple[str, str], ...]] = (
    ("23andme", "23andme"),
    ("ancestrydna", "ancestry"),
    ("myheritage", "myheritage"),
    ("family tree dna", "ftdna"),
    ("ftdna", "ftdna"),
)
SOURCE_LABELS: Final[tuple[str, ...]] = ("23andme", "ancestry", "myheritage", "ftdna", "other")

NO_CALLS: Final[frozenset[str]] = frozenset({"--", "00"})
_RSID_PREFIX = "rs"
_HEADER_TOKEN = "rsid"
_COMMENT_MARKER = "#"
_SPLIT_PATTERN = re.compile(r"[\t,\s]+")


class GenotypeRecord(TypedDict):
    chromosome: str
    position: int
    genotype: str


GenotypeMap = dict[str, GenotypeRecord]


def detect_source(content: str) -> str:
    """Classify an export by the provider name in its leading comment block."""
    head = content[:SOURCE_WINDOW].lower()
    for token, label in PROVIDER_TOKENS:
        if token in head:
            return label
    return "other"


def _parse_position(token: str) -> int | None:
    try:
        position = int(token.strip(), 10)
    except ValueError:
        return None
    if position < 0:
        return None
    return position


def _is_data_line(stripped: str) -> bool:
    if not stripped:
        return False
    if stripped.startswith(_COMMENT_MARKER):
        return False
    return not stripped.lower().startswith(_HEADER_TOKEN)


def parse_genotype_line(line: str) -> tuple[str, GenotypeRecord] | None:
    """Parse one data row into (rsid, record), or None when it carries nothing.

    23andMe rows hold the genotype in one field (rsid, chromosome, position,
    genotype); AncestryDNA-style rows split it into allele1 and allele2.
    Columns past the second allele are ignored.
    """
    stripped = line.strip()
    if not _is_data_line(stripped):
        return None
    parts = [part for part in _SPLIT_PATTERN.split(stripped) if part]
    if len(parts) < 4 or not parts[0].lower().startswith(_RSID_PREFIX):
        return None

    position = _parse_position(parts[2])
    if position is None:
        return None

    if len(parts) == 4:
        genotype = parts[3].upper()
    else:
        genotype = (parts[3] + parts[4]).upper()
    if not genotype or genotype in NO_CALLS:
        return None

    return parts[0].lower(), {"chromosome": parts[1], "position": position, "genotype": genotype}


def parse_raw_dna(content: str) -> GenotypeMap:
    """Build the rsid -> call mapping for a raw export.

    Malformed rows are dropped silently. When an rsid repeats, the last valid
    call wins; no-call rows never reach the map, so they cannot erase an
    earlier call.
    """
    genotypes: GenotypeMap = {}
    for line in content.split("\n"):
        parsed = parse_genotype_line(line)
        if parsed is None:
            continue
        rsid, record = parsed
        genotypes[rsid] = record
    return genotypes
