from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final, Iterable

import polars as pl

from raw_genotype import GenotypeMap

PANEL_PATH = Path(__file__).resolve().parent / "data" / "health_panel.csv"
PANEL_VERSION: Final[str] = "2025.1"
PANEL_COLUMNS: Final[tuple[str, ...]] = ("rsid", "gene", "trait", "category")
CATEGORIES: Final[tuple[str, ...]] = (
    "cardiovascular",
    "metabolism",
    "nutrition",
    "vitamins",
    "fitness",
    "pharmacogenomics",
    "sleep",
    "immune",
    "longevity",
    "traits",
)


@dataclass(frozen=True)
class HealthPanelEntry:
    rsid: str
    gene: str
    trait: str
    category: str


_PANEL_CACHE: tuple[HealthPanelEntry, ...] | None = None


@dataclass(frozen=True)
class ExtractedHealthVariant:
    rsid: str
    chromosome: str
    position: int
    genotype: str
    gene: str
    trait: str
    category: str


def validate_panel(entries: Iterable[HealthPanelEntry]) -> tuple[HealthPanelEntry, ...]:
    panel = tuple(entries)
    seen: set[str] = set()
    for entry in panel:
        if not all((entry.rsid, entry.gene, entry.trait, entry.category)):
            raise ValueError(f"Incomplete health panel row: {entry}")
        key = entry.rsid.lower()
        if key in seen:
            raise ValueError(f"Duplicate rsID in health panel: {entry.rsid}")
        if entry.category not in CATEGORIES:
            raise ValueError(f"Unknown category for {entry.rsid}: {entry.category}")
        seen.add(key)
    return panel


def load_panel(path: Path = PANEL_PATH) -> tuple[HealthPanelEntry, ...]:
    """Load the curated marker panel in declaration order."""
    if not path.exists():
        raise FileNotFoundError(f"Missing health panel file: {path}")
    df = pl.read_csv(path, infer_schema_length=0)
    df = df.rename({col: col.strip().lower() for col in df.columns})
    missing = [col for col in PANEL_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Health panel {path} is missing columns: {', '.join(missing)}")
    rows = df.select(
        [pl.col(col).cast(pl.String).str.strip_chars() for col in PANEL_COLUMNS]
    ).iter_rows(named=True)
    return validate_panel(HealthPanelEntry(**row) for row in rows)


def default_panel() -> tuple[HealthPanelEntry, ...]:
    global _PANEL_CACHE
    if _PANEL_CACHE is None:
        _PANEL_CACHE = load_panel()
    return _PANEL_CACHE


def extract_health_snps(
    genotypes: GenotypeMap,
    panel: Iterable[HealthPanelEntry],
) -> list[ExtractedHealthVariant]:
    """Join panel metadata with observed calls, in panel order.

    Markers the file does not cover are skipped rather than reported empty.
    """
    found: list[ExtractedHealthVariant] = []
    for entry in panel:
        record = genotypes.get(entry.rsid.lower())
        if record is None:
            continue
        found.append(
            ExtractedHealthVariant(
                rsid=entry.rsid,
                chromosome=record["chromosome"],
                position=record["position"],
                genotype=record["genotype"],
                gene=entry.gene,
                trait=entry.trait,
                category=entry.category,
            )
        )
    return found


def category_counts(variants: Iterable[ExtractedHealthVariant]) -> dict[str, int]:
    counts = {category: 0 for category in CATEGORIES}
    for variant in variants:
        counts[variant.category] += 1
    return counts
