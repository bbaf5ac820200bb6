# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "polars",
# ]
# ///

from __future__ import annotations

import argparse
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Final, Iterable

import polars as pl

from health_panel import (
    PANEL_VERSION,
    ExtractedHealthVariant,
    HealthPanelEntry,
    category_counts,
    default_panel,
    extract_health_snps,
    load_panel,
)
from raw_genotype import GenotypeMap, detect_source, parse_raw_dna
from run_utils import read_upload, resolve_base_name, run_root, update_summary, write_json

MIN_SNP_COUNT: Final[int] = 100
LOW_MATCH_WARNING: Final[int] = 5


class DnaAnalysisError(ValueError):
    """Upload rejected before any interpretation is attempted."""


class EmptyContentError(DnaAnalysisError):
    def __init__(self) -> None:
        super().__init__("No content provided")


class InsufficientDataError(DnaAnalysisError):
    def __init__(self, total_snps: int) -> None:
        super().__init__(
            "Invalid DNA file or too few SNPs detected "
            f"({total_snps} parsed, {MIN_SNP_COUNT} required). Check the file format."
        )
        self.total_snps = total_snps


@dataclass(frozen=True)
class DnaAnalysis:
    source: str
    total_snps: int
    health_snps: tuple[ExtractedHealthVariant, ...]
    panel_version: str = PANEL_VERSION

    @property
    def analyzed_snps(self) -> int:
        return len(self.health_snps)

    @property
    def low_information(self) -> bool:
        return self.analyzed_snps < LOW_MATCH_WARNING

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "total_snps": self.total_snps,
            "analyzed_snps": self.analyzed_snps,
            "panel_version": self.panel_version,
            "health_snps": [asdict(variant) for variant in self.health_snps],
        }


def analyze_dna(
    content: str | None,
    panel: Iterable[HealthPanelEntry] | None = None,
) -> DnaAnalysis:
    """Classify, parse and extract health markers from a raw genome export.

    Raises EmptyContentError for blank input and InsufficientDataError when
    fewer than MIN_SNP_COUNT calls could be parsed.
    """
    _require_content(content)
    return analyze_genotypes(detect_source(content), parse_raw_dna(content), panel)


def _require_content(content: str | None) -> None:
    if not content or not content.strip():
        raise EmptyContentError()


def analyze_genotypes(
    source: str,
    genotypes: GenotypeMap,
    panel: Iterable[HealthPanelEntry] | None = None,
) -> DnaAnalysis:
    total_snps = len(genotypes)
    if total_snps < MIN_SNP_COUNT:
        raise InsufficientDataError(total_snps)
    if panel is None:
        panel = default_panel()
    health_snps = extract_health_snps(genotypes, panel)
    return DnaAnalysis(source=source, total_snps=total_snps, health_snps=tuple(health_snps))


def chromosome_counts(genotypes: GenotypeMap) -> list[dict[str, Any]]:
    if not genotypes:
        return []
    df = pl.DataFrame(
        {"chromosome": [record["chromosome"] for record in genotypes.values()]},
        schema={"chromosome": pl.String},
    )
    return (
        df.with_columns(pl.col("chromosome").str.to_uppercase())
        .group_by("chromosome")
        .agg(pl.len().alias("called"))
        .sort("chromosome")
        .to_dicts()
    )


def run_analysis(input_path: Path, base_name: str, panel_path: Path | None = None) -> DnaAnalysis:
    print(f"Processing {input_path}...")
    content = read_upload(input_path)
    _require_content(content)
    panel = load_panel(panel_path) if panel_path else None
    genotypes = parse_raw_dna(content)
    analysis = analyze_genotypes(detect_source(content), genotypes, panel)

    print(f"Detected source: {analysis.source}")
    print(f"Total SNPs parsed: {analysis.total_snps}")
    print(f"Health panel markers found: {analysis.analyzed_snps}")

    print("\n--- HEALTH SNP REPORT ---")
    for variant in analysis.health_snps:
        print(f"[{variant.category}] {variant.trait} - {variant.gene} ({variant.rsid}): {variant.genotype}")
    if analysis.low_information:
        print("Warning: very few panel markers found; interpretation will be limited.")
    print("----------------------------\n")

    run_dir = run_root(base_name)
    output_path = run_dir / "health_snps.json"
    write_json(output_path, analysis.to_dict())
    update_summary(
        run_dir,
        {
            "base_name": base_name,
            "input_file": str(input_path),
            "source": analysis.source,
            "total_snps": analysis.total_snps,
            "analyzed_snps": analysis.analyzed_snps,
            "panel_version": analysis.panel_version,
            "low_information": analysis.low_information,
            "health_snps_by_category": category_counts(analysis.health_snps),
            "snps_by_chromosome": chromosome_counts(genotypes),
            "health_snps_path": str(output_path),
        },
    )
    print(f"Saved health SNPs to {output_path}")
    return analysis


def main() -> int:
    parser = argparse.ArgumentParser(description="Extract health-panel SNPs from a raw DNA export.")
    parser.add_argument("input_path", help="Raw export from 23andMe, AncestryDNA, MyHeritage or FTDNA")
    parser.add_argument("--panel", help="Optional: alternate health panel CSV")
    args = parser.parse_args()

    input_path = Path(args.input_path)
    if not input_path.exists():
        print(f"Input file not found: {input_path}")
        return 1
    try:
        run_analysis(
            input_path,
            resolve_base_name(args.input_path),
            Path(args.panel) if args.panel else None,
        )
    except (ValueError, FileNotFoundError) as exc:
        print(str(exc))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
