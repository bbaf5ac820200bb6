# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///

from __future__ import annotations

import argparse
import platform
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Sequence

from run_utils import resolve_base_name, run_root, update_summary


SCRIPT_ORDER: list[tuple[str, str]] = [
    ("Health SNP extraction", "analyze_dna.py"),
    ("Interpretation", "interpret_dna.py"),
]


def _run_command(args: Sequence[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        args,
        text=True,
        check=True,
        capture_output=False,
    )


def _safe_version(cmd: Sequence[str]) -> str | None:
    try:
        result = subprocess.run(cmd, text=True, check=True, capture_output=True)
    except (FileNotFoundError, subprocess.CalledProcessError):
        return None
    return result.stdout.strip() or result.stderr.strip() or None


def _collect_manifest() -> dict[str, str | None]:
    return {
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "python_version": platform.python_version(),
        "platform": platform.platform(),
        "uv_version": _safe_version(["uv", "--version"]),
        "git_commit": _safe_version(["git", "rev-parse", "--short", "HEAD"]),
    }


def _script_args(
    script: str,
    input_file: Path,
    *,
    panel: str | None,
    profile: str | None,
    model: str | None,
) -> list[str]:
    if script == "analyze_dna.py":
        return [str(input_file), *(["--panel", panel] if panel else [])]
    args = [str(input_file)]
    if profile:
        args.extend(["--profile", profile])
    if model:
        args.extend(["--model", model])
    return args


def run_pipeline(
    input_file: Path,
    *,
    skip_interpretation: bool,
    panel: str | None = None,
    profile: str | None = None,
    model: str | None = None,
) -> None:
    if not input_file.exists():
        raise FileNotFoundError(f"Input file not found: {input_file}")
    run_dir = run_root(resolve_base_name(str(input_file)))
    update_summary(
        run_dir,
        {
            "run_folder": str(run_dir),
            "run_manifest": _collect_manifest(),
        },
    )

    for label, script in SCRIPT_ORDER:
        if skip_interpretation and script == "interpret_dna.py":
            print("Skipping interpretation (--skip-interpretation)")
            continue
        print(f"\n==> {label}: {script}")
        extra_args = _script_args(script, input_file, panel=panel, profile=profile, model=model)
        _run_command(["uv", "run", "--script", script, *extra_args])


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the DNA health analysis end-to-end.")
    parser.add_argument("input_file", help="Raw DNA export (.txt or .csv)")
    parser.add_argument("--panel", help="Optional: alternate health panel CSV")
    parser.add_argument("--profile", help="Optional: JSON file with the user profile")
    parser.add_argument("--model", help="Optional: language model name")
    parser.add_argument(
        "--skip-interpretation",
        action="store_true",
        help="Only extract health SNPs; do not call the language model",
    )
    args = parser.parse_args()

    try:
        run_pipeline(
            Path(args.input_file),
            skip_interpretation=args.skip_interpretation,
            panel=args.panel,
            profile=args.profile,
            model=args.model,
        )
    except FileNotFoundError as exc:
        print(str(exc))
        return 1
    except subprocess.CalledProcessError as exc:
        print(f"Step failed with exit code {exc.returncode}: {' '.join(exc.cmd)}")
        return exc.returncode
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
