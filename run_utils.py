from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any


def resolve_base_name(arg: str | None, default: str = "genome-raw-data") -> str:
    if not arg:
        return default
    base = Path(arg).name
    for suffix in (".txt", ".csv", ".tsv"):
        if base.endswith(suffix):
            base = base[: -len(suffix)]
    return base


def run_root(base_name: str) -> Path:
    run_date = date.today().strftime("%Y%m%d")
    root = Path("runs") / run_date / base_name
    root.mkdir(parents=True, exist_ok=True)
    return root


def write_json(path: Path, payload: Any) -> None:
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def read_upload(path: Path) -> str:
    """Read a raw genome export as text.

    Provider exports are mostly ASCII, but some carry a BOM or were re-saved
    by spreadsheet tools, so a few encodings are tried in order.
    """
    raw = path.read_bytes()
    for encoding in ("utf-8-sig", "utf-8", "cp1252"):
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    return raw.decode("latin-1")


def load_summary(root: Path) -> dict[str, Any]:
    summary_path = root / "summary.json"
    if not summary_path.exists():
        return {}
    return read_json(summary_path)


def update_summary(root: Path, updates: dict[str, Any]) -> None:
    summary = load_summary(root)
    summary.update(updates)
    write_json(root / "summary.json", summary)
