# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "polars",
#     "requests",
# ]
# ///

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

from health_panel import ExtractedHealthVariant
from interpretation_prompt import build_prompt, parse_json_reply
from llm_client import ChatCompletionClient, LLMError
from run_utils import read_json, resolve_base_name, run_root, update_summary, write_json


def load_health_snps(path: Path) -> tuple[str, int, list[ExtractedHealthVariant]]:
    if not path.exists():
        raise FileNotFoundError(f"Missing health SNP extract: {path}. Run analyze_dna.py first.")
    payload = read_json(path)
    variants = [ExtractedHealthVariant(**row) for row in payload.get("health_snps", [])]
    return payload.get("source", "other"), int(payload.get("total_snps", 0)), variants


def interpret(
    run_dir: Path,
    client: ChatCompletionClient,
    profile: dict[str, Any] | None = None,
) -> dict[str, Any]:
    source, total_snps, variants = load_health_snps(run_dir / "health_snps.json")
    print(f"Requesting interpretation for {len(variants)} of {total_snps} SNPs ({client.model})...")
    prompt = build_prompt(source, total_snps, variants, profile)
    reply = client.complete(prompt)
    result = parse_json_reply(reply)

    output_path = run_dir / "interpretation.json"
    write_json(output_path, result)
    update_summary(
        run_dir,
        {
            "interpretation_path": str(output_path),
            "interpretation_model": client.model,
            "overall_score": result.get("overallScore"),
        },
    )
    print(f"Saved interpretation to {output_path}")
    return result


def main() -> int:
    parser = argparse.ArgumentParser(description="Ask the language model to interpret extracted health SNPs.")
    parser.add_argument("base_name", help="Input filename or base name used for the run folder")
    parser.add_argument("--profile", help="Optional: JSON file with the user profile")
    parser.add_argument("--model", help="Model name (default: $OPENAI_MODEL or gpt-4o)")
    args = parser.parse_args()

    run_dir = run_root(resolve_base_name(args.base_name))
    try:
        profile = read_json(Path(args.profile)) if args.profile else None
        client = ChatCompletionClient(model=args.model)
        interpret(run_dir, client, profile)
    except (FileNotFoundError, ValueError, LLMError) as exc:
        print(str(exc))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
