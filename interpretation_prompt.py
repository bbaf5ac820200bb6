from __future__ import annotations

import json
import re
from typing import Any, Iterable, Mapping

from health_panel import CATEGORIES, ExtractedHealthVariant

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_SEX_LABELS = {"male": "Male", "female": "Female"}

_RESPONSE_SCHEMA = """{{
  "source": "{source}",
  "totalSnps": {total_snps},
  "analyzedSnps": {analyzed_snps},
  "categories": [
    {{
      "id": "{category_ids}",
      "name": "Category display name",
      "score": 0-100,
      "status": "excellent|good|moderate|attention",
      "snps": [
        {{
          "rsid": "rs...",
          "chromosome": "1-22 or X/Y",
          "position": 12345,
          "genotype": "AA/AG/GG etc",
          "gene": "GENE_SYMBOL",
          "trait": "Trait analyzed",
          "impact": "positive|neutral|risk",
          "riskLevel": "low|moderate|high (when impact=risk)",
          "description": "Plain-language meaning of this genotype for this person",
          "recommendation": "Personal advice when relevant"
        }}
      ],
      "summary": "2-3 sentence summary for this category"
    }}
  ],
  "summary": "Detailed overall summary (at least 200 words): overview, genetic strengths, points of attention with concrete advice",
  "insights": ["Key observation with explanation"],
  "recommendations": ["DNA-based recommendation: concrete action + frequency + benefit"],
  "overallScore": 0-100
}}"""


def format_snp_lines(variants: Iterable[ExtractedHealthVariant]) -> str:
    return "\n".join(
        f"{variant.rsid} ({variant.gene}): {variant.genotype} - {variant.trait}"
        for variant in variants
    )


def format_profile(profile: Mapping[str, Any] | None) -> str:
    if not profile:
        return ""
    sex = _SEX_LABELS.get(str(profile.get("sex", "")).lower(), "Other")
    lines = [
        "User profile:",
        f"- First name: {profile.get('firstName', '')}",
        f"- Sex: {sex}",
        f"- Age: {profile.get('age', '')} years",
        f"- Weight: {profile.get('weight', '')} kg",
        f"- Height: {profile.get('height', '')} cm",
        f"- Activity level: {profile.get('sedentaryLevel', '')}",
    ]
    conditions = profile.get("medicalConditions")
    if conditions:
        lines.append(f"- Medical conditions: {conditions}")
    return "\n".join(lines)


def build_prompt(
    source: str,
    total_snps: int,
    variants: Iterable[ExtractedHealthVariant],
    profile: Mapping[str, Any] | None = None,
) -> str:
    """Assemble the interpretation request sent to the language model.

    Only the extracted panel markers and their counts are included; the
    meaning of each genotype is left to the model.
    """
    variants = list(variants)
    schema = _RESPONSE_SCHEMA.format(
        source=source,
        total_snps=total_snps,
        analyzed_snps=len(variants),
        category_ids="|".join(CATEGORIES),
    )
    sections = [
        "You are a genetics expert who explains DNA results clearly and accessibly, "
        "even for a teenager.",
        format_profile(profile),
        f"Health SNPs extracted from the DNA file ({len(variants)} SNPs out of {total_snps} total):",
        format_snp_lines(variants),
        "IMPORTANT: Reply ONLY with valid JSON using this structure:",
        schema,
        "=== TONE ===\n"
        "- Simple language, no complex medical jargon\n"
        "- Positive and reassuring; genes are not destiny\n"
        "- Say \"Your DNA suggests...\" rather than \"You will...\"\n"
        "- Give concrete examples of foods, activities and habits",
        "=== DISCLAIMER ===\n"
        "Remind the reader that this analysis is informational and does not replace "
        "professional medical advice.",
    ]
    return "\n\n".join(section for section in sections if section)


def parse_json_reply(reply: str) -> dict[str, Any]:
    match = _JSON_OBJECT.search(reply)
    if not match:
        raise ValueError("No JSON object found in model reply")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Model reply is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Model reply JSON is not an object")
    return payload
