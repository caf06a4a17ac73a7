"""Prompt templates for the directions parser and the package recommender."""

import json

PROMPT_VERSION = "1.0.0"


def build_directions_prompt(directions_text: str) -> str:
    """Build the directions-parsing prompt.

    The model returns JSON only; the schema is enforced by ParsedDirections.
    """
    lines = [
        "You are a pharmacy assistant. Parse the prescription directions (SIG)",
        "below into structured JSON.",
        "",
        "RULES:",
        "- doseAmount: number of units taken per administration (> 0)",
        "- unit: the dose unit in singular lowercase (tablet, capsule, ml, ...)",
        "- frequencyPerDay: administrations per day (>= 1)",
        "- route: administration route (oral, topical, ...) or empty",
        "- specialInstructions: anything else, or empty",
        "",
        f'DIRECTIONS: "{directions_text}"',
        "",
        "Return ONLY valid JSON matching this schema (no markdown, no explanations):",
        "{",
        '  "doseAmount": number,',
        '  "unit": string,',
        '  "frequencyPerDay": number,',
        '  "route": string,',
        '  "specialInstructions": string',
        "}",
    ]
    return "\n".join(lines)


def build_recommendation_prompt(amount: float, unit: str, candidates: list[dict]) -> str:
    """Build the package-selection prompt.

    ``candidates`` items carry ``packageId``, ``packageSize`` and ``status``.
    """
    lines = [
        "You are a pharmacy assistant selecting the optimal package(s) to",
        "dispense for a prescription.",
        "",
        f"REQUIRED QUANTITY: {amount:g} {unit}",
        f"AVAILABLE PACKAGES: {json.dumps(candidates, indent=2)}",
        "",
        "Select the best option(s) considering:",
        "- Minimize waste (prefer exact matches)",
        "- Prefer single packages over multiple",
        "- Never select inactive packages; flag them with warnings",
        "- Warn about significant overfills or underfills",
        "",
        "Return ONLY valid JSON matching this schema:",
        "{",
        '  "selectedPackages": [',
        '    {"packageId": string, "packageCount": number, "totalQuantity": number}',
        "  ],",
        '  "reasoning": string,',
        '  "warnings": [',
        '    {"type": string, "message": string, "severity": "info" | "warning" | "error"}',
        "  ]",
        "}",
    ]
    return "\n".join(lines)
