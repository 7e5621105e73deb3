"""Prompt construction for report evaluation and weekly plan generation.

Both prompts embed the exact JSON shape the model must return and demand
JSON-only output. Stray prose and fences are stripped later by the
normalizer.
"""

import json
from typing import Literal

from fittrack.config import settings
from fittrack.schemas.advisor import WEEKDAYS, PatientProfile, ReportMeta

FitnessGoal = Literal["weight gain", "maintenance", "weight loss"]

# Ingredients a vegan plan must never contain (singular forms)
VEGAN_DENYLIST: tuple[str, ...] = (
    # Dairy and other animal products
    "milk", "buttermilk", "curd", "paneer", "cheese", "butter", "ghee",
    "yogurt", "yoghurt", "cream", "egg", "honey", "whey",
    # Meat, poultry and seafood
    "meat", "poultry", "chicken", "turkey", "mutton", "beef", "pork", "bacon",
    "ham", "sausage", "lamb", "gelatin", "fish", "seafood", "prawn", "shrimp",
    "tuna", "salmon",
)

VEGAN_REPLACEMENT = "plant-based alternative"

_JSON_ONLY_RULES = (
    "Respond with a single JSON object and nothing else: no prose before or "
    "after it, no markdown, no code fences. Use exactly the keys shown."
)

_EVALUATION_SCHEMA = {
    "overview": "string",
    "evaluation": "string",
    "diet": "string",
    "doctors": [
        {
            "name": "string",
            "specialization": "string",
            "hospital": "string",
            "location": "string",
            "type": "government | private",
        }
    ],
    "furtherDiagnosis": ["string"],
    "limitations": "string",
}

_DIET_DAY_SCHEMA = {
    "breakfast": "string",
    "juice": "string",
    "lunch": "string",
    "snack": "string",
    "dinner": "string",
}

_WORKOUT_DAY_SCHEMA = {
    "warmup": "string",
    "mainWorkout": "string",
    "cooldown": "string",
}

_PLAN_SCHEMA = {
    "dietPlan": {day: _DIET_DAY_SCHEMA for day in WEEKDAYS},
    "workoutPlan": {day: _WORKOUT_DAY_SCHEMA for day in WEEKDAYS},
    "confidence": "high | medium | low",
}


def fitness_goal_for_bmi(bmi: float) -> FitnessGoal:
    """Map BMI to a goal: <18.5 gain, 18.5-24.9 maintenance, >=25 loss."""
    if bmi < 18.5:
        return "weight gain"
    if bmi < 25:
        return "maintenance"
    return "weight loss"


def truncate_report(text: str, max_chars: int | None = None) -> str:
    """Cut report text to at most ``max_chars`` characters."""
    max_chars = settings.max_report_chars if max_chars is None else max_chars
    return text[:max_chars]


def _format_meta(meta: ReportMeta) -> str:
    fields = meta.model_dump(by_alias=True, exclude_none=True)
    if not fields.get("healthIssues"):
        fields.pop("healthIssues", None)
    if not fields:
        return "Not provided"
    return "\n".join(f"- {key}: {value}" for key, value in fields.items())


def build_evaluation_prompt(
    meta: ReportMeta,
    report_text: str,
    max_chars: int | None = None,
) -> str:
    """Build the instruction for evaluating a medical report.

    Args:
        meta: Patient metadata sent with the upload (may be empty).
        report_text: Extracted report text; truncated before embedding.
        max_chars: Truncation limit, defaults to ``settings.max_report_chars``.
    """
    sections = [
        "You are a careful medical report assistant for a fitness app. "
        "Read the patient details and the report text, then explain the "
        "findings in plain language. Do not diagnose; recommend specialists "
        "where findings warrant it, listing both government and private options.",
        "",
        "Patient details:",
        _format_meta(meta),
        "",
        "Report text:",
        '"""',
        truncate_report(report_text, max_chars),
        '"""',
        "",
        "Return JSON with exactly this structure:",
        json.dumps(_EVALUATION_SCHEMA, indent=2),
        "",
    ]
    if meta.is_vegan:
        sections += [_vegan_rule(), ""]
    sections.append(_JSON_ONLY_RULES)
    return "\n".join(sections)


def _vegan_rule() -> str:
    return (
        "Dietary preference is VEGAN: never include any of these ingredients: "
        + ", ".join(VEGAN_DENYLIST)
        + ". Use plant-based alternatives instead."
    )


def build_plan_prompt(profile: PatientProfile) -> str:
    """Build the instruction for a seven-day diet and workout plan."""
    goal = fitness_goal_for_bmi(profile.bmi)
    issues = ", ".join(profile.health_issues) if profile.health_issues else "none"
    preference = profile.preference or "no restriction"

    rules = [
        f"- BMI-based fitness goal: {goal} "
        "(BMI below 18.5 means weight gain, 18.5 to 24.9 maintenance, 25 or above weight loss).",
        "- Health issues listed below override the BMI-based goal: adapt meals and "
        "exercise intensity to them first.",
        f"- Respect the dietary preference: {preference}.",
        "- Cover all seven days, using these exact keys: " + ", ".join(WEEKDAYS) + ".",
        "- Set confidence to low if the inputs look inconsistent.",
    ]
    if profile.is_vegan:
        rules.append("- " + _vegan_rule())

    sections = [
        "You are a certified nutritionist and fitness coach. Create a weekly "
        "diet and workout plan for this person.",
        "",
        "Profile:",
        f"- Age: {profile.age:g}",
        f"- Gender: {profile.gender}",
        f"- Height: {profile.height:g} cm",
        f"- Weight: {profile.weight:g} kg",
        f"- BMI: {profile.bmi:.1f}",
        f"- Dietary preference: {preference}",
        f"- Health issues: {issues}",
        "",
        "Rules:",
        *rules,
        "",
        "Return JSON with exactly this structure:",
        json.dumps(_PLAN_SCHEMA, indent=2),
        "",
        _JSON_ONLY_RULES,
    ]
    return "\n".join(sections)
