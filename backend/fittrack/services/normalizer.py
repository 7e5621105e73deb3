"""Turn raw model text into validated evaluation and plan records.

The model is asked for bare JSON but often wraps it in prose or markdown
fences, so the payload is located by taking everything from the first ``{``
to the last ``}``. Parsed payloads are validated against the pydantic
schemas and then repaired deterministically, including dietary exclusions.
"""

import json
import logging
import re
from functools import lru_cache
from typing import Any

from pydantic import ValidationError

from fittrack.schemas.advisor import (
    WEEKDAYS,
    DietDay,
    EvaluationResult,
    WeeklyPlan,
)
from fittrack.services.errors import (
    IncompletePlanError,
    NoJsonFoundError,
    SchemaViolationError,
)
from fittrack.services.prompts import VEGAN_DENYLIST, VEGAN_REPLACEMENT

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 200

# Keys the model sometimes uses instead of dietPlan/workoutPlan
_DIET_KEYS = ("dietPlan", "diet_plan", "diet")
_WORKOUT_KEYS = ("workoutPlan", "workout_plan", "workout")


# =============================================================================
# JSON extraction
# =============================================================================


def extract_json_text(raw: str) -> str:
    """Return the substring from the first ``{`` through the last ``}``.

    Raises:
        NoJsonFoundError: If there is no such span.
    """
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end <= start:
        logger.warning("No JSON object in model output: %r", raw[:_PREVIEW_CHARS])
        raise NoJsonFoundError()
    return raw[start : end + 1]


def parse_json_object(raw: str) -> dict[str, Any]:
    """Extract and parse the JSON object embedded in ``raw``.

    Raises:
        NoJsonFoundError: If no ``{...}`` span exists.
        SchemaViolationError: If the span is not valid JSON or not an object.
    """
    text = extract_json_text(raw)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Model output is not valid JSON (%s): %r", e, text[:_PREVIEW_CHARS])
        raise SchemaViolationError() from e
    if not isinstance(payload, dict):
        raise SchemaViolationError()
    return payload


# =============================================================================
# Dietary repair
# =============================================================================


@lru_cache(maxsize=8)
def _denylist_pattern(words: tuple[str, ...]) -> re.Pattern[str]:
    # Longest first so "yoghurt" is not shadowed by a shorter entry
    alternation = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternation})(?:e?s)?\b", re.IGNORECASE)


def substitute_denylisted(
    text: str,
    denylist: tuple[str, ...] = VEGAN_DENYLIST,
    replacement: str = VEGAN_REPLACEMENT,
) -> str:
    """Replace whole-word, case-insensitive denylist matches in ``text``."""
    if not text:
        return text
    return _denylist_pattern(denylist).sub(replacement, text)


def enforce_vegan_diet(diet_plan: dict[str, DietDay]) -> dict[str, DietDay]:
    """Return a copy of ``diet_plan`` with every meal scrubbed of animal products."""
    repaired: dict[str, DietDay] = {}
    for day, meals in diet_plan.items():
        fields = meals.model_dump()
        repaired[day] = DietDay(
            **{name: substitute_denylisted(value) for name, value in fields.items()}
        )
    return repaired


# =============================================================================
# Record validation
# =============================================================================


def normalize_evaluation(raw: str, vegan: bool = False) -> EvaluationResult:
    """Parse raw model output into an ``EvaluationResult``.

    Missing descriptive fields default to empty values; only a clean parse
    of a JSON object is required.

    Raises:
        NoJsonFoundError: If no JSON object is present.
        SchemaViolationError: If the JSON is invalid or fields have the wrong type.
    """
    payload = parse_json_object(raw)
    try:
        result = EvaluationResult.model_validate(payload)
    except ValidationError as e:
        logger.warning("Evaluation failed validation: %s", e.errors()[:3])
        raise SchemaViolationError() from e
    if vegan:
        result.diet = substitute_denylisted(result.diet)
    return result


def _first_present(payload: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _canonical_days(mapping: Any, label: str) -> dict[str, Any]:
    """Re-key a per-day mapping by canonical weekday name.

    Raises:
        IncompletePlanError: If the mapping is absent or lacks any weekday.
    """
    if not isinstance(mapping, dict):
        raise IncompletePlanError()
    by_day: dict[str, Any] = {}
    for key, value in mapping.items():
        day = str(key).strip().title()
        if day in WEEKDAYS:
            by_day[day] = value
    missing = [day for day in WEEKDAYS if day not in by_day]
    if missing:
        logger.warning("%s plan is missing days: %s", label, ", ".join(missing))
        raise IncompletePlanError()
    return {day: by_day[day] for day in WEEKDAYS}


def normalize_weekly_plan(raw: str, vegan: bool = False) -> WeeklyPlan:
    """Parse raw model output into a complete seven-day ``WeeklyPlan``.

    Raises:
        NoJsonFoundError: If no JSON object is present.
        IncompletePlanError: If either mapping lacks one of the seven weekdays.
        SchemaViolationError: If the JSON is invalid or a day has the wrong shape.
    """
    payload = parse_json_object(raw)
    diet = _canonical_days(_first_present(payload, _DIET_KEYS), "Diet")
    workout = _canonical_days(_first_present(payload, _WORKOUT_KEYS), "Workout")

    try:
        plan = WeeklyPlan.model_validate(
            {
                "dietPlan": diet,
                "workoutPlan": workout,
                "confidence": payload.get("confidence"),
            }
        )
    except ValidationError as e:
        logger.warning("Weekly plan failed validation: %s", e.errors()[:3])
        raise SchemaViolationError() from e

    if vegan:
        plan.diet_plan = enforce_vegan_diet(plan.diet_plan)
    return plan
