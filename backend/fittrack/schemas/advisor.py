"""Schemas for AI report evaluation and weekly plan generation.

``EvaluationResult`` and ``WeeklyPlan`` describe what the model must return;
they tolerate missing descriptive fields and values sent as lists
instead of strings. Only the weekday coverage of a plan is
strict, and that check lives in the normalizer so that it can report which
days are missing.

Wire names are camelCase (``furtherDiagnosis``, ``dietPlan``) to match the
JSON the model is instructed to produce and the client expects.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

WEEKDAYS: tuple[str, ...] = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

Confidence = Literal["high", "medium", "low"]


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _split_tags(value: Any) -> Any:
    """Accept health-issue tags as a list or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


def _as_text(value: Any) -> Any:
    """Flatten list/number values the model sometimes emits into a string."""
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(v).strip() for v in value if v is not None and str(v).strip())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# =============================================================================
# Patient input
# =============================================================================


class PatientProfile(CamelModel):
    """Biometrics and preferences used to build a plan prompt."""

    age: float = Field(gt=0)
    gender: Literal["male", "female", "other"]
    height: float = Field(gt=0, description="Height in cm")
    weight: float = Field(gt=0, description="Weight in kg")
    bmi: float = Field(gt=0)
    preference: str = ""
    health_issues: list[str] = Field(default_factory=list)

    @field_validator("gender", mode="before")
    @classmethod
    def _lower_gender(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("preference", mode="before")
    @classmethod
    def _clean_preference(cls, value: Any) -> Any:
        return "" if value is None else str(value).strip()

    @field_validator("health_issues", mode="before")
    @classmethod
    def _split_health_issues(cls, value: Any) -> Any:
        return _split_tags(value)

    @property
    def is_vegan(self) -> bool:
        return self.preference.lower() == "vegan"


class ReportMeta(CamelModel):
    """Optional patient metadata sent alongside an uploaded report."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str | None = None
    age: float | None = None
    gender: str | None = None
    height: float | None = None
    weight: float | None = None
    bmi: float | None = None
    preference: str | None = None
    health_issues: list[str] = Field(default_factory=list)

    @field_validator("health_issues", mode="before")
    @classmethod
    def _split_health_issues(cls, value: Any) -> Any:
        return _split_tags(value)

    @property
    def is_vegan(self) -> bool:
        return (self.preference or "").strip().lower() == "vegan"


# =============================================================================
# Report evaluation
# =============================================================================


class Doctor(CamelModel):
    """Recommended specialist."""

    name: str = ""
    specialization: str = ""
    hospital: str = ""
    location: str = ""
    type: Literal["government", "private"] = "private"

    @field_validator("name", "specialization", "hospital", "location", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return _as_text(value)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        return "government" if text.startswith("gov") else "private"


class EvaluationResult(CamelModel):
    """Structured evaluation of a medical report."""

    overview: str = ""
    evaluation: str = ""
    diet: str = ""
    doctors: list[Doctor] = Field(default_factory=list)
    further_diagnosis: list[str] = Field(default_factory=list)
    limitations: str = ""

    @field_validator("overview", "evaluation", "diet", "limitations", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return _as_text(value)

    @field_validator("doctors", mode="before")
    @classmethod
    def _doctor_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, dict):
            return [value]
        if isinstance(value, list):
            return [item for item in value if item is not None]
        return value

    @field_validator("further_diagnosis", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return value


# =============================================================================
# Weekly plan
# =============================================================================


class DietDay(CamelModel):
    """Meals for one day."""

    breakfast: str = ""
    juice: str = ""
    lunch: str = ""
    snack: str = ""
    dinner: str = ""

    @field_validator("breakfast", "juice", "lunch", "snack", "dinner", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return _as_text(value)


class WorkoutDay(CamelModel):
    """Workout for one day.

    The model uses either warmup/mainWorkout/cooldown or
    activity/duration/notes; both shapes are accepted and any extra string
    fields are kept.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    warmup: str | None = None
    main_workout: str | None = None
    cooldown: str | None = None
    activity: str | None = None
    duration: str | None = None
    notes: str | None = None

    @field_validator("warmup", "main_workout", "cooldown", "activity", "duration", "notes", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return None if value is None else _as_text(value)


class WeeklyPlan(CamelModel):
    """Seven-day diet and workout plan keyed by weekday name."""

    diet_plan: dict[str, DietDay]
    workout_plan: dict[str, WorkoutDay]
    confidence: Confidence = "high"

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        return text if text in ("high", "medium", "low") else "high"


# =============================================================================
# Response envelopes
# =============================================================================


class AdvisorEnvelope(CamelModel):
    """Common success/failure envelope.

    ``status_code`` is the HTTP-equivalent status and is not serialized.
    """

    success: bool
    message: str | None = None
    error: str | None = None
    retry_after: int | None = None
    status_code: int = Field(default=200, exclude=True)


class EvaluationEnvelope(AdvisorEnvelope):
    evaluation: EvaluationResult | None = None


class PlanEnvelope(AdvisorEnvelope):
    diet_plan: dict[str, DietDay] | None = None
    workout_plan: dict[str, WorkoutDay] | None = None
    confidence: Confidence | None = None
