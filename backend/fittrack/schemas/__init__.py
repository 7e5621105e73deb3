"""Pydantic schemas."""

from fittrack.schemas.advisor import (
    WEEKDAYS,
    DietDay,
    Doctor,
    EvaluationEnvelope,
    EvaluationResult,
    PatientProfile,
    PlanEnvelope,
    ReportMeta,
    WeeklyPlan,
    WorkoutDay,
)
from fittrack.schemas.user import (
    AdminUserList,
    LoginRequest,
    LoginResponse,
    ProfileUpdate,
    RegisterRequest,
    RegisterResponse,
    UserProfile,
    UserSummary,
)

__all__ = [
    "WEEKDAYS",
    "AdminUserList",
    "DietDay",
    "Doctor",
    "EvaluationEnvelope",
    "EvaluationResult",
    "LoginRequest",
    "LoginResponse",
    "PatientProfile",
    "PlanEnvelope",
    "ProfileUpdate",
    "RegisterRequest",
    "RegisterResponse",
    "ReportMeta",
    "UserProfile",
    "UserSummary",
    "WeeklyPlan",
    "WorkoutDay",
]
