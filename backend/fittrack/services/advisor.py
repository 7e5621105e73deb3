"""Evaluation/plan orchestration.

Each request moves through input validation, text extraction (reports only),
the per-caller cooldown check, one model call and normalization. Any stage
failure short-circuits to a failure envelope; later stages never run.

Example:
    service = AdvisorService(ModelInvoker())
    envelope = await service.generate_plan(
        GeneratePlanRequest(body={"age": 30, ...}, caller="203.0.113.7")
    )
"""

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

from pydantic import ValidationError

from fittrack.config import settings
from fittrack.schemas.advisor import (
    AdvisorEnvelope,
    EvaluationEnvelope,
    PatientProfile,
    PlanEnvelope,
    ReportMeta,
)
from fittrack.services.cooldown import CooldownLimiter
from fittrack.services.errors import (
    AdvisorError,
    InputInvalidError,
    ServiceUnavailableError,
    UnknownModelError,
)
from fittrack.services.model_client import ModelInvoker
from fittrack.services.normalizer import normalize_evaluation, normalize_weekly_plan
from fittrack.services.pdf_text import check_upload, extract_pdf_text, require_readable
from fittrack.services.prompts import build_evaluation_prompt, build_plan_prompt

logger = logging.getLogger(__name__)

# Generation parameters per request kind
EVALUATION_TEMPERATURE = 0.3
EVALUATION_MAX_OUTPUT_TOKENS = 2048
PLAN_TEMPERATURE = 0.4
PLAN_MAX_OUTPUT_TOKENS = 4096

# Fields a plan request must carry
REQUIRED_PLAN_FIELDS = ("age", "gender", "height", "weight", "bmi")

PLAN_COOLDOWN_MESSAGE = "Please wait {seconds} seconds before generating another plan."
REPORT_COOLDOWN_MESSAGE = "Please wait {seconds} seconds before evaluating another report."

EnvelopeT = TypeVar("EnvelopeT", bound=AdvisorEnvelope)


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class EvaluateReportRequest:
    """An uploaded report with optional JSON-encoded patient metadata."""

    pdf_bytes: bytes
    content_type: str | None
    caller: str
    meta_json: str | None = None
    kind: Literal["evaluate_report"] = "evaluate_report"


@dataclass(frozen=True)
class GeneratePlanRequest:
    """A decoded JSON plan request body."""

    body: Any
    caller: str
    kind: Literal["generate_plan"] = "generate_plan"


AdvisorRequest = EvaluateReportRequest | GeneratePlanRequest


# =============================================================================
# Input parsing
# =============================================================================


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    location = ".".join(str(part) for part in err.get("loc", ()))
    return f"{location}: {err.get('msg', 'invalid value')}" if location else err.get("msg", "invalid value")


def parse_report_meta(meta_json: str | None) -> ReportMeta:
    """Decode the optional metadata field of a report upload.

    Absent or blank metadata yields an empty profile; anything present must
    be a JSON object.

    Raises:
        InputInvalidError: If the metadata is not a valid JSON object.
    """
    if meta_json is None or not meta_json.strip():
        return ReportMeta()
    try:
        payload = json.loads(meta_json)
    except json.JSONDecodeError as e:
        raise InputInvalidError("Invalid meta JSON.") from e
    if not isinstance(payload, dict):
        raise InputInvalidError("Invalid meta JSON.")
    try:
        return ReportMeta.model_validate(payload)
    except ValidationError as e:
        raise InputInvalidError(f"Invalid meta: {_first_error(e)}") from e


def parse_plan_request(body: Any) -> PatientProfile:
    """Check field presence and build a ``PatientProfile`` from a plan body.

    Raises:
        InputInvalidError: If required fields are missing or invalid.
    """
    if not isinstance(body, dict):
        raise InputInvalidError("Request body must be a JSON object.")
    missing = [
        field for field in REQUIRED_PLAN_FIELDS
        if body.get(field) is None or (isinstance(body.get(field), str) and not body[field].strip())
    ]
    if missing:
        raise InputInvalidError(f"Missing required fields: {', '.join(missing)}")
    try:
        return PatientProfile.model_validate(body)
    except ValidationError as e:
        raise InputInvalidError(f"Invalid field {_first_error(e)}") from e


# =============================================================================
# Service
# =============================================================================


class AdvisorService:
    """Orchestrate report evaluation and weekly plan generation.

    Holds one cooldown limiter per request kind; the instance is meant to
    live for the whole process so that cooldowns apply across requests.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        extractor: Callable[[bytes], str] = extract_pdf_text,
        plan_limiter: CooldownLimiter | None = None,
        report_limiter: CooldownLimiter | None = None,
        max_upload_bytes: int | None = None,
        min_report_chars: int | None = None,
        max_report_chars: int | None = None,
    ):
        """Initialize AdvisorService.

        Args:
            invoker: Model invoker; if unconfigured every request fails fast.
            extractor: PDF bytes to text. Runs in a worker thread.
            plan_limiter: Cooldown for plan requests. Defaults to
                ``settings.plan_cooldown_seconds``.
            report_limiter: Cooldown for report evaluations. Defaults to
                ``settings.report_cooldown_seconds`` (0 disables it).
            max_upload_bytes: Upload size limit.
            min_report_chars: Minimum extracted characters for a readable report.
            max_report_chars: Report characters forwarded to the model.
        """
        self._invoker = invoker
        self._extractor = extractor
        self._plan_limiter = plan_limiter or CooldownLimiter(
            settings.plan_cooldown_seconds, message=PLAN_COOLDOWN_MESSAGE
        )
        self._report_limiter = report_limiter or CooldownLimiter(
            settings.report_cooldown_seconds, message=REPORT_COOLDOWN_MESSAGE
        )
        self._max_upload_bytes = max_upload_bytes
        self._min_report_chars = min_report_chars
        self._max_report_chars = max_report_chars

    async def close(self) -> None:
        await self._invoker.close()

    async def handle(self, request: AdvisorRequest) -> AdvisorEnvelope:
        """Dispatch a request to the matching entry point."""
        if request.kind == "evaluate_report":
            return await self.evaluate_report(request)
        return await self.generate_plan(request)

    @staticmethod
    def _failure(envelope_cls: type[EnvelopeT], error: AdvisorError) -> EnvelopeT:
        return envelope_cls(
            success=False,
            message=error.message,
            error=error.code,
            retry_after=error.retry_after if error.retryable else None,
            status_code=error.status_code,
        )

    async def _dispatch(
        self,
        limiter: CooldownLimiter,
        caller: str,
        prompt: str,
        temperature: float,
        max_output_tokens: int,
        normalize: Callable[[str], Any],
    ) -> Any:
        """Run cooldown check, model call and normalization as one unit.

        The cooldown reservation is released unless the whole unit succeeds.
        """
        reservation = limiter.acquire(caller)
        dispatched = False
        try:
            raw = await self._invoker.generate(
                prompt, temperature=temperature, max_output_tokens=max_output_tokens
            )
            result = normalize(raw)
            dispatched = True
            return result
        finally:
            if not dispatched:
                limiter.release(reservation)

    async def evaluate_report(self, request: EvaluateReportRequest) -> EvaluationEnvelope:
        """Evaluate an uploaded medical report.

        Returns:
            EvaluationEnvelope with ``evaluation`` on success, or a failure
            envelope carrying the message and HTTP-equivalent status.
        """
        try:
            if not self._invoker.configured:
                raise ServiceUnavailableError()

            check_upload(request.content_type, len(request.pdf_bytes), self._max_upload_bytes)
            meta = parse_report_meta(request.meta_json)

            text = await asyncio.to_thread(self._extractor, request.pdf_bytes)
            text = require_readable(text, self._min_report_chars)

            evaluation = await self._dispatch(
                self._report_limiter,
                request.caller,
                build_evaluation_prompt(meta, text, self._max_report_chars),
                EVALUATION_TEMPERATURE,
                EVALUATION_MAX_OUTPUT_TOKENS,
                lambda raw: normalize_evaluation(raw, vegan=meta.is_vegan),
            )
        except AdvisorError as e:
            logger.info("evaluate_report failed for %s: %s", request.caller, e.code)
            return self._failure(EvaluationEnvelope, e)
        except Exception:
            logger.exception("Unexpected error while evaluating report")
            return self._failure(EvaluationEnvelope, UnknownModelError())

        return EvaluationEnvelope(success=True, evaluation=evaluation)

    async def generate_plan(self, request: GeneratePlanRequest) -> PlanEnvelope:
        """Generate a seven-day diet and workout plan.

        Returns:
            PlanEnvelope with ``dietPlan``, ``workoutPlan`` and ``confidence``
            on success, or a failure envelope.
        """
        try:
            if not self._invoker.configured:
                raise ServiceUnavailableError()

            profile = parse_plan_request(request.body)
            plan = await self._dispatch(
                self._plan_limiter,
                request.caller,
                build_plan_prompt(profile),
                PLAN_TEMPERATURE,
                PLAN_MAX_OUTPUT_TOKENS,
                lambda raw: normalize_weekly_plan(raw, vegan=profile.is_vegan),
            )
        except AdvisorError as e:
            logger.info("generate_plan failed for %s: %s", request.caller, e.code)
            return self._failure(PlanEnvelope, e)
        except Exception:
            logger.exception("Unexpected error while generating plan")
            return self._failure(PlanEnvelope, UnknownModelError())

        return PlanEnvelope(
            success=True,
            diet_plan=plan.diet_plan,
            workout_plan=plan.workout_plan,
            confidence=plan.confidence,
        )
