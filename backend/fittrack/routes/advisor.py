"""AI routes: medical report evaluation and weekly plan generation.

Both routes answer with a ``{success, ...}`` envelope. Failures use the
envelope's HTTP-equivalent status, and retryable ones add ``Retry-After``.
"""

import logging
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from fittrack.config import settings
from fittrack.schemas.advisor import AdvisorEnvelope
from fittrack.services.advisor import (
    AdvisorService,
    EvaluateReportRequest,
    GeneratePlanRequest,
)
from fittrack.services.model_client import ModelInvoker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


@lru_cache
def get_advisor_service() -> AdvisorService:
    """Process-wide service; owns the cooldown state for both request kinds."""
    return AdvisorService(ModelInvoker())


def _caller_identity(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _to_response(envelope: AdvisorEnvelope) -> JSONResponse:
    headers = {}
    if envelope.retry_after is not None:
        headers["Retry-After"] = str(envelope.retry_after)
    return JSONResponse(
        status_code=envelope.status_code,
        content=envelope.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


@router.post("/evaluate-report")
async def evaluate_report(
    request: Request,
    file: UploadFile = File(...),
    meta: str | None = Form(default=None),
    service: AdvisorService = Depends(get_advisor_service),
) -> JSONResponse:
    """Evaluate an uploaded PDF medical report.

    Args:
        file: The PDF report.
        meta: Optional JSON object with patient details.

    Returns:
        ``{success, evaluation?, message?}``.
    """
    # Read one byte past the limit so oversized uploads are detected without buffering them whole
    pdf_bytes = await file.read(settings.max_upload_bytes + 1)
    envelope = await service.evaluate_report(
        EvaluateReportRequest(
            pdf_bytes=pdf_bytes,
            content_type=file.content_type,
            caller=_caller_identity(request),
            meta_json=meta,
        )
    )
    return _to_response(envelope)


@router.post("/generate-plan")
async def generate_plan(
    request: Request,
    body: Any = Body(default=None),
    service: AdvisorService = Depends(get_advisor_service),
) -> JSONResponse:
    """Generate a seven-day diet and workout plan.

    Returns:
        ``{success, dietPlan?, workoutPlan?, confidence?, message?}``.
    """
    envelope = await service.generate_plan(
        GeneratePlanRequest(body=body, caller=_caller_identity(request))
    )
    return _to_response(envelope)
