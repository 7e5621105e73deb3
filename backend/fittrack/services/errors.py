"""Failure taxonomy for the evaluation/plan pipeline.

Every stage raises one of these; ``AdvisorService`` converts them into a
``{success: false, message}`` envelope so no backend exception reaches the
caller.
"""


class AdvisorError(Exception):
    """Base class for per-request pipeline failures."""

    code = "unknown"
    status_code = 500
    retryable = False
    default_message = "Something went wrong while generating a response."

    def __init__(self, message: str | None = None, *, retry_after: int | None = None):
        self.message = message or self.default_message
        self.retry_after = retry_after
        super().__init__(self.message)


class InputInvalidError(AdvisorError):
    """Missing or malformed request fields."""

    code = "input_invalid"
    status_code = 400
    default_message = "Invalid request."


class UnreadableDocumentError(AdvisorError):
    """Extraction produced too little text (scanned or garbled PDF)."""

    code = "unreadable_document"
    status_code = 422
    default_message = (
        "Could not read enough text from this PDF. "
        "It may be scanned or image-only; please upload a text-based report."
    )


class ServiceUnavailableError(AdvisorError):
    """No model credential is configured."""

    code = "service_unavailable"
    status_code = 503
    default_message = "AI service is not configured."


class RateLimitedError(AdvisorError):
    """Caller cooldown or backend rate limit. Always carries ``retry_after``."""

    code = "rate_limited"
    status_code = 429
    retryable = True
    default_message = "AI busy, please try again shortly."


class ModelTimeoutError(AdvisorError):
    """The model did not answer within the configured wall-clock limit."""

    code = "timeout"
    status_code = 504
    retryable = True
    default_message = "AI took too long to respond. Please try again."


class NoJsonFoundError(AdvisorError):
    """The model output contained no JSON object."""

    code = "no_json_found"
    status_code = 502
    default_message = "AI returned an invalid response. Please try again."


class SchemaViolationError(AdvisorError):
    """The model output parsed but did not have the required structure."""

    code = "schema_violation"
    status_code = 502
    default_message = "AI returned an invalid response. Please try again."


class IncompletePlanError(SchemaViolationError):
    """A weekly plan is missing one or more weekdays."""

    default_message = "AI returned an incomplete weekly plan. Please try again."


class UnknownModelError(AdvisorError):
    """Uncategorized backend failure."""

    code = "unknown"
    status_code = 500
