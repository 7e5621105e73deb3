"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from fittrack import __version__
from fittrack.config import settings
from fittrack.database import create_tables, engine
from fittrack.routes import admin, advisor, users
from fittrack.schemas.advisor import AdvisorEnvelope
from fittrack.services.errors import InputInvalidError

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events for startup/shutdown."""
    await create_tables()
    logger.info("Database tables ensured")

    yield  # Application runs here

    if advisor.get_advisor_service.cache_info().currsize:
        await advisor.get_advisor_service().close()
    await engine.dispose()
    logger.info("FitTrack backend shut down")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


app = FastAPI(
    title="FitTrack",
    description="Fitness tracking backend with AI report evaluation and weekly plans",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return errors as ``{"message": ...}``, the shape clients read."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return InputInvalidError.default_message
    missing = [
        str(err["loc"][-1]) for err in errors
        if err.get("type") == "missing" and err.get("loc")
    ]
    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    err = errors[0]
    if err.get("type") == "json_invalid":
        return "Request body must be valid JSON."
    location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
    message = err.get("msg", "invalid value")
    return f"Invalid field {location}: {message}" if location else message


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests as 400s in the shape each route family uses."""
    message = _describe_validation_error(exc)
    logger.info("Rejected malformed request to %s: %s", request.url.path, message)
    if request.url.path.startswith(advisor.router.prefix + "/"):
        error = InputInvalidError(message)
        envelope = AdvisorEnvelope(success=False, message=error.message, error=error.code)
        return JSONResponse(
            status_code=error.status_code,
            content=envelope.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
    return JSONResponse(status_code=400, content={"message": message})


app.add_middleware(SecurityHeadersMiddleware)

_cors_origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials="*" not in _cors_origins,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "x-admin-password"],
)

app.include_router(users.router)
app.include_router(admin.router)
app.include_router(advisor.router)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {"message": "FitTrack backend running", "version": __version__}
