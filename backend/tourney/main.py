"""FastAPI application entry point.

Tournament timing & settlement service.
"""

import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status

from tourney import __version__
from tourney.config import get_settings
from tourney.logging_config import configure_logging, get_logger
from tourney.tournament.api import router as tournament_router
from tourney.utils.db import close_db, init_db
from tourney.utils.errors import ErrorCode, TourneyError
from tourney.utils.json_utils import ORJSONResponse

settings = get_settings()

configure_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
    app_env=settings.app_env,
)
logger = get_logger(__name__)


# =============================================================================
# Lifespan Events
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Starting application...")
    await init_db()
    logger.info("Database ready")

    yield

    logger.info("Shutting down application...")
    await close_db()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Tourney API",
    description="Tournament blind clock, payout calculation and settlement",
    version=__version__,
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

app.include_router(tournament_router)


# =============================================================================
# Error Handlers
# =============================================================================

_STATUS_BY_CODE = {
    ErrorCode.TOURNAMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CHIP_IMBALANCE: status.HTTP_409_CONFLICT,
    ErrorCode.DUPLICATE_REGISTRATION: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_SETTLED: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_TOURNAMENT_STATUS: status.HTTP_409_CONFLICT,
    ErrorCode.SETTLEMENT_CANCELLED: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_PAYOUT_CONFIG: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INVALID_STRUCTURE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
}


def get_request_id(request: Request) -> str:
    """Request ID from state, the X-Request-ID header, or a fresh one."""
    request_id = getattr(request.state, "request_id", None)
    return request_id or request.headers.get("X-Request-ID") or str(uuid.uuid4())


def create_error_response(exc: TourneyError, trace_id: str | None = None) -> dict[str, Any]:
    """Error body shared by every handler."""
    return {
        "error": {
            "code": exc.code,
            "message": exc.message,
            "details": exc.details,
            "recoverable": exc.recoverable,
        },
        "traceId": trace_id,
    }


@app.exception_handler(TourneyError)
async def tourney_error_handler(request: Request, exc: TourneyError) -> ORJSONResponse:
    """Map domain errors to HTTP statuses (not found 404, conflicts 409, bad config 422)."""
    trace_id = get_request_id(request)
    status_code = _STATUS_BY_CODE.get(
        exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )

    logger.warning(
        "tourney_error",
        code=exc.code,
        status_code=status_code,
        details=exc.details,
        trace_id=trace_id,
    )
    return ORJSONResponse(status_code=status_code, content=create_error_response(exc, trace_id))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
    trace_id = get_request_id(request)
    logger.error("unexpected_error", error_type=type(exc).__name__, trace_id=trace_id, exc_info=True)

    # 운영 환경에서는 내부 오류 내용을 노출하지 않음
    message = f"{type(exc).__name__}: {exc}" if settings.app_debug else "Internal server error"
    wrapped = TourneyError(ErrorCode.INTERNAL_ERROR, message, recoverable=False)
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=create_error_response(wrapped, trace_id),
    )


# =============================================================================
# Health Check
# =============================================================================


@app.get("/health", tags=["Health"], summary="Health check endpoint")
async def health_check() -> dict[str, Any]:
    return {"status": "ok", "version": __version__}
