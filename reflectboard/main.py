import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated

from fastapi import FastAPI, Response, Request, Depends, HTTPException, status, Query
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from reflectboard.config import settings
from reflectboard.storage import (
    StorageError,
    init_db,
    check_db_health,
    get_db,
    create_message,
    get_message,
    get_recent_messages,
    get_ranked_messages,
    get_total_reflections,
    get_stats,
)
from reflectboard.reflections import ReflectionStatus, register_reflection
from reflectboard.logging_utils import setup_logging, RequestLoggingMiddleware, log_reflection_data
from reflectboard.utils import get_client_ip
from reflectboard.metrics import record_message_created, get_metrics, get_metrics_content_type
from reflectboard.schemas import (
    HealthResponse,
    HealthCheckResponse,
    MessageCreate,
    MessageResponse,
    MessagesListResponse,
    RankedMessagesResponse,
    ReflectResponse,
    StatsResponse,
)


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: create tables, optionally seed sample messages
    """
    init_db(seed=settings.SEED_ON_STARTUP)
    yield


app = FastAPI(
    title="Reflectboard API",
    description="Share short honest messages and reflect on them, once per visitor",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


def mount_static(target: FastAPI, directory: str) -> bool:
    """
    Serve files from directory under /static if it exists.

    Returns:
        True if the mount was added, False if the directory is missing
    """
    static_dir = Path(directory).resolve()
    if not static_dir.is_dir():
        logger.warning(f"Static directory not found, /static disabled: {static_dir}")
        return False

    logger.info(f"Serving static assets from {static_dir}")
    target.mount("/static", StaticFiles(directory=static_dir), name="static")
    return True


mount_static(app, settings.STATIC_DIR)


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health", response_model=HealthCheckResponse)
async def health() -> HealthCheckResponse:
    """Plain health check with server time."""
    return HealthCheckResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )


@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if the DB is reachable and both
    tables exist, otherwise 503.
    """
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Message Routes
# =============================================================================

@app.post(
    "/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_message(
    payload: MessageCreate,
    db: Session = Depends(get_db)
) -> MessageResponse:
    """
    Submit a new message.

    - text is required and trimmed; blank text is rejected with 422
    - category defaults to 'Honest Message', author to 'Anonymous'
    """
    try:
        message = create_message(
            db=db,
            text=payload.text,
            category=payload.category,
            author=payload.author,
        )
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save message"
        )

    record_message_created()
    return MessageResponse.model_validate(message)


@app.get("/messages", response_model=MessagesListResponse)
def list_messages(
    limit: Annotated[int, Query(ge=1, le=100, description="Maximum number of messages to return")] = 10,
    db: Session = Depends(get_db)
) -> MessagesListResponse:
    """
    Most recent messages, newest first, with the total reflection count
    across all messages.
    """
    messages = get_recent_messages(db, limit=limit)
    total_reflections = get_total_reflections(db)

    return MessagesListResponse(
        data=[MessageResponse.model_validate(msg) for msg in messages],
        total_reflections=total_reflections,
    )


@app.get("/messages/{message_id}", response_model=MessageResponse)
def read_message(message_id: int, db: Session = Depends(get_db)) -> MessageResponse:
    message = get_message(db, message_id)
    if message is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found"
        )
    return MessageResponse.model_validate(message)


# =============================================================================
# Reflection Routes
# =============================================================================

@app.get("/reflections", response_model=RankedMessagesResponse)
def list_reflections(db: Session = Depends(get_db)) -> RankedMessagesResponse:
    """All messages ranked by reflection count (descending), newest first on ties."""
    messages = get_ranked_messages(db)
    logger.info(f"GET /reflections: returned {len(messages)} messages")
    return RankedMessagesResponse(
        data=[MessageResponse.model_validate(msg) for msg in messages]
    )


@app.post(
    "/reflect/{message_id}",
    response_model=ReflectResponse,
    responses={
        404: {"model": ReflectResponse, "description": "Message not found"},
        500: {"model": ReflectResponse, "description": "Database error"},
    }
)
def reflect(
    message_id: int,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Register a reflection on a message for the calling client.

    - 200 {success: true, count}: reflection recorded
    - 200 {success: false, message: "Already reflected"}: this client already reflected
    - 404: message does not exist
    - 500: storage failure
    """
    voter = get_client_ip(request, trust_forwarded_for=settings.TRUST_FORWARDED_FOR)

    try:
        result = register_reflection(db, message_id, voter)
    except StorageError:
        log_reflection_data(request, message_id=message_id, voter=voter, result="error")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ReflectResponse(success=False, message="Database error").model_dump(),
        )

    log_reflection_data(request, message_id=message_id, voter=voter, result=result.status.value)

    if result.status is ReflectionStatus.NOT_FOUND:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=ReflectResponse(success=False, message="Message not found").model_dump(),
        )

    if result.status is ReflectionStatus.ALREADY_REGISTERED:
        return ReflectResponse(success=False, message="Already reflected", count=None)

    return ReflectResponse(success=True, count=result.count)


# =============================================================================
# Stats Route
# =============================================================================

@app.get("/stats", response_model=StatsResponse)
def get_statistics(db: Session = Depends(get_db)) -> StatsResponse:
    """
    Aggregate counts:
        - total_messages, total_reflections, unique_voters
        - messages_per_category sorted by count (descending)
    """
    stats = get_stats(db)
    return StatsResponse(**stats)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
