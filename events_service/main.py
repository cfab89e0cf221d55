"""FastAPI application entry point."""
import logging
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from events_service.config import settings
from events_service.database import Base, get_engine
from events_service.dependencies import get_accessor
from events_service.errors import ConnectionAcquisitionError, PaginationError, SearchParameterError
from events_service.services.event_data_accessor import EventDataAccessor

# Import routers
from events_service.routers import events, rsvps

# Import all models so Base.metadata knows about them
from events_service.models.event import Event, EventGame  # noqa: F401
from events_service.models.rsvp import RSVP               # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Events Service",
    description="Events with activities and RSVPs, paged and searchable by location",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["accept", "content-type"],
)

# Register routers
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(rsvps.router, prefix="/api/rsvps", tags=["RSVPs"])


@app.exception_handler(PaginationError)
@app.exception_handler(SearchParameterError)
def bad_parameters(request: Request, exc: ValueError):
    logger.error("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": str(exc)})


@app.exception_handler(ConnectionAcquisitionError)
def store_unavailable(request: Request, exc: ConnectionAcquisitionError):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"message": "database unavailable"},
    )


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=get_engine())


@app.get("/api/health")
def health_check(accessor: EventDataAccessor = Depends(get_accessor)):
    return {"status": "ok", "database": accessor.is_connected()}
