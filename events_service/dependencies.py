"""FastAPI dependencies."""
from functools import lru_cache

from events_service.database import get_engine
from events_service.services.event_data_accessor import EventDataAccessor


@lru_cache
def get_accessor() -> EventDataAccessor:
    """Process-wide accessor; every request shares the engine's pool."""
    return EventDataAccessor(get_engine())
