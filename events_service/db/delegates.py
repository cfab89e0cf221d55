"""Schedule and proximity delegates.

Schedule filtering becomes a predicate on the phase-one id query. Proximity
search is delegated to a stored routine in the store; this module only
parameterizes the call.
"""
from datetime import date, datetime, time
from typing import Optional

import pytz
from sqlalchemy import text
from sqlalchemy.sql.expression import ColumnElement, TextClause

from events_service.config import settings
from events_service.errors import SearchParameterError
from events_service.models.event import Event, EventScheduleType


def current_date(timezone_name: str = settings.SCHEDULE_TIMEZONE) -> date:
    """Today's date as seen from the given IANA timezone."""
    return datetime.now(pytz.timezone(timezone_name)).date()


def schedule_predicates(schedule_type: EventScheduleType, today: date) -> tuple[ColumnElement, ...]:
    """Filter on start_time for upcoming/past; ``all`` adds nothing."""
    midnight = datetime.combine(today, time.min)
    if schedule_type is EventScheduleType.upcoming:
        return (Event.__table__.c.start_time >= midnight,)
    if schedule_type is EventScheduleType.past:
        return (Event.__table__.c.start_time < midnight,)
    return ()


class ProximitySearch:
    """Calls the store-side routine returning event ids ordered by distance."""

    def __init__(self, routine_name: Optional[str] = None):
        self.routine_name = routine_name or settings.PROXIMITY_ROUTINE
        if not self.routine_name.isidentifier():
            raise ValueError(f"Invalid stored routine name: {self.routine_name!r}")

    def validate(self, latitude: float, longitude: float, miles: int) -> None:
        if miles <= 0:
            raise SearchParameterError("distance must be greater than 0")
        if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            raise SearchParameterError("latitude must be [-90,90], longitude must be [-180,180]")

    def statement(self) -> TextClause:
        """Rows with at least an ``id`` column; bind latitude, longitude and miles."""
        return text(f"CALL {self.routine_name}(:latitude, :longitude, :miles)")
