"""Event and EventGame ORM models.

No ForeignKey constraints: the link between events and their children is
enforced by EventDataAccessor.
"""
import enum
from sqlalchemy import Column, String, DateTime, Integer, Float, Boolean, Text
from sqlalchemy.sql import func
from events_service.database import Base


class EventScheduleType(str, enum.Enum):
    all = "all"
    upcoming = "upcoming"
    past = "past"


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=True)
    emoji = Column(String(16), nullable=True)
    description = Column(Text, nullable=True)
    host = Column(Integer, nullable=True)
    start_time = Column(DateTime, nullable=True)
    location = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_public = Column(Boolean, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class EventGame(Base):
    """Junction row linking an event to one activity."""

    __tablename__ = "event_games"

    activity_id = Column(Integer, primary_key=True, autoincrement=False)
    event_id = Column(Integer, primary_key=True, autoincrement=False, index=True)
