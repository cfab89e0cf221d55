"""Pydantic schemas for Events and their RSVPs."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional, Union
from pydantic import BaseModel

from events_service.models.rsvp import RSVPAcceptance

# Columns of the events table a caller may write.
EVENT_COLUMNS = (
    "name", "emoji", "description", "host", "start_time",
    "location", "latitude", "longitude", "is_public",
)


class RSVPIn(BaseModel):
    user_id: str
    accepted: RSVPAcceptance = RSVPAcceptance.pending
    comment: str = ""
    rsvp_id: Optional[int] = None


class RSVPOut(BaseModel):
    rsvp_id: int
    event_id: int
    user_id: str
    accepted: RSVPAcceptance
    comment: str = ""


class EventBase(BaseModel):
    name: Optional[str] = None
    emoji: Optional[str] = None
    description: Optional[str] = None
    host: Optional[int] = None
    start_time: Optional[datetime] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_public: Optional[bool] = None

    def to_row(self, exclude_unset: bool = False) -> dict[str, Any]:
        """Values for the events table, keyed by column name.

        With ``exclude_unset`` only the fields the caller actually supplied
        are returned, so a partial update leaves other columns alone.
        """
        return self.model_dump(include=set(EVENT_COLUMNS), exclude_unset=exclude_unset)


class EventFieldsRequired(EventBase):
    """Every event field must be present; start_time may be null."""

    name: str
    emoji: str
    description: str
    host: int
    start_time: Optional[datetime]
    location: str
    latitude: float
    longitude: float
    is_public: bool


class EventCreate(EventFieldsRequired):
    activities: list[int]
    rsvps: list[RSVPIn]


class EventUpdate(EventBase):
    id: int
    activities: list[int] = []


class EventRSVPsCreate(BaseModel):
    id: int
    rsvps: list[RSVPIn]


class EventOut(EventBase):
    id: int
    activities: list[int] = []
    rsvps: list[RSVPOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EventIDFilter(BaseModel):
    id: list[Union[int, str]]


class EventUpdateIn(EventFieldsRequired):
    activities: list[int] = []


class RSVPsIn(BaseModel):
    rsvps: list[RSVPIn]
