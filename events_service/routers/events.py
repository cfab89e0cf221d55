"""Event API routes, thin handlers over EventDataAccessor."""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from events_service.config import settings
from events_service.dependencies import get_accessor
from events_service.errors import WriteOutcome, WriteResult
from events_service.models.event import EventScheduleType
from events_service.schemas.event import (
    EventCreate,
    EventIDFilter,
    EventOut,
    EventRSVPsCreate,
    EventUpdate,
    EventUpdateIn,
    RSVPIn,
    RSVPOut,
    RSVPsIn,
)
from events_service.services.event_data_accessor import EventDataAccessor

logger = logging.getLogger(__name__)
router = APIRouter()

_OUTCOME_STATUS = {
    WriteOutcome.not_found: status.HTTP_404_NOT_FOUND,
    WriteOutcome.conflict: status.HTTP_409_CONFLICT,
    WriteOutcome.transient_failure: status.HTTP_503_SERVICE_UNAVAILABLE,
    WriteOutcome.failed: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _raise_for_outcome(result: WriteResult) -> None:
    if not result:
        raise HTTPException(status_code=_OUTCOME_STATUS[result.outcome], detail=result.message)


def _not_found(what: str = "Event not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=what)


# ── GET ────────────────────────────────────────────────────────────────

@router.get("/", response_model=list[EventOut])
def list_events(
    schedule_type: EventScheduleType = Query(EventScheduleType.all, alias="type"),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE),
    page_number: int = Query(1),
    accessor: EventDataAccessor = Depends(get_accessor),
):
    """List events on a schedule: all, upcoming or past."""
    events = accessor.get_events(page_size=page_size, page_number=page_number, schedule_type=schedule_type)
    if events is None:
        raise _not_found("No events found")
    return events


@router.post("/query", response_model=list[EventOut])
def query_events(
    payload: EventIDFilter,
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE),
    page_number: int = Query(1),
    accessor: EventDataAccessor = Depends(get_accessor),
):
    """Fetch a page of the events named in the body's id list."""
    events = accessor.get_events_with_ids(payload.id, page_size=page_size, page_number=page_number)
    if events is None:
        raise _not_found("No events found")
    return events


@router.get("/search", response_model=list[EventOut])
def search_events(
    latitude: float,
    longitude: float,
    distance: int,
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE),
    page_number: int = Query(1),
    accessor: EventDataAccessor = Depends(get_accessor),
):
    """Events within ``distance`` miles, nearest first."""
    ids = accessor.get_event_ids_near_location(
        latitude, longitude, distance, page_size=page_size, page_number=page_number
    )
    events = accessor.get_events_with_ids(ids, page_size=page_size, page_number=1) if ids else None
    if events is None:
        raise _not_found("No events found")
    rank = {event_id: position for position, event_id in enumerate(ids)}
    return sorted(events, key=lambda event: rank[event.id])


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, accessor: EventDataAccessor = Depends(get_accessor)):
    """Fetch a single event with its activities and RSVPs."""
    events = accessor.get_events_with_ids([event_id], page_size=1, page_number=1)
    if events is None:
        raise _not_found()
    return events[0]


@router.get("/{event_id}/rsvps", response_model=list[RSVPOut])
def list_event_rsvps(
    event_id: int,
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE),
    page_number: int = Query(1),
    accessor: EventDataAccessor = Depends(get_accessor),
):
    rsvps = accessor.get_rsvps(event_id, page_size=page_size, page_number=page_number)
    if rsvps is None:
        raise _not_found("No rsvps found")
    return rsvps


# ── POST ───────────────────────────────────────────────────────────────

@router.post("/", status_code=status.HTTP_201_CREATED)
def create_event(payload: EventCreate, accessor: EventDataAccessor = Depends(get_accessor)):
    """Create an event with its activities; RSVPs start pending."""
    result = accessor.create_event(payload)
    _raise_for_outcome(result)
    return {"message": "event created", "id": result.event_id}


@router.post("/{event_id}/rsvps")
def create_event_rsvps(
    event_id: int,
    payload: RSVPsIn,
    accessor: EventDataAccessor = Depends(get_accessor),
):
    """Add RSVPs to an existing event."""
    result = accessor.create_event_rsvps(EventRSVPsCreate(id=event_id, rsvps=payload.rsvps))
    _raise_for_outcome(result)
    return {"message": "rsvps sent"}


# ── PUT ────────────────────────────────────────────────────────────────

@router.put("/{event_id}")
def update_event(
    event_id: int,
    payload: EventUpdateIn,
    accessor: EventDataAccessor = Depends(get_accessor),
):
    """Update an event; the activity list replaces the existing one."""
    result = accessor.update_event(EventUpdate(id=event_id, **payload.model_dump()))
    _raise_for_outcome(result)
    return {"message": "event updated"}


@router.put("/{event_id}/rsvps/{rsvp_id}")
def update_event_rsvp(
    event_id: int,
    rsvp_id: int,
    payload: RSVPIn,
    accessor: EventDataAccessor = Depends(get_accessor),
):
    result = accessor.update_event_rsvp(event_id, payload.model_copy(update={"rsvp_id": rsvp_id}))
    _raise_for_outcome(result)
    return {"message": "rsvp updated"}


# ── DELETE ─────────────────────────────────────────────────────────────

@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(event_id: str, accessor: EventDataAccessor = Depends(get_accessor)):
    """Delete an event together with its activity links and RSVPs."""
    _raise_for_outcome(accessor.delete_event(event_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
