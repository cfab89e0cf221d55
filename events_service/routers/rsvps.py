"""RSVP API routes."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from events_service.config import settings
from events_service.dependencies import get_accessor
from events_service.schemas.event import RSVPOut
from events_service.services.event_data_accessor import EventDataAccessor

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[RSVPOut])
def list_user_rsvps(
    user_id: Optional[str] = Query(None),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE),
    page_number: int = Query(1),
    accessor: EventDataAccessor = Depends(get_accessor),
):
    """RSVPs of one user (every RSVP when no user is given)."""
    rsvps = accessor.get_rsvps_for_user(page_size=page_size, page_number=page_number, user_id=user_id)
    if rsvps is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No rsvps found")
    return rsvps
