"""RSVP ORM model."""
import enum
from sqlalchemy import Column, Integer, SmallInteger, String
from events_service.database import Base


class RSVPAcceptance(int, enum.Enum):
    pending = -1
    declined = 0
    accepted = 1


class RSVP(Base):
    __tablename__ = "rsvps"

    rsvp_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    event_id = Column(Integer, nullable=False, index=True)
    accepted = Column(SmallInteger, nullable=False, default=RSVPAcceptance.pending.value)
    comment = Column(String(500), nullable=False, default="")
