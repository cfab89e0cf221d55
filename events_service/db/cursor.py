"""Forward-only cursor over a statement result, mapping rows into entities."""
from collections import deque
from itertools import chain, islice
from typing import Any, Iterator, Optional

from sqlalchemy import Column
from sqlalchemy.engine import CursorResult, Row, RowMapping

from events_service.models.event import Event, EventGame
from events_service.models.rsvp import RSVP, RSVPAcceptance
from events_service.schemas.event import EVENT_COLUMNS, EventOut, RSVPOut

events_table = Event.__table__
event_games_table = EventGame.__table__
rsvps_table = RSVP.__table__


def _value(mapping: RowMapping, column: Column) -> Any:
    """Column value, or None when the statement did not select that column."""
    try:
        return mapping[column]
    except KeyError:
        return None


def _to_rsvp(mapping: RowMapping) -> Optional[RSVPOut]:
    rsvp_id = _value(mapping, rsvps_table.c.rsvp_id)
    if rsvp_id is None:
        # Left join matched no RSVP
        return None
    return RSVPOut(
        rsvp_id=rsvp_id,
        event_id=mapping[rsvps_table.c.event_id],
        user_id=mapping[rsvps_table.c.user_id],
        accepted=RSVPAcceptance(mapping[rsvps_table.c.accepted]),
        comment=mapping[rsvps_table.c.comment] or "",
    )


class ResultCursor:
    """Wraps a SQLAlchemy result.

    Rows are consumed strictly forward. ``seek`` skips rows without mapping
    them, and the ``map_*`` methods pick up from wherever the cursor stands.
    """

    def __init__(self, result: CursorResult):
        self._result = result
        self._rows: Optional[Iterator[Row]] = None

    @property
    def affected_rows(self) -> int:
        return self._result.rowcount

    @property
    def inserted_id(self) -> Optional[int]:
        key = self._result.inserted_primary_key
        return key[0] if key else None

    def _iter_rows(self) -> Iterator[Row]:
        if self._rows is None:
            self._rows = iter(self._result)
        return self._rows

    def _push_back(self, row: Row) -> None:
        self._rows = chain([row], self._iter_rows())

    def close(self) -> None:
        """Release the underlying cursor, discarding unread rows."""
        self._result.close()

    def seek(self, offset: int) -> None:
        if offset < 0:
            raise ValueError(f"Cannot seek to a negative offset ({offset})")
        deque(islice(self._iter_rows(), offset), maxlen=0)

    def map_ids(self, limit: Optional[int] = None) -> list[int]:
        return [int(row._mapping["id"]) for row in islice(self._iter_rows(), limit)]

    def map_rsvps(self, limit: Optional[int] = None) -> list[RSVPOut]:
        rsvps = []
        for row in islice(self._iter_rows(), limit):
            rsvp = _to_rsvp(row._mapping)
            if rsvp is not None:
                rsvps.append(rsvp)
        return rsvps

    def map_events(self, limit: Optional[int] = None) -> list[EventOut]:
        """Fold joined rows into one EventOut per event id.

        An event joined with N children arrives as N rows (or more, since
        activities and RSVPs multiply each other); ``limit`` counts events.
        """
        folded: dict[int, dict[str, Any]] = {}
        for row in self._iter_rows():
            mapping = row._mapping
            event_id = mapping[events_table.c.id]
            aggregate = folded.get(event_id)
            if aggregate is None:
                if limit is not None and len(folded) >= limit:
                    self._push_back(row)
                    break
                aggregate = {
                    column: _value(mapping, events_table.c[column])
                    for column in EVENT_COLUMNS + ("created_at", "updated_at")
                }
                aggregate.update(id=event_id, activities=set(), rsvps={})
                folded[event_id] = aggregate

            activity_id = _value(mapping, event_games_table.c.activity_id)
            if activity_id is not None:
                aggregate["activities"].add(activity_id)
            rsvp = _to_rsvp(mapping)
            if rsvp is not None:
                aggregate["rsvps"][rsvp.rsvp_id] = rsvp

        return [
            EventOut(
                **{key: value for key, value in aggregate.items() if key not in ("activities", "rsvps")},
                activities=sorted(aggregate["activities"]),
                rsvps=[aggregate["rsvps"][key] for key in sorted(aggregate["rsvps"])],
            )
            for aggregate in folded.values()
        ]
