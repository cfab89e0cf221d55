"""Event aggregate data accessor.

Reads and writes the Event aggregate (events + event_games + rsvps):
- Two-phase pagination: resolve a page of event ids first, then join the
  child tables for exactly those ids, so an event with many children still
  counts once toward page_size
- Multi-statement writes run in one transaction on one pooled connection;
  any failure rolls the whole aggregate back
- Event/child integrity is enforced here (existence checks, manual cascade),
  the store has no foreign keys
"""
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Sequence

from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Connection, Engine, Transaction

from events_service.config import settings
from events_service.db.cursor import ResultCursor
from events_service.db.delegates import ProximitySearch, current_date, schedule_predicates
from events_service.db.query import QueryDescriptor
from events_service.errors import (
    BusinessRuleViolation,
    ConnectionAcquisitionError,
    PaginationError,
    RollbackError,
    WriteOutcome,
    WriteResult,
)
from events_service.models.event import Event, EventGame, EventScheduleType
from events_service.models.rsvp import RSVP, RSVPAcceptance
from events_service.schemas.event import (
    EVENT_COLUMNS,
    EventCreate,
    EventOut,
    EventRSVPsCreate,
    EventUpdate,
    RSVPIn,
    RSVPOut,
)

logger = logging.getLogger(__name__)

events_table = Event.__table__
event_games_table = EventGame.__table__
rsvps_table = RSVP.__table__

EVENT_FIELDS = ("id",) + EVENT_COLUMNS + ("created_at", "updated_at")
EVENT_GAME_FIELDS = ("activity_id", "event_id")
RSVP_FIELDS = ("rsvp_id", "user_id", "event_id", "accepted", "comment")


def calculate_offset(page_size: int, page_number: int) -> int:
    """Rows to skip before the requested page (page_number is 1-indexed)."""
    if page_size < 1:
        raise PaginationError(f"page_size must be at least 1, got {page_size}")
    if page_number < 1:
        raise PaginationError(f"page_number must be at least 1, got {page_number}")
    return page_size * (page_number - 1) if page_number > 1 else 0


def _parse_id(raw: Any) -> Optional[int]:
    """Integers (not bools) and all-digit strings; nothing is truncated."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.isascii() and raw.isdigit():
        return int(raw)
    return None


def _parse_ids(ids: Sequence[Any]) -> list[int]:
    parsed = []
    for raw in ids:
        event_id = _parse_id(raw)
        if event_id is None:
            logger.warning("Ignoring malformed event id %r", raw)
        else:
            parsed.append(event_id)
    return parsed


class _StatementScope:
    """Runs the statements of one write over a single held connection."""

    def __init__(self, connection: Connection):
        self.connection = connection

    def execute(
        self,
        descriptor: QueryDescriptor,
        failure: Optional[str] = None,
        outcome: WriteOutcome = WriteOutcome.not_found,
    ) -> ResultCursor:
        """Execute; with ``failure`` set, zero affected rows aborts the write."""
        cursor = ResultCursor(self.connection.execute(descriptor.to_statement()))
        if failure and cursor.affected_rows < 1:
            raise BusinessRuleViolation(failure, outcome)
        return cursor


class EventDataAccessor:
    """Blocking facade over a pooled engine. Safe to share across threads."""

    def __init__(
        self,
        engine: Engine,
        proximity: Optional[ProximitySearch] = None,
        schedule_timezone: Optional[str] = None,
    ):
        self.engine = engine
        self.proximity = proximity or ProximitySearch()
        self.schedule_timezone = schedule_timezone or settings.SCHEDULE_TIMEZONE

    # ── Connection & transaction scoping ───────────────────────────────

    @contextmanager
    def _connection(self) -> Iterator[Connection]:
        """Hold one pooled connection for the duration of the block."""
        try:
            connection = self.engine.connect()
        except (sa_exc.TimeoutError, sa_exc.DBAPIError) as exc:
            logger.error("Could not get a connection: %s", exc)
            raise ConnectionAcquisitionError(str(exc)) from exc
        try:
            yield connection
        finally:
            connection.close()

    @contextmanager
    def _aggregate_transaction(self, action: str) -> Iterator[_StatementScope]:
        """Started -> steps -> Committed, or RolledBack on any exception."""
        with self._connection() as connection:
            transaction = connection.begin()
            try:
                yield _StatementScope(connection)
                transaction.commit()
            except Exception as exc:
                self._rollback(transaction, action, exc)
                raise

    @staticmethod
    def _rollback(transaction: Transaction, action: str, cause: Exception) -> None:
        logger.error("Could not %s: %s", action, cause)
        if not transaction.is_active:
            return
        try:
            transaction.rollback()
        except sa_exc.SQLAlchemyError as exc:
            logger.critical("Rollback failed after trying to %s: %s", action, exc)
            raise RollbackError(f"Rollback failed after trying to {action}") from exc

    def _run_write(
        self,
        action: str,
        steps: Callable[[_StatementScope], Optional[int]],
        transactional: bool = True,
    ) -> WriteResult:
        """Run write steps and collapse every failure into a WriteResult.

        RollbackError is not collapsed: it propagates to the caller.
        """
        try:
            if transactional:
                with self._aggregate_transaction(action) as scope:
                    event_id = steps(scope)
            else:
                with self._connection() as connection:
                    event_id = steps(_StatementScope(connection))
                    connection.commit()
        except RollbackError:
            raise
        except BusinessRuleViolation as exc:
            if not transactional:
                logger.error("Could not %s: %s", action, exc)
            return WriteResult(exc.outcome, str(exc))
        except ConnectionAcquisitionError as exc:
            return WriteResult(WriteOutcome.transient_failure, str(exc))
        except sa_exc.IntegrityError as exc:
            return WriteResult(WriteOutcome.conflict, str(exc.orig))
        except sa_exc.OperationalError as exc:
            return WriteResult(WriteOutcome.transient_failure, str(exc.orig))
        except sa_exc.SQLAlchemyError as exc:
            logger.exception("Unexpected database error while trying to %s", action)
            return WriteResult(WriteOutcome.failed, str(exc))
        except Exception as exc:
            # Driver errors raised while binding values are not wrapped by SQLAlchemy
            logger.exception("Unexpected error while trying to %s", action)
            return WriteResult(WriteOutcome.failed, f"{type(exc).__name__}: {exc}")
        return WriteResult(WriteOutcome.success, event_id=event_id)

    def is_connected(self) -> bool:
        try:
            with self._connection():
                pass
        except ConnectionAcquisitionError:
            return False
        return True

    # ── READ ───────────────────────────────────────────────────────────

    def get_events(
        self,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
        page_number: int = 1,
        schedule_type: EventScheduleType = EventScheduleType.all,
    ) -> Optional[list[EventOut]]:
        """A page of events, optionally only upcoming or past ones."""
        offset = calculate_offset(page_size, page_number)
        today = current_date(self.schedule_timezone)
        select_ids = (
            QueryDescriptor.select(events_table, ["id"])
            .where(*schedule_predicates(EventScheduleType(schedule_type), today))
            .order_by("id")
        )
        return self._get_event_page(select_ids, offset, page_size)

    def get_events_with_ids(
        self,
        ids: Sequence[Any],
        page_size: int = settings.DEFAULT_PAGE_SIZE,
        page_number: int = 1,
    ) -> Optional[list[EventOut]]:
        """A page of the events among ``ids``; malformed ids are dropped."""
        offset = calculate_offset(page_size, page_number)
        event_ids = _parse_ids(ids)
        if not event_ids:
            return None
        select_ids = QueryDescriptor.select(events_table, ["id"]).where_in("id", event_ids).order_by("id")
        return self._get_event_page(select_ids, offset, page_size)

    def get_event_ids_near_location(
        self,
        latitude: float,
        longitude: float,
        miles: int,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
        page_number: int = 1,
    ) -> Optional[list[int]]:
        """Event ids ranked by distance; hydrate them with get_events_with_ids."""
        self.proximity.validate(latitude, longitude, miles)
        offset = calculate_offset(page_size, page_number)
        params = {"latitude": latitude, "longitude": longitude, "miles": miles}
        with self._connection() as connection:
            cursor = ResultCursor(connection.execute(self.proximity.statement(), params))
            cursor.seek(offset)
            ids = cursor.map_ids(page_size)
            cursor.close()
        return ids or None

    def get_rsvps(
        self,
        event_id: Any,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
        page_number: int = 1,
    ) -> Optional[list[RSVPOut]]:
        offset = calculate_offset(page_size, page_number)
        event_ids = _parse_ids([event_id])
        if not event_ids:
            return None
        select_rsvps = (
            QueryDescriptor.select(rsvps_table, RSVP_FIELDS)
            .where_equals(event_id=event_ids[0])
            .order_by("rsvp_id")
        )
        return self._get_rsvp_page(select_rsvps, offset, page_size)

    def get_rsvps_for_user(
        self,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
        page_number: int = 1,
        user_id: Optional[str] = None,
    ) -> Optional[list[RSVPOut]]:
        """RSVPs of ``user_id``; without one, every RSVP."""
        offset = calculate_offset(page_size, page_number)
        select_rsvps = QueryDescriptor.select(rsvps_table, RSVP_FIELDS).order_by("rsvp_id")
        if user_id is not None:
            select_rsvps = select_rsvps.where_equals(user_id=user_id)
        return self._get_rsvp_page(select_rsvps, offset, page_size)

    def _get_event_page(
        self, select_ids: QueryDescriptor, offset: int, page_size: int
    ) -> Optional[list[EventOut]]:
        with self._connection() as connection:
            # Phase one: page over bare ids so joins cannot skew page size
            cursor = ResultCursor(connection.execute(select_ids.to_statement()))
            cursor.seek(offset)
            ids = cursor.map_ids(page_size)
            cursor.close()
            if not ids:
                return None

            # Phase two: join children for exactly those ids
            select_events = (
                QueryDescriptor.select(events_table, EVENT_FIELDS)
                .where_in("id", ids)
                .join(QueryDescriptor.select(event_games_table, EVENT_GAME_FIELDS), "id", "event_id")
                .join(QueryDescriptor.select(rsvps_table, RSVP_FIELDS), "id", "event_id")
                .order_by("id")
            )
            events = ResultCursor(connection.execute(select_events.to_statement())).map_events()
        return events or None

    def _get_rsvp_page(
        self, select_rsvps: QueryDescriptor, offset: int, page_size: int
    ) -> Optional[list[RSVPOut]]:
        with self._connection() as connection:
            cursor = ResultCursor(connection.execute(select_rsvps.to_statement()))
            cursor.seek(offset)
            rsvps = cursor.map_rsvps(page_size)
            cursor.close()
        return rsvps or None

    # ── CREATE ─────────────────────────────────────────────────────────

    def create_event(self, event: EventCreate) -> WriteResult:
        """Insert an event with its activities and RSVPs, all or nothing.

        RSVPs always start pending with an empty comment, whatever the caller
        supplied.
        """
        result = self._run_write("create event", lambda scope: self._insert_event(scope, event))
        if result:
            logger.info(
                "Created event '%s' (%s) with %d activities and %d rsvps",
                event.name, result.event_id, len(event.activities), len(event.rsvps),
            )
        return result

    def _insert_event(self, scope: _StatementScope, event: EventCreate) -> int:
        inserted = scope.execute(
            QueryDescriptor.insert(events_table, event.to_row()),
            failure="Failed to insert event",
            outcome=WriteOutcome.failed,
        )
        event_id = inserted.inserted_id
        if event_id is None:
            raise BusinessRuleViolation("Could not get last inserted event id", WriteOutcome.failed)

        self._insert_activities(scope, event_id, event.activities)

        for rsvp in event.rsvps:
            row = {
                "user_id": rsvp.user_id,
                "event_id": event_id,
                "accepted": RSVPAcceptance.pending.value,
                "comment": "",
            }
            scope.execute(
                QueryDescriptor.insert(rsvps_table, row),
                failure=f"Failed to insert rsvp for {rsvp.user_id} into rsvps",
                outcome=WriteOutcome.conflict,
            )
        return event_id

    @staticmethod
    def _insert_activities(scope: _StatementScope, event_id: int, activities: Sequence[int]) -> None:
        for activity_id in activities:
            scope.execute(
                QueryDescriptor.insert(event_games_table, {"activity_id": activity_id, "event_id": event_id}),
                failure=f"Failed to insert {activity_id} into event_games",
                outcome=WriteOutcome.conflict,
            )

    def create_event_rsvps(self, event: EventRSVPsCreate) -> WriteResult:
        """Add RSVPs, as supplied, to an event that must already exist."""
        result = self._run_write("create event rsvps", lambda scope: self._insert_rsvps(scope, event))
        if result:
            logger.info("Added %d rsvps to event %s", len(event.rsvps), event.id)
        return result

    def _insert_rsvps(self, scope: _StatementScope, event: EventRSVPsCreate) -> int:
        select_event = QueryDescriptor.select(events_table, ["id"]).where_equals(id=event.id)
        if not scope.execute(select_event).map_ids(1):
            raise BusinessRuleViolation(f"Event with id {event.id} does not exist")

        for rsvp in event.rsvps:
            row = {
                "user_id": rsvp.user_id,
                "event_id": event.id,
                "accepted": rsvp.accepted.value,
                "comment": rsvp.comment,
            }
            scope.execute(
                QueryDescriptor.insert(rsvps_table, row),
                failure=f"Failed to insert rsvp for {rsvp.user_id} into rsvps",
                outcome=WriteOutcome.conflict,
            )
        return event.id

    # ── UPDATE ─────────────────────────────────────────────────────────

    def update_event(self, event: EventUpdate) -> WriteResult:
        """Update event fields and replace its whole activity set."""
        result = self._run_write("update event", lambda scope: self._replace_event(scope, event))
        if result:
            logger.info("Updated event %s (activities now %s)", event.id, event.activities)
        return result

    def _replace_event(self, scope: _StatementScope, event: EventUpdate) -> int:
        missing = f"Event with id {event.id} does not exist"
        row = event.to_row(exclude_unset=True)
        if row:
            scope.execute(
                QueryDescriptor.update(events_table, row).where_equals(id=event.id),
                failure=missing,
            )
        else:
            # Nothing to update on the root row; it still has to exist
            select_event = QueryDescriptor.select(events_table, ["id"]).where_equals(id=event.id)
            if not scope.execute(select_event).map_ids(1):
                raise BusinessRuleViolation(missing)
        # Full replace: every existing link goes, then the new set is inserted
        scope.execute(QueryDescriptor.delete(event_games_table).where_equals(event_id=event.id))
        self._insert_activities(scope, event.id, event.activities)
        return event.id

    def update_event_rsvp(self, event_id: int, rsvp: RSVPIn) -> WriteResult:
        """Single-statement update of one RSVP's acceptance and comment."""
        if rsvp.rsvp_id is None:
            return WriteResult(WriteOutcome.not_found, "rsvp_id is required to update an rsvp")
        update_rsvp = (
            QueryDescriptor.update(rsvps_table, {"accepted": rsvp.accepted.value, "comment": rsvp.comment})
            .where_equals(event_id=event_id, rsvp_id=rsvp.rsvp_id)
        )

        def steps(scope: _StatementScope) -> int:
            scope.execute(update_rsvp, failure=f"Rsvp {rsvp.rsvp_id} not found for event {event_id}")
            return event_id

        result = self._run_write("update event rsvp", steps, transactional=False)
        if result:
            logger.info("Rsvp %s for event %s set to %s", rsvp.rsvp_id, event_id, rsvp.accepted.name)
        return result

    # ── DELETE ─────────────────────────────────────────────────────────

    def delete_event(self, event_id: Any) -> WriteResult:
        """Delete an event and cascade to its activity links and RSVPs."""
        event_ids = _parse_ids([event_id])
        if not event_ids:
            return WriteResult(WriteOutcome.not_found, f"Malformed event id {event_id!r}")
        result = self._run_write("delete event", lambda scope: self._delete_event(scope, event_ids[0]))
        if result:
            logger.info("Deleted event %s", event_ids[0])
        return result

    @staticmethod
    def _delete_event(scope: _StatementScope, event_id: int) -> int:
        scope.execute(
            QueryDescriptor.delete(events_table).where_equals(id=event_id),
            failure=f"Event with id {event_id} does not exist",
        )
        # Only the root delete is checked. Neither child delete is: an event
        # may own no activity links and no RSVPs and must still be deletable.
        scope.execute(QueryDescriptor.delete(event_games_table).where_equals(event_id=event_id))
        scope.execute(QueryDescriptor.delete(rsvps_table).where_equals(event_id=event_id))
        return event_id
