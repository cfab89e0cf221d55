"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the events, event_games and rsvps tables. On MySQL it also creates
the events_within_miles_from_location stored procedure used for proximity
search. No foreign keys: the application enforces event/child integrity.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Haversine distance in miles (Earth radius 3959 mi), nearest first.
PROXIMITY_PROCEDURE = """
CREATE PROCEDURE events_within_miles_from_location(IN lat DOUBLE, IN lon DOUBLE, IN miles INT)
BEGIN
    SELECT id,
           3959 * ACOS(LEAST(1.0,
               COS(RADIANS(lat)) * COS(RADIANS(latitude)) * COS(RADIANS(longitude) - RADIANS(lon))
               + SIN(RADIANS(lat)) * SIN(RADIANS(latitude)))) AS distance
    FROM events
    WHERE latitude IS NOT NULL AND longitude IS NOT NULL
    HAVING distance <= miles
    ORDER BY distance, id;
END
"""


def upgrade() -> None:
    # --- events ---
    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("emoji", sa.String(16), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("host", sa.Integer, nullable=True),
        sa.Column("start_time", sa.DateTime, nullable=True),
        sa.Column("location", sa.String(500), nullable=True),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("is_public", sa.Boolean, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )

    # --- event_games ---
    op.create_table(
        "event_games",
        sa.Column("activity_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("event_id", sa.Integer, primary_key=True, autoincrement=False),
    )
    op.create_index("ix_event_games_event_id", "event_games", ["event_id"])

    # --- rsvps ---
    op.create_table(
        "rsvps",
        sa.Column("rsvp_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("event_id", sa.Integer, nullable=False),
        sa.Column("accepted", sa.SmallInteger, nullable=False, server_default="-1"),
        sa.Column("comment", sa.String(500), nullable=False, server_default=""),
    )
    op.create_index("ix_rsvps_event_id", "rsvps", ["event_id"])

    if op.get_context().dialect.name == "mysql":
        op.execute(PROXIMITY_PROCEDURE)


def downgrade() -> None:
    if op.get_context().dialect.name == "mysql":
        op.execute("DROP PROCEDURE IF EXISTS events_within_miles_from_location")
    op.drop_index("ix_rsvps_event_id", table_name="rsvps")
    op.drop_table("rsvps")
    op.drop_index("ix_event_games_event_id", table_name="event_games")
    op.drop_table("event_games")
    op.drop_table("events")
