"""Create geocode_locations and location_aliases tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # Canonical locations
    op.create_table(
        "geocode_locations",
        sa.Column("place_id", sa.String(255), nullable=False),
        sa.Column("formatted_address", sa.Text(), nullable=False),
        sa.Column("normalized_hash", sa.String(32), nullable=False),
        sa.Column("latitude", sa.Numeric(10, 8), nullable=False),
        sa.Column("longitude", sa.Numeric(11, 8), nullable=False),
        sa.Column("viewport", _JSON, nullable=True),
        sa.Column("location_type", sa.String(50), nullable=True),
        sa.Column("confidence", sa.String(10), nullable=False),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("raw_response", _JSON, nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("needs_review", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("place_id"),
    )
    op.create_index("ix_geocode_locations_normalized_hash", "geocode_locations", ["normalized_hash"])
    op.create_index("ix_geocode_locations_lat_lng", "geocode_locations", ["latitude", "longitude"])
    op.create_index("ix_geocode_locations_expires_at", "geocode_locations", ["expires_at"])

    # Aliases
    op.create_table(
        "location_aliases",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("normalized_query", sa.Text(), nullable=False),
        sa.Column("original_query", sa.Text(), nullable=False),
        sa.Column("place_id", sa.String(255), nullable=False),
        sa.Column("match_type", sa.String(10), nullable=False),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locale", sa.String(10), nullable=False, server_default="en"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["place_id"], ["geocode_locations.place_id"], name="fk_location_aliases_place_id"),
        sa.UniqueConstraint("normalized_query", "locale", name="uq_alias_query_locale"),
    )
    op.create_index("ix_location_aliases_place_id", "location_aliases", ["place_id"])


def downgrade() -> None:
    op.drop_index("ix_location_aliases_place_id", table_name="location_aliases")
    op.drop_table("location_aliases")
    op.drop_index("ix_geocode_locations_expires_at", table_name="geocode_locations")
    op.drop_index("ix_geocode_locations_lat_lng", table_name="geocode_locations")
    op.drop_index("ix_geocode_locations_normalized_hash", table_name="geocode_locations")
    op.drop_table("geocode_locations")
