"""Credit events table

Revision ID: 001_credit_events
Revises: None
Create Date: 2026-10-18

Creates the append-only credit event log, including the typed
back-reference (source_event_id, triggered_by) of referral bonus events.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_credit_events"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create credit_events with its indexes."""
    op.create_table(
        "credit_events",
        sa.Column("seq", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("credits_awarded", sa.Integer(), nullable=False),
        sa.Column("referrer_bonus", sa.Integer(), nullable=False),
        sa.Column("referrer_id", sa.String(255), nullable=True),
        sa.Column("source_event_id", sa.String(32), nullable=True),
        sa.Column("triggered_by", sa.String(255), nullable=True),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("seq"),
        sa.CheckConstraint("credits_awarded >= 0", name="ck_credit_events_credits_non_negative"),
        sa.CheckConstraint("referrer_bonus >= 0", name="ck_credit_events_bonus_non_negative"),
    )
    op.create_index("ix_credit_events_id", "credit_events", ["id"], unique=True)
    op.create_index("ix_credit_events_user_id", "credit_events", ["user_id"], unique=False)
    op.create_index("ix_credit_events_action_type", "credit_events", ["action_type"], unique=False)
    op.create_index("ix_credit_events_timestamp", "credit_events", ["timestamp"], unique=False)
    op.create_index("ix_credit_events_source_event_id", "credit_events", ["source_event_id"], unique=False)
    op.create_index("ix_credit_events_triggered_by", "credit_events", ["triggered_by"], unique=False)
    op.create_index("ix_credit_events_user_timestamp", "credit_events", ["user_id", "timestamp"], unique=False)
    op.create_index("ix_credit_events_referrer_timestamp", "credit_events", ["referrer_id", "timestamp"], unique=False)


def downgrade() -> None:
    """Drop credit_events."""
    op.drop_index("ix_credit_events_referrer_timestamp", table_name="credit_events")
    op.drop_index("ix_credit_events_user_timestamp", table_name="credit_events")
    op.drop_index("ix_credit_events_triggered_by", table_name="credit_events")
    op.drop_index("ix_credit_events_source_event_id", table_name="credit_events")
    op.drop_index("ix_credit_events_timestamp", table_name="credit_events")
    op.drop_index("ix_credit_events_action_type", table_name="credit_events")
    op.drop_index("ix_credit_events_user_id", table_name="credit_events")
    op.drop_index("ix_credit_events_id", table_name="credit_events")
    op.drop_table("credit_events")
