"""Initial schema for clients, their ledger entries and operational metrics."""

from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op

revision = "20261017_0001"
down_revision = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("clients"):
        op.create_table(
            "clients",
            sa.Column("client_id", sa.String(length=36), primary_key=True),
            sa.Column("file_number", sa.String(), nullable=False, server_default=""),
            sa.Column("first_name", sa.String(), nullable=False, server_default=""),
            sa.Column("last_name", sa.String(), nullable=False, server_default=""),
            sa.Column("phone", sa.String(), nullable=False, server_default=""),
            sa.Column("email", sa.String(), nullable=False, server_default=""),
            sa.Column(
                "price_per_session",
                sa.Numeric(12, 2),
                nullable=False,
                server_default=sa.text("0"),
            ),
            sa.Column("currency", sa.String(length=16), nullable=False, server_default=""),
            sa.Column("fix_time", sa.String(), nullable=False, server_default=""),
            sa.Column("source", sa.String(), nullable=False, server_default=""),
            sa.Column(
                "starting_balance",
                sa.Numeric(12, 2),
                nullable=False,
                server_default=sa.text("0"),
            ),
            sa.Column("cached_meetings_total", sa.Numeric(12, 2), nullable=True),
            sa.Column("cached_paid_total", sa.Numeric(12, 2), nullable=True),
            sa.Column("cached_remain", sa.Numeric(12, 2), nullable=True),
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
            sa.CheckConstraint(
                "price_per_session >= 0",
                name="ck_clients_price_per_session_non_negative",
            ),
        )
        op.create_index("clients_file_number_idx", "clients", ["file_number"])
        op.create_index("clients_last_name_idx", "clients", ["last_name"])

    if not inspector.has_table("client_ledger_entries"):
        op.create_table(
            "client_ledger_entries",
            sa.Column("ledger_entry_id", sa.String(length=36), primary_key=True),
            sa.Column(
                "client_id",
                sa.String(length=36),
                sa.ForeignKey("clients.client_id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column(
                "entry_type",
                sa.Enum(
                    "session",
                    "payment",
                    name="client_ledger_entry_type_enum",
                    native_enum=False,
                ),
                nullable=False,
            ),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("note", sa.Text(), nullable=False, server_default=""),
            sa.Column("state", sa.String(length=32), nullable=False, server_default=""),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
        )
        op.create_index(
            "client_ledger_entries_client_at_idx",
            "client_ledger_entries",
            ["client_id", "at"],
        )
        op.create_index("client_ledger_entries_at_idx", "client_ledger_entries", ["at"])

    if not inspector.has_table("operational_metric_events"):
        op.create_table(
            "operational_metric_events",
            sa.Column("event_id", sa.String(length=36), primary_key=True),
            sa.Column("event_type", sa.String(length=120), nullable=False),
            sa.Column("outcome", sa.String(length=32), nullable=False),
            sa.Column("duration_ms", sa.Numeric(14, 3), nullable=True),
            sa.Column("labels", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
        )
        op.create_index(
            "ix_operational_metric_events_event_type",
            "operational_metric_events",
            ["event_type"],
        )
        op.create_index(
            "ix_operational_metric_events_outcome",
            "operational_metric_events",
            ["outcome"],
        )
        op.create_index(
            "ix_operational_metric_events_created_at",
            "operational_metric_events",
            ["created_at"],
        )


def downgrade() -> None:
    op.drop_index(
        "ix_operational_metric_events_created_at", table_name="operational_metric_events"
    )
    op.drop_index("ix_operational_metric_events_outcome", table_name="operational_metric_events")
    op.drop_index(
        "ix_operational_metric_events_event_type", table_name="operational_metric_events"
    )
    op.drop_table("operational_metric_events")
    op.drop_index("client_ledger_entries_at_idx", table_name="client_ledger_entries")
    op.drop_index("client_ledger_entries_client_at_idx", table_name="client_ledger_entries")
    op.drop_table("client_ledger_entries")
    op.drop_index("clients_last_name_idx", table_name="clients")
    op.drop_index("clients_file_number_idx", table_name="clients")
    op.drop_table("clients")
