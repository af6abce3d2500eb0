"""Initial schema — reference entities, lots and production entries.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19

Run with:
    cd backend && alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Reference entities ───────────────────────────────────

    op.create_table(
        "quality_grades",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("rate_per_meter", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_quality_grades_name", "quality_grades", ["name"])

    op.create_table(
        "workers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("worker_code", sa.String(30), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("worker_type", sa.String(20), server_default="Permanent"),
        sa.Column("phone", sa.String(20)),
        sa.Column("address", sa.Text()),
        sa.Column("joining_date", sa.Date()),
        sa.Column("shift", sa.String(10), server_default="None"),
        sa.Column("emergency_contact", sa.JSON()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_workers_worker_code", "workers", ["worker_code"])
    op.create_index("ix_workers_worker_type", "workers", ["worker_type"])
    op.create_index("ix_workers_shift", "workers", ["shift"])

    op.create_table(
        "machines",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("machine_code", sa.String(30), nullable=False),
        sa.Column("machine_name", sa.String(200), nullable=False),
        sa.Column("machine_type", sa.String(100)),
        sa.Column("status", sa.String(20), server_default="Active"),
        sa.Column("installation_date", sa.Date()),
        sa.Column("location", sa.String(200)),
        sa.Column("notes", sa.Text()),
        sa.Column("day_shift_worker_id", sa.String(36), sa.ForeignKey("workers.id")),
        sa.Column("night_shift_worker_id", sa.String(36), sa.ForeignKey("workers.id")),
        # FK to takas added below, once that table exists
        sa.Column("current_taka_id", sa.String(36)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_machines_machine_code", "machines", ["machine_code"])
    op.create_index("ix_machines_status", "machines", ["status"])
    op.create_index("ix_machines_current_taka_id", "machines", ["current_taka_id"])

    # ── Lots ─────────────────────────────────────────────────

    op.create_table(
        "takas",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("taka_number", sa.String(50), nullable=False, unique=True),
        sa.Column("machine_id", sa.String(36), sa.ForeignKey("machines.id"), nullable=False),
        sa.Column("quality_id", sa.String(36), sa.ForeignKey("quality_grades.id"), nullable=False),
        sa.Column("rate_per_meter", sa.Numeric(10, 2), nullable=False),
        sa.Column("target_meters", sa.Numeric(12, 2), server_default="0"),
        sa.Column("total_meters", sa.Numeric(14, 2), server_default="0"),
        sa.Column("total_earnings", sa.Numeric(16, 2), server_default="0"),
        sa.Column("status", sa.String(20), server_default="Active"),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.DateTime()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("total_meters >= 0", name="ck_takas_total_meters_non_negative"),
    )
    op.create_index("ix_takas_taka_number", "takas", ["taka_number"])
    op.create_index("ix_takas_machine_id", "takas", ["machine_id"])
    op.create_index("ix_takas_quality_id", "takas", ["quality_id"])
    op.create_index("ix_takas_status", "takas", ["status"])
    op.create_index("ix_takas_created_at", "takas", ["created_at"])

    op.create_foreign_key(
        "fk_machines_current_taka_id", "machines", "takas",
        ["current_taka_id"], ["id"],
    )

    # ── Production entries ───────────────────────────────────

    op.create_table(
        "production_entries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("machine_id", sa.String(36), sa.ForeignKey("machines.id"), nullable=False),
        sa.Column("worker_id", sa.String(36), sa.ForeignKey("workers.id"), nullable=False),
        sa.Column("taka_id", sa.String(36), sa.ForeignKey("takas.id"), nullable=False),
        sa.Column("quality_id", sa.String(36), sa.ForeignKey("quality_grades.id"), nullable=False),
        sa.Column("shift", sa.String(10), nullable=False),
        sa.Column("meters_produced", sa.Numeric(12, 2), nullable=False),
        sa.Column("rate_per_meter", sa.Numeric(10, 2), nullable=False),
        sa.Column("earnings", sa.Numeric(14, 2), server_default="0"),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("meters_produced >= 0", name="ck_production_meters_non_negative"),
    )
    op.create_index("ix_production_entries_date", "production_entries", ["date"])
    op.create_index("ix_production_entries_machine_id", "production_entries", ["machine_id"])
    op.create_index("ix_production_entries_worker_id", "production_entries", ["worker_id"])
    op.create_index("ix_production_entries_taka_id", "production_entries", ["taka_id"])
    op.create_index("ix_production_entries_quality_id", "production_entries", ["quality_id"])
    op.create_index("ix_production_entries_shift", "production_entries", ["shift"])
    op.create_index("ix_production_entries_created_at", "production_entries", ["created_at"])


def downgrade() -> None:
    op.drop_table("production_entries")
    op.drop_constraint("fk_machines_current_taka_id", "machines", type_="foreignkey")
    op.drop_table("takas")
    op.drop_table("machines")
    op.drop_table("workers")
    op.drop_table("quality_grades")
