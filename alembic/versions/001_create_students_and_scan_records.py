"""Create students and scan_records tables

Revision ID: 001
Revises: None
Create Date: 2025-03-01 00:00:00.000000+00:00

What:  Creates the student directory and the scan ledger.
How:   Portable column types (generic Uuid, timezone-aware DateTime), so the
       same revision runs on PostgreSQL and SQLite.

No foreign key between the tables: scan records are snapshots and must
survive edits to or removal of the student.

Rollback: downgrade() drops both tables (destructive — all scan history lost).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "students",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "reg_number",
            sa.String(64),
            nullable=False,
            comment="Registration number printed as the ID card barcode",
        ),
        sa.Column(
            "name",
            sa.String(255),
            nullable=False,
            comment="Display name used in the parent alert",
        ),
        sa.Column(
            "parent_number",
            sa.String(32),
            nullable=False,
            comment="Parent contact number (E.164) for scan alerts",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When the row entered the directory (UTC)",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    # Not unique: duplicates are tolerated and the lookup takes the earliest
    # created_at (then id)
    op.create_index("idx_students_reg_number", "students", ["reg_number"])

    op.create_table(
        "scan_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("reg_number", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("parent_number", sa.String(32), nullable=False),
        sa.Column(
            "scan_time",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When the card was scanned (UTC)",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_scan_records_scan_time", "scan_records", ["scan_time"])


def downgrade() -> None:
    """
    WARNING: destructive. Drops the whole scan history.
    """
    op.drop_index("idx_scan_records_scan_time", table_name="scan_records")
    op.drop_table("scan_records")
    op.drop_index("idx_students_reg_number", table_name="students")
    op.drop_table("students")
