"""
ScanAlert Backend — ScanRecord SQLAlchemy Model
=================================================

What:  ORM model for the `scan_records` table (the scan ledger).
Who:   Written by ScanService.process_scan(); read by list_scan_history().

Lifecycle:
    Created once per accepted scan, never updated, never deleted by this
    service. Student fields are copied at scan time, so later edits to the
    student (or its removal) leave history untouched. There is deliberately
    no foreign key to `students`.

Index on scan_time:
    Serves the only read pattern, ORDER BY scan_time DESC.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from scanalert.database import Base


class ScanRecord(Base):
    """One barcode scan, snapshotting the student as it was at scan time."""

    __tablename__ = "scan_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    reg_number: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_number: Mapped[str] = mapped_column(String(32), nullable=False)

    # Stored in UTC; converted to the alert timezone only when formatting SMS
    scan_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When the card was scanned (UTC)",
    )

    __table_args__ = (
        Index("idx_scan_records_scan_time", "scan_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<ScanRecord(id={self.id}, reg_number='{self.reg_number}', "
            f"scan_time='{self.scan_time}')>"
        )
