"""
ScanAlert Backend — Student SQLAlchemy Model
==============================================

What:  ORM model for the `students` table (the student directory).
Who:   Read by ScanService when resolving a scanned registration number.
When:  Rows are written by an external enrolment process, never by this service.

Table Design:
    - UUID primary key: storage identity only; the business key is reg_number
    - reg_number: indexed but NOT unique. Duplicates are not prevented
      upstream, so the lookup takes the first match by (created_at, id).
    - parent_number: E.164 phone number handed to the SMS gateway as-is
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from scanalert.database import Base


class Student(Base):
    """A student whose ID card can be scanned."""

    __tablename__ = "students"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    reg_number: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Registration number printed as the ID card barcode",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name used in the parent alert",
    )

    parent_number: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Parent contact number (E.164) for scan alerts",
    )

    # Orders duplicate reg_numbers: the earliest enrolled row is the match
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When the row entered the directory (UTC)",
    )

    __table_args__ = (
        Index("idx_students_reg_number", "reg_number"),
    )

    def __repr__(self) -> str:
        return f"<Student(reg_number='{self.reg_number}', name='{self.name}')>"
