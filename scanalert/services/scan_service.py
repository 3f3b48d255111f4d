"""
ScanAlert Backend — Scan Service (Business Logic Orchestrator)
================================================================

What:  The scan workflow (validate → look up → record → notify) and the
       scan history query.
How:   Receives its collaborators (db session, notification sender) per call.
Who:   Called by route handlers in routes/scan.py.

Orchestration Flow (POST /scan):
    ┌──────────┐    ┌──────────┐    ┌──────────────┐    ┌──────────────┐
    │ Validate │───▶│  Lookup  │───▶│ Record scan  │───▶│  Send SMS    │
    │ payload  │    │ student  │    │ (COMMIT)     │    │  (Twilio)    │
    └──────────┘    └──────────┘    └──────────────┘    └──────────────┘
        400             404             500                  500
                                    nothing sent        record kept

Consistency:
    The ledger write is committed before the SMS is attempted and is never
    compensated. A scan is always recorded, even if the alert never arrives.
    Scans are not deduplicated: two scans of one card are two records and
    two alerts.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional
from zoneinfo import ZoneInfo

import pydantic
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from scanalert.config import settings
from scanalert.exceptions import (
    NotFoundError,
    NotificationError,
    PersistenceError,
    ValidationError,
)
from scanalert.models.scan_record import ScanRecord
from scanalert.models.student import Student
from scanalert.schemas.scan import ScanRecordResponse, ScanRequest, ScanResult
from scanalert.services.notification_base import NotificationSender

logger = logging.getLogger(__name__)


def format_local_timestamp(moment: datetime, tz_name: str) -> str:
    """
    Render `moment` in `tz_name` as e.g. "3/15/2025, 2:05:09 PM".

    Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(ZoneInfo(tz_name))
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{local.month}/{local.day}/{local.year}, {hour}:{local:%M:%S} {meridiem}"


def format_alert_message(
    name: str,
    scan_time: datetime,
    tz_name: Optional[str] = None,
    institution: Optional[str] = None,
) -> str:
    """Body of the SMS sent to the parent."""
    stamp = format_local_timestamp(scan_time, tz_name or settings.notification_timezone)
    return (
        f"Security Alert: {name} scanned ID at {stamp}. "
        f"Sent from {institution or settings.institution_name}."
    )


class ScanService:
    """
    Business logic layer for scans.

    Responsibilities:
        - process_scan(): validate, resolve student, write ledger, notify
        - list_scan_history(): full ledger, newest first

    Error Handling Strategy:
        Driver errors become PersistenceError; sender errors arrive as
        NotificationError. Both keep their original text in `details`.
    """

    @staticmethod
    def validate_request(payload: Any) -> ScanRequest:
        """
        Turn an untrusted JSON payload into a ScanRequest.

        Raises:
            ValidationError: payload missing, not an object, or regNumber
                absent/empty/non-string.
        """
        if not isinstance(payload, dict):
            raise ValidationError(context={"payload_type": type(payload).__name__})
        try:
            return ScanRequest.model_validate(payload)
        except pydantic.ValidationError as e:
            raise ValidationError(context={"errors": e.errors(include_url=False)})

    async def process_scan(
        self,
        db: AsyncSession,
        sender: NotificationSender,
        payload: Any,
    ) -> ScanResult:
        """
        Complete workflow for one scanned card.

        Workflow Steps:
            1. Validate payload (before any data access)
            2. Find the student by exact reg_number, first match wins
            3. Create the ScanRecord and commit it
            4. Send the alert to the parent number

        Error Recovery:
            Step 1 fails → ValidationError (400), nothing touched
            Step 2 fails → NotFoundError (404) or PersistenceError (500)
            Step 3 fails → PersistenceError (500), rolled back, no SMS
            Step 4 fails → NotificationError (500), record stays committed

        Args:
            db: Async database session (injected by FastAPI)
            sender: Notification sender (injected by FastAPI)
            payload: Decoded JSON body, or None when there was none

        Returns:
            ScanResult with the provider message id and the stored record
        """
        scan_request = self.validate_request(payload)
        reg_number = scan_request.reg_number
        logger.info("Processing scan for regNumber=%s", reg_number)

        student = await self._find_student(db, reg_number)
        record = await self._record_scan(db, student)

        body = format_alert_message(student.name, record.scan_time)
        try:
            sid = await sender.send(to=student.parent_number, body=body)
        except NotificationError as e:
            logger.error(
                "Scan %s recorded but SMS to parent failed: %s",
                record.id,
                e.details,
            )
            raise

        logger.info("Scan %s recorded and parent notified (sid=%s)", record.id, sid)
        return ScanResult(
            success=True,
            message=f"SMS sent to {student.parent_number}",
            message_sid=sid,
            record=self._to_response(record),
        )

    async def _find_student(self, db: AsyncSession, reg_number: str) -> Student:
        try:
            result = await db.execute(
                select(Student)
                .where(Student.reg_number == reg_number)
                .order_by(Student.created_at, Student.id)
                .limit(1)
            )
            student = result.scalars().first()
        except Exception as e:
            logger.error("Database error looking up student %s: %s", reg_number, str(e))
            raise PersistenceError(
                details=str(e),
                context={"reg_number": reg_number, "error_type": type(e).__name__},
            )

        if student is None:
            logger.warning("Student not found for regNumber=%s", reg_number)
            raise NotFoundError(reg_number=reg_number)
        return student

    async def _record_scan(self, db: AsyncSession, student: Student) -> ScanRecord:
        """
        Persist the ledger entry and commit right away, so a later
        notification failure cannot undo it.
        """
        record = ScanRecord(
            id=uuid.uuid4(),
            reg_number=student.reg_number,
            name=student.name,
            parent_number=student.parent_number,
            scan_time=datetime.now(timezone.utc),
        )
        try:
            db.add(record)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("Failed to save scan record for %s: %s", student.reg_number, str(e))
            raise PersistenceError(
                details=str(e),
                context={"reg_number": student.reg_number, "error_type": type(e).__name__},
            )
        logger.info("Scan record %s saved for regNumber=%s", record.id, record.reg_number)
        return record

    async def list_scan_history(self, db: AsyncSession) -> List[ScanRecordResponse]:
        """
        Every scan record, newest first. No pagination or filtering.

        Query plan:
            SELECT * FROM scan_records ORDER BY scan_time DESC
            → idx_scan_records_scan_time

        Raises:
            PersistenceError: "Failed to retrieve records" (no details exposed)
        """
        try:
            result = await db.execute(
                select(ScanRecord).order_by(desc(ScanRecord.scan_time))
            )
            records = list(result.scalars().all())
        except Exception as e:
            logger.error("Database error fetching scan history: %s", str(e), exc_info=True)
            raise PersistenceError(
                message="Failed to retrieve records",
                context={"error_type": type(e).__name__},
            )
        return [self._to_response(record) for record in records]

    @staticmethod
    def _to_response(record: ScanRecord) -> ScanRecordResponse:
        return ScanRecordResponse(
            id=record.id,
            reg_number=record.reg_number,
            name=record.name,
            parent_number=record.parent_number,
            scan_time=record.scan_time,
        )


# ── Singleton Instance ────────────────────────────────────────────────────
scan_service = ScanService()
