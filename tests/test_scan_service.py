"""
ScanAlert Backend — Scan Service Unit Tests
=============================================

What:  Tests for ScanService business logic (process_scan, list_scan_history)
       and the alert message formatting.
How:   Mock DB sessions and mock senders (no real DB or SMS calls).

What we test:
    ✅ Invalid payloads are rejected before any data access
    ✅ Unknown students raise NotFoundError and record nothing
    ✅ Ledger write is committed before the SMS is attempted
    ✅ SMS failure propagates without rolling back the ledger entry
    ✅ Commit failure aborts without sending
    ✅ History maps records and wraps database errors
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from scanalert.exceptions import (
    NotFoundError,
    NotificationError,
    PersistenceError,
    ValidationError,
)
from scanalert.models.scan_record import ScanRecord
from scanalert.services.scan_service import (
    ScanService,
    format_alert_message,
    format_local_timestamp,
)


def _lookup_returns(session, student):
    result = MagicMock()
    result.scalars.return_value.first.return_value = student
    session.execute.return_value = result


class TestValidateRequest:
    """regNumber must be a non-empty string inside a JSON object."""

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            "S100",
            {},
            {"regNumber": ""},
            {"regNumber": None},
            {"regNumber": 100},
            {"regNumber": True},
            {"regNumber": ["S100"]},
            {"reg_number_typo": "S100"},
            {"reg_number": "S100"},
        ],
    )
    def test_invalid_payload_rejected(self, payload):
        with pytest.raises(ValidationError) as exc_info:
            ScanService.validate_request(payload)
        assert exc_info.value.message == "Missing regNumber"

    def test_valid_payload(self):
        request = ScanService.validate_request({"regNumber": "S100"})
        assert request.reg_number == "S100"

    def test_whitespace_is_preserved(self):
        """The scanned value is matched exactly; nothing is trimmed."""
        request = ScanService.validate_request({"regNumber": " S100 "})
        assert request.reg_number == " S100 "


class TestProcessScan:
    """Tests for the process_scan workflow."""

    def setup_method(self):
        self.service = ScanService()

    @pytest.mark.asyncio
    async def test_missing_reg_number_touches_nothing(self, mock_db_session, mock_sender):
        with pytest.raises(ValidationError):
            await self.service.process_scan(mock_db_session, mock_sender, {"regNumber": ""})

        mock_db_session.execute.assert_not_awaited()
        mock_db_session.add.assert_not_called()
        mock_sender.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_student_raises_not_found(self, mock_db_session, mock_sender):
        _lookup_returns(mock_db_session, None)

        with pytest.raises(NotFoundError) as exc_info:
            await self.service.process_scan(mock_db_session, mock_sender, {"regNumber": "S999"})

        assert exc_info.value.message == "Student not found"
        assert exc_info.value.reg_number == "S999"
        mock_db_session.add.assert_not_called()
        mock_db_session.commit.assert_not_awaited()
        mock_sender.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_failure_raises_persistence_error(self, mock_db_session, mock_sender):
        mock_db_session.execute.side_effect = RuntimeError("connection reset")

        with pytest.raises(PersistenceError) as exc_info:
            await self.service.process_scan(mock_db_session, mock_sender, {"regNumber": "S100"})

        assert exc_info.value.message == "Internal Server Error"
        assert exc_info.value.details == "connection reset"
        mock_sender.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_success_records_then_notifies(
        self, mock_db_session, mock_sender, sample_student
    ):
        _lookup_returns(mock_db_session, sample_student)

        async def send(to, body):
            # The ledger entry must already be durable when the SMS goes out
            assert mock_db_session.commit.await_count == 1
            return "SM123"

        mock_sender.send = AsyncMock(side_effect=send)

        before = datetime.now(timezone.utc)
        result = await self.service.process_scan(
            mock_db_session, mock_sender, {"regNumber": "S100"}
        )
        after = datetime.now(timezone.utc)

        assert result.success is True
        assert result.message == "SMS sent to +911234567890"
        assert result.message_sid == "SM123"

        mock_db_session.add.assert_called_once()
        record = mock_db_session.add.call_args.args[0]
        assert isinstance(record, ScanRecord)
        assert record.reg_number == "S100"
        assert record.name == "Asha"
        assert record.parent_number == "+911234567890"
        assert before <= record.scan_time <= after
        assert result.record.id == record.id

        mock_sender.send.assert_awaited_once()
        kwargs = mock_sender.send.await_args.kwargs
        assert kwargs["to"] == "+911234567890"
        assert "Asha" in kwargs["body"]
        assert kwargs["body"].startswith("Security Alert: Asha scanned ID at ")

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_record(
        self, mock_db_session, mock_sender, sample_student
    ):
        _lookup_returns(mock_db_session, sample_student)
        mock_sender.send = AsyncMock(
            side_effect=NotificationError(details="Invalid 'To' Phone Number")
        )

        with pytest.raises(NotificationError) as exc_info:
            await self.service.process_scan(mock_db_session, mock_sender, {"regNumber": "S100"})

        assert exc_info.value.message == "Failed to send SMS"
        assert exc_info.value.details == "Invalid 'To' Phone Number"
        mock_db_session.commit.assert_awaited_once()
        mock_db_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_commit_failure_skips_notification(
        self, mock_db_session, mock_sender, sample_student
    ):
        _lookup_returns(mock_db_session, sample_student)
        mock_db_session.commit.side_effect = RuntimeError("disk full")

        with pytest.raises(PersistenceError) as exc_info:
            await self.service.process_scan(mock_db_session, mock_sender, {"regNumber": "S100"})

        assert exc_info.value.details == "disk full"
        mock_db_session.rollback.assert_awaited_once()
        mock_sender.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_repeated_scans_are_not_deduplicated(
        self, mock_db_session, mock_sender, sample_student
    ):
        _lookup_returns(mock_db_session, sample_student)

        first = await self.service.process_scan(mock_db_session, mock_sender, {"regNumber": "S100"})
        second = await self.service.process_scan(mock_db_session, mock_sender, {"regNumber": "S100"})

        assert first.record.id != second.record.id
        assert mock_db_session.add.call_count == 2
        assert mock_sender.send.await_count == 2


class TestListScanHistory:
    """Tests for list_scan_history."""

    def setup_method(self):
        self.service = ScanService()

    @pytest.mark.asyncio
    async def test_empty_ledger(self, mock_db_session):
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        mock_db_session.execute.return_value = result

        assert await self.service.list_scan_history(mock_db_session) == []

    @pytest.mark.asyncio
    async def test_records_are_mapped_in_query_order(self, mock_db_session):
        newer = ScanRecord(
            id=uuid4(), reg_number="S2", name="Ravi", parent_number="+912",
            scan_time=datetime(2025, 3, 2, tzinfo=timezone.utc),
        )
        older = ScanRecord(
            id=uuid4(), reg_number="S1", name="Asha", parent_number="+911",
            scan_time=datetime(2025, 3, 1, tzinfo=timezone.utc),
        )
        result = MagicMock()
        result.scalars.return_value.all.return_value = [newer, older]
        mock_db_session.execute.return_value = result

        history = await self.service.list_scan_history(mock_db_session)

        assert [r.reg_number for r in history] == ["S2", "S1"]
        assert history[0].id == newer.id
        assert history[0].parent_number == "+912"

    @pytest.mark.asyncio
    async def test_naive_timestamps_are_tagged_utc(self, mock_db_session):
        record = ScanRecord(
            id=uuid4(), reg_number="S1", name="Asha", parent_number="+911",
            scan_time=datetime(2025, 3, 1, 8, 0, 0),
        )
        result = MagicMock()
        result.scalars.return_value.all.return_value = [record]
        mock_db_session.execute.return_value = result

        history = await self.service.list_scan_history(mock_db_session)

        assert history[0].scan_time == datetime(2025, 3, 1, 8, 0, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_database_error_hides_details(self, mock_db_session):
        mock_db_session.execute.side_effect = RuntimeError("relation does not exist")

        with pytest.raises(PersistenceError) as exc_info:
            await self.service.list_scan_history(mock_db_session)

        assert exc_info.value.message == "Failed to retrieve records"
        assert exc_info.value.to_body() == {"error": "Failed to retrieve records"}


class TestAlertFormatting:
    """Scan times are shown to parents in Asia/Kolkata (UTC+5:30)."""

    def test_afternoon(self):
        moment = datetime(2025, 3, 15, 8, 35, 9, tzinfo=timezone.utc)
        assert format_local_timestamp(moment, "Asia/Kolkata") == "3/15/2025, 2:05:09 PM"

    def test_midnight_rolls_date(self):
        moment = datetime(2025, 3, 15, 18, 30, 0, tzinfo=timezone.utc)
        assert format_local_timestamp(moment, "Asia/Kolkata") == "3/16/2025, 12:00:00 AM"

    def test_noon(self):
        moment = datetime(2025, 12, 1, 6, 30, 0, tzinfo=timezone.utc)
        assert format_local_timestamp(moment, "Asia/Kolkata") == "12/1/2025, 12:00:00 PM"

    def test_naive_is_treated_as_utc(self):
        moment = datetime(2025, 3, 15, 8, 35, 9)
        assert format_local_timestamp(moment, "Asia/Kolkata") == "3/15/2025, 2:05:09 PM"

    def test_message_body(self):
        moment = datetime(2025, 3, 15, 8, 35, 9, tzinfo=timezone.utc)
        body = format_alert_message("Asha", moment, tz_name="Asia/Kolkata", institution="College")
        assert body == "Security Alert: Asha scanned ID at 3/15/2025, 2:05:09 PM. Sent from College."
