"""
ScanAlert Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the API contract with the scanner frontend.
How:   Wire names are camelCase (regNumber, parentNumber, scanTime), matching
       what deployed scanners already send and read. Python attributes stay
       snake_case. Response models set `populate_by_name` so services can
       build them by field name; the request model accepts wire names only.
Who:   Used by ScanService for validation and by routes as response models.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models exchanged with the frontend in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ScanRequest(BaseModel):
    """
    What:  Body of POST /scan.
    How:   StrictStr rejects numbers/booleans/objects; min_length rejects "".
           Whitespace is NOT stripped: the value is matched exactly as scanned.
           Only the wire name `regNumber` is accepted; a body carrying
           `reg_number` instead counts as missing.

    Example:
        {"regNumber": "S100"}
    """
    model_config = ConfigDict(populate_by_name=False)

    reg_number: StrictStr = Field(
        alias="regNumber",
        min_length=1,
        description="Registration number decoded from the ID card barcode",
    )


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ScanRecordResponse(CamelModel):
    """
    What:  One ledger entry as returned by GET /scan-history.

    scan_time is always timezone-aware UTC. SQLite hands back naive values,
    which are UTC by construction and get tagged here.
    """
    id: uuid.UUID = Field(description="Ledger entry identifier")
    reg_number: str = Field(description="Registration number at scan time")
    name: str = Field(description="Student name at scan time")
    parent_number: str = Field(description="Parent number notified for this scan")
    scan_time: datetime = Field(description="When the card was scanned (UTC ISO 8601)")

    @field_validator("scan_time")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class ScanResponse(BaseModel):
    """
    What:  Body of a successful POST /scan.

    Example:
        {"success": true, "message": "SMS sent to +911234567890"}
    """
    success: bool = Field(default=True)
    message: str = Field(description="Human-readable delivery confirmation")


class ScanResult(BaseModel):
    """
    What:  Outcome of ScanService.process_scan().
    Who:   Consumed by the POST /scan route, which exposes success/message.
    """
    success: bool = True
    message: str
    message_sid: str = Field(description="Provider message identifier (Twilio SID)")
    record: ScanRecordResponse


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Error body shared by all endpoints.

    Example:
        {"error": "Failed to send SMS", "details": "The 'To' number is not a valid phone number."}
    """
    error: str = Field(description="Error label")
    details: Optional[str] = Field(default=None, description="Underlying failure message")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    sms: str = Field(description="SMS gateway: available, unavailable, not_configured")
    uptime_seconds: float = Field(description="Seconds since service started")
