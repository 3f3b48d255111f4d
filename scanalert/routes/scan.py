"""
ScanAlert Backend — Scan Route Handlers
=========================================

What:  POST /scan (process a scanned ID card) and GET /scan-history.
How:   Reads the request, delegates to ScanService, returns JSON. Errors are
       raised as ScanAlertError subclasses and formatted by the global
       handlers in main.py.
Who:   Called by the barcode scanner frontend.

Request Flow (POST /scan):
    1. Body is read and decoded by hand: a missing, empty or malformed body
       must produce the same 400 "Missing regNumber" as an absent field,
       not FastAPI's default 422
    2. ScanService validates, looks up, records and notifies
    3. 200 {"success": true, "message": "SMS sent to ..."}
"""

import json
import logging
from typing import Any, List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from scanalert.database import get_db_session
from scanalert.schemas.scan import (
    ErrorResponse,
    ScanRecordResponse,
    ScanRequest,
    ScanResponse,
)
from scanalert.services.notification_base import NotificationSender
from scanalert.services.scan_service import scan_service
from scanalert.services.twilio_service import get_sms_sender

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scans"])


async def _read_json_body(request: Request) -> Any:
    """Decoded JSON body, or None when the body is empty or not JSON."""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Scan request body is not valid JSON (%d bytes)", len(raw))
        return None


@router.post(
    "/scan",
    response_model=ScanResponse,
    responses={
        200: {"description": "Scan recorded and parent notified", "model": ScanResponse},
        400: {"description": "Missing regNumber", "model": ErrorResponse},
        404: {"description": "Student not found", "model": ErrorResponse},
        500: {
            "description": "SMS failed (scan still recorded) or internal error",
            "model": ErrorResponse,
        },
    },
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": ScanRequest.model_json_schema()}},
        }
    },
    summary="Record a barcode scan and alert the parent",
)
async def process_scan(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    sender: NotificationSender = Depends(get_sms_sender),
) -> ScanResponse:
    """
    Record one scan of a student ID card and send the parent an SMS.

    Error responses (handled by global exception handlers):
        HTTP 400: regNumber missing, empty or not a string
        HTTP 404: no student with that regNumber
        HTTP 500: "Failed to send SMS" (scan recorded) or "Internal Server Error"
    """
    payload = await _read_json_body(request)
    result = await scan_service.process_scan(db=db, sender=sender, payload=payload)
    return ScanResponse(success=result.success, message=result.message)


@router.get(
    "/scan-history",
    response_model=List[ScanRecordResponse],
    responses={
        200: {"description": "All scan records, newest first"},
        500: {"description": "Failed to retrieve records", "model": ErrorResponse},
    },
    summary="List every recorded scan, newest first",
)
async def scan_history(
    db: AsyncSession = Depends(get_db_session),
) -> List[ScanRecordResponse]:
    logger.info("Fetching scan history")
    return await scan_service.list_scan_history(db)
