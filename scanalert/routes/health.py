"""
ScanAlert Backend — Health Check Routes
=========================================

What:  GET / (plain-text liveness) and GET /health (dependency status).
Who:   GET / is what existing uptime monitors poll; GET /health is for
       container health checks and load balancers.

Status levels (GET /health):
    - healthy:   database and SMS gateway reachable (HTTP 200)
    - degraded:  SMS gateway down or unconfigured; scans are still recorded
                 but alerts fail (HTTP 200)
    - unhealthy: database unreachable, nothing can be recorded (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse

from scanalert import __version__
from scanalert.database import check_connection
from scanalert.schemas.scan import HealthResponse
from scanalert.services.notification_base import NotificationSender
from scanalert.services.twilio_service import TwilioSmsSender, get_sms_sender

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/", response_class=PlainTextResponse, summary="Liveness check")
async def root() -> str:
    return "ScanAlert backend is running."


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(
    response: Response,
    sender: NotificationSender = Depends(get_sms_sender),
) -> HealthResponse:
    """
    Probe the database (SELECT 1) and the SMS gateway (account fetch).
    """
    db_status = "connected"
    sms_status = "available"
    overall = "healthy"

    try:
        await check_connection()
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    if isinstance(sender, TwilioSmsSender) and not sender.is_configured:
        sms_status = "not_configured"
    elif not await sender.health_check():
        sms_status = "unavailable"
    if sms_status != "available" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        sms=sms_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
