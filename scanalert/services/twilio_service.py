"""
ScanAlert Backend — Twilio SMS Sender
=======================================

What:  Concrete NotificationSender delivering scan alerts through Twilio.
How:   Uses the Twilio SDK's async HTTP client (`messages.create_async`),
       bounds every attempt with a timeout, optionally retries transient
       failures with tenacity, and wraps every failure in NotificationError.
Who:   Singleton created at import; injected into routes via get_sms_sender().
When:  Once per accepted scan, after the ledger entry is committed.

Retry Policy:
    Default is one attempt (SMS_RETRY_MAX_ATTEMPTS=1): the scan response
    reports exactly what happened to that single send. With more attempts,
    only transient failures are retried:
        - HTTP 429 / 5xx from Twilio
        - connection errors and timeouts
    4xx errors (invalid number, unverified trial recipient, bad credentials)
    are final on the first attempt.
"""

import asyncio
import logging
import time
import uuid
from typing import Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.async_http_client import AsyncTwilioHttpClient
from twilio.rest import Client

from scanalert.config import settings
from scanalert.exceptions import NotificationError
from scanalert.services.notification_base import NotificationSender

logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    """True for failures worth another attempt."""
    if isinstance(exc, TwilioRestException):
        return exc.status == 429 or exc.status >= 500
    return isinstance(exc, (asyncio.TimeoutError, OSError))


class TwilioSmsSender(NotificationSender):
    """
    Twilio Programmable Messaging implementation.

    The REST client is created lazily on the first send, inside the running
    event loop (the async HTTP client owns an aiohttp session bound to it).
    A missing credential therefore surfaces as a NotificationError on the
    scan, not as an import-time crash.
    """

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        client: Optional[Client] = None,
    ):
        self.account_sid = account_sid if account_sid is not None else settings.twilio_account_sid
        self.auth_token = auth_token if auth_token is not None else settings.twilio_auth_token
        self.from_number = from_number if from_number is not None else settings.twilio_phone_number
        self.timeout = timeout if timeout is not None else settings.sms_timeout_seconds
        self.max_attempts = max_attempts if max_attempts is not None else settings.sms_retry_max_attempts
        self._client = client

        logger.info(
            "TwilioSmsSender initialized (configured=%s, timeout=%.1fs, attempts=%d)",
            self.is_configured,
            self.timeout,
            self.max_attempts,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def _get_client(self) -> Client:
        if self._client is None:
            if not self.is_configured:
                raise NotificationError(
                    details="SMS gateway is not configured (TWILIO_ACCOUNT_SID, "
                            "TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER)",
                )
            self._client = Client(
                self.account_sid,
                self.auth_token,
                http_client=AsyncTwilioHttpClient(timeout=self.timeout),
            )
        return self._client

    async def send(self, to: str, body: str) -> str:
        """
        Send one SMS and return its Twilio SID.

        Raises:
            NotificationError: carrying Twilio's error message in `details`
                and status/code in `context`.
        """
        request_id = str(uuid.uuid4())[:8]
        client = self._get_client()
        start_time = time.perf_counter()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential_jitter(
                    initial=settings.sms_retry_min_wait,
                    max=settings.sms_retry_max_wait,
                    jitter=1,
                ),
                retry=retry_if_exception(_is_transient),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    message = await asyncio.wait_for(
                        client.messages.create_async(
                            to=to,
                            from_=self.from_number,
                            body=body,
                        ),
                        timeout=self.timeout,
                    )
        except TwilioRestException as e:
            logger.error(
                "[%s] Twilio rejected SMS (status=%s, code=%s): %s",
                request_id, e.status, e.code, e.msg,
            )
            raise NotificationError(
                details=e.msg,
                context={"request_id": request_id, "status": e.status, "code": e.code},
            )
        except asyncio.TimeoutError:
            logger.error("[%s] Twilio call timed out after %.1fs", request_id, self.timeout)
            raise NotificationError(
                details=f"SMS gateway did not respond within {self.timeout:g} seconds",
                context={"request_id": request_id},
            )
        except (TwilioException, OSError) as e:
            logger.error("[%s] SMS gateway error: %s", request_id, str(e))
            raise NotificationError(
                details=str(e),
                context={"request_id": request_id, "error_type": type(e).__name__},
            )
        except Exception as e:
            # aiohttp and SDK internals raise assorted types; all of them
            # mean the alert was not delivered
            logger.error("[%s] Unexpected SMS error: %s", request_id, str(e), exc_info=True)
            raise NotificationError(
                details=str(e),
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info("[%s] SMS sent in %.0fms: sid=%s", request_id, duration_ms, message.sid)
        return message.sid

    async def health_check(self) -> bool:
        """
        Fetch the configured account. Costs nothing and proves both network
        reachability and credential validity.
        """
        if not self.is_configured:
            return False
        try:
            client = self._get_client()
            await asyncio.wait_for(
                client.api.v2010.accounts(self.account_sid).fetch_async(),
                timeout=self.timeout,
            )
            return True
        except Exception as e:
            logger.warning("Twilio health check failed: %s", str(e))
            return False

    async def close(self) -> None:
        if self._client is not None and isinstance(self._client.http_client, AsyncTwilioHttpClient):
            await self._client.http_client.close()


# ── Singleton Instance ────────────────────────────────────────────────────
sms_sender = TwilioSmsSender()


def get_sms_sender() -> NotificationSender:
    """
    FastAPI dependency returning the process-wide notification sender.

    Tests swap it through `app.dependency_overrides[get_sms_sender]`.
    """
    return sms_sender
