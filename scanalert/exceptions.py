"""
ScanAlert Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for the scan workflow and history query.
How:   Each exception carries a client-facing `message`, optional `details`
       (also returned to the client) and an optional `context` dict that is
       only logged. Global exception handlers (registered in main.py) turn
       them into JSON error responses.
Who:   Raised by services; caught by global handlers.

Exception Hierarchy:
    ScanAlertError (base)
    ├── ValidationError     → 400 {"error": "Missing regNumber"}
    ├── NotFoundError       → 404 {"error": "Student not found"}
    ├── PersistenceError    → 500 {"error": "Internal Server Error", "details": ...}
    └── NotificationError   → 500 {"error": "Failed to send SMS", "details": ...}

NotificationError is a partial success: by the time it is raised the scan
record is already committed and stays committed.
"""

from typing import Any, Dict, Optional


class ScanAlertError(Exception):
    """
    Base exception for all ScanAlert application errors.

    Attributes:
        message:  Client-facing error label, returned as the "error" field
        details:  Underlying failure text, returned as "details" when set
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "Internal Server Error",
        details: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details
        self.context = context or {}
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        """JSON body for the error response."""
        body: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(ScanAlertError):
    """
    Raised when the scan request is malformed.

    When:    regNumber absent, empty, not a string, or no usable JSON body.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Missing regNumber",
        field: Optional[str] = "regNumber",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(ScanAlertError):
    """
    Raised when no student matches the scanned registration number.

    HTTP:    404 Not Found
    """

    def __init__(
        self,
        message: str = "Student not found",
        reg_number: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if reg_number is not None:
            ctx["reg_number"] = reg_number
        super().__init__(message=message, context=ctx)
        self.reg_number = reg_number


class PersistenceError(ScanAlertError):
    """
    Raised when a database read or write fails.

    When:    Connection lost, commit failed, query failed.
    HTTP:    500 Internal Server Error

    The scan path reports "Internal Server Error" with the driver message in
    `details`; the history path reports "Failed to retrieve records" only.
    """

    def __init__(
        self,
        message: str = "Internal Server Error",
        details: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, details=details, context=context)


class NotificationError(ScanAlertError):
    """
    Raised when the SMS gateway rejects or fails to deliver the alert.

    When:    Twilio API error, network error, timeout, missing credentials.
    HTTP:    500 Internal Server Error, with the gateway message in `details`

    The ledger entry written before the send attempt is NOT rolled back.
    """

    def __init__(
        self,
        message: str = "Failed to send SMS",
        details: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, details=details, context=context)


def unexpected_error_body(exc: BaseException) -> Dict[str, Any]:
    """Body for exceptions outside the hierarchy (the catch-all 500)."""
    return {"error": "Internal Server Error", "details": str(exc)}
