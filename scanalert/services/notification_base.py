"""
ScanAlert Backend — Abstract Notification Sender Interface
============================================================

What:  Abstract base class for the collaborator that delivers scan alerts.
How:   Concrete implementations inherit from NotificationSender and implement
       send() and health_check().
Who:   Called by ScanService after the scan record is committed.

Implementations:
    - TwilioSmsSender: Twilio Programmable Messaging (default)
    - Test doubles in tests/conftest.py
"""

from abc import ABC, abstractmethod


class NotificationSender(ABC):
    """
    Abstract interface for delivering a text alert to a phone number.

    Contract:
        - send() returns the provider-assigned message identifier
        - Every provider-specific failure is wrapped in NotificationError
        - send() is attempted once per scan unless the implementation is
          configured to retry
    """

    @abstractmethod
    async def send(self, to: str, body: str) -> str:
        """
        Deliver `body` to the phone number `to`.

        Returns:
            str: Provider message identifier (e.g. Twilio "SM..." SID).

        Raises:
            NotificationError: The provider rejected the message, the call
                timed out, or the sender is not configured.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        What:    Lightweight reachability check (sends nothing).
        Who:     Called by GET /health.
        Returns: True if the provider is reachable and authenticated.
        """
        ...

    async def close(self) -> None:
        """Release network resources. Called on application shutdown."""
        return None
