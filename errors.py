"""Error taxonomy shared by the WebSocket handler and the HTTP routes.

Every rejected operation raises one of these; the transport layer turns it
into exactly one error payload for the initiating client.
"""
from typing import Optional


class ChatError(Exception):
    status_code = 400
    error = "Request failed"
    close_connection = False

    def __init__(self, error: Optional[str] = None, details: Optional[str] = None):
        self.error = error or self.error
        self.details = details
        super().__init__(self.error if not details else f"{self.error}: {details}")

    def to_payload(self) -> dict:
        payload = {"type": "error", "error": self.error}
        if self.details:
            payload["details"] = self.details
        return payload

    def to_body(self) -> dict:
        body = {"error": self.error}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ChatError):
    status_code = 400
    error = "Invalid input"


class AuthorizationError(ChatError):
    status_code = 403
    error = "Access denied"


class BlockedError(AuthorizationError):
    """A blocked user tried to send. The connection is closed after the notice."""

    close_connection = True

    def __init__(self, details: Optional[str] = None):
        super().__init__("You are blocked from sending messages", details)


class StoreError(ChatError):
    """Persistence failure. The message shown to clients never carries the cause."""

    status_code = 500
    error = "Server error"

    def __init__(self, details: Optional[str] = None):
        super().__init__(
            self.error,
            details or "An unexpected error occurred. Please try again later.",
        )


class ProtocolError(ChatError):
    status_code = 400
    error = "Connection error"

    def __init__(self, details: Optional[str] = None):
        super().__init__(
            self.error,
            details or "Failed to process your request. Please try refreshing the page.",
        )
