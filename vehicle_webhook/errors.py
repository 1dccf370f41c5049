"""Error hierarchy for webhook ingestion.

Every error carries the HTTP status the webhook route answers with, so the
route can render any of them the same way.
"""

from typing import Any, Dict, Optional


class WebhookError(Exception):
    """Base exception for all ingestion failures."""

    status_code = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "error": self.message, **self.details}


class ConfigError(WebhookError):
    """Webhook secret not configured. Nothing can be accepted until redeploy."""

    status_code = 500


class ParseError(WebhookError):
    """Request body is not a JSON object."""

    status_code = 400


class ValidationError(WebhookError):
    """Required identity fields (or the handshake challenge) are missing or unusable."""

    status_code = 400


class AuthError(WebhookError):
    """Signature header missing or not matching the body."""

    status_code = 401


class PersistenceError(WebhookError):
    """A storage operation failed."""

    status_code = 500
