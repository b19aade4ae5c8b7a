from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class SendResult:
    status: str  # "sent" / "failed"
    provider_message_id: str | None = None
    error: str | None = None
    response_payload: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.status == "sent"


class MessengerProvider(Protocol):
    def send_text(self, *, customer_id: str, text: str) -> SendResult:
        ...


class Messenger(Protocol):
    """What the conversation engine needs from the transport."""

    def send_text(self, customer_id: str, text: str) -> bool:
        ...

    def download_attachment(self, url: str, customer_id: str) -> str:
        ...


REDACTED_KEYS = frozenset({"access_token", "verify_token", "app_secret", "authorization", "token"})


def _redact(secret: Any) -> str:
    text = "" if secret is None else str(secret)
    return f"****{text[-4:]}" if len(text) > 4 else "****"


def sanitize_payload(payload: Any) -> Any:
    """Copy of a Graph API body safe to keep in logs: secrets keep their last 4 chars."""
    if isinstance(payload, list):
        return [sanitize_payload(item) for item in payload]
    if not isinstance(payload, dict):
        return payload
    return {
        key: _redact(value) if key.lower() in REDACTED_KEYS else sanitize_payload(value)
        for key, value in payload.items()
    }
