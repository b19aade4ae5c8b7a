from __future__ import annotations

import logging
import uuid

from formfit.messenger.base import MessengerProvider, SendResult

logger = logging.getLogger(__name__)


class MockMessengerProvider(MessengerProvider):
    """Used when no page token is configured: logs instead of delivering."""

    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []

    def send_text(self, *, customer_id: str, text: str) -> SendResult:
        self.sent.append({"customer_id": customer_id, "text": text})
        logger.info("mock messenger out to=%s text=%r", customer_id, text[:80])
        return SendResult(status="sent", provider_message_id=f"mock-{uuid.uuid4().hex[:10]}")
