from __future__ import annotations

import logging
import time
from pathlib import Path

import httpx

from formfit.core.config import MESSENGER_PAGE_ACCESS_TOKEN, UPLOADS_DIR
from formfit.core.errors import TransportFailure
from formfit.core.metrics import request_metrics
from formfit.messenger.base import MessengerProvider
from formfit.messenger.graph_provider import GraphMessengerProvider
from formfit.messenger.mock_provider import MockMessengerProvider

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT_SECONDS = 30.0
ATTACHMENT_EXTENSION = ".jpg"


def default_provider() -> MessengerProvider:
    if MESSENGER_PAGE_ACCESS_TOKEN:
        return GraphMessengerProvider(MESSENGER_PAGE_ACCESS_TOKEN)
    logger.warning("MESSENGER_PAGE_ACCESS_TOKEN not set, replies are only logged")
    return MockMessengerProvider()


class MessengerService:
    """Fire-and-forget transport: failures are logged and reported as False/""."""

    def __init__(
        self,
        provider: MessengerProvider | None = None,
        *,
        uploads_dir: str | Path = UPLOADS_DIR,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.provider = provider or default_provider()
        self.uploads_dir = Path(uploads_dir)
        self._transport = transport

    def send_text(self, customer_id: str, text: str) -> bool:
        try:
            result = self.provider.send_text(customer_id=customer_id, text=text)
            if not result.ok:
                raise TransportFailure(result.error or "send failed")
        except TransportFailure as exc:
            return self._send_failed(customer_id, exc)
        except Exception as exc:
            return self._send_failed(customer_id, TransportFailure(f"{type(exc).__name__}: {exc}"))
        logger.info("messenger out to=%s text=%r", customer_id, text[:80])
        return True

    def _send_failed(self, customer_id: str, failure: TransportFailure) -> bool:
        logger.error("messenger send failed to=%s: %s", customer_id, failure)
        request_metrics.increment("messenger.send_failed")
        return False

    def download_attachment(self, url: str, customer_id: str) -> str:
        """Saves an image attachment under the uploads dir and returns its relative path."""
        filename = f"{customer_id}_{int(time.time() * 1000)}{ATTACHMENT_EXTENSION}"
        target = self.uploads_dir / filename
        try:
            self.uploads_dir.mkdir(parents=True, exist_ok=True)
            with httpx.Client(timeout=DOWNLOAD_TIMEOUT_SECONDS, transport=self._transport, follow_redirects=True) as client:
                with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with target.open("wb") as fh:
                        for chunk in response.iter_bytes():
                            fh.write(chunk)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            logger.error("attachment download failed customer=%s: %s", customer_id, exc)
            target.unlink(missing_ok=True)
            return ""

        logger.info("attachment saved to %s", target)
        return (self.uploads_dir / filename).as_posix()
