from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from formfit.core.config import META_API_VERSION
from formfit.messenger.base import MessengerProvider, SendResult, sanitize_payload

logger = logging.getLogger(__name__)


def parse_messenger_webhook(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Flattens a Messenger ``page`` webhook into one dict per inbound message.

    Echoes of our own messages and events without a sender are skipped.
    """
    if payload.get("object") != "page":
        return []

    events: list[dict[str, Any]] = []
    for entry in payload.get("entry", []) or []:
        for event in entry.get("messaging", []) or []:
            customer_id = (event.get("sender") or {}).get("id")
            if not customer_id:
                continue

            message = event.get("message") or {}
            if message.get("is_echo"):
                continue

            attachments = []
            for attachment in message.get("attachments", []) or []:
                attachments.append(
                    {
                        "type": attachment.get("type") or "",
                        "url": ((attachment.get("payload") or {}).get("url")) or "",
                    }
                )

            events.append(
                {
                    "message_id": message.get("mid"),
                    "customer_id": str(customer_id),
                    "text": message.get("text") or "",
                    "attachments": attachments,
                }
            )
    return events


class GraphMessengerProvider(MessengerProvider):
    TIMEOUT_SECONDS = 20.0

    def __init__(self, page_access_token: str, *, api_version: str = META_API_VERSION, transport: httpx.BaseTransport | None = None) -> None:
        self._token = page_access_token
        self._url = f"https://graph.facebook.com/{api_version}/me/messages"
        self._transport = transport

    def send_text(self, *, customer_id: str, text: str) -> SendResult:
        body = {"recipient": {"id": customer_id}, "message": {"text": text}}
        try:
            with httpx.Client(timeout=self.TIMEOUT_SECONDS, transport=self._transport) as client:
                response = client.post(self._url, params={"access_token": self._token}, json=body)
        except httpx.HTTPError as exc:
            return SendResult(status="failed", error=str(exc))

        body_text = response.text
        if not 200 <= response.status_code < 300:
            return SendResult(status="failed", error=f"Messenger error {response.status_code}: {body_text}")

        try:
            data = response.json()
        except json.JSONDecodeError:
            data = {"raw": body_text}
        return SendResult(
            status="sent",
            provider_message_id=data.get("message_id"),
            response_payload=sanitize_payload(data),
        )
