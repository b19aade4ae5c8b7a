import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from formfit.core import config
from formfit.core.metrics import request_metrics
from formfit.core.request_context import set_request_context
from formfit.deps import get_conversation_engine
from formfit.fsm.engine import Attachment, ConversationEngine, InboundMessage
from formfit.messenger.graph_provider import parse_messenger_webhook

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/webhook")
async def verify_webhook(request: Request):
    qp = request.query_params
    mode = qp.get("hub.mode")
    token = qp.get("hub.verify_token")
    challenge = qp.get("hub.challenge")

    if mode == "subscribe" and config.MESSENGER_VERIFY_TOKEN and token == config.MESSENGER_VERIFY_TOKEN:
        logger.info("webhook verification succeeded")
        return PlainTextResponse(challenge or "")

    logger.warning("webhook verification failed: token mismatch")
    raise HTTPException(status_code=403, detail="Invalid verify token")


def _log_text(text: str, attachments: list[dict]) -> str:
    if text:
        return text
    return "[image]" if attachments else "[empty]"


def _handle_inbound_event(engine: ConversationEngine, event: dict) -> str:
    customer_id = event["customer_id"]
    text = event.get("text", "")
    attachments = event.get("attachments") or []
    set_request_context(customer_id=customer_id)

    logger.info(
        "messenger in customer=%s message_id=%s text=%r attachments=%s",
        customer_id,
        event.get("message_id"),
        text,
        len(attachments),
    )

    store = engine.store
    # claimed before handling and kept on failure: a half-done turn may already have replied
    if not store.mark_processed(event.get("message_id")):
        logger.info("duplicate delivery ignored message_id=%s", event.get("message_id"))
        request_metrics.increment("webhook.duplicates")
        return "duplicate"

    store.save_message(customer_id, "in", _log_text(text, attachments))
    request_metrics.increment("webhook.messages")

    message = InboundMessage(
        text=text,
        attachments=[Attachment(type=att.get("type", ""), url=att.get("url", "")) for att in attachments],
    )
    stage = engine.handle_incoming(customer_id, message)
    return stage.value


@router.post("/webhook")
def receive_webhook(payload: dict, engine: ConversationEngine = Depends(get_conversation_engine)):
    if payload.get("object") != "page":
        return {"status": "ignored"}

    results = []
    # one event at a time, each transition fully written before the next
    for event in parse_messenger_webhook(payload):
        try:
            results.append(_handle_inbound_event(engine, event))
        except Exception:
            logger.exception("failed to process messenger event customer=%s", event.get("customer_id"))
            engine.store.db.rollback()
            request_metrics.increment("webhook.errors")
            results.append("error")

    return {"status": "ok", "processed": results}
