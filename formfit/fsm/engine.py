from __future__ import annotations

import logging
from dataclasses import dataclass, field

from formfit.fsm.details import parse_details
from formfit.fsm.states import ConversationStage, Fulfillment, OrderStatus
from formfit.messenger.base import Messenger
from formfit.models.order import Order
from formfit.services.pricing import calculate_quote, format_proposal
from formfit.services.record_store import RecordStore

logger = logging.getLogger(__name__)

WELCOME_TEXT = (
    "Hey! 👋 Welcome to FormFit Custom. I'm Mango, your order assistant. "
    "Send me a photo of your tools laid out flat on a piece of paper and we'll get you a custom quote!"
)
ASK_DETAILS_TEXT = (
    "Got your photo! 🔧 A couple quick questions:\n"
    "1️⃣ What material do you want? (PLA / PETG / PLA+)\n"
    "2️⃣ What color?\n"
    "3️⃣ Rough size — Small (1-2 tools), Medium (5-10 tools), or Full Drawer?"
)
RESEND_DETAILS_TEXT = "Please reply with your material, color, and size preferences."
ASK_FULFILLMENT_TEXT = (
    "Perfect. Do you want us to print it, or would you like a cloud-printed option shipped directly to you?\n"
    "(Reply: SELF or CLOUD)"
)
CONFIRMED_TEXT = "You're confirmed! 🎉 We'll be in touch when your order ships. Order ID: {order_id}"
CANCELLED_TEXT = "No worries — order cancelled. Send a new photo anytime to start a fresh quote!"
REPROMPT_CONFIRM_TEXT = "Reply YES to confirm your order or NO to cancel."
WELCOME_BACK_TEXT = "Welcome back! 🙌 Send a new photo to start another order."
LOST_ORDER_TEXT = "Sorry, I lost track of your order. Send a photo of your tools to start a new quote!"

CONFIRM_KEYWORDS = ("YES", "CONFIRM", "APPROVE")
CANCEL_KEYWORDS = ("NO", "CANCEL")


@dataclass
class Attachment:
    type: str
    url: str = ""


@dataclass
class InboundMessage:
    text: str = ""
    attachments: list[Attachment] = field(default_factory=list)

    @property
    def image(self) -> Attachment | None:
        return next((att for att in self.attachments if att.type == "image"), None)


class ConversationEngine:
    """Per-customer quoting conversation.

    NEW -> PHOTO_RECEIVED -> DETAILS_RECEIVED -> QUOTE_SENT -> CONFIRMED, where a
    cancel at QUOTE_SENT and a text-only message at CONFIRMED go back to NEW and a
    photo at CONFIRMED starts the next order.
    """

    def __init__(self, store: RecordStore, messenger: Messenger) -> None:
        self.store = store
        self.messenger = messenger

    def handle_incoming(self, customer_id: str, message: InboundMessage) -> ConversationStage:
        state = self.store.get_state(customer_id)
        text = (message.text or "").strip()
        has_image = message.image is not None
        stage = ConversationStage.parse(state.stage)

        logger.info(
            "conversation in customer=%s stage=%s text=%r has_image=%s",
            customer_id,
            state.stage,
            text,
            has_image,
        )

        if stage is None:
            logger.warning("unknown stage %r for customer=%s, resetting", state.stage, customer_id)
            self.store.set_state(customer_id, ConversationStage.NEW, "")
            return self._handle_new(customer_id, message)

        if stage is ConversationStage.NEW:
            return self._handle_new(customer_id, message)
        elif stage is ConversationStage.PHOTO_RECEIVED:
            return self._handle_photo_received(customer_id, text, state.pending_order_id)
        elif stage is ConversationStage.DETAILS_RECEIVED:
            return self._handle_details_received(customer_id, text, state.pending_order_id)
        elif stage is ConversationStage.QUOTE_SENT:
            return self._handle_quote_sent(customer_id, text, state.pending_order_id)
        elif stage is ConversationStage.CONFIRMED:
            return self._handle_confirmed(customer_id, message)
        raise AssertionError(f"unhandled stage {stage}")

    # --- stage handlers ---

    def _handle_new(self, customer_id: str, message: InboundMessage) -> ConversationStage:
        if message.image is not None:
            return self._process_photo(customer_id, message)
        self._reply(customer_id, WELCOME_TEXT)
        return ConversationStage.NEW

    def _process_photo(self, customer_id: str, message: InboundMessage) -> ConversationStage:
        image = message.image
        photo_path = ""
        if image is not None and image.url:
            photo_path = self.messenger.download_attachment(image.url, customer_id)

        order = self.store.create_order(customer_id=customer_id, photo_path=photo_path)
        self.store.set_state(customer_id, ConversationStage.PHOTO_RECEIVED, order.order_id)
        self._reply(customer_id, ASK_DETAILS_TEXT)
        return ConversationStage.PHOTO_RECEIVED

    def _handle_photo_received(self, customer_id: str, text: str, pending_order_id: str) -> ConversationStage:
        if not text:
            self._reply(customer_id, RESEND_DETAILS_TEXT)
            return ConversationStage.PHOTO_RECEIVED

        order = self._pending_order(customer_id, pending_order_id)
        if order is None:
            return self._restart(customer_id)

        parsed = parse_details(text)
        if parsed.is_ambiguous:
            logger.info("details defaulted for order=%s fields=%s", order.order_id, ",".join(parsed.defaulted))
        self.store.update_order(order.order_id, material=parsed.material, color=parsed.color, size=parsed.size)
        self.store.set_state(customer_id, ConversationStage.DETAILS_RECEIVED, order.order_id)
        self._reply(customer_id, ASK_FULFILLMENT_TEXT)
        return ConversationStage.DETAILS_RECEIVED

    def _handle_details_received(self, customer_id: str, text: str, pending_order_id: str) -> ConversationStage:
        order = self._pending_order(customer_id, pending_order_id)
        if order is None:
            return self._restart(customer_id)

        fulfillment = Fulfillment.CLOUD if Fulfillment.CLOUD.value in text.upper() else Fulfillment.SELF
        quote = calculate_quote(
            size=order.size,
            material=order.material,
            fulfillment=fulfillment,
            rush=bool(order.rush),
            cad_design=bool(order.cad_design),
        )
        order = self.store.update_order(
            order.order_id,
            fulfillment_type=fulfillment,
            **quote.to_order_fields(),
        )
        self.store.set_state(customer_id, ConversationStage.QUOTE_SENT, order.order_id)
        self._reply(customer_id, format_proposal(order, quote))
        return ConversationStage.QUOTE_SENT

    def _handle_quote_sent(self, customer_id: str, text: str, pending_order_id: str) -> ConversationStage:
        upper = text.upper()

        if any(word in upper for word in CONFIRM_KEYWORDS):
            order = self._pending_order(customer_id, pending_order_id)
            if order is None:
                return self._restart(customer_id)
            self.store.update_order(order.order_id, status=OrderStatus.CONFIRMED)
            self.store.set_state(customer_id, ConversationStage.CONFIRMED, order.order_id)
            self._reply(customer_id, CONFIRMED_TEXT.format(order_id=order.order_id))
            return ConversationStage.CONFIRMED

        if any(word in upper for word in CANCEL_KEYWORDS):
            order = self._pending_order(customer_id, pending_order_id)
            if order is not None:
                self.store.update_order(order.order_id, status=OrderStatus.CANCELLED)
            self.store.set_state(customer_id, ConversationStage.NEW, "")
            self._reply(customer_id, CANCELLED_TEXT)
            return ConversationStage.NEW

        self._reply(customer_id, REPROMPT_CONFIRM_TEXT)
        return ConversationStage.QUOTE_SENT

    def _handle_confirmed(self, customer_id: str, message: InboundMessage) -> ConversationStage:
        if message.image is not None:
            return self._process_photo(customer_id, message)
        self.store.set_state(customer_id, ConversationStage.NEW, "")
        self._reply(customer_id, WELCOME_BACK_TEXT)
        return ConversationStage.NEW

    # --- helpers ---

    def _pending_order(self, customer_id: str, pending_order_id: str) -> Order | None:
        order = self.store.get_order(pending_order_id)
        if order is not None:
            return order
        # the state row lost its reference; only an order still being quoted may stand in
        order = self.store.get_active_order(customer_id)
        if order is None or order.status != OrderStatus.NEW.value:
            return None
        logger.warning(
            "pending order %r missing for customer=%s, using active order %s",
            pending_order_id,
            customer_id,
            order.order_id,
        )
        return order

    def _restart(self, customer_id: str) -> ConversationStage:
        logger.warning("no order to continue for customer=%s, restarting conversation", customer_id)
        self.store.set_state(customer_id, ConversationStage.NEW, "")
        self._reply(customer_id, LOST_ORDER_TEXT)
        return ConversationStage.NEW

    def _reply(self, customer_id: str, text: str) -> None:
        self.messenger.send_text(customer_id, text)
        self.store.save_message(customer_id, "out", text)
