import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from formfit.core.database import Base
from formfit.fsm import engine as conversation
from formfit.fsm.engine import Attachment, ConversationEngine, InboundMessage
from formfit.fsm.states import ConversationStage, OrderStatus
from formfit.messenger.mock_provider import MockMessengerProvider
from formfit.messenger.service import MessengerService
import formfit.models  # noqa: F401
from formfit.models.conversation import ConversationState
from formfit.services.record_store import RecordStore
from tests.fixtures_data import (
    CLOUD_MEDIUM_COST,
    CLOUD_MEDIUM_TOTAL,
    CUSTOMER_ID,
    DETAILS_REPLY,
    DOWNLOADED_PHOTO_PATH,
    PHOTO_URL,
    SELF_SMALL_PETG_TOTAL,
)


class _FakeMessenger:
    def __init__(self, photo_path=DOWNLOADED_PHOTO_PATH):
        self.sent = []
        self.downloads = []
        self._photo_path = photo_path

    def send_text(self, customer_id, text):
        self.sent.append((customer_id, text))
        return True

    def download_attachment(self, url, customer_id):
        self.downloads.append((url, customer_id))
        return self._photo_path

    @property
    def last_text(self):
        return self.sent[-1][1]


def _build_engine(messenger=None):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    store = RecordStore(db)
    messenger = messenger or _FakeMessenger()
    return ConversationEngine(store, messenger), store, messenger


def _text(value):
    return InboundMessage(text=value)


def _photo():
    return InboundMessage(attachments=[Attachment(type="image", url=PHOTO_URL)])


def _walk_to_quote(engine, fulfillment="SELF"):
    engine.handle_incoming(CUSTOMER_ID, _photo())
    engine.handle_incoming(CUSTOMER_ID, _text(DETAILS_REPLY))
    return engine.handle_incoming(CUSTOMER_ID, _text(fulfillment))


def test_text_at_new_sends_welcome_without_creating_an_order():
    engine, store, messenger = _build_engine()

    stage = engine.handle_incoming(CUSTOMER_ID, _text("hi"))

    assert stage is ConversationStage.NEW
    assert messenger.last_text == conversation.WELCOME_TEXT
    assert store.list_orders() == []
    assert [m.direction for m in store.list_messages(CUSTOMER_ID)] == ["out"]


def test_self_happy_path_reaches_confirmed_with_priced_order():
    engine, store, messenger = _build_engine()

    assert engine.handle_incoming(CUSTOMER_ID, _photo()) is ConversationStage.PHOTO_RECEIVED
    order = store.get_active_order(CUSTOMER_ID)
    assert order.photo_path == DOWNLOADED_PHOTO_PATH
    assert messenger.downloads == [(PHOTO_URL, CUSTOMER_ID)]
    assert messenger.last_text == conversation.ASK_DETAILS_TEXT

    assert engine.handle_incoming(CUSTOMER_ID, _text(DETAILS_REPLY)) is ConversationStage.DETAILS_RECEIVED
    order = store.get_order(order.order_id)
    assert (order.material, order.color, order.size) == ("PETG", "red", "small")
    assert messenger.last_text == conversation.ASK_FULFILLMENT_TEXT

    assert engine.handle_incoming(CUSTOMER_ID, _text("self please")) is ConversationStage.QUOTE_SENT
    order = store.get_order(order.order_id)
    assert order.fulfillment_type == "SELF"
    assert order.total == pytest.approx(SELF_SMALL_PETG_TOTAL)
    assert "💰 Total: $50.00" in messenger.last_text

    assert engine.handle_incoming(CUSTOMER_ID, _text("yes!")) is ConversationStage.CONFIRMED
    order = store.get_order(order.order_id)
    assert order.status == OrderStatus.CONFIRMED.value
    assert messenger.last_text == conversation.CONFIRMED_TEXT.format(order_id=order.order_id)

    state = store.get_state(CUSTOMER_ID)
    assert state.stage == "CONFIRMED"
    assert state.pending_order_id == order.order_id


def test_cloud_choice_prices_from_vendor_tables():
    engine, store, messenger = _build_engine()
    engine.handle_incoming(CUSTOMER_ID, _photo())
    engine.handle_incoming(CUSTOMER_ID, _text("PLA, black, medium"))

    engine.handle_incoming(CUSTOMER_ID, _text("cloud"))

    order = store.get_active_order(CUSTOMER_ID)
    assert order.fulfillment_type == "CLOUD"
    assert order.total == CLOUD_MEDIUM_TOTAL
    assert order.vendor_cost == CLOUD_MEDIUM_COST
    assert order.margin == CLOUD_MEDIUM_TOTAL - CLOUD_MEDIUM_COST
    assert "Shipping: included" in messenger.last_text


def test_cancel_at_quote_sent_cancels_order_and_resets_state():
    engine, store, messenger = _build_engine()
    _walk_to_quote(engine)
    order_id = store.get_state(CUSTOMER_ID).pending_order_id

    stage = engine.handle_incoming(CUSTOMER_ID, _text("no thanks"))

    assert stage is ConversationStage.NEW
    assert store.get_order(order_id).status == OrderStatus.CANCELLED.value
    assert messenger.last_text == conversation.CANCELLED_TEXT
    state = store.get_state(CUSTOMER_ID)
    assert state.stage == "NEW"
    assert state.pending_order_id == ""


def test_unclear_reply_at_quote_sent_reprompts_without_changes():
    engine, store, messenger = _build_engine()
    _walk_to_quote(engine)
    order_id = store.get_state(CUSTOMER_ID).pending_order_id

    stage = engine.handle_incoming(CUSTOMER_ID, _text("hmm maybe later"))

    assert stage is ConversationStage.QUOTE_SENT
    assert messenger.last_text == conversation.REPROMPT_CONFIRM_TEXT
    assert store.get_order(order_id).status == OrderStatus.NEW.value
    assert store.get_state(CUSTOMER_ID).stage == "QUOTE_SENT"


def test_empty_text_at_photo_received_asks_for_details_again():
    engine, store, messenger = _build_engine()
    engine.handle_incoming(CUSTOMER_ID, _photo())

    stage = engine.handle_incoming(CUSTOMER_ID, _text("   "))

    assert stage is ConversationStage.PHOTO_RECEIVED
    assert messenger.last_text == conversation.RESEND_DETAILS_TEXT


def test_text_after_confirmation_welcomes_back_and_resets():
    engine, store, messenger = _build_engine()
    _walk_to_quote(engine)
    engine.handle_incoming(CUSTOMER_ID, _text("YES"))

    stage = engine.handle_incoming(CUSTOMER_ID, _text("thanks!"))

    assert stage is ConversationStage.NEW
    assert messenger.last_text == conversation.WELCOME_BACK_TEXT
    assert store.get_state(CUSTOMER_ID).pending_order_id == ""


def test_photo_after_confirmation_starts_a_second_order():
    engine, store, messenger = _build_engine()
    _walk_to_quote(engine)
    engine.handle_incoming(CUSTOMER_ID, _text("YES"))
    first_order_id = store.get_state(CUSTOMER_ID).pending_order_id

    stage = engine.handle_incoming(CUSTOMER_ID, _photo())

    assert stage is ConversationStage.PHOTO_RECEIVED
    state = store.get_state(CUSTOMER_ID)
    assert state.pending_order_id != first_order_id
    assert len(store.list_orders()) == 2
    assert store.get_order(first_order_id).status == OrderStatus.CONFIRMED.value


def test_unknown_stage_is_reset_and_handled_as_new():
    engine, store, messenger = _build_engine()
    store.db.add(ConversationState(customer_id=CUSTOMER_ID, stage="AWAITING_PAYMENT", pending_order_id=""))
    store.db.commit()

    stage = engine.handle_incoming(CUSTOMER_ID, _text("hello?"))

    assert stage is ConversationStage.NEW
    assert messenger.last_text == conversation.WELCOME_TEXT
    assert store.get_state(CUSTOMER_ID).stage == "NEW"


def test_missing_pending_order_falls_back_to_active_order():
    engine, store, messenger = _build_engine()
    engine.handle_incoming(CUSTOMER_ID, _photo())
    order_id = store.get_state(CUSTOMER_ID).pending_order_id
    store.set_state(CUSTOMER_ID, ConversationStage.PHOTO_RECEIVED, "FFC-00000")

    stage = engine.handle_incoming(CUSTOMER_ID, _text(DETAILS_REPLY))

    assert stage is ConversationStage.DETAILS_RECEIVED
    assert store.get_order(order_id).material == "PETG"
    assert store.get_state(CUSTOMER_ID).pending_order_id == order_id


def test_no_order_to_continue_restarts_the_conversation():
    engine, store, messenger = _build_engine()
    store.set_state(CUSTOMER_ID, ConversationStage.DETAILS_RECEIVED, "FFC-00000")

    stage = engine.handle_incoming(CUSTOMER_ID, _text("SELF"))

    assert stage is ConversationStage.NEW
    assert messenger.last_text == conversation.LOST_ORDER_TEXT
    assert store.list_orders() == []


def test_cloud_printing_reply_quotes_and_persists_the_order():
    engine, store, messenger = _build_engine()
    engine.handle_incoming(CUSTOMER_ID, _photo())
    engine.handle_incoming(CUSTOMER_ID, _text("PLA, black, medium"))

    stage = engine.handle_incoming(CUSTOMER_ID, _text("I'll do cloud printing"))

    assert stage is ConversationStage.QUOTE_SENT
    order = store.get_active_order(CUSTOMER_ID)
    assert order.fulfillment_type == "CLOUD"
    assert order.total == CLOUD_MEDIUM_TOTAL
    assert "Total:" in messenger.last_text
    assert store.get_state(CUSTOMER_ID).stage == "QUOTE_SENT"


def test_casual_decline_at_quote_sent_cancels_the_order():
    engine, store, messenger = _build_engine()
    _walk_to_quote(engine)
    order_id = store.get_state(CUSTOMER_ID).pending_order_id

    stage = engine.handle_incoming(CUSTOMER_ID, _text("nah, no thanks"))

    assert stage is ConversationStage.NEW
    assert store.get_order(order_id).status == OrderStatus.CANCELLED.value
    assert store.get_state(CUSTOMER_ID).pending_order_id == ""


def test_stale_pointer_never_reopens_an_order_past_quoting():
    engine, store, messenger = _build_engine()
    _walk_to_quote(engine)
    engine.handle_incoming(CUSTOMER_ID, _text("YES"))
    order_id = store.get_state(CUSTOMER_ID).pending_order_id
    store.update_order(order_id, status=OrderStatus.SHIPPED)
    store.set_state(CUSTOMER_ID, ConversationStage.QUOTE_SENT, "FFC-00000")

    stage = engine.handle_incoming(CUSTOMER_ID, _text("YES"))

    assert stage is ConversationStage.NEW
    assert messenger.last_text == conversation.LOST_ORDER_TEXT
    assert store.get_order(order_id).status == OrderStatus.SHIPPED.value


class _UnreachableMessenger(_FakeMessenger):
    def send_text(self, customer_id, text):
        self.sent.append((customer_id, text))
        return False


def test_failed_send_still_advances_stage_and_logs_reply():
    engine, store, messenger = _build_engine(_UnreachableMessenger())

    stage = engine.handle_incoming(CUSTOMER_ID, _photo())

    assert stage is ConversationStage.PHOTO_RECEIVED
    assert store.get_state(CUSTOMER_ID).stage == "PHOTO_RECEIVED"
    log = store.list_messages(CUSTOMER_ID)
    assert [(m.direction, m.text) for m in log] == [("out", conversation.ASK_DETAILS_TEXT)]


class _RaisingProvider:
    def send_text(self, *, customer_id, text):
        raise ValueError("provider blew up")


def test_provider_exception_does_not_abort_the_turn(tmp_path):
    engine, store, _ = _build_engine(MessengerService(_RaisingProvider(), uploads_dir=tmp_path))

    stage = engine.handle_incoming(CUSTOMER_ID, _text("hi"))

    assert stage is ConversationStage.NEW
    assert [m.text for m in store.list_messages(CUSTOMER_ID)] == [conversation.WELCOME_TEXT]


def test_photo_with_undownloadable_url_still_creates_an_order(tmp_path):
    engine, store, _ = _build_engine(MessengerService(MockMessengerProvider(), uploads_dir=tmp_path))
    broken = InboundMessage(attachments=[Attachment(type="image", url="http://[::1/x.jpg")])

    stage = engine.handle_incoming(CUSTOMER_ID, broken)

    assert stage is ConversationStage.PHOTO_RECEIVED
    order = store.get_active_order(CUSTOMER_ID)
    assert order is not None
    assert order.photo_path == ""
