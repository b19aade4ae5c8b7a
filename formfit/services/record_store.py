from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from formfit.core.errors import InvalidStatusTransition, OrderNotFound
from formfit.fsm.states import ConversationStage, OrderStatus
from formfit.models.conversation import ConversationState
from formfit.models.message import Message
from formfit.models.order import Order
from formfit.models.processed_message import ProcessedMessage

logger = logging.getLogger(__name__)

ORDER_ID_PREFIX = "FFC"
MAX_ORDER_ID_ATTEMPTS = 20

UPDATABLE_ORDER_FIELDS = {
    "name",
    "status",
    "photo_path",
    "material",
    "color",
    "size",
    "fulfillment_type",
    "rush",
    "cad_design",
    "base_price",
    "addons_price",
    "shipping",
    "total",
    "vendor_cost",
    "margin",
    "model_path",
    "vendor_quote_id",
    "vendor_order_id",
}

PENDING_STATUSES = (OrderStatus.NEW.value, OrderStatus.IN_PROGRESS.value)


def generate_order_id() -> str:
    return f"{ORDER_ID_PREFIX}-{random.randint(10000, 99999)}"


@dataclass(frozen=True)
class OrderStats:
    total: int
    pending: int
    revenue: float
    total_margin: float


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class RecordStore:
    """Orders, the message log and per-customer conversation state.

    Every write commits immediately; no transaction spans more than one record.
    """

    def __init__(self, db: Session, *, id_factory: Callable[[], str] = generate_order_id) -> None:
        self.db = db
        self._id_factory = id_factory

    # --- orders ---

    def _new_order_id(self) -> str:
        for _ in range(MAX_ORDER_ID_ATTEMPTS):
            candidate = self._id_factory()
            if not self.db.query(Order.id).filter(Order.order_id == candidate).first():
                return candidate
        raise RuntimeError("Could not allocate a unique order id")

    def create_order(self, *, customer_id: str, photo_path: str = "", name: str = "") -> Order:
        order = Order(
            order_id=self._new_order_id(),
            customer_id=customer_id,
            name=name or "",
            photo_path=photo_path or "",
            status=OrderStatus.NEW.value,
        )
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        logger.info("order created", extra={"order_id": order.order_id, "customer_id": customer_id})
        return order

    def get_order(self, order_id: str) -> Order | None:
        if not order_id:
            return None
        return self.db.query(Order).filter(Order.order_id == order_id).first()

    def require_order(self, order_id: str) -> Order:
        order = self.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    def get_active_order(self, customer_id: str) -> Order | None:
        return (
            self.db.query(Order)
            .filter(Order.customer_id == customer_id, Order.status != OrderStatus.CANCELLED.value)
            .order_by(desc(Order.created_at), desc(Order.id))
            .first()
        )

    def update_order(self, order_id: str, **fields: Any) -> Order:
        order = self.require_order(order_id)
        changed = False
        for key, value in fields.items():
            if key not in UPDATABLE_ORDER_FIELDS:
                logger.warning("ignoring unknown order field %s", key)
                continue
            if hasattr(value, "value"):
                value = value.value
            setattr(order, key, value)
            changed = True
        if changed:
            order.updated_at = datetime.now(timezone.utc)
            self.db.commit()
            self.db.refresh(order)
        return order

    def set_order_status(self, order_id: str, status: str) -> Order:
        if status not in OrderStatus.values():
            raise InvalidStatusTransition(status)
        return self.update_order(order_id, status=OrderStatus(status))

    def list_orders(self) -> list[Order]:
        return self.db.query(Order).order_by(desc(Order.created_at), desc(Order.id)).all()

    # --- messages ---

    def save_message(self, customer_id: str, direction: str, text: str) -> Message:
        message = Message(customer_id=customer_id, direction=direction, text=text or "")
        self.db.add(message)
        self.db.commit()
        return message

    def list_messages(self, customer_id: str) -> list[Message]:
        return (
            self.db.query(Message)
            .filter(Message.customer_id == customer_id)
            .order_by(Message.timestamp.asc(), Message.id.asc())
            .all()
        )

    # --- conversation state ---

    def get_state(self, customer_id: str) -> ConversationState:
        state = self.db.query(ConversationState).filter(ConversationState.customer_id == customer_id).first()
        if state is None:
            state = ConversationState(
                customer_id=customer_id,
                stage=ConversationStage.NEW.value,
                pending_order_id="",
            )
            self.db.add(state)
            self.db.commit()
        return state

    def set_state(self, customer_id: str, stage: ConversationStage, pending_order_id: str | None = "") -> ConversationState:
        state = self.db.query(ConversationState).filter(ConversationState.customer_id == customer_id).first()
        if state is None:
            state = ConversationState(customer_id=customer_id)
            self.db.add(state)
        state.stage = stage.value
        state.pending_order_id = pending_order_id or ""
        state.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        return state

    # --- webhook redelivery ---

    def mark_processed(self, message_id: str | None) -> bool:
        """Returns False when this inbound message id was already handled."""
        if not message_id:
            return True
        if self.db.query(ProcessedMessage).filter_by(message_id=message_id).first():
            return False
        self.db.add(ProcessedMessage(message_id=message_id))
        self.db.commit()
        return True

    # --- stats ---

    def get_stats(self, *, now: datetime | None = None) -> OrderStats:
        now = now or datetime.now(timezone.utc)
        month_start = _month_start(now)

        total = self.db.query(func.count(Order.id)).scalar() or 0
        pending = self.db.query(func.count(Order.id)).filter(Order.status.in_(PENDING_STATUSES)).scalar() or 0
        revenue = (
            self.db.query(func.coalesce(func.sum(Order.total), 0))
            .filter(Order.status == OrderStatus.SHIPPED.value, Order.created_at >= month_start)
            .scalar()
        )
        total_margin = (
            self.db.query(func.coalesce(func.sum(Order.margin), 0))
            .filter(Order.status == OrderStatus.SHIPPED.value)
            .scalar()
        )
        return OrderStats(
            total=int(total),
            pending=int(pending),
            revenue=float(revenue or 0),
            total_margin=float(total_margin or 0),
        )
