from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from formfit.core.config import (
    MODEL_GENERATION_ATTEMPTS,
    MODEL_GENERATION_RETRY_DELAY_SECONDS,
    UPLOADS_DIR,
)
from formfit.core.errors import (
    MissingPhoto,
    ModelGenerationFailed,
    NoQuoteAvailable,
    VendorOrderPlacementFailed,
)
from formfit.core.metrics import request_metrics
from formfit.fsm.states import Fulfillment, OrderStatus
from formfit.integrations.craftcloud import PrintVendor, ShippingAddress, VendorQuote
from formfit.integrations.model_generation import ModelGenerator
from formfit.models.order import Order
from formfit.services.record_store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "FormFit Customer"
DEFAULT_MATERIAL = "PLA"


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = MODEL_GENERATION_ATTEMPTS
    delay_seconds: float = MODEL_GENERATION_RETRY_DELAY_SECONDS


@dataclass
class QuoteSummary:
    quote_id: str
    total_price: float
    vendor_id: str
    lead_days: int | None

    @classmethod
    def from_quote(cls, quote: VendorQuote) -> "QuoteSummary":
        return cls(
            quote_id=quote.quote_id,
            total_price=quote.total_price,
            vendor_id=quote.vendor_id,
            lead_days=quote.lead_days,
        )


@dataclass
class PipelineResult:
    success: bool
    order_id: str
    model_path: str | None = None
    vendor_quote: QuoteSummary | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        quote = None
        if self.vendor_quote is not None:
            quote = {
                "quoteId": self.vendor_quote.quote_id,
                "totalPrice": self.vendor_quote.total_price,
                "vendorId": self.vendor_quote.vendor_id,
                "leadDays": self.vendor_quote.lead_days,
            }
        return {
            "success": self.success,
            "orderId": self.order_id,
            "modelFilePath": self.model_path,
            "vendorQuote": quote,
            "error": self.error,
        }


def placeholder_shipping_address(name: str | None) -> ShippingAddress:
    # TODO: collect a real shipping address in the chat flow before auto-ordering
    return ShippingAddress(
        name=name or DEFAULT_CUSTOMER_NAME,
        line1="123 Main St",
        city="Anytown",
        state="TX",
        zip="78701",
        country="US",
    )


class OrderPipeline:
    """Drives a confirmed order: photo -> model file -> self print or vendor order.

    Intermediate artifacts are saved as soon as they exist, so running the
    pipeline again after a failure skips the steps that already succeeded.
    """

    def __init__(
        self,
        store: RecordStore,
        generator: ModelGenerator,
        vendor: PrintVendor,
        *,
        output_dir: str = UPLOADS_DIR,
        retry_policy: RetryPolicy | None = None,
        auto_order: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.generator = generator
        self.vendor = vendor
        self.output_dir = output_dir
        self.retry_policy = retry_policy or RetryPolicy()
        self.auto_order = auto_order
        self._sleep = sleep

    def run(self, order_id: str) -> PipelineResult:
        logger.info("pipeline start", extra={"order_id": order_id})
        try:
            order = self.store.require_order(order_id)
            model_path = self._ensure_model(order)

            fulfillment = Fulfillment.resolve(order.fulfillment_type)
            if not (order.fulfillment_type or "").strip():
                logger.info("no fulfillment type set, defaulting to SELF", extra={"order_id": order_id})

            if fulfillment is Fulfillment.CLOUD:
                result = self._cloud_fulfillment(order, model_path)
            else:
                result = self._self_fulfillment(order, model_path)
        except Exception as exc:
            logger.error("pipeline failed: %s", exc, extra={"order_id": order_id}, exc_info=True)
            self._mark_error(order_id)
            request_metrics.increment("pipeline.failed")
            return PipelineResult(success=False, order_id=order_id, error=str(exc))

        request_metrics.increment("pipeline.succeeded")
        return result

    def _ensure_model(self, order: Order) -> str:
        if order.model_path:
            logger.info("model already exists at %s", order.model_path, extra={"order_id": order.order_id})
            return order.model_path
        if not order.photo_path:
            raise MissingPhoto(order.order_id)

        model_path = self._generate_with_retry(order)
        self.store.update_order(order.order_id, model_path=model_path)
        logger.info("model generated at %s", model_path, extra={"order_id": order.order_id})
        return model_path

    def _generate_with_retry(self, order: Order) -> str:
        attempts = max(1, self.retry_policy.attempts)
        last_error: str | None = None
        for attempt in range(1, attempts + 1):
            logger.info("model generation attempt %s/%s", attempt, attempts, extra={"order_id": order.order_id})
            try:
                result = self.generator.generate(order.photo_path, self.output_dir)
                if result.success and result.model_path:
                    return result.model_path
                last_error = result.error or "model generation returned no file"
            except Exception as exc:
                last_error = str(exc)
            logger.warning("model generation attempt %s failed: %s", attempt, last_error, extra={"order_id": order.order_id})
            if attempt < attempts:
                self._sleep(self.retry_policy.delay_seconds)
        raise ModelGenerationFailed(last_error, attempts)

    def _self_fulfillment(self, order: Order, model_path: str) -> PipelineResult:
        self.store.update_order(order.order_id, status=OrderStatus.IN_PROGRESS)
        logger.info("model ready for self printing at %s", model_path, extra={"order_id": order.order_id})
        return PipelineResult(success=True, order_id=order.order_id, model_path=model_path)

    def _cloud_fulfillment(self, order: Order, model_path: str) -> PipelineResult:
        material = order.material or DEFAULT_MATERIAL
        quote_result = self.vendor.quote(model_path, material)
        best = quote_result.best_quote
        if best is None:
            raise NoQuoteAvailable(material)

        self.store.update_order(order.order_id, vendor_cost=best.total_price, vendor_quote_id=best.quote_id)
        logger.info("vendor quote saved %.2f from %s", best.total_price, best.vendor_id, extra={"order_id": order.order_id})

        if self.auto_order:
            try:
                self._place_vendor_order(order, best)
            except VendorOrderPlacementFailed as exc:
                logger.warning("%s; quote is saved for manual ordering", exc, extra={"order_id": order.order_id})
                request_metrics.increment("vendor.auto_order_failed")
        else:
            logger.info("auto-ordering disabled, set CRAFTCLOUD_API_KEY to enable", extra={"order_id": order.order_id})

        return PipelineResult(
            success=True,
            order_id=order.order_id,
            model_path=model_path,
            vendor_quote=QuoteSummary.from_quote(best),
        )

    def _place_vendor_order(self, order: Order, quote: VendorQuote) -> None:
        try:
            placed = self.vendor.place_order(
                quote.quote_id,
                placeholder_shipping_address(order.name),
                order.order_id,
                quote.shipping_id,
            )
        except Exception as exc:
            raise VendorOrderPlacementFailed(f"Auto-order failed: {exc}") from exc

        self.store.update_order(order.order_id, status=OrderStatus.IN_PROGRESS, vendor_order_id=placed.order_id)
        logger.info("vendor order placed %s", placed.order_id, extra={"order_id": order.order_id})

    def _mark_error(self, order_id: str) -> None:
        try:
            self.store.db.rollback()
            self.store.update_order(order_id, status=OrderStatus.ERROR)
        except Exception:
            logger.warning("could not mark order as error", extra={"order_id": order_id}, exc_info=True)
