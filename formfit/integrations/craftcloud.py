"""Craftcloud print vendor: upload a model, collect quotes, place and track orders."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Protocol

import httpx

from formfit.core.config import (
    CRAFTCLOUD_API_KEY,
    CRAFTCLOUD_API_URL,
    CRAFTCLOUD_EMAIL,
    VENDOR_POLL_INTERVAL_SECONDS,
    VENDOR_POLL_MAX_ATTEMPTS,
)
from formfit.core.errors import VendorApiError

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"
DEFAULT_COUNTRY = "US"
REQUEST_TIMEOUT_SECONDS = 30.0
UPLOAD_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class PollPolicy:
    interval_seconds: float = VENDOR_POLL_INTERVAL_SECONDS
    max_attempts: int = VENDOR_POLL_MAX_ATTEMPTS


@dataclass
class VendorQuote:
    quote_id: str
    vendor_id: str
    price: float
    shipping: float
    total_price: float
    lead_days: int | None = None
    shipping_id: str | None = None
    currency: str = DEFAULT_CURRENCY


@dataclass
class VendorQuoteResult:
    best_quote: VendorQuote | None
    all_quotes: list[VendorQuote] = field(default_factory=list)
    model_id: str | None = None


@dataclass
class ShippingAddress:
    name: str
    line1: str
    city: str
    state: str
    zip: str
    country: str = DEFAULT_COUNTRY


@dataclass
class VendorOrder:
    order_id: str
    tracking_info: str | None = None
    estimated_delivery: str | None = None


@dataclass
class VendorOrderStatus:
    status: str
    tracking: str | None = None
    estimated_delivery: str | None = None


class PrintVendor(Protocol):
    @property
    def can_place_orders(self) -> bool:
        ...

    def quote(self, model_path: str, material: str, quantity: int = 1) -> VendorQuoteResult:
        ...

    def place_order(
        self,
        quote_id: str,
        shipping_address: ShippingAddress,
        customer_ref: str,
        shipping_id: str | None,
    ) -> VendorOrder:
        ...

    def get_order_status(self, vendor_order_id: str) -> VendorOrderStatus:
        ...


def select_best_quote(quotes: list[VendorQuote]) -> VendorQuote | None:
    """Cheapest total (model price + vendor shipping) wins; input order does not matter."""
    if not quotes:
        return None
    return min(quotes, key=lambda quote: quote.total_price)


def build_quotes(price_data: dict[str, Any]) -> list[VendorQuote]:
    shippings = price_data.get("shippings") or []
    quotes: list[VendorQuote] = []
    for raw in price_data.get("quotes") or []:
        vendor_id = raw.get("vendorId")
        shipping = next((s for s in shippings if s.get("vendorId") == vendor_id), None)
        price = float(raw.get("price") or 0)
        shipping_price = float(shipping.get("price") or 0) if shipping else 0.0
        quotes.append(
            VendorQuote(
                quote_id=str(raw.get("quoteId")),
                vendor_id=str(vendor_id),
                price=price,
                shipping=shipping_price,
                total_price=price + shipping_price,
                lead_days=raw.get("productionTimeSlow") or raw.get("productionTimeFast"),
                shipping_id=shipping.get("shippingId") if shipping else None,
            )
        )
    return sorted(quotes, key=lambda quote: quote.total_price)


def _split_name(name: str) -> tuple[str, str]:
    parts = (name or "FormFit Customer").split(" ")
    first_name = parts[0] or "FormFit"
    last_name = " ".join(parts[1:]) or "Customer"
    return first_name, last_name


class CraftcloudClient(PrintVendor):
    def __init__(
        self,
        api_key: str = CRAFTCLOUD_API_KEY,
        *,
        base_url: str = CRAFTCLOUD_API_URL,
        email: str = CRAFTCLOUD_EMAIL,
        poll_policy: PollPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.email = email
        self.poll_policy = poll_policy or PollPolicy()
        self._transport = transport
        self._sleep = sleep

    @property
    def can_place_orders(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise VendorApiError("CRAFTCLOUD_API_KEY not set")
        return {"Authorization": f"Bearer {self.api_key}"}

    def _client(self, timeout: float = REQUEST_TIMEOUT_SECONDS) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=timeout, transport=self._transport)

    def _json(self, response: httpx.Response, what: str) -> Any:
        if response.status_code >= 400:
            raise VendorApiError(f"{what} failed with {response.status_code}: {response.text[:200]}")
        try:
            return response.json()
        except ValueError as exc:
            raise VendorApiError(f"{what} returned invalid JSON") from exc

    # --- quoting ---

    def quote(self, model_path: str, material: str, quantity: int = 1) -> VendorQuoteResult:
        headers = self._headers()
        path = Path(model_path).resolve()

        with self._client(timeout=UPLOAD_TIMEOUT_SECONDS) as client:
            logger.info("craftcloud upload %s", path)
            with path.open("rb") as fh:
                response = client.post("/model", headers=headers, files={"file": (path.name, fh)}, data={"unit": "mm"})
            models = self._json(response, "Model upload")
            model_id = (models[0] if isinstance(models, list) and models else {}).get("modelId")
            if not model_id:
                raise VendorApiError("Upload returned no modelId")

            self._wait_for_model(client, headers, model_id)

            logger.info("craftcloud quote request material=%s quantity=%s", material, quantity)
            response = client.post(
                "/price",
                headers=headers,
                json={
                    "currency": DEFAULT_CURRENCY,
                    "countryCode": DEFAULT_COUNTRY,
                    "models": [{"modelId": model_id, "quantity": quantity, "scale": 1.0}],
                },
            )
            price_request = self._json(response, "Price request")
            price_id = price_request.get("priceId") or price_request.get("id")
            if not price_id:
                raise VendorApiError("Price request returned no priceId")

            price_data = self._wait_for_quotes(client, headers, price_id)

        quotes = build_quotes(price_data)
        best = select_best_quote(quotes)
        logger.info(
            "craftcloud got %s quotes, best=%s",
            len(quotes),
            f"{best.total_price:.2f}" if best else "n/a",
        )
        return VendorQuoteResult(best_quote=best, all_quotes=quotes, model_id=model_id)

    def _wait_for_model(self, client: httpx.Client, headers: dict[str, str], model_id: str) -> None:
        # 206 while the geometry is still being parsed
        for attempt in range(self.poll_policy.max_attempts):
            response = client.get(f"/model/{model_id}", headers=headers)
            if response.status_code == 200:
                return
            if response.status_code != 206:
                raise VendorApiError(f"Model status failed with {response.status_code}")
            if attempt + 1 < self.poll_policy.max_attempts:
                self._sleep(self.poll_policy.interval_seconds)
        raise VendorApiError("Model parsing timed out")

    def _wait_for_quotes(self, client: httpx.Client, headers: dict[str, str], price_id: str) -> dict[str, Any]:
        for attempt in range(self.poll_policy.max_attempts):
            data = self._json(client.get(f"/price/{price_id}", headers=headers), "Price poll")
            if data.get("allComplete"):
                return data
            if attempt + 1 < self.poll_policy.max_attempts:
                self._sleep(self.poll_policy.interval_seconds)
        raise VendorApiError("Quote polling timed out")

    # --- ordering ---

    def place_order(
        self,
        quote_id: str,
        shipping_address: ShippingAddress,
        customer_ref: str,
        shipping_id: str | None,
    ) -> VendorOrder:
        headers = self._headers()
        with self._client() as client:
            logger.info("craftcloud cart for quote %s", quote_id)
            cart = self._json(
                client.post(
                    "/cart",
                    headers=headers,
                    json={
                        "currency": DEFAULT_CURRENCY,
                        "quotes": [{"id": quote_id, "types": [], "note": ""}],
                        "shippingIds": [shipping_id] if shipping_id else [],
                        "customerReference": customer_ref or "",
                    },
                ),
                "Cart creation",
            )
            cart_id = cart.get("cartId")
            if not cart_id:
                raise VendorApiError("Cart creation returned no cartId")

            first_name, last_name = _split_name(shipping_address.name)
            address = {
                "firstName": first_name,
                "lastName": last_name,
                "address": shipping_address.line1,
                "city": shipping_address.city,
                "stateCode": shipping_address.state,
                "zipCode": shipping_address.zip,
                "countryCode": shipping_address.country or DEFAULT_COUNTRY,
            }
            data = self._json(
                client.post(
                    "/order",
                    headers=headers,
                    json={
                        "cartId": cart_id,
                        "user": {"emailAddress": self.email, "shipping": address, "billing": dict(address)},
                        "appId": "craftcloud",
                    },
                ),
                "Order placement",
            )

        order_id = data.get("orderId") or data.get("orderNumber")
        if not order_id:
            raise VendorApiError("Order placement returned no orderId")
        logger.info("craftcloud order placed %s", order_id)
        return VendorOrder(order_id=str(order_id))

    def get_order_status(self, vendor_order_id: str) -> VendorOrderStatus:
        headers = self._headers()
        with self._client() as client:
            data = self._json(client.get(f"/order/{vendor_order_id}/status", headers=headers), "Order status")

        first_vendor = (data.get("status") or [{}])[0] or {}
        return VendorOrderStatus(
            status=first_vendor.get("status") or "unknown",
            tracking=first_vendor.get("trackingUrl") or first_vendor.get("trackingNumber"),
            estimated_delivery=data.get("estDeliveryTime"),
        )
