import json

import httpx
import pytest

from formfit.core.errors import VendorApiError
from formfit.integrations.craftcloud import (
    CraftcloudClient,
    PollPolicy,
    ShippingAddress,
    VendorQuote,
    build_quotes,
    select_best_quote,
)
from tests.fixtures_data import VENDOR_PRICE_RESPONSE

BASE_URL = "https://craftcloud.test/v5"


def _quote(quote_id, total):
    return VendorQuote(quote_id=quote_id, vendor_id="v", price=total, shipping=0, total_price=total)


def _client(handler, sleeps, **kwargs):
    return CraftcloudClient(
        kwargs.pop("api_key", "cc-key"),
        base_url=BASE_URL,
        email="orders@example.com",
        poll_policy=PollPolicy(interval_seconds=2, max_attempts=kwargs.pop("max_attempts", 5)),
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
    )


def test_select_best_quote_picks_lowest_total_regardless_of_order():
    quotes = [_quote("q40", 40), _quote("q25", 25), _quote("q60", 60)]

    assert select_best_quote(quotes).quote_id == "q25"
    assert select_best_quote(list(reversed(quotes))).quote_id == "q25"
    assert select_best_quote([]) is None


def test_build_quotes_adds_vendor_shipping_to_price():
    quotes = build_quotes(VENDOR_PRICE_RESPONSE)

    assert [q.total_price for q in quotes] == [25.0, 40.0, 60.0]
    assert quotes[0].shipping_id == "ship-b"
    assert quotes[0].lead_days == 5
    assert quotes[2].lead_days == 3


def test_quote_uploads_polls_and_returns_cheapest(tmp_path):
    model = tmp_path / "part.stl"
    model.write_bytes(b"solid part\nendsolid part\n")
    model_polls = iter([206, 200])
    price_polls = iter([{"allComplete": False}, VENDOR_PRICE_RESPONSE])
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        seen.append((request.method, path))
        assert request.headers["Authorization"] == "Bearer cc-key"
        if request.method == "POST" and path.endswith("/model"):
            return httpx.Response(200, json=[{"modelId": "m-1"}])
        if request.method == "GET" and path.endswith("/model/m-1"):
            return httpx.Response(next(model_polls), json={})
        if request.method == "POST" and path.endswith("/price"):
            body = json.loads(request.content)
            assert body["models"] == [{"modelId": "m-1", "quantity": 1, "scale": 1.0}]
            return httpx.Response(200, json={"priceId": "p-1"})
        if request.method == "GET" and path.endswith("/price/p-1"):
            return httpx.Response(200, json=next(price_polls))
        return httpx.Response(404)

    sleeps = []
    result = _client(handler, sleeps).quote(str(model), "PETG")

    assert result.model_id == "m-1"
    assert result.best_quote.quote_id == "q-b"
    assert result.best_quote.total_price == 25.0
    assert len(result.all_quotes) == 3
    assert sleeps == [2, 2]
    assert seen[0] == ("POST", "/v5/model")


def test_quote_times_out_when_model_never_finishes_parsing(tmp_path):
    model = tmp_path / "part.stl"
    model.write_bytes(b"solid")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json=[{"modelId": "m-1"}])
        return httpx.Response(206, json={})

    sleeps = []
    with pytest.raises(VendorApiError, match="Model parsing timed out"):
        _client(handler, sleeps, max_attempts=3).quote(str(model), "PLA")

    assert sleeps == [2, 2]


def test_quote_surfaces_vendor_http_errors(tmp_path):
    model = tmp_path / "part.stl"
    model.write_bytes(b"solid")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="upstream down")

    with pytest.raises(VendorApiError, match="Model upload failed with 500"):
        _client(handler, []).quote(str(model), "PLA")


def test_calls_without_api_key_are_rejected(tmp_path):
    client = _client(lambda request: httpx.Response(200), [], api_key="")

    assert client.can_place_orders is False
    with pytest.raises(VendorApiError, match="CRAFTCLOUD_API_KEY"):
        client.get_order_status("o-1")


def test_place_order_creates_cart_then_order():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append((request.url.path, body))
        if request.url.path.endswith("/cart"):
            return httpx.Response(200, json={"cartId": "cart-1"})
        if request.url.path.endswith("/order"):
            return httpx.Response(200, json={"orderId": "o-77"})
        return httpx.Response(404)

    address = ShippingAddress(name="Sam Rivera", line1="1 Elm St", city="Austin", state="TX", zip="78701")
    placed = _client(handler, []).place_order("q-b", address, "FFC-12345", "ship-b")

    assert placed.order_id == "o-77"
    cart_path, cart_body = requests[0]
    assert cart_path == "/v5/cart"
    assert cart_body["shippingIds"] == ["ship-b"]
    assert cart_body["customerReference"] == "FFC-12345"
    order_body = requests[1][1]
    assert order_body["cartId"] == "cart-1"
    assert order_body["user"]["emailAddress"] == "orders@example.com"
    assert order_body["user"]["shipping"]["firstName"] == "Sam"
    assert order_body["user"]["shipping"]["lastName"] == "Rivera"


def test_get_order_status_reads_first_vendor_entry():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v5/order/o-77/status"
        return httpx.Response(
            200,
            json={
                "status": [{"status": "shipped", "trackingUrl": "https://track.test/1"}],
                "estDeliveryTime": "2026-11-02",
            },
        )

    status = _client(handler, []).get_order_status("o-77")

    assert status.status == "shipped"
    assert status.tracking == "https://track.test/1"
    assert status.estimated_delivery == "2026-11-02"
