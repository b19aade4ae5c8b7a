"""Reusable payloads for the backend test scenarios."""

CUSTOMER_ID = "psid-1001"
OTHER_CUSTOMER_ID = "psid-2002"

PHOTO_URL = "https://cdn.example.com/attachments/tools.jpg"
DOWNLOADED_PHOTO_PATH = "uploads/psid-1001_1700000000000.jpg"

DETAILS_REPLY = "PETG, red, small"

# SELF / small / PETG: 35 * 1.2 + 8 shipping
SELF_SMALL_PETG_TOTAL = 50.0
# CLOUD / medium: sell 110, vendor cost 45
CLOUD_MEDIUM_TOTAL = 110.0
CLOUD_MEDIUM_COST = 45.0

VENDOR_PRICE_RESPONSE = {
    "allComplete": True,
    "quotes": [
        {"quoteId": "q-a", "vendorId": "vendor-a", "price": 35.0, "productionTimeSlow": 7},
        {"quoteId": "q-b", "vendorId": "vendor-b", "price": 20.0, "productionTimeSlow": 5},
        {"quoteId": "q-c", "vendorId": "vendor-c", "price": 50.0, "productionTimeFast": 3},
    ],
    "shippings": [
        {"vendorId": "vendor-a", "price": 5.0, "shippingId": "ship-a"},
        {"vendorId": "vendor-b", "price": 5.0, "shippingId": "ship-b"},
        {"vendorId": "vendor-c", "price": 10.0, "shippingId": "ship-c"},
    ],
}


def messaging_event(customer_id=CUSTOMER_ID, *, mid="mid.1", text=None, image_url=None, is_echo=False):
    message = {"mid": mid}
    if text is not None:
        message["text"] = text
    if image_url is not None:
        message["attachments"] = [{"type": "image", "payload": {"url": image_url}}]
    if is_echo:
        message["is_echo"] = True
    return {
        "sender": {"id": customer_id},
        "recipient": {"id": "page-1"},
        "timestamp": 1700000000000,
        "message": message,
    }


def page_payload(*events):
    return {"object": "page", "entry": [{"id": "page-1", "time": 1700000000000, "messaging": list(events)}]}
