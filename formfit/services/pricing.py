from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from formfit.fsm.states import Fulfillment

SELF_BASE = {
    "small": 35.0,
    "medium": 75.0,
    "full drawer": 150.0,
}

MATERIAL_MULT = {
    "pla": 1.0,
    "pla+": 1.1,
    "petg": 1.2,
}

SELF_SHIPPING = {
    "small": 8.0,
    "medium": 8.0,
    "full drawer": 15.0,
}

RUSH_FEE = 25.0
CAD_FEE = 15.0

# what the print vendor charges us
CLOUD_COST = {
    "small": 20.0,
    "medium": 45.0,
    "full drawer": 100.0,
}

# what the customer pays for cloud printing
CLOUD_SELL = {
    "small": 55.0,
    "medium": 110.0,
    "full drawer": 225.0,
}

MATERIAL_COST_RATIO = 0.3


@dataclass(frozen=True)
class Quote:
    base_price: float
    addons_price: float
    shipping: float
    total: float
    vendor_cost: float
    margin: float

    def to_order_fields(self) -> dict[str, Any]:
        return asdict(self)


def _round_cents(value: float) -> float:
    return round(value * 100) / 100


def _addons(rush: bool, cad_design: bool) -> float:
    return (RUSH_FEE if rush else 0.0) + (CAD_FEE if cad_design else 0.0)


def calculate_quote(
    *,
    size: str,
    material: str,
    fulfillment: str | Fulfillment | None,
    rush: bool = False,
    cad_design: bool = False,
) -> Quote:
    size_key = (size or "").strip().lower()
    material_key = (material or "").strip().lower()
    mode = Fulfillment.resolve(fulfillment.value if isinstance(fulfillment, Fulfillment) else fulfillment)
    addons = _addons(rush, cad_design)

    if mode is Fulfillment.CLOUD:
        cost = CLOUD_COST.get(size_key, CLOUD_COST["medium"])
        sell = CLOUD_SELL.get(size_key, CLOUD_SELL["medium"])
        total = sell + addons
        return Quote(
            base_price=sell,
            addons_price=addons,
            shipping=0.0,  # included in the vendor price
            total=total,
            vendor_cost=cost,
            margin=total - cost,
        )

    base = SELF_BASE.get(size_key, SELF_BASE["medium"])
    mult = MATERIAL_MULT.get(material_key, 1.0)
    base_price = _round_cents(base * mult)
    shipping = SELF_SHIPPING.get(size_key, SELF_SHIPPING["medium"])
    total = base_price + addons + shipping
    material_cost = _round_cents(base * MATERIAL_COST_RATIO)
    return Quote(
        base_price=base_price,
        addons_price=addons,
        shipping=shipping,
        total=total,
        vendor_cost=0.0,
        margin=total - material_cost - shipping,
    )


def _money(value: float) -> str:
    return f"${value:.2f}"


def format_proposal(order, quote: Quote) -> str:
    fulfillment = Fulfillment.resolve(order.fulfillment_type)
    lines = [
        "📋 *FormFit Custom Quote*",
        "",
        f"Size: {order.size}",
        f"Material: {order.material}",
        f"Color: {order.color}",
        f"Fulfillment: {fulfillment.value}",
        "",
        f"Base price: {_money(quote.base_price)}",
    ]
    if quote.addons_price > 0:
        parts = []
        if order.rush:
            parts.append("Rush")
        if order.cad_design:
            parts.append("CAD design")
        lines.append(f"Add-ons ({', '.join(parts)}): {_money(quote.addons_price)}")
    if fulfillment is Fulfillment.CLOUD:
        lines.append("Shipping: included")
        lines.append("(Ships directly to you from our fulfillment partner)")
    else:
        lines.append(f"Shipping: {_money(quote.shipping)}")
    lines.extend(["", f"💰 Total: {_money(quote.total)}", "", "Reply YES to confirm or NO to cancel."])
    return "\n".join(lines)
