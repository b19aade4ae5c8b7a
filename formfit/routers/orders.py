import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from formfit.core.errors import InvalidStatusTransition, OrderNotFound, VendorApiError
from formfit.deps import get_pipeline, get_store, get_vendor, require_dashboard_token
from formfit.integrations.craftcloud import PrintVendor
from formfit.models.order import Order
from formfit.services.pipeline import OrderPipeline
from formfit.services.record_store import RecordStore

router = APIRouter(prefix="/api", tags=["orders"], dependencies=[Depends(require_dashboard_token)])
logger = logging.getLogger(__name__)


class StatusUpdate(BaseModel):
    status: str


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _order_to_dict(o: Order) -> Dict[str, Any]:
    return {
        "id": o.id,
        "order_id": o.order_id,
        "customer_id": o.customer_id,
        "name": o.name,
        "status": o.status,
        "photo_path": o.photo_path,
        "material": o.material,
        "color": o.color,
        "size": o.size,
        "fulfillment_type": o.fulfillment_type,
        "rush": bool(o.rush),
        "cad_design": bool(o.cad_design),
        "base_price": o.base_price,
        "addons_price": o.addons_price,
        "shipping": o.shipping,
        "total": o.total,
        "vendor_cost": o.vendor_cost,
        "margin": o.margin,
        "model_path": o.model_path,
        "vendor_quote_id": o.vendor_quote_id,
        "vendor_order_id": o.vendor_order_id,
        "created_at": _iso(o.created_at),
        "updated_at": _iso(o.updated_at),
    }


def _require_order(store: RecordStore, order_id: str) -> Order:
    try:
        return store.require_order(order_id)
    except OrderNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/orders")
def list_orders(store: RecordStore = Depends(get_store)):
    return [_order_to_dict(o) for o in store.list_orders()]


@router.get("/stats")
def order_stats(store: RecordStore = Depends(get_store)):
    stats = store.get_stats()
    return {
        "total": stats.total,
        "pending": stats.pending,
        "revenue": stats.revenue,
        "total_margin": stats.total_margin,
    }


@router.get("/orders/{order_id}/messages")
def order_messages(order_id: str, store: RecordStore = Depends(get_store)):
    order = _require_order(store, order_id)
    return [
        {
            "id": m.id,
            "customer_id": m.customer_id,
            "direction": m.direction,
            "text": m.text,
            "timestamp": _iso(m.timestamp),
        }
        for m in store.list_messages(order.customer_id)
    ]


@router.post("/orders/{order_id}/status")
def update_status(order_id: str, body: StatusUpdate, store: RecordStore = Depends(get_store)):
    _require_order(store, order_id)
    try:
        order = store.set_order_status(order_id, body.status)
    except InvalidStatusTransition as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info("order status set to %s", order.status, extra={"order_id": order_id})
    return {"success": True, "order": _order_to_dict(order)}


@router.post("/orders/{order_id}/run-pipeline")
def run_pipeline(
    order_id: str,
    store: RecordStore = Depends(get_store),
    pipeline: OrderPipeline = Depends(get_pipeline),
):
    _require_order(store, order_id)
    result = pipeline.run(order_id)
    return result.to_dict()


@router.get("/orders/{order_id}/vendor-status")
def vendor_status(
    order_id: str,
    store: RecordStore = Depends(get_store),
    vendor: PrintVendor = Depends(get_vendor),
):
    order = _require_order(store, order_id)
    if not order.vendor_order_id:
        raise HTTPException(status_code=409, detail="No vendor order placed for this order")

    try:
        status = vendor.get_order_status(order.vendor_order_id)
    except VendorApiError as exc:
        logger.warning("vendor status lookup failed: %s", exc, extra={"order_id": order_id})
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return {
        "order_id": order.order_id,
        "vendor_order_id": order.vendor_order_id,
        "status": status.status,
        "tracking": status.tracking,
        "estimated_delivery": status.estimated_delivery,
    }
