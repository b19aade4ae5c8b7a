# formfit/deps.py
from __future__ import annotations

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from formfit.core import config
from formfit.core.database import get_db
from formfit.fsm.engine import ConversationEngine
from formfit.integrations.craftcloud import CraftcloudClient, PrintVendor
from formfit.integrations.model_generation import ModelGenerator, build_model_generator
from formfit.messenger.service import MessengerService
from formfit.services.pipeline import OrderPipeline
from formfit.services.record_store import RecordStore


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


def get_messenger() -> MessengerService:
    return MessengerService()


def get_model_generator() -> ModelGenerator:
    return build_model_generator()


def get_vendor() -> PrintVendor:
    return CraftcloudClient()


def get_conversation_engine(
    store: RecordStore = Depends(get_store),
    messenger: MessengerService = Depends(get_messenger),
) -> ConversationEngine:
    return ConversationEngine(store, messenger)


def get_pipeline(
    store: RecordStore = Depends(get_store),
    generator: ModelGenerator = Depends(get_model_generator),
    vendor: PrintVendor = Depends(get_vendor),
) -> OrderPipeline:
    return OrderPipeline(
        store,
        generator,
        vendor,
        output_dir=config.UPLOADS_DIR,
        auto_order=vendor.can_place_orders,
    )


def require_dashboard_token(x_dashboard_token: str | None = Header(default=None)) -> None:
    configured = (config.DASHBOARD_API_TOKEN or "").strip()
    if not configured:
        return
    if (x_dashboard_token or "").strip() != configured:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid dashboard token")
