from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, func

from formfit.core.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(16), unique=True, nullable=False, index=True)  # FFC-NNNNN

    customer_id = Column(String, index=True, nullable=False)
    name = Column(String, default="", nullable=False)

    # new / confirmed / in-progress / shipped / cancelled / error
    status = Column(String, default="new", nullable=False)

    photo_path = Column(String, default="", nullable=False)
    material = Column(String, default="", nullable=False)
    color = Column(String, default="", nullable=False)
    size = Column(String, default="", nullable=False)
    fulfillment_type = Column(String, default="", nullable=False)  # SELF / CLOUD
    rush = Column(Boolean, default=False, nullable=False)
    cad_design = Column(Boolean, default=False, nullable=False)

    # dollars
    base_price = Column(Float, default=0, nullable=False)
    addons_price = Column(Float, default=0, nullable=False)
    shipping = Column(Float, default=0, nullable=False)
    total = Column(Float, default=0, nullable=False)
    vendor_cost = Column(Float, default=0, nullable=False)
    margin = Column(Float, default=0, nullable=False)

    # fulfillment artifacts
    model_path = Column(String, default="", nullable=False)
    vendor_quote_id = Column(String, default="", nullable=False)
    vendor_order_id = Column(String, default="", nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
