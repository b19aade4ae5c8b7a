from sqlalchemy import Column, DateTime, String, func

from formfit.core.database import Base


class ConversationState(Base):
    __tablename__ = "conversation_state"

    customer_id = Column(String, primary_key=True)
    stage = Column(String, default="NEW", nullable=False)

    # order being built in the current quoting cycle ("" when none)
    pending_order_id = Column(String, default="", nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
