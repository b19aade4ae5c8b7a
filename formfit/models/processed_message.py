from sqlalchemy import Column, DateTime, String, func

from formfit.core.database import Base


class ProcessedMessage(Base):
    """Messenger ``mid`` of an inbound message that already drove the state machine."""

    __tablename__ = "processed_messages"

    message_id = Column(String, primary_key=True)
    processed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
