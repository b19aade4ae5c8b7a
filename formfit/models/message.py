from sqlalchemy import Column, DateTime, Index, Integer, String, Text, func

from formfit.core.database import Base


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True)
    customer_id = Column(String, nullable=False, index=True)
    direction = Column(String, nullable=False)  # in / out
    text = Column(Text, default="", nullable=False)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


Index("ix_messages_customer_timestamp", Message.customer_id, Message.timestamp)
