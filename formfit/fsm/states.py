from __future__ import annotations

import enum


class ConversationStage(str, enum.Enum):
    NEW = "NEW"
    PHOTO_RECEIVED = "PHOTO_RECEIVED"
    DETAILS_RECEIVED = "DETAILS_RECEIVED"
    QUOTE_SENT = "QUOTE_SENT"
    CONFIRMED = "CONFIRMED"

    @classmethod
    def parse(cls, value: str | None) -> "ConversationStage | None":
        try:
            return cls(value)
        except ValueError:
            return None


class OrderStatus(str, enum.Enum):
    NEW = "new"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"
    ERROR = "error"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class Fulfillment(str, enum.Enum):
    SELF = "SELF"
    CLOUD = "CLOUD"

    @classmethod
    def resolve(cls, value: str | None) -> "Fulfillment":
        normalized = (value or "").strip().upper()
        if normalized == cls.CLOUD.value:
            return cls.CLOUD
        return cls.SELF
