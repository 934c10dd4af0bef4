from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatusEnum(StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class OrderStatusEnum(StrEnum):
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PAYMENT_REFUSED = "PAYMENT_REFUSED"
    CANCELLED = "CANCELLED"
    # Fulfillment states, owned by the surrounding application
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"


class GatewayPayment(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    id: str = Field(min_length=1)
    status: str = Field(min_length=1)
    value: Decimal | None = None


class WebhookEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str
    event_kind: str | None = None
    payment: GatewayPayment
    received_at: datetime


class StatusTransition(BaseModel):
    model_config = ConfigDict(frozen=True)

    payment_status: PaymentStatusEnum
    order_status: OrderStatusEnum


class Order(BaseModel):
    id: str
    order_number: str
    external_payment_id: str | None
    payment_status: PaymentStatusEnum
    status: OrderStatusEnum
    paid_at: datetime | None
    metadata: dict


class OrderHistory(BaseModel):
    id: int
    order_id: str
    previous_status: OrderStatusEnum | None
    new_status: OrderStatusEnum
    changed_by_id: str | None
    notes: str | None
    metadata: dict
    created_at: datetime


class SideTableEnum(StrEnum):
    PROCESSED = "processed"
    FAILED = "failed"
    ERRORS = "errors"


class EventOutcome(StrEnum):
    PROCESSED = "PROCESSED"
    UNCHANGED = "UNCHANGED"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    MALFORMED = "MALFORMED"
    MISSING = "MISSING"
    ERROR = "ERROR"
