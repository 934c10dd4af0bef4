import logging

from reconciler.core.models import OrderStatusEnum, PaymentStatusEnum, StatusTransition

logger = logging.getLogger(__name__)

_CONFIRMED = StatusTransition(
    payment_status=PaymentStatusEnum.COMPLETED,
    order_status=OrderStatusEnum.PAYMENT_CONFIRMED,
)

GATEWAY_STATUS_MAP: dict[str, StatusTransition] = {
    "RECEIVED": _CONFIRMED,
    "CONFIRMED": _CONFIRMED,
    "PENDING": StatusTransition(
        payment_status=PaymentStatusEnum.PENDING,
        order_status=OrderStatusEnum.AWAITING_PAYMENT,
    ),
    "OVERDUE": StatusTransition(
        payment_status=PaymentStatusEnum.FAILED,
        order_status=OrderStatusEnum.PAYMENT_REFUSED,
    ),
    "REFUNDED": StatusTransition(
        payment_status=PaymentStatusEnum.REFUNDED,
        order_status=OrderStatusEnum.CANCELLED,
    ),
}


def map_gateway_status(gateway_status: str) -> StatusTransition | None:
    """
    Map a payment gateway status onto the internal (payment status, order status) pair.
    Returns None when the status is unknown and the order must stay as it is.
    """
    transition = (
        GATEWAY_STATUS_MAP.get(gateway_status)
        if isinstance(gateway_status, str)
        else None
    )
    if transition is None:
        logger.warning(f"Unknown payment status: {gateway_status!r}")
    return transition
