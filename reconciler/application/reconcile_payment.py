import logging
from datetime import datetime, timezone

from reconciler.core.models import (
    EventOutcome,
    Order,
    PaymentStatusEnum,
    StatusTransition,
    WebhookEvent,
)
from reconciler.core.status_mapper import map_gateway_status
from reconciler.infrastructure.repositories import (
    OrderHistoryRepository,
    OrderRepository,
)
from reconciler.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

SYSTEM_ORIGIN = "webhook-processor"


class ReconcilePaymentUseCase:
    def __init__(self, unit_of_work: UnitOfWork):
        self._unit_of_work = unit_of_work

    async def __call__(self, event: WebhookEvent) -> EventOutcome:
        """
        Bring the order linked to the event's payment in line with the gateway status.

        The order update and its history row are committed together; nothing is
        written when the order is missing, the status is unknown or the order is
        already in the target state.
        """
        payment = event.payment

        async with self._unit_of_work() as uow:
            order = await uow.orders.find_by_external_payment_id(payment.id)
            if order is None:
                logger.warning(f"Order not found for payment {payment.id}")
                return EventOutcome.ORDER_NOT_FOUND

            logger.info(f"Found order {order.order_number} for payment {payment.id}")

            transition = map_gateway_status(payment.status)
            if transition is None or self._is_current(order, transition):
                logger.info(f"No status change needed for order {order.order_number}")
                return EventOutcome.UNCHANGED

            processed_at = datetime.now(timezone.utc)
            await uow.orders.update(
                order.id,
                OrderRepository.UpdateDTO(
                    payment_status=transition.payment_status,
                    status=transition.order_status,
                    paid_at=self._paid_at(order, transition, processed_at),
                    metadata={
                        **order.metadata,
                        "lastWebhook": {
                            "event": event.event_kind,
                            "payment": payment.model_dump(mode="json"),
                            "receivedAt": event.received_at.isoformat(),
                            "processedAt": processed_at.isoformat(),
                        },
                    },
                ),
            )
            await uow.history.create(
                OrderHistoryRepository.CreateDTO(
                    order_id=order.id,
                    previous_status=order.status,
                    new_status=transition.order_status,
                    changed_by_id=None,
                    notes=(
                        f"Webhook received: {event.event_kind} - "
                        f"Payment status: {payment.status}"
                    ),
                    metadata={
                        "webhook": {
                            "event": event.event_kind,
                            "paymentId": payment.id,
                            "paymentStatus": payment.status,
                            "value": (
                                str(payment.value) if payment.value is not None else None
                            ),
                            "system": SYSTEM_ORIGIN,
                        }
                    },
                )
            )
            await uow.commit()

        logger.info(
            f"Order {order.order_number} updated: "
            f"payment {order.payment_status} -> {transition.payment_status}, "
            f"status {order.status} -> {transition.order_status}"
        )
        return EventOutcome.PROCESSED

    @staticmethod
    def _is_current(order: Order, transition: StatusTransition) -> bool:
        return (
            order.payment_status == transition.payment_status
            and order.status == transition.order_status
        )

    @staticmethod
    def _paid_at(
        order: Order, transition: StatusTransition, now: datetime
    ) -> datetime | None:
        if (
            transition.payment_status == PaymentStatusEnum.COMPLETED
            and order.paid_at is None
        ):
            return now
        return None
