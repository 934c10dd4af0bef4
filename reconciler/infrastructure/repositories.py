import uuid
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Row, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reconciler.core.models import (
    Order,
    OrderHistory,
    OrderStatusEnum,
    PaymentStatusEnum,
)
from reconciler.infrastructure.db_schema import order_history_tbl, orders_tbl


class DoesNotExist(Exception):
    pass


def _as_uuid(value: str | uuid.UUID) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


class OrderRepository:
    class CreateDTO(BaseModel):
        order_number: str
        external_payment_id: str | None = None
        payment_status: PaymentStatusEnum = PaymentStatusEnum.PENDING
        status: OrderStatusEnum = OrderStatusEnum.AWAITING_PAYMENT
        paid_at: datetime | None = None
        metadata: dict = {}

    class UpdateDTO(BaseModel):
        payment_status: PaymentStatusEnum
        status: OrderStatusEnum
        paid_at: datetime | None = None
        metadata: dict

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _construct(row: Row | None) -> Order:
        if row is None:
            raise DoesNotExist

        return Order(
            id=str(row._mapping["id"]),
            order_number=row._mapping["order_number"],
            external_payment_id=row._mapping["external_payment_id"],
            payment_status=row._mapping["payment_status"],
            status=row._mapping["status"],
            paid_at=row._mapping["paid_at"],
            metadata=row._mapping["metadata"] or {},
        )

    async def create(self, order: CreateDTO) -> Order:
        order_id = uuid.uuid4()
        stmt = insert(orders_tbl).values(
            {
                "id": order_id,
                "order_number": order.order_number,
                "external_payment_id": order.external_payment_id,
                "payment_status": order.payment_status,
                "status": order.status,
                "paid_at": order.paid_at,
                "metadata": order.metadata,
            }
        )
        await self._session.execute(stmt)

        return await self.get_by_id(order_id)

    async def get_by_id(self, order_id: str | uuid.UUID) -> Order:
        stmt = select(orders_tbl).where(orders_tbl.c.id == _as_uuid(order_id))
        result = await self._session.execute(stmt)

        return self._construct(result.fetchone())

    async def find_by_external_payment_id(self, payment_id: str) -> Order | None:
        stmt = select(orders_tbl).where(orders_tbl.c.external_payment_id == payment_id)
        result = await self._session.execute(stmt)
        row = result.fetchone()

        return None if row is None else self._construct(row)

    async def update(self, order_id: str, fields: UpdateDTO) -> None:
        values = {
            "payment_status": fields.payment_status,
            "status": fields.status,
            "metadata": fields.metadata,
        }
        if fields.paid_at is not None:
            # paid_at is written once and never overwritten
            values["paid_at"] = func.coalesce(orders_tbl.c.paid_at, fields.paid_at)

        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == _as_uuid(order_id))
            .values(values)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise DoesNotExist(f"Order {order_id} not found")


class OrderHistoryRepository:
    class CreateDTO(BaseModel):
        order_id: str
        previous_status: OrderStatusEnum | None
        new_status: OrderStatusEnum
        changed_by_id: str | None = None
        notes: str | None = None
        metadata: dict = {}

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _construct(row: Row | None) -> OrderHistory:
        if row is None:
            raise DoesNotExist

        return OrderHistory(
            id=row._mapping["id"],
            order_id=str(row._mapping["order_id"]),
            previous_status=row._mapping["previous_status"],
            new_status=row._mapping["new_status"],
            changed_by_id=row._mapping["changed_by_id"],
            notes=row._mapping["notes"],
            metadata=row._mapping["metadata"] or {},
            created_at=row._mapping["created_at"],
        )

    async def create(self, record: CreateDTO) -> None:
        stmt = insert(order_history_tbl).values(
            {
                "order_id": _as_uuid(record.order_id),
                "previous_status": record.previous_status,
                "new_status": record.new_status,
                "changed_by_id": record.changed_by_id,
                "notes": record.notes,
                "metadata": record.metadata,
            }
        )
        await self._session.execute(stmt)

    async def list_for_order(self, order_id: str) -> list[OrderHistory]:
        stmt = (
            select(order_history_tbl)
            .where(order_history_tbl.c.order_id == _as_uuid(order_id))
            .order_by(order_history_tbl.c.id)
        )
        result = await self._session.execute(stmt)

        return [self._construct(row) for row in result.fetchall()]
