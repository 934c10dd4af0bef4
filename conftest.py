import json
import uuid
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from dependency_injector import providers
from fakeredis import aioredis
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reconciler.application.container import ApplicationContainer
from reconciler.core.models import (
    GatewayPayment,
    Order,
    OrderStatusEnum,
    PaymentStatusEnum,
    WebhookEvent,
)
from reconciler.infrastructure.db_schema import metadata
from reconciler.infrastructure.event_store import RedisEventStore
from reconciler.infrastructure.repositories import OrderRepository
from reconciler.infrastructure.unit_of_work import UnitOfWork
from reconciler.presentation import api

CONFIG_PATH = Path(__file__).parent / "reconciler" / "config.yaml"


@pytest_asyncio.fixture()
async def fake_redis():
    redis = aioredis.FakeRedis(decode_responses=True)
    await redis.flushall()
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture()
def container(tmp_path: Path, fake_redis) -> ApplicationContainer:
    container = ApplicationContainer()
    container.config.from_yaml(str(CONFIG_PATH), required=True)
    container.config.infrastructure.db.dsn.from_value(
        f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}"
    )
    container.infrastructure_container.redis_client.override(
        providers.Object(fake_redis)
    )
    return container


@pytest.fixture()
def session_factory(
    container: ApplicationContainer,
) -> async_sessionmaker[AsyncSession]:
    return container.infrastructure_container.session_factory()


@pytest_asyncio.fixture()
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def unit_of_work(container: ApplicationContainer) -> UnitOfWork:
    return container.infrastructure_container.unit_of_work()


@pytest.fixture()
def event_store(container: ApplicationContainer) -> RedisEventStore:
    return container.infrastructure_container.event_store()


@pytest_asyncio.fixture(autouse=True)
async def setup_database(container: ApplicationContainer):
    engine = container.infrastructure_container.async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
def fast_api_app(container: ApplicationContainer):
    app = FastAPI()
    app.include_router(api.router)
    container.wire(modules=[api])
    app.container = container
    yield app
    container.unwire()


@pytest_asyncio.fixture()
async def test_async_client(fast_api_app) -> AsyncClient:
    async with AsyncClient(
        transport=ASGITransport(app=fast_api_app),
        base_url="http://test.com",
    ) as client:
        client.app = fast_api_app
        yield client


@pytest.fixture
def order_factory(unit_of_work: UnitOfWork):
    async def _create_order(**kwargs) -> Order:
        defaults = {
            "order_number": f"ORD-{uuid.uuid4().hex[:8]}",
            "external_payment_id": f"pay_{uuid.uuid4().hex[:12]}",
            "payment_status": PaymentStatusEnum.PENDING,
            "status": OrderStatusEnum.AWAITING_PAYMENT,
        }
        defaults.update(kwargs)
        async with unit_of_work() as uow:
            order = await uow.orders.create(OrderRepository.CreateDTO(**defaults))
            await uow.commit()
        return order

    return _create_order


@pytest.fixture
def webhook_payload_factory():
    def _create_payload(payment_id: str, status: str, **kwargs) -> str:
        payment = {"id": payment_id, "status": status, "value": 49.9}
        payment.update(kwargs.pop("payment", {}))
        data = {
            "id": kwargs.pop("id", f"webhook:{payment_id}:{uuid.uuid4().hex[:6]}"),
            "event": kwargs.pop("event", "PAYMENT_UPDATED"),
            "payment": payment,
            "receivedAt": kwargs.pop(
                "receivedAt", datetime.now(timezone.utc).isoformat()
            ),
        }
        data.update(kwargs)
        return json.dumps(data)

    return _create_payload


@pytest.fixture
def webhook_event_factory():
    def _create_event(payment_id: str, status: str, **kwargs) -> WebhookEvent:
        defaults = {
            "event_id": f"webhook:{payment_id}:{uuid.uuid4().hex[:6]}",
            "event_kind": "PAYMENT_UPDATED",
            "payment": GatewayPayment(id=payment_id, status=status),
            "received_at": datetime.now(timezone.utc),
        }
        defaults.update(kwargs)
        return WebhookEvent(**defaults)

    return _create_event
