import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Table,
    Text,
    Uuid,
    func,
)

metadata = MetaData()

orders_tbl = Table(
    "orders",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("order_number", Text, nullable=False, unique=True),
    Column("external_payment_id", Text, nullable=True, unique=True, index=True),
    Column("payment_status", Text, nullable=False),
    Column("status", Text, nullable=False),
    Column("paid_at", DateTime(timezone=True), nullable=True),
    Column("metadata", JSON, nullable=False, default=dict),
    Column("created_at", DateTime, server_default=func.now()),
    Column("updated_at", DateTime, server_default=func.now(), onupdate=func.now()),
)

order_history_tbl = Table(
    "order_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=False),
    Column("previous_status", Text, nullable=True),
    Column("new_status", Text, nullable=False),
    Column("changed_by_id", Text, nullable=True),
    Column("notes", Text, nullable=True),
    Column("metadata", JSON, nullable=False, default=dict),
    Column("created_at", DateTime, server_default=func.now()),
)
