# app/models/inventory.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class InventoryLog(SQLModel, table=True):
    """
    Immutable journal entry for one stock mutation of a variant.

    Written only by the inventory ledger; never updated. Rows are removed
    only when their variant is cascade-deleted with its color or size.
    """

    __tablename__ = "inventory_logs"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    variant_id: uuid.UUID = Field(
        foreign_key="product_variants.id",
        index=True,
    )

    previous_quantity: int
    new_quantity: int

    # new_quantity - previous_quantity
    delta: int

    reason: str = Field(max_length=255)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
    )


class Notification(SQLModel, table=True):
    """
    Admin notification feed entry (e.g. a variant dropping to low stock).
    """

    __tablename__ = "notifications"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    # new_order | low_stock | new_review
    type: str = Field(index=True)

    title: str
    message: str
    is_read: bool = Field(default=False, index=True)

    # "metadata" is reserved on SQLModel classes
    meta: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False),
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
