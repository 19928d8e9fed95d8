# app/schemas/inventory.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from app.services.stock_status import StockStatus


class StockAdjust(SQLModel):
    """
    Set a variant's on-hand quantity.

    reason is optional; a default is derived from the direction of change.
    """

    model_config = ConfigDict(extra="forbid")

    new_quantity: int = Field(ge=0)
    reason: str | None = Field(default=None, max_length=255)

    @field_validator("reason")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class InventoryLogRead(SQLModel):
    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    variant_id: uuid.UUID
    previous_quantity: int
    new_quantity: int
    delta: int
    reason: str
    created_at: datetime


class InventoryItemRead(SQLModel):
    """
    One row of the inventory screen: a variant with its product and status.
    """

    variant_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    sku: str
    color_name: str
    size_label: str
    stock_quantity: int
    low_stock_threshold: int
    status: StockStatus


class LowStockSummary(SQLModel):
    """Catalog-wide alert counts over active variants."""

    low_stock_count: int
    out_of_stock_count: int
