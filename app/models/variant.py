# app/models/variant.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class ProductColor(SQLModel, table=True):
    """
    A color offered for one product. sort_order 0 is the primary color.
    """

    __tablename__ = "product_colors"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    name: str = Field(max_length=100)

    hex_value: str = Field(
        max_length=7,
        description="Display color, e.g. #1A1A1A",
    )

    sort_order: int = Field(default=0, ge=0)


class ProductSize(SQLModel, table=True):
    """
    A size selected for one product (sizes are per product, not global).
    """

    __tablename__ = "product_sizes"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    label: str = Field(max_length=10)

    sort_order: int = Field(default=0, ge=0)


class ProductVariant(SQLModel, table=True):
    """
    Purchasable (color, size) combination of a product.

    One row per (product, color, size); the reconciler checks this before
    writing, the unique constraint is only a backstop.
    """

    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint(
            "product_id", "color_id", "size_id", name="uq_variant_product_color_size"
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(foreign_key="products.id", index=True)
    color_id: uuid.UUID = Field(foreign_key="product_colors.id", index=True)
    size_id: uuid.UUID = Field(foreign_key="product_sizes.id", index=True)

    sku: str = Field(max_length=255, index=True)

    stock_quantity: int = Field(
        default=0,
        ge=0,
        description="Units currently on hand",
    )

    low_stock_threshold: int = Field(
        default=5,
        ge=0,
        description="At or below this quantity the variant is 'low'",
    )

    is_active: bool = Field(default=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
