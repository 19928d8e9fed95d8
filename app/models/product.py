# app/models/product.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Category(SQLModel, table=True):
    """
    Catalog category. Only referenced by products here; its own CRUD
    lives in the surrounding admin application.
    """

    __tablename__ = "categories"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    name: str = Field(max_length=100)
    slug: str = Field(max_length=255, unique=True, index=True)
    is_active: bool = Field(default=True)
    sort_order: int = Field(default=0)


class Product(SQLModel, table=True):
    """
    Product catalog entry.

    Purchasable units are ProductVariant rows (color x size); the product
    itself carries no stock. Products are never hard-deleted, they are
    deactivated via is_active.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=255,
        index=True,
        description="Display name of the product",
    )

    slug: str = Field(
        max_length=255,
        unique=True,
        index=True,
        description="URL-friendly identifier (unique)",
    )

    description: str | None = Field(
        default=None,
        description="Optional long description / HTML",
    )

    price: float = Field(
        gt=0,
        description="Base unit price",
    )

    sale_price: float | None = Field(
        default=None,
        description="Optional discounted price",
    )

    is_active: bool = Field(
        default=True,
        index=True,
        description="Whether this product is visible on the storefront",
    )

    is_featured: bool = Field(default=False)

    # At most MAX_BEST_SELLING active products may carry this flag
    is_best_selling: bool = Field(default=False, index=True)

    category_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="categories.id",
        index=True,
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last edit timestamp (UTC)",
    )


class ProductImage(SQLModel, table=True):
    """
    Image attached to a product, usually to one of its colors.

    sort_order is the slot (0-4) within the color. Legacy images uploaded
    before per-color imaging have color_id = None.
    """

    __tablename__ = "product_images"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
        description="FK to products.id",
    )

    color_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="product_colors.id",
        index=True,
        description="FK to product_colors.id (None for legacy images)",
    )

    image_url: str = Field(
        description="Public URL stored in Supabase Storage",
    )

    sort_order: int = Field(
        default=0,
        ge=0,
        description="Slot index within the color",
    )

    is_primary: bool = Field(
        default=False,
        description="Slot 0 of the first color; exactly one per product",
    )
