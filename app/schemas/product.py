# app/schemas/product.py
import re
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

from app.services.stock_status import StockStatus

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


# ---------- Products ----------


class ProductCreate(SQLModel):
    """
    Payload for creating a product.

    - slug is optional: if omitted, generated from `name`.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=255)
    slug: str | None = None
    description: str | None = None
    price: float = Field(gt=0)
    sale_price: float | None = Field(default=None, gt=0)
    is_active: bool = True
    is_featured: bool = False
    is_best_selling: bool = False
    category_id: uuid.UUID | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("slug cannot be empty if provided")
        return v


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.
    All fields are optional.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=255)
    slug: str | None = None
    description: str | None = None
    price: float | None = Field(default=None, gt=0)
    sale_price: float | None = Field(default=None, gt=0)
    is_active: bool | None = None
    is_featured: bool | None = None
    is_best_selling: bool | None = None
    category_id: uuid.UUID | None = None

    @field_validator("name", "slug")
    @classmethod
    def not_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class ProductRead(SQLModel):
    """
    Product representation for clients.
    """

    id: uuid.UUID
    name: str
    slug: str
    description: str | None = None
    price: float
    sale_price: float | None = None
    is_active: bool
    is_featured: bool
    is_best_selling: bool
    category_id: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime


# ---------- Variant editing ----------


class ColorInput(SQLModel):
    """
    One color row of the variant editor.

    - id:  set for colors that already exist in the database.
    - key: opaque session-local token for colors added in this edit;
           only used to report back the id assigned on insert.
    List position is the color's sort order (0 = primary color).
    """

    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID | None = None
    key: str | None = None
    name: str = Field(max_length=100)
    hex_value: str = "#000000"

    @field_validator("hex_value")
    @classmethod
    def validate_hex(cls, v: str) -> str:
        v = v.strip()
        if not HEX_COLOR_RE.match(v):
            raise ValueError("hex_value must look like #RRGGBB")
        return v.upper()


class SizeInput(SQLModel):
    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID | None = None
    label: str = Field(max_length=10)

    @field_validator("label")
    @classmethod
    def normalize_label(cls, v: str) -> str:
        return v.strip().upper()


class VariantsSubmission(SQLModel):
    """
    Full color/size state submitted by the admin for one product.
    Anything persisted but missing here is removed.
    """

    model_config = ConfigDict(extra="forbid")

    colors: list[ColorInput] = []
    sizes: list[SizeInput] = []


class MatrixPreviewRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    colors: list[str] = []
    sizes: list[str] = []


class MatrixPreview(SQLModel):
    """
    "2 colors × 3 sizes = 6 variants will be generated", plus the SKUs and
    any initials collisions, shown before the admin commits.
    """

    color_count: int
    size_count: int
    variant_count: int
    skus: list[str]
    message: str
    warnings: list[str] = []
    suggested_renames: dict[str, str] = {}


class VariantRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    color_id: uuid.UUID
    size_id: uuid.UUID
    color_name: str
    size_label: str
    sku: str
    stock_quantity: int
    low_stock_threshold: int
    is_active: bool
    status: StockStatus


class ReconcileResult(SQLModel):
    """
    Outcome of saving a variant submission.

    color_ids_by_key maps each session key to the id its color got (new or
    adopted), so the editor can drop its temporary identities.
    """

    color_ids_by_key: dict[str, uuid.UUID] = {}
    created_color_ids: list[uuid.UUID] = []
    updated_color_ids: list[uuid.UUID] = []
    deleted_color_ids: list[uuid.UUID] = []
    created_size_ids: list[uuid.UUID] = []
    deleted_size_ids: list[uuid.UUID] = []
    created_skus: list[str] = []
    deleted_variant_count: int = 0
    variants: list[VariantRead] = []


# ---------- Images ----------


class ProductImageRead(SQLModel):
    """
    Read model for product images.
    """

    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    product_id: uuid.UUID
    color_id: uuid.UUID | None
    image_url: str
    sort_order: int
    is_primary: bool


class SlotManifest(SQLModel):
    """
    One filled image slot in a multipart save:
    either keep an existing image_url, or take files[upload_index].
    """

    model_config = ConfigDict(extra="forbid")

    image_url: str | None = None
    upload_index: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def exactly_one_source(self) -> "SlotManifest":
        if (self.image_url is None) == (self.upload_index is None):
            raise ValueError("slot needs exactly one of image_url / upload_index")
        return self


class ColorSlotsManifest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    color_id: uuid.UUID
    slots: list[SlotManifest | None] = []


class ImageManifest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    colors: list[ColorSlotsManifest] = []


class ImageSaveResponse(SQLModel):
    images: list[ProductImageRead]
    warnings: list[dict] = []
