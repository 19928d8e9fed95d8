# app/services/product_service.py
import logging
import uuid

from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import NotFoundError, ValidationError
from app.core.storage_utils import BlobStore
from app.models.product import Product
from app.repositories.product_repo import ProductRepository
from app.schemas.product import (
    ColorInput,
    MatrixPreview,
    ProductCreate,
    ProductUpdate,
    ReconcileResult,
    SizeInput,
    VariantRead,
)
from app.services.image_slots import ColorSlots, ImageSaveOutcome, ImageSlotAssigner
from app.services.reconciler import VariantReconciler
from app.services.sku import slugify
from app.services.stock_status import status_of
from app.services.variant_matrix import preview_variant_matrix

logger = logging.getLogger(__name__)

settings = get_settings()


class ProductService:
    """
    Business logic for products and their variant matrix.

    Responsibilities:
      - slug generation & uniqueness
      - best-selling cap and price rules beyond pydantic
      - variant edits: preview, reconcile (colors/sizes/variants)
      - per-color image slots (via ImageSlotAssigner)
      - deactivation (products are never hard-deleted)
    """

    def __init__(
        self,
        repo: ProductRepository,
        reconciler: VariantReconciler | None = None,
    ):
        self.repo = repo
        self.reconciler = reconciler or VariantReconciler(repo)

    # ----- Helpers -----

    def _ensure_unique_slug(
        self,
        session: Session,
        base_slug: str,
        product_id: uuid.UUID | None = None,
    ) -> str:
        """
        Ensure slug is unique by appending -2, -3, ... if needed.
        The product's own current slug does not count as taken.
        """
        slug = base_slug
        i = 2
        while True:
            holder = self.repo.get_by_slug(session, slug)
            if holder is None or holder.id == product_id:
                return slug
            slug = f"{base_slug}-{i}"
            i += 1

    def _check_best_selling_cap(
        self,
        session: Session,
        product_id: uuid.UUID | None = None,
    ) -> None:
        active = self.repo.count_active_best_selling(session, exclude_id=product_id)
        if active >= settings.MAX_BEST_SELLING:
            raise ValidationError(
                f"At most {settings.MAX_BEST_SELLING} products can be best-selling at once",
                current=active,
            )

    @staticmethod
    def _check_sale_price(price: float, sale_price: float | None) -> None:
        if sale_price is not None and sale_price >= price:
            raise ValidationError(
                "Sale price must be lower than the base price",
                price=price,
                sale_price=sale_price,
            )

    # ----- Products -----

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_active: bool = True,
    ) -> list[Product]:
        return self.repo.list_products(session, skip=skip, limit=limit, only_active=only_active)

    def get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise NotFoundError("Product not found", product_id=str(product_id))
        return product

    def create_product(
        self,
        session: Session,
        payload: ProductCreate,
    ) -> Product:
        """
        Create a new product with a unique slug.

        - If slug is provided => slugify & ensure unique.
        - Else => slugify from name & ensure unique.
        - Best-selling cap is checked before anything is written.
        """
        self._check_sale_price(payload.price, payload.sale_price)
        if payload.is_best_selling and payload.is_active:
            self._check_best_selling_cap(session)

        base_slug = slugify(payload.slug or payload.name) or "product"
        slug = self._ensure_unique_slug(session, base_slug)

        product = Product(
            name=payload.name,
            slug=slug,
            description=payload.description,
            price=payload.price,
            sale_price=payload.sale_price,
            is_active=payload.is_active,
            is_featured=payload.is_featured,
            is_best_selling=payload.is_best_selling,
            category_id=payload.category_id,
        )
        product = self.repo.create(session, product)
        logger.info("Created product %s (%s)", product.id, product.slug)
        return product

    def update_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        payload: ProductUpdate,
    ) -> Product:
        """
        Partial update of a product.

        - If slug is changed, enforce uniqueness.
        - Turning a product into an active best-seller checks the cap.
        """
        product = self.get_product(session, product_id)
        changes = payload.model_dump(exclude_unset=True)

        price = changes.get("price", product.price)
        sale_price = changes.get("sale_price", product.sale_price)
        self._check_sale_price(price, sale_price)

        will_be_best = changes.get("is_best_selling", product.is_best_selling)
        will_be_active = changes.get("is_active", product.is_active)
        was_counted = product.is_best_selling and product.is_active
        if will_be_best and will_be_active and not was_counted:
            self._check_best_selling_cap(session, product_id=product.id)

        if "slug" in changes and changes["slug"] is not None:
            new_base_slug = slugify(changes.pop("slug")) or "product"
            if new_base_slug != product.slug:
                product.slug = self._ensure_unique_slug(session, new_base_slug, product.id)
        changes.pop("slug", None)

        for field_name, value in changes.items():
            if value is None and field_name not in {"description", "sale_price", "category_id"}:
                continue
            setattr(product, field_name, value)

        return self.repo.update(session, product)

    def deactivate_product(self, session: Session, product_id: uuid.UUID) -> Product:
        """
        Hide a product from the storefront. Variants, stock history and
        images are kept.
        """
        product = self.get_product(session, product_id)
        if not product.is_active:
            return product
        product.is_active = False
        product = self.repo.update(session, product)
        logger.info("Deactivated product %s", product.id)
        return product

    # ----- Variants -----

    def list_variants(self, session: Session, product_id: uuid.UUID) -> list[VariantRead]:
        self.get_product(session, product_id)
        return [
            VariantRead(
                id=variant.id,
                product_id=variant.product_id,
                color_id=color.id,
                size_id=size.id,
                color_name=color.name,
                size_label=size.label,
                sku=variant.sku,
                stock_quantity=variant.stock_quantity,
                low_stock_threshold=variant.low_stock_threshold,
                is_active=variant.is_active,
                status=status_of(variant),
            )
            for variant, color, size in self.repo.list_variants_with_labels(session, product_id)
        ]

    def preview_variants(
        self,
        session: Session,
        product_id: uuid.UUID,
        colors: list[str],
        sizes: list[str],
    ) -> MatrixPreview:
        product = self.get_product(session, product_id)
        return preview_variant_matrix(product.name, colors, sizes)

    def save_variants(
        self,
        session: Session,
        product_id: uuid.UUID,
        colors: list[ColorInput],
        sizes: list[SizeInput],
    ) -> ReconcileResult:
        """
        Converge colors, sizes and variants to the submitted editor state.

        Validation and SKU conflict checks run before any write; existing
        (color, size) variants keep their stock and history.
        """
        product = self.get_product(session, product_id)
        result = self.reconciler.reconcile(session, product, colors, sizes)
        result.variants = self.list_variants(session, product_id)
        return result

    # ----- Images -----

    def load_image_slots(
        self,
        session: Session,
        product_id: uuid.UUID,
        blob_store: BlobStore,
    ) -> list[ColorSlots]:
        self.get_product(session, product_id)
        return ImageSlotAssigner(self.repo, blob_store).load_slots(session, product_id)

    def save_images(
        self,
        session: Session,
        product_id: uuid.UUID,
        colors_slots: list[ColorSlots],
        blob_store: BlobStore,
    ) -> ImageSaveOutcome:
        self.get_product(session, product_id)
        return ImageSlotAssigner(self.repo, blob_store).save(session, product_id, colors_slots)
