# app/repositories/product_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.inventory import InventoryLog
from app.models.product import Product, ProductImage
from app.models.variant import ProductColor, ProductSize, ProductVariant


class ProductRepository:
    """
    Data access layer for products and their owned rows
    (colors, sizes, variants, images).

    - Pure DB operations (CRUD + queries).
    - Every write method commits: each call succeeds or fails on its own.
      Multi-call sequences are ordered by the services so that a partial
      run can simply be repeated.
    - Cascades (color/size -> variants -> inventory logs, color -> images)
      are done here explicitly instead of relying on the database.
    """

    # ----- Products -----

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_by_slug(self, session: Session, slug: str) -> Product | None:
        stmt = select(Product).where(Product.slug == slug)
        return session.exec(stmt).first()

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_active: bool = True,
    ) -> list[Product]:
        stmt = select(Product)
        if only_active:
            stmt = stmt.where(Product.is_active == True)  # noqa: E712
        stmt = stmt.order_by(Product.created_at.desc()).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def count_active_best_selling(
        self,
        session: Session,
        exclude_id: uuid.UUID | None = None,
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(Product)
            .where(Product.is_best_selling == True, Product.is_active == True)  # noqa: E712
        )
        if exclude_id is not None:
            stmt = stmt.where(Product.id != exclude_id)
        return int(session.exec(stmt).one() or 0)

    def create(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def update(self, session: Session, product: Product) -> Product:
        product.updated_at = datetime.now(timezone.utc)
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    # ----- Colors -----

    def list_colors(self, session: Session, product_id: uuid.UUID) -> list[ProductColor]:
        stmt = (
            select(ProductColor)
            .where(ProductColor.product_id == product_id)
            .order_by(ProductColor.sort_order)
        )
        return list(session.exec(stmt).all())

    def create_color(self, session: Session, color: ProductColor) -> ProductColor:
        session.add(color)
        session.commit()
        session.refresh(color)
        return color

    def update_color(self, session: Session, color: ProductColor) -> ProductColor:
        session.add(color)
        session.commit()
        session.refresh(color)
        return color

    def delete_color(self, session: Session, color: ProductColor) -> int:
        """
        Delete a color with its variants, their inventory logs and the
        color's images. Returns the number of variants removed.
        """
        variants = session.exec(
            select(ProductVariant).where(ProductVariant.color_id == color.id)
        ).all()
        for variant in variants:
            self._delete_variant_rows(session, variant)

        images = session.exec(
            select(ProductImage).where(ProductImage.color_id == color.id)
        ).all()
        for image in images:
            session.delete(image)

        session.delete(color)
        session.commit()
        return len(variants)

    # ----- Sizes -----

    def list_sizes(self, session: Session, product_id: uuid.UUID) -> list[ProductSize]:
        stmt = (
            select(ProductSize)
            .where(ProductSize.product_id == product_id)
            .order_by(ProductSize.sort_order)
        )
        return list(session.exec(stmt).all())

    def create_size(self, session: Session, size: ProductSize) -> ProductSize:
        session.add(size)
        session.commit()
        session.refresh(size)
        return size

    def update_size(self, session: Session, size: ProductSize) -> ProductSize:
        session.add(size)
        session.commit()
        session.refresh(size)
        return size

    def delete_size(self, session: Session, size: ProductSize) -> int:
        """
        Delete a size with its variants and their inventory logs.
        Returns the number of variants removed.
        """
        variants = session.exec(
            select(ProductVariant).where(ProductVariant.size_id == size.id)
        ).all()
        for variant in variants:
            self._delete_variant_rows(session, variant)

        session.delete(size)
        session.commit()
        return len(variants)

    # ----- Variants -----

    def list_variants(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> list[ProductVariant]:
        stmt = select(ProductVariant).where(ProductVariant.product_id == product_id)
        return list(session.exec(stmt).all())

    def list_variants_with_labels(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> list[tuple[ProductVariant, ProductColor, ProductSize]]:
        """
        Variants joined with their color and size, ordered like the editor
        (color sort order, then size sort order).
        """
        stmt = (
            select(ProductVariant, ProductColor, ProductSize)
            .join(ProductColor, ProductColor.id == ProductVariant.color_id)
            .join(ProductSize, ProductSize.id == ProductVariant.size_id)
            .where(ProductVariant.product_id == product_id)
            .order_by(ProductColor.sort_order, ProductSize.sort_order)
        )
        return list(session.exec(stmt).all())

    def get_variant(
        self,
        session: Session,
        product_id: uuid.UUID,
        color_id: uuid.UUID,
        size_id: uuid.UUID,
    ) -> ProductVariant | None:
        stmt = select(ProductVariant).where(
            ProductVariant.product_id == product_id,
            ProductVariant.color_id == color_id,
            ProductVariant.size_id == size_id,
        )
        return session.exec(stmt).first()

    def create_variant_if_absent(
        self,
        session: Session,
        variant: ProductVariant,
    ) -> ProductVariant | None:
        """
        Insert a variant unless its (product, color, size) already exists.

        Existing variants are left untouched (stock and history preserved).
        Returns the new row, or None when one was already there.
        """
        existing = self.get_variant(
            session, variant.product_id, variant.color_id, variant.size_id
        )
        if existing is not None:
            return None
        session.add(variant)
        session.commit()
        session.refresh(variant)
        return variant

    def _delete_variant_rows(self, session: Session, variant: ProductVariant) -> None:
        """Stage deletion of a variant and its log stream (no commit)."""
        logs = session.exec(
            select(InventoryLog).where(InventoryLog.variant_id == variant.id)
        ).all()
        for log in logs:
            session.delete(log)
        session.delete(variant)

    # ----- Product images -----

    def list_images_for_product(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> list[ProductImage]:
        stmt = (
            select(ProductImage)
            .where(ProductImage.product_id == product_id)
            .order_by(ProductImage.sort_order)
        )
        return list(session.exec(stmt).all())

    def replace_images(
        self,
        session: Session,
        product_id: uuid.UUID,
        images: list[ProductImage],
    ) -> list[ProductImage]:
        """
        Clear every image row of the product and insert `images` in one
        commit.
        """
        for old in self.list_images_for_product(session, product_id):
            session.delete(old)
        session.flush()

        session.add_all(images)
        session.commit()
        for image in images:
            session.refresh(image)
        return images
