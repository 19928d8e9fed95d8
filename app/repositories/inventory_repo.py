# app/repositories/inventory_repo.py
import uuid

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.models.inventory import InventoryLog, Notification
from app.models.product import Product
from app.models.variant import ProductColor, ProductSize, ProductVariant


class InventoryRepository:
    """
    Data access for variant stock, the inventory journal and stock alerts.

    Every write commits on its own; the ledger decides what a failure
    between two writes means.
    """

    def get_variant(self, session: Session, variant_id: uuid.UUID) -> ProductVariant | None:
        return session.get(ProductVariant, variant_id)

    def update_stock_if_unchanged(
        self,
        session: Session,
        variant_id: uuid.UUID,
        expected_quantity: int,
        new_quantity: int,
    ) -> bool:
        """
        Conditional write: set stock only if it still equals the snapshot.

        Returns False (and writes nothing) if someone else changed it.
        """
        stmt = (
            update(ProductVariant)
            .where(
                ProductVariant.id == variant_id,
                ProductVariant.stock_quantity == expected_quantity,
            )
            .values(stock_quantity=new_quantity)
        )
        result = session.execute(stmt)
        session.commit()
        return result.rowcount == 1

    def append_log(self, session: Session, entry: InventoryLog) -> InventoryLog:
        session.add(entry)
        session.commit()
        session.refresh(entry)
        return entry

    def list_logs(
        self,
        session: Session,
        variant_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[InventoryLog]:
        stmt = (
            select(InventoryLog)
            .where(InventoryLog.variant_id == variant_id)
            .order_by(InventoryLog.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    def list_inventory(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        status: str | None = None,
    ) -> list[tuple[ProductVariant, Product, ProductColor, ProductSize]]:
        """
        Active variants of active products with their labels, lowest stock first.

        status ("out" | "low" | "ok") filters with the same rule as
        stock_status.classify.
        """
        stmt = (
            select(ProductVariant, Product, ProductColor, ProductSize)
            .join(Product, Product.id == ProductVariant.product_id)
            .join(ProductColor, ProductColor.id == ProductVariant.color_id)
            .join(ProductSize, ProductSize.id == ProductVariant.size_id)
            .where(ProductVariant.is_active == True, Product.is_active == True)  # noqa: E712
        )
        qty = ProductVariant.stock_quantity
        threshold = ProductVariant.low_stock_threshold
        if status == "out":
            stmt = stmt.where(qty <= 0)
        elif status == "low":
            stmt = stmt.where(qty > 0, qty <= threshold)
        elif status == "ok":
            stmt = stmt.where(qty > 0, qty > threshold)

        stmt = stmt.order_by(qty, ProductVariant.sku).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def count_low_stock(self, session: Session) -> int:
        """
        Active variants at or below their threshold (out-of-stock included).
        Same rule as stock_status.classify(...) != "ok".
        """
        stmt = (
            select(func.count())
            .select_from(ProductVariant)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(
                ProductVariant.is_active == True,  # noqa: E712
                Product.is_active == True,  # noqa: E712
                (ProductVariant.stock_quantity <= 0)
                | (ProductVariant.stock_quantity <= ProductVariant.low_stock_threshold),
            )
        )
        return int(session.exec(stmt).one() or 0)

    def count_out_of_stock(self, session: Session) -> int:
        stmt = (
            select(func.count())
            .select_from(ProductVariant)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(
                ProductVariant.is_active == True,  # noqa: E712
                Product.is_active == True,  # noqa: E712
                ProductVariant.stock_quantity <= 0,
            )
        )
        return int(session.exec(stmt).one() or 0)

    def create_notification(
        self,
        session: Session,
        notification: Notification,
    ) -> Notification:
        session.add(notification)
        session.commit()
        session.refresh(notification)
        return notification
