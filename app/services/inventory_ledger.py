# app/services/inventory_ledger.py
import logging
import uuid

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import Session

from app.core.errors import (
    InconsistentLedgerWrite,
    NotFoundError,
    StaleStockError,
    StoreUnavailable,
    ValidationError,
)
from app.models.inventory import InventoryLog, Notification
from app.models.variant import ProductVariant
from app.repositories.inventory_repo import InventoryRepository
from app.schemas.inventory import InventoryItemRead, LowStockSummary
from app.services.stock_status import StockStatus, classify, status_of

logger = logging.getLogger(__name__)

RESTOCK_REASON = "Restock — admin adjustment"
REDUCTION_REASON = "Manual reduction — admin adjustment"


def default_reason(delta: int) -> str:
    return RESTOCK_REASON if delta >= 0 else REDUCTION_REASON


class InventoryLedger:
    """
    Stock mutations for variants, each paired with an append-only
    InventoryLog entry.

    The quantity write is a single conditional update against the quantity
    read just before it, so a concurrent change (e.g. an order decrement)
    is detected instead of overwritten. The quantity write and the journal
    append are two separate commits: if the second fails the caller gets
    InconsistentLedgerWrite and must re-read before trying again.
    """

    def __init__(self, repo: InventoryRepository):
        self.repo = repo

    def adjust_stock(
        self,
        session: Session,
        variant_id: uuid.UUID,
        new_quantity: int,
        reason: str | None = None,
    ) -> InventoryLog:
        """
        Set a variant's stock to `new_quantity` and journal the change.

        Steps:
          1. Validate new_quantity (non-negative int).
          2. Snapshot the current quantity.
          3. Conditional update (only if stock still equals the snapshot).
          4. Append {previous, new, delta, reason}.
          5. Raise a low-stock notification if the status worsened.

        Raises:
            ValidationError: new_quantity is not a non-negative integer.
            NotFoundError: unknown variant.
            StaleStockError: stock changed after the snapshot; nothing written.
            StoreUnavailable: the quantity write failed or timed out; nothing written.
            InconsistentLedgerWrite: quantity written, journal entry not.
        """
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int):
            raise ValidationError("Quantity must be a whole number", new_quantity=new_quantity)
        if new_quantity < 0:
            raise ValidationError("Quantity cannot be negative", new_quantity=new_quantity)

        variant = self.repo.get_variant(session, variant_id)
        if variant is None:
            raise NotFoundError("Variant not found", variant_id=str(variant_id))

        previous_quantity = variant.stock_quantity
        threshold = variant.low_stock_threshold
        delta = new_quantity - previous_quantity

        try:
            written = self.repo.update_stock_if_unchanged(
                session, variant_id, previous_quantity, new_quantity
            )
        except OperationalError as exc:
            session.rollback()
            logger.error("Stock update for variant %s failed: %s", variant_id, exc)
            raise StoreUnavailable(
                "Stock update did not complete; retry", variant_id=str(variant_id)
            ) from exc

        if not written:
            logger.warning(
                "Stale stock snapshot for variant %s (expected %s)",
                variant_id,
                previous_quantity,
            )
            raise StaleStockError(variant_id, previous_quantity)

        entry = InventoryLog(
            variant_id=variant_id,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            delta=delta,
            reason=reason or default_reason(delta),
        )
        try:
            entry = self.repo.append_log(session, entry)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(
                "Inventory log append failed after stock write for variant %s "
                "(%s -> %s): %s",
                variant_id,
                previous_quantity,
                new_quantity,
                exc,
            )
            raise InconsistentLedgerWrite(variant_id, previous_quantity, new_quantity) from exc

        logger.info(
            "Stock for variant %s: %s -> %s (%+d)",
            variant_id,
            previous_quantity,
            new_quantity,
            delta,
        )

        before = classify(previous_quantity, threshold)
        after = classify(new_quantity, threshold)
        if after != "ok" and after != before:
            self._notify_low_stock(session, variant_id, new_quantity, threshold, after)

        return entry

    def history(
        self,
        session: Session,
        variant_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[InventoryLog]:
        if self.repo.get_variant(session, variant_id) is None:
            raise NotFoundError("Variant not found", variant_id=str(variant_id))
        return self.repo.list_logs(session, variant_id, skip=skip, limit=limit)

    @staticmethod
    def get_status(variant: ProductVariant) -> StockStatus:
        return status_of(variant)

    # ----- Read side -----

    def list_inventory(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        status: StockStatus | None = None,
    ) -> list[InventoryItemRead]:
        rows = self.repo.list_inventory(session, skip=skip, limit=limit, status=status)
        return [
            InventoryItemRead(
                variant_id=variant.id,
                product_id=product.id,
                product_name=product.name,
                sku=variant.sku,
                color_name=color.name,
                size_label=size.label,
                stock_quantity=variant.stock_quantity,
                low_stock_threshold=variant.low_stock_threshold,
                status=status_of(variant),
            )
            for variant, product, color, size in rows
        ]

    def low_stock_summary(self, session: Session) -> LowStockSummary:
        return LowStockSummary(
            low_stock_count=self.repo.count_low_stock(session),
            out_of_stock_count=self.repo.count_out_of_stock(session),
        )

    def _notify_low_stock(
        self,
        session: Session,
        variant_id: uuid.UUID,
        quantity: int,
        threshold: int,
        status: StockStatus,
    ) -> None:
        """
        Feed entry for the admin bell. The adjustment already succeeded, so
        a failure here is logged and not raised.
        """
        variant = self.repo.get_variant(session, variant_id)
        sku = variant.sku if variant is not None else str(variant_id)
        title = "Out of stock" if status == "out" else "Low stock"
        notification = Notification(
            type="low_stock",
            title=title,
            message=f"{sku} has {quantity} unit(s) left (threshold {threshold})",
            meta={
                "variant_id": str(variant_id),
                "sku": sku,
                "quantity": quantity,
                "threshold": threshold,
                "status": status,
            },
        )
        try:
            self.repo.create_notification(session, notification)
        except SQLAlchemyError:
            session.rollback()
            logger.warning(
                "Could not record low-stock notification for %s", sku, exc_info=True
            )
