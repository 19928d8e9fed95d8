# app/routers/inventory.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.database import get_session
from app.repositories.inventory_repo import InventoryRepository
from app.schemas.inventory import (
    InventoryItemRead,
    InventoryLogRead,
    LowStockSummary,
    StockAdjust,
)
from app.services.inventory_ledger import InventoryLedger
from app.services.stock_status import StockStatus

router = APIRouter(prefix="/inventory", tags=["Inventory"])

repo = InventoryRepository()
ledger = InventoryLedger(repo)


@router.get("", response_model=list[InventoryItemRead])
def list_inventory(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    status: StockStatus | None = None,
):
    """
    Variants with stock, threshold and status (out / low / ok),
    lowest stock first. Optional `status` filter.
    """
    return ledger.list_inventory(session, skip=skip, limit=limit, status=status)


@router.get("/low-stock", response_model=LowStockSummary)
def low_stock_summary(session: Session = Depends(get_session)):
    """
    Catalog-wide counts for the dashboard alert badge.
    """
    return ledger.low_stock_summary(session)


@router.post(
    "/variants/{variant_id}/adjust",
    response_model=InventoryLogRead,
)
def adjust_stock(
    variant_id: uuid.UUID,
    payload: StockAdjust,
    session: Session = Depends(get_session),
):
    """
    Set a variant's on-hand quantity and journal the change.

    - 409 if stock changed since it was read (reload and retry).
    - 500 if the quantity was written but the journal entry was not;
      re-read before retrying, never resubmit blindly.
    """
    return ledger.adjust_stock(session, variant_id, payload.new_quantity, payload.reason)


@router.get(
    "/variants/{variant_id}/logs",
    response_model=list[InventoryLogRead],
)
def list_inventory_logs(
    variant_id: uuid.UUID,
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    """
    Stock history for a variant, newest first.
    """
    return ledger.history(session, variant_id, skip=skip, limit=limit)
