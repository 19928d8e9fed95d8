# app/services/stock_status.py
from collections.abc import Iterable
from typing import Literal, Protocol

StockStatus = Literal["out", "low", "ok"]


class HasStock(Protocol):
    stock_quantity: int
    low_stock_threshold: int


def classify(quantity: int, threshold: int) -> StockStatus:
    """
    Stock tier for a quantity:

      quantity <= 0             -> "out"
      0 < quantity <= threshold -> "low"
      quantity > threshold      -> "ok"
    """
    if quantity <= 0:
        return "out"
    if quantity <= threshold:
        return "low"
    return "ok"


def status_of(variant: HasStock) -> StockStatus:
    return classify(variant.stock_quantity, variant.low_stock_threshold)


def count_low_stock(variants: Iterable[HasStock]) -> int:
    """Number of variants needing attention (anything not "ok")."""
    return sum(1 for v in variants if status_of(v) != "ok")
