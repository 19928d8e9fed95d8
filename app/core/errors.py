# app/core/errors.py
"""
Domain errors for the catalog engine.

Services raise these instead of HTTPException so they can be used outside
a request. `app/main.py` maps every CatalogError to a JSON response using
its `status_code`.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any


class CatalogError(Exception):
    """Base class for all catalog engine errors."""

    status_code: int = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"message": self.message}
        detail.update(self.details)
        return detail


class ValidationError(CatalogError):
    """
    Input rejected before any write (negative stock, bad size label,
    best-selling cap exceeded, ...). Recoverable by correcting the input.
    """

    status_code = 400


class NotFoundError(CatalogError):
    status_code = 404


class ReconciliationConflict(CatalogError):
    """
    Two colors of one product abbreviate to the same initials, or a derived
    SKU is already held by another variant of the product.

    `suggestions` maps each offending color name to a rename hint.
    """

    status_code = 409

    def __init__(
        self,
        message: str,
        skus: list[str] | None = None,
        suggestions: dict[str, str] | None = None,
    ):
        super().__init__(
            message,
            skus=list(skus or []),
            suggestions=dict(suggestions or {}),
        )
        self.skus = list(skus or [])
        self.suggestions = dict(suggestions or {})


class StaleStockError(CatalogError):
    """
    The variant's stock changed between read and conditional update.
    Nothing was written; re-read and retry.
    """

    status_code = 409

    def __init__(self, variant_id: uuid.UUID, expected_quantity: int):
        super().__init__(
            "Stock changed since it was read; reload the variant and retry",
            variant_id=str(variant_id),
            expected_quantity=expected_quantity,
        )
        self.variant_id = variant_id
        self.expected_quantity = expected_quantity


class InconsistentLedgerWrite(CatalogError):
    """
    The stock quantity was written but the journal entry was not.
    Never retried automatically: re-read the variant before adjusting again.
    """

    status_code = 500

    def __init__(
        self,
        variant_id: uuid.UUID,
        previous_quantity: int,
        new_quantity: int,
    ):
        super().__init__(
            "Stock was updated but the inventory log entry could not be written. "
            "Re-read the variant's current stock before retrying.",
            variant_id=str(variant_id),
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
        )
        self.variant_id = variant_id
        self.previous_quantity = previous_quantity
        self.new_quantity = new_quantity


class StoreUnavailable(CatalogError):
    """Record store timed out or refused the call. Safe to retry."""

    status_code = 503


@dataclass
class FailedSlot:
    color_id: uuid.UUID
    slot: int
    reason: str


@dataclass
class PartialUploadFailure:
    """
    Non-fatal warning: some image slots failed to upload and were skipped.
    Returned alongside a successful save, never raised.
    """

    failed_slots: list[FailedSlot] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"{len(self.failed_slots)} image slot(s) failed to upload and were skipped"

    def to_detail(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "failed_slots": [
                {"color_id": str(f.color_id), "slot": f.slot, "reason": f.reason}
                for f in self.failed_slots
            ],
        }
