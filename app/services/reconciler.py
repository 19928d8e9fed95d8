# app/services/reconciler.py
"""
Color/size reconciliation for a product's variant matrix.

`plan()` is pure: it compares the persisted colors, sizes and variants with
a submitted edit and decides what to create, update and delete. `apply()`
performs those writes in an order that can be re-run after a partial
failure: deletes first, then color/size upserts, then variant inserts that
skip any (color, size) pair already present.
"""

import logging
import uuid
from dataclasses import dataclass, field

from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import ReconciliationConflict, ValidationError
from app.models.product import Product
from app.models.variant import ProductColor, ProductSize, ProductVariant
from app.repositories.product_repo import ProductRepository
from app.schemas.product import ColorInput, ReconcileResult, SizeInput
from app.services.sku import (
    color_abbreviation,
    derive_sku,
    find_abbreviation_collisions,
    suggest_renames,
)
from app.services.variant_matrix import SIZE_PALETTE

logger = logging.getLogger(__name__)

settings = get_settings()


@dataclass
class PersistedState:
    colors: list[ProductColor]
    sizes: list[ProductSize]
    variants: list[ProductVariant]


@dataclass
class PlannedColor:
    name: str
    hex_value: str
    sort_order: int
    key: str | None = None
    existing: ProductColor | None = None
    id: uuid.UUID | None = None

    @property
    def is_new(self) -> bool:
        return self.existing is None

    @property
    def needs_update(self) -> bool:
        if self.existing is None:
            return False
        return (
            self.existing.name != self.name
            or self.existing.hex_value != self.hex_value
            or self.existing.sort_order != self.sort_order
        )


@dataclass
class PlannedSize:
    label: str
    sort_order: int
    existing: ProductSize | None = None
    id: uuid.UUID | None = None

    @property
    def is_new(self) -> bool:
        return self.existing is None

    @property
    def needs_update(self) -> bool:
        if self.existing is None:
            return False
        return (
            self.existing.label != self.label
            or self.existing.sort_order != self.sort_order
        )


@dataclass
class PlannedVariant:
    color: PlannedColor
    size: PlannedSize
    sku: str


@dataclass
class ReconcilePlan:
    product_id: uuid.UUID
    colors: list[PlannedColor] = field(default_factory=list)
    sizes: list[PlannedSize] = field(default_factory=list)
    colors_to_delete: list[ProductColor] = field(default_factory=list)
    sizes_to_delete: list[ProductSize] = field(default_factory=list)
    variants_to_create: list[PlannedVariant] = field(default_factory=list)
    kept_variants: list[ProductVariant] = field(default_factory=list)

    @property
    def colors_to_create(self) -> list[PlannedColor]:
        return [c for c in self.colors if c.is_new]

    @property
    def colors_to_update(self) -> list[PlannedColor]:
        return [c for c in self.colors if c.needs_update]

    @property
    def sizes_to_create(self) -> list[PlannedSize]:
        return [s for s in self.sizes if s.is_new]

    @property
    def sizes_to_update(self) -> list[PlannedSize]:
        return [s for s in self.sizes if s.needs_update]

    @property
    def is_noop(self) -> bool:
        return not (
            self.colors_to_delete
            or self.sizes_to_delete
            or self.colors_to_create
            or self.colors_to_update
            or self.sizes_to_create
            or self.sizes_to_update
            or self.variants_to_create
        )


class VariantReconciler:
    """
    Converges a product's colors, sizes and variants to a submitted edit.

    Identity rules:
      - a submitted color/size with an id keeps that row;
      - a color without id adopts an unclaimed persisted color of the same
        name, a size without id adopts the persisted size with its label;
      - everything else persisted is deleted, cascading to its variants
        (and their stock history) and, for colors, its images.
    Existing (color, size) variants are never rewritten.
    """

    def __init__(
        self,
        repo: ProductRepository,
        seed_stock: int | None = None,
        low_stock_threshold: int | None = None,
    ):
        self.repo = repo
        self.seed_stock = (
            settings.VARIANT_SEED_STOCK if seed_stock is None else seed_stock
        )
        self.low_stock_threshold = (
            settings.DEFAULT_LOW_STOCK_THRESHOLD
            if low_stock_threshold is None
            else low_stock_threshold
        )

    # ----- Loading -----

    def load_state(self, session: Session, product_id: uuid.UUID) -> PersistedState:
        return PersistedState(
            colors=self.repo.list_colors(session, product_id),
            sizes=self.repo.list_sizes(session, product_id),
            variants=self.repo.list_variants(session, product_id),
        )

    # ----- Planning -----

    def plan(
        self,
        product: Product,
        colors: list[ColorInput],
        sizes: list[SizeInput],
        state: PersistedState,
    ) -> ReconcilePlan:
        """
        Decide the minimal creates/updates/deletes. No I/O.

        Raises:
            ValidationError: unknown ids, blank/duplicate colors, bad or
                relabelled sizes.
            ReconciliationConflict: two colors share initials, or a derived
                SKU is already used by another surviving variant.
        """
        plan = ReconcilePlan(product_id=product.id)

        plan.colors, plan.colors_to_delete = self._plan_colors(colors, state.colors)
        plan.sizes, plan.sizes_to_delete = self._plan_sizes(sizes, state.sizes)

        collisions = find_abbreviation_collisions(c.name for c in plan.colors)
        if collisions:
            clashing = sorted(collisions)
            raise ReconciliationConflict(
                f"Colors share initials {', '.join(clashing)} and would get identical SKUs",
                skus=[
                    derive_sku(product.name, collisions[abbr][0], size.label)
                    for abbr in clashing
                    for size in plan.sizes
                ],
                suggestions=suggest_renames(collisions),
            )

        self._plan_variants(product, plan, state.variants)
        return plan

    def _plan_colors(
        self,
        submitted: list[ColorInput],
        persisted: list[ProductColor],
    ) -> tuple[list[PlannedColor], list[ProductColor]]:
        by_id = {c.id: c for c in persisted}
        claimed: set[uuid.UUID] = set()
        seen_names: set[str] = set()

        rows: list[ColorInput] = []
        for color in submitted:
            name = color.name.strip()
            if not name:
                if color.id is not None:
                    raise ValidationError("Color name cannot be empty", color_id=str(color.id))
                continue  # empty editor row
            if name.casefold() in seen_names:
                raise ValidationError(f'Duplicate color "{name}"', color=name)
            seen_names.add(name.casefold())

            if color.id is not None:
                if color.id not in by_id:
                    raise ValidationError(
                        "Color does not belong to this product", color_id=str(color.id)
                    )
                if color.id in claimed:
                    raise ValidationError("Color submitted twice", color_id=str(color.id))
                claimed.add(color.id)
            rows.append(color)

        unclaimed_by_name = {
            c.name.strip().casefold(): c for c in persisted if c.id not in claimed
        }

        planned: list[PlannedColor] = []
        for position, color in enumerate(rows):
            name = color.name.strip()
            existing = by_id.get(color.id) if color.id is not None else None
            if existing is None:
                existing = unclaimed_by_name.pop(name.casefold(), None)
                if existing is not None:
                    claimed.add(existing.id)
            planned.append(
                PlannedColor(
                    name=name,
                    hex_value=color.hex_value,
                    sort_order=position,
                    key=color.key,
                    existing=existing,
                    id=existing.id if existing is not None else None,
                )
            )

        to_delete = [c for c in persisted if c.id not in claimed]
        return planned, to_delete

    def _plan_sizes(
        self,
        submitted: list[SizeInput],
        persisted: list[ProductSize],
    ) -> tuple[list[PlannedSize], list[ProductSize]]:
        by_id = {s.id: s for s in persisted}
        claimed: set[uuid.UUID] = set()
        seen_labels: set[str] = set()

        for size in submitted:
            if size.label not in SIZE_PALETTE:
                raise ValidationError(
                    f'Unknown size "{size.label}"', allowed=list(SIZE_PALETTE)
                )
            if size.label in seen_labels:
                raise ValidationError(f'Duplicate size "{size.label}"', size=size.label)
            seen_labels.add(size.label)
            if size.id is not None:
                if size.id not in by_id:
                    raise ValidationError(
                        "Size does not belong to this product", size_id=str(size.id)
                    )
                if size.id in claimed:
                    raise ValidationError("Size submitted twice", size_id=str(size.id))
                # SKUs embed the label, so a size row is never relabelled
                if by_id[size.id].label != size.label:
                    raise ValidationError(
                        "A size cannot be relabelled; remove it and add the new size",
                        size_id=str(size.id),
                        label=size.label,
                    )
                claimed.add(size.id)

        unclaimed_by_label = {s.label: s for s in persisted if s.id not in claimed}

        planned: list[PlannedSize] = []
        for size in submitted:
            existing = by_id.get(size.id) if size.id is not None else None
            if existing is None:
                existing = unclaimed_by_label.pop(size.label, None)
                if existing is not None:
                    claimed.add(existing.id)
            planned.append(
                PlannedSize(
                    label=size.label,
                    sort_order=SIZE_PALETTE.index(size.label),
                    existing=existing,
                    id=existing.id if existing is not None else None,
                )
            )

        planned.sort(key=lambda s: s.sort_order)
        to_delete = [s for s in persisted if s.id not in claimed]
        return planned, to_delete

    def _plan_variants(
        self,
        product: Product,
        plan: ReconcilePlan,
        persisted: list[ProductVariant],
    ) -> None:
        kept_color_ids = {c.id for c in plan.colors if c.id is not None}
        kept_size_ids = {s.id for s in plan.sizes if s.id is not None}
        kept = [
            v
            for v in persisted
            if v.color_id in kept_color_ids and v.size_id in kept_size_ids
        ]
        plan.kept_variants = kept

        present = {(v.color_id, v.size_id) for v in kept}
        sku_owner = {v.sku: v for v in kept}

        names_by_id = {c.id: c.name for c in plan.colors if c.id is not None}
        clashes: list[str] = []
        groups: dict[str, list[str]] = {}
        for color in plan.colors:
            for size in plan.sizes:
                if (
                    color.id is not None
                    and size.id is not None
                    and (color.id, size.id) in present
                ):
                    continue
                sku = derive_sku(product.name, color.name, size.label)
                owner = sku_owner.get(sku)
                if owner is not None:
                    # e.g. a renamed color still holds SKUs with its old initials
                    clashes.append(sku)
                    holder = names_by_id.get(owner.color_id, owner.sku)
                    group = groups.setdefault(color_abbreviation(color.name), [holder])
                    if color.name not in group:
                        group.append(color.name)
                    continue
                plan.variants_to_create.append(PlannedVariant(color, size, sku))

        if clashes:
            raise ReconciliationConflict(
                "Generated SKUs already belong to other variants of this product",
                skus=sorted(set(clashes)),
                suggestions=suggest_renames(groups),
            )

    # ----- Applying -----

    def apply(self, session: Session, plan: ReconcilePlan) -> ReconcileResult:
        """
        Execute a plan. Each repository call commits on its own.
        """
        result = ReconcileResult()

        for color in plan.colors_to_delete:
            result.deleted_variant_count += self.repo.delete_color(session, color)
            result.deleted_color_ids.append(color.id)
        for size in plan.sizes_to_delete:
            result.deleted_variant_count += self.repo.delete_size(session, size)
            result.deleted_size_ids.append(size.id)

        for planned in plan.colors:
            if planned.is_new:
                row = self.repo.create_color(
                    session,
                    ProductColor(
                        product_id=plan.product_id,
                        name=planned.name,
                        hex_value=planned.hex_value,
                        sort_order=planned.sort_order,
                    ),
                )
                planned.id = row.id
                result.created_color_ids.append(row.id)
            elif planned.needs_update:
                row = planned.existing
                row.name = planned.name
                row.hex_value = planned.hex_value
                row.sort_order = planned.sort_order
                self.repo.update_color(session, row)
                result.updated_color_ids.append(row.id)
            if planned.key:
                result.color_ids_by_key[planned.key] = planned.id

        for planned in plan.sizes:
            if planned.is_new:
                row = self.repo.create_size(
                    session,
                    ProductSize(
                        product_id=plan.product_id,
                        label=planned.label,
                        sort_order=planned.sort_order,
                    ),
                )
                planned.id = row.id
                result.created_size_ids.append(row.id)
            elif planned.needs_update:
                row = planned.existing
                row.label = planned.label
                row.sort_order = planned.sort_order
                self.repo.update_size(session, row)

        for pv in plan.variants_to_create:
            created = self.repo.create_variant_if_absent(
                session,
                ProductVariant(
                    product_id=plan.product_id,
                    color_id=pv.color.id,
                    size_id=pv.size.id,
                    sku=pv.sku,
                    stock_quantity=self.seed_stock,
                    low_stock_threshold=self.low_stock_threshold,
                    is_active=True,
                ),
            )
            if created is not None:
                result.created_skus.append(created.sku)

        logger.info(
            "Reconciled product %s: +%d/-%d colors, +%d/-%d sizes, "
            "+%d variants, -%d variants",
            plan.product_id,
            len(result.created_color_ids),
            len(result.deleted_color_ids),
            len(result.created_size_ids),
            len(result.deleted_size_ids),
            len(result.created_skus),
            result.deleted_variant_count,
        )
        return result

    def reconcile(
        self,
        session: Session,
        product: Product,
        colors: list[ColorInput],
        sizes: list[SizeInput],
    ) -> ReconcileResult:
        state = self.load_state(session, product.id)
        plan = self.plan(product, colors, sizes, state)
        return self.apply(session, plan)
