# app/services/variant_matrix.py
from collections.abc import Iterable

from app.schemas.product import MatrixPreview
from app.services.sku import derive_sku, find_abbreviation_collisions, suggest_renames

# Size labels the admin UI offers, in display order
SIZE_PALETTE: tuple[str, ...] = ("S", "M", "L", "XL", "XXL", "XXXL")


def normalize_colors(colors: Iterable[str]) -> list[str]:
    """Drop blank names and case-insensitive duplicates, keep first spelling."""
    result: list[str] = []
    seen: set[str] = set()
    for name in colors:
        cleaned = name.strip()
        key = cleaned.casefold()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result


def normalize_sizes(sizes: Iterable[str]) -> list[str]:
    """
    Upper-case, dedupe and order sizes by the palette so toggling order
    never changes the result. Labels outside the palette sort last.
    """
    labels = {s.strip().upper() for s in sizes if s and s.strip()}

    def position(label: str) -> tuple[int, str]:
        if label in SIZE_PALETTE:
            return SIZE_PALETTE.index(label), label
        return len(SIZE_PALETTE), label

    return sorted(labels, key=position)


def build_variant_matrix(
    colors: Iterable[str],
    sizes: Iterable[str],
) -> list[tuple[str, str]]:
    """
    Cross product of colors and sizes, |colors| x |sizes| unique pairs.

    Empty when either side is empty: no variant exists without at least
    one color and one size.
    """
    color_list = normalize_colors(colors)
    size_list = normalize_sizes(sizes)
    return [(c, s) for c in color_list for s in size_list]


def preview_variant_matrix(
    product_name: str,
    colors: Iterable[str],
    sizes: Iterable[str],
) -> MatrixPreview:
    """
    What a save would generate, shown to the admin before committing.

    SKU initials collisions are reported as warnings here; the save itself
    rejects them.
    """
    color_list = normalize_colors(colors)
    size_list = normalize_sizes(sizes)
    pairs = build_variant_matrix(color_list, size_list)

    collisions = find_abbreviation_collisions(color_list)
    suggestions = suggest_renames(collisions)
    warnings = [
        f'Colors {", ".join(names)} share initials "{abbr}" and would get identical SKUs'
        for abbr, names in collisions.items()
    ]

    color_word = "color" if len(color_list) == 1 else "colors"
    size_word = "size" if len(size_list) == 1 else "sizes"
    variant_word = "variant" if len(pairs) == 1 else "variants"

    return MatrixPreview(
        color_count=len(color_list),
        size_count=len(size_list),
        variant_count=len(pairs),
        skus=[derive_sku(product_name, c, s) for c, s in pairs],
        message=(
            f"{len(color_list)} {color_word} × {len(size_list)} {size_word} = "
            f"{len(pairs)} {variant_word} will be generated"
        ),
        warnings=warnings,
        suggested_renames=suggestions,
    )
