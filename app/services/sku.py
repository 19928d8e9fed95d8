# app/services/sku.py
"""
SKU derivation for product variants.

A SKU is `{slugified product name}-{color initials}-{size label}` in upper
case, e.g. ("Beast Mode Hoodie", "Jet Black", "S") -> "BEAST-MODE-HOODIE-JB-S".
It depends only on its inputs, never on persisted ids or call order.
"""

import re
from collections.abc import Iterable


def slugify(raw: str) -> str:
    """
    Slug rules shared by products and SKUs:
      - lowercase
      - whitespace runs -> '-'
      - anything outside [a-z0-9-] is dropped
    """
    value = raw.strip().lower()
    value = re.sub(r"\s+", "-", value)
    value = re.sub(r"[^a-z0-9-]", "", value)
    return value


def color_abbreviation(color_name: str) -> str:
    """Uppercase initials of each word: "Midnight Black" -> "MB"."""
    return "".join(word[0] for word in color_name.split()).upper()


def derive_sku(product_name: str, color_name: str, size_label: str) -> str:
    # same fallback as product slugs, so a SKU never starts with "-"
    base = slugify(product_name) or "product"
    return f"{base}-{color_abbreviation(color_name)}-{size_label.strip()}".upper()


def find_abbreviation_collisions(color_names: Iterable[str]) -> dict[str, list[str]]:
    """
    Group distinct color names by initials and keep the groups that clash.

    Returns:
        {"NB": ["Navy Blue", "Neon Blue"]} for colors whose SKUs would collide.
    """
    by_abbr: dict[str, list[str]] = {}
    seen: set[str] = set()
    for name in color_names:
        key = name.strip().casefold()
        if not key or key in seen:
            continue
        seen.add(key)
        by_abbr.setdefault(color_abbreviation(name), []).append(name.strip())
    return {abbr: names for abbr, names in by_abbr.items() if len(names) > 1}


def suggest_renames(collisions: dict[str, list[str]]) -> dict[str, str]:
    """
    Propose a rename for every clashing color except the first of each group.

    The suggestion appends a number, which changes the initials
    ("Neon Blue" -> "Neon Blue 2", abbreviation "NB2"). Nothing is renamed
    automatically; the admin decides.
    """
    taken = set(collisions)
    suggestions: dict[str, str] = {}
    for names in collisions.values():
        for name in names[1:]:
            n = 2
            candidate = f"{name} {n}"
            while color_abbreviation(candidate) in taken:
                n += 1
                candidate = f"{name} {n}"
            taken.add(color_abbreviation(candidate))
            suggestions[name] = candidate
    return suggestions
