from app.services.sku import (
    color_abbreviation,
    derive_sku,
    find_abbreviation_collisions,
    slugify,
    suggest_renames,
)


def test_slugify_rules():
    """Lowercase, whitespace to dashes, other punctuation dropped"""
    assert slugify("Beast Mode Hoodie") == "beast-mode-hoodie"
    assert slugify("  Tee   (Oversized)! ") == "tee-oversized"
    assert slugify("Áo thun") == "o-thun"


def test_color_abbreviation():
    assert color_abbreviation("Jet Black") == "JB"
    assert color_abbreviation("red") == "R"
    assert color_abbreviation("  midnight   navy blue ") == "MNB"


def test_derive_sku_matches_known_example():
    assert derive_sku("Beast Mode Hoodie", "Jet Black", "S") == "BEAST-MODE-HOODIE-JB-S"
    assert derive_sku("Beast Mode Hoodie", "Pearl White", "xl") == "BEAST-MODE-HOODIE-PW-XL"


def test_derive_sku_is_deterministic():
    """Same inputs always give the same SKU"""
    first = derive_sku("Core Tee", "Olive Green", "M")
    second = derive_sku("Core Tee", "Olive Green", "M")
    assert first == second == "CORE-TEE-OG-M"


def test_find_abbreviation_collisions():
    collisions = find_abbreviation_collisions(["Navy Blue", "Red", "Neon Blue", "navy blue"])
    assert collisions == {"NB": ["Navy Blue", "Neon Blue"]}

    assert find_abbreviation_collisions(["Jet Black", "Pearl White"]) == {}


def test_suggest_renames_breaks_collision():
    suggestions = suggest_renames({"NB": ["Navy Blue", "Neon Blue", "Nordic Blue"]})

    assert set(suggestions) == {"Neon Blue", "Nordic Blue"}
    abbreviations = {"NB"} | {color_abbreviation(name) for name in suggestions.values()}
    # every suggested name gets initials of its own
    assert len(abbreviations) == 3
    assert suggestions["Neon Blue"] == "Neon Blue 2"


def test_derive_sku_falls_back_when_name_has_no_slug():
    assert derive_sku("!!!", "Jet Black", "S") == "PRODUCT-JB-S"
