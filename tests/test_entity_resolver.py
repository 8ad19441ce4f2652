import pytest

from services.entity_resolver import (
    CategoryResolver, ProductResolver, resolve_category_id, resolve_product_id,
)

PRODUCTS = [(1, "Dragon Magic Condom"), (2, "Super Love Toy"), (3, "Dragon")]


def test_exact_match_wins_over_substring():
    assert resolve_product_id("dragon", PRODUCTS) == 3


def test_substring_match_first_product_in_order():
    assert resolve_product_id("dragon magic", PRODUCTS) == 1
    assert resolve_product_id("love", PRODUCTS) == 2


def test_no_match_returns_none():
    assert resolve_product_id("Sunny Toy", PRODUCTS) is None
    assert resolve_product_id("", PRODUCTS) is None
    assert resolve_product_id(None, PRODUCTS) is None


def test_product_resolver_counts_and_sorts():
    resolver = ProductResolver([(5, "Toy B"), (4, "Toy A")])
    assert resolver("toy") == 4
    assert resolver("toy") == 4
    assert resolver("missing") is None
    assert resolver.stats() == {"hits": 2, "misses": 1, "catalog_size": 2}


def test_resolve_category_exact_then_substring_then_default():
    mapping = {"Magic Condom": 1, "Smartphone": 2, "Home": 3}
    assert resolve_category_id("magic condom", mapping, 99) == 1
    assert resolve_category_id("Android Smartphone X", mapping, 99) == 2
    assert resolve_category_id("Garden Hose", mapping, 99) == 99
    assert resolve_category_id("", mapping, 99) == 99


def test_substring_follows_mapping_order():
    mapping = {"Magic Condom": 1, "Dragon Magic Condom": 2}
    assert resolve_category_id("Dragon Magic Condom Deluxe", mapping, 99) == 1


def test_category_resolver_tracks_fallbacks():
    resolver = CategoryResolver({"Books": 7}, default_category_id=1)
    assert resolver("Old Books") == 7
    assert resolver("Uncategorized") == 1
    assert resolver.stats()["fallbacks"] == 1


def test_category_resolver_requires_default():
    with pytest.raises(ValueError):
        CategoryResolver({"Books": 7}, default_category_id=None)


def test_singular_label_and_unmapped_label():
    mapping = {"Smartphone": 7}
    assert resolve_category_id("Smartphone", mapping, 1) == 7
    assert resolve_category_id("Gadgets", mapping, 1) == 1
