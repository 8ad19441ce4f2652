"""
Entity Resolution Service
Links free-text names from the exports to catalog records:
order line item name -> Product, product category label -> Category
"""
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

ProductRef = Tuple[int, str]


def _norm(text: Optional[str]) -> str:
    return (text or "").strip().casefold()


def resolve_product_id(name: Optional[str], products: Iterable[ProductRef]) -> Optional[int]:
    """
    Exact match first, then the first product whose name contains the input.
    Both phases ignore case; products are scanned in the order given (ascending id).
    Returns None when nothing matches.
    """
    needle = _norm(name)
    if not needle:
        return None

    candidates = list(products)
    for product_id, product_name in candidates:
        if _norm(product_name) == needle:
            return product_id

    for product_id, product_name in candidates:
        if needle in _norm(product_name):
            return product_id

    return None


def resolve_category_id(label: Optional[str], mapping: Mapping[str, int], default_id: int) -> int:
    """
    Exact key lookup, then the first mapping key (in mapping order) found inside
    the label. Unmatched labels get default_id, so a product is never uncategorized.
    """
    needle = _norm(label)
    if needle:
        for key, category_id in mapping.items():
            if _norm(key) == needle:
                return category_id
        for key, category_id in mapping.items():
            key_norm = _norm(key)
            if key_norm and key_norm in needle:
                return category_id
    return default_id


class ProductResolver:
    """Resolves line item names against a read-only product snapshot taken once per run."""

    def __init__(self, products: Iterable[ProductRef]):
        self.products: List[ProductRef] = sorted(products, key=lambda p: p[0])
        self._cache: Dict[str, Optional[int]] = {}
        self.hits = 0
        self.misses = 0

    def resolve(self, name: Optional[str]) -> Optional[int]:
        key = _norm(name)
        if key in self._cache:
            product_id = self._cache[key]
        else:
            product_id = resolve_product_id(name, self.products)
            self._cache[key] = product_id
            if product_id is None and key:
                logger.debug(f"No catalog product matches line item name: {name!r}")

        if product_id is None:
            self.misses += 1
        else:
            self.hits += 1
        return product_id

    __call__ = resolve

    def stats(self) -> Dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "catalog_size": len(self.products)}


class CategoryResolver:
    """Resolves category labels through a curated name/alias mapping with a configured default."""

    def __init__(self, mapping: Mapping[str, int], default_category_id: int):
        if default_category_id is None:
            raise ValueError("default_category_id is required")
        self.mapping: Dict[str, int] = dict(mapping)
        self.default_category_id = default_category_id
        self.fallbacks = 0

    def resolve(self, label: Optional[str]) -> int:
        category_id = resolve_category_id(label, self.mapping, self.default_category_id)
        if category_id == self.default_category_id and not self._matches(label):
            self.fallbacks += 1
            logger.debug(f"Category label {label!r} matched nothing; using default {self.default_category_id}")
        return category_id

    __call__ = resolve

    def _matches(self, label: Optional[str]) -> bool:
        needle = _norm(label)
        return bool(needle) and any(_norm(k) and _norm(k) in needle for k in self.mapping)

    def stats(self) -> Dict[str, int]:
        return {"fallbacks": self.fallbacks, "mapping_size": len(self.mapping)}
