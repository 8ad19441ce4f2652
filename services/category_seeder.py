"""
Category Seeder
Seeds the two-level category tree and maps free-text product labels onto it
"""
import re
import unicodedata
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import logging

from services.entity_resolver import CategoryResolver
from settings import resolve_default_category_id

logger = logging.getLogger(__name__)

MAX_CATEGORY_DEPTH = 2

DEFAULT_CATEGORY_TREE: List[Dict[str, Any]] = [
    {"name": "Magic Condom", "description": "Magic condom products", "children": [
        {"name": "Dragon Magic Condom", "description": "Dragon style magic condoms"},
        {"name": "Dotted Magic Condom", "description": "Dotted magic condoms"},
        {"name": "Spike Magic Condom", "description": "Spike style magic condoms"},
    ]},
    {"name": "Love Toy Condom", "description": "Love toy condom products", "children": [
        {"name": "Super Love Toy", "description": "Super love toy condoms"},
        {"name": "Mini Love Toy", "description": "Mini love toy condoms"},
    ]},
    {"name": "Lock Love Condom", "description": "Lock love condom products", "children": [
        {"name": "Big Lock Love", "description": "Big lock love condoms"},
        {"name": "Lock Love with Vibrator", "description": "Lock love condoms with vibrator"},
    ]},
    {"name": "Dragon Condom", "description": "Dragon condom products", "children": [
        {"name": "Crystal Clear Dragon", "description": "Crystal clear dragon condoms"},
        {"name": "Gripped Style Dragon", "description": "Gripped style dragon condoms"},
        {"name": "Realistic Dragon", "description": "Realistic dragon condoms"},
    ]},
    {"name": "Toy Condom", "description": "Toy condom products", "children": [
        {"name": "Sunny Toy", "description": "Sunny toy condoms"},
        {"name": "Big Sunny Toy", "description": "Big sunny toy condoms"},
    ]},
    {"name": "Electronics", "description": "Electronic devices and accessories", "children": [
        {"name": "Smartphones", "description": "Mobile phones and accessories"},
        {"name": "Laptops", "description": "Notebook computers and accessories"},
        {"name": "Tablets", "description": "Tablet computers and accessories"},
        {"name": "Audio", "description": "Headphones, speakers and audio equipment"},
    ]},
    {"name": "Fashion", "description": "Clothing, shoes and accessories", "children": [
        {"name": "Men's Clothing", "description": "Shirts, pants, and outerwear for men"},
        {"name": "Women's Clothing", "description": "Dresses, tops, and outerwear for women"},
        {"name": "Shoes", "description": "Footwear for men and women"},
        {"name": "Accessories", "description": "Bags, jewelry, and other accessories"},
    ]},
    {"name": "Home & Garden", "description": "Products for home and garden", "children": [
        {"name": "Furniture", "description": "Sofas, tables, chairs and other furniture"},
        {"name": "Kitchen", "description": "Kitchen appliances and accessories"},
        {"name": "Bedding", "description": "Sheets, pillows, and other bedding items"},
        {"name": "Garden", "description": "Garden tools and accessories"},
    ]},
    {"name": "Books & Media", "description": "Books, movies, music and more", "children": [
        {"name": "Books", "description": "Printed books and ebooks"},
        {"name": "Movies", "description": "DVDs, Blu-rays and digital movies"},
        {"name": "Music", "description": "CDs, vinyl records and digital music"},
        {"name": "Video Games", "description": "Console and PC games"},
    ]},
    {"name": "Sports & Outdoors", "description": "Sporting goods and outdoor equipment", "children": [
        {"name": "Exercise Equipment", "description": "Fitness and workout equipment"},
        {"name": "Outdoor Recreation", "description": "Camping, hiking and outdoor activities"},
        {"name": "Sports Gear", "description": "Equipment for various sports"},
    ]},
]

# Label -> seeded category name. Order matters: substring matching takes the first hit.
CATEGORY_ALIASES: List[Tuple[str, str]] = [
    ("Magic Condom", "Magic Condom"),
    ("Dragon Magic Condom", "Dragon Magic Condom"),
    ("Dotted Magic Condom", "Dotted Magic Condom"),
    ("Spike Magic Condom", "Spike Magic Condom"),
    ("Love Toy Condom", "Love Toy Condom"),
    ("Super Love Toy", "Super Love Toy"),
    ("Mini Love Toy", "Mini Love Toy"),
    ("Lock Love Condom", "Lock Love Condom"),
    ("Big Lock Love", "Big Lock Love"),
    ("Lock Love with Vibrator", "Lock Love with Vibrator"),
    ("Dragon Condom", "Dragon Condom"),
    ("Crystal Clear Dragon", "Crystal Clear Dragon"),
    ("Gripped Style Dragon", "Gripped Style Dragon"),
    ("Realistic Dragon", "Realistic Dragon"),
    ("Toy Condom", "Toy Condom"),
    ("Sunny Toy", "Sunny Toy"),
    ("Big Sunny Toy", "Big Sunny Toy"),
    ("Electronics", "Electronics"),
    ("Smartphone", "Smartphones"),
    ("Laptop", "Laptops"),
    ("Tablet", "Tablets"),
    ("Audio", "Audio"),
    ("Clothing", "Fashion"),
    ("Men's Clothing", "Men's Clothing"),
    ("Women's Clothing", "Women's Clothing"),
    ("Shoes", "Shoes"),
    ("Accessories", "Accessories"),
    ("Home", "Home & Garden"),
    ("Furniture", "Furniture"),
    ("Kitchen", "Kitchen"),
    ("Bedding", "Bedding"),
    ("Garden", "Garden"),
    ("Books", "Books"),
    ("Movies", "Movies"),
    ("Music", "Music"),
    ("Video Games", "Video Games"),
    ("Sports", "Sports & Outdoors"),
    ("Exercise", "Exercise Equipment"),
    ("Outdoor", "Outdoor Recreation"),
]


def slugify(text: Optional[str]) -> str:
    """
    URL slug: ASCII-folded, lowercase, words joined by hyphens.
    "&" becomes "and", apostrophes vanish ("Men's Clothing" -> "mens-clothing").
    """
    value = unicodedata.normalize("NFKD", str(text or "")).encode("ascii", "ignore").decode("ascii")
    value = value.replace("&", " and ").replace("'", "")
    value = re.sub(r"[^A-Za-z0-9]+", "-", value).strip("-").lower()
    return value or "category"


def unique_slug(base: str, taken: set) -> str:
    slug = base
    suffix = 2
    while slug in taken:
        slug = f"{base}-{suffix}"
        suffix += 1
    taken.add(slug)
    return slug


def build_category_mapping(category_ids: Mapping[str, int]) -> Dict[str, int]:
    """
    Alias table first (in CATEGORY_ALIASES order), then any other known category
    names. Aliases pointing at categories that were never created are dropped.
    """
    mapping: Dict[str, int] = {}
    for alias, target in CATEGORY_ALIASES:
        if target in category_ids and alias not in mapping:
            mapping[alias] = category_ids[target]
    for name, category_id in category_ids.items():
        mapping.setdefault(name, category_id)
    return mapping


def build_category_resolver(category_ids: Mapping[str, int]) -> Optional[CategoryResolver]:
    default_id = resolve_default_category_id(category_ids)
    if default_id is None:
        return None
    return CategoryResolver(build_category_mapping(category_ids), default_id)


async def seed_categories(storage=None, tree: Iterable[Dict[str, Any]] = DEFAULT_CATEGORY_TREE) -> Dict[str, int]:
    """
    Create parents, then their children (sort_order = child index). Existing
    categories with the same name and parent are reused, so re-running is safe.
    Returns name -> id for every category in the tree.
    """
    if storage is None:
        from services.storage import storage

    taken_slugs = await storage.get_category_slugs()
    category_ids: Dict[str, int] = {}
    created = 0

    async def ensure(node: Dict[str, Any], parent_id: Optional[int], sort_order: int) -> int:
        nonlocal created
        existing = await storage.find_category(node["name"], parent_id)
        if existing is not None:
            return existing.id
        category = await storage.create_category({
            "name": node["name"],
            "slug": unique_slug(slugify(node["name"]), taken_slugs),
            "description": node.get("description"),
            "parent_id": parent_id,
            "is_active": True,
            "sort_order": sort_order,
        })
        created += 1
        return category.id

    for parent_node in tree:
        parent_id = await ensure(parent_node, None, parent_node.get("sort_order", 0))
        category_ids[parent_node["name"]] = parent_id
        for index, child_node in enumerate(parent_node.get("children") or []):
            if child_node.get("children"):
                raise ValueError(
                    f"Category '{child_node['name']}' has children; trees are limited to {MAX_CATEGORY_DEPTH} levels"
                )
            category_ids[child_node["name"]] = await ensure(child_node, parent_id, index)

    logger.info(f"Category seeding complete: {created} created, {len(category_ids) - created} already present")
    return category_ids


async def assign_product_categories(storage=None, resolver: Optional[CategoryResolver] = None) -> int:
    """Resolve every product's free-text label to a category id. Returns products changed."""
    if storage is None:
        from services.storage import storage

    if resolver is None:
        resolver = build_category_resolver(await storage.get_category_map())
        if resolver is None:
            logger.warning("No categories exist; nothing to assign")
            return 0

    changed = await storage.assign_product_categories(resolver)
    stats = resolver.stats()
    if stats["fallbacks"]:
        logger.info(f"{stats['fallbacks']} product labels fell back to category {resolver.default_category_id}")
    return changed


class CategoryTree:
    """Read-only view over a flat category list (anything with id, name and parent_id)."""

    def __init__(self, categories: Iterable[Any]):
        self.by_id: Dict[int, Any] = {c.id: c for c in categories}
        self.children: Dict[Optional[int], List[Any]] = {}
        for category in self.by_id.values():
            self.children.setdefault(category.parent_id, []).append(category)
        for siblings in self.children.values():
            siblings.sort(key=lambda c: (getattr(c, "sort_order", 0) or 0, c.id))

    def roots(self) -> List[Any]:
        return list(self.children.get(None, []))

    def parent(self, category_id: int) -> Optional[Any]:
        category = self.by_id.get(category_id)
        if category is None or category.parent_id is None:
            return None
        return self.by_id.get(category.parent_id)

    def path(self, category_id: int, separator: str = " > ") -> str:
        """Breadcrumb from the root, e.g. "Magic Condom > Dragon Magic Condom"."""
        names: List[str] = []
        seen = set()
        current = self.by_id.get(category_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            names.append(current.name)
            current = self.by_id.get(current.parent_id) if current.parent_id is not None else None
        return separator.join(reversed(names))

    def descendants(self, category_id: int) -> List[Any]:
        result: List[Any] = []
        stack = list(reversed(self.children.get(category_id, [])))
        while stack:
            node = stack.pop()
            result.append(node)
            stack.extend(reversed(self.children.get(node.id, [])))
        return result

    def is_child_of(self, category_id: int, ancestor_id: int) -> bool:
        parent = self.parent(category_id)
        while parent is not None:
            if parent.id == ancestor_id:
                return True
            parent = self.parent(parent.id)
        return False

    def depth(self, category_id: int) -> int:
        """Roots are depth 1; unknown ids are 0."""
        if category_id not in self.by_id:
            return 0
        depth = 1
        parent = self.parent(category_id)
        while parent is not None and depth <= len(self.by_id):
            depth += 1
            parent = self.parent(parent.id)
        return depth

    def max_depth(self) -> int:
        return max((self.depth(cid) for cid in self.by_id), default=0)
