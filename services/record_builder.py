"""
Record Builder
Turns one CSV row into a normalized entity graph (no I/O):
  order   -> order + line items + courier tracking
  product -> product + main image + meta tags + review
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
import logging

from services.csv_reader import CsvRow
from services.errors import RowParseError
from services.field_mapper import (
    normalize_image_path, to_bool, to_decimal, to_int, to_text, to_timestamp,
)
from services.status_normalizer import normalize_status
from utils import sanitize_string

logger = logging.getLogger(__name__)

# ---------- Column schemas (validated against the header at startup) ----------

ORDER_COLUMNS: Dict[str, str] = {
    "name": "name",
    "email": "email",
    "shippingAddress": "shipping_address",
    "mobile": "mobile",
    "total": "total",
    "status": "status",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
ORDER_ITEM_FIELDS = ("id", "name", "quantity", "price", "image")
COURIER_COLUMNS = (
    "courier.trackingId", "courier.partnerId", "courier.status",
    "courier.createdAt", "courier.updatedAt",
)
COURIER_DETAIL_FIELDS = ("consignmentId", "invoice", "status", "createdAt")
ORDER_REQUIRED_COLUMNS = frozenset({"name", "total"})

PRODUCT_COLUMNS: Dict[str, str] = {
    "name": "name",
    "price": "price",
    "description": "description",
    "category": "category",
    "stock": "stock",
    "avgRating": "avg_rating",
    "metaDescription": "meta_description",
    "metaTitle": "meta_title",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
META_TAG_PREFIX = "metaTags"
REVIEW_PREFIX = "reviews[0]."
REVIEW_FIELDS = ("_id", "name", "rating", "comment", "isAnonymous", "createdAt")
PRODUCT_REQUIRED_COLUMNS = frozenset({"name", "price"})


def item_column(slot: int, field_name: str) -> str:
    return f"items[{slot}].{field_name}"


def expected_order_columns(max_item_slots: int) -> List[str]:
    columns = list(ORDER_COLUMNS) + list(COURIER_COLUMNS)
    columns += [f"courier.details.{f}" for f in COURIER_DETAIL_FIELDS]
    for slot in range(max_item_slots):
        columns += [item_column(slot, f) for f in ORDER_ITEM_FIELDS]
    return columns


def expected_product_columns(header: List[str]) -> List[str]:
    columns = list(PRODUCT_COLUMNS) + [REVIEW_PREFIX + f for f in REVIEW_FIELDS]
    # metaTags columns repeat (metaTags[0], metaTags[1], ...)
    columns += [h for h in header if h.startswith(META_TAG_PREFIX)]
    return columns


# ---------- Records ----------

@dataclass
class OrderItemRecord:
    name: str
    quantity: int
    price: Decimal
    image: Optional[str] = None
    product_id: Optional[int] = None


@dataclass
class OrderTrackingRecord:
    tracking_id: Optional[str]
    partner_id: Optional[str]
    status: str
    details: Optional[Dict[str, Any]]
    created_at: datetime
    updated_at: datetime


@dataclass
class OrderRecord:
    name: str
    email: Optional[str]
    shipping_address: str
    mobile: str
    total: Decimal
    status: str
    created_at: datetime
    updated_at: datetime
    user_id: Optional[int] = None


@dataclass
class OrderGraph:
    order: OrderRecord
    items: List[OrderItemRecord] = field(default_factory=list)
    tracking: Optional[OrderTrackingRecord] = None
    line_number: Optional[int] = None


@dataclass
class ProductImageRecord:
    image_path: str
    is_main: bool = True


@dataclass
class ProductMetaTagRecord:
    tag: str


@dataclass
class ReviewRecord:
    name: str
    rating: int
    comment: str
    is_anonymous: bool
    created_at: datetime
    updated_at: datetime


@dataclass
class ProductRecord:
    name: str
    price: Decimal
    description: str
    category: str
    category_id: Optional[int]
    stock: int
    main_image: str
    avg_rating: Decimal
    meta_description: str
    meta_title: str
    created_at: datetime
    updated_at: datetime


@dataclass
class ProductGraph:
    product: ProductRecord
    images: List[ProductImageRecord] = field(default_factory=list)
    meta_tags: List[ProductMetaTagRecord] = field(default_factory=list)
    review: Optional[ReviewRecord] = None
    line_number: Optional[int] = None


# ---------- Builders ----------

def _field(row: CsvRow, column: str) -> Optional[str]:
    return to_text(row.get(column))


def build_order_graph(
    row: CsvRow,
    resolve_product: Optional[Callable[[str], Optional[int]]] = None,
    max_item_slots: int = 2,
    now: Optional[datetime] = None,
) -> Optional[OrderGraph]:
    """
    Build the order graph for one row, or None when the row's first column is empty.
    Line item slots lacking a name, a positive quantity or a non-zero price are skipped.
    """
    if not row.values or not (row.values[0] or "").strip():
        return None

    now = now or datetime.now()
    status = normalize_status(row.get("status") or "Pending")
    try:
        order = OrderRecord(
            name=sanitize_string(_field(row, "name"), 255, default="Unknown") or "Unknown",
            email=_field(row, "email"),
            shipping_address=_field(row, "shippingAddress") or "",
            mobile=sanitize_string(_field(row, "mobile"), 64),
            total=to_decimal(row.get("total"), 0),
            status=status.value,
            created_at=to_timestamp(row.get("createdAt"), now),
            updated_at=to_timestamp(row.get("updatedAt"), now),
        )
    except Exception as e:
        raise RowParseError(f"order fields: {e}", line_number=row.line_number, raw=row.values) from e

    graph = OrderGraph(order=order, line_number=row.line_number)

    for slot in range(max_item_slots):
        item = _build_order_item(row, slot, resolve_product)
        if item is not None:
            graph.items.append(item)

    graph.tracking = _build_tracking(row, status.value, now)
    return graph


def _build_order_item(
    row: CsvRow,
    slot: int,
    resolve_product: Optional[Callable[[str], Optional[int]]],
) -> Optional[OrderItemRecord]:
    name = _field(row, item_column(slot, "name"))
    quantity = to_int(row.get(item_column(slot, "quantity")), 0)
    price = to_decimal(row.get(item_column(slot, "price")), 0)
    # A zero quantity or price marks an unused slot, same as an empty one
    if not name or quantity <= 0 or price == 0:
        return None

    product_id = None
    # Only rows that carried a product id in the export are linked to the catalog
    if resolve_product is not None and _field(row, item_column(slot, "id")):
        product_id = resolve_product(name)

    return OrderItemRecord(
        name=sanitize_string(name, 255),
        quantity=quantity,
        price=price,
        image=normalize_image_path(row.get(item_column(slot, "image"))),
        product_id=product_id,
    )


def _build_tracking(row: CsvRow, order_status: str, now: datetime) -> Optional[OrderTrackingRecord]:
    tracking_id = _field(row, "courier.trackingId")
    partner_id = _field(row, "courier.partnerId")
    courier_status = _field(row, "courier.status")
    if not (tracking_id or partner_id or courier_status):
        return None

    details = None
    if _field(row, "courier.details.consignmentId"):
        details = {
            name: _field(row, f"courier.details.{name}")
            for name in COURIER_DETAIL_FIELDS
        }

    return OrderTrackingRecord(
        tracking_id=tracking_id,
        partner_id=partner_id,
        status=normalize_status(courier_status or order_status).value,
        details=details,
        created_at=to_timestamp(row.get("courier.createdAt"), now),
        updated_at=to_timestamp(row.get("courier.updatedAt"), now),
    )


def build_product_graph(
    row: CsvRow,
    resolve_category: Optional[Callable[[str], Optional[int]]] = None,
    placeholder_image: str = "uploads/placeholder.jpg",
    now: Optional[datetime] = None,
) -> ProductGraph:
    """Build the product graph for one row: exactly one main image, one tag per non-empty metaTags column."""
    now = now or datetime.now()
    name = sanitize_string(_field(row, "name"), 255, default="Unnamed Product") or "Unnamed Product"
    category_label = sanitize_string(_field(row, "category"), 255, default="Uncategorized") or "Uncategorized"

    try:
        product = ProductRecord(
            name=name,
            price=to_decimal(row.get("price"), 0),
            description=_field(row, "description") or "",
            category=category_label,
            category_id=resolve_category(category_label) if resolve_category else None,
            stock=max(0, to_int(row.get("stock"), 0)),
            main_image=placeholder_image,
            avg_rating=_clamp_rating(to_decimal(row.get("avgRating"), 0)),
            meta_description=_field(row, "metaDescription") or "",
            meta_title=sanitize_string(_field(row, "metaTitle") or name, 255),
            created_at=to_timestamp(row.get("createdAt"), now),
            updated_at=to_timestamp(row.get("updatedAt"), now),
        )
    except Exception as e:
        raise RowParseError(f"product fields: {e}", line_number=row.line_number, raw=row.values) from e

    graph = ProductGraph(product=product, line_number=row.line_number)
    graph.images.append(ProductImageRecord(image_path=placeholder_image, is_main=True))

    for column in row.columns_with_prefix(META_TAG_PREFIX):
        tag = _field(row, column)
        if tag:
            graph.meta_tags.append(ProductMetaTagRecord(tag=tag))

    if _field(row, REVIEW_PREFIX + "_id"):
        rating = to_int(row.get(REVIEW_PREFIX + "rating"), 5)
        graph.review = ReviewRecord(
            name=sanitize_string(_field(row, REVIEW_PREFIX + "name"), 255, default="Anonymous") or "Anonymous",
            rating=min(5, max(1, rating)),
            comment=_field(row, REVIEW_PREFIX + "comment") or "",
            is_anonymous=to_bool(row.get(REVIEW_PREFIX + "isAnonymous"), False),
            created_at=to_timestamp(row.get(REVIEW_PREFIX + "createdAt"), now),
            updated_at=now,
        )

    return graph


def _clamp_rating(value: Decimal) -> Decimal:
    # avg_rating is NUMERIC(3,2)
    return min(Decimal("5"), max(Decimal("0"), value)).quantize(Decimal("0.01"))
