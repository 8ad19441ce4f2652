"""
Centralized configuration for the import pipeline.
"""
from __future__ import annotations

import os
from typing import Mapping, Optional, Any

from dotenv import load_dotenv

# Load environment variables early (before anything reads them)
load_dotenv()


def get_int_env(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on blank or garbage values."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def get_optional_int_env(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


# Source files (relative paths resolve against the working directory)
PRODUCTS_CSV_PATH: str = os.getenv("PRODUCTS_CSV_PATH") or "docs/megaskyshop.products.csv"
ORDERS_CSV_PATH: str = os.getenv("ORDERS_CSV_PATH") or "docs/megaskyshop.orders.csv"

# Products whose category label matches nothing land here
DEFAULT_CATEGORY_NAME: str = os.getenv("DEFAULT_CATEGORY_NAME") or "Magic Condom"
DEFAULT_CATEGORY_ID: Optional[int] = get_optional_int_env("DEFAULT_CATEGORY_ID")

# The order export flattens line items into items[0..N-1].* columns
MAX_ORDER_ITEM_SLOTS: int = max(1, get_int_env("MAX_ORDER_ITEM_SLOTS", 2))

PLACEHOLDER_IMAGE_PATH: str = os.getenv("PLACEHOLDER_IMAGE_PATH") or "uploads/placeholder.jpg"

LOG_LEVEL: str = (os.getenv("LOG_LEVEL") or "INFO").upper()

MAX_UPLOAD_BYTES: int = get_int_env("MAX_UPLOAD_BYTES", 50 * 1024 * 1024)


def resolve_default_category_id(
    category_ids: Mapping[str, int],
    explicit_id: Optional[Any] = None,
    default_name: Optional[str] = None,
) -> Optional[int]:
    """
    Pick the fallback category id: an explicit id wins, then the configured
    category name, then the first known category. None only when no categories exist.
    """
    candidate = explicit_id if explicit_id is not None else DEFAULT_CATEGORY_ID
    if candidate is not None:
        try:
            return int(candidate)
        except (TypeError, ValueError):
            pass

    name = (default_name or DEFAULT_CATEGORY_NAME or "").strip().lower()
    for key, value in category_ids.items():
        if key.strip().lower() == name:
            return value

    for value in category_ids.values():
        return value
    return None
