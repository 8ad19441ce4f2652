"""
Field coercion helpers.
Raw CSV strings in, typed values out; never raises on bad input.
"""
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, Union
import logging

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal, str]

NULL_TOKENS = {"", "null", "none", "nan", "n/a", "undefined"}
TRUTHY_TOKENS = {"1", "true", "yes", "y", "on", "t"}
FALSY_TOKENS = {"0", "false", "no", "n", "off", "f"}

DATETIME_FORMATS = [
    '%Y-%m-%dT%H:%M:%S.%f', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M',
    '%Y-%m-%d %H:%M:%S.%f', '%Y-%m-%d %H:%M:%S', '%Y-%m-%d %H:%M', '%Y-%m-%d',
    '%Y/%m/%d %H:%M:%S', '%Y/%m/%d',
    '%m/%d/%Y %H:%M:%S', '%m/%d/%Y %H:%M', '%m/%d/%Y',
    '%d %b %Y %H:%M:%S', '%d %b %Y', '%b %d %Y %H:%M:%S', '%b %d %Y',
]

_TZ_SUFFIX = re.compile(r'(?:Z|[+-]\d{2}:?\d{2})$')
# "Mon May 26 2025 10:00:00 GMT+0600 (Bangladesh Standard Time)"
_JS_DATE = re.compile(
    r'^(?:[A-Za-z]{3},?\s+)?([A-Za-z]{3}\s+\d{1,2}\s+\d{4}\s+\d{1,2}:\d{2}:\d{2})'
    r'\s+GMT([+-]\d{2}):?(\d{2})'
)


def _clean(raw: Optional[object]) -> Optional[str]:
    if raw is None:
        return None
    text = str(raw).strip()
    if text.lower() in NULL_TOKENS:
        return None
    return text


def to_text(raw: Optional[object], default: Optional[str] = None) -> Optional[str]:
    """Stripped text, or default when the field is empty."""
    text = _clean(raw)
    return text if text is not None else default


def to_decimal(raw: Optional[object], default: Number = 0.0) -> Decimal:
    """Parse a numeric string; empty or unparsable input yields default."""
    fallback = Decimal(str(default))
    if isinstance(raw, Decimal):
        return raw if raw.is_finite() else fallback
    text = _clean(raw)
    if text is None:
        return fallback
    text = text.replace(",", "")
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        return fallback
    if not value.is_finite():
        return fallback
    return value


def to_int(raw: Optional[object], default: int = 0) -> int:
    """Parse an integer ("3" or "3.0"); fractions truncate toward zero."""
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    text = _clean(raw)
    if text is None:
        return default
    text = text.replace(",", "")
    try:
        return int(text)
    except ValueError:
        pass
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        return default
    if not value.is_finite():
        return default
    return int(value)


def to_bool(raw: Optional[object], default: bool = False) -> bool:
    """Map common truthy/falsy tokens; anything else (including empty) yields default."""
    if isinstance(raw, bool):
        return raw
    text = _clean(raw)
    if text is None:
        return default
    lowered = text.lower()
    if lowered in TRUTHY_TOKENS:
        return True
    if lowered in FALSY_TOKENS:
        return False
    return default


def _to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_timestamp(raw: Optional[object]) -> Optional[datetime]:
    """Parse a timestamp string to naive UTC; None when empty or unrecognized."""
    if isinstance(raw, datetime):
        return _to_naive_utc(raw)
    text = _clean(raw)
    if text is None:
        return None
    if text in ('0000-00-00', '0000-00-00 00:00:00'):
        return None

    iso = text[:-1] + '+00:00' if text.endswith('Z') else text
    try:
        return _to_naive_utc(datetime.fromisoformat(iso))
    except ValueError:
        pass

    js = _JS_DATE.match(text)
    if js:
        try:
            local = datetime.strptime(re.sub(r'\s+', ' ', js.group(1)), '%b %d %Y %H:%M:%S')
            sign = -1 if js.group(2).startswith('-') else 1
            offset = timedelta(hours=abs(int(js.group(2))), minutes=int(js.group(3)))
            return local - sign * offset
        except ValueError:
            pass

    offset_match = _TZ_SUFFIX.search(text)
    stripped = _TZ_SUFFIX.sub('', text).strip() if offset_match else text
    for fmt in DATETIME_FORMATS:
        try:
            dt = datetime.strptime(stripped, fmt)
        except ValueError:
            continue
        if offset_match and offset_match.group(0) != 'Z':
            suffix = offset_match.group(0).replace(':', '')
            sign = -1 if suffix.startswith('-') else 1
            dt = dt - sign * timedelta(hours=int(suffix[1:3]), minutes=int(suffix[3:5]))
        return dt

    return None


def to_timestamp(raw: Optional[object], fallback: Optional[datetime] = None) -> datetime:
    """
    Parse a source timestamp. Empty or unparsable input yields fallback, which
    defaults to the current wall-clock time, so a missing date reads as "imported now".
    """
    parsed = parse_timestamp(raw)
    if parsed is not None:
        return parsed
    if _clean(raw) is not None:
        logger.warning(f"Could not parse datetime: {raw}")
    return fallback if fallback is not None else datetime.now()


def normalize_image_path(raw: Optional[object]) -> Optional[str]:
    """Legacy exports prefix images with /uploads/; storage paths are relative."""
    path = to_text(raw)
    if path is None:
        return None
    if path.startswith('/uploads/'):
        return 'uploads/' + path[len('/uploads/'):]
    return path
