import math
import re

from app.config import settings

_LEADING_DIGITS_RE = re.compile(r"\d+", re.ASCII)


def coerce_positive_int(value, default: int) -> int:
    """
    Parse a pagination parameter the lenient way: leading ASCII digits are
    used (``"2abc"`` -> 2), anything absent, non-numeric or below 1 falls
    back to *default*.  Never raises.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value >= 1 else default
    if value is None:
        return default

    match = _LEADING_DIGITS_RE.match(str(value).strip())
    if match is None:
        return default
    try:
        number = int(match.group())
    except ValueError:
        return default
    return number if number >= 1 else default


def resolve_page(page, page_size) -> tuple[int, int]:
    """Return ``(page, page_size)`` with the defaults applied."""
    page = coerce_positive_int(page, 1)
    page_size = coerce_positive_int(page_size, settings.DEFAULT_PAGE_SIZE)
    return page, page_size


def page_count(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total > 0 else 0
