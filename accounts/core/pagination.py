"""Page/limit parsing and pagination metadata."""

import math
from typing import Any, NamedTuple

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50
MAX_LIMIT = 100


class Pagination(NamedTuple):
    current_page: int
    total_pages: int
    offset: int
    limit: int
    total_items: int


def parse_page(page: Any) -> int:
    try:
        page_no = int(page)
    except (TypeError, ValueError):
        return DEFAULT_PAGE
    return page_no if page_no >= 1 else DEFAULT_PAGE


def parse_limit(limit: Any) -> int:
    try:
        limit_val = int(limit)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    if limit_val < 1:
        return DEFAULT_LIMIT
    return min(limit_val, MAX_LIMIT)


def calculate_pagination(total_items: int, page: Any = DEFAULT_PAGE, limit: Any = DEFAULT_LIMIT) -> Pagination:
    """Clamp ``page`` into ``[1, total_pages]``; an empty set still has one page."""
    limit_val = parse_limit(limit)
    total_pages = max(math.ceil(total_items / limit_val), 1)
    current_page = min(parse_page(page), total_pages)
    return Pagination(
        current_page=current_page,
        total_pages=total_pages,
        offset=(current_page - 1) * limit_val,
        limit=limit_val,
        total_items=total_items,
    )
