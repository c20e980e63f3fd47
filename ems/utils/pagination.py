import math
from typing import Dict, Iterable, Optional

from ems.core.exceptions import ValidationFailed


def build_pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "totalItems": total,
        "itemsPerPage": limit,
    }


def parse_sort(sort: Optional[str], allowed: Iterable[str], default: str) -> str:
    """Accept `field` or `-field` for a whitelisted field name."""
    if not sort:
        return default
    sort = sort.strip()
    field = sort[1:] if sort.startswith(("-", "+")) else sort
    if field not in set(allowed):
        raise ValidationFailed(f"Cannot sort by '{field}'")
    return sort
