# payments/utils/paging.py

import math
from datetime import timedelta

from payments.exceptions import InvalidPagination, InvalidPeriod

PERIODS = {
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
    '90d': timedelta(days=90),
    '1y': timedelta(days=365),
}

MAX_PAGE_SIZE = 100


def period_start(period, now):
    try:
        return now - PERIODS[period]
    except KeyError:
        raise InvalidPeriod(f"Unknown period {period!r}; expected one of {', '.join(PERIODS)}.")


def paginate(queryset, page=1, limit=20):
    """Slice a queryset and return (rows, pagination dict)."""
    try:
        page = int(page)
        limit = int(limit)
    except (TypeError, ValueError):
        raise InvalidPagination("page and limit must be integers.")
    if page < 1 or limit < 1:
        raise InvalidPagination("page and limit must be positive.")
    limit = min(limit, MAX_PAGE_SIZE)

    total = queryset.count()
    offset = (page - 1) * limit
    rows = list(queryset[offset:offset + limit])
    return rows, {
        'page': page,
        'limit': limit,
        'total': total,
        'total_pages': math.ceil(total / limit) if total else 0,
    }
