"""Paged reads from Supabase tables."""
from typing import Any, Callable, Dict, List

# PostgREST truncates unpaged responses at its max-rows setting (1000 on Supabase)
PAGE_SIZE = 1000


def fetch_all_rows(build_query: Callable[[], Any], page_size: int = PAGE_SIZE) -> List[Dict[str, Any]]:
    """
    Read every row of a query one .range() page at a time.

    Args:
        build_query: Returns a fresh, ordered query on each call; the
            ordering keeps pages from overlapping
        page_size: Rows per request, no larger than the server's max-rows

    Returns:
        All rows across pages, in query order
    """
    rows: List[Dict[str, Any]] = []
    start = 0
    while True:
        page = build_query().range(start, start + page_size - 1).execute().data or []
        rows.extend(page)
        if len(page) < page_size:
            return rows
        start += page_size
