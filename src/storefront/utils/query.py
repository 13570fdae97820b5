"""Paged repository reads.

A Protean QuerySet returns a single page of results (100 rows unless told
otherwise). Sweeps and counts that must see every matching row walk the
pages with ``fetch_all``.
"""

PAGE_SIZE = 100


def fetch_all(repo, page_size: int = PAGE_SIZE, **filters) -> list:
    """Every aggregate in ``repo`` matching ``filters``, read page by page."""
    rows = []
    offset = 0
    while True:
        page = repo._dao.query.filter(**filters).order_by("id").offset(offset).limit(page_size).all()
        rows.extend(page.items)
        if len(page.items) < page_size:
            return rows
        offset += page_size
