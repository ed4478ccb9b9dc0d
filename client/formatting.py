"""
Display formatting for book records, statistics and pagination.
"""

from datetime import date, datetime
from typing import List, Optional, Union

SHELF_LABELS = {
    "read": "Read",
    "currently-reading": "Currently Reading",
    "to-read": "To Read",
}

ELLIPSIS = "..."


def parse_datetime(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Accept API ISO strings (with or without a trailing Z) or date objects."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def format_date(value: Union[str, date, datetime, None], fmt: str = "%b %d, %Y") -> str:
    """Human-readable date, or 'N/A' when missing or unparseable."""
    parsed = parse_datetime(value)
    return parsed.strftime(fmt) if parsed else "N/A"


def format_rating(rating: Optional[float]) -> str:
    """Rating to one decimal place out of five."""
    return f"{(rating or 0):.1f}/5"


def format_stars(rating: Optional[float]) -> str:
    """Five-character star bar for a 0-5 rating."""
    filled = int(round(rating or 0))
    filled = max(0, min(5, filled))
    return "★" * filled + "☆" * (5 - filled)


def format_count(value: Optional[int]) -> str:
    """Integer with thousands separators."""
    return f"{(value or 0):,}"


def shelf_label(shelf: Optional[str]) -> str:
    return SHELF_LABELS.get(shelf or "", shelf or "Unknown")


def page_numbers(current_page: int, total_pages: int, visible_pages: int = 5) -> List[Union[int, str]]:
    """
    Page links to show around the current page.

    Always includes the first and last page; gaps are marked with an ellipsis.
    An empty list means there is nothing to paginate.

    >>> page_numbers(5, 10)
    [1, '...', 3, 4, 5, 6, 7, '...', 10]
    """
    if total_pages <= 1:
        return []

    if total_pages <= visible_pages:
        return list(range(1, total_pages + 1))

    start_page = max(current_page - visible_pages // 2, 1)
    end_page = min(start_page + visible_pages - 1, total_pages)

    # Near the end, slide the window back so it stays full
    if end_page - start_page + 1 < visible_pages:
        start_page = max(end_page - visible_pages + 1, 1)

    pages: List[Union[int, str]] = []
    if start_page > 1:
        pages.append(1)
        if start_page > 2:
            pages.append(ELLIPSIS)

    pages.extend(range(start_page, end_page + 1))

    if end_page < total_pages:
        if end_page < total_pages - 1:
            pages.append(ELLIPSIS)
        pages.append(total_pages)

    return pages


def format_book_line(book: dict) -> str:
    """One-line summary used in list views."""
    return (
        f"#{book.get('bookId')} {book.get('title')} by {book.get('author')} "
        f"[{shelf_label(book.get('exclusiveShelf'))}] {format_stars(book.get('rating'))}"
    )
