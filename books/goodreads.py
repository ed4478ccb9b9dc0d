"""
Conversion of Goodreads library export CSV rows into book payloads.
"""

import csv
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union


def _clean(value: Optional[str]) -> str:
    """Strip whitespace and the ="..." wrapper Goodreads puts around ISBNs."""
    if value is None:
        return ""
    value = value.strip()
    if value.startswith('="') and value.endswith('"'):
        value = value[2:-1]
    return value.strip()


def _int(value: Optional[str]) -> Optional[int]:
    text = _clean(value)
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def _float(value: Optional[str]) -> Optional[float]:
    text = _clean(value)
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _date(value: Optional[str]) -> Optional[str]:
    """Goodreads dates look like 2024/03/02; return ISO format."""
    text = _clean(value)
    if not text:
        return None
    for fmt in ("%Y/%m/%d", "%Y-%m-%d", "%m/%d/%Y"):
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def _list(value: Optional[str]) -> List[str]:
    return [item.strip() for item in _clean(value).split(",") if item.strip()]


def row_to_payload(row: Dict[str, str]) -> Dict[str, Any]:
    """
    Map one Goodreads CSV row to a camelCase book payload.

    Empty columns are left out so the payload's own defaults apply.
    The payload is not validated here; import_books does that per item.
    """
    payload = {
        "bookId": _int(row.get("Book Id")),
        "title": _clean(row.get("Title")),
        "author": _clean(row.get("Author")),
        "authorByLastName": _clean(row.get("Author l-f")) or None,
        "additionalAuthors": _list(row.get("Additional Authors")),
        "isbn": _clean(row.get("ISBN")) or None,
        "isbn13": _int(row.get("ISBN13")),
        "rating": _float(row.get("My Rating")),
        "averageRating": _float(row.get("Average Rating")),
        "publisher": _clean(row.get("Publisher")) or None,
        "binding": _clean(row.get("Binding")) or None,
        "pages": _int(row.get("Number of Pages")),
        "editionPublished": _int(row.get("Year Published")),
        "published": _int(row.get("Original Publication Year")),
        "dateRead": _date(row.get("Date Read")),
        "dateAdded": _date(row.get("Date Added")),
        "bookshelves": _list(row.get("Bookshelves")),
        "bookshelvesWithPositions": _list(row.get("Bookshelves with positions")),
        "exclusiveShelf": _clean(row.get("Exclusive Shelf")) or None,
        "review": _clean(row.get("My Review")) or None,
        "spoiler": _clean(row.get("Spoiler")) or None,
        "privateNotes": _clean(row.get("Private Notes")) or None,
        "readCount": _int(row.get("Read Count")),
        "ownedCopies": _int(row.get("Owned Copies")),
    }
    return {key: value for key, value in payload.items() if value is not None}


def read_goodreads_csv(path: Union[str, Path]) -> Iterator[Dict[str, Any]]:
    """
    Yield a payload per row of a Goodreads library export.

    Args:
        path: Path to goodreads_library_export.csv
    """
    with open(path, newline="", encoding="utf-8-sig") as handle:
        for row in csv.DictReader(handle):
            yield row_to_payload(row)
