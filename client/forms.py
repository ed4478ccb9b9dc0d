"""
Field-level validation for the add/edit book form.

Raw form values arrive as strings. validate_book_form converts them into an
API payload and collects a message per invalid field, so nothing is submitted
until every field passes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from books.models import Shelf
from client.formatting import parse_datetime

TEXT_FIELDS = ("publisher", "isbn", "binding", "review", "privateNotes")
YEAR_FIELDS = ("published", "editionPublished")
COUNT_FIELDS = ("readCount", "ownedCopies")


@dataclass
class FormResult:
    """Converted payload plus any field errors."""
    data: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _parse_int(value: Any) -> Optional[int]:
    text = _text(value)
    if not text:
        return None
    return int(text)


def split_bookshelves(value: Any) -> list:
    """Turn 'sci-fi, classics,' into ['sci-fi', 'classics']."""
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = _text(value).split(",")
    return [item.strip() for item in items if item and str(item).strip()]


def validate_book_form(values: Dict[str, Any]) -> FormResult:
    """
    Validate and convert raw form values.

    Args:
        values: Form values keyed by API field name

    Returns:
        FormResult; submit result.data only when result.is_valid
    """
    result = FormResult()

    for name, message in (("title", "Title is required"), ("author", "Author is required")):
        text = _text(values.get(name))
        if text:
            result.data[name] = text
        else:
            result.errors[name] = message

    try:
        pages = _parse_int(values.get("pages"))
        if pages is None:
            result.errors["pages"] = "Page count is required"
        elif pages < 1:
            result.errors["pages"] = "Must be at least 1"
        else:
            result.data["pages"] = pages
    except ValueError:
        result.errors["pages"] = "Page count must be a whole number"

    rating_text = _text(values.get("rating"))
    if rating_text:
        try:
            rating = float(rating_text)
            if 0 <= rating <= 5:
                result.data["rating"] = rating
            else:
                result.errors["rating"] = "Rating must be between 0 and 5"
        except ValueError:
            result.errors["rating"] = "Rating must be a number"

    shelf = _text(values.get("exclusiveShelf")) or Shelf.TO_READ.value
    if shelf in {s.value for s in Shelf}:
        result.data["exclusiveShelf"] = shelf
    else:
        result.errors["exclusiveShelf"] = "Shelf must be read, currently-reading or to-read"

    # The read date only applies to books on the read shelf
    date_text = _text(values.get("dateRead"))
    if date_text and shelf == Shelf.READ.value:
        read_on = parse_datetime(date_text)
        if read_on:
            result.data["dateRead"] = read_on.isoformat()
        else:
            result.errors["dateRead"] = "Date must be in YYYY-MM-DD format"

    for name in YEAR_FIELDS:
        try:
            year = _parse_int(values.get(name))
            if year is not None:
                result.data[name] = year
        except ValueError:
            result.errors[name] = "Year must be a whole number"

    for name in COUNT_FIELDS:
        try:
            count = _parse_int(values.get(name))
            if count is None:
                continue
            if count < 0:
                result.errors[name] = "Cannot be negative"
            else:
                result.data[name] = count
        except ValueError:
            result.errors[name] = "Must be a whole number"

    for name in TEXT_FIELDS:
        text = _text(values.get(name))
        if text:
            result.data[name] = text

    if "bookshelves" in values:
        result.data["bookshelves"] = split_bookshelves(values.get("bookshelves"))

    return result
