"""
Pydantic models for book record validation and serialization.
Implements the Book document schema, the create/update payload and import results.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Timezone-aware current UTC time at the millisecond precision BSON stores."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Shelf(str, Enum):
    """Primary reading-status shelf of a book."""
    READ = "read"
    CURRENTLY_READING = "currently-reading"
    TO_READ = "to-read"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class BookFields(CamelModel):
    """
    Fields shared by stored books and incoming payloads.
    """
    # Core book information
    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Primary author")
    author_by_last_name: Optional[str] = Field(None, description="Author as 'Last, First'")
    additional_authors: List[str] = Field(default_factory=list, description="Secondary authors")

    # Identifiers
    isbn: Optional[str] = Field(None, description="ISBN-10")
    isbn13: Optional[int] = Field(None, description="ISBN-13")

    # Ratings
    rating: float = Field(0, ge=0, le=5, description="Personal rating (0 = unrated)")
    average_rating: Optional[float] = Field(None, ge=0, le=5, description="Community average rating")

    # Edition details
    publisher: Optional[str] = None
    binding: Optional[str] = None
    pages: int = Field(..., ge=0, description="Number of pages")
    beq_value: Optional[float] = Field(None, ge=0, description="Page count relative to the collection average")
    edition_published: Optional[int] = Field(None, description="Year this edition was published")
    published: Optional[int] = Field(None, description="Original publication year")

    # Reading history
    date_read: Optional[datetime] = None
    bookshelves: List[str] = Field(default_factory=list, description="Free-text shelf tags")
    bookshelves_with_positions: List[str] = Field(default_factory=list)
    exclusive_shelf: Shelf = Field(Shelf.TO_READ.value, description="Primary shelf")

    # Notes
    review: Optional[str] = None
    spoiler: Optional[str] = None
    private_notes: Optional[str] = None
    read_count: int = Field(0, ge=0)
    owned_copies: int = Field(0, ge=0)

    @field_validator("title", "author")
    @classmethod
    def validate_not_blank(cls, v):
        """Reject whitespace-only titles and authors."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("bookshelves", "additional_authors")
    @classmethod
    def validate_tags(cls, v):
        """Strip tags and drop empty ones."""
        return [tag.strip() for tag in v if tag and tag.strip()]

    @field_validator("date_read")
    @classmethod
    def validate_date_read(cls, v):
        return as_utc(v)


class BookCreate(BookFields):
    """
    Payload accepted by create, update and import.

    The identifier is optional; when absent on create the server assigns one.
    """
    book_id: Optional[int] = Field(None, ge=1, description="Client-supplied identifier")
    pages: int = Field(..., ge=1, description="Number of pages")
    date_added: Optional[datetime] = None

    @field_validator("date_added")
    @classmethod
    def validate_date_added(cls, v):
        return as_utc(v)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "The Left Hand of Darkness",
                "author": "Ursula K. Le Guin",
                "pages": 304,
                "rating": 5,
                "exclusiveShelf": "read",
                "dateRead": "2024-03-02",
                "bookshelves": ["sci-fi", "classics"],
            }
        }
    )

    def to_document(self) -> Dict[str, Any]:
        """Fields to store, keyed by camelCase name, excluding the identifier."""
        return self.model_dump(by_alias=True, exclude={"book_id"})

    def to_update(self) -> Dict[str, Any]:
        """Only the fields the client actually sent, minus the identifier."""
        return self.model_dump(by_alias=True, exclude_unset=True, exclude={"book_id"})


class Book(BookFields):
    """
    Stored book document.
    """
    book_id: int = Field(..., ge=1, description="Unique numeric identifier")
    beq_value: float = Field(0, ge=0)
    date_added: datetime = Field(default_factory=utcnow)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Book":
        """Build a Book from a MongoDB document, ignoring its ObjectId."""
        data = {key: value for key, value in document.items() if key != "_id"}
        return cls.model_validate(data)


class ImportStats(BaseModel):
    """Outcome of a bulk import."""
    added: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)
