"""
API models and schemas for the FastAPI application.
"""

import re
from datetime import date, datetime, time
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from books.models import Book, CamelModel, Shelf, as_utc

DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Keeps skip = (page - 1) * limit well inside a BSON int64
MAX_PAGE = 1_000_000


class SortBy(str, Enum):
    """Sortable fields for book listings."""
    DATE_ADDED = "dateAdded"
    DATE_READ = "dateRead"
    TITLE = "title"
    AUTHOR = "author"
    RATING = "rating"
    PAGES = "pages"
    PUBLISHED = "published"
    BOOK_ID = "bookId"
    AVERAGE_RATING = "averageRating"
    READ_COUNT = "readCount"


class SortOrder(str, Enum):
    """Sort order options."""
    ASC = "asc"
    DESC = "desc"


class BookQueryParams(CamelModel):
    """Query parameters for book listing."""
    page: int = Field(1, ge=1, le=MAX_PAGE, description="Page number")
    limit: int = Field(10, ge=1, le=100, description="Items per page")
    sort: SortBy = Field(SortBy.DATE_ADDED, description="Sort field")
    order: SortOrder = Field(SortOrder.DESC, description="Sort order")
    shelf: Optional[Shelf] = Field(None, description="Filter by primary shelf")
    search: Optional[str] = Field(None, max_length=200, description="Case-insensitive text search")
    min_rating: Optional[float] = Field(None, ge=0, le=5, description="Minimum rating (inclusive)")
    max_rating: Optional[float] = Field(None, ge=0, le=5, description="Maximum rating (inclusive)")
    start_date: Optional[datetime] = Field(None, description="Earliest read date (inclusive)")
    end_date: Optional[datetime] = Field(None, description="Latest read date (inclusive)")

    @model_validator(mode="before")
    @classmethod
    def drop_empty_values(cls, data: Any) -> Any:
        """Treat empty query string values as absent."""
        if isinstance(data, dict):
            return {
                key: value for key, value in data.items()
                if value is not None and not (isinstance(value, str) and not value.strip())
            }
        return data

    @field_validator("search")
    @classmethod
    def strip_search(cls, v):
        return v.strip() if v else v

    @field_validator("end_date", mode="before")
    @classmethod
    def expand_end_date(cls, v):
        """A date-only end bound covers the whole day."""
        if isinstance(v, str) and DATE_ONLY.match(v.strip()):
            return datetime.combine(date.fromisoformat(v.strip()), time.max)
        return v

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, v):
        """Naive datetimes are taken to be UTC."""
        return as_utc(v)

    @model_validator(mode="after")
    def validate_ranges(self):
        """Reject inverted rating and date ranges."""
        if (
            self.min_rating is not None
            and self.max_rating is not None
            and self.max_rating < self.min_rating
        ):
            raise ValueError("maxRating must be greater than or equal to minRating")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must be on or after startDate")
        return self

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class BookListResponse(CamelModel):
    """Paginated list of books."""
    data: List[Book] = Field(..., description="Books on this page")
    total_pages: int = Field(..., description="Total number of pages")
    current_page: int = Field(..., description="Current page number")
    total_items: int = Field(..., description="Total number of matching books")


class AuthorCount(BaseModel):
    """Number of books by one author."""
    author: Optional[str]
    count: int


class BookStats(CamelModel):
    """Reading statistics."""
    total_books: int
    read_books: int
    reading_books: int
    to_read_books: int
    total_pages_read: int
    average_rating: float
    top_authors: List[AuthorCount]


class MessageResponse(BaseModel):
    """Plain confirmation message."""
    message: str


class FieldError(BaseModel):
    """A single validation failure."""
    field: str = Field(..., description="Dotted path of the offending field")
    message: str = Field(..., description="What is wrong with it")
    type: str = Field(..., description="Validation error type")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")
    errors: Optional[List[FieldError]] = Field(None, description="Field-level validation errors")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
