"""
Database service layer for the FastAPI application.
"""

import json
import math
import re
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import structlog
from pymongo import ASCENDING, DESCENDING

from api.metrics import track_db_operation
from api.models import AuthorCount, BookListResponse, BookQueryParams, BookStats, SortOrder
from books.database import MongoDBManager
from books.models import Book, BookCreate, ImportStats, Shelf

logger = structlog.get_logger(__name__)

SEARCH_FIELDS = ("title", "author", "publisher", "review")


def build_book_filter(query_params: BookQueryParams) -> Dict[str, Any]:
    """
    Translate list query parameters into a MongoDB filter document.

    Args:
        query_params: Validated query parameters

    Returns:
        Filter suitable for find() and count_documents()
    """
    filter_query: Dict[str, Any] = {}

    if query_params.shelf:
        filter_query["exclusiveShelf"] = Shelf(query_params.shelf).value

    if query_params.min_rating is not None or query_params.max_rating is not None:
        rating_filter = {}
        if query_params.min_rating is not None:
            rating_filter["$gte"] = query_params.min_rating
        if query_params.max_rating is not None:
            rating_filter["$lte"] = query_params.max_rating
        filter_query["rating"] = rating_filter

    if query_params.start_date or query_params.end_date:
        date_filter = {}
        if query_params.start_date:
            date_filter["$gte"] = query_params.start_date
        if query_params.end_date:
            date_filter["$lte"] = query_params.end_date
        filter_query["dateRead"] = date_filter

    if query_params.search:
        pattern = re.escape(query_params.search)
        filter_query["$or"] = [
            {field: {"$regex": pattern, "$options": "i"}} for field in SEARCH_FIELDS
        ]

    return filter_query


def build_sort(query_params: BookQueryParams) -> List[Tuple[str, int]]:
    """
    Sort keys for a listing.

    bookId is appended as a tiebreaker so pages never overlap when the sort key repeats.
    """
    direction = ASCENDING if SortOrder(query_params.order) == SortOrder.ASC else DESCENDING
    sort_field = getattr(query_params.sort, "value", query_params.sort)
    sort_query = [(sort_field, direction)]
    if sort_field != "bookId":
        sort_query.append(("bookId", direction))
    return sort_query


class APIDatabaseService:
    """Database service for API operations."""

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager

    @property
    def books_collection(self):
        return self.db_manager.collection

    async def get_books(self, query_params: BookQueryParams) -> BookListResponse:
        """
        Get books with filtering, sorting, and pagination.

        Args:
            query_params: Query parameters for filtering and pagination

        Returns:
            BookListResponse with paginated results
        """
        filter_query = build_book_filter(query_params)
        sort_query = build_sort(query_params)

        try:
            async with track_db_operation("find"):
                total = await self.books_collection.count_documents(filter_query)
                cursor = (
                    self.books_collection.find(filter_query)
                    .sort(sort_query)
                    .skip(query_params.skip)
                    .limit(query_params.limit)
                )
                documents = await cursor.to_list(length=query_params.limit)

        except Exception as e:
            logger.error("Failed to get books", error=str(e), filter=str(filter_query))
            raise

        return BookListResponse(
            data=[Book.from_document(document) for document in documents],
            total_pages=math.ceil(total / query_params.limit),
            current_page=query_params.page,
            total_items=total
        )

    async def get_book_by_id(self, book_id: int) -> Optional[Book]:
        """
        Get a single book by ID.

        Args:
            book_id: Numeric book identifier

        Returns:
            Book if found, None otherwise
        """
        try:
            async with track_db_operation("findOne"):
                document = await self.books_collection.find_one({"bookId": book_id})
        except Exception as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise

        return Book.from_document(document) if document else None

    async def create_book(self, payload: BookCreate) -> Book:
        async with track_db_operation("insertOne"):
            return await self.db_manager.insert_book(payload)

    async def update_book(self, book_id: int, payload: BookCreate) -> Optional[Book]:
        async with track_db_operation("findOneAndUpdate"):
            return await self.db_manager.update_book(book_id, payload)

    async def delete_book(self, book_id: int) -> bool:
        async with track_db_operation("findOneAndDelete"):
            return await self.db_manager.delete_book(book_id)

    async def import_books(self, items: List[Dict[str, Any]]) -> ImportStats:
        async with track_db_operation("import"):
            return await self.db_manager.import_books(items)

    async def get_bookshelves(self) -> List[str]:
        async with track_db_operation("distinct"):
            return await self.db_manager.get_bookshelves()

    async def _aggregate_first(self, pipeline: List[Dict[str, Any]], field: str) -> float:
        cursor = self.books_collection.aggregate(pipeline)
        result = await cursor.to_list(length=1)
        if result and result[0].get(field) is not None:
            return result[0][field]
        return 0

    async def get_stats(self) -> BookStats:
        """
        Reading statistics: shelf counts, pages read, average rating and top authors.
        """
        try:
            async with track_db_operation("aggregate"):
                total_books = await self.books_collection.count_documents({})
                read_books = await self.books_collection.count_documents(
                    {"exclusiveShelf": Shelf.READ.value}
                )
                reading_books = await self.books_collection.count_documents(
                    {"exclusiveShelf": Shelf.CURRENTLY_READING.value}
                )
                to_read_books = await self.books_collection.count_documents(
                    {"exclusiveShelf": Shelf.TO_READ.value}
                )

                total_pages_read = await self._aggregate_first([
                    {"$match": {"exclusiveShelf": Shelf.READ.value}},
                    {"$group": {"_id": None, "totalPages": {"$sum": "$pages"}}}
                ], "totalPages")

                average_rating = await self._aggregate_first([
                    {"$match": {"rating": {"$gt": 0}}},
                    {"$group": {"_id": None, "avgRating": {"$avg": "$rating"}}}
                ], "avgRating")

                cursor = self.books_collection.aggregate([
                    {"$group": {"_id": "$author", "count": {"$sum": 1}}},
                    {"$sort": {"count": -1, "_id": 1}},
                    {"$limit": 5}
                ])
                top_authors = await cursor.to_list(length=5)

        except Exception as e:
            logger.error("Failed to get book statistics", error=str(e))
            raise

        return BookStats(
            total_books=total_books,
            read_books=read_books,
            reading_books=reading_books,
            to_read_books=to_read_books,
            total_pages_read=int(total_pages_read),
            average_rating=float(average_rating),
            top_authors=[
                AuthorCount(author=entry["_id"], count=entry["count"]) for entry in top_authors
            ]
        )

    async def export_books(self) -> AsyncIterator[str]:
        """
        Stream every book as chunks of a single JSON array.

        Yields:
            Text chunks that concatenate to a JSON array of books
        """
        yield "["
        exported = 0
        try:
            async for book in self.db_manager.iter_books():
                chunk = json.dumps(book.model_dump(mode="json", by_alias=True))
                yield chunk if exported == 0 else "," + chunk
                exported += 1
        except Exception as e:
            # Headers are already sent, so the client only sees a truncated body
            logger.error("Export failed mid-stream", error=str(e), exported=exported)
            raise
        yield "]"
        logger.info("Books exported", exported=exported)

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.db_manager.database.command("ping")
            books_count = await self.books_collection.count_documents({})

            return {
                "status": "healthy",
                "books_collection": "accessible",
                "books_count": books_count
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
