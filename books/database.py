"""
MongoDB database utilities for async operations.
Handles connection, indexing, identifier assignment and write operations for book records.
"""

from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Union

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from .models import Book, BookCreate, ImportStats, utcnow

logger = structlog.get_logger(__name__)

COUNTERS_COLLECTION = "counters"
BOOK_ID_COUNTER = "bookId"


class BookIdConflictError(Exception):
    """Raised when a client-supplied bookId is already taken."""

    def __init__(self, book_id: int):
        self.book_id = book_id
        super().__init__(f"Book with ID {book_id} already exists")


class MongoDBManager:
    """
    Async MongoDB manager for book records.
    Handles connection, indexing, id assignment and writes.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        collection_name: str = "books",
        client_options: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            collection_name: Name of the books collection
            client_options: Extra keyword arguments for the motor client (pool sizes, timeouts)
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_name = collection_name
        self.client_options = client_options or {}
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection: Optional[AsyncIOMotorCollection] = None
        self.counters: Optional[AsyncIOMotorCollection] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB, create indexes and sync the id counter."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url, tz_aware=True, **self.client_options)
            self.database = self.client[self.database_name]
            self.collection = self.database[self.collection_name]
            self.counters = self.database[COUNTERS_COLLECTION]

            await self.client.admin.command("ping")
            logger.info("Successfully connected to MongoDB",
                        database=self.database_name,
                        collection=self.collection_name)

            await self._create_indexes()
            await self.sync_book_id_counter()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """
        Create indexes for the list, search and stats query patterns.
        """
        try:
            await self.collection.create_index("bookId", unique=True)
            await self.collection.create_index("title")
            await self.collection.create_index("author")

            # Shelf filter sorted by read date
            await self.collection.create_index([("exclusiveShelf", ASCENDING), ("dateRead", DESCENDING)])

            # Author listings and top-author grouping
            await self.collection.create_index([("author", ASCENDING), ("title", ASCENDING)])

            # Default list ordering
            await self.collection.create_index([("dateAdded", DESCENDING)])

            await self.collection.create_index("bookshelves", sparse=True)

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def get_max_book_id(self) -> int:
        """Highest bookId currently stored, or 0 for an empty collection."""
        document = await self.collection.find_one(
            {}, projection={"bookId": 1}, sort=[("bookId", DESCENDING)]
        )
        return document["bookId"] if document else 0

    async def sync_book_id_counter(self) -> int:
        """
        Raise the id counter to at least the current maximum bookId.

        Returns:
            The counter value after syncing
        """
        max_id = await self.get_max_book_id()
        counter = await self.counters.find_one_and_update(
            {"_id": BOOK_ID_COUNTER},
            {"$max": {"seq": max_id}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        logger.debug("Book id counter synced", seq=counter["seq"])
        return counter["seq"]

    async def next_book_id(self) -> int:
        """Atomically reserve the next bookId."""
        counter = await self.counters.find_one_and_update(
            {"_id": BOOK_ID_COUNTER},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return counter["seq"]

    async def get_average_pages(self) -> Optional[float]:
        """Average page count across books with a positive page count."""
        cursor = self.collection.aggregate([
            {"$match": {"pages": {"$gt": 0}}},
            {"$group": {"_id": None, "avgPages": {"$avg": "$pages"}}}
        ])
        result = await cursor.to_list(length=1)
        return result[0]["avgPages"] if result else None

    async def compute_beq_value(self, pages: int) -> float:
        """
        Page count relative to the collection's average page count.

        Args:
            pages: Page count of the book being stored

        Returns:
            Ratio rounded to two places; 1.0 when there is nothing to compare against
        """
        average = await self.get_average_pages()
        if not average:
            return 1.0
        return round(pages / average, 2)

    async def _prepare_document(self, payload: BookCreate, book_id: int) -> Dict[str, Any]:
        document = payload.to_document()
        now = utcnow()
        document["bookId"] = book_id
        if document.get("beqValue") is None:
            document["beqValue"] = await self.compute_beq_value(payload.pages)
        if document.get("dateAdded") is None:
            document["dateAdded"] = now
        document["createdAt"] = now
        document["updatedAt"] = now
        return document

    async def insert_book(self, payload: BookCreate) -> Book:
        """
        Insert a new book.

        Args:
            payload: Validated book payload; its bookId is used when present

        Returns:
            The stored Book

        Raises:
            BookIdConflictError: If the client-supplied bookId already exists
        """
        if payload.book_id is not None:
            book_id = payload.book_id
            await self.sync_book_id_counter_to(book_id)
        else:
            book_id = await self.next_book_id()

        document = await self._prepare_document(payload, book_id)
        try:
            await self.collection.insert_one(document)
        except DuplicateKeyError:
            logger.warning("Book already exists", book_id=book_id)
            raise BookIdConflictError(book_id)
        except Exception as e:
            logger.error("Failed to insert book", book_id=book_id, title=payload.title, error=str(e))
            raise

        logger.info("Book created", book_id=book_id, title=payload.title)
        return Book.from_document(document)

    async def sync_book_id_counter_to(self, book_id: int) -> None:
        """Keep the counter ahead of a client-supplied id."""
        await self.counters.update_one(
            {"_id": BOOK_ID_COUNTER},
            {"$max": {"seq": book_id}},
            upsert=True
        )

    async def update_book(self, book_id: int, payload: BookCreate) -> Optional[Book]:
        """
        Apply the fields sent in a payload to an existing book.

        Args:
            book_id: Identifier of the book to update
            payload: Validated book payload; its own bookId is ignored

        Returns:
            The updated Book, or None if not found
        """
        update_data = payload.to_update()
        if update_data.get("beqValue") is None:
            update_data.pop("beqValue", None)
        if update_data.get("dateAdded") is None:
            update_data.pop("dateAdded", None)
        update_data["updatedAt"] = utcnow()

        try:
            document = await self.collection.find_one_and_update(
                {"bookId": book_id},
                {"$set": update_data},
                return_document=ReturnDocument.AFTER
            )
        except Exception as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise

        if document is None:
            logger.warning("Book not found for update", book_id=book_id)
            return None

        logger.info("Book updated", book_id=book_id, fields=sorted(update_data))
        return Book.from_document(document)

    async def delete_book(self, book_id: int) -> bool:
        """
        Delete a book by identifier.

        Args:
            book_id: Identifier of the book to delete

        Returns:
            bool: True if deleted, False if not found
        """
        try:
            document = await self.collection.find_one_and_delete({"bookId": book_id})
        except Exception as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise

        if document is None:
            logger.warning("Book not found for deletion", book_id=book_id)
            return False

        logger.info("Book deleted", book_id=book_id)
        return True

    async def import_books(self, items: Iterable[Union[Dict[str, Any], BookCreate]]) -> ImportStats:
        """
        Insert or update many books, collecting per-item failures.

        Items whose bookId already exists are updated; everything else is inserted.
        A failing item is recorded in the result and does not stop the import.

        Args:
            items: Raw payload dicts or validated BookCreate instances

        Returns:
            ImportStats with added/updated/failed counts and error messages
        """
        stats = ImportStats()

        for index, item in enumerate(items):
            try:
                payload = item if isinstance(item, BookCreate) else BookCreate.model_validate(item)

                if payload.book_id is not None and await self.collection.count_documents(
                    {"bookId": payload.book_id}, limit=1
                ):
                    await self.update_book(payload.book_id, payload)
                    stats.updated += 1
                else:
                    await self.insert_book(payload)
                    stats.added += 1

            except ValidationError as e:
                stats.failed += 1
                fields = ", ".join(
                    ".".join(str(part) for part in error["loc"]) or "item" for error in e.errors()
                )
                stats.errors.append(f"Item {index}: invalid fields: {fields}")
            except BookIdConflictError as e:
                stats.failed += 1
                stats.errors.append(f"Item {index}: {e}")

        logger.info("Import completed", added=stats.added, updated=stats.updated, failed=stats.failed)
        return stats

    async def iter_books(self, batch_size: int = 100) -> AsyncIterator[Book]:
        """
        Iterate over every book ordered by bookId.

        Args:
            batch_size: Cursor batch size

        Yields:
            Book instances
        """
        cursor = self.collection.find({}).sort("bookId", ASCENDING).batch_size(batch_size)
        async for document in cursor:
            yield Book.from_document(document)

    async def get_books_count(self) -> int:
        """Get total number of books in the collection."""
        try:
            return await self.collection.count_documents({})
        except Exception as e:
            logger.error("Failed to get books count", error=str(e))
            raise

    async def get_bookshelves(self) -> List[str]:
        """Get the sorted list of distinct bookshelf tags."""
        try:
            bookshelves = await self.collection.distinct("bookshelves")
            return sorted(shelf for shelf in bookshelves if shelf)
        except Exception as e:
            logger.error("Failed to get bookshelves", error=str(e))
            raise
