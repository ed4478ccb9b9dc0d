"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from api.rate_limit import rate_limiter
from books.database import MongoDBManager
from books.models import Book


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Every test starts with an empty request budget."""
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def sample_book_payload():
    """Camel-case payload as a client would POST it."""
    return {
        "title": "The Left Hand of Darkness",
        "author": "Ursula K. Le Guin",
        "pages": 304,
        "rating": 5,
        "exclusiveShelf": "read",
        "dateRead": "2024-03-02",
        "bookshelves": ["sci-fi", "classics"],
        "publisher": "Ace",
    }


@pytest.fixture
def sample_book_document():
    """Book document as stored in MongoDB."""
    added = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    return {
        "_id": "65a4f0c2e4b0a1b2c3d4e5f6",
        "bookId": 7,
        "title": "The Left Hand of Darkness",
        "author": "Ursula K. Le Guin",
        "additionalAuthors": [],
        "rating": 5,
        "pages": 304,
        "beqValue": 1.02,
        "dateRead": datetime(2024, 3, 2, tzinfo=timezone.utc),
        "dateAdded": added,
        "bookshelves": ["sci-fi", "classics"],
        "bookshelvesWithPositions": [],
        "exclusiveShelf": "read",
        "readCount": 1,
        "ownedCopies": 0,
        "createdAt": added,
        "updatedAt": added,
    }


@pytest.fixture
def sample_book(sample_book_document):
    return Book.from_document(sample_book_document)


def make_cursor(documents):
    """Motor-style cursor: chainable sort/skip/limit plus async to_list."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.batch_size.return_value = cursor
    cursor.to_list = AsyncMock(return_value=list(documents))
    return cursor


@pytest.fixture
def mock_collection():
    """Mock motor collection with async query methods."""
    collection = MagicMock()
    collection.count_documents = AsyncMock(return_value=0)
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.find_one_and_delete = AsyncMock(return_value=None)
    collection.update_one = AsyncMock()
    collection.distinct = AsyncMock(return_value=[])
    collection.find.return_value = make_cursor([])
    collection.aggregate.return_value = make_cursor([])
    return collection


@pytest.fixture
def db_manager(mock_collection):
    """MongoDBManager wired to mock collections instead of a live server."""
    manager = MongoDBManager("mongodb://localhost:27017", "book_tracker_test")
    manager.collection = mock_collection
    manager.counters = MagicMock()
    manager.counters.find_one_and_update = AsyncMock(return_value={"_id": "bookId", "seq": 1})
    manager.counters.update_one = AsyncMock()
    manager.database = MagicMock()
    manager.database.command = AsyncMock(return_value={"ok": 1})
    return manager


@pytest.fixture
def mock_mongodb_manager():
    """Fully mocked MongoDB manager for service-level tests."""
    manager = AsyncMock(spec=MongoDBManager)
    manager.get_bookshelves.return_value = ["classics", "sci-fi"]
    manager.get_books_count.return_value = 3
    return manager


@pytest.fixture
def cursor_factory():
    """Build mock cursors for find()/aggregate() results."""
    return make_cursor
