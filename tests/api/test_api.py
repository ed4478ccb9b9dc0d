"""
Tests for the FastAPI application.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from api.config import config as api_config
from api.main import app
from api.models import AuthorCount, BookListResponse, BookStats
from api.rate_limit import rate_limiter
from books.database import BookIdConflictError
from books.models import ImportStats


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def mock_db_service():
    """Mock database service."""
    mock = AsyncMock()
    with patch("api.main.db_service", mock):
        yield mock


def test_health_check_without_database(client):
    """Health reports degraded when no database service is up."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["database_status"] == "unavailable"
    assert "timestamp" in data
    assert "version" in data


def test_health_check_with_database(client, mock_db_service):
    mock_db_service.health_check.return_value = {"status": "healthy"}
    response = client.get("/health")
    assert response.json()["status"] == "healthy"


def test_books_endpoint_without_database(client):
    response = client.get("/api/books")
    assert response.status_code == 503
    assert response.json()["error"] == "Database service not available"


def test_books_endpoint_defaults(client, mock_db_service, sample_book):
    """List returns the paginated envelope in camelCase."""
    mock_db_service.get_books.return_value = BookListResponse(
        data=[sample_book], total_pages=1, current_page=1, total_items=1
    )

    response = client.get("/api/books")

    assert response.status_code == 200
    data = response.json()
    assert data["totalPages"] == 1
    assert data["currentPage"] == 1
    assert data["totalItems"] == 1
    assert data["data"][0]["bookId"] == 7
    assert data["data"][0]["exclusiveShelf"] == "read"

    query_params = mock_db_service.get_books.call_args.args[0]
    assert query_params.page == 1
    assert query_params.limit == 10
    assert query_params.sort == "dateAdded"
    assert query_params.order == "desc"


def test_books_endpoint_with_query_params(client, mock_db_service):
    mock_db_service.get_books.return_value = BookListResponse(
        data=[], total_pages=0, current_page=2, total_items=0
    )

    response = client.get(
        "/api/books?page=2&limit=5&sort=title&order=asc&shelf=to-read"
        "&search=le+guin&minRating=3&maxRating=5&startDate=2024-01-01&endDate=2024-12-31"
    )

    assert response.status_code == 200
    query_params = mock_db_service.get_books.call_args.args[0]
    assert query_params.page == 2
    assert query_params.limit == 5
    assert query_params.shelf == "to-read"
    assert query_params.search == "le guin"
    assert query_params.min_rating == 3
    assert query_params.end_date.hour == 23


@pytest.mark.parametrize("query,field", [
    ("page=0", "page"),
    ("limit=abc", "limit"),
    ("limit=500", "limit"),
    ("order=sideways", "order"),
    ("shelf=finished", "shelf"),
    ("sort=__proto__", "sort"),
    ("minRating=7", "minRating"),
    ("startDate=not-a-date", "startDate"),
])
def test_books_endpoint_rejects_invalid_params(client, mock_db_service, query, field):
    """Invalid query parameters produce 400 with field errors."""
    response = client.get(f"/api/books?{query}")

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid query parameters"
    assert body["errors"][0]["field"] == field
    mock_db_service.get_books.assert_not_called()


def test_books_endpoint_rejects_inverted_rating_range(client, mock_db_service):
    response = client.get("/api/books?minRating=4&maxRating=2")
    assert response.status_code == 400
    assert "maxRating" in response.json()["errors"][0]["message"]


def test_books_endpoint_rejects_huge_page(client, mock_db_service):
    response = client.get("/api/books?page=10000000000000000000")

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "page"
    mock_db_service.get_books.assert_not_called()


def test_book_by_id_endpoint(client, mock_db_service, sample_book):
    mock_db_service.get_book_by_id.return_value = sample_book

    response = client.get("/api/books/7")

    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "The Left Hand of Darkness"
    assert data["beqValue"] == 1.02
    mock_db_service.get_book_by_id.assert_awaited_once_with(7)


def test_book_not_found(client, mock_db_service):
    mock_db_service.get_book_by_id.return_value = None
    response = client.get("/api/books/999")
    assert response.status_code == 404
    assert response.json()["error"] == "Book not found"


@pytest.mark.parametrize("book_id", ["abc", "0", "-3", "1.5"])
def test_invalid_book_id(client, mock_db_service, book_id):
    response = client.get(f"/api/books/{book_id}")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid book ID"


def test_create_book(client, mock_db_service, sample_book, sample_book_payload):
    mock_db_service.create_book.return_value = sample_book

    response = client.post("/api/books", json=sample_book_payload)

    assert response.status_code == 201
    assert response.json()["bookId"] == 7
    payload = mock_db_service.create_book.call_args.args[0]
    assert payload.title == sample_book_payload["title"]
    assert payload.book_id is None


def test_create_book_missing_fields(client, mock_db_service):
    response = client.post("/api/books", json={"title": "", "pages": 0})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid book data"
    fields = {error["field"] for error in body["errors"]}
    assert {"title", "author", "pages"} <= fields
    mock_db_service.create_book.assert_not_called()


def test_create_book_rejects_bad_shelf(client, mock_db_service, sample_book_payload):
    sample_book_payload["exclusiveShelf"] = "abandoned"
    response = client.post("/api/books", json=sample_book_payload)
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "exclusiveShelf"


def test_create_book_conflict(client, mock_db_service, sample_book_payload):
    mock_db_service.create_book.side_effect = BookIdConflictError(7)
    sample_book_payload["bookId"] = 7

    response = client.post("/api/books", json=sample_book_payload)

    assert response.status_code == 409


def test_create_book_hides_error_details(client, mock_db_service, sample_book_payload):
    mock_db_service.create_book.side_effect = RuntimeError("connection reset by peer")

    with patch("api.main.api_config.environment", "production"):
        response = client.post("/api/books", json=sample_book_payload)

    assert response.status_code == 500
    assert "connection reset" not in response.text


def test_update_book(client, mock_db_service, sample_book, sample_book_payload):
    mock_db_service.update_book.return_value = sample_book

    response = client.put("/api/books/7", json=sample_book_payload)

    assert response.status_code == 200
    book_id, payload = mock_db_service.update_book.call_args.args
    assert book_id == 7
    assert "rating" in payload.model_fields_set
    assert "ownedCopies" not in payload.to_update()


def test_update_book_not_found(client, mock_db_service, sample_book_payload):
    mock_db_service.update_book.return_value = None
    response = client.put("/api/books/42", json=sample_book_payload)
    assert response.status_code == 404


def test_delete_book(client, mock_db_service):
    mock_db_service.delete_book.return_value = True
    response = client.delete("/api/books/7")
    assert response.status_code == 200
    assert response.json() == {"message": "Book removed"}


def test_delete_book_not_found(client, mock_db_service):
    mock_db_service.delete_book.return_value = False
    response = client.delete("/api/books/7")
    assert response.status_code == 404


def test_stats_endpoint(client, mock_db_service):
    mock_db_service.get_stats.return_value = BookStats(
        total_books=3,
        read_books=1,
        reading_books=1,
        to_read_books=1,
        total_pages_read=304,
        average_rating=4.5,
        top_authors=[AuthorCount(author="Ursula K. Le Guin", count=2)]
    )

    response = client.get("/api/books/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["totalBooks"] == 3
    assert data["totalPagesRead"] == 304
    assert data["topAuthors"] == [{"author": "Ursula K. Le Guin", "count": 2}]


def test_bookshelves_endpoint(client, mock_db_service):
    mock_db_service.get_bookshelves.return_value = ["classics", "sci-fi"]
    response = client.get("/api/books/bookshelves")
    assert response.status_code == 200
    assert response.json() == ["classics", "sci-fi"]


def test_import_endpoint(client, mock_db_service, sample_book_payload):
    mock_db_service.import_books.return_value = ImportStats(
        added=1, updated=0, failed=1, errors=["Item 1: invalid fields: pages"]
    )

    response = client.post("/api/books/import", json=[sample_book_payload, {"title": "x"}])

    assert response.status_code == 200
    assert response.json()["failed"] == 1


def test_import_endpoint_passes_malformed_items_through(client, mock_db_service, sample_book_payload):
    """Items that are not objects are reported per item, not by rejecting the batch."""
    mock_db_service.import_books.return_value = ImportStats(
        added=1, failed=1, errors=["Item 1: invalid fields: item"]
    )

    response = client.post("/api/books/import", json=[sample_book_payload, 5])

    assert response.status_code == 200
    assert response.json()["added"] == 1
    items = mock_db_service.import_books.call_args.args[0]
    assert items == [sample_book_payload, 5]


def test_import_endpoint_requires_list(client, mock_db_service):
    response = client.post("/api/books/import", json={"title": "x"})
    assert response.status_code == 400


def test_export_endpoint_streams_json(client, mock_db_service):
    async def chunks():
        yield "["
        yield '{"bookId": 1}'
        yield ',{"bookId": 2}'
        yield "]"

    mock_db_service.export_books = lambda: chunks()

    response = client.get("/api/books/export")

    assert response.status_code == 200
    assert response.json() == [{"bookId": 1}, {"bookId": 2}]


def test_rate_limit_headers(client, mock_db_service):
    """Rate limit headers are included in API responses."""
    mock_db_service.get_bookshelves.return_value = []

    response = client.get("/api/books/bookshelves")

    assert response.headers["X-RateLimit-Limit"] == "100"
    assert response.headers["X-RateLimit-Remaining"] == "99"
    assert "X-RateLimit-Reset" in response.headers


def test_rate_limit_exceeded(client, mock_db_service):
    mock_db_service.get_bookshelves.return_value = []

    with patch("api.rate_limit.rate_limiter.max_requests", 2):
        assert client.get("/api/books/bookshelves").status_code == 200
        assert client.get("/api/books/bookshelves").status_code == 200
        response = client.get("/api/books/bookshelves")

    assert response.status_code == 429
    assert "Retry-After" in response.headers


def test_rate_limit_ignores_spoofed_forwarded_for(client, mock_db_service):
    mock_db_service.get_bookshelves.return_value = []

    with patch("api.rate_limit.rate_limiter.max_requests", 2):
        statuses = [
            client.get("/api/books/bookshelves", headers={"X-Forwarded-For": f"10.0.0.{i}"}).status_code
            for i in range(5)
        ]

    assert statuses == [200, 200, 429, 429, 429]
    assert rate_limiter.requests.keys() == {"testclient"}


def test_security_headers(client):
    response = client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_metrics_endpoint(client, mock_db_service):
    mock_db_service.get_bookshelves.return_value = []
    client.get("/api/books/bookshelves")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "mongo_operation_duration_seconds" in response.text


def test_openapi_description_comes_from_config():
    assert app.description == api_config.api_description


def test_unknown_route(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
