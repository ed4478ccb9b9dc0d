"""
HTTP client for the Book Tracker API.

Reads are served from a short-lived QueryCache; every mutation invalidates
the cached queries it can affect.
"""

from typing import Any, Dict, Iterator, List, Optional

import httpx
import structlog

from client.cache import QueryCache, make_key

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000/api"

# Query keys touched by any change to the book collection
COLLECTION_QUERIES = ("books", "recentBooks", "bookStats", "bookshelves")


class APIError(Exception):
    """Error response returned by the API."""

    def __init__(self, status_code: int, message: str, errors: Optional[List[Dict]] = None):
        self.status_code = status_code
        self.message = message
        self.errors = errors or []
        super().__init__(f"{status_code}: {message}")


class BookNotFoundError(APIError):
    """The requested book does not exist."""


class BookAPIClient:
    """
    Client for the /api/books endpoints.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        cache_ttl_seconds: float = 30.0,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
        cache: Optional[QueryCache] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: API base URL including the /api prefix
            cache_ttl_seconds: Freshness window for cached reads
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
            cache: Optional pre-built cache
        """
        self.http = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"}
        )
        self.cache = cache or QueryCache(ttl_seconds=cache_ttl_seconds)

    def __enter__(self) -> "BookAPIClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.http.close()

    def _request(self, method: str, url: str, **kwargs) -> Any:
        response = self.http.request(method, url, **kwargs)
        if response.is_success:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("error") or body.get("message") or response.reason_phrase
        errors = body.get("errors")

        logger.warning("API request failed", method=method, url=url, status_code=response.status_code)
        if response.status_code == 404:
            raise BookNotFoundError(response.status_code, message, errors)
        raise APIError(response.status_code, message, errors)

    def _invalidate_collection(self, book_id: Optional[int] = None) -> None:
        for name in COLLECTION_QUERIES:
            self.cache.invalidate(name)
        if book_id is not None:
            self.cache.invalidate("book", book_id)

    # Reads

    def get_books(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Get a page of books.

        Args:
            filters: page, limit, sort, order, shelf, search, minRating, maxRating, startDate, endDate

        Returns:
            {"data": [...], "totalPages": n, "currentPage": n, "totalItems": n}
        """
        params = {k: v for k, v in (filters or {}).items() if v is not None and v != ""}
        return self.cache.get_or_fetch(
            make_key("books", params),
            lambda: self._request("GET", "/books", params=params)
        )

    def get_recent_books(self, limit: int = 5) -> List[Dict[str, Any]]:
        """Most recently added books, newest first, for the dashboard."""
        params = {"page": 1, "limit": limit, "sort": "dateAdded", "order": "desc"}
        result = self.cache.get_or_fetch(
            make_key("recentBooks", limit),
            lambda: self._request("GET", "/books", params=params)
        )
        return result["data"]

    def get_book(self, book_id: int) -> Dict[str, Any]:
        return self.cache.get_or_fetch(
            make_key("book", book_id),
            lambda: self._request("GET", f"/books/{book_id}")
        )

    def get_stats(self) -> Dict[str, Any]:
        return self.cache.get_or_fetch(
            make_key("bookStats"),
            lambda: self._request("GET", "/books/stats")
        )

    def get_bookshelves(self) -> List[str]:
        return self.cache.get_or_fetch(
            make_key("bookshelves"),
            lambda: self._request("GET", "/books/bookshelves")
        )

    def export_books(self) -> Iterator[str]:
        """Stream the JSON export as text chunks; never cached."""
        with self.http.stream("GET", "/books/export") as response:
            if not response.is_success:
                response.read()
                raise APIError(response.status_code, response.reason_phrase)
            yield from response.iter_text()

    # Mutations

    def create_book(self, book: Dict[str, Any]) -> Dict[str, Any]:
        created = self._request("POST", "/books", json=book)
        self._invalidate_collection()
        self.cache.set(make_key("book", created["bookId"]), created)
        return created

    def update_book(self, book_id: int, book: Dict[str, Any]) -> Dict[str, Any]:
        updated = self._request("PUT", f"/books/{book_id}", json=book)
        self._invalidate_collection(book_id)
        return updated

    def delete_book(self, book_id: int) -> None:
        self._request("DELETE", f"/books/{book_id}")
        self._invalidate_collection(book_id)

    def import_books(self, books: List[Dict[str, Any]]) -> Dict[str, Any]:
        stats = self._request("POST", "/books/import", json=books)
        self._invalidate_collection()
        self.cache.invalidate("book")
        return stats
