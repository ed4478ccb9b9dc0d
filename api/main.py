"""
FastAPI main application for the Book Tracker API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog
from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.config import config as api_config
from api.database import APIDatabaseService
from api.metrics import metrics_middleware, render_metrics
from api.models import (
    BookListResponse, BookQueryParams, BookStats,
    ErrorResponse, FieldError, HealthResponse, MessageResponse
)
from api.rate_limit import enforce_rate_limit, rate_limiter
from books.database import BookIdConflictError, MongoDBManager
from books.models import Book, BookCreate, ImportStats
from utilities.config import config

logger = structlog.get_logger(__name__)

# Global database service
db_service: Optional[APIDatabaseService] = None

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Book Tracker API", environment=api_config.environment)

    global db_service
    db_manager = MongoDBManager(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        collection_name=config.mongodb_collection,
        client_options=config.get_client_options()
    )
    try:
        await db_manager.connect()
        db_service = APIDatabaseService(db_manager)
        logger.info("Database connection established")
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    yield

    logger.info("Shutting down Book Tracker API")
    db_service = None
    await db_manager.disconnect()


app = FastAPI(
    title=api_config.api_title,
    description=api_config.api_description,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.get_cors_origins(),
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    """Add standard security headers to every response."""
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


app.middleware("http")(metrics_middleware)


def field_errors(errors: Sequence[Dict[str, Any]]) -> List[FieldError]:
    """Flatten pydantic error dicts into field/message pairs."""
    result = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        result.append(FieldError(
            field=".".join(location) or "request",
            message=error.get("msg", "Invalid value"),
            type=error.get("type", "value_error")
        ))
    return result


def validation_response(message: str, errors: Sequence[Dict[str, Any]]) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            errors=field_errors(errors)
        ).model_dump()
    )


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=str(exc.detail),
            status_code=exc.status_code
        ).model_dump(),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters are client errors, reported as 400."""
    errors = exc.errors()
    in_body = any(error.get("loc", ("",))[0] == "body" for error in errors)
    return validation_response("Invalid book data" if in_body else "Invalid request parameters", errors)


@app.exception_handler(ValidationError)
async def query_validation_handler(request: Request, exc: ValidationError):
    """Query models are validated inside the endpoints."""
    return validation_response("Invalid query parameters", exc.errors())


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if api_config.expose_error_details() else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump()
    )


def server_error(message: str, exc: Exception) -> HTTPException:
    """500 whose detail only carries the exception text in development."""
    detail = f"{message}: {exc}" if api_config.expose_error_details() else message
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


def get_db_service() -> APIDatabaseService:
    """Return the live database service or fail with 503."""
    if not db_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database service not available"
        )
    return db_service


def parse_book_id(book_id: str) -> int:
    """Parse a path identifier, rejecting anything that is not a positive integer."""
    try:
        value = int(book_id)
    except (TypeError, ValueError):
        value = 0
    if value < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid book ID")
    return value


async def rate_limit_headers(response: Response, client_id: str = Depends(enforce_rate_limit)):
    """Attach the caller's remaining budget to successful responses."""
    response.headers.update(rate_limiter.get_headers(client_id))


# Health check and metrics endpoints (not rate limited)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if db_service:
        health_info = await db_service.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=api_config.api_version,
        database_status=db_status
    )


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Expose Prometheus metrics."""
    return render_metrics()


router = APIRouter(prefix="/api/books", tags=["Books"], dependencies=[Depends(rate_limit_headers)])


@router.get("", response_model=BookListResponse)
async def get_books(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    order: Optional[str] = Query(None),
    shelf: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    min_rating: Optional[str] = Query(None, alias="minRating"),
    max_rating: Optional[str] = Query(None, alias="maxRating"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate")
):
    """
    Get books with filtering, sorting, and pagination.

    - **page**: Page number (starts from 1, default 1)
    - **limit**: Items per page (1-100, default 10)
    - **sort**: Sort field (dateAdded, dateRead, title, author, rating, pages, published, bookId, averageRating, readCount)
    - **order**: Sort order (asc, desc; default desc)
    - **shelf**: Filter by shelf (read, currently-reading, to-read)
    - **search**: Case-insensitive match on title, author, publisher or review
    - **minRating** / **maxRating**: Inclusive rating range (0-5)
    - **startDate** / **endDate**: Inclusive read-date range (ISO format)
    """
    query_params = BookQueryParams.model_validate({
        "page": page,
        "limit": limit,
        "sort": sort,
        "order": order,
        "shelf": shelf,
        "search": search,
        "minRating": min_rating,
        "maxRating": max_rating,
        "startDate": start_date,
        "endDate": end_date,
    })

    service = get_db_service()
    try:
        return await service.get_books(query_params)
    except Exception as e:
        logger.error("Failed to get books", error=str(e))
        raise server_error("Failed to retrieve books", e)


@router.get("/stats", response_model=BookStats)
async def get_stats():
    """Get reading statistics."""
    service = get_db_service()
    try:
        return await service.get_stats()
    except Exception as e:
        logger.error("Failed to get stats", error=str(e))
        raise server_error("Failed to retrieve statistics", e)


@router.get("/bookshelves", response_model=List[str])
async def get_bookshelves():
    """Get all distinct bookshelf tags."""
    service = get_db_service()
    try:
        return await service.get_bookshelves()
    except Exception as e:
        logger.error("Failed to get bookshelves", error=str(e))
        raise server_error("Failed to retrieve bookshelves", e)


@router.get("/export")
async def export_books():
    """Stream every book as a JSON array."""
    service = get_db_service()
    return StreamingResponse(
        service.export_books(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="books.json"'}
    )


@router.post("/import", response_model=ImportStats)
async def import_books(items: List[Any] = Body(...)):
    """
    Import many books at once.

    Items with an existing bookId are updated, the rest are added. Invalid items are
    reported in `errors` and do not stop the import.
    """
    service = get_db_service()
    try:
        return await service.import_books(items)
    except Exception as e:
        logger.error("Failed to import books", error=str(e), items=len(items))
        raise server_error("Failed to import books", e)


@router.get("/{book_id}", response_model=Book)
async def get_book(book_id: str):
    """
    Get a single book by ID.

    - **book_id**: Numeric book identifier
    """
    numeric_id = parse_book_id(book_id)
    service = get_db_service()
    try:
        book = await service.get_book_by_id(numeric_id)
    except Exception as e:
        logger.error("Failed to get book", book_id=numeric_id, error=str(e))
        raise server_error("Failed to retrieve book", e)

    if not book:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return book


@router.post("", response_model=Book, status_code=status.HTTP_201_CREATED)
async def create_book(payload: BookCreate):
    """Create a new book. The bookId is assigned by the server unless supplied."""
    service = get_db_service()
    try:
        return await service.create_book(payload)
    except BookIdConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        logger.error("Failed to create book", title=payload.title, error=str(e))
        raise server_error("Failed to create book", e)


@router.put("/{book_id}", response_model=Book)
async def update_book(book_id: str, payload: BookCreate):
    """Update a book. The identifier in the path always wins over one in the body."""
    numeric_id = parse_book_id(book_id)
    service = get_db_service()
    try:
        book = await service.update_book(numeric_id, payload)
    except Exception as e:
        logger.error("Failed to update book", book_id=numeric_id, error=str(e))
        raise server_error("Failed to update book", e)

    if not book:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return book


@router.delete("/{book_id}", response_model=MessageResponse)
async def delete_book(book_id: str):
    """Delete a book."""
    numeric_id = parse_book_id(book_id)
    service = get_db_service()
    try:
        deleted = await service.delete_book(numeric_id)
    except Exception as e:
        logger.error("Failed to delete book", book_id=numeric_id, error=str(e))
        raise server_error("Failed to delete book", e)

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return MessageResponse(message="Book removed")


app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level=api_config.log_level.lower()
    )
