"""
FastAPI RESTful API for the Book Tracker.

This module provides a REST API for:
- Book listing with filters, search and pagination
- Creating, updating and deleting book records
- Reading statistics and bookshelf tags
- Bulk import and streamed export
- Rate limiting and Prometheus metrics
"""
