"""
Client-side presentation layer for the Book Tracker API.

This package contains:
- An HTTP client with a short-lived query cache
- Book form validation
- Display formatting helpers
"""
