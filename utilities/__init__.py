"""
Shared settings and structured logging.
"""
