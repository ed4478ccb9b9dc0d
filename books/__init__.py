"""
Book records: document model and MongoDB persistence.
"""
