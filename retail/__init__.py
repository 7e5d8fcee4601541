"""
ABC Retail storage service.

This package provides a FastAPI application over two storage paths: a
table/blob/queue/file-share gateway and a relational data service backed by
SQLAlchemy.
"""
