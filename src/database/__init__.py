"""
Document database layer.

SQLite-backed JSON documents for local development and tests, MongoDB for
deployments. Both adapters expose the same interface.
"""

from .nosql_adapter import NoSQLAdapter, DuplicateDocumentError
from .mongo_adapter import MongoAdapter
from .local import DocumentAdapter, get_nosql_adapter, init_db

__all__ = [
    'NoSQLAdapter', 'MongoAdapter', 'DuplicateDocumentError',
    'DocumentAdapter', 'get_nosql_adapter', 'init_db',
]
