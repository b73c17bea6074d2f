import logging
from typing import Optional, Union

from .nosql_adapter import NoSQLAdapter
from .mongo_adapter import MongoAdapter

logger = logging.getLogger(__name__)

DocumentAdapter = Union[NoSQLAdapter, MongoAdapter]


def get_nosql_adapter(
    backend: str = "sqlite",
    db_path: str = "files_manager.db",
    mongodb_uri: Optional[str] = None,
) -> DocumentAdapter:
    """Build the document adapter for the configured backend."""
    if backend == "mongo":
        return MongoAdapter(mongodb_uri)
    if backend == "sqlite":
        return NoSQLAdapter(db_path)
    raise ValueError(f"Invalid database backend: {backend}. Choose from ['sqlite', 'mongo']")


def init_db(adapter: DocumentAdapter) -> None:
    """Initialize all collections and indexes."""
    logger.info(f"Initializing database with {type(adapter).__name__}")
    adapter.init_collections()
