import logging
from typing import Optional

from .base import ImageStore

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("mongo", "sqlite", "memory")


def get_image_store(
    backend: str = "mongo",
    mongo_uri: Optional[str] = None,
    mongo_collection: str = "images",
    mongo_timeout_ms: int = 5000,
    sqlite_path: str = "images.db",
) -> ImageStore:
    """Build the image store for the configured backend."""
    if backend == "mongo":
        from .mongo_adapter import MongoImageStore
        store = MongoImageStore(mongo_uri, collection_name=mongo_collection, timeout_ms=mongo_timeout_ms)
    elif backend == "sqlite":
        from .sqlite_adapter import SQLiteImageStore
        store = SQLiteImageStore(sqlite_path)
    elif backend == "memory":
        from .memory_adapter import InMemoryImageStore
        store = InMemoryImageStore()
    else:
        raise ValueError(f"Unknown store backend: {backend}. Must be one of {list(STORE_BACKENDS)}")

    logger.info(f"Image store backend: {backend}")
    return store
