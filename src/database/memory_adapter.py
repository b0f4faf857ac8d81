"""
In-process image store.
Used for isolated tests and throwaway local runs; nothing survives a restart.
"""

import itertools
import logging
import threading
from datetime import datetime
from typing import Callable, List, Sequence

from .base import ImageStore
from .errors import PersistenceError
from .schemas import ImageRecord, StorageDescriptor, truncate_millis, utcnow_millis

logger = logging.getLogger(__name__)


class InMemoryImageStore(ImageStore):
    """Keeps image records in a list guarded by a lock"""

    def __init__(self, clock: Callable[[], datetime] = utcnow_millis):
        self.clock = clock
        self._records: List[ImageRecord] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def insert_batch(self, descriptors: Sequence[StorageDescriptor]) -> List[ImageRecord]:
        if not descriptors:
            return []

        with self._lock:
            taken = {record.filename for record in self._records}
            batch_names = [descriptor.filename for descriptor in descriptors]
            clashes = taken.intersection(batch_names)
            if clashes or len(set(batch_names)) != len(batch_names):
                logger.error(f"Duplicate filenames in image batch: {sorted(clashes) or batch_names}")
                raise PersistenceError("Failed to save images to the database")

            uploaded_at = truncate_millis(self.clock())
            try:
                created = [
                    ImageRecord(
                        id=str(next(self._ids)),
                        filename=descriptor.filename,
                        path=descriptor.path,
                        uploaded_at=uploaded_at,
                    )
                    for descriptor in descriptors
                ]
            except ValueError as e:
                logger.error(f"Image record validation failed: {e}")
                raise PersistenceError("Image record rejected by the database schema") from e

            self._records.extend(created)

        logger.info(f"Inserted {len(created)} image records in memory")
        return created

    def list_all(self) -> List[ImageRecord]:
        with self._lock:
            snapshot = list(self._records)
        # sorted() is stable, so ties keep insertion order
        return sorted(snapshot, key=lambda record: record.uploaded_at, reverse=True)

    def ping(self) -> bool:
        return True
