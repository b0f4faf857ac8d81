"""
Image metadata persistence.

Capability interface (`ImageStore`) plus MongoDB, SQLite and in-memory engines.
"""

from .base import ImageStore
from .errors import PersistenceError
from .local import STORE_BACKENDS, get_image_store
from .schemas import ImageRecord, StorageDescriptor, public_path

__all__ = [
    'ImageStore', 'PersistenceError', 'STORE_BACKENDS', 'get_image_store',
    'ImageRecord', 'StorageDescriptor', 'public_path'
]
