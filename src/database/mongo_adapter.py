"""
MongoDB adapter for image metadata documents.
Keeps one document per stored image in the `images` collection.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import jsonschema
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from .base import ImageStore
from .errors import PersistenceError
from .schemas import ImageRecord, StorageDescriptor, truncate_millis, utcnow_millis, validate_image_document

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "bilderDB"
DEFAULT_COLLECTION = "images"


class MongoImageStore(ImageStore):
    """MongoDB-backed image store

    Batches are inserted with `insert_many(ordered=True)` and tagged with a
    batch id. When an insert fails part way, the documents of that batch
    which did land are deleted again before the error is raised, so callers
    never see half a batch in `list_all`.
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        collection_name: str = DEFAULT_COLLECTION,
        timeout_ms: int = 5000,
        collection: Any = None,
        clock: Callable[[], datetime] = utcnow_millis,
    ):
        self.connection_string = connection_string
        self.clock = clock
        self.client = None

        if collection is not None:
            self.collection = collection
            return

        if not self.connection_string:
            raise ValueError("MongoDB connection string required. Set MONGO_URI or pass connection_string")

        # MongoClient connects lazily; an unreachable server surfaces on first use
        self.client = MongoClient(
            self.connection_string,
            serverSelectionTimeoutMS=timeout_ms,
            tz_aware=True,
        )
        self.db = self.client.get_default_database(default=DEFAULT_DATABASE)
        self.collection = self.db[collection_name]
        logger.info(f"Using MongoDB collection {self.db.name}.{collection_name}")

    def init_collections(self) -> None:
        """Create the indexes used for listing and filename uniqueness"""
        try:
            self.collection.create_index([("uploadedAt", DESCENDING)])
            self.collection.create_index([("filename", ASCENDING)], unique=True)
            logger.info("MongoDB image indexes initialized successfully")
        except PyMongoError as e:
            logger.error(f"Error initializing MongoDB indexes: {e}")
            raise PersistenceError("Could not initialize the image collection") from e

    def _build_documents(self, descriptors: Sequence[StorageDescriptor], batch_id: str) -> List[Dict[str, Any]]:
        uploaded_at = truncate_millis(self.clock())
        documents = []
        for descriptor in descriptors:
            document = {
                "filename": descriptor.filename,
                "path": descriptor.path,
                "uploadedAt": uploaded_at,
                "batchId": batch_id,
            }
            try:
                validate_image_document(document)
            except jsonschema.ValidationError as e:
                logger.error(f"Image document validation failed: {e.message}")
                raise PersistenceError("Image record rejected by the database schema") from e
            documents.append(document)
        return documents

    def _discard_batch(self, batch_id: str) -> None:
        try:
            result = self.collection.delete_many({"batchId": batch_id})
            if result.deleted_count:
                logger.warning(f"Removed {result.deleted_count} partially inserted documents of batch {batch_id}")
        except PyMongoError as e:
            logger.error(f"Could not remove partial batch {batch_id}: {e}")

    def insert_batch(self, descriptors: Sequence[StorageDescriptor]) -> List[ImageRecord]:
        if not descriptors:
            return []

        batch_id = uuid.uuid4().hex
        documents = self._build_documents(descriptors, batch_id)

        try:
            result = self.collection.insert_many(documents, ordered=True)
        except PyMongoError as e:
            logger.error(f"Error inserting image batch {batch_id}: {e}")
            self._discard_batch(batch_id)
            raise PersistenceError("Failed to save images to the database") from e

        logger.info(f"Inserted {len(result.inserted_ids)} image documents (batch {batch_id})")
        return [
            ImageRecord(
                id=str(inserted_id),
                filename=document["filename"],
                path=document["path"],
                uploaded_at=document["uploadedAt"],
            )
            for inserted_id, document in zip(result.inserted_ids, documents)
        ]

    def list_all(self) -> List[ImageRecord]:
        try:
            # ObjectIds grow with insertion, so they order ties
            cursor = self.collection.find(
                {}, {"filename": 1, "path": 1, "uploadedAt": 1}
            ).sort([("uploadedAt", DESCENDING), ("_id", ASCENDING)])

            return [
                ImageRecord(
                    id=str(document["_id"]),
                    filename=document["filename"],
                    path=document["path"],
                    uploaded_at=document["uploadedAt"],
                )
                for document in cursor
            ]
        except PyMongoError as e:
            logger.error(f"Error listing images from MongoDB: {e}")
            raise PersistenceError("Failed to load images from the database") from e
        except (KeyError, ValueError) as e:
            logger.error(f"Malformed image document in MongoDB: {e}")
            raise PersistenceError("Failed to load images from the database") from e

    def ping(self) -> bool:
        try:
            self.collection.database.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    def close(self) -> None:
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
