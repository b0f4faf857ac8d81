"""
SQLite adapter for image metadata documents.
Stores each image as a JSON document so the shape matches the MongoDB collection.
"""

import sqlite3
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Sequence

import jsonschema

from .base import ImageStore
from .errors import PersistenceError
from .schemas import ImageRecord, StorageDescriptor, truncate_millis, utcnow_millis, validate_image_document

logger = logging.getLogger(__name__)


class SQLiteImageStore(ImageStore):
    """Embedded document store for images, one transaction per batch"""

    def __init__(self, db_path: str = "images.db", clock: Callable[[], datetime] = utcnow_millis):
        self.db_path = db_path
        self.clock = clock

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def _serialize_document(self, document: Dict[str, Any]) -> str:
        def json_serializer(obj):
            if isinstance(obj, datetime):
                return obj.isoformat(timespec="milliseconds")
            raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

        return json.dumps(document, default=json_serializer)

    def _to_record(self, row: sqlite3.Row) -> ImageRecord:
        document = json.loads(row["document"])
        return ImageRecord(
            id=str(row["image_id"]),
            filename=document["filename"],
            path=document["path"],
            uploaded_at=datetime.fromisoformat(document["uploadedAt"]),
        )

    def init_collections(self) -> None:
        """Initialize the images document table"""
        conn = None
        try:
            conn = self._get_connection()
            conn.execute('''
                CREATE TABLE IF NOT EXISTS images_docs (
                    image_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    filename TEXT UNIQUE NOT NULL,
                    uploaded_at TEXT NOT NULL,
                    document TEXT NOT NULL
                )
            ''')
            conn.execute('''
                CREATE INDEX IF NOT EXISTS idx_images_uploaded_at
                ON images_docs(uploaded_at)
            ''')
            conn.commit()
            logger.info(f"SQLite image collection initialized at {self.db_path}")
        except sqlite3.Error as e:
            logger.error(f"Error initializing SQLite image collection: {e}")
            raise PersistenceError("Could not initialize the image collection") from e
        finally:
            if conn is not None:
                conn.close()

    def insert_batch(self, descriptors: Sequence[StorageDescriptor]) -> List[ImageRecord]:
        if not descriptors:
            return []

        uploaded_at = truncate_millis(self.clock())
        documents = []
        for descriptor in descriptors:
            document = {"filename": descriptor.filename, "path": descriptor.path, "uploadedAt": uploaded_at}
            try:
                validate_image_document(document)
            except jsonschema.ValidationError as e:
                logger.error(f"Image document validation failed: {e.message}")
                raise PersistenceError("Image record rejected by the database schema") from e
            documents.append(document)

        conn = None
        try:
            conn = self._get_connection()
            image_ids = []
            # the connection context manager commits the whole batch or rolls it back
            with conn:
                for document in documents:
                    cursor = conn.execute(
                        'INSERT INTO images_docs (filename, uploaded_at, document) VALUES (?, ?, ?)',
                        (
                            document["filename"],
                            uploaded_at.isoformat(timespec="milliseconds"),
                            self._serialize_document(document),
                        ),
                    )
                    image_ids.append(cursor.lastrowid)
        except sqlite3.Error as e:
            logger.error(f"Error inserting image batch: {e}")
            raise PersistenceError("Failed to save images to the database") from e
        finally:
            if conn is not None:
                conn.close()

        logger.info(f"Inserted {len(image_ids)} image documents into {self.db_path}")
        return [
            ImageRecord(id=str(image_id), filename=document["filename"], path=document["path"], uploaded_at=uploaded_at)
            for image_id, document in zip(image_ids, documents)
        ]

    def list_all(self) -> List[ImageRecord]:
        conn = None
        try:
            conn = self._get_connection()
            rows = conn.execute(
                'SELECT image_id, document FROM images_docs ORDER BY uploaded_at DESC, image_id ASC'
            ).fetchall()
            return [self._to_record(row) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"Error listing images from SQLite: {e}")
            raise PersistenceError("Failed to load images from the database") from e
        except (KeyError, ValueError) as e:
            # pydantic.ValidationError and json.JSONDecodeError are ValueErrors
            logger.error(f"Malformed image document in {self.db_path}: {e}")
            raise PersistenceError("Failed to load images from the database") from e
        finally:
            if conn is not None:
                conn.close()

    def ping(self) -> bool:
        conn = None
        try:
            conn = self._get_connection()
            conn.execute('SELECT 1 FROM images_docs LIMIT 1')
            return True
        except sqlite3.Error as e:
            logger.warning(f"SQLite ping failed: {e}")
            return False
        finally:
            if conn is not None:
                conn.close()
