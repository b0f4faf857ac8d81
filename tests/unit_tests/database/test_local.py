import pytest

from database.local import get_image_store
from database.memory_adapter import InMemoryImageStore
from database.mongo_adapter import MongoImageStore
from database.sqlite_adapter import SQLiteImageStore


def test_memory_backend():
    assert isinstance(get_image_store("memory"), InMemoryImageStore)


def test_sqlite_backend(tmp_path):
    db_path = str(tmp_path / "images.db")

    store = get_image_store("sqlite", sqlite_path=db_path)

    assert isinstance(store, SQLiteImageStore)
    assert store.db_path == db_path


def test_mongo_backend_connects_lazily():
    store = get_image_store("mongo", mongo_uri="mongodb://localhost:27017/galleryDB", mongo_collection="pictures", mongo_timeout_ms=100)
    try:
        assert isinstance(store, MongoImageStore)
        assert store.db.name == "galleryDB"
        assert store.collection.name == "pictures"
    finally:
        store.close()


def test_mongo_uri_without_database_uses_default():
    store = get_image_store("mongo", mongo_uri="mongodb://localhost:27017", mongo_timeout_ms=100)
    try:
        assert store.db.name == "bilderDB"
    finally:
        store.close()


def test_unknown_backend():
    with pytest.raises(ValueError, match="Unknown store backend"):
        get_image_store("postgres")
