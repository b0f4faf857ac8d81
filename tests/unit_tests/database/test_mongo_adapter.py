"""MongoImageStore against an in-process stand-in for a pymongo collection."""
from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pymongo.errors import BulkWriteError, ServerSelectionTimeoutError
from pymongo.results import DeleteResult, InsertManyResult

from database.errors import PersistenceError
from database.mongo_adapter import MongoImageStore
from database.schemas import StorageDescriptor, public_path
from tests.fixtures.app_fixtures import TickingClock


def descriptor(filename: str) -> StorageDescriptor:
    return StorageDescriptor(filename=filename, path=public_path(filename))


class FakeCursor:
    def __init__(self, documents):
        self.documents = documents

    def sort(self, keys):
        documents = list(self.documents)
        for field, direction in reversed(keys):
            documents.sort(key=lambda doc: doc.get(field), reverse=direction < 0)
        return FakeCursor(documents)

    def __iter__(self):
        return iter(self.documents)


class FakeDatabase:
    def __init__(self, reachable=True):
        self.reachable = reachable

    def command(self, name):
        if not self.reachable:
            raise ServerSelectionTimeoutError("no servers")
        return {"ok": 1}


class FakeCollection:
    """Holds documents in a list; can fail part way through insert_many."""

    def __init__(self, fail_after=None, reachable=True):
        self.documents = []
        self.indexes = []
        self.fail_after = fail_after
        self.reachable = reachable
        self.database = FakeDatabase(reachable)

    def _check_reachable(self):
        if not self.reachable:
            raise ServerSelectionTimeoutError("no servers")

    def create_index(self, keys, **kwargs):
        self._check_reachable()
        self.indexes.append((keys, kwargs))

    def insert_many(self, documents, ordered=True):
        self._check_reachable()
        inserted_ids = []
        for index, document in enumerate(documents):
            if self.fail_after is not None and index >= self.fail_after:
                raise BulkWriteError({"nInserted": index, "writeErrors": [{"index": index, "code": 11000}]})
            document["_id"] = ObjectId()
            self.documents.append(dict(document))
            inserted_ids.append(document["_id"])
        return InsertManyResult(inserted_ids, acknowledged=True)

    def delete_many(self, query):
        kept = [doc for doc in self.documents if any(doc.get(k) != v for k, v in query.items())]
        deleted = len(self.documents) - len(kept)
        self.documents = kept
        return DeleteResult({"n": deleted, "ok": 1}, acknowledged=True)

    def find(self, query, projection):
        self._check_reachable()
        fields = [field for field, included in projection.items() if included]
        return FakeCursor([{"_id": doc["_id"], **{f: doc[f] for f in fields if f in doc}} for doc in self.documents])


@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def store(collection):
    return MongoImageStore(collection=collection, clock=TickingClock())


def test_insert_batch_returns_created_records(store, collection):
    records = store.insert_batch([descriptor("1-000000.png"), descriptor("1-000001.gif")])

    assert [record.filename for record in records] == ["1-000000.png", "1-000001.gif"]
    assert [record.id for record in records] == [str(doc["_id"]) for doc in collection.documents]
    assert records[0].uploaded_at == records[1].uploaded_at
    assert len({doc["batchId"] for doc in collection.documents}) == 1


def test_documents_keep_the_original_shape(store, collection):
    store.insert_batch([descriptor("1-000000.png")])

    document = collection.documents[0]
    assert document["filename"] == "1-000000.png"
    assert document["path"] == "/uploads/1-000000.png"
    assert isinstance(document["uploadedAt"], datetime)


def test_partial_insert_is_removed_again(collection):
    collection.fail_after = 2
    store = MongoImageStore(collection=collection, clock=TickingClock())

    with pytest.raises(PersistenceError):
        store.insert_batch([descriptor(f"1-00000{i}.png") for i in range(4)])

    assert collection.documents == []


def test_failed_batch_leaves_earlier_batches_alone(store, collection):
    kept = store.insert_batch([descriptor("1-000000.png")])
    collection.fail_after = 1

    with pytest.raises(PersistenceError):
        store.insert_batch([descriptor("2-000001.png"), descriptor("2-000002.png")])

    assert store.list_all() == kept


def test_list_all_newest_first_with_stable_ties(store):
    older = store.insert_batch([descriptor("1-000000.png"), descriptor("1-000001.png")])
    newer = store.insert_batch([descriptor("2-000002.png")])

    assert store.list_all() == newer + older


def test_list_all_is_idempotent(store):
    store.insert_batch([descriptor("1-000000.png")])
    store.insert_batch([descriptor("2-000001.png")])

    assert store.list_all() == store.list_all()


def test_unreachable_server():
    store = MongoImageStore(collection=FakeCollection(reachable=False))

    with pytest.raises(PersistenceError):
        store.insert_batch([descriptor("1-000000.png")])
    with pytest.raises(PersistenceError):
        store.list_all()
    with pytest.raises(PersistenceError):
        store.init_collections()
    assert store.ping() is False


def test_ping(store):
    assert store.ping() is True


def test_init_collections_creates_indexes(store, collection):
    store.init_collections()

    assert ([("uploadedAt", -1)], {}) in collection.indexes
    assert ([("filename", 1)], {"unique": True}) in collection.indexes


def test_mismatched_path_is_rejected_before_writing(store, collection):
    with pytest.raises(PersistenceError):
        store.insert_batch([StorageDescriptor(filename="1-000000.png", path="/uploads/x.png")])

    assert collection.documents == []


def test_timestamps_are_truncated_to_milliseconds(collection):
    moment = datetime(2024, 5, 1, 12, 0, 0, 987654, tzinfo=timezone.utc)
    store = MongoImageStore(collection=collection, clock=lambda: moment)

    record = store.insert_batch([descriptor("1-000000.png")])[0]

    assert record.uploaded_at.microsecond == 987000


def test_connection_string_is_required():
    with pytest.raises(ValueError, match="connection string required"):
        MongoImageStore()


@pytest.mark.parametrize(
    "broken",
    [
        {"filename": "1-000000.png", "path": "/uploads/1-000000.png"},
        {"filename": "1-000000.png", "path": "/uploads/other.png", "uploadedAt": datetime(2024, 1, 1, tzinfo=timezone.utc)},
    ],
)
def test_malformed_document_fails_listing(store, collection, broken):
    collection.documents.append({"_id": ObjectId(), **broken})

    with pytest.raises(PersistenceError, match="Failed to load images"):
        store.list_all()
