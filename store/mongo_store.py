"""
MongoDB Document Store

pymongo implementation of the DocumentStore interface. Each session owns its
own MongoClient, so every load worker writes through a separate connection
pool.
"""

import logging
from contextlib import contextmanager

from pymongo import MongoClient, InsertOne, UpdateOne
from pymongo.errors import BulkWriteError, CollectionInvalid, PyMongoError

from utils.errors import ErrorKind, VCFDBError
from .document_store import DocumentStore, InsertDocument, UpdateDocument


@contextmanager
def storage_errors(action):
    """Re-raise pymongo failures as STORAGE errors"""
    try:
        yield
    except BulkWriteError as bwe:
        write_errors = bwe.details.get('writeErrors', [])
        first = write_errors[0].get('errmsg', '') if write_errors else str(bwe)
        raise VCFDBError(
            ErrorKind.STORAGE,
            f"{action} failed ({len(write_errors)} write errors, "
            f"{bwe.details.get('nInserted', 0)} inserted before failure): {first}"
        )
    except PyMongoError as e:
        raise VCFDBError(ErrorKind.STORAGE, f"{action} failed: {e}")


def to_pymongo_operation(operation):
    """Translate an InsertDocument / UpdateDocument into its pymongo request"""
    if isinstance(operation, InsertDocument):
        return InsertOne(operation.document)
    if isinstance(operation, UpdateDocument):
        return UpdateOne(operation.filter, operation.update)
    raise TypeError(f"Unsupported bulk operation: {operation!r}")


class MongoDocumentStore(DocumentStore):
    """
    Document store backed by a MongoDB database

    Args:
        address: Host where the MongoDB instance is running
        port: Port the instance is listening on
        db: Database name
        client: Optional pre-built client (sessions then share it)
        timeout_ms: Server selection timeout for new clients
    """

    def __init__(self, address='localhost', port=27017, db='VCF', client=None, timeout_ms=5000):
        self.address = address
        self.port = port
        self.db_name = db
        self.timeout_ms = timeout_ms
        self._owns_client = client is None
        if client is None:
            client = MongoClient(host=address, port=port, serverSelectionTimeoutMS=timeout_ms)
        self._client = client
        self._db = client[db]

    def collection_names(self):
        with storage_errors("listing collections"):
            return [c for c in self._db.list_collection_names() if not c.startswith('system.')]

    def create_container(self, name):
        with storage_errors(f"creating {name}"):
            if name not in self._db.list_collection_names():
                try:
                    self._db.create_collection(name)
                except CollectionInvalid:
                    # created concurrently by another client
                    pass

    def get(self, name, document_id, projection=None):
        with storage_errors(f"reading {name}/{document_id}"):
            return self._db[name].find_one({'_id': document_id}, projection)

    def find(self, name, filter, projection=None):
        with storage_errors(f"querying {name}"):
            return list(self._db[name].find(filter, projection))

    def insert(self, name, document):
        with storage_errors(f"inserting into {name}"):
            self._db[name].insert_one(document)

    def update_fields(self, name, filter, update, multi=False):
        with storage_errors(f"updating {name}"):
            if multi:
                result = self._db[name].update_many(filter, update)
            else:
                result = self._db[name].update_one(filter, update)
            return result.modified_count

    def bulk_write(self, name, operations, ordered=True):
        requests = [to_pymongo_operation(op) for op in operations]
        if not requests:
            return 0
        with storage_errors(f"bulk write into {name}"):
            result = self._db[name].bulk_write(requests, ordered=ordered)
            return result.inserted_count + result.modified_count

    def remove(self, name, filter):
        with storage_errors(f"removing from {name}"):
            return self._db[name].delete_many(filter).deleted_count

    def drop(self, name):
        with storage_errors(f"dropping {name}"):
            self._db.drop_collection(name)

    def rename(self, name, new_name):
        with storage_errors(f"renaming {name} to {new_name}"):
            self._db[name].rename(new_name)

    def open_session(self):
        if not self._owns_client:
            return self
        logging.debug(f"Opening MongoDB session on {self.address}:{self.port}/{self.db_name}")
        return MongoDocumentStore(self.address, self.port, self.db_name, timeout_ms=self.timeout_ms)

    def close(self):
        if self._owns_client:
            self._client.close()
