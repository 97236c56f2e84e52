"""
Document Store Interface

The operations the loader and the ledger need from a document store. Filters
and updates are MongoDB-style operator documents:

    filters: {'_id': value}, {'_id': {'$ne': value}}, {'_id': {'$in': [...]}},
             {'IDs': {'$size': n}}, {'consistent': False}, {}
    updates: {'$set': {...}},
             {'$push': {field: {'$each': [...], '$slice': n}}}

Bulk operations are described with InsertDocument / UpdateDocument so that
callers do not depend on a particular driver.
"""

from typing import Any, Dict, NamedTuple


class InsertDocument(NamedTuple):
    """Insert a whole document; fails on a duplicate _id."""
    document: Dict[str, Any]


class UpdateDocument(NamedTuple):
    """Apply an update document to the first document matching filter."""
    filter: Dict[str, Any]
    update: Dict[str, Any]


class DocumentStore:
    """Base class for document store backends"""

    def collection_names(self):
        """Names of all containers, excluding system ones"""
        raise NotImplementedError

    def container_exists(self, name):
        return name in self.collection_names()

    def create_container(self, name):
        """Create an empty container if it does not exist yet"""
        raise NotImplementedError

    def get(self, name, document_id, projection=None):
        """Return the document with the given _id, or None"""
        raise NotImplementedError

    def find(self, name, filter, projection=None):
        """Return a list of documents matching filter"""
        raise NotImplementedError

    def insert(self, name, document):
        raise NotImplementedError

    def update_fields(self, name, filter, update, multi=False):
        """Apply an update document to one (or every, with multi) matching document"""
        raise NotImplementedError

    def bulk_write(self, name, operations, ordered=True):
        """
        Execute a batch of InsertDocument / UpdateDocument operations

        Raises:
            VCFDBError: STORAGE error if any operation fails
        """
        raise NotImplementedError

    def remove(self, name, filter):
        raise NotImplementedError

    def drop(self, name):
        raise NotImplementedError

    def rename(self, name, new_name):
        raise NotImplementedError

    def open_session(self):
        """Return a store with its own connection, for use by a single worker thread"""
        return self

    def close(self):
        pass
