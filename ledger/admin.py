"""
Administrative Collection Operations

Listing, renaming, deleting and fixing collections. These are always explicit
operator actions (vcf_admin.py); nothing here runs as part of an import.
"""

import logging

from config.constants import (
    METADATA_COLLECTION, METADATA_SENTINEL_ID, RESERVED_SEPARATOR, ID_FIELD,
    META_CONSISTENT, META_REASON, REASON_NEW_IMPORT, REASON_APPEND,
)
from utils.errors import ErrorKind, VCFDBError
from .consistency import CollectionState, collection_state, repair_collection


def list_collections(store):
    """Names of every collection known to the ledger"""
    return [
        doc[ID_FIELD]
        for doc in store.find(METADATA_COLLECTION, {ID_FIELD: {'$ne': METADATA_SENTINEL_ID}}, {ID_FIELD: 1})
    ]


def collection_details(store, coll_name):
    metadata = store.get(METADATA_COLLECTION, coll_name)
    if metadata is None:
        raise VCFDBError(ErrorKind.LEDGER_STATE, f"Collection `{coll_name}` does not exist.")
    return metadata


def describe_reason(reason):
    """Human readable text for a last_inconsistency_reason tag"""
    if not reason:
        return "unknown reason"
    if reason[0] == REASON_NEW_IMPORT:
        return "initial import did not complete"
    if reason[0] == REASON_APPEND and len(reason) == 2:
        return f"append of {', '.join(reason[1])} did not complete"
    return f"unrecognized reason {reason!r}"


def bad_collections(store):
    """
    Find every collection flagged as inconsistent

    Returns:
        list: (name, reason text) tuples
    """
    docs = store.find(METADATA_COLLECTION, {META_CONSISTENT: False})
    return [(doc[ID_FIELD], describe_reason(doc.get(META_REASON))) for doc in docs]


def related_containers(store, coll_name):
    """Containers sharing the collection's name as a `name__suffix` prefix"""
    prefix = coll_name + RESERVED_SEPARATOR
    return [name for name in store.collection_names() if name.startswith(prefix)]


def rename_collection(store, coll_name, new_name):
    """
    Rename a collection, its related containers and its metadata document

    Raises:
        VCFDBError: CONFIGURATION for reserved names, LEDGER_STATE when the
        source is missing or the target already exists
    """
    if RESERVED_SEPARATOR in new_name:
        raise VCFDBError(ErrorKind.CONFIGURATION, "Double underscores are reserved, choose a different name.")

    metadata = store.get(METADATA_COLLECTION, coll_name)
    if metadata is None:
        raise VCFDBError(ErrorKind.LEDGER_STATE, f"Collection `{coll_name}` does not exist.")
    if store.get(METADATA_COLLECTION, new_name) is not None or store.container_exists(new_name):
        raise VCFDBError(ErrorKind.LEDGER_STATE, f"Collection `{new_name}` already exists.")

    if store.container_exists(coll_name):
        store.rename(coll_name, new_name)
    for name in related_containers(store, coll_name):
        store.rename(name, new_name + name[len(coll_name):])

    metadata[ID_FIELD] = new_name
    store.insert(METADATA_COLLECTION, metadata)
    store.remove(METADATA_COLLECTION, {ID_FIELD: coll_name})
    logging.info(f"Renamed `{coll_name}` to `{new_name}`.")


def delete_collection(store, coll_name):
    """Drop a collection, its related containers and its metadata"""
    if store.get(METADATA_COLLECTION, coll_name) is None and not store.container_exists(coll_name):
        raise VCFDBError(ErrorKind.LEDGER_STATE, f"Collection `{coll_name}` does not exist.")

    store.drop(coll_name)
    for name in related_containers(store, coll_name):
        store.drop(name)
    store.remove(METADATA_COLLECTION, {ID_FIELD: coll_name})
    logging.info(f"Deleted `{coll_name}`.")


def fix_collection(store, coll_name):
    """
    Repair a collection according to its current state

    Returns:
        CollectionState: the state that was found (CONSISTENT means nothing was done)
    """
    state = collection_state(store, coll_name)
    if state is CollectionState.NEW:
        raise VCFDBError(ErrorKind.LEDGER_STATE, f"Collection `{coll_name}` does not exist.")
    if state is CollectionState.CONSISTENT:
        logging.info(f"Collection `{coll_name}` is consistent, nothing to fix.")
        return state
    repair_collection(store, coll_name, state)
    return state
