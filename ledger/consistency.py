"""
Collection Consistency Ledger

Tracks, through one metadata document per collection, whether every document
in the collection has been fully populated. An import marks the collection
inconsistent before any worker starts and flags it consistent only after the
pipeline drained successfully, so an interrupted run is always detectable.

STATES:
    NEW                (no metadata, no container)
    PENDING_INIT       (initial import started, not completed)
    CONSISTENT         (ok)
    PENDING_APPEND     (append import started, not completed)
    SPURIOUS_METADATA  (metadata exists but the container does not)

TRANSITIONS:
    NEW --begin_import--> PENDING_INIT --complete_import--> CONSISTENT
    CONSISTENT --begin_append--> PENDING_APPEND --complete_import--> CONSISTENT
    Inconsistent states are only left through repair_collection().
"""

import logging
from collections import Counter as TallyCounter
from datetime import datetime, timezone
from enum import Enum
from typing import List, NamedTuple

from config.constants import (
    APPLICATION_NAME, DATAMODEL_VERSION, METADATA_COLLECTION, METADATA_SENTINEL_ID,
    RESERVED_SEPARATOR, ID_FIELD, IDS_FIELD, PER_FILE_FIELDS, SAMPLES_FIELD,
    META_CREATED, META_LAST_EDIT, META_VCFS, META_HEADERS, META_SAMPLES,
    META_CONSISTENT, META_REASON, META_SAMPLE_NAME, META_SAMPLE_VCFID,
    REASON_NEW_IMPORT, REASON_APPEND,
)
from utils.errors import ErrorKind, VCFDBError


class DbStatus(Enum):
    EMPTY = 'empty'
    OK = 'ok'
    BAD = 'bad'
    VERSION_MISMATCH = 'version_mismatch'


class CollectionState(Enum):
    NEW = 'new'
    CONSISTENT = 'consistent'
    SPURIOUS_METADATA = 'spurious_metadata'
    PENDING_INIT = 'pending_init'
    PENDING_APPEND = 'pending_append'


class ImportCounts(NamedTuple):
    """What the pipeline needs to know about the collection once the pending metadata is written."""
    append: bool
    old_vcfs: int
    old_samples: int
    sample_counts: List[int]

    @property
    def new_vcfs(self):
        return len(self.sample_counts) - self.old_vcfs

    @property
    def new_samples(self):
        return sum(self.sample_counts) - self.old_samples


def _now():
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Database ownership
# ---------------------------------------------------------------------------

def check_db(store):
    """
    Check whether the database belongs to this application

    Returns:
        DbStatus: EMPTY (no containers), OK, BAD (foreign database) or
        VERSION_MISMATCH (created by another datamodel version)
    """
    collections = store.collection_names()
    if not collections:
        return DbStatus.EMPTY
    if METADATA_COLLECTION in collections:
        metadata = store.get(METADATA_COLLECTION, METADATA_SENTINEL_ID)
        if metadata and metadata.get('application') == APPLICATION_NAME:
            if metadata.get('version') == DATAMODEL_VERSION:
                return DbStatus.OK
            return DbStatus.VERSION_MISMATCH
    return DbStatus.BAD


def init_db(store):
    """Write the application sentinel document into an empty database"""
    store.insert(METADATA_COLLECTION, {
        ID_FIELD: METADATA_SENTINEL_ID,
        META_CREATED: _now(),
        'application': APPLICATION_NAME,
        'version': DATAMODEL_VERSION,
    })


def ensure_db(store, initialize=True):
    """
    Make sure the database can be used, initializing it when empty

    Args:
        store: DocumentStore
        initialize: Write the sentinel into an empty database instead of failing

    Raises:
        VCFDBError: LEDGER_STATE for foreign, mismatched or (without initialize) empty databases
    """
    status = check_db(store)
    if status is DbStatus.OK:
        return status
    if status is DbStatus.EMPTY:
        if not initialize:
            raise VCFDBError(ErrorKind.LEDGER_STATE, "This is an empty database, nothing to do.")
        logging.info("Empty database, performing initialization.")
        init_db(store)
        return status
    if status is DbStatus.VERSION_MISMATCH:
        metadata = store.get(METADATA_COLLECTION, METADATA_SENTINEL_ID)
        raise VCFDBError(
            ErrorKind.LEDGER_STATE,
            f"Version mismatch: script is version {DATAMODEL_VERSION} "
            f"while DB is version {metadata.get('version')}."
        )
    raise VCFDBError(ErrorKind.LEDGER_STATE, "Database doesn't seem to belong to this application.")


# ---------------------------------------------------------------------------
# Collection state
# ---------------------------------------------------------------------------

def collection_state(store, coll_name):
    """Return the CollectionState of a collection"""
    table_exists = store.container_exists(coll_name)
    meta = store.get(METADATA_COLLECTION, coll_name)

    if not table_exists and not meta:
        return CollectionState.NEW
    if meta and not table_exists:
        return CollectionState.SPURIOUS_METADATA
    if not meta:
        raise VCFDBError(
            ErrorKind.LEDGER_STATE,
            f"Collection `{coll_name}` exists but has no metadata; it was not created by this application."
        )
    if meta.get(META_CONSISTENT):
        return CollectionState.CONSISTENT

    reason = meta.get(META_REASON) or []
    if reason and reason[0] == REASON_NEW_IMPORT:
        return CollectionState.PENDING_INIT
    return CollectionState.PENDING_APPEND


def validate_collection_name(coll_name):
    if not coll_name:
        raise VCFDBError(ErrorKind.CONFIGURATION, "Collection name must not be empty.")
    if RESERVED_SEPARATOR in coll_name:
        raise VCFDBError(
            ErrorKind.CONFIGURATION,
            "Double underscores are used internally and cannot be part of a collection name."
        )


def _duplicates(items):
    return sorted(item for item, count in TallyCounter(items).items() if count > 1)


def check_name_collisions(files, samples, existing_files=(), existing_samples=()):
    """
    Reject duplicate file identifiers and sample names

    Args:
        files: File identifiers of the new batch
        samples: Per-file lists of sample names of the new batch
        existing_files: File identifiers already in the collection
        existing_samples: Sample names already in the collection

    Raises:
        VCFDBError: NAME_COLLISION naming the colliding entries
    """
    repeated = _duplicates(files)
    if repeated:
        raise VCFDBError(ErrorKind.NAME_COLLISION, f"You're trying to import the same VCF file twice: {repeated}")
    already_imported = sorted(set(files) & set(existing_files))
    if already_imported:
        raise VCFDBError(ErrorKind.NAME_COLLISION, f"VCF files already present in the collection: {already_imported}")

    flat_samples = [name for sublist in samples for name in sublist]
    repeated = _duplicates(flat_samples)
    if repeated:
        raise VCFDBError(ErrorKind.NAME_COLLISION, f"Some sample names are colliding: {repeated}")
    already_imported = sorted(set(flat_samples) & set(existing_samples))
    if already_imported:
        raise VCFDBError(ErrorKind.NAME_COLLISION, f"Sample names already present in the collection: {already_imported}")


def _check_batch(files, headers, samples):
    if not files:
        raise VCFDBError(ErrorKind.CONFIGURATION, "At least one VCF file is required.")
    if not (len(files) == len(headers) == len(samples)):
        raise VCFDBError(
            ErrorKind.CONFIGURATION,
            f"Got {len(files)} files, {len(headers)} headers and {len(samples)} sample lists."
        )


def _samples_field(samples, first_vcfid=0):
    return [
        {META_SAMPLE_NAME: name, META_SAMPLE_VCFID: first_vcfid + i}
        for i, sublist in enumerate(samples)
        for name in sublist
    ]


# ---------------------------------------------------------------------------
# Import bracketing
# ---------------------------------------------------------------------------

def begin_import(store, coll_name, files, headers, samples):
    """
    Write the pending metadata of an initial import

    Returns:
        ImportCounts: no previous files or samples

    Raises:
        VCFDBError: LEDGER_STATE unless the collection is NEW, NAME_COLLISION on duplicates
    """
    validate_collection_name(coll_name)
    files = [str(f) for f in files]
    _check_batch(files, headers, samples)

    state = collection_state(store, coll_name)
    if state is not CollectionState.NEW:
        raise VCFDBError(
            ErrorKind.LEDGER_STATE,
            f"Cannot start an initial import into `{coll_name}`: collection is {state.value}."
        )
    check_name_collisions(files, samples)

    now = _now()
    store.insert(METADATA_COLLECTION, {
        ID_FIELD: coll_name,
        META_CREATED: now,
        META_VCFS: files,
        META_HEADERS: list(headers),
        META_SAMPLES: _samples_field(samples),
        META_CONSISTENT: False,
        META_REASON: [REASON_NEW_IMPORT],
        META_LAST_EDIT: now,
    })
    store.create_container(coll_name)
    return ImportCounts(append=False, old_vcfs=0, old_samples=0,
                        sample_counts=[len(sublist) for sublist in samples])


def begin_append(store, coll_name, files, headers, samples):
    """
    Extend the metadata of a consistent collection with a new batch of files

    Returns:
        ImportCounts: previous file and sample counts, per-file sample counts after the append

    Raises:
        VCFDBError: LEDGER_STATE unless the collection is CONSISTENT, NAME_COLLISION on duplicates
    """
    validate_collection_name(coll_name)
    files = [str(f) for f in files]
    _check_batch(files, headers, samples)

    state = collection_state(store, coll_name)
    if state is not CollectionState.CONSISTENT:
        raise VCFDBError(
            ErrorKind.LEDGER_STATE,
            f"Cannot append to `{coll_name}`: collection is {state.value}."
        )

    dbmeta = store.get(METADATA_COLLECTION, coll_name)
    old_vcfs = dbmeta[META_VCFS]
    old_samples = dbmeta[META_SAMPLES]
    check_name_collisions(files, samples, old_vcfs, [s[META_SAMPLE_NAME] for s in old_samples])

    meta = {
        META_VCFS: old_vcfs + files,
        META_HEADERS: dbmeta[META_HEADERS] + list(headers),
        META_SAMPLES: old_samples + _samples_field(samples, len(old_vcfs)),
        META_CONSISTENT: False,
        META_REASON: [REASON_APPEND, files],
        META_LAST_EDIT: _now(),
    }
    # Only a still-consistent metadata document may be moved to pending
    modified = store.update_fields(
        METADATA_COLLECTION, {ID_FIELD: coll_name, META_CONSISTENT: True}, {'$set': meta}
    )
    if modified != 1:
        raise VCFDBError(ErrorKind.LEDGER_STATE, f"Collection `{coll_name}` was modified by another operation.")

    old_counts = [0] * len(old_vcfs)
    for sample in old_samples:
        old_counts[sample[META_SAMPLE_VCFID]] += 1
    return ImportCounts(append=True, old_vcfs=len(old_vcfs), old_samples=len(old_samples),
                        sample_counts=old_counts + [len(sublist) for sublist in samples])


def begin(store, coll_name, files, headers, samples, append=False):
    """
    Entry point used by vcf_import.py: pick the import mode from the collection state

    A NEW collection always gets an initial import, even when append was requested.
    """
    validate_collection_name(coll_name)
    state = collection_state(store, coll_name)
    if state is CollectionState.NEW:
        if append:
            logging.info("Collection does not exist, switching to direct import mode.")
        return begin_import(store, coll_name, files, headers, samples)
    if state is CollectionState.CONSISTENT:
        if not append:
            raise VCFDBError(
                ErrorKind.LEDGER_STATE,
                "The collection already exists but appending was not requested (use --append)."
            )
        return begin_append(store, coll_name, files, headers, samples)
    raise VCFDBError(
        ErrorKind.LEDGER_STATE,
        f"The collection is in an inconsistent state ({state.value}). Use vcf_admin.py to check (and fix) it."
    )


def update_untouched_records(store, coll_name, counts):
    """Pad every document the append did not touch with one None per new file / sample slot"""
    filtering_condition = {IDS_FIELD: {'$size': counts.old_vcfs}}
    vcfnil = [None] * counts.new_vcfs
    push = {name: {'$each': vcfnil} for name in PER_FILE_FIELDS}
    push[SAMPLES_FIELD] = {'$each': [None] * counts.new_samples}
    return store.update_fields(coll_name, filtering_condition, {'$push': push}, multi=True)


def flag_as_consistent(store, coll_name):
    store.update_fields(
        METADATA_COLLECTION,
        {ID_FIELD: coll_name},
        {'$set': {META_CONSISTENT: True, META_LAST_EDIT: _now()}}
    )


def complete_import(store, coll_name, counts):
    """
    Finalize a successful import: pad untouched documents after an append, then flag as consistent

    Args:
        store: DocumentStore
        coll_name: Collection name
        counts: ImportCounts returned by begin_import / begin_append
    """
    if counts.append:
        padded = update_untouched_records(store, coll_name, counts)
        logging.info(f"Normalized {padded} untouched records.")
    flag_as_consistent(store, coll_name)


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------

def _rollback_append(store, coll_name):
    metadata = store.get(METADATA_COLLECTION, coll_name)
    if metadata is None:
        raise VCFDBError(ErrorKind.LEDGER_STATE, "collection does not exist")

    reason = metadata.get(META_REASON) or []
    if len(reason) != 2 or reason[0] != REASON_APPEND or not reason[1]:
        raise VCFDBError(ErrorKind.LEDGER_STATE, "the metadata state is incoherent")
    bad_vcfs = reason[1]

    # Either the whole batch is still the tail of vcfs, or an earlier repair already removed it
    vcfs = metadata[META_VCFS]
    present = [f for f in bad_vcfs if f in vcfs]
    if present:
        if vcfs[-len(bad_vcfs):] != bad_vcfs:
            raise VCFDBError(ErrorKind.LEDGER_STATE, "the metadata state is incoherent")
        first_bad_vcf = len(vcfs) - len(bad_vcfs)
    else:
        first_bad_vcf = len(vcfs)
    if present and metadata.get(META_CONSISTENT):
        raise VCFDBError(
            ErrorKind.LEDGER_STATE,
            f"The append of {present} completed; refusing to roll back a consistent collection."
        )

    number_of_good_vcfs = first_bad_vcf
    number_of_good_samples = sum(
        1 for s in metadata[META_SAMPLES] if s[META_SAMPLE_VCFID] < first_bad_vcf
    )

    update_operation = {'$push': {
        name: {'$each': [], '$slice': number_of_good_vcfs} for name in PER_FILE_FIELDS
    }}
    update_operation['$push'][SAMPLES_FIELD] = {'$each': [], '$slice': number_of_good_samples}
    store.update_fields(coll_name, {}, update_operation, multi=True)

    metadata_update_operation = {
        '$set': {META_CONSISTENT: True, META_LAST_EDIT: _now()},
        '$push': {
            META_VCFS: {'$each': [], '$slice': number_of_good_vcfs},
            META_HEADERS: {'$each': [], '$slice': number_of_good_vcfs},
            META_SAMPLES: {'$each': [], '$slice': number_of_good_samples},
        },
    }
    store.update_fields(METADATA_COLLECTION, {ID_FIELD: coll_name}, metadata_update_operation)


def repair_collection(store, coll_name, state):
    """
    Perform the repair matching an inconsistent state

    SPURIOUS_METADATA drops the metadata document, PENDING_INIT drops the
    whole collection, PENDING_APPEND truncates every document (and the
    metadata) back to the files imported before the failed append. The
    append rollback can be interrupted and invoked again.

    Raises:
        VCFDBError: LEDGER_STATE for an unknown state or incoherent metadata
    """
    if state is CollectionState.SPURIOUS_METADATA:
        store.remove(METADATA_COLLECTION, {ID_FIELD: coll_name})
    elif state is CollectionState.PENDING_INIT:
        store.drop(coll_name)
        store.remove(METADATA_COLLECTION, {ID_FIELD: coll_name})
    elif state is CollectionState.PENDING_APPEND:
        _rollback_append(store, coll_name)
    else:
        raise VCFDBError(
            ErrorKind.LEDGER_STATE,
            f"unknown error state {state!r}, repair_collection() doesn't know what to do"
        )
    logging.info(f"Repaired collection `{coll_name}` ({state.value}).")
