"""
VCF DocStore Ledger Module

Collection consistency state machine and administrative operations.
"""

from .consistency import (
    DbStatus,
    CollectionState,
    ImportCounts,
    check_db,
    init_db,
    ensure_db,
    collection_state,
    begin_import,
    begin_append,
    begin,
    complete_import,
    repair_collection,
)
from .admin import (
    list_collections,
    collection_details,
    bad_collections,
    rename_collection,
    delete_collection,
    fix_collection,
)

__all__ = [
    'DbStatus',
    'CollectionState',
    'ImportCounts',
    'check_db',
    'init_db',
    'ensure_db',
    'collection_state',
    'begin_import',
    'begin_append',
    'begin',
    'complete_import',
    'repair_collection',
    'list_collections',
    'collection_details',
    'bad_collections',
    'rename_collection',
    'delete_collection',
    'fix_collection'
]
