"""
Load Workers

Drain the shared load queue into the document store with ordered bulk writes.
A worker stops after it has seen one END_OF_STREAM token from every merge
worker, flushing whatever is left in its batch.

Direct mode inserts whole documents, so re-importing a locus that already
exists fails the batch. Append mode pushes only the new files' slots onto the
documents that already exist and inserts the loci seen for the first time.
"""

import logging

from config.constants import (
    ID_FIELD, REF_FIELD, PER_FILE_FIELDS, SAMPLES_FIELD, REF_OVERRIDE_FIELD,
)
from store.document_store import InsertDocument, UpdateDocument
from .aligner import END_OF_STREAM


class BulkLoader:
    """
    Batches documents and writes them to one collection

    Args:
        store: Document store session owned by this worker
        collection: Target collection name
        chunk_size: Number of documents per bulk write
        counter: Shared Counter incremented after each successful flush
    """

    def __init__(self, store, collection, chunk_size, counter):
        self.store = store
        self.collection = collection
        self.chunk_size = chunk_size
        self.counter = counter
        self.pending = []

    def build_operations(self, documents):
        return [InsertDocument(document) for document in documents]

    def add(self, document):
        self.pending.append(document)
        if len(self.pending) >= self.chunk_size:
            self.flush()

    def flush(self):
        if not self.pending:
            return 0
        documents, self.pending = self.pending, []
        self.store.bulk_write(self.collection, self.build_operations(documents), ordered=True)
        self.counter.add(len(documents))
        logging.debug(f"Flushed {len(documents)} documents into {self.collection}")
        return len(documents)

    def run(self, next_item, producers):
        """
        Consume documents until every producer has sent its END_OF_STREAM token

        Args:
            next_item: Callable returning the next queue item
            producers: Number of merge workers feeding the queue
        """
        done_symbols_found = 0
        while done_symbols_found < producers:
            elem = next_item()
            if elem is END_OF_STREAM:
                done_symbols_found += 1
                continue
            self.add(elem)
        self.flush()


class AppendLoader(BulkLoader):
    """
    Loader for appends onto an existing collection

    Args:
        old_file_count: Files in the collection before this append
        old_sample_count: Samples in the collection before this append
    """

    def __init__(self, store, collection, chunk_size, counter, old_file_count, old_sample_count):
        super().__init__(store, collection, chunk_size, counter)
        self.old_file_count = old_file_count
        self.old_sample_count = old_sample_count

    def build_operations(self, documents):
        ids = [document[ID_FIELD] for document in documents]
        existing = {
            doc[ID_FIELD]: doc.get(REF_FIELD)
            for doc in self.store.find(self.collection, {ID_FIELD: {'$in': ids}}, {REF_FIELD: 1})
        }

        operations = []
        for document in documents:
            if document[ID_FIELD] in existing:
                update = append_update(
                    document, existing[document[ID_FIELD]], self.old_file_count, self.old_sample_count
                )
                operations.append(UpdateDocument({ID_FIELD: document[ID_FIELD]}, update))
            else:
                operations.append(InsertDocument(document))
        return operations


def append_update(document, stored_ref, old_file_count, old_sample_count):
    """Build the $push update adding the appended files' slots to an existing document"""
    push = {
        name: {'$each': document[name][old_file_count:]}
        for name in PER_FILE_FIELDS
    }
    new_samples = retarget_reference(
        document[SAMPLES_FIELD][old_sample_count:], document[REF_FIELD], stored_ref
    )
    push[SAMPLES_FIELD] = {'$each': new_samples}
    return {'$push': push}


def retarget_reference(samples, merged_ref, stored_ref):
    """
    Rewrite reference override tags relative to the REF already stored

    Samples without a tag carry merged_ref; after retargeting, a sample is
    tagged exactly when its own reference differs from stored_ref.
    """
    if stored_ref is None or merged_ref == stored_ref:
        return samples

    retargeted = []
    for sample in samples:
        if sample is None:
            retargeted.append(None)
            continue
        sample = dict(sample)
        own_ref = sample.pop(REF_OVERRIDE_FIELD, merged_ref)
        if own_ref != stored_ref:
            sample[REF_OVERRIDE_FIELD] = own_ref
        retargeted.append(sample)
    return retargeted
