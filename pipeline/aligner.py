"""
Record Aligner

Performs the alignment of multiple sorted VCF record streams so that records
sharing a locus can be merged concurrently downstream. Each step scans the
current record of every live source, emits every record sitting at the lowest
(chrom, pos) locus as one group, and advances only those sources.

Chromosomes are ordered by plain string comparison ("chr10" < "chr2"), which
matches how the input files are expected to be sorted.
"""

from utils.errors import ErrorKind, VCFDBError


class EndOfStream:
    """Marker sent through a queue after the last data item"""

    def __repr__(self):
        return 'END_OF_STREAM'


END_OF_STREAM = EndOfStream()

# Placeholder for a source with no buffered record
_EXHAUSTED = object()


def _blocking_get(queue):
    return queue.get()


def iter_queue(queue, get=_blocking_get):
    """
    Adapt a queue into an iterable that stops at the END_OF_STREAM token

    Args:
        queue: Queue fed by a single producer
        get: Callable taking the queue and returning its next item
    """
    while True:
        item = get(queue)
        if item is END_OF_STREAM:
            return
        yield item


def compare_loci(chrom, pos, current_chrom, current_pos):
    """
    Three-way comparison of a candidate locus against the current minimum

    Returns:
        -1 if the candidate is lower (or there is no current minimum yet),
        0 if equal, 1 if higher
    """
    if current_pos is None:
        return -1
    if chrom < current_chrom or (chrom == current_chrom and pos < current_pos):
        return -1
    if chrom == current_chrom and pos == current_pos:
        return 0
    return 1


class RecordAligner:
    """
    Iterate aligned groups over N sorted record sources

    Args:
        sources: List of iterables of VariantRecord, each sorted by (chrom, pos)
        check_order: Raise ORDER_VIOLATION when a source is not strictly increasing

    Yields:
        list of (source_index, VariantRecord) tuples sharing one locus,
        sorted by source index
    """

    def __init__(self, sources, check_order=True):
        self._iterators = [iter(source) for source in sources]
        self._check_order = check_order
        self._last_loci = [None] * len(self._iterators)
        self._started = False

    def _advance(self, index):
        record = next(self._iterators[index], _EXHAUSTED)
        if record is _EXHAUSTED or not self._check_order:
            return record

        previous = self._last_loci[index]
        if previous is not None and compare_loci(record.chrom, record.pos, *previous) <= 0:
            raise VCFDBError(
                ErrorKind.ORDER_VIOLATION,
                f"source #{index} is not sorted: {record.chrom}:{record.pos} "
                f"follows {previous[0]}:{previous[1]}"
            )
        self._last_loci[index] = (record.chrom, record.pos)
        return record

    def __iter__(self):
        if self._started:
            raise RuntimeError("RecordAligner can only be iterated once")
        self._started = True

        record_buffer = [self._advance(i) for i in range(len(self._iterators))]
        exhausted = record_buffer.count(_EXHAUSTED)
        total = len(record_buffer)

        while exhausted < total:
            current_chrom = None
            current_pos = None
            selected = []

            for index, record in enumerate(record_buffer):
                if record is _EXHAUSTED:
                    continue
                order = compare_loci(record.chrom, record.pos, current_chrom, current_pos)
                if order < 0:
                    current_chrom = record.chrom
                    current_pos = record.pos
                    selected = [index]
                elif order == 0:
                    selected.append(index)
                # higher loci wait for a later round

            group = [(index, record_buffer[index]) for index in selected]
            for index in selected:
                record_buffer[index] = self._advance(index)
                if record_buffer[index] is _EXHAUSTED:
                    exhausted += 1
            yield group
