"""Record builders shared by the tests."""

from pipeline.records import VariantRecord


def make_record(chrom, pos, ref='A', samples=None, id=None, qual=None, filters=None, info=None):
    """VariantRecord with one heterozygous sample unless samples are given"""
    if samples is None:
        samples = [{'GT': [ref, 'T']}]
    return VariantRecord(
        chrom=chrom,
        pos=pos,
        ref=ref,
        id=id,
        qual=qual,
        filters=filters if filters is not None else ['PASS'],
        info=info if info is not None else {},
        samples=samples,
    )


def make_stream(*loci, **kwargs):
    """List of records, one per (chrom, pos) locus"""
    return [make_record(chrom, pos, **kwargs) for chrom, pos in loci]
