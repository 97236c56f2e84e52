"""
VCF Decoder Adapter

Wraps pysam.VariantFile so that each input file yields a header summary, its
sample names in file order, and a lazy, forward-only stream of VariantRecord
objects. Records are fully unpacked here, inside the parser thread, so that no
pysam object is ever shared between threads.
"""

import logging
from pathlib import Path

import pysam

from config.constants import HEADER_SECTIONS, GENOTYPE_FIELD
from utils.errors import ErrorKind, VCFDBError
from .records import VariantRecord, coerce_field_value


class VcfSource:
    """
    One input VCF file opened for a single forward pass

    Args:
        path: Path to a VCF / VCF.gz / BCF file
    """

    def __init__(self, path):
        self.path = Path(path)
        if not self.path.exists():
            raise VCFDBError(ErrorKind.DECODE, f"VCF file not found: {self.path}")
        try:
            self._vcf = pysam.VariantFile(str(self.path))
        except (OSError, ValueError) as e:
            raise VCFDBError(ErrorKind.DECODE, f"Unable to open {self.path}: {e}")
        self._consumed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        if self._vcf is not None:
            self._vcf.close()
            self._vcf = None

    def sample_names(self):
        """Sample names in the order they appear in the #CHROM line"""
        return list(self._vcf.header.samples)

    def header_summary(self):
        """
        Summarize the file header for the collection metadata

        Returns:
            dict: fileformat, contigs, formats, filters, infos, others
        """
        header = self._vcf.header
        summary = {
            'fileformat': header.version or '',
            'contigs': [],
            'formats': [],
            'filters': [],
            'infos': [],
            'others': [],
        }
        for record in header.records:
            if record.type in HEADER_SECTIONS:
                summary[HEADER_SECTIONS[record.type]].append({
                    'ID': record.get('ID'),
                    'line': str(record).rstrip('\n'),
                })
            elif record.key == 'fileformat':
                summary['fileformat'] = record.value
            else:
                summary['others'].append({'key': record.key, 'value': record.value})
        return summary

    def records(self):
        """
        Stream the file's data lines as VariantRecord objects

        The stream can be consumed only once; the file is closed when it ends.

        Raises:
            VCFDBError: DECODE error for malformed records or a second pass
        """
        if self._consumed or self._vcf is None:
            raise VCFDBError(ErrorKind.DECODE, f"{self.path} has already been read")
        self._consumed = True
        try:
            for record in self._vcf:
                yield unpack_record(record)
        except (OSError, ValueError) as e:
            raise VCFDBError(ErrorKind.DECODE, f"Malformed record in {self.path}: {e}")
        finally:
            self.close()


def unpack_record(record):
    """Convert a pysam VariantRecord into a thread-safe VariantRecord"""
    return VariantRecord(
        chrom=record.chrom,
        pos=record.pos,
        id=record.id,
        ref=record.ref,
        qual=record.qual,
        filters=list(record.filter.keys()),
        info={name: coerce_field_value(value) for name, value in record.info.items()},
        samples=[unpack_sample(sample) for sample in record.samples.values()],
    )


def unpack_sample(sample):
    """Build a genotype map: GT as allele strings, then every other FORMAT field that is set"""
    alleles = sample.alleles or ()
    entry = {GENOTYPE_FIELD: [allele if allele is not None else '.' for allele in alleles]}
    for key, value in sample.items():
        if key == GENOTYPE_FIELD or value is None:
            continue
        if isinstance(value, tuple) and all(v is None for v in value):
            continue
        entry[key] = coerce_field_value(value)
    return entry


def load_sources(vcf_filenames):
    """
    Open every input file and collect headers and sample lists

    Args:
        vcf_filenames: Ordered list of VCF paths

    Returns:
        tuple: (sources, headers, samples) with one entry per file
    """
    sources = []
    try:
        for filename in vcf_filenames:
            sources.append(VcfSource(filename))
    except VCFDBError:
        for source in sources:
            source.close()
        raise

    headers = [source.header_summary() for source in sources]
    samples = [source.sample_names() for source in sources]
    for source, names in zip(sources, samples):
        logging.debug(f"{source.path}: {len(names)} samples")
    return sources, headers, samples
