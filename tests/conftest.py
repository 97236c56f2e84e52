"""
Shared pytest fixtures for the VCF document store tests.

Provides:
- An in-memory document store
- Small pipeline options (tiny buffers and chunks to exercise backpressure)
- VCF text files written to tmp_path
"""

from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

TESTS_ROOT = Path(__file__).resolve().parent
if str(TESTS_ROOT) not in sys.path:
    sys.path.insert(0, str(TESTS_ROOT))

from config.import_config import ImportOptions  # noqa: E402
from memory_store import MemoryDocumentStore  # noqa: E402


# =============================================================================
# Store and options
# =============================================================================


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def options():
    return ImportOptions(
        chunk_size=2,
        merger_threads=2,
        loader_threads=3,
        parser_buffer_size=2,
        merger_buffer_size=2,
        loader_buffer_size=2,
        no_progress=True,
        poll_interval=0.01,
    )


# =============================================================================
# VCF files
# =============================================================================


VCF_HEADER = """##fileformat=VCFv4.2
##contig=<ID=chr1,length=248956422>
##contig=<ID=chr2,length=242193529>
##FILTER=<ID=LowQual,Description="Low quality">
##INFO=<ID=DP,Number=1,Type=Integer,Description="Total depth">
##INFO=<ID=AF,Number=A,Type=Float,Description="Allele frequency">
##INFO=<ID=DB,Number=0,Type=Flag,Description="dbSNP membership">
##FORMAT=<ID=GT,Number=1,Type=String,Description="Genotype">
##FORMAT=<ID=DP,Number=1,Type=Integer,Description="Read depth">
##FORMAT=<ID=AD,Number=R,Type=Integer,Description="Allelic depths">
##source=unittest
"""


@pytest.fixture
def write_vcf(tmp_path):
    """Write a VCF with the given sample names and tab-separated data lines"""
    def _write(name, samples, lines):
        columns = ['#CHROM', 'POS', 'ID', 'REF', 'ALT', 'QUAL', 'FILTER', 'INFO', 'FORMAT'] + list(samples)
        path = tmp_path / name
        path.write_text(VCF_HEADER + '\t'.join(columns) + '\n' + ''.join(line + '\n' for line in lines))
        return path
    return _write
