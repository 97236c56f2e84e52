#!/usr/bin/env python3
"""
VCF Document Store Importer

DESCRIPTION:
    Imports a set of sorted VCF files into a MongoDB collection. Records that
    share a (chrom, pos) locus across files are merged into one document with
    one slot per file, so every document of a collection has the same shape.

    Files can be appended to an existing collection with --append: documents
    at loci already present get the new files' slots pushed onto them, every
    other document is padded with empty slots once the import completes.

    An interrupted import leaves the collection flagged as inconsistent; use
    vcf_admin.py check / fix to roll it back.

EXPECTED INPUT:
    - VCF, VCF.gz or BCF files readable by pysam
    - Records sorted by chromosome (plain string order) then position
    - Sample names unique across every file of the collection

EXAMPLE CONFIG FILE (config.json):
{
    "database": {
        "address": "localhost",
        "port": 27017,
        "db": "VCF"
    },
    "import": {
        "chunk_size": 500,
        "merger_threads": 2,
        "loader_threads": 2
    }
}

USAGE:
    python vcf_import.py --config config.json cohort a.vcf.gz b.vcf.gz
    python vcf_import.py --append cohort c.vcf.gz
"""

import argparse
import logging
import sys

from config.import_config import ImportOptions, load_config, options_from_config
from ledger.consistency import begin, complete_import, ensure_db
from pipeline.decoder import load_sources
from pipeline.manager import PipelineManager
from store.mongo_store import MongoDocumentStore
from utils.errors import describe_error
from utils.summary_utils import SummaryDataCalculator


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description='Import sorted VCF files into a MongoDB collection',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
USAGE:
    python vcf_import.py --config config.json cohort a.vcf.gz b.vcf.gz
    python vcf_import.py --append cohort c.vcf.gz
        """
    )
    parser.add_argument('collection', help='Target collection name')
    parser.add_argument('files', nargs='+', help='VCF files to import, in slot order')
    parser.add_argument('--config', '-c', help='JSON configuration file with database and import settings')
    parser.add_argument('--address', help='MongoDB host (default: localhost)')
    parser.add_argument('--port', type=int, help='MongoDB port (default: 27017)')
    parser.add_argument('--db', help='Database name (default: VCF)')
    parser.add_argument('--append', action='store_true', default=None,
                        help='Append the files to an existing collection')
    parser.add_argument('--no-progress', action='store_true', default=None,
                        help='Do not print the progress line')
    parser.add_argument('--drop-bad-records', action='store_true', default=None,
                        help='Skip malformed records instead of aborting the import')
    parser.add_argument('--chunk-size', type=int, help='Documents per bulk write (default: 500)')
    parser.add_argument('--merger-threads', type=int, help='Number of merge workers (default: 1)')
    parser.add_argument('--loader-threads', type=int, help='Number of load workers (default: 2)')
    parser.add_argument('--parser-buffer-size', type=int, help='Records buffered per input file (default: 1000)')
    parser.add_argument('--merger-buffer-size', type=int, help='Groups buffered before merging (default: 1000)')
    parser.add_argument('--loader-buffer-size', type=int, help='Documents buffered before loading (default: 1000)')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    return parser.parse_args(argv)


def build_options(args):
    """Defaults, then the config file, then command line flags"""
    options = ImportOptions()
    if args.config:
        options = options_from_config(load_config(args.config), options)
        print(f"✓ Loaded configuration from: {args.config}")
    return options.with_overrides(
        address=args.address,
        port=args.port,
        db=args.db,
        append=args.append,
        no_progress=args.no_progress,
        drop_bad_records=args.drop_bad_records,
        chunk_size=args.chunk_size,
        merger_threads=args.merger_threads,
        loader_threads=args.loader_threads,
        parser_buffer_size=args.parser_buffer_size,
        merger_buffer_size=args.merger_buffer_size,
        loader_buffer_size=args.loader_buffer_size,
    ).validate()


def print_error_report(report):
    errors_df = SummaryDataCalculator().errors_table(report)
    if errors_df.empty:
        return
    print("\n=== ERRORS ===")
    print(errors_df.to_string(index=False))


def run_import(store, collection, files, options):
    """
    Import files into collection

    Returns:
        bool: True when the collection was left consistent
    """
    ensure_db(store)

    sources, headers, samples = load_sources(files)
    try:
        counts = begin(store, collection, files, headers, samples, append=options.append)
        mode = "Appending" if counts.append else "Importing"
        print(f"✓ {mode} {len(files)} files ({sum(len(s) for s in samples)} samples) into `{collection}`")

        manager = PipelineManager(store, collection, [s.records() for s in sources], counts, options)
        report = manager.run()
    finally:
        for source in sources:
            source.close()

    if report.dropped:
        logging.warning(f"Dropped {len(report.dropped)} malformed records.")

    if not report.succeeded:
        print_error_report(report)
        print(f"\nThe import failed and `{collection}` is now inconsistent.")
        print(f"Use `vcf_admin.py fix {collection}` to roll it back.")
        return False

    complete_import(store, collection, counts)
    print(f"✓ Collection `{collection}` is consistent ({report.imported} documents written)")
    if report.dropped:
        print_error_report(report)
    return True


def main(argv=None):
    """Main entry point for the script."""
    args = parse_arguments(argv)

    # Set up logging
    logging.basicConfig(
        format='%(asctime)s - %(levelname)s - %(message)s',
        level=logging.DEBUG if args.debug else logging.INFO
    )

    try:
        options = build_options(args)
    except Exception as e:
        logging.error(f"Invalid configuration: {describe_error(e)}")
        return 1

    store = MongoDocumentStore(options.address, options.port, options.db)
    try:
        succeeded = run_import(store, args.collection, args.files, options)
    except Exception as e:
        logging.error(f"Import failed: {describe_error(e)}")
        if args.debug:
            import traceback
            logging.error(traceback.format_exc())
        return 1
    finally:
        store.close()

    return 0 if succeeded else 1


if __name__ == '__main__':
    sys.exit(main())
