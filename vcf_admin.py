#!/usr/bin/env python3
"""
VCF Document Store Administration

DESCRIPTION:
    Inspects and maintains the collections created by vcf_import.py.

COMMANDS:
    list                  List every collection
    list COLLECTION       Show the files and samples of a collection
    rename OLD NEW        Rename a collection (and its related containers)
    delete COLLECTION     Drop a collection and its metadata
    check                 Report collections left inconsistent by a failed import
    fix COLLECTION        Roll an inconsistent collection back to its last good state

    Destructive commands (rename, delete, fix) ask to type the collection name
    again unless --force is given.

USAGE:
    python vcf_admin.py list
    python vcf_admin.py --db VCF fix cohort
"""

import argparse
import logging
import sys

from config.import_config import ImportOptions, load_config, options_from_config
from ledger.admin import (
    bad_collections, collection_details, delete_collection, fix_collection,
    list_collections, rename_collection,
)
from ledger.consistency import ensure_db
from store.mongo_store import MongoDocumentStore
from utils.errors import describe_error
from utils.summary_utils import SummaryDataCalculator


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description='Inspect and repair VCF document store collections',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
USAGE:
    python vcf_admin.py list
    python vcf_admin.py --db VCF fix cohort
        """
    )
    parser.add_argument('--config', '-c', help='JSON configuration file with database settings')
    parser.add_argument('--address', help='MongoDB host (default: localhost)')
    parser.add_argument('--port', type=int, help='MongoDB port (default: 27017)')
    parser.add_argument('--db', help='Database name (default: VCF)')
    parser.add_argument('--force', action='store_true', help='Do not ask for confirmation')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', required=True)
    list_parser = subparsers.add_parser('list', help='List collections or show one collection')
    list_parser.add_argument('collection', nargs='?')
    rename_parser = subparsers.add_parser('rename', help='Rename a collection')
    rename_parser.add_argument('collection')
    rename_parser.add_argument('new_name')
    delete_parser = subparsers.add_parser('delete', help='Delete a collection')
    delete_parser.add_argument('collection')
    subparsers.add_parser('check', help='Report inconsistent collections')
    fix_parser = subparsers.add_parser('fix', help='Repair an inconsistent collection')
    fix_parser.add_argument('collection')
    return parser.parse_args(argv)


def confirm(coll_name, action, force, prompt=input):
    """Ask the operator to type the collection name before a destructive action"""
    if force:
        return True
    answer = prompt(f"About to {action} `{coll_name}`. Type the collection name to confirm: ")
    return answer.strip() == coll_name


def show_collection(store, coll_name):
    metadata = collection_details(store, coll_name)
    calculator = SummaryDataCalculator()
    status = "consistent" if metadata.get('consistent') else "INCONSISTENT"
    print(f"\n=== {coll_name} ({status}) ===")
    print(f"Created: {metadata.get('created')}  Last edit: {metadata.get('last_edit')}")
    print("\nFILES:")
    print(calculator.files_table(metadata).to_string(index=False))
    print("\nSAMPLES:")
    print(calculator.samples_table(metadata).to_string(index=False))


def run_command(store, args, prompt=input):
    """
    Execute one administrative command

    Returns:
        int: exit status
    """
    if args.command == 'list':
        if args.collection:
            show_collection(store, args.collection)
            return 0
        names = list_collections(store)
        if not names:
            print("No collections.")
        for name in names:
            print(name)
        return 0

    if args.command == 'check':
        bad = bad_collections(store)
        if not bad:
            print("✓ All collections are consistent")
            return 0
        for name, reason in bad:
            print(f"{name}: {reason}")
        print("\nUse `vcf_admin.py fix COLLECTION` to repair them.")
        return 1

    if not confirm(args.collection, args.command, args.force, prompt):
        print("Aborted.")
        return 1

    if args.command == 'rename':
        rename_collection(store, args.collection, args.new_name)
        print(f"✓ Renamed `{args.collection}` to `{args.new_name}`")
    elif args.command == 'delete':
        delete_collection(store, args.collection)
        print(f"✓ Deleted `{args.collection}`")
    elif args.command == 'fix':
        state = fix_collection(store, args.collection)
        print(f"✓ `{args.collection}` is consistent (was {state.value})")
    return 0


def main(argv=None):
    """Main entry point for the script."""
    args = parse_arguments(argv)

    # Set up logging
    logging.basicConfig(
        format='%(asctime)s - %(levelname)s - %(message)s',
        level=logging.DEBUG if args.debug else logging.INFO
    )

    try:
        options = ImportOptions()
        if args.config:
            options = options_from_config(load_config(args.config), options)
        options = options.with_overrides(address=args.address, port=args.port, db=args.db)
    except Exception as e:
        logging.error(f"Invalid configuration: {describe_error(e)}")
        return 1

    store = MongoDocumentStore(options.address, options.port, options.db)
    try:
        ensure_db(store, initialize=False)
        return run_command(store, args)
    except Exception as e:
        logging.error(f"{args.command} failed: {describe_error(e)}")
        if args.debug:
            import traceback
            logging.error(traceback.format_exc())
        return 1
    finally:
        store.close()


if __name__ == '__main__':
    sys.exit(main())
