#!/usr/bin/env python3
"""
Script to rebalance the positions of one ordered collection.

After many inserts at the same end of a list, positions grow longer
('z', 'zV', 'zzV', ...). This script reads every row of a collection in
position order and rewrites all of them as short, evenly spaced keys in a
single transaction. The relative order of the rows does not change.

Usage:
    python3 scripts/rebalance_collection.py TABLE POSITION_COLUMN ID_COLUMN
        [--partition-column COLUMN --partition-value VALUE] [--dry-run] [--yes]

Environment variables needed (same as the Flask app):
    PGHOST, PGDATABASE, PGUSER, PGPASSWORD, PGPORT
"""

import argparse
import os
import sys
from dotenv import load_dotenv

# Load environment variables from parent directory
script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
load_dotenv(os.path.join(project_root, '.env'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

import psycopg2
from database import CollectionRef
from services.position_service import PositionService


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Rewrite the positions of one collection as short, evenly spaced keys."
    )
    parser.add_argument("table", help="Table name, optionally schema-qualified")
    parser.add_argument("position_column", help="Text column holding positions")
    parser.add_argument("id_column", help="Column identifying each row")
    parser.add_argument("--partition-column", help="Column selecting one collection")
    parser.add_argument("--partition-value", help="Value of the partition column")
    parser.add_argument("--dry-run", action="store_true", help="Show the plan without writing")
    parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    args = parser.parse_args(argv)
    if (args.partition_column is None) != (args.partition_value is None):
        parser.error("--partition-column and --partition-value must be given together")
    return args


def main(argv=None, service=None):
    """Main function to rebalance one collection."""
    args = parse_args(argv)

    required_vars = ['PGHOST', 'PGDATABASE', 'PGUSER', 'PGPASSWORD']
    missing_vars = [var for var in required_vars if not os.environ.get(var)]
    if service is None and missing_vars:
        print("Error: Missing required environment variables:")
        for var in missing_vars:
            print(f"  {var}")
        return 1

    ref = CollectionRef(
        table=args.table,
        position_column=args.position_column,
        id_column=args.id_column,
        partition_column=args.partition_column,
        partition_value=args.partition_value,
    )
    service = service or PositionService()

    try:
        current, planned = service.plan_rebalance(ref)
    except psycopg2.Error as e:
        print(f"Error reading {ref.describe()}: {e}")
        return 1

    if not current:
        print(f"No rows found in {ref.describe()}.")
        return 0

    longest = max(len(position) for _, position in current)
    print(f"Found {len(current)} rows in {ref.describe()}.")
    print(f"Longest key before: {longest}, after: {len(planned[0][1])}")

    if args.dry_run:
        for (item_id, old), (_, new) in zip(current, planned):
            print(f"  {item_id}: {old} -> {new}")
        print("Dry run: nothing written.")
        return 0

    if not args.yes:
        response = input(f"Rewrite {len(current)} positions? (y/N): ")
        if response.lower() not in ['y', 'yes']:
            print("Cancelled by user.")
            return 0

    try:
        updated = service.rebalance_collection(ref)
    except psycopg2.Error as e:
        print(f"Rebalance failed, no rows changed: {e}")
        return 1

    print(f"Rebalance complete! Updated {updated} rows.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
