"""Tool for dumping record tables to the console."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from mini_record.errors import MiniRecordError, SchemaMismatchError
from mini_record.schema import Schema
from mini_record.types import TypeDescriptor


def non_negative_int(text: str) -> int:
    """argparse type for counts that may be zero but not negative."""
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: '{text}'") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return value


def list_tables(schema: Schema) -> None:
    """List all declared types and their stores."""
    print("Declared types:")
    print("-" * 40)

    for type_name in schema.list_types():
        table = schema.storage.get_table(type_name)
        if not table.exists():
            count = "-"
        else:
            try:
                count = str(table.count)
            except SchemaMismatchError:
                count = "?"
        print(f"  {type_name:<20} {table.file_path.name:<20} {count:>6} records")


def dump_table(schema: Schema, descriptor: TypeDescriptor, limit: int | None) -> None:
    """Print a table's rows in aligned columns."""
    rows = schema.storage.read_all(descriptor.name)
    if limit is not None:
        rows = rows[:limit]

    header = descriptor.header
    widths = {name: len(name) for name in header}
    for row in rows:
        for name in header:
            widths[name] = max(widths[name], len(row.get(name, "")))

    print("  ".join(name.ljust(widths[name]) for name in header))
    print("  ".join("-" * widths[name] for name in header))
    for row in rows:
        print("  ".join(row.get(name, "").ljust(widths[name]) for name in header))
    print(f"({len(rows)} records)")


def dump_table_json(schema: Schema, descriptor: TypeDescriptor, limit: int | None) -> None:
    """Print a table's hydrated records as JSON."""
    records = schema.model(descriptor.name).all()
    if limit is not None:
        records = records[:limit]

    output = {
        "table": descriptor.table_name,
        "count": len(records),
        "records": [record.to_dict() for record in records],
    }
    print(json.dumps(output, indent=2))


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Dump record table contents to the console"
    )
    parser.add_argument(
        "schema",
        type=Path,
        help="Declaration file, or directory of *.schema files",
    )
    parser.add_argument(
        "data_dir",
        type=Path,
        help="Path to the data directory containing table files",
    )
    parser.add_argument(
        "table",
        nargs="?",
        help="Name of the type to dump (omit to list types)",
    )
    parser.add_argument(
        "-j", "--json",
        action="store_true",
        help="Output as JSON",
    )
    parser.add_argument(
        "-n", "--limit",
        type=non_negative_int,
        default=None,
        help="Limit number of records to display",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log storage activity to stderr",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if not args.schema.exists():
        print(f"Error: Schema not found: {args.schema}", file=sys.stderr)
        return 1
    if not args.data_dir.exists():
        print(f"Error: Data directory not found: {args.data_dir}", file=sys.stderr)
        return 1

    try:
        schema = Schema.load(args.schema, args.data_dir)
    except (SyntaxError, MiniRecordError) as e:
        print(f"Error loading schema: {e}", file=sys.stderr)
        return 1

    with schema:
        if args.table is None:
            list_tables(schema)
            return 0

        descriptor = schema.registry.get(args.table)
        if descriptor is None:
            print(f"Error: Unknown type: {args.table}", file=sys.stderr)
            print()
            list_tables(schema)
            return 1

        try:
            if args.json:
                dump_table_json(schema, descriptor, args.limit)
            else:
                dump_table(schema, descriptor, args.limit)
        except MiniRecordError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
