"""
Command line entry point for batch repairs.

    python -m services.format_fixer.cli BUCKET [--prefix P] [--dry-run]
                                               [--max-keys N] [--timestamp-unit ms|ns]

Exit status: 0 when every record was repaired or already canonical, 1 when a
record or the listing failed, 2 on usage errors.
"""
import argparse
import sys
from functools import partial
from typing import List, Optional

import anyio

from .src.config import settings
from .src.exceptions import FixerError
from .src.service import repair_bucket


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="format-fixer",
        description="Rewrite quasi-JSON notification records in a bucket as canonical JSON.",
    )
    parser.add_argument("bucket", help="bucket holding the stored notifications")
    parser.add_argument("--prefix", default=None, help=f"key prefix (default: {settings.default_prefix})")
    parser.add_argument("--dry-run", action="store_true", default=None, help="repair without writing back")
    parser.add_argument("--max-keys", type=int, default=None, help="stop listing after N keys")
    parser.add_argument("--timestamp-unit", choices=("ms", "ns"), default=None)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.max_keys is not None and args.max_keys < 1:
        print("--max-keys must be positive", file=sys.stderr)
        return 2

    try:
        report = anyio.run(partial(
            repair_bucket,
            args.bucket,
            args.prefix,
            dry_run=args.dry_run,
            max_keys=args.max_keys,
            timestamp_unit=args.timestamp_unit,
        ))
    except FixerError as e:
        print(f"Unable to list items in bucket {args.bucket!r}: {e}", file=sys.stderr)
        return 1

    for record in report.records:
        if record.status == "failed":
            print(f"FAILED  {record.key}: {record.error['message'] if record.error else ''}", file=sys.stderr)
    mode = " (dry run)" if report.dry_run else ""
    print(
        f"{report.bucket}/{report.prefix}{mode}: listed={report.listed} fixed={report.fixed} "
        f"unchanged={report.unchanged} failed={report.failed}"
    )
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
