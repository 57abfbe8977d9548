"""
Command line entry point.

Usage:
    txledger transactions.csv > accounts.csv
    txledger transactions.csv -o accounts.csv -v
"""

from __future__ import annotations
from typing import Optional, Sequence
import argparse
import logging
import sys

from . import __version__
from .core import LedgerError, IoFailure, MalformedRecord
from .csv_io import read_records, write_snapshots
from .ledger import Ledger

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="txledger",
        description=(
            "Replay a CSV of deposits, withdrawals, disputes, resolves and chargebacks "
            "and print the final state of every client account as CSV."
        ),
    )
    parser.add_argument("input", help="Path to the input CSV (columns: type, client, tx, amount).")
    parser.add_argument(
        "-o", "--output",
        help="Write account CSV to this file instead of standard output.",
    )
    parser.add_argument(
        "--no-sort",
        dest="sort",
        action="store_false",
        help="Emit accounts in first-seen order instead of by client id.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log dropped records (-v) or every applied record (-vv) to standard error.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def run(input_path: str) -> Ledger:
    """Replay every record of an input file into a fresh Ledger."""
    ledger = Ledger("cli")
    ledger.process_all(read_records(input_path))
    stats = ledger.stats()
    logger.info(
        "Processed: %d, applied: %d, accounts: %d",
        stats['processed'], stats['applied'], stats['accounts'],
    )
    return ledger


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)

    try:
        # The output file is only opened once the whole input is processed,
        # so a failed run leaves an existing file untouched.
        ledger = run(args.input)
        snapshots = ledger.all_snapshots(sort=args.sort)
        if args.output:
            try:
                output = open(args.output, "w", newline="", encoding="utf-8")
            except OSError as exc:
                raise IoFailure(f"Failed to open output {args.output!r}: {exc.strerror or exc}") from exc
            with output:
                write_snapshots(snapshots, output)
        else:
            write_snapshots(snapshots, sys.stdout)
    except (IoFailure, MalformedRecord) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except LedgerError as exc:
        print(f"Internal error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
