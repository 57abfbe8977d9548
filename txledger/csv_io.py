"""
csv_io.py - CSV input and output for the engine

Reading:
    read_records() yields TransactionRecord values lazily from a path or an
    open text stream. Columns are located by header name (type, client, tx,
    amount) and may appear in any order; whitespace around headers and values
    is ignored. Malformed rows are logged and skipped.

Writing:
    write_snapshots() renders AccountSnapshot values with a fixed number of
    fractional digits.
"""

from __future__ import annotations
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, TextIO, Union
import csv
import logging

from .core import (
    TransactionRecord, TransactionKind, AccountSnapshot,
    MalformedRecord, IoFailure,
    CSV_INPUT_COLUMNS, CSV_OUTPUT_COLUMNS, OUTPUT_DECIMAL_PLACES,
)

logger = logging.getLogger(__name__)

Source = Union[str, Path, TextIO]

# Columns that must be present in the header; amount may be absent entirely.
REQUIRED_COLUMNS = ("type", "client", "tx")


def _parse_int(field: str, text: Optional[str]) -> int:
    if text is None or not text.strip():
        raise MalformedRecord(f"Missing {field}")
    digits = text.strip()
    # Plain ASCII digits only: no sign, no underscores, no other scripts.
    if not (digits.isascii() and digits.isdigit()):
        raise MalformedRecord(f"Invalid {field}: {text!r}")
    return int(digits)


def _parse_amount(text: Optional[str]) -> Optional[Decimal]:
    if text is None or not text.strip():
        return None
    try:
        return Decimal(text.strip())
    except ArithmeticError:
        raise MalformedRecord(f"Invalid amount: {text!r}") from None


def parse_row(row: Dict[str, Optional[str]]) -> TransactionRecord:
    """
    Build a TransactionRecord from one CSV row keyed by (stripped) header name.

    An amount on a dispute, resolve or chargeback row is ignored.

    Raises:
        MalformedRecord: If any field is missing or invalid
    """
    kind = TransactionKind.parse(row.get("type") or "")
    client_id = _parse_int("client", row.get("client"))
    tx_id = _parse_int("tx", row.get("tx"))
    amount = _parse_amount(row.get("amount")) if kind.carries_amount else None
    return TransactionRecord(kind, client_id, tx_id, amount)


def _iter_rows(stream: TextIO) -> Iterator[TransactionRecord]:
    reader = csv.reader(stream, skipinitialspace=True)
    header = next(reader, None)
    while header is not None and not any(name.strip() for name in header):
        header = next(reader, None)
    if header is None:
        return
    columns = [name.strip().lower() for name in header]
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise MalformedRecord(f"Input header is missing columns: {', '.join(missing)}")

    for values in reader:
        if not values or all(not v.strip() for v in values):
            continue
        row = {name: (values[i] if i < len(values) else None) for i, name in enumerate(columns)}
        try:
            yield parse_row(row)
        except MalformedRecord as exc:
            logger.warning("Skipping line %d: %s", reader.line_num, exc)


def read_records(source: Source) -> Iterator[TransactionRecord]:
    """
    Yield records from a CSV path or open text stream, one row at a time.

    Args:
        source: Filesystem path, or a text stream positioned at the header

    Raises:
        IoFailure: If the path cannot be opened or read
        MalformedRecord: If the header lacks a required column
    """
    if isinstance(source, (str, Path)):
        try:
            stream = open(source, newline="", encoding="utf-8")
        except OSError as exc:
            raise IoFailure(f"Failed to read file {str(source)!r}: {exc.strerror or exc}") from exc
        with stream:
            try:
                yield from _iter_rows(stream)
            except (OSError, UnicodeDecodeError) as exc:
                raise IoFailure(f"Failed to read file {str(source)!r}: {exc}") from exc
    else:
        yield from _iter_rows(source)


def write_snapshots(
    snapshots: Iterable[AccountSnapshot],
    stream: TextIO,
    places: int = OUTPUT_DECIMAL_PLACES,
) -> int:
    """
    Write snapshots as CSV with a header row.

    Returns:
        Number of account rows written
    """
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(CSV_OUTPUT_COLUMNS)
    count = 0
    for snap in snapshots:
        writer.writerow(snap.as_row(places))
        count += 1
    return count


__all__ = [
    "CSV_INPUT_COLUMNS", "REQUIRED_COLUMNS",
    "parse_row", "read_records", "write_snapshots",
]
