"""
txledger - Transaction Replay Ledger

Replays an ordered stream of per-client transactions (deposit, withdrawal,
dispute, resolve, chargeback) into final account states.

Usage:
    from decimal import Decimal
    from txledger import Ledger, TransactionRecord, TransactionKind

    ledger = Ledger("main")
    ledger.process(TransactionRecord(TransactionKind.DEPOSIT, 1, 1, Decimal("10")))
    ledger.process(TransactionRecord(TransactionKind.WITHDRAWAL, 1, 2, Decimal("4")))
    ledger.process(TransactionRecord(TransactionKind.DISPUTE, 1, 1))

    ledger.snapshot(1)
    # AccountSnapshot(client_id=1, available=Decimal('-4'), held=Decimal('10'),
    #                 total=Decimal('6'), locked=False)

Reading and writing CSV:
    from txledger import read_records, write_snapshots
    ledger.process_all(read_records("transactions.csv"))
    write_snapshots(ledger.all_snapshots(), sys.stdout)
"""

__version__ = '1.0.0'

# Core types
from .core import (
    TransactionKind,
    DisputeState,
    ApplyResult,
    TransactionRecord,
    AccountSnapshot,
    LedgerError,
    MalformedRecord,
    DuplicateTransactionId,
    UnknownOrForeignReference,
    IllegalStateTransition,
    InsufficientFunds,
    IoFailure,
    format_amount,
    OUTPUT_DECIMAL_PLACES,
    MAX_AMOUNT,
    MAX_AMOUNT_PLACES,
)

# State
from .transaction_set import TransactionSet
from .account import Account
from .ledger import Ledger

# CSV
from .csv_io import parse_row, read_records, write_snapshots

__all__ = [
    # Core
    'TransactionKind', 'DisputeState', 'ApplyResult',
    'TransactionRecord', 'AccountSnapshot',
    'LedgerError', 'MalformedRecord', 'DuplicateTransactionId',
    'UnknownOrForeignReference', 'IllegalStateTransition', 'InsufficientFunds', 'IoFailure',
    'format_amount', 'OUTPUT_DECIMAL_PLACES', 'MAX_AMOUNT', 'MAX_AMOUNT_PLACES',
    # State
    'TransactionSet', 'Account', 'Ledger',
    # CSV
    'parse_row', 'read_records', 'write_snapshots',
]
