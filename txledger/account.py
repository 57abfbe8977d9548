"""
account.py - Per-client balance state machine

An Account holds the balances of one client and applies records to them:

    Deposit     available += amt                 total += amt
    Withdrawal  available -= amt                 total -= amt    (needs funds)
    Dispute     available -= amt   held += amt                   (NORMAL/RESOLVED)
    Resolve     available += amt   held -= amt                   (DISPUTED)
    Chargeback                     held -= amt   total -= amt    (DISPUTED, locks)

amt is the amount of the referenced transaction for the last three. Disputes
apply the same way to deposits and withdrawals, so disputing a withdrawal drives
available further down and can make it negative.

Each record is applied in two steps: a handler validates it and describes the
balance change, then the change is committed. Rejected records return an
ApplyResult describing why and leave the balances, the lock flag and the
history untouched. A locked account rejects everything.

Invariant after every applied record:
    total == available + held
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Tuple
import logging

from .core import (
    TransactionRecord, TransactionKind, DisputeState, ApplyResult, AccountSnapshot,
    LedgerError, ZERO,
)
from .transaction_set import TransactionSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Change:
    """Balance deltas and bookkeeping produced by a validated record."""
    available: Decimal = ZERO
    held: Decimal = ZERO
    total: Decimal = ZERO
    state: Optional[DisputeState] = None
    lock: bool = False


_Outcome = Tuple[ApplyResult, Optional[_Change]]


class Account:
    """
    Financial state of one client, backed by its TransactionSet.

    An account always starts empty. Use from_records() to rebuild one from
    a record history.

    Not thread-safe. Records for one client must be applied in arrival order.
    """

    def __init__(self, client_id: int):
        self.client_id = client_id
        self.available: Decimal = ZERO
        self.held: Decimal = ZERO
        self.total: Decimal = ZERO
        self.locked: bool = False
        self.transactions = TransactionSet(client_id)

    @classmethod
    def from_records(cls, client_id: int, records: Iterable[TransactionRecord]) -> Account:
        """
        Build an account by applying records in order to a fresh state.

        Records of other clients are skipped.
        """
        account = cls(client_id)
        for record in records:
            if record.client_id == client_id:
                account.apply(record)
        return account

    def __repr__(self) -> str:
        return (f"Account(client={self.client_id}, available={self.available}, "
                f"held={self.held}, total={self.total}, locked={self.locked})")

    # ========================================================================
    # STATE MACHINE
    # ========================================================================

    def apply(self, record: TransactionRecord) -> ApplyResult:
        """
        Apply one record to this account.

        Args:
            record: A record whose client_id matches this account

        Returns:
            ApplyResult.APPLIED if the account changed, otherwise the reason the
            record was dropped.

        Raises:
            ValueError: If the record belongs to another client
            LedgerError: If committing the record would break the balance
                identity. Nothing is written in that case.
        """
        if record.client_id != self.client_id:
            raise ValueError(f"Record for client {record.client_id} applied to account {self.client_id}")

        if self.locked:
            result, change = ApplyResult.ILLEGAL_STATE_TRANSITION, None
        else:
            match record.kind:
                case TransactionKind.DEPOSIT:
                    result, change = self._deposit(record)
                case TransactionKind.WITHDRAWAL:
                    result, change = self._withdraw(record)
                case TransactionKind.DISPUTE:
                    result, change = self._dispute(record)
                case TransactionKind.RESOLVE:
                    result, change = self._resolve(record)
                case TransactionKind.CHARGEBACK:
                    result, change = self._chargeback(record)

        if result.applied:
            self._commit(record, change)
            logger.debug("Applied %r -> %r", record, self)
        else:
            logger.info("Dropped %r: %s", record, result.value)
        return result

    def _deposit(self, record: TransactionRecord) -> _Outcome:
        if record.tx_id in self.transactions:
            return ApplyResult.DUPLICATE_TRANSACTION_ID, None
        return ApplyResult.APPLIED, _Change(available=record.amount, total=record.amount)

    def _withdraw(self, record: TransactionRecord) -> _Outcome:
        if record.tx_id in self.transactions:
            return ApplyResult.DUPLICATE_TRANSACTION_ID, None
        if self.available < record.amount:
            return ApplyResult.INSUFFICIENT_FUNDS, None
        return ApplyResult.APPLIED, _Change(available=-record.amount, total=-record.amount)

    def _dispute(self, record: TransactionRecord) -> _Outcome:
        found = self.transactions.lookup(record.tx_id)
        if found is None:
            return ApplyResult.UNKNOWN_OR_FOREIGN_REFERENCE, None
        referenced, state = found
        if not state.can_dispute:
            return ApplyResult.ILLEGAL_STATE_TRANSITION, None
        return ApplyResult.APPLIED, _Change(
            available=-referenced.amount, held=referenced.amount, state=DisputeState.DISPUTED,
        )

    def _resolve(self, record: TransactionRecord) -> _Outcome:
        found = self.transactions.lookup(record.tx_id)
        if found is None:
            return ApplyResult.UNKNOWN_OR_FOREIGN_REFERENCE, None
        referenced, state = found
        if not state.is_disputed:
            return ApplyResult.ILLEGAL_STATE_TRANSITION, None
        return ApplyResult.APPLIED, _Change(
            available=referenced.amount, held=-referenced.amount, state=DisputeState.RESOLVED,
        )

    def _chargeback(self, record: TransactionRecord) -> _Outcome:
        found = self.transactions.lookup(record.tx_id)
        if found is None:
            return ApplyResult.UNKNOWN_OR_FOREIGN_REFERENCE, None
        referenced, state = found
        if not state.is_disputed:
            return ApplyResult.ILLEGAL_STATE_TRANSITION, None
        return ApplyResult.APPLIED, _Change(
            held=-referenced.amount, total=-referenced.amount,
            state=DisputeState.CHARGED_BACK, lock=True,
        )

    def _commit(self, record: TransactionRecord, change: _Change) -> None:
        available = self.available + change.available
        held = self.held + change.held
        total = self.total + change.total
        # Checked before anything is written.
        if total != available + held:
            raise LedgerError(
                f"Balance identity would break applying {record!r}: "
                f"total={total}, available={available}, held={held}"
            )

        if record.is_control:
            self.transactions.set_state(record.tx_id, change.state)
            self.transactions.record_control(record)
        else:
            self.transactions.append(record)
        self.available = available
        self.held = held
        self.total = total
        if change.lock:
            self.locked = True

    # ========================================================================
    # INVARIANTS AND VIEWS
    # ========================================================================

    def check_invariant(self) -> bool:
        """True if total == available + held."""
        return self.total == self.available + self.held

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            client_id=self.client_id,
            available=self.available,
            held=self.held,
            total=self.total,
            locked=self.locked,
        )
