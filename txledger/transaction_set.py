"""
transaction_set.py - Per-client transaction history

A TransactionSet owns the disputable history (deposits and withdrawals) of a
single client, in the order they were applied, together with the dispute state
of every entry. Dispute, resolve and chargeback records are not part of the
disputable history; applied ones are kept in a separate control log for audit.

The set does not decide whether a state change is legal. That is the Account's
job; the set only guards against changes that can never be valid.
"""

from __future__ import annotations
from typing import Dict, Iterator, List, Optional, Tuple

from .core import (
    TransactionRecord, DisputeState,
    DuplicateTransactionId, UnknownOrForeignReference, IllegalStateTransition,
)


class TransactionSet:
    """
    Ordered, append-only history of one client's deposits and withdrawals.

    Records live in an ordered list; an id -> position index gives O(1) lookups.

    Example:
        ts = TransactionSet(client_id=1)
        ts.append(TransactionRecord(TransactionKind.DEPOSIT, 1, 10, Decimal("5")))
        record, state = ts.lookup(10)
        ts.set_state(10, DisputeState.DISPUTED)
    """

    def __init__(self, client_id: int):
        self.client_id = client_id
        self._records: List[TransactionRecord] = []
        self._index: Dict[int, int] = {}
        self._states: Dict[int, DisputeState] = {}
        self._control: List[TransactionRecord] = []
        # Every applied record, disputable and control, in application order
        self._applied: List[TransactionRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, tx_id: int) -> bool:
        return tx_id in self._index

    def __iter__(self) -> Iterator[TransactionRecord]:
        return iter(self._records)

    def __repr__(self) -> str:
        return (f"TransactionSet(client={self.client_id}, records={len(self._records)}, "
                f"disputed={len(self.disputed_ids())})")

    # ========================================================================
    # MUTATION
    # ========================================================================

    def append(self, record: TransactionRecord) -> None:
        """
        Add a deposit or withdrawal to the history with state NORMAL.

        Args:
            record: A deposit or withdrawal belonging to this client

        Raises:
            ValueError: If the record is a control record or belongs to another client
            DuplicateTransactionId: If the id is already in this set
        """
        if record.is_control:
            raise ValueError(f"{record.kind.value} records are not part of the disputable history")
        if record.client_id != self.client_id:
            raise ValueError(
                f"Record for client {record.client_id} appended to set of client {self.client_id}"
            )
        if record.tx_id in self._index:
            raise DuplicateTransactionId(
                f"Transaction {record.tx_id} already recorded for client {self.client_id}"
            )
        self._index[record.tx_id] = len(self._records)
        self._records.append(record)
        self._states[record.tx_id] = DisputeState.NORMAL
        self._applied.append(record)

    def set_state(self, tx_id: int, new_state: DisputeState) -> DisputeState:
        """
        Move a transaction to a new dispute state.

        The caller is responsible for checking that the transition makes sense
        for the record being applied.

        Args:
            tx_id: Id of a transaction in this set
            new_state: State to move to

        Returns:
            The previous state

        Raises:
            UnknownOrForeignReference: If the id is not in this set
            IllegalStateTransition: If the transaction is already charged back
        """
        if tx_id not in self._states:
            raise UnknownOrForeignReference(
                f"Transaction {tx_id} is not recorded for client {self.client_id}"
            )
        old_state = self._states[tx_id]
        if old_state.is_terminal:
            raise IllegalStateTransition(
                f"Transaction {tx_id} is {old_state.value}; cannot move to {new_state.value}"
            )
        self._states[tx_id] = new_state
        return old_state

    def record_control(self, record: TransactionRecord) -> None:
        """Log an applied dispute, resolve or chargeback."""
        if not record.is_control:
            raise ValueError(f"{record.kind.value} records belong in the disputable history")
        self._control.append(record)
        self._applied.append(record)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def lookup(self, tx_id: int) -> Optional[Tuple[TransactionRecord, DisputeState]]:
        """Return the record and its dispute state, or None if absent."""
        position = self._index.get(tx_id)
        if position is None:
            return None
        return self._records[position], self._states[tx_id]

    def state_of(self, tx_id: int) -> Optional[DisputeState]:
        return self._states.get(tx_id)

    def disputed_ids(self) -> List[int]:
        """Ids currently under dispute, in history order."""
        return [r.tx_id for r in self._records if self._states[r.tx_id].is_disputed]

    def control_events(self) -> List[TransactionRecord]:
        return list(self._control)

    def applied_log(self) -> List[TransactionRecord]:
        """
        Every record applied to this client, in application order.

        Folding this list into a fresh Account reproduces the current state.
        """
        return list(self._applied)
