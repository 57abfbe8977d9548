"""
ledger.py - Routing of transaction records to client accounts

The Ledger class is the entry point of the engine. It maps client ids to
Accounts (each owning its TransactionSet), routes incoming records to the
owning account and exposes read-only snapshots of the result.

Key responsibilities:
    - Creates accounts lazily on the first record that mentions a client
    - Never aborts a batch because of one record; rejections are counted
    - Provides snapshots at any point, including mid-stream
    - Verifies the balance identity and rebuilds itself from the applied log
"""

from __future__ import annotations
from collections import Counter
from typing import Any, Dict, Iterable, Iterator, List, Optional
import logging

from .core import TransactionRecord, ApplyResult, AccountSnapshot
from .account import Account

logger = logging.getLogger(__name__)


class Ledger:
    """
    Mapping of client id -> Account with a single processing path.

    Processing order only matters within one client's records; interleaving
    across clients has no effect on any client's final state.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own Ledger instance.

    Example:
        ledger = Ledger("main")
        ledger.process(TransactionRecord(TransactionKind.DEPOSIT, 1, 1, Decimal("10")))
        ledger.process(TransactionRecord(TransactionKind.DISPUTE, 1, 1))
        for snap in ledger.all_snapshots():
            print(snap.as_row())
    """

    def __init__(self, name: str = "main"):
        """
        Create an empty ledger.

        Args:
            name: Ledger identifier, used in log messages
        """
        self.name = name
        self._accounts: Dict[int, Account] = {}
        self._results: Counter = Counter()

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, client_id: int) -> bool:
        return client_id in self._accounts

    def __repr__(self) -> str:
        return f"Ledger({self.name!r}, accounts={len(self._accounts)}, processed={self.processed_count})"

    # ========================================================================
    # PROCESSING (Mutating)
    # ========================================================================

    def _account_for(self, client_id: int) -> Account:
        account = self._accounts.get(client_id)
        if account is None:
            account = Account(client_id)
            self._accounts[client_id] = account
            logger.debug("[%s] Opened account for client %s", self.name, client_id)
        return account

    def process(self, record: TransactionRecord) -> ApplyResult:
        """
        Apply one record to the account of its client.

        The account is created on first sight of the client, even when the
        record itself is then rejected.

        Args:
            record: Transaction record to apply

        Returns:
            The ApplyResult reported by the account
        """
        result = self._account_for(record.client_id).apply(record)
        self._results[result] += 1
        return result

    def process_all(self, records: Iterable[TransactionRecord]) -> Dict[ApplyResult, int]:
        """
        Apply every record of an iterable in order.

        The iterable is consumed lazily, one record at a time.

        Returns:
            Count of each ApplyResult produced by this call
        """
        results: Counter = Counter()
        for record in records:
            results[self.process(record)] += 1
        rejected = sum(n for r, n in results.items() if not r.applied)
        if rejected:
            logger.info("[%s] Processed %d records, %d dropped", self.name, sum(results.values()), rejected)
        return dict(results)

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    def clients(self) -> List[int]:
        """Client ids in first-seen order."""
        return list(self._accounts)

    def get_account(self, client_id: int) -> Optional[Account]:
        """Return the live Account for a client, or None."""
        return self._accounts.get(client_id)

    def snapshot(self, client_id: int) -> Optional[AccountSnapshot]:
        """Return a snapshot of one client's account, or None if unknown."""
        account = self._accounts.get(client_id)
        return account.snapshot() if account is not None else None

    def all_snapshots(self, sort: bool = True) -> Iterator[AccountSnapshot]:
        """
        Yield a snapshot of every account.

        Each call returns a fresh, single-pass generator over the accounts
        present at the time of the call.

        Args:
            sort: Order by client id (default) instead of first-seen order
        """
        client_ids = sorted(self._accounts) if sort else list(self._accounts)
        for client_id in client_ids:
            yield self._accounts[client_id].snapshot()

    @property
    def processed_count(self) -> int:
        return sum(self._results.values())

    def stats(self) -> Dict[str, int]:
        """
        Processing statistics since creation.

        Returns:
            Dict with 'processed', 'accounts' and one key per ApplyResult value
        """
        stats = {
            'processed': self.processed_count,
            'accounts': len(self._accounts),
        }
        for result in ApplyResult:
            stats[result.value] = self._results[result]
        return stats

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check total == available + held for every account.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every account satisfies the identity
            - 'discrepancies': List[Dict] - client, available, held, total, difference

        Example:
            result = ledger.verify_invariants()
            assert result['valid'], f"Identity violated: {result['discrepancies']}"
        """
        discrepancies = []
        for client_id in sorted(self._accounts):
            account = self._accounts[client_id]
            if not account.check_invariant():
                discrepancies.append({
                    'client': client_id,
                    'available': account.available,
                    'held': account.held,
                    'total': account.total,
                    'difference': account.total - (account.available + account.held),
                })
        return {
            'valid': len(discrepancies) == 0,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # REPLAY
    # ========================================================================

    def replay(self) -> Ledger:
        """
        Create a new ledger by re-applying every account's applied log.

        Rejected records are not logged, so the replayed ledger sees only
        records that were applied and must end in an identical state.
        Accounts whose records were all rejected are recreated empty.

        Returns:
            New Ledger instance with replayed state
        """
        new_ledger = Ledger(name=f"{self.name}_replayed")
        for client_id, account in self._accounts.items():
            new_ledger._account_for(client_id)
            for record in account.transactions.applied_log():
                new_ledger.process(record)
        return new_ledger
