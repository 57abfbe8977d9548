"""
test_account.py - Unit tests for the Account state machine

Tests:
- Deposits and withdrawals, including insufficient funds and duplicate ids
- Disputes on deposits and on withdrawals
- Resolve and chargeback preconditions
- Locked accounts reject every record
- Recomputation from a record sequence
"""

import pytest
from decimal import Decimal

from txledger import Account, ApplyResult, DisputeState, LedgerError, TransactionSet

from tests.records import deposit, withdrawal, dispute, resolve, chargeback, balances


D = Decimal


class TestDepositWithdrawal:

    def test_new_account_is_empty(self, account):
        assert balances(account) == (D("0"), D("0"), D("0"), False)

    def test_deposit(self, account):
        assert account.apply(deposit(1, 1, "10.0000")) is ApplyResult.APPLIED
        assert balances(account) == (D("10"), D("0"), D("10"), False)

    def test_withdrawal(self, account):
        account.apply(deposit(1, 1, "10"))
        assert account.apply(withdrawal(1, 2, "5")) is ApplyResult.APPLIED
        assert balances(account) == (D("5"), D("0"), D("5"), False)

    def test_withdrawal_of_exact_balance(self, account):
        account.apply(deposit(1, 1, "10"))
        assert account.apply(withdrawal(1, 2, "10")) is ApplyResult.APPLIED
        assert account.available == D("0")

    def test_withdrawal_insufficient_funds(self, account):
        account.apply(deposit(1, 1, "10"))
        account.apply(withdrawal(1, 2, "5"))
        assert account.apply(withdrawal(1, 3, "100")) is ApplyResult.INSUFFICIENT_FUNDS
        assert balances(account) == (D("5"), D("0"), D("5"), False)
        assert 3 not in account.transactions

    def test_rejected_withdrawal_id_can_be_reused(self, account):
        """Only applied records enter the history."""
        assert account.apply(withdrawal(1, 1, "5")) is ApplyResult.INSUFFICIENT_FUNDS
        assert account.apply(deposit(1, 1, "5")) is ApplyResult.APPLIED

    def test_duplicate_deposit_ignored(self, account):
        account.apply(deposit(1, 1, "10"))
        assert account.apply(deposit(1, 1, "10")) is ApplyResult.DUPLICATE_TRANSACTION_ID
        assert account.total == D("10")

    def test_duplicate_withdrawal_id_ignored(self, account):
        account.apply(deposit(1, 1, "10"))
        assert account.apply(withdrawal(1, 1, "3")) is ApplyResult.DUPLICATE_TRANSACTION_ID
        assert account.available == D("10")

    def test_decimal_precision(self, account):
        account.apply(deposit(1, 1, "1.2345"))
        account.apply(deposit(1, 2, "0.0001"))
        account.apply(withdrawal(1, 3, "0.2346"))
        assert account.available == D("1.0000")

    def test_zero_deposit(self, account):
        assert account.apply(deposit(1, 1, "0")) is ApplyResult.APPLIED
        assert account.total == D("0")
        assert 1 in account.transactions

    def test_record_for_other_client_raises(self, account):
        with pytest.raises(ValueError):
            account.apply(deposit(2, 1, "10"))

    def test_new_account_owns_empty_history(self):
        account = Account(4)
        assert account.transactions.client_id == 4
        assert len(account.transactions) == 0
        assert account.transactions.applied_log() == []

    def test_history_cannot_be_injected(self):
        """Balances always come from applied records, never from a prebuilt set."""
        with pytest.raises(TypeError):
            Account(1, TransactionSet(1))


class TestDispute:

    def test_dispute_deposit(self, account):
        account.apply(deposit(1, 1, "10"))
        assert account.apply(dispute(1, 1)) is ApplyResult.APPLIED
        assert balances(account) == (D("0"), D("10"), D("10"), False)
        assert account.transactions.state_of(1) is DisputeState.DISPUTED

    def test_dispute_after_withdrawal_goes_negative(self, account):
        account.apply(deposit(1, 1, "10"))
        account.apply(withdrawal(1, 2, "5"))
        account.apply(dispute(1, 1))
        assert balances(account) == (D("-5"), D("10"), D("5"), False)

    def test_dispute_withdrawal(self, account):
        """Disputing a withdrawal holds its amount and pushes available down."""
        account.apply(deposit(1, 1, "10"))
        account.apply(withdrawal(1, 2, "4"))
        assert account.apply(dispute(1, 2)) is ApplyResult.APPLIED
        assert balances(account) == (D("2"), D("4"), D("6"), False)

    def test_dispute_unknown_tx(self, account):
        assert account.apply(dispute(1, 99)) is ApplyResult.UNKNOWN_OR_FOREIGN_REFERENCE
        assert balances(account) == (D("0"), D("0"), D("0"), False)

    def test_dispute_twice_ignored(self, account):
        account.apply(deposit(1, 1, "10"))
        account.apply(dispute(1, 1))
        assert account.apply(dispute(1, 1)) is ApplyResult.ILLEGAL_STATE_TRANSITION
        assert account.held == D("10")

    def test_dispute_after_resolve_allowed(self, account):
        account.apply(deposit(1, 1, "10"))
        account.apply(dispute(1, 1))
        account.apply(resolve(1, 1))
        assert account.apply(dispute(1, 1)) is ApplyResult.APPLIED
        assert balances(account) == (D("0"), D("10"), D("10"), False)

    def test_dispute_is_not_added_to_history(self, account):
        account.apply(deposit(1, 1, "10"))
        account.apply(dispute(1, 1))
        assert len(account.transactions) == 1
        assert account.transactions.control_events() == [dispute(1, 1)]


class TestResolve:

    def test_resolve(self, account):
        account.apply(deposit(1, 1, "10"))
        account.apply(dispute(1, 1))
        assert account.apply(resolve(1, 1)) is ApplyResult.APPLIED
        assert balances(account) == (D("10"), D("0"), D("10"), False)
        assert account.transactions.state_of(1) is DisputeState.RESOLVED

    def test_resolve_not_disputed(self, account):
        account.apply(deposit(1, 1, "10"))
        assert account.apply(resolve(1, 1)) is ApplyResult.ILLEGAL_STATE_TRANSITION

    def test_resolve_twice_ignored(self, account):
        account.apply(deposit(1, 1, "10"))
        account.apply(dispute(1, 1))
        account.apply(resolve(1, 1))
        assert account.apply(resolve(1, 1)) is ApplyResult.ILLEGAL_STATE_TRANSITION
        assert balances(account) == (D("10"), D("0"), D("10"), False)

    def test_resolve_unknown_tx(self, account):
        assert account.apply(resolve(1, 3)) is ApplyResult.UNKNOWN_OR_FOREIGN_REFERENCE


class TestChargeback:

    def test_chargeback(self, account):
        account.apply(deposit(1, 1, "10"))
        account.apply(dispute(1, 1))
        assert account.apply(chargeback(1, 1)) is ApplyResult.APPLIED
        assert balances(account) == (D("0"), D("0"), D("0"), True)
        assert account.transactions.state_of(1) is DisputeState.CHARGED_BACK

    def test_chargeback_leaves_negative_total(self, account):
        account.apply(deposit(1, 1, "10"))
        account.apply(withdrawal(1, 2, "5"))
        account.apply(dispute(1, 1))
        account.apply(chargeback(1, 1))
        assert balances(account) == (D("-5"), D("0"), D("-5"), True)

    def test_chargeback_not_disputed(self, account):
        account.apply(deposit(1, 1, "10"))
        assert account.apply(chargeback(1, 1)) is ApplyResult.ILLEGAL_STATE_TRANSITION
        assert account.locked is False

    def test_chargeback_after_resolve_ignored(self, account):
        account.apply(deposit(1, 1, "10"))
        account.apply(dispute(1, 1))
        account.apply(resolve(1, 1))
        assert account.apply(chargeback(1, 1)) is ApplyResult.ILLEGAL_STATE_TRANSITION
        assert account.locked is False

    def test_chargeback_unknown_tx(self, account):
        assert account.apply(chargeback(1, 3)) is ApplyResult.UNKNOWN_OR_FOREIGN_REFERENCE
        assert account.locked is False


class TestLockedAccount:

    @pytest.fixture
    def locked(self, account):
        account.apply(deposit(1, 1, "10"))
        account.apply(deposit(1, 2, "7"))
        account.apply(dispute(1, 2))
        account.apply(dispute(1, 1))
        account.apply(chargeback(1, 1))
        assert account.locked
        return account

    @pytest.mark.parametrize("record", [
        deposit(1, 3, "50"),
        withdrawal(1, 3, "1"),
        dispute(1, 2),
        resolve(1, 2),
        chargeback(1, 2),
        chargeback(1, 1),
    ])
    def test_locked_account_rejects_everything(self, locked, record):
        before = balances(locked)
        assert locked.apply(record) is ApplyResult.ILLEGAL_STATE_TRANSITION
        assert balances(locked) == before

    def test_locked_account_keeps_open_dispute_held(self, locked):
        assert balances(locked) == (D("0"), D("7"), D("7"), True)


class TestRecompute:

    def test_from_records_matches_incremental(self, account):
        records = [
            deposit(1, 1, "10"), withdrawal(1, 2, "3"), dispute(1, 2),
            resolve(1, 2), withdrawal(1, 3, "100"), dispute(1, 1),
        ]
        for r in records:
            account.apply(r)
        rebuilt = Account.from_records(1, records)
        assert balances(rebuilt) == balances(account)
        assert rebuilt.transactions.applied_log() == account.transactions.applied_log()

    def test_from_records_skips_other_clients(self):
        rebuilt = Account.from_records(1, [deposit(1, 1, "5"), deposit(2, 2, "9")])
        assert rebuilt.total == D("5")

    def test_snapshot(self, account):
        account.apply(deposit(1, 1, "2"))
        snap = account.snapshot()
        assert (snap.client_id, snap.available, snap.held, snap.total, snap.locked) == \
            (1, D("2"), D("0"), D("2"), False)

    def test_broken_identity_raises_before_writing(self, account):
        account.total = D("1")
        with pytest.raises(LedgerError, match="Balance identity"):
            account.apply(deposit(1, 1, "2"))
        assert balances(account) == (D("0"), D("0"), D("1"), False)
        assert 1 not in account.transactions


class TestLargeAmounts:
    """Amounts at the accepted size limits keep the balance identity exact."""

    LARGEST = "9" * 28 + "." + "9" * 12

    @pytest.mark.parametrize("amount", [
        LARGEST,
        "1." + "1" * 12,
        "0.000000000001",
        "1234567890123456789012345678",
    ])
    def test_dispute_chargeback_cycle(self, account, amount):
        account.apply(deposit(1, 1, amount))
        account.apply(dispute(1, 1))
        assert balances(account) == (D("0"), D(amount), D(amount), False)
        assert account.apply(chargeback(1, 1)) is ApplyResult.APPLIED
        assert balances(account) == (D("0"), D("0"), D("0"), True)
        assert account.check_invariant()

    def test_many_largest_deposits_sum_exactly(self, account):
        for tx in range(1, 1001):
            account.apply(deposit(1, tx, self.LARGEST))
        account.apply(dispute(1, 500))
        assert account.total == D(self.LARGEST) * 1000
        assert account.held == D(self.LARGEST)
        assert account.check_invariant()
