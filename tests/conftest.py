"""
conftest.py - Shared pytest fixtures for txledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Empty ledgers and accounts
- The reference scenario ledger (deposit 10, withdraw 5)
- CSV input files written to a temporary directory
"""

import pytest
from decimal import Decimal

from txledger import Ledger, Account

from tests.records import deposit, withdrawal


@pytest.fixture
def ledger():
    """Empty ledger."""
    return Ledger("test")


@pytest.fixture
def account():
    """Fresh account for client 1."""
    return Account(1)


@pytest.fixture
def funded_ledger():
    """Client 1 after depositing 10 (tx 1) and withdrawing 5 (tx 2)."""
    ledger = Ledger("test")
    ledger.process(deposit(1, 1, Decimal("10.0000")))
    ledger.process(withdrawal(1, 2, Decimal("5.0000")))
    return ledger


@pytest.fixture
def write_csv(tmp_path):
    """Write lines to a CSV file in tmp_path and return its path as str."""
    def _write(lines, name="transactions.csv"):
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n")
        return str(path)
    return _write
