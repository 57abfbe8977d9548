"""
Core types for the transaction replay engine.

This module provides the foundational data structures shared by every layer:
1. Enums: TransactionKind, DisputeState, ApplyResult
2. Immutable data structures: TransactionRecord, AccountSnapshot
3. Exceptions: LedgerError and one subclass per error kind
4. Formatting helpers for fixed-point amounts

Nothing in this module mutates account state.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN, getcontext, localcontext
from enum import Enum
from typing import Optional, Tuple


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Replays must be deterministic, so the global Decimal context is fixed at
# module load time.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
#   - prec=50: with amounts bounded below (CONSTANTS), sums stay exact until a
#     balance reaches 1e38, i.e. more than 1e10 maximal deposits
#   - rounding=ROUND_HALF_EVEN: only used when rendering output
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Fractional digits used for every rendered amount.
OUTPUT_DECIMAL_PLACES = 4

ZERO = Decimal("0")

# Bounds on a single input amount. Every amount is a multiple of 1e-12 below
# 1e28, so it has at most 40 significant digits and sums of amounts are exact
# under the context precision above.
MAX_AMOUNT_INTEGER_DIGITS = 28
MAX_AMOUNT_PLACES = 12
MAX_AMOUNT = Decimal(1).scaleb(MAX_AMOUNT_INTEGER_DIGITS)
AMOUNT_QUANTUM = Decimal(1).scaleb(-MAX_AMOUNT_PLACES)

CSV_INPUT_COLUMNS = ("type", "client", "tx", "amount")
CSV_OUTPUT_COLUMNS = ("client", "available", "held", "total", "locked")


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class MalformedRecord(LedgerError, ValueError):
    """Raised when a TransactionRecord cannot be built from its inputs."""
    pass


class DuplicateTransactionId(LedgerError):
    """Raised when a deposit or withdrawal id is already present for the client."""
    pass


class UnknownOrForeignReference(LedgerError):
    """Raised when a referenced transaction id is not owned by the client."""
    pass


class IllegalStateTransition(LedgerError):
    """Raised when a dispute state change is not allowed from the current state."""
    pass


class InsufficientFunds(LedgerError):
    """
    Error kind for a withdrawal that exceeds the available balance.

    The engine never raises it: Account.apply reports the condition as
    ApplyResult.INSUFFICIENT_FUNDS. It completes the error taxonomy so callers
    can map a result to an exception through ApplyResult.error.
    """
    pass


class IoFailure(LedgerError):
    """Raised when the input source cannot be opened or read."""
    pass


# ============================================================================
# ENUMS
# ============================================================================

class TransactionKind(Enum):
    """
    The five event types understood by the engine.

    DEPOSIT and WITHDRAWAL carry an amount and become part of the client's
    disputable history. DISPUTE, RESOLVE and CHARGEBACK carry no amount and
    reference an earlier deposit or withdrawal by id.
    """
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @classmethod
    def parse(cls, text: str) -> TransactionKind:
        """
        Parse a transaction type name.

        Matching is case-insensitive and ignores surrounding whitespace.
        "withdraw" is accepted as an alias of "withdrawal".

        Raises:
            MalformedRecord: If the name is not a known transaction type
        """
        if not isinstance(text, str):
            raise MalformedRecord(f"Transaction type must be str, got {type(text).__name__}")
        name = text.strip().lower()
        if name == "withdraw":
            name = cls.WITHDRAWAL.value
        try:
            return cls(name)
        except ValueError:
            raise MalformedRecord(f"Unknown transaction type: {text!r}") from None

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionKind.DEPOSIT, TransactionKind.WITHDRAWAL)


class DisputeState(Enum):
    """
    Dispute lifecycle of a single deposit or withdrawal.

    NORMAL -> DISPUTED -> RESOLVED -> DISPUTED -> ... -> CHARGED_BACK

    RESOLVED behaves like NORMAL for future disputes. CHARGED_BACK is terminal.
    """
    NORMAL = "normal"
    DISPUTED = "disputed"
    RESOLVED = "resolved"
    CHARGED_BACK = "charged_back"

    @property
    def can_dispute(self) -> bool:
        return self in (DisputeState.NORMAL, DisputeState.RESOLVED)

    @property
    def is_disputed(self) -> bool:
        return self is DisputeState.DISPUTED

    @property
    def is_terminal(self) -> bool:
        return self is DisputeState.CHARGED_BACK


class ApplyResult(Enum):
    """
    Outcome of applying one record to an account.

    APPLIED: The record passed every precondition and mutated the account.
    DUPLICATE_TRANSACTION_ID: A deposit or withdrawal reused an existing id.
    UNKNOWN_OR_FOREIGN_REFERENCE: A dispute, resolve or chargeback referenced
        an id missing from the client's history.
    ILLEGAL_STATE_TRANSITION: The referenced transaction is in the wrong
        dispute state, or the account is locked.
    INSUFFICIENT_FUNDS: A withdrawal exceeded the available balance.

    Every value other than APPLIED leaves the account untouched.
    """
    APPLIED = "applied"
    DUPLICATE_TRANSACTION_ID = "duplicate_transaction_id"
    UNKNOWN_OR_FOREIGN_REFERENCE = "unknown_or_foreign_reference"
    ILLEGAL_STATE_TRANSITION = "illegal_state_transition"
    INSUFFICIENT_FUNDS = "insufficient_funds"

    @property
    def applied(self) -> bool:
        return self is ApplyResult.APPLIED

    @property
    def error(self) -> Optional[type]:
        """The LedgerError subclass naming this rejection, or None for APPLIED."""
        return _RESULT_ERRORS.get(self)


_RESULT_ERRORS = {
    ApplyResult.DUPLICATE_TRANSACTION_ID: DuplicateTransactionId,
    ApplyResult.UNKNOWN_OR_FOREIGN_REFERENCE: UnknownOrForeignReference,
    ApplyResult.ILLEGAL_STATE_TRANSITION: IllegalStateTransition,
    ApplyResult.INSUFFICIENT_FUNDS: InsufficientFunds,
}


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

def _is_plain_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """
    One input event.

    Attributes:
        kind: The transaction type.
        client_id: Owner of the account the event applies to.
        tx_id: Transaction id. For deposits and withdrawals this is the id of
            the new transaction; for disputes, resolves and chargebacks it is
            the id of the referenced transaction.
        amount: Non-negative Decimal for deposits and withdrawals, None otherwise.
            Bounded by MAX_AMOUNT and MAX_AMOUNT_PLACES so balance arithmetic
            stays exact.

    This class is immutable (frozen=True) and memory-optimized (slots=True).
    All fields are validated in __post_init__.
    """
    kind: TransactionKind
    client_id: int
    tx_id: int
    amount: Optional[Decimal] = None

    def __post_init__(self):
        if not isinstance(self.kind, TransactionKind):
            raise MalformedRecord(f"Record kind must be TransactionKind, got {type(self.kind).__name__}")
        if not _is_plain_int(self.client_id) or self.client_id < 0:
            raise MalformedRecord(f"Record client_id must be a non-negative int, got {self.client_id!r}")
        if not _is_plain_int(self.tx_id) or self.tx_id < 0:
            raise MalformedRecord(f"Record tx_id must be a non-negative int, got {self.tx_id!r}")

        if not self.kind.carries_amount:
            if self.amount is not None:
                raise MalformedRecord(f"{self.kind.value} record must not carry an amount")
            return

        if self.amount is None:
            raise MalformedRecord(f"{self.kind.value} record requires an amount")
        if not isinstance(self.amount, Decimal):
            raise MalformedRecord(f"Record amount must be Decimal, got {type(self.amount).__name__}")
        if self.amount.is_nan() or self.amount.is_infinite():
            raise MalformedRecord(f"Record amount must be finite, got {self.amount}")
        if self.amount < ZERO:
            raise MalformedRecord(f"Record amount must be non-negative, got {self.amount}")
        if self.amount >= MAX_AMOUNT:
            raise MalformedRecord(
                f"Record amount must have at most {MAX_AMOUNT_INTEGER_DIGITS} integer digits, got {self.amount}"
            )
        if self.amount.quantize(AMOUNT_QUANTUM) != self.amount:
            raise MalformedRecord(
                f"Record amount must have at most {MAX_AMOUNT_PLACES} fractional digits, got {self.amount}"
            )

    @property
    def is_control(self) -> bool:
        """True for dispute, resolve and chargeback records."""
        return not self.kind.carries_amount

    def __repr__(self) -> str:
        amount = f", amount={self.amount}" if self.amount is not None else ""
        return f"TransactionRecord({self.kind.value}, client={self.client_id}, tx={self.tx_id}{amount})"


@dataclass(frozen=True, slots=True)
class AccountSnapshot:
    """
    Read-only view of an account at a point in time.

    Attributes:
        client_id: Owner of the account.
        available: Funds the client can withdraw. May be negative.
        held: Funds frozen by open disputes.
        total: available + held.
        locked: True once a chargeback has been applied.
    """
    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool

    def as_row(self, places: int = OUTPUT_DECIMAL_PLACES) -> Tuple[str, str, str, str, str]:
        """Render the snapshot as output column values."""
        return (
            str(self.client_id),
            format_amount(self.available, places),
            format_amount(self.held, places),
            format_amount(self.total, places),
            "true" if self.locked else "false",
        )


# ============================================================================
# FORMATTING
# ============================================================================

def format_amount(value: Decimal, places: int = OUTPUT_DECIMAL_PLACES) -> str:
    """
    Render an amount with exactly `places` fractional digits.

    Uses fixed-point notation, never scientific notation, and normalizes a
    negative zero to "0.0000". Values of any magnitude render in full.

    Raises:
        ValueError: If places is negative

    Examples:
        format_amount(Decimal("1.5"))     -> "1.5000"
        format_amount(Decimal("-5"))      -> "-5.0000"
        format_amount(Decimal("0.00005")) -> "0.0000"  (half-even)
    """
    if places < 0:
        raise ValueError(f"places must be non-negative, got {places}")
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        # quantize fails if the result needs more digits than the precision
        ctx.prec = max(ctx.prec, value.adjusted() + places + 2)
        rounded = value.quantize(quantum, rounding=ROUND_HALF_EVEN)
    if rounded.is_zero():
        rounded = abs(rounded)
    return f"{rounded:f}"
