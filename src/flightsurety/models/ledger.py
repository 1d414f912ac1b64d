"""Ledger models — airline accounts, insurance policies, credits, custody.

All monetary values use Decimal for exact arithmetic. No floats in finance,
and no NaN or Infinity either.

Invariants enforced by these models and the engines that own them:
- An airline with has_provided_funds=True is always registered.
- Policy records are append-only; settlement zeroes the amount in place.
- Credit balances are never negative.
- Pool state is observable and auditable.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal

from flightsurety.errors import InvalidAmount, InvalidIdentity


def require_identity(identity: str, label: str) -> None:
    """Reject blank identities."""
    if not isinstance(identity, str) or not identity.strip():
        raise InvalidIdentity(f"{label} identity must be a non-blank string")


def require_finite(amount: Decimal, label: str) -> None:
    """Reject anything that is not a finite Decimal (NaN, sNaN, Infinity)."""
    if not isinstance(amount, Decimal) or not amount.is_finite():
        raise InvalidAmount(f"{label} must be a finite decimal, got {amount!r}")


class PayoutBasis(str, enum.Enum):
    """Which amount the crediting sweep multiplies.

    DECLARED: the amount stored on the policy record, even when part of it
        was refunded at purchase (an overpaying passenger is paid on the
        full declared amount).
    RETAINED: the amount actually kept by the pool, min(amount, cap).
    """
    DECLARED = "declared"
    RETAINED = "retained"


@dataclass
class AirlineAccount:
    """Membership record for one airline.

    Mutable: funding status flips once. Never deleted.
    """
    address: str
    is_registered: bool = False
    has_provided_funds: bool = False


@dataclass
class InsurancePolicy:
    """One passenger's insurance purchase for one flight.

    Mutable only in one way: ``amount`` is zeroed once the policy has been
    credited. The record itself stays in the book as audit history.
    """
    flight: str
    passenger: str
    amount: Decimal

    @property
    def is_settled(self) -> bool:
        return self.amount == Decimal("0")


@dataclass(frozen=True)
class CreditEntry:
    """A single credit produced by the crediting sweep."""
    policy_index: int
    passenger: str
    premium: Decimal
    payout: Decimal


@dataclass(frozen=True)
class PurchaseReceipt:
    """Outcome of a policy purchase."""
    policy_index: int
    flight: str
    passenger: str
    amount: Decimal
    retained: Decimal
    refund: Decimal


@dataclass(frozen=True)
class TransferRecord:
    """A value transfer out of the pool."""
    recipient: str
    amount: Decimal
    memo: str = ""


@dataclass(frozen=True)
class PoolState:
    """Observable custody state of the insurance pool.

    balance: value currently held by the ledger.
    outstanding_credit: sum of unpaid credit balances.
    committed_float: potential payout on policies not yet settled.
    shortfall: how far balance falls short of credit + float.

    Reported, not enforced. Funding payments are forwarded to the owner,
    so coverage of payouts depends on the owner topping up the pool.
    """
    balance: Decimal
    outstanding_credit: Decimal
    committed_float: Decimal
    shortfall: Decimal
    is_covered: bool

    @staticmethod
    def compute(
        balance: Decimal,
        outstanding_credit: Decimal,
        committed_float: Decimal,
    ) -> PoolState:
        """Compute pool state from balance and liabilities."""
        liabilities = outstanding_credit + committed_float
        shortfall = max(Decimal("0"), liabilities - balance)
        return PoolState(
            balance=balance,
            outstanding_credit=outstanding_credit,
            committed_float=committed_float,
            shortfall=shortfall,
            is_covered=shortfall == Decimal("0"),
        )
