"""Policy book — append-only record of insurance purchases.

Policies are appended in purchase order and never removed. Settlement
zeroes a policy's amount in place, which is what makes the crediting
sweep idempotent: a zeroed policy contributes nothing on any later sweep.

A secondary index (flight -> positions) avoids scanning the whole book per
sweep. Positions are appended in purchase order, so visiting them in index
order is the same as scanning the book and filtering by flight.

Storage is in-memory. The book can be reconstructed from the event log.
Queries return copies of the records. Purchases and settlements journal an
undo step per touched record, so rolling back an operation never rewrites
the rest of the book.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Optional

from flightsurety.errors import InvalidAmount
from flightsurety.journal import UndoJournal, UndoStep
from flightsurety.models.ledger import (
    CreditEntry,
    InsurancePolicy,
    PayoutBasis,
    PurchaseReceipt,
    require_finite,
    require_identity,
)


class PolicyBook:
    """In-memory, append-only book of insurance policies.

    Usage:
        book = PolicyBook(insurance_cap=Decimal("1"))
        receipt = book.purchase("XY1", "alice", Decimal("1.5"))
        # receipt.refund == Decimal("0.5"); the record keeps 1.5

        credits = book.settle_flight("XY1", Decimal("1.5"), PayoutBasis.DECLARED)
    """

    def __init__(
        self,
        insurance_cap: Decimal,
        journal: Optional[UndoJournal] = None,
    ) -> None:
        self._insurance_cap = insurance_cap
        self._journal = journal if journal is not None else UndoJournal()
        self._policies: list[InsurancePolicy] = []
        self._by_flight: dict[str, list[int]] = {}

    def purchase(self, flight: str, passenger: str, amount: Decimal) -> PurchaseReceipt:
        """Append a policy and compute the overpayment refund.

        The record stores the full declared amount. Any excess over the
        cap is reported as ``refund`` for the caller to pay back; it is not
        subtracted from the record.
        """
        require_identity(flight, "flight")
        require_identity(passenger, "passenger")
        require_finite(amount, "Insurance amount")
        if amount <= Decimal("0"):
            raise InvalidAmount(f"Insurance amount must be positive, got {amount}")

        index = len(self._policies)
        self._policies.append(
            InsurancePolicy(flight=flight, passenger=passenger, amount=amount)
        )
        positions = self._by_flight.setdefault(flight, [])
        positions.append(index)

        def _undo() -> None:
            self._policies.pop()
            positions.pop()
            if not positions:
                del self._by_flight[flight]

        self._journal.record(_undo)

        retained = min(amount, self._insurance_cap)
        return PurchaseReceipt(
            policy_index=index,
            flight=flight,
            passenger=passenger,
            amount=amount,
            retained=retained,
            refund=amount - retained,
        )

    def settle_flight(
        self,
        flight: str,
        multiplier: Decimal,
        basis: PayoutBasis = PayoutBasis.DECLARED,
    ) -> list[CreditEntry]:
        """Zero every unsettled policy for ``flight`` and return the credits.

        Entries come back in purchase order. A second call for the same
        flight returns an empty list.
        """
        entries: list[CreditEntry] = []
        for index in self._by_flight.get(flight, []):
            policy = self._policies[index]
            if policy.is_settled:
                continue
            premium_declared = policy.amount
            premium = premium_declared
            if basis == PayoutBasis.RETAINED:
                premium = min(premium, self._insurance_cap)
            entries.append(
                CreditEntry(
                    policy_index=index,
                    passenger=policy.passenger,
                    premium=premium,
                    payout=premium * multiplier,
                )
            )
            policy.amount = Decimal("0")
            self._journal.record(_restore_amount(policy, premium_declared))
        return entries

    def policies(
        self,
        flight: Optional[str] = None,
        passenger: Optional[str] = None,
    ) -> list[InsurancePolicy]:
        """Return policies in purchase order, optionally filtered."""
        if flight is not None:
            result = [self._policies[i] for i in self._by_flight.get(flight, [])]
        else:
            result = self._policies
        if passenger is not None:
            result = [p for p in result if p.passenger == passenger]
        return [replace(p) for p in result]

    @property
    def count(self) -> int:
        return len(self._policies)

    def unsettled_exposure(
        self,
        multiplier: Decimal,
        basis: PayoutBasis = PayoutBasis.DECLARED,
    ) -> Decimal:
        """Total payout owed if every unsettled policy were credited."""
        total = Decimal("0")
        for policy in self._policies:
            if policy.is_settled:
                continue
            premium = policy.amount
            if basis == PayoutBasis.RETAINED:
                premium = min(premium, self._insurance_cap)
            total += premium * multiplier
        return total


def _restore_amount(policy: InsurancePolicy, amount: Decimal) -> UndoStep:
    def _undo() -> None:
        policy.amount = amount
    return _undo
