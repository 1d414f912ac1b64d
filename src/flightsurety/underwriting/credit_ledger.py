"""Credit ledger — withdrawable passenger balances.

Balances are accounting entries against the pool, not separate custody.
Value only leaves the pool when the ledger pays out a withdrawal, and the
balance is zeroed before that payout happens.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from flightsurety.errors import InvalidAmount, NoCredits
from flightsurety.journal import UndoJournal, UndoStep
from flightsurety.models.ledger import CreditEntry, require_finite


class CreditLedger:
    """Per-passenger credit balances."""

    def __init__(self, journal: Optional[UndoJournal] = None) -> None:
        self._journal = journal if journal is not None else UndoJournal()
        self._balances: dict[str, Decimal] = {}
        self._total_credited = Decimal("0")
        self._total_withdrawn = Decimal("0")

    def apply(self, entries: list[CreditEntry]) -> None:
        """Add the sweep's payouts to passenger balances."""
        for entry in entries:
            self.credit(entry.passenger, entry.payout)

    def credit(self, passenger: str, amount: Decimal) -> Decimal:
        """Increase a balance. Returns the new balance."""
        require_finite(amount, "Credit amount")
        if amount < Decimal("0"):
            raise InvalidAmount(f"Credit amount must not be negative, got {amount}")
        previous = self._balances.get(passenger)
        balance = (previous or Decimal("0")) + amount
        self._balances[passenger] = balance
        self._total_credited += amount
        self._journal.record(self._undo_step(passenger, previous, credited=amount))
        return balance

    def debit_all(self, passenger: str) -> Decimal:
        """Zero the passenger's balance and return what it held.

        Raises NoCredits if there is nothing to withdraw.
        """
        balance = self._balances.get(passenger, Decimal("0"))
        if balance <= Decimal("0"):
            raise NoCredits(f"No credits to withdraw for {passenger}")
        self._balances[passenger] = Decimal("0")
        self._total_withdrawn += balance
        self._journal.record(self._undo_step(passenger, balance, withdrawn=balance))
        return balance

    def balance_of(self, passenger: str) -> Decimal:
        return self._balances.get(passenger, Decimal("0"))

    @property
    def outstanding(self) -> Decimal:
        """Sum of all unpaid balances."""
        return sum(self._balances.values(), Decimal("0"))

    @property
    def total_credited(self) -> Decimal:
        return self._total_credited

    @property
    def total_withdrawn(self) -> Decimal:
        return self._total_withdrawn

    def _undo_step(
        self,
        passenger: str,
        previous: Optional[Decimal],
        credited: Decimal = Decimal("0"),
        withdrawn: Decimal = Decimal("0"),
    ) -> UndoStep:
        def _undo() -> None:
            if previous is None:
                self._balances.pop(passenger, None)
            else:
                self._balances[passenger] = previous
            self._total_credited -= credited
            self._total_withdrawn -= withdrawn
        return _undo
