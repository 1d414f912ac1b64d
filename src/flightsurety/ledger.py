"""FlightSurety ledger — the custodial state machine.

One ledger object is created at startup and handed to whatever fronts it
(the service facade, the CLI, tests). It owns:
- the airline registry (membership and funding gate),
- the policy book (insurance purchases),
- the credit ledger (withdrawable balances),
- the operational gate (kill-switch, owner, caller allow-list),
- the settlement rail used to pay value out of the pool.

Every mutating operation is all-or-nothing. Components share one undo
journal and record how to reverse each entry they touch; if anything
raises, including a failed transfer, the operation's steps are undone in
reverse. Rollback cost follows the work an operation did, not the size of
the book. Operations follow checks -> effects ->
interaction: value is paid out through the rail only after the ledger's
own state reflects the payment, so a re-entrant call made from inside a
transfer sees the updated state (e.g. a zeroed credit balance).

Operations run sequentially; there are no locks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Optional

from flightsurety.access.operational_gate import OperationalGate
from flightsurety.errors import (
    InsufficientPayment,
    MalformedCall,
    NonPayableOperation,
    TransferFailed,
    UnknownOperation,
)
from flightsurety.governance.airline_registry import AirlineRegistry
from flightsurety.journal import UndoJournal
from flightsurety.models.ledger import (
    AirlineAccount,
    CreditEntry,
    InsurancePolicy,
    PoolState,
    PurchaseReceipt,
    require_finite,
)
from flightsurety.params import LedgerParams
from flightsurety.underwriting.credit_ledger import CreditLedger
from flightsurety.underwriting.policy_book import PolicyBook
from flightsurety.underwriting.settlement_rail import (
    InMemorySettlementRail,
    SettlementRail,
)


# Operations that accept attached value.
PAYABLE_OPERATIONS = frozenset({"fund", "buy"})

# Arguments each selector needs, and their types.
REQUIRED_ARGS: dict[str, dict[str, type]] = {
    "register_airline": {"candidate": str},
    "fund": {},
    "buy": {"flight": str},
    "credit_insurees": {"flight": str},
    "withdraw": {},
    "set_operating_status": {"mode": bool},
    "authorize_caller": {"identity": str},
    "deauthorize_caller": {"identity": str},
}

# Optional arguments and their types.
OPTIONAL_ARGS: dict[str, dict[str, type]] = {
    "buy": {"passenger": str},
    "withdraw": {"insuree": str},
}


@dataclass(frozen=True)
class LedgerCall:
    """A raw call into the ledger, as an external platform would submit it.

    ``operation`` is the selector; None means a bare value transfer.
    """
    caller: str
    operation: Optional[str] = None
    value: Decimal = Decimal("0")
    args: dict[str, Any] = field(default_factory=dict)


class FlightSuretyLedger:
    """Custodial ledger for airline membership, insurance and credits.

    Usage:
        ledger = FlightSuretyLedger(owner="airline_1")
        ledger.register_airline("airline_2", caller="airline_1")
        ledger.buy("XY1", "alice", Decimal("1"))
        ledger.credit_insurees("XY1")
        ledger.withdraw("alice")           # pays 1.5 through the rail

    The owner is registered and funded as the first airline on creation.
    """

    def __init__(
        self,
        owner: str,
        params: Optional[LedgerParams] = None,
        rail: Optional[SettlementRail] = None,
    ) -> None:
        self._params = params or LedgerParams()
        self._journal = UndoJournal()
        self._gate = OperationalGate(owner, journal=self._journal)
        self._registry = AirlineRegistry(
            self._params.consensus_threshold, journal=self._journal,
        )
        self._book = PolicyBook(self._params.insurance_cap, journal=self._journal)
        self._credits = CreditLedger(journal=self._journal)
        self._rail: SettlementRail = rail if rail is not None else InMemorySettlementRail()
        self._pool_balance = Decimal("0")

        self._registry.register(owner, caller=owner)

    @property
    def params(self) -> LedgerParams:
        return self._params

    @property
    def owner(self) -> str:
        return self._gate.owner

    @property
    def rail(self) -> SettlementRail:
        return self._rail

    def attach_rail(self, rail: SettlementRail) -> None:
        """Swap the settlement rail (used after event-log replay)."""
        self._rail = rail

    # ------------------------------------------------------------------
    # Membership & funding
    # ------------------------------------------------------------------

    def register_airline(self, candidate: str, caller: str) -> AirlineAccount:
        """Admit ``candidate``, sponsored by ``caller``."""
        with self._journal.transaction():
            self._gate.require_operational()
            return self._registry.register(candidate, caller)

    def fund(self, caller: str, value: Decimal) -> AirlineAccount:
        """Accept the caller's capital contribution and forward it to the owner."""
        with self._journal.transaction():
            self._gate.require_operational()
            account = self._registry.mark_funded(
                caller, value, self._params.funding_threshold,
            )
            # Received and forwarded in full: no net change to the pool.
            self._pay(self._gate.owner, value, f"funding:{caller}")
            return account

    # ------------------------------------------------------------------
    # Insurance
    # ------------------------------------------------------------------

    def buy(self, flight: str, passenger: str, amount: Decimal) -> PurchaseReceipt:
        """Record a policy; pay back anything above the insurance cap."""
        with self._journal.transaction():
            self._gate.require_operational()
            receipt = self._book.purchase(flight, passenger, amount)
            self._adjust_pool(receipt.amount)
            if receipt.refund > Decimal("0"):
                self._adjust_pool(-receipt.refund)
                self._pay(passenger, receipt.refund, f"overpayment:{flight}")
            return receipt

    def credit_insurees(self, flight: str) -> list[CreditEntry]:
        """Convert every unsettled policy for ``flight`` into credit."""
        with self._journal.transaction():
            self._gate.require_operational()
            entries = self._book.settle_flight(
                flight,
                self._params.payout_multiplier,
                self._params.payout_basis,
            )
            self._credits.apply(entries)
            return entries

    def withdraw(self, insuree: str) -> Decimal:
        """Pay out the insuree's whole credit balance."""
        with self._journal.transaction():
            self._gate.require_operational()
            amount = self._credits.debit_all(insuree)
            self._adjust_pool(-amount)
            self._pay(insuree, amount, "withdrawal")
            return amount

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def set_operating_status(self, mode: bool, caller: str) -> None:
        self._gate.set_operating_status(mode, caller)

    def authorize_caller(self, identity: str, caller: str) -> None:
        self._gate.authorize(identity, caller)

    def deauthorize_caller(self, identity: str, caller: str) -> None:
        self._gate.deauthorize(identity, caller)

    def require_authorized_caller(self, identity: str) -> None:
        self._gate.require_authorized(identity)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, call: LedgerCall) -> Any:
        """Route a raw call to its operation.

        A bare transfer (no selector) is a call to ``fund``. An unknown
        selector is rejected, as is value attached to a non-payable
        operation and a call whose arguments are missing, unexpected or of
        the wrong type.
        """
        operation = call.operation if call.operation is not None else "fund"
        handler = self._handlers().get(operation)
        if handler is None:
            raise UnknownOperation(f"Unknown operation: {operation}")
        require_finite(call.value, "Attached value")
        if call.value != Decimal("0") and operation not in PAYABLE_OPERATIONS:
            raise NonPayableOperation(f"Operation does not accept value: {operation}")
        _check_args(operation, call.args)
        return handler(call)

    def _handlers(self) -> dict[str, Callable[[LedgerCall], Any]]:
        return {
            "register_airline": lambda c: self.register_airline(
                c.args["candidate"], c.caller,
            ),
            "fund": lambda c: self.fund(c.caller, c.value),
            "buy": lambda c: self.buy(
                c.args["flight"], c.args.get("passenger", c.caller), c.value,
            ),
            "credit_insurees": lambda c: self.credit_insurees(c.args["flight"]),
            "withdraw": lambda c: self.withdraw(c.args.get("insuree", c.caller)),
            "set_operating_status": lambda c: self.set_operating_status(
                c.args["mode"], c.caller,
            ),
            "authorize_caller": lambda c: self.authorize_caller(
                c.args["identity"], c.caller,
            ),
            "deauthorize_caller": lambda c: self.deauthorize_caller(
                c.args["identity"], c.caller,
            ),
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_operational(self) -> bool:
        return self._gate.is_operational()

    def is_authorized_caller(self, identity: str) -> bool:
        return self._gate.is_authorized(identity)

    def is_registered_airline(self, airline: str) -> bool:
        return self._registry.is_registered(airline)

    def is_airline_with_funds(self, airline: str) -> bool:
        return self._registry.is_funded(airline)

    def is_multi_party_consensus_required(self) -> bool:
        return self._registry.is_multi_party_consensus_required()

    def registered_airlines_count(self) -> int:
        return self._registry.registered_count

    def airlines(self) -> list[AirlineAccount]:
        return self._registry.accounts()

    def credit_balance(self, passenger: str) -> Decimal:
        return self._credits.balance_of(passenger)

    def policies(
        self,
        flight: Optional[str] = None,
        passenger: Optional[str] = None,
    ) -> list[InsurancePolicy]:
        return self._book.policies(flight=flight, passenger=passenger)

    def pool_state(self) -> PoolState:
        """Custody report. The balance goes negative when payouts exceed
        retained premiums; the owner, who holds forwarded capital, covers it.
        """
        return PoolState.compute(
            balance=self._pool_balance,
            outstanding_credit=self._credits.outstanding,
            committed_float=self._book.unsettled_exposure(
                self._params.payout_multiplier, self._params.payout_basis,
            ),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _pay(self, recipient: str, amount: Decimal, memo: str) -> None:
        if amount <= Decimal("0"):
            raise InsufficientPayment(f"Nothing to transfer to {recipient}")
        try:
            self._rail.transfer(recipient, amount, memo)
        except Exception as e:
            raise TransferFailed(f"Transfer of {amount} to {recipient} failed: {e}") from e

    def _adjust_pool(self, delta: Decimal) -> None:
        self._pool_balance += delta

        def _undo() -> None:
            self._pool_balance -= delta

        self._journal.record(_undo)


def _check_args(operation: str, args: dict[str, Any]) -> None:
    required = REQUIRED_ARGS[operation]
    optional = OPTIONAL_ARGS.get(operation, {})
    unexpected = sorted(set(args) - set(required) - set(optional))
    if unexpected:
        raise MalformedCall(
            f"Unexpected arguments for {operation}: {', '.join(unexpected)}"
        )
    for name in required:
        if name not in args:
            raise MalformedCall(f"Missing argument for {operation}: {name}")
    for name, kind in {**required, **optional}.items():
        if name in args and not isinstance(args[name], kind):
            raise MalformedCall(
                f"Argument {name} for {operation} must be {kind.__name__}"
            )
