"""Airline Registry — membership and funding status of underwriting airlines.

The registry admits airlines under a graduated trust rule rather than a
per-candidate vote:

- The first airline (the deployer) registers itself; no sponsor is needed
  while the registry is empty.
- Once the registry has any member, the sponsoring caller must be a
  registered AND funded member.
- The first ``consensus_threshold - 1`` admissions are funded on entry
  (bootstrap). From then on a new airline starts unfunded and must pass
  the funding gate on its own.

Consensus boundary: this engine does not collect votes. Once
``is_multi_party_consensus_required()`` is true, an external collaborator
is expected to gather M-of-N approvals from existing members and only then
call ``register``. The engine checks that *a* funded member sponsors the
call, nothing more.

The engine is a pure state machine. Value movement (forwarding funding
payments) and event logging are handled by the ledger and service layers.
Accounts handed out are copies; every change goes through ``register`` or
``mark_funded``, which journal an undo step for the ledger's rollback.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Optional

from flightsurety.errors import (
    AlreadyFunded,
    AlreadyRegistered,
    InsufficientPayment,
    NotRegisteredAirline,
    SponsorNotFunded,
    SponsorNotRegistered,
)
from flightsurety.journal import UndoJournal
from flightsurety.models.ledger import (
    AirlineAccount,
    require_finite,
    require_identity,
)


class AirlineRegistry:
    """Registration and funding gate for airlines.

    Usage:
        registry = AirlineRegistry(consensus_threshold=5)
        registry.register("owner", caller="owner")        # bootstrap
        registry.register("airline_2", caller="owner")    # funded on entry
        ...
        registry.mark_funded("airline_5", payment=Decimal("10"),
                             threshold=Decimal("10"))
    """

    def __init__(
        self,
        consensus_threshold: int,
        journal: Optional[UndoJournal] = None,
    ) -> None:
        self._consensus_threshold = consensus_threshold
        self._journal = journal if journal is not None else UndoJournal()
        self._accounts: dict[str, AirlineAccount] = {}
        self._registered_count = 0

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, candidate: str, caller: str) -> AirlineAccount:
        """Admit ``candidate`` sponsored by ``caller``.

        Raises:
            SponsorNotRegistered / SponsorNotFunded: the registry has
                members and the caller is not a funded one.
            AlreadyRegistered: the candidate is already a member.
        """
        require_identity(candidate, "candidate")
        if self._registered_count > 0:
            sponsor = self._accounts.get(caller)
            if sponsor is None or not sponsor.is_registered:
                raise SponsorNotRegistered(
                    f"Sponsor is not a registered airline: {caller}"
                )
            if not sponsor.has_provided_funds:
                raise SponsorNotFunded(
                    f"Sponsor has not provided funds: {caller}"
                )

        existing = self._accounts.get(candidate)
        if existing is not None and existing.is_registered:
            raise AlreadyRegistered(f"Airline is already registered: {candidate}")

        account = AirlineAccount(
            address=candidate,
            is_registered=True,
            has_provided_funds=self._registered_count < self.bootstrap_member_count,
        )
        self._accounts[candidate] = account
        self._registered_count += 1

        def _undo() -> None:
            if existing is None:
                self._accounts.pop(candidate, None)
            else:
                self._accounts[candidate] = existing
            self._registered_count -= 1

        self._journal.record(_undo)
        return replace(account)

    def mark_funded(
        self,
        airline: str,
        payment: Decimal,
        threshold: Decimal,
    ) -> AirlineAccount:
        """Record the airline's capital contribution.

        Raises:
            NotRegisteredAirline: the airline is not a member.
            AlreadyFunded: the airline already provided funds.
            InvalidAmount: ``payment`` is NaN or infinite.
            InsufficientPayment: ``payment`` is below ``threshold``.
        """
        account = self._accounts.get(airline)
        if account is None or not account.is_registered:
            raise NotRegisteredAirline(f"Not a registered airline: {airline}")
        if account.has_provided_funds:
            raise AlreadyFunded(f"Airline has already provided funds: {airline}")
        require_finite(payment, "Funding payment")
        if payment < threshold:
            raise InsufficientPayment(
                f"Funding payment {payment} is below threshold {threshold}"
            )
        account.has_provided_funds = True

        def _undo() -> None:
            account.has_provided_funds = False

        self._journal.record(_undo)
        return replace(account)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def bootstrap_member_count(self) -> int:
        return self._consensus_threshold - 1

    @property
    def registered_count(self) -> int:
        return self._registered_count

    def is_registered(self, airline: str) -> bool:
        account = self._accounts.get(airline)
        return account is not None and account.is_registered

    def is_funded(self, airline: str) -> bool:
        account = self._accounts.get(airline)
        return account is not None and account.has_provided_funds

    def is_multi_party_consensus_required(self) -> bool:
        """True once new admissions need external M-of-N approval."""
        return self._registered_count >= self.bootstrap_member_count

    def get(self, airline: str) -> Optional[AirlineAccount]:
        account = self._accounts.get(airline)
        return replace(account) if account is not None else None

    def accounts(self) -> list[AirlineAccount]:
        """All accounts in admission order."""
        return [replace(a) for a in self._accounts.values()]
