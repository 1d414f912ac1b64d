"""FlightSurety service — unified facade over the ledger.

This is the primary interface for programmatic access. It:
- fronts the ledger for one external gateway (the "app"), checking that
  the gateway is on the owner's authorized-caller list before any
  app-facing operation,
- converts ledger failures into typed ServiceResults with a reason code,
- records one audit event per successful state change,
- rebuilds a ledger from its event log (``restore``).

The ledger commits before the event is written. If the event write then
fails, the ledger state stands, the service marks itself
``persistence_degraded`` and the result carries a warning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from flightsurety import __version__
from flightsurety.errors import LedgerError
from flightsurety.ledger import FlightSuretyLedger
from flightsurety.params import LedgerParams
from flightsurety.persistence.event_log import EventKind, EventLog, EventRecord
from flightsurety.underwriting.settlement_rail import (
    InMemorySettlementRail,
    SettlementRail,
    SilentRail,
)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class FlightSuretyService:
    """Ledger facade with audit trail and gateway authorization.

    Usage:
        service = FlightSuretyService.deploy("airline_1", event_log=log)
        service.authorize_caller("app", caller="airline_1")
        app = FlightSuretyService(service.ledger, event_log=log, gateway="app")

        app.register_airline("airline_2", caller="airline_1")
        app.buy("XY1", "alice", Decimal("1"))
        app.credit_insurees("XY1")
        app.withdraw("alice")

    Recovery:
        service = FlightSuretyService.restore(EventLog(path))
    """

    def __init__(
        self,
        ledger: FlightSuretyLedger,
        event_log: Optional[EventLog] = None,
        gateway: Optional[str] = None,
    ) -> None:
        self._ledger = ledger
        self._event_log = event_log
        self._gateway = gateway
        self._event_counter = event_log.count if event_log is not None else 0
        self._persistence_degraded = False

    @classmethod
    def deploy(
        cls,
        owner: str,
        params: Optional[LedgerParams] = None,
        rail: Optional[SettlementRail] = None,
        event_log: Optional[EventLog] = None,
        gateway: Optional[str] = None,
    ) -> FlightSuretyService:
        """Create a fresh ledger and record its deployment.

        Raises ValueError if the event log already holds a ledger.
        """
        if event_log is not None and event_log.count > 0:
            raise ValueError("Event log already contains a deployed ledger")
        ledger = FlightSuretyLedger(owner, params=params, rail=rail)
        service = cls(ledger, event_log=event_log, gateway=gateway)
        if event_log is not None:
            event_log.append(service._make_event(
                EventKind.LEDGER_DEPLOYED,
                owner,
                {"owner": owner, "params": ledger.params.to_dict()},
            ))
        return service

    @classmethod
    def restore(
        cls,
        event_log: EventLog,
        rail: Optional[SettlementRail] = None,
        gateway: Optional[str] = None,
    ) -> FlightSuretyService:
        """Rebuild the ledger by replaying every event in the log.

        Replay runs against a silent rail: the transfers already happened
        when the events were first recorded. Raises ValueError if the log
        does not start with a deployment or an event no longer applies.
        """
        events = event_log.events()
        if not events or events[0].event_kind != EventKind.LEDGER_DEPLOYED:
            raise ValueError("Event log does not start with a ledger deployment")

        deployment = events[0].payload
        ledger = FlightSuretyLedger(
            deployment["owner"],
            params=LedgerParams.from_dict(deployment["params"]),
            rail=SilentRail(),
        )
        for event in events[1:]:
            try:
                _replay_event(ledger, event)
            except (LedgerError, KeyError, InvalidOperation) as e:
                raise ValueError(
                    f"Event log replay diverged at {event.event_id}: {e}"
                ) from e
        ledger.attach_rail(rail if rail is not None else InMemorySettlementRail())
        return cls(ledger, event_log=event_log, gateway=gateway)

    @property
    def ledger(self) -> FlightSuretyLedger:
        return self._ledger

    @property
    def persistence_degraded(self) -> bool:
        return self._persistence_degraded

    # ------------------------------------------------------------------
    # App-facing operations
    # ------------------------------------------------------------------

    def register_airline(self, candidate: str, caller: str) -> ServiceResult:
        """Admit an airline sponsored by ``caller``."""
        try:
            self._require_gateway()
            account = self._ledger.register_airline(candidate, caller)
        except LedgerError as e:
            return _failure(e)
        return self._commit(
            EventKind.AIRLINE_REGISTERED,
            caller,
            {"candidate": candidate, "sponsor": caller},
            {
                "airline": account.address,
                "has_provided_funds": account.has_provided_funds,
                "registered_count": self._ledger.registered_airlines_count(),
                "consensus_required": self._ledger.is_multi_party_consensus_required(),
            },
        )

    def fund(self, airline: str, value: Decimal) -> ServiceResult:
        """Submit the airline's capital contribution."""
        try:
            self._require_gateway()
            self._ledger.fund(airline, value)
        except LedgerError as e:
            return _failure(e)
        return self._commit(
            EventKind.AIRLINE_FUNDED,
            airline,
            {"airline": airline, "value": str(value)},
            {"airline": airline, "forwarded_to": self._ledger.owner, "value": value},
        )

    def buy(self, flight: str, passenger: str, amount: Decimal) -> ServiceResult:
        """Buy insurance for ``passenger`` on ``flight``."""
        try:
            self._require_gateway()
            receipt = self._ledger.buy(flight, passenger, amount)
        except LedgerError as e:
            return _failure(e)
        return self._commit(
            EventKind.POLICY_PURCHASED,
            passenger,
            {
                "flight": flight,
                "passenger": passenger,
                "amount": str(amount),
                "refund": str(receipt.refund),
            },
            {
                "policy_index": receipt.policy_index,
                "amount": receipt.amount,
                "retained": receipt.retained,
                "refund": receipt.refund,
            },
        )

    def credit_insurees(self, flight: str) -> ServiceResult:
        """Credit every passenger insured on a delayed flight."""
        try:
            self._require_gateway()
            entries = self._ledger.credit_insurees(flight)
        except LedgerError as e:
            return _failure(e)
        total = sum((e.payout for e in entries), Decimal("0"))
        return self._commit(
            EventKind.INSUREES_CREDITED,
            self._gateway or "oracle",
            {
                "flight": flight,
                "credits": [
                    {
                        "policy_index": e.policy_index,
                        "passenger": e.passenger,
                        "payout": str(e.payout),
                    }
                    for e in entries
                ],
            },
            {"flight": flight, "credited_policies": len(entries), "total_payout": total},
        )

    def withdraw(self, insuree: str) -> ServiceResult:
        """Pay out the insuree's credit balance."""
        try:
            self._require_gateway()
            amount = self._ledger.withdraw(insuree)
        except LedgerError as e:
            return _failure(e)
        return self._commit(
            EventKind.CREDIT_WITHDRAWN,
            insuree,
            {"insuree": insuree, "amount": str(amount)},
            {"insuree": insuree, "amount": amount},
        )

    # ------------------------------------------------------------------
    # Administration (owner-only, not gateway-fronted)
    # ------------------------------------------------------------------

    def set_operating_status(self, mode: bool, caller: str) -> ServiceResult:
        try:
            self._ledger.set_operating_status(mode, caller)
        except LedgerError as e:
            return _failure(e)
        return self._commit(
            EventKind.OPERATING_STATUS_CHANGED,
            caller,
            {"mode": mode},
            {"operational": self._ledger.is_operational()},
        )

    def authorize_caller(self, identity: str, caller: str) -> ServiceResult:
        try:
            self._ledger.authorize_caller(identity, caller)
        except LedgerError as e:
            return _failure(e)
        return self._commit(
            EventKind.CALLER_AUTHORIZED,
            caller,
            {"identity": identity},
            {"identity": identity, "authorized": True},
        )

    def deauthorize_caller(self, identity: str, caller: str) -> ServiceResult:
        try:
            self._ledger.deauthorize_caller(identity, caller)
        except LedgerError as e:
            return _failure(e)
        return self._commit(
            EventKind.CALLER_DEAUTHORIZED,
            caller,
            {"identity": identity},
            {"identity": identity, "authorized": False},
        )

    # ------------------------------------------------------------------
    # Status and queries
    # ------------------------------------------------------------------

    def credit_balance(self, passenger: str) -> Decimal:
        return self._ledger.credit_balance(passenger)

    def status(self) -> dict[str, Any]:
        """Return system-wide status summary."""
        ledger = self._ledger
        pool = ledger.pool_state()
        return {
            "version": __version__,
            "owner": ledger.owner,
            "operational": ledger.is_operational(),
            "airlines": {
                "registered": ledger.registered_airlines_count(),
                "funded": sum(1 for a in ledger.airlines() if a.has_provided_funds),
                "consensus_required": ledger.is_multi_party_consensus_required(),
            },
            "policies": {
                "total": len(ledger.policies()),
                "unsettled": sum(1 for p in ledger.policies() if not p.is_settled),
            },
            "pool": {
                "balance": pool.balance,
                "outstanding_credit": pool.outstanding_credit,
                "committed_float": pool.committed_float,
                "shortfall": pool.shortfall,
                "is_covered": pool.is_covered,
            },
            "events": self._event_log.count if self._event_log is not None else 0,
            "persistence_degraded": self._persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_gateway(self) -> None:
        if self._gateway is not None:
            self._ledger.require_authorized_caller(self._gateway)

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID.

        Several facades may share one log, so the log's length is the floor.
        """
        logged = self._event_log.count if self._event_log is not None else 0
        self._event_counter = max(self._event_counter, logged) + 1
        return f"EVT-{self._event_counter:08d}"

    def _make_event(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
    ) -> EventRecord:
        return EventRecord.create(
            event_id=self._next_event_id(),
            event_kind=kind,
            actor_id=actor_id,
            payload=payload,
        )

    def _commit(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        data: dict[str, Any],
    ) -> ServiceResult:
        """Record the audit event for a committed ledger operation.

        MUST NOT roll back ledger state: transfers may already have been
        issued. A failed write degrades the service and returns a warning.
        """
        if self._event_log is not None:
            try:
                self._event_log.append(self._make_event(kind, actor_id, payload))
            except (ValueError, OSError) as e:
                self._persistence_degraded = True
                data = dict(data)
                data["warning"] = (
                    f"Audit degraded: {e}; ledger state committed but event log is stale"
                )
        return ServiceResult(success=True, data=data)


def _failure(error: LedgerError) -> ServiceResult:
    return ServiceResult(
        success=False,
        errors=[error.message],
        data={"reason": error.reason.value},
    )


def _replay_event(ledger: FlightSuretyLedger, event: EventRecord) -> None:
    """Re-apply one recorded event to a ledger."""
    p = event.payload
    kind = event.event_kind
    if kind == EventKind.AIRLINE_REGISTERED:
        ledger.register_airline(p["candidate"], p["sponsor"])
    elif kind == EventKind.AIRLINE_FUNDED:
        ledger.fund(p["airline"], Decimal(p["value"]))
    elif kind == EventKind.POLICY_PURCHASED:
        ledger.buy(p["flight"], p["passenger"], Decimal(p["amount"]))
    elif kind == EventKind.INSUREES_CREDITED:
        ledger.credit_insurees(p["flight"])
    elif kind == EventKind.CREDIT_WITHDRAWN:
        ledger.withdraw(p["insuree"])
    elif kind == EventKind.OPERATING_STATUS_CHANGED:
        ledger.set_operating_status(bool(p["mode"]), event.actor_id)
    elif kind == EventKind.CALLER_AUTHORIZED:
        ledger.authorize_caller(p["identity"], event.actor_id)
    elif kind == EventKind.CALLER_DEAUTHORIZED:
        ledger.deauthorize_caller(p["identity"], event.actor_id)
    else:
        raise ValueError(f"Unexpected event during replay: {kind.value}")
