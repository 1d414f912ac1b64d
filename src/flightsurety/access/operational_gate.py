"""Operational gate — global kill-switch, owner identity and caller allow-list.

Rules:
- The owner is fixed when the gate is created and never changes.
- The operational flag starts True. Only the owner may toggle it, and the
  toggle itself works whether the ledger is operational or not.
- The authorized-caller set names external gateways allowed to invoke
  app-facing operations. Only the owner may change it.

The gate does not wrap anything on its own. The ledger calls
``require_operational`` at the top of every mutating operation; the
service layer calls ``require_authorized`` for the gateway it fronts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from flightsurety.errors import NotAuthorized, NotOperational, NotOwner
from flightsurety.journal import UndoJournal
from flightsurety.models.ledger import require_identity


@dataclass
class GateState:
    """Current state of the operational gate."""
    operational: bool = True
    authorized: dict[str, bool] = field(default_factory=dict)


class OperationalGate:
    """Owner-controlled operational switch and caller allow-list."""

    def __init__(self, owner: str, journal: Optional[UndoJournal] = None) -> None:
        require_identity(owner, "owner")
        self._owner = owner
        self._state = GateState()
        self._journal = journal if journal is not None else UndoJournal()

    @property
    def owner(self) -> str:
        return self._owner

    def is_operational(self) -> bool:
        return self._state.operational

    def require_operational(self) -> None:
        if not self._state.operational:
            raise NotOperational("Ledger is not operational")

    def require_owner(self, caller: str) -> None:
        if caller != self._owner:
            raise NotOwner(f"Caller is not the owner: {caller}")

    def set_operating_status(self, mode: bool, caller: str) -> None:
        self.require_owner(caller)
        previous = self._state.operational
        self._state.operational = mode

        def _undo() -> None:
            self._state.operational = previous

        self._journal.record(_undo)

    def authorize(self, identity: str, caller: str) -> None:
        self.require_owner(caller)
        require_identity(identity, "caller")
        self._set_authorized(identity, True)

    def deauthorize(self, identity: str, caller: str) -> None:
        self.require_owner(caller)
        self._set_authorized(identity, False)

    def is_authorized(self, identity: str) -> bool:
        return self._state.authorized.get(identity, False)

    def require_authorized(self, identity: str) -> None:
        if not self.is_authorized(identity):
            raise NotAuthorized(f"Caller is not authorized: {identity}")

    def authorized_callers(self) -> list[str]:
        return sorted(k for k, v in self._state.authorized.items() if v)

    def _set_authorized(self, identity: str, allowed: bool) -> None:
        previous = self._state.authorized.get(identity)
        self._state.authorized[identity] = allowed

        def _undo() -> None:
            if previous is None:
                self._state.authorized.pop(identity, None)
            else:
                self._state.authorized[identity] = previous

        self._journal.record(_undo)
