"""Settlement rail — how value actually leaves the pool.

The ledger never moves value itself. It calls a rail after its own state
changes are applied, so any callback into the ledger triggered by a
transfer (re-entrancy) sees the already-updated balances.

Adding a rail = implement the SettlementRail Protocol. Zero changes to the
registry, policy book or credit ledger.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Optional, Protocol, runtime_checkable

from flightsurety.models.ledger import TransferRecord


@runtime_checkable
class SettlementRail(Protocol):
    """Contract for anything that can pay value out of the pool.

    Implementations raise on failure; the ledger treats any exception as a
    failed transfer and rolls the operation back.
    """

    def transfer(self, recipient: str, amount: Decimal, memo: str = "") -> None:
        ...


class InMemorySettlementRail:
    """Rail that records transfers instead of moving real value.

    ``on_transfer`` runs inside every transfer, before it is recorded. Tests
    use it to simulate a recipient that calls back into the ledger. If the
    hook raises, the transfer is not recorded.
    """

    def __init__(
        self,
        on_transfer: Optional[Callable[[TransferRecord], None]] = None,
    ) -> None:
        self._transfers: list[TransferRecord] = []
        self._received: dict[str, Decimal] = {}
        self.on_transfer = on_transfer

    def transfer(self, recipient: str, amount: Decimal, memo: str = "") -> None:
        if amount <= Decimal("0"):
            raise ValueError(f"Transfer amount must be positive, got {amount}")
        record = TransferRecord(recipient=recipient, amount=amount, memo=memo)
        if self.on_transfer is not None:
            self.on_transfer(record)
        self._transfers.append(record)
        self._received[recipient] = self._received.get(recipient, Decimal("0")) + amount

    @property
    def transfers(self) -> list[TransferRecord]:
        return list(self._transfers)

    def received_by(self, recipient: str) -> Decimal:
        """Total value this rail has paid to ``recipient``."""
        return self._received.get(recipient, Decimal("0"))


class SilentRail:
    """Rail that accepts every transfer and records nothing.

    Used when replaying the event log: the transfers it would issue
    already happened when the events were first recorded.
    """

    def transfer(self, recipient: str, amount: Decimal, memo: str = "") -> None:
        return None
