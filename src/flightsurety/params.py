"""Ledger parameters — loaded from config/ledger_params.json.

Monetary values are stored as strings in JSON and parsed to Decimal so
that "1.5" stays exactly 1.5.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from flightsurety.models.ledger import PayoutBasis


PARAMS_FILENAME = "ledger_params.json"


@dataclass(frozen=True)
class LedgerParams:
    """Fixed economic and governance parameters of a ledger instance."""

    funding_threshold: Decimal = Decimal("10")
    insurance_cap: Decimal = Decimal("1")
    payout_multiplier: Decimal = Decimal("1.5")
    consensus_threshold: int = 5
    payout_basis: PayoutBasis = PayoutBasis.DECLARED

    @property
    def bootstrap_member_count(self) -> int:
        """Airlines admitted before the funded-sponsor regime applies."""
        return self.consensus_threshold - 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerParams:
        """Build params from a mapping; missing keys keep their defaults."""
        defaults = cls()
        try:
            return cls(
                funding_threshold=Decimal(
                    str(data.get("funding_threshold", defaults.funding_threshold))
                ),
                insurance_cap=Decimal(
                    str(data.get("insurance_cap", defaults.insurance_cap))
                ),
                payout_multiplier=Decimal(
                    str(data.get("payout_multiplier", defaults.payout_multiplier))
                ),
                consensus_threshold=int(
                    data.get("consensus_threshold", defaults.consensus_threshold)
                ),
                payout_basis=PayoutBasis(
                    data.get("payout_basis", defaults.payout_basis.value)
                ),
            )
        except (InvalidOperation, TypeError) as e:
            raise ValueError(f"Invalid ledger parameter: {e}") from e

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> LedgerParams:
        """Load params from ``<config_dir>/ledger_params.json``."""
        path = config_dir / PARAMS_FILENAME
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "funding_threshold": str(self.funding_threshold),
            "insurance_cap": str(self.insurance_cap),
            "payout_multiplier": str(self.payout_multiplier),
            "consensus_threshold": self.consensus_threshold,
            "payout_basis": self.payout_basis.value,
        }

    def validate(self) -> list[str]:
        """Check parameter invariants. Returns errors (empty = OK)."""
        errors: list[str] = []
        if self.funding_threshold <= Decimal("0"):
            errors.append("funding_threshold must be > 0")
        if self.insurance_cap <= Decimal("0"):
            errors.append("insurance_cap must be > 0")
        if self.payout_multiplier < Decimal("1"):
            errors.append("payout_multiplier must be >= 1")
        if self.consensus_threshold < 2:
            errors.append("consensus_threshold must be >= 2")
        return errors
