"""Core data models for the FlightSurety ledger."""

from flightsurety.models.ledger import (
    AirlineAccount,
    CreditEntry,
    InsurancePolicy,
    PayoutBasis,
    PoolState,
    PurchaseReceipt,
    TransferRecord,
)

__all__ = [
    "AirlineAccount",
    "CreditEntry",
    "InsurancePolicy",
    "PayoutBasis",
    "PoolState",
    "PurchaseReceipt",
    "TransferRecord",
]
