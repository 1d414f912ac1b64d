"""Underwriting subsystem — policy book, credit ledger, settlement rail."""

from flightsurety.underwriting.credit_ledger import CreditLedger
from flightsurety.underwriting.policy_book import PolicyBook
from flightsurety.underwriting.settlement_rail import (
    InMemorySettlementRail,
    SettlementRail,
    SilentRail,
)

__all__ = [
    "CreditLedger",
    "InMemorySettlementRail",
    "PolicyBook",
    "SettlementRail",
    "SilentRail",
]
