"""Tests for the airline registry — proves membership and funding invariants.

Covers:
- Deployer bootstrap with no sponsor
- First consensus_threshold - 1 admissions funded on entry
- Funded-sponsor requirement once the registry has members
- Counter equals the number of registered accounts
- Funding gate failures (not registered, already funded, underpaid, NaN)
- Returned accounts are copies; rollback undoes only journaled changes
"""

import pytest
from decimal import Decimal

from flightsurety.errors import (
    AlreadyFunded,
    AlreadyRegistered,
    FailureReason,
    InsufficientPayment,
    InvalidAmount,
    InvalidIdentity,
    LedgerError,
    NotRegisteredAirline,
    SponsorNotFunded,
    SponsorNotRegistered,
)
from flightsurety.governance.airline_registry import AirlineRegistry
from flightsurety.journal import UndoJournal


THRESHOLD = Decimal("10")


def _bootstrapped(count: int = 4) -> AirlineRegistry:
    """Registry with ``count`` airlines: a1 (self-registered), a2..aN."""
    registry = AirlineRegistry(consensus_threshold=5)
    registry.register("a1", caller="a1")
    for i in range(2, count + 1):
        registry.register(f"a{i}", caller="a1")
    return registry


class TestBootstrap:
    def test_first_airline_needs_no_sponsor(self) -> None:
        registry = AirlineRegistry(consensus_threshold=5)
        account = registry.register("a1", caller="anyone")
        assert account.is_registered
        assert account.has_provided_funds
        assert registry.registered_count == 1

    def test_first_four_are_funded_on_entry(self) -> None:
        registry = _bootstrapped(4)
        for i in range(1, 5):
            assert registry.is_funded(f"a{i}")

    def test_fifth_starts_unfunded(self) -> None:
        registry = _bootstrapped(4)
        account = registry.register("a5", caller="a2")
        assert account.is_registered
        assert not account.has_provided_funds

    def test_bootstrap_count_follows_threshold(self) -> None:
        registry = AirlineRegistry(consensus_threshold=3)
        registry.register("a1", caller="a1")
        registry.register("a2", caller="a1")
        third = registry.register("a3", caller="a1")
        assert not third.has_provided_funds


class TestSponsorRules:
    def test_unregistered_sponsor_rejected(self) -> None:
        registry = _bootstrapped(1)
        with pytest.raises(SponsorNotRegistered):
            registry.register("a2", caller="stranger")

    def test_unfunded_sponsor_rejected(self) -> None:
        registry = _bootstrapped(4)
        registry.register("a5", caller="a1")
        with pytest.raises(SponsorNotFunded):
            registry.register("a6", caller="a5")

    def test_sponsor_becomes_valid_after_funding(self) -> None:
        registry = _bootstrapped(4)
        registry.register("a5", caller="a1")
        registry.mark_funded("a5", Decimal("10"), THRESHOLD)
        account = registry.register("a6", caller="a5")
        assert account.is_registered

    def test_duplicate_rejected(self) -> None:
        registry = _bootstrapped(2)
        with pytest.raises(AlreadyRegistered) as exc:
            registry.register("a2", caller="a1")
        assert exc.value.reason == FailureReason.ALREADY_REGISTERED
        assert registry.registered_count == 2

    def test_blank_candidate_rejected(self) -> None:
        registry = _bootstrapped(1)
        with pytest.raises(InvalidIdentity):
            registry.register("  ", caller="a1")


class TestCounter:
    def test_counter_matches_registered_accounts(self) -> None:
        registry = _bootstrapped(4)
        registry.register("a5", caller="a1")
        for candidate, caller in [("a2", "a1"), ("a6", "a5"), ("a7", "nobody")]:
            with pytest.raises(LedgerError):
                registry.register(candidate, caller=caller)
        registered = [a for a in registry.accounts() if a.is_registered]
        assert registry.registered_count == len(registered) == 5

    def test_consensus_flag(self) -> None:
        registry = _bootstrapped(3)
        assert not registry.is_multi_party_consensus_required()
        registry.register("a4", caller="a1")
        assert registry.is_multi_party_consensus_required()


class TestFunding:
    def test_fund_unregistered(self) -> None:
        registry = _bootstrapped(1)
        with pytest.raises(NotRegisteredAirline):
            registry.mark_funded("ghost", Decimal("10"), THRESHOLD)

    def test_fund_twice(self) -> None:
        registry = _bootstrapped(4)
        registry.register("a5", caller="a1")
        registry.mark_funded("a5", Decimal("10"), THRESHOLD)
        with pytest.raises(AlreadyFunded):
            registry.mark_funded("a5", Decimal("10"), THRESHOLD)

    def test_bootstrap_airline_already_funded(self) -> None:
        registry = _bootstrapped(2)
        with pytest.raises(AlreadyFunded):
            registry.mark_funded("a2", Decimal("10"), THRESHOLD)

    def test_underpayment(self) -> None:
        registry = _bootstrapped(4)
        registry.register("a5", caller="a1")
        with pytest.raises(InsufficientPayment, match="below threshold"):
            registry.mark_funded("a5", Decimal("9.99"), THRESHOLD)
        assert not registry.is_funded("a5")

    def test_funded_implies_registered(self) -> None:
        registry = _bootstrapped(4)
        registry.register("a5", caller="a1")
        registry.mark_funded("a5", Decimal("25"), THRESHOLD)
        for account in registry.accounts():
            if account.has_provided_funds:
                assert account.is_registered


class TestNonFinitePayment:
    @pytest.mark.parametrize("raw", ["Infinity", "NaN", "sNaN"])
    def test_non_finite_payment_rejected(self, raw: str) -> None:
        registry = _bootstrapped(4)
        registry.register("a5", caller="a1")
        with pytest.raises(InvalidAmount) as exc:
            registry.mark_funded("a5", Decimal(raw), THRESHOLD)
        assert exc.value.reason == FailureReason.INVALID_AMOUNT
        assert not registry.is_funded("a5")


class TestAccountIsolation:
    def test_mutating_returned_account_changes_nothing(self) -> None:
        registry = _bootstrapped(4)
        account = registry.register("a5", caller="a1")
        account.has_provided_funds = True
        registry.get("a5").has_provided_funds = True
        for listed in registry.accounts():
            listed.is_registered = False
        assert not registry.is_funded("a5")
        assert registry.is_registered("a1")
        with pytest.raises(SponsorNotFunded):
            registry.register("a6", caller="a5")


class TestRollback:
    def test_failed_transaction_undoes_registration_and_funding(self) -> None:
        journal = UndoJournal()
        registry = AirlineRegistry(consensus_threshold=5, journal=journal)
        for name in ("a1", "a2", "a3", "a4", "a5"):
            registry.register(name, caller="a1")
        with pytest.raises(RuntimeError):
            with journal.transaction():
                registry.mark_funded("a5", Decimal("10"), THRESHOLD)
                registry.register("a6", caller="a5")
                raise RuntimeError("abort")
        assert not registry.is_funded("a5")
        assert not registry.is_registered("a6")
        assert registry.registered_count == 5

    def test_changes_outside_a_transaction_are_not_journaled(self) -> None:
        journal = UndoJournal()
        registry = AirlineRegistry(consensus_threshold=5, journal=journal)
        registry.register("a1", caller="a1")
        assert journal.pending == 0
