"""Tests for the policy book — append-only purchases and idempotent settlement."""

import pytest
from decimal import Decimal

from flightsurety.errors import InvalidAmount
from flightsurety.journal import UndoJournal
from flightsurety.models.ledger import PayoutBasis
from flightsurety.underwriting.policy_book import PolicyBook


CAP = Decimal("1")
MULTIPLIER = Decimal("1.5")


@pytest.fixture
def book() -> PolicyBook:
    return PolicyBook(insurance_cap=CAP)


class TestPurchase:
    def test_purchase_within_cap(self, book: PolicyBook) -> None:
        receipt = book.purchase("XY1", "alice", Decimal("0.4"))
        assert receipt.refund == Decimal("0")
        assert receipt.retained == Decimal("0.4")
        assert book.count == 1

    def test_overpayment_refund_keeps_declared_amount(self, book: PolicyBook) -> None:
        receipt = book.purchase("XY1", "alice", Decimal("1.5"))
        assert receipt.refund == Decimal("0.5")
        assert receipt.retained == Decimal("1")
        assert book.policies()[0].amount == Decimal("1.5")

    @pytest.mark.parametrize("amount", ["0", "-1"])
    def test_non_positive_rejected(self, book: PolicyBook, amount: str) -> None:
        with pytest.raises(InvalidAmount, match="positive"):
            book.purchase("XY1", "alice", Decimal(amount))
        assert book.count == 0

    def test_policies_not_consolidated(self, book: PolicyBook) -> None:
        book.purchase("XY1", "alice", Decimal("0.5"))
        book.purchase("XY1", "alice", Decimal("0.5"))
        assert len(book.policies(flight="XY1", passenger="alice")) == 2


class TestSettlement:
    def test_settle_credits_multiplier(self, book: PolicyBook) -> None:
        book.purchase("XY1", "alice", Decimal("1"))
        entries = book.settle_flight("XY1", MULTIPLIER)
        assert len(entries) == 1
        assert entries[0].passenger == "alice"
        assert entries[0].payout == Decimal("1.5")
        assert book.policies()[0].is_settled

    def test_settle_is_idempotent(self, book: PolicyBook) -> None:
        book.purchase("AB100", "alice", Decimal("1"))
        assert len(book.settle_flight("AB100", MULTIPLIER)) == 1
        assert book.settle_flight("AB100", MULTIPLIER) == []

    def test_only_matching_flight_settled(self, book: PolicyBook) -> None:
        book.purchase("XY1", "alice", Decimal("1"))
        book.purchase("XY2", "bob", Decimal("1"))
        book.settle_flight("XY1", MULTIPLIER)
        assert not book.policies(flight="XY2")[0].is_settled

    def test_settlement_in_purchase_order(self, book: PolicyBook) -> None:
        book.purchase("XY1", "alice", Decimal("0.2"))
        book.purchase("XY2", "zed", Decimal("0.2"))
        book.purchase("XY1", "bob", Decimal("0.3"))
        book.purchase("XY1", "carol", Decimal("0.4"))
        entries = book.settle_flight("XY1", MULTIPLIER)
        assert [e.passenger for e in entries] == ["alice", "bob", "carol"]
        assert [e.policy_index for e in entries] == [0, 2, 3]

    def test_flight_match_is_by_content(self, book: PolicyBook) -> None:
        book.purchase("".join(["XY", "1"]), "alice", Decimal("1"))
        assert len(book.settle_flight("XY1", MULTIPLIER)) == 1

    def test_declared_basis_pays_on_uncapped_amount(self, book: PolicyBook) -> None:
        book.purchase("XY1", "alice", Decimal("2"))
        entries = book.settle_flight("XY1", MULTIPLIER, PayoutBasis.DECLARED)
        assert entries[0].payout == Decimal("3")

    def test_retained_basis_pays_on_capped_amount(self, book: PolicyBook) -> None:
        book.purchase("XY1", "alice", Decimal("2"))
        entries = book.settle_flight("XY1", MULTIPLIER, PayoutBasis.RETAINED)
        assert entries[0].payout == Decimal("1.5")

    def test_unsettled_exposure(self, book: PolicyBook) -> None:
        book.purchase("XY1", "alice", Decimal("1"))
        book.purchase("XY2", "bob", Decimal("0.5"))
        assert book.unsettled_exposure(MULTIPLIER) == Decimal("2.25")
        book.settle_flight("XY1", MULTIPLIER)
        assert book.unsettled_exposure(MULTIPLIER) == Decimal("0.75")


class TestAmountValidation:
    @pytest.mark.parametrize("raw", ["NaN", "sNaN", "Infinity", "-Infinity"])
    def test_non_finite_amount_rejected(self, book: PolicyBook, raw: str) -> None:
        with pytest.raises(InvalidAmount, match="finite"):
            book.purchase("XY1", "alice", Decimal(raw))
        assert book.count == 0


class TestRecordIsolation:
    def test_returned_policy_is_a_copy(self, book: PolicyBook) -> None:
        book.purchase("XY1", "alice", Decimal("1"))
        book.policies()[0].amount = Decimal("1000")
        book.policies(flight="XY1")[0].amount = Decimal("0")
        entries = book.settle_flight("XY1", MULTIPLIER)
        assert entries[0].payout == Decimal("1.5")


class TestRollback:
    def test_failed_transaction_undoes_purchase_and_settlement(self) -> None:
        journal = UndoJournal()
        book = PolicyBook(insurance_cap=CAP, journal=journal)
        book.purchase("XY1", "alice", Decimal("1"))
        with pytest.raises(RuntimeError):
            with journal.transaction():
                book.purchase("XY1", "bob", Decimal("1"))
                book.purchase("XY9", "carol", Decimal("1"))
                book.settle_flight("XY1", MULTIPLIER)
                raise RuntimeError("abort")
        assert book.count == 1
        assert book.policies(flight="XY9") == []
        entries = book.settle_flight("XY1", MULTIPLIER)
        assert [e.passenger for e in entries] == ["alice"]

    def test_purchase_journals_one_step(self) -> None:
        journal = UndoJournal()
        book = PolicyBook(insurance_cap=CAP, journal=journal)
        for i in range(50):
            book.purchase("XY1", f"p{i}", Decimal("1"))
        with journal.transaction():
            book.purchase("XY1", "late", Decimal("1"))
            assert journal.pending == 1
