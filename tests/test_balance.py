"""Tests for balance arithmetic."""

import itertools
from decimal import Decimal

import pytest

from pairledger.balance import compute_balance, net_total, running_totals
from pairledger.errors import ValidationError
from pairledger.models import Balance, Direction
from tests.conftest import make_record

F = Direction.FORWARD
R = Direction.REVERSE


class TestComputeBalance:
    """Tests for compute_balance."""

    def test_empty_ledger_is_settled(self, participants):
        balance = compute_balance([], participants)

        assert balance.debtor == ""
        assert balance.creditor == ""
        assert balance.amount == 0
        assert balance.is_settled

    def test_forward_rows_make_b_the_debtor(self, participants):
        """A paying B means B owes A."""
        balance = compute_balance([make_record(100, F), make_record("20.50", F)], participants)

        assert balance.debtor == "Bob"
        assert balance.creditor == "Alice"
        assert balance.amount == Decimal("120.50")
        assert balance.net == Decimal("120.50")
        assert balance.narrative == "Bob owes Alice"

    def test_reverse_rows_make_a_the_debtor(self, participants):
        balance = compute_balance([make_record(100, F), make_record(150, R)], participants)

        assert balance.debtor == "Alice"
        assert balance.creditor == "Bob"
        assert balance.amount == Decimal("50")
        assert balance.net == Decimal("-50")

    def test_offsetting_rows_settle(self, participants):
        balance = compute_balance([make_record("10.10", F), make_record("10.10", R)], participants)

        assert balance.is_settled
        assert balance.debtor == balance.creditor == ""

    def test_total_is_order_independent(self, participants):
        """Reordering rows never changes the result."""
        rows = [make_record(100, F), make_record("33.33", R), make_record("0.67", R), make_record(5, F)]
        expected = compute_balance(rows, participants)

        for permutation in itertools.permutations(rows):
            assert compute_balance(permutation, participants) == expected

    def test_amount_is_absolute_sum(self, participants):
        rows = [make_record("0.10", F)] * 3 + [make_record(1, R)]
        balance = compute_balance(rows, participants)

        assert balance.amount == abs(sum(r.signed_amount for r in rows))
        assert balance.amount == Decimal("0.70")

    def test_no_float_drift(self, participants):
        """Repeated cent additions stay exact."""
        rows = [make_record("0.10", F) for _ in range(1000)]
        assert compute_balance(rows, participants).amount == Decimal("100.00")

    def test_defaults_to_configured_participants(self):
        balance = compute_balance([make_record(1, F)])
        assert (balance.debtor, balance.creditor) == ("Bob", "Alice")


class TestBalanceFromNet:
    """Tests for the sign-to-role mapping."""

    @pytest.mark.parametrize(
        "net,debtor,creditor",
        [
            (Decimal("1"), "Bob", "Alice"),
            (Decimal("-1"), "Alice", "Bob"),
            (Decimal("0"), "", ""),
        ],
    )
    def test_mapping(self, participants, net, debtor, creditor):
        balance = Balance.from_net(net, participants)

        assert balance.debtor == debtor
        assert balance.creditor == creditor
        assert balance.amount == abs(net)


class TestRunningTotals:
    def test_running_totals_with_start(self):
        rows = [make_record(10, F), make_record(4, R)]
        assert list(running_totals(rows, start=Decimal("5"))) == [Decimal("15"), Decimal("11")]

    def test_net_total(self):
        assert net_total([make_record(10, F), make_record(4, R)]) == Decimal("6")


class TestTransactionRecord:
    def test_rejects_non_positive_amount(self):
        with pytest.raises(ValidationError):
            make_record(0)

    def test_rejects_sub_cent_amount(self):
        with pytest.raises(ValidationError):
            make_record("1.005")

    def test_rejects_blank_description(self):
        with pytest.raises(ValidationError):
            make_record(1, description="  ")

    def test_signed_amount(self):
        assert make_record(5, R).signed_amount == Decimal("-5")
