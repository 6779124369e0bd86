"""Balance arithmetic over ordered ledger rows."""

from collections.abc import Iterable, Iterator
from decimal import Decimal

from pairledger.models import Balance, Participants, TransactionRecord


def running_totals(
    rows: Iterable[TransactionRecord], start: Decimal = Decimal("0")
) -> Iterator[Decimal]:
    """Yield the signed total after each row, in ledger order.

    ``start`` is the total of every row preceding ``rows``.
    """
    total = start
    for row in rows:
        total += row.signed_amount
        yield total


def net_total(rows: Iterable[TransactionRecord]) -> Decimal:
    """Signed sum of all rows; positive when A has paid B more than B paid A."""
    return sum((row.signed_amount for row in rows), Decimal("0"))


def compute_balance(
    rows: Iterable[TransactionRecord],
    participants: Participants | None = None,
) -> Balance:
    """Fold the rows into a net balance with debtor and creditor roles."""
    return Balance.from_net(net_total(rows), participants or Participants.from_settings())
