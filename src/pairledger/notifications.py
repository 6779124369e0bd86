"""Compose notification messages for ledger changes."""

from collections.abc import Sequence
from dataclasses import dataclass

from pairledger.balance import compute_balance, net_total, running_totals
from pairledger.formatting import (
    DIRECTION_SIGN,
    format_entry,
    format_money,
    format_net,
    format_transfer,
)
from pairledger.models import Balance, Participants, TransactionRecord


@dataclass(frozen=True)
class RowNotice:
    """Balance arithmetic around one newly appended row."""

    record: TransactionRecord
    before: Balance
    after: Balance

    @property
    def operator(self) -> str:
        return DIRECTION_SIGN[self.record.direction]


class NotificationComposer:
    """Turns detected ledger deltas into user-facing text."""

    def __init__(self, participants: Participants | None = None, symbol: str | None = None):
        self._participants = participants or Participants.from_settings()
        self._symbol = symbol

    def growth_notices(
        self, rows: Sequence[TransactionRecord], new_count: int
    ) -> list[RowNotice]:
        """Before/after balances for each of the last ``new_count`` rows."""
        if new_count <= 0:
            return []
        split = len(rows) - new_count
        new_rows = rows[split:]
        notices = []
        for row, after_net in zip(
            new_rows, running_totals(new_rows, start=net_total(rows[:split]))
        ):
            notices.append(
                RowNotice(
                    record=row,
                    before=Balance.from_net(after_net - row.signed_amount, self._participants),
                    after=Balance.from_net(after_net, self._participants),
                )
            )
        return notices

    def render_growth(self, notice: RowNotice) -> str:
        record = notice.record
        return (
            "🔔 New transaction:\n"
            f"{format_entry(record.amount, record.description, record.direction, self._symbol)}\n"
            f"📅 {record.date} 👤 {record.actor}\n\n"
            f"{format_transfer(record, self._participants, self._symbol)}\n\n"
            "Balance:\n"
            f"{format_net(notice.before.net, self._symbol)} {notice.operator} "
            f"{format_money(record.amount, self._symbol)} = "
            f"{format_net(notice.after.net, self._symbol)}"
        )

    def compose_growth(self, rows: Sequence[TransactionRecord], new_count: int) -> list[str]:
        """One message per appended row, in ledger order."""
        return [self.render_growth(n) for n in self.growth_notices(rows, new_count)]

    def compose_shrink(self, rows: Sequence[TransactionRecord], removed_count: int) -> str:
        """Removed rows cannot be identified, so only counts and the new balance are shown."""
        balance = compute_balance(rows, self._participants)
        return (
            "🗑️ Transactions were removed from the ledger:\n"
            f"Removed rows: {removed_count}\n"
            f"Remaining rows: {len(rows)}\n\n"
            f"💰 Current balance: {format_net(balance.net, self._symbol)}"
        )

    def render_balance(self, balance: Balance) -> str:
        """Reply for the /balance command."""
        if balance.is_settled:
            return "⚖️ The balance is zero. Nobody owes anything!"
        emoji = "💸" if balance.debtor == self._participants.a else "💰"
        return (
            "⚖️ Current balance:\n\n"
            f"{emoji} {balance.narrative}: {format_money(balance.amount, self._symbol)}"
        )

