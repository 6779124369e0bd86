"""Presentation helpers: currency strings and message fragments."""

from decimal import Decimal

from pairledger.config import get_settings
from pairledger.models import Direction, Participants, TransactionRecord

DIRECTION_EMOJI = {Direction.FORWARD: "💰", Direction.REVERSE: "💸"}
DIRECTION_SIGN = {Direction.FORWARD: "+", Direction.REVERSE: "-"}


def _symbol(symbol: str | None) -> str:
    return get_settings().currency_symbol if symbol is None else symbol


def format_money(amount: Decimal, symbol: str | None = None) -> str:
    """Format an unsigned amount as ``$1,500.50``."""
    return f"{_symbol(symbol)}{abs(amount):,.2f}"


def format_net(net: Decimal, symbol: str | None = None) -> str:
    """Format a signed balance as ``+$100.00``, ``-$25.00`` or ``$0.00``."""
    if net == 0:
        return format_money(Decimal("0"), symbol)
    sign = "+" if net > 0 else "-"
    return f"{sign}{format_money(net, symbol)}"


def format_entry(
    amount: Decimal, description: str, direction: Direction, symbol: str | None = None
) -> str:
    """One-line summary such as ``💰 +$100.00 - lunch``."""
    return (
        f"{DIRECTION_EMOJI[direction]} {DIRECTION_SIGN[direction]}"
        f"{format_money(amount, symbol)} - {description}"
    )


def format_transfer(
    record: TransactionRecord, participants: Participants, symbol: str | None = None
) -> str:
    """Who paid whom, e.g. ``💰 Alice → Bob: $100.00``."""
    return (
        f"{DIRECTION_EMOJI[record.direction]} {participants.sender(record.direction)} → "
        f"{participants.receiver(record.direction)}: {format_money(record.amount, symbol)}"
    )


def format_history(
    rows: list[TransactionRecord], total_count: int, net: Decimal, symbol: str | None = None
) -> str:
    """Fixed-width table of recent rows for an HTML ``<pre>`` block."""
    lines = ["Date            Amount Description", "---------- ------------- -----------"]
    for row in rows:
        amount = f"{DIRECTION_SIGN[row.direction]}{row.amount:,.2f}"
        description = row.description
        if len(description) > 20:
            description = description[:17] + "..."
        lines.append(f"{row.date:<10} {amount:>13} {_escape(description)}")

    message = f"📝 Transaction history ({total_count} total):\n\n<pre>" + "\n".join(lines) + "</pre>"
    hidden = total_count - len(rows)
    if hidden > 0:
        message += f"\n\n... and {hidden} more"
    message += f"\n\n⚖️ Balance: {_escape(format_net(net, symbol))}"
    return message


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def transaction_examples() -> str:
    return (
        "Examples:\n\n"
        "💰 You give money:\n"
        "• 1000 card transfer\n"
        "• +500,50 groceries\n"
        "• 200.25 taxi\n\n"
        "💸 You take money:\n"
        "• -150,75 lunch\n"
        "• -50 bus\n\n"
        "Format: <amount> <description>\n"
        "+ means you give money to your partner, - means you take it.\n"
        "Either a comma or a period works for cents."
    )
