"""Parsing of free-form amount and transaction text.

Accepted quick-entry forms::

    100 lunch          give (default)
    +500,50 groceries  give
    -150.75 taxi       take

Thousands may be separated by spaces inside a standalone amount ("1 500,50")
and either a comma or a period can mark the cents.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from pairledger.errors import AmountReason, AmountValidationError, ValidationError
from pairledger.models import Direction

MAX_AMOUNT = Decimal("1000000")
MAX_FRACTION_DIGITS = 2

_AMOUNT_PATTERN = re.compile(r"^-?[\d,. ]+$")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ParsedTransaction:
    """A transaction intent extracted from user input."""

    amount: Decimal
    description: str
    direction: Direction


def validate_amount(text: str) -> Decimal:
    """Validate an amount string and return its absolute value.

    Raises:
        AmountValidationError: with a ``reason`` describing the failure.
    """
    if not text or not text.strip():
        raise AmountValidationError("amount must not be empty", AmountReason.EMPTY)

    cleaned = text.strip()
    if not _AMOUNT_PATTERN.match(cleaned):
        raise AmountValidationError(
            "amount contains invalid characters", AmountReason.INVALID_CHARACTERS
        )

    compact = _WHITESPACE.sub("", cleaned)
    if compact.count(",") + compact.count(".") > 1:
        raise AmountValidationError(
            "too many decimal points", AmountReason.TOO_MANY_SEPARATORS
        )
    normalized = compact.replace(",", ".")

    try:
        value = Decimal(normalized)
    except InvalidOperation:
        raise AmountValidationError("unrecognized number", AmountReason.UNRECOGNIZED) from None
    if not value.is_finite():
        raise AmountValidationError("unrecognized number", AmountReason.UNRECOGNIZED)

    amount = abs(value)
    if amount == 0:
        raise AmountValidationError(
            "amount must be greater than zero", AmountReason.NOT_POSITIVE
        )
    if amount > MAX_AMOUNT:
        raise AmountValidationError("amount too large", AmountReason.TOO_LARGE)

    _, _, fraction = normalized.partition(".")
    if len(fraction) > MAX_FRACTION_DIGITS:
        raise AmountValidationError("at most 2 decimal digits", AmountReason.TOO_PRECISE)

    return amount


def parse_transaction(text: str) -> ParsedTransaction:
    """Parse a quick-entry message into a transaction intent.

    Raises:
        ValidationError: when the message is empty, lacks a description, or
            the amount is rejected by :func:`validate_amount`.
    """
    message = _WHITESPACE.sub(" ", text or "").strip()
    if not message:
        raise ValidationError("message must not be empty")

    if message[0] in "+-":
        direction = Direction.FORWARD if message[0] == "+" else Direction.REVERSE
        amount_token, _, description = message[1:].strip().partition(" ")
    else:
        direction = Direction.FORWARD
        amount_token, _, description = message.partition(" ")
        if not description:
            raise ValidationError("need amount and description, e.g. '100 lunch'")

    amount = validate_amount(amount_token)

    description = description.strip()
    if not description:
        raise ValidationError("description must not be empty")

    return ParsedTransaction(amount=amount, description=description, direction=direction)
