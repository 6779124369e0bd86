"""Exception hierarchy shared by the parsers, stores and transport."""

from enum import Enum
from typing import Any


class PairLedgerError(Exception):
    """Base exception for pairledger errors."""


class ValidationError(PairLedgerError):
    """Malformed user input. Always recoverable; reported to the sender."""


class AmountReason(str, Enum):
    """Why an amount string was rejected."""

    EMPTY = "empty"
    INVALID_CHARACTERS = "invalid_characters"
    TOO_MANY_SEPARATORS = "too_many_separators"
    UNRECOGNIZED = "unrecognized"
    NOT_POSITIVE = "not_positive"
    TOO_LARGE = "too_large"
    TOO_PRECISE = "too_precise"


class AmountValidationError(ValidationError):
    """An amount failed validation."""

    def __init__(self, message: str, reason: AmountReason):
        super().__init__(message)
        self.reason = reason


class StateError(PairLedgerError):
    """A conversation step arrived in the wrong phase."""


class TransportError(PairLedgerError):
    """A remote collaborator (ledger, store, chat API) could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class LedgerUnavailableError(TransportError):
    """The ledger could not be read or appended to."""


class StoreError(TransportError):
    """The local record store could not be read or written."""


class TelegramError(TransportError):
    """The Telegram Bot API rejected a call or was unreachable."""
