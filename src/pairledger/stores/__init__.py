"""Adapters for the ledger and the local record store."""

from pairledger.stores.base import LedgerStore, StateStore
from pairledger.stores.files import JsonFileStore
from pairledger.stores.sheets import (
    ServiceAccountTokenProvider,
    SheetsLedger,
    parse_rows,
    record_to_row,
)

__all__ = [
    "LedgerStore",
    "StateStore",
    "JsonFileStore",
    "SheetsLedger",
    "ServiceAccountTokenProvider",
    "parse_rows",
    "record_to_row",
]
