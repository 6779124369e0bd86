"""Google Sheets ledger client.

The sheet holds four columns: date, user, signed amount, description. Amounts
are written with a comma decimal separator and a leading ``-`` for "take"
rows; the sign is the only direction marker.
"""

import asyncio
import re
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import google.auth.transport.requests
import httpx
import structlog
from google.oauth2 import service_account

from pairledger.config import get_settings
from pairledger.errors import LedgerUnavailableError, ValidationError
from pairledger.models import CENT, Direction, TransactionRecord

logger = structlog.get_logger(__name__)

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
HEADER_KEYWORDS = ("date", "user", "amount", "description")

_RETRY_STATUSES = {429, 500, 502, 503, 504}
_WHITESPACE = re.compile(r"\s+")


# === Row codec ===


def is_header_row(row: Sequence[Any]) -> bool:
    """True when a cell carries its column's title (Date, User, Amount, Description)."""
    if len(row) < len(HEADER_KEYWORDS):
        return False
    return any(
        keyword in str(cell).lower() for cell, keyword in zip(row, HEADER_KEYWORDS)
    )


def parse_amount_cell(cell: Any) -> Decimal | None:
    """Parse a signed amount as the sheet renders it ("1 500,50", "-20,5").

    Returns None for anything that is not a whole number of cents.
    """
    normalized = _WHITESPACE.sub("", str(cell)).replace(",", ".", 1)
    try:
        value = Decimal(normalized)
    except InvalidOperation:
        return None
    if not value.is_finite() or value != value.quantize(CENT):
        return None
    return value.quantize(CENT)


def row_to_record(row: Sequence[Any], row_number: int) -> TransactionRecord | None:
    """Convert a raw sheet row, or return None (with a warning) if it is malformed."""
    if len(row) < 4:
        logger.warning("row_incomplete", row=row_number, cells=len(row))
        return None

    date, actor, amount_cell, description = (str(cell) for cell in row[:4])
    signed = parse_amount_cell(amount_cell)
    if signed is None or signed == 0:
        logger.warning("row_invalid_amount", row=row_number, amount=amount_cell)
        return None

    try:
        return TransactionRecord(
            date=date.strip(),
            actor=actor.strip(),
            amount=abs(signed),
            description=description.strip(),
            direction=Direction.FORWARD if signed > 0 else Direction.REVERSE,
        )
    except ValidationError as e:
        logger.warning("row_invalid", row=row_number, error=str(e))
        return None


def parse_rows(values: Sequence[Sequence[Any]]) -> list[TransactionRecord]:
    """Convert the sheet's value grid into records, skipping a header row."""
    if not values:
        return []
    has_header = is_header_row(values[0])
    offset = 1 if has_header else 0

    records = []
    for index, row in enumerate(values[offset:], start=offset + 1):
        record = row_to_record(row, index)
        if record is not None:
            records.append(record)

    logger.debug(
        "rows_parsed",
        total_rows=len(values),
        header=has_header,
        records=len(records),
    )
    return records


def format_sheet_amount(signed: Decimal) -> str:
    """Render a signed amount with a comma decimal separator, e.g. ``-50,25``."""
    return f"{signed.quantize(CENT):.2f}".replace(".", ",")


def record_to_row(record: TransactionRecord) -> list[str]:
    return [
        record.date,
        record.actor,
        format_sheet_amount(record.signed_amount),
        record.description,
    ]


# === Authentication ===


class TokenProvider(Protocol):
    async def token(self) -> str: ...

    def invalidate(self) -> None: ...


class ServiceAccountTokenProvider:
    """OAuth access tokens for a Google service account key file."""

    def __init__(self, credentials_path: Path | None = None):
        settings = get_settings()
        self._path = credentials_path or settings.google_credentials_path
        self._credentials: service_account.Credentials | None = None
        self._lock = asyncio.Lock()

    async def token(self) -> str:
        async with self._lock:
            if self._credentials is None:
                self._credentials = service_account.Credentials.from_service_account_file(
                    str(self._path), scopes=SCOPES
                )
            if not self._credentials.valid:
                # google-auth refreshes synchronously over requests
                await asyncio.to_thread(
                    self._credentials.refresh, google.auth.transport.requests.Request()
                )
                logger.debug("sheets_token_refreshed")
            return str(self._credentials.token)

    def invalidate(self) -> None:
        if self._credentials is not None:
            self._credentials.token = None


# === Client ===


class SheetsLedger:
    """Async Google Sheets values API client implementing the ledger store."""

    def __init__(
        self,
        spreadsheet_id: str | None = None,
        sheet_name: str | None = None,
        token_provider: TokenProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
        max_retries: int | None = None,
        retry_backoff: float = 0.5,
    ):
        settings = get_settings()
        self._spreadsheet_id = spreadsheet_id or settings.spreadsheet_id
        self._sheet_name = sheet_name or settings.sheet_name
        self._timeout = settings.sheets_timeout
        self._max_retries = settings.sheets_max_retries if max_retries is None else max_retries
        self._retry_backoff = retry_backoff
        self._tokens = token_provider or ServiceAccountTokenProvider()
        self._client = http_client
        self._logger = logger.bind(component="sheets_ledger")

    @property
    def range(self) -> str:
        return f"{self._sheet_name}!A:D"

    def _values_path(self, suffix: str = "") -> str:
        return f"/{self._spreadsheet_id}/values/{quote(self.range, safe='')}{suffix}"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=SHEETS_API_URL,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SheetsLedger":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        retry: bool = True,
    ) -> dict[str, Any]:
        """Make an authenticated request, retrying transient failures.

        With ``retry=False`` a failed request is never re-sent, except once
        after a 401 with a fresh token.
        """
        client = await self._get_client()
        max_retries = self._max_retries if retry else 0
        attempt = 0
        token_refreshed = False
        while True:
            try:
                token = await self._tokens.token()
                response = await client.request(
                    method,
                    path,
                    params=params,
                    json=json,
                    headers={"Authorization": f"Bearer {token}"},
                )
            except httpx.HTTPError as e:
                if attempt < max_retries:
                    attempt += 1
                    self._logger.warning("sheets_request_retry", attempt=attempt, error=str(e))
                    await asyncio.sleep(self._retry_backoff * 2 ** (attempt - 1))
                    continue
                raise LedgerUnavailableError(f"Sheets request failed: {e}") from e
            except Exception as e:
                raise LedgerUnavailableError(f"Sheets authentication failed: {e}") from e

            # a 401 is rejected before anything is written
            if response.status_code == 401 and not token_refreshed:
                self._tokens.invalidate()
                token_refreshed = True
                continue

            if response.status_code in _RETRY_STATUSES and attempt < max_retries:
                attempt += 1
                self._logger.warning(
                    "sheets_request_retry", attempt=attempt, status_code=response.status_code
                )
                await asyncio.sleep(self._retry_backoff * 2 ** (attempt - 1))
                continue

            if response.status_code >= 400:
                try:
                    details = response.json()
                except ValueError:
                    details = response.text
                raise LedgerUnavailableError(
                    f"Sheets API error {response.status_code}",
                    status_code=response.status_code,
                    details=details,
                )

            data = response.json()
            return data if isinstance(data, dict) else {}

    async def read_values(self) -> list[list[Any]]:
        """Raw cell grid of the ledger range, header included."""
        data = await self._request("GET", self._values_path())
        values = data.get("values", [])
        self._logger.debug("sheet_read", rows=len(values))
        return values

    async def read_all_rows(self) -> list[TransactionRecord]:
        return parse_rows(await self.read_values())

    async def append_row(self, record: TransactionRecord) -> None:
        await self._request(
            "POST",
            self._values_path(":append"),
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"values": [record_to_row(record)]},
            # append is not idempotent; a re-sent request can write the row twice
            retry=False,
        )
        self._logger.info(
            "row_appended",
            direction=record.direction.value,
            amount=str(record.amount),
            description=record.description,
        )
