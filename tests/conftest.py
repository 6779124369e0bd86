"""Pytest configuration and fixtures."""

import os
from decimal import Decimal
from typing import Any

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("BOT_TOKEN", "123456:test-token")
os.environ.setdefault("ADMIN_USER_ID", "1")
os.environ.setdefault("GOOGLE_CREDENTIALS_PATH", "/tmp/pairledger-test-credentials.json")
os.environ.setdefault("SPREADSHEET_ID", "test-spreadsheet")

from pairledger.errors import LedgerUnavailableError, TelegramError  # noqa: E402
from pairledger.models import (  # noqa: E402
    Direction,
    LedgerSnapshot,
    Participants,
    TransactionRecord,
    User,
)


def make_record(
    amount: str | int,
    direction: Direction = Direction.FORWARD,
    description: str = "lunch",
    actor: str = "Alice",
    date: str = "18.10.2026",
) -> TransactionRecord:
    return TransactionRecord(
        date=date,
        actor=actor,
        amount=Decimal(str(amount)),
        description=description,
        direction=direction,
    )


class FakeLedger:
    """In-memory ledger that can be told to fail."""

    def __init__(self, rows: list[TransactionRecord] | None = None):
        self.rows = list(rows or [])
        self.fail_reads = False
        self.fail_appends = False
        self.reads = 0

    async def read_all_rows(self) -> list[TransactionRecord]:
        self.reads += 1
        if self.fail_reads:
            raise LedgerUnavailableError("sheet unreachable", status_code=503)
        return list(self.rows)

    async def append_row(self, record: TransactionRecord) -> None:
        if self.fail_appends:
            raise LedgerUnavailableError("sheet unreachable", status_code=503)
        self.rows.append(record)


class FakeStore:
    """In-memory state store."""

    def __init__(self, snapshot: LedgerSnapshot | None = None, users: list[User] | None = None):
        self.snapshot = snapshot
        self.users = {u.telegram_id: u for u in users or []}
        self.snapshot_writes = 0

    async def get_snapshot(self) -> LedgerSnapshot | None:
        return self.snapshot

    async def put_snapshot(self, snapshot: LedgerSnapshot) -> None:
        self.snapshot_writes += 1
        self.snapshot = snapshot

    async def get_user(self, telegram_id: int) -> User | None:
        return self.users.get(telegram_id)

    async def create_user(self, user: User) -> User:
        self.users[user.telegram_id] = user
        return user

    async def update_user(self, telegram_id: int, **patch: Any) -> User | None:
        user = self.users.get(telegram_id)
        if user is None:
            return None
        self.users[telegram_id] = user.model_copy(update=patch)
        return self.users[telegram_id]

    async def list_users_with_notifications(self) -> list[User]:
        return [u for u in self.users.values() if u.notifications_enabled]


class FakeTransport:
    """Records outbound messages; selected recipients fail."""

    def __init__(self, failing: set[int] | None = None):
        self.sent: list[tuple[int, str]] = []
        self.failing = failing or set()

    async def send(
        self,
        user_id: int,
        text: str,
        keyboard: list[list[str]] | None = None,
        html: bool = False,
    ) -> None:
        if user_id in self.failing:
            raise TelegramError("Forbidden: bot was blocked by the user", status_code=403)
        self.sent.append((user_id, text))


@pytest.fixture
def participants():
    return Participants(a="Alice", b="Bob")


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def store():
    return FakeStore(
        users=[
            User(telegram_id=1, first_name="Alice"),
            User(telegram_id=2, first_name="Bob"),
        ]
    )


@pytest.fixture
def transport():
    return FakeTransport()
