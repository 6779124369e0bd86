"""Interfaces of the external collaborators used by the core."""

from typing import Any, Protocol

from pairledger.models import LedgerSnapshot, TransactionRecord, User


class LedgerStore(Protocol):
    """The shared, ordered ledger of transaction rows."""

    async def read_all_rows(self) -> list[TransactionRecord]:
        """Return every data row in ledger order. Raises on transport errors."""
        ...

    async def append_row(self, record: TransactionRecord) -> None:
        """Append one row at the end of the ledger. Raises on transport errors."""
        ...


class StateStore(Protocol):
    """Local persistence for the snapshot and registered users."""

    async def get_snapshot(self) -> LedgerSnapshot | None: ...

    async def put_snapshot(self, snapshot: LedgerSnapshot) -> None: ...

    async def get_user(self, telegram_id: int) -> User | None: ...

    async def create_user(self, user: User) -> User: ...

    async def update_user(self, telegram_id: int, **patch: Any) -> User | None: ...

    async def list_users_with_notifications(self) -> list[User]: ...
