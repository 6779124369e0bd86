"""JSON file storage for registered users and the ledger snapshot."""

import asyncio
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from pairledger.config import get_settings
from pairledger.errors import StoreError
from pairledger.models import LedgerSnapshot, User

logger = structlog.get_logger(__name__)

USERS_FILE = "users.json"
SNAPSHOT_FILE = "notifications.json"

_users_adapter = TypeAdapter(list[User])


class JsonFileStore:
    """Keeps users and the snapshot in two JSON files under ``data_dir``.

    A missing or unreadable snapshot reads as absent, which makes the next
    check a silent cold start. A corrupt users file raises instead, so that
    a later write cannot wipe the registered users.
    """

    def __init__(self, data_dir: Path | None = None, allowed_users: list[int] | None = None):
        settings = get_settings()
        self._data_dir = data_dir or settings.data_dir
        self._allowed_users = (
            settings.allowed_users if allowed_users is None else allowed_users
        )
        self._logger = logger.bind(component="file_store")

    @property
    def users_path(self) -> Path:
        return self._data_dir / USERS_FILE

    @property
    def snapshot_path(self) -> Path:
        return self._data_dir / SNAPSHOT_FILE

    def _write(self, path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_bytes(payload)
        os.replace(tmp, path)

    # === Snapshot ===

    def _read_snapshot(self) -> LedgerSnapshot | None:
        try:
            raw = self.snapshot_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return LedgerSnapshot.model_validate_json(raw)
        except PydanticValidationError as e:
            self._logger.warning("snapshot_unreadable", error=str(e))
            return None

    async def get_snapshot(self) -> LedgerSnapshot | None:
        try:
            return await asyncio.to_thread(self._read_snapshot)
        except OSError as e:
            raise StoreError(f"Cannot read snapshot: {e}") from e

    async def put_snapshot(self, snapshot: LedgerSnapshot) -> None:
        try:
            await asyncio.to_thread(
                self._write, self.snapshot_path, snapshot.model_dump_json(indent=2).encode()
            )
        except OSError as e:
            raise StoreError(f"Cannot write snapshot: {e}") from e

    # === Users ===

    def _read_users(self) -> list[User]:
        try:
            raw = self.users_path.read_bytes()
        except FileNotFoundError:
            return []
        try:
            return _users_adapter.validate_json(raw)
        except PydanticValidationError as e:
            raise StoreError(f"Corrupt users file {self.users_path}", details=str(e)) from e

    def _save_users(self, users: list[User]) -> None:
        self._write(self.users_path, _users_adapter.dump_json(users, indent=2))

    async def _load(self) -> list[User]:
        try:
            return await asyncio.to_thread(self._read_users)
        except OSError as e:
            raise StoreError(f"Cannot read users: {e}") from e

    async def _store(self, users: list[User]) -> None:
        try:
            await asyncio.to_thread(self._save_users, users)
        except OSError as e:
            raise StoreError(f"Cannot write users: {e}") from e

    async def get_user(self, telegram_id: int) -> User | None:
        for user in await self._load():
            if user.telegram_id == telegram_id:
                return user
        return None

    async def create_user(self, user: User) -> User:
        users = await self._load()
        users.append(user)
        await self._store(users)
        self._logger.info("user_registered", telegram_id=user.telegram_id, name=user.display_name)
        return user

    async def update_user(self, telegram_id: int, **patch: Any) -> User | None:
        users = await self._load()
        for index, user in enumerate(users):
            if user.telegram_id == telegram_id:
                updated = user.model_copy(update={**patch, "updated_at": datetime.now(UTC)})
                users[index] = updated
                await self._store(users)
                return updated
        return None

    async def list_users_with_notifications(self) -> list[User]:
        users = [u for u in await self._load() if u.notifications_enabled]
        if self._allowed_users:
            users = [u for u in users if u.telegram_id in self._allowed_users]
        return users

    async def disable_notifications_for_unauthorized(self) -> int:
        """Turn off notifications for users outside the whitelist. Returns how many."""
        if not self._allowed_users:
            return 0
        users = await self._load()
        changed = 0
        for index, user in enumerate(users):
            if user.notifications_enabled and user.telegram_id not in self._allowed_users:
                users[index] = user.model_copy(
                    update={"notifications_enabled": False, "updated_at": datetime.now(UTC)}
                )
                changed += 1
        if changed:
            await self._store(users)
            self._logger.info("notifications_disabled_for_unauthorized", count=changed)
        return changed
