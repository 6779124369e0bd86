"""Reconciliation of the live ledger against the last verified snapshot.

Change detection is by row count only. Rows have no identity, so inserts and
deletes between two polls that net to the same count look like no change,
and appended rows are assumed to be at the tail of the ledger.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

import structlog

from pairledger.models import LedgerSnapshot, TransactionRecord
from pairledger.notifications import NotificationComposer
from pairledger.stores.base import LedgerStore, StateStore
from pairledger.telegram import Transport

logger = structlog.get_logger(__name__)


class ChangeKind(str, Enum):
    """Classification of the ledger delta between two polls."""

    NONE = "none"
    GREW = "grew"
    SHRANK = "shrank"


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of comparing the ledger with the snapshot."""

    kind: ChangeKind
    delta: int
    new_snapshot: LedgerSnapshot
    new_rows: tuple[TransactionRecord, ...] = ()


def reconcile(
    current_rows: Sequence[TransactionRecord],
    last_snapshot: LedgerSnapshot | None,
    observed_at: datetime | None = None,
) -> ReconcileResult:
    """Classify the change between ``last_snapshot`` and ``current_rows``.

    A missing snapshot is a cold start: the current size becomes the
    baseline and nothing is reported.
    """
    observed_at = observed_at or datetime.now(UTC)
    count = len(current_rows)
    new_snapshot = LedgerSnapshot(row_count=count, observed_at=observed_at)

    if last_snapshot is None:
        return ReconcileResult(kind=ChangeKind.NONE, delta=0, new_snapshot=new_snapshot)

    if count > last_snapshot.row_count:
        delta = count - last_snapshot.row_count
        return ReconcileResult(
            kind=ChangeKind.GREW,
            delta=delta,
            new_snapshot=new_snapshot,
            new_rows=tuple(current_rows[-delta:]),
        )

    if count < last_snapshot.row_count:
        return ReconcileResult(
            kind=ChangeKind.SHRANK,
            delta=last_snapshot.row_count - count,
            new_snapshot=new_snapshot,
        )

    return ReconcileResult(kind=ChangeKind.NONE, delta=0, new_snapshot=new_snapshot)


class Reconciler:
    """Polls the ledger, notifies subscribers of changes and advances the snapshot.

    The snapshot is written only after the ledger was read successfully and
    any notifications were dispatched, so a failed read can never be taken
    for deleted rows. Passes never overlap.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        store: StateStore,
        transport: Transport,
        composer: NotificationComposer | None = None,
    ):
        self._ledger = ledger
        self._store = store
        self._transport = transport
        self._composer = composer or NotificationComposer()
        self._lock = asyncio.Lock()
        self._logger = logger.bind(component="reconciler")

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def check(self) -> ReconcileResult:
        """Run one reconciliation pass.

        Raises:
            TransportError: if the ledger or store cannot be read, or the
                recipients cannot be listed. The snapshot is left untouched.
        """
        rows = await self._ledger.read_all_rows()
        last = await self._store.get_snapshot()
        result = reconcile(rows, last)

        self._logger.info(
            "ledger_checked",
            rows=len(rows),
            last_known=last.row_count if last else None,
            kind=result.kind.value,
            delta=result.delta,
        )

        if result.kind is ChangeKind.GREW:
            await self._dispatch(self._composer.compose_growth(rows, result.delta))
        elif result.kind is ChangeKind.SHRANK:
            await self._dispatch([self._composer.compose_shrink(rows, result.delta)])
        elif last is None:
            self._logger.info("snapshot_initialized", rows=len(rows))

        await self._store.put_snapshot(result.new_snapshot)
        return result

    async def _dispatch(self, messages: list[str]) -> None:
        users = await self._store.list_users_with_notifications()
        if not users:
            self._logger.info("no_recipients")
            return

        for message in messages:
            for user in users:
                try:
                    await self._transport.send(user.telegram_id, message)
                except Exception as e:
                    self._logger.error(
                        "notification_failed", telegram_id=user.telegram_id, error=str(e)
                    )

        self._logger.info("notifications_sent", messages=len(messages), recipients=len(users))

    async def _guarded_check(self) -> ReconcileResult | None:
        try:
            return await self.check()
        except Exception as e:
            self._logger.error("tick_failed", error=str(e), error_type=type(e).__name__)
            return None

    async def tick(self) -> ReconcileResult | None:
        """Scheduled pass. Skipped if another pass is in flight; never raises."""
        if self._lock.locked():
            self._logger.debug("tick_skipped_busy")
            return None
        async with self._lock:
            return await self._guarded_check()

    async def force_tick(self) -> ReconcileResult | None:
        """Pass requested after a local append. Waits for a running pass; never raises."""
        self._logger.debug("forced_tick")
        async with self._lock:
            return await self._guarded_check()

    async def reset_snapshot(self) -> LedgerSnapshot:
        """Re-baseline the snapshot to the current ledger size without notifying."""
        async with self._lock:
            rows = await self._ledger.read_all_rows()
            snapshot = LedgerSnapshot(row_count=len(rows))
            await self._store.put_snapshot(snapshot)
            self._logger.info("snapshot_reset", rows=len(rows))
            return snapshot
