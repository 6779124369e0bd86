"""Application wiring and command-line entry point."""

import asyncio
import sys
from typing import Any

import structlog

from pairledger.bot import BotService, UserProfile
from pairledger.config import configure_logging, get_settings
from pairledger.errors import TelegramError
from pairledger.notifications import NotificationComposer
from pairledger.reconciler import Reconciler
from pairledger.scheduler import PollScheduler
from pairledger.stores import JsonFileStore, SheetsLedger
from pairledger.telegram import IncomingMessage, TelegramClient

logger = structlog.get_logger(__name__)


class LedgerBot:
    """Owns the adapters and runs the update loop next to the poller.

    Usage:
        async with LedgerBot() as app:
            await app.run()
    """

    def __init__(
        self,
        ledger: SheetsLedger | None = None,
        store: JsonFileStore | None = None,
        telegram: TelegramClient | None = None,
    ):
        self.ledger = ledger or SheetsLedger()
        self.store = store or JsonFileStore()
        self.telegram = telegram or TelegramClient()
        self.reconciler = Reconciler(
            self.ledger, self.store, self.telegram, NotificationComposer()
        )
        self.service = BotService(self.ledger, self.store, self.reconciler)
        self.scheduler = PollScheduler(self.reconciler.tick)
        self._logger = logger.bind(component="app")

    async def __aenter__(self) -> "LedgerBot":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.service.drain()
        await self.telegram.close()
        await self.ledger.close()

    async def handle(self, message: IncomingMessage) -> None:
        """Process one inbound message and deliver the replies."""
        try:
            action = await self.service.handle_user_text(
                message.user_id,
                message.text,
                UserProfile(
                    username=message.username,
                    first_name=message.first_name,
                    last_name=message.last_name,
                ),
            )
        except Exception as e:
            self._logger.exception("message_handling_failed", user_id=message.user_id, error=str(e))
            return

        for reply in action.replies:
            try:
                await self.telegram.send(
                    message.chat_id, reply.text, keyboard=reply.keyboard, html=reply.html
                )
            except TelegramError as e:
                self._logger.error("reply_failed", chat_id=message.chat_id, error=str(e))

    async def run(self) -> None:
        """Long-poll Telegram until cancelled."""
        await self.store.disable_notifications_for_unauthorized()
        async with self.scheduler.start():
            self._logger.info("bot_started")
            offset: int | None = None
            while True:
                try:
                    offset, messages = await self.telegram.get_updates(offset)
                except TelegramError as e:
                    self._logger.error("get_updates_failed", error=str(e))
                    await asyncio.sleep(5)
                    continue
                for message in messages:
                    await self.handle(message)


async def main() -> None:
    """Entry point.

    Usage:
        python -m pairledger            # run the bot
        python -m pairledger check      # one reconciliation pass
        python -m pairledger reset      # re-baseline the snapshot
    """
    import argparse

    parser = argparse.ArgumentParser(
        prog="pairledger",
        description="Shared ledger bot for two participants",
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["run", "check", "reset"],
        default="run",
        help="What to do (default: run)",
    )
    args = parser.parse_args()

    try:
        get_settings()
    except Exception as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging()
    logger.info("starting_pairledger", command=args.command)

    try:
        async with LedgerBot() as app:
            if args.command == "check":
                result = await app.reconciler.force_tick()
                if result is None:
                    sys.exit(1)
                print(f"{result.kind.value}: delta={result.delta} rows={result.new_snapshot.row_count}")
            elif args.command == "reset":
                snapshot = await app.reconciler.reset_snapshot()
                print(f"snapshot reset to {snapshot.row_count} rows")
            else:
                await app.run()
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("shutdown_requested")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
