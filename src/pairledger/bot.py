"""Inbound message handling: commands, quick entry and the guided flow."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from pairledger.balance import compute_balance, net_total
from pairledger.config import get_settings
from pairledger.conversation import AwaitingDescription, ConversationManager
from pairledger.errors import StateError, TransportError, ValidationError
from pairledger.formatting import format_entry, format_history, format_money, transaction_examples
from pairledger.models import Direction, Participants, TransactionRecord, User
from pairledger.notifications import NotificationComposer
from pairledger.parsing import ParsedTransaction, parse_transaction
from pairledger.reconciler import Reconciler
from pairledger.stores.base import LedgerStore, StateStore

logger = structlog.get_logger(__name__)

GIVE_BUTTON = "💰 Give"
TAKE_BUTTON = "💸 Take"
CANCEL_BUTTON = "❌ Cancel"
DIRECTION_KEYBOARD = [[GIVE_BUTTON, TAKE_BUTTON], [CANCEL_BUTTON]]
CANCEL_KEYBOARD = [[CANCEL_BUTTON]]
REMOVE_KEYBOARD: list[list[str]] = []

COMMANDS_HELP = (
    "/add <amount> <description> - add a transaction\n"
    "/give, /take - add a transaction step by step\n"
    "/cancel - abandon the transaction being entered\n"
    "/balance - show the current balance\n"
    "/history - show the latest records\n"
    "/notifications on|off - toggle change notifications\n"
    "/help - this help"
)


@dataclass(frozen=True)
class Reply:
    """A message to send back to the user."""

    text: str
    keyboard: list[list[str]] | None = None  # [] removes the keyboard
    html: bool = False


@dataclass
class BotAction:
    """Everything that resulted from one inbound message."""

    replies: list[Reply] = field(default_factory=list)
    appended: TransactionRecord | None = None

    def reply(self, text: str, keyboard: list[list[str]] | None = None, html: bool = False) -> "BotAction":
        self.replies.append(Reply(text=text, keyboard=keyboard, html=html))
        return self


@dataclass(frozen=True)
class UserProfile:
    """Sender details supplied by the transport."""

    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None


CommandHandler = Callable[[User, str], Awaitable[BotAction]]


class BotService:
    """Turns each inbound text into replies and, on completion, a ledger append."""

    def __init__(
        self,
        ledger: LedgerStore,
        store: StateStore,
        reconciler: Reconciler,
        conversations: ConversationManager | None = None,
        participants: Participants | None = None,
        composer: NotificationComposer | None = None,
        refresh_delay: float | None = None,
        admin_user_id: int | None = None,
    ):
        settings = get_settings()
        self._ledger = ledger
        self._store = store
        self._reconciler = reconciler
        self._conversations = conversations or ConversationManager()
        self._participants = participants or Participants.from_settings()
        self._composer = composer or NotificationComposer(self._participants)
        self._refresh_delay = (
            settings.refresh_delay_seconds if refresh_delay is None else refresh_delay
        )
        self._admin_user_id = settings.admin_user_id if admin_user_id is None else admin_user_id
        self._date_format = settings.date_format
        self._history_limit = settings.history_limit
        self._pending_refreshes: set[asyncio.Task[None]] = set()
        self._logger = logger.bind(component="bot")

        self._commands: dict[str, CommandHandler] = {
            "/start": self._cmd_start,
            "/help": self._cmd_help,
            "/add": self._cmd_add,
            "/give": self._cmd_give,
            "/take": self._cmd_take,
            "/balance": self._cmd_balance,
            "/history": self._cmd_history,
            "/notifications": self._cmd_notifications,
        }

    @property
    def conversations(self) -> ConversationManager:
        return self._conversations

    async def handle_user_text(
        self, user_id: int, text: str, profile: UserProfile | None = None
    ) -> BotAction:
        """Single entry point for every inbound text message."""
        user = await self._ensure_user(user_id, profile or UserProfile())
        text = (text or "").strip()

        if text == CANCEL_BUTTON:
            return self._cancel(user_id)
        if text in (GIVE_BUTTON, TAKE_BUTTON):
            direction = Direction.FORWARD if text == GIVE_BUTTON else Direction.REVERSE
            return self._begin(user_id, direction)

        if text.startswith("/"):
            command, _, args = text.partition(" ")
            command = command.split("@", 1)[0].lower()
            if command == "/cancel":
                return self._cancel(user_id)
            self._conversations.reset(user_id)
            handler = self._commands.get(command)
            if handler is None:
                return BotAction().reply(f"Unknown command {command}. See /help.")
            return await handler(user, args.strip())

        try:
            outcome = self._conversations.handle_text(user_id, text)
        except StateError:
            return await self._quick_entry(user, text)
        except ValidationError as e:
            return BotAction().reply(f"❌ {e}\n\nTry again or press Cancel.", CANCEL_KEYBOARD)

        if isinstance(outcome, AwaitingDescription):
            return BotAction().reply(
                f"Amount: {format_money(outcome.amount)}\nNow send a description.",
                CANCEL_KEYBOARD,
            )
        return await self._record(user, outcome)

    # === Flow helpers ===

    async def _ensure_user(self, user_id: int, profile: UserProfile) -> User:
        user = await self._store.get_user(user_id)
        if user is None:
            user = await self._store.create_user(
                User(
                    telegram_id=user_id,
                    username=profile.username,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                    is_admin=user_id == self._admin_user_id,
                )
            )
        return user

    def _begin(self, user_id: int, direction: Direction) -> BotAction:
        self._conversations.begin(user_id, direction)
        sender = self._participants.sender(direction)
        receiver = self._participants.receiver(direction)
        return BotAction().reply(
            f"{sender} → {receiver}. Send the amount, e.g. 150 or 99,90.", CANCEL_KEYBOARD
        )

    def _cancel(self, user_id: int) -> BotAction:
        if self._conversations.cancel(user_id):
            return BotAction().reply("Cancelled.", REMOVE_KEYBOARD)
        return BotAction().reply("Nothing to cancel.", REMOVE_KEYBOARD)

    async def _quick_entry(self, user: User, text: str) -> BotAction:
        try:
            parsed = parse_transaction(text)
        except ValidationError as e:
            return BotAction().reply(f"❌ {e}\n\n{transaction_examples()}")
        return await self._record(user, parsed)

    async def _record(self, user: User, parsed: ParsedTransaction) -> BotAction:
        record = TransactionRecord(
            date=datetime.now().strftime(self._date_format),
            actor=user.display_name,
            amount=parsed.amount,
            description=parsed.description,
            direction=parsed.direction,
        )
        try:
            await self._ledger.append_row(record)
        except TransportError as e:
            self._logger.error("append_failed", telegram_id=user.telegram_id, error=str(e))
            return BotAction().reply(
                "❌ Could not add the transaction. Please try again.", REMOVE_KEYBOARD
            )

        self._logger.info(
            "transaction_added",
            telegram_id=user.telegram_id,
            entry=format_entry(record.amount, record.description, record.direction),
        )
        self._schedule_refresh()
        action = BotAction(appended=record)
        return action.reply("✅ Transaction added.", REMOVE_KEYBOARD)

    def _schedule_refresh(self) -> None:
        task = asyncio.create_task(self._refresh())
        self._pending_refreshes.add(task)
        task.add_done_callback(self._pending_refreshes.discard)

    async def _refresh(self) -> None:
        # give the sheet a moment to expose the appended row
        await asyncio.sleep(self._refresh_delay)
        await self._reconciler.force_tick()

    async def drain(self) -> None:
        """Wait for scheduled post-append checks to finish."""
        if self._pending_refreshes:
            await asyncio.gather(*self._pending_refreshes, return_exceptions=True)

    # === Commands ===

    async def _cmd_start(self, user: User, args: str) -> BotAction:
        lines = [
            "🎉 Welcome!",
            "",
            f"I keep track of money between {self._participants.a} and {self._participants.b}.",
            "",
            f"👤 {user.display_name}" + (f" (@{user.username})" if user.username else ""),
        ]
        if user.is_admin:
            lines.append("👑 Administrator")
        lines += ["", COMMANDS_HELP, "", transaction_examples()]
        return BotAction().reply("\n".join(lines), DIRECTION_KEYBOARD)

    async def _cmd_help(self, user: User, args: str) -> BotAction:
        return BotAction().reply(
            f"📖 Commands:\n\n{COMMANDS_HELP}\n\n{transaction_examples()}\n\n"
            "Send \"amount description\" at any time to add a transaction quickly. "
            "Everyone with notifications on is told about every change."
        )

    async def _cmd_add(self, user: User, args: str) -> BotAction:
        if args:
            return await self._quick_entry(user, args)
        return BotAction().reply("Who paid?", DIRECTION_KEYBOARD)

    async def _cmd_give(self, user: User, args: str) -> BotAction:
        return self._begin(user.telegram_id, Direction.FORWARD)

    async def _cmd_take(self, user: User, args: str) -> BotAction:
        return self._begin(user.telegram_id, Direction.REVERSE)

    async def _read_rows(self) -> list[TransactionRecord] | None:
        try:
            return await self._ledger.read_all_rows()
        except TransportError as e:
            self._logger.error("ledger_read_failed", error=str(e))
            return None

    async def _cmd_balance(self, user: User, args: str) -> BotAction:
        rows = await self._read_rows()
        if rows is None:
            return BotAction().reply("❌ Could not load the balance.")
        balance = compute_balance(rows, self._participants)
        return BotAction().reply(self._composer.render_balance(balance))

    async def _cmd_history(self, user: User, args: str) -> BotAction:
        rows = await self._read_rows()
        if rows is None:
            return BotAction().reply("❌ Could not load the history.")
        if not rows:
            return BotAction().reply("📝 No records yet.")
        return BotAction().reply(
            format_history(rows[-self._history_limit:], len(rows), net_total(rows)),
            html=True,
        )

    async def _cmd_notifications(self, user: User, args: str) -> BotAction:
        choice = args.lower()
        if choice not in ("on", "off"):
            status = "on" if user.notifications_enabled else "off"
            return BotAction().reply(
                f"🔔 Notifications are {status}.\n\n"
                "/notifications on - turn them on\n"
                "/notifications off - turn them off"
            )
        enabled = choice == "on"
        await self._store.update_user(user.telegram_id, notifications_enabled=enabled)
        emoji = "🔔" if enabled else "🔕"
        return BotAction().reply(f"{emoji} Notifications {choice}.")
