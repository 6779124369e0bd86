"""Tests for inbound message handling."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from pairledger.bot import (
    CANCEL_BUTTON,
    DIRECTION_KEYBOARD,
    GIVE_BUTTON,
    REMOVE_KEYBOARD,
    TAKE_BUTTON,
    BotService,
    UserProfile,
)
from pairledger.conversation import AwaitingAmount, AwaitingDescription, Idle
from pairledger.models import Direction
from tests.conftest import make_record


@pytest.fixture
def reconciler():
    mock = MagicMock()
    mock.force_tick = AsyncMock()
    return mock


@pytest.fixture
def bot(ledger, store, reconciler, participants):
    return BotService(
        ledger,
        store,
        reconciler,
        participants=participants,
        refresh_delay=0,
        admin_user_id=1,
    )


class TestQuickEntry:
    """Tests for one-line transactions."""

    @pytest.mark.asyncio
    async def test_quick_entry_appends(self, bot, ledger, reconciler):
        action = await bot.handle_user_text(1, "150 lunch")

        assert action.appended is not None
        assert ledger.rows == [action.appended]
        record = ledger.rows[0]
        assert record.amount == Decimal("150")
        assert record.direction == Direction.FORWARD
        assert record.description == "lunch"
        assert record.actor == "Alice"
        assert "added" in action.replies[0].text

        await bot.drain()
        reconciler.force_tick.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reverse_quick_entry(self, bot, ledger):
        await bot.handle_user_text(2, "-20,5 taxi home")

        record = ledger.rows[0]
        assert record.direction == Direction.REVERSE
        assert record.amount == Decimal("20.50")
        assert record.description == "taxi home"
        assert record.actor == "Bob"

    @pytest.mark.asyncio
    async def test_invalid_quick_entry(self, bot, ledger, reconciler):
        action = await bot.handle_user_text(1, "lunch")

        assert action.appended is None
        assert ledger.rows == []
        assert action.replies[0].text.startswith("❌")
        await bot.drain()
        reconciler.force_tick.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_add_command_with_arguments(self, bot, ledger):
        action = await bot.handle_user_text(1, "/add 42 books")

        assert action.appended is not None
        assert ledger.rows[0].description == "books"

    @pytest.mark.asyncio
    async def test_add_command_without_arguments_offers_directions(self, bot):
        action = await bot.handle_user_text(1, "/add")

        assert action.replies[0].keyboard == DIRECTION_KEYBOARD


class TestGuidedFlow:
    """Tests for the step-by-step flow."""

    @pytest.mark.asyncio
    async def test_full_flow(self, bot, ledger, reconciler):
        action = await bot.handle_user_text(1, "/give")
        assert "Alice → Bob" in action.replies[0].text
        assert bot.conversations.state_for(1) == AwaitingAmount(direction=Direction.FORWARD)

        action = await bot.handle_user_text(1, "abc")
        assert action.replies[0].text.startswith("❌")
        assert bot.conversations.state_for(1) == AwaitingAmount(direction=Direction.FORWARD)

        action = await bot.handle_user_text(1, "200")
        assert "$200.00" in action.replies[0].text
        assert bot.conversations.state_for(1) == AwaitingDescription(
            direction=Direction.FORWARD, amount=Decimal("200")
        )

        action = await bot.handle_user_text(1, "groceries")
        assert action.appended == ledger.rows[0]
        assert ledger.rows[0].amount == Decimal("200")
        assert ledger.rows[0].description == "groceries"
        assert isinstance(bot.conversations.state_for(1), Idle)

        await bot.drain()
        reconciler.force_tick.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_take_button_starts_reverse_flow(self, bot):
        action = await bot.handle_user_text(2, TAKE_BUTTON)

        assert "Bob → Alice" in action.replies[0].text
        assert bot.conversations.state_for(2) == AwaitingAmount(direction=Direction.REVERSE)

    @pytest.mark.asyncio
    async def test_append_failure_resets_flow(self, bot, ledger, reconciler):
        ledger.fail_appends = True
        await bot.handle_user_text(1, GIVE_BUTTON)
        await bot.handle_user_text(1, "10")

        action = await bot.handle_user_text(1, "coffee")

        assert action.appended is None
        assert "Could not add" in action.replies[0].text
        assert isinstance(bot.conversations.state_for(1), Idle)
        await bot.drain()
        reconciler.force_tick.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_command_mid_flow_resets(self, bot, ledger):
        ledger.rows = [make_record(5)]
        await bot.handle_user_text(1, "/give")

        await bot.handle_user_text(1, "/balance")

        assert isinstance(bot.conversations.state_for(1), Idle)

    @pytest.mark.asyncio
    async def test_cancel_button(self, bot):
        await bot.handle_user_text(1, "/take")

        action = await bot.handle_user_text(1, CANCEL_BUTTON)

        assert action.replies[0].text == "Cancelled."
        assert action.replies[0].keyboard == REMOVE_KEYBOARD
        assert isinstance(bot.conversations.state_for(1), Idle)

    @pytest.mark.asyncio
    async def test_cancel_when_idle(self, bot):
        action = await bot.handle_user_text(1, "/cancel")

        assert action.replies[0].text == "Nothing to cancel."


class TestCommands:
    """Tests for the informational and settings commands."""

    @pytest.mark.asyncio
    async def test_balance(self, bot, ledger):
        ledger.rows = [make_record(100), make_record(30, Direction.REVERSE)]

        action = await bot.handle_user_text(1, "/balance")

        assert "Bob owes Alice: $70.00" in action.replies[0].text

    @pytest.mark.asyncio
    async def test_balance_when_ledger_down(self, bot, ledger):
        ledger.fail_reads = True

        action = await bot.handle_user_text(1, "/balance")

        assert "Could not load the balance" in action.replies[0].text

    @pytest.mark.asyncio
    async def test_history(self, bot, ledger):
        ledger.rows = [make_record(10, description="tea")]

        action = await bot.handle_user_text(1, "/history")

        reply = action.replies[0]
        assert reply.html is True
        assert "tea" in reply.text

    @pytest.mark.asyncio
    async def test_empty_history(self, bot):
        action = await bot.handle_user_text(1, "/history")

        assert "No records" in action.replies[0].text

    @pytest.mark.asyncio
    async def test_notifications_toggle(self, bot, store):
        action = await bot.handle_user_text(2, "/notifications off")

        assert "off" in action.replies[0].text
        assert store.users[2].notifications_enabled is False

        await bot.handle_user_text(2, "/notifications on")
        assert store.users[2].notifications_enabled is True

    @pytest.mark.asyncio
    async def test_unknown_command(self, bot):
        action = await bot.handle_user_text(1, "/frobnicate")

        assert "Unknown command /frobnicate" in action.replies[0].text

    @pytest.mark.asyncio
    async def test_start_registers_new_user(self, bot, store):
        profile = UserProfile(username="carol", first_name="Carol")

        action = await bot.handle_user_text(3, "/start", profile)

        assert store.users[3].first_name == "Carol"
        assert store.users[3].is_admin is False
        assert "@carol" in action.replies[0].text
        assert action.replies[0].keyboard == DIRECTION_KEYBOARD

    @pytest.mark.asyncio
    async def test_admin_registration(self, bot, store):
        store.users.clear()

        action = await bot.handle_user_text(1, "/start", UserProfile(first_name="Alice"))

        assert store.users[1].is_admin is True
        assert "Administrator" in action.replies[0].text
