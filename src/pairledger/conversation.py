"""Per-user state machine for the guided transaction entry flow.

A user picks a direction, then sends an amount, then a description::

    Idle --begin--> AwaitingAmount --amount--> AwaitingDescription --text--> Idle

Cancellation or any unrelated command returns the user to ``Idle``.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

import structlog

from pairledger.errors import StateError, ValidationError
from pairledger.models import Direction
from pairledger.parsing import ParsedTransaction, validate_amount

logger = structlog.get_logger(__name__)


class Phase(str, Enum):
    """Phases of the guided flow."""

    IDLE = "idle"
    AWAITING_AMOUNT = "awaiting_amount"
    AWAITING_DESCRIPTION = "awaiting_description"


@dataclass(frozen=True)
class Idle:
    phase = Phase.IDLE


@dataclass(frozen=True)
class AwaitingAmount:
    direction: Direction
    phase = Phase.AWAITING_AMOUNT


@dataclass(frozen=True)
class AwaitingDescription:
    direction: Direction
    amount: Decimal
    phase = Phase.AWAITING_DESCRIPTION


ConversationState = Idle | AwaitingAmount | AwaitingDescription

IDLE = Idle()


class ConversationManager:
    """Holds the guided-flow state for every user.

    States are keyed by user id and never interact. Every transition replaces
    the user's state object, so a pending amount can only exist alongside a
    pending direction.
    """

    def __init__(self) -> None:
        self._states: dict[int, ConversationState] = {}
        self._logger = logger.bind(component="conversation")

    def state_for(self, user_id: int) -> ConversationState:
        return self._states.get(user_id, IDLE)

    def _set(self, user_id: int, state: ConversationState) -> ConversationState:
        if isinstance(state, Idle):
            self._states.pop(user_id, None)
        else:
            self._states[user_id] = state
        self._logger.debug("state_changed", user_id=user_id, phase=state.phase.value)
        return state

    def begin(self, user_id: int, direction: Direction) -> AwaitingAmount:
        """Start a new flow, discarding any pending one."""
        state = AwaitingAmount(direction=direction)
        self._set(user_id, state)
        return state

    def cancel(self, user_id: int) -> bool:
        """Return to idle. Returns True if a flow was pending."""
        pending = not isinstance(self.state_for(user_id), Idle)
        self._set(user_id, IDLE)
        return pending

    def reset(self, user_id: int) -> None:
        """Drop a pending flow before handling an unrelated command."""
        if not isinstance(self.state_for(user_id), Idle):
            self._logger.info("flow_abandoned", user_id=user_id)
            self._set(user_id, IDLE)

    def submit_amount(self, user_id: int, text: str) -> AwaitingDescription:
        """Record the amount of a pending flow.

        Raises:
            StateError: if the user is not being asked for an amount.
            ValidationError: if the amount is rejected; state is unchanged.
        """
        state = self.state_for(user_id)
        if not isinstance(state, AwaitingAmount):
            raise StateError(f"expected {Phase.AWAITING_AMOUNT.value}, got {state.phase.value}")

        amount = validate_amount(text)
        new_state = AwaitingDescription(direction=state.direction, amount=amount)
        self._set(user_id, new_state)
        return new_state

    def submit_description(self, user_id: int, text: str) -> ParsedTransaction:
        """Complete a pending flow and return the finished transaction.

        The user is back to idle when this returns, whatever happens to the
        transaction afterwards.

        Raises:
            StateError: if the user is not being asked for a description.
            ValidationError: if the description is blank; state is unchanged.
        """
        state = self.state_for(user_id)
        if not isinstance(state, AwaitingDescription):
            raise StateError(
                f"expected {Phase.AWAITING_DESCRIPTION.value}, got {state.phase.value}"
            )

        description = (text or "").strip()
        if not description:
            raise ValidationError("description must not be empty")

        self._set(user_id, IDLE)
        return ParsedTransaction(
            amount=state.amount, description=description, direction=state.direction
        )

    def handle_text(
        self, user_id: int, text: str
    ) -> AwaitingDescription | ParsedTransaction:
        """Feed plain text to whichever step is pending.

        Raises:
            StateError: if no flow is pending.
        """
        state = self.state_for(user_id)
        if isinstance(state, AwaitingAmount):
            return self.submit_amount(user_id, text)
        if isinstance(state, AwaitingDescription):
            return self.submit_description(user_id, text)
        raise StateError("no pending flow")
