"""Core data types: ledger rows, snapshots, balances and users."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from pairledger.config import get_settings
from pairledger.errors import ValidationError

CENT = Decimal("0.01")


class Direction(str, Enum):
    """Which way money moved between the two participants."""

    FORWARD = "give"   # A pays B
    REVERSE = "take"   # B pays A

    @property
    def sign(self) -> int:
        return 1 if self is Direction.FORWARD else -1


@dataclass(frozen=True)
class Participants:
    """The two fixed parties sharing the ledger."""

    a: str
    b: str

    @classmethod
    def from_settings(cls) -> "Participants":
        settings = get_settings()
        return cls(a=settings.participant_a, b=settings.participant_b)

    def sender(self, direction: Direction) -> str:
        return self.a if direction is Direction.FORWARD else self.b

    def receiver(self, direction: Direction) -> str:
        return self.b if direction is Direction.FORWARD else self.a


@dataclass(frozen=True)
class TransactionRecord:
    """One ledger row. The amount is always positive; direction carries the sign."""

    date: str
    actor: str
    amount: Decimal
    description: str
    direction: Direction

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValidationError("amount must be greater than zero")
        if self.amount != self.amount.quantize(CENT):
            raise ValidationError("at most 2 decimal digits")
        if not self.description.strip():
            raise ValidationError("description must not be empty")

    @property
    def signed_amount(self) -> Decimal:
        return self.amount * self.direction.sign


class LedgerSnapshot(BaseModel):
    """The reconciler's last verified view of the ledger size."""

    model_config = ConfigDict(frozen=True)

    row_count: int = Field(ge=0)
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class Balance:
    """Net position between the participants, derived from the full ledger."""

    debtor: str
    creditor: str
    amount: Decimal
    narrative: str
    net: Decimal = Decimal("0")

    @classmethod
    def from_net(cls, net: Decimal, participants: Participants) -> "Balance":
        """Map a signed total to debtor and creditor roles.

        A positive total means B received more than it returned, so B owes A.
        """
        if net > 0:
            debtor, creditor = participants.b, participants.a
        elif net < 0:
            debtor, creditor = participants.a, participants.b
        else:
            return cls(debtor="", creditor="", amount=Decimal("0"),
                       narrative="balance is zero", net=Decimal("0"))
        return cls(
            debtor=debtor,
            creditor=creditor,
            amount=abs(net),
            narrative=f"{debtor} owes {creditor}",
            net=net,
        )

    @property
    def is_settled(self) -> bool:
        return self.amount == 0


class User(BaseModel):
    """A registered chat user."""

    telegram_id: int
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    is_admin: bool = False
    notifications_enabled: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def display_name(self) -> str:
        return self.first_name or self.username or f"User{self.telegram_id}"
