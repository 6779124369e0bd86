"""pairledger - a shared two-person ledger kept in Google Sheets, driven over Telegram."""

__version__ = "0.1.0"

from pairledger.balance import compute_balance
from pairledger.bot import BotAction, BotService, Reply, UserProfile
from pairledger.config import configure_logging, get_settings
from pairledger.conversation import (
    AwaitingAmount,
    AwaitingDescription,
    ConversationManager,
    Idle,
    Phase,
)
from pairledger.models import (
    Balance,
    Direction,
    LedgerSnapshot,
    Participants,
    TransactionRecord,
    User,
)
from pairledger.notifications import NotificationComposer
from pairledger.parsing import ParsedTransaction, parse_transaction, validate_amount
from pairledger.reconciler import ChangeKind, ReconcileResult, Reconciler, reconcile
from pairledger.scheduler import PollHandle, PollScheduler

__all__ = [
    # Version
    "__version__",
    # Models
    "Balance",
    "Direction",
    "LedgerSnapshot",
    "Participants",
    "TransactionRecord",
    "User",
    # Parsing & balance
    "ParsedTransaction",
    "parse_transaction",
    "validate_amount",
    "compute_balance",
    # Conversation
    "ConversationManager",
    "Phase",
    "Idle",
    "AwaitingAmount",
    "AwaitingDescription",
    # Reconciliation
    "ChangeKind",
    "ReconcileResult",
    "Reconciler",
    "reconcile",
    "NotificationComposer",
    "PollScheduler",
    "PollHandle",
    # Bot
    "BotService",
    "BotAction",
    "Reply",
    "UserProfile",
    # Config
    "get_settings",
    "configure_logging",
]
