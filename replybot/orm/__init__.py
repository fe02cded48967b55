"""ORM models for reply tracking persistence."""

from .base import Base, SqlalchemyBase
from .bot_state import BotState
from .conversation_memory import ConversationMemory
from .replied_mention import RepliedMention
from .reply_tracking import ReplyTracking

__all__ = [
    "Base",
    "SqlalchemyBase",
    "BotState",
    "ConversationMemory",
    "RepliedMention",
    "ReplyTracking",
]
