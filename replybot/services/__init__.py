"""Service layer for reply tracking persistence."""

from .conversation_service import ConversationService
from .database import DatabaseService, open_database
from .mention_service import MentionService
from .reply_tracking_service import ReplyTrackingService
from .tracking_store import TrackingStore

__all__ = [
    "ConversationService",
    "DatabaseService",
    "MentionService",
    "ReplyTrackingService",
    "TrackingStore",
    "open_database",
]
