"""ConversationMemory model for follow-up detection."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class ConversationMemory(SqlalchemyBase):
    """Remember the last exchange with an author in a conversation."""

    __tablename__ = "conversation_memory"
    __table_args__ = (
        Index("idx_conversation_memory_pair", "author_id", "conversation_id", unique=True),
        Index("idx_conversation_memory_last_reply_at", "last_reply_at"),
    )

    author_id: Mapped[str] = mapped_column(String, nullable=False)
    conversation_id: Mapped[str] = mapped_column(String, nullable=False)
    last_reply: Mapped[str] = mapped_column(Text, nullable=False)
    last_mention: Mapped[str] = mapped_column(Text, nullable=False)
    last_reply_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reply_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
