"""ReplyTracking model: reply counts per (conversation, author) pair."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class ReplyTracking(SqlalchemyBase):
    """Count replies per author within a conversation."""

    __tablename__ = "reply_tracking"
    __table_args__ = (
        Index("idx_reply_tracking_pair", "conversation_id", "author_id", unique=True),
        Index("idx_reply_tracking_last_reply_at", "last_reply_at"),
    )

    conversation_id: Mapped[str] = mapped_column(String, nullable=False)
    author_id: Mapped[str] = mapped_column(String, nullable=False)
    reply_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reply_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ReplyTracking(conversation={self.conversation_id}, author={self.author_id}, "
            f"count={self.reply_count})>"
        )
