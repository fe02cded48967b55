"""RepliedMention model: every mention id that ever received a reply."""

from typing import Optional

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class RepliedMention(SqlalchemyBase):
    """Track replied mentions so no mention is ever answered twice."""

    __tablename__ = "replied_mentions"
    __table_args__ = (
        Index("idx_replied_mentions_mention_id", "mention_id", unique=True),
        Index("idx_replied_mentions_author_id", "author_id"),
        Index("idx_replied_mentions_created_at", "created_at"),
    )

    mention_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    author_id: Mapped[str] = mapped_column(String, nullable=False)
    author_handle: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    conversation_id: Mapped[str] = mapped_column(String, nullable=False)
    mention_text: Mapped[str] = mapped_column(Text, nullable=False)
    reply_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    reply_text: Mapped[str] = mapped_column(Text, nullable=False)
