"""Stage 1: find the root of a conversation and what it is about."""

import logging
from typing import Optional, Sequence

from ..mentions import Mention, ThreadPost
from .classifiers import PURPOSE_LABELS, TextClassifier
from .knowledge import ThreadOrigin

logger = logging.getLogger(__name__)

CORE_MESSAGE_CHARS = 120


def sort_thread(posts: Sequence[ThreadPost]) -> list[ThreadPost]:
    """Chronological order; the first post is the root."""
    return sorted(posts, key=lambda p: p.created_at)


def find_thread_origin(
    posts: Sequence[ThreadPost],
    mention: Mention,
    classifier: TextClassifier,
) -> Optional[ThreadOrigin]:
    """Locate the root post and classify its purpose.

    Returns None when the conversation could not be fetched.
    """
    if not posts:
        return None

    ordered = sort_thread(posts)
    root = ordered[0]

    position = len(ordered)
    for index, post in enumerate(ordered, start=1):
        if post.id == mention.id:
            position = index
            break

    purpose = classifier.classify(root.text)
    label = PURPOSE_LABELS.get(purpose, purpose)
    core_message = f"{label}: {root.text[:CORE_MESSAGE_CHARS].strip()}"

    logger.debug("Thread root %s classified as %s (%d posts)", root.id, purpose, len(ordered))
    return ThreadOrigin(
        root=root,
        purpose=purpose,
        core_message=core_message,
        thread_length=len(ordered),
        position=position,
    )


def summarize_thread(posts: Sequence[ThreadPost], bot_handle: str, max_posts: int = 20) -> str:
    """Bullet list of the thread, skipping the bot's own posts."""
    handle = bot_handle.lstrip("@").lower()
    lines = [
        f"- @{post.author_handle}: {post.text}"
        for post in sort_thread(posts)
        if post.author_handle.lower() != handle
    ]
    return "\n".join(lines[-max_posts:])
