"""Post-processing of generated replies: fallback, length ceiling, question policy."""

import logging
import re
from typing import Optional

from .context.knowledge import ContextKnowledge

logger = logging.getLogger(__name__)

ELLIPSIS = "..."
TRAILING_PUNCTUATION = ".,;:"

# Any of these means the reply asks instead of answers
BANNED_PATTERNS = (
    "?",
    "i'd need",
    "need more",
    "what do",
    "could you",
    "can you share",
    "to be clear",
    "just to clarify",
)

GENERIC_FALLBACK = "Solid thread. The signal here outweighs the noise, and it is worth tracking closely."
TOPIC_FALLBACK = "{topic} is the real story in this thread. The fundamentals will decide where it goes next."

QUESTION_RUN_RE = re.compile(r"[?.]*\?[?.]*")


def fallback_reply(context: Optional[ContextKnowledge]) -> str:
    """Deterministic reply used when generation produced nothing."""
    if context and context.topics:
        return TOPIC_FALLBACK.format(topic=context.topics[0].name)
    return GENERIC_FALLBACK


def truncate_reply(text: str, limit: int = 240, slack: int = 40) -> str:
    """Cap ``text`` at ``limit`` characters without cutting mid-word silently.

    The result is either a prefix ending at a word boundary (minus trailing
    ``.,;:``) or a hard cut that ends with an ellipsis.
    """
    if len(text) <= limit:
        return text

    if text[limit].isspace():
        boundary = limit
    else:
        window = text[:limit]
        boundary = max((i for i, ch in enumerate(window) if ch.isspace()), default=-1)
        if boundary < 0 or limit - boundary > slack:
            boundary = -1

    if boundary > 0:
        clean = text[:boundary].rstrip().rstrip(TRAILING_PUNCTUATION).rstrip()
        if clean:
            return clean

    return text[: limit - len(ELLIPSIS)].rstrip() + ELLIPSIS


def contains_question(text: str) -> bool:
    lowered = text.lower()
    return any(pattern in lowered for pattern in BANNED_PATTERNS)


def rewrite_questions(text: str) -> str:
    """Turn question marks into full stops, collapsing ``?!?``-style runs.

    A trailing ellipsis (the mark of a hard cut) is kept as is.
    """
    if text.endswith(ELLIPSIS) and "?" in text:
        body = QUESTION_RUN_RE.sub(".", text[: -len(ELLIPSIS)]).rstrip(".")
        return body + ELLIPSIS
    return QUESTION_RUN_RE.sub(".", text)


def apply_question_policy(text: str, policy: str) -> Optional[str]:
    """Enforce statements-only replies.

    Returns None when ``policy`` is ``reject`` and the text asks a question.
    """
    if policy == "rewrite":
        return rewrite_questions(text)
    if contains_question(text):
        return None
    return text


def postprocess_reply(
    raw: Optional[str],
    context: Optional[ContextKnowledge],
    max_length: int = 240,
    slack: int = 40,
    question_policy: str = "reject",
) -> Optional[str]:
    """Trim, fall back, cap length and apply the question policy, in that order."""
    text = (raw or "").strip()
    if not text:
        text = fallback_reply(context)
        logger.info("Empty generation, using fallback reply")

    text = truncate_reply(text, max_length, slack)

    result = apply_question_policy(text, question_policy)
    if result is None:
        logger.info("Rejected reply containing a question: %s", text[:70])
    return result
