"""Stage 2: pull candidate topics out of a conversation."""

import re
from typing import Iterable

from .knowledge import Topic, TopicKind

HANDLE_RE = re.compile(r"(?<![\w@])@(\w{1,30})")
TICKER_RE = re.compile(r"(?<![\w$])\$([A-Za-z][A-Za-z0-9]{0,9})\b")
PHRASE_RE = re.compile(r"(?<![@$#\w])[A-Z][a-zA-Z0-9]+(?:[ \t]+[A-Z][a-zA-Z0-9]+){0,2}")

MIN_PHRASE_LENGTH = 4

STOPWORDS = {
    "The", "This", "That", "These", "Those", "What", "When", "Where", "Why", "How",
    "Just", "And", "But", "They", "There", "Here", "Thanks", "Thank", "Also", "Yes",
    "Not", "Our", "You", "Your", "With", "From", "Will", "Would", "Could", "Should",
    "Have", "Has", "Been", "Very", "Really", "Great", "Good", "Today", "Tomorrow",
    "Some", "Any", "Every", "Let", "Its", "Imagine", "Maybe", "Still", "Never", "Always",
}

COMPANY_SUFFIXES = {
    "Labs", "Inc", "Corp", "Capital", "Ventures", "Foundation", "Protocol", "Network",
    "Group", "Technologies", "Ltd", "Finance", "Exchange", "Bank", "Studios", "Systems",
}


def _strip_stopwords(phrase: str) -> str:
    words = phrase.split()
    while words and words[0] in STOPWORDS:
        words.pop(0)
    return " ".join(words)


def _phrase_kind(phrase: str) -> TopicKind:
    if phrase.split()[-1] in COMPANY_SUFFIXES:
        return TopicKind.COMPANY
    return TopicKind.CONCEPT


def extract_topics(
    texts: Iterable[str],
    exclude_handles: Iterable[str] = (),
    max_topics: int = 8,
) -> list[Topic]:
    """Find handles, $tickers and capitalized phrases, ranked by frequency.

    Args:
        texts: Post texts of the conversation.
        exclude_handles: Handles never treated as topics (the bot itself).
        max_topics: Cap on the number of topics returned.

    Returns:
        Deduplicated topics, most frequently mentioned first.
    """
    thread_text = "\n".join(texts)
    excluded = {h.lstrip("@").lower() for h in exclude_handles}
    excluded |= {h.split(".")[0] for h in excluded}

    counts: dict[str, int] = {}
    first_seen: dict[str, int] = {}
    kinds: dict[str, TopicKind] = {}
    names: dict[str, str] = {}

    def add(key: str, name: str, kind: TopicKind, position: int) -> None:
        if key not in counts:
            counts[key] = 0
            first_seen[key] = position
            kinds[key] = kind
            names[key] = name
        counts[key] += 1

    for match in HANDLE_RE.finditer(thread_text):
        handle = match.group(1)
        if handle.lower() in excluded:
            continue
        add(f"@{handle.lower()}", handle, TopicKind.PROJECT, match.start())

    for match in TICKER_RE.finditer(thread_text):
        symbol = "$" + match.group(1).upper()
        add(symbol, symbol, TopicKind.TICKER, match.start())

    for match in PHRASE_RE.finditer(thread_text):
        phrase = _strip_stopwords(match.group(0))
        if len(phrase) < MIN_PHRASE_LENGTH or phrase in STOPWORDS:
            continue
        key = phrase.lower()
        # A phrase that is also a handle is the same entity
        if f"@{key}" in counts or key in excluded:
            continue
        add(key, phrase, _phrase_kind(phrase), match.start())

    ranked = sorted(counts, key=lambda k: (-counts[k], first_seen[k]))
    return [
        Topic(name=names[key], kind=kinds[key], mentions=counts[key])
        for key in ranked[:max_topics]
    ]
