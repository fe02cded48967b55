"""Keyword classifiers for thread purpose and research sentiment.

Both implement the ``TextClassifier`` protocol so a model-backed classifier
can be dropped in without touching the pipeline.
"""

import re
from typing import Protocol, Sequence


class TextClassifier(Protocol):
    """Anything that maps text to a label."""

    def classify(self, text: str) -> str: ...


class KeywordClassifier:
    """Count keyword occurrences per label.

    Keywords match at the start of a word, so ``launch`` also matches
    ``launched`` and ``launching`` but ``red`` does not match ``shared``.
    """

    def __init__(self, categories: dict[str, Sequence[str]], default: str) -> None:
        self.default = default
        self.categories = {
            label: [re.compile(rf"\b{re.escape(word)}", re.IGNORECASE) for word in words]
            for label, words in categories.items()
        }

    def scores(self, text: str) -> dict[str, int]:
        return {
            label: sum(len(pattern.findall(text)) for pattern in patterns)
            for label, patterns in self.categories.items()
        }

    def classify(self, text: str) -> str:
        """Best-scoring label; ties go to the first declared label."""
        scores = self.scores(text)
        best = max(scores.values(), default=0)
        if best == 0:
            return self.default
        for label, score in scores.items():
            if score == best:
                return label
        return self.default


PURPOSE_KEYWORDS: dict[str, Sequence[str]] = {
    "price_action": ["price", "pump", "dump", "ath", "chart", "breakout", "rally", "dip", "volume", "market cap"],
    "product_launch": ["launch", "shipped", "shipping", "release", "live now", "now live", "beta", "v2", "introducing"],
    "hiring": ["hiring", "job", "role", "join our team", "recruit", "apply"],
    "fundraising": ["raise", "raised", "funding", "seed", "series a", "investors", "backed by"],
    "partnership": ["partner", "partnership", "collab", "integration", "teaming up"],
    "gratitude": ["thank", "grateful", "appreciate", "shoutout", "gm"],
    "announcement": ["announce", "update", "news", "today we", "excited to", "proud to"],
}

PURPOSE_LABELS: dict[str, str] = {
    "price_action": "price action",
    "product_launch": "product launch",
    "hiring": "hiring",
    "fundraising": "fundraising",
    "partnership": "partnership",
    "gratitude": "gratitude",
    "announcement": "announcement",
    "other": "general discussion",
}


class PurposeClassifier(KeywordClassifier):
    """Guess what a thread's root post is for."""

    def __init__(self) -> None:
        super().__init__(PURPOSE_KEYWORDS, default="other")


BULLISH_WORDS = ["buy", "accumulate", "diamond", "hold", "moon", "shipping", "launch", "bullish", "growth", "up only"]
BEARISH_WORDS = ["sell", "dump", "rug", "scam", "dying", "fail", "red", "bearish", "exploit", "hack"]


class SentimentClassifier:
    """Bullish vs bearish keyword counts over a body of text."""

    def __init__(self) -> None:
        self._keywords = KeywordClassifier(
            {"bullish": BULLISH_WORDS, "bearish": BEARISH_WORDS}, default="neutral"
        )

    def classify(self, text: str) -> str:
        scores = self._keywords.scores(text)
        if scores["bullish"] > scores["bearish"]:
            return "bullish"
        if scores["bearish"] > scores["bullish"]:
            return "bearish"
        return "neutral"

