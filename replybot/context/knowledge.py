"""Data assembled by the context builder for one mention."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..mentions import ThreadPost


class TopicKind(str, Enum):
    TICKER = "ticker"
    PROJECT = "project"
    COMPANY = "company"
    CONCEPT = "concept"


# Research order: on-chain/brand entities before generic concepts
TOPIC_PRIORITY = {
    TopicKind.TICKER: 0,
    TopicKind.PROJECT: 0,
    TopicKind.COMPANY: 1,
    TopicKind.CONCEPT: 2,
}


@dataclass(frozen=True)
class Topic:
    name: str
    kind: TopicKind
    mentions: int = 1


@dataclass(frozen=True)
class SearchResult:
    """One ranked hit from a search provider."""

    title: str
    snippet: str
    url: str = ""


@dataclass
class TopicResearch:
    topic: Topic
    snippets: list[str]
    sentiment: str = "neutral"

    @property
    def sources(self) -> int:
        return len(self.snippets)


@dataclass
class ThreadOrigin:
    """Where the conversation started and where the mention sits in it."""

    root: ThreadPost
    purpose: str
    core_message: str
    thread_length: int
    position: int

    @property
    def evolution_summary(self) -> str:
        return f'Started: "{self.root.text[:80]}" -> now at post {self.position}/{self.thread_length}'


@dataclass
class FollowUp:
    """Previous exchange with the same author in the same conversation."""

    previous_reply: str
    previous_mention: str
    reply_count: int


@dataclass
class ContextKnowledge:
    """Everything the reply generator knows about a mention."""

    mention_text: str
    conversation_summary: str = ""
    origin: Optional[ThreadOrigin] = None
    topics: list[Topic] = field(default_factory=list)
    research: list[TopicResearch] = field(default_factory=list)
    follow_up: Optional[FollowUp] = None

    @classmethod
    def from_mention(cls, mention_text: str, follow_up: Optional[FollowUp] = None) -> "ContextKnowledge":
        """Fallback context: the raw mention alone."""
        return cls(mention_text=mention_text, conversation_summary=mention_text, follow_up=follow_up)

    @property
    def has_topics(self) -> bool:
        return bool(self.topics)

    @property
    def is_fallback(self) -> bool:
        return self.origin is None and not self.topics and not self.research

    def render(self) -> str:
        """Plain-text sections for the prompt."""
        sections = []

        if self.origin:
            sections.append(
                "Thread origin:\n"
                f"- core message: {self.origin.core_message}\n"
                f"- {self.origin.evolution_summary}"
            )

        if self.conversation_summary:
            sections.append(f"Conversation:\n{self.conversation_summary}")

        if self.topics:
            names = ", ".join(f"{t.name} ({t.kind.value})" for t in self.topics)
            sections.append(f"Topics: {names}")

        for item in self.research:
            lines = "\n".join(f"  - {s}" for s in item.snippets)
            sections.append(
                f"Research on {item.topic.name} ({item.sources} sources, {item.sentiment}):\n{lines}"
            )

        if self.follow_up:
            sections.append(
                "Follow-up: you already replied to this author here "
                f"({self.follow_up.reply_count} time(s)).\n"
                f"- they said: {self.follow_up.previous_mention}\n"
                f"- you said: {self.follow_up.previous_reply}\n"
                "Build on that point instead of repeating it."
            )

        return "\n\n".join(sections)
