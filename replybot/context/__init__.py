"""Context building: thread origin, topics, research and conversation memory."""

from .builder import ContextBuilder, detect_follow_up
from .classifiers import KeywordClassifier, PurposeClassifier, SentimentClassifier, TextClassifier
from .knowledge import (
    ContextKnowledge,
    FollowUp,
    SearchResult,
    ThreadOrigin,
    Topic,
    TopicKind,
    TopicResearch,
)
from .research import TopicResearcher
from .thread_origin import find_thread_origin, summarize_thread
from .topics import extract_topics

__all__ = [
    "ContextBuilder",
    "ContextKnowledge",
    "FollowUp",
    "KeywordClassifier",
    "PurposeClassifier",
    "SearchResult",
    "SentimentClassifier",
    "TextClassifier",
    "ThreadOrigin",
    "Topic",
    "TopicKind",
    "TopicResearch",
    "TopicResearcher",
    "detect_follow_up",
    "extract_topics",
    "find_thread_origin",
    "summarize_thread",
]
