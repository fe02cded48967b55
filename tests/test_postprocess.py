"""Tests for reply post-processing."""

from replybot.context.knowledge import ContextKnowledge, Topic, TopicKind
from replybot.postprocess import (
    GENERIC_FALLBACK,
    apply_question_policy,
    contains_question,
    fallback_reply,
    postprocess_reply,
    rewrite_questions,
    truncate_reply,
)


class TestTruncateReply:
    """Length ceiling keeps whole words or marks the cut."""

    def test_short_text_unchanged(self):
        assert truncate_reply("Short and sharp.", 240) == "Short and sharp."

    def test_exact_limit_unchanged(self):
        text = "x" * 240

        assert truncate_reply(text, 240) == text

    def test_cuts_at_last_word_boundary(self):
        text = "word " * 60

        result = truncate_reply(text, 240)

        assert len(result) <= 240
        assert result == text[:239]
        assert result.endswith("word")

    def test_whitespace_right_after_limit_keeps_full_prefix(self):
        text = "x" * 240 + " more words"

        assert truncate_reply(text, 240) == "x" * 240

    def test_strips_trailing_punctuation(self):
        text = "x" * 200 + " done, " + "z" * 100

        assert truncate_reply(text, 240) == "x" * 200 + " done"

    def test_hard_cut_without_whitespace(self):
        result = truncate_reply("x" * 300, 240)

        assert len(result) == 240
        assert result.endswith("...")

    def test_hard_cut_when_boundary_too_far(self):
        text = "short " + "y" * 294

        result = truncate_reply(text, 240, slack=40)

        assert len(result) <= 240
        assert result.endswith("...")

    def test_slack_controls_word_boundary_cut(self):
        text = "x" * 190 + " " + "y" * 100

        assert truncate_reply(text, 240, slack=40).endswith("...")
        assert truncate_reply(text, 240, slack=60) == "x" * 190


class TestQuestionPolicy:
    """Statements only."""

    def test_detects_question_mark(self):
        assert contains_question("Is this real?")

    def test_detects_clarification_phrases(self):
        assert contains_question("Could you share the source")
        assert contains_question("Just to clarify, the token is new")
        assert contains_question("I'd need more data to say")

    def test_statement_passes(self):
        assert not contains_question("This protocol ships faster than its rivals.")

    def test_reject_policy_returns_none(self):
        assert apply_question_policy("What do you mean?", "reject") is None

    def test_reject_policy_keeps_statement(self):
        assert apply_question_policy("Bold move.", "reject") == "Bold move."

    def test_rewrite_policy_replaces_question_marks(self):
        assert apply_question_policy("Really?? Yes?", "rewrite") == "Really. Yes."

    def test_rewrite_keeps_ellipsis(self):
        assert rewrite_questions("Wait... what?") == "Wait... what."

    def test_rewrite_keeps_trailing_ellipsis(self):
        assert rewrite_questions("Is this the top?...") == "Is this the top..."

    def test_rewrite_after_hard_cut_keeps_cut_marker(self):
        reply = postprocess_reply("a" * 236 + "?" + "b" * 100, None, question_policy="rewrite")

        assert reply == "a" * 236 + "..."
        assert len(reply) <= 240


class TestFallback:
    """Empty generations never leave a mention unanswered."""

    def test_generic_fallback_without_topics(self):
        assert fallback_reply(ContextKnowledge.from_mention("hi")) == GENERIC_FALLBACK
        assert fallback_reply(None) == GENERIC_FALLBACK

    def test_topic_fallback(self):
        context = ContextKnowledge(
            mention_text="hi", topics=[Topic(name="$ETH", kind=TopicKind.TICKER)]
        )

        assert "$ETH" in fallback_reply(context)

    def test_fallbacks_are_statements(self):
        context = ContextKnowledge(mention_text="hi", topics=[Topic(name="Acme", kind=TopicKind.CONCEPT)])

        assert not contains_question(fallback_reply(context))
        assert not contains_question(GENERIC_FALLBACK)


class TestPostprocessReply:
    """Full pipeline: trim, fallback, truncate, question policy."""

    def test_trims_whitespace(self):
        assert postprocess_reply("  Clean take.  ", None) == "Clean take."

    def test_empty_uses_fallback(self):
        assert postprocess_reply("   ", None) == GENERIC_FALLBACK
        assert postprocess_reply(None, None) == GENERIC_FALLBACK

    def test_long_reply_is_capped(self):
        result = postprocess_reply("word " * 100, None, max_length=240)

        assert len(result) <= 240

    def test_question_rejected(self):
        assert postprocess_reply("Why though?", None, question_policy="reject") is None

    def test_question_rewritten(self):
        assert postprocess_reply("Why though?", None, question_policy="rewrite") == "Why though."
