"""Tests for the keyword classifiers."""

from replybot.context.classifiers import KeywordClassifier, PurposeClassifier, SentimentClassifier


class TestKeywordClassifier:
    def test_default_when_nothing_matches(self):
        classifier = KeywordClassifier({"a": ["apple"]}, default="none")

        assert classifier.classify("bananas only") == "none"

    def test_matches_word_prefix_only(self):
        classifier = KeywordClassifier({"red": ["red"]}, default="none")

        assert classifier.classify("we shared it") == "none"
        assert classifier.classify("Redder than ever") == "red"

    def test_tie_goes_to_first_label(self):
        classifier = KeywordClassifier({"a": ["x"], "b": ["y"]}, default="none")

        assert classifier.classify("x y") == "a"

    def test_counts_occurrences(self):
        classifier = KeywordClassifier({"a": ["x"], "b": ["y"]}, default="none")

        assert classifier.classify("x y y") == "b"


class TestPurposeClassifier:
    def setup_method(self):
        self.classifier = PurposeClassifier()

    def test_product_launch(self):
        assert self.classifier.classify("We just launched v2, it is now live") == "product_launch"

    def test_hiring(self):
        assert self.classifier.classify("We're hiring! Join our team as a backend engineer") == "hiring"

    def test_gratitude(self):
        assert self.classifier.classify("Thank you all, so grateful for this community") == "gratitude"

    def test_other(self):
        assert self.classifier.classify("") == "other"


class TestSentimentClassifier:
    def setup_method(self):
        self.classifier = SentimentClassifier()

    def test_bullish(self):
        assert self.classifier.classify("Time to buy and hold, this goes to the moon") == "bullish"

    def test_bearish(self):
        assert self.classifier.classify("Looks like a rug. Total scam, sell now") == "bearish"

    def test_neutral_on_tie(self):
        assert self.classifier.classify("buy or sell") == "neutral"
        assert self.classifier.classify("nothing to see") == "neutral"
