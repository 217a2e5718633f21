"""
BaitGuard — Rule Layer Tests
Pattern library, language detection and the additive rule scorer.
Run: pytest tests/test_rule_scorer.py -v
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

BAIT_POST = "🔥 COMMENT YES if you agree! This will change everything! Tag 3 friends! 🔥💪"
SAAS_POST = (
    "After analyzing 5 years of user engagement data across 50+ SaaS products, "
    "here is my detailed breakdown of the methodology."
)
FRENCH_POST = "Commentez OUI et taguez un ami pour la dernière chance"


# ── PatternLibrary ────────────────────────────────────────────────────────────

class TestPatternLibrary:
    def test_six_languages_have_bait_tables(self):
        from nlp.patterns import pattern_languages
        assert pattern_languages() == ("en", "fr", "es", "de", "it", "pt")

    def test_every_table_has_all_categories(self):
        from nlp.patterns import CATEGORIES, get_bait_patterns, pattern_languages
        for lang in pattern_languages():
            assert set(get_bait_patterns(lang)) == set(CATEGORIES)

    def test_unknown_language_falls_back_to_baseline(self):
        from nlp.patterns import get_bait_patterns, get_motivational_words
        assert get_bait_patterns("xx") is get_bait_patterns("en")
        assert get_motivational_words("xx") == get_motivational_words("en")

    def test_tables_are_read_only(self):
        from nlp.patterns import BAIT_PATTERNS
        with pytest.raises(TypeError):
            BAIT_PATTERNS["en"] = {}

    def test_language_names(self):
        from nlp.patterns import get_language_name, is_language_supported
        assert get_language_name("de") == "Deutsch"
        assert get_language_name("xx") == "Unknown"
        assert is_language_supported("ja")
        assert not is_language_supported("xx")

    def test_regional_patterns_default_to_us(self):
        from nlp.patterns import get_regional_patterns
        assert get_regional_patterns("MARS") is get_regional_patterns("US")
        assert get_regional_patterns("EU")["companies"].search("Working at Siemens")


# ── LanguageDetector ──────────────────────────────────────────────────────────

class TestLanguageDetector:
    def setup_method(self):
        from nlp.language_detector import LanguageDetector
        self.detector = LanguageDetector()

    def test_short_text_defaults_to_english(self):
        assert self.detector.detect("Commentez") == "en"
        assert self.detector.detect("   salut   ") == "en"

    def test_empty_and_none_default_to_english(self):
        assert self.detector.detect("") == "en"
        assert self.detector.detect(None) == "en"

    def test_detects_french(self):
        assert self.detector.detect(FRENCH_POST) == "fr"

    def test_detects_english(self):
        assert self.detector.detect(SAAS_POST) == "en"

    def test_low_scores_default_to_english(self):
        assert self.detector.detect("zzzz qqqq xxxx yyyy") == "en"

    def test_detection_is_deterministic(self):
        results = {self.detector.detect(FRENCH_POST) for _ in range(20)}
        assert results == {"fr"}

    def test_score_text_counts_emoji_categories(self):
        score = self.detector.score_text("Big news today 🔥👇🎉💰", language="en")
        assert set(score.emoji_categories) == {"high_engagement", "pointing", "celebration", "money"}
        assert score.score == pytest.approx(2.0)

    def test_score_text_motivational_bonus_needs_three_words(self):
        two = self.detector.score_text("My journey and mindset", language="en")
        three = self.detector.score_text("My journey, mindset and hustle", language="en")
        assert two.score == 0
        assert three.score == pytest.approx(1.5)

    def test_module_shortcut(self):
        from nlp.language_detector import detect_language
        assert detect_language(FRENCH_POST) == "fr"

    def test_unlisted_language_is_never_detected(self):
        from nlp.language_detector import LanguageDetector
        detector = LanguageDetector(languages=["de"])
        assert detector.detect(FRENCH_POST) == "en"
        assert detector.languages == ("en", "de")

    def test_allow_list_always_keeps_english(self):
        from nlp.language_detector import LanguageDetector
        detector = LanguageDetector(languages=["fr"])
        assert "en" in detector.languages
        assert detector.detect(FRENCH_POST) == "fr"
        detector.set_languages(["en"])
        assert detector.languages == ("en",)
        assert detector.detect(FRENCH_POST) == "en"


# ── RuleScorer ────────────────────────────────────────────────────────────────

class TestRuleScorer:
    def setup_method(self):
        from nlp.rule_scorer import RuleScorer
        self.scorer = RuleScorer()

    def test_obvious_bait_hidden_at_every_level(self):
        for level in ("low", "medium", "high"):
            decision = self.scorer.should_hide(BAIT_POST, level)
            assert decision.should_hide, level
            assert decision.score > 4.0

    def test_genuine_analysis_not_hidden_at_low(self):
        decision = self.scorer.should_hide(SAAS_POST, "low")
        assert decision.should_hide is False
        assert decision.score < 4.0

    def test_empty_text_scores_zero(self):
        assert self.scorer.score("") == 0.0
        assert self.scorer.score("   \n\t") == 0.0
        assert self.scorer.score(None) == 0.0

    def test_scores_never_negative(self):
        texts = [BAIT_POST, SAAS_POST, FRENCH_POST, "ok", "!!!", "#a " * 20, "🔥" * 50, "a. a. a. a. a."]
        for text in texts:
            assert self.scorer.score(text) >= 0.0

    def test_analyze_is_pure(self):
        first = self.scorer.analyze(BAIT_POST)
        second = self.scorer.analyze(BAIT_POST)
        assert first == second

    def test_signals_explain_the_score(self):
        scored = self.scorer.analyze(BAIT_POST)
        assert scored.rule_score == pytest.approx(sum(s.weight for s in scored.matched_signals))
        names = scored.signal_names()
        assert "cta:comment yes" in names
        assert "emotional_hook:this will (change|blow)" in names

    def test_universal_pattern_counts_once(self):
        once = self.scorer.analyze("tag a friend")
        twice = self.scorer.analyze("tag a friend, tag a friend")
        assert once.rule_score == twice.rule_score

    def test_all_caps_counts_every_occurrence(self):
        scored = self.scorer.analyze("LOOK HERE RIGHT NOW please read")
        caps = [s for s in scored.matched_signals if s.name == "low_value:all_caps"]
        assert caps and caps[0].weight == pytest.approx(3 * 1.5)

    def test_cta_phrase_signal(self):
        scored = self.scorer.analyze("New episode is out, link in bio for the full interview")
        assert "cta_phrase:link in bio" in scored.signal_names()

    def test_short_shouting(self):
        scored = self.scorer.analyze("Can you believe it?!")
        assert "short_shouting" in scored.signal_names()

    def test_hashtag_spam(self):
        scored = self.scorer.analyze("Launch day #a #b #c #d #e #f")
        spam = [s for s in scored.matched_signals if s.name == "hashtag_spam"]
        assert spam and spam[0].weight == pytest.approx(3.0)

    def test_repetition_is_capped(self):
        scored = self.scorer.analyze("buy " * 30)
        rep = [s for s in scored.matched_signals if s.name == "repetition"]
        assert rep and rep[0].weight == pytest.approx(5.0)

    def _signal(self, text, name):
        return [s for s in self.scorer.analyze(text).matched_signals if s.name == name]

    def test_emoji_density_bands(self):
        from nlp.rule_scorer import RuleScorer
        medium = RuleScorer()._emoji_density("Launch day for us 🚀")   # 1 of 15 visible
        high = RuleScorer()._emoji_density("Launch 🚀🎉")                # 2 of 8 visible
        assert [(s.name, s.weight) for s in medium] == [("emoji_density", 1.0)]
        assert [(s.name, s.weight) for s in high] == [("emoji_density_high", 2.0)]
        assert RuleScorer()._emoji_density("Great launch day for the whole team 🚀") == []

    def test_emoji_density_reaches_the_score(self):
        assert [s.weight for s in self._signal("Launch day for us 🚀", "emoji_density")] == [1.0]

    def test_duplicate_sentences_add_repetition(self):
        rep = self._signal("Start here. Keep going. Keep going. Keep going.", "repetition")
        assert rep and rep[0].weight == pytest.approx(2 * 1.5)

    def test_bare_quotation(self):
        quote = self._signal('"Discipline beats motivation every single day."', "bare_quotation")
        assert [s.weight for s in quote] == [1.5]
        assert self._signal("Discipline beats motivation every single day.", "bare_quotation") == []

    def test_day_reference_with_happened_opener(self):
        story = self._signal("Yesterday something incredible happened at the office", "fake_story_opening")
        assert [s.weight for s in story] == [1.0]
        assert self._signal("The launch happened yesterday", "fake_story_opening") == []

    def test_motivational_rambling_needs_long_text(self):
        opener = "My journey taught me that success, mindset and growth matter. "
        filler = "We shipped the quarterly report on schedule. " * 25
        long_text = opener + filler
        assert len(long_text) > 1000
        assert [s.weight for s in self._signal(long_text, "motivational_rambling")] == [2.0]
        assert self._signal(opener, "motivational_rambling") == []

    def test_thresholds_are_monotone(self):
        from nlp.rule_scorer import get_threshold
        assert get_threshold("low") > get_threshold("medium") > get_threshold("high")
        assert get_threshold("unknown") == 2.5
        assert get_threshold(None) == 2.5

    def test_french_post_uses_french_patterns(self):
        scored = self.scorer.analyze(FRENCH_POST)
        assert scored.detected_language == "fr"
        assert scored.language_score >= 3

    def test_reasoning_lists_top_signals(self):
        from nlp.rule_scorer import build_rule_reasoning
        assert build_rule_reasoning(self.scorer.analyze(SAAS_POST)).startswith(("No bait", "Rule score"))
        reasoning = build_rule_reasoning(self.scorer.analyze(BAIT_POST))
        assert reasoning.startswith("Rule score")
        assert reasoning.count(" • ") <= 4
