"""
BaitGuard — Rule Scorer
Deterministic multi-signal bait scorer. Every step is additive and applied in a
fixed order so a score can be reproduced and explained signal by signal.

  1. empty text short-circuits to 0
  2. language-specific patterns / lexicon / emoji categories
  3. universal bait patterns        +3 each (once per pattern)
  4. low-value indicators           +1.5 per match
  5. heuristics                     short shouting, bare quotes, fake stories,
                                    hashtag spam, motivational rambling
  6. CTA phrases                    +1.5 each
  7. emoji density                  >10% → +2, >5% → +1
  8. repetition                     capped at 5
  9. floor at 0
"""
from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass

from nlp.language_detector import LanguageDetector
from nlp.patterns import (
    CTA_PHRASES,
    EMOJI_CHARS,
    LOW_VALUE_INDICATORS,
    UNIVERSAL_BAIT_PATTERNS,
    get_motivational_words,
    BASELINE_LANGUAGE,
)

logger = logging.getLogger(__name__)

UNIVERSAL_WEIGHT = 3.0
LOW_VALUE_WEIGHT = 1.5
CTA_WEIGHT = 1.5
REPETITION_CAP = 5.0

THRESHOLDS = {"low": 4.0, "medium": 2.5, "high": 1.5}
DEFAULT_THRESHOLD = 2.5

_SHOUTING = re.compile(r"[!?]{2,}")
_BARE_QUOTE = re.compile(r"^[\"'“”].+[\"'“”]$")
_FAKE_STORY = re.compile(r"^(so|yesterday|today|last week).*happened", re.IGNORECASE)
_HASHTAG = re.compile(r"#\w+")
_WORD = re.compile(r"\b\w+\b")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_WHITESPACE = re.compile(r"\s")


@dataclass(frozen=True)
class Signal:
    name: str
    weight: float


@dataclass(frozen=True)
class ScoredText:
    raw_text: str
    normalized_length: int
    detected_language: str
    rule_score: float
    matched_signals: tuple[Signal, ...] = ()
    language_score: float = 0.0

    def signal_names(self) -> list[str]:
        return [s.name for s in self.matched_signals]


@dataclass(frozen=True)
class HideDecision:
    should_hide: bool
    score: float
    threshold: float


def get_threshold(aggressiveness: str | None = "medium") -> float:
    return THRESHOLDS.get(aggressiveness or "medium", DEFAULT_THRESHOLD)


class RuleScorer:
    """
    Pure scorer: identical text always yields an identical ScoredText.
    Holds only a LanguageDetector, whose one piece of state is its language allow-list.
    """

    def __init__(self, detector: LanguageDetector | None = None):
        self.detector = detector or LanguageDetector()

    def score(self, text: str | None) -> float:
        return self.analyze(text).rule_score

    def analyze(self, text: str | None, language: str | None = None) -> ScoredText:
        if text is None or not text.strip():
            return ScoredText(
                raw_text=text or "",
                normalized_length=0,
                detected_language=BASELINE_LANGUAGE,
                rule_score=0.0,
            )

        signals: list[Signal] = []

        # ── Step 2: language-specific score ──────────────────────────────────
        lang_score = self.detector.score_text(text, language)
        if lang_score.score > 0:
            signals.append(Signal(f"language:{lang_score.language}", lang_score.score))

        # ── Steps 3–8 ────────────────────────────────────────────────────────
        signals.extend(self._universal_patterns(text))
        signals.extend(self._low_value_indicators(text))
        signals.extend(self._heuristics(text))
        signals.extend(self._cta_phrases(text))
        signals.extend(self._emoji_density(text))
        signals.extend(self._repetition(text))

        # ── Step 9: sum, floor at 0 ──────────────────────────────────────────
        total = max(0.0, sum(s.weight for s in signals))
        return ScoredText(
            raw_text=text,
            normalized_length=len(text.strip()),
            detected_language=lang_score.language,
            rule_score=total,
            matched_signals=tuple(signals),
            language_score=lang_score.score,
        )

    # ── Steps ─────────────────────────────────────────────────────────────────

    def _universal_patterns(self, text: str) -> list[Signal]:
        return [
            Signal(f"{category}:{pattern.pattern}", UNIVERSAL_WEIGHT)
            for category, patterns in UNIVERSAL_BAIT_PATTERNS.items()
            for pattern in patterns
            if pattern.search(text)
        ]

    def _low_value_indicators(self, text: str) -> list[Signal]:
        signals = []
        for name, pattern, count_all in LOW_VALUE_INDICATORS:
            if count_all:
                count = len(pattern.findall(text))
            else:
                count = 1 if pattern.search(text) else 0
            if count:
                signals.append(Signal(f"low_value:{name}", count * LOW_VALUE_WEIGHT))
        return signals

    def _heuristics(self, text: str) -> list[Signal]:
        signals = []
        length = len(text)
        if length < 50 and _SHOUTING.search(text):
            signals.append(Signal("short_shouting", 2.0))
        if length < 200 and _BARE_QUOTE.match(text.strip()):
            signals.append(Signal("bare_quotation", 1.5))
        if _FAKE_STORY.match(text):
            signals.append(Signal("fake_story_opening", 1.0))
        hashtags = len(_HASHTAG.findall(text))
        if hashtags > 5:
            signals.append(Signal("hashtag_spam", hashtags * 0.5))
        if length > 1000 and self._is_motivational_rambling(text):
            signals.append(Signal("motivational_rambling", 2.0))
        return signals

    @staticmethod
    def _is_motivational_rambling(text: str) -> bool:
        lower = text.lower()
        hits = [w for w in get_motivational_words(BASELINE_LANGUAGE) if w in lower]
        return len(hits) >= 4

    def _cta_phrases(self, text: str) -> list[Signal]:
        return [
            Signal(f"cta_phrase:{pattern.pattern}", CTA_WEIGHT)
            for pattern in CTA_PHRASES
            if pattern.search(text)
        ]

    def _emoji_density(self, text: str) -> list[Signal]:
        visible = len(_WHITESPACE.sub("", text))
        if visible == 0:
            return []
        density = len(EMOJI_CHARS.findall(text)) / visible
        if density > 0.1:
            return [Signal("emoji_density_high", 2.0)]
        if density > 0.05:
            return [Signal("emoji_density", 1.0)]
        return []

    def _repetition(self, text: str) -> list[Signal]:
        score = 0.0
        counts = Counter(_WORD.findall(text.lower()))
        for count in counts.values():
            if count > 5:
                score += count * 0.3

        fragments = _SENTENCE_SPLIT.split(text)
        if len(fragments) > 3:
            seen: set[str] = set()
            for fragment in fragments:
                if not fragment.strip():
                    continue
                if fragment in seen:
                    score += 1.5
                else:
                    seen.add(fragment)

        score = min(score, REPETITION_CAP)
        return [Signal("repetition", score)] if score > 0 else []

    # ── Threshold policy ──────────────────────────────────────────────────────

    def get_threshold(self, aggressiveness: str | None = "medium") -> float:
        return get_threshold(aggressiveness)

    def should_hide(self, text: str | None, aggressiveness: str | None = "medium") -> HideDecision:
        score = self.score(text)
        threshold = get_threshold(aggressiveness)
        return HideDecision(should_hide=score >= threshold, score=score, threshold=threshold)


def build_rule_reasoning(scored: ScoredText) -> str:
    """Human-readable trace of the strongest rule signals."""
    if not scored.matched_signals:
        return "No bait indicators found"
    top = sorted(scored.matched_signals, key=lambda s: s.weight, reverse=True)[:5]
    parts = [f"{s.name} (+{s.weight:.1f})" for s in top]
    return f"Rule score {scored.rule_score:.1f}: " + " • ".join(parts)
