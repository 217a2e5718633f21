"""
BaitGuard — Score Blending
Combines the rule score (0–10+ scale) with an ML confidence (0–1, scaled ×10)
into one bait score, and renders the combined reasoning trace.

  base weights          rule 0.4 / ml 0.6  (tunable)
  non-English text      rule 0.3 / ml 0.7
  ML confidence > 0.8   rule 0.2 / ml 0.8
  rule score > 6        rule 0.6 / ml 0.4  (checked last, wins)

When either signal is extreme (rule > 5 or ML > 0.8) the blend is pulled up to
at least 0.9 × the stronger signal. When both are weak (rule < 2 and ML < 0.3)
it is capped at 0.8 × the stronger signal.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from nlp.patterns import BASELINE_LANGUAGE, get_language_name
from nlp.rule_scorer import ScoredText

ML_THRESHOLD_FACTOR = 0.8
REASONING_MAX_CHARS = 100

_REASONING_PREFIX = re.compile(r"^(Contains?|Appears?|Seems?)\s*", re.IGNORECASE)
_TRAILING_PERIOD = re.compile(r"\s*\.$")


@dataclass(frozen=True)
class BlendResult:
    combined_score: float
    rule_score: float
    ml_score: float
    rule_weight: float
    ml_weight: float

    @property
    def confidence(self) -> float:
        return max(0.0, min(1.0, self.combined_score / 10))


def blend_weights(
    rule_score: float,
    ml_confidence: float,
    language: str = BASELINE_LANGUAGE,
    rule_weight: float = 0.4,
    ml_weight: float = 0.6,
) -> tuple[float, float]:
    if language != BASELINE_LANGUAGE:
        rule_weight, ml_weight = 0.3, 0.7
    if ml_confidence > 0.8:
        rule_weight, ml_weight = 0.2, 0.8
    if rule_score > 6:
        rule_weight, ml_weight = 0.6, 0.4
    return rule_weight, ml_weight


def blend_scores(
    rule_score: float,
    ml_confidence: float,
    language: str = BASELINE_LANGUAGE,
    rule_weight: float = 0.4,
    ml_weight: float = 0.6,
) -> BlendResult:
    ml_score = ml_confidence * 10
    rw, mw = blend_weights(rule_score, ml_confidence, language, rule_weight, ml_weight)
    combined = rule_score * rw + ml_score * mw
    stronger = max(rule_score, ml_score)

    if rule_score > 5 or ml_confidence > 0.8:
        combined = max(combined, stronger * 0.9)
    elif rule_score < 2 and ml_confidence < 0.3:
        combined = min(combined, stronger * 0.8)

    return BlendResult(
        combined_score=combined,
        rule_score=rule_score,
        ml_score=ml_score,
        rule_weight=rw,
        ml_weight=mw,
    )


def adjusted_threshold(threshold: float, has_ml_result: bool) -> float:
    return threshold * ML_THRESHOLD_FACTOR if has_ml_result else threshold


def clean_ml_reasoning(reasoning: str) -> str:
    cleaned = _REASONING_PREFIX.sub("", reasoning.strip())
    return _TRAILING_PERIOD.sub("", cleaned)[:REASONING_MAX_CHARS]


def combined_reasoning(
    scored: ScoredText,
    blend: BlendResult | None,
    ml_confidence: float | None,
    ml_reasoning: str | None,
    ml_method: str | None,
    should_hide: bool,
) -> str:
    reasons: list[str] = []

    if scored.detected_language != BASELINE_LANGUAGE:
        reasons.append(f"{get_language_name(scored.detected_language)} content analyzed")

    if scored.rule_score > 2:
        patterns = []
        if scored.language_score > 1:
            patterns.append("language-specific bait patterns")
        if scored.rule_score - scored.language_score > 2:
            patterns.append("universal bait patterns")
        detail = f" ({', '.join(patterns)})" if patterns else ""
        reasons.append(f"Rule-based detection{detail}: {scored.rule_score:.1f}/10")

    if ml_confidence is not None:
        pct = f"{ml_confidence * 100:.0f}%"
        if ml_confidence > 0.7:
            reasons.append(f"High AI confidence: {pct}")
        elif ml_confidence > 0.4:
            reasons.append(f"Moderate AI confidence: {pct}")
        if ml_reasoning:
            reasons.append(clean_ml_reasoning(ml_reasoning))
        if ml_method:
            reasons.append(f"Method: {ml_method}")

    if should_hide and blend is not None and blend.combined_score < 3:
        reasons.append("borderline case - review recommended")

    if not reasons:
        return "Low-quality indicators detected" if should_hide else "Appears to be genuine content"
    return " • ".join(reasons)
