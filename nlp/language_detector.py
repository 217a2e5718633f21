"""
BaitGuard — Language Detector
Scores text against every pattern-table language (bait phrasing, motivational
lexicon, stopword heuristic) and returns the best-guess language code.
Deterministic: no model, no randomness; the only state is the language allow-list.
"""
import logging
from dataclasses import dataclass, field

from nlp.patterns import (
    BASELINE_LANGUAGE,
    EMOJI_CATEGORIES,
    STOPWORD_PATTERNS,
    get_motivational_words,
    iter_bait_patterns,
    pattern_languages,
)

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 10      # shorter texts default to the baseline language
MIN_CONFIDENCE = 2        # winning score must exceed this
PATTERN_WEIGHT = 2
LEXICON_WEIGHT = 1
STOPWORD_WEIGHT = 3


@dataclass
class LanguageScore:
    language: str
    score: float
    pattern_hits: list[str] = field(default_factory=list)
    motivational_hits: list[str] = field(default_factory=list)
    emoji_categories: list[str] = field(default_factory=list)


class LanguageDetector:
    """
    Additive language scorer.

    Per language:
        +2 per category pattern matched
        +1 per motivational-lexicon word present (substring match)
        +3 when the stopword heuristic matches

    The top-scoring language wins only when its score exceeds MIN_CONFIDENCE;
    ties resolve to the earlier language in table order, so the baseline wins
    every tie it takes part in.

    `languages` restricts detection to an allow-list; the baseline is always
    allowed. None means every pattern-table language.
    """

    def __init__(self, languages: list[str] | None = None):
        self.languages: tuple[str, ...] = ()
        self.set_languages(languages)

    def set_languages(self, languages: list[str] | None) -> None:
        available = pattern_languages()
        if languages is None:
            self.languages = tuple(available)
            return
        allowed = {lang.strip().lower() for lang in languages} | {BASELINE_LANGUAGE}
        self.languages = tuple(lang for lang in available if lang in allowed)

    def language_scores(self, text: str) -> dict[str, int]:
        lower = text.lower()
        scores: dict[str, int] = {}
        for lang in self.languages:
            score = 0
            for _, pattern in iter_bait_patterns(lang):
                if pattern.search(text):
                    score += PATTERN_WEIGHT
            for word in get_motivational_words(lang):
                if word in lower:
                    score += LEXICON_WEIGHT
            stopwords = STOPWORD_PATTERNS.get(lang)
            if stopwords is not None and stopwords.search(lower):
                score += STOPWORD_WEIGHT
            scores[lang] = score
        return scores

    def detect(self, text: str | None) -> str:
        if not text or len(text.strip()) < MIN_TEXT_LENGTH:
            return BASELINE_LANGUAGE

        scores = self.language_scores(text)
        best_lang, best_score = BASELINE_LANGUAGE, scores.get(BASELINE_LANGUAGE, 0)
        for lang, score in scores.items():
            if score > best_score:
                best_lang, best_score = lang, score

        if best_score > MIN_CONFIDENCE:
            return best_lang
        return BASELINE_LANGUAGE

    def score_text(self, text: str, language: str | None = None) -> LanguageScore:
        """
        Language-specific bait score used as the second RuleScorer step:
        +1 per matching pattern, +0.5 × count when at least three motivational
        words appear, +0.5 per emoji category present.
        """
        lang = language or self.detect(text)
        lower = text.lower()
        result = LanguageScore(language=lang, score=0.0)

        for category, pattern in iter_bait_patterns(lang):
            if pattern.search(text):
                result.score += 1
                result.pattern_hits.append(f"{category}:{pattern.pattern}")

        result.motivational_hits = [w for w in get_motivational_words(lang) if w in lower]
        if len(result.motivational_hits) >= 3:
            result.score += len(result.motivational_hits) * 0.5

        for name, pattern in EMOJI_CATEGORIES.items():
            if pattern.search(text):
                result.score += 0.5
                result.emoji_categories.append(name)

        logger.debug("Language score %s=%.2f", lang, result.score)
        return result


def detect_language(text: str | None) -> str:
    """Module-level shortcut for callers that do not keep a detector."""
    return LanguageDetector().detect(text)
