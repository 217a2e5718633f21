"""
BaitGuard — Feature Extractor
Text → fixed 100-slot float vector for the neural backend.

  slots  0–49  bag-of-words presence bits (vocabulary indices < 50)
  slots 50–79  pattern densities / phrase flags
  slots 80–94  statistical measures
  slots 95–99  structural flags

The layout is a contract with every trained snapshot: the vocabulary is built
once, frozen, and stored alongside the weights.
"""
from __future__ import annotations

import logging
import re
from collections import Counter

logger = logging.getLogger(__name__)

BOW_SLOTS = 50
PATTERN_SLOTS = 30
STAT_SLOTS = 15
STRUCT_SLOTS = 5
FEATURE_SIZE = BOW_SLOTS + PATTERN_SLOTS + STAT_SLOTS + STRUCT_SLOTS
VOCABULARY_SIZE = 1000

# ── Word lists ────────────────────────────────────────────────────────────────
PATTERN_WORDS: dict[str, tuple[str, ...]] = {
    "cta_words": ("comment", "share", "like", "follow", "tag", "dm", "message", "yes", "no", "agree"),
    "urgency_words": ("now", "today", "hurry", "limited", "exclusive", "secret", "urgent"),
    "emotional_words": ("amazing", "incredible", "shocking", "unbelievable", "must", "need"),
    "question_words": ("what", "how", "why", "when", "where", "do", "does", "will", "would"),
    "professional_words": ("experience", "learning", "insights", "analysis", "strategy", "industry"),
    "educational_words": ("tips", "guide", "tutorial", "lesson", "knowledge", "skills"),
    "humble_brag": ("honored", "blessed", "grateful", "privilege", "humbled"),
    "story_markers": ("yesterday", "today", "last week", "happened", "experience", "story"),
}

COMMON_WORDS = (
    "career", "job", "work", "team", "company", "business", "professional",
    "networking", "opportunity", "growth", "success", "leadership", "innovation",
    "technology", "digital", "data", "marketing", "sales", "management",
    "startup", "entrepreneur", "investment", "finance", "consulting",
    "project", "client", "customer", "product", "service", "solution",
)

_TRANSITION_WORDS = ("however", "therefore", "meanwhile", "furthermore", "moreover", "additionally")
_MOTIVATIONAL_WORDS = ("inspire", "motivate", "dream", "goal", "success", "achieve", "hustle")
_PERSONAL_PRONOUNS = ("i", "me", "my", "myself")

_NON_WORD = re.compile(r"[^\w\s]")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_CAPS_WORD = re.compile(r"\b[A-Z]{2,}\b")
_HASHTAG = re.compile(r"#\w+")
_MENTION = re.compile(r"@\w+")
_EMOJI = re.compile("[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF\U0001F1E0-\U0001F1FF]")
_REPEATED_CHAR = re.compile(r"(.)\1{2,}")
_LIST_START = re.compile(r"^(\d+\.|[-*•])")
_NUMBERED_START = re.compile(r"^\d+\.")
_BULLET_START = re.compile(r"^[-*•]")
_BELOW = re.compile(r"\bbelow\b", re.IGNORECASE)
_POSTSCRIPT = re.compile(r"\bps[:.]?\s|\bp\.s\.?\s", re.IGNORECASE)
_PERCENT_HOOK = re.compile(r"\b\d{1,3}\s*%|top\s+\d+\s*%", re.IGNORECASE)
_NUMBER_LIST_BAIT = re.compile(r"\b\d+\s+(things|ways|secrets|tips|rules|lessons|reasons)\b", re.IGNORECASE)


def tokenize(text: str) -> list[str]:
    """Lowercase, punctuation to spaces, keep tokens longer than two characters."""
    return [w for w in _NON_WORD.sub(" ", text.lower()).split() if len(w) > 2]


def _sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def _count(words: list[str], vocab: tuple[str, ...]) -> int:
    return sum(1 for w in words if w in vocab)


def _per_100_chars(text: str, char: str) -> float:
    return text.count(char) / max(1.0, len(text) / 100)


class FeatureExtractor:
    """
    Builds and freezes a vocabulary, then maps text to a FEATURE_SIZE vector.
    An extractor that was never initialised still answers, with a 5-feature
    basic vector padded with zeros.
    """

    def __init__(self, vocabulary_size: int = VOCABULARY_SIZE):
        self.vocabulary: dict[str, int] = {}
        self.vocabulary_size = vocabulary_size
        self.initialized = False
        self._vectorizer = None

    # ── Vocabulary ────────────────────────────────────────────────────────────

    def init(self, training_texts: list[str] | None = None) -> "FeatureExtractor":
        if self.initialized:
            logger.debug("FeatureExtractor already initialised; vocabulary is frozen")
            return self
        if training_texts:
            self._build_vocabulary(training_texts)
        else:
            self._build_default_vocabulary()
        self.initialized = True
        logger.info("FeatureExtractor initialised with vocabulary size %d", len(self.vocabulary))
        return self

    @classmethod
    def from_vocabulary(cls, vocabulary: dict[str, int]) -> "FeatureExtractor":
        extractor = cls()
        extractor.vocabulary = {word: int(index) for word, index in vocabulary.items()}
        extractor.initialized = True
        return extractor

    def _build_vocabulary(self, texts: list[str]) -> None:
        """Keep the most frequent tokens; index = frequency rank, so slots 0–49 hold the top 50."""
        from sklearn.feature_extraction.text import CountVectorizer

        counter = CountVectorizer(
            tokenizer=tokenize,
            token_pattern=None,
            lowercase=False,
            max_features=self.vocabulary_size,
        )
        try:
            X = counter.fit_transform(texts)
        except ValueError:
            logger.warning("Training texts produced no tokens; vocabulary left empty")
            self.vocabulary = {}
            return
        terms = counter.get_feature_names_out()
        totals = X.toarray().sum(axis=0).tolist()
        # stable sort: equal counts stay alphabetical
        ranked = sorted(range(len(terms)), key=lambda i: -totals[i])
        self.vocabulary = {str(terms[i]): rank for rank, i in enumerate(ranked)}
        self._vectorizer = None

    def _build_default_vocabulary(self) -> None:
        self.vocabulary = {}
        for words in PATTERN_WORDS.values():
            for word in words:
                self.vocabulary.setdefault(word, len(self.vocabulary))
        for word in COMMON_WORDS:
            self.vocabulary.setdefault(word, len(self.vocabulary))

    def vocabulary_info(self) -> dict:
        return {
            "size": len(self.vocabulary),
            "initialized": self.initialized,
            "feature_size": FEATURE_SIZE,
        }

    # ── Extraction ────────────────────────────────────────────────────────────

    def extract_features(self, text: str | None) -> list[float]:
        text = text or ""
        if not self.initialized:
            return self.extract_basic_features(text)

        words = tokenize(text)
        return (
            self._bag_of_words(text)
            + self._pattern_features(text, words)
            + self._statistical_features(text, words)
            + self._structural_features(text)
        )

    def extract_basic_features(self, text: str) -> list[float]:
        words = tokenize(text)
        features = [0.0] * FEATURE_SIZE
        features[0] = min(1.0, len(text) / 1000)
        features[1] = min(1.0, len(words) / 100)
        features[2] = 1.0 if _EMOJI.search(text) else 0.0
        features[3] = _per_100_chars(text, "?")
        features[4] = _per_100_chars(text, "!")
        return features

    def _presence_vectorizer(self):
        if self._vectorizer is None:
            from sklearn.feature_extraction.text import CountVectorizer

            self._vectorizer = CountVectorizer(
                vocabulary=self.vocabulary,
                binary=True,
                tokenizer=tokenize,
                token_pattern=None,
                lowercase=False,
            )
        return self._vectorizer

    def _bag_of_words(self, text: str) -> list[float]:
        features = [0.0] * BOW_SLOTS
        if not self.vocabulary:
            return features
        row = self._presence_vectorizer().transform([text]).toarray()[0]
        for index, present in enumerate(row[:BOW_SLOTS].tolist()):
            features[index] = float(present)
        return features

    def _pattern_features(self, text: str, words: list[str]) -> list[float]:
        lower = text.lower()
        n = max(1, len(words))
        pw = PATTERN_WORDS
        emoji_count = len(_EMOJI.findall(text))

        features = [
            # CTA (5)
            _count(words, pw["cta_words"]) / n,
            float("comment yes" in lower or "comment no" in lower),
            float("dm me" in lower or "message me" in lower),
            float("tag a friend" in lower or "tag someone" in lower),
            _per_100_chars(text, "?"),
            # Urgency (3)
            _count(words, pw["urgency_words"]) / n,
            float("limited time" in lower or "act now" in lower),
            float("exclusive" in lower or "secret" in lower),
            # Emotional manipulation (4)
            _count(words, pw["emotional_words"]) / n,
            _per_100_chars(text, "!"),
            len(_CAPS_WORD.findall(text)) / n,
            _count(words, pw["humble_brag"]) / n,
            # Questions (3)
            _count(words, pw["question_words"]) / n,
            float("what do you think" in lower or "thoughts" in lower),
            float("agree" in lower or "disagree" in lower),
            # Professional content (5)
            _count(words, pw["professional_words"]) / n,
            _count(words, pw["educational_words"]) / n,
            _count(words, pw["story_markers"]) / n,
            float(bool(_HASHTAG.search(text))),
            float(bool(_MENTION.search(text))),
            # Engagement manipulation (5)
            float("ps:" in lower or "p.s." in lower),
            float("bonus" in lower or "btw" in lower),
            float(self._has_list_structure(text)),
            emoji_count / n,
            float(bool(_REPEATED_CHAR.search(text))),
            # Phrase hooks (5)
            float("link in bio" in lower or "follow me" in lower),
            float("don't miss" in lower or "last chance" in lower or "expires" in lower),
            float("viral" in lower or "save this" in lower or "repost" in lower),
            float(bool(_PERCENT_HOOK.search(text))),
            float(bool(_NUMBER_LIST_BAIT.search(text))),
        ]
        return features

    def _statistical_features(self, text: str, words: list[str]) -> list[float]:
        sentences = _sentences(text)
        return [
            len(text) / 1000,
            len(words) / 100,
            len(sentences) / 10,
            len(text) / len(words) if words else 0.0,
            len(words) / len(sentences) if sentences else 0.0,
            self._readability(text, words, sentences),
            self._repetition(words),
            self._coherence(words),
            self._professionalism(words),
            self._engagement(text),
            self._emotional(text, words),
            self._urgency(words),
            self._question(text, sentences),
            self._personal_story(words),
            self._motivational(words),
        ]

    def _structural_features(self, text: str) -> list[float]:
        return [
            float(bool(_NUMBERED_START.match(text)) or "\n1." in text or "\n2." in text),
            float(bool(_BULLET_START.match(text)) or "\n-" in text or "\n•" in text),
            float("👇" in text or "⬇️" in text or bool(_BELOW.search(text))),
            float(bool(_POSTSCRIPT.search(text))),
            (text.count("\n") + 1) / 10 if "\n" in text else 0.0,
        ]

    # ── Sub-scores ────────────────────────────────────────────────────────────

    @staticmethod
    def _has_list_structure(text: str) -> bool:
        return bool(_LIST_START.match(text)) or "\n-" in text or "\n•" in text

    @staticmethod
    def _readability(text: str, words: list[str], sentences: list[str]) -> float:
        if not sentences or not words:
            return 0.5
        words_per_sentence = len(words) / len(sentences)
        chars_per_word = len(text) / len(words)
        return max(0.0, min(1.0, 1 - (words_per_sentence - 15) / 30 - (chars_per_word - 5) / 10))

    @staticmethod
    def _repetition(words: list[str]) -> float:
        if not words:
            return 0.0
        repeated = sum(1 for c in Counter(words).values() if c > 1)
        return repeated / len(words)

    @staticmethod
    def _coherence(words: list[str]) -> float:
        return min(1.0, _count(words, _TRANSITION_WORDS) / max(1.0, len(words) / 50))

    @staticmethod
    def _professionalism(words: list[str]) -> float:
        hits = _count(words, PATTERN_WORDS["professional_words"]) + _count(words, PATTERN_WORDS["educational_words"])
        return min(1.0, hits / max(1.0, len(words) / 20))

    @staticmethod
    def _engagement(text: str) -> float:
        lower = text.lower()
        score = 0.0
        if "comment" in lower or "share" in lower:
            score += 0.3
        if "tag" in lower or "dm" in lower:
            score += 0.3
        if "?" in text:
            score += 0.2
        if "thoughts" in lower or "agree" in lower:
            score += 0.2
        return min(1.0, score)

    @staticmethod
    def _emotional(text: str, words: list[str]) -> float:
        hits = _count(words, PATTERN_WORDS["emotional_words"]) + text.count("!") / 5
        return min(1.0, hits / max(1.0, len(words) / 20))

    @staticmethod
    def _urgency(words: list[str]) -> float:
        return min(1.0, _count(words, PATTERN_WORDS["urgency_words"]) / max(1.0, len(words) / 30))

    @staticmethod
    def _question(text: str, sentences: list[str]) -> float:
        if not sentences:
            return 0.0
        return min(1.0, text.count("?") / len(sentences))

    @staticmethod
    def _personal_story(words: list[str]) -> float:
        # tokens shorter than three characters are dropped, so only "myself" survives
        pronouns = _count(words, _PERSONAL_PRONOUNS)
        markers = _count(words, PATTERN_WORDS["story_markers"])
        return min(1.0, (markers + pronouns / 2) / max(1.0, len(words) / 25))

    @staticmethod
    def _motivational(words: list[str]) -> float:
        return min(1.0, _count(words, _MOTIVATIONAL_WORDS) / max(1.0, len(words) / 30))
