"""
BaitGuard — Pattern Library
Per-language bait phrasing tables, motivational lexicons, stopword heuristics,
emoji categories and the universal (language-agnostic) rule tables.
Pure data: everything is compiled once at import time and exposed read-only.
"""
from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping, Pattern

BASELINE_LANGUAGE = "en"

SUPPORTED_LANGUAGES: Mapping[str, str] = MappingProxyType({
    "en": "English",
    "fr": "Français",
    "es": "Español",
    "de": "Deutsch",
    "it": "Italiano",
    "pt": "Português",
    "nl": "Nederlands",
    "pl": "Polski",
    "ru": "Русский",
    "ja": "日本語",
    "ko": "한국어",
    "zh": "中文",
    "ar": "العربية",
    "hi": "हिन्दी",
})

CATEGORIES = ("direct_engagement", "cta", "humble_bragging", "urgency")


def _compile(patterns: list[str], flags: int = re.IGNORECASE) -> tuple[Pattern, ...]:
    return tuple(re.compile(p, flags) for p in patterns)


def _freeze(table: dict) -> Mapping:
    return MappingProxyType({
        key: _freeze(value) if isinstance(value, dict) else value
        for key, value in table.items()
    })


# ── Language-specific bait phrasing ───────────────────────────────────────────
# Order of languages matters: detection ties resolve to the earlier entry.
# fmt: off
_RAW_BAIT_PATTERNS: dict[str, dict[str, list[str]]] = {
    "en": {
        "direct_engagement": [
            r"agree\s*\?", r"thoughts\s*\?", r"what do you think\?",
            r"am i (the only one|wrong|right)\?", r"unpopular opinion", r"hot take",
            r"controversial", r"change my mind", r"fight me",
        ],
        "cta": [
            r"comment yes", r"tag a friend", r"dm me for", r"send me a message",
            r"like if you agree", r"share if you", r"repost if", r"follow me for",
            r"subscribe to", r"check out my", r"visit my", r"link in bio",
            r"click the link", r"sign up for", r"register now",
        ],
        "humble_bragging": [
            r"blessed to announce", r"humbled to share", r"grateful to announce",
            r"excited to share", r"proud to announce",
        ],
        "urgency": [
            r"act now", r"limited time", r"don't miss", r"last chance", r"time sensitive",
            r"going viral", r"delete this post", r"save it now",
        ],
    },
    "fr": {
        "direct_engagement": [
            r"d'accord\s*\?", r"votre avis\s*\?", r"qu'en pensez-vous\s*\?",
            r"suis-je le seul", r"opinion impopulaire", r"controvers[ée]",
            r"changez mon avis", r"battez-vous",
        ],
        "cta": [
            r"commentez oui", r"taguez un ami", r"envoyez-moi un message", r"likez si vous",
            r"partagez si", r"repostez si", r"suivez-moi pour", r"abonnez-vous",
            r"visitez mon", r"lien en bio", r"cliquez sur le lien", r"inscrivez-vous",
        ],
        "humble_bragging": [
            r"béni d'annoncer", r"humble de partager", r"reconnaissant d'annoncer",
            r"ravi de partager", r"fier d'annoncer",
        ],
        "urgency": [
            r"agissez maintenant", r"temps limité", r"ne ratez pas", r"dernière chance",
            r"urgent", r"devient viral", r"supprimer ce post", r"sauvegardez maintenant",
        ],
    },
    "es": {
        "direct_engagement": [
            r"de acuerdo\s*\?", r"tu opinión\s*\?", r"qué piensas\s*\?", r"soy el único",
            r"opinión impopular", r"controversia", r"cambia mi opinión", r"pelea conmigo",
        ],
        "cta": [
            r"comenta sí", r"etiqueta a un amigo", r"envíame un mensaje", r"dale like si",
            r"comparte si", r"repostea si", r"sígueme para", r"suscríbete", r"visita mi",
            r"enlace en bio", r"haz clic en el enlace", r"regístrate",
        ],
        "humble_bragging": [
            r"bendecido de anunciar", r"humilde de compartir", r"agradecido de anunciar",
            r"emocionado de compartir", r"orgulloso de anunciar",
        ],
        "urgency": [
            r"actúa ahora", r"tiempo limitado", r"no te pierdas", r"última oportunidad",
            r"urgente", r"se vuelve viral", r"eliminar este post", r"guárdalo ahora",
        ],
    },
    "de": {
        "direct_engagement": [
            r"einverstanden\s*\?", r"eure meinung\s*\?", r"was denkt ihr\s*\?",
            r"bin ich der einzige", r"unpopuläre meinung", r"kontrovers",
            r"ändert meine meinung", r"kämpft mit mir",
        ],
        "cta": [
            r"kommentiert ja", r"markiert einen freund", r"schreibt mir", r"liked wenn ihr",
            r"teilt wenn", r"repostet wenn", r"folgt mir für", r"abonniert", r"besucht mein",
            r"link in bio", r"klickt auf den link", r"meldet euch an",
        ],
        "humble_bragging": [
            r"gesegnet zu verkünden", r"demütig zu teilen", r"dankbar zu verkünden",
            r"aufgeregt zu teilen", r"stolz zu verkünden",
        ],
        "urgency": [
            r"handelt jetzt", r"begrenzte zeit", r"verpasst nicht", r"letzte chance",
            r"dringend", r"wird viral", r"lösche diesen post", r"speichert es jetzt",
        ],
    },
    "it": {
        "direct_engagement": [
            r"d'accordo\s*\?", r"la vostra opinione\s*\?", r"cosa ne pensate\s*\?",
            r"sono l'unico", r"opinione impopolare", r"controverso",
            r"cambiate la mia opinione", r"combattete con me",
        ],
        "cta": [
            r"commentate sì", r"taggate un amico", r"mandatemi un messaggio",
            r"mettete like se", r"condividete se", r"ripostate se", r"seguitemi per",
            r"iscrivetevi", r"visitate il mio", r"link in bio", r"cliccate sul link",
            r"registratevi",
        ],
        "humble_bragging": [
            r"benedetto di annunciare", r"umile di condividere", r"grato di annunciare",
            r"emozionato di condividere", r"orgoglioso di annunciare",
        ],
        "urgency": [
            r"agite ora", r"tempo limitato", r"non perdete", r"ultima possibilità",
            r"urgente", r"diventa virale", r"cancello questo post", r"salvatelo ora",
        ],
    },
    "pt": {
        "direct_engagement": [
            r"concordam\s*\?", r"vossa opinião\s*\?", r"o que acham\s*\?", r"sou o único",
            r"opinião impopular", r"controverso", r"mudem a minha opinião", r"lutem comigo",
        ],
        "cta": [
            r"comentem sim", r"marquem um amigo", r"mandem-me mensagem", r"curtam se",
            r"partilhem se", r"repostem se", r"sigam-me para", r"subscrevam",
            r"visitem o meu", r"link na bio", r"cliquem no link", r"registrem-se",
        ],
        "humble_bragging": [
            r"abençoado de anunciar", r"humilde de partilhar", r"grato de anunciar",
            r"emocionado de partilhar", r"orgulhoso de anunciar",
        ],
        "urgency": [
            r"ajam agora", r"tempo limitado", r"não percam", r"última hipótese",
            r"urgente", r"fica viral", r"apago este post", r"guardem agora",
        ],
    },
}

_RAW_MOTIVATIONAL_WORDS: dict[str, list[str]] = {
    "en": ["success", "journey", "mindset", "growth", "hustle", "grind", "passion", "dreams",
           "goals", "inspire", "motivation", "believe", "manifest", "abundance", "grateful",
           "blessed", "universe"],
    "fr": ["succès", "voyage", "mentalité", "croissance", "passion", "rêves", "objectifs",
           "inspirer", "motivation", "croire", "manifester", "abondance", "reconnaissant",
           "béni", "univers"],
    "es": ["éxito", "viaje", "mentalidad", "crecimiento", "pasión", "sueños", "objetivos",
           "inspirar", "motivación", "creer", "manifestar", "abundancia", "agradecido",
           "bendecido", "universo"],
    "de": ["erfolg", "reise", "denkweise", "wachstum", "leidenschaft", "träume", "ziele",
           "inspirieren", "motivation", "glauben", "manifestieren", "fülle", "dankbar",
           "gesegnet", "universum"],
    "it": ["successo", "viaggio", "mentalità", "crescita", "passione", "sogni", "obiettivi",
           "ispirare", "motivazione", "credere", "manifestare", "abbondanza", "grato",
           "benedetto", "universo"],
    "pt": ["sucesso", "viagem", "mentalidade", "crescimento", "paixão", "sonhos", "objetivos",
           "inspirar", "motivação", "acreditar", "manifestar", "abundância", "grato",
           "abençoado", "universo"],
}

_RAW_STOPWORDS: dict[str, str] = {
    "en": r"\b(the|and|or|but|with|from|they|this|that|have|will|would|could|should)\b",
    "fr": r"\b(le|la|les|et|ou|mais|avec|de|ils|ce|que|avoir|sera|pourrait|devrait)\b",
    "es": r"\b(el|la|los|las|y|o|pero|con|de|ellos|esto|que|tener|será|podría|debería)\b",
    "de": r"\b(der|die|das|und|oder|aber|mit|von|sie|dies|dass|haben|wird|könnte|sollte)\b",
    "it": r"\b(il|la|i|le|e|o|ma|con|di|loro|questo|che|avere|sarà|potrebbe|dovrebbe)\b",
    "pt": r"\b(o|a|os|as|e|ou|mas|com|de|eles|isto|que|ter|será|poderia|deveria)\b",
}
# fmt: on

BAIT_PATTERNS: Mapping[str, Mapping[str, tuple[Pattern, ...]]] = _freeze({
    lang: {category: _compile(patterns) for category, patterns in table.items()}
    for lang, table in _RAW_BAIT_PATTERNS.items()
})

MOTIVATIONAL_WORDS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    lang: tuple(words) for lang, words in _RAW_MOTIVATIONAL_WORDS.items()
})

STOPWORD_PATTERNS: Mapping[str, Pattern] = MappingProxyType({
    lang: re.compile(pattern, re.IGNORECASE) for lang, pattern in _RAW_STOPWORDS.items()
})

# ── Emoji categories ──────────────────────────────────────────────────────────
EMOJI_CATEGORIES: Mapping[str, Pattern] = MappingProxyType({
    "high_engagement": re.compile("[\U0001F525\U0001F37F\u2764\uFE0F\U0001F494\U0001F4A5\u26A1\U0001F680]"),
    "pointing": re.compile("[\U0001F447\U0001F448\U0001F449\U0001F446]"),
    "celebration": re.compile("[\U0001F389\U0001F38A\U0001F973\U0001F3C6]"),
    "money": re.compile("[\U0001F4B0\U0001F4B5\U0001F4B8\U0001F4B4\U0001F4B7]"),
})

# ── Regional professional / company markers ───────────────────────────────────
REGIONAL_PATTERNS: Mapping[str, Mapping[str, Pattern]] = _freeze({
    "US": {
        "professional": re.compile(r"\b(CEO|VP|Director|Manager|Lead|Senior|Principal)\b", re.I),
        "companies": re.compile(r"\b(Google|Meta|Amazon|Microsoft|Apple|Netflix|Tesla)\b", re.I),
    },
    "EU": {
        "professional": re.compile(r"\b(Managing Director|Head of|Chief|Directeur|Direktor|Direttore)\b", re.I),
        "companies": re.compile(r"\b(SAP|ASML|Spotify|Adidas|BMW|Siemens|LVMH)\b", re.I),
    },
    "LATAM": {
        "professional": re.compile(r"\b(Gerente|Director|Jefe|Líder|Senior|Principal)\b", re.I),
        "companies": re.compile(r"\b(Mercado Libre|Globo|Banco do Brasil|CEMEX|América Móvil)\b", re.I),
    },
})

# ── Universal rule tables (language-agnostic) ─────────────────────────────────
UNIVERSAL_BAIT_PATTERNS: Mapping[str, tuple[Pattern, ...]] = MappingProxyType({
    "direct_engagement": _compile([
        r"agree\s*\?", r"thoughts\s*\?", r"what do you think\?",
        r"am i (the only one|wrong|right)\?", r"unpopular opinion", r"hot take",
        r"controversial", r"change my mind", r"fight me",
    ]),
    "cta": _compile([
        r"comment yes", r"tag a friend", r"dm me for", r"send me a message",
        r"like if you agree", r"share if you", r"repost if",
    ]),
    "humble_bragging": _compile([
        r"blessed to announce", r"humbled to share", r"grateful to announce",
        r"excited to share", r"proud to announce",
    ]),
    "generic_motivational": _compile([
        r"life lesson", r"remember this", r"never forget", r"golden rule",
        r"success secret", r"millionaire mindset",
    ]),
    "fake_story": _compile([
        r"true story", r"this just happened", r"you won't believe", r"plot twist", r"but wait",
    ]),
    "list_bait": _compile([r"\d+\s*(things|ways|secrets|tips|rules)", r"here are \d+"]),
    "emotional_hook": _compile([
        r"if this doesn't", r"this will (change|blow)", r"everyone should", r"nobody talks about",
    ]),
    "postscript": _compile([r"p\.s\.?\s*:", r"ps\s*:"]),
})

# (name, pattern, count_every_match)
LOW_VALUE_INDICATORS: tuple[tuple[str, Pattern, bool], ...] = (
    ("emoji_run", re.compile("[\U0001F525\U0001F37F\u2764\uFE0F\U0001F494]{2,}"), False),
    ("face_emoji_run", re.compile("[\U0001F600-\U0001F64F]{3}"), False),
    ("all_caps", re.compile(r"\b[A-Z]{4,}\b"), True),
    ("excessive_punctuation", re.compile(r"[!?]{3,}"), False),
    ("ellipsis_run", re.compile(r"\.{4,}"), False),
    ("buzzword", re.compile(r"leverage|synergy|disrupt|revolutionize", re.I), False),
    ("game_changer", re.compile(r"game-?changer", re.I), False),
    ("next_level", re.compile(r"next level", re.I), False),
    ("deep_dive", re.compile(r"deep dive", re.I), False),
    ("circle_back", re.compile(r"circle back", re.I), False),
    ("touch_base", re.compile(r"touch base", re.I), False),
    ("moving_forward", re.compile(r"moving forward", re.I), False),
    ("act_now", re.compile(r"act now", re.I), False),
    ("limited_time", re.compile(r"limited time", re.I), False),
    ("dont_miss", re.compile(r"don't miss", re.I), False),
    ("last_chance", re.compile(r"last chance", re.I), False),
    ("time_sensitive", re.compile(r"time sensitive", re.I), False),
)

CTA_PHRASES: tuple[Pattern, ...] = _compile([
    r"follow me for", r"subscribe to", r"check out my", r"visit my",
    r"link in bio", r"click the link", r"sign up for", r"register now",
])

EMOJI_CHARS = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF\u2600-\u26FF\u2700-\u27BF]"
)


# ── Lookups ───────────────────────────────────────────────────────────────────

def pattern_languages() -> tuple[str, ...]:
    """Languages that carry a bait pattern table, in detection priority order."""
    return tuple(BAIT_PATTERNS)


def get_bait_patterns(language: str = BASELINE_LANGUAGE) -> Mapping[str, tuple[Pattern, ...]]:
    return BAIT_PATTERNS.get(language, BAIT_PATTERNS[BASELINE_LANGUAGE])


def iter_bait_patterns(language: str = BASELINE_LANGUAGE):
    """Yield (category, pattern) pairs for a language in table order."""
    for category, patterns in get_bait_patterns(language).items():
        for pattern in patterns:
            yield category, pattern


def get_motivational_words(language: str = BASELINE_LANGUAGE) -> tuple[str, ...]:
    return MOTIVATIONAL_WORDS.get(language, MOTIVATIONAL_WORDS[BASELINE_LANGUAGE])


def get_regional_patterns(region: str = "US") -> Mapping[str, Pattern]:
    return REGIONAL_PATTERNS.get(region, REGIONAL_PATTERNS["US"])


def is_language_supported(language: str) -> bool:
    return language in SUPPORTED_LANGUAGES


def get_language_name(language: str) -> str:
    return SUPPORTED_LANGUAGES.get(language, "Unknown")
