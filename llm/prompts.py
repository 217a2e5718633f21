"""
BaitGuard — Prompt Builder
Chooses a specialised prompt template from the shape of the post (story,
motivational, educational, localised, ...) and parses the model's two-line
CONFIDENCE / REASONING reply.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from nlp.language_detector import LanguageDetector
from nlp.patterns import BASELINE_LANGUAGE
from scoring.results import ClassificationContext

logger = logging.getLogger(__name__)

NEUTRAL_CONFIDENCE = 0.5

# ── Shared instruction blocks ─────────────────────────────────────────────────
PLATFORM_CONTEXT = (
    "You are analyzing social media posts for engagement bait patterns. The posts come "
    "from professional and general-audience networks where people share career updates, "
    "industry insights, personal stories and business content."
)

BAIT_DEFINITION = """Engagement bait includes:
- Call-to-action prompts that manipulate engagement ("comment YES", "tag a friend", "DM me")
- Emotional manipulation tactics designed to generate reactions
- Clickbait phrases and fake urgency to drive interaction
- Generic motivational content with explicit interaction requests
- Posts designed primarily to game the feed algorithm rather than provide value
- Humble bragging disguised as inspirational content"""

OUTPUT_FORMAT = """Respond ONLY in this exact format:
CONFIDENCE: [0.0-1.0]
REASONING: [brief explanation in 1-2 sentences]"""

EXAMPLES = """Examples:
CONFIDENCE: 0.85
REASONING: Contains "comment YES" CTA and urgency language designed to manipulate engagement.

CONFIDENCE: 0.15
REASONING: Appears to be genuine professional experience sharing without manipulation tactics."""

# fmt: off
LOCALIZED = {
    "fr": {
        "instruction": "Analysez ce post de réseau social en français pour déterminer s'il s'agit d'un piège à engagement.",
        "definition": """Les pièges à engagement incluent:
- Demandes d'action qui manipulent l'engagement ("commentez OUI", "taguez un ami", "envoyez-moi un message")
- Tactiques de manipulation émotionnelle conçues pour générer des réactions
- Phrases d'appât et fausse urgence pour stimuler l'interaction
- Contenu motivationnel générique avec demandes d'interaction explicites
- Vantardise déguisée en contenu inspirant""",
        "analyze": "Analysez ce post:",
        "context": "CONTEXTE",
        "author": "Auteur",
        "media": "Contient des médias (image/vidéo)",
        "examples": """Exemples:
CONFIDENCE: 0.85
REASONING: Contient une demande "commentez OUI" et un langage d'urgence conçu pour manipuler l'engagement.

CONFIDENCE: 0.15
REASONING: Semble être un partage d'expérience professionnelle authentique sans tactiques de manipulation.""",
    },
    "es": {
        "instruction": "Analiza esta publicación en español para determinar si es carnada de engagement.",
        "definition": """La carnada de engagement incluye:
- Llamadas a la acción que manipulan el engagement ("comenta SÍ", "etiqueta a un amigo", "envíame un mensaje")
- Tácticas de manipulación emocional diseñadas para generar reacciones
- Frases clickbait y falsa urgencia para impulsar la interacción
- Contenido motivacional genérico con solicitudes explícitas de interacción
- Presunción disfrazada como contenido inspirador""",
        "analyze": "Analiza esta publicación:",
        "context": "CONTEXTO",
        "author": "Autor",
        "media": "Contiene medios (imagen/video)",
        "examples": """Ejemplos:
CONFIDENCE: 0.85
REASONING: Contiene demanda "comenta SÍ" y lenguaje de urgencia diseñado para manipular el engagement.

CONFIDENCE: 0.15
REASONING: Parece ser compartir experiencia profesional genuina sin tácticas de manipulación.""",
    },
    "de": {
        "instruction": "Analysiere diesen deutschen Social-Media-Post auf Engagement-Köder.",
        "definition": """Engagement-Köder umfasst:
- Call-to-Action-Aufforderungen, die das Engagement manipulieren ("kommentiert JA", "markiert einen Freund", "schreibt mir")
- Emotionale Manipulationstaktiken zur Reaktionserzeugung
- Clickbait-Phrasen und falsche Dringlichkeit zur Interaktionsförderung
- Generischer motivationaler Inhalt mit expliziten Interaktionsanfragen
- Versteckte Angeberei als inspirierender Inhalt""",
        "analyze": "Analysiere diesen Post:",
        "context": "KONTEXT",
        "author": "Autor",
        "media": "Enthält Medien (Bild/Video)",
        "examples": """Beispiele:
CONFIDENCE: 0.85
REASONING: Enthält "kommentiert JA" Aufforderung und Dringlichkeitssprache zur Engagement-Manipulation.

CONFIDENCE: 0.15
REASONING: Scheint authentisches Teilen beruflicher Erfahrungen ohne Manipulationstaktiken zu sein.""",
    },
    "it": {
        "instruction": "Analizza questo post social in italiano per determinare se è engagement bait.",
        "definition": """L'engagement bait include:
- Richieste di azione che manipolano l'engagement ("commentate SÌ", "taggate un amico", "mandatemi un messaggio")
- Tattiche di manipolazione emotiva progettate per generare reazioni
- Frasi clickbait e falsa urgenza per stimolare l'interazione
- Contenuto motivazionale generico con richieste esplicite di interazione
- Vanteria mascherata da contenuto ispirante""",
        "analyze": "Analizza questo post:",
        "context": "CONTESTO",
        "author": "Autore",
        "media": "Contiene media (immagine/video)",
        "examples": """Esempi:
CONFIDENCE: 0.85
REASONING: Contiene richiesta "commentate SÌ" e linguaggio di urgenza progettato per manipolare l'engagement.

CONFIDENCE: 0.15
REASONING: Sembra essere condivisione autentica di esperienza professionale senza tattiche di manipolazione.""",
    },
    "pt": {
        "instruction": "Analise esta publicação em português para determinar se é isca de engajamento.",
        "definition": """Isca de engajamento inclui:
- Chamadas para ação que manipulam o engajamento ("comentem SIM", "marquem um amigo", "mandem-me mensagem")
- Táticas de manipulação emocional projetadas para gerar reações
- Frases clickbait e falsa urgência para impulsionar a interação
- Conteúdo motivacional genérico com solicitações explícitas de interação
- Ostentação disfarçada como conteúdo inspirador""",
        "analyze": "Analise esta publicação:",
        "context": "CONTEXTO",
        "author": "Autor",
        "media": "Contém mídia (imagem/vídeo)",
        "examples": """Exemplos:
CONFIDENCE: 0.85
REASONING: Contém solicitação "comentem SIM" e linguagem de urgência projetada para manipular o engajamento.

CONFIDENCE: 0.15
REASONING: Parece ser compartilhamento autêntico de experiência profissional sem táticas de manipulação.""",
    },
}

VARIATIONS = {
    "conservative": (
        "Be conservative in flagging content. Only mark obvious engagement bait.",
        "Use confidence > 0.8 only for clear manipulation.",
    ),
    "aggressive": (
        "Be more sensitive to subtle engagement bait patterns.",
        "Flag borderline cases with confidence > 0.6.",
    ),
    "balanced": (
        "Balance between catching bait and preserving genuine content.",
        "Use standard thresholds around 0.7 confidence.",
    ),
}

# Content-shape markers used for template selection
_STORY = re.compile(r"\b(yesterday|today|last week|true story|happened|experience|plot twist)\b", re.I)
_MOTIVATIONAL = re.compile(r"\b(success|motivation|inspire|dream|goal|hustle|grind|journey|mindset|grateful|blessed)\b", re.I)
_EDUCATIONAL = re.compile(r"\b(learn|tip|advice|insight|analysis|strategy|research|study|data)\b", re.I)
_QUESTION = re.compile(r"\b(thoughts|agree|disagree|what do you think|am i wrong|unpopular opinion)\b", re.I)
_OBVIOUS_BAIT = re.compile(r"\b(comment yes|tag a friend|dm me|going viral|save this post|double tap)\b", re.I)
_MANIPULATION = re.compile(r"(\bmost people won't\b|\bdelete this post\b|\btop 1%|\bsecret\b|\byou won't believe\b)", re.I)

_CONFIDENCE_RE = re.compile(r"CONFIDENCE\s*:\s*(-?[0-9]*\.?[0-9]+)", re.I)
_REASONING_RE = re.compile(r"REASONING\s*:\s*(.+?)(?:\n|$)", re.I | re.S)
# fmt: on


@dataclass
class ContentPatterns:
    has_story_markers: bool
    motivational_count: int
    has_educational_markers: bool
    has_question_markers: bool
    has_obvious_bait: bool
    has_manipulation: bool
    language: str

    @property
    def has_mixed_signals(self) -> bool:
        return (self.has_educational_markers or self.has_story_markers) and (
            self.has_question_markers or self.has_manipulation
        )


@dataclass
class BuiltPrompt:
    template: str
    prompt: str
    language: str


@dataclass
class ParsedReply:
    confidence: float
    reasoning: str
    raw_response: str
    parse_success: bool


def analyze_content_patterns(text: str, language: str = BASELINE_LANGUAGE) -> ContentPatterns:
    return ContentPatterns(
        has_story_markers=bool(_STORY.search(text)),
        motivational_count=len(_MOTIVATIONAL.findall(text)),
        has_educational_markers=bool(_EDUCATIONAL.search(text)),
        has_question_markers=bool(_QUESTION.search(text)),
        has_obvious_bait=bool(_OBVIOUS_BAIT.search(text)),
        has_manipulation=bool(_MANIPULATION.search(text)),
        language=language,
    )


def parse_response(reply: str | None) -> ParsedReply:
    """
    Best-effort extraction of the two-line contract. Never raises: a reply with
    no usable CONFIDENCE line yields the neutral 0.5 with parse_success=False.
    """
    raw = reply or ""
    cleaned = raw.strip()
    conf_match = _CONFIDENCE_RE.search(cleaned)
    reason_match = _REASONING_RE.search(cleaned)
    reasoning = reason_match.group(1).strip() if reason_match else ""

    if conf_match is None:
        return ParsedReply(
            confidence=NEUTRAL_CONFIDENCE,
            reasoning=reasoning or "Unparseable model reply; using neutral confidence",
            raw_response=raw,
            parse_success=False,
        )

    try:
        confidence = float(conf_match.group(1))
    except ValueError:
        return ParsedReply(NEUTRAL_CONFIDENCE, "Unparseable confidence value", raw, False)

    return ParsedReply(
        confidence=max(0.0, min(1.0, confidence)),
        reasoning=reasoning or "No reasoning provided",
        raw_response=raw,
        parse_success=True,
    )


class PromptBuilder:
    def __init__(self, detector: LanguageDetector | None = None):
        self.detector = detector or LanguageDetector()

    # ── Selection ─────────────────────────────────────────────────────────────

    def build(self, text: str, context: ClassificationContext | None = None) -> BuiltPrompt:
        ctx = context or ClassificationContext()
        language = ctx.language or self.detector.detect(text)
        length = len(text)

        if language != BASELINE_LANGUAGE and language in LOCALIZED:
            return BuiltPrompt("multi_language", self.multi_language(text, language, ctx), language)

        if ctx.aggressiveness and ctx.aggressiveness != "medium":
            variation = "aggressive" if ctx.aggressiveness == "high" else "conservative"
            return BuiltPrompt("variation", self.variation(text, variation), language)

        patterns = analyze_content_patterns(text, language)

        if length < 100 and patterns.has_obvious_bait:
            return BuiltPrompt("quick", self.quick(text), language)
        if patterns.has_story_markers and length > 150:
            return BuiltPrompt("story", self.story(text), language)
        if patterns.motivational_count >= 3:
            return BuiltPrompt("motivational", self.motivational(text), language)
        if patterns.has_educational_markers and not patterns.has_manipulation:
            return BuiltPrompt("educational", self.educational(text), language)
        if length > 500 or ctx.requires_detailed_analysis or patterns.has_mixed_signals:
            return BuiltPrompt("detailed", self.detailed(text, ctx), language)
        return BuiltPrompt("enhanced", self.enhanced(text, ctx), language)

    # ── Templates ─────────────────────────────────────────────────────────────

    @staticmethod
    def _context_line(ctx: ClassificationContext, label="CONTEXT", author="Author",
                      media="Contains media (image/video)", include_prior=False) -> str:
        parts = []
        if ctx.author:
            parts.append(f"{author}: {ctx.author}")
        if ctx.has_media:
            parts.append(media)
        if include_prior and ctx.prior_score is not None:
            parts.append(f"Rule-based score: {ctx.prior_score:.1f}/10")
        return f"{label}: {' | '.join(parts)}" if parts else ""

    def standard(self, text: str, ctx: ClassificationContext) -> str:
        return f"""{PLATFORM_CONTEXT}

{BAIT_DEFINITION}

Analyze this post:

POST: "{text}"
{self._context_line(ctx)}

{OUTPUT_FORMAT}

{EXAMPLES}"""

    def quick(self, text: str) -> str:
        return f"""Analyze this social media post for engagement bait. Be concise.

POST: "{text}"

Engagement bait signs: CTA requests, manipulation tactics, fake urgency, algorithm gaming.

{OUTPUT_FORMAT}"""

    def story(self, text: str) -> str:
        return f"""{PLATFORM_CONTEXT}

You are analyzing story-based posts. Look for:
- "True story happened to me" narratives that seem fabricated
- Stories with convenient lessons that feel constructed
- Overuse of dramatic elements for engagement
- Stories that end with obvious moral lessons
- Humble bragging disguised as storytelling

Analyze this story-based post:

POST: "{text}"

Does this feel like a genuine experience or a fabricated story for engagement?

{OUTPUT_FORMAT}"""

    def motivational(self, text: str) -> str:
        return f"""{PLATFORM_CONTEXT}

You are specifically analyzing motivational/inspirational content. Look for:
- Generic life advice with no specific value
- Requests for engagement hidden as inspiration
- Recycled motivational quotes without attribution
- "Hustle culture" content designed for virality
- Personal success stories that feel fabricated

Analyze this potentially motivational post:

POST: "{text}"

Is this genuine inspiration or engagement bait?

{OUTPUT_FORMAT}"""

    def educational(self, text: str) -> str:
        return f"""{PLATFORM_CONTEXT}

You are analyzing educational/professional content. Look for:
- Genuine knowledge sharing vs. generic advice
- Specific insights vs. vague platitudes
- Educational value vs. engagement manipulation
- Expert knowledge vs. recycled content

Analyze this educational post:

POST: "{text}"

Is this providing genuine professional value or using education as engagement bait?

{OUTPUT_FORMAT}"""

    def detailed(self, text: str, ctx: ClassificationContext) -> str:
        prior = f"Prior rule-based analysis gave score: {ctx.prior_score:.1f}/10" if ctx.prior_score is not None else ""
        return f"""{PLATFORM_CONTEXT}

{BAIT_DEFINITION}

Perform a detailed analysis of this post:

POST: "{text}"
{prior}

Consider:
1. Intent: Is the primary goal to provide value or gain engagement?
2. Language: Does it use manipulative or genuine communication?
3. Structure: Is it designed for maximum virality or authentic sharing?
4. Content quality: Does it offer genuine insights or generic advice?
5. Call-to-actions: Are interaction requests natural or forced?

Provide your assessment:

CONFIDENCE: [0.0-1.0]
REASONING: [detailed explanation of key factors that influenced your decision]"""

    def multi_language(self, text: str, language: str, ctx: ClassificationContext) -> str:
        loc = LOCALIZED.get(language)
        if loc is None:
            return self.standard(text, ctx)
        context_line = self._context_line(ctx, loc["context"], loc["author"], loc["media"])
        return f"""{loc["instruction"]}

{loc["definition"]}

{loc["analyze"]}

POST: "{text}"
{context_line}

{OUTPUT_FORMAT}

{loc["examples"]}"""

    def enhanced(self, text: str, ctx: ClassificationContext) -> str:
        return f"""{PLATFORM_CONTEXT}

CRITICAL: Be very careful to distinguish between:
1. GENUINE content (experiences, insights, industry analysis, authentic stories)
2. OBVIOUS engagement bait (explicit CTAs, manipulation tactics, fake urgency)
3. BORDERLINE cases (motivational content, personal reflections with mild engagement)

{BAIT_DEFINITION}

ACCURACY GUIDELINES:
- CONFIDENCE 0.8+: Only for clear, obvious engagement manipulation with explicit CTAs
- CONFIDENCE 0.6-0.8: For posts with multiple bait indicators but some genuine value
- CONFIDENCE 0.4-0.6: For borderline motivational content or mild engagement tactics
- CONFIDENCE 0.0-0.4: For genuine content, even if engaging

RED FLAGS (High confidence bait):
- Explicit CTAs: "comment YES", "tag a friend", "DM me for PDF"
- Manipulation: "most people won't read this", "delete this post in 24h"
- Algorithm gaming: "going viral", "SAVE this post", triple engagement requests
- Fake exclusivity: "top 1%", "secret most don't know"

GREEN FLAGS (Low confidence/genuine):
- Specific experiences and lessons learned
- Industry analysis with data/insights
- Authentic personal stories without manipulation
- Educational content with real value

Analyze this post:

POST: "{text}"
{self._context_line(ctx, include_prior=True)}

Consider the author's intent, content value, and manipulation tactics before deciding.

{OUTPUT_FORMAT}

EXAMPLES:
CONFIDENCE: 0.85
REASONING: Contains explicit "comment YES" CTA and uses urgent language purely for engagement manipulation.

CONFIDENCE: 0.35
REASONING: Shares genuine professional experience with useful insights, despite being somewhat engaging in style.

CONFIDENCE: 0.65
REASONING: Generic motivational content with mild engagement hooks but lacks specific professional value."""

    def variation(self, text: str, variation: str = "balanced") -> str:
        instructions, guidance = VARIATIONS.get(variation, VARIATIONS["balanced"])
        return f"""{PLATFORM_CONTEXT}

{instructions}

{BAIT_DEFINITION}

Analyze this post:

POST: "{text}"

{guidance}

{OUTPUT_FORMAT}"""
