"""
BaitGuard — Seed Dataset
Labeled social-media posts used to build the default vocabulary and train the
initial neural model before any user feedback exists.

Labels:
  1.0 = engagement bait
  0.5 = borderline (question hooks, listicles)
  0.0 = genuine content

Training binarizes at 0.5, so borderline posts count as bait.
"""

from __future__ import annotations
from dataclasses import dataclass, field

BAIT_THRESHOLD = 0.5


@dataclass
class Sample:
    text: str
    label: float  # 0.0 | 0.5 | 1.0
    category: str = ""
    bait_features: list[str] = field(default_factory=list)

    @property
    def binary_label(self) -> int:
        return 1 if self.label >= BAIT_THRESHOLD else 0


# ── Seed posts ────────────────────────────────────────────────────────────────
# fmt: off
DATASET: list[Sample] = [

    # ── BAIT (1.0) ────────────────────────────────────────────────────────────
    Sample("🔥 COMMENT YES if you agree! This will change everything! 🔥", 1.0,
           "cta_engagement", ["emoji_spam", "comment_demand", "urgency"]),
    Sample("DM me for the PDF that 99% of people don't know about 📩", 1.0,
           "dm_bait", ["dm_request", "exclusivity_claim", "percentage_hook"]),
    Sample("Tag 3 friends who need to see this 👇👇👇", 1.0,
           "viral_mechanics", ["tag_demand", "emoji_pointing", "viral_spread"]),
    Sample("🚨 VIRAL POST ALERT 🚨 Everyone is talking about this! Share to spread awareness!", 1.0,
           "viral_claim", ["viral_claim", "urgency_alerts", "share_demand"]),
    Sample("❤️ REPOST if this resonates with you! Let's make this go viral! ❤️", 1.0,
           "emotional_manipulation", ["repost_demand", "emotional_hook", "viral_goal"]),
    Sample("P.S. Follow me for more content like this daily! Don't miss out! 🔔", 1.0,
           "follow_bait", ["follow_request", "fomo", "notification_emoji"]),
    Sample("DOUBLE TAP ❤️ if you believe in yourself! Success mindset starts here! 💪", 1.0,
           "engagement_manipulation", ["double_tap_request", "motivational_bait", "action_emoji"]),
    Sample("🔥 This post is going VIRAL! 🔥 LIKE + COMMENT + SHARE if you want to see more!", 1.0,
           "triple_engagement", ["viral_claim", "triple_cta", "caps_spam"]),
    Sample("SWIPE to see the secret most entrepreneurs hide! 👉 Comment 'MONEY' for the full guide", 1.0,
           "swipe_secret", ["swipe_instruction", "secret_claim", "comment_code"]),
    Sample("⚡ BREAKING: The one skill that changed my life! SAVE this post and thank me later! ⚡", 1.0,
           "breaking_save", ["breaking_news", "life_change_claim", "save_demand"]),
    Sample("I'm going to delete this post in 24 hours, so SAVE it now! This changed my entire perspective on success.", 1.0,
           "deletion_urgency", ["deletion_threat", "save_urgency", "perspective_claim"]),
    Sample("Most people won't read this entire post. If you're still reading, you're in the top 1%. Comment 'FOCUSED' below.", 1.0,
           "reading_challenge", ["reading_test", "exclusivity_claim", "comment_validation"]),
    Sample("Plot twist: The advice everyone gives about networking is completely wrong. Here's what actually works...", 1.0,
           "plot_twist", ["plot_twist", "contrarian_hook", "secret_knowledge"]),
    Sample("I've been quiet about this for months, but I can't stay silent anymore. This industry secret needs to be exposed.", 1.0,
           "silence_breaking", ["silence_break", "secret_exposure", "industry_revelation"]),
    Sample("STOP scrolling! This might be the most important post you read today. Your future self will thank you.", 1.0,
           "scroll_stopper", ["scroll_stop", "importance_claim", "future_self"]),

    # ── BORDERLINE (0.5) ──────────────────────────────────────────────────────
    Sample("What's your biggest challenge this year? Share in the comments 👇", 0.5,
           "question_engagement", ["question_hook", "share_request"]),
    Sample("Here are 5 lessons I learned building my startup. Which one resonates most with you?", 0.5,
           "educational_question", ["lesson_list", "resonance_question"]),
    Sample("Unpopular opinion: Most productivity advice is useless. Agree or disagree? 🤔", 0.5,
           "unpopular_opinion", ["unpopular_opinion", "agree_disagree"]),

    # ── GENUINE (0.0) ─────────────────────────────────────────────────────────
    Sample("I just launched my new startup and learned these valuable lessons about product-market fit.", 0.0,
           "genuine_experience"),
    Sample("Here's my detailed analysis of the current market trends in the SaaS industry.", 0.0,
           "industry_analysis"),
    Sample("Sharing my experience from 10 years in the tech industry and key insights about scaling teams.", 0.0,
           "professional_sharing"),
    Sample("Today I attended an excellent conference on AI ethics. Key takeaways in the thread below.", 0.0,
           "conference_sharing"),
    Sample("Just published a new research paper on machine learning optimization techniques. Link in bio.", 0.0,
           "research_sharing"),
    Sample("Excited to announce our team has reached 1M users. Here's what we learned about user retention.", 0.0,
           "milestone_sharing"),
    Sample("Looking for feedback on our new feature design. Would appreciate thoughts from the UX community.", 0.0,
           "feedback_request"),
    Sample("Reflecting on a challenging year and grateful for the lessons learned. Building resilience is key.", 0.0,
           "reflection"),
    Sample("Interviewing candidates this week. Reminded of the importance of cultural fit beyond technical skills.", 0.0,
           "hiring_insights"),
    Sample("Market update: Q4 showed interesting patterns in enterprise software adoption. Data thread below.", 0.0,
           "market_analysis"),
]
# fmt: on


def get_dataset() -> list[Sample]:
    """Return the full seed dataset."""
    return DATASET


def get_training_texts() -> list[str]:
    return [s.text for s in DATASET]


def get_training_arrays(samples: list[Sample] | None = None) -> tuple[list[str], list[int]]:
    """Texts and binarized labels, ready for feature extraction."""
    samples = DATASET if samples is None else samples
    return [s.text for s in samples], [s.binary_label for s in samples]


def get_split(
    train_ratio: float = 0.8,
    seed: int = 42,
) -> tuple[list[Sample], list[Sample]]:
    """
    Split dataset into train / validation sets.
    Stratified by binary label to preserve class balance.
    """
    import random
    rng = random.Random(seed)

    by_label: dict[int, list[Sample]] = {0: [], 1: []}
    for s in DATASET:
        by_label[s.binary_label].append(s)

    train, val = [], []
    for label_samples in by_label.values():
        shuffled = label_samples[:]
        rng.shuffle(shuffled)
        split_idx = max(1, int(len(shuffled) * train_ratio))
        train.extend(shuffled[:split_idx])
        val.extend(shuffled[split_idx:])

    rng.shuffle(train)
    rng.shuffle(val)
    return train, val
