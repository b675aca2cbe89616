"""Keyword based category inference and importance scoring for memories.

Both functions are deterministic and depend only on their arguments, so a memory's
category and importance can always be reproduced from its content and metadata.

Importance formula (clamped to [0, 1], rounded to two decimals):

    0.40                              baseline
    + category weight                 career 0.10, goals 0.10, professional 0.05, skills 0.05
    + 0.15 per high-stakes keyword    at most 0.30
    + 0.05                            if an action phrase is present
    + metadata priority               high +0.10, low -0.10

    metadata importance "critical"    raises the score to at least 0.90
    metadata importance "high"        raises the score to at least 0.75
    metadata importance "low"         caps the score at 0.30

Without keywords or metadata the score stays at or below 0.55, and a "critical"
tag always yields at least 0.90.
"""

import re
from typing import Any, Mapping

from shared.models.memory import MemoryCategory

BASELINE = 0.40
KEYWORD_WEIGHT = 0.15
KEYWORD_CAP = 0.30
ACTION_WEIGHT = 0.05
PRIORITY_WEIGHT = 0.10

CATEGORY_WEIGHTS: dict[MemoryCategory, float] = {
    MemoryCategory.CAREER: 0.10,
    MemoryCategory.GOALS: 0.10,
    MemoryCategory.PROFESSIONAL: 0.05,
    MemoryCategory.SKILLS: 0.05,
    MemoryCategory.OTHER: 0.0,
}

HIGH_STAKES_KEYWORDS = (
    "offer", "compensation", "salary", "deadline", "equity", "negotiation", "promotion", "interview",
)
ACTION_PHRASES = ("plan to", "next step", "will ", "going to")

# order decides ties between categories with the same number of signals
CATEGORY_SIGNALS: dict[MemoryCategory, tuple[str, ...]] = {
    MemoryCategory.CAREER: (
        "career", "job", "role", "position", "interview", "offer", "promotion", "salary",
        "compensation", "recruiter", "hiring", "resume", "cv", "negotiation", "equity", "apply",
        "applied", "application",
    ),
    MemoryCategory.GOALS: (
        "goal", "goals", "plan to", "want to", "aim", "aspire", "target", "hope to", "objective",
        "dream", "within a year", "by next year", "long term", "long-term",
    ),
    MemoryCategory.SKILLS: (
        "skill", "skills", "learn", "learning", "learned", "certification", "certified", "course",
        "proficient", "fluent", "experience with", "python", "sql", "kubernetes", "framework",
        "training", "practice", "practicing",
    ),
    MemoryCategory.PROFESSIONAL: (
        "team", "manager", "project", "colleague", "company", "client", "meeting", "stakeholder",
        "mentor", "networking", "deliver", "delivered", "report", "boss", "coworker", "conference",
    ),
}


def _pattern(keyword: str) -> re.Pattern:
    # whole words, optional plural
    return re.compile(r"\b" + re.escape(keyword) + r"s?\b")


_SIGNAL_PATTERNS = {
    category: tuple(_pattern(keyword) for keyword in keywords)
    for category, keywords in CATEGORY_SIGNALS.items()
}
_HIGH_STAKES_PATTERNS = tuple(_pattern(keyword) for keyword in HIGH_STAKES_KEYWORDS)


def infer_category(content: str) -> MemoryCategory:
    """Infer a memory category from its content.

    The category with the most matching signals wins; ties go to the category
    listed first in CATEGORY_SIGNALS. Content without any signal is OTHER.
    """
    text = (content or "").lower()
    best = MemoryCategory.OTHER
    best_hits = 0
    for category, patterns in _SIGNAL_PATTERNS.items():
        hits = sum(1 for pattern in patterns if pattern.search(text))
        if hits > best_hits:
            best, best_hits = category, hits
    return best


def _meta_str(metadata: Mapping[str, Any], key: str) -> str:
    value = metadata.get(key)
    return str(value).strip().lower() if value is not None else ""


def score_importance(
    content: str,
    category: MemoryCategory,
    metadata: Mapping[str, Any] | None = None,
) -> float:
    """Score a memory's importance in [0, 1].

    Args:
        content (str): Memory text.
        category (MemoryCategory): The memory's (given or inferred) category.
        metadata (Mapping[str, Any] | None): Caller metadata; "importance" and
            "priority" are honoured.

    Returns:
        float: The score, rounded to two decimals.
    """
    metadata = metadata or {}
    text = (content or "").lower()

    score = BASELINE + CATEGORY_WEIGHTS.get(category, 0.0)

    keyword_hits = sum(1 for pattern in _HIGH_STAKES_PATTERNS if pattern.search(text))
    score += min(KEYWORD_CAP, KEYWORD_WEIGHT * keyword_hits)

    if any(phrase in text for phrase in ACTION_PHRASES):
        score += ACTION_WEIGHT

    priority = _meta_str(metadata, "priority")
    if priority == "high":
        score += PRIORITY_WEIGHT
    elif priority == "low":
        score -= PRIORITY_WEIGHT

    importance = _meta_str(metadata, "importance")
    if importance == "critical":
        score = max(score, 0.90)
    elif importance == "high":
        score = max(score, 0.75)
    elif importance == "low":
        score = min(score, 0.30)

    return round(min(1.0, max(0.0, score)), 2)
