"""
Topic-drift check — generated sections must stay on the dominant limiter.

Three checks, each contributing at most one error:
  1. banned topic      first limiter-banned topic word in tension, focus or
                       whyThisMatters (checked in that order per topic)
  2. causal chain      a cross-behavior causal connector anywhere
  3. explained tension tension explains why the constraint exists instead
                       of describing it

The `progression` limiter (or no limiter) is never checked.

`protein` is not a banned topic for the nutrition limiter: a weak protein
score is itself a nutrition limiter.

`check_constraint_alignment` is a stricter keyword check (the focus must
name the constraint and stay on it). The retry loop does not run it.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from weekly_coach.services.constraint_snapshot import Limiter
from weekly_coach.services.content_validator import section_text

logger = logging.getLogger(__name__)

LIMITER_BANNED_TOPICS: dict[str, tuple[str, ...]] = {
    Limiter.NUTRITION: ("sleep", "phone", "hydration", "mindset", "movement"),
    Limiter.RECOVERY: ("nutrition", "meal", "protein", "hydration", "movement", "workout"),
    Limiter.CONSISTENCY: ("sleep", "nutrition", "protein", "hydration", "mindset"),
    Limiter.TIME: ("sleep", "nutrition", "protein", "hydration", "mindset"),
    Limiter.PROGRESSION: (),
}

CAUSAL_CONNECTORS = (
    "because of your sleep",
    "because of your hydration",
    "because of your protein",
    "because of your exercise",
    "because of your movement",
    "due to sleep",
    "due to hydration",
    "due to protein",
    "leads to",
    "cascades into",
    "creates a cycle",
    "drives",
    "triggers",
    "fix sleep and",
    "fix hydration and",
    "fix protein and",
    "fix movement and",
    "improve sleep and",
    "improve hydration and",
    "once sleep improves",
    "once hydration improves",
    "when sleep stabilizes",
    "sleep-nutrition connection",
    "sleep-nutrition link",
    "recovery-nutrition",
)

TENSION_EXPLANATORY = (
    "because", "due to", "leads to", "creates", "drives",
    "cascades", "compounds", "unlocks", "accelerates",
)

# Limiter → topic word used in error messages
_TOPIC_NAMES = {
    Limiter.NUTRITION: "nutrition",
    Limiter.RECOVERY: "sleep",
    Limiter.CONSISTENCY: "exercise consistency",
    Limiter.TIME: "exercise time",
}

# (section key, label used in the error message)
_CHECKED_SECTIONS = (
    ("tension", "Tension must describe {topic} only, not {word}"),
    ("progression", "Focus must address {topic} only, not {word}"),
    ("whyThisMatters", "Why This Matters must discuss {topic} only, not {word}"),
)


def _banned_topic_error(sections: dict[str, str], limiter: str) -> Optional[str]:
    topic = _TOPIC_NAMES.get(limiter, limiter)
    for word in LIMITER_BANNED_TOPICS.get(limiter, ()):
        for key, template in _CHECKED_SECTIONS:
            if word in sections[key]:
                return template.format(topic=topic, word=word)
    return None


def check_topic_drift(coaching: dict[str, Any], limiter: Optional[str]) -> list[str]:
    """Drift errors for the coaching output; empty list means on topic."""
    if not limiter:
        return []
    limiter = limiter.lower()
    if limiter == Limiter.PROGRESSION:
        return []

    sections = {key: section_text(coaching, key).lower() for key, _ in _CHECKED_SECTIONS}
    errors: list[str] = []

    drift = _banned_topic_error(sections, limiter)
    if drift:
        errors.append(drift)

    all_text = " ".join(sections.values())
    causal = next((c for c in CAUSAL_CONNECTORS if c in all_text), None)
    if causal:
        errors.append(
            f'Cross-behavior causality detected: "{causal}". Do not explain {limiter} '
            f"problems through other behaviors."
        )

    if any(word in sections["tension"] for word in TENSION_EXPLANATORY):
        errors.append("Tension must describe the constraint, not explain why it exists")

    if errors:
        logger.info("Topic drift for limiter %s: %s", limiter, "; ".join(errors))
    return errors


# ---------------------------------------------------------------------------
# Constraint alignment (stricter, not part of the retry loop)
# ---------------------------------------------------------------------------

FOCUS_KEYWORDS: dict[str, tuple[str, ...]] = {
    "nutrition": (
        "nutrition", "meal", "food", "eating", "prep", "calories", "diet",
        "snack", "lunch", "dinner", "breakfast", "cooking", "portion",
        "fasting", "hunger", "macro", "fuel",
    ),
    "protein": ("protein", "shake", "supplement", "amino"),
    "sleep": (
        "sleep", "bed", "bedtime", "phone", "screen", "wake", "rest",
        "nap", "insomnia", "circadian", "melatonin", "pillow",
    ),
    "hydration": ("water", "hydration", "hydrate", "dehydrat", "fluid", "oz", "bottle", "drink"),
    "movement": (
        "exercise", "workout", "gym", "walk", "run", "lift", "training",
        "movement", "steps", "cardio", "strength",
    ),
    "mindset": ("mindset", "stress", "anxiety", "mental", "mood", "overwhelm", "motivation"),
}

LIMITER_FOCUS_CATEGORIES: dict[str, tuple[str, ...]] = {
    Limiter.NUTRITION: ("nutrition", "protein"),
    Limiter.RECOVERY: ("sleep",),
    Limiter.CONSISTENCY: ("movement",),
    Limiter.TIME: ("movement",),
}

EXAMPLE_ADVICE = {
    Limiter.NUTRITION: '"Prep meals on Sunday" or "Pack lunch the night before"',
    Limiter.RECOVERY: '"Set a consistent bedtime this week" or "No screens 30 minutes before bed"',
    Limiter.CONSISTENCY: '"Commit to 4 exercise days this week" or "Schedule movement like a meeting"',
    Limiter.TIME: '"Block 30 minutes for movement 3 days this week"',
}


def _keyword_hits(text: str, categories: tuple[str, ...]) -> dict[str, int]:
    hits = {}
    for category in categories:
        count = sum(1 for kw in FOCUS_KEYWORDS[category] if kw in text)
        if count:
            hits[category] = count
    return hits


def check_constraint_alignment(coaching: dict[str, Any], limiter: Optional[str]) -> Optional[str]:
    """
    First failing alignment check, or None.

    1. the focus names the constraint behavior
    2. the tension does not mention other behaviors more than the constraint
    3. the focus does not direct effort at other behaviors

    Keywords match as plain substrings. Like `check_topic_drift`, the
    `progression` limiter (or no limiter) always passes.
    """
    if not limiter:
        return None
    limiter = limiter.lower()
    own = LIMITER_FOCUS_CATEGORIES.get(limiter)
    if not own:
        return None
    others = tuple(c for c in FOCUS_KEYWORDS if c not in own)

    focus = section_text(coaching, "progression").lower()
    tension = section_text(coaching, "tension").lower()

    if not _keyword_hits(focus, own):
        advice = EXAMPLE_ADVICE[limiter]
        return (
            f"Your Focus does not address {limiter}. The Focus must give specific, actionable "
            f"{limiter} advice (e.g., {advice}). Rewrite the Focus to directly address {limiter}."
        )

    tension_others = _keyword_hits(tension, others)
    if sum(tension_others.values()) > sum(_keyword_hits(tension, own).values()):
        return (
            f"Tension discusses {', '.join(tension_others)} more than {limiter}. "
            f"The Tension must describe the {limiter} failure pattern directly."
        )

    focus_others = _keyword_hits(focus, others)
    if focus_others:
        return (
            f"Focus suggests addressing {', '.join(focus_others)} but the constraint is {limiter}. "
            f"Rewrite to address {limiter} directly."
        )
    return None
