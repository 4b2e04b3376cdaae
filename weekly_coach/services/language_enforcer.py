"""
Language Enforcer — lexical filter for abstract, clinical or system phrasing.

Runs before content validation. Each coaching section (pattern, tension,
whyThisMatters, progression.text) is scanned, lower-cased, for:

  1. global banned phrases    abstract nouns, clinical voice, vague abstractions
  2. ungrounded abstractions  abstract vocabulary with no physical word nearby
  3. pattern banned phrases   per-pattern table (PATTERN_LANGUAGE)

No auto-translation: a violation rejects the attempt, and the formatted
violations are fed back as corrective instructions on the next attempt.
Output that is not valid JSON passes here; the validator reports it.

PATTERN_LANGUAGE is data, keyed by pattern type. The prompt builder renders
the same table, so extending a pattern's vocabulary needs no code change.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from weekly_coach.services.content_validator import CoachingParseError, parse_coaching_output, section_text
from weekly_coach.services.pattern_classifier import PatternType

SECTIONS = ("pattern", "tension", "whyThisMatters", "progression")


# ---------------------------------------------------------------------------
# Global banned language
# ---------------------------------------------------------------------------

BANNED_ABSTRACT_NOUNS = (
    "recovery ceiling",
    "capacity ceiling",
    "capacity mismatch",
    "infrastructure",
    "recovery infrastructure",
    "capacity constraint",
    "load exceeding capacity",
    "recovery debt accumulating",
    "capacity management",
    "threshold optimization",
    "bandwidth",
    "bandwidth limitation",
    "execution failure",
    "adherence deficit",
)

BANNED_CLINICAL = (
    "is being utilized",
    "being fully utilized",
    "operating at capacity",
    "operating at your capacity",
    "capacity is being",
    "load is being",
    "recovery is being",
    "trajectory indicates",
    "data suggests",
    "metrics indicate",
    "7/7 days",
    "7/7",
    "x/x days",
    "within 2-3 weeks",
    "within two weeks",
    "within 2 weeks",
)

BANNED_VAGUE = (
    "sustainable threshold",
    "sustainable baseline",
    "optimal load",
    "optimal volume",
    "appropriate intensity",
    "proper recovery",
    "adequate rest",
    "sufficient recovery",
)

APPROVED_ALTERNATIVES: dict[str, tuple[str, ...]] = {
    "recovery ceiling": ("your body can't absorb more right now", "your limit", "what you can handle"),
    "capacity mismatch": (
        "effort is outrunning recovery",
        "asking too much of your body",
        "pushing faster than you can recover",
    ),
    "recovery debt accumulating": ("digging a hole", "borrowing from tomorrow", "running up a tab"),
    "infrastructure": ("sleep routine", "recovery setup", "what you do to recover"),
    "sustainable threshold": ("what you can maintain", "your current limit", "where your body holds steady"),
}

CLINICAL_ALTERNATIVE = "Use active voice with body as subject"
VAGUE_ALTERNATIVE = "Be specific about physical state or practical action"

_ABSTRACT_VOCAB = (
    re.compile(r"\b(ceiling|threshold)\b"),
    re.compile(r"\b(infrastructure|bandwidth)\b"),
    re.compile(r"\b(optimal|appropriate|adequate|sufficient)\b"),
)

_PHYSICAL_GROUNDING = (
    re.compile(r"\b(tired|sore|hurt|pain|ache|stiff)\b"),
    re.compile(r"\b(can't|won't|break|fail|crash|quit)\b"),
    re.compile(r"\b(sleep|eat|move|rest|recover)\b"),
    re.compile(r"\b(body|muscle|joint|back|leg|arm)\b"),
)

UNGROUNDED_PHRASE = "Abstract language without physical grounding"
GROUNDING_ALTERNATIVES = (
    "Reference body state (tired, sore, can't)",
    "Name practical consequence (skip days, quit, injury)",
    "Use physical verbs (break, crash, hold, recover)",
)


# ---------------------------------------------------------------------------
# Per-pattern language table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PatternLanguageRule:
    banned_phrases: tuple[str, ...] = ()
    approved_alternatives: tuple[str, ...] = ()
    required_acknowledgments: tuple[str, ...] = ()
    special_instructions: str = ""


_NEVER_COACHED = "This pattern should never receive coaching."

PATTERN_LANGUAGE: dict[str, PatternLanguageRule] = {
    PatternType.BUILDING_MOMENTUM: PatternLanguageRule(
        special_instructions=(
            "- Never suggest changes unless variance is rising or recovery is declining\n"
            '- Default orientation is "Your current approach is working"\n'
            "- If suggesting an adjustment, keep it to minor timing changes"
        ),
    ),
    PatternType.MOMENTUM_PLATEAU: PatternLanguageRule(
        banned_phrases=("stuck", "stagnation", "stagnant", "lacking progress", "not improving", "hitting a wall"),
        approved_alternatives=(
            "stable",
            "holding steady",
            "consistent",
            "unchanged",
            "no upward or downward movement",
            "momentum is steady",
        ),
        special_instructions=(
            "- A plateau is a measurement outcome, not a failure state\n"
            "- Describe it only with the approved terms; do not search for synonyms\n"
            "- Frame it as a neutral observation, not a blockage"
        ),
    ),
    PatternType.COMMITMENT_MISALIGNED: PatternLanguageRule(
        required_acknowledgments=("Exercise effort is not wasted",),
        special_instructions=(
            "- Acknowledge that exercise effort has value\n"
            "- No moralizing about exercise volume versus momentum\n"
            "- Frame it as effort outrunning the foundation, not effort quality"
        ),
    ),
    PatternType.GAP_DISRUPTION: PatternLanguageRule(
        banned_phrases=("discipline", "motivation", "priority", "priorities", "dedication", "commitment issue"),
        special_instructions=(
            "- Never attribute gaps to personal qualities\n"
            "- Treat gaps as life events\n"
            '- No "getting back on track" language; check-ins are resuming, not being redeemed'
        ),
    ),
    PatternType.RECOVERY_DEFICIT: PatternLanguageRule(
        special_instructions=(
            "- Distinguish sleep quantity from sleep quality\n"
            '- Avoid generic "sleep more" advice\n'
            "- Address timing or environment, not willpower"
        ),
    ),
    PatternType.EFFORT_INCONSISTENT: PatternLanguageRule(
        banned_phrases=("not trying", "half-hearted", "lack of effort"),
        special_instructions=(
            "- Name the behaviors that stayed consistent\n"
            '- Frame it as where attention went, not effort failure; no "try harder" language\n'
            "- Reduce scope rather than increase effort"
        ),
    ),
    PatternType.VARIANCE_HIGH: PatternLanguageRule(
        special_instructions=(
            "- Name the specific behavior that is swinging\n"
            '- Avoid generic "be more consistent" advice\n'
            "- Narrow the focus to one behavior"
        ),
    ),
    PatternType.MOMENTUM_DECLINE: PatternLanguageRule(
        banned_phrases=("failure", "failed", "falling apart", "lost control", "gave up"),
        approved_alternatives=(
            "disrupted",
            "interrupted",
            "affected by circumstances",
            "recoverable drop",
            "temporary decline",
        ),
        special_instructions=(
            "- Frame the decline as a disruption to something that was working, not a collapse\n"
            '- Emphasize recoverability: "This is a disruption, not a reset"\n'
            "- Do not suggest major changes; return to what was working"
        ),
    ),
    PatternType.INSUFFICIENT_DATA: PatternLanguageRule(special_instructions=_NEVER_COACHED),
    PatternType.BUILDING_FOUNDATION: PatternLanguageRule(special_instructions=_NEVER_COACHED),
}


def language_rule_for(pattern_type: Optional[str]) -> PatternLanguageRule:
    return PATTERN_LANGUAGE.get(pattern_type or "", PatternLanguageRule())


# ---------------------------------------------------------------------------
# Enforcement
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LanguageViolation:
    phrase: str
    location: str
    alternatives: tuple[str, ...] = ()


@dataclass(frozen=True)
class LanguageCheckResult:
    passed: bool
    violations: tuple[LanguageViolation, ...] = field(default_factory=tuple)
    error: Optional[str] = None


def _check_section(text: str, location: str, rule: PatternLanguageRule) -> list[LanguageViolation]:
    lower = text.lower()
    found: list[LanguageViolation] = []

    for phrase in BANNED_ABSTRACT_NOUNS:
        if phrase in lower:
            found.append(LanguageViolation(phrase, location, APPROVED_ALTERNATIVES.get(phrase, ())))
    for phrase in BANNED_CLINICAL:
        if phrase in lower:
            found.append(LanguageViolation(phrase, location, (CLINICAL_ALTERNATIVE,)))
    for phrase in BANNED_VAGUE:
        if phrase in lower:
            found.append(LanguageViolation(phrase, location, (VAGUE_ALTERNATIVE,)))

    if any(p.search(lower) for p in _ABSTRACT_VOCAB) and not any(p.search(lower) for p in _PHYSICAL_GROUNDING):
        found.append(LanguageViolation(UNGROUNDED_PHRASE, location, GROUNDING_ALTERNATIVES))

    for phrase in rule.banned_phrases:
        if phrase in lower:
            found.append(LanguageViolation(phrase, location, rule.approved_alternatives))

    return found


def enforce_body_first_language(
    coaching: dict[str, Any],
    pattern_type: Optional[str] = None,
) -> LanguageCheckResult:
    rule = language_rule_for(pattern_type)
    violations = [v for key in SECTIONS for v in _check_section(section_text(coaching, key), key, rule)]
    if not violations:
        return LanguageCheckResult(passed=True)
    return LanguageCheckResult(
        passed=False,
        violations=tuple(violations),
        error=format_language_violations(violations),
    )


def check_language(raw_output: str, pattern_type: Optional[str] = None) -> LanguageCheckResult:
    """Parse then enforce. Unparseable output passes; validation reports it."""
    try:
        coaching = parse_coaching_output(raw_output)
    except CoachingParseError:
        return LanguageCheckResult(passed=True)
    return enforce_body_first_language(coaching, pattern_type)


def format_language_violations(violations: list[LanguageViolation] | tuple[LanguageViolation, ...]) -> str:
    if not violations:
        return ""

    by_location: dict[str, list[LanguageViolation]] = {}
    for v in violations:
        by_location.setdefault(v.location, []).append(v)

    lines = ["LANGUAGE ENFORCEMENT FAILURE:", ""]
    for location, group in by_location.items():
        lines.append(f"In {location}:")
        for v in group:
            lines.append(f'  Found: "{v.phrase}"')
            if v.alternatives:
                lines.append("  Use instead:")
                lines.extend(f"     - {alt}" for alt in v.alternatives)
            lines.append("")

    lines += [
        "RULE: Abstract nouns must have physical/practical grounding.",
        "RULE: No clinical or system language.",
        "RULE: Body-first language required.",
    ]
    return "\n".join(lines)
