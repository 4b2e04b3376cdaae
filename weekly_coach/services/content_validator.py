"""
Content Validator — schema and rule checks on generated coaching.

The generator is untrusted. Its output must parse as JSON (surrounding
```json fences tolerated) and pass every rule below before it is stored.

Rules
-----
  json_parsing             output is a JSON object
  required_field           pattern / tension / whyThisMatters (str), progression{text,type}
  pattern_length           pattern        <= 4 sentences
  tension_length           tension        <= 5 sentences
  why_this_matters_length  whyThisMatters <= 6 sentences
  evidence_anchoring       a number from the evidence appears in `pattern`
                           (only when both sides contain numbers)
  banned_tone              no hedge/system phrasing in any section
  redundant_metaphors      at most 2 stock metaphors in tension + whyThisMatters
  missing_focus            progression object present
  empty_focus              progression.text non-empty
  focus_length             progression.text <= 280 characters
  invalid_focus_type       progression.type in advance/stabilize/simplify
  progression_mismatch     progression.type equals the derived type (when known)
  focus_meta_language      progression.text sounds like coaching, not analytics

A valid result carries only the contract fields; anything else the
generator adds is dropped before storage.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

from weekly_coach.services.pattern_classifier import WeeklyPattern
from weekly_coach.services.progression import PROGRESSION_TYPES

MAX_PATTERN_SENTENCES = 4
MAX_TENSION_SENTENCES = 5
MAX_WHY_SENTENCES = 6
MAX_FOCUS_CHARS = 280
MAX_REDUNDANT_TERMS = 2

BANNED_TONE_PHRASES = (
    "suggests",
    "may indicate",
    "might indicate",
    "appears to",
    "could be",
    "seems to",
    "the system",
    "your system",
    "system is",
    "system was",
    "the data",
    "the pattern",
    "this reflects",
    "this signals",
)

REDUNDANT_TERMS = (
    "recovery debt",
    "capacity ceiling",
    "diminishing returns",
    "hidden constraint",
    "accumulating",
    "eroding",
)

FOCUS_META_LANGUAGE = (
    "system",
    "the system",
    "pattern",
    "this pattern",
    "momentum score",
    "data",
    "metrics",
    "this week shows",
    "this indicates",
    "the data",
    "the metrics",
)

TEXT_SECTIONS = ("pattern", "tension", "whyThisMatters")

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```\s*$")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_NUMBER = re.compile(r"\d+")


class CoachingParseError(ValueError):
    pass


@dataclass(frozen=True)
class ValidationIssue:
    rule: str
    message: str
    field: Optional[str] = None

    def to_dict(self) -> dict[str, str]:
        out = {"rule": self.rule, "message": self.message}
        if self.field:
            out["field"] = self.field
        return out

    def __str__(self) -> str:
        return f"[{self.rule}] {self.message}"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: tuple[ValidationIssue, ...] = ()
    coaching: Optional[dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def strip_code_fences(raw: str) -> str:
    cleaned = raw.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned)
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def parse_coaching_output(raw: str) -> dict[str, Any]:
    """Parse raw generator text into a dict. Raises CoachingParseError."""
    try:
        parsed = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as exc:
        raise CoachingParseError(str(exc)) from exc
    if not isinstance(parsed, dict):
        raise CoachingParseError("Top-level JSON value must be an object")
    return parsed


def section_text(coaching: dict[str, Any], key: str) -> str:
    """Section text, `progression` meaning progression.text. Non-strings read as ''."""
    if key == "progression":
        progression = coaching.get("progression")
        value = progression.get("text") if isinstance(progression, dict) else None
    else:
        value = coaching.get(key)
    return value if isinstance(value, str) else ""


def count_sentences(text: str) -> int:
    return sum(1 for s in _SENTENCE_SPLIT.split(text) if s.strip())


def contract_fields(c: dict[str, Any]) -> dict[str, Any]:
    """Reduce a valid output to pattern, tension, whyThisMatters and progression{text,type}."""
    return {
        "pattern": c["pattern"],
        "tension": c["tension"],
        "whyThisMatters": c["whyThisMatters"],
        "progression": {"text": c["progression"]["text"], "type": c["progression"]["type"]},
    }


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def _check_structure(c: dict[str, Any]) -> list[ValidationIssue]:
    errors = []
    labels = {"pattern": "Pattern", "tension": "Tension", "whyThisMatters": "WhyThisMatters"}
    for key, label in labels.items():
        if not section_text(c, key):
            errors.append(ValidationIssue("required_field", f"{label} is required", key))
    if not isinstance(c.get("progression"), dict):
        errors.append(ValidationIssue("required_field", "Focus is required", "progression"))
    return errors


def _check_lengths(c: dict[str, Any]) -> list[ValidationIssue]:
    errors = []
    n = count_sentences(section_text(c, "tension"))
    if n > MAX_TENSION_SENTENCES:
        errors.append(ValidationIssue(
            "tension_length",
            f"Tension over-explains ({n} sentences). Max {MAX_TENSION_SENTENCES} sentences.",
            "tension",
        ))
    n = count_sentences(section_text(c, "whyThisMatters"))
    if n > MAX_WHY_SENTENCES:
        errors.append(ValidationIssue(
            "why_this_matters_length",
            f"WhyThisMatters is too long ({n} sentences). Max {MAX_WHY_SENTENCES} sentences.",
            "whyThisMatters",
        ))
    n = count_sentences(section_text(c, "pattern"))
    if n > MAX_PATTERN_SENTENCES:
        errors.append(ValidationIssue(
            "pattern_length",
            f"Pattern is too long ({n} sentences). Max {MAX_PATTERN_SENTENCES} sentences.",
            "pattern",
        ))
    return errors


def _check_evidence(c: dict[str, Any], pattern: WeeklyPattern) -> list[ValidationIssue]:
    evidence_numbers = set(_NUMBER.findall(" ".join(pattern.evidence_points)))
    pattern_numbers = set(_NUMBER.findall(section_text(c, "pattern")))
    if evidence_numbers and pattern_numbers and not evidence_numbers & pattern_numbers:
        return [ValidationIssue(
            "evidence_anchoring",
            "Pattern must cite at least one specific number from the evidence. Found: 0",
            "pattern",
        )]
    return []


def _all_text(c: dict[str, Any], keys: tuple[str, ...]) -> str:
    return " ".join(section_text(c, k) for k in keys).lower()


def _check_tone(c: dict[str, Any]) -> list[ValidationIssue]:
    text = _all_text(c, TEXT_SECTIONS + ("progression",))
    found = [p for p in BANNED_TONE_PHRASES if p in text]
    if found:
        return [ValidationIssue("banned_tone", f"Contains hedge/system language: {', '.join(found)}")]
    return []


def _check_redundancy(c: dict[str, Any]) -> list[ValidationIssue]:
    text = _all_text(c, ("tension", "whyThisMatters"))
    used = [t for t in REDUNDANT_TERMS if t in text]
    if len(used) > MAX_REDUNDANT_TERMS:
        return [ValidationIssue(
            "redundant_metaphors",
            f"Redundant concepts detected ({', '.join(used)}). Choose fewer, sharper metaphors.",
        )]
    return []


def _check_focus(c: dict[str, Any], expected_type: Optional[str]) -> list[ValidationIssue]:
    progression = c.get("progression")
    if not isinstance(progression, dict):
        return [ValidationIssue("missing_focus", "Focus is required for all coached weeks")]

    errors = []
    text = section_text(c, "progression")
    if not text.strip():
        errors.append(ValidationIssue("empty_focus", "Focus text cannot be empty", "progression"))
    if len(text) > MAX_FOCUS_CHARS:
        errors.append(ValidationIssue(
            "focus_length", f"Focus exceeds {MAX_FOCUS_CHARS} character limit", "progression"
        ))

    focus_type = progression.get("type")
    if focus_type not in PROGRESSION_TYPES:
        errors.append(ValidationIssue(
            "invalid_focus_type",
            f"Focus type must be one of: {', '.join(PROGRESSION_TYPES)}",
            "progression",
        ))
    elif expected_type and focus_type != expected_type:
        errors.append(ValidationIssue(
            "progression_mismatch",
            f"Focus type must be {expected_type}, got {focus_type}",
            "progression",
        ))

    lower = text.lower()
    meta = [term for term in FOCUS_META_LANGUAGE if term in lower]
    if meta:
        errors.append(ValidationIssue(
            "focus_meta_language",
            f"Focus contains meta-language: {', '.join(meta)}. Must sound like direct coaching.",
            "progression",
        ))
    return errors


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def validate_coaching(
    raw_output: str,
    pattern: WeeklyPattern,
    expected_progression: Optional[str] = None,
) -> ValidationResult:
    try:
        coaching = parse_coaching_output(raw_output)
    except CoachingParseError as exc:
        return ValidationResult(
            valid=False,
            errors=(ValidationIssue("json_parsing", f"Failed to parse JSON: {exc}"),),
        )

    errors: list[ValidationIssue] = []
    errors += _check_structure(coaching)
    errors += _check_lengths(coaching)
    errors += _check_evidence(coaching, pattern)
    errors += _check_tone(coaching)
    errors += _check_redundancy(coaching)
    errors += _check_focus(coaching, expected_progression)

    if errors:
        return ValidationResult(valid=False, errors=tuple(errors))
    return ValidationResult(valid=True, coaching=contract_fields(coaching))


def error_summary(errors: list[ValidationIssue] | tuple[ValidationIssue, ...]) -> str:
    if not errors:
        return "No errors"
    return "; ".join(str(e) for e in errors)
