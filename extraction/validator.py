"""
Quality gate for extracted questions.

Schema validation (response_parser) only guarantees shape; this module
rejects candidates whose content is degenerate: truncated stems, placeholder
text, one-word options, low self-reported confidence. derive_confidence()
rescores what passes before it is merged. Pure functions, no I/O.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from extraction.schemas import OPTION_LABELS, CandidateQuestion


# ─── Rules ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class QualityRules:
    min_stem_length: int = 20
    max_stem_length: int = 2000
    min_option_length: int = 3
    max_option_length: int = 1000
    placeholders: Tuple[str, ...] = ("...", "???")
    min_year: int = 2000
    max_year: int = 2030
    min_confidence: float = 0.3


DEFAULT_RULES = QualityRules()


def _has_placeholder(text: str, rules: QualityRules) -> bool:
    return any(p in text for p in rules.placeholders)


def rejection_reason(candidate: CandidateQuestion, rules: QualityRules = DEFAULT_RULES) -> Optional[str]:
    """Return why the candidate fails the quality gate, or None when it passes."""
    stem = candidate.question_text
    if not rules.min_stem_length <= len(stem) <= rules.max_stem_length:
        return f"stem length {len(stem)} outside {rules.min_stem_length}-{rules.max_stem_length}"
    if _has_placeholder(stem, rules):
        return "stem contains placeholder text"

    for label in OPTION_LABELS:
        text = getattr(candidate.options, label)
        if not rules.min_option_length <= len(text) <= rules.max_option_length:
            return f"option {label} length {len(text)} outside {rules.min_option_length}-{rules.max_option_length}"
        if _has_placeholder(text, rules):
            return f"option {label} contains placeholder text"

    if candidate.correct_answer not in OPTION_LABELS:
        return "correct answer is not an option label"
    if not candidate.categories:
        return "no categories"
    if not rules.min_year <= candidate.exam_year <= rules.max_year:
        return f"exam year {candidate.exam_year} out of range"
    if not candidate.intake:
        return "no intake"
    if candidate.confidence < rules.min_confidence:
        return f"confidence {candidate.confidence:.2f} below {rules.min_confidence}"
    return None


def is_question_valid(candidate: CandidateQuestion, rules: QualityRules = DEFAULT_RULES) -> bool:
    return rejection_reason(candidate, rules) is None


# ─── Confidence ────────────────────────────────────────────────────────────────

CONFIDENCE_FLOOR = 0.3
CONFIDENCE_CEILING = 0.95
_MAX_QUALITY_SCORE = 10
_QUALITY_BOOST = 0.25


def quality_score(candidate: CandidateQuestion, rules: QualityRules = DEFAULT_RULES) -> int:
    """Content quality signals, 0-10."""
    score = 0
    stem_length = len(candidate.question_text)
    if 50 <= stem_length <= 500:
        score += 2
    elif 20 <= stem_length <= 1000:
        score += 1

    sound_options = sum(
        1 for _, text in candidate.options.labelled() if 3 <= len(text) <= 200
    )
    score += min(3, sound_options)

    if candidate.correct_answer in OPTION_LABELS:
        score += 1
    if candidate.categories:
        score += 1
    if rules.min_year <= candidate.exam_year <= rules.max_year:
        score += 1
    if candidate.intake:
        score += 1
    if len(candidate.explanation) > 10:
        score += 1
    return score


def derive_confidence(candidate: CandidateQuestion, rules: QualityRules = DEFAULT_RULES) -> float:
    """
    Blend the model's self-reported confidence with the quality score.

    Up to +0.25 for a perfect score; the result is clamped to [0.3, 0.95] so
    a well-formed candidate never claims certainty.
    """
    boost = quality_score(candidate, rules) / _MAX_QUALITY_SCORE * _QUALITY_BOOST
    return round(max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEILING, candidate.confidence + boost)), 4)
