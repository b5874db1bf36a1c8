"""
Deduplication & merge policy.

A candidate is "the same question" as a stored one when the word-set Jaccard
similarity of their stems exceeds the configured threshold. What happens then
depends on the stored record's review status:

    approved            → SKIP (verified), unless the job runs with overwrite
    unverified/rejected → UPDATE when the candidate is clearly better,
                          otherwise SKIP (existing is better/equal)
"""

import logging
from typing import Optional, Set, Tuple

from extraction.config import MergePolicy
from extraction.question_store import QuestionStore
from extraction.schemas import CandidateQuestion, ExistingQuestion, MergeDecision, SkipReason

log = logging.getLogger(__name__)

PREFIX_CHARS = 100
SEARCH_LIMIT = 10

DEFAULT_POLICY = MergePolicy()


def _words(text: str) -> Set[str]:
    return set((text or "").lower().split())


def similarity(a: str, b: str) -> float:
    """|A ∩ B| / |A ∪ B| over lower-cased whitespace tokens."""
    words_a, words_b = _words(a), _words(b)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def find_match(
    candidate: CandidateQuestion,
    store: QuestionStore,
    policy: MergePolicy = DEFAULT_POLICY,
) -> Optional[Tuple[ExistingQuestion, float]]:
    """Best stored question scoring above the similarity threshold, if any."""
    prefix = candidate.question_text[:PREFIX_CHARS]
    best: Optional[Tuple[ExistingQuestion, float]] = None
    for existing in store.find_similar(prefix, limit=SEARCH_LIMIT):
        score = similarity(candidate.question_text, existing.question_text)
        if score > policy.similarity_threshold and (best is None or score > best[1]):
            best = (existing, score)
    return best


def decide(
    candidate: CandidateQuestion,
    existing: ExistingQuestion,
    score: float,
    overwrite: bool = False,
    policy: MergePolicy = DEFAULT_POLICY,
) -> MergeDecision:
    """Merge verdict for a candidate already known to match `existing`."""
    if overwrite:
        return MergeDecision.update(existing.id, score)
    if existing.is_verified:
        return MergeDecision.skip(SkipReason.VERIFIED, existing.id, score)

    existing_confidence = existing.confidence or 0.0
    more_confident = candidate.confidence > existing_confidence + policy.confidence_margin
    more_complete = len(candidate.question_text) >= len(existing.question_text) * policy.length_ratio
    if more_confident or more_complete:
        return MergeDecision.update(existing.id, score)
    return MergeDecision.skip(SkipReason.EXISTING_BETTER, existing.id, score)


def resolve(
    candidate: CandidateQuestion,
    store: QuestionStore,
    overwrite: bool = False,
    policy: MergePolicy = DEFAULT_POLICY,
) -> MergeDecision:
    match = find_match(candidate, store, policy)
    if match is None:
        return MergeDecision.create()
    existing, score = match
    decision = decide(candidate, existing, score, overwrite, policy)
    log.debug(
        "Candidate matched question %s (similarity=%.2f) → %s",
        existing.id, score, decision.action.value,
    )
    return decision
