import pytest

from conftest import make_candidate
from extraction.validator import QualityRules, derive_confidence, is_question_valid, quality_score, rejection_reason


def test_well_formed_candidate_passes():
    assert is_question_valid(make_candidate())
    assert rejection_reason(make_candidate()) is None


def test_short_stem_is_rejected():
    assert "stem length" in rejection_reason(make_candidate(question="Which nerve?"))


def test_overlong_stem_is_rejected():
    assert not is_question_valid(make_candidate(question="x" * 2001))


def test_placeholder_in_stem_is_rejected():
    candidate = make_candidate(question="Which of the following nerves ... supplies the diaphragm?")
    assert rejection_reason(candidate) == "stem contains placeholder text"


def test_question_marks_placeholder_is_rejected():
    assert not is_question_valid(make_candidate(question="Which ??? supplies the diaphragm muscle?"))


def test_one_short_option_is_rejected():
    item_options = dict(make_candidate().options.model_dump(), C="No")
    assert rejection_reason(make_candidate(options=item_options)).startswith("option C")


def test_placeholder_option_is_rejected():
    item_options = dict(make_candidate().options.model_dump(), E="???")
    assert not is_question_valid(make_candidate(options=item_options))


def test_low_confidence_is_rejected():
    assert not is_question_valid(make_candidate(confidence=0.2))


def test_year_range_comes_from_rules():
    candidate = make_candidate(examYear=2031)
    assert not is_question_valid(candidate)
    assert is_question_valid(candidate, QualityRules(max_year=2035))


class TestDeriveConfidence:
    def test_complete_candidate_scores_full_marks(self):
        assert quality_score(make_candidate()) == 10

    def test_strong_candidate_is_capped_below_certainty(self):
        assert derive_confidence(make_candidate(confidence=0.85)) == 0.95
        assert derive_confidence(make_candidate(confidence=1.0)) == 0.95

    def test_missing_explanation_costs_a_point(self):
        candidate = make_candidate(confidence=0.5, explanation="")
        assert quality_score(candidate) == 9
        assert derive_confidence(candidate) == pytest.approx(0.725)

    def test_weak_candidate_is_floored(self):
        candidate = make_candidate(confidence=0.0, question="Which nerve supplies the diaphragm?", explanation="")
        assert quality_score(candidate) == 8
        assert derive_confidence(candidate) == 0.3

    def test_year_signal_follows_rules(self):
        candidate = make_candidate(examYear=1995)
        assert quality_score(candidate) == 9
        assert quality_score(candidate, QualityRules(min_year=1990)) == 10
