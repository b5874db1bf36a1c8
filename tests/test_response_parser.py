"""Response recovery: prose, fences, broken JSON, schema filtering, fuzzing."""

import json
import logging
import random

import pytest

from conftest import make_item
from extraction.response_parser import parse_model_response, repair_and_load
from extraction.vocabulary import Vocabulary


def _dump(candidate) -> dict:
    return candidate.model_dump(by_alias=True, exclude={"source_document", "source_page"})


class TestRecovery:
    def test_prose_and_code_fence_around_one_object(self):
        item = make_item()
        raw = "Sure! ```json\n" + json.dumps([item]) + "\n```"

        outcome = parse_model_response(raw)

        assert outcome.recovered
        assert len(outcome.candidates) == 1
        assert _dump(outcome.candidates[0]) == item

    def test_plain_array(self):
        outcome = parse_model_response(json.dumps([make_item(), make_item(intake="september")]))
        assert outcome.strategy == "brackets/plain"
        assert [c.intake for c in outcome.candidates] == ["january", "september"]

    def test_empty_array_is_recovered_with_no_candidates(self):
        outcome = parse_model_response("[]")
        assert outcome.recovered
        assert outcome.candidates == []

    def test_trailing_commas(self):
        body = json.dumps([make_item()], indent=2)
        raw = body.replace('"E": "Long thoracic nerve"', '"E": "Long thoracic nerve",')
        raw = raw[: raw.rfind("]")] + ",]"

        outcome = parse_model_response(raw)

        assert len(outcome.candidates) == 1

    def test_objects_missing_separator_comma(self):
        first = json.dumps(make_item())
        second = json.dumps(make_item(question="Which muscle is the chief muscle of inspiration at rest?"))
        raw = f"[{first}\n{second}]"

        outcome = parse_model_response(raw)

        assert len(outcome.candidates) == 2

    def test_unescaped_quotes_inside_option_text(self):
        raw = json.dumps([make_item()]).replace(
            '"A": "Phrenic nerve"', '"A": "The "phrenic" nerve"'
        )

        outcome = parse_model_response(raw)

        assert len(outcome.candidates) == 1
        assert outcome.candidates[0].options.A == 'The "phrenic" nerve'

    def test_truncated_array_keeps_complete_objects(self):
        complete = json.dumps(make_item())
        raw = f'[{complete}, {{"question": "Which artery supplies the SA node in most'

        outcome = parse_model_response(raw)

        assert outcome.recovered
        assert len(outcome.candidates) == 1
        assert outcome.candidates[0].question_text == make_item()["question"]

    def test_no_array_at_all(self):
        outcome = parse_model_response("I could not find any questions on this page.")
        assert not outcome.recovered
        assert outcome.candidates == []

    def test_non_string_input(self):
        assert parse_model_response(None).candidates == []
        assert parse_model_response(42).candidates == []


class TestFallbackStrategies:
    def test_bracketed_aside_before_fenced_block(self):
        raw = "Here are the questions [1 found]:\n```json\n" + json.dumps([make_item()]) + "\n```"

        outcome = parse_model_response(raw)

        assert outcome.strategy == "fenced_block/plain"
        assert [_dump(c) for c in outcome.candidates] == [make_item()]
        assert outcome.dropped == 0

    def test_citation_before_bare_array(self):
        outcome = parse_model_response("See [1]. " + json.dumps([make_item()]))

        assert outcome.strategy == "minimal_array/plain"
        assert len(outcome.candidates) == 1
        assert outcome.dropped == 0

    def test_single_quoted_objects_need_json_repair(self):
        raw = "Extracted: " + str([make_item()])

        outcome = parse_model_response(raw)

        assert outcome.strategy == "greedy_array/json_repair"
        assert [_dump(c) for c in outcome.candidates] == [make_item()]

    def test_balanced_array_is_not_treated_as_truncated(self):
        raw = "[1] " + json.dumps([make_item()])
        assert repair_and_load(raw, lenient=False) == (None, None)

    def test_array_without_objects_is_not_recovered(self):
        outcome = parse_model_response("Answers: [1, 2, 3]")
        assert not outcome.recovered

    def test_unrecoverable_payload_logs_bounded_preview(self, caplog):
        raw = "HEAD" + "m" * 5000 + "TAIL"

        with caplog.at_level(logging.WARNING, logger="extraction.response_parser"):
            outcome = parse_model_response(raw)

        assert not outcome.recovered
        message = caplog.records[-1].getMessage()
        assert f"length={len(raw)}" in message
        assert "head='HEAD" in message
        assert "TAIL'" in message
        assert len(message) < 1000


class TestSchemaFiltering:
    def test_unknown_category_is_dropped(self):
        raw = json.dumps([make_item(categories=["astrology"]), make_item()])
        outcome = parse_model_response(raw)
        assert len(outcome.candidates) == 1
        assert outcome.dropped == 1

    def test_unknown_intake_is_dropped(self):
        outcome = parse_model_response(json.dumps([make_item(intake="june")]))
        assert outcome.candidates == []
        assert outcome.dropped == 1

    def test_year_outside_range_is_dropped(self):
        outcome = parse_model_response(json.dumps([make_item(examYear=1995)]))
        assert outcome.dropped == 1

    def test_year_range_is_configurable(self):
        outcome = parse_model_response(json.dumps([make_item(examYear=1995)]), year_range=(1990, 2030))
        assert len(outcome.candidates) == 1

    def test_missing_option_is_dropped(self):
        item = make_item()
        del item["options"]["E"]
        assert parse_model_response(json.dumps([item])).dropped == 1

    def test_bad_answer_letter_is_dropped(self):
        assert parse_model_response(json.dumps([make_item(correctAnswer="F")])).dropped == 1

    def test_lowercase_answer_letter_is_normalised(self):
        outcome = parse_model_response(json.dumps([make_item(correctAnswer=" b ")]))
        assert outcome.candidates[0].correct_answer == "B"

    def test_empty_categories_are_dropped(self):
        assert parse_model_response(json.dumps([make_item(categories=[])])).dropped == 1

    def test_non_object_elements_are_dropped(self):
        outcome = parse_model_response(json.dumps(["text", 3, make_item()]))
        assert len(outcome.candidates) == 1
        assert outcome.dropped == 2

    def test_custom_vocabulary(self):
        vocab = Vocabulary(categories=("cardiology",), intakes=("spring",))
        raw = json.dumps([make_item(categories=["cardiology"], intake="spring"), make_item()])
        outcome = parse_model_response(raw, vocabulary=vocab)
        assert [c.categories for c in outcome.candidates] == [["cardiology"]]

    def test_missing_confidence_defaults(self):
        item = make_item()
        del item["confidence"]
        assert parse_model_response(json.dumps([item])).candidates[0].confidence == 0.7

    def test_confidence_is_clamped(self):
        outcome = parse_model_response(json.dumps([make_item(confidence=3)]))
        assert outcome.candidates[0].confidence == 1.0


class TestNeverThrows:
    def test_truncations_of_valid_payload(self):
        raw = "Here you go:\n```json\n" + json.dumps([make_item(), make_item()], indent=2) + "\n```"
        for cut in range(0, len(raw), 7):
            outcome = parse_model_response(raw[:cut])
            assert isinstance(outcome.candidates, list)

    @pytest.mark.parametrize("seed", range(5))
    def test_injected_noise(self, seed):
        rng = random.Random(seed)
        chars = list(json.dumps([make_item(), make_item()]))
        for _ in range(25):
            chars.insert(rng.randrange(len(chars)), rng.choice('[]{}",:\\'))
        outcome = parse_model_response("".join(chars))
        assert isinstance(outcome.candidates, list)

    @pytest.mark.parametrize("raw", ["", "[", "]", "[{", "}{", "[[[[", '"', "```", "[}" * 50, "[" * 5000])
    def test_degenerate_inputs(self, raw):
        assert isinstance(parse_model_response(raw).candidates, list)


def test_repair_and_load_strict_mode_skips_json_repair():
    assert repair_and_load('[{"a": 1', lenient=False) == (None, None)


def test_prompt_text_lists_stem_then_options():
    candidate = parse_model_response(json.dumps([make_item()])).candidates[0]
    lines = candidate.prompt_text.splitlines()
    assert lines[0] == make_item()["question"]
    assert lines[1:] == [
        "A. Phrenic nerve",
        "B. Vagus nerve",
        "C. Intercostal nerve",
        "D. Accessory nerve",
        "E. Long thoracic nerve",
    ]
