import pytest

from extraction.prompts import (
    NO_HINTS,
    Hints,
    PatternFilenameInference,
    build_extraction_prompt,
    infer_hints_from_text,
)
from extraction.vocabulary import DEFAULT_VOCABULARY, Vocabulary


@pytest.mark.parametrize(
    "name, expected",
    [
        ("MRCS-Sept-2023.pdf", Hints(year=2023, intake="september")),
        ("mrcs_january_2019_recall.pdf", Hints(year=2019, intake="january")),
        ("April-2021 paper.pdf", Hints(year=2021, intake="april-may")),
        ("may2018.pdf", Hints(year=2018, intake="april-may")),
        ("recalls 1995.pdf", Hints(year=1995, intake=None)),
        ("anatomy notes.pdf", NO_HINTS),
    ],
)
def test_filename_inference(name, expected):
    assert PatternFilenameInference().infer(name) == expected


def test_skip_marker_suppresses_all_hints():
    assert PatternFilenameInference().infer("MRCS-Question-Bank-Sept-2023.pdf") == NO_HINTS


def test_month_inside_a_word_is_not_an_intake():
    assert PatternFilenameInference().infer("mayo clinic 2020.pdf") == Hints(year=2020)


def test_filename_year_range_is_enforced():
    inference = PatternFilenameInference(year_range=(2010, 2030))
    assert inference.infer("recalls 1995.pdf").year is None


def test_custom_skip_markers():
    inference = PatternFilenameInference(skip_markers=("compendium",))
    assert inference.infer("compendium-2022.pdf") == NO_HINTS
    assert inference.infer("mrcs-question-bank-2022.pdf").year == 2022


class TestContentHints:
    def test_month_and_year(self):
        assert infer_hints_from_text("MRCS Part A, September 2022 sitting") == Hints(2022, "september")

    def test_abbreviated_month(self):
        assert infer_hints_from_text("Recall from Jan. 2016") == Hints(2016, "january")

    def test_bare_year(self):
        assert infer_hints_from_text("Collected in 2021 by candidates") == Hints(year=2021)

    def test_nothing_found(self):
        assert infer_hints_from_text("The phrenic nerve supplies the diaphragm.") == NO_HINTS
        assert infer_hints_from_text("") == NO_HINTS

    def test_intake_outside_vocabulary_is_dropped(self):
        vocab = Vocabulary(categories=("anatomy-thorax",), intakes=("january",))
        assert infer_hints_from_text("May 2019 paper", vocab) == Hints(year=2019)


class TestPrompt:
    def test_lists_the_whole_vocabulary(self):
        prompt = build_extraction_prompt("Some text", 3)
        for category in DEFAULT_VOCABULARY.categories:
            assert f"- {category}" in prompt
        for intake in DEFAULT_VOCABULARY.intakes:
            assert f"- {intake}" in prompt

    def test_carries_page_text_and_number(self):
        prompt = build_extraction_prompt("Which nerve supplies the diaphragm?", 12)
        assert "from page 12 of" in prompt
        assert "Which nerve supplies the diaphragm?" in prompt

    def test_hints_are_rendered_in_priority_slots(self):
        prompt = build_extraction_prompt(
            "text",
            1,
            content_hints=Hints(year=2022),
            filename_hints=Hints(year=2023, intake="september"),
        )
        assert "Detected in page text: 2022" in prompt
        assert "use the document name year: 2023" in prompt
        assert "use the document name intake: september" in prompt
        assert prompt.count("unknown") == 1

    def test_missing_hints_render_as_unknown(self):
        prompt = build_extraction_prompt("text", 1)
        assert "Detected in page text: unknown" in prompt
        assert prompt.count("unknown") == 4

    def test_year_range_is_rendered(self):
        prompt = build_extraction_prompt("text", 1, year_range=(1995, 2035))
        assert "between 1995-2035" in prompt

    def test_custom_vocabulary_example(self):
        vocab = Vocabulary(categories=("cardiology",), intakes=("spring",))
        prompt = build_extraction_prompt("text", 1, vocabulary=vocab)
        assert '"categories": ["cardiology"]' in prompt
        assert '"intake": "spring"' in prompt
        assert "anatomy-thorax\n" not in prompt
