"""
Extraction prompt and year/intake hint inference.

Hints are priority-ordered for the model: what the page itself says first,
then what the document name suggests, then "estimate from context".
Document-name inference is a strategy object so deployments with their own
naming conventions can swap it out.
"""

import re
from dataclasses import dataclass
from typing import Optional, Pattern, Protocol, Sequence, Tuple

from extraction.vocabulary import DEFAULT_VOCABULARY, Vocabulary

SYSTEM_PROMPT = (
    "You are an AI assistant specialized in extracting medical exam questions from PDF text. "
    "Output only what is asked."
)


@dataclass(frozen=True)
class Hints:
    year: Optional[int] = None
    intake: Optional[str] = None


NO_HINTS = Hints()


# ─── Keyword tables ────────────────────────────────────────────────────────────

# Letters on either side would make the match part of another word; digits,
# spaces, dashes and underscores are all fine separators.
def _keyword(words: str) -> Pattern:
    return re.compile(rf"(?<![a-z])(?:{words})(?![a-z])", re.IGNORECASE)


DEFAULT_INTAKE_KEYWORDS: Tuple[Tuple[Pattern, str], ...] = (
    (_keyword("january|jan"), "january"),
    (_keyword("april|may"), "april-may"),
    (_keyword("september|sept"), "september"),
)

DEFAULT_YEAR_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(r"(?<!\d)(20[0-3]\d)(?!\d)"),
    re.compile(r"(?<!\d)(19[89]\d)(?!\d)"),
)

# Month followed by a year inside page text ("September 2022", "Jan. 2016").
_CONTENT_SITTING_RE = re.compile(
    r"(?<![a-z])(january|jan|april|may|september|sept)\.?,?\s+(20[0-3]\d)(?!\d)",
    re.IGNORECASE,
)
_MONTH_TO_INTAKE = {
    "january": "january",
    "jan": "january",
    "april": "april-may",
    "may": "april-may",
    "september": "september",
    "sept": "september",
}


# ─── Inference ─────────────────────────────────────────────────────────────────

def infer_hints_from_text(text: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> Hints:
    """Year/intake stated in the page content, if any."""
    match = _CONTENT_SITTING_RE.search(text or "")
    if match:
        intake = _MONTH_TO_INTAKE[match.group(1).lower()]
        return Hints(
            year=int(match.group(2)),
            intake=intake if vocabulary.has_intake(intake) else None,
        )
    year = DEFAULT_YEAR_PATTERNS[0].search(text or "")
    return Hints(year=int(year.group(1))) if year else NO_HINTS


class FilenameInference(Protocol):
    def infer(self, document_name: str) -> Hints: ...


@dataclass(frozen=True)
class PatternFilenameInference:
    """
    Regex/keyword driven inference from a document name.

    Names containing any of `skip_markers` (generic banks mixing many sittings)
    yield no hints at all.
    """
    year_patterns: Sequence[Pattern] = DEFAULT_YEAR_PATTERNS
    intake_keywords: Sequence[Tuple[Pattern, str]] = DEFAULT_INTAKE_KEYWORDS
    skip_markers: Tuple[str, ...] = ("mrcs-question-bank",)
    year_range: Tuple[int, int] = (1990, 2030)

    def infer(self, document_name: str) -> Hints:
        name = (document_name or "").lower()
        if not name or any(marker in name for marker in self.skip_markers):
            return NO_HINTS
        return Hints(year=self._year(name), intake=self._intake(name))

    def _year(self, name: str) -> Optional[int]:
        low, high = self.year_range
        for pattern in self.year_patterns:
            match = pattern.search(name)
            if match and low <= int(match.group(1)) <= high:
                return int(match.group(1))
        return None

    def _intake(self, name: str) -> Optional[str]:
        for pattern, intake in self.intake_keywords:
            if pattern.search(name):
                return intake
        return None


# ─── Prompt ────────────────────────────────────────────────────────────────────

EXTRACTION_PROMPT = """You are an AI assistant specialized in extracting medical exam questions from PDF text.

TASK: Extract all multiple-choice questions from the following text from page {page_number} of an MRCS exam document.

CRITICAL REQUIREMENTS:
1. EVERY question MUST have exactly 5 options (A, B, C, D, E)
2. If a question has fewer than 5 options, add appropriate WRONG answer options based on the topic/subject
3. DO NOT add random options - make them plausible but incorrect
4. Ensure all options are relevant to the question topic
5. DO NOT extract incomplete or meaningless questions
6. Questions must be complete and well-formed
7. Options must be meaningful and relevant to the question

CORRECT ANSWER DETECTION:
- Look for correct answers marked with: ✓, ✅, (correct), (CORRECT), green color, yellow highlight, bold text, or any other indication
- If no clear indication is found, use your medical knowledge to determine the most likely correct answer
- Always return a single letter (A, B, C, D, or E) as the correctAnswer

QUALITY REQUIREMENTS:
- Questions must be complete sentences (not fragments)
- Options must be distinct and plausible
- Skip incomplete or poorly formatted questions
- Ensure all text is properly extracted (no "..." or "???")

CATEGORIES (use only these preseeded categories - you can assign multiple categories if the question covers multiple topics):
{categories}

CATEGORY GUIDELINES:
- Anatomy questions: Use specific anatomy categories (thorax, abdomen, superior extremity, inferior extremity, head-neck-brain)
- Physiology, pathology, microbiology and biostatistics questions: use the category of the same name
- Clinical questions: Use appropriate clinical categories based on the medical specialty
- If a question covers multiple topics, assign multiple categories

INTAKES (use only these preseeded intakes):
{intakes}

YEAR DETECTION - PRIORITY ORDER:
1. FIRST: Look for year patterns in the page text (e.g. "2023", "September 2022", "January 2016"). Detected in page text: {content_year}
2. SECOND: If no year is found in the text, use the document name year: {filename_year}
3. THIRD: If neither is available, use a reasonable estimate based on content context
- Year should be between {min_year}-{max_year}

INTAKE DETECTION - PRIORITY ORDER:
1. FIRST: Look for intake patterns in the page text (e.g. "September 2022", "April 2024", "May exam"). Detected in page text: {content_intake}
2. SECOND: If no intake is found in the text, use the document name intake: {filename_intake}
3. THIRD: If neither is available, use a reasonable estimate based on content context
- Map patterns to valid intakes: January/Jan → "january", April/May → "april-may", September/Sept → "september"

OUTPUT FORMAT: Return a JSON array with this exact structure:
[
  {{
    "question": "The complete question text here",
    "options": {{
      "A": "Complete option A text",
      "B": "Complete option B text",
      "C": "Complete option C text",
      "D": "Complete option D text",
      "E": "Complete option E text"
    }},
    "correctAnswer": "A",
    "categories": ["{example_category}"],
    "examYear": 2023,
    "intake": "{example_intake}",
    "explanation": "Explanation if available",
    "confidence": 0.85
  }}
]

CONFIDENCE SCORING GUIDELINES:
- 0.9-0.95: Excellent quality, complete question with clear correct answer
- 0.8-0.89: Very good quality, well-formed question with good options
- 0.7-0.79: Good quality, complete question with minor issues
- 0.6-0.69: Acceptable quality, some uncertainty in extraction
- 0.5-0.59: Lower quality, incomplete or unclear elements
Always provide a confidence score between 0.5 and 0.95 based on question quality.

TEXT TO ANALYZE:
{text}

Return only the JSON array, no additional text."""


def _hint(value) -> str:
    return str(value) if value else "unknown"


def build_extraction_prompt(
    text: str,
    page_number: int,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
    content_hints: Hints = NO_HINTS,
    filename_hints: Hints = NO_HINTS,
    year_range: Tuple[int, int] = (2000, 2030),
) -> str:
    return EXTRACTION_PROMPT.format(
        page_number=page_number,
        categories="\n".join(f"   - {c}" for c in vocabulary.categories),
        intakes="\n".join(f"   - {i}" for i in vocabulary.intakes),
        content_year=_hint(content_hints.year),
        filename_year=_hint(filename_hints.year),
        content_intake=_hint(content_hints.intake),
        filename_intake=_hint(filename_hints.intake),
        min_year=year_range[0],
        max_year=year_range[1],
        example_category=vocabulary.categories[0] if vocabulary.categories else "",
        example_intake=vocabulary.intakes[0] if vocabulary.intakes else "",
        text=text,
    )
