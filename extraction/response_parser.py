"""
Response recovery parser.

The model is asked for a bare JSON array but routinely wraps it in prose or
code fences, leaves trailing commas, forgets commas between objects, puts raw
quotes inside option text or stops mid-array when it runs out of tokens.
parse_model_response() works through a fixed list of recovery attempts and
returns the first one that yields a JSON array. It never raises.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

import json_repair
from pydantic import ValidationError

from extraction.schemas import DEFAULT_YEAR_RANGE, CandidateQuestion
from extraction.vocabulary import DEFAULT_VOCABULARY, Vocabulary

log = logging.getLogger(__name__)

PREVIEW_CHARS = 200


@dataclass
class ParseOutcome:
    candidates: List[CandidateQuestion] = field(default_factory=list)
    recovered: bool = False
    strategy: Optional[str] = None
    dropped: int = 0


# ─── Structural repairs ────────────────────────────────────────────────────────

_FENCE_RE = re.compile(r"```(?:json|JSON)?")
_TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")
_MISSING_OBJECT_COMMA_RE = re.compile(r"}\s*{")
_MISSING_ARRAY_COMMA_RE = re.compile(r"]\s*\[")

# An option value runs from `"X": "` to the quote that precedes the next option
# key or the closing brace of the options object.
_OPTION_VALUE_RE = re.compile(
    r'("[A-E]"\s*:\s*")(.*?)("(?=\s*(?:,\s*"[A-E]"\s*:|\})))',
    re.DOTALL,
)
_UNESCAPED_QUOTE_RE = re.compile(r'(?<!\\)"')


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text)


def _remove_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def _insert_missing_commas(text: str) -> str:
    text = _MISSING_OBJECT_COMMA_RE.sub("},{", text)
    return _MISSING_ARRAY_COMMA_RE.sub("],[", text)


def _escape_option_quotes(text: str) -> str:
    def _fix(match: "re.Match[str]") -> str:
        inner = _UNESCAPED_QUOTE_RE.sub(r'\\"', match.group(2))
        return match.group(1) + inner + match.group(3)

    return _OPTION_VALUE_RE.sub(_fix, text)


def _close_truncated_array(text: str) -> str:
    """
    Cut after the last complete top-level object and close the array.

    Only applies when the array opened by the first `[` never closes; text
    whose first array is balanced is returned unchanged.
    """
    start = text.find("[")
    if start == -1:
        return text

    depth = 0
    in_string = False
    escaped = False
    last_object_end = -1
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "[{":
            depth += 1
        elif ch in "]}":
            depth -= 1
            if depth == 0:
                return text
            if depth == 1 and ch == "}":
                last_object_end = i

    if last_object_end == -1:
        return text
    return text[start:last_object_end + 1] + "]"


_REPAIRS: List[Tuple[str, Callable[[str], str]]] = [
    ("plain", lambda text: text),
    ("strip_fences", _strip_fences),
    ("trailing_commas", _remove_trailing_commas),
    ("missing_commas", _insert_missing_commas),
    ("embedded_quotes", _escape_option_quotes),
    ("truncated_array", _close_truncated_array),
]


def _has_objects(data: Any) -> bool:
    return isinstance(data, list) and any(isinstance(item, dict) for item in data)


def _load_array(text: str) -> Optional[list]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    # A bracketed aside in prose ("[1]", "[see below]") is not an answer.
    if data == [] or _has_objects(data):
        return data
    return None


def repair_and_load(fragment: str, lenient: bool = True) -> Tuple[Optional[list], Optional[str]]:
    """
    Apply the structural repairs cumulatively, trying to parse after each.
    With `lenient`, json_repair gets the fully repaired text as a last resort.

    Only an empty array or one holding at least one object counts.
    Returns (array, repair_name) or (None, None).
    """
    text = fragment
    for name, repair in _REPAIRS:
        text = repair(text)
        data = _load_array(text)
        if data is not None:
            return data, name

    if not lenient:
        return None, None
    try:
        data = json_repair.loads(text)
    except Exception as e:
        log.debug("json_repair gave up: %s", e)
        return None, None
    if _has_objects(data):
        return data, "json_repair"
    return None, None


# ─── Extraction strategies ─────────────────────────────────────────────────────

_REGEX_STRATEGIES = [
    ("fenced_block", re.compile(r"```(?:json|JSON)?\s*(\[[\s\S]*?\])\s*```")),
    ("greedy_array", re.compile(r"(\[[\s\S]*\])")),
    ("minimal_array", re.compile(r"(\[\s*\{[\s\S]*?\}\s*\])")),
]


def _bracket_fragments(raw: str) -> List[str]:
    first = raw.find("[")
    if first == -1:
        return []
    last = raw.rfind("]")
    fragments = []
    if last > first:
        fragments.append(raw[first:last + 1])
    # The unterminated tail is what a truncated response leaves behind.
    tail = raw[first:]
    if tail not in fragments:
        fragments.append(tail)
    return fragments


def _recover_array(raw: str) -> Tuple[Optional[list], Optional[str]]:
    fragments = _bracket_fragments(raw)
    for fragment in fragments:
        data, repair = repair_and_load(fragment, lenient=False)
        if data is not None:
            return data, f"brackets/{repair}"

    # The greedy capture is the bracket slice again, so json_repair on the
    # slice happens there, after the fenced block has had its chance.
    for name, pattern in _REGEX_STRATEGIES:
        match = pattern.search(raw)
        if not match:
            continue
        data, repair = repair_and_load(match.group(1))
        if data is not None:
            return data, f"{name}/{repair}"

    # Unterminated tail of a truncated response
    if fragments:
        data, repair = repair_and_load(fragments[-1])
        if data is not None:
            return data, f"brackets/{repair}"

    return None, None


def _preview(raw: str) -> str:
    if len(raw) <= PREVIEW_CHARS * 2:
        return repr(raw)
    return f"head={raw[:PREVIEW_CHARS]!r} tail={raw[-PREVIEW_CHARS:]!r}"


# ─── Public API ────────────────────────────────────────────────────────────────

def parse_model_response(
    raw: Any,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
    year_range: Tuple[int, int] = DEFAULT_YEAR_RANGE,
) -> ParseOutcome:
    """
    Recover candidate questions from raw model output.

    Elements that fail schema validation (missing options, unknown category
    or intake, year out of range) are dropped and counted, never repaired.
    """
    if not isinstance(raw, str):
        raw = "" if raw is None else str(raw)

    try:
        data, strategy = _recover_array(raw)
    except Exception as e:
        log.warning("Response recovery failed unexpectedly: %s", e)
        data, strategy = None, None

    if data is None:
        log.warning(
            "No JSON array recovered from model response (length=%d) %s",
            len(raw), _preview(raw),
        )
        return ParseOutcome()

    outcome = ParseOutcome(recovered=True, strategy=strategy)
    context = {"vocabulary": vocabulary, "year_range": year_range}
    for item in data:
        if not isinstance(item, dict):
            outcome.dropped += 1
            continue
        try:
            outcome.candidates.append(CandidateQuestion.model_validate(item, context=context))
        except (ValidationError, TypeError, ValueError):
            outcome.dropped += 1

    if strategy != "brackets/plain":
        log.info("Recovered model response via %s", strategy)
    if outcome.dropped:
        log.debug("Dropped %d element(s) failing schema validation", outcome.dropped)
    return outcome
