"""
Pydantic schemas for the extraction pipeline.

CandidateQuestion   → one item recovered from a model response (pre-store)
ExistingQuestion    → a question already in the corpus
MergeDecision       → create / update / skip verdict for one candidate
JobState            → the persisted, versioned job record (resume point)
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from extraction.vocabulary import Vocabulary

OPTION_LABELS: Tuple[str, ...] = ("A", "B", "C", "D", "E")

DEFAULT_CONFIDENCE = 0.7
DEFAULT_YEAR_RANGE = (2000, 2030)

CURRENT_SCHEMA_VERSION = 2


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─── Enums ─────────────────────────────────────────────────────────────────────

class JobStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


class QuestionStatus(str, Enum):
    UNVERIFIED = "unverified"
    APPROVED = "approved"
    REJECTED = "rejected"


class MergeAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


class SkipReason(str, Enum):
    VERIFIED = "verified"
    EXISTING_BETTER = "existing is better/equal"


# ─── Questions ─────────────────────────────────────────────────────────────────

class QuestionOptions(BaseModel):
    """The five labelled answer options."""
    A: str
    B: str
    C: str
    D: str
    E: str

    @field_validator(*OPTION_LABELS, mode="before")
    @classmethod
    def _option_text(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("option text must be a string")
        return value.strip()

    def labelled(self) -> List[Tuple[str, str]]:
        return [(label, getattr(self, label)) for label in OPTION_LABELS]


def _context_vocabulary(info: ValidationInfo) -> Optional[Vocabulary]:
    if isinstance(info.context, dict):
        return info.context.get("vocabulary")
    return None


class CandidateQuestion(BaseModel):
    """
    One extracted MCQ as returned by the model.

    JSON keys follow the model's output format (question, correctAnswer,
    examYear); attribute names are snake_case. Vocabulary and year range are
    enforced when a validation context is supplied:

        CandidateQuestion.model_validate(item, context={"vocabulary": vocab})
    """
    model_config = ConfigDict(populate_by_name=True)

    question_text: str = Field(..., alias="question")
    options: QuestionOptions
    correct_answer: str = Field(..., alias="correctAnswer")
    categories: List[str] = Field(..., min_length=1)
    exam_year: int = Field(..., alias="examYear")
    intake: str
    explanation: str = ""
    confidence: float = DEFAULT_CONFIDENCE
    source_document: Optional[str] = Field(None, alias="sourceDocument")
    source_page: Optional[int] = Field(None, alias="sourcePage")

    @field_validator("question_text", mode="before")
    @classmethod
    def _stem(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("question must be a string")
        return value.strip()

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _answer_letter(cls, value: Any) -> str:
        letter = str(value or "").strip().upper()
        if letter not in OPTION_LABELS:
            raise ValueError(f"correct answer must be one of {', '.join(OPTION_LABELS)}")
        return letter

    @field_validator("categories")
    @classmethod
    def _known_categories(cls, value: List[str], info: ValidationInfo) -> List[str]:
        cleaned = [c.strip() for c in value]
        vocabulary = _context_vocabulary(info)
        if vocabulary is not None:
            unknown = [c for c in cleaned if not vocabulary.has_category(c)]
            if unknown:
                raise ValueError(f"unknown categories: {unknown}")
        return cleaned

    @field_validator("exam_year", mode="before")
    @classmethod
    def _not_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("examYear must be a number")
        return value

    @field_validator("exam_year")
    @classmethod
    def _year_in_range(cls, value: int, info: ValidationInfo) -> int:
        if isinstance(info.context, dict):
            low, high = info.context.get("year_range", DEFAULT_YEAR_RANGE)
            if not low <= value <= high:
                raise ValueError(f"examYear {value} outside {low}-{high}")
        return value

    @field_validator("intake")
    @classmethod
    def _known_intake(cls, value: str, info: ValidationInfo) -> str:
        value = value.strip()
        vocabulary = _context_vocabulary(info)
        if vocabulary is not None and not vocabulary.has_intake(value):
            raise ValueError(f"unknown intake: {value}")
        return value

    @field_validator("explanation", mode="before")
    @classmethod
    def _explanation(cls, value: Any) -> str:
        return value.strip() if isinstance(value, str) else ""

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return DEFAULT_CONFIDENCE
        return max(0.0, min(1.0, float(value)))

    @property
    def prompt_text(self) -> str:
        lines = [self.question_text]
        lines.extend(f"{label}. {text}" for label, text in self.options.labelled())
        return "\n".join(lines)


class ExistingQuestion(BaseModel):
    """A question already persisted in the record store."""
    model_config = ConfigDict(from_attributes=True)

    id: Union[int, str]
    question_text: str
    options: Dict[str, str] = Field(default_factory=dict)
    correct_answer: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    exam_year: Optional[int] = None
    intake: Optional[str] = None
    explanation: Optional[str] = None
    status: QuestionStatus = QuestionStatus.UNVERIFIED
    confidence: Optional[float] = None

    @property
    def is_verified(self) -> bool:
        return self.status == QuestionStatus.APPROVED


@dataclass(frozen=True)
class MergeDecision:
    action: MergeAction
    target_id: Optional[Union[int, str]] = None
    reason: Optional[SkipReason] = None
    similarity: float = 0.0

    @classmethod
    def create(cls) -> "MergeDecision":
        return cls(MergeAction.CREATE)

    @classmethod
    def update(cls, target_id: Union[int, str], similarity: float) -> "MergeDecision":
        return cls(MergeAction.UPDATE, target_id=target_id, similarity=similarity)

    @classmethod
    def skip(cls, reason: SkipReason, target_id: Union[int, str], similarity: float) -> "MergeDecision":
        return cls(MergeAction.SKIP, target_id=target_id, reason=reason, similarity=similarity)


# ─── Job options / state ───────────────────────────────────────────────────────

class ExtractionOptions(BaseModel):
    """Per-job configuration supplied with a start command."""
    start_page: Optional[int] = Field(None, ge=1, description="First page to process (1-based)")
    max_pages: Optional[int] = Field(None, ge=1, description="Maximum number of pages to process")
    overwrite: bool = Field(False, description="Update matches even when they are verified")
    model: Optional[str] = Field(None, description="Model name override")


class JobCounters(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    created: int = 0
    updated: int = 0
    skipped: int = 0
    verified_skipped: int = 0
    rejected: int = 0
    failed: int = 0
    store_failed: int = 0


# Version 1 payloads (the previous system's layout) → current aliases.
_LEGACY_KEYS = {
    "selectedPdf": "document",
    "processedPages": "cursor",
    "extractionId": "jobId",
    "startTime": "startedAt",
    "endTime": "endedAt",
}
_LEGACY_COUNTERS = {
    "extractedQuestions": "created",
    "updatedQuestions": "updated",
    "verifiedQuestions": "verifiedSkipped",
    "skippedQuestions": "skipped",
}
_NON_NULL_KEYS = ("startPage", "totalPages", "cursor", "endPage", "overwrite", "failedPages", "logs")


class JobState(BaseModel):
    """
    Persisted state of one extraction job.

    Serialized with camelCase aliases (see to_payload). `start_page` and
    `max_pages` always hold the configuration of the first run; a continuation
    only moves the cursor and swaps the job id.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    schema_version: int = CURRENT_SCHEMA_VERSION
    job_id: Optional[str] = None
    parent_job_id: Optional[str] = None
    document: str = ""
    status: JobStatus = JobStatus.IDLE
    model: Optional[str] = None
    total_pages: int = Field(0, ge=0)
    cursor: int = Field(0, ge=0)
    start_page: int = Field(1, ge=1)
    max_pages: Optional[int] = None
    end_page: int = Field(0, ge=0)
    overwrite: bool = False
    failed_pages: List[int] = Field(default_factory=list)
    questions_per_page: Dict[int, int] = Field(default_factory=dict)
    counters: JobCounters = Field(default_factory=JobCounters)
    logs: List[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    error: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _migrate_legacy(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for old, new in _LEGACY_KEYS.items():
            if old in data and new not in data:
                data[new] = data.pop(old)
        if not isinstance(data.get("counters"), dict):
            counters = {}
            for old, new in _LEGACY_COUNTERS.items():
                if isinstance(data.get(old), int):
                    counters[new] = data[old]
            data["counters"] = counters
        for key in _NON_NULL_KEYS:
            if key in data and data[key] is None:
                data.pop(key)
        data["schemaVersion"] = CURRENT_SCHEMA_VERSION
        data.pop("schema_version", None)
        return data

    @model_validator(mode="after")
    def _derive_end_page(self) -> "JobState":
        if self.end_page == 0 and self.total_pages:
            span = self.max_pages or self.total_pages
            self.end_page = min(self.start_page + span - 1, self.total_pages)
        self.cursor = min(self.cursor, self.total_pages) if self.total_pages else self.cursor
        return self

    # ── Derived values ──

    @property
    def progress(self) -> int:
        if not self.total_pages:
            return 0
        return round(self.cursor / self.total_pages * 100)

    @property
    def duration_seconds(self) -> float:
        if not self.started_at:
            return 0.0
        end = self.ended_at or utcnow()
        return max(0.0, (end - self.started_at).total_seconds())

    @property
    def yield_count(self) -> int:
        return sum(self.questions_per_page.values())

    # ── Mutation helpers (single writer: the orchestrator) ──

    def append_log(self, message: str, limit: Optional[int] = None) -> None:
        self.logs.append(f"[{utcnow().isoformat()}] {message}")
        if limit and len(self.logs) > limit:
            del self.logs[: len(self.logs) - limit]

    def record_failed_page(self, page_number: int) -> None:
        if page_number not in self.failed_pages:
            self.failed_pages.append(page_number)
            self.failed_pages.sort()

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def statistics(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "document": self.document,
            "jobId": self.job_id,
            "progress": self.progress,
            "cursor": self.cursor,
            "totalPages": self.total_pages,
            "startPage": self.start_page,
            "endPage": self.end_page,
            "failedPages": list(self.failed_pages),
            "questionsPerPage": dict(self.questions_per_page),
            "counters": self.counters.model_dump(by_alias=True),
            "duration": self.duration_seconds,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "endedAt": self.ended_at.isoformat() if self.ended_at else None,
            "error": self.error,
        }
