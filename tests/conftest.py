"""Shared fixtures and in-memory collaborators for the extraction test suite."""

import asyncio
import logging
import os
import re
import sys
from itertools import count
from typing import Dict, List, Optional, Union

# Keep the module-level engine off Postgres while tests import database.*
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import crud, models  # noqa: F401
from database.database import Base
from extraction.config import ExtractionSettings
from extraction.errors import DocumentUnavailableError
from extraction.schemas import CandidateQuestion, ExistingQuestion, QuestionStatus

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
    force=True,
)


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

def make_item(**overrides) -> dict:
    """A well-formed question object as the model would emit it."""
    item = {
        "question": "Which nerve supplies the diaphragm and arises from C3, C4 and C5?",
        "options": {
            "A": "Phrenic nerve",
            "B": "Vagus nerve",
            "C": "Intercostal nerve",
            "D": "Accessory nerve",
            "E": "Long thoracic nerve",
        },
        "correctAnswer": "A",
        "categories": ["anatomy-thorax"],
        "examYear": 2023,
        "intake": "january",
        "explanation": "The phrenic nerve (C3-C5) keeps the diaphragm alive.",
        "confidence": 0.85,
    }
    item.update(overrides)
    return item


def make_candidate(**overrides) -> CandidateQuestion:
    return CandidateQuestion.model_validate(make_item(**overrides))


PAGE_RE = re.compile(r"from page (\d+) of")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeTextSource:
    def __init__(self, documents: Optional[Dict[str, List[str]]] = None):
        self.documents = documents or {}
        self.text_calls: List[int] = []

    def get_page_count(self, document: str) -> int:
        if document not in self.documents:
            raise DocumentUnavailableError(f"Document not found: {document}")
        return len(self.documents[document])

    def get_page_text(self, document: str, page_number: int) -> str:
        if document not in self.documents:
            raise DocumentUnavailableError(f"Document not found: {document}")
        self.text_calls.append(page_number)
        return self.documents[document][page_number - 1]

    def list_documents(self) -> List[str]:
        return sorted(self.documents)


Response = Union[str, Exception]


class FakeModelClient:
    """Answers by page number (parsed from the prompt); `default` otherwise."""

    def __init__(self, responses: Optional[Dict[int, Response]] = None, default: Response = "[]"):
        self.responses = responses or {}
        self.default = default
        self.calls: List[dict] = []
        self.healthy = True
        # page → (entered, release) for holding a page in flight
        self.gates: Dict[int, tuple] = {}

    def hold(self, page: int):
        entered, release = asyncio.Event(), asyncio.Event()
        self.gates[page] = (entered, release)
        return entered, release

    async def generate(self, prompt, model, *, temperature, top_p, max_tokens):
        match = PAGE_RE.search(prompt)
        page = int(match.group(1)) if match else None
        self.calls.append({
            "page": page, "model": model, "temperature": temperature,
            "top_p": top_p, "max_tokens": max_tokens,
        })
        if page in self.gates:
            entered, release = self.gates[page]
            entered.set()
            await release.wait()
        response = self.responses.get(page, self.default)
        if isinstance(response, Exception):
            raise response
        return response

    async def is_healthy(self) -> bool:
        return self.healthy


class FakeQuestionStore:
    """Dict-backed record store with the same prefix search semantics as SQL."""

    def __init__(self):
        self.records: Dict[int, ExistingQuestion] = {}
        self._ids = count(1)
        self.created: List[CandidateQuestion] = []
        self.updated: List[tuple] = []
        self.fail_on_create = False

    def add_existing(self, question_text: str, status=QuestionStatus.UNVERIFIED, confidence=None) -> int:
        qid = next(self._ids)
        self.records[qid] = ExistingQuestion(
            id=qid, question_text=question_text, status=status, confidence=confidence,
        )
        return qid

    def find_similar(self, stem_prefix: str, limit: int = 10) -> List[ExistingQuestion]:
        prefix = stem_prefix.lower()
        hits = [r for r in self.records.values() if prefix in r.question_text.lower()]
        return hits[:limit]

    def create(self, candidate: CandidateQuestion) -> int:
        if self.fail_on_create:
            raise RuntimeError("database is locked")
        qid = next(self._ids)
        self.records[qid] = ExistingQuestion(
            id=qid, question_text=candidate.question_text, confidence=candidate.confidence,
        )
        self.created.append(candidate)
        return qid

    def update(self, question_id, candidate: CandidateQuestion) -> None:
        existing = self.records[question_id]
        self.records[question_id] = existing.model_copy(
            update={"question_text": candidate.question_text, "confidence": candidate.confidence}
        )
        self.updated.append((question_id, candidate))

    def count(self, **filters) -> int:
        return len(self.records)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> ExtractionSettings:
    return ExtractionSettings(page_delay_seconds=0, state_backend="memory")


@pytest.fixture
def question_store() -> FakeQuestionStore:
    return FakeQuestionStore()


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database with tables and seeded vocabulary."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = factory()
    try:
        crud.seed_vocabulary(db)
    finally:
        db.close()
    yield factory
    engine.dispose()
