"""
Record store: where accepted questions land.

The page processor and the dedup engine only see the QuestionStore protocol.
SqlQuestionStore backs it with the SQLAlchemy models in database/.
"""

from typing import Callable, List, Optional, Protocol, Union

from sqlalchemy.orm import Session

from database import crud, models
from extraction.schemas import CandidateQuestion, ExistingQuestion, QuestionStatus

QuestionId = Union[int, str]


class QuestionStore(Protocol):
    def find_similar(self, stem_prefix: str, limit: int = 10) -> List[ExistingQuestion]: ...

    def create(self, candidate: CandidateQuestion) -> QuestionId: ...

    def update(self, question_id: QuestionId, candidate: CandidateQuestion) -> None: ...

    def count(self, **filters) -> int: ...


def to_existing(question: models.Question) -> ExistingQuestion:
    return ExistingQuestion(
        id=question.id,
        question_text=question.question_text,
        options=question.options or {},
        correct_answer=question.correct_answer,
        categories=[c.name for c in question.categories],
        exam_year=question.exam_year,
        intake=question.intake.name if question.intake else None,
        explanation=question.explanation,
        status=QuestionStatus(question.status),
        confidence=question.ai_confidence,
    )


class SqlQuestionStore:
    """One short-lived session per call, opened from `session_factory`."""

    def __init__(self, session_factory: Callable[[], Session], model: Optional[str] = None):
        self.session_factory = session_factory
        self.model = model

    def find_similar(self, stem_prefix: str, limit: int = 10) -> List[ExistingQuestion]:
        db = self.session_factory()
        try:
            return [to_existing(q) for q in crud.search_questions(db, stem_prefix, limit=limit)]
        finally:
            db.close()

    def create(self, candidate: CandidateQuestion) -> int:
        db = self.session_factory()
        try:
            return crud.create_question(db, candidate, model=self.model).id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def update(self, question_id: QuestionId, candidate: CandidateQuestion) -> None:
        db = self.session_factory()
        try:
            if crud.update_question(db, int(question_id), candidate, model=self.model) is None:
                raise LookupError(f"Question {question_id} not found")
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def count(self, **filters) -> int:
        db = self.session_factory()
        try:
            return crud.count_questions(db, **filters)
        finally:
            db.close()
