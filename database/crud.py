"""
CRUD operations for the question bank
All database operations go through these functions
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from database import models
from extraction.schemas import CandidateQuestion
from extraction.vocabulary import DEFAULT_CATEGORIES, DEFAULT_INTAKES, DEFAULT_VOCABULARY, Vocabulary

log = logging.getLogger(__name__)


# ==========================================
# VOCABULARY
# ==========================================

def seed_vocabulary(db: Session) -> None:
    """Insert the default categories and intakes if the tables are empty."""
    if db.query(models.Category).count() == 0:
        for cat in DEFAULT_CATEGORIES:
            db.add(models.Category(name=cat["name"], display_name=cat["display_name"], type=cat["type"]))
        db.commit()
        log.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))

    if db.query(models.Intake).count() == 0:
        for intake in DEFAULT_INTAKES:
            db.add(models.Intake(name=intake["name"], display_name=intake["display_name"]))
        db.commit()
        log.info("Seeded %d default intakes", len(DEFAULT_INTAKES))


def get_active_categories(db: Session) -> List[models.Category]:
    return (
        db.query(models.Category)
        .filter(models.Category.is_active.is_(True))
        .order_by(models.Category.id)
        .all()
    )


def get_active_intakes(db: Session) -> List[models.Intake]:
    return (
        db.query(models.Intake)
        .filter(models.Intake.is_active.is_(True))
        .order_by(models.Intake.id)
        .all()
    )


def load_vocabulary(db: Session) -> Vocabulary:
    """Active categories/intakes from the database; defaults when either table is empty."""
    categories = tuple(c.name for c in get_active_categories(db))
    intakes = tuple(i.name for i in get_active_intakes(db))
    if not categories or not intakes:
        return DEFAULT_VOCABULARY
    return Vocabulary(categories=categories, intakes=intakes)


def resolve_categories(db: Session, names: List[str]) -> List[models.Category]:
    """Map category names to rows; falls back to the first active category."""
    found = db.query(models.Category).filter(models.Category.name.in_(names)).all()
    if found:
        return found
    active = get_active_categories(db)
    if not active:
        raise ValueError("No active categories found in database")
    log.warning("No valid categories in %s, using default category: %s", names, active[0].name)
    return [active[0]]


def resolve_intake(db: Session, name: str) -> models.Intake:
    """Map an intake name to its row; falls back to the first active intake."""
    intake = db.query(models.Intake).filter(models.Intake.name == name).first()
    if intake:
        return intake
    active = get_active_intakes(db)
    if not active:
        raise ValueError(f"No active intakes found in database. Cannot store question with intake: {name}")
    log.warning("Intake '%s' not found, using fallback intake: %s", name, active[0].name)
    return active[0]


# ==========================================
# QUESTION CRUD
# ==========================================

def _ai_metadata(candidate: CandidateQuestion, model: Optional[str]) -> dict:
    return {
        "confidence": candidate.confidence,
        "extracted_at": datetime.now(timezone.utc).isoformat(),
        "model": model,
        "source_document": candidate.source_document,
        "source_page": candidate.source_page,
    }


def _apply_candidate(db: Session, question: models.Question, candidate: CandidateQuestion, model: Optional[str]) -> None:
    question.question_text = candidate.question_text
    question.options = candidate.options.model_dump()
    question.correct_answer = candidate.correct_answer
    question.explanation = candidate.explanation or None
    question.exam_year = candidate.exam_year
    question.intake = resolve_intake(db, candidate.intake)
    question.categories = resolve_categories(db, candidate.categories)
    question.ai_confidence = candidate.confidence
    question.ai_metadata = _ai_metadata(candidate, model)
    question.source_document = candidate.source_document
    question.source_page = candidate.source_page


def create_question(db: Session, candidate: CandidateQuestion, model: Optional[str] = None) -> models.Question:
    """Create a new unverified question from an extracted candidate"""
    db_question = models.Question(status="unverified")
    _apply_candidate(db, db_question, candidate, model)
    db.add(db_question)
    db.commit()
    db.refresh(db_question)
    return db_question


def update_question(
    db: Session, question_id: int, candidate: CandidateQuestion, model: Optional[str] = None
) -> Optional[models.Question]:
    """Overwrite a question's content with a candidate; review status is left as is"""
    db_question = get_question(db, question_id)
    if not db_question:
        return None
    _apply_candidate(db, db_question, candidate, model)
    db.commit()
    db.refresh(db_question)
    return db_question


def get_question(db: Session, question_id: int) -> Optional[models.Question]:
    """Get question by ID"""
    return (
        db.query(models.Question)
        .options(joinedload(models.Question.categories), joinedload(models.Question.intake))
        .filter(models.Question.id == question_id)
        .first()
    )


def search_questions(db: Session, text: str, limit: int = 10) -> List[models.Question]:
    """Questions whose stem contains `text` (case-insensitive)"""
    return (
        db.query(models.Question)
        .options(joinedload(models.Question.categories), joinedload(models.Question.intake))
        .filter(func.lower(models.Question.question_text).contains(text.lower(), autoescape=True))
        .order_by(models.Question.id)
        .limit(limit)
        .all()
    )


def count_questions(
    db: Session,
    status: Optional[str] = None,
    intake: Optional[str] = None,
    category: Optional[str] = None,
    exam_year: Optional[int] = None,
    source_document: Optional[str] = None,
) -> int:
    """Count questions matching the given filters"""
    q = db.query(models.Question)
    if status:
        q = q.filter(models.Question.status == status)
    if intake:
        q = q.join(models.Question.intake).filter(models.Intake.name == intake)
    if category:
        q = q.filter(models.Question.categories.any(models.Category.name == category))
    if exam_year:
        q = q.filter(models.Question.exam_year == exam_year)
    if source_document:
        q = q.filter(models.Question.source_document == source_document)
    return q.count()


def set_question_status(db: Session, question_id: int, status: str) -> Optional[models.Question]:
    """Set review status (unverified / approved / rejected)"""
    db_question = get_question(db, question_id)
    if not db_question:
        return None
    db_question.status = status
    db.commit()
    db.refresh(db_question)
    return db_question


# ==========================================
# EXTRACTION STATE
# ==========================================

def get_state_payload(db: Session, key: str) -> Optional[str]:
    row = db.query(models.ExtractionState).filter(models.ExtractionState.key == key).first()
    return row.payload if row else None


def save_state_payload(db: Session, key: str, payload: str) -> None:
    row = db.query(models.ExtractionState).filter(models.ExtractionState.key == key).first()
    if row:
        row.payload = payload
    else:
        db.add(models.ExtractionState(key=key, payload=payload))
    db.commit()


def delete_state_payload(db: Session, key: str) -> bool:
    deleted = db.query(models.ExtractionState).filter(models.ExtractionState.key == key).delete()
    db.commit()
    return deleted > 0
