"""
SQLAlchemy models for the MRCS question bank

Category / Intake  → controlled vocabulary (seeded on startup)
Question           → extracted or reviewed MCQ, tagged with categories + intake
ExtractionState    → persisted extraction job record (SQL progress backend)
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text, Float, JSON, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database.database import Base


# ==========================================
# VOCABULARY
# ==========================================

class Category(Base):
    """Topical tag. type is BASIC (sciences) or CLINICAL (specialties)."""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"


class Intake(Base):
    """Exam sitting (january, april-may, september)."""
    __tablename__ = "intakes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Intake(id={self.id}, name='{self.name}')>"


# ==========================================
# QUESTIONS
# ==========================================

question_categories = Table(
    "question_categories",
    Base.metadata,
    Column("question_id", Integer, ForeignKey("questions.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class Question(Base):
    """
    MCQ in the bank. Extraction creates rows as 'unverified'; a reviewer moves
    them to 'approved' or 'rejected'. Approved rows are never overwritten by
    extraction unless the job runs in overwrite mode.
    """
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    question_text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # {"A": "...", "B": "...", ..., "E": "..."}
    correct_answer = Column(String(1), nullable=False)  # "A".."E"
    explanation = Column(Text, nullable=True)
    exam_year = Column(Integer, nullable=True, index=True)
    intake_id = Column(Integer, ForeignKey("intakes.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="unverified", index=True)  # unverified, approved, rejected
    ai_confidence = Column(Float, nullable=True)
    ai_metadata = Column(JSON, nullable=True)  # {"confidence", "extracted_at", "model", ...}
    source_document = Column(String(500), nullable=True, index=True)
    source_page = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    categories = relationship("Category", secondary=question_categories, backref="questions")
    intake = relationship("Intake", backref="questions")

    def __repr__(self):
        return f"<Question(id={self.id}, status='{self.status}')>"


# ==========================================
# EXTRACTION STATE
# ==========================================

class ExtractionState(Base):
    """Serialized JobState, one row per state key. Payload kept as raw JSON text."""
    __tablename__ = "extraction_state"

    key = Column(String(100), primary_key=True)
    payload = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<ExtractionState(key='{self.key}')>"
