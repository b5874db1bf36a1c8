"""
Wiring: builds the orchestrator and its collaborators from settings.

get_orchestrator() is a lazy process-wide singleton shared by the HTTP
router and the CLI; the single-job guard only holds within one instance.
"""

import logging
import threading
from typing import Callable, Optional

import redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import crud
from database.database import SessionLocal
from extraction.config import ExtractionSettings
from extraction.llm_client import LLMClient
from extraction.orchestrator import ExtractionOrchestrator
from extraction.page_processor import PageProcessor
from extraction.progress_store import (
    MemoryProgressStore,
    ProgressStore,
    RedisProgressStore,
    SqlProgressStore,
)
from extraction.question_store import SqlQuestionStore
from extraction.vocabulary import DEFAULT_VOCABULARY, Vocabulary
from ingestion.pdf_text import PdfTextSource

log = logging.getLogger(__name__)

_orchestrator: Optional[ExtractionOrchestrator] = None
_orchestrator_lock = threading.Lock()


def load_vocabulary(session_factory: Callable[[], Session]) -> Vocabulary:
    db = session_factory()
    try:
        return crud.load_vocabulary(db)
    except SQLAlchemyError as e:
        log.warning("Could not read vocabulary from database, using defaults: %s", e)
        return DEFAULT_VOCABULARY
    finally:
        db.close()


def make_progress_store(
    settings: ExtractionSettings, session_factory: Callable[[], Session]
) -> ProgressStore:
    backend = settings.state_backend
    if backend == "redis":
        client = redis.from_url(settings.redis_url, decode_responses=True) if settings.redis_url else None
        return RedisProgressStore(client)
    if backend == "sql":
        return SqlProgressStore(session_factory)
    if backend == "memory":
        return MemoryProgressStore()
    raise ValueError(f"Unknown EXTRACTION_STATE_BACKEND: {backend!r} (expected redis, sql or memory)")


def build_orchestrator(
    settings: ExtractionSettings,
    session_factory: Callable[[], Session] = SessionLocal,
) -> ExtractionOrchestrator:
    text_source = PdfTextSource(settings.data_dir)
    processor = PageProcessor(
        text_source=text_source,
        model_client=LLMClient(settings),
        question_store=SqlQuestionStore(session_factory, model=settings.llm_model),
        settings=settings,
        vocabulary=load_vocabulary(session_factory),
    )
    return ExtractionOrchestrator(
        text_source=text_source,
        page_processor=processor,
        progress_store=make_progress_store(settings, session_factory),
        settings=settings,
    )


def get_orchestrator() -> ExtractionOrchestrator:
    global _orchestrator
    # Sync dependency: FastAPI calls it from its threadpool
    if _orchestrator is None:
        with _orchestrator_lock:
            if _orchestrator is None:
                _orchestrator = build_orchestrator(ExtractionSettings.from_env())
    return _orchestrator


def current_orchestrator() -> Optional[ExtractionOrchestrator]:
    """The singleton if it has been built, without building it."""
    return _orchestrator
