"""
Question Extraction Pipeline
extraction/

Per page of a PDF question bank:
1. Text acquisition  : PyMuPDF page text (ingestion.pdf_text)
2. Prompt            : vocabulary + year/intake hints (prompts)
3. Model call        : OpenAI-compatible endpoint, e.g. Ollama (llm_client)
4. Recovery parser   : JSON array recovery + schema validation (response_parser)
5. Quality gate      : degenerate candidates rejected (validator)
6. Dedup & merge     : create / update / skip against the bank (dedup)
7. Store             : SQLAlchemy question bank (question_store)

The orchestrator drives pages 1-7 as a resumable background job and persists
a JobState after every page (progress_store).
"""

from .config import ExtractionSettings, MergePolicy
from .errors import (
    ExtractionError,
    ConfigurationError,
    PageProcessingError,
    JobFatalError,
)
from .schemas import CandidateQuestion, ExistingQuestion, ExtractionOptions, JobState, JobStatus, MergeDecision
from .response_parser import parse_model_response, ParseOutcome
from .dedup import resolve, similarity

__all__ = [
    # Config
    "ExtractionSettings",
    "MergePolicy",

    # Errors
    "ExtractionError",
    "ConfigurationError",
    "PageProcessingError",
    "JobFatalError",

    # Schemas
    "CandidateQuestion",
    "ExistingQuestion",
    "ExtractionOptions",
    "JobState",
    "JobStatus",
    "MergeDecision",

    # Pipeline
    "parse_model_response",
    "ParseOutcome",
    "resolve",
    "similarity",
]
