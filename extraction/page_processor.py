"""
Per-page extraction protocol.

    text → prompt → model → recovery parser → quality gate → confidence → dedup → store

process_page() raises PageProcessingError subclasses for page-level failures
(the orchestrator records the page as failed and moves on) and lets
JobFatalError through untouched. Everything below page level (a rejected
candidate, one failed store write) is counted in the PageResult instead.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from extraction.config import ExtractionSettings
from extraction.dedup import resolve
from extraction.errors import JobFatalError, TextAcquisitionError, UnparseableResponseError
from extraction.llm_client import ModelClient
from extraction.prompts import (
    FilenameInference,
    PatternFilenameInference,
    build_extraction_prompt,
    infer_hints_from_text,
)
from extraction.question_store import QuestionStore
from extraction.response_parser import parse_model_response
from extraction.schemas import CandidateQuestion, JobState, MergeAction, MergeDecision, SkipReason
from extraction.validator import QualityRules, derive_confidence, rejection_reason
from extraction.vocabulary import DEFAULT_VOCABULARY, Vocabulary
from ingestion.pdf_text import TextSource

log = logging.getLogger(__name__)


@dataclass
class PageResult:
    page_number: int
    created: int = 0
    updated: int = 0
    skipped: int = 0
    verified_skipped: int = 0
    rejected: int = 0
    store_failed: int = 0
    empty: bool = False
    logs: List[str] = field(default_factory=list)

    @property
    def yield_count(self) -> int:
        return self.created + self.updated

    def note(self, message: str) -> None:
        self.logs.append(f"Page {self.page_number}: {message}")


class PageProcessor:
    def __init__(
        self,
        text_source: TextSource,
        model_client: ModelClient,
        question_store: QuestionStore,
        settings: ExtractionSettings,
        vocabulary: Vocabulary = DEFAULT_VOCABULARY,
        filename_inference: Optional[FilenameInference] = None,
    ):
        self.text_source = text_source
        self.model_client = model_client
        self.question_store = question_store
        self.settings = settings
        self.vocabulary = vocabulary
        self.filename_inference = filename_inference or PatternFilenameInference()
        self.rules = QualityRules(min_year=settings.min_year, max_year=settings.max_year)

    async def _page_text(self, document: str, page_number: int) -> str:
        try:
            return await asyncio.to_thread(self.text_source.get_page_text, document, page_number)
        except JobFatalError:
            raise
        except Exception as e:
            raise TextAcquisitionError(f"Failed to read page {page_number}: {e}") from e

    async def process_page(self, page_number: int, job: JobState) -> PageResult:
        result = PageResult(page_number=page_number)

        text = await self._page_text(job.document, page_number)
        if not text or not text.strip():
            result.empty = True
            result.note("No text found, skipping")
            return result

        prompt = build_extraction_prompt(
            text,
            page_number,
            vocabulary=self.vocabulary,
            content_hints=infer_hints_from_text(text, self.vocabulary),
            filename_hints=self.filename_inference.infer(job.document),
            year_range=self.settings.year_range,
        )
        raw = await self.model_client.generate(
            prompt,
            job.model or self.settings.llm_model,
            temperature=self.settings.temperature,
            top_p=self.settings.top_p,
            max_tokens=self.settings.max_tokens,
        )

        outcome = parse_model_response(raw, self.vocabulary, self.settings.year_range)
        if not outcome.recovered:
            raise UnparseableResponseError(
                f"No JSON array could be recovered from the model response ({len(raw)} chars)"
            )
        result.rejected += outcome.dropped

        for candidate in outcome.candidates:
            candidate = candidate.model_copy(
                update={"source_document": job.document, "source_page": page_number}
            )
            reason = rejection_reason(candidate, self.rules)
            if reason:
                log.debug("Page %d: rejected candidate (%s)", page_number, reason)
                result.rejected += 1
                continue
            candidate = candidate.model_copy(
                update={"confidence": derive_confidence(candidate, self.rules)}
            )
            try:
                decision = resolve(
                    candidate, self.question_store, job.overwrite, self.settings.merge_policy
                )
                self._apply(decision, candidate, result, job.overwrite)
            except Exception as e:
                log.exception("Page %d: failed to store question", page_number)
                result.store_failed += 1
                result.note(f"Error storing question - {e}")

        if result.rejected:
            result.note(f"Rejected {result.rejected} invalid question(s)")
        if result.yield_count:
            result.note(f"Processed {result.yield_count} questions")
        else:
            result.note("No valid questions found")
        return result

    def _apply(
        self,
        decision: MergeDecision,
        candidate: CandidateQuestion,
        result: PageResult,
        overwrite: bool,
    ) -> None:
        if decision.action == MergeAction.CREATE:
            self.question_store.create(candidate)
            result.created += 1
            result.note("Created new question")
        elif decision.action == MergeAction.UPDATE:
            self.question_store.update(decision.target_id, candidate)
            result.updated += 1
            result.note(
                "Updated existing question (overwrite mode)" if overwrite else "Updated existing question"
            )
        elif decision.reason == SkipReason.VERIFIED:
            result.verified_skipped += 1
            result.note("Skipping verified question")
        else:
            result.skipped += 1
            result.note("Skipping - existing question is better")
