"""
Extraction orchestrator: the resumable job state machine.

    IDLE ──start──▶ PROCESSING ──▶ COMPLETED | FAILED | STOPPED
                         ▲                                │
                         └───────────── continue ─────────┘

One background asyncio task runs a job; pages are processed strictly in
order. stop() sets the worker's cancellation event, which the loop checks
only between pages, so an in-flight page always finishes its store writes.
The JobState is persisted after every page and is the resume point.

Single process, one job at a time: the AlreadyRunningError guard is the only
concurrency control.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import List, Optional

from extraction.config import ExtractionSettings
from extraction.errors import (
    AllPagesProcessedError,
    AlreadyRunningError,
    DocumentNotFoundError,
    DocumentUnavailableError,
    InvalidPageRangeError,
    NoStoppedJobError,
    PageProcessingError,
    ProgressStoreError,
)
from extraction.page_processor import PageProcessor, PageResult
from extraction.progress_store import ProgressStore
from extraction.schemas import ExtractionOptions, JobState, JobStatus, utcnow
from ingestion.pdf_text import TextSource

log = logging.getLogger("extraction.pipeline")


@dataclass(frozen=True)
class StartResult:
    job_id: str
    message: str
    start_page: int
    end_page: int


def new_job_id() -> str:
    return f"extraction_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class ExtractionOrchestrator:
    def __init__(
        self,
        text_source: TextSource,
        page_processor: PageProcessor,
        progress_store: ProgressStore,
        settings: ExtractionSettings,
    ):
        self.text_source = text_source
        self.page_processor = page_processor
        self.progress_store = progress_store
        self.settings = settings

        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._cancel: Optional[asyncio.Event] = None
        self._state: Optional[JobState] = None

    # ─── Helpers ───────────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _log(self, state: JobState, message: str) -> None:
        log.info("[%s] %s", state.job_id, message)
        state.append_log(message, self.settings.max_log_lines)

    def _launch(self, state: JobState, first_page: int) -> None:
        self._state = state
        self._cancel = asyncio.Event()
        self._task = asyncio.create_task(
            self._run(state, first_page, self._cancel), name=state.job_id
        )

    # ─── Commands ──────────────────────────────────────────────────────────────

    async def start_extraction(
        self, document: str, options: Optional[ExtractionOptions] = None
    ) -> StartResult:
        options = options or ExtractionOptions()
        async with self._lock:
            current = self.progress_store.load_state()
            if self.is_running or (current and current.status == JobStatus.PROCESSING):
                raise AlreadyRunningError()

            try:
                total_pages = await asyncio.to_thread(self.text_source.get_page_count, document)
            except DocumentUnavailableError as e:
                raise DocumentNotFoundError(str(e)) from e
            if total_pages <= 0:
                raise InvalidPageRangeError(f"{document} has no pages")

            start_page = options.start_page or 1
            if start_page > total_pages:
                raise InvalidPageRangeError(
                    f"Start page {start_page} exceeds total pages ({total_pages})"
                )
            end_page = min(start_page + (options.max_pages or total_pages) - 1, total_pages)

            state = JobState(
                job_id=new_job_id(),
                document=document,
                status=JobStatus.PROCESSING,
                model=options.model or self.settings.llm_model,
                total_pages=total_pages,
                cursor=start_page - 1,
                start_page=start_page,
                max_pages=options.max_pages,
                end_page=end_page,
                overwrite=options.overwrite,
                started_at=utcnow(),
            )
            self._log(
                state,
                f"Starting extraction of {document}: pages {start_page}-{end_page} "
                f"of {total_pages} (model={state.model}, overwrite={state.overwrite})",
            )
            self.progress_store.save_state(state)
            self._launch(state, start_page)

        return StartResult(
            job_id=state.job_id,
            message="Extraction started",
            start_page=start_page,
            end_page=end_page,
        )

    async def stop_extraction(self) -> str:
        async with self._lock:
            if self.is_running and self._state is not None:
                state = self._state
                self._cancel.set()
                state.status = JobStatus.STOPPED
                state.ended_at = utcnow()
                self._log(state, "Extraction stopped by user")
                self.progress_store.save_state(state)
                return "Extraction stopped"

            persisted = self.progress_store.load_state()
            if persisted and persisted.status == JobStatus.PROCESSING:
                # Left PROCESSING by a process that died; make it resumable.
                persisted.status = JobStatus.STOPPED
                persisted.ended_at = utcnow()
                self._log(persisted, "Extraction stopped (no active worker in this process)")
                self.progress_store.save_state(persisted)
                return "Extraction stopped"

        return "No extraction in progress"

    async def continue_extraction(self) -> StartResult:
        async with self._lock:
            if self.is_running:
                raise AlreadyRunningError()
            state = self.progress_store.load_state()
            if state is None or state.status != JobStatus.STOPPED:
                raise NoStoppedJobError()
            if state.cursor >= state.total_pages:
                raise AllPagesProcessedError()

            span = state.max_pages or state.total_pages
            remaining = span - (state.cursor - (state.start_page - 1))
            next_page = state.cursor + 1
            if remaining <= 0 or next_page > state.end_page:
                raise AllPagesProcessedError()

            state.parent_job_id = state.job_id
            state.job_id = new_job_id()
            state.status = JobStatus.PROCESSING
            state.started_at = utcnow()
            state.ended_at = None
            state.error = None
            self._log(
                state,
                f"Continuing extraction from page {next_page}: {remaining} page(s) remaining "
                f"(previous job {state.parent_job_id})",
            )
            self.progress_store.save_state(state)
            self._launch(state, next_page)

        return StartResult(
            job_id=state.job_id,
            message="Extraction continued",
            start_page=next_page,
            end_page=state.end_page,
        )

    async def clear_state(self) -> None:
        async with self._lock:
            current = self.progress_store.load_state()
            if self.is_running or (current and current.status == JobStatus.PROCESSING):
                raise AlreadyRunningError("Cannot clear state while an extraction is in progress")
            self.progress_store.clear_state()
            self._state = None

    async def wait(self) -> None:
        """Block until the active worker (if any) has finished."""
        if self._task is not None:
            await self._task

    async def shutdown(self) -> None:
        if self.is_running:
            await self.stop_extraction()
            await self.wait()

    # ─── Queries ───────────────────────────────────────────────────────────────

    def get_status(self) -> JobState:
        return self.progress_store.load_state() or JobState()

    def get_logs(self, limit: Optional[int] = None) -> List[str]:
        logs = self.get_status().logs
        return logs[-limit:] if limit else logs

    def get_statistics(self) -> dict:
        return self.get_status().statistics()

    # ─── Worker ────────────────────────────────────────────────────────────────

    async def _pause(self, cancel: asyncio.Event) -> None:
        delay = self.settings.page_delay_seconds
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def _record_page(self, state: JobState, result: PageResult) -> None:
        for line in result.logs:
            state.append_log(line, self.settings.max_log_lines)
        state.questions_per_page[result.page_number] = result.yield_count
        counters = state.counters
        counters.created += result.created
        counters.updated += result.updated
        counters.skipped += result.skipped
        counters.verified_skipped += result.verified_skipped
        counters.rejected += result.rejected
        counters.store_failed += result.store_failed

    def _complete(self, state: JobState) -> None:
        state.status = JobStatus.COMPLETED
        state.ended_at = utcnow()
        counters = state.counters
        self._log(state, "Extraction completed")
        self._log(state, f"Pages processed: {state.cursor - state.start_page + 1}/{state.end_page - state.start_page + 1}")
        self._log(state, f"Questions created: {counters.created}")
        self._log(state, f"Questions updated: {counters.updated}")
        self._log(state, f"Verified questions skipped: {counters.verified_skipped}")
        self._log(state, f"Questions skipped (existing better): {counters.skipped}")
        if counters.store_failed:
            self._log(state, f"Questions not stored: {counters.store_failed}")
        if state.failed_pages:
            self._log(state, f"Failed pages: {', '.join(str(p) for p in state.failed_pages)}")
        self._log(state, f"Duration: {state.duration_seconds:.1f}s")

    async def _run(self, state: JobState, first_page: int, cancel: asyncio.Event) -> None:
        try:
            for page in range(first_page, state.end_page + 1):
                if cancel.is_set():
                    break
                self._log(state, f"Processing page {page}/{state.total_pages}")
                try:
                    result = await self.page_processor.process_page(page, state)
                except PageProcessingError as e:
                    log.warning("[%s] Page %d failed: %s", state.job_id, page, e)
                    if page not in state.failed_pages:
                        state.counters.failed += 1
                    state.record_failed_page(page)
                    state.append_log(f"Page {page}: Error - {e}", self.settings.max_log_lines)
                else:
                    self._record_page(state, result)
                state.cursor = max(state.cursor, page)
                self.progress_store.save_state(state)

                if page < state.end_page and not cancel.is_set():
                    await self._pause(cancel)

            if cancel.is_set():
                log.info("[%s] Worker exited after page %d", state.job_id, state.cursor)
                return

            self._complete(state)
            self.progress_store.save_state(state)
        except Exception as e:
            log.exception("[%s] Extraction failed", state.job_id)
            state.status = JobStatus.FAILED
            state.error = str(e)
            state.ended_at = utcnow()
            state.append_log(f"Extraction failed: {e}", self.settings.max_log_lines)
            try:
                self.progress_store.save_state(state)
            except ProgressStoreError:
                log.error("[%s] Could not persist FAILED state", state.job_id)
