"""
Extraction job-control router.
Start, stop and continue the background PDF → question extraction job and
read its status, logs and statistics. Every route is a thin pass-through to
the ExtractionOrchestrator.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from typing import Optional

from extraction.errors import (
    AllPagesProcessedError,
    AlreadyRunningError,
    ConfigurationError,
    DocumentNotFoundError,
    NoStoppedJobError,
)
from extraction.orchestrator import ExtractionOrchestrator, StartResult
from extraction.schemas import ExtractionOptions
from extraction.service import get_orchestrator

router = APIRouter(prefix="/extraction", tags=["extraction"])


# ─── Schemas ───────────────────────────────────────────────────────────────────

class StartExtractionRequest(BaseModel):
    filename: str = Field(..., description="PDF file name inside the data directory")
    start_page: Optional[int] = Field(None, ge=1, description="First page to process (1-based)")
    max_pages: Optional[int] = Field(None, ge=1, description="Maximum number of pages to process")
    overwrite: bool = Field(False, description="Update matching questions even when approved")
    model: Optional[str] = Field(None, description="Model name override")


def _config_error(e: ConfigurationError) -> HTTPException:
    if isinstance(e, DocumentNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (AlreadyRunningError, NoStoppedJobError, AllPagesProcessedError)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _start_dict(result: StartResult) -> dict:
    return {
        "message": result.message,
        "extraction_id": result.job_id,
        "start_page": result.start_page,
        "end_page": result.end_page,
    }


# ─── Routes ────────────────────────────────────────────────────────────────────

@router.get("/pdfs")
def list_pdfs(orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)):
    """List PDF files available for extraction."""
    return {"pdfs": orchestrator.text_source.list_documents()}


@router.post("/start", status_code=202)
async def start_extraction(
    request: StartExtractionRequest,
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
):
    """Start extracting questions from a PDF in the background."""
    options = ExtractionOptions(
        start_page=request.start_page,
        max_pages=request.max_pages,
        overwrite=request.overwrite,
        model=request.model,
    )
    try:
        result = await orchestrator.start_extraction(request.filename, options)
    except ConfigurationError as e:
        raise _config_error(e)
    return _start_dict(result)


@router.post("/stop")
async def stop_extraction(orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)):
    """Stop the running extraction after the page in flight."""
    return {"message": await orchestrator.stop_extraction()}


@router.post("/continue", status_code=202)
async def continue_extraction(orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)):
    """Resume a stopped extraction at the page after its cursor."""
    try:
        result = await orchestrator.continue_extraction()
    except ConfigurationError as e:
        raise _config_error(e)
    return _start_dict(result)


@router.get("/status")
def get_status(orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)):
    state = orchestrator.get_status()
    payload = state.to_payload()
    payload["progress"] = state.progress
    return payload


@router.get("/logs")
def get_logs(
    limit: Optional[int] = Query(None, ge=1, le=5000),
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
):
    return {"logs": orchestrator.get_logs(limit)}


@router.get("/statistics")
def get_statistics(orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)):
    return orchestrator.get_statistics()


@router.delete("/state")
async def clear_state(orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)):
    """Forget the persisted job (not allowed while one is processing)."""
    try:
        await orchestrator.clear_state()
    except ConfigurationError as e:
        raise _config_error(e)
    return {"message": "Extraction state cleared"}


@router.get("/health")
async def health(orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)):
    """Model endpoint reachability."""
    healthy = await orchestrator.page_processor.model_client.is_healthy()
    return {"model_endpoint": "ok" if healthy else "unreachable", "healthy": healthy}
