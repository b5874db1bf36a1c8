"""
MRCS Question Extraction API: Main Application
FastAPI application that extracts multiple-choice questions from PDF question
banks with a local LLM and merges them into the question bank.
"""

from dotenv import load_dotenv
load_dotenv()

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from database.database import engine, Base, SessionLocal
from database import crud, models  # noqa: F401  (models registers tables on Base)
from extraction.service import current_orchestrator
from routers import extraction

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def _seed_defaults():
    """Create default categories and intakes if they don't exist."""
    db = SessionLocal()
    try:
        crud.seed_vocabulary(db)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables + seed vocabulary. Shutdown: stop any running job."""
    Base.metadata.create_all(bind=engine)
    _seed_defaults()
    os.makedirs(os.getenv("PDF_DATA_DIR", "./data"), exist_ok=True)
    yield
    orchestrator = current_orchestrator()
    if orchestrator is not None:
        await orchestrator.shutdown()


app = FastAPI(
    title="MRCS Question Extraction API",
    description="Resumable PDF → MCQ extraction with validation and deduplication",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─── Routers ───────────────────────────────────────────────────────────────────

app.include_router(extraction.router)  # /extraction/*


@app.get("/")
def root():
    return {"service": "MRCS Question Extraction API", "docs": "/docs"}
