"""
Runtime configuration for the extraction pipeline.

Every knob is read from the environment (a .env file is loaded by the
application entrypoint). Defaults target a local Ollama server exposing the
OpenAI-compatible API.
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


@dataclass(frozen=True)
class MergePolicy:
    """Thresholds used when a candidate matches an existing question."""
    similarity_threshold: float = 0.8
    confidence_margin: float = 0.1
    length_ratio: float = 1.2


@dataclass(frozen=True)
class ExtractionSettings:
    # ── Model endpoint ──
    llm_base_url: str = "http://localhost:11434/v1"
    llm_api_key: str = "ollama"
    llm_model: str = "llama3.1"
    llm_timeout: float = 300.0
    temperature: float = 0.1
    top_p: float = 0.9
    max_tokens: int = 2048

    # ── Documents ──
    data_dir: str = "./data"

    # ── Job behaviour ──
    page_delay_seconds: float = 1.0
    max_log_lines: int = 2000
    min_year: int = 2000
    max_year: int = 2030
    merge_policy: MergePolicy = MergePolicy()

    # ── Persistence ──
    state_backend: str = "redis"
    redis_url: Optional[str] = None

    @property
    def year_range(self) -> Tuple[int, int]:
        return (self.min_year, self.max_year)

    @classmethod
    def from_env(cls) -> "ExtractionSettings":
        return cls(
            llm_base_url=os.getenv("LLM_BASE_URL", cls.llm_base_url),
            llm_api_key=os.getenv("LLM_API_KEY", cls.llm_api_key),
            llm_model=os.getenv("LLM_MODEL", cls.llm_model),
            llm_timeout=_env_float("LLM_TIMEOUT", cls.llm_timeout),
            temperature=_env_float("LLM_TEMPERATURE", cls.temperature),
            top_p=_env_float("LLM_TOP_P", cls.top_p),
            max_tokens=_env_int("LLM_MAX_TOKENS", cls.max_tokens),
            data_dir=os.getenv("PDF_DATA_DIR", cls.data_dir),
            page_delay_seconds=_env_float("EXTRACTION_PAGE_DELAY", cls.page_delay_seconds),
            max_log_lines=_env_int("EXTRACTION_MAX_LOG_LINES", cls.max_log_lines),
            min_year=_env_int("EXTRACTION_MIN_YEAR", cls.min_year),
            max_year=_env_int("EXTRACTION_MAX_YEAR", cls.max_year),
            merge_policy=MergePolicy(
                similarity_threshold=_env_float("EXTRACTION_SIMILARITY_THRESHOLD", 0.8),
                confidence_margin=_env_float("EXTRACTION_CONFIDENCE_MARGIN", 0.1),
                length_ratio=_env_float("EXTRACTION_LENGTH_RATIO", 1.2),
            ),
            state_backend=os.getenv("EXTRACTION_STATE_BACKEND", cls.state_backend).lower(),
            redis_url=os.getenv("REDIS_URL"),
        )
