"""
Progress stores: durable home of the current JobState.

All three adapters hold exactly one state record. load_state() treats a
payload that is not JSON, or does not validate as a JobState, as "no state"
and logs it; save failures surface as ProgressStoreError so the orchestrator
can fail the job.
"""

import json
import logging
from typing import Callable, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy.orm import Session

from database import crud
from extraction.errors import ProgressStoreError
from extraction.schemas import JobState

log = logging.getLogger(__name__)

STATE_KEY = "current"


class ProgressStore(Protocol):
    def save_state(self, state: JobState) -> None: ...

    def load_state(self) -> Optional[JobState]: ...

    def clear_state(self) -> None: ...


def decode_state(payload: Optional[str]) -> Optional[JobState]:
    if not payload:
        return None
    try:
        data = json.loads(payload)
    except ValueError as e:
        log.error("Persisted extraction state is not valid JSON, ignoring it: %s", e)
        return None
    try:
        return JobState.model_validate(data)
    except ValidationError as e:
        log.error("Persisted extraction state failed validation, ignoring it: %s", e)
        return None


def encode_state(state: JobState) -> str:
    return json.dumps(state.to_payload())


# ─── In-memory ─────────────────────────────────────────────────────────────────

class MemoryProgressStore:
    """Process-local store; keeps the serialized form so loads return copies."""

    def __init__(self):
        self._payload: Optional[str] = None

    def save_state(self, state: JobState) -> None:
        self._payload = encode_state(state)

    def load_state(self) -> Optional[JobState]:
        return decode_state(self._payload)

    def clear_state(self) -> None:
        self._payload = None


# ─── Redis ─────────────────────────────────────────────────────────────────────

class RedisProgressStore:
    def __init__(self, client=None, key: Optional[str] = None):
        from database.redis_client import extraction_state_key, get_redis
        self.client = client if client is not None else get_redis()
        self.key = key or extraction_state_key(STATE_KEY)

    def save_state(self, state: JobState) -> None:
        try:
            self.client.set(self.key, encode_state(state))
        except Exception as e:
            raise ProgressStoreError(f"Failed to save extraction state to Redis: {e}") from e

    def load_state(self) -> Optional[JobState]:
        payload = self.client.get(self.key)
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        return decode_state(payload)

    def clear_state(self) -> None:
        self.client.delete(self.key)


# ─── SQL ───────────────────────────────────────────────────────────────────────

class SqlProgressStore:
    def __init__(self, session_factory: Callable[[], Session], key: str = STATE_KEY):
        self.session_factory = session_factory
        self.key = key

    def save_state(self, state: JobState) -> None:
        db = self.session_factory()
        try:
            crud.save_state_payload(db, self.key, encode_state(state))
        except Exception as e:
            db.rollback()
            raise ProgressStoreError(f"Failed to save extraction state: {e}") from e
        finally:
            db.close()

    def load_state(self) -> Optional[JobState]:
        db = self.session_factory()
        try:
            return decode_state(crud.get_state_payload(db, self.key))
        finally:
            db.close()

    def clear_state(self) -> None:
        db = self.session_factory()
        try:
            crud.delete_state_payload(db, self.key)
        finally:
            db.close()
