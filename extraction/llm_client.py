"""
Model client for the extraction pipeline.

Talks to any OpenAI-compatible chat endpoint through the openai SDK; the
default base URL is a local Ollama server (http://localhost:11434/v1).

SDK failures are mapped onto the pipeline's typed errors so the page
processor can tell a timeout from a refused connection from a non-2xx reply:

    openai.APITimeoutError       → ModelTimeoutError
    openai.APIConnectionError    → ModelTransportError
    openai.APIStatusError        → ModelHTTPError
    other openai.OpenAIError     → ModelInvocationError
    blank completion             → EmptyModelResponseError

No retries: a failed call is a failed page.
"""

import logging
from typing import Optional, Protocol

import openai
from openai import AsyncOpenAI

from extraction.config import ExtractionSettings
from extraction.errors import (
    EmptyModelResponseError,
    ModelHTTPError,
    ModelInvocationError,
    ModelTimeoutError,
    ModelTransportError,
)
from extraction.prompts import SYSTEM_PROMPT

log = logging.getLogger(__name__)


class ModelClient(Protocol):
    async def generate(
        self,
        prompt: str,
        model: str,
        *,
        temperature: float,
        top_p: float,
        max_tokens: int,
    ) -> str: ...

    async def is_healthy(self) -> bool: ...


class LLMClient:
    def __init__(self, settings: ExtractionSettings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        # Lazy so that importing the app never needs a reachable endpoint
        if self._client is None:
            self._client = AsyncOpenAI(
                base_url=self.settings.llm_base_url,
                api_key=self.settings.llm_api_key or "ollama",
                timeout=self.settings.llm_timeout,
                max_retries=0,
            )
        return self._client

    async def generate(
        self,
        prompt: str,
        model: str,
        *,
        temperature: float,
        top_p: float,
        max_tokens: int,
    ) -> str:
        """
        Run one chat completion and return the assistant message text.

        Args:
            prompt:      User-turn message (the extraction prompt)
            model:       Model name served by the endpoint
            temperature: Sampling temperature
            top_p:       Nucleus sampling cutoff
            max_tokens:  Max response tokens

        Raises:
            ModelInvocationError subclasses (see module docstring)
        """
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                top_p=top_p,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as e:
            raise ModelTimeoutError(f"Model call timed out after {self.settings.llm_timeout}s") from e
        except openai.APIConnectionError as e:
            raise ModelTransportError(f"Could not reach model endpoint {self.settings.llm_base_url}: {e}") from e
        except openai.APIStatusError as e:
            raise ModelHTTPError(e.status_code, e.message) from e
        except openai.OpenAIError as e:
            raise ModelInvocationError(f"Model call failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise EmptyModelResponseError()
        return content

    async def is_healthy(self) -> bool:
        try:
            await self._get_client().models.list()
            return True
        except openai.OpenAIError as e:
            log.error("Model endpoint health check failed: %s", e)
            return False
