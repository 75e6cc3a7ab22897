"""
Async client for the Groq chat-completions API (OpenAI-compatible).

Public API
----------
GroqLLMService.complete(prompt, ...)       -> Completion
GroqLLMService.complete_json(prompt, ...)  -> parsed JSON (dict / list)
GroqLLMService.is_configured               -> bool

Every failure is raised as a subclass of ``LLMServiceError`` so callers can
decide between fallback (analysis) and retry (chat) without inspecting
httpx internals.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from jurisia.config import settings
from jurisia.utils.helpers import parse_json_robust

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """\
Você é JurisIA, um assistente jurídico especializado em leis brasileiras.
Você foi treinado com as leis, códigos, jurisprudências e doutrinas brasileiras atualizadas.
Sempre cite as fontes legais específicas ao responder perguntas jurídicas.
Organize suas respostas de maneira estruturada, começando com uma resposta direta e concisa,
seguida dos detalhes legais, jurisprudência relevante e, quando apropriado, diferentes perspectivas doutrinárias.
Responda sempre em português do Brasil, usando terminologia jurídica adequada.
Se não souber a resposta ou não tiver certeza, indique claramente, em vez de fornecer informações potencialmente incorretas.\
"""

JSON_SYSTEM_PROMPT = """\
Você é um assistente jurídico especializado em análise de documentos legais brasileiros.
Responda APENAS com JSON válido, sem markdown e sem comentários.\
"""


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class LLMServiceError(Exception):
    """Base class for every text-completion failure."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LLMNotConfiguredError(LLMServiceError):
    """No API key configured."""


class LLMAuthError(LLMServiceError):
    """Provider rejected the credentials (401/403)."""


class LLMRateLimitError(LLMServiceError):
    """Provider rate limit hit (429)."""


class LLMTimeoutError(LLMServiceError):
    """Request did not finish within the HTTP timeout."""


class LLMNetworkError(LLMServiceError):
    """Connection-level failure."""


class LLMResponseError(LLMServiceError):
    """Unexpected status code or unusable response body."""


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclasses.dataclass(frozen=True)
class Completion:
    """Text returned by the provider plus accounting metadata."""

    text: str
    token_usage: TokenUsage
    model_id: str


# ---------------------------------------------------------------------------
# GroqLLMService
# ---------------------------------------------------------------------------

class GroqLLMService:
    """
    Thin async wrapper over ``POST {base_url}/chat/completions``.

    Limits concurrency to ``max_concurrent`` simultaneous calls.  A custom
    ``transport`` (e.g. ``httpx.MockTransport``) can be injected for tests.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_concurrent: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = settings.GROQ_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.GROQ_BASE_URL).rstrip("/")
        self.model = model or settings.GROQ_MODEL
        self.timeout = httpx.Timeout(float(timeout or settings.GROQ_TIMEOUT), connect=10.0)
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrent or settings.LLM_MAX_CONCURRENT)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def complete(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        history: Optional[List[Dict[str, str]]] = None,
        system_prompt: Optional[str] = SYSTEM_PROMPT,
    ) -> Completion:
        """
        Send one chat-completion request.

        Args:
            prompt:        User message.
            temperature:   Sampling temperature (default ``LLM_TEMPERATURE``).
            max_tokens:    Completion ceiling (default ``LLM_MAX_TOKENS``).
            history:       Prior ``{"role", "content"}`` turns.
            system_prompt: System message; None sends none.

        Raises:
            LLMServiceError subclass on any failure.
        """
        if not self.is_configured:
            raise LLMNotConfiguredError("GROQ_API_KEY is not configured")

        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend(history or [])
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": settings.LLM_TEMPERATURE if temperature is None else temperature,
            "max_tokens": max_tokens or settings.LLM_MAX_TOKENS,
        }

        async with self._semaphore:
            started = time.perf_counter()
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    resp = await client.post(
                        f"{self.base_url}/chat/completions",
                        json=payload,
                        headers={"Authorization": f"Bearer {self.api_key}"},
                    )
            except httpx.TimeoutException as exc:
                logger.error("complete: request timed out after %.0f s", self.timeout.read or 0)
                raise LLMTimeoutError("Completion request timed out") from exc
            except httpx.HTTPError as exc:
                logger.error("complete: connection error - %s", exc)
                raise LLMNetworkError(f"Network error: {exc}") from exc

        elapsed_ms = (time.perf_counter() - started) * 1000
        self._raise_for_status(resp)
        completion = self._parse_completion(resp)
        logger.info(
            "complete: %s answered in %.0f ms (%d tokens)",
            completion.model_id,
            elapsed_ms,
            completion.token_usage.total,
        )
        return completion

    async def complete_json(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Any:
        """
        Ask for a JSON answer and parse it leniently.

        Raises:
            LLMResponseError when no JSON can be recovered from the reply.
        """
        completion = await self.complete(
            prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            system_prompt=JSON_SYSTEM_PROMPT,
        )
        ok, parsed = parse_json_robust(completion.text)
        if not ok:
            raise LLMResponseError("Completion did not contain parseable JSON")
        return parsed

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        status_code = resp.status_code
        if status_code == 200:
            return

        logger.error("complete: provider returned HTTP %d: %s", status_code, resp.text[:300])
        if status_code in (401, 403):
            raise LLMAuthError("Provider rejected the API key", status_code)
        if status_code == 429:
            raise LLMRateLimitError("Provider rate limit exceeded", status_code)
        raise LLMResponseError(f"Provider returned HTTP {status_code}", status_code)

    def _parse_completion(self, resp: httpx.Response) -> Completion:
        try:
            body = resp.json()
            text = body["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise LLMResponseError(f"Malformed completion body: {exc}") from exc

        usage = body.get("usage") or {}
        return Completion(
            text=text,
            token_usage=TokenUsage(
                prompt=int(usage.get("prompt_tokens") or 0),
                completion=int(usage.get("completion_tokens") or 0),
                total=int(usage.get("total_tokens") or 0),
            ),
            model_id=body.get("model") or self.model,
        )
