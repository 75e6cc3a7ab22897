"""
Chat send path: bounded retries, linear backoff and an overall deadline.

State machine::

    idle ──► sending ──► success
                │  ▲
                ▼  │
             retrying          (after failed attempt n: wait n × backoff)
                │
                ├──► failed     (retries exhausted)
                └──► timed_out  (overall deadline expired)

Expiry of either timeout only abandons the local wait; the provider may
still finish the request server-side.  The user message is persisted before
dispatch and is never retracted, so a failed send leaves a user message with
no matching reply in the conversation.  Only sends with an owner are
persisted, and only into conversations that owner holds.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from jurisia.config import settings
from jurisia.models.database_models import MessageRole
from jurisia.services.jurisprudence import LegalReferences, extract_legal_references
from jurisia.services.llm_client import (
    Completion,
    LLMAuthError,
    LLMNetworkError,
    LLMRateLimitError,
    LLMTimeoutError,
    TokenUsage,
)

logger = logging.getLogger(__name__)

CONVERSATION_TITLE_CHARS = 80


class ChatState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    RETRYING = "retrying"
    SUCCESS = "success"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    UNKNOWN = "unknown"


DEGRADED_MESSAGES: Dict[FailureKind, str] = {
    FailureKind.TIMEOUT: (
        "Tempo limite excedido ao processar sua consulta. Por favor, tente novamente "
        "ou faça uma pergunta mais simples."
    ),
    FailureKind.AUTH: "Sua sessão expirou ou não é válida. Faça login novamente para continuar.",
    FailureKind.RATE_LIMIT: (
        "Você enviou muitas consultas em um curto período. Aguarde um momento e tente novamente."
    ),
    FailureKind.NETWORK: (
        "Não foi possível conectar ao serviço de IA. Verifique sua conexão e tente novamente."
    ),
    FailureKind.UNKNOWN: "Houve um problema ao processar sua consulta. Tente novamente.",
}


class ChatValidationError(ValueError):
    """Rejected before dispatch; never retried."""


class ConversationNotFoundError(LookupError):
    """The conversation does not exist or belongs to another owner."""


def classify_failure(exc: Optional[BaseException]) -> FailureKind:
    """Map an exception from the send path to a user-facing failure class."""
    if isinstance(exc, (LLMTimeoutError, asyncio.TimeoutError)):
        return FailureKind.TIMEOUT
    if isinstance(exc, LLMAuthError):
        return FailureKind.AUTH
    if isinstance(exc, LLMRateLimitError):
        return FailureKind.RATE_LIMIT
    if isinstance(exc, (LLMNetworkError, ConnectionError)):
        return FailureKind.NETWORK
    return FailureKind.UNKNOWN


@dataclasses.dataclass(frozen=True)
class ChatOutcome:
    """Terminal result of one ``send`` call."""

    state: ChatState
    reply: str
    attempts: int
    conversation_id: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    status_history: Tuple[ChatState, ...] = ()
    model_id: Optional[str] = None
    token_usage: TokenUsage = TokenUsage()
    references: LegalReferences = LegalReferences()

    @property
    def succeeded(self) -> bool:
        return self.state is ChatState.SUCCESS


StatusCallback = Callable[[ChatState], Any]


class ChatSendOrchestrator:
    """
    Args:
        llm:              Text-completion service exposing ``complete``.
        store:            Conversation store (optional, best-effort).
        attempt_timeout:  Seconds allowed per attempt.
        deadline:         Seconds allowed for the whole send, backoff included.
        max_retries:      Retries after the first attempt.
        backoff_seconds:  Wait after failed attempt n is ``n * backoff_seconds``.
        sleep:            Awaitable sleep (injectable for tests).
    """

    def __init__(
        self,
        llm: Any,
        store: Optional[Any] = None,
        attempt_timeout: Optional[float] = None,
        deadline: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        max_message_chars: Optional[int] = None,
        max_history: Optional[int] = None,
    ) -> None:
        self.llm = llm
        self.store = store
        self.attempt_timeout = (
            settings.CHAT_ATTEMPT_TIMEOUT if attempt_timeout is None else attempt_timeout
        )
        self.deadline = settings.CHAT_DEADLINE if deadline is None else deadline
        self.max_retries = settings.CHAT_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_seconds = (
            settings.CHAT_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self.max_message_chars = (
            settings.CHAT_MAX_MESSAGE_CHARS if max_message_chars is None else max_message_chars
        )
        self.max_history = settings.CHAT_MAX_HISTORY if max_history is None else max_history
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send(
        self,
        message: str,
        history: Optional[Sequence[Any]] = None,
        conversation_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> ChatOutcome:
        """
        Send ``message`` with prior ``history`` and return the terminal outcome.

        Raises:
            ChatValidationError: empty/oversized message or malformed history.
            ConversationNotFoundError: ``conversation_id`` is not owned by ``owner_id``.
        """
        turns = self._validate(message, history)
        statuses: List[ChatState] = []

        def emit(state: ChatState) -> None:
            statuses.append(state)
            if on_status is not None:
                on_status(state)

        emit(ChatState.IDLE)

        conversation_id = await self._ensure_conversation(conversation_id, owner_id, message)
        await self._persist(conversation_id, message, MessageRole.USER)

        attempts = 0
        last_error: Optional[BaseException] = None

        async def attempt_loop() -> Completion:
            nonlocal attempts, last_error
            for attempt in range(1, self.max_retries + 2):
                attempts = attempt
                emit(ChatState.SENDING)
                try:
                    return await asyncio.wait_for(
                        self.llm.complete(message, history=turns),
                        timeout=self.attempt_timeout,
                    )
                except asyncio.TimeoutError:
                    # Re-raised as LLMTimeoutError so it is not mistaken for the deadline
                    last_error = LLMTimeoutError(
                        f"Attempt {attempt} exceeded {self.attempt_timeout}s"
                    )
                except Exception as exc:
                    last_error = exc

                logger.warning(
                    "Chat attempt %d/%d failed: %s", attempt, self.max_retries + 1, last_error
                )
                if attempt > self.max_retries:
                    raise last_error

                emit(ChatState.RETRYING)
                await self._sleep(attempt * self.backoff_seconds)

            raise RuntimeError("unreachable")

        try:
            completion = await asyncio.wait_for(attempt_loop(), timeout=self.deadline)
        except asyncio.TimeoutError:
            logger.error("Chat send exceeded the %.1fs deadline after %d attempts", self.deadline, attempts)
            emit(ChatState.TIMED_OUT)
            return self._failure(ChatState.TIMED_OUT, FailureKind.TIMEOUT, attempts, conversation_id, statuses)
        except Exception as exc:
            kind = classify_failure(exc)
            logger.error("Chat send failed after %d attempts (%s): %s", attempts, kind.value, exc)
            emit(ChatState.FAILED)
            return self._failure(ChatState.FAILED, kind, attempts, conversation_id, statuses)

        await self._persist(conversation_id, completion.text, MessageRole.ASSISTANT)
        emit(ChatState.SUCCESS)

        return ChatOutcome(
            state=ChatState.SUCCESS,
            reply=completion.text,
            attempts=attempts,
            conversation_id=conversation_id,
            status_history=tuple(statuses),
            model_id=completion.model_id,
            token_usage=completion.token_usage,
            references=extract_legal_references(completion.text),
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate(self, message: str, history: Optional[Sequence[Any]]) -> List[Dict[str, str]]:
        if not isinstance(message, str) or not message.strip():
            raise ChatValidationError("Message must not be empty")
        if len(message) > self.max_message_chars:
            raise ChatValidationError(
                f"Message exceeds {self.max_message_chars} characters"
            )

        history = list(history or [])
        if len(history) > self.max_history:
            raise ChatValidationError(f"History exceeds {self.max_history} messages")

        turns: List[Dict[str, str]] = []
        for item in history:
            role, content = _turn_fields(item)
            if role not in (MessageRole.USER.value, MessageRole.ASSISTANT.value):
                raise ChatValidationError(f"Invalid history role: {role!r}")
            if not isinstance(content, str):
                raise ChatValidationError("History content must be text")
            turns.append({"role": role, "content": content})
        return turns

    # ------------------------------------------------------------------
    # Persistence (best-effort)
    # ------------------------------------------------------------------

    async def _ensure_conversation(
        self,
        conversation_id: Optional[str],
        owner_id: Optional[str],
        message: str,
    ) -> Optional[str]:
        if not owner_id:
            return None
        if self.store is None:
            return conversation_id
        if conversation_id:
            return await self._owned_conversation(conversation_id, owner_id)
        try:
            return await self.store.create_conversation(
                owner_id, message.strip()[:CONVERSATION_TITLE_CHARS]
            )
        except Exception as exc:
            logger.error("Failed to create conversation for owner %s: %s", owner_id, exc)
            return None

    async def _owned_conversation(self, conversation_id: str, owner_id: str) -> Optional[str]:
        try:
            conversation = await self.store.get_conversation(conversation_id)
        except Exception as exc:
            logger.error("Failed to load conversation %s: %s", conversation_id, exc)
            return None
        if conversation is None or conversation.owner_id != owner_id:
            raise ConversationNotFoundError(conversation_id)
        return conversation_id

    async def _persist(self, conversation_id: Optional[str], content: str, role: MessageRole) -> None:
        if self.store is None or not conversation_id:
            return
        try:
            await self.store.append_message(conversation_id, content, role)
        except Exception as exc:
            logger.error(
                "Failed to persist %s message in conversation %s: %s",
                role.value, conversation_id, exc,
            )

    @staticmethod
    def _failure(
        state: ChatState,
        kind: FailureKind,
        attempts: int,
        conversation_id: Optional[str],
        statuses: List[ChatState],
    ) -> ChatOutcome:
        return ChatOutcome(
            state=state,
            reply=DEGRADED_MESSAGES[kind],
            attempts=attempts,
            conversation_id=conversation_id,
            failure_kind=kind,
            status_history=tuple(statuses),
        )


def _turn_fields(item: Any) -> Tuple[Any, Any]:
    if isinstance(item, Mapping):
        return item.get("role"), item.get("content")
    return getattr(item, "role", None), getattr(item, "content", None)
