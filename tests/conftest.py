"""
Shared fixtures for JurisIA backend tests.

Set TEST_DATABASE_URL to run against a real database (e.g.
postgresql+asyncpg://...); otherwise each test gets its own SQLite file (via
aiosqlite) under pytest's tmp_path.  Tables are created with create_all.  The text-completion service
is replaced by ``FakeLLM`` so no test ever reaches the network.
"""
from __future__ import annotations

import asyncio
import os
from typing import AsyncGenerator, Callable, List, Optional, Sequence

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override settings *before* any jurisia module is imported, so that the
# global engine never points at the dev database and no API key leaks into tests.
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL or "sqlite+aiosqlite:///./jurisia_test.db"
os.environ["GROQ_API_KEY"] = ""
os.environ["ANALYSIS_MODE"] = "auto"

from jurisia.database import Base, get_db  # noqa: E402
from jurisia.dependencies.services import (  # noqa: E402
    get_analysis_cache,
    get_chat_orchestrator,
    get_conversation_store,
    get_jurisprudence_cache,
    get_llm_service,
)
from jurisia.main import app  # noqa: E402
from jurisia.models import database_models  # noqa: E402,F401
from jurisia.services.chat_service import ChatSendOrchestrator  # noqa: E402
from jurisia.services.conversation_store import ConversationStore  # noqa: E402
from jurisia.services.llm_client import (  # noqa: E402
    Completion,
    LLMResponseError,
    TokenUsage,
)
from jurisia.services.response_cache import ResponseCache  # noqa: E402
from jurisia.utils.helpers import parse_json_robust  # noqa: E402


DEFAULT_REPLY = (
    "A responsabilidade civil está prevista no art. 186 do CC e na Lei nº 8.078/90. "
    "Veja também o REsp 1.234.567/SP e a Súmula 37 do STJ."
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeLLM:
    """
    Scripted stand-in for GroqLLMService.

    Args:
        reply:       Text returned when no responder is given.
        responder:   ``prompt -> text`` callable, overrides ``reply``.
        failures:    Exceptions raised on successive calls (None = succeed).
        fail_always: Exception raised on every call.
        delay:       Seconds to await before answering.
        configured:  Value of ``is_configured``.
    """

    def __init__(
        self,
        reply: str = DEFAULT_REPLY,
        responder: Optional[Callable[[str], str]] = None,
        failures: Sequence[Optional[Exception]] = (),
        fail_always: Optional[Exception] = None,
        delay: float = 0.0,
        configured: bool = True,
    ) -> None:
        self.reply = reply
        self.responder = responder
        self._failures: List[Optional[Exception]] = list(failures)
        self.fail_always = fail_always
        self.delay = delay
        self.configured = configured
        self.calls: List[str] = []
        self.histories: List[list] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def complete(self, prompt, *, temperature=None, max_tokens=None, history=None, system_prompt=None):
        self.calls.append(prompt)
        self.histories.append(list(history or []))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_always is not None:
            raise self.fail_always
        if self._failures:
            failure = self._failures.pop(0)
            if failure is not None:
                raise failure
        text = self.responder(prompt) if self.responder else self.reply
        return Completion(text=text, token_usage=TokenUsage(10, 20, 30), model_id="fake-model")

    async def complete_json(self, prompt, *, temperature=None, max_tokens=None):
        completion = await self.complete(prompt, temperature=temperature, max_tokens=max_tokens)
        ok, parsed = parse_json_robust(completion.text)
        if not ok:
            raise LLMResponseError("no JSON in fake reply")
        return parsed


class RecordingSleep:
    """Instant replacement for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory with all tables created.  Uses TEST_DATABASE_URL when set
    (tables are dropped afterwards), otherwise a fresh SQLite file per test.
    """
    database_url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'jurisia.db'}"
    engine = create_async_engine(database_url, echo=False, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    if TEST_DATABASE_URL:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
def store(session_factory) -> ConversationStore:
    return ConversationStore(session_factory)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def make_llm() -> Callable[..., FakeLLM]:
    """Factory for tests that need a differently scripted FakeLLM."""
    return FakeLLM


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def analysis_cache() -> ResponseCache:
    return ResponseCache("analysis-test", default_ttl=1800, check_period=300)


@pytest.fixture
def jurisprudence_cache() -> ResponseCache:
    return ResponseCache("jurisprudence-test", default_ttl=86400, check_period=3600)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    store: ConversationStore,
    fake_llm: FakeLLM,
    analysis_cache: ResponseCache,
    jurisprudence_cache: ResponseCache,
    recording_sleep: RecordingSleep,
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app.  ASGITransport does not run
    the lifespan, so every app.state-backed provider is overridden here.
    """

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_conversation_store] = lambda: store
    app.dependency_overrides[get_llm_service] = lambda: fake_llm
    app.dependency_overrides[get_analysis_cache] = lambda: analysis_cache
    app.dependency_overrides[get_jurisprudence_cache] = lambda: jurisprudence_cache
    app.dependency_overrides[get_chat_orchestrator] = lambda: ChatSendOrchestrator(
        llm=fake_llm, store=store, sleep=recording_sleep
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def auth_headers() -> dict:
    return {"X-User-Id": "test-user-1"}


@pytest.fixture
def other_auth_headers() -> dict:
    return {"X-User-Id": "test-user-2"}
