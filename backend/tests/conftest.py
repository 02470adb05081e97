"""Pytest configuration and fixtures for rulesgate tests.

Provides in-memory stores, restored gates and an HTTP client wired to
them, so no database or Redis is needed.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from rulesgate.main import app
from rulesgate.config import Settings
from rulesgate.schemas.agreement import AgreementRecord
from rulesgate.services.lifecycle import configure_app
from rulesgate.services.progress_gate import ProgressGate, build_sections
from rulesgate.stores.session import MemorySessionFlagStore

SECTION_IDS = ["section-posting", "section-bidding", "section-general"]
SESSION_ID = "0123456789abcdef0123456789abcdef"


# ── Fakes ────────────────────────────────────────────────────────

class FakeAgreementStore:
    """Records every insert attempt.

    `failures` is consumed one per attempt (None = succeed); `always`
    is raised on every attempt.
    """

    name = "fake"

    def __init__(self, failures=(), always: Exception | None = None):
        self.attempts: list[str] = []
        self.records: list[AgreementRecord] = []
        self._failures = list(failures)
        self._always = always

    async def insert(self, record: AgreementRecord) -> AgreementRecord:
        self.attempts.append(record.confirmation_code)
        if self._always is not None:
            raise self._always
        if self._failures:
            exc = self._failures.pop(0)
            if exc is not None:
                raise exc
        stored = record.model_copy(update={"id": len(self.records) + 1})
        self.records.append(stored)
        return stored

    async def query_all(self) -> list[AgreementRecord]:
        return sorted(self.records, key=lambda r: r.agreed_at, reverse=True)

    async def ping(self) -> None:
        return None


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ── Store / gate fixtures ────────────────────────────────────────

@pytest.fixture
def sections():
    return build_sections(SECTION_IDS)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_store(clock) -> MemorySessionFlagStore:
    return MemorySessionFlagStore(ttl_seconds=3600, clock=clock)


@pytest.fixture
def agreement_store() -> FakeAgreementStore:
    return FakeAgreementStore()


@pytest.fixture
def make_gate(sections, session_store):
    """Build and restore a gate for a session (default: SESSION_ID)."""

    async def _make(session_id: str = SESSION_ID) -> ProgressGate:
        gate = ProgressGate(sections, session_id, session_store)
        await gate.restore()
        return gate

    return _make


@pytest_asyncio.fixture
async def unlocked_gate(make_gate) -> ProgressGate:
    gate = await make_gate()
    await gate.observe_frame([(sid, True) for sid in SECTION_IDS])
    assert gate.unlocked
    return gate


# ── HTTP client ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(agreement_store, session_store) -> AsyncGenerator[AsyncClient, None]:
    """Client bound to one session cookie, app wired to the in-memory stores."""
    configure_app(app, agreement_store, session_store, cfg=Settings(sections=SECTION_IDS))

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Cookie": f"rulesgate_session={SESSION_ID}"},
    ) as client:
        yield client

    for attr in ("sections", "read_threshold", "session_store", "coordinator"):
        if hasattr(app.state, attr):
            delattr(app.state, attr)


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
