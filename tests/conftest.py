"""
Shared fixtures for Draftsmith backend integration tests.

Uses a throw-away SQLite database (aiosqlite) in a temporary directory.
Tables are created before and dropped after every test that uses the
``database`` fixture (directly or through ``client``/``orchestrator``).  The
content provider and the PDF converter are replaced by in-process fakes, so
no network access and no LibreOffice installation are needed.
"""
from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
import time
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine point at the test DB.
_TMP_ROOT = tempfile.mkdtemp(prefix="draftsmith-tests-")
TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(_TMP_ROOT, 'draftsmith_test.db')}",
)
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_ROOT, "uploads")
os.environ["OUTPUT_DIR"] = os.path.join(_TMP_ROOT, "outputs")

from app.config import settings  # noqa: E402
from app.database import AsyncSessionLocal, Base, engine  # noqa: E402
from app.dependencies.generation import get_orchestrator  # noqa: E402
from app.main import app  # noqa: E402
from app.services.content_provider import ProviderError  # noqa: E402
from app.services.orchestrator import GenerationOrchestrator, build_orchestrator  # noqa: E402
from generate_doc import build_sample_template  # noqa: E402


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeProvider:
    """
    Content provider that answers every prompt with ``words`` filler words.

    Records each prompt and the monotonic time of each call.  ``fail_on``
    makes the N-th call (1-based) raise ProviderError.  While ``gate`` is set to an
    unset asyncio.Event, every call waits on it.
    """

    name = "fake"

    def __init__(self, words: int = 12, fail_on: Optional[int] = None) -> None:
        self.words = words
        self.fail_on = fail_on
        self.prompts: List[str] = []
        self.call_times: List[float] = []
        self.healthy = True
        self.closed = False
        self.gate: Optional[asyncio.Event] = None

    async def generate(self, prompt: str, max_tokens: int = 2048) -> str:
        self.prompts.append(prompt)
        self.call_times.append(time.monotonic())
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_on is not None and len(self.prompts) == self.fail_on:
            raise ProviderError("quota exceeded")
        return " ".join(f"word{i}" for i in range(self.words))

    async def check_health(self) -> bool:
        return self.healthy

    async def aclose(self) -> None:
        self.closed = True


class FakeConverter:
    """Writes a placeholder PDF next to the DOCX instead of running LibreOffice."""

    def __init__(self, produce: bool = True) -> None:
        self.produce = produce
        self.calls: List[str] = []

    def is_available(self) -> bool:
        return True

    async def convert(self, source_path: str, output_dir: str) -> str:
        self.calls.append(source_path)
        stem = os.path.splitext(os.path.basename(source_path))[0]
        pdf_path = os.path.join(output_dir, f"{stem}.pdf")
        if self.produce:
            with open(pdf_path, "wb") as fh:
                fh.write(b"%PDF-1.4\n%%EOF\n")
        return pdf_path


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Create all tables and empty storage dirs before each test; drop them afterwards."""
    # Job ids restart at 1 with every fresh schema, so job-addressed output
    # from an earlier test must not survive into the next one.
    for path in (settings.UPLOAD_DIR, settings.OUTPUT_DIR):
        shutil.rmtree(path, ignore_errors=True)
        os.makedirs(path, exist_ok=True)

    async with engine.begin() as conn:
        from app.models import database_models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def converter() -> FakeConverter:
    return FakeConverter()


@pytest_asyncio.fixture
async def orchestrator(
    database: None,
    provider: FakeProvider,
    converter: FakeConverter,
) -> GenerationOrchestrator:
    """Orchestrator wired to the test DB with the fakes and a short call delay."""
    orch = build_orchestrator(settings, provider, AsyncSessionLocal, converter=converter)
    orch.call_delay = 0.01
    return orch


@pytest_asyncio.fixture
async def client(
    orchestrator: GenerationOrchestrator,
    provider: FakeProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app.

    The lifespan does not run under ASGITransport, so the generation services
    are attached here.
    """
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.state.provider = provider
    app.state.orchestrator = orchestrator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await orchestrator.runner.drain(timeout=5)
    app.dependency_overrides.clear()
    app.state.provider = None
    app.state.orchestrator = None


@pytest.fixture
def template_file(tmp_path) -> str:
    """A DOCX template with OBJECTIVE, CONTENT and REFERENCES markers."""
    return build_sample_template(
        str(tmp_path / "template.docx"),
        sections=("OBJECTIVE", "CONTENT", "REFERENCES"),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

AUTH_HEADERS = {
    "X-User-Id": "test-user-1",
    "X-User-Email": "test1@example.com",
    "X-User-Name": "Test User 1",
}

AUTH_HEADERS_USER2 = {
    "X-User-Id": "test-user-2",
    "X-User-Email": "test2@example.com",
    "X-User-Name": "Test User 2",
}

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


async def upload_template(client: AsyncClient, path: str, headers=None) -> dict:
    """Upload the DOCX at *path* and return the JSON body (asserts 201)."""
    headers = headers or AUTH_HEADERS
    with open(path, "rb") as fh:
        resp = await client.post(
            "/api/templates/upload",
            headers=headers,
            files={"template": (os.path.basename(path), fh.read(), DOCX_MEDIA_TYPE)},
        )
    assert resp.status_code == 201, resp.text
    return resp.json()
