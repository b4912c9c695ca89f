"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Centralized test configuration with markers
WHY: Enable test organization, filtering, and shared test utilities
HOW: Define pytest markers, fixtures, and test helpers
"""

import pytest
from sqlalchemy.orm import sessionmaker

from quickchat.core.database import create_db_engine, init_db
from quickchat.core.provider_store import SqlProviderStore
from quickchat.llm.types import ProviderDescriptor, ProviderType


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """
    Reset sse-starlette's process-wide exit event.

    WHAT: Clear the event bound to a previous TestClient's loop
    WHY: Each TestClient runs its own event loop
    HOW: Set AppStatus.should_exit_event back to None around each test
    """
    from sse_starlette.sse import AppStatus

    AppStatus.should_exit_event = None
    yield
    AppStatus.should_exit_event = None


@pytest.fixture
def session_factory(tmp_path):
    """
    Session factory bound to a throwaway SQLite file.

    WHAT: Fresh schema per test
    WHY: Provider tests must not see each other's rows
    HOW: create_db_engine + init_db(bind=engine) under tmp_path
    """
    engine = create_db_engine(f"sqlite:///{tmp_path / 'quickchat_test.db'}")
    init_db(bind=engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    yield factory
    engine.dispose()


@pytest.fixture
def provider_store(session_factory):
    return SqlProviderStore(session_factory)


def make_descriptor(provider_type=ProviderType.OPENAI, model=None, base_url=None, name="Test Provider"):
    """Build a descriptor with per-type defaults."""
    ptype = ProviderType.parse(provider_type)
    return ProviderDescriptor(
        id=f"{ptype.value}-1",
        name=name,
        provider_type=ptype,
        model=ptype.default_model if model is None else model,
        base_url=base_url,
    )


@pytest.fixture
def openai_descriptor():
    return make_descriptor(ProviderType.OPENAI)


@pytest.fixture
def anthropic_descriptor():
    return make_descriptor(ProviderType.ANTHROPIC)


@pytest.fixture
def google_descriptor():
    return make_descriptor(ProviderType.GOOGLE)


@pytest.fixture
def volcengine_descriptor():
    return make_descriptor(ProviderType.VOLCENGINE)


def sse_body(*payloads: str) -> bytes:
    """Encode payloads as an SSE body (one `data:` block each)."""
    return "".join(f"data: {p}\n\n" for p in payloads).encode("utf-8")
