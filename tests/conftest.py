"""Test configuration and fixtures for portfolio content tests."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src to path for development testing
_src_dir = Path(__file__).parent.parent / "src"
if _src_dir.exists():
    sys.path.insert(0, str(_src_dir))

from portfolio_content.coordinator import WriteCoordinator  # noqa: E402
from portfolio_content.invalidation import RecordingInvalidator  # noqa: E402
from portfolio_content.listing import ListingAssembler  # noqa: E402
from portfolio_content.repository import build_repositories  # noqa: E402
from portfolio_content.store import SQLiteStore  # noqa: E402


class TickClock:
    """Clock returning a strictly increasing ISO timestamp on every call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> str:
        self.current += timedelta(seconds=1)
        return self.current.isoformat()


# ==============================================================================
# Shared pytest fixtures
# ==============================================================================

@pytest.fixture
def db_path(tmp_path) -> Path:
    """Create an initialized test database and return its path."""
    path = tmp_path / "portfolio.db"
    SQLiteStore(path).init_schema()
    return path


@pytest.fixture
def store(db_path) -> SQLiteStore:
    return SQLiteStore(db_path)


@pytest.fixture
def clock() -> TickClock:
    return TickClock()


@pytest.fixture
def repositories(store, clock):
    return build_repositories(store, clock)


@pytest.fixture
def recorder() -> RecordingInvalidator:
    return RecordingInvalidator()


@pytest.fixture
def coordinator(repositories, recorder, clock) -> WriteCoordinator:
    return WriteCoordinator(repositories, invalidator=recorder, clock=clock)


@pytest.fixture
def assembler(repositories) -> ListingAssembler:
    return ListingAssembler(repositories)
