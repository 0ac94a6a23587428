"""Pytest configuration file for setting up test environment."""

import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

# Add the backend directory to Python path so tests can import userdir
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from userdir.common import Role, User  # noqa: E402
from userdir.directory import UserDirectory  # noqa: E402


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Path to a fresh SQLite file for one test."""
    return str(tmp_path / "users.db")


@pytest_asyncio.fixture
async def directory(db_path: str) -> AsyncGenerator[UserDirectory, None]:
    """An open directory backed by a temporary database."""
    async with UserDirectory(db_path) as user_directory:
        yield user_directory


@pytest.fixture
def ann() -> User:
    return User("Ann", "ann@example.com", "ann-pw")


@pytest.fixture
def moderator() -> User:
    return User("Mo", "mo@example.com", "mo-pw", Role.MODERATOR)


@pytest.fixture
def admin() -> User:
    return User("Ad", "ad@example.com", "ad-pw", Role.ADMIN)


@pytest.fixture
def superadmin() -> User:
    return User("Sue", "sue@example.com", "sue-pw", Role.SUPERADMIN)
