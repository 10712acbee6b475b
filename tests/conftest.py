# tests/conftest.py
import os

# The app reads settings at import time; point it at a throwaway database first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.pop("SQLALCHEMY_DATABASE_URL", None)

import logging
import sys
from datetime import date, datetime

import pytest
from httpx import AsyncClient, ASGITransport

from oitrack.database import AsyncSessionLocal, Base, engine
from oitrack.main import app
from oitrack.models.task import Task, TaskManager
from oitrack.models.user import Department, User


@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    root = logging.getLogger()
    if not any(getattr(h, "stream", None) is sys.stdout for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


# Run async tests and fixtures on asyncio only
@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def now() -> datetime:
    return datetime.now()


@pytest.fixture
async def seeded(now):
    """Fresh schema with two departments, four users and three tasks."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    year = now.year
    async with AsyncSessionLocal() as db:
        db.add_all([
            Department(id=1, name="경영지원본부", parent_id=None),
            Department(id=2, name="재무팀", parent_id=1),
        ])
        db.add_all([
            User(id="admin", name="관리자", role="admin", dept_id=1),
            User(id="u1", name="김철수", role="staff", dept_id=2),
            User(id="u2", name="이영희", role="staff", dept_id=2),
            User(id="u3", name="박민수", role="staff", dept_id=1),
        ])
        db.add_all([
            Task(
                id=1, task_type="oi", name="원가 절감", status="inProgress",
                start_date=date(year - 1, 1, 1), end_date=date(year, 12, 31),
                evaluation_type="quantitative", metric="amount",
                target_value=1_200_000, reverse_yn=False, dept_id=2,
            ),
            Task(
                id=2, task_type="keyFocus", name="고객 만족도 향상", status="inProgress",
                start_date=date(year, 1, 1), end_date=date(year, 12, 31),
                evaluation_type="quantitative", metric="percent",
                target_value=80, reverse_yn=False, dept_id=2,
            ),
            Task(
                id=3, task_type="oi", name="업무 프로세스 개선", status="inProgress",
                start_date=date(year, 1, 1), end_date=date(year, 12, 31),
                evaluation_type="qualitative", reverse_yn=False, dept_id=1,
            ),
        ])
        await db.flush()
        db.add_all([
            TaskManager(task_id=1, user_id="u1"),
            TaskManager(task_id=2, user_id="u2"),
            TaskManager(task_id=3, user_id="u1"),
            TaskManager(task_id=3, user_id="u2"),
        ])
        await db.commit()
    yield


@pytest.fixture
async def client(seeded):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
