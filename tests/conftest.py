# tests/conftest.py
import logging
import os
import sys
from datetime import timedelta

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from academy.core.security import create_access_token
from academy.database import Base, get_db
from academy.main import app
from academy.models.group import Group
from academy.models.homework import Homework
from academy.models.user import User
from academy.services.rating import create_initial_rating
from academy.utils.dates import utcnow


@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    root = logging.getLogger()
    if not any(getattr(h, "stream", None) is sys.stdout for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'academy-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ==============================================================
# Seed helpers
# ==============================================================

async def make_user(db, role="student", first_name=None, points=0, group_id=None):
    first_name = first_name or role.capitalize()
    user = User(
        email=f"{first_name.lower()}.{role}@academy.example.com",
        first_name=first_name,
        last_name="Tester",
        hashed_password="not-a-real-hash",
        role=role,
        is_active=True,
        group_id=group_id,
        points=points,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_group(db, name="Group A", teacher=None):
    group = Group(
        name=name,
        subject="English Language Teaching",
        level="beginner",
        teacher_id=teacher.id if teacher else None,
        max_students=25,
        is_active=True,
    )
    db.add(group)
    await db.commit()
    await db.refresh(group)
    return group


async def make_homework(db, group, teacher, title="Essay", is_active=True):
    homework = Homework(
        title=title,
        group_id=group.id,
        teacher_id=teacher.id,
        due_date=utcnow() + timedelta(days=7),
        is_active=is_active,
    )
    db.add(homework)
    await db.commit()
    await db.refresh(homework)
    return homework


def auth_headers(user):
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin(db):
    return await make_user(db, role="admin", first_name="Ada")


@pytest.fixture
async def teacher(db):
    return await make_user(db, role="teacher", first_name="Tom")


@pytest.fixture
async def group(db, teacher):
    return await make_group(db, teacher=teacher)


@pytest.fixture
async def students(db, group):
    """Three students in ``group``, each with a zeroed rating, created in order."""
    created = []
    for name in ("Alice", "Bob", "Carol"):
        student = await make_user(db, first_name=name, group_id=group.id)
        await create_initial_rating(db, student.id, group.id)
        created.append(student)
    return created
