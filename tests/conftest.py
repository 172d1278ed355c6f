import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["CACHE_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from itertools import count

import httpx
import pytest

from quizhub.core.clock import get_clock
from quizhub.core.database import build_engine, build_session_factory, get_session_factory, init_models
from quizhub.core.rate_limiter import rate_limiter
from quizhub.core.security import create_access_token
from quizhub.models import Grade, Institution, Question, Quiz, Subject, User, UserRole
from quizhub.models.tenant_specific.quiz import DifficultyLevel
from quizhub.services.access_control import Principal

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

_phones = count(1000000)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def engine(tmp_path):
    # A file database, so separate sessions really contend on the same rows
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'quizhub.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


async def add_user(db, role: UserRole, institution=None, approved: bool = True, name: str = None) -> User:
    user = User(
        name=name or role.value.title(),
        phone_number=f"+91{next(_phones)}",
        role=role,
        institution_id=institution.id if institution else None,
        approved=approved,
    )
    db.add(user)
    await db.commit()
    return user


async def add_quiz(db, subject, author, institution=None, questions=3, points=1, start=None, end=None, **settings) -> Quiz:
    quiz = Quiz(
        title="Fractions check",
        subject_id=subject.id,
        institution_id=institution.id if institution else None,
        created_by_id=author.id,
        start_time=start or T0 - timedelta(minutes=10),
        end_time=end or T0 + timedelta(hours=1),
        duration_mins=30,
        settings={"allow_retake": False, "show_results": True, "randomize_questions": False,
                  "time_limit": True, "passing_score": 60, **settings},
    )
    db.add(quiz)
    await db.flush()
    for number in range(1, questions + 1):
        db.add(Question(
            quiz_id=quiz.id,
            order_number=number,
            text=f"Question number {number}?",
            options=["A", "B", "C"],
            answer="A",
            difficulty=DifficultyLevel.EASY,
            points=points,
        ))
    await db.commit()
    return quiz


def principal_of(user: User) -> Principal:
    return Principal.from_user(user)


@dataclass
class World:
    institution: Institution
    other_institution: Institution
    grade: Grade
    subject: Subject
    other_subject: Subject
    super_admin: User
    creator: User
    admin: User
    teacher: User
    student: User
    classmate: User
    outsider: User
    quiz: Quiz


@pytest.fixture
async def world(db) -> World:
    institution = Institution(name="Green Valley School", address="12 Hill Road", approved=True)
    other_institution = Institution(name="River Side School", address="4 Bank Street", approved=True)
    db.add_all([institution, other_institution])
    await db.flush()

    grade = Grade(institution_id=institution.id, name="Grade 7")
    other_grade = Grade(institution_id=other_institution.id, name="Grade 7")
    db.add_all([grade, other_grade])
    await db.flush()

    subject = Subject(grade_id=grade.id, name="Mathematics")
    other_subject = Subject(grade_id=other_grade.id, name="Mathematics")
    db.add_all([subject, other_subject])
    await db.commit()

    super_admin = await add_user(db, UserRole.SUPER_ADMIN)
    creator = await add_user(db, UserRole.GLOBAL_CONTENT_CREATOR)
    admin = await add_user(db, UserRole.ADMIN, institution)
    teacher = await add_user(db, UserRole.TEACHER, institution)
    student = await add_user(db, UserRole.STUDENT, institution, name="Asha")
    classmate = await add_user(db, UserRole.STUDENT, institution, name="Ravi")
    outsider = await add_user(db, UserRole.STUDENT, other_institution, name="Meera")

    quiz = await add_quiz(db, subject, teacher, institution)

    return World(
        institution=institution,
        other_institution=other_institution,
        grade=grade,
        subject=subject,
        other_subject=other_subject,
        super_admin=super_admin,
        creator=creator,
        admin=admin,
        teacher=teacher,
        student=student,
        classmate=classmate,
        outsider=outsider,
        quiz=quiz,
    )


def auth_headers(user: User) -> dict:
    token = create_access_token(user.id, user.role, user.institution_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory, clock):
    from quizhub.main import app

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: clock
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
