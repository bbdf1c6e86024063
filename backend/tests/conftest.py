"""
Pytest configuration and shared fixtures for testing.

Time is frozen through the ``get_clock`` dependency. The default instant is
10:00 platform time on ``TEST_DATE``: the test window (09:00-18:00) is open
and the rank-reveal gate (20:00) is still closed.
"""
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from dailytest.core.datetime_utils import Clock, get_clock
from dailytest.core.identity import InvalidCredentialError, VerifiedIdentity
from dailytest.main import app
from dailytest.models import (
    OPTION_KEYS,
    Base,
    Phase,
    Question,
    Test,
    get_db,
)
from dailytest.models import TestKind as Kind


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests.

    Skips the production database handle, identity provider and error
    tracking initialization.
    """
    yield


# Neutralize the production lifespan on the singleton app.
app.router.lifespan_context = _test_lifespan


# Use SQLite for tests; the path is relative to this file so the .db lands
# inside tests/ regardless of the working directory.
_TEST_DB = Path(__file__).parent / "test.db"
SQLALCHEMY_DATABASE_URL = f"sqlite:///{_TEST_DB}"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Platform timezone used by the default settings (UTC+05:30)
IST = timezone(timedelta(hours=5, minutes=30))

TEST_DATE = date(2025, 3, 14)
WINDOW_START = datetime(2025, 3, 14, 9, 0, tzinfo=IST)
WINDOW_END = datetime(2025, 3, 14, 18, 0, tzinfo=IST)
REVEAL_AT = datetime(2025, 3, 14, 20, 0, tzinfo=IST)
DURING_WINDOW = datetime(2025, 3, 14, 10, 0, tzinfo=IST)
AFTER_REVEAL = datetime(2025, 3, 14, 21, 0, tzinfo=IST)

QUESTIONS_PER_PHASE = 5


class FrozenClock(Clock):
    """Clock whose current instant is set by the test."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current.astimezone(timezone.utc)

    def set(self, current: datetime) -> None:
        self.current = current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeIdentityVerifier:
    """Maps fixed tokens to identities; anything else is rejected."""

    def __init__(self, identities: Optional[Dict[str, VerifiedIdentity]] = None):
        self.identities = dict(identities or {})

    def verify(self, token: str) -> VerifiedIdentity:
        try:
            return self.identities[token]
        except KeyError:
            raise InvalidCredentialError("unknown token") from None

    def close(self) -> None:
        pass


USERS = {
    "alice-token": VerifiedIdentity(
        subject_id="uid-alice", display_name="Alice", email="alice@example.com"
    ),
    "bob-token": VerifiedIdentity(
        subject_id="uid-bob", display_name="Bob", email="bob@example.com"
    ),
    "carol-token": VerifiedIdentity(
        subject_id="uid-carol", display_name="Carol", email="carol@example.com"
    ),
    "dave-token": VerifiedIdentity(
        subject_id="uid-dave", display_name="Dave", email="dave@example.com"
    ),
}


def correct_option_for(ordinal: int) -> str:
    """Correct option used by seeded questions."""
    return OPTION_KEYS[(ordinal - 1) % len(OPTION_KEYS)]


def wrong_option_for(ordinal: int) -> str:
    return OPTION_KEYS[ordinal % len(OPTION_KEYS)]


def build_answers(
    questions: List[Question], correct: int = 0, incorrect: int = 0
) -> List[dict]:
    """
    Answer payload: the first ``correct`` questions right, the next
    ``incorrect`` wrong, the rest left out.
    """
    answers = []
    for index, question in enumerate(questions):
        if index < correct:
            option = question.correct_option
        elif index < correct + incorrect:
            option = wrong_option_for(question.ordinal)
        else:
            continue
        answers.append({"question_id": question.id, "selected_option": option})
    return answers


def auth(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    # Create all tables
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def frozen_clock():
    """Clock frozen inside the test window, before the rank reveal."""
    return FrozenClock(DURING_WINDOW)


@pytest.fixture
def identity_verifier():
    return FakeIdentityVerifier(USERS)


@pytest.fixture(scope="function")
def client(db_session, frozen_clock, identity_verifier):
    """
    Create a test client with database, clock and identity overrides.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: frozen_clock
    app.state.identity_verifier = identity_verifier
    # Request counters would otherwise carry over between tests
    rate_limit_storage = getattr(app.state, "rate_limit_storage", None)
    if rate_limit_storage is not None:
        rate_limit_storage.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    app.state.identity_verifier = None


@pytest.fixture
def auth_headers():
    """
    Authentication headers for the default test user (Alice).
    """
    return auth("alice-token")


def _create_test(
    db_session,
    *,
    title: str,
    kind: Kind,
    dual_phase: bool,
    scheduled_date: date = TEST_DATE,
    window_start: datetime = WINDOW_START,
    window_end: datetime = WINDOW_END,
) -> Test:
    phases = [Phase.GS, Phase.CSAT] if dual_phase else [Phase.GS]
    test = Test(
        title=title,
        scheduled_date=scheduled_date,
        kind=kind,
        window_start=window_start.astimezone(timezone.utc),
        window_end=window_end.astimezone(timezone.utc),
        question_count=QUESTIONS_PER_PHASE * len(phases),
        has_dual_phase=dual_phase,
    )
    db_session.add(test)
    db_session.flush()

    for phase in phases:
        for ordinal in range(1, QUESTIONS_PER_PHASE + 1):
            db_session.add(
                Question(
                    test_id=test.id,
                    ordinal=ordinal,
                    statement=f"{phase.value} question {ordinal}",
                    options={key: f"{key} text" for key in OPTION_KEYS},
                    correct_option=correct_option_for(ordinal),
                    phase=phase,
                )
            )

    db_session.commit()
    db_session.refresh(test)
    return test


@pytest.fixture
def create_test(db_session):
    """Factory for scheduled tests with seeded questions."""

    def _factory(**kwargs) -> Test:
        kwargs.setdefault("title", "Daily Test")
        kwargs.setdefault("kind", Kind.PAID)
        kwargs.setdefault("dual_phase", True)
        return _create_test(db_session, **kwargs)

    return _factory


@pytest.fixture
def paid_test(create_test):
    """Today's dual-phase (GS + CSAT) paid test."""
    return create_test(title="Prelims Mock 14 March")


@pytest.fixture
def free_test(create_test):
    """Today's single-phase free test."""
    return create_test(title="Free Practice", kind=Kind.FREE, dual_phase=False)


@pytest.fixture
def phase_questions(db_session):
    """Return the questions of a test phase in presentation order."""

    def _questions(test: Test, phase: Phase = Phase.GS) -> List[Question]:
        return (
            db_session.query(Question)
            .filter(Question.test_id == test.id, Question.phase == phase)
            .order_by(Question.ordinal)
            .all()
        )

    return _questions


@pytest.fixture
def submit(client, phase_questions):
    """POST a phase submission with a given number of right/wrong answers."""

    def _submit(
        test: Test,
        token: str = "alice-token",
        phase: Phase = Phase.GS,
        correct: int = 0,
        incorrect: int = 0,
    ):
        answers = build_answers(phase_questions(test, phase), correct, incorrect)
        return client.post(
            f"/v1/tests/{test.id}/phases/{phase.value}/submit",
            json={"answers": answers},
            headers=auth(token),
        )

    return _submit
