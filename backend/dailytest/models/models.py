"""
Database models for the daily test platform.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Text,
    Enum,
    Float,
    JSON,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from .base import Base


class TestKind(str, enum.Enum):
    """Whether a test is part of the paid track or the free, anonymous track."""

    PAID = "paid"
    FREE = "free"


class Phase(str, enum.Enum):
    """Independently timed and scored sections of a test."""

    GS = "GS"
    CSAT = "CSAT"


# The four option keys every question carries
OPTION_KEYS = ("option1", "option2", "option3", "option4")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Test(Base):
    """A scheduled daily test. Created by an external admin process."""

    __tablename__ = "tests"
    __test__ = False  # Not a pytest test class

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    scheduled_date = Column(Date, nullable=False, index=True)
    kind = Column(Enum(TestKind), nullable=False, default=TestKind.PAID)
    window_start = Column(DateTime(timezone=True), nullable=False)
    window_end = Column(DateTime(timezone=True), nullable=False)
    question_count = Column(Integer, nullable=False, default=0)
    has_dual_phase = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    questions = relationship(
        "Question", back_populates="test", cascade="all, delete-orphan"
    )

    __table_args__ = (
        # At most one test per (date, kind)
        UniqueConstraint("scheduled_date", "kind", name="uq_tests_date_kind"),
        CheckConstraint("window_end >= window_start", name="ck_tests_window_order"),
    )


class Question(Base):
    """A multiple-choice question owned by exactly one test."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        Integer, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ordinal = Column(Integer, nullable=False)
    statement = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # {"option1": "...", ..., "option4": "..."}
    # Never serialized on a public or pre-submission read path
    correct_option = Column(String(20), nullable=False)
    phase = Column(Enum(Phase), nullable=False, default=Phase.GS)

    test = relationship("Test", back_populates="questions")

    __table_args__ = (
        UniqueConstraint("test_id", "phase", "ordinal", name="uq_questions_position"),
    )


class User(Base):
    """Profile mirrored from the identity provider on authenticated writes."""

    __tablename__ = "users"

    # Stable subject id issued by the identity provider
    id = Column(String(128), primary_key=True)
    display_name = Column(String(255))
    email = Column(String(255), index=True)
    photo_url = Column(String(1024))
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    last_seen_at = Column(DateTime(timezone=True))

    submissions = relationship("Submission", back_populates="user")


class Submission(Base):
    """
    One graded attempt at one phase of a test. Immutable once written.

    The unique constraint on (user_id, test_id, phase, is_late) is the
    admission-control guarantee: at most one on-time and at most one late
    record per user and phase, even under concurrent submit requests.
    """

    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    test_id = Column(
        Integer, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False
    )
    phase = Column(Enum(Phase), nullable=False)
    correct_count = Column(Integer, nullable=False, default=0)
    incorrect_count = Column(Integer, nullable=False, default=0)
    unattempted_count = Column(Integer, nullable=False, default=0)
    attempted_count = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    # Full precision; display layers round to 2 decimal places
    net_score = Column(Float, nullable=False, default=0.0)
    started_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    is_late = Column(Boolean, nullable=False, default=False)
    answers = Column(JSON, nullable=False, default=list)

    user = relationship("User", back_populates="submissions")
    test = relationship("Test")

    __table_args__ = (
        UniqueConstraint(
            "user_id", "test_id", "phase", "is_late", name="uq_submissions_attempt"
        ),
        # Cohort scans and rank counts
        Index(
            "ix_submissions_cohort", "test_id", "phase", "is_late", "net_score"
        ),
    )


class AnonymousSubmission(Base):
    """Free-tier attempt without a user identity. Append-only."""

    __tablename__ = "anonymous_submissions"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        Integer, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    score = Column(Float, nullable=False, default=0.0)
    correct_count = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    submitted_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
