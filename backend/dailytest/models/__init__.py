"""
Models package for the daily test backend.
"""
from .base import Base, Database, get_db
from .models import (
    Test,
    Question,
    User,
    Submission,
    AnonymousSubmission,
    TestKind,
    Phase,
    OPTION_KEYS,
)

__all__ = [
    "Base",
    "Database",
    "get_db",
    "Test",
    "Question",
    "User",
    "Submission",
    "AnonymousSubmission",
    "TestKind",
    "Phase",
    "OPTION_KEYS",
]
