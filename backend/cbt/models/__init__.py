"""
Models package for the CBT portal core.
"""
from .base import Base, engine, SessionLocal, get_db
from .models import (
    ActivityLog,
    Question,
    TestCode,
    TestResult,
    TestType,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "ActivityLog",
    "Question",
    "TestCode",
    "TestResult",
    "TestType",
]
