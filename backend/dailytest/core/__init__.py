"""
Core module for application configuration and utilities.

Note: identity and the scoring/ranking engines are not imported at package
level to avoid circular imports with dailytest.models (which imports
datetime_utils from dailytest.core).
Import them directly: from dailytest.core.identity import ...
"""
from .config import settings

__all__ = ["settings"]
