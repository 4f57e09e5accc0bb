"""
errors.py — Error taxonomy for the curriculum map package
=========================================================
Every error carries a stable rule ``code`` (e.g. ``"invalid_score"``), a
human-readable ``message`` and, where it applies, the ``field`` that caused it.

  ValidationError          bad input shape or range
  IllegalTransitionError   status change not permitted from the current state
  NotFoundError            guide or subject id does not resolve
  StoreError               underlying persistence failure (cause chained)
  AuthError                credentials, session, or ownership failure

GuideEngine raises only the first three and never touches storage.
"""

from __future__ import annotations


class CurriculumMapError(Exception):
    """Base class for all package errors."""

    def __init__(self, code: str, message: str, field: str = ""):
        super().__init__(message)
        self.code    = code
        self.message = message
        self.field   = field

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ValidationError(CurriculumMapError):
    pass


class IllegalTransitionError(CurriculumMapError):
    def __init__(self, current: str, requested: str):
        super().__init__(
            "illegal_transition",
            f"Cannot change status from '{current}' to '{requested}'.",
            field="status",
        )
        self.current   = current
        self.requested = requested


class NotFoundError(CurriculumMapError):
    pass


class StoreError(CurriculumMapError):
    def __init__(self, message: str):
        super().__init__("store_failure", message)


class AuthError(CurriculumMapError):
    pass
