"""
Error taxonomy for couponbook.

Engine failures are translated into these types by the database adapter; the
stores never swallow or retry them. A lookup that misses is not an error: it
returns ``None``.
"""

from __future__ import annotations

from typing import Optional


class CouponbookError(Exception):
    """Root of every error raised by this package."""


class EngineError(CouponbookError):
    """
    A failure reported by the relational engine.

    The message keeps the engine wording prefixed by its result code, e.g.
    ``SQLITE_CONSTRAINT: UNIQUE constraint failed: user.unique_id``.
    """

    def __init__(self, message: str, code: str = "SQLITE_ERROR") -> None:
        super().__init__(message)
        self.code = code

    @property
    def message(self) -> str:
        return str(self)


class ConstraintViolation(EngineError):
    """A schema constraint or trigger rejected the statement."""


class UniqueConstraintViolation(ConstraintViolation):
    """An insert collided with a UNIQUE column."""

    def __init__(self, message: str, code: str = "SQLITE_CONSTRAINT", constraint: Optional[str] = None) -> None:
        super().__init__(message, code)
        self.constraint = constraint


class ReadOnlyViolation(ConstraintViolation):
    """An update targeted a row the schema declares immutable."""

    def __init__(self, message: str, code: str = "SQLITE_CONSTRAINT", table: Optional[str] = None) -> None:
        super().__init__(message, code)
        self.table = table


class LockError(EngineError):
    """The operation needs a lock held by an unreleased statement or another connection."""


class StatementFinalized(EngineError):
    """A finalized statement was used again."""


class Uninitialized(CouponbookError):
    """A store was used before its statements were prepared, or after it was closed."""


class InvalidStateTransition(CouponbookError):
    """A coupon was asked to move to a status its lifecycle does not allow."""


__all__ = [
    "CouponbookError",
    "ConstraintViolation",
    "EngineError",
    "InvalidStateTransition",
    "LockError",
    "ReadOnlyViolation",
    "StatementFinalized",
    "Uninitialized",
    "UniqueConstraintViolation",
]
