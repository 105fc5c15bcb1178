"""
couponbook - lets one identified user send a redeemable coupon to another.

This package provides the entity persistence layer behind the coupon exchange:

- Immutable users addressable by internal, unique and public ids
- Coupons with an Active -> Redeemed lifecycle enforced down to the schema
- Per-connection caches of prepared statements with explicit release
- Same/equal comparison of coupon values across state transitions

Drivers (the bundled CLI, form handlers, tests) call into the stores with
already validated primitive values.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from couponbook.config import Settings, get_settings
from couponbook.domain import (
    Coupon,
    CouponPrimitive,
    CouponStatus,
    EqualResult,
    SameResult,
    User,
    equal,
    same,
)
from couponbook.errors import (
    ConstraintViolation,
    CouponbookError,
    EngineError,
    InvalidStateTransition,
    LockError,
    ReadOnlyViolation,
    StatementFinalized,
    Uninitialized,
    UniqueConstraintViolation,
)
from couponbook.infrastructure import MEMORY, Database, Statement, StatementCache
from couponbook.infrastructure.db_factory import (
    Stores,
    ensure_schema,
    open_database,
    open_stores,
    reset_schema,
    store_session,
)
from couponbook.stores import CouponStore, UserStore
from couponbook.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Coupon",
    "CouponPrimitive",
    "CouponStatus",
    "EqualResult",
    "SameResult",
    "User",
    "equal",
    "same",
    # Errors
    "ConstraintViolation",
    "CouponbookError",
    "EngineError",
    "InvalidStateTransition",
    "LockError",
    "ReadOnlyViolation",
    "StatementFinalized",
    "Uninitialized",
    "UniqueConstraintViolation",
    # Engine and lifecycle
    "MEMORY",
    "Database",
    "Statement",
    "StatementCache",
    "Stores",
    "ensure_schema",
    "open_database",
    "open_stores",
    "reset_schema",
    "store_session",
    # Stores
    "CouponStore",
    "UserStore",
    # Logging
    "configure_logging",
    "get_logger",
]
