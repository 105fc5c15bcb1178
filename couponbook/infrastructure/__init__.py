"""
Infrastructure package for couponbook.

Centralizes database concerns: the engine adapter, the per-connection
statement cache and connection/store lifecycle. Keep this layer focused on I/O
and resource management, decoupled from coupon semantics.
"""

from couponbook.infrastructure.database import MEMORY, Database, RunResult, Statement
from couponbook.infrastructure.statement_cache import StatementCache

__all__ = [
    "MEMORY",
    "Database",
    "RunResult",
    "Statement",
    "StatementCache",
]
