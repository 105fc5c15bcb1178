"""
Per-connection cache of named prepared statements.

A store prepares every query it needs once, when it is opened against a
connection, and routes all later calls through the cache. A closed or empty
cache fails fast with ``Uninitialized`` instead of falling back to ad-hoc SQL.
"""

from __future__ import annotations

from typing import Dict, List, Mapping

from couponbook.errors import Uninitialized
from couponbook.infrastructure.database import Database, Statement


class StatementCache:
    """
    Named statements compiled against a single ``Database``.

    Example
    -------
        cache = await StatementCache.build(db, {"get": "SELECT * FROM user WHERE internal_id = ?"})
        statement = cache.get("get")
        ...
        await cache.close()
    """

    def __init__(self, database: Database, owner: str = "StatementCache") -> None:
        self.database = database
        self.owner = owner
        self._statements: Dict[str, Statement] = {}
        self._closed = False

    @classmethod
    async def build(
        cls, database: Database, queries: Mapping[str, str], owner: str = "StatementCache"
    ) -> "StatementCache":
        """Prepare every query in ``queries``; on failure nothing stays prepared."""
        cache = cls(database, owner)
        try:
            for name, sql in queries.items():
                await cache.prepare(name, sql)
        except BaseException:
            await cache.close()
            raise
        return cache

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def names(self) -> List[str]:
        return sorted(self._statements)

    async def prepare(self, name: str, sql: str) -> Statement:
        if self._closed:
            raise Uninitialized(f"{self.owner} statements have been closed")
        if name in self._statements:
            await self._statements[name].finalize()
        statement = await self.database.prepare(sql)
        self._statements[name] = statement
        return statement

    def get(self, name: str) -> Statement:
        if self._closed:
            raise Uninitialized(f"{self.owner} statements have been closed")
        try:
            return self._statements[name]
        except KeyError:
            raise Uninitialized(f"{self.owner} has no prepared statement named '{name}'") from None

    async def close(self) -> None:
        """Finalize every cached statement. Idempotent."""
        if self._closed:
            return
        self._closed = True
        statements, self._statements = list(self._statements.values()), {}
        for statement in statements:
            await statement.finalize()


__all__ = ["StatementCache"]
