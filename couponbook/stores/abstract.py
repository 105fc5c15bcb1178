"""
Base class shared by the entity stores.

A store owns one table: its DDL, the named queries it runs against it and the
statement cache holding those queries for one connection. Stores are explicit
values: build one with ``await SomeStore.initialize(db)`` and pass it to
whoever needs it.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Optional

from couponbook.errors import Uninitialized
from couponbook.infrastructure.database import Database, Row
from couponbook.infrastructure.statement_cache import StatementCache
from couponbook.utils.logging import get_logger

log = get_logger(__name__)


class Store:
    """
    Subclasses set ``table``, ``create_script`` and ``queries``.

    Attributes
    ----------
    table : str
        Name of the owned table.
    create_script : str
        DDL creating the table and its triggers; must be safe to rerun
        (``IF NOT EXISTS``).
    queries : dict[str, str]
        Statement name to SQL, prepared once per connection.
    """

    table: ClassVar[str]
    create_script: ClassVar[str]
    queries: ClassVar[Dict[str, str]]

    def __init__(self) -> None:
        self._statements: Optional[StatementCache] = None

    @classmethod
    async def initialize(cls, database: Database):
        """Return a store with every statement prepared against ``database``."""
        store = cls()
        await store.open(database)
        return store

    @classmethod
    async def reset_table(cls, database: Database) -> None:
        """Drop and recreate the table. Maintenance only: all rows are lost."""
        await database.exec(
            f"BEGIN;\nDROP TABLE IF EXISTS {cls.table};\n{cls.create_script}\nCOMMIT;"
        )
        log.info("Table reset", extra={"table": cls.table, "database": database.filename})

    @classmethod
    async def ensure_table(cls, database: Database) -> None:
        """Create the table when it does not exist yet."""
        await database.exec(f"BEGIN;\n{cls.create_script}\nCOMMIT;")

    @property
    def is_initialized(self) -> bool:
        return (
            self._statements is not None
            and self._statements.is_open
            and not self._statements.database.closed
        )

    @property
    def database(self) -> Database:
        return self._require_initialized().database

    async def open(self, database: Database) -> None:
        """
        Prepare the store's statements against ``database``.

        A store already open against another connection releases its previous
        statements first.
        """
        if self._statements is not None:
            await self._statements.close()
            self._statements = None
        self._statements = await StatementCache.build(
            database, self.queries, owner=type(self).__name__
        )
        log.debug(
            "Store initialized",
            extra={"store": type(self).__name__, "database": database.filename},
        )

    async def close(self) -> None:
        """Finalize the cached statements. Idempotent."""
        if self._statements is None:
            return
        statements, self._statements = self._statements, None
        await statements.close()

    def _require_initialized(self) -> StatementCache:
        if not self.is_initialized:
            name = type(self).__name__
            raise Uninitialized(f"{name} is not initialized; call {name}.initialize(db) first")
        return self._statements

    async def _get(self, name: str, *params: Any) -> Optional[Row]:
        """Run a cached statement for its first row and release it."""
        statement = self._require_initialized().get(name)
        try:
            return await statement.get(*params)
        finally:
            await statement.reset()

    async def _all(self, name: str, *params: Any) -> List[Row]:
        statement = self._require_initialized().get(name)
        try:
            return await statement.all(*params)
        finally:
            await statement.reset()


__all__ = ["Store"]
