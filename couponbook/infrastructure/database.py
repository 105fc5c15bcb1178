"""
Asynchronous facade over the embedded SQLite engine.

Mirrors the small engine surface the stores are written against:
``Database.open``, ``Database.prepare``, ``Statement.get/all/run``,
``Statement.reset/finalize`` and ``Database.close``. Calls are logically
synchronous: each coroutine completes as soon as the underlying ``sqlite3``
call returns, without threads or internal queues.

Statement release semantics
---------------------------
``Statement.get`` returns the first row and leaves the statement unreleased,
the way a prepared statement stepped once stays open in the engine. While any
statement on a connection is unreleased, that connection holds an open
transaction: its writes are invisible to other connections on the same file,
and schema scripts issued through ``Database.exec`` fail with
``SQLITE_LOCKED: database table is locked``. Resetting or finalizing the last
unreleased statement commits.

Connections are opened in autocommit mode with a zero busy timeout, so lock
conflicts with other connections fail immediately instead of waiting.
"""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Union

from couponbook.errors import (
    ConstraintViolation,
    EngineError,
    LockError,
    ReadOnlyViolation,
    StatementFinalized,
    UniqueConstraintViolation,
)
from couponbook.utils.logging import get_logger

log = get_logger(__name__)

MEMORY = ":memory:"

Row = sqlite3.Row

_RESULT_CODES = {
    1: "SQLITE_ERROR",
    5: "SQLITE_BUSY",
    6: "SQLITE_LOCKED",
    19: "SQLITE_CONSTRAINT",
    21: "SQLITE_MISUSE",
}
_UNIQUE_FAILED = re.compile(r"UNIQUE constraint failed: (?P<constraint>[\w.]+)")
_READONLY = re.compile(r"^(?P<table>\w+) is readonly!$")
_TABLE_LOCKED = "SQLITE_LOCKED: database table is locked"


def _result_code(exc: sqlite3.Error) -> str:
    errorcode = getattr(exc, "sqlite_errorcode", None)
    if errorcode is not None and (errorcode & 0xFF) in _RESULT_CODES:
        return _RESULT_CODES[errorcode & 0xFF]
    if isinstance(exc, sqlite3.IntegrityError):
        return "SQLITE_CONSTRAINT"
    text = str(exc)
    if "table is locked" in text:
        return "SQLITE_LOCKED"
    if "database is locked" in text:
        return "SQLITE_BUSY"
    if isinstance(exc, sqlite3.ProgrammingError):
        return "SQLITE_MISUSE"
    return "SQLITE_ERROR"


def translate_error(exc: sqlite3.Error) -> EngineError:
    """
    Map a driver exception onto the package error taxonomy.

    The engine wording is kept verbatim behind its result code so callers can
    match on the exact message.
    """
    text = str(exc)
    code = _result_code(exc)
    message = f"{code}: {text}"

    if isinstance(exc, sqlite3.IntegrityError):
        unique = _UNIQUE_FAILED.search(text)
        if unique:
            return UniqueConstraintViolation(message, code, constraint=unique.group("constraint"))
        readonly = _READONLY.match(text)
        if readonly:
            return ReadOnlyViolation(message, code, table=readonly.group("table"))
        return ConstraintViolation(message, code)
    if code in ("SQLITE_BUSY", "SQLITE_LOCKED"):
        return LockError(message, code)
    return EngineError(message, code)


@dataclass(frozen=True)
class RunResult:
    """Outcome of a statement executed to completion."""

    last_row_id: Optional[int]
    changes: int


class Statement:
    """
    A query prepared against one connection.

    Obtain instances through ``Database.prepare``, which only validates the
    SQL. The connection compiles it on first use and keeps the compiled form
    in its statement cache for later runs.
    """

    def __init__(self, database: "Database", sql: str) -> None:
        self.sql = sql
        self._database = database
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def pending(self) -> bool:
        """Whether the statement was stepped and not yet released."""
        return self._database._is_held(self)

    def _require_usable(self) -> None:
        if self._finalized:
            raise StatementFinalized("SQLITE_MISUSE: statement has been finalized", "SQLITE_MISUSE")
        self._database._require_open()

    async def get(self, *params: Any) -> Optional[Row]:
        """
        Bind ``params`` and return the first row, or None when there is none.

        The statement stays unreleased until ``reset`` or ``finalize``.
        """
        self._require_usable()
        self._database._hold(self)
        try:
            cursor = self._database._connection.execute(self.sql, params)
            try:
                return cursor.fetchone()
            finally:
                cursor.close()
        except sqlite3.Error as exc:
            self._database._release(self)
            raise translate_error(exc) from exc

    async def all(self, *params: Any) -> List[Row]:
        """Run to completion and return every row."""
        self._require_usable()
        try:
            cursor = self._database._connection.execute(self.sql, params)
            try:
                return cursor.fetchall()
            finally:
                cursor.close()
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc

    async def run(self, *params: Any) -> RunResult:
        """Run to completion, discarding any rows."""
        self._require_usable()
        try:
            cursor = self._database._connection.execute(self.sql, params)
            try:
                cursor.fetchall()
                return RunResult(last_row_id=cursor.lastrowid, changes=max(cursor.rowcount, 0))
            finally:
                cursor.close()
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc

    async def reset(self) -> None:
        """Release the statement so its writes commit; it can be run again."""
        self._database._release(self)

    async def finalize(self) -> None:
        """
        Release the statement for good. Idempotent.

        When the releasing commit fails the statement stays pending and can be
        finalized again once the conflicting connection lets go.
        """
        if self._finalized:
            return
        self._database._release(self)
        self._finalized = True
        self._database._forget(self)


class Database:
    """
    One connection to a SQLite database file or an in-memory database.
    """

    def __init__(self, filename: str, connection: sqlite3.Connection) -> None:
        self.filename = filename
        self._connection = connection
        self._statements: List[Statement] = []
        self._held: List[Statement] = []
        self._owns_transaction = False
        self._closed = False

    @classmethod
    async def open(cls, filename: Union[str, Path] = MEMORY) -> "Database":
        """
        Open a connection to ``filename`` (or ``":memory:"``).

        Raises
        ------
        EngineError
            If the file cannot be opened.
        """
        name = str(filename)
        try:
            connection = sqlite3.connect(name, timeout=0, isolation_level=None)
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc
        try:
            connection.row_factory = sqlite3.Row
            connection.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as exc:
            connection.close()
            raise translate_error(exc) from exc
        log.debug("Database opened", extra={"database": name})
        return cls(name, connection)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_transaction(self) -> bool:
        return self._connection.in_transaction

    @property
    def pending_statements(self) -> int:
        return len(self._held)

    def _require_open(self) -> None:
        if self._closed:
            raise EngineError("SQLITE_MISUSE: database is closed", "SQLITE_MISUSE")

    async def prepare(self, sql: str) -> Statement:
        """
        Validate ``sql`` and return a reusable statement without running it.

        Queries use qmark (``?``) placeholders. Malformed SQL or references to
        missing tables fail here rather than at first use.
        """
        self._require_open()
        try:
            self._connection.execute(f"EXPLAIN {sql}", (None,) * sql.count("?")).fetchall()
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc
        statement = Statement(self, sql)
        self._statements.append(statement)
        return statement

    async def exec(self, script: str) -> None:
        """
        Execute a schema script.

        Raises
        ------
        LockError
            While any statement on this connection is unreleased.
        """
        self._require_open()
        if self._held:
            raise LockError(_TABLE_LOCKED, "SQLITE_LOCKED")
        try:
            self._connection.executescript(script)
        except sqlite3.Error as exc:
            if self._connection.in_transaction:
                self._connection.execute("ROLLBACK")
            raise translate_error(exc) from exc

    async def run(self, sql: str, *params: Any) -> RunResult:
        """Prepare, run and finalize a one-off statement."""
        statement = await self.prepare(sql)
        try:
            return await statement.run(*params)
        finally:
            await statement.finalize()

    async def get(self, sql: str, *params: Any) -> Optional[Row]:
        """Prepare a one-off statement, return its first row and finalize it."""
        statement = await self.prepare(sql)
        try:
            return await statement.get(*params)
        finally:
            await statement.finalize()

    async def close(self) -> None:
        """
        Finalize every outstanding statement and close the connection. Idempotent.

        Raises
        ------
        LockError
            If unreleased writes cannot be committed. The connection stays
            open with those statements pending, so ``close`` can be retried.
        """
        if self._closed:
            return
        for statement in list(self._statements):
            if statement.pending:
                log.warning(
                    "Finalizing unreleased statement at close",
                    extra={"database": self.filename, "sql": statement.sql},
                )
            await statement.finalize()
        if self._connection.in_transaction:
            log.warning("Rolling back open transaction at close", extra={"database": self.filename})
            self._connection.execute("ROLLBACK")
        self._connection.close()
        self._closed = True
        log.debug("Database closed", extra={"database": self.filename})

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Transaction bookkeeping for unreleased statements

    def _is_held(self, statement: Statement) -> bool:
        return statement in self._held

    def _hold(self, statement: Statement) -> None:
        if statement in self._held:
            return
        if not self._held and not self._connection.in_transaction:
            try:
                self._connection.execute("BEGIN")
            except sqlite3.Error as exc:
                raise translate_error(exc) from exc
            self._owns_transaction = True
        self._held.append(statement)

    def _release(self, statement: Statement) -> None:
        if statement not in self._held:
            return
        self._held.remove(statement)
        if self._held or not self._owns_transaction:
            return
        if self._connection.in_transaction:
            try:
                self._connection.execute("COMMIT")
            except sqlite3.Error as exc:
                # Still uncommitted: keep holding so a later release can retry
                self._held.append(statement)
                raise translate_error(exc) from exc
        self._owns_transaction = False

    def _forget(self, statement: Statement) -> None:
        if statement in self._statements:
            self._statements.remove(statement)


__all__ = ["Database", "MEMORY", "Row", "RunResult", "Statement", "translate_error"]
