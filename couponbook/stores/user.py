"""
User store: creation and lookup of immutable users.

Rows in ``user`` are write-once. A ``BEFORE UPDATE`` trigger rejects every
update, whichever column it targets, with ``user is readonly!``; the engine
adapter surfaces it as ``ReadOnlyViolation``. Duplicate ``unique_id`` values
fail with ``UniqueConstraintViolation`` on ``user.unique_id``.
"""

from __future__ import annotations

from typing import ClassVar, Dict, Optional

from couponbook.domain.models import User
from couponbook.infrastructure.database import Row
from couponbook.stores.abstract import Store
from couponbook.utils.logging import get_logger

log = get_logger(__name__)

_COLUMNS = "internal_id, unique_id, public_id"


def _user_from_row(row: Optional[Row]) -> Optional[User]:
    if row is None:
        return None
    return User(
        internal_id=row["internal_id"],
        unique_id=row["unique_id"],
        public_id=row["public_id"],
    )


class UserStore(Store):
    """
    Owns the ``user`` table.

    Example
    -------
        users = await UserStore.initialize(db)
        paco = await users.create_new_user("usera1", "Paco")
        assert await users.get_existing_user_by_public("Paco") == paco
    """

    table: ClassVar[str] = "user"
    create_script: ClassVar[str] = """
        CREATE TABLE IF NOT EXISTS user (
            internal_id INTEGER PRIMARY KEY AUTOINCREMENT,
            unique_id TEXT NOT NULL UNIQUE,
            public_id TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS user_public_id ON user (public_id);
        CREATE TRIGGER IF NOT EXISTS user_readonly BEFORE UPDATE ON user
        BEGIN
            SELECT RAISE(ABORT, 'user is readonly!');
        END;
    """
    queries: ClassVar[Dict[str, str]] = {
        "insert": "INSERT INTO user (unique_id, public_id) VALUES (?, ?) RETURNING internal_id",
        "get_by_unique": f"SELECT {_COLUMNS} FROM user WHERE unique_id = ?",
        "get_by_internal": f"SELECT {_COLUMNS} FROM user WHERE internal_id = ?",
        # public_id is not unique; the earliest user holding it wins
        "get_by_public": (
            f"SELECT {_COLUMNS} FROM user WHERE public_id = ? ORDER BY internal_id LIMIT 1"
        ),
    }

    async def create_new_user(self, unique_id: str, public_id: str) -> User:
        """
        Insert a user and return it with its engine-assigned ``internal_id``.

        Raises
        ------
        UniqueConstraintViolation
            If ``unique_id`` is already taken.
        """
        row = await self._get("insert", unique_id, public_id)
        user = User(internal_id=row["internal_id"], unique_id=unique_id, public_id=public_id)
        log.debug("User created", extra={"internal_id": user.internal_id, "public_id": public_id})
        return user

    async def get_existing_user_by_unique(self, unique_id: str) -> Optional[User]:
        return _user_from_row(await self._get("get_by_unique", unique_id))

    async def get_existing_user_by_internal(self, internal_id: int) -> Optional[User]:
        return _user_from_row(await self._get("get_by_internal", internal_id))

    async def get_existing_user_by_public(self, public_id: str) -> Optional[User]:
        return _user_from_row(await self._get("get_by_public", public_id))


__all__ = ["UserStore"]
