"""
Connection and store lifecycle helpers.

Opens databases at the configured location, creates or resets the schema in
foreign-key order, and bundles a connection with ready stores for the duration
of a unit of work. Everything opened here is released on exit, including when
the body raises.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional, Union

from couponbook.config import get_settings
from couponbook.infrastructure.database import MEMORY, Database
from couponbook.stores.coupon import CouponStore
from couponbook.stores.user import UserStore
from couponbook.utils.logging import get_logger

log = get_logger(__name__)

# Parents first on create, children first on drop
_SCHEMA_ORDER = (UserStore, CouponStore)


@dataclass
class Stores:
    """A connection together with the stores initialized against it."""

    db: Database
    users: UserStore
    coupons: CouponStore

    async def close(self) -> None:
        try:
            await self.coupons.close()
            await self.users.close()
        finally:
            await self.db.close()


def _resolve_path(path: Optional[Union[str, Path]]) -> str:
    if path is None:
        path = get_settings().database_path
    name = str(path)
    if name != MEMORY:
        Path(name).parent.mkdir(parents=True, exist_ok=True)
    return name


async def open_database(path: Optional[Union[str, Path]] = None) -> Database:
    """
    Open a connection to ``path``, defaulting to ``settings.database_path``.

    Parent directories of file databases are created when missing.
    """
    return await Database.open(_resolve_path(path))


async def ensure_schema(db: Database) -> None:
    """Create any missing table."""
    for store in _SCHEMA_ORDER:
        await store.ensure_table(db)


async def reset_schema(db: Database) -> None:
    """Drop and recreate every table. All rows are lost."""
    for store in reversed(_SCHEMA_ORDER):
        await db.exec(f"DROP TABLE IF EXISTS {store.table};")
    for store in _SCHEMA_ORDER:
        await store.reset_table(db)
    log.info("Schema reset", extra={"database": db.filename})


async def open_stores(db: Database) -> Stores:
    """Initialize both stores against an already open connection."""
    users = await UserStore.initialize(db)
    try:
        coupons = await CouponStore.initialize(db)
    except BaseException:
        await users.close()
        raise
    return Stores(db=db, users=users, coupons=coupons)


@asynccontextmanager
async def store_session(
    path: Optional[Union[str, Path]] = None, reset: bool = False
) -> AsyncIterator[Stores]:
    """
    Open a connection with a ready schema and stores, and release it all on exit.

    Example
    -------
        async with store_session(":memory:") as stores:
            paco = await stores.users.create_new_user("usera1", "Paco")
    """
    db = await open_database(path)
    try:
        if reset:
            await reset_schema(db)
        else:
            await ensure_schema(db)
        stores = await open_stores(db)
    except BaseException:
        await db.close()
        raise
    try:
        yield stores
    finally:
        await stores.close()


__all__ = [
    "Stores",
    "ensure_schema",
    "open_database",
    "open_stores",
    "reset_schema",
    "store_session",
]
