"""
Pytest configuration for couponbook.

Provides fixtures for:
- A fresh in-memory database per test, schema already created
- Stores initialized against that database
- A temporary database file for cross-connection tests
- Settings cache isolation
"""

from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator, Iterator

import pytest
import pytest_asyncio

from couponbook.config import get_settings
from couponbook.domain.models import User
from couponbook.infrastructure.database import MEMORY, Database
from couponbook.infrastructure.db_factory import Stores, open_stores, reset_schema
from couponbook.stores.coupon import CouponStore
from couponbook.stores.user import UserStore


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    """
    Drop cached settings around each test so env overrides apply.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db() -> AsyncIterator[Database]:
    """
    In-memory database with both tables freshly created.
    """
    database = await Database.open(MEMORY)
    await reset_schema(database)
    try:
        yield database
    finally:
        await database.close()


@pytest_asyncio.fixture
async def users(db: Database) -> AsyncIterator[UserStore]:
    store = await UserStore.initialize(db)
    try:
        yield store
    finally:
        await store.close()


@pytest_asyncio.fixture
async def coupons(db: Database) -> AsyncIterator[CouponStore]:
    store = await CouponStore.initialize(db)
    try:
        yield store
    finally:
        await store.close()


@pytest_asyncio.fixture
async def stores(db: Database) -> AsyncIterator[Stores]:
    bundle = await open_stores(db)
    try:
        yield bundle
    finally:
        await bundle.coupons.close()
        await bundle.users.close()


@pytest_asyncio.fixture
async def paco_and_pepe(users: UserStore) -> tuple[User, User]:
    """
    Two users: A ("usera1", "Paco") sends, B ("userb1", "Pepe") receives.
    """
    usera = await users.create_new_user("usera1", "Paco")
    userb = await users.create_new_user("userb1", "Pepe")
    return usera, userb


@pytest.fixture
def db_file(tmp_path: Path) -> Path:
    """
    Path of a database file shared by several connections in one test.
    """
    return tmp_path / "dbtest.sqlite3"
