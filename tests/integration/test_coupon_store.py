"""
Integration tests for the coupon store against a real SQLite engine.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from couponbook.domain.models import CouponStatus, User
from couponbook.errors import ConstraintViolation, InvalidStateTransition, ReadOnlyViolation, Uninitialized
from couponbook.infrastructure.database import MEMORY, Database
from couponbook.stores.coupon import CouponStore
from couponbook.stores.user import UserStore
from couponbook.utils.timestamps import to_epoch_ms, utc_now

EXPIRATION = datetime(2034, 7, 4, 12, 30, tzinfo=timezone.utc)
TITLE = "Super coupon!"
DESCRIPTION = "Redeem this coupon for a mistery gift!"
# Engine timestamps are stored with second precision
MARGIN = timedelta(seconds=2)


@pytest.mark.asyncio
async def test_reset_table_creates_an_empty_coupon_table() -> None:
    async with await Database.open(MEMORY) as db:
        await CouponStore.reset_table(db)

        row = await db.get("select name from sqlite_master where type = ? and name = ?", "table", "coupon")
        assert row["name"] == "coupon"
        assert await db.get("select * from coupon") is None


@pytest.mark.asyncio
async def test_create_coupon(coupons: CouponStore, paco_and_pepe: tuple[User, User]) -> None:
    usera, userb = paco_and_pepe
    before = utc_now()

    coupon = await coupons.create_new_coupon(TITLE, DESCRIPTION, EXPIRATION, usera, userb)

    assert coupon.title == TITLE
    assert coupon.description == DESCRIPTION
    assert coupon.expiration_date == EXPIRATION
    assert coupon.origin_user == usera
    assert coupon.target_user == userb
    assert before - MARGIN < coupon.created_date < utc_now() + MARGIN
    assert coupon.created_date.microsecond == 0
    assert coupon.finish_date is None
    assert isinstance(coupon.id, int) and coupon.id >= 0
    assert coupon.status == CouponStatus.Active

    primitive = coupon.primitive()

    assert primitive["title"] == TITLE
    assert primitive["description"] == DESCRIPTION
    assert primitive["expiration_date"] == to_epoch_ms(EXPIRATION)
    assert primitive["origin_user"] == usera.public_id
    assert primitive["target_user"] == userb.public_id
    assert primitive["created_date"] == to_epoch_ms(coupon.created_date)
    assert primitive["finish_date"] is None
    assert primitive["id"] == coupon.id
    assert primitive["status"] == CouponStatus.Active


@pytest.mark.asyncio
async def test_naive_expiration_is_kept_as_local_time(
    coupons: CouponStore, paco_and_pepe: tuple[User, User]
) -> None:
    usera, userb = paco_and_pepe
    local = datetime(2034, 7, 4, 12, 30)

    coupon = await coupons.create_new_coupon("coupon", "description", local, usera, userb)

    assert coupon.primitive()["expiration_date"] == to_epoch_ms(local)
    stored = await coupons.get(coupon.id)
    assert stored.expiration_date == coupon.expiration_date


@pytest.mark.asyncio
async def test_get_returns_what_create_wrote(
    coupons: CouponStore, paco_and_pepe: tuple[User, User]
) -> None:
    usera, userb = paco_and_pepe
    coupon = await coupons.create_new_coupon(TITLE, DESCRIPTION, EXPIRATION, usera, userb)

    stored = await coupons.get(coupon.id)

    result = coupons.equal(stored, coupon)
    assert result.is_equal, result.different


@pytest.mark.asyncio
async def test_get_missing_coupon_is_none(coupons: CouponStore) -> None:
    assert await coupons.get(12345) is None


@pytest.mark.asyncio
async def test_a_sends_coupon_to_b(coupons: CouponStore, users: UserStore) -> None:
    usera = await users.create_new_user("usera2", "Paco")
    userb = await users.create_new_user("userb2", "Pepe")

    await coupons.create_new_coupon("Name of coupon~", DESCRIPTION, EXPIRATION, usera, userb)

    assert len(await coupons.get_available(usera)) == 0
    assert len(await coupons.get_available(userb)) == 1


@pytest.mark.asyncio
async def test_get_available_lists_only_active_coupons_for_target(
    coupons: CouponStore, users: UserStore
) -> None:
    usera = await users.create_new_user("usera4", "Paco")
    userb = await users.create_new_user("userb4", "Pepe")
    userc = await users.create_new_user("userc4", "Pipo")

    first = await coupons.create_new_coupon("first", "", EXPIRATION, usera, userb)
    redeemed = await coupons.create_new_coupon("redeemed", "", EXPIRATION, usera, userb)
    await coupons.create_new_coupon("elsewhere", "", EXPIRATION, usera, userc)
    last = await coupons.create_new_coupon("last", "", EXPIRATION, userc, userb)
    await coupons.redeem(redeemed)

    available = await coupons.get_available(userb)

    assert [coupon.id for coupon in available] == [first.id, last.id]
    assert all(coupon.target_user == userb for coupon in available)
    assert all(coupon.status == CouponStatus.Active for coupon in available)
    assert available[1].origin_user == userc


@pytest.mark.asyncio
async def test_a_uses_coupon_from_b(coupons: CouponStore, users: UserStore) -> None:
    usera = await users.create_new_user("usera3", "Paco1")
    userb = await users.create_new_user("userb3", "Pepe1")
    coupon = await coupons.create_new_coupon("Name of coupon~", DESCRIPTION, EXPIRATION, usera, userb)
    assert coupon.status == CouponStatus.Active

    now = utc_now()
    updated_coupon = await coupons.redeem(coupon)

    # Same record, but status and finish_date changed
    same1 = coupons.same(coupon, updated_coupon)
    equal1 = coupons.equal(coupon, updated_coupon)
    assert same1.is_same, same1.different
    assert not equal1.is_equal, equal1.different

    assert updated_coupon.status == CouponStatus.Redeemed
    assert coupon.status == CouponStatus.Active
    assert updated_coupon.finish_date is not None
    assert now - MARGIN < updated_coupon.finish_date < now + MARGIN

    coupon_in_db = await coupons.get(coupon.id)
    same2 = coupons.same(coupon_in_db, updated_coupon)
    equal2 = coupons.equal(coupon_in_db, updated_coupon)
    assert same2.is_same, same2.different
    assert equal2.is_equal, equal2.different


@pytest.mark.asyncio
async def test_redeeming_twice_is_rejected(
    coupons: CouponStore, paco_and_pepe: tuple[User, User]
) -> None:
    usera, userb = paco_and_pepe
    coupon = await coupons.create_new_coupon(TITLE, DESCRIPTION, EXPIRATION, usera, userb)
    redeemed = await coupons.redeem(coupon)

    with pytest.raises(InvalidStateTransition, match="only Active coupons"):
        await coupons.redeem(redeemed)
    # A stale Active value must not redeem the stored coupon again
    with pytest.raises(InvalidStateTransition, match="is not an Active coupon"):
        await coupons.redeem(coupon)

    stored = await coupons.get(coupon.id)
    assert coupons.equal(stored, redeemed).is_equal


@pytest.mark.asyncio
async def test_redeeming_a_missing_coupon_is_rejected(
    coupons: CouponStore, paco_and_pepe: tuple[User, User]
) -> None:
    usera, userb = paco_and_pepe
    coupon = await coupons.create_new_coupon(TITLE, DESCRIPTION, EXPIRATION, usera, userb)
    ghost = coupon.model_copy(update={"id": coupon.id + 100})

    with pytest.raises(InvalidStateTransition):
        await coupons.redeem(ghost)


@pytest.mark.asyncio
async def test_immutable_coupon_columns_reject_updates(
    db: Database, coupons: CouponStore, paco_and_pepe: tuple[User, User]
) -> None:
    usera, userb = paco_and_pepe
    coupon = await coupons.create_new_coupon(TITLE, DESCRIPTION, EXPIRATION, usera, userb)

    with pytest.raises(ReadOnlyViolation) as excinfo:
        await db.run("update coupon set title = ? where id = ?", "Changed", coupon.id)

    assert str(excinfo.value) == "SQLITE_CONSTRAINT: coupon is readonly!"
    assert excinfo.value.table == "coupon"
    assert coupons.equal(await coupons.get(coupon.id), coupon).is_equal


@pytest.mark.asyncio
async def test_redeemed_coupon_status_is_frozen(
    db: Database, coupons: CouponStore, paco_and_pepe: tuple[User, User]
) -> None:
    usera, userb = paco_and_pepe
    coupon = await coupons.create_new_coupon(TITLE, DESCRIPTION, EXPIRATION, usera, userb)
    await coupons.redeem(coupon)

    with pytest.raises(ConstraintViolation, match="coupon is already finished!"):
        await db.run("update coupon set status = ? where id = ?", int(CouponStatus.Active), coupon.id)


@pytest.mark.asyncio
async def test_coupon_requires_existing_users(
    coupons: CouponStore, paco_and_pepe: tuple[User, User]
) -> None:
    usera, _ = paco_and_pepe
    stranger = User(internal_id=999, unique_id="ghost", public_id="Ghost")

    with pytest.raises(ConstraintViolation, match="FOREIGN KEY constraint failed"):
        await coupons.create_new_coupon(TITLE, DESCRIPTION, EXPIRATION, usera, stranger)

    assert await coupons.get_available(stranger) == []


@pytest.mark.asyncio
async def test_coupon_store_requires_initialization() -> None:
    store = CouponStore()

    with pytest.raises(Uninitialized, match="CouponStore is not initialized"):
        await store.get(1)
