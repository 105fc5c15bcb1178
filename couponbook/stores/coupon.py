"""
Coupon store: creation, redemption and lookup of coupons.

A coupon starts ``Active`` and becomes ``Redeemed`` exactly once. Every column
except ``status`` and ``finish_date`` is immutable, and those two freeze once
the coupon leaves ``Active``; both rules are enforced by triggers so that raw
updates are rejected as well as store-mediated ones.

Timestamps are stored as epoch milliseconds. ``created_date`` and
``finish_date`` come from the engine clock at second precision.
"""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Dict, List, Optional

from couponbook.domain.compare import EqualResult, SameResult, equal, same
from couponbook.domain.models import Coupon, CouponStatus, User
from couponbook.errors import InvalidStateTransition
from couponbook.infrastructure.database import Row
from couponbook.stores.abstract import Store
from couponbook.utils.logging import get_logger
from couponbook.utils.timestamps import from_epoch_ms, optional_from_epoch_ms, to_epoch_ms

log = get_logger(__name__)

_NOW_MS = "CAST(strftime('%s', 'now') AS INTEGER) * 1000"

_SELECT_RESOLVED = """
    SELECT c.id, c.title, c.description, c.expiration_date,
           c.created_date, c.finish_date, c.status,
           o.internal_id AS origin_internal_id,
           o.unique_id AS origin_unique_id,
           o.public_id AS origin_public_id,
           t.internal_id AS target_internal_id,
           t.unique_id AS target_unique_id,
           t.public_id AS target_public_id
    FROM coupon c
    JOIN user o ON o.internal_id = c.origin_user
    JOIN user t ON t.internal_id = c.target_user
"""


def _coupon_from_row(row: Row) -> Coupon:
    return Coupon(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        expiration_date=from_epoch_ms(row["expiration_date"]),
        origin_user=User(
            internal_id=row["origin_internal_id"],
            unique_id=row["origin_unique_id"],
            public_id=row["origin_public_id"],
        ),
        target_user=User(
            internal_id=row["target_internal_id"],
            unique_id=row["target_unique_id"],
            public_id=row["target_public_id"],
        ),
        created_date=from_epoch_ms(row["created_date"]),
        finish_date=optional_from_epoch_ms(row["finish_date"]),
        status=CouponStatus(row["status"]),
    )


class CouponStore(Store):
    """
    Owns the ``coupon`` table; references users by ``internal_id``.

    Example
    -------
        coupons = await CouponStore.initialize(db)
        coupon = await coupons.create_new_coupon("Super coupon!", "", expires, paco, pepe)
        redeemed = await coupons.redeem(coupon)
        assert coupons.same(coupon, redeemed) and not coupons.equal(coupon, redeemed)
    """

    table: ClassVar[str] = "coupon"
    create_script: ClassVar[str] = f"""
        CREATE TABLE IF NOT EXISTS coupon (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            expiration_date INTEGER NOT NULL,
            origin_user INTEGER NOT NULL REFERENCES user (internal_id),
            target_user INTEGER NOT NULL REFERENCES user (internal_id),
            created_date INTEGER NOT NULL DEFAULT ({_NOW_MS}),
            finish_date INTEGER,
            status INTEGER NOT NULL DEFAULT {int(CouponStatus.Active)}
        );
        CREATE INDEX IF NOT EXISTS coupon_target_status ON coupon (target_user, status);
        CREATE TRIGGER IF NOT EXISTS coupon_readonly
        BEFORE UPDATE OF id, title, description, expiration_date, origin_user, target_user, created_date
        ON coupon
        BEGIN
            SELECT RAISE(ABORT, 'coupon is readonly!');
        END;
        CREATE TRIGGER IF NOT EXISTS coupon_finished
        BEFORE UPDATE OF status, finish_date ON coupon
        WHEN OLD.status <> {int(CouponStatus.Active)}
        BEGIN
            SELECT RAISE(ABORT, 'coupon is already finished!');
        END;
    """
    queries: ClassVar[Dict[str, str]] = {
        "insert": (
            "INSERT INTO coupon (title, description, expiration_date, origin_user, target_user, status) "
            "VALUES (?, ?, ?, ?, ?, ?) RETURNING id, expiration_date, created_date, finish_date, status"
        ),
        "get": f"{_SELECT_RESOLVED} WHERE c.id = ?",
        "get_available": f"{_SELECT_RESOLVED} WHERE c.target_user = ? AND c.status = ? ORDER BY c.id",
        "redeem": (
            f"UPDATE coupon SET status = ?, finish_date = {_NOW_MS} "
            "WHERE id = ? AND status = ? RETURNING finish_date, status"
        ),
    }

    async def create_new_coupon(
        self,
        title: str,
        description: str,
        expiration_date: datetime,
        origin_user: User,
        target_user: User,
    ) -> Coupon:
        """
        Insert an ``Active`` coupon sent by ``origin_user`` to ``target_user``.

        Only the users' ``internal_id`` values are stored. ``expiration_date``
        is kept at millisecond precision; naive datetimes are local time.
        """
        row = await self._get(
            "insert",
            title,
            description,
            to_epoch_ms(expiration_date),
            origin_user.internal_id,
            target_user.internal_id,
            int(CouponStatus.Active),
        )
        coupon = Coupon(
            id=row["id"],
            title=title,
            description=description,
            expiration_date=from_epoch_ms(row["expiration_date"]),
            origin_user=origin_user,
            target_user=target_user,
            created_date=from_epoch_ms(row["created_date"]),
            finish_date=optional_from_epoch_ms(row["finish_date"]),
            status=CouponStatus(row["status"]),
        )
        log.debug(
            "Coupon created",
            extra={
                "coupon_id": coupon.id,
                "origin_user": origin_user.internal_id,
                "target_user": target_user.internal_id,
            },
        )
        return coupon

    async def redeem(self, coupon: Coupon) -> Coupon:
        """
        Mark an ``Active`` coupon as ``Redeemed`` and stamp ``finish_date``.

        Returns the post-update value; ``coupon`` itself is left untouched.

        Raises
        ------
        InvalidStateTransition
            If ``coupon`` is not ``Active``, or its stored row no longer is
            (already redeemed elsewhere, or missing). Nothing is written.
        """
        if not coupon.is_active:
            raise InvalidStateTransition(
                f"coupon {coupon.id} is {coupon.status.name}; only Active coupons can be redeemed"
            )
        row = await self._get(
            "redeem", int(CouponStatus.Redeemed), coupon.id, int(CouponStatus.Active)
        )
        if row is None:
            raise InvalidStateTransition(
                f"coupon {coupon.id} is not an Active coupon in {self.database.filename}"
            )
        redeemed = coupon.model_copy(
            update={
                "status": CouponStatus(row["status"]),
                "finish_date": from_epoch_ms(row["finish_date"]),
            }
        )
        log.info("Coupon redeemed", extra={"coupon_id": coupon.id})
        return redeemed

    async def get(self, coupon_id: int) -> Optional[Coupon]:
        row = await self._get("get", coupon_id)
        return None if row is None else _coupon_from_row(row)

    async def get_available(self, user: User) -> List[Coupon]:
        """Active coupons targeted at ``user``, oldest first."""
        rows = await self._all("get_available", user.internal_id, int(CouponStatus.Active))
        return [_coupon_from_row(row) for row in rows]

    @staticmethod
    def same(a: Coupon, b: Coupon) -> SameResult:
        return same(a, b)

    @staticmethod
    def equal(a: Coupon, b: Coupon) -> EqualResult:
        return equal(a, b)


__all__ = ["CouponStore"]
