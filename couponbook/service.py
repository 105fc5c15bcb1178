"""
Coupon exchange flows used by drivers such as the CLI.

These functions sit on top of the stores: they resolve users from the keys a
driver has at hand, apply the defaults for omitted coupon fields and return
primitive views ready to serialize.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from couponbook.config import get_settings
from couponbook.domain.models import CouponPrimitive, User
from couponbook.infrastructure.db_factory import Stores
from couponbook.utils.logging import get_logger
from couponbook.utils.timestamps import utc_now

log = get_logger(__name__)

DEFAULT_TITLE = "Coupon"


async def _require_user_by_unique(stores: Stores, unique_id: str) -> User:
    user = await stores.users.get_existing_user_by_unique(unique_id)
    if user is None:
        raise LookupError(f"no user with unique id '{unique_id}'")
    return user


async def _require_user_by_public(stores: Stores, public_id: str) -> User:
    user = await stores.users.get_existing_user_by_public(public_id)
    if user is None:
        raise LookupError(f"no user with public id '{public_id}'")
    return user


async def send_coupon(
    stores: Stores,
    sender_unique_id: str,
    target_public_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    expiration_date: Optional[datetime] = None,
) -> CouponPrimitive:
    """
    Send a new coupon from one user to another.

    Parameters
    ----------
    sender_unique_id : str
        Identity token of the sending user.
    target_public_id : str
        Public id of the receiving user.
    title, description : str | None
        Default to ``"Coupon"`` and ``""``.
    expiration_date : datetime | None
        Defaults to now plus ``settings.coupon_default_expiration_days``.

    Raises
    ------
    LookupError
        If either user does not exist.
    """
    sender = await _require_user_by_unique(stores, sender_unique_id)
    target = await _require_user_by_public(stores, target_public_id)
    if expiration_date is None:
        days = get_settings().coupon_default_expiration_days
        expiration_date = utc_now() + timedelta(days=days)

    coupon = await stores.coupons.create_new_coupon(
        title or DEFAULT_TITLE,
        description or "",
        expiration_date,
        sender,
        target,
    )
    log.info(
        "Coupon sent",
        extra={"coupon_id": coupon.id, "sender": sender.public_id, "target": target.public_id},
    )
    return coupon.primitive()


async def redeem_coupon(stores: Stores, coupon_id: int) -> CouponPrimitive:
    """
    Redeem a coupon by id.

    Raises
    ------
    LookupError
        If no coupon has that id.
    InvalidStateTransition
        If the coupon was already redeemed.
    """
    coupon = await stores.coupons.get(coupon_id)
    if coupon is None:
        raise LookupError(f"no coupon with id {coupon_id}")
    redeemed = await stores.coupons.redeem(coupon)
    return redeemed.primitive()


async def available_coupons(stores: Stores, public_id: str) -> List[CouponPrimitive]:
    """Active coupons waiting for the user with ``public_id``."""
    user = await _require_user_by_public(stores, public_id)
    return [coupon.primitive() for coupon in await stores.coupons.get_available(user)]


__all__ = ["DEFAULT_TITLE", "available_coupons", "redeem_coupon", "send_coupon"]
