"""
Domain models for couponbook.

``User`` and ``Coupon`` are immutable values mirroring the ``user`` and
``coupon`` tables. A state transition never mutates a value: the store returns
a new one reflecting the committed row.
"""
from __future__ import annotations

from datetime import datetime
from enum import IntEnum
from typing import Optional, TypedDict

from pydantic import BaseModel, Field

from couponbook.utils.timestamps import optional_to_epoch_ms, to_epoch_ms


class CouponStatus(IntEnum):
    """Lifecycle of a coupon. ``Active`` moves to ``Redeemed`` exactly once."""

    Active = 0
    Redeemed = 1


class User(BaseModel):
    """
    Representation of a single row in the `user` table.
    """

    internal_id: int = Field(..., description="Engine-assigned primary key.")
    unique_id: str = Field(..., description="Externally verified identity token, unique.")
    public_id: str = Field(..., description="Display and lookup name.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }


class CouponPrimitive(TypedDict):
    """
    Boundary view of a coupon: users by public id, timestamps in epoch ms.
    """

    id: int
    title: str
    description: str
    expiration_date: int
    origin_user: str
    target_user: str
    created_date: int
    finish_date: Optional[int]
    status: int


class Coupon(BaseModel):
    """
    Representation of a single row in the `coupon` table, with both user
    references resolved.
    """

    id: int = Field(..., description="Engine-assigned primary key.")
    title: str = Field(..., description="Short headline.")
    description: str = Field("", description="Free text shown with the coupon.")
    expiration_date: datetime = Field(..., description="When the coupon stops being usable.")
    origin_user: User = Field(..., description="User who sent the coupon.")
    target_user: User = Field(..., description="User who may redeem the coupon.")
    created_date: datetime = Field(..., description="Insertion time, second precision.")
    finish_date: Optional[datetime] = Field(None, description="Redemption time, absent while active.")
    status: CouponStatus = Field(CouponStatus.Active, description="Lifecycle status.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @property
    def is_active(self) -> bool:
        return self.status == CouponStatus.Active

    def primitive(self) -> CouponPrimitive:
        return CouponPrimitive(
            id=self.id,
            title=self.title,
            description=self.description,
            expiration_date=to_epoch_ms(self.expiration_date),
            origin_user=self.origin_user.public_id,
            target_user=self.target_user.public_id,
            created_date=to_epoch_ms(self.created_date),
            finish_date=optional_to_epoch_ms(self.finish_date),
            status=int(self.status),
        )


__all__ = ["Coupon", "CouponPrimitive", "CouponStatus", "User"]
