"""
Domain package for couponbook.

Exports the entity values shared by the stores, the exchange service and the
CLI. Keep this package focused on data definitions and value comparison.
"""

from couponbook.domain.compare import EqualResult, SameResult, equal, same
from couponbook.domain.models import Coupon, CouponPrimitive, CouponStatus, User

__all__ = [
    "Coupon",
    "CouponPrimitive",
    "CouponStatus",
    "EqualResult",
    "SameResult",
    "User",
    "equal",
    "same",
]
