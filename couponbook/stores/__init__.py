"""
Entity stores for couponbook.

Each store owns one table and the prepared statements that touch it. Stores are
plain values: initialize them against an open ``Database`` and pass them
explicitly to the code that needs them.
"""

from couponbook.stores.abstract import Store
from couponbook.stores.coupon import CouponStore
from couponbook.stores.user import UserStore

__all__ = ["CouponStore", "Store", "UserStore"]
