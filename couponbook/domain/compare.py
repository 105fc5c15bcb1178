"""
Same/equal comparison of coupons.

``same`` answers whether two values describe the same stored record; ``equal``
answers whether every field, mutable ones included, matches. Both report the
mismatching fields so a failed check explains itself.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from couponbook.domain.models import Coupon

_COMPARED_FIELDS = (
    "id",
    "title",
    "description",
    "expiration_date",
    "origin_user",
    "target_user",
    "created_date",
    "finish_date",
    "status",
)


@dataclass(frozen=True)
class SameResult:
    is_same: bool
    different: str = ""

    def __bool__(self) -> bool:
        return self.is_same


@dataclass(frozen=True)
class EqualResult:
    is_equal: bool
    different: str = ""

    def __bool__(self) -> bool:
        return self.is_equal


def _describe(field: str, left: object, right: object) -> str:
    return f"{field}: {left!r} != {right!r}"


def same(a: Coupon, b: Coupon) -> SameResult:
    """True iff both values refer to the same coupon row, whatever their status."""
    if a.id == b.id:
        return SameResult(True)
    return SameResult(False, _describe("id", a.id, b.id))


def equal(a: Coupon, b: Coupon) -> EqualResult:
    """True iff every field matches, including status and finish_date."""
    differences: List[str] = []
    for field in _COMPARED_FIELDS:
        left, right = getattr(a, field), getattr(b, field)
        if left != right:
            differences.append(_describe(field, left, right))
    return EqualResult(not differences, "; ".join(differences))


__all__ = ["EqualResult", "SameResult", "equal", "same"]
