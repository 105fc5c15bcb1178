"""
Utilities package for couponbook.

Exports shared helpers for logging and timestamp conversion. Keep this package
lightweight and free of domain-specific logic.
"""

from couponbook.utils.logging import configure_logging, get_logger
from couponbook.utils.timestamps import from_epoch_ms, to_epoch_ms, utc_now

__all__ = [
    "configure_logging",
    "get_logger",
    "from_epoch_ms",
    "to_epoch_ms",
    "utc_now",
]
