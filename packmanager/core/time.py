# packmanager/core/time.py
from __future__ import annotations
import time

__all__ = ["nowMs", "nowSeconds"]



def nowMs() -> int:
    """Wall-clock time in milliseconds."""
    return int(time.time() * 1000)



def nowSeconds() -> float:
    """Monotonic seconds, for expiry bookkeeping only."""
    return time.monotonic()
