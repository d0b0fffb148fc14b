"""
In-memory store of pending verification codes.

One live code per phone number; a new code overwrites the previous one.
Entries expire after a fixed TTL so unverified codes do not linger.
"""
import time
from typing import Callable, Optional

from cachetools import TTLCache


class VerificationStore:
    """Pending verification codes keyed by phone number."""

    def __init__(self, ttl_seconds: int = 300, maxsize: int = 10000, timer: Callable[[], float] = time.monotonic):
        self._codes: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)

    def put(self, phone_number: str, code: str) -> None:
        self._codes[phone_number] = code

    def get(self, phone_number: str) -> Optional[str]:
        return self._codes.get(phone_number)

    def delete(self, phone_number: str) -> None:
        self._codes.pop(phone_number, None)

    def __len__(self) -> int:
        self._codes.expire()
        return len(self._codes)

    def __contains__(self, phone_number: str) -> bool:
        return phone_number in self._codes
