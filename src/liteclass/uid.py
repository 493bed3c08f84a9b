"""
Identity registry: allocation and lookup of unique instance identifiers.

The registry maps identifier strings to the instances that own them. It keeps
weak back-references only, so registering an instance never extends its
lifetime; an instance reclaimed by the garbage collector frees its identifier
implicitly.

Identifiers are a base-36 millisecond clock followed by a base-36 random
component. Freshness is guaranteed by retrying on collision with a live id,
never by raising.
"""
import logging
import random
import threading
import time
import weakref
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_ALPHABET[remainder])
    return "".join(reversed(digits))


def _candidate_id() -> str:
    return _base36(int(time.time() * 1000)) + _base36(random.getrandbits(52))


class IdentityRegistry:
    """Table of live identifiers.

    Thread safety: allocation and release are serialized by a re-entrant lock,
    so one registry can be shared by every thread in the process.
    """

    def __init__(self) -> None:
        self._instances: 'weakref.WeakValueDictionary[str, Any]' = weakref.WeakValueDictionary()
        self._lock = threading.RLock()

    def generate(self, preferred: Optional[str] = None) -> str:
        """Return an identifier not currently live in this registry.

        Args:
            preferred: Identifier to use when it is a non-empty string that is
                       not already taken.

        Returns:
            A fresh identifier. Never raises; retries until no collision.
        """
        with self._lock:
            candidate = preferred if isinstance(preferred, str) and preferred else _candidate_id()
            while candidate in self._instances:
                candidate = _candidate_id()
            return candidate

    def register(self, instance: Any, uid: Optional[str] = None) -> str:
        """Register ``instance`` under ``uid`` or a freshly generated id.

        A preferred id that collides with a live one is silently replaced.
        Callers must use the returned id.
        """
        with self._lock:
            allocated = self.generate(uid)
            if uid is not None and allocated != uid:
                logger.warning(f"Identifier {uid!r} already in use, allocated {allocated!r} instead")
            self._instances[allocated] = instance
        logger.debug(f"Registered {type(instance).__name__}: id={allocated}")
        return allocated

    def lookup(self, uid: str) -> Optional[Any]:
        """Return the instance owning ``uid`` or None."""
        return self._instances.get(uid)

    def release(self, uid: str) -> bool:
        """Free ``uid``. Returns True if it was live."""
        with self._lock:
            removed = self._instances.pop(uid, None) is not None
        if removed:
            logger.debug(f"Released id={uid}")
        return removed

    def id_of(self, instance: Any) -> Optional[str]:
        """Return the identifier registered for ``instance``, if any."""
        for uid, candidate in list(self._instances.items()):
            if candidate is instance:
                return uid
        return None

    def clear(self) -> None:
        """Drop every identifier. For testing only."""
        with self._lock:
            self._instances.clear()
        logger.debug("Cleared identity registry")

    def __contains__(self, uid: object) -> bool:
        return uid in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._instances.keys()))

    def __repr__(self) -> str:
        return f"<IdentityRegistry live={len(self._instances)}>"
