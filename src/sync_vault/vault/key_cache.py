# Sync Vault - Device Key Cache
#
# Device key derivation runs PBKDF2 at full cost, so the vault memoizes
# the last derived key. The entry is keyed by (fingerprint, salt): a
# lookup with any other tuple misses and forces a recompute, so a stale
# key can never be served after the salt or the device profile changes.
#
# Single-writer: no concurrent repopulation is supported.

import logging
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, bytes]


class DeviceKeyCache:
    """Holds at most one (fingerprint, salt) -> derived key entry."""

    def __init__(self):
        self._cache_key: Optional[CacheKey] = None
        self._derived_key: Optional[bytes] = None
        self.hits = 0
        self.misses = 0

    def get(self, fingerprint: str, salt: bytes) -> Optional[bytes]:
        """Return the cached key only if it was derived from exactly these inputs."""
        if self._cache_key == (fingerprint, salt):
            return self._derived_key
        return None

    def put(self, fingerprint: str, salt: bytes, derived_key: bytes) -> None:
        self._cache_key = (fingerprint, bytes(salt))
        self._derived_key = derived_key

    def get_or_derive(
        self,
        fingerprint: str,
        salt: bytes,
        derive: Callable[[str, bytes], bytes],
    ) -> bytes:
        """Return the cached key, or call ``derive`` and cache the result."""
        cached = self.get(fingerprint, salt)
        if cached is not None:
            self.hits += 1
            return cached

        if self._cache_key is not None:
            logger.debug("Device key cache key changed; recomputing")
        self.misses += 1
        derived_key = derive(fingerprint, salt)
        self.put(fingerprint, salt, derived_key)
        return derived_key

    def clear(self) -> None:
        """Drop the memoized key; the next lookup recomputes it."""
        self._cache_key = None
        self._derived_key = None

    @property
    def is_populated(self) -> bool:
        return self._derived_key is not None
