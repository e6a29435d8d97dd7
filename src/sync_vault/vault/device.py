"""Device fingerprinting — bind the credential key to this device's profile.

The fingerprint is built from environment signals that are readable
without special permission: a user-agent string, the locale, the display
colour depth and the display resolution. The signals are joined and
SHA-256 hashed into a fixed-size hex identifier.

The fingerprint is NOT secret and is not a security boundary. It only
ties the derived key to "this device's software/hardware profile", so a
blob copied to a different machine does not decrypt there by accident.
"""

import hashlib
import locale
import logging
import os
import platform
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, runtime_checkable

from .encryption import EncryptionService

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────

FINGERPRINT_SEPARATOR = "|"
DEFAULT_COLOR_DEPTH = 24
DEFAULT_RESOLUTION = (0, 0)  # headless

ENV_COLOR_DEPTH = "SYNC_VAULT_DISPLAY_COLOR_DEPTH"
ENV_RESOLUTION = "SYNC_VAULT_DISPLAY_RESOLUTION"  # e.g. "1920x1080"


# ── Data Models ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class DeviceSignals:
    """Raw, read-only environment signals for one device."""

    user_agent: str
    locale: str
    color_depth: int
    resolution: Tuple[int, int]

    def canonical(self) -> str:
        width, height = self.resolution
        return FINGERPRINT_SEPARATOR.join([
            self.user_agent,
            self.locale,
            str(self.color_depth),
            str(width),
            str(height),
        ])


@runtime_checkable
class DeviceSignalProvider(Protocol):
    def get_signals(self) -> DeviceSignals:
        ...


class StaticSignalProvider:
    """Provider that always returns the same signals (tests, embedding)."""

    def __init__(self, signals: DeviceSignals):
        self._signals = signals

    def get_signals(self) -> DeviceSignals:
        return self._signals


class SystemSignalProvider:
    """Reads signals from the running interpreter and OS.

    A desktop process has no browser user-agent or screen object, so the
    user-agent is synthesised from ``platform`` and the display values
    come from the environment (or the headless defaults).
    """

    def __init__(
        self,
        app_name: str = "sync-vault",
        color_depth: Optional[int] = None,
        resolution: Optional[Tuple[int, int]] = None,
    ):
        self.app_name = app_name
        self._color_depth = color_depth
        self._resolution = resolution

    def get_signals(self) -> DeviceSignals:
        return DeviceSignals(
            user_agent=self._user_agent(),
            locale=self._locale(),
            color_depth=self._color_depth if self._color_depth is not None else _color_depth_from_env(),
            resolution=self._resolution if self._resolution is not None else _resolution_from_env(),
        )

    def _user_agent(self) -> str:
        from .. import __version__

        return (
            f"{self.app_name}/{__version__} "
            f"({platform.system()} {platform.release()}; {platform.machine()}) "
            f"Python/{platform.python_version()}"
        )

    @staticmethod
    def _locale() -> str:
        try:
            language, _ = locale.getlocale()
        except ValueError:
            return "C"
        return language or "C"


def _color_depth_from_env() -> int:
    raw = os.environ.get(ENV_COLOR_DEPTH, "")
    if not raw:
        return DEFAULT_COLOR_DEPTH
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", ENV_COLOR_DEPTH, raw)
        return DEFAULT_COLOR_DEPTH


def _resolution_from_env() -> Tuple[int, int]:
    raw = os.environ.get(ENV_RESOLUTION, "")
    if not raw:
        return DEFAULT_RESOLUTION
    try:
        width, height = raw.lower().split("x", 1)
        return int(width), int(height)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", ENV_RESOLUTION, raw)
        return DEFAULT_RESOLUTION


# ── Fingerprint & Key Derivation ────────────────────────────────────


def compute_fingerprint(signals: DeviceSignals) -> str:
    """Hash device signals into a 64-char hex fingerprint."""
    return hashlib.sha256(signals.canonical().encode("utf-8")).hexdigest()


def derive_device_key(fingerprint: str, salt: bytes, iterations: int) -> bytes:
    """Derive the 256-bit device key from (fingerprint, salt).

    Expensive on purpose; callers should go through DeviceKeyCache.
    Deterministic: identical inputs always reproduce the identical key.
    """
    return EncryptionService.derive_key(fingerprint, salt, iterations)
