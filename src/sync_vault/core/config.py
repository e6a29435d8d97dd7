# Sync Vault - Configuration
#
# Settings come from environment variables, optionally seeded from a
# .env file in the working directory. Values are read on each call to
# load_settings() so tests can monkeypatch the environment.

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# OWASP 2023: 600k iterations for PBKDF2-SHA256
DEFAULT_KDF_ITERATIONS = 600_000
DEFAULT_HISTORY_SIZE = 10

ENV_DATA_DIR = "SYNC_VAULT_DATA_DIR"
ENV_AUDIT_DIR = "SYNC_VAULT_AUDIT_DIR"
ENV_KDF_ITERATIONS = "SYNC_VAULT_KDF_ITERATIONS"
ENV_DEVICE_KDF_ITERATIONS = "SYNC_VAULT_DEVICE_KDF_ITERATIONS"
ENV_HISTORY_SIZE = "SYNC_VAULT_HISTORY_SIZE"


@dataclass(frozen=True)
class VaultSettings:
    """Runtime settings for the vault and the diff engine."""

    data_dir: Path = Path("data")
    audit_dir: Path = Path("audit_logs")
    kdf_iterations: int = DEFAULT_KDF_ITERATIONS
    device_kdf_iterations: int = DEFAULT_KDF_ITERATIONS
    history_size: int = DEFAULT_HISTORY_SIZE

    @property
    def vault_db_path(self) -> Path:
        return self.data_dir / "vault.db"


def _int_from_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default
    if value < minimum:
        logger.warning("Ignoring %s=%d below minimum %d, using %d", name, value, minimum, default)
        return default
    return value


def load_settings(dotenv_path: Optional[Path] = None) -> VaultSettings:
    """Build VaultSettings from the environment (and .env if present)."""
    load_dotenv(dotenv_path=dotenv_path, override=False)

    return VaultSettings(
        data_dir=Path(os.environ.get(ENV_DATA_DIR, "data")),
        audit_dir=Path(os.environ.get(ENV_AUDIT_DIR, "audit_logs")),
        kdf_iterations=_int_from_env(ENV_KDF_ITERATIONS, DEFAULT_KDF_ITERATIONS),
        device_kdf_iterations=_int_from_env(ENV_DEVICE_KDF_ITERATIONS, DEFAULT_KDF_ITERATIONS),
        history_size=_int_from_env(ENV_HISTORY_SIZE, DEFAULT_HISTORY_SIZE),
    )
