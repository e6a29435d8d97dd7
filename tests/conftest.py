"""
Shared pytest fixtures for the Sync Vault test suite.

Autouse fixtures below isolate tests from live application data:
  - Audit logger -> temp directory (prevents test events in ./audit_logs)

PBKDF2 runs at 600k iterations in production; fixtures use a low count
so the suite stays fast. The iteration count is stored in every blob, so
behaviour is identical apart from cost.
"""

import pytest

from sync_vault.core.audit_log import AuditLogger, set_audit_logger
from sync_vault.vault.device import DeviceSignals, StaticSignalProvider
from sync_vault.vault.encryption import EncryptionService
from sync_vault.vault.key_cache import DeviceKeyCache
from sync_vault.vault.storage import MemoryKeyValueStore

TEST_KDF_ITERATIONS = 1_000


class FlakyStore(MemoryKeyValueStore):
    """MemoryKeyValueStore that raises OSError for selected operations/keys."""

    def __init__(self, initial=None, fail_get=(), fail_set=(), fail_remove=()):
        super().__init__(initial)
        self.fail_get = set(fail_get)
        self.fail_set = set(fail_set)
        self.fail_remove = set(fail_remove)

    def get(self, key):
        if key in self.fail_get or "*" in self.fail_get:
            raise OSError("disk unavailable")
        return super().get(key)

    def set(self, key, value):
        if key in self.fail_set or "*" in self.fail_set:
            raise OSError("disk full")
        super().set(key, value)

    def remove(self, key):
        if key in self.fail_remove or "*" in self.fail_remove:
            raise OSError("disk unavailable")
        super().remove(key)


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path):
    """Point the global AuditLogger at a temp directory for every test."""
    audit = AuditLogger(log_dir=tmp_path / "audit_logs")
    set_audit_logger(audit)

    yield audit

    audit.close()
    set_audit_logger(None)


@pytest.fixture
def audit_logger(_isolate_audit_logs):
    return _isolate_audit_logs


@pytest.fixture
def signals():
    return DeviceSignals(
        user_agent="Test User Agent",
        locale="en-US",
        color_depth=24,
        resolution=(1920, 1080),
    )


@pytest.fixture
def signal_provider(signals):
    return StaticSignalProvider(signals)


@pytest.fixture
def encryption():
    return EncryptionService(iterations=TEST_KDF_ITERATIONS)


@pytest.fixture
def durable_store():
    return MemoryKeyValueStore()


@pytest.fixture
def legacy_store():
    return MemoryKeyValueStore()


@pytest.fixture
def key_cache():
    return DeviceKeyCache()


@pytest.fixture
def make_vault(signal_provider, encryption, key_cache, audit_logger):
    """Factory for CredentialVaults with fast KDF settings."""
    from sync_vault.vault.credential_vault import CredentialVault

    def _make(durable_store=None, legacy_store=None, **kwargs):
        kwargs.setdefault("signal_provider", signal_provider)
        kwargs.setdefault("encryption", encryption)
        kwargs.setdefault("key_cache", key_cache)
        kwargs.setdefault("device_kdf_iterations", TEST_KDF_ITERATIONS)
        kwargs.setdefault("audit_logger", audit_logger)
        return CredentialVault(
            durable_store=durable_store if durable_store is not None else MemoryKeyValueStore(),
            legacy_store=legacy_store if legacy_store is not None else MemoryKeyValueStore(),
            **kwargs,
        )

    return _make


@pytest.fixture
def vault(make_vault, durable_store, legacy_store):
    return make_vault(durable_store, legacy_store)
