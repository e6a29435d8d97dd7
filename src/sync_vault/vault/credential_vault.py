# Sync Vault - Credential Vault
#
# Stores exactly one secret (the sync passphrase) encrypted at rest.
# Encryption key = PBKDF2(device fingerprint, per-installation salt),
# memoized in an injected DeviceKeyCache.
# Migrates a legacy plaintext passphrase to encrypted storage on first read.
# Every public operation returns a Result; nothing raises across the boundary.

import logging
import os
from typing import Any, Callable, Optional

from ..core.audit_log import AuditLogger, EventSeverity, EventType, get_audit_logger
from ..core.config import DEFAULT_KDF_ITERATIONS, VaultSettings, load_settings
from ..core.errors import (
    CredentialNotFoundError,
    DecryptionError,
    MigrationError,
    StorageUnavailableError,
    SyncVaultError,
)
from ..core.result import Failure, Result, Success
from .device import (
    DeviceSignalProvider,
    SystemSignalProvider,
    compute_fingerprint,
    derive_device_key,
)
from .encryption import EncryptionService
from .key_cache import DeviceKeyCache
from .storage import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore

logger = logging.getLogger(__name__)

# Logical storage names
PRIMARY_KEY = "sync_vault_credentials_v2"   # durable: EncryptedBlob JSON
SALT_KEY = "sync_vault_credential_salt"     # durable: base64 salt
LEGACY_KEY = "sync_password"                # legacy: plaintext, read-and-migrate only

SALT_LENGTH = 16

DECRYPT_FAILED_MESSAGE = "Failed to decrypt password. Storage may be corrupted."


class CredentialVault:
    """
    Secure at-rest storage for the sync passphrase.

    Storage:
    - durable_store holds the encrypted blob and the installation salt
    - legacy_store is the deprecated plaintext location; it is only ever
      read, migrated from, and cleared

    Security:
    - Passphrase encrypted with AES-256-GCM (EncryptionService)
    - Key material bound to the device fingerprint + installation salt
    - Audit logging for every store/read/migrate/clear (never the secret)

    Not safe for overlapping calls on the same slot; callers serialize.
    """

    def __init__(
        self,
        durable_store: Optional[KeyValueStore] = None,
        legacy_store: Optional[KeyValueStore] = None,
        signal_provider: Optional[DeviceSignalProvider] = None,
        encryption: Optional[EncryptionService] = None,
        key_cache: Optional[DeviceKeyCache] = None,
        random_bytes: Optional[Callable[[int], bytes]] = None,
        device_kdf_iterations: int = DEFAULT_KDF_ITERATIONS,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Initialize credential vault.

        Args:
            durable_store: Primary store (default: in-memory)
            legacy_store: Deprecated plaintext store (default: in-memory)
            signal_provider: Device signal source (default: SystemSignalProvider)
            encryption: Payload encryption (default: EncryptionService())
            key_cache: Device key cache; share one object to share the memo
            random_bytes: Random source for the salt (default: os.urandom)
            device_kdf_iterations: PBKDF2 cost for the device key
            audit_logger: Audit logger (default: global singleton)
        """
        self.durable_store = durable_store if durable_store is not None else MemoryKeyValueStore()
        self.legacy_store = legacy_store if legacy_store is not None else MemoryKeyValueStore()
        self.signal_provider = signal_provider or SystemSignalProvider()
        self.encryption = encryption or EncryptionService()
        self.key_cache = key_cache if key_cache is not None else DeviceKeyCache()
        self._random_bytes = random_bytes or os.urandom
        self.device_kdf_iterations = device_kdf_iterations

        self.logger = audit_logger or get_audit_logger()

    # ── Public API ───────────────────────────────────────────────────

    def store_password(self, password: str) -> Result[None]:
        """
        Encrypt and persist the sync passphrase, replacing any previous one.

        Returns:
            Success(None), or Failure(StorageUnavailableError | other error)
        """
        logger.debug("Storing password securely")
        try:
            if not isinstance(password, str):
                raise TypeError("password must be a string")

            device_key = self._device_key()
            blob = self.encryption.encrypt(password, device_key)
            self._write(self.durable_store, PRIMARY_KEY, blob.to_json())

        except Exception as e:
            self._audit(
                EventType.CREDENTIAL_ERROR,
                f"Failed to store password: {e}",
                severity=EventSeverity.CRITICAL,
                details={"error_type": e.__class__.__name__},
            )
            return Failure(e)

        self._audit(
            EventType.CREDENTIAL_STORED,
            "Password stored",
            details={"schema_version": blob.schema_version},
        )
        return Success(None)

    def get_password(self) -> Result[str]:
        """
        Retrieve and decrypt the sync passphrase.

        Falls back to the legacy plaintext location when the primary one is
        empty and migrates the value (migration-on-read). If the encrypted
        write fails, the legacy entry is kept and the Success carries a
        MigrationError warning.

        Returns:
            Success(passphrase), or Failure(CredentialNotFoundError |
            DecryptionError | StorageUnavailableError)
        """
        try:
            raw = self._read(self.durable_store, PRIMARY_KEY)
        except StorageUnavailableError as e:
            return self._fail(e, "Failed to read primary credential")

        if not raw:
            return self._get_legacy_password()

        try:
            device_key = self._device_key()
            password = self.encryption.decrypt(raw, device_key)
            if not isinstance(password, str):
                logger.debug("Decrypted credential is %s, not str", type(password).__name__)
                raise DecryptionError()
        except DecryptionError:
            return self._fail(DecryptionError(DECRYPT_FAILED_MESSAGE), "Failed to decrypt password")
        except StorageUnavailableError as e:
            return self._fail(e, "Failed to load device key salt")
        except Exception as e:
            logger.debug("Unexpected error unlocking credential: %r", e)
            error = DecryptionError(DECRYPT_FAILED_MESSAGE)
            error.__cause__ = e
            return self._fail(error, "Failed to decrypt password")

        self._audit(EventType.CREDENTIAL_ACCESSED, "Password retrieved")
        return Success(password)

    def has_password(self) -> bool:
        """True if either the primary or the legacy location holds a value.

        Never migrates. An unreadable store counts as empty.
        """
        for store, key in ((self.durable_store, PRIMARY_KEY), (self.legacy_store, LEGACY_KEY)):
            try:
                if self._read(store, key) is not None:
                    return True
            except StorageUnavailableError as e:
                logger.warning("has_password: %s", e)
        return False

    def clear_password(self) -> Result[None]:
        """
        Remove the passphrase from both locations (logout).

        Idempotent: clearing an empty vault succeeds. Both removals are
        attempted even if the first one fails.
        """
        logger.debug("Clearing stored password")
        errors = []
        for store, key in ((self.durable_store, PRIMARY_KEY), (self.legacy_store, LEGACY_KEY)):
            try:
                self._delete(store, key)
            except StorageUnavailableError as e:
                errors.append(e)

        if errors:
            return self._fail(errors[0], "Failed to clear password")

        self._audit(EventType.CREDENTIAL_CLEARED, "Password cleared")
        return Success(None)

    def clear_device_key_cache(self) -> None:
        """Drop the memoized device key (device change, tests)."""
        self.key_cache.clear()
        self._audit(
            EventType.DEVICE_KEY_CACHE_CLEARED, "Device key cache cleared"
        )

    # ── Migration ────────────────────────────────────────────────────

    def _get_legacy_password(self) -> Result[str]:
        try:
            legacy = self._read(self.legacy_store, LEGACY_KEY)
        except StorageUnavailableError as e:
            return self._fail(e, "Failed to read legacy credential")

        if not legacy:
            logger.debug("No password found in storage")
            return Failure(CredentialNotFoundError())

        try:
            password = _decode_legacy_value(legacy)
        except UnicodeDecodeError:
            return self._fail(DecryptionError(DECRYPT_FAILED_MESSAGE), "Legacy credential is not valid UTF-8")

        logger.info("Migrating password from legacy storage")
        stored = self.store_password(password)
        if not stored.ok:
            warning = MigrationError(f"Failed to migrate legacy password: {stored.message}")
            self._audit(
                EventType.CREDENTIAL_MIGRATION_FAILED,
                "Legacy password kept; encrypted write failed",
                severity=EventSeverity.ALERT,
                details={"error_type": stored.error.__class__.__name__},
            )
            return Success(password, warning=warning)

        try:
            self._delete(self.legacy_store, LEGACY_KEY)
        except StorageUnavailableError as e:
            # Encrypted copy exists and takes precedence; the stale legacy
            # entry goes away on the next clear_password().
            logger.warning("Migrated password but could not remove legacy entry: %s", e)

        self._audit(
            EventType.CREDENTIAL_MIGRATED,
            "Legacy password migrated to encrypted storage",
        )
        return Success(password)

    # ── Device key ───────────────────────────────────────────────────

    def _device_key(self) -> bytes:
        """Fingerprint + salt -> derived key, memoized in the key cache."""
        fingerprint = compute_fingerprint(self.signal_provider.get_signals())
        salt = self._load_or_create_salt()
        return self.key_cache.get_or_derive(
            fingerprint,
            salt,
            lambda fp, s: derive_device_key(fp, s, self.device_kdf_iterations),
        )

    def _load_or_create_salt(self) -> bytes:
        """Load the installation salt, or generate and persist a new one."""
        stored = self._read(self.durable_store, SALT_KEY)
        if stored is not None:
            try:
                salt = EncryptionService.decode_from_storage(stored)
                if len(salt) >= SALT_LENGTH:
                    return salt
            except (TypeError, ValueError):
                pass
            logger.warning("Stored credential salt is corrupt; generating a new one")

        salt = self._random_bytes(SALT_LENGTH)
        self._write(self.durable_store, SALT_KEY, EncryptionService.encode_for_storage(salt))
        return salt

    # ── Storage helpers ──────────────────────────────────────────────

    @staticmethod
    def _read(store: KeyValueStore, key: str) -> Optional[str]:
        try:
            return store.get(key)
        except Exception as e:
            raise StorageUnavailableError(f"Failed to read {key!r}: {e}") from e

    @staticmethod
    def _write(store: KeyValueStore, key: str, value: str) -> None:
        try:
            store.set(key, value)
        except Exception as e:
            raise StorageUnavailableError(f"Failed to write {key!r}: {e}") from e

    @staticmethod
    def _delete(store: KeyValueStore, key: str) -> None:
        try:
            store.remove(key)
        except Exception as e:
            raise StorageUnavailableError(f"Failed to remove {key!r}: {e}") from e

    def _audit(
        self,
        event_type: EventType,
        message: str,
        severity: EventSeverity = EventSeverity.INFO,
        details: Optional[dict] = None,
    ) -> None:
        """Write a credential audit event; a failing audit sink never fails the operation."""
        try:
            self.logger.log_credential_event(event_type, message, severity=severity, details=details)
        except Exception as e:
            logger.error("Audit logging failed for %s: %s", event_type.value, e)

    def _fail(self, error: SyncVaultError, message: str) -> Failure:
        self._audit(
            EventType.CREDENTIAL_ERROR,
            message,
            severity=EventSeverity.CRITICAL,
            details={"error_type": error.__class__.__name__},
        )
        return Failure(error)


def _decode_legacy_value(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def create_vault(settings: Optional[VaultSettings] = None, **kwargs) -> CredentialVault:
    """Build a CredentialVault backed by the SQLite vault database.

    The legacy store defaults to in-memory; pass ``legacy_store=`` to point
    at an existing deprecated location that should be migrated.
    """
    settings = settings or load_settings()
    kwargs.setdefault("durable_store", SQLiteKeyValueStore(settings.vault_db_path, table="credentials"))
    kwargs.setdefault("encryption", EncryptionService(iterations=settings.kdf_iterations))
    kwargs.setdefault("device_kdf_iterations", settings.device_kdf_iterations)
    return CredentialVault(**kwargs)
