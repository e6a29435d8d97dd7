# Sync Vault - Vault Module
#
# Encrypted at-rest storage for the sync passphrase
# Device-bound PBKDF2 key + AES-256-GCM payload encryption

from .credential_vault import CredentialVault, create_vault
from .device import (
    DeviceSignals,
    StaticSignalProvider,
    SystemSignalProvider,
    compute_fingerprint,
    derive_device_key,
)
from .encryption import EncryptedBlob, EncryptionService
from .key_cache import DeviceKeyCache
from .storage import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore

__all__ = [
    "CredentialVault",
    "create_vault",
    "EncryptionService",
    "EncryptedBlob",
    "DeviceKeyCache",
    "DeviceSignals",
    "StaticSignalProvider",
    "SystemSignalProvider",
    "compute_fingerprint",
    "derive_device_key",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
]
