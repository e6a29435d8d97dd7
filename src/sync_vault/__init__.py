# Sync Vault - Main Package
#
# Secure at-rest storage for the sync passphrase, plus the diff engine
# that classifies local vs. server file state before reconciliation.

__version__ = "0.1.0"
__author__ = "Sync Vault Team"
__description__ = "Encrypted sync credential vault and file-state diff engine"

from .core import (
    CredentialNotFoundError,
    DecryptionError,
    EventSeverity,
    EventType,
    Failure,
    MigrationError,
    StorageUnavailableError,
    Success,
    get_audit_logger,
)
from .sync import SyncDiffEngine, SyncSnapshot
from .vault import CredentialVault, EncryptionService, create_vault

__all__ = [
    "__version__",
    "CredentialVault",
    "create_vault",
    "EncryptionService",
    "SyncDiffEngine",
    "SyncSnapshot",
    "Success",
    "Failure",
    "CredentialNotFoundError",
    "DecryptionError",
    "StorageUnavailableError",
    "MigrationError",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
]
