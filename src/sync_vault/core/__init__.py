# Sync Vault - Core Module
#
# Shared functionality for the vault and the diff engine:
# - Audit logging
# - Configuration
# - Error kinds and the Result type

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    set_audit_logger,
)
from .config import VaultSettings, load_settings
from .errors import (
    CredentialNotFoundError,
    DecryptionError,
    MigrationError,
    StorageUnavailableError,
    SyncVaultError,
)
from .result import (
    Failure,
    Result,
    Success,
    chain,
    is_failure,
    is_success,
    map_error,
    map_result,
    unwrap,
    unwrap_or,
)

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "set_audit_logger",
    # Configuration
    "VaultSettings",
    "load_settings",
    # Errors
    "SyncVaultError",
    "CredentialNotFoundError",
    "DecryptionError",
    "StorageUnavailableError",
    "MigrationError",
    # Result
    "Result",
    "Success",
    "Failure",
    "is_success",
    "is_failure",
    "map_result",
    "map_error",
    "chain",
    "unwrap",
    "unwrap_or",
]
