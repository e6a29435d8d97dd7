# Sync Vault - Error Kinds
#
# Every failure that can cross the vault boundary is one of these.
# EncryptionService raises DecryptionError directly; CredentialVault
# catches everything else and re-maps it before wrapping it in a Failure.


class SyncVaultError(Exception):
    """Base class for all Sync Vault errors."""

    default_message = "Sync vault error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class CredentialNotFoundError(SyncVaultError):
    """No credential in either the primary or the legacy location."""

    default_message = "No password found. Please set up sync."


class DecryptionError(SyncVaultError):
    """Wrong passphrase, corrupted blob, or unsupported schema version.

    The message is identical for all three causes so callers cannot use
    it as an oracle. The debug log records the actual cause.
    """

    default_message = "Failed to decrypt data: invalid password or corrupted data"


class StorageUnavailableError(SyncVaultError):
    """The underlying key-value store raised an I/O-level failure."""

    default_message = "Credential storage is unavailable"


class MigrationError(SyncVaultError):
    """A legacy credential was read but could not be re-stored encrypted.

    The legacy copy is left in place, so nothing is lost.
    """

    default_message = "Failed to migrate legacy credential to encrypted storage"
