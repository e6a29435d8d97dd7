# Sync Vault - Encryption Service
#
# Passphrase -> Encryption key (PBKDF2-HMAC-SHA256)
# Payload encryption (AES-256-GCM, authenticated)
# Fresh salt + nonce on every encryption, stored in a versioned blob

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.config import DEFAULT_KDF_ITERATIONS
from ..core.errors import DecryptionError
from ..core.result import Failure, Result, Success

logger = logging.getLogger(__name__)

Passphrase = Union[str, bytes]

SCHEMA_VERSION = 1
SUPPORTED_SCHEMA_VERSIONS = frozenset({SCHEMA_VERSION})

# Upper bound on the iteration count accepted from a stored blob, so a
# tampered blob cannot pin the CPU.
MAX_KDF_ITERATIONS = 10_000_000


@dataclass(frozen=True)
class EncryptedBlob:
    """Versioned encrypted record: {schema_version, salt, nonce, ciphertext}.

    ``iterations`` records the KDF cost used for this blob so the default
    can be raised later without breaking data encrypted under the old one.
    ``ciphertext`` includes the 16-byte GCM tag.
    """

    schema_version: int
    salt: bytes
    nonce: bytes
    ciphertext: bytes
    iterations: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "schema_version": self.schema_version,
            "iterations": self.iterations,
            "salt": EncryptionService.encode_for_storage(self.salt),
            "nonce": EncryptionService.encode_for_storage(self.nonce),
            "ciphertext": EncryptionService.encode_for_storage(self.ciphertext),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptedBlob":
        """Reconstruct from dictionary.

        Raises:
            DecryptionError: Missing or invalid fields, or an unsupported
                schema version.
        """
        if not isinstance(data, dict):
            logger.debug("Malformed blob: expected object, got %s", type(data).__name__)
            raise DecryptionError()

        version = data.get("schema_version")
        if not _is_int(version) or version not in SUPPORTED_SCHEMA_VERSIONS:
            logger.debug("Unsupported blob schema version: %r", version)
            raise DecryptionError()

        iterations = data.get("iterations")
        if not _is_int(iterations) or not 1 <= iterations <= MAX_KDF_ITERATIONS:
            logger.debug("Malformed blob: invalid iteration count %r", iterations)
            raise DecryptionError()

        try:
            salt = EncryptionService.decode_from_storage(data["salt"])
            nonce = EncryptionService.decode_from_storage(data["nonce"])
            ciphertext = EncryptionService.decode_from_storage(data["ciphertext"])
        except (KeyError, TypeError, ValueError, binascii.Error) as e:
            logger.debug("Malformed blob: bad binary field (%s)", e.__class__.__name__)
            raise DecryptionError() from None

        if len(salt) < EncryptionService.MIN_SALT_LENGTH:
            logger.debug("Malformed blob: salt too short (%d bytes)", len(salt))
            raise DecryptionError()
        if len(nonce) != EncryptionService.NONCE_LENGTH:
            logger.debug("Malformed blob: nonce length %d", len(nonce))
            raise DecryptionError()
        if len(ciphertext) < EncryptionService.TAG_LENGTH:
            logger.debug("Malformed blob: ciphertext shorter than GCM tag")
            raise DecryptionError()

        return cls(
            schema_version=version,
            salt=salt,
            nonce=nonce,
            ciphertext=ciphertext,
            iterations=iterations,
        )

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "EncryptedBlob":
        try:
            data = json.loads(text)
        except (TypeError, ValueError, RecursionError) as e:
            logger.debug("Malformed blob: not JSON (%s)", e.__class__.__name__)
            raise DecryptionError() from None
        return cls.from_dict(data)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class EncryptionService:
    """
    Encrypts and decrypts JSON-representable values under a passphrase.

    Flow:
    1. Value is serialized to JSON
    2. PBKDF2 derives a 256-bit key from passphrase + fresh random salt
    3. AES-256-GCM encrypts with a fresh random nonce
    4. Salt, nonce, iteration count and ciphertext travel together in an
       EncryptedBlob

    The service holds no secrets; it only carries its KDF cost and
    random source.
    """

    KEY_LENGTH = 32  # 256 bits for AES-256
    SALT_LENGTH = 16  # 128-bit salt
    MIN_SALT_LENGTH = 16
    NONCE_LENGTH = 12  # 96-bit nonce for GCM (recommended)
    TAG_LENGTH = 16  # GCM authentication tag

    def __init__(
        self,
        iterations: int = DEFAULT_KDF_ITERATIONS,
        random_bytes: Optional[Callable[[int], bytes]] = None,
    ):
        """
        Args:
            iterations: PBKDF2 iteration count for new blobs
            random_bytes: Cryptographically strong random source (default: os.urandom)
        """
        if iterations < 1:
            raise ValueError("iterations must be positive")
        self.iterations = iterations
        self._random_bytes = random_bytes or os.urandom

    @staticmethod
    def derive_key(passphrase: Passphrase, salt: bytes, iterations: int = DEFAULT_KDF_ITERATIONS) -> bytes:
        """
        Derive a 256-bit key from a passphrase using PBKDF2-HMAC-SHA256.

        Deterministic: the same (passphrase, salt, iterations) always
        yields the same key.

        Args:
            passphrase: Passphrase text, or raw key material as bytes
            salt: Random salt (stored with the blob)
            iterations: PBKDF2 iteration count

        Returns:
            256-bit key
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=EncryptionService.KEY_LENGTH,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(_passphrase_bytes(passphrase))

    def generate_salt(self) -> bytes:
        """Generate cryptographically random salt."""
        return self._random_bytes(self.SALT_LENGTH)

    def encrypt(self, value: Any, passphrase: Passphrase) -> EncryptedBlob:
        """
        Encrypt a JSON-representable value.

        Two calls with the same (value, passphrase) never produce the same
        blob: salt and nonce are fresh each time.

        Raises:
            TypeError / ValueError: ``value`` is not JSON-representable
        """
        plaintext = json.dumps(value).encode("utf-8")

        salt = self.generate_salt()
        nonce = self._random_bytes(self.NONCE_LENGTH)
        key = self.derive_key(passphrase, salt, self.iterations)

        ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)

        return EncryptedBlob(
            schema_version=SCHEMA_VERSION,
            salt=salt,
            nonce=nonce,
            ciphertext=ciphertext,
            iterations=self.iterations,
        )

    def decrypt(self, blob: Union[EncryptedBlob, Dict[str, Any], str, bytes], passphrase: Passphrase) -> Any:
        """
        Decrypt a blob back into the original value.

        Args:
            blob: EncryptedBlob, its dict form, or its JSON text
            passphrase: Passphrase used at encryption time

        Returns:
            The original value

        Raises:
            DecryptionError: Wrong passphrase, malformed blob, or
                unsupported schema version
        """
        if isinstance(blob, (str, bytes)):
            blob = EncryptedBlob.from_json(blob)
        elif isinstance(blob, dict):
            blob = EncryptedBlob.from_dict(blob)
        elif not isinstance(blob, EncryptedBlob):
            logger.debug("Malformed blob: unsupported type %s", type(blob).__name__)
            raise DecryptionError()

        if blob.schema_version not in SUPPORTED_SCHEMA_VERSIONS:
            logger.debug("Unsupported blob schema version: %r", blob.schema_version)
            raise DecryptionError()

        key = self.derive_key(passphrase, blob.salt, blob.iterations)
        try:
            plaintext = AESGCM(key).decrypt(blob.nonce, blob.ciphertext, None)
        except InvalidTag:
            # Wrong passphrase and tampered ciphertext both fail the tag check
            logger.debug("Decryption failed: authentication tag mismatch")
            raise DecryptionError() from None
        except ValueError as e:
            logger.debug("Decryption failed: invalid cipher input (%s)", e)
            raise DecryptionError() from None

        try:
            return json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError, RecursionError):
            logger.debug("Decryption failed: authenticated plaintext is not JSON")
            raise DecryptionError() from None

    def encrypt_safe(self, value: Any, passphrase: Passphrase) -> Result[EncryptedBlob]:
        """encrypt() returning a Result instead of raising."""
        try:
            return Success(self.encrypt(value, passphrase))
        except (TypeError, ValueError) as e:
            logger.error("Encryption failed: %s", e)
            return Failure(e)

    def decrypt_safe(self, blob: Union[EncryptedBlob, Dict[str, Any], str, bytes], passphrase: Passphrase) -> Result[Any]:
        """decrypt() returning a Result instead of raising."""
        try:
            return Success(self.decrypt(blob, passphrase))
        except DecryptionError as e:
            return Failure(e)

    @staticmethod
    def encode_for_storage(data: bytes) -> str:
        """Encode binary data as base64 text for key-value storage."""
        return base64.b64encode(data).decode('utf-8')

    @staticmethod
    def decode_from_storage(data: str) -> bytes:
        """Decode base64 text from storage (strict: rejects non-alphabet characters)."""
        if not isinstance(data, str):
            raise TypeError("expected base64 text")
        return base64.b64decode(data.encode('utf-8'), validate=True)


def _passphrase_bytes(passphrase: Passphrase) -> bytes:
    if isinstance(passphrase, bytes):
        return passphrase
    if isinstance(passphrase, str):
        return passphrase.encode('utf-8')
    raise TypeError("passphrase must be str or bytes")
