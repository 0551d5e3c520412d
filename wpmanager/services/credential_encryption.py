"""AES-256-GCM credential codec for secrets stored at rest.

Site passwords, user API keys, and hosting account credential blobs are
encrypted with a single process-wide key loaded once at startup.

Key source precedence (see ``resolve_key``):
    1. encryption_key setting (base64-encoded 32-byte key)
    2. encryption_secret setting (passphrase, derived once with scrypt)
    3. encryption_key_file setting (path to raw 32-byte key file)
    4. platformdirs data dir file (auto-generated on first use)

Ciphertext format: ``v1:<nonce_hex>:<tag_hex>:<ciphertext_hex>``.
Rotating the key invalidates every stored ciphertext.
"""

import base64
import binascii
import json
import logging
import os
import platform
import stat
from pathlib import Path
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from wpmanager.config import AppSettings, ConfigurationError

logger = logging.getLogger(__name__)

KEY_FILENAME = ".wpmanager_key"
_VERSION_PREFIX = "v1"
_REQUIRED_KEY_LENGTH = 32
_NONCE_LENGTH = 12
_TAG_LENGTH = 16
# Fixed application salt: the same passphrase must always yield the same key.
_KDF_SALT = b"wpmanager.credential-codec.v1"


class CredentialDecryptionError(Exception):
    """Raised when a ciphertext cannot be decrypted for any reason."""


class CredentialCodec:
    """Reversible encryption of secret strings and JSON blobs.

    Args:
        key: 32-byte AES-256 key.

    Raises:
        ValueError: If key is not exactly 32 bytes.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != _REQUIRED_KEY_LENGTH:
            raise ValueError(
                f"Encryption key must be exactly {_REQUIRED_KEY_LENGTH} bytes "
                f"(got {len(key)}). AES-256-GCM requires a 256-bit key."
            )
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str, aad: str = "") -> str:
        """Encrypt a string with a fresh random nonce.

        Args:
            plaintext: Secret to encrypt.
            aad: Additional authenticated data that must be supplied again
                on decrypt (e.g. a record id).

        Returns:
            Delimited ciphertext string.
        """
        nonce = os.urandom(_NONCE_LENGTH)
        sealed = self._aesgcm.encrypt(
            nonce, plaintext.encode("utf-8"), aad.encode("utf-8") if aad else None
        )
        ciphertext, tag = sealed[:-_TAG_LENGTH], sealed[-_TAG_LENGTH:]
        return ":".join((_VERSION_PREFIX, nonce.hex(), tag.hex(), ciphertext.hex()))

    def decrypt(self, ciphertext: str, aad: str = "") -> str:
        """Decrypt a string produced by ``encrypt``.

        Raises:
            CredentialDecryptionError: If the input is malformed, the key
                does not match, or the integrity tag does not verify.
        """
        if not isinstance(ciphertext, str):
            raise CredentialDecryptionError("Ciphertext must be a string")

        parts = ciphertext.split(":")
        if len(parts) != 4 or parts[0] != _VERSION_PREFIX:
            raise CredentialDecryptionError("Invalid ciphertext format")

        try:
            nonce = bytes.fromhex(parts[1])
            tag = bytes.fromhex(parts[2])
            body = bytes.fromhex(parts[3])
        except ValueError as e:
            raise CredentialDecryptionError("Ciphertext is not valid hex") from e

        if len(nonce) != _NONCE_LENGTH or len(tag) != _TAG_LENGTH:
            raise CredentialDecryptionError("Invalid nonce or tag length")

        try:
            plaintext = self._aesgcm.decrypt(
                nonce, body + tag, aad.encode("utf-8") if aad else None
            )
        except InvalidTag as e:
            raise CredentialDecryptionError(
                "Integrity check failed (wrong key or tampered data)"
            ) from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CredentialDecryptionError("Decrypted payload is not UTF-8") from e

    def encrypt_json(self, value: Any, aad: str = "") -> str:
        """Serialize ``value`` to JSON and encrypt it."""
        return self.encrypt(json.dumps(value, sort_keys=True), aad)

    def decrypt_json(self, ciphertext: str, aad: str = "") -> Any:
        """Decrypt and deserialize a value produced by ``encrypt_json``.

        Raises:
            CredentialDecryptionError: On any decryption or JSON decode failure.
        """
        text = self.decrypt(ciphertext, aad)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CredentialDecryptionError("Decrypted payload is not valid JSON") from e


def generate_key() -> str:
    """Generate a new random key, base64-encoded for configuration."""
    return base64.b64encode(os.urandom(_REQUIRED_KEY_LENGTH)).decode("ascii")


def derive_key_from_secret(secret: str) -> bytes:
    """Derive a 32-byte key from a passphrase with scrypt.

    The same passphrase always yields the same key, so encryption and
    decryption share one derivation.
    """
    kdf = Scrypt(salt=_KDF_SALT, length=_REQUIRED_KEY_LENGTH, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


def _read_key_file(path: Path) -> bytes:
    if not path.exists():
        raise ConfigurationError(f"Encryption key file does not exist: {path}")
    if path.is_symlink():
        raise ConfigurationError(
            f"Encryption key file is a symlink: {path}. "
            "Symlinks are rejected to prevent link-following attacks."
        )
    if not path.is_file():
        raise ConfigurationError(f"Encryption key file is not a regular file: {path}")
    key = path.read_bytes()
    if len(key) != _REQUIRED_KEY_LENGTH:
        raise ConfigurationError(
            f"Key file {path} has invalid length {len(key)} (expected {_REQUIRED_KEY_LENGTH})"
        )
    return key


def _get_or_create_key_file(directory: Path) -> bytes:
    directory.mkdir(parents=True, exist_ok=True)
    key_path = directory / KEY_FILENAME

    if key_path.exists():
        key = _read_key_file(key_path)
        if platform.system() != "Windows":
            mode = stat.S_IMODE(os.stat(key_path).st_mode)
            if mode & (stat.S_IRGRP | stat.S_IWGRP | stat.S_IROTH | stat.S_IWOTH):
                logger.warning(
                    "Key file %s has permissions %o, recommend chmod 600",
                    key_path, mode,
                )
        return key

    key = os.urandom(_REQUIRED_KEY_LENGTH)
    try:
        fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        try:
            os.write(fd, key)
        finally:
            os.close(fd)
    except FileExistsError:
        # Another process created the file first.
        return _read_key_file(key_path)

    logger.info("Generated new encryption key at %s", key_path)
    return key


def resolve_key(settings: AppSettings, key_dir: str | Path | None = None) -> bytes:
    """Load the codec key from the first configured source.

    Args:
        settings: Application settings.
        key_dir: Directory for the auto-generated key file (last source
            only). Defaults to the platform data dir.

    Returns:
        32-byte key.

    Raises:
        ConfigurationError: If a configured source is invalid.
    """
    if settings.encryption_key:
        try:
            key = base64.b64decode(settings.encryption_key, validate=True)
        except binascii.Error as e:
            raise ConfigurationError(
                f"encryption_key contains invalid base64: {e}"
            ) from e
        if len(key) != _REQUIRED_KEY_LENGTH:
            raise ConfigurationError(
                f"encryption_key has invalid length {len(key)} (expected {_REQUIRED_KEY_LENGTH})"
            )
        return key

    if settings.encryption_secret:
        return derive_key_from_secret(settings.encryption_secret)

    if settings.encryption_key_file:
        return _read_key_file(Path(settings.encryption_key_file).expanduser())

    if key_dir is None:
        from wpmanager.utils.paths import get_data_dir

        key_dir = get_data_dir()
    return _get_or_create_key_file(Path(key_dir))


def build_codec(settings: AppSettings, key_dir: str | Path | None = None) -> CredentialCodec:
    """Construct the process-wide codec from settings."""
    return CredentialCodec(resolve_key(settings, key_dir=key_dir))
