"""Tests for the AES-256-GCM credential codec and key resolution."""

import base64
import os
import platform
import stat

import pytest

from wpmanager.config import AppSettings, ConfigurationError
from wpmanager.services.credential_encryption import (
    KEY_FILENAME,
    CredentialCodec,
    CredentialDecryptionError,
    build_codec,
    derive_key_from_secret,
    generate_key,
    resolve_key,
)

KEY = bytes(range(32))


@pytest.fixture
def codec():
    return CredentialCodec(KEY)


class TestRoundTrip:
    """Encrypt/decrypt behavior."""

    @pytest.mark.parametrize(
        "plaintext",
        ["abcd efgh ijkl mnop", "", "pässwörd-✓", "x" * 5000],
    )
    def test_decrypt_inverts_encrypt(self, codec, plaintext):
        """decrypt(encrypt(p)) == p for any string."""
        assert codec.decrypt(codec.encrypt(plaintext)) == plaintext

    def test_ciphertext_format(self, codec):
        """Ciphertext is v1:<nonce>:<tag>:<body> hex with 12-byte nonce and 16-byte tag."""
        parts = codec.encrypt("secret").split(":")
        assert parts[0] == "v1"
        assert len(bytes.fromhex(parts[1])) == 12
        assert len(bytes.fromhex(parts[2])) == 16
        assert len(bytes.fromhex(parts[3])) == len("secret")

    def test_fresh_nonce_per_encryption(self, codec):
        """Encrypting the same value twice yields different ciphertexts."""
        assert codec.encrypt("same") != codec.encrypt("same")

    def test_plaintext_not_in_ciphertext(self, codec):
        """The secret does not appear in the stored form."""
        secret = "super-secret-app-password"
        assert secret not in codec.encrypt(secret)
        assert secret.encode().hex() not in codec.encrypt(secret)

    def test_aad_must_match(self, codec):
        """Ciphertext bound to one AAD does not decrypt under another."""
        token = codec.encrypt("secret", aad="site-1")
        assert codec.decrypt(token, aad="site-1") == "secret"
        with pytest.raises(CredentialDecryptionError):
            codec.decrypt(token, aad="site-2")

    def test_json_round_trip(self, codec):
        """encrypt_json/decrypt_json preserve structured credentials."""
        creds = {"api_token": "t0k", "sftp": {"user": "u", "password": "p"}}
        assert codec.decrypt_json(codec.encrypt_json(creds)) == creds


class TestDecryptFailures:
    """Every malformed or foreign input fails with CredentialDecryptionError."""

    def test_wrong_key(self, codec):
        token = codec.encrypt("secret")
        other = CredentialCodec(os.urandom(32))
        with pytest.raises(CredentialDecryptionError, match="Integrity"):
            other.decrypt(token)

    def test_tampered_body(self, codec):
        prefix, nonce, tag, body = codec.encrypt("secret").split(":")
        flipped = f"{int(body[:2], 16) ^ 0xFF:02x}" + body[2:]
        with pytest.raises(CredentialDecryptionError):
            codec.decrypt(":".join((prefix, nonce, tag, flipped)))

    @pytest.mark.parametrize(
        "bad",
        [
            "",
            "not-a-token",
            "v2:00:00:00",
            "v1:zz:zz:zz",
            "v1:" + "00" * 11 + ":" + "00" * 16 + ":00",
            "v1:" + "00" * 12 + ":" + "00" * 15 + ":00",
            "v1:a:b",
        ],
    )
    def test_malformed_input(self, codec, bad):
        with pytest.raises(CredentialDecryptionError):
            codec.decrypt(bad)

    def test_non_string_input(self, codec):
        with pytest.raises(CredentialDecryptionError):
            codec.decrypt(None)  # type: ignore[arg-type]

    def test_decrypt_json_rejects_non_json(self, codec):
        with pytest.raises(CredentialDecryptionError, match="JSON"):
            codec.decrypt_json(codec.encrypt("plain text"))


class TestKeyValidation:

    @pytest.mark.parametrize("length", [0, 16, 31, 33, 64])
    def test_wrong_key_length_rejected(self, length):
        """Only 32-byte keys are accepted."""
        with pytest.raises(ValueError, match="32 bytes"):
            CredentialCodec(b"k" * length)

    def test_generate_key_is_base64_32_bytes(self):
        assert len(base64.b64decode(generate_key())) == 32


class TestKeyDerivation:
    """Passphrase-derived keys."""

    def test_same_secret_same_key(self):
        """Derivation is deterministic so encrypt and decrypt agree."""
        assert derive_key_from_secret("passphrase") == derive_key_from_secret("passphrase")

    def test_different_secret_different_key(self):
        assert derive_key_from_secret("one") != derive_key_from_secret("two")

    def test_codecs_from_same_secret_interoperate(self, tmp_path):
        """A value encrypted by one process decrypts in another with the same secret."""
        settings = AppSettings(encryption_secret="shared passphrase")
        writer = build_codec(settings, key_dir=tmp_path)
        reader = build_codec(settings, key_dir=tmp_path)
        assert reader.decrypt(writer.encrypt("app-password")) == "app-password"


class TestResolveKey:
    """Key source precedence."""

    def test_explicit_key_wins(self, tmp_path):
        key = os.urandom(32)
        settings = AppSettings(
            encryption_key=base64.b64encode(key).decode(),
            encryption_secret="ignored",
        )
        assert resolve_key(settings, key_dir=tmp_path) == key
        assert not (tmp_path / KEY_FILENAME).exists()

    def test_invalid_base64_key(self, tmp_path):
        with pytest.raises(ConfigurationError, match="base64"):
            resolve_key(AppSettings(encryption_key="not base64!!"), key_dir=tmp_path)

    def test_short_base64_key(self, tmp_path):
        short = base64.b64encode(b"x" * 16).decode()
        with pytest.raises(ConfigurationError, match="length"):
            resolve_key(AppSettings(encryption_key=short), key_dir=tmp_path)

    def test_secret_before_key_file(self, tmp_path):
        key_file = tmp_path / "k.bin"
        key_file.write_bytes(os.urandom(32))
        settings = AppSettings(encryption_secret="pw", encryption_key_file=str(key_file))
        assert resolve_key(settings) == derive_key_from_secret("pw")

    def test_key_file(self, tmp_path):
        key = os.urandom(32)
        key_file = tmp_path / "k.bin"
        key_file.write_bytes(key)
        assert resolve_key(AppSettings(encryption_key_file=str(key_file))) == key

    def test_missing_key_file(self, tmp_path):
        settings = AppSettings(encryption_key_file=str(tmp_path / "missing.bin"))
        with pytest.raises(ConfigurationError, match="does not exist"):
            resolve_key(settings)

    @pytest.mark.skipif(platform.system() == "Windows", reason="symlinks")
    def test_symlinked_key_file_rejected(self, tmp_path):
        real = tmp_path / "real.bin"
        real.write_bytes(os.urandom(32))
        link = tmp_path / "link.bin"
        link.symlink_to(real)
        with pytest.raises(ConfigurationError, match="symlink"):
            resolve_key(AppSettings(encryption_key_file=str(link)))

    def test_auto_generated_key_file_is_reused(self, tmp_path):
        """With nothing configured a key file is created once and reused."""
        first = resolve_key(AppSettings(), key_dir=tmp_path)
        second = resolve_key(AppSettings(), key_dir=tmp_path)
        assert first == second
        assert (tmp_path / KEY_FILENAME).read_bytes() == first

    @pytest.mark.skipif(platform.system() == "Windows", reason="Unix permissions")
    def test_auto_generated_key_file_permissions(self, tmp_path):
        """Generated key file is owner read/write only."""
        resolve_key(AppSettings(), key_dir=tmp_path)
        mode = stat.S_IMODE(os.stat(tmp_path / KEY_FILENAME).st_mode)
        assert mode == 0o600

    @pytest.mark.skipif(platform.system() == "Windows", reason="Unix permissions")
    def test_permissive_key_file_warns(self, tmp_path, caplog):
        import logging

        key_path = tmp_path / KEY_FILENAME
        key_path.write_bytes(os.urandom(32))
        os.chmod(key_path, 0o644)
        with caplog.at_level(logging.WARNING):
            resolve_key(AppSettings(), key_dir=tmp_path)
        assert any("chmod 600" in msg for msg in caplog.messages)
