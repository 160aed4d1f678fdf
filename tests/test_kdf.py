"""Tests for composite key and AES-KDF derivation."""

import base64
import hashlib

import pytest
from Cryptodome.Cipher import AES

from kdbxcore import InvalidKeyFileError, KdfError, MissingCredentialsError
from kdbxcore.security import (
    AesKdfConfig,
    SecureBytes,
    derive_composite_key,
    derive_key_aes_kdf,
    transform_key,
)
from kdbxcore.testing import TEST_TRANSFORM_SEED, sample_header


def xml_keyfile(version: str, data: str, hash_attr: str | None = None) -> bytes:
    attr = f' Hash="{hash_attr}"' if hash_attr is not None else ""
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        "<KeyFile>"
        f"<Meta><Version>{version}</Version></Meta>"
        f"<Key><Data{attr}>{data}</Data></Key>"
        "</KeyFile>"
    ).encode("utf-8")


class TestCompositeKey:
    """Tests for derive_composite_key()."""

    def test_password_only(self) -> None:
        """Test composite key from a password alone."""
        expected = hashlib.sha256(hashlib.sha256(b"password").digest()).digest()

        assert derive_composite_key(password="password").data == expected

    def test_raw_32_byte_keyfile(self) -> None:
        """Test that a 32-byte keyfile is used directly."""
        keyfile = bytes(range(32))
        expected = hashlib.sha256(
            hashlib.sha256(b"pw").digest() + keyfile
        ).digest()

        assert derive_composite_key(password="pw", keyfile_data=keyfile).data == expected

    def test_hex_keyfile(self) -> None:
        """Test that a 64-character hex keyfile is decoded."""
        key = bytes(range(32))
        expected = hashlib.sha256(key).digest()

        assert derive_composite_key(keyfile_data=key.hex().encode()).data == expected

    def test_other_keyfile_is_hashed(self) -> None:
        """Test that arbitrary keyfiles are hashed."""
        keyfile = b"\x00\xff" * 100
        expected = hashlib.sha256(hashlib.sha256(keyfile).digest()).digest()

        assert derive_composite_key(keyfile_data=keyfile).data == expected

    def test_xml_v1_keyfile(self) -> None:
        """Test an XML 1.0 keyfile with base64 key data."""
        key = bytes(range(32))
        keyfile = xml_keyfile("1.00", base64.b64encode(key).decode())

        expected = hashlib.sha256(key).digest()
        assert derive_composite_key(keyfile_data=keyfile).data == expected

    def test_xml_v2_keyfile(self) -> None:
        """Test an XML 2.0 keyfile with hex key data and hash."""
        key = bytes(range(32))
        digest = hashlib.sha256(key).digest()[:4].hex().upper()
        keyfile = xml_keyfile("2.0", key.hex().upper(), digest)

        expected = hashlib.sha256(key).digest()
        assert derive_composite_key(keyfile_data=keyfile).data == expected

    def test_xml_v2_keyfile_bad_hash(self) -> None:
        """Test that an XML 2.0 keyfile with a wrong hash is rejected."""
        keyfile = xml_keyfile("2.0", bytes(range(32)).hex(), "00000000")

        with pytest.raises(InvalidKeyFileError, match="hash"):
            derive_composite_key(keyfile_data=keyfile)

    def test_no_credentials(self) -> None:
        """Test that at least one credential is required."""
        with pytest.raises(MissingCredentialsError):
            derive_composite_key()


class TestAesKdf:
    """Tests for the AES-KDF transform."""

    def test_single_round(self) -> None:
        """Test one round against a direct AES-ECB computation."""
        composite = bytes(range(32))
        cipher = AES.new(TEST_TRANSFORM_SEED, AES.MODE_ECB)
        expected = hashlib.sha256(
            cipher.encrypt(composite[:16]) + cipher.encrypt(composite[16:])
        ).digest()

        config = AesKdfConfig(rounds=1, salt=TEST_TRANSFORM_SEED)

        assert derive_key_aes_kdf(composite, config).data == expected

    def test_rounds_change_output(self) -> None:
        """Test that the round count affects the result."""
        composite = bytes(32)

        one = derive_key_aes_kdf(composite, AesKdfConfig(1, TEST_TRANSFORM_SEED))
        two = derive_key_aes_kdf(composite, AesKdfConfig(2, TEST_TRANSFORM_SEED))

        assert one.data != two.data

    def test_input_must_be_32_bytes(self) -> None:
        """Test that the composite key length is checked."""
        with pytest.raises(KdfError, match="32-byte"):
            derive_key_aes_kdf(b"short", AesKdfConfig(1, TEST_TRANSFORM_SEED))

    def test_salt_length(self) -> None:
        """Test that the salt must be 32 bytes."""
        with pytest.raises(KdfError, match="salt"):
            AesKdfConfig(rounds=1, salt=b"x" * 16)

    def test_rounds_positive(self) -> None:
        """Test that zero rounds are rejected."""
        with pytest.raises(KdfError, match="rounds"):
            AesKdfConfig(rounds=0, salt=TEST_TRANSFORM_SEED)

    def test_config_from_header(self) -> None:
        """Test that the header's transform fields feed the config."""
        config = AesKdfConfig.from_header(sample_header(transform_rounds=12))

        assert config.rounds == 12
        assert config.salt == TEST_TRANSFORM_SEED

    def test_transform_key(self) -> None:
        """Test transform_key() against derive_key_aes_kdf()."""
        header = sample_header(transform_rounds=3)
        composite = SecureBytes(bytes(32))

        expected = derive_key_aes_kdf(bytes(32), AesKdfConfig(3, TEST_TRANSFORM_SEED))

        assert transform_key(header, composite).data == expected.data


class TestSecureBytes:
    """Tests for the zeroizable key container."""

    def test_zeroize(self) -> None:
        """Test that zeroized buffers can't be read."""
        key = SecureBytes(b"secret")
        key.zeroize()

        assert key.is_zeroized
        with pytest.raises(ValueError, match="zeroized"):
            key.data

    def test_context_manager(self) -> None:
        """Test that leaving the context zeroizes."""
        with SecureBytes(b"secret") as key:
            assert key.data == b"secret"

        assert key.is_zeroized

    def test_repr_hides_contents(self) -> None:
        """Test that repr doesn't leak the contents."""
        assert "secret" not in repr(SecureBytes(b"secret"))
