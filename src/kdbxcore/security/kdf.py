"""Key derivation for KDBX 3.x databases.

The header parser records the transform seed and rounds but never applies
them. This module is the collaborator that does: it turns a password
and/or keyfile into the composite key, then runs the AES-KDF transform to
produce the master key consumed by the body decryptor.

Security considerations:
- All derived keys are returned as SecureBytes for zeroization
- Intermediate blocks are overwritten once the transform finishes
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

import defusedxml.ElementTree as ET
from Cryptodome.Cipher import AES

from kdbxcore.exceptions import InvalidKeyFileError, KdfError, MissingCredentialsError

from .crypto import constant_time_compare
from .memory import SecureBytes

if TYPE_CHECKING:
    from kdbxcore.parsing.header import KdbxHeader


@dataclass(frozen=True, slots=True)
class AesKdfConfig:
    """Configuration for AES-KDF.

    Attributes:
        rounds: Number of AES encryption rounds
        salt: 32-byte salt (the header's transform seed)
    """

    rounds: int
    salt: bytes

    def __post_init__(self) -> None:
        """Validate configuration."""
        if len(self.salt) != 32:
            raise KdfError("AES-KDF salt must be exactly 32 bytes")
        if self.rounds < 1:
            raise KdfError("AES-KDF rounds must be at least 1")

    @classmethod
    def from_header(cls, header: KdbxHeader) -> AesKdfConfig:
        """Build a configuration from a parsed header's transform fields."""
        return cls(rounds=header.transform_rounds, salt=header.transform_seed)


def derive_key_aes_kdf(
    password: bytes,
    config: AesKdfConfig,
) -> SecureBytes:
    """Derive a 32-byte key using AES-KDF.

    This performs repeated AES-ECB encryption of the composite key using
    the salt as key, then hashes the result.

    Args:
        password: 32-byte composite key
        config: AES-KDF configuration

    Returns:
        32-byte derived key wrapped in SecureBytes

    Raises:
        KdfError: If password is not 32 bytes
    """
    if len(password) != 32:
        raise KdfError("AES-KDF requires 32-byte input")

    cipher = AES.new(config.salt, AES.MODE_ECB)

    # Both 16-byte halves are transformed independently
    block1 = bytearray(password[:16])
    block2 = bytearray(password[16:])

    for _ in range(config.rounds):
        block1 = bytearray(cipher.encrypt(bytes(block1)))
        block2 = bytearray(cipher.encrypt(bytes(block2)))

    combined = bytearray(bytes(block1) + bytes(block2))
    derived = hashlib.sha256(combined).digest()

    for i in range(16):
        block1[i] = 0
        block2[i] = 0
    for i in range(32):
        combined[i] = 0

    return SecureBytes(derived)


def transform_key(header: KdbxHeader, composite_key: SecureBytes) -> SecureBytes:
    """Derive the master key for a parsed header.

    Raises:
        KdfError: If the header's transform seed or rounds are unusable
    """
    return derive_key_aes_kdf(composite_key.data, AesKdfConfig.from_header(header))


def _process_keyfile(keyfile_data: bytes) -> bytes:
    """Process keyfile data according to KeePass keyfile format.

    KeePass supports several keyfile formats:
    1. XML keyfile (v1.0 or v2.0) - key is base64/hex encoded in XML
    2. 32-byte raw binary - used directly
    3. 64-byte hex string - decoded from hex
    4. Any other size - SHA-256 hashed

    Raises:
        InvalidKeyFileError: If an XML v2.0 keyfile fails hash verification
    """
    try:
        tree = ET.fromstring(keyfile_data)
    except (ET.ParseError, ValueError):
        tree = None

    if tree is not None:
        version_elem = tree.find("Meta/Version")
        data_elem = tree.find("Key/Data")
        if version_elem is not None and data_elem is not None:
            version = version_elem.text or ""
            try:
                if version.startswith("1.0"):
                    return base64.b64decode(data_elem.text or "", validate=True)
                if version.startswith("2.0"):
                    key_bytes = bytes.fromhex("".join((data_elem.text or "").split()))
                    if "Hash" in data_elem.attrib:
                        expected_hash = bytes.fromhex(data_elem.attrib["Hash"])
                        computed_hash = hashlib.sha256(key_bytes).digest()[:4]
                        if not constant_time_compare(expected_hash, computed_hash):
                            raise InvalidKeyFileError("Keyfile hash verification failed")
                    return key_bytes
            except (binascii.Error, ValueError) as e:
                raise InvalidKeyFileError("Malformed XML keyfile") from e

    if len(keyfile_data) == 32:
        return keyfile_data

    if len(keyfile_data) == 64:
        try:
            return bytes.fromhex(keyfile_data.decode("ascii"))
        except (ValueError, UnicodeDecodeError):
            pass  # Not hex, hashed below

    return hashlib.sha256(keyfile_data).digest()


def derive_composite_key(
    password: str | None = None,
    keyfile_data: bytes | None = None,
) -> SecureBytes:
    """Create composite key from password and/or keyfile.

    The composite key is SHA-256(SHA-256(password) || keyfile_key).

    Args:
        password: Optional password string
        keyfile_data: Optional keyfile contents

    Returns:
        32-byte composite key wrapped in SecureBytes

    Raises:
        MissingCredentialsError: If neither password nor keyfile is provided
    """
    if password is None and keyfile_data is None:
        raise MissingCredentialsError()

    parts: list[bytes] = []
    secure_parts: list[SecureBytes] = []

    try:
        if password is not None:
            pwd_hash = SecureBytes(hashlib.sha256(password.encode("utf-8")).digest())
            secure_parts.append(pwd_hash)
            parts.append(pwd_hash.data)

        if keyfile_data is not None:
            parts.append(_process_keyfile(keyfile_data))

        return SecureBytes(hashlib.sha256(b"".join(parts)).digest())
    finally:
        for sp in secure_parts:
            sp.zeroize()
