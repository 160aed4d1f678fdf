"""Test utilities for kdbxcore.

WARNING: The builders in this module are for TESTING ONLY. They write
files with whatever parameters they're given, including weak transform
rounds, and make no attempt at producing a loadable KeePass database
payload.

build_kdbx3() assembles a complete KDBX 3.x file from a header and a
plaintext payload so tests don't need binary fixtures:

    signature | version | header directory | AES-256-CBC(start bytes + payload)

Example:
    >>> header = sample_header()
    >>> data = build_kdbx3(header, b"payload", master_key=TEST_MASTER_KEY)
    >>> read_kdbx3(data, master_key=TEST_MASTER_KEY).payload
    b'payload'
"""

from __future__ import annotations

import struct

from Cryptodome.Cipher import AES
from Cryptodome.Util.Padding import pad

from kdbxcore.parsing.header import HeaderFieldType, KdbxHeader
from kdbxcore.parsing.signature import KDBX_MAGIC, KDBX_SIGNATURE
from kdbxcore.security import (
    AesKdfConfig,
    aes_cbc_encrypt,
    derive_cipher_key,
    derive_composite_key,
    derive_key_aes_kdf,
    secure_random_bytes,
)

# Fixed key material from a KeePass 2.x sample database
TEST_MASTER_SEED = bytes.fromhex(
    "2b4656399a5bdf9fdfe9e8705a34b6f484f9b1b940c3d7cfb7ffece3b634e0ae"
)
TEST_TRANSFORM_SEED = bytes.fromhex(
    "9525f6992beb739cbaa73ae6e050627fcaff378d3cd6f6c232d20aa92f6d0927"
)
TEST_ENCRYPTION_IV = bytes.fromhex("f360c29e1a603a6548cfbb28da6fff50")
TEST_STREAM_START_BYTES = bytes.fromhex(
    "54347fe32f3edbccae1fc60f72c11dafd0a72487b315f9b174ed1073ed67a6e0"
)
TEST_MASTER_KEY = bytes.fromhex(
    "87730050341ff55c46421f2f2a5f4e1e018d0443d19cacc8682f128f1874d0a4"
)
TEST_TRANSFORM_ROUNDS = 6000


def sample_header(**overrides: object) -> KdbxHeader:
    """Create a header with the fixed test key material.

    Keyword arguments override individual fields.
    """
    fields: dict[str, object] = {
        "master_seed": TEST_MASTER_SEED,
        "encryption_iv": TEST_ENCRYPTION_IV,
        "stream_start_bytes": TEST_STREAM_START_BYTES,
        "transform_seed": TEST_TRANSFORM_SEED,
        "transform_rounds": TEST_TRANSFORM_ROUNDS,
        "protected_stream_key": bytes(32),
        "inner_random_stream_id": 2,
    }
    fields.update(overrides)
    return KdbxHeader(**fields)  # type: ignore[arg-type]


def random_header(rounds: int = 10) -> KdbxHeader:
    """Create a header with fresh random seeds and IV."""
    return KdbxHeader(
        master_seed=secure_random_bytes(32),
        encryption_iv=secure_random_bytes(16),
        stream_start_bytes=secure_random_bytes(32),
        transform_seed=secure_random_bytes(32),
        transform_rounds=rounds,
        protected_stream_key=secure_random_bytes(32),
        inner_random_stream_id=2,
    )


def build_signature(major: int = 3, minor: int = 1) -> bytes:
    """Build the 12-byte signature and version prefix."""
    return KDBX_MAGIC + KDBX_SIGNATURE + struct.pack("<HH", minor, major)


def build_field(field_type: int | HeaderFieldType, data: bytes) -> bytes:
    """Build one raw header directory field."""
    return struct.pack("<BH", field_type, len(data)) + data


def encrypt_body(header: KdbxHeader, payload: bytes, master_key: bytes) -> bytes:
    """Encrypt stream start bytes plus payload the way KeePass does."""
    key = derive_cipher_key(header.master_seed, master_key)
    plaintext = pad(header.stream_start_bytes + payload, AES.block_size, style="pkcs7")
    return aes_cbc_encrypt(key, header.encryption_iv, plaintext)


def master_key_for(
    header: KdbxHeader,
    password: str | None = None,
    keyfile_data: bytes | None = None,
) -> bytes:
    """Derive the master key for a header from credentials."""
    composite = derive_composite_key(password=password, keyfile_data=keyfile_data)
    config = AesKdfConfig.from_header(header)
    return derive_key_aes_kdf(composite.data, config).data


def build_kdbx3(
    header: KdbxHeader,
    payload: bytes = b"",
    *,
    master_key: bytes | None = None,
    password: str | None = None,
    keyfile_data: bytes | None = None,
    major: int = 3,
    minor: int = 1,
) -> bytes:
    """Assemble a complete KDBX 3.x file.

    Args:
        header: Header to serialize and encrypt with
        payload: Plaintext following the stream start bytes
        master_key: Master key to encrypt with
        password: Password to derive the master key from, if no master_key
        keyfile_data: Keyfile to derive the master key from, if no master_key
        major: Schema major version written to the file
        minor: Schema minor version written to the file

    Returns:
        Complete file contents
    """
    if master_key is None:
        master_key = master_key_for(header, password, keyfile_data)
    return (
        build_signature(major, minor)
        + header.to_bytes()
        + encrypt_body(header, payload, master_key)
    )


__all__ = [
    "TEST_ENCRYPTION_IV",
    "TEST_MASTER_KEY",
    "TEST_MASTER_SEED",
    "TEST_STREAM_START_BYTES",
    "TEST_TRANSFORM_ROUNDS",
    "TEST_TRANSFORM_SEED",
    "build_field",
    "build_kdbx3",
    "build_signature",
    "encrypt_body",
    "master_key_for",
    "random_header",
    "sample_header",
]
