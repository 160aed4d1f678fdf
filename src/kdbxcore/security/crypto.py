"""Block cipher and comparison primitives.

KDBX 3.x bodies are encrypted with the cipher named by the header's
cipher ID. The working key is SHA-256(master_seed || master_key), and the
body is decrypted in CBC mode with the header's encryption IV.
"""

from __future__ import annotations

import hashlib
import hmac
import os
from enum import Enum

from Cryptodome.Cipher import AES
from Cryptodome.Util.Padding import unpad

from kdbxcore.exceptions import CorruptedDataError, DecryptionError, UnknownCipherError


class Cipher(Enum):
    """Body ciphers identified by their KDBX UUID."""

    AES256_CBC = bytes.fromhex("31c1f2e6bf714350be5805216afc5aff")

    @property
    def display_name(self) -> str:
        """Human-readable cipher name."""
        return "AES-256-CBC"

    @property
    def key_size(self) -> int:
        """Cipher key length in bytes."""
        return 32

    @property
    def iv_size(self) -> int:
        """Encryption IV length in bytes."""
        return AES.block_size

    @classmethod
    def from_uuid(cls, uuid_bytes: bytes) -> Cipher:
        """Look up cipher by its KDBX UUID.

        Raises:
            UnknownCipherError: If the UUID doesn't match any known cipher
        """
        for cipher in cls:
            if cipher.value == uuid_bytes:
                return cipher
        raise UnknownCipherError(uuid_bytes)


def derive_cipher_key(master_seed: bytes, master_key: bytes) -> bytes:
    """Combine master seed and master key into the body cipher key.

    cipher_key = SHA256(master_seed || master_key)
    """
    return hashlib.sha256(master_seed + master_key).digest()


def aes_cbc_decrypt(key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
    """Decrypt AES-256-CBC ciphertext without touching the padding.

    Raises:
        DecryptionError: If the key, IV or ciphertext length is unusable
    """
    cipher_spec = Cipher.AES256_CBC
    if len(key) != cipher_spec.key_size:
        raise DecryptionError(f"Cipher key must be {cipher_spec.key_size} bytes")
    if len(iv) != cipher_spec.iv_size:
        raise DecryptionError(f"Encryption IV must be {cipher_spec.iv_size} bytes")
    if not ciphertext or len(ciphertext) % AES.block_size:
        raise DecryptionError(
            "Ciphertext length is not a positive multiple of the block size"
        )
    return AES.new(key, AES.MODE_CBC, iv=iv).decrypt(ciphertext)


def aes_cbc_encrypt(key: bytes, iv: bytes, plaintext: bytes) -> bytes:
    """Encrypt block-aligned plaintext with AES-CBC."""
    return AES.new(key, AES.MODE_CBC, iv=iv).encrypt(plaintext)


def remove_pkcs7_padding(data: bytes) -> bytes:
    """Strip PKCS#7 padding from decrypted data.

    Only call this after the key has been verified; with a wrong key the
    padding is random and the error would say nothing useful.
    """
    try:
        return unpad(data, AES.block_size, style="pkcs7")
    except ValueError as e:
        raise CorruptedDataError("Invalid block padding") from e


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """Compare two byte strings without leaking timing information."""
    return hmac.compare_digest(a, b)


def secure_random_bytes(n: int) -> bytes:
    """Return n bytes from the OS CSPRNG."""
    return os.urandom(n)
