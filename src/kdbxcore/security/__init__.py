"""Security-critical components for kdbxcore.

This module contains all security-sensitive code including:
- Secure memory handling (SecureBytes)
- Body cipher operations
- Key derivation (composite key and AES-KDF)

All code in this module should be audited carefully.
"""

from .crypto import (
    Cipher,
    aes_cbc_decrypt,
    aes_cbc_encrypt,
    constant_time_compare,
    derive_cipher_key,
    remove_pkcs7_padding,
    secure_random_bytes,
)
from .kdf import (
    AesKdfConfig,
    derive_composite_key,
    derive_key_aes_kdf,
    transform_key,
)
from .memory import SecureBytes

__all__ = [
    # Memory
    "SecureBytes",
    # Crypto
    "Cipher",
    "aes_cbc_decrypt",
    "aes_cbc_encrypt",
    "constant_time_compare",
    "derive_cipher_key",
    "remove_pkcs7_padding",
    "secure_random_bytes",
    # KDF
    "AesKdfConfig",
    "derive_composite_key",
    "derive_key_aes_kdf",
    "transform_key",
]
