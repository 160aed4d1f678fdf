"""KDBX binary format parsing.

This module handles low-level binary format operations:
- Signature and schema version sniffing
- Header directory parsing and hashing
- KDBX 3.x body decryption

All parsing uses Python's struct module for binary operations.
"""

from .header import (
    HEADER_HASH_SIZE,
    CompressionType,
    HeaderFieldType,
    KdbxHeader,
    parse_headers,
)
from .kdbx3 import (
    DecryptedBody,
    DecryptedPayload,
    HeaderReadResult,
    Kdbx3Reader,
    decrypt_body,
    read_headers,
    read_kdbx3,
)
from .signature import (
    DEFAULT_SUPPORT,
    KDBX_MAGIC,
    KDBX_SIGNATURE,
    KEEPASS1X_SIGNATURE,
    PRE_RELEASE_SIGNATURE,
    FileFormat,
    FileSignature,
    FormatSupport,
    classify,
)
from .stream import ByteReader

__all__ = [
    # Stream
    "ByteReader",
    # Signature
    "DEFAULT_SUPPORT",
    "KDBX_MAGIC",
    "KDBX_SIGNATURE",
    "KEEPASS1X_SIGNATURE",
    "PRE_RELEASE_SIGNATURE",
    "FileFormat",
    "FileSignature",
    "FormatSupport",
    "classify",
    # Header
    "HEADER_HASH_SIZE",
    "CompressionType",
    "HeaderFieldType",
    "KdbxHeader",
    "parse_headers",
    # KDBX3
    "DecryptedBody",
    "DecryptedPayload",
    "HeaderReadResult",
    "Kdbx3Reader",
    "decrypt_body",
    "read_headers",
    "read_kdbx3",
]
