"""kdbxcore - Format sniffing and decryption for KeePass KDBX 3.x files.

Given a readable byte stream, kdbxcore:
- Classifies the file's schema generation and support level
- Parses the header directory and hashes its raw bytes
- Decrypts the body and checks the stream start bytes

Decompression and XML parsing of the decrypted body are left to the caller.

Example:
    from kdbxcore import ByteReader, decrypt_body, read_headers

    with open("vault.kdbx", "rb") as f:
        reader = ByteReader(f)
        result = read_headers(reader)
        if result.header is not None:
            header = result.header
            body = decrypt_body(
                reader, header.master_seed, master_key, header.encryption_iv
            )
            payload = body.payload(header.stream_start_bytes)
"""

__version__ = "0.1.0"

from .exceptions import (
    CorruptedDataError,
    CredentialError,
    CryptoError,
    DecryptionError,
    FormatError,
    IncompleteInputError,
    InvalidKeyFileError,
    InvalidSignatureError,
    KdbxError,
    KdfError,
    KeyVerificationError,
    MalformedHeaderError,
    MissingCredentialsError,
    UnknownCipherError,
    UnsupportedVersionError,
)
from .parsing import (
    ByteReader,
    CompressionType,
    DecryptedBody,
    DecryptedPayload,
    FileFormat,
    FileSignature,
    FormatSupport,
    HeaderReadResult,
    Kdbx3Reader,
    KdbxHeader,
    classify,
    decrypt_body,
    parse_headers,
    read_headers,
    read_kdbx3,
)
from .security import AesKdfConfig, Cipher

__all__ = [
    # Core
    "ByteReader",
    "CompressionType",
    "DecryptedBody",
    "DecryptedPayload",
    "FileFormat",
    "FileSignature",
    "FormatSupport",
    "HeaderReadResult",
    "Kdbx3Reader",
    "KdbxHeader",
    "classify",
    "decrypt_body",
    "parse_headers",
    "read_headers",
    "read_kdbx3",
    "AesKdfConfig",
    "Cipher",
    # Exceptions
    "KdbxError",
    "FormatError",
    "InvalidSignatureError",
    "UnsupportedVersionError",
    "CorruptedDataError",
    "IncompleteInputError",
    "MalformedHeaderError",
    "CryptoError",
    "DecryptionError",
    "KdfError",
    "UnknownCipherError",
    "CredentialError",
    "KeyVerificationError",
    "InvalidKeyFileError",
    "MissingCredentialsError",
]
