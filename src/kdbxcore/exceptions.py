"""Custom exception hierarchy for kdbxcore.

All exceptions inherit from KdbxError, so callers can catch every
library-specific failure with a single clause.

Exception Hierarchy:
    KdbxError (base)
    ├── FormatError
    │   ├── InvalidSignatureError
    │   ├── UnsupportedVersionError
    │   ├── CorruptedDataError
    │   ├── IncompleteInputError
    │   └── MalformedHeaderError
    ├── CryptoError
    │   ├── DecryptionError
    │   ├── KdfError
    │   └── UnknownCipherError
    └── CredentialError
        ├── KeyVerificationError
        ├── InvalidKeyFileError
        └── MissingCredentialsError

Note that an unrecognized signature or an unsupported version is reported
by the format sniffer as a verdict, not an exception. InvalidSignatureError
and UnsupportedVersionError are only raised by the convenience reader,
which has no way to continue past such a verdict.

Security Note:
    Exception messages never include key material, seeds or plaintext.
"""

from __future__ import annotations


class KdbxError(Exception):
    """Base exception for all kdbxcore errors."""


# --- Format Errors ---


class FormatError(KdbxError):
    """Error in KDBX file format or structure."""


class InvalidSignatureError(FormatError):
    """The file doesn't start with a recognized KDBX signature."""


class UnsupportedVersionError(FormatError):
    """The file uses a schema generation this library can't read."""

    def __init__(self, version_major: int | None, version_minor: int | None) -> None:
        self.version_major = version_major
        self.version_minor = version_minor
        if version_major is None:
            super().__init__("Unsupported KDBX version")
        else:
            super().__init__(
                f"Unsupported KDBX version: {version_major}.{version_minor}"
            )


class CorruptedDataError(FormatError):
    """Database file is corrupted.

    The structure was readable but its content is inconsistent, for
    example invalid block padding after a successful key check.
    """


class IncompleteInputError(FormatError):
    """The stream ended before a fixed-size or declared-length read completed.

    Retrying can't help: the missing bytes have to come from the caller.
    """

    def __init__(self, expected: int, actual: int, offset: int) -> None:
        self.expected = expected
        self.actual = actual
        self.offset = offset
        super().__init__(
            f"Unexpected end of input at offset {offset}: "
            f"needed {expected} bytes, got {actual}"
        )


class MalformedHeaderError(FormatError):
    """The header directory is structurally inconsistent.

    Raised when a field's declared length runs past the end of the stream,
    when the terminator is never reached, when a fixed-width field has the
    wrong size, or when a field required for decryption is missing.
    """

    def __init__(self, message: str, field_type: int | None = None) -> None:
        self.field_type = field_type
        super().__init__(message)


# --- Crypto Errors ---


class CryptoError(KdbxError):
    """Error in cryptographic operations."""


class DecryptionError(CryptoError):
    """The body couldn't be run through the block cipher.

    This is about the shape of the ciphertext (empty, or not a whole
    number of blocks). A wrong key is reported by KeyVerificationError.
    """

    def __init__(self, message: str = "Decryption failed") -> None:
        super().__init__(message)


class KdfError(CryptoError):
    """Error in key derivation parameters or computation."""


class UnknownCipherError(CryptoError):
    """The header names a cipher this library doesn't implement."""

    def __init__(self, cipher_uuid: bytes) -> None:
        self.cipher_uuid = cipher_uuid
        super().__init__(f"Unknown cipher: {cipher_uuid.hex()}")


# --- Credential Errors ---


class CredentialError(KdbxError):
    """Error with database credentials.

    Messages are kept generic to avoid disclosing which credential
    component is incorrect.
    """


class KeyVerificationError(CredentialError):
    """The decrypted body doesn't start with the header's stream start bytes.

    The supplied key material is wrong (typically a wrong password or
    keyfile). Nothing after the marker should be trusted or interpreted.
    """

    def __init__(
        self, message: str = "Key verification failed - wrong credentials"
    ) -> None:
        super().__init__(message)


class InvalidKeyFileError(CredentialError):
    """The keyfile is malformed or failed hash verification."""

    def __init__(self, message: str = "Invalid keyfile") -> None:
        super().__init__(message)


class MissingCredentialsError(CredentialError):
    """Neither a password nor a keyfile was provided."""

    def __init__(self) -> None:
        super().__init__("At least one credential (password or keyfile) is required")
