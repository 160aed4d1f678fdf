"""KDBX 3.x header reading and body decryption.

This module composes the three stages of opening a KDBX 3.x file:

1. Sniff the signature and schema version (signature.classify)
2. Parse the header directory, if the verdict allows it (KdbxHeader.parse)
3. Decrypt the body with SHA256(master_seed || master_key) in CBC mode

KDBX 3.x structure:
1. Base signature, generation signature, schema version
2. Header directory (type-length-value fields, END terminated)
3. AES-256-CBC ciphertext to end of file
   - Stream start bytes (known plaintext, copied from the header)
   - Hashed block stream, optionally gzip-compressed (not handled here)

The stream start bytes are the only check on the key. It is a
known-plaintext comparison, not a MAC: it tells a wrong key from a right
one but says nothing about whether the rest of the body was tampered with.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import BinaryIO

from kdbxcore.exceptions import (
    InvalidSignatureError,
    KeyVerificationError,
    UnsupportedVersionError,
)
from kdbxcore.security import (
    SecureBytes,
    aes_cbc_decrypt,
    constant_time_compare,
    derive_cipher_key,
    derive_composite_key,
    remove_pkcs7_padding,
    transform_key,
)

from .header import KdbxHeader
from .signature import DEFAULT_SUPPORT, FileFormat, FileSignature, FormatSupport, classify
from .stream import ByteReader

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HeaderReadResult:
    """Verdict of a file plus its header, when the verdict allows one.

    The header is present if and only if the verdict is SUPPORTED or
    PARTIAL_SUPPORT; construction rejects any other combination.
    """

    signature: FileSignature
    header: KdbxHeader | None = None

    def __post_init__(self) -> None:
        """Check that verdict and header agree."""
        if self.signature.format.parseable != (self.header is not None):
            raise ValueError(
                f"Header presence doesn't match verdict {self.signature.format.value}"
            )

    @property
    def format(self) -> FileFormat:
        return self.signature.format


@dataclass(frozen=True, slots=True)
class DecryptedBody:
    """Decrypted KDBX 3.x body.

    Attributes:
        data: Raw CBC output, block padding still attached
        body_offset: Stream offset where the ciphertext began
    """

    data: bytes
    body_offset: int

    def starts_with(self, stream_start_bytes: bytes) -> bool:
        """Check the known-plaintext marker in constant time."""
        if not stream_start_bytes:
            return False
        return constant_time_compare(
            self.data[: len(stream_start_bytes)], stream_start_bytes
        )

    def verify(self, stream_start_bytes: bytes) -> None:
        """Raise KeyVerificationError unless the marker matches."""
        if not self.starts_with(stream_start_bytes):
            raise KeyVerificationError()

    def payload(self, stream_start_bytes: bytes) -> bytes:
        """Return the body after the marker, with padding removed.

        Raises:
            KeyVerificationError: If the marker doesn't match
            CorruptedDataError: If the block padding is invalid
        """
        self.verify(stream_start_bytes)
        return remove_pkcs7_padding(self.data)[len(stream_start_bytes) :]


@dataclass(slots=True)
class DecryptedPayload:
    """Result of reading a KDBX 3.x file end to end."""

    signature: FileSignature
    header: KdbxHeader
    payload: bytes


def read_headers(
    reader: ByteReader, support: FormatSupport = DEFAULT_SUPPORT
) -> HeaderReadResult:
    """Sniff a stream and parse its header directory if supported.

    Args:
        reader: Reader positioned at the start of the file
        support: Version support table

    Returns:
        HeaderReadResult; header is None unless the verdict is parseable

    Raises:
        IncompleteInputError: If the stream is too short to classify
        MalformedHeaderError: If the header directory is inconsistent
    """
    signature = classify(reader, support)
    if not signature.format.parseable:
        return HeaderReadResult(signature)
    return HeaderReadResult(signature, KdbxHeader.parse(reader))


def decrypt_body(
    reader: ByteReader,
    master_seed: bytes,
    master_key: bytes,
    encryption_iv: bytes,
) -> DecryptedBody:
    """Decrypt everything from the reader's position to end of stream.

    The result is not checked against the stream start bytes; callers
    must do that (DecryptedBody.verify) before interpreting the body.

    Args:
        reader: Reader positioned just after the header directory
        master_seed: Master seed from the header
        master_key: Transformed key from the key derivation step
        encryption_iv: Encryption IV from the header

    Returns:
        DecryptedBody with the raw plaintext

    Raises:
        DecryptionError: If the ciphertext or IV has an unusable length
    """
    body_offset = reader.position
    ciphertext = reader.read_to_end()
    cipher_key = SecureBytes(derive_cipher_key(master_seed, master_key))
    try:
        data = aes_cbc_decrypt(cipher_key.data, encryption_iv, ciphertext)
    finally:
        cipher_key.zeroize()
    logger.debug(
        "Decrypted %d body bytes starting at offset %d", len(data), body_offset
    )
    return DecryptedBody(data=data, body_offset=body_offset)


class Kdbx3Reader:
    """Reader for KDBX 3.x database files."""

    def __init__(
        self, stream: BinaryIO, support: FormatSupport = DEFAULT_SUPPORT
    ) -> None:
        """Initialize reader.

        Args:
            stream: Binary stream positioned at the start of the file
            support: Version support table
        """
        self._reader = ByteReader(stream)
        self._support = support

    def decrypt(
        self,
        password: str | None = None,
        keyfile_data: bytes | None = None,
        master_key: bytes | None = None,
    ) -> DecryptedPayload:
        """Decrypt the file and verify the key.

        Either credentials or a pre-derived master key must be supplied.
        With credentials, the master key is derived with the AES-KDF
        parameters from the header.

        Returns:
            DecryptedPayload with the body after the stream start bytes

        Raises:
            InvalidSignatureError: If the file isn't a KDBX file
            UnsupportedVersionError: If the schema generation isn't readable
            MalformedHeaderError: If the header directory is inconsistent
            UnknownCipherError: If the body cipher isn't AES-256
            KeyVerificationError: If the key material is wrong
        """
        result = read_headers(self._reader, self._support)
        signature = result.signature

        if signature.format == FileFormat.NOT_SUPPORTED:
            raise InvalidSignatureError("Not a KDBX file")
        if result.header is None:
            raise UnsupportedVersionError(
                signature.version_major, signature.version_minor
            )
        if signature.format == FileFormat.PARTIAL_SUPPORT:
            logger.warning(
                "KDBX schema %d.%d is newer than fully supported; "
                "unfamiliar header fields were skipped",
                signature.version_major,
                signature.version_minor,
            )

        header = result.header
        # Reject unknown ciphers before spending time on key derivation
        cipher = header.cipher
        logger.debug("Body cipher: %s", cipher.display_name)

        derived: SecureBytes | None = None
        if master_key is None:
            composite = derive_composite_key(password=password, keyfile_data=keyfile_data)
            try:
                derived = transform_key(header, composite)
            finally:
                composite.zeroize()
            master_key = derived.data

        try:
            body = decrypt_body(
                self._reader, header.master_seed, master_key, header.encryption_iv
            )
        finally:
            if derived is not None:
                derived.zeroize()

        return DecryptedPayload(
            signature=signature,
            header=header,
            payload=body.payload(header.stream_start_bytes),
        )


def read_kdbx3(
    data: bytes,
    password: str | None = None,
    keyfile_data: bytes | None = None,
    master_key: bytes | None = None,
) -> DecryptedPayload:
    """Convenience function to read a KDBX 3.x file.

    Args:
        data: Complete file contents
        password: Optional password
        keyfile_data: Optional keyfile contents
        master_key: Pre-derived master key, skips key derivation

    Returns:
        DecryptedPayload with header and verified body
    """
    reader = Kdbx3Reader(io.BytesIO(data))
    return reader.decrypt(
        password=password, keyfile_data=keyfile_data, master_key=master_key
    )
