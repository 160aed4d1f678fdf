"""KDBX 3.x header directory parsing.

After the signature and version, a KDBX 3.x file carries a sequence of
typed fields:

    1 byte   field type
    2 bytes  payload length (little-endian)
    N bytes  payload

The sequence ends with an END field. The header hash is SHA-256 over
exactly the bytes of this sequence, END field included. It is computed
while reading, so no copy of the raw directory is kept.
"""

from __future__ import annotations

import hashlib
import logging
import struct
from dataclasses import dataclass
from enum import IntEnum

from kdbxcore.exceptions import IncompleteInputError, MalformedHeaderError
from kdbxcore.security.crypto import Cipher

from .stream import ByteReader

logger = logging.getLogger(__name__)

HEADER_HASH_SIZE = 32


class HeaderFieldType(IntEnum):
    """Outer header field type tags."""

    END = 0
    COMMENT = 1
    CIPHER_ID = 2
    COMPRESSION_FLAGS = 3
    MASTER_SEED = 4
    TRANSFORM_SEED = 5
    TRANSFORM_ROUNDS = 6
    ENCRYPTION_IV = 7
    PROTECTED_STREAM_KEY = 8
    STREAM_START_BYTES = 9
    INNER_RANDOM_STREAM_ID = 10


class CompressionType(IntEnum):
    """Body compression algorithm."""

    NONE = 0
    GZIP = 1


# Fields decoded as little-endian integers and their required widths
_INTEGER_FIELDS = {
    HeaderFieldType.COMPRESSION_FLAGS: "<I",
    HeaderFieldType.TRANSFORM_ROUNDS: "<Q",
    HeaderFieldType.INNER_RANDOM_STREAM_ID: "<I",
}

# Fields decryption can't proceed without
_REQUIRED_FIELDS = {
    HeaderFieldType.MASTER_SEED: "master_seed",
    HeaderFieldType.ENCRYPTION_IV: "encryption_iv",
    HeaderFieldType.STREAM_START_BYTES: "stream_start_bytes",
}


@dataclass(slots=True)
class KdbxHeader:
    """Parsed KDBX 3.x outer header.

    Attributes:
        master_seed: Per-file salt combined with the master key
        encryption_iv: Body cipher IV
        stream_start_bytes: Known plaintext expected at the start of the body
        cipher_id: UUID of the body cipher
        compression: Body compression algorithm
        transform_seed: AES-KDF salt
        transform_rounds: AES-KDF iteration count
        protected_stream_key: Key for protected values in the inner payload
        inner_random_stream_id: Algorithm for protected values
        comment: Free-form comment field, rarely present
        hash: SHA-256 of the raw header directory
    """

    master_seed: bytes
    encryption_iv: bytes
    stream_start_bytes: bytes
    cipher_id: bytes = Cipher.AES256_CBC.value
    compression: CompressionType = CompressionType.GZIP
    transform_seed: bytes = b""
    transform_rounds: int = 0
    protected_stream_key: bytes = b""
    inner_random_stream_id: int = 0
    comment: bytes = b""
    hash: bytes = b""

    @property
    def use_gzip(self) -> bool:
        """Whether the body is gzip-compressed after decryption."""
        return self.compression == CompressionType.GZIP

    @property
    def cipher(self) -> Cipher:
        """Body cipher named by cipher_id.

        Raises:
            UnknownCipherError: If the cipher isn't implemented
        """
        return Cipher.from_uuid(self.cipher_id)

    @classmethod
    def parse(cls, reader: ByteReader) -> KdbxHeader:
        """Parse the header directory at the reader's position.

        Only valid once the sniffer has returned a parseable verdict. On
        success the reader is left on the first ciphertext byte.

        Args:
            reader: Reader positioned at the first header field

        Returns:
            Parsed header with the directory hash filled in

        Raises:
            MalformedHeaderError: If the directory is truncated, a fixed-width
                field has the wrong size, or a required field is missing
        """
        digest = hashlib.sha256()
        values: dict[HeaderFieldType, bytes | int] = {}
        start = reader.position

        reader.observe(digest)
        try:
            while True:
                field_type, data = _read_field(reader)
                if field_type == HeaderFieldType.END:
                    break
                try:
                    known = HeaderFieldType(field_type)
                except ValueError:
                    logger.debug(
                        "Skipping unknown header field %d (%d bytes)",
                        field_type,
                        len(data),
                    )
                    continue
                values[known] = _decode_field(known, data)
        finally:
            reader.observe(None)

        logger.debug(
            "Parsed header directory: %d bytes, %d known fields",
            reader.position - start,
            len(values),
        )

        for field_type, name in _REQUIRED_FIELDS.items():
            if not values.get(field_type):
                raise MalformedHeaderError(
                    f"Missing required header field: {name}", field_type
                )

        kwargs: dict[str, object] = {
            "master_seed": values[HeaderFieldType.MASTER_SEED],
            "encryption_iv": values[HeaderFieldType.ENCRYPTION_IV],
            "stream_start_bytes": values[HeaderFieldType.STREAM_START_BYTES],
            "hash": digest.digest(),
        }
        optional = {
            HeaderFieldType.CIPHER_ID: "cipher_id",
            HeaderFieldType.TRANSFORM_SEED: "transform_seed",
            HeaderFieldType.TRANSFORM_ROUNDS: "transform_rounds",
            HeaderFieldType.PROTECTED_STREAM_KEY: "protected_stream_key",
            HeaderFieldType.INNER_RANDOM_STREAM_ID: "inner_random_stream_id",
            HeaderFieldType.COMMENT: "comment",
        }
        for field_type, name in optional.items():
            if field_type in values:
                kwargs[name] = values[field_type]
        if HeaderFieldType.COMPRESSION_FLAGS in values:
            kwargs["compression"] = (
                CompressionType.GZIP
                if values[HeaderFieldType.COMPRESSION_FLAGS] == CompressionType.GZIP
                else CompressionType.NONE
            )

        return cls(**kwargs)  # type: ignore[arg-type]

    def to_bytes(self) -> bytes:
        """Serialize to header directory bytes, END field included.

        Empty byte fields are omitted. The output hashes to the value
        parse() would report for it.
        """
        parts = []

        def add_field(field_type: int, data: bytes) -> None:
            parts.append(struct.pack("<BH", field_type, len(data)))
            parts.append(data)

        if self.comment:
            add_field(HeaderFieldType.COMMENT, self.comment)
        add_field(HeaderFieldType.CIPHER_ID, self.cipher_id)
        add_field(
            HeaderFieldType.COMPRESSION_FLAGS, struct.pack("<I", self.compression)
        )
        add_field(HeaderFieldType.MASTER_SEED, self.master_seed)
        if self.transform_seed:
            add_field(HeaderFieldType.TRANSFORM_SEED, self.transform_seed)
        add_field(
            HeaderFieldType.TRANSFORM_ROUNDS, struct.pack("<Q", self.transform_rounds)
        )
        add_field(HeaderFieldType.ENCRYPTION_IV, self.encryption_iv)
        if self.protected_stream_key:
            add_field(HeaderFieldType.PROTECTED_STREAM_KEY, self.protected_stream_key)
        add_field(HeaderFieldType.STREAM_START_BYTES, self.stream_start_bytes)
        add_field(
            HeaderFieldType.INNER_RANDOM_STREAM_ID,
            struct.pack("<I", self.inner_random_stream_id),
        )
        # KeePass writes CR LF CR LF as the END payload
        add_field(HeaderFieldType.END, b"\r\n\r\n")

        return b"".join(parts)


def _read_field(reader: ByteReader) -> tuple[int, bytes]:
    """Read one type-length-value field."""
    offset = reader.position
    try:
        field_type, length = struct.unpack("<BH", reader.read(3))
    except IncompleteInputError as e:
        raise MalformedHeaderError(
            f"Header directory ended at offset {offset} without an END field"
        ) from e
    try:
        data = reader.read(length)
    except IncompleteInputError as e:
        raise MalformedHeaderError(
            f"Header field {field_type} at offset {offset} declares {length} "
            f"bytes but only {e.actual} remain",
            field_type,
        ) from e
    return field_type, data


def _decode_field(field_type: HeaderFieldType, data: bytes) -> bytes | int:
    fmt = _INTEGER_FIELDS.get(field_type)
    if fmt is None:
        return data
    if len(data) != struct.calcsize(fmt):
        raise MalformedHeaderError(
            f"Header field {field_type.name} must be {struct.calcsize(fmt)} "
            f"bytes, got {len(data)}",
            field_type,
        )
    return struct.unpack(fmt, data)[0]


def parse_headers(reader: ByteReader) -> KdbxHeader:
    """Parse the header directory at the reader's position.

    See KdbxHeader.parse.
    """
    return KdbxHeader.parse(reader)
