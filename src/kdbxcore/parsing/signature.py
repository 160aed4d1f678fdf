"""KDBX file signature and version sniffing.

Every KeePass database starts with the same 4-byte base signature. The
next 4 bytes select the generation family:

- ``65 FB 4B B5``: KeePass 1.x (KDB), which has no header directory
- ``66 FB 4B B5``: pre-release KeePass 2.x, never given a stable layout
- ``67 FB 4B B5``: KeePass 2.x (KDBX), followed by a u16 minor and a
  u16 major schema version, both little-endian

Only the last family carries a header directory. Classification reads no
further than it needs to reach a verdict, so the cursor is left at the
start of the header directory exactly when the verdict is parseable.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import Enum

from .stream import ByteReader

logger = logging.getLogger(__name__)

KDBX_MAGIC = bytes.fromhex("03d9a29a")
KEEPASS1X_SIGNATURE = bytes.fromhex("65fb4bb5")
PRE_RELEASE_SIGNATURE = bytes.fromhex("66fb4bb5")
KDBX_SIGNATURE = bytes.fromhex("67fb4bb5")


class FileFormat(Enum):
    """Support verdict for a sniffed file."""

    KEEPASS_1X = "keepass_1x"
    OLD_VERSION = "old_version"
    NEW_VERSION = "new_version"
    PARTIAL_SUPPORT = "partial_support"
    SUPPORTED = "supported"
    NOT_SUPPORTED = "not_supported"

    @property
    def parseable(self) -> bool:
        """Whether the header directory may be parsed for this verdict."""
        return self in (FileFormat.SUPPORTED, FileFormat.PARTIAL_SUPPORT)


@dataclass(frozen=True, slots=True)
class FormatSupport:
    """Schema versions this implementation understands.

    Attributes:
        min_major: Lowest major version with a readable header directory
        max_major: Highest major version known at all
        max_minor: Highest fully understood minor version, as
            (major, minor) pairs. A mapping is accepted and stored as
            sorted pairs so the table stays immutable.
    """

    min_major: int = 3
    max_major: int = 3
    max_minor: tuple[tuple[int, int], ...] = ((3, 1),)

    def __post_init__(self) -> None:
        """Normalize and validate the support table."""
        object.__setattr__(
            self, "max_minor", tuple(sorted(dict(self.max_minor).items()))
        )
        if self.min_major > self.max_major:
            raise ValueError("min_major must not exceed max_major")
        missing = [
            major
            for major in range(self.min_major, self.max_major + 1)
            if self.minor_limit(major) is None
        ]
        if missing:
            raise ValueError(f"No minor version limit for major versions {missing}")

    def minor_limit(self, major: int) -> int | None:
        """Highest fully understood minor version for a major version."""
        for known_major, minor in self.max_minor:
            if known_major == major:
                return minor
        return None

    def evaluate(self, major: int, minor: int) -> FileFormat:
        """Classify a schema version against this table."""
        if major < self.min_major:
            return FileFormat.OLD_VERSION
        if major > self.max_major:
            return FileFormat.NEW_VERSION
        limit = self.minor_limit(major)
        if limit is not None and minor > limit:
            return FileFormat.PARTIAL_SUPPORT
        return FileFormat.SUPPORTED


DEFAULT_SUPPORT = FormatSupport()


@dataclass(frozen=True, slots=True)
class FileSignature:
    """Result of sniffing a file's leading bytes.

    Attributes:
        format: Support verdict
        offset: Stream position after classification
        version_major: Schema major version, if version bytes were read
        version_minor: Schema minor version, if version bytes were read
    """

    format: FileFormat
    offset: int
    version_major: int | None = None
    version_minor: int | None = None

    @property
    def version(self) -> tuple[int, int] | None:
        """(major, minor) schema version, if known."""
        if self.version_major is None or self.version_minor is None:
            return None
        return (self.version_major, self.version_minor)


def classify(
    reader: ByteReader, support: FormatSupport = DEFAULT_SUPPORT
) -> FileSignature:
    """Determine the generation and support level of a KDBX stream.

    Args:
        reader: Reader positioned at the start of the file
        support: Version support table to compare against

    Returns:
        FileSignature with the verdict and the offset after classification

    Raises:
        IncompleteInputError: If the stream is too short to reach a verdict
    """
    if reader.read(4) != KDBX_MAGIC:
        logger.debug("Base signature mismatch")
        return FileSignature(FileFormat.NOT_SUPPORTED, reader.position)

    signature = reader.read(4)
    if signature == KEEPASS1X_SIGNATURE:
        return FileSignature(FileFormat.KEEPASS_1X, reader.position)
    if signature == PRE_RELEASE_SIGNATURE:
        return FileSignature(FileFormat.OLD_VERSION, reader.position)
    if signature != KDBX_SIGNATURE:
        logger.debug("Unknown generation signature: %s", signature.hex())
        return FileSignature(FileFormat.NOT_SUPPORTED, reader.position)

    minor, major = struct.unpack("<HH", reader.read(4))
    verdict = support.evaluate(major, minor)
    logger.debug("KDBX schema %d.%d: %s", major, minor, verdict.value)
    return FileSignature(verdict, reader.position, major, minor)
