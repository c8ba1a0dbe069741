"""Utility functions: exceptions, magic header, length prefix, bit manipulation helpers."""

from __future__ import annotations

import struct
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Library-specific exceptions
# ---------------------------------------------------------------------------


class StegoError(Exception):
    """Base exception for nahan."""


class StegoEncodeError(StegoError):
    """Raised when encoding fails."""


class CapacityExceededError(StegoEncodeError):
    """Raised when a framed payload does not fit the chosen carrier."""

    def __init__(self, needed: int, available: int, algorithm: str = "") -> None:
        self.needed = needed
        self.available = available
        self.algorithm = algorithm
        prefix = f"{algorithm}: " if algorithm else ""
        super().__init__(
            f"{prefix}payload too large for carrier "
            f"(needs {needed} bytes, capacity {available} bytes)"
        )


class StegoDecodeError(StegoError):
    """Raised when decoding fails."""


class AlgorithmMismatchError(StegoDecodeError):
    """Raised when the magic header names a different algorithm than the decoder."""

    def __init__(self, found: str, expected: str) -> None:
        self.found = found
        self.expected = expected
        super().__init__(
            f"Algorithm mismatch: data encoded with {found} cannot be decoded by {expected}"
        )


class CorruptedCarrierError(StegoDecodeError):
    """Raised when carrier characters were lost or altered in transit."""


class DataTooShortError(StegoDecodeError):
    """Raised when there are not enough bytes to hold a length prefix."""


class DataIncompleteError(StegoDecodeError):
    """Raised when a length prefix promises more bytes than were recovered."""


class NoCarrierError(StegoDecodeError):
    """Raised when a text carries none of a codec's carrier characters."""


class UnregisteredAlgorithmError(StegoError, KeyError):
    """Raised when looking up an algorithm that was never registered."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class StegoCryptoError(StegoError):
    """Raised when key sealing or envelope cryptography fails."""


class UnsupportedEnvelopeVersionError(StegoCryptoError):
    """Raised when an envelope's version byte is not recognised."""

    def __init__(self, version: int | None) -> None:
        self.version = version
        if version is None:
            msg = "Empty envelope has no version byte"
        else:
            msg = f"Unsupported envelope version 0x{version:02x}"
        super().__init__(msg)


class SenderUnknownError(StegoError):
    """Raised when a message is valid but no contact matches its sender.

    Attributes:
        envelope: The opened envelope, so a caller can ask the user to pick
            the sender manually.
    """

    def __init__(self, envelope: Any) -> None:
        self.envelope = envelope
        super().__init__("Sender unknown: no contact matches the message key")


class DuplicateMessageError(StegoError):
    """Raised when a message was already imported."""

    def __init__(self, record: Any) -> None:
        self.record = record
        super().__init__("Message already imported")


class ContactIntroDetected(StegoError):
    """Raised when the input is a single contact introduction."""

    def __init__(self, contact: Any) -> None:
        self.contact = contact
        super().__init__(f"Contact introduction detected for {contact.display_name!r}")


class MultiContactIntroDetected(StegoError):
    """Raised when the input introduces several contacts at once."""

    def __init__(self, contacts: Any) -> None:
        self.contacts = tuple(contacts)
        super().__init__(f"Multi-contact introduction detected ({len(self.contacts)} contacts)")


class ConfigError(StegoError):
    """Raised when a configuration value is invalid."""


# ---------------------------------------------------------------------------
# Magic header
# ---------------------------------------------------------------------------
# "NH0" + one ASCII digit naming the algorithm (1-7)
# Total: 4 bytes
MAGIC_PREFIX = b"NH0"
MAGIC_SIZE = 4


class AlgorithmId(str, Enum):
    """Identifier of one of the seven embedding algorithms."""

    NH01 = "NH01"
    NH02 = "NH02"
    NH03 = "NH03"
    NH04 = "NH04"
    NH05 = "NH05"
    NH06 = "NH06"
    NH07 = "NH07"

    @property
    def digit(self) -> int:
        return int(self.value[3])

    @property
    def tag(self) -> bytes:
        return self.value.encode("ascii")

    @classmethod
    def from_digit(cls, digit: int) -> AlgorithmId | None:
        for member in cls:
            if member.digit == digit:
                return member
        return None

    def __str__(self) -> str:
        return self.value


def embed_header(algorithm_id: AlgorithmId, payload: bytes) -> bytes:
    """Prepend the 4-byte magic header naming *algorithm_id* to *payload*."""
    return AlgorithmId(algorithm_id).tag + payload


def extract_header(data: bytes) -> tuple[AlgorithmId | None, bytes]:
    """Split a magic-header-tagged payload into ``(algorithm_id, payload)``.

    Data that does not start with a recognised header is returned unchanged
    with ``None`` as the identifier, so header-less legacy payloads still
    decode.

    Args:
        data: Bytes that may start with a magic header.

    Returns:
        The identifier (or ``None``) and the remaining payload.
    """
    if len(data) < MAGIC_SIZE or data[:3] != MAGIC_PREFIX:
        return None, data
    digit = data[3] - 0x30
    algorithm_id = AlgorithmId.from_digit(digit)
    if algorithm_id is None:
        return None, data
    return algorithm_id, data[MAGIC_SIZE:]


# ---------------------------------------------------------------------------
# Length prefix
# ---------------------------------------------------------------------------
# 4-byte payload length (big-endian uint32) ahead of the tagged payload
LENGTH_FORMAT = ">I"
LENGTH_SIZE = struct.calcsize(LENGTH_FORMAT)  # 4 bytes


def pack_length(length: int) -> bytes:
    """Pack *length* as a 4-byte big-endian prefix.

    Raises:
        StegoEncodeError: If length is negative or too large.
    """
    if length < 0:
        raise StegoEncodeError("Payload length cannot be negative")
    if length > 0xFFFFFFFF:
        raise StegoEncodeError("Payload too large (max 4 GiB)")
    return struct.pack(LENGTH_FORMAT, length)


def frame_with_length(data: bytes) -> bytes:
    """Return ``length(4) || data``."""
    return pack_length(len(data)) + data


def unpack_length_prefixed(data: bytes) -> bytes:
    """Strip a 4-byte length prefix and return exactly that many bytes.

    Trailing bytes beyond the announced length are carrier filler and are
    discarded.

    Args:
        data: Recovered bytes, starting with the length prefix.

    Returns:
        The framed content.

    Raises:
        DataTooShortError: If fewer than 4 bytes are available.
        DataIncompleteError: If fewer than ``4 + length`` bytes are available.
    """
    if len(data) < LENGTH_SIZE:
        raise DataTooShortError("Data too short to contain length header")
    (length,) = struct.unpack(LENGTH_FORMAT, data[:LENGTH_SIZE])
    end = LENGTH_SIZE + length
    if len(data) < end:
        raise DataIncompleteError(
            f"Data incomplete based on length header "
            f"(expected {length} bytes, recovered {len(data) - LENGTH_SIZE})"
        )
    return data[LENGTH_SIZE:end]


# ---------------------------------------------------------------------------
# Bit-stream helpers
# ---------------------------------------------------------------------------


def bytes_to_bits(data: bytes) -> list[int]:
    """Convert bytes to a list of bits (MSB first per byte).

    Args:
        data: Input bytes.

    Returns:
        List of 0/1 integers.
    """
    bits: list[int] = []
    for byte in data:
        for i in range(7, -1, -1):
            bits.append((byte >> i) & 1)
    return bits


def bits_to_bytes(bits: list[int]) -> bytes:
    """Convert a list of bits back to bytes (MSB first per byte).

    Pads with zeros on the right if len(bits) is not a multiple of 8.

    Args:
        bits: List of 0/1 integers.

    Returns:
        Reconstructed bytes.
    """
    # Pad to multiple of 8
    padded = bits + [0] * ((8 - len(bits) % 8) % 8)
    result = bytearray()
    for i in range(0, len(padded), 8):
        byte = 0
        for j in range(8):
            byte = (byte << 1) | padded[i + j]
        result.append(byte)
    return bytes(result)


def int_to_bits(value: int, width: int) -> list[int]:
    """Return the *width* low bits of *value*, MSB first."""
    return [(value >> i) & 1 for i in range(width - 1, -1, -1)]


def bits_to_int(bits: list[int]) -> int:
    """Interpret *bits* (MSB first) as an unsigned integer."""
    value = 0
    for bit in bits:
        value = (value << 1) | bit
    return value
