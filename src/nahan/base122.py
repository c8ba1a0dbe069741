"""NH07: base-122 binary-to-text encoding, the text form of the image carrier."""

from __future__ import annotations

from .provider import AlgorithmMetadata, DecodeMode, Platform, StegoProvider
from .utils import AlgorithmId, StegoDecodeError

# Values that would break HTML/JSON transport are written as two characters
ILLEGAL: frozenset[int] = frozenset(
    [*range(0x00, 0x20), 0x22, 0x26, 0x3C, 0x3E, 0x5C, 0x7F]
)
ESCAPE = 0xC2
ESCAPE_OFFSET = 0x80
GROUP_BITS = 7
MAX_CAPACITY = 10 * 1024 * 1024  # 10 MiB


def encode_base122(data: bytes) -> str:
    """Encode *data* as base-122 text.

    The input is read as a stream of 7-bit groups (MSB first). A trailing
    partial group is left-aligned and zero-filled.

    Args:
        data: Arbitrary bytes.

    Returns:
        Text whose characters are all below U+0100.
    """
    out: list[str] = []
    acc = 0
    acc_bits = 0
    for byte in data:
        acc = (acc << 8) | byte
        acc_bits += 8
        while acc_bits >= GROUP_BITS:
            acc_bits -= GROUP_BITS
            _emit((acc >> acc_bits) & 0x7F, out)
        acc &= (1 << acc_bits) - 1
    if acc_bits:
        _emit((acc << (GROUP_BITS - acc_bits)) & 0x7F, out)
    return "".join(out)


def _emit(value: int, out: list[str]) -> None:
    if value in ILLEGAL:
        out.append(chr(ESCAPE))
        out.append(chr(ESCAPE_OFFSET + value))
    else:
        out.append(chr(value))


def decode_base122(text: str) -> bytes:
    """Decode base-122 *text* back to bytes.

    Raises:
        StegoDecodeError: On characters outside the alphabet, a dangling or
            invalid escape.
    """
    out = bytearray()
    acc = 0
    acc_bits = 0
    i = 0
    while i < len(text):
        code = ord(text[i])
        if code == ESCAPE:
            if i + 1 >= len(text):
                raise StegoDecodeError("Base122 text ends with a dangling escape")
            value = ord(text[i + 1]) - ESCAPE_OFFSET
            if value not in ILLEGAL:
                raise StegoDecodeError(f"Invalid base122 escape at position {i}")
            i += 2
        elif code <= 0x7F and code not in ILLEGAL:
            value = code
            i += 1
        else:
            raise StegoDecodeError(f"Invalid base122 character at position {i}: {text[i]!r}")
        acc = (acc << GROUP_BITS) | value
        acc_bits += GROUP_BITS
        if acc_bits >= 8:
            acc_bits -= 8
            out.append((acc >> acc_bits) & 0xFF)
            acc &= (1 << acc_bits) - 1
    return bytes(out)


class Base122Provider(StegoProvider):
    """Binary-safe text form of a payload, meant for image embedding.

    The image itself is handled by :class:`nahan.image.LsbImageCarrier`;
    this provider only maps bytes to base-122 text and back.
    """

    algorithm_id = AlgorithmId.NH07
    metadata = AlgorithmMetadata(
        id=AlgorithmId.NH07,
        name="Base122",
        description="Binary-to-text encoding for image steganography",
        stealth_level=5,
        platform=Platform.UNIVERSAL,
        requires_cover_text=False,
        supports_auto_detect=False,
    )

    def capacity(self, cover_text: str | None = None) -> int:
        return MAX_CAPACITY

    def _embed(self, frame: bytes, cover_text: str | None) -> str:
        return encode_base122(frame)

    def _extract(self, stego_text: str, mode: DecodeMode) -> bytes:
        return decode_base122(stego_text)
