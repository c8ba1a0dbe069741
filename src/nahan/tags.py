"""NH01: Unicode tag characters injected after visible characters."""

from __future__ import annotations

import logging
import struct
import sys
import zlib

from .provider import AlgorithmMetadata, DecodeMode, Platform, StegoProvider
from .utils import (
    LENGTH_SIZE,
    MAGIC_SIZE,
    AlgorithmId,
    CorruptedCarrierError,
    NoCarrierError,
    StegoEncodeError,
    bits_to_bytes,
    bits_to_int,
    bytes_to_bits,
    embed_header,
    frame_with_length,
    int_to_bits,
    unpack_length_prefixed,
)

logger = logging.getLogger(__name__)

# 32-symbol palette: U+E0021 .. U+E0040, one symbol per 5 bits
PALETTE_BASE = 0xE0021
PALETTE_SIZE = 32
SYMBOL_BITS = 5
# Marks the start of the tag stream
SIGNATURE: tuple[int, ...] = (0, 15, 31)
TAGS_PER_CHAR = 2
CRC_SIZE = 4

_TAG_BLOCK = range(0xE0000, 0xE0080)


def _is_tag(char: str) -> bool:
    return ord(char) in _TAG_BLOCK


def has_tag_carrier(text: str) -> bool:
    """Return True if *text* contains any Unicode tag character."""
    return any(_is_tag(ch) for ch in text)


def _symbol(char: str) -> int | None:
    index = ord(char) - PALETTE_BASE
    if 0 <= index < PALETTE_SIZE:
        return index
    return None


def _to_symbols(data: bytes) -> list[int]:
    bits = bytes_to_bits(data)
    bits += [0] * ((SYMBOL_BITS - len(bits) % SYMBOL_BITS) % SYMBOL_BITS)
    return [
        bits_to_int(bits[i : i + SYMBOL_BITS]) for i in range(0, len(bits), SYMBOL_BITS)
    ]


def _from_symbols(symbols: list[int]) -> bytes:
    bits: list[int] = []
    for symbol in symbols:
        bits.extend(int_to_bits(symbol, SYMBOL_BITS))
    # Drop the zero padding of the last symbol
    whole = len(bits) - len(bits) % 8
    return bits_to_bytes(bits[:whole])


class UnicodeTagsProvider(StegoProvider):
    """Hide data in invisible Unicode tag characters.

    Two tags follow every visible character of the cover text; whatever does
    not fit is appended at the end. The frame carries a CRC-32 so damage is
    detected; lenient decoding reports a checksum mismatch as a warning
    instead of failing.
    """

    algorithm_id = AlgorithmId.NH01
    metadata = AlgorithmMetadata(
        id=AlgorithmId.NH01,
        name="Unicode Tags",
        description="Hides data using Unicode Tag characters",
        stealth_level=3,
        platform=Platform.UNIVERSAL,
        requires_cover_text=True,
        supports_auto_detect=True,
    )
    length_prefixed = True

    def capacity(self, cover_text: str | None = None) -> int:
        # Leftover tags are appended, so any non-empty cover is unbounded
        return sys.maxsize if cover_text else 0

    def frame_size(self, payload_length: int) -> int:
        return LENGTH_SIZE + MAGIC_SIZE + payload_length + CRC_SIZE

    def tag_count(self, payload_length: int) -> int:
        """Return the number of tags written for a *payload_length*-byte payload."""
        bits = self.frame_size(payload_length) * 8
        return len(SIGNATURE) + -(-bits // SYMBOL_BITS)

    def cover_chars_needed(self, payload_length: int) -> int:
        """Return the visible cover characters needed to hold every tag inline."""
        return -(-self.tag_count(payload_length) // TAGS_PER_CHAR)

    def strip(self, stego_text: str) -> str:
        return "".join(ch for ch in stego_text if not _is_tag(ch))

    def _frame(self, payload: bytes) -> bytes:
        tagged = embed_header(self.algorithm_id, payload)
        crc = struct.pack(">I", zlib.crc32(tagged) & 0xFFFFFFFF)
        return frame_with_length(tagged + crc)

    def _unframe(self, data: bytes, mode: DecodeMode) -> bytes:
        body = unpack_length_prefixed(data)
        if len(body) < CRC_SIZE:
            raise CorruptedCarrierError("Message too short - missing checksum")
        tagged, crc = body[:-CRC_SIZE], body[-CRC_SIZE:]
        (expected,) = struct.unpack(">I", crc)
        if zlib.crc32(tagged) & 0xFFFFFFFF != expected:
            if mode is DecodeMode.STRICT:
                raise CorruptedCarrierError("Data corrupted during transmission")
            logger.warning("NH01 checksum mismatch; returning data as recovered")
        return tagged

    def _embed(self, frame: bytes, cover_text: str | None) -> str:
        cover_text = cover_text or ""
        if has_tag_carrier(cover_text):
            raise StegoEncodeError("Cover text already contains Unicode tag characters")

        tags = [chr(PALETTE_BASE + s) for s in (*SIGNATURE, *_to_symbols(frame))]
        out: list[str] = []
        pos = 0
        for ch in cover_text:
            out.append(ch)
            if pos < len(tags) and not ch.isspace():
                out.extend(tags[pos : pos + TAGS_PER_CHAR])
                pos += TAGS_PER_CHAR
        if pos < len(tags):
            logger.warning(
                "Cover text too short for NH01 tags; appending %d tags at the end",
                len(tags) - pos,
            )
            out.extend(tags[pos:])
        return "".join(out)

    def _extract(self, stego_text: str, mode: DecodeMode) -> bytes:
        symbols = [s for s in map(_symbol, stego_text) if s is not None]
        if not symbols:
            raise NoCarrierError("No valid camouflage data found")
        if len(symbols) < len(SIGNATURE):
            raise CorruptedCarrierError("Message too short - missing prefix signature")
        if tuple(symbols[: len(SIGNATURE)]) != SIGNATURE:
            raise CorruptedCarrierError("Invalid stealth message: prefix signature not found")
        return _from_symbols(symbols[len(SIGNATURE) :])
