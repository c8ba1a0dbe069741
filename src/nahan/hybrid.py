"""NH06: the NH04 space channel and the NH05 script channel interleaved."""

from __future__ import annotations

from .kashida import decode_script, encode_script, script_capacity_bits, strip_script
from .provider import AlgorithmMetadata, DecodeMode, Platform, StegoProvider
from .script import Language, detect_language
from .utils import (
    AlgorithmId,
    NoCarrierError,
    StegoEncodeError,
    bits_to_bytes,
    bytes_to_bits,
)
from .whitespace import decode_spaces, encode_spaces, space_run_count, strip_spaces


class HybridProvider(StegoProvider):
    """Split the bit stream across two channels.

    Even-indexed bits go into space runs, odd-indexed bits into the script
    channel. Spaces are written first and the script channel on top, which
    leaves the space runs untouched. Both channels must hold their half, so
    capacity is twice the smaller channel.
    """

    algorithm_id = AlgorithmId.NH06
    metadata = AlgorithmMetadata(
        id=AlgorithmId.NH06,
        name="Hybrid",
        description="Combines whitespace and script-specific steganography",
        stealth_level=5,
        platform=Platform.UNIVERSAL,
        requires_cover_text=True,
        supports_auto_detect=True,
    )
    length_prefixed = True

    def encode(self, payload: bytes, cover_text: str | None = None) -> str:
        if cover_text and detect_language(cover_text) is Language.MIXED:
            raise StegoEncodeError("Cannot determine dominant language")
        return super().encode(payload, cover_text)

    def capacity(self, cover_text: str | None = None) -> int:
        if not cover_text:
            return 0
        channel_bits = min(space_run_count(cover_text), script_capacity_bits(cover_text))
        return 2 * channel_bits // 8

    def strip(self, stego_text: str) -> str:
        return strip_script(strip_spaces(stego_text))

    def _embed(self, frame: bytes, cover_text: str | None) -> str:
        bits = bytes_to_bits(frame)
        spaced = encode_spaces(cover_text or "", bits[0::2])
        return encode_script(spaced, bits[1::2])

    def _extract(self, stego_text: str, mode: DecodeMode) -> bytes:
        even = decode_spaces(stego_text)
        odd = decode_script(stego_text)
        if not even or not odd:
            raise NoCarrierError("Hybrid carrier needs both space runs and script positions")
        bits: list[int] = []
        for i in range(min(len(even), len(odd))):
            bits.append(even[i])
            bits.append(odd[i])
        if len(even) > len(odd):
            bits.append(even[len(odd)])
        return bits_to_bytes(bits[: len(bits) - len(bits) % 8])
