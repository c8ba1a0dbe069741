"""NH05: script-specific embedding (Persian kashida or Latin homoglyphs)."""

from __future__ import annotations

from .provider import AlgorithmMetadata, DecodeMode, Platform, StegoProvider
from .script import (
    KASHIDA,
    Language,
    can_substitute,
    detect_language,
    get_homoglyph,
    get_original_char,
    is_homoglyph,
    is_valid_kashida_position,
    kashida_insertion_points,
    substitutable_characters,
)
from .utils import (
    AlgorithmId,
    NoCarrierError,
    StegoDecodeError,
    StegoEncodeError,
    bits_to_bytes,
    bytes_to_bits,
)

# ---------------------------------------------------------------------------
# Script channel (shared with NH06)
# ---------------------------------------------------------------------------


def script_capacity_bits(text: str) -> int:
    """Return how many bits the script channel of *text* can carry."""
    language = detect_language(text)
    if language is Language.FA:
        return kashida_insertion_points(text)
    if language is Language.EN:
        return substitutable_characters(text)
    return 0


def _encode_kashida(text: str, bits: list[int]) -> str:
    if KASHIDA in text:
        raise StegoEncodeError("Cover text already contains kashida characters")
    out: list[str] = []
    pos = 0
    for i, ch in enumerate(text):
        out.append(ch)
        if pos < len(bits) and i + 1 < len(text) and is_valid_kashida_position(ch, text[i + 1]):
            if bits[pos]:
                out.append(KASHIDA)
            pos += 1
    return "".join(out)


def _encode_homoglyphs(text: str, bits: list[int]) -> str:
    if any(is_homoglyph(ch) for ch in text):
        raise StegoEncodeError("Cover text already contains homoglyph characters")
    out: list[str] = []
    pos = 0
    for ch in text:
        if pos < len(bits) and can_substitute(ch):
            out.append(get_homoglyph(ch) if bits[pos] else ch)
            pos += 1
        else:
            out.append(ch)
    return "".join(out)


def encode_script(text: str, bits: list[int]) -> str:
    """Write *bits* into the script channel of *text*.

    Raises:
        StegoEncodeError: If the dominant script cannot be determined, or the
            text already carries the channel's marker characters.
    """
    language = detect_language(text)
    if language is Language.FA:
        return _encode_kashida(text, bits)
    if language is Language.EN:
        return _encode_homoglyphs(text, bits)
    raise StegoEncodeError("Cannot determine dominant language")


def decode_script(text: str) -> list[int]:
    """Read every bit of the script channel of *text*, filler included."""
    language = detect_language(text)
    bits: list[int] = []
    if language is Language.FA:
        i = 0
        while i < len(text) - 1:
            if text[i + 1] == KASHIDA:
                bits.append(1)
                i += 2
                continue
            if is_valid_kashida_position(text[i], text[i + 1]):
                bits.append(0)
            i += 1
    elif language is Language.EN:
        for ch in text:
            if is_homoglyph(ch):
                bits.append(1)
            elif can_substitute(ch):
                bits.append(0)
    else:
        raise StegoDecodeError("Cannot determine dominant language")
    return bits


def strip_script(text: str) -> str:
    """Remove kashidas and map homoglyphs back to Latin."""
    return "".join(get_original_char(ch) for ch in text if ch != KASHIDA)


class ScriptExpertProvider(StegoProvider):
    """Hide bits in the cover's own script.

    Persian text carries a bit at every join between connecting letters (a
    kashida means 1). Latin text carries a bit at every letter with a
    Cyrillic look-alike (the look-alike means 1).
    """

    algorithm_id = AlgorithmId.NH05
    metadata = AlgorithmMetadata(
        id=AlgorithmId.NH05,
        name="Script Expert",
        description="Language-specific steganography (e.g., Persian kashida)",
        stealth_level=4,
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
        return script_capacity_bits(cover_text) // 8

    def strip(self, stego_text: str) -> str:
        return strip_script(stego_text)

    def _embed(self, frame: bytes, cover_text: str | None) -> str:
        return encode_script(cover_text or "", bytes_to_bits(frame))

    def _extract(self, stego_text: str, mode: DecodeMode) -> bytes:
        bits = decode_script(stego_text)
        if not bits:
            raise NoCarrierError("No script positions found")
        return bits_to_bytes(bits[: len(bits) - len(bits) % 8])
