"""NH04: one bit per space run (single space = 0, double space = 1)."""

from __future__ import annotations

import re

from .provider import AlgorithmMetadata, DecodeMode, Platform, StegoProvider
from .utils import AlgorithmId, NoCarrierError, bits_to_bytes, bytes_to_bits

_SPACE_RUN = re.compile(r" +")
_SPACE_SPLIT = re.compile(r"( +)")
_DOUBLE_SPACE = re.compile(r"(?<! )  (?! )")


# ---------------------------------------------------------------------------
# Space channel (shared with NH06)
# ---------------------------------------------------------------------------


def space_run_count(text: str) -> int:
    """Count runs of U+0020 spaces in *text*."""
    return len(_SPACE_RUN.findall(text))


def encode_spaces(text: str, bits: list[int]) -> str:
    """Rewrite the first ``len(bits)`` space runs of *text* to carry *bits*.

    Runs past the last bit are left as they are.
    """
    out: list[str] = []
    pos = 0
    for part in _SPACE_SPLIT.split(text):
        if part.startswith(" ") and pos < len(bits):
            out.append("  " if bits[pos] else " ")
            pos += 1
        else:
            out.append(part)
    return "".join(out)


def decode_spaces(text: str) -> list[int]:
    """Read one bit from every space run of *text*."""
    return [0 if len(m.group()) == 1 else 1 for m in _SPACE_RUN.finditer(text)]


def strip_spaces(text: str) -> str:
    """Collapse the doubled spaces written by :func:`encode_spaces`."""
    return _DOUBLE_SPACE.sub(" ", text)


class WhitespaceProvider(StegoProvider):
    """Hide one bit in every space run of the cover text.

    Carrier fidelity holds for covers whose words are separated by single
    spaces: :meth:`strip` collapses every doubled space.
    """

    algorithm_id = AlgorithmId.NH04
    metadata = AlgorithmMetadata(
        id=AlgorithmId.NH04,
        name="Whitespace",
        description="Hides data by manipulating whitespace characters",
        stealth_level=2,
        platform=Platform.UNIVERSAL,
        requires_cover_text=True,
        supports_auto_detect=True,
    )
    length_prefixed = True

    def capacity(self, cover_text: str | None = None) -> int:
        if not cover_text:
            return 0
        return space_run_count(cover_text) // 8

    def strip(self, stego_text: str) -> str:
        return strip_spaces(stego_text)

    def _embed(self, frame: bytes, cover_text: str | None) -> str:
        return encode_spaces(cover_text or "", bytes_to_bits(frame))

    def _extract(self, stego_text: str, mode: DecodeMode) -> bytes:
        bits = decode_spaces(stego_text)
        if not bits:
            raise NoCarrierError("No spaces found")
        return bits_to_bytes(bits[: len(bits) - len(bits) % 8])
