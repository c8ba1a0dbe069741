"""NH02: zero-width joiner/non-joiner pairs after whitespace boundaries."""

from __future__ import annotations

import logging
import re

from . import framing
from .config import get_settings
from .provider import AlgorithmMetadata, DecodeMode, Platform, StegoProvider
from .utils import (
    MAGIC_SIZE,
    AlgorithmId,
    CorruptedCarrierError,
    NoCarrierError,
    StegoEncodeError,
    bits_to_bytes,
    bytes_to_bits,
    embed_header,
    extract_header,
)

logger = logging.getLogger(__name__)

ZWNJ = "\u200c"  # bit 0
ZWJ = "\u200d"  # bit 1
CHARS_PER_BOUNDARY = 2
SLOTS_PER_BYTE = 8 // CHARS_PER_BOUNDARY

_WHITESPACE = re.compile(r"\s+")
_SPLIT = re.compile(r"(\s+)")
# Zero-width characters directly after a whitespace run; ones inside words
# belong to the cover text (Persian uses ZWNJ between word parts).
_BOUNDARY = re.compile(r"\s+([\u200c\u200d]*)")
_INJECTED = re.compile(r"(\s+)[\u200c\u200d]+")


def word_boundary_count(text: str) -> int:
    """Count whitespace runs in *text*."""
    return len(_WHITESPACE.split(text)) - 1


def has_zero_width_carrier(text: str) -> bool:
    """Return True if a zero-width character directly follows whitespace in *text*."""
    return _INJECTED.search(text) is not None


def _read_slots(text: str) -> list[str]:
    return [m.group(1) for m in _BOUNDARY.finditer(text)]


def _slot_bits(slot: str) -> list[int]:
    return [0 if ch == ZWNJ else 1 for ch in slot]


class ZeroWidthProvider(StegoProvider):
    """Hide two bits after every whitespace run using ZWNJ (0) and ZWJ (1).

    The tagged payload is protected by interleaved Reed-Solomon blocks
    (:mod:`nahan.framing`). A boundary that lost one or both of its
    characters is a known erasure, so lenient decoding can rebuild the frame
    as long as the erased share stays within ``loss_threshold``.

    The threshold counts erased frame bytes, not lost characters. Each byte
    spans eight characters over four boundaries, so losing all eight costs
    one byte while eight losses spread over eight bytes cost eight.

    Args:
        loss_threshold: Maximum fraction of frame bytes that may be erased
            in lenient mode. Defaults to ``Settings.lenient_loss_threshold``.
    """

    algorithm_id = AlgorithmId.NH02
    metadata = AlgorithmMetadata(
        id=AlgorithmId.NH02,
        name="Zero Width Binary",
        description="Uses ZWNJ/ZWJ characters hiding data between words for mobile compatibility.",
        stealth_level=4,
        platform=Platform.MOBILE,
        requires_cover_text=True,
        supports_auto_detect=True,
    )

    def __init__(self, loss_threshold: float | None = None) -> None:
        self._loss_threshold = loss_threshold

    @property
    def loss_threshold(self) -> float:
        if self._loss_threshold is not None:
            return self._loss_threshold
        return get_settings().lenient_loss_threshold

    def capacity(self, cover_text: str | None = None) -> int:
        if not cover_text:
            return 0
        return word_boundary_count(cover_text) * CHARS_PER_BOUNDARY // 8

    def frame_size(self, payload_length: int) -> int:
        return framing.protected_size(MAGIC_SIZE + payload_length)

    def strip(self, stego_text: str) -> str:
        return _INJECTED.sub(r"\1", stego_text)

    # ------------------------------------------------------------------
    # Framing
    # ------------------------------------------------------------------

    def _frame(self, payload: bytes) -> bytes:
        return framing.protect(embed_header(self.algorithm_id, payload))

    def _embed(self, frame: bytes, cover_text: str | None) -> str:
        cover_text = cover_text or ""
        if has_zero_width_carrier(cover_text):
            raise StegoEncodeError(
                "Cover text already has zero-width characters after whitespace"
            )

        chars = [ZWJ if bit else ZWNJ for bit in bytes_to_bits(frame)]
        out: list[str] = []
        pos = 0
        for part in _SPLIT.split(cover_text):
            out.append(part)
            if pos < len(chars) and part and part.isspace():
                out.extend(chars[pos : pos + CHARS_PER_BOUNDARY])
                pos += CHARS_PER_BOUNDARY
        return "".join(out)

    def _extract(self, stego_text: str, mode: DecodeMode) -> bytes:
        slots = _read_slots(stego_text)
        used = [i for i, slot in enumerate(slots) if slot]
        if not used:
            raise NoCarrierError("No zero-width characters found at word boundaries")
        if mode is DecodeMode.LENIENT:
            return self._recover(slots, used[-1] + 1)
        return self._read_strict(slots, used[-1] + 1)

    # ------------------------------------------------------------------
    # Strict and lenient readers
    # ------------------------------------------------------------------

    def _read_strict(self, slots: list[str], used: int) -> bytes:
        damaged = [i for i in range(used) if len(slots[i]) != CHARS_PER_BOUNDARY]
        if damaged or used % SLOTS_PER_BYTE:
            raise CorruptedCarrierError(
                f"Zero-width carrier damaged at {len(damaged)} word boundaries"
            )
        bits: list[int] = []
        for slot in slots[:used]:
            bits.extend(_slot_bits(slot))
        return framing.recover(bits_to_bytes(bits), strict=True)

    def _recover(self, slots: list[str], used: int) -> bytes:
        """Rebuild the frame treating damaged boundaries as erasures.

        Boundaries wiped at the very end are invisible, so every plausible
        frame length from the last surviving boundary up to the end of the
        text is tried.
        """
        threshold = self.loss_threshold
        first = -(-used // SLOTS_PER_BYTE) * SLOTS_PER_BYTE
        for total in range(first, len(slots) + 1, SLOTS_PER_BYTE):
            frame_length = total // SLOTS_PER_BYTE
            if framing.block_layout(frame_length) is None:
                continue

            damaged = [i for i in range(total) if len(slots[i]) != CHARS_PER_BOUNDARY]
            erased = sorted({i // SLOTS_PER_BYTE for i in damaged})
            lost = sum(max(0, CHARS_PER_BOUNDARY - len(slots[i])) for i in damaged)
            if len(erased) > threshold * frame_length:
                # Longer candidates only add erasures
                raise CorruptedCarrierError(
                    f"Too many invisible characters lost: {lost} of "
                    f"{total * CHARS_PER_BOUNDARY} missing, {len(erased)} of "
                    f"{frame_length} frame bytes erased (threshold {threshold:.0%})"
                )

            bits: list[int] = []
            for slot in slots[:total]:
                if len(slot) == CHARS_PER_BOUNDARY:
                    bits.extend(_slot_bits(slot))
                else:
                    bits.extend([0] * CHARS_PER_BOUNDARY)
            try:
                tagged = framing.recover(bits_to_bytes(bits), erased)
            except CorruptedCarrierError:
                continue
            if extract_header(tagged)[0] is not self.algorithm_id:
                continue
            if erased:
                logger.warning(
                    "Recovered NH02 payload with %d of %d frame bytes erased"
                    " (%d invisible characters lost)",
                    len(erased),
                    frame_length,
                    lost,
                )
            return tagged

        raise CorruptedCarrierError("Zero-width carrier could not be recovered")
