"""NH03: each payload byte becomes two emoji, one per nibble."""

from __future__ import annotations

import sys

from .provider import AlgorithmMetadata, DecodeMode, Platform, StegoProvider
from .utils import AlgorithmId, NoCarrierError, StegoDecodeError

EMOJI_TABLE: tuple[str, ...] = (
    "\U0001F600",  # grinning face
    "\U0001F60A",  # smiling face with smiling eyes
    "\U0001F602",  # face with tears of joy
    "\U0001F923",  # rolling on the floor laughing
    "\U0001F60D",  # heart eyes
    "\U0001F60E",  # sunglasses
    "\U0001F914",  # thinking face
    "\U0001F634",  # sleeping face
    "\U0001F44D",  # thumbs up
    "\U0001F44E",  # thumbs down
    "\U0001F596",  # vulcan salute
    "\U0001F91D",  # handshake
    "\U0001F389",  # party popper
    "\U0001F525",  # fire
    "\U0001F4AF",  # hundred points
    "\u2728",  # sparkles
)

_NIBBLES: dict[str, int] = {e: i for i, e in enumerate(EMOJI_TABLE)}
_VARIATION_SELECTOR = "\ufe0f"


class EmojiProvider(StegoProvider):
    """Synthesize an emoji string from the payload; no cover text needed."""

    algorithm_id = AlgorithmId.NH03
    metadata = AlgorithmMetadata(
        id=AlgorithmId.NH03,
        name="Emoji Map",
        description="Hides data within emoji sequences",
        stealth_level=2,
        platform=Platform.SOCIAL,
        requires_cover_text=False,
        supports_auto_detect=True,
    )

    def capacity(self, cover_text: str | None = None) -> int:
        return sys.maxsize

    def _embed(self, frame: bytes, cover_text: str | None) -> str:
        return "".join(EMOJI_TABLE[b >> 4] + EMOJI_TABLE[b & 0x0F] for b in frame)

    def _extract(self, stego_text: str, mode: DecodeMode) -> bytes:
        nibbles: list[int] = []
        for ch in stego_text:
            if ch.isspace() or ch == _VARIATION_SELECTOR:
                continue
            if ch not in _NIBBLES:
                raise StegoDecodeError(f"Invalid character in emoji stream: {ch!r}")
            nibbles.append(_NIBBLES[ch])
        if not nibbles:
            raise NoCarrierError("No emoji found")
        if len(nibbles) % 2:
            raise StegoDecodeError("Odd number of emoji: stream is truncated")
        return bytes((nibbles[i] << 4) | nibbles[i + 1] for i in range(0, len(nibbles), 2))
