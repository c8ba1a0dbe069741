"""Common contract shared by the seven embedding algorithms."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from .utils import (
    LENGTH_SIZE,
    MAGIC_SIZE,
    AlgorithmId,
    AlgorithmMismatchError,
    CapacityExceededError,
    StegoDecodeError,
    StegoEncodeError,
    StegoError,
    embed_header,
    extract_header,
    frame_with_length,
    unpack_length_prefixed,
)


class Platform(str, Enum):
    """Where an algorithm's output survives best."""

    UNIVERSAL = "universal"
    DESKTOP = "desktop"
    MOBILE = "mobile"
    SOCIAL = "social"


class DecodeMode(str, Enum):
    """How tolerant a decoder is of damaged carriers."""

    STRICT = "strict"
    LENIENT = "lenient"


@dataclass(frozen=True)
class AlgorithmMetadata:
    """Static description of an algorithm.

    Attributes:
        id: Algorithm identifier.
        name: Display name.
        description: One-line description.
        stealth_level: 1 (conspicuous) to 5 (invisible).
        platform: Platform class the output is designed for.
        requires_cover_text: Whether ``encode`` needs a cover text.
        supports_auto_detect: Whether the format can be recognised unsupervised.
    """

    id: AlgorithmId
    name: str
    description: str
    stealth_level: int
    platform: Platform
    requires_cover_text: bool
    supports_auto_detect: bool


class StegoProvider(abc.ABC):
    """Turns payload bytes (plus an optional cover text) into a stego string and back.

    Subclasses implement :meth:`_embed`, :meth:`_extract` and
    :meth:`capacity`. Framing (magic header, optional length prefix) and the
    capacity check happen here so every algorithm rejects oversized payloads
    before producing output.
    """

    algorithm_id: ClassVar[AlgorithmId]
    metadata: ClassVar[AlgorithmMetadata]
    # NH01/NH04/NH05/NH06 carry a 4-byte length ahead of the tagged payload
    length_prefixed: ClassVar[bool] = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def encode(self, payload: bytes, cover_text: str | None = None) -> str:
        """Hide *payload* and return the stego string.

        Args:
            payload: Raw bytes to hide (normally an envelope).
            cover_text: Carrier text, for algorithms that need one.

        Returns:
            The stego string.

        Raises:
            StegoEncodeError: If a required cover text is missing or unusable.
            CapacityExceededError: If the framed payload does not fit.
        """
        if self.metadata.requires_cover_text and not cover_text:
            raise StegoEncodeError(f"{self.algorithm_id} requires cover text")
        frame = self._frame(payload)
        available = self.capacity(cover_text)
        if len(frame) > available:
            raise CapacityExceededError(len(frame), available, self.algorithm_id.value)
        return self._embed(frame, cover_text)

    def decode(self, stego_text: str, mode: DecodeMode = DecodeMode.STRICT) -> bytes:
        """Recover the payload hidden in *stego_text*.

        Args:
            stego_text: Output of :meth:`encode`, possibly damaged in transit.
            mode: ``STRICT`` rejects any damage; ``LENIENT`` tolerates the
                bounded damage the algorithm can repair.

        Returns:
            The payload. Header-less (legacy) data is returned as recovered.

        Raises:
            AlgorithmMismatchError: If the header names another algorithm.
            StegoDecodeError: If the carrier cannot be decoded.
        """
        tagged = self._unframe(self._extract(stego_text, mode), mode)
        algorithm_id, payload = extract_header(tagged)
        if algorithm_id is not None and algorithm_id is not self.algorithm_id:
            raise AlgorithmMismatchError(algorithm_id.value, self.algorithm_id.value)
        return payload

    def detect(self, stego_text: str, mode: DecodeMode = DecodeMode.STRICT) -> bytes | None:
        """Decode *stego_text* only if it carries this algorithm's header.

        Returns:
            The payload, or ``None`` when the text is not ours.
        """
        try:
            tagged = self._unframe(self._extract(stego_text, mode), mode)
        except StegoDecodeError:
            return None
        algorithm_id, payload = extract_header(tagged)
        if algorithm_id is not self.algorithm_id:
            return None
        return payload

    @abc.abstractmethod
    def capacity(self, cover_text: str | None = None) -> int:
        """Return the raw carrier capacity of *cover_text* in bytes."""

    def frame_size(self, payload_length: int) -> int:
        """Return the carrier bytes needed for a payload of *payload_length* bytes."""
        size = MAGIC_SIZE + payload_length
        if self.length_prefixed:
            size += LENGTH_SIZE
        return size

    def overhead(self) -> int:
        """Return the framing bytes added to an empty payload."""
        return self.frame_size(0)

    def max_payload_size(self, cover_text: str | None = None) -> int:
        """Return the largest payload that fits *cover_text* once framed."""
        available = self.capacity(cover_text)
        size = max(0, available - self.overhead())
        # parity overhead grows with the payload for error-corrected frames
        while size > 0 and self.frame_size(size) > available:
            size -= 1
        return size

    def strip(self, stego_text: str) -> str:
        """Remove the hidden channel and return the cover text."""
        raise StegoError(f"{self.algorithm_id} does not use a cover text")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.algorithm_id.value})"

    # ------------------------------------------------------------------
    # Framing hooks
    # ------------------------------------------------------------------

    def _frame(self, payload: bytes) -> bytes:
        tagged = embed_header(self.algorithm_id, payload)
        if self.length_prefixed:
            return frame_with_length(tagged)
        return tagged

    def _unframe(self, data: bytes, mode: DecodeMode) -> bytes:
        if self.length_prefixed:
            return unpack_length_prefixed(data)
        return data

    @abc.abstractmethod
    def _embed(self, frame: bytes, cover_text: str | None) -> str:
        """Write *frame* into the carrier."""

    @abc.abstractmethod
    def _extract(self, stego_text: str, mode: DecodeMode) -> bytes:
        """Read the raw frame bytes back out of the carrier."""
