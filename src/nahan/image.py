"""Image carrier for NH07: base-122 text stored in the low bits of a PNG."""

from __future__ import annotations

import io
import math

import numpy as np
from PIL import Image, UnidentifiedImageError

from .base122 import Base122Provider
from .provider import DecodeMode
from .utils import (
    LENGTH_SIZE,
    CapacityExceededError,
    StegoDecodeError,
    StegoEncodeError,
    pack_length,
)

BITS_PER_CHANNEL = 2
CHANNELS = 3  # RGB
BITS_PER_PIXEL = BITS_PER_CHANNEL * CHANNELS
MIN_SIDE = 500
_LOW_MASK = np.uint8((1 << BITS_PER_CHANNEL) - 1)


def _load_rgb(image_bytes: bytes) -> np.ndarray:
    try:
        with Image.open(io.BytesIO(image_bytes)) as im:
            return np.array(im.convert("RGB"), dtype=np.uint8)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise StegoDecodeError("Clipboard data is not a readable image") from exc


def _to_png(arr: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(arr, "RGB").save(buf, format="PNG")
    return buf.getvalue()


class LsbImageCarrier:
    """Write bytes into the two least-significant bits of every RGB channel.

    The stored stream is a 4-byte big-endian length followed by the
    latin-1 bytes of the text. PNG output keeps it lossless.
    """

    def capacity(self, image_bytes: bytes) -> int:
        """Return how many text characters *image_bytes* can hold."""
        arr = _load_rgb(image_bytes)
        return max(0, arr.size * BITS_PER_CHANNEL // 8 - LENGTH_SIZE)

    def create_carrier(self, bits: int) -> bytes:
        """Render a smooth gradient PNG large enough for *bits* bits."""
        side = max(math.ceil(math.sqrt(math.ceil(bits / BITS_PER_PIXEL)) * 1.1), MIN_SIDE)
        ramp = np.linspace(0, 255, side, dtype=np.float64)
        x, y = np.meshgrid(ramp, ramp)
        arr = np.stack([x, y, (x + y) / 2], axis=-1).astype(np.uint8)
        return _to_png(arr)

    def embed(self, payload_text: str, image_bytes: bytes | None = None) -> bytes:
        """Hide *payload_text* and return PNG bytes.

        Args:
            payload_text: Text whose characters are all below U+0100.
            image_bytes: Cover image; a gradient is generated when omitted.

        Raises:
            CapacityExceededError: If the image is too small.
        """
        try:
            data = pack_length(len(payload_text)) + payload_text.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise StegoEncodeError("Image payload must be latin-1 text") from exc
        bits = np.unpackbits(np.frombuffer(data, dtype=np.uint8))
        if image_bytes is None:
            image_bytes = self.create_carrier(bits.size)

        arr = _load_rgb(image_bytes)
        flat = arr.reshape(-1)
        if bits.size > flat.size * BITS_PER_CHANNEL:
            raise CapacityExceededError(
                len(data), flat.size * BITS_PER_CHANNEL // 8, "image"
            )
        symbols = (bits[0::2] << 1) | bits[1::2]
        count = symbols.size
        flat[:count] = (flat[:count] & ~_LOW_MASK) | symbols
        return _to_png(arr)

    def extract(self, image_bytes: bytes) -> str:
        """Read the text hidden by :meth:`embed`.

        Raises:
            StegoDecodeError: If the image is unreadable or the length field
                is larger than the image can hold.
        """
        flat = _load_rgb(image_bytes).reshape(-1)
        symbols_per_byte = 8 // BITS_PER_CHANNEL

        def read(offset: int, nbytes: int) -> bytes:
            chunk = flat[offset * symbols_per_byte : (offset + nbytes) * symbols_per_byte]
            pairs = chunk & _LOW_MASK
            bits = np.stack([pairs >> 1, pairs & 1], axis=-1).reshape(-1)
            return np.packbits(bits).tobytes()

        available = flat.size // symbols_per_byte - LENGTH_SIZE
        if available < 0:
            raise StegoDecodeError("Image too small to carry data")
        length = int.from_bytes(read(0, LENGTH_SIZE), "big")
        if length > available:
            raise StegoDecodeError("No hidden data found in image")
        return read(LENGTH_SIZE, length).decode("latin-1")


def hide_in_image(
    payload: bytes,
    image_bytes: bytes | None = None,
    carrier: LsbImageCarrier | None = None,
) -> bytes:
    """Encode *payload* with NH07 and embed it in a PNG."""
    carrier = carrier or LsbImageCarrier()
    return carrier.embed(Base122Provider().encode(payload), image_bytes)


def reveal_from_image(image_bytes: bytes, carrier: LsbImageCarrier | None = None) -> bytes:
    """Extract and decode an NH07 payload from image bytes.

    Raises:
        StegoDecodeError: If no NH07 payload is present.
    """
    carrier = carrier or LsbImageCarrier()
    payload = Base122Provider().detect(carrier.extract(image_bytes), DecodeMode.STRICT)
    if payload is None:
        raise StegoDecodeError("Image does not carry an NH07 payload")
    return payload
