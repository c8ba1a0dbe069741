"""Reed-Solomon block framing for carriers that can lose characters in transit.

A frame is the data split into at most 255-byte Reed-Solomon blocks with a
fixed number of parity bytes each, interleaved byte-by-byte so that a run of
lost carrier characters is spread over all blocks. The block layout is a pure
function of the frame length, so the carrier needs no explicit length field.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator

from reedsolo import ReedSolomonError, RSCodec

from .utils import CorruptedCarrierError

BLOCK_SIZE = 255
# Corrects up to 26 erased bytes per block (~10% of a full block)
PARITY_SYMBOLS = 26
DATA_PER_BLOCK = BLOCK_SIZE - PARITY_SYMBOLS


def _split_sizes(total: int, parts: int) -> list[int]:
    base, extra = divmod(total, parts)
    return [base + 1 if i < extra else base for i in range(parts)]


def block_count(data_length: int) -> int:
    """Return the number of Reed-Solomon blocks used for *data_length* bytes."""
    return max(1, math.ceil(data_length / DATA_PER_BLOCK))


def protected_size(data_length: int) -> int:
    """Return the frame size in bytes for *data_length* bytes of data."""
    return data_length + block_count(data_length) * PARITY_SYMBOLS


def block_layout(frame_length: int) -> list[int] | None:
    """Return the block sizes of a frame of *frame_length* bytes.

    Returns ``None`` when no data length produces a frame of that size.
    """
    if frame_length <= PARITY_SYMBOLS:
        return None
    blocks = math.ceil(frame_length / BLOCK_SIZE)
    data_length = frame_length - blocks * PARITY_SYMBOLS
    if data_length < 1 or block_count(data_length) != blocks:
        return None
    return [size + PARITY_SYMBOLS for size in _split_sizes(data_length, blocks)]


def _interleave(sizes: list[int]) -> Iterator[tuple[int, int]]:
    """Yield ``(block, offset)`` in frame order."""
    for offset in range(max(sizes)):
        for block, size in enumerate(sizes):
            if offset < size:
                yield block, offset


def protect(data: bytes) -> bytes:
    """Add Reed-Solomon parity to *data* and interleave the blocks.

    Args:
        data: Bytes to protect (at least one byte).

    Returns:
        The frame, ``protected_size(len(data))`` bytes long.
    """
    rsc = RSCodec(PARITY_SYMBOLS)
    blocks: list[bytes] = []
    offset = 0
    for size in _split_sizes(len(data), block_count(len(data))):
        blocks.append(bytes(rsc.encode(data[offset : offset + size])))
        offset += size
    sizes = [len(block) for block in blocks]
    return bytes(blocks[b][i] for b, i in _interleave(sizes))


def recover(frame: bytes, erasures: Iterable[int] = (), strict: bool = False) -> bytes:
    """De-interleave *frame* and correct it with Reed-Solomon decoding.

    Args:
        frame: Frame bytes; erased positions may hold any value.
        erasures: Frame positions known to be lost.
        strict: Reject any frame that needed correction.

    Returns:
        The original data bytes.

    Raises:
        CorruptedCarrierError: If the frame length is impossible, the damage
            exceeds what the parity can repair, or (in strict mode) any
            correction was needed.
    """
    sizes = block_layout(len(frame))
    if sizes is None:
        raise CorruptedCarrierError(f"Frame length {len(frame)} does not match any block layout")

    erased = set(erasures)
    blocks = [bytearray(size) for size in sizes]
    block_erasures: list[list[int]] = [[] for _ in sizes]
    for pos, (b, i) in enumerate(_interleave(sizes)):
        blocks[b][i] = frame[pos]
        if pos in erased:
            block_erasures[b].append(i)

    rsc = RSCodec(PARITY_SYMBOLS)
    data = bytearray()
    for block, erase_pos in zip(blocks, block_erasures):
        try:
            message, _, errata = rsc.decode(block, erase_pos=erase_pos or None)
        except ReedSolomonError as exc:
            raise CorruptedCarrierError("Data corrupted during transmission") from exc
        if strict and len(errata):
            raise CorruptedCarrierError("Data corrupted during transmission")
        data += message
    return bytes(data)
