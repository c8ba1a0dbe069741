"""Clipboard access seam and the cheap image change hash."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from .config import get_settings


class ClipboardPermissionError(PermissionError):
    """Raised by a clipboard when reading is denied."""


@dataclass(frozen=True)
class ClipboardItem:
    """One clipboard entry, available in one or more MIME types."""

    data: Mapping[str, bytes] = field(default_factory=dict)

    @property
    def types(self) -> tuple[str, ...]:
        return tuple(self.data)

    def get_type(self, mime: str) -> bytes:
        try:
            return self.data[mime]
        except KeyError:
            raise KeyError(f"Clipboard item has no {mime!r} representation") from None

    def image_types(self) -> list[str]:
        return [mime for mime in self.data if mime.startswith("image/")]


class Clipboard(Protocol):
    supports_read: bool

    def has_focus(self) -> bool: ...

    def read_text(self) -> str: ...

    def read(self) -> list[ClipboardItem]: ...


class MemoryClipboard:
    """In-process clipboard, for tests and headless use.

    Args:
        text: Initial text content.
        items: Initial structured items.
        focused: Whether the owning window has input focus.
        supports_read: Whether structured (image) reads are available.
        denied: Make every read raise :class:`ClipboardPermissionError`.
    """

    def __init__(
        self,
        text: str = "",
        items: Iterable[ClipboardItem] = (),
        focused: bool = True,
        supports_read: bool = True,
        denied: bool = False,
    ) -> None:
        self.text = text
        self.items = list(items)
        self.focused = focused
        self.supports_read = supports_read
        self.denied = denied
        self.text_reads = 0

    def has_focus(self) -> bool:
        return self.focused

    def read_text(self) -> str:
        if self.denied:
            raise ClipboardPermissionError("Clipboard read denied")
        self.text_reads += 1
        return self.text

    def read(self) -> list[ClipboardItem]:
        if self.denied:
            raise ClipboardPermissionError("Clipboard read denied")
        return list(self.items)

    def write_text(self, text: str) -> None:
        self.text = text

    def write_image(self, data: bytes, mime: str = "image/png") -> None:
        self.items = [ClipboardItem({mime: data})]


def image_change_hash(data: bytes, mime: str, window: int | None = None) -> str:
    """Return a change-detection key for clipboard image bytes.

    Not cryptographic: size, type and the byte sum of the first and last
    *window* bytes.
    """
    if window is None:
        window = get_settings().image_window
    head = data[:window]
    tail = data[-window:] if len(data) > window else b""
    return f"{len(data)}-{mime}-{sum(head) + sum(tail)}"
