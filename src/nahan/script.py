"""Script utilities: language detection, kashida positions and the homoglyph table."""

from __future__ import annotations

import unicodedata
from enum import Enum

# ---------------------------------------------------------------------------
# Homoglyph table (Latin -> visually identical Cyrillic)
# ---------------------------------------------------------------------------

HOMOGLYPHS: dict[str, str] = {
    # Lowercase
    "a": "\u0430",
    "e": "\u0435",
    "o": "\u043e",
    "c": "\u0441",
    "p": "\u0440",
    "x": "\u0445",
    "y": "\u0443",
    "i": "\u0456",
    "j": "\u0458",
    # Uppercase
    "A": "\u0410",
    "B": "\u0412",
    "C": "\u0421",
    "E": "\u0415",
    "H": "\u041d",
    "K": "\u041a",
    "M": "\u041c",
    "O": "\u041e",
    "P": "\u0420",
    "T": "\u0422",
    "X": "\u0425",
    "Y": "\u0423",
}

REVERSE_HOMOGLYPHS: dict[str, str] = {v: k for k, v in HOMOGLYPHS.items()}


def is_homoglyph(char: str) -> bool:
    """Return True if *char* is a substituted look-alike."""
    return char in REVERSE_HOMOGLYPHS


def can_substitute(char: str) -> bool:
    """Return True if *char* has a look-alike in the table."""
    return char in HOMOGLYPHS


def get_homoglyph(char: str) -> str:
    """Return the look-alike for *char*, or *char* itself if there is none."""
    return HOMOGLYPHS.get(char, char)


def get_original_char(char: str) -> str:
    """Map a look-alike back to its Latin original (identity for anything else)."""
    return REVERSE_HOMOGLYPHS.get(char, char)


# ---------------------------------------------------------------------------
# Persian script
# ---------------------------------------------------------------------------

KASHIDA = "\u0640"

# Letters that never join to the following letter.
NON_CONNECTING: frozenset[str] = frozenset(
    "\u0622\u0627\u062f\u0630\u0631\u0632\u0698\u0648\u0624\u0629\u0649\u06c0\u06d5"
)

# Persian comma, semicolon, question mark
_PERSIAN_PUNCTUATION: frozenset[str] = frozenset("\u060c\u061b\u061f")


def is_persian(char: str) -> bool:
    code = ord(char)
    return 0x0600 <= code <= 0x06FF or 0xFB50 <= code <= 0xFDFF


def is_latin(char: str) -> bool:
    return 0x21 <= ord(char) <= 0x7E


def _is_persian_digit(char: str) -> bool:
    return 0x06F0 <= ord(char) <= 0x06F9


def is_valid_kashida_position(current: str, following: str) -> bool:
    """Return True if a kashida may be inserted between *current* and *following*.

    Both characters must be Persian letters, *current* must join to the left,
    and neither may be a digit or Persian punctuation.
    """
    if not (is_persian(current) and is_persian(following)):
        return False
    if current in NON_CONNECTING:
        return False
    if _is_persian_digit(current) or _is_persian_digit(following):
        return False
    if current in _PERSIAN_PUNCTUATION or following in _PERSIAN_PUNCTUATION:
        return False
    return True


def kashida_insertion_points(text: str) -> int:
    """Count adjacent character pairs that can carry a kashida bit."""
    return sum(
        1 for i in range(len(text) - 1) if is_valid_kashida_position(text[i], text[i + 1])
    )


def substitutable_characters(text: str) -> int:
    """Count characters that can carry a homoglyph bit."""
    return sum(1 for ch in text if can_substitute(ch))


# ---------------------------------------------------------------------------
# Language detection
# ---------------------------------------------------------------------------


class Language(str, Enum):
    """Dominant script of a text."""

    FA = "fa"
    EN = "en"
    MIXED = "mixed"


def _clean(text: str) -> str:
    return "".join(
        ch
        for ch in text
        if not ch.isspace() and not unicodedata.category(ch).startswith("P")
    )


def detect_language(text: str) -> Language:
    """Classify *text* as Persian, Latin (English) or mixed.

    Whitespace and punctuation are ignored. Only characters of either script
    are classified; emoji and other symbols do not count. A script wins when
    it accounts for more than half of the classified characters, otherwise
    the text is mixed. Homoglyphs count as Latin so that encoded text keeps
    its class.

    Args:
        text: Text to classify.

    Returns:
        The detected :class:`Language`.
    """
    cleaned = _clean(text)
    if not cleaned:
        return Language.MIXED

    persian = sum(1 for ch in cleaned if is_persian(ch))
    latin = sum(1 for ch in cleaned if is_latin(ch) or is_homoglyph(ch))

    classified = persian + latin
    if not classified:
        return Language.MIXED
    if persian / classified > 0.5:
        return Language.FA
    if latin / classified > 0.5:
        return Language.EN
    return Language.MIXED
