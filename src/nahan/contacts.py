"""Contacts, the contact directory and contact-introduction packets."""

from __future__ import annotations

import re
import zlib
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .crypto import PublicBundle
from .utils import StegoCryptoError, StegoEncodeError

INTRO_VERSION = 0x02
MULTI_INTRO_VERSION = 0x03
_INTRO_TAG = "ID"
_MULTI_INTRO_TAG = "MID"
_SEPARATOR = "|"

# base64 of a 64-byte bundle is always 88 characters ending in "=="
_KEY_PATTERN = r"[A-Za-z0-9+/]{86}=="
_NAMED_KEY = re.compile(rf"^(?P<name>.+?)\+(?P<key>{_KEY_PATTERN})$")
_BARE_KEY = re.compile(rf"^(?P<key>{_KEY_PATTERN})$")


@dataclass(frozen=True)
class Contact:
    """A known peer.

    Attributes:
        fingerprint: Hex fingerprint of the public key bundle.
        public_key: Base64 public key bundle.
        display_name: Name shown for the peer.
    """

    fingerprint: str
    public_key: str
    display_name: str

    @classmethod
    def from_public_key(cls, display_name: str, public_key: str) -> Contact:
        """Build a contact, validating the key and computing its fingerprint.

        Raises:
            StegoCryptoError: If *public_key* is not a valid bundle.
        """
        bundle = PublicBundle.from_base64(public_key)
        return cls(
            fingerprint=bundle.fingerprint,
            public_key=bundle.to_base64(),
            display_name=display_name,
        )

    @property
    def bundle(self) -> PublicBundle:
        return PublicBundle.from_base64(self.public_key)


class ContactDirectory:
    """Read-only lookup over a set of contacts."""

    def __init__(self, contacts: Iterable[Contact] = ()) -> None:
        self._contacts = tuple(contacts)
        self._by_fingerprint = {c.fingerprint: c for c in self._contacts}
        self._by_encryption_key: dict[bytes, Contact] = {}
        self._by_signing_key: dict[bytes, Contact] = {}
        for contact in self._contacts:
            bundle = contact.bundle
            self._by_encryption_key[bundle.encryption_key] = contact
            self._by_signing_key[bundle.signing_key] = contact

    def __iter__(self) -> Iterator[Contact]:
        return iter(self._contacts)

    def __len__(self) -> int:
        return len(self._contacts)

    def by_fingerprint(self, fingerprint: str | None) -> Contact | None:
        if fingerprint is None:
            return None
        return self._by_fingerprint.get(fingerprint)

    def by_encryption_key(self, key: bytes) -> Contact | None:
        return self._by_encryption_key.get(key)

    def by_signing_key(self, key: bytes) -> Contact | None:
        return self._by_signing_key.get(key)

    @classmethod
    def coerce(cls, contacts: ContactDirectory | Iterable[Contact]) -> ContactDirectory:
        if isinstance(contacts, ContactDirectory):
            return contacts
        return cls(contacts)


# ---------------------------------------------------------------------------
# Introduction packets
# ---------------------------------------------------------------------------
# single: 0x02 || deflate("ID|name|public_key")
# multi:  0x03 || deflate("MID|count|name|key|name|key...")


def _check_name(name: str) -> None:
    if not name or _SEPARATOR in name:
        raise StegoEncodeError(f"Contact name must be non-empty and free of {_SEPARATOR!r}")


def build_contact_intro(name: str, public_key: str) -> bytes:
    """Serialise a single contact introduction."""
    _check_name(name)
    PublicBundle.from_base64(public_key)
    body = _SEPARATOR.join((_INTRO_TAG, name, public_key))
    return bytes([INTRO_VERSION]) + zlib.compress(body.encode("utf-8"))


def build_multi_contact_intro(contacts: Iterable[Contact]) -> bytes:
    """Serialise several contacts into one introduction."""
    fields = [_MULTI_INTRO_TAG]
    items = list(contacts)
    fields.append(str(len(items)))
    for contact in items:
        _check_name(contact.display_name)
        fields.extend((contact.display_name, contact.public_key))
    return bytes([MULTI_INTRO_VERSION]) + zlib.compress(_SEPARATOR.join(fields).encode("utf-8"))


def _inflate(data: bytes, version: int) -> str | None:
    if len(data) < 2 or data[0] != version:
        return None
    try:
        return zlib.decompress(data[1:]).decode("utf-8")
    except (zlib.error, UnicodeDecodeError):
        return None


def _contact(name: str, key: str) -> Contact | None:
    try:
        return Contact.from_public_key(name, key)
    except StegoCryptoError:
        return None


def parse_contact_intro(data: bytes) -> Contact | None:
    """Parse a single introduction; ``None`` if *data* is not a valid one."""
    text = _inflate(data, INTRO_VERSION)
    if text is None:
        return None
    parts = text.split(_SEPARATOR)
    if len(parts) != 3 or parts[0] != _INTRO_TAG or not parts[1]:
        return None
    return _contact(parts[1], parts[2])


def parse_multi_contact_intro(data: bytes) -> list[Contact] | None:
    """Parse a multi-contact introduction; ``None`` if *data* is not a valid one."""
    text = _inflate(data, MULTI_INTRO_VERSION)
    if text is None:
        return None
    parts = text.split(_SEPARATOR)
    if len(parts) < 2 or parts[0] != _MULTI_INTRO_TAG or not parts[1].isdigit():
        return None
    count = int(parts[1])
    fields = parts[2:]
    if count < 1 or len(fields) != 2 * count:
        return None
    contacts: list[Contact] = []
    for i in range(0, len(fields), 2):
        contact = _contact(fields[i], fields[i + 1])
        if contact is None:
            return None
        contacts.append(contact)
    return contacts


def parse_key_text(text: str) -> Contact | None:
    """Recognise a pasted ``name+<key>`` or bare key."""
    text = text.strip()
    match = _NAMED_KEY.match(text)
    if match is not None:
        return _contact(match["name"], match["key"])
    match = _BARE_KEY.match(text)
    if match is not None:
        contact = _contact("", match["key"])
        if contact is not None:
            return Contact(contact.fingerprint, contact.public_key, f"Contact {contact.fingerprint[:8]}")
    return None
