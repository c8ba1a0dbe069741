"""Versioned message envelopes.

The first byte of an envelope names its kind and is the only thing the
steganography layer ever inspects::

    0x01  version || nonce (12) || sender X25519 public (32) || ChaCha20-Poly1305(zlib(plaintext))
    0x02  version || sender Ed25519 public (32) || signature (64) || plaintext

Encrypted envelopes derive their key with HKDF-SHA256 over the X25519 shared
secret; the 45-byte header is authenticated as associated data. Signed
envelopes are broadcasts: anyone can read them, and the signature covers the
version byte and the plaintext.
"""

from __future__ import annotations

import base64
import binascii
import os
import re
import textwrap
import zlib
from collections.abc import Iterable
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .contacts import Contact, ContactDirectory
from .crypto import PUBLIC_KEY_SIZE, Identity, PublicBundle
from .utils import StegoCryptoError, StegoDecodeError, UnsupportedEnvelopeVersionError

VERSION_ENCRYPTED = 0x01
VERSION_SIGNED = 0x02
SUPPORTED_VERSIONS = frozenset({VERSION_ENCRYPTED, VERSION_SIGNED})

_NONCE_LEN = 12
_SIGNATURE_LEN = 64
_TAG_LEN = 16
_HKDF_INFO = b"nahan-envelope-v1"
_ENCRYPTED_HEADER = 1 + _NONCE_LEN + PUBLIC_KEY_SIZE
_SIGNED_HEADER = 1 + PUBLIC_KEY_SIZE + _SIGNATURE_LEN

ARMOR_LABEL = "NAHAN MESSAGE"
_ARMOR = re.compile(
    r"-----BEGIN (?P<label>NAHAN|PGP) MESSAGE-----(?P<body>.*?)-----END (?P=label) MESSAGE-----",
    re.DOTALL,
)


@dataclass(frozen=True)
class OpenedEnvelope:
    """Result of opening an envelope.

    Attributes:
        version: Envelope version byte.
        plaintext: Decrypted or verified message.
        sender_key: The sender's public key as embedded in the envelope
            (X25519 for 0x01, Ed25519 for 0x02).
        sender_fingerprint: Fingerprint of the matching contact, if any.
        verified: True once the AEAD tag or signature checked out.
    """

    version: int
    plaintext: bytes
    sender_key: bytes
    sender_fingerprint: str | None
    verified: bool

    @property
    def is_broadcast(self) -> bool:
        return self.version == VERSION_SIGNED


def _raw_public(key: X25519PublicKey | Ed25519PublicKey) -> bytes:
    return key.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)


def _message_key(shared_secret: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=_HKDF_INFO,
    ).derive(shared_secret)


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------


def build_encrypted(
    plaintext: bytes,
    recipient_public_key: PublicBundle | bytes | str,
    sender: Identity,
    passphrase: str,
) -> bytes:
    """Encrypt *plaintext* from *sender* to one recipient.

    Args:
        plaintext: Message bytes.
        recipient_public_key: Recipient bundle (object, raw or base64).
        sender: Sender identity.
        passphrase: Unlocks the sender's private keys.

    Returns:
        A ``0x01`` envelope.
    """
    recipient = PublicBundle.coerce(recipient_public_key)
    keys = sender.unlock(passphrase)
    shared = keys.encryption.exchange(X25519PublicKey.from_public_bytes(recipient.encryption_key))
    nonce = os.urandom(_NONCE_LEN)
    header = bytes([VERSION_ENCRYPTED]) + nonce + _raw_public(keys.encryption.public_key())
    ciphertext = ChaCha20Poly1305(_message_key(shared)).encrypt(
        nonce, zlib.compress(plaintext), header
    )
    return header + ciphertext


def build_signed(plaintext: bytes, sender: Identity, passphrase: str) -> bytes:
    """Sign *plaintext* as a broadcast and return a ``0x02`` envelope."""
    keys = sender.unlock(passphrase)
    version = bytes([VERSION_SIGNED])
    signature = keys.signing.sign(version + plaintext)
    return version + _raw_public(keys.signing.public_key()) + signature + plaintext


# ---------------------------------------------------------------------------
# Opening
# ---------------------------------------------------------------------------


def _open_encrypted(blob: bytes, recipient: Identity, passphrase: str) -> tuple[bytes, bytes]:
    if len(blob) < _ENCRYPTED_HEADER + _TAG_LEN:
        raise StegoCryptoError("Encrypted envelope is truncated")
    header = blob[:_ENCRYPTED_HEADER]
    nonce = header[1 : 1 + _NONCE_LEN]
    sender_key = header[1 + _NONCE_LEN :]
    keys = recipient.unlock(passphrase)
    try:
        shared = keys.encryption.exchange(X25519PublicKey.from_public_bytes(sender_key))
        compressed = ChaCha20Poly1305(_message_key(shared)).decrypt(
            nonce, blob[_ENCRYPTED_HEADER:], header
        )
    except (InvalidTag, ValueError) as exc:
        raise StegoCryptoError("Message could not be decrypted") from exc
    try:
        return zlib.decompress(compressed), sender_key
    except zlib.error as exc:
        raise StegoCryptoError("Decrypted message is not valid compressed data") from exc


def _open_signed(blob: bytes) -> tuple[bytes, bytes]:
    if len(blob) < _SIGNED_HEADER:
        raise StegoCryptoError("Signed envelope is truncated")
    sender_key = blob[1 : 1 + PUBLIC_KEY_SIZE]
    signature = blob[1 + PUBLIC_KEY_SIZE : _SIGNED_HEADER]
    plaintext = blob[_SIGNED_HEADER:]
    try:
        Ed25519PublicKey.from_public_bytes(sender_key).verify(signature, blob[:1] + plaintext)
    except (InvalidSignature, ValueError) as exc:
        raise StegoCryptoError("Signature verification failed") from exc
    return plaintext, sender_key


def open_envelope(
    blob: bytes,
    recipient: Identity,
    passphrase: str,
    contacts: ContactDirectory | Iterable[Contact] = (),
) -> OpenedEnvelope:
    """Open an envelope, routing strictly on its version byte.

    ``0x01`` is only ever decrypted and ``0x02`` only ever verified.

    Raises:
        UnsupportedEnvelopeVersionError: Empty blob or unknown version.
        StegoCryptoError: Truncated or tampered envelope, or wrong passphrase.
    """
    if not blob:
        raise UnsupportedEnvelopeVersionError(None)
    directory = ContactDirectory.coerce(contacts)
    version = blob[0]
    if version == VERSION_ENCRYPTED:
        plaintext, sender_key = _open_encrypted(blob, recipient, passphrase)
        contact = directory.by_encryption_key(sender_key)
    elif version == VERSION_SIGNED:
        plaintext, sender_key = _open_signed(blob)
        contact = directory.by_signing_key(sender_key)
    else:
        raise UnsupportedEnvelopeVersionError(version)
    return OpenedEnvelope(
        version=version,
        plaintext=plaintext,
        sender_key=sender_key,
        sender_fingerprint=contact.fingerprint if contact else None,
        verified=True,
    )


# ---------------------------------------------------------------------------
# ASCII armor
# ---------------------------------------------------------------------------


def armor(blob: bytes) -> str:
    """Wrap an envelope in a ``NAHAN MESSAGE`` armor block."""
    body = "\n".join(textwrap.wrap(base64.b64encode(blob).decode("ascii"), 64))
    return f"-----BEGIN {ARMOR_LABEL}-----\n{body}\n-----END {ARMOR_LABEL}-----"


def dearmor(text: str) -> bytes | None:
    """Return the envelope inside an armor block, or ``None`` without one.

    The legacy ``PGP MESSAGE`` label is accepted too. Header lines
    (``Key: value``) before the body are ignored.

    Raises:
        StegoDecodeError: If an armor block is present but its body is not
            valid base64.
    """
    match = _ARMOR.search(text)
    if match is None:
        return None
    lines = [line.strip() for line in match["body"].splitlines()]
    body = "".join(line for line in lines if line and ":" not in line)
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise StegoDecodeError("Armored message body is not valid base64") from exc
