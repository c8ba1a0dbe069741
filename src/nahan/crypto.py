"""Key material: passphrase sealing (AES-256-GCM + PBKDF2) and identities."""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import get_settings
from .utils import StegoCryptoError

_SALT_LEN = 16
_NONCE_LEN = 12
_KEY_LEN = 32  # AES-256
_TAG_LEN = 16
_PRIVATE_KEY_LEN = 32

PUBLIC_KEY_SIZE = 32
BUNDLE_SIZE = 2 * PUBLIC_KEY_SIZE
FINGERPRINT_BYTES = 16


# ---------------------------------------------------------------------------
# Passphrase sealing
# ---------------------------------------------------------------------------


def _derive_key(password: str, salt: bytes, iterations: int) -> bytes:
    """Derive a 256-bit key from *password* and *salt* using PBKDF2-HMAC-SHA256."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=_KEY_LEN,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt(data: bytes, password: str, iterations: int | None = None) -> bytes:
    """Encrypt *data* with AES-256-GCM using a key derived from *password*.

    Args:
        data: Plaintext bytes.
        password: Passphrase.
        iterations: PBKDF2 iterations; defaults to ``Settings.kdf_iterations``.

    Returns:
        ``salt (16) || nonce (12) || ciphertext || tag (16)``
    """
    salt = os.urandom(_SALT_LEN)
    nonce = os.urandom(_NONCE_LEN)
    key = _derive_key(password, salt, iterations or get_settings().kdf_iterations)
    ciphertext = AESGCM(key).encrypt(nonce, data, None)
    return salt + nonce + ciphertext


def decrypt(blob: bytes, password: str, iterations: int | None = None) -> bytes:
    """Decrypt a blob produced by :func:`encrypt`.

    Raises:
        StegoCryptoError: On wrong password, tampered data, or truncated blob.
    """
    min_len = _SALT_LEN + _NONCE_LEN + _TAG_LEN
    if len(blob) < min_len:
        raise StegoCryptoError(
            f"Encrypted blob too short ({len(blob)} bytes, minimum {min_len})"
        )
    salt = blob[:_SALT_LEN]
    nonce = blob[_SALT_LEN : _SALT_LEN + _NONCE_LEN]
    ciphertext = blob[_SALT_LEN + _NONCE_LEN :]
    key = _derive_key(password, salt, iterations or get_settings().kdf_iterations)
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise StegoCryptoError("Decryption failed (wrong password or tampered data)") from exc


# ---------------------------------------------------------------------------
# Public keys
# ---------------------------------------------------------------------------


def generate_fingerprint(bundle: bytes) -> str:
    """Return the hex fingerprint of a public key bundle."""
    return hashlib.sha256(bundle).digest()[:FINGERPRINT_BYTES].hex()


@dataclass(frozen=True)
class PublicBundle:
    """An identity's public half: X25519 for encryption, Ed25519 for signing.

    Attributes:
        encryption_key: Raw 32-byte X25519 public key.
        signing_key: Raw 32-byte Ed25519 public key.
    """

    encryption_key: bytes
    signing_key: bytes

    def to_bytes(self) -> bytes:
        return self.encryption_key + self.signing_key

    def to_base64(self) -> str:
        return base64.b64encode(self.to_bytes()).decode("ascii")

    @property
    def fingerprint(self) -> str:
        return generate_fingerprint(self.to_bytes())

    @classmethod
    def from_bytes(cls, data: bytes) -> PublicBundle:
        if len(data) != BUNDLE_SIZE:
            raise StegoCryptoError(
                f"Public key bundle must be {BUNDLE_SIZE} bytes, got {len(data)}"
            )
        return cls(data[:PUBLIC_KEY_SIZE], data[PUBLIC_KEY_SIZE:])

    @classmethod
    def from_base64(cls, text: str) -> PublicBundle:
        try:
            raw = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise StegoCryptoError("Public key is not valid base64") from exc
        return cls.from_bytes(raw)

    @classmethod
    def coerce(cls, key: PublicBundle | bytes | str) -> PublicBundle:
        """Accept a bundle, its raw bytes or its base64 text."""
        if isinstance(key, PublicBundle):
            return key
        if isinstance(key, bytes):
            return cls.from_bytes(key)
        return cls.from_base64(key)


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PrivateKeys:
    """Unlocked private keys of an identity."""

    encryption: X25519PrivateKey
    signing: Ed25519PrivateKey


def _raw_private(key: X25519PrivateKey | Ed25519PrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )


@dataclass(frozen=True)
class Identity:
    """The local user's key pair, private half sealed with a passphrase.

    Attributes:
        name: Display name shared in contact introductions.
        public: Public key bundle.
        sealed_private: Output of :func:`encrypt` over both raw private keys.
    """

    name: str
    public: PublicBundle
    sealed_private: bytes

    @classmethod
    def generate(cls, name: str, passphrase: str) -> Identity:
        encryption = X25519PrivateKey.generate()
        signing = Ed25519PrivateKey.generate()
        public = PublicBundle(
            encryption.public_key().public_bytes(
                serialization.Encoding.Raw, serialization.PublicFormat.Raw
            ),
            signing.public_key().public_bytes(
                serialization.Encoding.Raw, serialization.PublicFormat.Raw
            ),
        )
        sealed = encrypt(_raw_private(encryption) + _raw_private(signing), passphrase)
        return cls(name=name, public=public, sealed_private=sealed)

    @property
    def fingerprint(self) -> str:
        return self.public.fingerprint

    @property
    def public_key(self) -> str:
        return self.public.to_base64()

    def unlock(self, passphrase: str) -> PrivateKeys:
        """Unseal the private keys.

        Raises:
            StegoCryptoError: On a wrong passphrase or damaged key material.
        """
        raw = decrypt(self.sealed_private, passphrase)
        if len(raw) != 2 * _PRIVATE_KEY_LEN:
            raise StegoCryptoError("Sealed private key has an unexpected size")
        return PrivateKeys(
            encryption=X25519PrivateKey.from_private_bytes(raw[:_PRIVATE_KEY_LEN]),
            signing=Ed25519PrivateKey.from_private_bytes(raw[_PRIVATE_KEY_LEN:]),
        )
