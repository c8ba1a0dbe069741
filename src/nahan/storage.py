"""Message persistence interface and an in-memory implementation."""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass, field
from typing import Protocol


def content_hash(ciphertext: bytes) -> str:
    """Return the SHA-256 hex digest used to recognise an imported message."""
    return hashlib.sha256(ciphertext).hexdigest()


@dataclass(frozen=True)
class MessageRecord:
    """An imported message.

    Attributes:
        id: Stable record identifier.
        sender_fingerprint: Fingerprint of the resolved sender.
        plaintext: Decrypted or verified message bytes.
        ciphertext: The envelope as received.
        is_broadcast: True for signed broadcasts.
        source: ``"text"`` or ``"image"``.
        created_at: Import time (seconds since the epoch).
    """

    id: str
    sender_fingerprint: str
    plaintext: bytes
    ciphertext: bytes
    is_broadcast: bool
    source: str
    created_at: float = field(default_factory=time.time)


def record_id(ciphertext: bytes, is_broadcast: bool, sender_key: bytes = b"", plaintext: bytes = b"") -> str:
    """Derive a record id: broadcasts hash sender key and message, direct messages the envelope."""
    if is_broadcast:
        return "msg_BROADCAST_" + hashlib.sha256(sender_key + plaintext).hexdigest()
    return "msg_" + content_hash(ciphertext)[:32]


class MessageStore(Protocol):
    def store_message(self, record: MessageRecord, passphrase: str) -> None: ...

    def find_duplicate_message(self, ciphertext: bytes, passphrase: str) -> MessageRecord | None: ...


class InMemoryMessageStore:
    """Process-local store keyed by the content hash of the envelope.

    The passphrase is accepted for interface compatibility; nothing is
    encrypted at rest.
    """

    def __init__(self) -> None:
        self._records: dict[str, MessageRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def store_message(self, record: MessageRecord, passphrase: str) -> None:
        self._records[content_hash(record.ciphertext)] = record

    def find_duplicate_message(self, ciphertext: bytes, passphrase: str) -> MessageRecord | None:
        return self._records.get(content_hash(ciphertext))

    def messages(self) -> list[MessageRecord]:
        return sorted(self._records.values(), key=lambda r: r.created_at)
