"""Universal-input classification: find an envelope in text or an image and open it."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .contacts import (
    INTRO_VERSION,
    MULTI_INTRO_VERSION,
    Contact,
    ContactDirectory,
    parse_contact_intro,
    parse_key_text,
    parse_multi_contact_intro,
)
from .crypto import Identity
from .envelope import SUPPORTED_VERSIONS, dearmor, open_envelope
from .image import LsbImageCarrier, reveal_from_image
from .provider import DecodeMode
from .registry import ProviderRegistry, default_registry
from .storage import InMemoryMessageStore, MessageRecord, MessageStore, record_id
from .tags import has_tag_carrier
from .utils import (
    AlgorithmId,
    ContactIntroDetected,
    CorruptedCarrierError,
    DuplicateMessageError,
    MultiContactIntroDetected,
    SenderUnknownError,
    StegoDecodeError,
)
from .zerowidth import has_zero_width_carrier

logger = logging.getLogger(__name__)

# Visible cover codecs, tried in this order after every other format
COVER_ALGORITHMS: tuple[AlgorithmId, ...] = (
    AlgorithmId.NH03,
    AlgorithmId.NH06,
    AlgorithmId.NH05,
    AlgorithmId.NH04,
)
RAW_VERSIONS = SUPPORTED_VERSIONS | {MULTI_INTRO_VERSION}
LOSS_WARNING = "Some invisible characters were lost in transit; the message was recovered"

_BASE64_TEXT = re.compile(r"[A-Za-z0-9+/]+={0,2}")


class ResultType(str, Enum):
    MESSAGE = "message"
    ID = "id"
    NONE = "none"


class Failure(str, Enum):
    """Why a pass produced no new message."""

    SENDER_UNKNOWN = "SENDER_UNKNOWN"
    DUPLICATE_MESSAGE = "DUPLICATE_MESSAGE"
    CONTACT_INTRO_DETECTED = "CONTACT_INTRO_DETECTED"
    MULTI_CONTACT_INTRO_DETECTED = "MULTI_CONTACT_INTRO_DETECTED"
    DECODE_FAILED = "DECODE_FAILED"


class Source(str, Enum):
    TEXT = "text"
    IMAGE = "image"


@dataclass(frozen=True)
class ProcessedResult:
    """Outcome of one clipboard pass, ready for a UI to render.

    Attributes:
        type: ``message``, ``id`` or ``none``.
        reason: Set when the pass did not yield a new, attributed message.
        sender_name: Display name of the resolved sender.
        sender_fingerprint: Fingerprint of the resolved sender.
        is_broadcast: True for signed broadcasts.
        source: Where the payload was found.
        plaintext: Message bytes, for ``message`` results.
        contacts: Parsed contacts, for ``id`` results.
        warning: Non-fatal note, e.g. lenient recovery.
        algorithm: Codec the payload was extracted with, when known.
    """

    type: ResultType
    reason: Failure | None = None
    sender_name: str | None = None
    sender_fingerprint: str | None = None
    is_broadcast: bool = False
    source: Source = Source.TEXT
    plaintext: bytes | None = None
    contacts: tuple[Contact, ...] = ()
    warning: str | None = None
    algorithm: AlgorithmId | None = None


@dataclass(frozen=True)
class Extraction:
    """Raw bytes pulled out of an input, before classification."""

    data: bytes
    algorithm: AlgorithmId | None = None
    warning: str | None = None


class Analyzer:
    """Extract and open envelopes on behalf of one identity.

    Args:
        identity: The local identity; its keys open encrypted envelopes.
        passphrase: Unlocks *identity* and is handed to the store.
        contacts: Known contacts, used to resolve senders.
        store: Message store for duplicate detection and persistence.
        registry: Provider registry; the process default when omitted.
        image_carrier: Image carrier for the NH07 path.
    """

    def __init__(
        self,
        identity: Identity,
        passphrase: str,
        contacts: ContactDirectory | Iterable[Contact] = (),
        store: MessageStore | None = None,
        registry: ProviderRegistry | None = None,
        image_carrier: LsbImageCarrier | None = None,
    ) -> None:
        self.identity = identity
        self.passphrase = passphrase
        self.contacts = ContactDirectory.coerce(contacts)
        self.store: MessageStore = store if store is not None else InMemoryMessageStore()
        self.registry = registry if registry is not None else default_registry()
        self.image_carrier = image_carrier or LsbImageCarrier()

    def update_contacts(self, contacts: ContactDirectory | Iterable[Contact]) -> None:
        self.contacts = ContactDirectory.coerce(contacts)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze_text(self, text: str) -> ProcessedResult | None:
        """Classify clipboard text.

        Returns:
            A result, or ``None`` when the text carries nothing recognisable.

        Raises:
            ContactIntroDetected: The text introduces one contact.
            MultiContactIntroDetected: The text introduces several contacts.
            DuplicateMessageError: The message was already imported.
            SenderUnknownError: The message is valid but its sender unknown.
            StegoDecodeError: A carrier was found but could not be decoded.
            StegoCryptoError: An envelope was found but could not be opened.
        """
        extraction = self.extract_text(text)
        if extraction is None:
            return None
        return self._classify(extraction, Source.TEXT)

    def analyze_image(self, data: bytes, mime: str) -> ProcessedResult:
        """Classify clipboard image bytes through the NH07 path.

        Raises the same errors as :meth:`analyze_text`; an image without a
        payload raises :class:`StegoDecodeError`.
        """
        logger.debug("Analyzing %s image (%d bytes)", mime, len(data))
        payload = reveal_from_image(data, self.image_carrier)
        return self._classify(Extraction(payload, AlgorithmId.NH07), Source.IMAGE)

    def extract_text(self, text: str) -> Extraction | None:
        """Find the payload bytes in *text*, trying each format in a fixed order.

        Raises:
            ContactIntroDetected: The text is a pasted contact key.
            StegoDecodeError: Invisible characters are present but no
                invisible codec can decode them.
        """
        if has_tag_carrier(text) or has_zero_width_carrier(text):
            return self._extract_invisible(text)

        blob = dearmor(text)
        if blob is not None:
            logger.debug("Found armored message")
            return Extraction(blob)

        contact = parse_key_text(text)
        if contact is not None:
            raise ContactIntroDetected(contact)

        blob = _decode_base64(text)
        if blob is not None:
            logger.debug("Found base64 envelope (version 0x%02x)", blob[0])
            return Extraction(blob)

        for algorithm_id in COVER_ALGORITHMS:
            if algorithm_id not in self.registry:
                continue
            payload = self.registry.get_provider(algorithm_id).detect(text)
            if payload is not None:
                logger.debug("Found %s payload in cover text", algorithm_id.value)
                return Extraction(payload, algorithm_id)
        return None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _extract_invisible(self, text: str) -> Extraction:
        candidates = []
        if has_tag_carrier(text):
            candidates.append(AlgorithmId.NH01)
        if has_zero_width_carrier(text):
            candidates.append(AlgorithmId.NH02)

        error: StegoDecodeError = StegoDecodeError("No invisible codec is registered")
        for algorithm_id in candidates:
            if algorithm_id not in self.registry:
                continue
            provider = self.registry.get_provider(algorithm_id)
            try:
                return Extraction(provider.decode(text, DecodeMode.STRICT), algorithm_id)
            except CorruptedCarrierError:
                logger.debug("%s strict decode failed; retrying leniently", algorithm_id.value)
            except StegoDecodeError as exc:
                logger.debug("%s decode failed: %s", algorithm_id.value, exc)
                error = exc
                continue
            try:
                payload = provider.decode(text, DecodeMode.LENIENT)
            except StegoDecodeError as exc:
                error = exc
                continue
            return Extraction(payload, algorithm_id, LOSS_WARNING)
        raise error

    def _classify(self, extraction: Extraction, source: Source) -> ProcessedResult:
        data = extraction.data
        if not data:
            raise StegoDecodeError("Extracted payload is empty")

        if data[0] == MULTI_INTRO_VERSION:
            contacts = parse_multi_contact_intro(data)
            if contacts is None:
                raise StegoDecodeError("Malformed multi-contact introduction")
            raise MultiContactIntroDetected(contacts)
        if data[0] == INTRO_VERSION:
            contact = parse_contact_intro(data)
            if contact is not None:
                raise ContactIntroDetected(contact)

        duplicate = self.store.find_duplicate_message(data, self.passphrase)
        if duplicate is not None:
            raise DuplicateMessageError(duplicate)

        opened = open_envelope(data, self.identity, self.passphrase, self.contacts)
        if opened.is_broadcast and opened.sender_key == self.identity.public.signing_key:
            logger.debug("Ignoring own broadcast")
            return ProcessedResult(
                type=ResultType.NONE,
                is_broadcast=True,
                source=source,
                algorithm=extraction.algorithm,
            )

        sender = self.contacts.by_fingerprint(opened.sender_fingerprint)
        if sender is None:
            raise SenderUnknownError(opened)

        record = MessageRecord(
            id=record_id(data, opened.is_broadcast, opened.sender_key, opened.plaintext),
            sender_fingerprint=sender.fingerprint,
            plaintext=opened.plaintext,
            ciphertext=data,
            is_broadcast=opened.is_broadcast,
            source=source.value,
        )
        self.store.store_message(record, self.passphrase)
        return ProcessedResult(
            type=ResultType.MESSAGE,
            sender_name=sender.display_name,
            sender_fingerprint=sender.fingerprint,
            is_broadcast=opened.is_broadcast,
            source=source,
            plaintext=opened.plaintext,
            warning=extraction.warning,
            algorithm=extraction.algorithm,
        )


def _decode_base64(text: str) -> bytes | None:
    compact = "".join(text.split())
    if len(compact) < 4 or len(compact) % 4 or not _BASE64_TEXT.fullmatch(compact):
        return None
    try:
        blob = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        return None
    if len(blob) < 2 or blob[0] not in RAW_VERSIONS:
        return None
    return blob
