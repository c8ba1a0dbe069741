"""Tests for the universal-input analyzer."""

from __future__ import annotations

import base64
import re

import pytest

from nahan import Analyzer, ProviderRegistry, RegistryBuilder
from nahan.analysis import LOSS_WARNING, ResultType, Source
from nahan.contacts import Contact, build_contact_intro, build_multi_contact_intro
from nahan.crypto import Identity
from nahan.envelope import armor, build_encrypted, build_signed
from nahan.image import hide_in_image
from nahan.provider import DecodeMode
from nahan.storage import InMemoryMessageStore
from nahan.tags import UnicodeTagsProvider
from nahan.utils import (
    AlgorithmId,
    ContactIntroDetected,
    DataIncompleteError,
    DuplicateMessageError,
    MultiContactIntroDetected,
    SenderUnknownError,
    StegoDecodeError,
    UnsupportedEnvelopeVersionError,
)
from nahan.zerowidth import ZeroWidthProvider

_SLOT = re.compile(r"\s+([\u200c\u200d]+)")


@pytest.fixture
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def analyzer(
    bob: Identity,
    passphrase: str,
    alice_contact: Contact,
    store: InMemoryMessageStore,
    registry: ProviderRegistry,
) -> Analyzer:
    """Bob's analyzer, knowing Alice."""
    return Analyzer(bob, passphrase, [alice_contact], store=store, registry=registry)


# ---------------------------------------------------------------------------
# Extraction paths
# ---------------------------------------------------------------------------


class TestTextPaths:
    """Each text format reaches the envelope layer."""

    def test_kashida_cover(
        self,
        analyzer: Analyzer,
        alice: Identity,
        bob: Identity,
        passphrase: str,
        registry: ProviderRegistry,
        persian_cover: str,
        store: InMemoryMessageStore,
    ) -> None:
        blob = build_encrypted(b"Hello there", bob.public, alice, passphrase)
        stego = registry.get_provider(AlgorithmId.NH06).encode(blob, persian_cover)
        result = analyzer.analyze_text(stego)
        assert result is not None
        assert result.type is ResultType.MESSAGE
        assert result.reason is None
        assert result.sender_name == "Alice"
        assert result.sender_fingerprint == alice.fingerprint
        assert result.plaintext == b"Hello there"
        assert not result.is_broadcast
        assert result.algorithm is AlgorithmId.NH06
        assert result.source is Source.TEXT
        assert len(store) == 1

    def test_armor(self, analyzer: Analyzer, alice: Identity, bob: Identity, passphrase: str) -> None:
        blob = build_encrypted(b"armored", bob.public, alice, passphrase)
        result = analyzer.analyze_text(f"see below\n\n{armor(blob)}\n")
        assert result is not None
        assert result.plaintext == b"armored"
        assert result.algorithm is None

    def test_base64_broadcast(self, analyzer: Analyzer, alice: Identity, passphrase: str) -> None:
        blob = build_signed(b"hello everyone", alice, passphrase)
        result = analyzer.analyze_text(base64.b64encode(blob).decode())
        assert result is not None
        assert result.type is ResultType.MESSAGE
        assert result.is_broadcast
        assert result.sender_name == "Alice"

    def test_emoji(
        self,
        analyzer: Analyzer,
        alice: Identity,
        passphrase: str,
        registry: ProviderRegistry,
    ) -> None:
        blob = build_signed(b"emoji", alice, passphrase)
        result = analyzer.analyze_text(registry.get_provider(AlgorithmId.NH03).encode(blob))
        assert result is not None
        assert result.plaintext == b"emoji"
        assert result.algorithm is AlgorithmId.NH03

    def test_tag_characters(
        self,
        analyzer: Analyzer,
        alice: Identity,
        passphrase: str,
        registry: ProviderRegistry,
        english_cover: str,
    ) -> None:
        blob = build_signed(b"tagged", alice, passphrase)
        stego = registry.get_provider(AlgorithmId.NH01).encode(blob, english_cover)
        result = analyzer.analyze_text(stego)
        assert result is not None
        assert result.algorithm is AlgorithmId.NH01
        assert result.warning is None

    def test_zero_width_recovered_leniently(
        self,
        analyzer: Analyzer,
        alice: Identity,
        passphrase: str,
        registry: ProviderRegistry,
        long_english_cover: str,
    ) -> None:
        blob = build_signed(b"broadcast", alice, passphrase)
        stego = registry.get_provider(AlgorithmId.NH02).encode(blob, long_english_cover)
        slots = list(_SLOT.finditer(stego))
        drop = {slots[4 * b].start(1) for b in (3, 10, 20)}
        damaged = "".join(ch for i, ch in enumerate(stego) if i not in drop)
        result = analyzer.analyze_text(damaged)
        assert result is not None
        assert result.plaintext == b"broadcast"
        assert result.algorithm is AlgorithmId.NH02
        assert result.warning == LOSS_WARNING

    def test_tag_failure_falls_through_to_zero_width(
        self,
        bob: Identity,
        alice: Identity,
        passphrase: str,
        alice_contact: Contact,
        long_english_cover: str,
    ) -> None:
        class TruncatedTags(UnicodeTagsProvider):
            def decode(self, stego_text: str, mode: DecodeMode = DecodeMode.STRICT) -> bytes:
                raise DataIncompleteError("Tag run ends mid-frame")

        zero_width = ZeroWidthProvider()
        registry = RegistryBuilder().register(TruncatedTags()).register(zero_width).build()
        analyzer = Analyzer(bob, passphrase, [alice_contact], registry=registry)

        stego = zero_width.encode(build_signed(b"both carriers", alice, passphrase), long_english_cover)
        result = analyzer.analyze_text(stego + "\U000e0041")
        assert result is not None
        assert result.algorithm is AlgorithmId.NH02
        assert result.plaintext == b"both carriers"
        assert result.warning is None

    def test_plain_text(self, analyzer: Analyzer) -> None:
        assert analyzer.analyze_text("Nothing hidden in here at all.") is None

    def test_unknown_armored_version(self, analyzer: Analyzer) -> None:
        with pytest.raises(UnsupportedEnvelopeVersionError):
            analyzer.analyze_text(armor(b"\x09" + b"\x00" * 40))


# ---------------------------------------------------------------------------
# Classification outcomes
# ---------------------------------------------------------------------------


class TestOutcomes:
    """Duplicate, self, unknown-sender and introduction outcomes."""

    def test_duplicate(self, analyzer: Analyzer, alice: Identity, bob: Identity, passphrase: str) -> None:
        text = armor(build_encrypted(b"once", bob.public, alice, passphrase))
        assert analyzer.analyze_text(text) is not None
        with pytest.raises(DuplicateMessageError) as excinfo:
            analyzer.analyze_text(text)
        assert excinfo.value.record.plaintext == b"once"

    def test_own_broadcast(self, alice: Identity, passphrase: str) -> None:
        analyzer = Analyzer(alice, passphrase)
        result = analyzer.analyze_text(armor(build_signed(b"mine", alice, passphrase)))
        assert result is not None
        assert result.type is ResultType.NONE
        assert result.is_broadcast

    def test_unknown_sender(
        self, alice: Identity, bob: Identity, alice_contact: Contact, passphrase: str
    ) -> None:
        analyzer = Analyzer(bob, passphrase)
        text = armor(build_encrypted(b"who am i", bob.public, alice, passphrase))
        with pytest.raises(SenderUnknownError) as excinfo:
            analyzer.analyze_text(text)
        assert excinfo.value.envelope.plaintext == b"who am i"
        analyzer.update_contacts([alice_contact])
        result = analyzer.analyze_text(text)
        assert result is not None
        assert result.sender_name == "Alice"

    def test_contact_intro(self, analyzer: Analyzer, bob: Identity) -> None:
        packet = build_contact_intro("Bob", bob.public_key)
        with pytest.raises(ContactIntroDetected) as excinfo:
            analyzer.analyze_text(base64.b64encode(packet).decode())
        assert excinfo.value.contact.fingerprint == bob.fingerprint

    def test_pasted_key(self, analyzer: Analyzer, bob: Identity) -> None:
        with pytest.raises(ContactIntroDetected) as excinfo:
            analyzer.analyze_text(f"Bob+{bob.public_key}")
        assert excinfo.value.contact.display_name == "Bob"

    def test_multi_intro(
        self, analyzer: Analyzer, alice_contact: Contact, bob_contact: Contact
    ) -> None:
        packet = build_multi_contact_intro([alice_contact, bob_contact])
        with pytest.raises(MultiContactIntroDetected) as excinfo:
            analyzer.analyze_text(base64.b64encode(packet).decode())
        assert len(excinfo.value.contacts) == 2

    def test_malformed_multi_intro(self, analyzer: Analyzer) -> None:
        with pytest.raises(StegoDecodeError, match="Malformed multi-contact"):
            analyzer.analyze_text(base64.b64encode(b"\x03garbage").decode())


class TestImage:
    """NH07 image path."""

    def test_analyze_image(self, analyzer: Analyzer, alice: Identity, passphrase: str) -> None:
        png = hide_in_image(build_signed(b"in a picture", alice, passphrase))
        result = analyzer.analyze_image(png, "image/png")
        assert result.type is ResultType.MESSAGE
        assert result.source is Source.IMAGE
        assert result.algorithm is AlgorithmId.NH07
        assert result.plaintext == b"in a picture"

    def test_image_without_payload(self, analyzer: Analyzer) -> None:
        with pytest.raises(StegoDecodeError):
            analyzer.analyze_image(b"not an image", "image/png")
