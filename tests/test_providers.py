"""Round-trip, capacity and fidelity tests for the seven providers."""

from __future__ import annotations

import logging

import pytest

from nahan import ProviderRegistry
from nahan.provider import DecodeMode
from nahan.script import KASHIDA, is_homoglyph
from nahan.tags import PALETTE_BASE, has_tag_carrier
from nahan.utils import (
    AlgorithmId,
    AlgorithmMismatchError,
    CapacityExceededError,
    CorruptedCarrierError,
    NoCarrierError,
    StegoDecodeError,
    StegoEncodeError,
    StegoError,
)
from nahan.zerowidth import ZWJ, ZWNJ, has_zero_width_carrier

PAYLOAD_SIZES = (0, 1, 16, 256)


def _flip_crc_symbol(stego: str) -> str:
    """Flip one bit of the second-to-last tag symbol, which lies inside the CRC."""
    pos = [i for i, ch in enumerate(stego) if has_tag_carrier(ch)][-2]
    index = ord(stego[pos]) - PALETTE_BASE
    return stego[:pos] + chr(PALETTE_BASE + (index ^ 1)) + stego[pos + 1 :]


@pytest.fixture(scope="module")
def covers(long_english_cover: str, long_persian_cover: str) -> dict[AlgorithmId, str | None]:
    """A cover per algorithm that fits the largest round-trip payload."""
    return {
        AlgorithmId.NH01: long_english_cover,
        AlgorithmId.NH02: long_english_cover,
        AlgorithmId.NH03: None,
        AlgorithmId.NH04: long_english_cover,
        AlgorithmId.NH05: long_english_cover,
        AlgorithmId.NH06: long_persian_cover,
        AlgorithmId.NH07: None,
    }


class TestRoundTrip:
    """decode(encode(payload, cover)) == payload for every algorithm."""

    @pytest.mark.parametrize("size", PAYLOAD_SIZES)
    @pytest.mark.parametrize("algorithm_id", list(AlgorithmId))
    def test_sizes(
        self,
        registry: ProviderRegistry,
        covers: dict[AlgorithmId, str | None],
        algorithm_id: AlgorithmId,
        size: int,
    ) -> None:
        provider = registry.get_provider(algorithm_id)
        payload = bytes((i * 37 + 11) % 256 for i in range(size))
        stego = provider.encode(payload, covers[algorithm_id])
        assert provider.decode(stego) == payload

    def test_script_expert_persian(self, registry: ProviderRegistry, persian_cover: str) -> None:
        provider = registry.get_provider(AlgorithmId.NH05)
        stego = provider.encode(b"salam", persian_cover)
        assert KASHIDA in stego
        assert provider.decode(stego) == b"salam"

    def test_hybrid_english(self, registry: ProviderRegistry, english_cover: str) -> None:
        provider = registry.get_provider(AlgorithmId.NH06)
        stego = provider.encode(b"hello", english_cover)
        assert any(is_homoglyph(ch) for ch in stego)
        assert provider.decode(stego) == b"hello"

    def test_emoji_output(self, registry: ProviderRegistry) -> None:
        stego = registry.get_provider(AlgorithmId.NH03).encode(b"\x00\xff")
        # header (4 bytes) + payload (2 bytes), two emoji per byte
        assert len(stego) >= 12
        assert not any(ch.isascii() for ch in stego)

    def test_emoji_variation_selectors_ignored(self, registry: ProviderRegistry) -> None:
        provider = registry.get_provider(AlgorithmId.NH03)
        stego = provider.encode(b"hi")
        assert provider.decode(stego.replace("\U0001F600", "\U0001F600\ufe0f")) == b"hi"

    def test_invisible_codecs_are_invisible(
        self, registry: ProviderRegistry, english_cover: str
    ) -> None:
        tags = registry.get_provider(AlgorithmId.NH01).encode(b"x", english_cover)
        zero_width = registry.get_provider(AlgorithmId.NH02).encode(b"x", english_cover)
        assert has_tag_carrier(tags)
        assert has_zero_width_carrier(zero_width)
        assert set(zero_width) - set(english_cover) == {ZWJ, ZWNJ}


class TestCapacity:
    """Encoding at max_payload_size succeeds; one byte more fails."""

    @pytest.mark.parametrize(
        "algorithm_id",
        [AlgorithmId.NH02, AlgorithmId.NH04, AlgorithmId.NH05, AlgorithmId.NH06],
    )
    def test_boundary(
        self, registry: ProviderRegistry, english_cover: str, algorithm_id: AlgorithmId
    ) -> None:
        provider = registry.get_provider(algorithm_id)
        size = provider.max_payload_size(english_cover)
        assert size > 0
        assert provider.frame_size(size) <= provider.capacity(english_cover)

        payload = b"\xa5" * size
        assert provider.decode(provider.encode(payload, english_cover)) == payload
        with pytest.raises(CapacityExceededError):
            provider.encode(payload + b"\xa5", english_cover)

    def test_whitespace_capacity(self, registry: ProviderRegistry) -> None:
        provider = registry.get_provider(AlgorithmId.NH04)
        cover = " ".join(["word"] * 81)  # 80 space runs
        assert provider.capacity(cover) == 10
        assert provider.max_payload_size(cover) == 2

    def test_zero_width_capacity(self, registry: ProviderRegistry) -> None:
        provider = registry.get_provider(AlgorithmId.NH02)
        cover = " ".join(["word"] * 41)  # 40 boundaries
        assert provider.capacity(cover) == 10

    def test_too_small_cover(self, registry: ProviderRegistry) -> None:
        with pytest.raises(CapacityExceededError, match="payload too large"):
            registry.get_provider(AlgorithmId.NH04).encode(b"data", "just a few words")

    def test_unbounded_channels(self, registry: ProviderRegistry) -> None:
        assert registry.get_provider(AlgorithmId.NH03).capacity() > 1 << 30
        assert registry.get_provider(AlgorithmId.NH01).capacity("x") > 1 << 30
        assert registry.get_provider(AlgorithmId.NH01).capacity("") == 0

    def test_overhead(self, registry: ProviderRegistry) -> None:
        assert registry.get_provider(AlgorithmId.NH03).overhead() == 4
        assert registry.get_provider(AlgorithmId.NH04).overhead() == 8
        assert registry.get_provider(AlgorithmId.NH01).overhead() == 12


class TestCoverValidation:
    """Cover-text requirements."""

    @pytest.mark.parametrize(
        "algorithm_id",
        [AlgorithmId.NH01, AlgorithmId.NH02, AlgorithmId.NH04, AlgorithmId.NH05, AlgorithmId.NH06],
    )
    def test_cover_required(self, registry: ProviderRegistry, algorithm_id: AlgorithmId) -> None:
        with pytest.raises(StegoEncodeError, match="requires cover text"):
            registry.get_provider(algorithm_id).encode(b"x")

    def test_mixed_language_rejected(self, registry: ProviderRegistry) -> None:
        cover = " ".join(["test سلام"] * 50)
        for algorithm_id in (AlgorithmId.NH05, AlgorithmId.NH06):
            with pytest.raises(StegoEncodeError, match="dominant language"):
                registry.get_provider(algorithm_id).encode(b"x", cover)

    def test_existing_kashida_rejected(self, registry: ProviderRegistry, persian_cover: str) -> None:
        cover = persian_cover.replace("بسیار", "بس\u0640یار", 1)
        with pytest.raises(StegoEncodeError, match="kashida"):
            registry.get_provider(AlgorithmId.NH05).encode(b"x", cover)

    def test_already_encoded_cover_rejected(
        self, registry: ProviderRegistry, english_cover: str
    ) -> None:
        provider = registry.get_provider(AlgorithmId.NH02)
        stego = provider.encode(b"x", english_cover)
        with pytest.raises(StegoEncodeError, match="zero-width"):
            provider.encode(b"y", stego)


class TestCarrierFidelity:
    """Stripping the hidden channel gives back the cover exactly."""

    @pytest.mark.parametrize("algorithm_id", [AlgorithmId.NH02, AlgorithmId.NH04, AlgorithmId.NH06])
    def test_english(
        self, registry: ProviderRegistry, english_cover: str, algorithm_id: AlgorithmId
    ) -> None:
        provider = registry.get_provider(algorithm_id)
        stego = provider.encode(b"secret", english_cover)
        assert stego != english_cover
        assert provider.strip(stego) == english_cover

    @pytest.mark.parametrize("algorithm_id", [AlgorithmId.NH04, AlgorithmId.NH05, AlgorithmId.NH06])
    def test_persian(
        self, registry: ProviderRegistry, persian_cover: str, algorithm_id: AlgorithmId
    ) -> None:
        provider = registry.get_provider(algorithm_id)
        assert provider.strip(provider.encode(b"secret", persian_cover)) == persian_cover

    def test_tags_strip(self, registry: ProviderRegistry, english_cover: str) -> None:
        provider = registry.get_provider(AlgorithmId.NH01)
        assert provider.strip(provider.encode(b"secret", english_cover)) == english_cover

    def test_emoji_has_no_cover(self, registry: ProviderRegistry) -> None:
        with pytest.raises(StegoError, match="does not use a cover text"):
            registry.get_provider(AlgorithmId.NH03).strip("anything")


class TestCrossAlgorithm:
    """Decoders never silently accept another algorithm's output."""

    def test_script_expert_read_by_hybrid(
        self, registry: ProviderRegistry, english_cover: str
    ) -> None:
        payload = b"cross-check"
        stego = registry.get_provider(AlgorithmId.NH05).encode(payload, english_cover)
        try:
            result = registry.get_provider(AlgorithmId.NH06).decode(stego)
        except StegoDecodeError:
            return
        assert result != payload

    def test_header_mismatch(self, registry: ProviderRegistry, english_cover: str) -> None:
        # Same frame under another algorithm's header
        whitespace = registry.get_provider(AlgorithmId.NH04)
        stego = whitespace.encode(b"abc", english_cover)
        tampered_frame = whitespace._frame(b"abc").replace(b"NH04", b"NH06")
        forged = whitespace._embed(tampered_frame, english_cover)
        assert forged != stego
        with pytest.raises(AlgorithmMismatchError, match="encoded with NH06 cannot be decoded by NH04"):
            whitespace.decode(forged)

    def test_detect_requires_own_header(
        self, registry: ProviderRegistry, english_cover: str
    ) -> None:
        stego = registry.get_provider(AlgorithmId.NH04).encode(b"abc", english_cover)
        assert registry.get_provider(AlgorithmId.NH05).detect(stego) is None
        assert registry.get_provider(AlgorithmId.NH04).detect(stego) == b"abc"


class TestDecodeErrors:
    """Typed failures on bad input."""

    def test_no_tags(self, registry: ProviderRegistry) -> None:
        with pytest.raises(NoCarrierError, match="No valid camouflage data"):
            registry.get_provider(AlgorithmId.NH01).decode("plain text")

    def test_no_zero_width(self, registry: ProviderRegistry) -> None:
        with pytest.raises(NoCarrierError):
            registry.get_provider(AlgorithmId.NH02).decode("plain text")

    def test_invalid_emoji(self, registry: ProviderRegistry) -> None:
        with pytest.raises(StegoDecodeError, match="Invalid character"):
            registry.get_provider(AlgorithmId.NH03).decode("\U0001F600abc")

    def test_odd_emoji(self, registry: ProviderRegistry) -> None:
        with pytest.raises(StegoDecodeError, match="Odd number"):
            registry.get_provider(AlgorithmId.NH03).decode("\U0001F600")

    def test_tags_checksum(self, registry: ProviderRegistry, english_cover: str) -> None:
        provider = registry.get_provider(AlgorithmId.NH01)
        stego = provider.encode(b"checksum me", english_cover)
        damaged = _flip_crc_symbol(stego)
        with pytest.raises(CorruptedCarrierError, match="corrupted"):
            provider.decode(damaged)

    def test_tags_checksum_lenient(
        self,
        registry: ProviderRegistry,
        english_cover: str,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        provider = registry.get_provider(AlgorithmId.NH01)
        stego = provider.encode(b"checksum me", english_cover)
        damaged = _flip_crc_symbol(stego)
        with caplog.at_level(logging.WARNING, logger="nahan"):
            assert provider.decode(damaged, DecodeMode.LENIENT) == b"checksum me"
        assert "checksum mismatch" in caplog.text

    def test_tags_leftover_warning(
        self, registry: ProviderRegistry, caplog: pytest.LogCaptureFixture
    ) -> None:
        provider = registry.get_provider(AlgorithmId.NH01)
        with caplog.at_level(logging.WARNING, logger="nahan"):
            stego = provider.encode(b"0123456789abcdef", "Hi")
        assert "appending" in caplog.text
        assert provider.decode(stego) == b"0123456789abcdef"


class TestMetadata:
    """Static algorithm descriptions."""

    def test_all_registered(self, registry: ProviderRegistry) -> None:
        assert [p.algorithm_id for p in registry.get_all_providers()] == list(AlgorithmId)
        for provider in registry.get_all_providers():
            assert provider.metadata.id is provider.algorithm_id
            assert 1 <= provider.metadata.stealth_level <= 5

    def test_cover_requirements(self, registry: ProviderRegistry) -> None:
        no_cover = {p.algorithm_id for p in registry.get_all_providers() if not p.metadata.requires_cover_text}
        assert no_cover == {AlgorithmId.NH03, AlgorithmId.NH07}

    def test_auto_detect(self, registry: ProviderRegistry) -> None:
        assert not registry.get_provider(AlgorithmId.NH07).metadata.supports_auto_detect
        assert registry.get_provider(AlgorithmId.NH06).metadata.supports_auto_detect
