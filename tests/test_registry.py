"""Tests for the provider registry and auto-detection."""

from __future__ import annotations

import logging

import pytest

from nahan import ProviderRegistry, RegistryBuilder, default_registry
from nahan.emoji import EmojiProvider
from nahan.utils import AlgorithmId, StegoDecodeError, UnregisteredAlgorithmError
from nahan.whitespace import WhitespaceProvider


class TestLookup:
    """Provider lookup by identifier."""

    def test_by_enum_and_string(self, registry: ProviderRegistry) -> None:
        assert registry.get_provider(AlgorithmId.NH04) is registry.get_provider("nh04")
        assert registry["NH04"] is registry.get_provider(AlgorithmId.NH04)

    def test_unknown_id(self, registry: ProviderRegistry) -> None:
        with pytest.raises(UnregisteredAlgorithmError, match="Unknown algorithm: NH09"):
            registry.get_provider("NH09")

    def test_unregistered_id(self) -> None:
        partial = RegistryBuilder().register(EmojiProvider()).build()
        with pytest.raises(KeyError):
            partial.get_provider(AlgorithmId.NH01)
        assert AlgorithmId.NH01 not in partial
        assert "NH03" in partial
        assert len(partial) == 1

    def test_default_provider(self, registry: ProviderRegistry) -> None:
        assert registry.get_default_provider().algorithm_id is AlgorithmId.NH07

    def test_ids_in_order(self, registry: ProviderRegistry) -> None:
        assert registry.ids() == list(AlgorithmId)

    def test_immutable(self, registry: ProviderRegistry) -> None:
        with pytest.raises(TypeError):
            registry["NH01"] = EmojiProvider()  # type: ignore[index]

    def test_process_default_is_cached(self) -> None:
        assert default_registry() is default_registry()


class TestBuilder:
    """Registry construction."""

    def test_overwrite_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        builder = RegistryBuilder().register(WhitespaceProvider())
        with caplog.at_level(logging.WARNING, logger="nahan"):
            builder.register(WhitespaceProvider())
        assert "Overwriting provider for algorithm NH04" in caplog.text

    def test_build_snapshots(self) -> None:
        builder = RegistryBuilder().register(EmojiProvider())
        registry = builder.build()
        builder.register(WhitespaceProvider())
        assert len(registry) == 1


class TestAutoDecode:
    """Header-driven detection over all auto-detect providers."""

    @pytest.mark.parametrize(
        "algorithm_id",
        [
            AlgorithmId.NH01,
            AlgorithmId.NH02,
            AlgorithmId.NH03,
            AlgorithmId.NH04,
            AlgorithmId.NH05,
            AlgorithmId.NH06,
        ],
    )
    def test_detects_each(
        self, registry: ProviderRegistry, english_cover: str, algorithm_id: AlgorithmId
    ) -> None:
        stego = registry.get_provider(algorithm_id).encode(b"auto", english_cover)
        assert registry.auto_decode(stego) == (algorithm_id, b"auto")

    def test_nothing_found(self, registry: ProviderRegistry) -> None:
        with pytest.raises(StegoDecodeError, match="No registered algorithm"):
            registry.auto_decode("Nothing hidden in here at all.")

    def test_base122_not_auto_detected(self, registry: ProviderRegistry) -> None:
        stego = registry.get_provider(AlgorithmId.NH07).encode(b"auto")
        with pytest.raises(StegoDecodeError):
            registry.auto_decode(stego)
