"""Immutable algorithm registry built once and handed to the components that need it."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from functools import lru_cache
from types import MappingProxyType

from .base122 import Base122Provider
from .emoji import EmojiProvider
from .hybrid import HybridProvider
from .kashida import ScriptExpertProvider
from .provider import DecodeMode, StegoProvider
from .tags import UnicodeTagsProvider
from .utils import AlgorithmId, StegoDecodeError, UnregisteredAlgorithmError
from .whitespace import WhitespaceProvider
from .zerowidth import ZeroWidthProvider

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = AlgorithmId.NH07


def _coerce_id(algorithm_id: AlgorithmId | str) -> AlgorithmId:
    try:
        return AlgorithmId(str(algorithm_id).upper())
    except ValueError:
        raise UnregisteredAlgorithmError(f"Unknown algorithm: {algorithm_id}") from None


class ProviderRegistry(Mapping[AlgorithmId, StegoProvider]):
    """Read-only map from :class:`AlgorithmId` to provider instance."""

    def __init__(self, providers: Mapping[AlgorithmId, StegoProvider]) -> None:
        self._providers = MappingProxyType(
            {k: providers[k] for k in sorted(providers, key=lambda a: a.digit)}
        )

    def __getitem__(self, key: AlgorithmId | str) -> StegoProvider:
        return self.get_provider(key)

    def __iter__(self) -> Iterator[AlgorithmId]:
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, key: object) -> bool:
        try:
            return _coerce_id(key) in self._providers  # type: ignore[arg-type]
        except UnregisteredAlgorithmError:
            return False

    def get_provider(self, algorithm_id: AlgorithmId | str) -> StegoProvider:
        """Return the provider for *algorithm_id*.

        Raises:
            UnregisteredAlgorithmError: If the algorithm was never registered.
        """
        key = _coerce_id(algorithm_id)
        try:
            return self._providers[key]
        except KeyError:
            raise UnregisteredAlgorithmError(
                f"No provider registered for algorithm: {key.value}"
            ) from None

    def get_all_providers(self) -> list[StegoProvider]:
        """Return every registered provider in identifier order."""
        return list(self._providers.values())

    def get_default_provider(self) -> StegoProvider:
        return self.get_provider(DEFAULT_ALGORITHM)

    def ids(self) -> list[AlgorithmId]:
        return list(self._providers)

    def auto_decode(
        self, stego_text: str, mode: DecodeMode = DecodeMode.STRICT
    ) -> tuple[AlgorithmId, bytes]:
        """Find the provider whose magic header *stego_text* carries.

        Only providers that support auto-detection are tried, in identifier
        order; the first header match wins.

        Returns:
            ``(algorithm_id, payload)``

        Raises:
            StegoDecodeError: If no provider recognises the text.
        """
        for provider in self._providers.values():
            if not provider.metadata.supports_auto_detect:
                continue
            payload = provider.detect(stego_text, mode)
            if payload is not None:
                return provider.algorithm_id, payload
        raise StegoDecodeError("No registered algorithm recognises this text")


class RegistryBuilder:
    """Collects providers before freezing them into a :class:`ProviderRegistry`."""

    def __init__(self) -> None:
        self._providers: dict[AlgorithmId, StegoProvider] = {}

    def register(self, provider: StegoProvider) -> RegistryBuilder:
        if provider.algorithm_id in self._providers:
            logger.warning("Overwriting provider for algorithm %s", provider.algorithm_id.value)
        self._providers[provider.algorithm_id] = provider
        return self

    def build(self) -> ProviderRegistry:
        return ProviderRegistry(self._providers)


def create_default_registry() -> ProviderRegistry:
    """Build a registry holding all seven providers."""
    return (
        RegistryBuilder()
        .register(UnicodeTagsProvider())
        .register(ZeroWidthProvider())
        .register(EmojiProvider())
        .register(WhitespaceProvider())
        .register(ScriptExpertProvider())
        .register(HybridProvider())
        .register(Base122Provider())
        .build()
    )


@lru_cache(maxsize=1)
def default_registry() -> ProviderRegistry:
    """Return the process-wide registry, built on first use."""
    return create_default_registry()
