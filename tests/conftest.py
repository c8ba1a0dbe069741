"""Shared pytest fixtures for nahan tests."""

from __future__ import annotations

import pytest

from nahan import Contact, Identity, ProviderRegistry, create_default_registry
from nahan.config import get_settings

PASSPHRASE = "correct horse battery staple"

ENGLISH_SENTENCE = "The quick brown fox jumps over the lazy dog"
# 10 words, 13 kashida positions
PERSIAN_SENTENCE = "امروز هوا بسیار خوب است و ما به پارک رفتیم"


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch: pytest.MonkeyPatch):
    """Keep key sealing cheap and give every test fresh settings."""
    monkeypatch.setenv("NAHAN_KDF_ITERATIONS", "1000")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def registry() -> ProviderRegistry:
    return create_default_registry()


@pytest.fixture(scope="session")
def english_cover() -> str:
    """270 words, enough for a 16-byte payload on every channel."""
    return " ".join([ENGLISH_SENTENCE] * 30)


@pytest.fixture(scope="session")
def long_english_cover() -> str:
    """2700 words, room for a 256-byte payload on every channel."""
    return " ".join([ENGLISH_SENTENCE] * 300)


@pytest.fixture(scope="session")
def persian_cover() -> str:
    """420 words of Persian, enough for a short encrypted envelope on NH06."""
    return " ".join([PERSIAN_SENTENCE] * 42)


@pytest.fixture(scope="session")
def long_persian_cover() -> str:
    return " ".join([PERSIAN_SENTENCE] * 250)


@pytest.fixture
def passphrase() -> str:
    return PASSPHRASE


@pytest.fixture
def alice() -> Identity:
    return Identity.generate("Alice", PASSPHRASE)


@pytest.fixture
def bob() -> Identity:
    return Identity.generate("Bob", PASSPHRASE)


@pytest.fixture
def alice_contact(alice: Identity) -> Contact:
    return Contact.from_public_key("Alice", alice.public_key)


@pytest.fixture
def bob_contact(bob: Identity) -> Contact:
    return Contact.from_public_key("Bob", bob.public_key)
