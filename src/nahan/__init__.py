"""nahan: hide encrypted messages in ordinary-looking text and images.

Seven interchangeable algorithms (NH01-NH07) turn envelope bytes into a
stego string, tagged with a 4-byte magic header so the receiving side can
tell them apart. A clipboard analyzer finds and opens whatever arrives.

Example::

    from nahan import default_registry

    hybrid = default_registry().get_provider("NH06")
    stego = hybrid.encode(b"secret", cover_text)
    assert hybrid.decode(stego) == b"secret"
"""

from .analysis import Analyzer, Failure, ProcessedResult, ResultType, Source
from .clipboard import ClipboardItem, MemoryClipboard
from .contacts import Contact, ContactDirectory
from .cover import calculate_stealth_ratio, get_recommended_cover
from .crypto import Identity, PublicBundle
from .detector import ClipboardDetector, DetectorState
from .envelope import build_encrypted, build_signed, open_envelope
from .provider import DecodeMode, StegoProvider
from .registry import ProviderRegistry, RegistryBuilder, create_default_registry, default_registry
from .storage import InMemoryMessageStore, MessageRecord
from .utils import (
    AlgorithmId,
    AlgorithmMismatchError,
    CapacityExceededError,
    CorruptedCarrierError,
    StegoCryptoError,
    StegoDecodeError,
    StegoEncodeError,
    StegoError,
)

__all__ = [
    "AlgorithmId",
    "AlgorithmMismatchError",
    "Analyzer",
    "CapacityExceededError",
    "ClipboardDetector",
    "ClipboardItem",
    "Contact",
    "ContactDirectory",
    "CorruptedCarrierError",
    "DecodeMode",
    "DetectorState",
    "Failure",
    "Identity",
    "InMemoryMessageStore",
    "MemoryClipboard",
    "MessageRecord",
    "ProcessedResult",
    "ProviderRegistry",
    "PublicBundle",
    "RegistryBuilder",
    "ResultType",
    "Source",
    "StegoCryptoError",
    "StegoDecodeError",
    "StegoEncodeError",
    "StegoError",
    "StegoProvider",
    "build_encrypted",
    "build_signed",
    "calculate_stealth_ratio",
    "create_default_registry",
    "default_registry",
    "get_recommended_cover",
    "open_envelope",
]
