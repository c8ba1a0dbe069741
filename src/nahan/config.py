"""Runtime configuration loaded from the environment (and ``.env``)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from .utils import ConfigError

# Defaults
DEFAULT_LOG_LEVEL = "WARNING"
# Fraction of an NH02 frame's bytes that may be erased before lenient
# decoding gives up. Must stay at or below the per-block parity ratio
# (26 / 255) for recovery to be guaranteed.
DEFAULT_LENIENT_LOSS_THRESHOLD = 0.10
DEFAULT_KDF_ITERATIONS = 600_000
DEFAULT_IMAGE_WINDOW = 100


@dataclass(frozen=True)
class Settings:
    """Process-wide tunables.

    Attributes:
        log_level: Level name for the ``nahan`` logger.
        lenient_loss_threshold: Maximum erased-byte fraction for lenient NH02 decode.
        kdf_iterations: PBKDF2 iterations used when sealing private keys.
        image_window: Bytes sampled from each end of a clipboard image for its change hash.
    """

    log_level: str = DEFAULT_LOG_LEVEL
    lenient_loss_threshold: float = DEFAULT_LENIENT_LOSS_THRESHOLD
    kdf_iterations: int = DEFAULT_KDF_ITERATIONS
    image_window: int = DEFAULT_IMAGE_WINDOW


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def load_settings() -> Settings:
    """Load ``.env`` and build :class:`Settings` from ``NAHAN_*`` variables.

    Raises:
        ConfigError: If a variable holds an invalid value.
    """
    load_dotenv()

    log_level = os.environ.get("NAHAN_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f"NAHAN_LOG_LEVEL is not a logging level: {log_level!r}")

    threshold = _env_float("NAHAN_LENIENT_LOSS_THRESHOLD", DEFAULT_LENIENT_LOSS_THRESHOLD)
    if not 0.0 <= threshold < 1.0:
        raise ConfigError(
            f"NAHAN_LENIENT_LOSS_THRESHOLD must be in [0, 1), got {threshold}"
        )

    iterations = _env_int("NAHAN_KDF_ITERATIONS", DEFAULT_KDF_ITERATIONS)
    if iterations < 1:
        raise ConfigError(f"NAHAN_KDF_ITERATIONS must be positive, got {iterations}")

    window = _env_int("NAHAN_IMAGE_WINDOW", DEFAULT_IMAGE_WINDOW)
    if window < 1:
        raise ConfigError(f"NAHAN_IMAGE_WINDOW must be positive, got {window}")

    return Settings(
        log_level=log_level,
        lenient_loss_threshold=threshold,
        kdf_iterations=iterations,
        image_window=window,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached process-wide settings."""
    return load_settings()
