"""Clipboard detection state machine.

One pass reads the clipboard, classifies it with an :class:`Analyzer` and
reports a single :class:`ProcessedResult`. Passes are triggered by focus,
visibility changes and enabling detection. A trigger that arrives while a
pass is running is dropped, not queued.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum

from .analysis import Analyzer, Failure, ProcessedResult, ResultType, Source
from .clipboard import Clipboard, image_change_hash
from .utils import (
    ContactIntroDetected,
    DuplicateMessageError,
    MultiContactIntroDetected,
    SenderUnknownError,
    StegoCryptoError,
    StegoDecodeError,
)

logger = logging.getLogger(__name__)


class DetectorState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    CLASSIFYING = "classifying"
    MESSAGE = "message"
    ID = "id"
    NONE = "none"
    ERROR = "error"


def _final_state(result: ProcessedResult) -> DetectorState:
    if result.reason in (Failure.SENDER_UNKNOWN, Failure.DECODE_FAILED):
        return DetectorState.ERROR
    if result.type is ResultType.MESSAGE:
        return DetectorState.MESSAGE
    if result.type is ResultType.ID:
        return DetectorState.ID
    return DetectorState.NONE


class ClipboardDetector:
    """Drive an :class:`Analyzer` from clipboard events.

    Args:
        clipboard: Platform clipboard.
        analyzer: Classifier for the clipboard contents.
        on_state: Called with every state the detector enters.
    """

    def __init__(
        self,
        clipboard: Clipboard,
        analyzer: Analyzer,
        on_state: Callable[[DetectorState], None] | None = None,
    ) -> None:
        self.clipboard = clipboard
        self.analyzer = analyzer
        self.enabled = False
        self.state = DetectorState.IDLE
        self._on_state = on_state
        self._guard = threading.Lock()
        self._last_text: str | None = None
        self._failed_text: str | None = None
        self._last_image_hash: str | None = None
        # bumped by disable(); a pass started under an older value keeps no memos
        self._generation = 0
        self._pass_generation = 0

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def enable(self) -> ProcessedResult | None:
        """Turn detection on and check the clipboard immediately."""
        self.enabled = True
        return self.check()

    def disable(self) -> None:
        """Turn detection off and forget what was already seen."""
        self.enabled = False
        self._generation += 1
        self._last_text = None
        self._failed_text = None
        self._last_image_hash = None

    def on_focus(self) -> ProcessedResult | None:
        return self.check()

    def on_visibility_change(self, visible: bool) -> ProcessedResult | None:
        if not visible:
            return None
        return self.check()

    def check(self) -> ProcessedResult | None:
        """Run one pass unless disabled or another pass is in flight."""
        if not self.enabled:
            return None
        if not self._guard.acquire(blocking=False):
            logger.debug("Clipboard pass already running; trigger dropped")
            return None
        self._pass_generation = self._generation
        try:
            return self._run()
        finally:
            if self.state is not DetectorState.IDLE:
                self._set_state(DetectorState.IDLE)
            self._guard.release()

    # ------------------------------------------------------------------
    # Pass
    # ------------------------------------------------------------------

    def _set_state(self, state: DetectorState) -> None:
        self.state = state
        logger.debug("Detector state: %s", state.value)
        if self._on_state is not None:
            self._on_state(state)

    def _stale(self) -> bool:
        """Return True if detection was disabled since this pass started."""
        return self._pass_generation != self._generation

    def _finish(self, result: ProcessedResult) -> ProcessedResult:
        self._set_state(_final_state(result))
        return result

    def _run(self) -> ProcessedResult | None:
        if not self.clipboard.has_focus():
            return None

        self._set_state(DetectorState.READING)
        try:
            text = self.clipboard.read_text()
        except PermissionError:
            logger.debug("Clipboard text read denied")
            return None

        if not text.strip():
            # cleared clipboard: the same content copied again is new
            self._last_text = None
            self._failed_text = None
        elif text == self._last_text:
            return self._finish(ProcessedResult(type=ResultType.NONE))

        if text:
            self._set_state(DetectorState.CLASSIFYING)
            result = self._classify_text(text)
            if result is not None:
                return self._finish(result)

        if not self.clipboard.supports_read:
            return self._finish(ProcessedResult(type=ResultType.NONE))
        self._set_state(DetectorState.READING)
        try:
            result = self._classify_images()
        except PermissionError:
            logger.debug("Clipboard item read denied")
            return None
        return self._finish(result or ProcessedResult(type=ResultType.NONE))

    def _classify_text(self, text: str) -> ProcessedResult | None:
        try:
            result = _convert(self.analyzer.analyze_text, text, source=Source.TEXT)
        except (StegoDecodeError, StegoCryptoError) as exc:
            logger.debug("Text classification failed: %s", exc)
            # Retry once on the next trigger, then give up on this text
            if not self._stale():
                if self._failed_text == text:
                    self._last_text = text
                else:
                    self._failed_text = text
            return ProcessedResult(type=ResultType.NONE, reason=Failure.DECODE_FAILED)
        if not self._stale():
            self._last_text = text
            self._failed_text = None
        return result

    def _classify_images(self) -> ProcessedResult | None:
        for item in self.clipboard.read():
            for mime in item.image_types():
                data = item.get_type(mime)
                digest = image_change_hash(data, mime)
                if digest == self._last_image_hash:
                    logger.debug("Clipboard image unchanged; skipping")
                    continue
                self._set_state(DetectorState.CLASSIFYING)
                try:
                    return _convert(self.analyzer.analyze_image, data, mime, source=Source.IMAGE)
                except StegoCryptoError as exc:
                    logger.debug("Image payload could not be opened: %s", exc)
                    return ProcessedResult(
                        type=ResultType.NONE, reason=Failure.DECODE_FAILED, source=Source.IMAGE
                    )
                except StegoDecodeError as exc:
                    logger.debug("No payload in clipboard image: %s", exc)
                    return None
                finally:
                    if not self._stale():
                        self._last_image_hash = digest
        return None


def _convert(
    analyze: Callable[..., ProcessedResult | None], *args: object, source: Source
) -> ProcessedResult | None:
    """Call *analyze*, turning the analyzer's outcome errors into results.

    Generic decode and crypto failures propagate.
    """
    try:
        return analyze(*args)
    except DuplicateMessageError:
        return ProcessedResult(
            type=ResultType.NONE, reason=Failure.DUPLICATE_MESSAGE, source=source
        )
    except ContactIntroDetected as exc:
        return ProcessedResult(
            type=ResultType.ID,
            reason=Failure.CONTACT_INTRO_DETECTED,
            sender_name=exc.contact.display_name,
            sender_fingerprint=exc.contact.fingerprint,
            contacts=(exc.contact,),
            source=source,
        )
    except MultiContactIntroDetected as exc:
        return ProcessedResult(
            type=ResultType.ID,
            reason=Failure.MULTI_CONTACT_INTRO_DETECTED,
            contacts=exc.contacts,
            source=source,
        )
    except SenderUnknownError as exc:
        return ProcessedResult(
            type=ResultType.MESSAGE,
            reason=Failure.SENDER_UNKNOWN,
            is_broadcast=exc.envelope.is_broadcast,
            plaintext=exc.envelope.plaintext,
            source=source,
        )
