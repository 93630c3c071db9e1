"""
Voice Dictation

Keeps a speech-to-text transcript next to the note being edited. The
transcript never reaches the note (or the suggestion debounce) on its own:
the clinician inserts it explicitly.

The recognizer itself is platform specific and plugged in through the
``SpeechRecognizer`` protocol.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)

# on_result(text, is_final)
ResultCallback = Callable[[str, bool], None]


class SpeechRecognizer(Protocol):
    """Continuous recognizer that reports interim and final phrases."""

    async def start(self, on_result: ResultCallback) -> None: ...

    async def stop(self) -> None: ...


class DictationSession:
    """
    Transcript buffer for one editor.

    Final phrases accumulate in ``transcript``; the phrase still being
    spoken is exposed as ``interim`` and replaced on every update.
    """

    def __init__(self, recognizer: SpeechRecognizer | None = None) -> None:
        self._recognizer = recognizer
        self.listening = False
        self.error: str | None = None
        self._final = ""
        self.interim = ""

    @property
    def supported(self) -> bool:
        return self._recognizer is not None

    @property
    def transcript(self) -> str:
        """Final text plus the current interim phrase."""
        return f"{self._final}{self.interim}".strip()

    async def start(self) -> bool:
        """
        Start listening with an empty transcript.

        Returns:
            False when no recognizer is available or it failed to start.
        """
        if self._recognizer is None:
            self.error = "Speech recognition is not supported"
            return False
        if self.listening:
            return True

        self.discard()
        self.error = None
        try:
            await self._recognizer.start(self.handle_result)
        except (OSError, RuntimeError) as e:
            logger.warning("Speech recognition failed to start: %s", e)
            self.error = str(e)
            return False

        self.listening = True
        logger.debug("Voice recognition started")
        return True

    async def stop(self) -> None:
        if self._recognizer is not None and self.listening:
            await self._recognizer.stop()
        self.listening = False
        self.interim = ""
        logger.debug("Voice recognition ended")

    def handle_result(self, text: str, is_final: bool) -> None:
        """Recognizer callback."""
        if is_final:
            self._final += text
            self.interim = ""
        else:
            self.interim = text

    def take(self) -> str:
        """Return the transcript and clear it."""
        text = self.transcript
        self.discard()
        return text

    def discard(self) -> None:
        self._final = ""
        self.interim = ""
