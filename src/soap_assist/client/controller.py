"""
Suggestion Controller

Per-editor state machine that turns keystrokes into debounced suggestion
requests and keeps the visible state consistent with the latest input.

States::

    idle -> typing -> awaiting_response -> showing_suggestions
                                        -> no_suggestions
                                        -> error

Guarantees:
    - At most one outstanding request; new input cancels it.
    - A response that was cancelled or superseded never touches state, even
      if the fetcher ignores cancellation (generation check).
    - Text changed by the controller itself (accepting a suggestion, a
      paraphrase, a spelling fix or a transcript) cancels the request in
      flight and does not trigger a new one when the editor echoes it back
      through ``on_input``.

All methods must be called from the event loop that owns the controller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum

from soap_assist.client.api import SoapAssistClient
from soap_assist.client.speech import DictationSession, SpeechRecognizer
from soap_assist.client.spelling import SpellChecker, SpellIssue
from soap_assist.core.config import settings
from soap_assist.models.schemas import PatientContext, SoapField

logger = logging.getLogger(__name__)

# text -> suggestion texts
Fetcher = Callable[[str], Awaitable[Sequence[str]]]

DEFAULT_DEBOUNCE = 0.5
PARAPHRASE_MIN_WORDS = 10


class ControllerState(str, Enum):
    IDLE = "idle"
    TYPING = "typing"
    AWAITING_RESPONSE = "awaiting_response"
    SHOWING_SUGGESTIONS = "showing_suggestions"
    NO_SUGGESTIONS = "no_suggestions"
    ERROR = "error"


@dataclass
class _PendingRequest:
    """The single outstanding debounce/request task and its generation."""

    generation: int
    task: asyncio.Task[None]


class SuggestionController:
    """
    Debounced, cancellable suggestion state for one SOAP field editor.

    Usage::

        controller = SuggestionController.for_api(api, SoapField.PLAN, patient)
        controller.on_input("Amoxicillin 10 mg/kg", cursor=20)
        ...
        new_text = controller.accept()  # tab-to-accept the top suggestion
        await controller.aclose()

    Args:
        fetch: Coroutine returning suggestion texts for the current text.
        debounce: Quiet period in seconds before a request is sent
            (0.5 for suggestion lists, 2.0 for slower typing-pause editors).
        min_chars: Minimum trimmed length that triggers a request.
        paraphrase: Optional coroutine returning rewrites of the whole text.
        spell_checker: Optional dictionary used for the spelling overlay.
        recognizer: Optional speech recognizer for dictation.
    """

    def __init__(
        self,
        fetch: Fetcher,
        debounce: float = DEFAULT_DEBOUNCE,
        min_chars: int | None = None,
        paraphrase: Fetcher | None = None,
        spell_checker: SpellChecker | None = None,
        recognizer: SpeechRecognizer | None = None,
    ) -> None:
        self._fetch = fetch
        self._paraphrase = paraphrase
        self.debounce = debounce
        self.min_chars = min_chars or settings.SUGGEST_MIN_CHARS
        self.spell_checker = spell_checker
        self.dictation = DictationSession(recognizer)

        self.text = ""
        self.cursor = 0
        self.suggestions: list[str] = []
        self.selected = -1
        self.loading = False
        self.error: str | None = None
        self.state = ControllerState.IDLE

        self.paraphrases: list[str] = []
        self.paraphrase_error: str | None = None
        self.spell_issues: list[SpellIssue] = []

        self._generation = 0
        self._pending: _PendingRequest | None = None
        self._echo: str | None = None
        self._closed = False

    @classmethod
    def for_api(
        cls,
        api: SoapAssistClient,
        field: SoapField,
        patient: PatientContext | None = None,
        debounce: float = DEFAULT_DEBOUNCE,
        limit: int = 5,
        **kwargs,
    ) -> SuggestionController:
        """Controller wired to the ``/suggest`` and ``/paraphrase`` endpoints."""

        async def fetch(text: str) -> list[str]:
            suggestions = await api.suggest(field, text, patient, limit=limit)
            return [s.text for s in suggestions]

        async def paraphrase(text: str) -> list[str]:
            return await api.paraphrase(field, text, patient)

        return cls(fetch, debounce=debounce, paraphrase=paraphrase, **kwargs)

    # ------------------------------------------------------------------
    # Typing
    # ------------------------------------------------------------------

    @property
    def selected_suggestion(self) -> str | None:
        if 0 <= self.selected < len(self.suggestions):
            return self.suggestions[self.selected]
        return None

    def on_input(self, text: str, cursor: int | None = None) -> None:
        """
        Record a text change from the editor.

        Restarts the debounce timer and cancels any request in flight.
        """
        if self._closed:
            return

        self.cursor = len(text) if cursor is None else max(0, min(cursor, len(text)))
        if self._echo is not None and text == self._echo:
            # Our own programmatic change coming back from the editor
            self._echo = None
            return
        self._echo = None

        self.text = text
        self._check_spelling()
        self._cancel_pending()

        self._generation += 1
        self.state = ControllerState.TYPING
        task = asyncio.create_task(self._debounced(self._generation, text))
        self._pending = _PendingRequest(self._generation, task)

    def move_cursor(self, cursor: int) -> None:
        self.cursor = max(0, min(cursor, len(self.text)))

    async def flush(self) -> None:
        """Wait until the outstanding debounce/request has settled."""
        pending = self._pending
        if pending is not None:
            with suppress(asyncio.CancelledError):
                await pending.task

    async def _debounced(self, generation: int, text: str) -> None:
        await asyncio.sleep(self.debounce)

        if len(text.strip()) < self.min_chars:
            self._clear_suggestions()
            self.state = ControllerState.IDLE
            return

        self.state = ControllerState.AWAITING_RESPONSE
        self.loading = True
        self.error = None
        try:
            results = list(await self._fetch(text))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation != self._generation:
                return
            logger.warning("Suggestion request failed: %s", e)
            self._clear_suggestions()
            self.error = str(e) or type(e).__name__
            self.state = ControllerState.ERROR
            return
        finally:
            if generation == self._generation:
                self.loading = False

        if generation != self._generation:
            logger.debug("Dropping stale suggestions (generation %d)", generation)
            return

        self.suggestions = [r for r in results if r]
        self.selected = -1
        self.state = (
            ControllerState.SHOWING_SUGGESTIONS
            if self.suggestions
            else ControllerState.NO_SUGGESTIONS
        )

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_next(self) -> None:
        if not self.suggestions:
            return
        self.selected = (
            self.selected + 1 if self.selected < len(self.suggestions) - 1 else 0
        )

    def select_previous(self) -> None:
        if not self.suggestions:
            return
        self.selected = (
            len(self.suggestions) - 1 if self.selected <= 0 else self.selected - 1
        )

    def accept(self, index: int | None = None) -> str | None:
        """
        Insert a suggestion at the cursor.

        Args:
            index: Suggestion to insert; defaults to the selected one, or the
                top suggestion when nothing is selected (tab-to-accept).

        Returns:
            The new text, or None when there was nothing to accept.
        """
        if index is None:
            index = self.selected if self.selected >= 0 else 0
        if not 0 <= index < len(self.suggestions):
            return None

        suggestion = self.suggestions[index]
        new_text = self.text[: self.cursor] + suggestion + self.text[self.cursor :]
        cursor = self.cursor + len(suggestion)
        self._set_text(new_text, cursor)
        return new_text

    def dismiss(self) -> None:
        """Hide suggestions and abandon any request in flight."""
        self._generation += 1
        self._cancel_pending()
        self._clear_suggestions()
        self.error = None
        self.state = ControllerState.IDLE

    async def aclose(self) -> None:
        """Tear down: abort the request in flight and stop dictation."""
        self._closed = True
        self._generation += 1
        pending = self._pending
        self._cancel_pending()
        if pending is not None:
            with suppress(asyncio.CancelledError):
                await pending.task
        if self.dictation.listening:
            await self.dictation.stop()
        self._clear_suggestions()
        self.state = ControllerState.IDLE

    # ------------------------------------------------------------------
    # Voice dictation
    # ------------------------------------------------------------------

    async def start_dictation(self) -> bool:
        return await self.dictation.start()

    async def stop_dictation(self) -> None:
        await self.dictation.stop()

    def insert_transcript(self) -> str:
        """Append the dictated text (space-separated) and clear the transcript."""
        transcript = self.dictation.take()
        if not transcript:
            return self.text
        new_text = self.text + (" " if self.text else "") + transcript
        self._set_text(new_text, len(new_text))
        return new_text

    def discard_transcript(self) -> None:
        self.dictation.discard()

    # ------------------------------------------------------------------
    # Paraphrase
    # ------------------------------------------------------------------

    @property
    def can_paraphrase(self) -> bool:
        return (
            self._paraphrase is not None
            and len(self.text.split()) >= PARAPHRASE_MIN_WORDS
        )

    async def request_paraphrases(self) -> list[str]:
        """Fetch clinical rewrites of the whole text (10 words or more)."""
        self.paraphrases = []
        self.paraphrase_error = None
        if not self.can_paraphrase:
            return []

        assert self._paraphrase is not None
        try:
            self.paraphrases = [p for p in await self._paraphrase(self.text) if p]
        except Exception as e:
            logger.warning("Paraphrase request failed: %s", e)
            self.paraphrase_error = str(e) or type(e).__name__
        return self.paraphrases

    def accept_paraphrase(self, index: int) -> str | None:
        """Replace the whole text with a paraphrase."""
        if not 0 <= index < len(self.paraphrases):
            return None
        new_text = self.paraphrases[index]
        self.paraphrases = []
        self._set_text(new_text, len(new_text))
        return new_text

    # ------------------------------------------------------------------
    # Spelling
    # ------------------------------------------------------------------

    def apply_spelling(self, issue: SpellIssue, replacement: str) -> str:
        """
        Replace a misspelled word in place, keeping the cursor stable.

        Raises:
            RuntimeError: If the controller has no spell checker.
        """
        if self.spell_checker is None:
            raise RuntimeError("No spell checker configured")
        new_text = self.spell_checker.apply(self.text, issue, replacement)
        cursor = self.cursor
        if cursor >= issue.end:
            cursor += len(new_text) - len(self.text)
        elif cursor > issue.start:
            cursor = issue.start + len(replacement)
        self._set_text(new_text, cursor)
        return new_text

    def _check_spelling(self) -> None:
        if self.spell_checker is not None:
            self.spell_issues = self.spell_checker.check(self.text)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_text(self, text: str, cursor: int) -> None:
        """
        Programmatic change: no request, and the editor echo is ignored.

        Whatever was shown or requested for the previous text is dropped.
        """
        self.dismiss()
        self.text = text
        self.cursor = cursor
        self._echo = text
        self._check_spelling()

    def _cancel_pending(self) -> None:
        pending = self._pending
        self._pending = None
        if pending is not None and not pending.task.done():
            pending.task.cancel()
        self.loading = False

    def _clear_suggestions(self) -> None:
        self.suggestions = []
        self.selected = -1
