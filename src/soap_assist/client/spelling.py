"""
Spelling Overlay

Dictionary-based spell check for note text. Misspelled words are reported
with their character span so the editor can underline them and replace
them in place.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from importlib import resources
from pathlib import Path
from typing import NamedTuple

from rapidfuzz import fuzz, process

MIN_WORD_LENGTH = 3
MAX_SUGGESTIONS = 3
SCORE_CUTOFF = 75.0

_WORD = re.compile(r"[A-Za-z]+(?:'[A-Za-z]+)?")


class SpellIssue(NamedTuple):
    """A word missing from the dictionary and its span in the text."""

    word: str
    start: int
    end: int
    suggestions: list[str]


class SpellChecker:
    """
    Word-list spell checker.

    Words shorter than three letters and all-caps abbreviations (BID, CRT)
    are never flagged. Corrections are the closest dictionary words by
    edit similarity.
    """

    def __init__(self, words: Iterable[str]) -> None:
        self._words = frozenset(w.strip().lower() for w in words if w.strip())
        self._choices = sorted(self._words)

    @classmethod
    def from_file(cls, path: str | Path) -> SpellChecker:
        """Load a dictionary with one word per line ('#' starts a comment)."""
        lines = Path(path).read_text(encoding="utf-8").splitlines()
        return cls(line for line in lines if not line.startswith("#"))

    @classmethod
    def default(cls) -> SpellChecker:
        """Checker over the bundled clinical English word list."""
        data = resources.files("soap_assist.client").joinpath("data/vet_words.txt")
        lines = data.read_text(encoding="utf-8").splitlines()
        return cls(line for line in lines if not line.startswith("#"))

    def __contains__(self, word: str) -> bool:
        return word.lower() in self._words

    def suggest(self, word: str, limit: int = MAX_SUGGESTIONS) -> list[str]:
        matches = process.extract(
            word.lower(),
            self._choices,
            scorer=fuzz.ratio,
            limit=limit,
            score_cutoff=SCORE_CUTOFF,
        )
        return [match for match, _score, _index in matches]

    def check(self, text: str) -> list[SpellIssue]:
        """Return every unknown word in ``text``, in order of appearance."""
        issues: list[SpellIssue] = []
        for match in _WORD.finditer(text):
            word = match.group()
            if len(word) < MIN_WORD_LENGTH or word.isupper() or word in self:
                continue
            issues.append(
                SpellIssue(word, match.start(), match.end(), self.suggest(word))
            )
        return issues

    @staticmethod
    def apply(text: str, issue: SpellIssue, replacement: str) -> str:
        """
        Replace the word of ``issue`` in ``text``.

        Surrounding whitespace and punctuation are kept; a capitalized word
        gets a capitalized replacement.
        """
        if text[issue.start : issue.end] != issue.word:
            raise ValueError(f"Text no longer contains {issue.word!r} at {issue.start}")
        if issue.word[:1].isupper() and replacement:
            replacement = replacement[0].upper() + replacement[1:]
        return text[: issue.start] + replacement + text[issue.end :]
