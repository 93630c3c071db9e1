"""Client package: HTTP client and the editor-side suggestion controller."""

from soap_assist.client.api import SoapAssistClient
from soap_assist.client.controller import ControllerState, SuggestionController
from soap_assist.client.speech import DictationSession, SpeechRecognizer
from soap_assist.client.spelling import SpellChecker, SpellIssue

__all__ = [
    "ControllerState",
    "DictationSession",
    "SoapAssistClient",
    "SpeechRecognizer",
    "SpellChecker",
    "SpellIssue",
    "SuggestionController",
]
