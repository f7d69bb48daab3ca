"""
Language detection collaborator interface.

Detection heuristics live outside this service; the coordinator only needs a
detected language and a mirroring decision.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from salesagent.services.conversation_models import Language


@dataclass(frozen=True)
class LanguageDetection:
    """Result of detecting the language of a customer message."""
    language: Language
    confidence: float


@runtime_checkable
class LanguageDetector(Protocol):

    def detect(self, text: str) -> LanguageDetection:
        """Detect the language of text."""
        ...

    def should_mirror(self, text: str, current_language: Language) -> bool:
        """True when the agent should switch to the customer's language."""
        ...
