"""
sentence.py – Turn a sequence of recognized signs into a sentence.

Recognized labels accumulate in an ordered session (duplicates kept).  On
request the word list goes to the remote chat model, which fills in
articles and connectives.  Sentence building is a convenience: on any
remote failure the words are simply joined with spaces, so the learner
always sees what was recognized.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .config import RemoteConfig
from .errors import TutorError
from .remote import ChatClient

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are helping construct sentences from sign language gestures. "
    "The user has signed these words in sequence: {words}.\n\n"
    "Your task is to create a natural, grammatically correct sentence from these words. "
    "Fill in any missing articles, prepositions, or connecting words as needed to make "
    "the sentence flow naturally.\n\n"
    "Respond with ONLY the complete sentence, nothing else. Keep it concise and natural."
)


class SentenceAssembler:
    """Collect recognized words and compose them into a sentence.

    Parameters
    ----------
    config : RemoteConfig
        Supplies the sentence model name.
    client : ChatClient or None
        Chat client; built from *config* when omitted.
    max_tokens : int
        Generation budget.  Sentences from a handful of signs are short.
    """

    def __init__(
        self,
        config: RemoteConfig,
        client: ChatClient | None = None,
        max_tokens: int = 100,
    ) -> None:
        self.config = config
        self.client = client or ChatClient(config)
        self.max_tokens = max_tokens
        self._words: list[str] = []

    # ── Session ──────────────────────────────────────────────────────────

    @property
    def words(self) -> list[str]:
        return list(self._words)

    def append_recognition(self, label: str) -> None:
        if not label or not label.strip():
            raise ValueError("Recognized label must be non-empty")
        self._words.append(label.strip())

    def remove_last(self) -> str | None:
        return self._words.pop() if self._words else None

    def clear(self) -> None:
        self._words.clear()

    def on_cycle_result(self, result) -> None:
        """Orchestrator listener: append labels from recognition-mode cycles."""
        outcome = getattr(result, "outcome", None)
        if outcome is None or getattr(result, "mode", None) != "recognition":
            return
        if outcome.label and outcome.label.strip():
            self.append_recognition(outcome.label)

    # ── Sentence building ────────────────────────────────────────────────

    def build_sentence(self, words: Sequence[str]) -> str:
        """Return a natural sentence for *words*, or the words space-joined.

        An empty *words* returns ``""`` without contacting the service.
        """
        words = list(words)
        if not words:
            return ""

        fallback = " ".join(words)
        listed = ", ".join(words)
        messages = [
            {"role": "system", "content": _SYSTEM_PROMPT.format(words=listed)},
            {"role": "user", "content": f"Create a natural sentence from these words: {listed}"},
        ]

        try:
            text = self.client.complete(
                messages,
                model=self.config.sentence_model,
                max_tokens=self.max_tokens,
                temperature=0.5,
            )
        except TutorError as exc:
            logger.warning("Sentence building failed (%s); using raw words.", exc.kind)
            return fallback
        except Exception as exc:
            logger.warning("Sentence building error (%s); using raw words.", exc)
            return fallback

        return text.strip() or fallback

    def compose(self) -> str:
        """Build a sentence from the current session, then clear it."""
        sentence = self.build_sentence(self._words)
        self._words.clear()
        return sentence
