"""
classifier.py – Remote gesture classification via a vision-language model.

Two request shapes share one result type:

* :meth:`RemoteGestureClassifier.analyze` – practice mode.  "Is this the
  AUSLAN sign for *target*?"  The model returns ``recognized``,
  ``gesture``, ``confidence``, ``feedback`` and ``suggestions``.
* :meth:`RemoteGestureClassifier.recognize` – candidate mode.  "Which of
  these trained gestures is this?"  The model returns
  ``recognizedGesture``, ``confidence`` and ``suggestions``.

Each call carries exactly one JPEG image as a base64 data URL.  Calls are
not idempotent: the same image may yield different feedback text.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Sequence

from .config import RemoteConfig
from .errors import MalformedRemoteResponse
from .frames import StillFrame
from .remote import ChatClient

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```")

_PRACTICE_PROMPT = (
    "You are an AUSLAN (Australian Sign Language) gesture recognition expert. "
    'Analyze the image and determine if the person is correctly performing the AUSLAN gesture for "{target}".\n\n'
    "Respond with a JSON object containing:\n"
    "- recognized: boolean (true if gesture is correct)\n"
    "- gesture: string (what gesture you think is being shown)\n"
    "- confidence: number (0-100, confidence in your assessment)\n"
    "- feedback: string (encouraging feedback about the attempt)\n"
    "- suggestions: array of strings (specific tips for improvement if needed)\n\n"
    "Be encouraging and educational in your feedback. Consider hand position, "
    "finger placement, and overall gesture form."
)

_CANDIDATE_PROMPT = (
    "You are analyzing a hand gesture image. The user has trained the following "
    "custom gestures: {names}.\n\n"
    "Your task is to:\n"
    "1. Identify which trained gesture this most closely matches\n"
    "2. If uncertain, make your best guess from the trained gestures list\n"
    "3. Provide a confidence score (0-100)\n\n"
    "Respond with a JSON object:\n"
    '{{"recognizedGesture": "gesture_name", "confidence": number, '
    '"suggestions": ["helpful tip if confidence is low"]}}\n\n'
    "Be helpful and encouraging. If the gesture is unclear, suggest improvements "
    "but still make your best match."
)


@dataclass
class RecognitionOutcome:
    matched: bool
    label: str
    confidence: float  # 0–100
    feedback: str = ""
    suggestions: list[str] = field(default_factory=list)


# ── Response parsing ─────────────────────────────────────────────────────────


def _parse_json_object(content: str) -> dict[str, Any]:
    """Parse a JSON object from *content*, tolerating Markdown fences."""
    cleaned = _FENCE_RE.sub("", content).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedRemoteResponse(f"Reply is not JSON: {cleaned[:80]!r}") from exc
    if not isinstance(data, dict):
        raise MalformedRemoteResponse("Reply JSON is not an object")
    return data


def _clamp_confidence(value: Any) -> float:
    try:
        conf = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedRemoteResponse(f"Bad confidence value {value!r}") from exc
    return max(0.0, min(100.0, conf))


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value if v is not None]
    raise MalformedRemoteResponse(f"Bad suggestions value {value!r}")


# ── Classifier ───────────────────────────────────────────────────────────────


class RemoteGestureClassifier:
    """Ask the hosted model about one captured frame.

    Parameters
    ----------
    config : RemoteConfig
        Model names and JPEG quality.
    client : ChatClient or None
        HTTP client; built from *config* when omitted.
    """

    def __init__(self, config: RemoteConfig, client: ChatClient | None = None) -> None:
        self.config = config
        self.client = client or ChatClient(config)

    def _image_message(self, frame: StillFrame, text: str) -> dict[str, Any]:
        return {
            "role": "user",
            "content": [
                {"type": "text", "text": text},
                {
                    "type": "image_url",
                    "image_url": {"url": frame.to_data_url(self.config.jpeg_quality)},
                },
            ],
        }

    def analyze(self, frame: StillFrame, target: str) -> RecognitionOutcome:
        """Judge whether *frame* shows the AUSLAN sign for *target*."""
        messages = [
            {"role": "system", "content": _PRACTICE_PROMPT.format(target=target)},
            self._image_message(
                frame,
                f'Please analyze this AUSLAN gesture attempt. The person is trying to sign "{target}".',
            ),
        ]
        content = self.client.complete(messages, model=self.config.practice_model)
        data = _parse_json_object(content)

        if not isinstance(data.get("recognized"), bool):
            raise MalformedRemoteResponse("Reply 'recognized' must be true or false")
        outcome = RecognitionOutcome(
            matched=data["recognized"],
            label=str(data.get("gesture") or target),
            confidence=_clamp_confidence(data.get("confidence", 0)),
            feedback=str(data.get("feedback") or ""),
            suggestions=_string_list(data.get("suggestions")),
        )
        logger.info(
            "Practice '%s': matched=%s label=%s confidence=%.0f",
            target, outcome.matched, outcome.label, outcome.confidence,
        )
        return outcome

    def recognize(self, frame: StillFrame, candidates: Sequence[str]) -> RecognitionOutcome:
        """Pick the best match for *frame* among *candidates*."""
        if not candidates:
            raise ValueError("No trained gestures available to match against")

        names = ", ".join(candidates)
        messages = [
            {"role": "system", "content": _CANDIDATE_PROMPT.format(names=names)},
            self._image_message(frame, f"Which of my trained gestures ({names}) does this match?"),
        ]
        content = self.client.complete(messages, model=self.config.recognition_model)
        data = _parse_json_object(content)

        label = str(data.get("recognizedGesture") or "unknown").strip()
        by_lower = {c.lower(): c for c in candidates}
        matched = label.lower() in by_lower
        if matched:
            label = by_lower[label.lower()]

        confidence = _clamp_confidence(data.get("confidence", 0))
        outcome = RecognitionOutcome(
            matched=matched,
            label=label,
            confidence=confidence,
            feedback=f"Recognized {label} ({confidence:.0f}% confidence)" if matched else "",
            suggestions=_string_list(data.get("suggestions")),
        )
        logger.info("Recognition: label=%s matched=%s confidence=%.0f", label, matched, confidence)
        return outcome
