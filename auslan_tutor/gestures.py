"""
gestures.py – Static AUSLAN catalog and the custom-gesture boundary.

The built-in catalog is immutable reference data.  Custom (user-trained)
gestures live in an external store; the tutor only reads their names to
build the candidate label set for recognition mode.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol


@dataclass(frozen=True)
class GestureRecord:
    id: str
    name: str
    category: str      # alphabet | numbers | greetings | common
    description: str
    instructions: str
    difficulty: str    # easy | medium | hard


@dataclass(frozen=True)
class CustomGestureRecord:
    id: str
    owner_id: str
    name: str
    reference_image: str  # base64 data URL
    description: str
    created_at: str


CATEGORIES: dict[str, str] = {
    "alphabet": "Letters A-Z in AUSLAN",
    "numbers": "Numbers 0-9 in AUSLAN",
    "greetings": "Common greetings and polite phrases",
    "common": "Everyday words and phrases",
}


def _letter(ch: str, instructions: str, difficulty: str = "easy") -> GestureRecord:
    return GestureRecord(ch.lower(), ch, "alphabet", f"Letter {ch} in AUSLAN", instructions, difficulty)


def _number(n: int, word: str, instructions: str) -> GestureRecord:
    return GestureRecord(str(n), str(n), "numbers", f"Number {word} in AUSLAN", instructions, "easy")


AUSLAN_GESTURES: tuple[GestureRecord, ...] = (
    _letter("A", "Make a fist with thumb pointing up alongside the index finger"),
    _letter("B", "Hold hand flat, fingers together pointing up, thumb across palm"),
    _letter("C", "Curve hand into C shape"),
    _letter("D", "Index finger up, other fingers and thumb form circle"),
    _letter("E", "Curl fingertips to touch thumb"),
    _letter("F", "Index and middle finger up, thumb touches ring finger"),
    _letter("G", "Point index finger sideways, thumb up"),
    _letter("H", "Index and middle finger sideways, other fingers folded"),
    _letter("I", "Little finger up, other fingers folded"),
    _letter("J", "Little finger up, move in J motion", "medium"),
    _letter("K", "Index up, middle finger touches thumb", "medium"),
    _letter("L", "Index finger up, thumb out to form L shape"),
    _letter("M", "Three fingers over thumb, pinky up", "medium"),
    _letter("N", "Two fingers over thumb", "medium"),
    _letter("O", "Form circle with fingers and thumb"),
    _letter("P", "Index finger down, middle finger touches thumb", "medium"),
    _letter("Q", "Index finger down, thumb up", "medium"),
    _letter("R", "Cross index and middle fingers", "medium"),
    _letter("S", "Make fist with thumb in front"),
    _letter("T", "Thumb between index and middle finger", "medium"),
    _letter("U", "Index and middle finger up together"),
    _letter("V", "Index and middle finger up in V shape"),
    _letter("W", "Three fingers up - index, middle, ring"),
    _letter("X", "Index finger curved like a hook", "medium"),
    _letter("Y", "Thumb and pinky up, other fingers folded"),
    _letter("Z", "Index finger traces Z motion in air", "medium"),
    _number(0, "zero", "Make a fist with thumb tucked inside"),
    _number(1, "one", "Hold up index finger"),
    _number(2, "two", "Hold up index and middle fingers"),
    _number(3, "three", "Hold up index, middle, and ring fingers"),
    _number(4, "four", "Hold up four fingers, thumb tucked"),
    _number(5, "five", "Hold up all five fingers"),
    _number(6, "six", "Touch thumb to pinky, other fingers up"),
    _number(7, "seven", "Touch thumb to ring finger, other fingers up"),
    _number(8, "eight", "Touch thumb to middle finger, other fingers up"),
    _number(9, "nine", "Touch thumb to index finger, other fingers up"),
    GestureRecord("hello", "Hello", "greetings", "Hello greeting in AUSLAN",
                  "Wave hand from side to side with palm facing forward", "easy"),
    GestureRecord("goodbye", "Goodbye", "greetings", "Goodbye gesture in AUSLAN",
                  "Wave hand with fingers closing and opening", "easy"),
    GestureRecord("thankyou", "Thank You", "greetings", "Thank you in AUSLAN",
                  "Touch fingertips to chin then move hand forward", "medium"),
    GestureRecord("please", "Please", "greetings", "Please in AUSLAN",
                  "Rub palm in circular motion on chest", "medium"),
    GestureRecord("yes", "Yes", "common", "Yes in AUSLAN", "Nod fist up and down", "easy"),
    GestureRecord("no", "No", "common", "No in AUSLAN", "Index and middle finger tap thumb", "easy"),
    GestureRecord("water", "Water", "common", "Water in AUSLAN",
                  "Tap index finger on side of mouth", "medium"),
    GestureRecord("food", "Food", "common", "Food in AUSLAN",
                  "Bring fingertips to mouth repeatedly", "medium"),
)

_BY_ID = {g.id: g for g in AUSLAN_GESTURES}


def get_gesture(gesture_id: str) -> GestureRecord | None:
    """Look up a catalog gesture by id (case-insensitive)."""
    return _BY_ID.get(gesture_id.lower())


def gestures_in(category: str) -> list[GestureRecord]:
    return [g for g in AUSLAN_GESTURES if g.category == category]


# ── Custom gestures (external storage) ───────────────────────────────────────


class CustomGestureRepository(Protocol):
    def list_gestures(self) -> list[CustomGestureRecord]: ...


class InMemoryGestureRepository:
    """Read-only repository over an already-fetched list of records."""

    def __init__(self, records: Iterable[CustomGestureRecord] = ()) -> None:
        self._records = list(records)

    def list_gestures(self) -> list[CustomGestureRecord]:
        return list(self._records)


def candidate_labels(records: Iterable[CustomGestureRecord]) -> list[str]:
    """Distinct, non-empty gesture names in first-seen order."""
    labels: list[str] = []
    seen: set[str] = set()
    for rec in records:
        name = rec.name.strip()
        if name and name.lower() not in seen:
            seen.add(name.lower())
            labels.append(name)
    return labels
