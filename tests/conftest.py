"""Shared fixtures: synthetic frames and fake collaborators."""

from __future__ import annotations

import sys
import threading
from pathlib import Path

import numpy as np
import pytest

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from auslan_tutor.classifier import RecognitionOutcome
from auslan_tutor.frames import StillFrame

LIGHT_SKIN = (220, 90, 70)
MEDIUM_SKIN = (60, 30, 20)
SLATE_BLUE = (40, 60, 200)


def solid_frame(rgb: tuple[int, int, int], height: int = 48, width: int = 64, alpha: int = 255) -> StillFrame:
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[..., :3] = rgb
    pixels[..., 3] = alpha
    return StillFrame(pixels=pixels)


def striped_skin_frame(height: int = 48, width: int = 64) -> StillFrame:
    """Every row is skin; alternating tones give strong row-to-row contrast."""
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[0::2, :, :3] = LIGHT_SKIN
    pixels[1::2, :, :3] = MEDIUM_SKIN
    pixels[..., 3] = 255
    return StillFrame(pixels=pixels)


class FakeFrameSource:
    def __init__(self, frame: StillFrame | None, active: bool = True) -> None:
        self.frame = frame
        self.is_active = active
        self.captures = 0

    def capture_frame(self) -> StillFrame | None:
        self.captures += 1
        return self.frame


class FakeClassifier:
    """Returns canned outcomes; can block until released or raise."""

    def __init__(self, outcome: RecognitionOutcome | None = None, error: Exception | None = None) -> None:
        self.outcome = outcome or RecognitionOutcome(
            matched=True, label="Hello", confidence=92, feedback="Nice wave!"
        )
        self.error = error
        self.calls: list[tuple[str, object]] = []
        self.started = threading.Event()
        self.release = threading.Event()
        self.release.set()

    def _respond(self) -> RecognitionOutcome:
        self.started.set()
        self.release.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.outcome

    def analyze(self, frame, target):
        self.calls.append(("analyze", target))
        return self._respond()

    def recognize(self, frame, candidates):
        self.calls.append(("recognize", list(candidates)))
        return self._respond()


class FakeChatClient:
    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    def complete(self, messages, model, max_tokens=300, temperature=0.3):
        self.calls.append({"messages": messages, "model": model})
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def skin_frame() -> StillFrame:
    return striped_skin_frame()


@pytest.fixture
def blank_frame() -> StillFrame:
    return solid_frame(SLATE_BLUE)
