"""
auslan_tutor – AUSLAN gesture practice with a local presence gate.

Exposes the main pipeline components:
    HandPresenceEstimator    – pixel heuristic hand-presence gate
    RemoteGestureClassifier  – hosted vision-model gesture judgement
    ProgressTracker          – persistent per-gesture mastery ledger
    CaptureOrchestrator      – capture → gate → classify → record state machine
    SentenceAssembler        – recognized words → natural sentence
"""

from .classifier import RecognitionOutcome, RemoteGestureClassifier
from .config import TutorConfig, load_config
from .frames import CameraFrameSource, ImageFrameSource, StillFrame
from .orchestrator import CaptureOrchestrator, CycleResult, CycleState
from .presence import HandPresenceEstimator, PresenceVerdict
from .progress import MasteryEntry, ProgressTracker
from .sentence import SentenceAssembler

__all__ = [
    "CameraFrameSource",
    "CaptureOrchestrator",
    "CycleResult",
    "CycleState",
    "HandPresenceEstimator",
    "ImageFrameSource",
    "MasteryEntry",
    "PresenceVerdict",
    "ProgressTracker",
    "RecognitionOutcome",
    "RemoteGestureClassifier",
    "SentenceAssembler",
    "StillFrame",
    "TutorConfig",
    "load_config",
]
