"""
orchestrator.py – Capture → presence gate → remote recognition → progress.

One *cycle* grabs a still frame, runs the local presence gate, and only if
a hand is plausibly present asks the remote classifier about it.  A
practice cycle that completes records exactly one attempt on the progress
ledger; every finished cycle is surfaced to registered listeners as a
:class:`CycleResult`.

State machine::

    IDLE ─► CAPTURE_REQUESTED ─► PRESENCE_CHECKING ─► RECOGNIZING ─► DONE
                    │                    │                  │
                    └────────────────────┴──────────────────┴──► FAILED
    DONE / FAILED ─► IDLE   (after listeners are notified)

Concurrency rules
-----------------
* At most one cycle in flight.  A manual request or timer tick arriving
  while a cycle runs is skipped, never queued.
* Stopping auto-capture, changing or clearing the selection, or closing
  the orchestrator bumps the cycle *epoch*.  A cycle that resolves under a
  stale epoch is discarded: no progress, no listener call.
* Blocking collaborators (camera read, HTTP) run in the default executor.
  A cancelled cycle task cannot stop that thread, so the slot stays taken
  until the executor call returns and its result is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Sequence

from .classifier import RecognitionOutcome, RemoteGestureClassifier
from .config import CaptureConfig
from .errors import FrameUnavailable, LocalGateRejection, TransportFailure, TutorError
from .frames import FrameSource
from .gestures import GestureRecord
from .presence import HandPresenceEstimator, PresenceVerdict
from .progress import MasteryEntry, ProgressTracker

logger = logging.getLogger(__name__)

PRACTICE = "practice"
RECOGNITION = "recognition"


class CycleState(Enum):
    IDLE = auto()
    CAPTURE_REQUESTED = auto()
    PRESENCE_CHECKING = auto()
    RECOGNIZING = auto()
    DONE = auto()
    FAILED = auto()


@dataclass
class CycleResult:
    """Terminal outcome of one cycle, as handed to the presentation layer."""

    state: CycleState
    mode: str
    target: str | None = None
    outcome: RecognitionOutcome | None = None
    error: TutorError | None = None
    verdict: PresenceVerdict | None = None
    mastery: MasteryEntry | None = None

    @property
    def ok(self) -> bool:
        return self.state is CycleState.DONE

    @property
    def message(self) -> str:
        if self.error is not None:
            return self.error.user_message
        if self.outcome is None:
            return ""
        if self.mode == RECOGNITION:
            return f'Added "{self.outcome.label}" ({self.outcome.confidence:.0f}% confidence)'
        headline = "Great job!" if self.outcome.matched else "Keep practicing!"
        return f"{headline} {self.outcome.feedback}".strip()


CycleListener = Callable[[CycleResult], None]


class CaptureOrchestrator:
    """Sequence capture cycles for one camera and one learner.

    Parameters
    ----------
    frame_source : FrameSource
        Produces still frames; ``None`` means no frame.
    estimator : HandPresenceEstimator
        Local presence gate.
    classifier : RemoteGestureClassifier
        Remote recognizer (or any object with ``analyze`` / ``recognize``).
    progress : ProgressTracker
        Ledger updated after completed practice cycles.
    config : CaptureConfig or None
        Timer interval and presence acceptance threshold.
    """

    def __init__(
        self,
        frame_source: FrameSource,
        estimator: HandPresenceEstimator,
        classifier: RemoteGestureClassifier,
        progress: ProgressTracker,
        config: CaptureConfig | None = None,
    ) -> None:
        self.frame_source = frame_source
        self.estimator = estimator
        self.classifier = classifier
        self.progress = progress
        self.config = config or CaptureConfig()

        self.state = CycleState.IDLE
        self.skipped_ticks = 0

        self._target: GestureRecord | None = None
        self._candidates: list[str] = []
        self._listeners: list[CycleListener] = []

        self._epoch = 0
        self._in_flight = False
        self._pending: asyncio.Future | None = None
        self._timer: asyncio.Task | None = None
        self._cycles: set[asyncio.Task] = set()

    # ── Selection ────────────────────────────────────────────────────────

    @property
    def mode(self) -> str | None:
        if self._target is not None:
            return PRACTICE
        if self._candidates:
            return RECOGNITION
        return None

    @property
    def busy(self) -> bool:
        return self._in_flight

    @property
    def auto_capture(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def select_target(self, gesture: GestureRecord) -> None:
        """Practice *gesture*.  Results of cycles for a previous selection are dropped."""
        if self._target != gesture or self._candidates:
            self._invalidate()
        self._target = gesture
        self._candidates = []
        logger.info("Practice target: %s", gesture.name)

    def select_candidates(self, labels: Sequence[str]) -> None:
        """Recognize among *labels* (trained custom gesture names)."""
        labels = [label for label in labels if label and label.strip()]
        if not labels:
            raise ValueError("No trained gestures available. Train some gestures first.")
        if self._target is not None or labels != self._candidates:
            self._invalidate()
        self._target = None
        self._candidates = labels
        logger.info("Recognition candidates: %s", ", ".join(labels))

    def clear_selection(self) -> None:
        self._cancel_timer()
        self._invalidate()
        self._target = None
        self._candidates = []

    def add_listener(self, listener: CycleListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: CycleListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ── Manual capture ───────────────────────────────────────────────────

    async def capture_once(self) -> CycleResult | None:
        """Run one cycle now.

        Returns ``None`` without capturing when nothing is selected or a
        cycle is already running, and when the cycle's result was
        discarded by a cancellation.
        """
        if self.mode is None:
            logger.debug("Capture ignored: nothing selected")
            return None
        if self._in_flight:
            logger.debug("Capture ignored: cycle already in flight")
            return None
        self._in_flight = True
        return await self._run_cycle(self._epoch)

    # ── Auto-capture ─────────────────────────────────────────────────────

    def start_auto_capture(self, interval_ms: int | None = None) -> None:
        """Start ticking every *interval_ms* (default from config).

        Must be called from within the running event loop.
        """
        interval = (interval_ms or self.config.interval_ms) / 1000.0
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._timer_loop(interval))
        logger.info("Auto-capture every %.1fs", interval)

    def stop_auto_capture(self) -> None:
        """Stop the timer and drop the result of any in-flight cycle."""
        if self._timer is None:
            return
        self._cancel_timer()
        self._invalidate()
        logger.info("Auto-capture stopped")

    async def _timer_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self._tick()

    def _tick(self) -> None:
        if self.mode is None or not self.frame_source.is_active:
            return
        if self._in_flight:
            self.skipped_ticks += 1
            logger.debug("Tick skipped: cycle still in flight")
            return
        self._in_flight = True
        task = asyncio.get_running_loop().create_task(self._run_cycle(self._epoch))
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)

    # ── Teardown ─────────────────────────────────────────────────────────

    def close(self) -> None:
        """Tear down: stop the timer and discard any in-flight result."""
        self.clear_selection()
        self._listeners.clear()

    async def wait_idle(self) -> None:
        """Wait for cycles started by the timer to finish."""
        if self._cycles:
            await asyncio.gather(*list(self._cycles), return_exceptions=True)

    # ── Cycle ────────────────────────────────────────────────────────────

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _invalidate(self) -> None:
        self._epoch += 1

    def _stale(self, epoch: int) -> bool:
        return epoch != self._epoch

    def _set_state(self, state: CycleState) -> None:
        self.state = state
        logger.debug("Cycle state -> %s", state.name)

    async def _run_cycle(self, epoch: int) -> CycleResult | None:
        """Run one cycle.  Caller has already set ``_in_flight``."""
        try:
            result = await self._cycle(epoch)
            if result is None or self._stale(epoch):
                logger.info("Cycle result discarded after cancellation")
                return None
            self._set_state(result.state)
            self._surface(result)
            return result
        except asyncio.CancelledError:
            self._invalidate()
            raise
        finally:
            pending = self._pending
            if pending is not None and not pending.done():
                logger.debug("Cycle task cancelled; holding slot until executor call returns")
                pending.add_done_callback(self._release)
            else:
                self._release()

    def _release(self, future: asyncio.Future | None = None) -> None:
        if future is not None and not future.cancelled() and future.exception() is not None:
            logger.debug("Discarded executor error: %s", future.exception())
        self._pending = None
        self._in_flight = False
        self._set_state(CycleState.IDLE)

    async def _offload(self, func: Callable, *args):
        """Run blocking *func* in the default executor, shielded from task cancellation."""
        future = asyncio.get_running_loop().run_in_executor(None, func, *args)
        self._pending = future
        result = await asyncio.shield(future)
        self._pending = None
        return result

    async def _cycle(self, epoch: int) -> CycleResult | None:
        target = self._target
        candidates = list(self._candidates)
        mode = PRACTICE if target is not None else RECOGNITION
        label = target.name if target is not None else None

        def failed(error: TutorError, verdict: PresenceVerdict | None = None) -> CycleResult:
            return CycleResult(CycleState.FAILED, mode, label, error=error, verdict=verdict)

        # 1. Capture
        self._set_state(CycleState.CAPTURE_REQUESTED)
        try:
            frame = await self._offload(self.frame_source.capture_frame)
        except Exception as exc:
            logger.warning("Frame capture raised: %s", exc)
            frame = None
        if self._stale(epoch):
            return None
        if frame is None:
            return failed(FrameUnavailable())

        # 2. Presence gate
        self._set_state(CycleState.PRESENCE_CHECKING)
        verdict = self.estimator.estimate(frame)
        if not verdict.present or verdict.confidence < self.config.min_confidence:
            logger.info("No hand detected (confidence %.2f)", verdict.confidence)
            return failed(LocalGateRejection(), verdict)

        # 3. Remote recognition
        self._set_state(CycleState.RECOGNIZING)
        try:
            if target is not None:
                outcome = await self._offload(self.classifier.analyze, frame, target.name)
            else:
                outcome = await self._offload(self.classifier.recognize, frame, candidates)
        except TutorError as exc:
            if self._stale(epoch):
                return None
            logger.warning("Recognition failed: %s (%s)", exc.kind, exc.detail)
            return failed(exc, verdict)
        except Exception as exc:
            if self._stale(epoch):
                return None
            logger.exception("Unexpected recognition error")
            return failed(TransportFailure(str(exc)), verdict)

        if self._stale(epoch):
            return None

        # 4. Progress (practice only; exactly once per completed cycle)
        mastery = None
        if target is not None:
            mastery = self.progress.record_attempt(target.id, outcome.matched)

        return CycleResult(
            CycleState.DONE, mode, label, outcome=outcome, verdict=verdict, mastery=mastery
        )

    def _surface(self, result: CycleResult) -> None:
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Cycle listener failed")
