#!/usr/bin/env python3
"""
main.py – AUSLAN Tutor command line.

Pipeline (practice):
  Webcam  ──►  presence gate  ──►  remote classifier  ──►  progress ledger  ──►  stdout

Pipeline (sentence):
  Webcam  ──►  presence gate  ──►  remote classifier (trained names)  ──►  word list  ──►  sentence

Usage
-----
    python main.py gestures                          # list the built-in catalog
    python main.py practice hello                    # Enter to capture, q to quit
    python main.py practice hello --auto             # capture every 3 s
    python main.py practice a --image hand.jpg       # one cycle against a still image
    python main.py sentence --gestures hello,water   # recognize trained signs, then compose
    python main.py check hand.jpg                    # presence gate only
    python main.py progress                          # show the ledger
    python main.py progress --reset                  # clear it (asks first)
    python main.py settings --api-key sk-...         # store the credential
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone

from auslan_tutor.classifier import RemoteGestureClassifier
from auslan_tutor.config import TutorConfig, is_valid_api_key, load_config, save_config
from auslan_tutor.frames import CameraFrameSource, ImageFrameSource
from auslan_tutor.gestures import (
    AUSLAN_GESTURES,
    CATEGORIES,
    CustomGestureRecord,
    InMemoryGestureRepository,
    candidate_labels,
    get_gesture,
    gestures_in,
)
from auslan_tutor.orchestrator import CaptureOrchestrator, CycleResult
from auslan_tutor.presence import HandPresenceEstimator
from auslan_tutor.progress import ProgressTracker
from auslan_tutor.remote import ChatClient
from auslan_tutor.sentence import SentenceAssembler

TAG = "[AuslanTutor]"


# ── Argument parsing ─────────────────────────────────────────────────────────


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="AUSLAN Tutor – practice Australian Sign Language")
    p.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    g = sub.add_parser("gestures", help="List the built-in gesture catalog")
    g.add_argument("--category", choices=sorted(CATEGORIES), default=None)

    for name, help_text in (
        ("practice", "Practice one catalog gesture"),
        ("sentence", "Recognize trained gestures and compose a sentence"),
    ):
        s = sub.add_parser(name, help=help_text)
        if name == "practice":
            s.add_argument("gesture", help="Catalog gesture id, e.g. 'hello' or 'a'")
        else:
            s.add_argument(
                "--gestures", required=True,
                help="Comma-separated names of your trained gestures",
            )
        s.add_argument("--camera", type=int, default=None, help="Camera device index")
        s.add_argument("--image", type=str, default=None, help="Use a still image instead of the webcam")
        s.add_argument("--auto", action="store_true", help="Capture on a timer")
        s.add_argument("--interval", type=int, default=None, help="Auto-capture interval (ms)")

    c = sub.add_parser("check", help="Run the presence gate on an image file")
    c.add_argument("image")

    r = sub.add_parser("progress", help="Show or reset practice progress")
    r.add_argument("--reset", action="store_true", help="Clear all progress")
    r.add_argument("--yes", action="store_true", help="Skip the reset confirmation")

    st = sub.add_parser("settings", help="Update settings")
    st.add_argument("--api-key", type=str, default=None, help="Remote API key")
    st.add_argument("--verify", action="store_true", help="Check the key against the service")

    return p.parse_args(argv)


# ── Session wiring ───────────────────────────────────────────────────────────


def _build(config: TutorConfig, args: argparse.Namespace):
    if args.image:
        source = ImageFrameSource(args.image)
    else:
        if args.camera is not None:
            config.camera.device_id = args.camera
        source = CameraFrameSource(config.camera)

    client = ChatClient(config.remote)
    orchestrator = CaptureOrchestrator(
        frame_source=source,
        estimator=HandPresenceEstimator(config.presence),
        classifier=RemoteGestureClassifier(config.remote, client),
        progress=ProgressTracker(config.storage.progress_path),
        config=config.capture,
    )
    return source, client, orchestrator


def _print_result(result: CycleResult) -> None:
    if result.ok:
        outcome = result.outcome
        print(f"{TAG} {result.message}")
        print(f"{TAG}   label={outcome.label}  confidence={outcome.confidence:.0f}%")
        for tip in outcome.suggestions:
            print(f"{TAG}   tip: {tip}")
        if result.mastery is not None:
            m = result.mastery
            star = "  ★ mastered" if m.mastered else ""
            print(f"{TAG}   progress: {m.successes}/{m.attempts}{star}")
    else:
        hint = "" if result.error.retryable else "  (fix settings before retrying)"
        print(f"{TAG} {result.message}{hint}")


async def _run_session(orchestrator: CaptureOrchestrator, auto: bool, interval: int | None) -> None:
    loop = asyncio.get_running_loop()
    if auto:
        orchestrator.start_auto_capture(interval)
        print(f"{TAG} Auto-capture running. Press Enter to stop.")
        await loop.run_in_executor(None, sys.stdin.readline)
        orchestrator.stop_auto_capture()
        await orchestrator.wait_idle()
        return

    print(f"{TAG} Press Enter to capture, 'q' + Enter to quit.")
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line or line.strip().lower() in ("q", "quit"):
            return
        print(f"{TAG} Capturing …")
        await orchestrator.capture_once()


def _require_key(config: TutorConfig) -> bool:
    if config.remote.has_valid_key:
        return True
    print(
        f"{TAG} API key required. Run 'main.py settings --api-key sk-...' "
        "or set OPENAI_API_KEY.",
        file=sys.stderr,
    )
    return False


# ── Commands ─────────────────────────────────────────────────────────────────


def cmd_gestures(config: TutorConfig, args: argparse.Namespace) -> int:
    gestures = gestures_in(args.category) if args.category else list(AUSLAN_GESTURES)
    for g in gestures:
        print(f"  {g.id:<9} {g.name:<10} {g.category:<10} {g.difficulty:<7} {g.instructions}")
    return 0


def cmd_practice(config: TutorConfig, args: argparse.Namespace) -> int:
    gesture = get_gesture(args.gesture)
    if gesture is None:
        print(f"{TAG} Unknown gesture {args.gesture!r}. See 'main.py gestures'.", file=sys.stderr)
        return 2
    if not _require_key(config):
        return 1

    source, _, orchestrator = _build(config, args)
    orchestrator.add_listener(_print_result)
    orchestrator.select_target(gesture)
    print(f"{TAG} Practising {gesture.name}: {gesture.instructions}")

    async def run() -> None:
        if args.image:
            await orchestrator.capture_once()
        else:
            await _run_session(orchestrator, args.auto, args.interval)

    return _with_source(source, orchestrator, run)


def cmd_sentence(config: TutorConfig, args: argparse.Namespace) -> int:
    if not _require_key(config):
        return 1

    now = datetime.now(timezone.utc).isoformat()
    repo = InMemoryGestureRepository(
        CustomGestureRecord(str(i), "local", name, "", "", now)
        for i, name in enumerate(args.gestures.split(","))
    )
    labels = candidate_labels(repo.list_gestures())
    if not labels:
        print(f"{TAG} No trained gestures given.", file=sys.stderr)
        return 2

    source, client, orchestrator = _build(config, args)
    assembler = SentenceAssembler(config.remote, client)
    orchestrator.add_listener(_print_result)
    orchestrator.add_listener(assembler.on_cycle_result)
    orchestrator.select_candidates(labels)

    async def run() -> None:
        if args.image:
            await orchestrator.capture_once()
        else:
            await _run_session(orchestrator, args.auto, args.interval)

    code = _with_source(source, orchestrator, run)
    print(f"{TAG} Words: {' '.join(assembler.words) or '(none)'}")
    if assembler.words:
        print(f"{TAG} Sentence: {assembler.compose()}")
    return code


def _with_source(source, orchestrator: CaptureOrchestrator, run) -> int:
    if isinstance(source, CameraFrameSource) and not source.start():
        print(f"{TAG} Cannot open camera {source.config.device_id}", file=sys.stderr)
        return 1
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print(f"\n{TAG} Interrupted.")
    finally:
        orchestrator.close()
        if isinstance(source, CameraFrameSource):
            source.stop()
        print(f"{TAG} Done.")
    return 0


def cmd_check(config: TutorConfig, args: argparse.Namespace) -> int:
    frame = ImageFrameSource(args.image).capture_frame()
    if frame is None:
        print(f"{TAG} Could not read {args.image}", file=sys.stderr)
        return 1
    verdict = HandPresenceEstimator(config.presence).estimate(frame)
    print(f"{TAG} present={verdict.present}  confidence={verdict.confidence:.3f}  "
          f"landmarks≈{verdict.estimated_landmark_count}")
    return 0


def cmd_progress(config: TutorConfig, args: argparse.Namespace) -> int:
    tracker = ProgressTracker(config.storage.progress_path)
    if args.reset:
        if not args.yes:
            answer = input("Reset ALL progress? This cannot be undone. [y/N] ")
            if answer.strip().lower() not in ("y", "yes"):
                print(f"{TAG} Reset cancelled.")
                return 0
        tracker.reset_all()
        print(f"{TAG} Progress reset.")
        return 0

    s = tracker.summary()
    print(f"{TAG} Attempts {s['total_attempts']}  ·  Success {s['success_rate']}%  ·  "
          f"Streak {s['current_streak']}  ·  Mastered {s['mastered']}/{len(AUSLAN_GESTURES)}")
    for entry in sorted(tracker.entries(), key=lambda e: e.gesture_id):
        gesture = get_gesture(entry.gesture_id)
        name = gesture.name if gesture else entry.gesture_id
        star = "★" if entry.mastered else " "
        print(f"  {star} {name:<10} {entry.successes}/{entry.attempts}  last {entry.last_practiced_at}")
    return 0


def cmd_settings(config: TutorConfig, args: argparse.Namespace) -> int:
    if args.api_key is None:
        state = "valid" if config.remote.has_valid_key else "missing/invalid"
        print(f"{TAG} API key: {state}")
        return 0
    if not is_valid_api_key(args.api_key):
        print(f"{TAG} That does not look like an API key (expected 'sk-...').", file=sys.stderr)
        return 2
    if args.verify and not ChatClient(config.remote).verify_credential(args.api_key):
        print(f"{TAG} The service rejected that key.", file=sys.stderr)
        return 1
    config.remote.api_key = args.api_key
    path = save_config(config, args.config)
    print(f"{TAG} Saved to {path}")
    return 0


COMMANDS = {
    "gestures": cmd_gestures,
    "practice": cmd_practice,
    "sentence": cmd_sentence,
    "check": cmd_check,
    "progress": cmd_progress,
    "settings": cmd_settings,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config(args.config)
    return COMMANDS[args.command](config, args)


if __name__ == "__main__":
    sys.exit(main())
