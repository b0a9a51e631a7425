"""
presence.py – Cheap hand-presence gate run before any remote call.

This is a coarse pixel heuristic, not a landmark model.  Two signals are
taken from a strided sample of the frame:

* **skin coverage** – fraction of sampled pixels falling in one of three
  RGB buckets (light / medium / dark skin tones);
* **edge density** – fraction of sampled pixels whose red channel differs
  sharply from the pixel one row above and one row below.

Acceptance is disjunctive: enough skin on its own, *or* slightly less skin
together with some edge structure.  Missing a real hand costs the learner a
practice attempt while a false pass costs one remote call, so the policy
leans towards passing.

``estimated_landmark_count`` is cosmetic (confidence scaled onto the 21
MediaPipe joints) and must not be read as a detection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .config import PresenceConfig
from .frames import StillFrame

logger = logging.getLogger(__name__)

# ── Skin-tone buckets ────────────────────────────────────────────────────────
# Inclusive (min, max) per channel, ordered R, G, B.

SKIN_TONE_RANGES: dict[str, tuple[tuple[int, int], tuple[int, int], tuple[int, int]]] = {
    "light": ((95, 255), (40, 100), (20, 95)),
    "medium": ((45, 95), (20, 50), (5, 35)),
    "dark": ((20, 60), (10, 30), (5, 20)),
}


@dataclass(frozen=True)
class PresenceVerdict:
    present: bool
    confidence: float
    estimated_landmark_count: int

    @classmethod
    def absent(cls) -> PresenceVerdict:
        return cls(present=False, confidence=0.0, estimated_landmark_count=0)


def _skin_mask(r: np.ndarray, g: np.ndarray, b: np.ndarray) -> np.ndarray:
    mask = np.zeros(r.shape, dtype=bool)
    for (r_lo, r_hi), (g_lo, g_hi), (b_lo, b_hi) in SKIN_TONE_RANGES.values():
        mask |= (
            (r >= r_lo) & (r <= r_hi)
            & (g >= g_lo) & (g <= g_hi)
            & (b >= b_lo) & (b <= b_hi)
        )
    return mask


class HandPresenceEstimator:
    """Decide whether a still frame plausibly contains a hand.

    Parameters
    ----------
    config : PresenceConfig or None
        Sampling stride and acceptance thresholds.  All thresholds are
        tunable; only the two-signal disjunctive structure is fixed.
    """

    def __init__(self, config: PresenceConfig | None = None) -> None:
        self.config = config or PresenceConfig()

    def estimate(self, frame: StillFrame | bytes | str | None) -> PresenceVerdict:
        """Return a :class:`PresenceVerdict` for *frame*.

        *frame* may be a :class:`StillFrame`, encoded image bytes, or a
        base64 data URL.  Never raises: anything undecodable is reported as
        absent with zero confidence.
        """
        try:
            still = frame if isinstance(frame, StillFrame) else StillFrame.decode(frame)
            return self._analyse(still.pixels)
        except (ValueError, TypeError, AttributeError) as exc:
            logger.debug("Presence check on undecodable frame: %s", exc)
            return PresenceVerdict.absent()

    # ── Pixel analysis ───────────────────────────────────────────────────

    def _analyse(self, pixels: np.ndarray) -> PresenceVerdict:
        cfg = self.config
        height, width = pixels.shape[:2]
        flat = pixels.reshape(-1, 4).astype(np.int16)
        n_pixels = flat.shape[0]
        if n_pixels == 0:
            return PresenceVerdict.absent()

        idx = np.arange(0, n_pixels, max(1, cfg.sample_stride))
        sampled = flat[idx]
        visible = sampled[:, 3] > cfg.alpha_threshold
        total = int(visible.sum())
        if total == 0:
            return PresenceVerdict.absent()

        r, g, b = sampled[:, 0], sampled[:, 1], sampled[:, 2]
        skin = int((_skin_mask(r, g, b) & visible).sum())

        # Vertical neighbours exist only away from the first and last row
        has_neighbours = (idx > width) & (idx < n_pixels - width)
        above = np.where(has_neighbours, idx - width, idx)
        below = np.where(has_neighbours, idx + width, idx)
        red = flat[:, 0]
        contrast = np.abs(r - red[above]) + np.abs(r - red[below])
        edges = int(((contrast > cfg.contrast_threshold) & has_neighbours & visible).sum())

        skin_pct = skin / total
        edge_pct = edges / total

        present = skin_pct > cfg.skin_threshold or (
            skin_pct > cfg.skin_with_edges and edge_pct > cfg.edge_threshold
        )
        confidence = (
            min(skin_pct * cfg.skin_weight + edge_pct * cfg.edge_weight, 1.0)
            if present
            else 0.0
        )

        logger.debug(
            "Presence %dx%d: skin=%.3f edges=%.3f present=%s confidence=%.3f",
            width, height, skin_pct, edge_pct, present, confidence,
        )
        return PresenceVerdict(
            present=present,
            confidence=float(confidence),
            estimated_landmark_count=int(confidence * cfg.max_landmarks),
        )
