"""
frames.py – Still frames and the sources that produce them.

A :class:`StillFrame` is one RGBA raster captured at a single instant.  It
is created per capture, handed to the presence gate and the remote
classifier, then dropped.

Frame sources
-------------
``CameraFrameSource``   OpenCV ``VideoCapture`` on a webcam index.
``ImageFrameSource``    Serves a single image file (useful headless / CI).

Both satisfy the :class:`FrameSource` protocol: ``is_active`` plus
``capture_frame() -> StillFrame | None``.  ``None`` means "no frame", never
an exception.
"""

from __future__ import annotations

import base64
import binascii
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import cv2
import numpy as np

from .config import CameraConfig

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = "data:image/jpeg;base64,"


# ── StillFrame ───────────────────────────────────────────────────────────────


@dataclass
class StillFrame:
    """An RGBA snapshot of shape ``(height, width, 4)``, dtype ``uint8``."""

    pixels: np.ndarray
    captured_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"Expected (H, W, 4) RGBA pixels, got {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            self.pixels = self.pixels.astype(np.uint8)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    # ── Construction ─────────────────────────────────────────────────────

    @classmethod
    def from_bgr(cls, bgr_frame: np.ndarray) -> StillFrame:
        """Wrap an OpenCV BGR / BGRA / grayscale image."""
        if bgr_frame.ndim == 2:
            rgba = cv2.cvtColor(bgr_frame, cv2.COLOR_GRAY2RGBA)
        elif bgr_frame.shape[2] == 4:
            rgba = cv2.cvtColor(bgr_frame, cv2.COLOR_BGRA2RGBA)
        else:
            rgba = cv2.cvtColor(bgr_frame, cv2.COLOR_BGR2RGBA)
        return cls(pixels=rgba)

    @classmethod
    def decode(cls, data: bytes | str) -> StillFrame:
        """Decode encoded image bytes or a ``data:`` URL / bare base64 string.

        Raises
        ------
        ValueError
            If the payload is not a decodable image.
        """
        if isinstance(data, str):
            payload = data.split(",", 1)[1] if data.startswith("data:") else data
            try:
                raw = base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError(f"Invalid base64 image payload: {exc}") from exc
        else:
            raw = bytes(data)

        if not raw:
            raise ValueError("Empty image payload")

        buf = np.frombuffer(raw, dtype=np.uint8)
        try:
            image = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
        except cv2.error as exc:
            raise ValueError(f"Image payload could not be decoded: {exc}") from exc
        if image is None:
            raise ValueError("Image payload could not be decoded")
        if image.dtype != np.uint8:
            image = cv2.convertScaleAbs(image, alpha=255.0 / max(float(image.max()), 1.0))
        try:
            return cls.from_bgr(image)
        except cv2.error as exc:
            raise ValueError(f"Unsupported image layout {image.shape}") from exc

    # ── Encoding ─────────────────────────────────────────────────────────

    def to_jpeg(self, quality: int = 80) -> bytes:
        bgr = cv2.cvtColor(self.pixels, cv2.COLOR_RGBA2BGR)
        ok, encoded = cv2.imencode(".jpg", bgr, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
        if not ok:
            raise ValueError("JPEG encoding failed")
        return encoded.tobytes()

    def to_data_url(self, quality: int = 80) -> str:
        """JPEG base64 data URL, the form the remote classifier accepts."""
        return _DATA_URL_PREFIX + base64.b64encode(self.to_jpeg(quality)).decode("ascii")


# ── Frame sources ────────────────────────────────────────────────────────────


class FrameSource(Protocol):
    @property
    def is_active(self) -> bool: ...

    def capture_frame(self) -> StillFrame | None: ...


class CameraFrameSource:
    """Thin wrapper around ``cv2.VideoCapture``.

    One instance owns one camera handle.  ``capture_frame`` blocks on the
    device read, so async callers should run it in an executor.
    """

    def __init__(self, config: CameraConfig | None = None) -> None:
        self.config = config or CameraConfig()
        self._cap: cv2.VideoCapture | None = None
        self._lock = threading.Lock()

    @property
    def is_active(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def start(self) -> bool:
        with self._lock:
            if self._cap is not None and self._cap.isOpened():
                return True
            cap = cv2.VideoCapture(self.config.device_id)
            if not cap.isOpened():
                logger.error("Cannot open camera %d", self.config.device_id)
                cap.release()
                return False
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
            # Drop the first few frames while auto-exposure settles
            for _ in range(5):
                cap.read()
            self._cap = cap
            logger.info("Camera %d started", self.config.device_id)
            return True

    def stop(self) -> None:
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
                logger.info("Camera %d stopped", self.config.device_id)

    def capture_frame(self) -> StillFrame | None:
        with self._lock:
            if self._cap is None or not self._cap.isOpened():
                return None
            ret, frame = self._cap.read()
        if not ret or frame is None:
            logger.warning("Camera read failed")
            return None
        return StillFrame.from_bgr(frame)

    def __enter__(self) -> CameraFrameSource:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()


class ImageFrameSource:
    """Serves the same image file on every capture."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    @property
    def is_active(self) -> bool:
        return self.path.is_file()

    def capture_frame(self) -> StillFrame | None:
        try:
            return StillFrame.decode(self.path.read_bytes())
        except (OSError, ValueError) as exc:
            logger.warning("Could not load %s (%s)", self.path, exc)
            return None
