import base64

import cv2
import numpy as np
import pytest

from auslan_tutor.frames import ImageFrameSource, StillFrame
from auslan_tutor.gestures import (
    AUSLAN_GESTURES,
    CustomGestureRecord,
    InMemoryGestureRepository,
    candidate_labels,
    get_gesture,
    gestures_in,
)


def test_from_bgr_converts_to_rgba():
    bgr = np.zeros((4, 6, 3), dtype=np.uint8)
    bgr[..., 0] = 255  # blue in BGR
    frame = StillFrame.from_bgr(bgr)
    assert (frame.height, frame.width) == (4, 6)
    assert tuple(frame.pixels[0, 0]) == (0, 0, 255, 255)


def test_rejects_non_rgba_pixels():
    with pytest.raises(ValueError):
        StillFrame(pixels=np.zeros((4, 4, 3), dtype=np.uint8))


def test_data_url_is_decodable_jpeg(skin_frame):
    url = skin_frame.to_data_url(quality=90)
    assert url.startswith("data:image/jpeg;base64,")
    decoded = StillFrame.decode(url)
    assert (decoded.height, decoded.width) == (skin_frame.height, skin_frame.width)
    raw = base64.b64decode(url.split(",", 1)[1])
    assert raw[:2] == b"\xff\xd8"


def test_decode_rejects_garbage():
    with pytest.raises(ValueError):
        StillFrame.decode(b"\x00\x01\x02")
    with pytest.raises(ValueError):
        StillFrame.decode("data:image/png;base64,***")


def test_image_frame_source(tmp_path, skin_frame):
    path = tmp_path / "hand.png"
    cv2.imwrite(str(path), cv2.cvtColor(skin_frame.pixels, cv2.COLOR_RGBA2BGR))

    source = ImageFrameSource(path)
    assert source.is_active
    frame = source.capture_frame()
    assert np.array_equal(frame.pixels, skin_frame.pixels)

    missing = ImageFrameSource(tmp_path / "nope.png")
    assert not missing.is_active
    assert missing.capture_frame() is None


# ── Gesture catalog ──────────────────────────────────────────────────────────


def test_catalog_lookup():
    assert get_gesture("HELLO").name == "Hello"
    assert get_gesture("a").category == "alphabet"
    assert get_gesture("missing") is None
    assert len(gestures_in("numbers")) == 10
    assert len({g.id for g in AUSLAN_GESTURES}) == len(AUSLAN_GESTURES)


def test_candidate_labels_from_repository():
    records = [
        CustomGestureRecord("1", "u", "Coffee", "", "", "2024-01-01"),
        CustomGestureRecord("2", "u", " coffee ", "", "", "2024-01-02"),
        CustomGestureRecord("3", "u", "Tea", "", "", "2024-01-03"),
        CustomGestureRecord("4", "u", "  ", "", "", "2024-01-04"),
    ]
    repo = InMemoryGestureRepository(records)
    assert candidate_labels(repo.list_gestures()) == ["Coffee", "Tea"]
