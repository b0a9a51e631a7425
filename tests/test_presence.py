import base64

import cv2
import numpy as np

from auslan_tutor.config import PresenceConfig
from auslan_tutor.frames import StillFrame
from auslan_tutor.presence import HandPresenceEstimator, PresenceVerdict

from conftest import LIGHT_SKIN, SLATE_BLUE, solid_frame, striped_skin_frame


def test_transparent_frame_is_absent():
    verdict = HandPresenceEstimator().estimate(solid_frame(LIGHT_SKIN, alpha=0))
    assert verdict == PresenceVerdict(present=False, confidence=0.0, estimated_landmark_count=0)


def test_skin_frame_with_contrast_is_present(skin_frame):
    verdict = HandPresenceEstimator().estimate(skin_frame)
    assert verdict.present is True
    assert verdict.confidence > 0.3
    assert verdict.confidence <= 1.0
    assert 0 < verdict.estimated_landmark_count <= 21


def test_uniform_non_skin_frame_is_absent(blank_frame):
    verdict = HandPresenceEstimator().estimate(blank_frame)
    assert verdict.present is False
    assert verdict.confidence == 0.0


def test_uniform_skin_frame_passes_on_skin_alone():
    verdict = HandPresenceEstimator().estimate(solid_frame(LIGHT_SKIN))
    assert verdict.present is True
    assert verdict.confidence == 1.0


def test_small_skin_patch_with_edges_passes_lower_bar():
    # ~1.7% skin: below the skin-only bar, above the skin+edges bar
    pixels = np.zeros((100, 100, 4), dtype=np.uint8)
    pixels[..., :3] = SLATE_BLUE
    pixels[..., 3] = 255
    pixels[40:57, 0:10, :3] = LIGHT_SKIN
    # Bright horizontal lines give edge density
    pixels[10:90:4, :, :3] = (250, 250, 250)

    estimator = HandPresenceEstimator()
    verdict = estimator.estimate(StillFrame(pixels=pixels))
    assert verdict.present is True

    no_edges = HandPresenceEstimator(PresenceConfig(edge_threshold=1.0))
    assert no_edges.estimate(StillFrame(pixels=pixels)).present is False


def test_estimate_is_deterministic(skin_frame):
    estimator = HandPresenceEstimator()
    assert estimator.estimate(skin_frame) == estimator.estimate(skin_frame)


def test_garbage_input_never_raises():
    estimator = HandPresenceEstimator()
    absent = PresenceVerdict.absent()
    assert estimator.estimate(b"not an image") == absent
    assert estimator.estimate("data:image/jpeg;base64,@@@") == absent
    assert estimator.estimate(b"") == absent
    assert estimator.estimate(None) == absent


def test_accepts_encoded_png_and_data_url():
    frame = striped_skin_frame()
    bgra = cv2.cvtColor(frame.pixels, cv2.COLOR_RGBA2BGRA)
    ok, png = cv2.imencode(".png", bgra)
    assert ok

    estimator = HandPresenceEstimator()
    from_bytes = estimator.estimate(png.tobytes())
    data_url = "data:image/png;base64," + base64.b64encode(png.tobytes()).decode()
    from_url = estimator.estimate(data_url)

    assert from_bytes == estimator.estimate(frame)
    assert from_url == from_bytes


def test_empty_frame_is_absent():
    frame = StillFrame(pixels=np.zeros((0, 0, 4), dtype=np.uint8))
    assert HandPresenceEstimator().estimate(frame) == PresenceVerdict.absent()
