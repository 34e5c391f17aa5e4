import threading
import time
from types import SimpleNamespace

import numpy as np
import pytest

pytest.importorskip("mediapipe")

import gesture_detector
from capture_errors import DetectorInitializationError, FrameAnalysisError
from conftest import make_hand
from detector_base import DetectorOptions
from gesture_detector import MediaPipeHandDetector, ensure_model, frame_from_result


@pytest.fixture(autouse=True)
def fresh_model_cache(monkeypatch):
    monkeypatch.setattr(gesture_detector, "_ready_models", set())


def test_model_is_downloaded_once_for_concurrent_opens(monkeypatch, tmp_path):
    calls = []

    def fake_download(url, path):
        calls.append(url)
        time.sleep(0.05)
        path.write_bytes(b"model")

    monkeypatch.setattr(gesture_detector, "urlretrieve", fake_download)
    target = tmp_path / "models" / "hand_landmarker.task"
    results = []
    threads = [
        threading.Thread(target=lambda: results.append(ensure_model(target)))
        for _ in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert results == [target] * 8
    assert target.read_bytes() == b"model"


def test_cached_model_skips_download(monkeypatch, tmp_path):
    target = tmp_path / "hand_landmarker.task"
    target.write_bytes(b"model")

    def fail(url, path):
        raise AssertionError("should not download")

    monkeypatch.setattr(gesture_detector, "urlretrieve", fail)
    assert ensure_model(target) == target


def test_download_failure_is_initialization_error(monkeypatch, tmp_path):
    def broken(url, path):
        path.write_bytes(b"partial")
        raise OSError("network unreachable")

    monkeypatch.setattr(gesture_detector, "urlretrieve", broken)
    target = tmp_path / "hand_landmarker.task"
    with pytest.raises(DetectorInitializationError):
        ensure_model(target)
    assert not target.exists()
    assert list(tmp_path.iterdir()) == []


def _landmark(x, y, z=0.0):
    return SimpleNamespace(x=x, y=y, z=z)


def test_frame_from_result_keeps_first_hand():
    coords = make_hand(["index"])
    result = SimpleNamespace(
        hand_landmarks=[[_landmark(*point) for point in coords]],
        handedness=[[SimpleNamespace(category_name="Left", score=0.9)]],
    )
    frame = frame_from_result(result, 1234)
    assert frame.handedness == "Left"
    assert frame.timestamp_ms == 1234
    np.testing.assert_allclose(frame.landmarks, coords, atol=1e-6)


def test_frame_from_result_defaults_to_right_hand():
    coords = make_hand()
    result = SimpleNamespace(hand_landmarks=[[_landmark(*p) for p in coords]], handedness=[])
    assert frame_from_result(result, 0).handedness == "Right"


def test_frame_from_result_without_hand():
    frame = frame_from_result(SimpleNamespace(hand_landmarks=[], handedness=[]), 5)
    assert frame.landmarks is None
    assert not frame.has_hand


def test_unsupported_model_complexity_is_rejected():
    detector = MediaPipeHandDetector()
    with pytest.raises(DetectorInitializationError):
        detector.configure(DetectorOptions(model_complexity=0))


def test_submit_before_configure_fails_per_frame():
    detector = MediaPipeHandDetector()
    with pytest.raises(FrameAnalysisError):
        detector.submit_frame(np.zeros((4, 4, 3), dtype=np.uint8), 0)


def test_timestamps_are_strictly_increasing():
    submitted = []
    detector = MediaPipeHandDetector()
    detector._landmarker = SimpleNamespace(detect_async=lambda image, ts: submitted.append(ts))
    frame = np.zeros((4, 4, 3), dtype=np.uint8)
    assert detector.submit_frame(frame, 100) == 100
    assert detector.submit_frame(frame, 100) == 101
    assert detector.submit_frame(frame, 50) == 102
    assert submitted == [100, 101, 102]


def test_detect_errors_become_frame_analysis_errors():
    def boom(image, ts):
        raise RuntimeError("graph failed")

    detector = MediaPipeHandDetector()
    detector._landmarker = SimpleNamespace(detect_async=boom)
    with pytest.raises(FrameAnalysisError):
        detector.submit_frame(np.zeros((4, 4, 3), dtype=np.uint8), 1)


def test_results_are_forwarded_to_callback():
    received = []
    detector = MediaPipeHandDetector()
    detector.on_result(received.append)
    detector._result_callback(SimpleNamespace(hand_landmarks=[], handedness=[]), None, 42)
    assert received[0].timestamp_ms == 42


def test_release_is_idempotent():
    closed = []
    detector = MediaPipeHandDetector()
    detector._landmarker = SimpleNamespace(close=lambda: closed.append(True))
    detector.release()
    detector.release()
    assert closed == [True]
