"""Shared pytest fixtures for stereoproc tests."""

from pathlib import Path

import cv2
import numpy as np
import pytest

from stereoproc.calibration import StereoCalibration, save_stereo_calibration

IMAGE_WIDTH = 64
IMAGE_HEIGHT = 48


class FakeVideoCapture:
    """Stand-in for cv2.VideoCapture over an in-memory list of frames.

    Tracks the position counter the way OpenCV does (index of the next frame
    to grab) and records every seek.
    """

    def __init__(self, frames: list[np.ndarray], opened: bool = True):
        self.frames = frames
        self.opened = opened
        self.pos = 0
        self.seeks: list[int] = []
        self.grab_calls = 0
        self.released = False

    def isOpened(self) -> bool:
        return self.opened

    def get(self, prop: int) -> float:
        if prop == cv2.CAP_PROP_POS_FRAMES:
            return float(self.pos)
        if prop == cv2.CAP_PROP_FRAME_COUNT:
            return float(len(self.frames))
        return 0.0

    def set(self, prop: int, value: float) -> bool:
        if prop == cv2.CAP_PROP_POS_FRAMES:
            self.pos = int(value)
            self.seeks.append(int(value))
        return True

    def grab(self) -> bool:
        self.grab_calls += 1
        if self.pos >= len(self.frames):
            return False
        self.pos += 1
        return True

    def retrieve(self):
        if self.pos == 0:
            return False, None
        return True, self.frames[self.pos - 1].copy()

    def release(self) -> None:
        self.released = True


def make_side_by_side_frames(count: int, height: int = 4, width: int = 8) -> list[np.ndarray]:
    """Frames whose left half is filled with the frame index and right half with index + 100."""
    frames = []
    for idx in range(count):
        frame = np.empty((height, width, 3), dtype=np.uint8)
        frame[:, : width // 2] = idx
        frame[:, width // 2 :] = idx + 100
        frames.append(frame)
    return frames


@pytest.fixture
def fake_video(monkeypatch):
    """Factory patching cv2.VideoCapture in the video source with a FakeVideoCapture.

    Returns:
        Callable taking a frame count and returning the installed capture.
    """

    def install(count: int, opened: bool = True, **frame_kwargs) -> FakeVideoCapture:
        capture = FakeVideoCapture(
            make_side_by_side_frames(count, **frame_kwargs), opened=opened
        )
        monkeypatch.setattr(
            "stereoproc.sources.video.cv2.VideoCapture", lambda filename: capture
        )
        return capture

    return install


def textured_pair(shift: int = 4, seed: int = 0) -> tuple[np.ndarray, np.ndarray]:
    """Random-texture BGR pair where the right image is the left shifted by ``shift`` pixels."""
    rng = np.random.default_rng(seed)
    left = rng.integers(0, 256, size=(IMAGE_HEIGHT, IMAGE_WIDTH, 3), dtype=np.uint8)
    right = np.roll(left, -shift, axis=1)
    return left, right


@pytest.fixture
def image_sequence(tmp_path: Path) -> str:
    """Write a 3-frame stereo image sequence and return its filename template."""
    frames_dir = tmp_path / "input"
    frames_dir.mkdir()
    for idx in range(3):
        left, right = textured_pair(seed=idx)
        cv2.imwrite(str(frames_dir / f"cam_{idx}_L.png"), left)
        cv2.imwrite(str(frames_dir / f"cam_{idx}_R.png"), right)
    return str(frames_dir / "cam_%{f}_%{s}.png")


@pytest.fixture
def stereo_calibration() -> StereoCalibration:
    """Distortion-free horizontal stereo rig matching the test image size."""
    K = np.array(
        [
            [100.0, 0.0, IMAGE_WIDTH / 2],
            [0.0, 100.0, IMAGE_HEIGHT / 2],
            [0.0, 0.0, 1.0],
        ]
    )
    return StereoCalibration(
        M1=K.copy(),
        D1=np.zeros(5),
        M2=K.copy(),
        D2=np.zeros(5),
        R=np.eye(3),
        T=np.array([-0.1, 0.0, 0.0]),
        image_size=(IMAGE_WIDTH, IMAGE_HEIGHT),
    )


@pytest.fixture
def stereo_calibration_file(tmp_path: Path, stereo_calibration) -> Path:
    """Stereo calibration written as an OpenCV YAML file storage."""
    path = tmp_path / "stereo_calibration.yml"
    save_stereo_calibration(stereo_calibration, path)
    return path


def write_method_file(path: Path, method: str, **params: int) -> Path:
    """Write a stereo method parameter file with CamelCase parameter entries."""
    storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
    storage.write("MethodName", method)
    for name, value in params.items():
        storage.write(name, value)
    storage.release()
    return path


@pytest.fixture
def stereo_method_file(tmp_path: Path) -> Path:
    """SGBM method file with a small disparity range."""
    return write_method_file(
        tmp_path / "stereo_method.yml", "OpenCV_SGBM", NumDisparities=16, BlockSize=5
    )


@pytest.fixture
def method_file(tmp_path: Path):
    """Factory writing a method file ``name`` into tmp_path."""

    def write(name: str, method: str, **params: int) -> Path:
        return write_method_file(tmp_path / name, method, **params)

    return write


@pytest.fixture
def stereo_pair() -> tuple[np.ndarray, np.ndarray]:
    """Textured BGR pair with a 4 pixel horizontal shift."""
    return textured_pair()
