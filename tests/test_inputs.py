import cv2
import numpy as np
import pytest

from bgremover.inputs.background import BackgroundSource
from bgremover.inputs.video_input import VideoInput
from bgremover.utils.errors import ConfigurationError


def test_video_input_configures_path_without_opening():
    vi = VideoInput("/tmp/video.mp4", allow_missing=True)
    assert str(vi.source) == "/tmp/video.mp4"
    assert list(vi.frames()) == []


def test_missing_video_raises():
    with pytest.raises(FileNotFoundError):
        VideoInput("/nonexistent/video.mp4")


def test_solid_color_background_matches_frame_size():
    bg = BackgroundSource(color=(255, 0, 0), color_order="bgr")
    img = bg.frame_for((5, 7, 3))
    assert img.shape == (5, 7, 3)
    assert img.dtype == np.uint8
    assert (img == (0, 0, 255)).all()
    assert bg.frame_for((5, 7, 3)) is img
    assert bg.frame_for((2, 3, 3)).shape == (2, 3, 3)


def test_image_background_is_resized(tmp_path):
    path = tmp_path / "bg.png"
    img = np.zeros((10, 20, 3), dtype=np.uint8)
    img[:] = (10, 20, 30)
    cv2.imwrite(str(path), img)

    bgr = BackgroundSource(path).frame_for((4, 6, 3))
    assert bgr.shape == (4, 6, 3)
    assert (bgr == (10, 20, 30)).all()

    rgb = BackgroundSource(path, color_order="rgb").frame_for((4, 6, 3))
    assert (rgb == (30, 20, 10)).all()


def test_missing_background_is_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        BackgroundSource(tmp_path / "nope.png")


def test_unreadable_background_image(tmp_path):
    path = tmp_path / "bg.jpg"
    path.write_bytes(b"garbage")
    with pytest.raises(ConfigurationError, match="Could not read"):
        BackgroundSource(path)
