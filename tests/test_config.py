import pytest

from bgremover.utils.config import AppSettings, get, load_yaml, set_path
from bgremover.utils.errors import ConfigurationError

BASE = {"model": {"path": "models/m.tflite", "kind": "deeplabv3"}}


def test_load_yaml_and_dot_access(tmp_path):
    path = tmp_path / "system.yaml"
    path.write_text("model:\n  path: m.tflite\n  threads: 2\nruntime:\n  log_level: DEBUG\n", encoding="utf-8")
    cfg = load_yaml(path)
    assert get(cfg, "model.threads") == 2
    assert get(cfg, "runtime.log_level") == "DEBUG"
    assert get(cfg, "runtime.missing", "x") == "x"


def test_load_yaml_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml(tmp_path / "missing.yaml")


def test_set_path_creates_sections():
    cfg = {}
    set_path(cfg, "model.threads", 4)
    assert cfg == {"model": {"threads": 4}}


def test_defaults():
    settings = AppSettings.from_config(BASE)
    assert settings.model.threads == 1
    assert settings.model.engine == "auto"
    assert settings.segmentation.person_class == 15
    assert settings.segmentation.threshold == 0.5
    assert settings.segmentation.value_range is None
    assert settings.video_input == 0
    assert settings.color_order == "bgr"


def test_camera_index_from_string():
    cfg = {**BASE, "video": {"input": "1"}}
    assert AppSettings.from_config(cfg).video_input == 1


def test_value_range_parsed():
    cfg = {**BASE, "segmentation": {"value_range": [-130, 160]}}
    assert AppSettings.from_config(cfg).segmentation.value_range == (-130.0, 160.0)


@pytest.mark.parametrize(
    "patch",
    [
        {"model": {"kind": "deeplabv3"}},
        {"model": {"path": "m.tflite"}},
        {"model": {**BASE["model"], "threads": 0}},
        {"model": {**BASE["model"], "threads": 2.5}},
        {**BASE, "segmentation": {"threshold": 1.5}},
        {**BASE, "segmentation": {"interpolation": "lanczos"}},
        {**BASE, "segmentation": {"value_range": [1, -1]}},
        {**BASE, "video": {"color_order": "yuv"}},
        {**BASE, "background": {"color": [1, 2]}},
    ],
)
def test_invalid_settings(patch):
    with pytest.raises(ConfigurationError):
        AppSettings.from_config(patch)
