import threading

import numpy as np
import pytest

from bgremover.segmentation import numeric
from bgremover.segmentation.pipeline import SegmentationOptions, SegmentationPipeline
from bgremover.utils.errors import ShapeMismatchError

RED = (255, 0, 0)


def deeplab_cell(winner, score=10.0):
    cell = np.zeros(21, dtype=np.float32)
    cell[winner] = score
    return cell.reshape(1, 1, 1, 21)


def test_end_to_end_low_probability_replaces_everything(stub_adapter):
    adapter = stub_adapter("bodypix_mobilenet", 4, 4, 1, np.full((1, 4, 4, 1), 0.3))
    pipeline = SegmentationPipeline(adapter)
    frame = np.full((4, 4, 3), 255, dtype=np.uint8)
    red = np.empty((4, 4, 3), dtype=np.uint8)
    red[:] = RED

    mask = pipeline.decode(adapter.output)
    assert mask.shape == (4, 4)
    assert (mask == 1).all()

    stats = pipeline.process(frame, red)
    np.testing.assert_array_equal(frame, red)
    assert stats.background_fraction == 1.0
    assert set(stats.stages_ms) >= {"preprocess", "inference", "decode", "upscale", "composite"}
    # white frame normalized to the top of the unit range
    np.testing.assert_allclose(adapter.inputs[-1], 0.5)


def test_person_everywhere_keeps_frame(stub_adapter):
    adapter = stub_adapter("bodypix_mobilenet", 4, 4, 1, np.full((1, 4, 4, 1), 0.9))
    pipeline = SegmentationPipeline(adapter)
    rng = np.random.default_rng(1)
    frame = rng.integers(0, 256, size=(6, 8, 3), dtype=np.uint8)
    original = frame.copy()
    pipeline.process(frame, np.zeros_like(frame))
    np.testing.assert_array_equal(frame, original)


def test_deeplab_person_cell_is_kept(stub_adapter):
    adapter = stub_adapter("deeplabv3", 1, 1, 1, deeplab_cell(15))
    assert SegmentationPipeline(adapter).decode(adapter.output)[0, 0] == 0


def test_deeplab_background_cell_is_replaced(stub_adapter):
    adapter = stub_adapter("deeplabv3", 1, 1, 1, deeplab_cell(0))
    assert SegmentationPipeline(adapter).decode(adapter.output)[0, 0] == 1


def test_deeplab_tie_resolves_to_lowest_class(stub_adapter):
    scores = np.zeros((1, 1, 1, 21), dtype=np.float32)
    scores[..., 0] = 5.0
    scores[..., 15] = 5.0
    adapter = stub_adapter("deeplabv3", 1, 1, 1, scores)
    assert SegmentationPipeline(adapter).decode(adapter.output)[0, 0] == 1


@pytest.mark.parametrize("prob,expected", [(0.5, 0), (0.4999, 1), (0.5001, 0), (0.0, 1), (1.0, 0)])
def test_threshold_decode(stub_adapter, prob, expected):
    adapter = stub_adapter("bodypix_resnet", 1, 1, 1, [[[[prob]]]])
    assert SegmentationPipeline(adapter).decode(adapter.output)[0, 0] == expected


def test_threshold_is_configurable(stub_adapter):
    adapter = stub_adapter("bodypix_resnet", 1, 1, 1, [[[[0.6]]]])
    pipeline = SegmentationPipeline(adapter, SegmentationOptions(threshold=0.7))
    assert pipeline.decode(adapter.output)[0, 0] == 1


def test_decode_is_row_major(stub_adapter):
    # 3 wide, 2 high; index = y * 3 + x
    probs = np.array([0.9, 0.1, 0.9, 0.1, 0.9, 0.1], dtype=np.float32).reshape(1, 3, 2, 1)
    adapter = stub_adapter("bodypix_mobilenet", 3, 2, 1, probs)
    mask = SegmentationPipeline(adapter).decode(adapter.output)
    np.testing.assert_array_equal(mask, [[0, 1, 0], [1, 0, 1]])


def test_decode_deterministic_across_workers(stub_adapter):
    rng = np.random.default_rng(7)
    scores = rng.normal(size=(1, 33, 17, 21)).astype(np.float32)
    adapter = stub_adapter("deeplabv3", 33, 17, 1, scores)
    serial = SegmentationPipeline(adapter)
    parallel = SegmentationPipeline(adapter, SegmentationOptions(decode_workers=4))
    first = serial.decode(adapter.output)
    np.testing.assert_array_equal(first, serial.decode(adapter.output))
    np.testing.assert_array_equal(first, parallel.decode(adapter.output))
    np.testing.assert_array_equal(first, parallel.decode(adapter.output))
    parallel.close()


def test_decode_rows_without_shared_executor():
    probs = np.random.default_rng(3).random((9, 5, 1)).astype(np.float32)
    fn = lambda band: numeric.threshold_mask(band, 0.5)
    np.testing.assert_array_equal(numeric.decode_rows(probs, fn, workers=3), fn(probs))


def test_output_size_mismatch_is_fatal(stub_adapter):
    adapter = stub_adapter("bodypix_mobilenet", 4, 4, 1, np.zeros((1, 2, 2, 1)))
    frame = np.zeros((4, 4, 3), dtype=np.uint8)
    with pytest.raises(ShapeMismatchError, match="model output"):
        SegmentationPipeline(adapter).process(frame, frame.copy())


def test_frame_background_mismatch_leaves_frame_untouched(stub_adapter):
    adapter = stub_adapter("bodypix_mobilenet", 4, 4, 1, np.zeros((1, 4, 4, 1)))
    frame = np.full((4, 4, 3), 7, dtype=np.uint8)
    with pytest.raises(ShapeMismatchError):
        SegmentationPipeline(adapter).process(frame, np.zeros((4, 5, 3), dtype=np.uint8))
    assert (frame == 7).all()
    assert adapter.inputs == []


def test_mask_upscaled_to_frame_size(stub_adapter):
    # left half background, right half person
    probs = np.array([[0.1, 0.9], [0.1, 0.9]], dtype=np.float32).reshape(1, 2, 2, 1)
    adapter = stub_adapter("bodypix_mobilenet", 2, 2, 1, probs)
    mask = SegmentationPipeline(adapter).segment(np.zeros((8, 8, 3), dtype=np.uint8))
    assert mask.shape == (8, 8)
    assert set(np.unique(mask)) <= {0, 1}
    assert (mask[:, 0] == 1).all() and (mask[:, -1] == 0).all()


def test_swap_rb_reorders_model_input(stub_adapter):
    adapter = stub_adapter("bodypix_mobilenet", 2, 2, 1, np.ones((1, 2, 2, 1)))
    frame = np.zeros((2, 2, 3), dtype=np.uint8)
    frame[..., 0] = 255  # blue in BGR
    SegmentationPipeline(adapter, SegmentationOptions(swap_rb=True)).process(frame, frame.copy())
    np.testing.assert_allclose(adapter.inputs[-1][..., 2], 0.5)
    np.testing.assert_allclose(adapter.inputs[-1][..., 0], -0.5)


def test_range_check_catches_bad_normalization(stub_adapter):
    adapter = stub_adapter("bodypix_resnet", 2, 2, 1, np.ones((1, 2, 2, 1)))
    adapter.variant = adapter.variant.with_range((-1.0, 1.0))
    frame = np.full((2, 2, 3), 200, dtype=np.uint8)
    with pytest.raises(AssertionError):
        SegmentationPipeline(adapter, SegmentationOptions(check_range=True)).process(frame, frame.copy())
    SegmentationPipeline(adapter, SegmentationOptions(check_range=False)).process(frame, frame.copy())


def test_composite_is_pixel_exact():
    frame = np.zeros((3, 3, 3), dtype=np.uint8)
    replacement = np.full((3, 3, 3), 9, dtype=np.uint8)
    mask = np.eye(3, dtype=np.uint8)
    numeric.composite(frame, replacement, mask)
    assert (frame[np.eye(3, dtype=bool)] == 9).all()
    assert (frame[~np.eye(3, dtype=bool)] == 0).all()


def test_concurrent_process_calls_are_serialized(stub_adapter):
    active = []
    overlap = []

    class SlowAdapter:
        def __init__(self, inner):
            self.variant = inner.variant
            self.geometry = inner.geometry
            self._inner = inner
            self._guard = threading.Lock()

        def run_inference(self, tensor):
            if not self._guard.acquire(blocking=False):
                overlap.append(True)
                return self._inner.run_inference(tensor)
            try:
                active.append(True)
                threading.Event().wait(0.01)
                return self._inner.run_inference(tensor)
            finally:
                self._guard.release()

    adapter = SlowAdapter(stub_adapter("bodypix_mobilenet", 4, 4, 1, np.zeros((1, 4, 4, 1))))
    pipeline = SegmentationPipeline(adapter)

    def worker():
        frame = np.zeros((4, 4, 3), dtype=np.uint8)
        pipeline.process(frame, frame.copy())

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(active) == 4
    assert overlap == []
