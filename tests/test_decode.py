import unittest
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from yolo_decode.decode import BoxDecoder, anchor_partitions
from yolo_decode.letterbox import LetterboxGeometry
from yolo_decode.metadata import ModelMetadata
from yolo_decode.types import Rectangle


def _output(boxes, scores, extra=None) -> np.ndarray:
    rows = [np.asarray(boxes, dtype=np.float32).T, np.asarray(scores, dtype=np.float32)]
    if extra is not None:
        rows.append(np.asarray(extra, dtype=np.float32))
    return np.vstack(rows)[None, ...]


class TestBoxDecoder(unittest.TestCase):
    def setUp(self) -> None:
        self.meta = ModelMetadata.from_names(["person", "car"], image_size=(8, 8))
        self.geometry = LetterboxGeometry.from_sizes((8, 8), (4, 4))

    def test_single_anchor(self) -> None:
        out = _output([[4, 4, 4, 4]], [[0.9], [0.1]])
        candidates = BoxDecoder(self.meta.classes, 0.5).decode(out, self.geometry)
        self.assertEqual(len(candidates), 1)
        c = candidates[0]
        self.assertEqual(c.anchor, 0)
        self.assertEqual(c.box.label.name, "person")
        self.assertEqual(c.rectangle, Rectangle(1, 1, 3, 3))
        self.assertAlmostEqual(c.confidence, 0.9, places=6)

    def test_anchor_can_yield_one_candidate_per_class(self) -> None:
        out = _output([[4, 4, 4, 4]], [[0.7], [0.6]])
        candidates = BoxDecoder(self.meta.classes, 0.5).decode(out, self.geometry)
        self.assertEqual([c.box.label.id for c in candidates], [0, 1])
        self.assertEqual([c.anchor for c in candidates], [0, 0])
        self.assertTrue(np.allclose([c.confidence for c in candidates], [0.7, 0.6]))

    def test_threshold_is_strict(self) -> None:
        out = _output([[4, 4, 4, 4], [2, 2, 2, 2]], [[0.5, 0.51], [0.0, 0.0]])
        candidates = BoxDecoder(self.meta.classes, 0.5).decode(out, self.geometry)
        self.assertEqual([c.anchor for c in candidates], [1])

    def test_trailing_channels_are_ignored(self) -> None:
        out = _output([[4, 4, 4, 4]], [[0.9], [0.2]], extra=[[5.0], [-3.0], [0.99]])
        candidates = BoxDecoder(self.meta.classes, 0.5).decode(out, self.geometry)
        self.assertEqual(len(candidates), 1)
        self.assertEqual(candidates[0].box.label.id, 0)

    def test_empty_anchor_set(self) -> None:
        out = np.zeros((1, 6, 0), dtype=np.float32)
        self.assertEqual(BoxDecoder(self.meta.classes, 0.5).decode(out, self.geometry), [])

    def test_nothing_above_threshold(self) -> None:
        out = _output([[4, 4, 4, 4]] * 3, [[0.1, 0.2, 0.3], [0.3, 0.2, 0.1]])
        self.assertEqual(BoxDecoder(self.meta.classes, 0.5).decode(out, self.geometry), [])

    def test_partitioned_decode_matches_serial(self) -> None:
        rng = np.random.default_rng(7)
        a = 257
        boxes = np.column_stack(
            [rng.uniform(0, 8, a), rng.uniform(0, 8, a), rng.uniform(0.5, 4, a), rng.uniform(0.5, 4, a)]
        )
        out = _output(boxes, rng.random((2, a)))
        decoder = BoxDecoder(self.meta.classes, 0.5)

        serial = decoder.decode(out, self.geometry)
        with ThreadPoolExecutor(max_workers=4) as pool:
            parallel = decoder.decode(out, self.geometry, executor=pool, partitions=7)

        self.assertGreater(len(serial), 0)
        self.assertEqual(serial, parallel)
        keys = [(c.anchor, c.box.label.id) for c in parallel]
        self.assertEqual(keys, sorted(keys))

    def test_rejects_batched_output(self) -> None:
        out = np.zeros((2, 6, 4), dtype=np.float32)
        with self.assertRaises(ValueError):
            BoxDecoder(self.meta.classes, 0.5).decode(out, self.geometry)

    def test_rejects_missing_class_channels(self) -> None:
        out = np.zeros((1, 5, 4), dtype=np.float32)
        with self.assertRaises(ValueError):
            BoxDecoder(self.meta.classes, 0.5).decode(out, self.geometry)


class TestAnchorPartitions(unittest.TestCase):
    def test_contiguous_ordered_ranges(self) -> None:
        self.assertEqual(anchor_partitions(10, 3), [(0, 3), (3, 6), (6, 10)])

    def test_never_more_ranges_than_anchors(self) -> None:
        self.assertEqual(anchor_partitions(2, 8), [(0, 1), (1, 2)])

    def test_no_anchors(self) -> None:
        self.assertEqual(anchor_partitions(0, 4), [])


if __name__ == "__main__":
    unittest.main()
