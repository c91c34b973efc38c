import json
import tempfile
import unittest
from pathlib import Path

from yolo_decode.config import ParserConfig, load_parser_config


class TestParserConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        cfg = ParserConfig()
        self.assertEqual((cfg.confidence, cfg.iou), (0.3, 0.45))
        self.assertIsNone(cfg.max_detections)
        self.assertGreaterEqual(cfg.resolved_workers(), 1)
        self.assertEqual(ParserConfig(workers=3).resolved_workers(), 3)

    def test_validation(self) -> None:
        for kwargs in (
            {"confidence": 1.0},
            {"confidence": -0.1},
            {"confidence": 0.0},
            {"iou": 0.0},
            {"iou": 1.0},
            {"iou": 1.5},
            {"max_detections": 0},
            {"workers": 0},
            {"mask_interpolation": "bogus"},
        ):
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ValueError):
                    ParserConfig(**kwargs)


class TestLoadParserConfig(unittest.TestCase):
    def _write(self, tmp: str, payload: object) -> Path:
        path = Path(tmp) / "parser.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def test_load(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = self._write(tmp, {"confidence": 0.4, "iou": 0.5, "workers": 2, "max_detections": None})
            cfg = load_parser_config(path)
        self.assertEqual(cfg, ParserConfig(confidence=0.4, iou=0.5, workers=2))

    def test_unknown_keys(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = self._write(tmp, {"confidence": 0.4, "nms": True})
            with self.assertRaises(ValueError):
                load_parser_config(path)

    def test_bad_types(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                load_parser_config(self._write(tmp, {"confidence": "high"}))
            with self.assertRaises(ValueError):
                load_parser_config(self._write(tmp, {"workers": 2.5}))
            with self.assertRaises(ValueError):
                load_parser_config(self._write(tmp, [0.4]))

    def test_missing_and_invalid_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(FileNotFoundError):
                load_parser_config(Path(tmp) / "missing.json")
            path = Path(tmp) / "broken.json"
            path.write_text("{not json", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_parser_config(path)


if __name__ == "__main__":
    unittest.main()
