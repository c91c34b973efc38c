from __future__ import annotations

import argparse
import logging
import statistics
import time
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

import numpy as np

from yolo_decode import DetectionOutputParser, ModelMetadata, ParserConfig, SegmentationOutputParser


@dataclass(frozen=True)
class ParserTiming:
    """
    Recorded latencies of one parser over the same synthetic outputs.
    """

    parser: str
    boxes: int
    samples_ms: Tuple[float, ...]

    @property
    def mean_ms(self) -> float:
        return statistics.fmean(self.samples_ms)

    def percentile_ms(self, q: int) -> float:
        if len(self.samples_ms) == 1:
            return self.samples_ms[0]
        # Cut points 1..99, linear between ranks.
        return statistics.quantiles(self.samples_ms, n=100, method="inclusive")[q - 1]

    def describe(self) -> str:
        return (
            f"{self.parser}: boxes={self.boxes} n={len(self.samples_ms)} mean={self.mean_ms:.3f}ms "
            + " ".join(f"p{q}={self.percentile_ms(q):.3f}ms" for q in (50, 90, 95))
        )


def _measure(name: str, parse: Callable[[], Sequence[object]], warmup: int, repeats: int) -> ParserTiming:
    for _ in range(warmup):
        parse()
    samples = []
    boxes = 0
    for _ in range(repeats):
        t0 = time.perf_counter()
        boxes = len(parse())
        samples.append((time.perf_counter() - t0) * 1000.0)
    return ParserTiming(parser=name, boxes=boxes, samples_ms=tuple(samples))


def _synthetic_output(rng: np.random.Generator, imgsz: int, classes: int, anchors: int, masks: int) -> np.ndarray:
    # Layout (1, 4 + C + M, A): cx, cy, w, h, class scores, mask weights.
    boxes = np.stack(
        [
            rng.uniform(0, imgsz, anchors),
            rng.uniform(0, imgsz, anchors),
            rng.uniform(4, imgsz / 4, anchors),
            rng.uniform(4, imgsz / 4, anchors),
        ]
    )
    # Mostly background, like a real head.
    scores = rng.beta(0.3, 6.0, size=(classes, anchors))
    weights = rng.normal(size=(masks, anchors))
    return np.vstack([boxes, scores, weights]).astype(np.float32)[None, ...]


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Benchmark detection/segmentation output parsing on synthetic YOLOv8 tensors (no model needed)."
    )
    parser.add_argument("--imgsz", type=int, default=640, help="Model input size (square).")
    parser.add_argument("--origin", default="1280x720", help="Original image size as WIDTHxHEIGHT.")
    parser.add_argument("--classes", type=int, default=80, help="Number of classes.")
    parser.add_argument("--anchors", type=int, default=8400, help="Number of anchors.")
    parser.add_argument("--mask-channels", type=int, default=32, help="Prototype channel count.")
    parser.add_argument("--mask-size", type=int, default=160, help="Prototype grid size (square).")
    parser.add_argument("--conf", type=float, default=0.3, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for NMS.")
    parser.add_argument("--workers", type=int, default=None, help="Decode threads (default: auto).")
    parser.add_argument("--warmup", type=int, default=3, help="Warmup iterations to run but not record.")
    parser.add_argument("--repeats", type=int, default=20, help="Recorded iterations.")
    parser.add_argument("--verbose", action="store_true", help="Log parser debug output.")
    args = parser.parse_args()

    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")
    try:
        origin_w, origin_h = (int(v) for v in str(args.origin).lower().split("x"))
    except ValueError as exc:
        raise ValueError(f"--origin must look like 1280x720, got {args.origin!r}") from exc

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    cfg = ParserConfig(confidence=float(args.conf), iou=float(args.iou), workers=args.workers)
    names = [f"class_{i}" for i in range(int(args.classes))]
    rng = np.random.default_rng(0)

    output = _synthetic_output(rng, args.imgsz, args.classes, args.anchors, args.mask_channels)
    protos = rng.normal(size=(1, args.mask_channels, args.mask_size, args.mask_size)).astype(np.float32)

    detect = DetectionOutputParser(ModelMetadata.from_names(names, (args.imgsz, args.imgsz), "detect"), cfg)
    segment = SegmentationOutputParser(ModelMetadata.from_names(names, (args.imgsz, args.imgsz), "segment"), cfg)

    det_output = output[:, : 4 + args.classes, :]
    timings = [
        _measure("detection", lambda: detect.parse(det_output, (origin_w, origin_h)), args.warmup, args.repeats),
        _measure("segmentation", lambda: segment.parse([output, protos], (origin_w, origin_h)), args.warmup, args.repeats),
    ]

    for timing in timings:
        print(timing.describe())
    print(f"anchors={args.anchors} classes={args.classes} workers={cfg.resolved_workers()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
