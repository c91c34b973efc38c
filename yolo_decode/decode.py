from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .letterbox import LetterboxGeometry
from .types import BoundingBox, Rectangle, YoloClass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """
    A thresholded (anchor, class) hit waiting for NMS.
    """

    box: BoundingBox
    anchor: int

    @property
    def rectangle(self) -> Rectangle:
        return self.box.rectangle

    @property
    def confidence(self) -> float:
        return self.box.confidence


def squeeze_batch(output: np.ndarray, name: str = "output") -> np.ndarray:
    """
    Drop the leading batch axis of a single-image output tensor.
    """

    p = np.asarray(output)
    if p.ndim == 0:
        raise ValueError(f"{name} must be an array, got a scalar")
    if p.shape[0] != 1:
        raise ValueError(f"Batch > 1 is not supported (got {name} shape {p.shape}). Pass one image at a time.")
    return p[0]


def anchor_partitions(anchor_count: int, parts: int) -> List[Tuple[int, int]]:
    """
    Split [0, anchor_count) into at most `parts` contiguous, ordered ranges.
    """

    if anchor_count <= 0:
        return []
    parts = max(1, min(int(parts), anchor_count))
    bounds = np.linspace(0, anchor_count, parts + 1).astype(int)
    return [(int(s), int(e)) for s, e in zip(bounds[:-1], bounds[1:]) if e > s]


class BoxDecoder:
    """
    Scan a (1, 4 + C [+ M], A) detection tensor for (anchor, class) pairs whose
    score clears the confidence threshold.

    Channels 0-3 hold cx, cy, w, h in model pixels, channel 4 + j the score of
    class j. Trailing channels (mask weights) are ignored here. An anchor can
    yield one candidate per class that clears the threshold.
    """

    def __init__(self, classes: Sequence[YoloClass], confidence: float):
        self.classes = tuple(classes)
        self.confidence = float(confidence)

    def decode(
        self,
        output: np.ndarray,
        geometry: LetterboxGeometry,
        executor: Optional[Executor] = None,
        partitions: int = 1,
    ) -> List[Candidate]:
        """
        Return the candidates ordered by anchor, then class.

        With an executor, anchors are split into `partitions` contiguous ranges
        decoded concurrently; the per-range lists are joined in range order, so
        the result does not depend on scheduling.
        """

        p = squeeze_batch(output)
        if p.ndim != 2:
            raise ValueError(f"Expected output shape (1, 4 + C, A), got {np.shape(output)}")
        n_classes = len(self.classes)
        if p.shape[0] < 4 + n_classes:
            raise ValueError(
                f"Output has {p.shape[0]} channels, expected at least {4 + n_classes} "
                f"(4 box + {n_classes} classes)"
            )

        ranges = anchor_partitions(p.shape[1], partitions)
        if not ranges:
            return []

        if executor is None or len(ranges) == 1:
            chunks = [self._decode_range(p, geometry, start, end) for start, end in ranges]
        else:
            futures = [executor.submit(self._decode_range, p, geometry, start, end) for start, end in ranges]
            chunks = [f.result() for f in futures]

        candidates = [c for chunk in chunks for c in chunk]
        logger.debug("Decoded %d candidates from %d anchors in %d ranges", len(candidates), p.shape[1], len(ranges))
        return candidates

    def _decode_range(self, p: np.ndarray, geometry: LetterboxGeometry, start: int, end: int) -> List[Candidate]:
        n_classes = len(self.classes)
        scores = p[4 : 4 + n_classes, start:end]  # (C, n)

        # NaN scores compare False and drop out here.
        anchor_idx, class_idx = np.nonzero(scores.T > self.confidence)
        if anchor_idx.size == 0:
            return []

        boxes_cxcywh = p[0:4, start:end].T[anchor_idx]
        ltrb = geometry.to_origin_ltrb(boxes_cxcywh)
        confs = scores[class_idx, anchor_idx]

        return [
            Candidate(
                box=BoundingBox(
                    label=self.classes[int(j)],
                    rectangle=Rectangle.from_ltrb(*rect),
                    confidence=float(conf),
                ),
                anchor=start + int(i),
            )
            for i, j, rect, conf in zip(anchor_idx, class_idx, ltrb, confs)
        ]
