from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import ParserConfig
from .decode import BoxDecoder, Candidate, squeeze_batch
from .letterbox import LetterboxGeometry
from .masks import MaskDecoder
from .metadata import ModelMetadata
from .nms import non_max_suppression
from .types import BoundingBox, SegmentationBoundingBox

logger = logging.getLogger(__name__)


@contextmanager
def _worker_pool(workers: int) -> Iterator[Optional[ThreadPoolExecutor]]:
    # One pool per parse call; nothing is shared between calls.
    if workers <= 1:
        yield None
        return
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="yolo-decode") as pool:
        yield pool


def _check_origin(origin_size: Tuple[int, int]) -> Tuple[int, int]:
    w, h = int(origin_size[0]), int(origin_size[1])
    if w <= 0 or h <= 0:
        raise ValueError(f"origin_size must be a positive (width, height), got {origin_size}")
    return w, h


class _OutputParser:
    def __init__(self, metadata: ModelMetadata, config: ParserConfig = ParserConfig()):
        self.metadata = metadata
        self.config = config
        self.decoder = BoxDecoder(metadata.classes, config.confidence)

    def _suppress(self, candidates: List[Candidate]) -> List[Candidate]:
        selected = non_max_suppression(
            candidates,
            self.config.iou,
            max_detections=self.config.max_detections,
        )
        logger.debug("NMS kept %d of %d candidates", len(selected), len(candidates))
        return selected


class DetectionOutputParser(_OutputParser):
    """
    Raw detection output (1, 4 + C, A) -> boxes in original image pixels,
    highest confidence first.
    """

    def parse(self, output: np.ndarray, origin_size: Tuple[int, int]) -> List[BoundingBox]:
        geometry = LetterboxGeometry.from_sizes(self.metadata.image_size, _check_origin(origin_size))
        workers = self.config.resolved_workers()

        with _worker_pool(workers) as pool:
            candidates = self.decoder.decode(output, geometry, executor=pool, partitions=workers)

        return [c.box for c in self._suppress(candidates)]

    def __call__(self, output: np.ndarray, origin_size: Tuple[int, int]) -> List[BoundingBox]:
        return self.parse(output, origin_size)


class SegmentationOutputParser(_OutputParser):
    """
    Raw segmentation outputs -> boxes with per-pixel masks.

    outputs[0]: (1, 4 + C + M, A) boxes, class scores, then M mask weights per anchor
    outputs[1]: (1, M, Hm, Wm) mask prototypes
    """

    def __init__(self, metadata: ModelMetadata, config: ParserConfig = ParserConfig()):
        super().__init__(metadata, config)
        self.mask_decoder = MaskDecoder(config.mask_interpolation)

    def parse(self, outputs: Sequence[np.ndarray], origin_size: Tuple[int, int]) -> List[SegmentationBoundingBox]:
        if len(outputs) < 2:
            raise ValueError(f"Segmentation expects 2 outputs (detections, prototypes), got {len(outputs)}")
        output0, prototypes = np.asarray(outputs[0]), np.asarray(outputs[1])

        # Boxes and masks both use whole-pixel padding.
        geometry = LetterboxGeometry.from_sizes(
            self.metadata.image_size, _check_origin(origin_size), integer_padding=True
        )
        weights_start = 4 + self.metadata.class_count
        workers = self.config.resolved_workers()

        with _worker_pool(workers) as pool:
            candidates = self.decoder.decode(output0, geometry, executor=pool, partitions=workers)
            selected = self._suppress(candidates)

            mask_weights = squeeze_batch(output0)[weights_start:, :]

            def build(candidate: Candidate) -> SegmentationBoundingBox:
                box = candidate.box
                mask = self.mask_decoder.decode(
                    prototypes, mask_weights[:, candidate.anchor], box.rectangle, geometry
                )
                return SegmentationBoundingBox(
                    label=box.label,
                    rectangle=box.rectangle,
                    confidence=box.confidence,
                    mask=mask,
                )

            if pool is None:
                results = [build(c) for c in selected]
            else:
                results = list(pool.map(build, selected))

        logger.debug("Built %d masks", len(results))
        return results

    def __call__(self, outputs: Sequence[np.ndarray], origin_size: Tuple[int, int]) -> List[SegmentationBoundingBox]:
        return self.parse(outputs, origin_size)


OutputParser = Union[DetectionOutputParser, SegmentationOutputParser]


def create_parser(metadata: ModelMetadata, config: ParserConfig = ParserConfig()) -> OutputParser:
    if metadata.task == "detect":
        return DetectionOutputParser(metadata, config)
    if metadata.task == "segment":
        return SegmentationOutputParser(metadata, config)
    raise ValueError(f"No output parser for task {metadata.task!r}")
