from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .types import Rectangle


def _check_size(name: str, size: Tuple[int, int]) -> Tuple[int, int]:
    w, h = int(size[0]), int(size[1])
    if w <= 0 or h <= 0:
        raise ValueError(f"{name} must be a positive (width, height), got {size}")
    return w, h


@dataclass(frozen=True)
class LetterboxGeometry:
    """
    Inverse of the letterbox applied during preprocessing.

    The original image (origin_size) was scaled by `reduction_ratio` and centered
    in the model input (model_size) with `padding` bars on each side. Boxes in
    model space map back with `(v - pad) * magnification_ratio`.
    """

    model_size: Tuple[int, int]
    origin_size: Tuple[int, int]
    reduction_ratio: float
    padding: Tuple[float, float]
    magnification_ratio: float

    @classmethod
    def from_sizes(
        cls,
        model_size: Tuple[int, int],
        origin_size: Tuple[int, int],
        integer_padding: bool = False,
    ) -> "LetterboxGeometry":
        """
        Args:
            model_size: (width, height) of the model input
            origin_size: (width, height) of the image before letterboxing
            integer_padding: truncate padding to whole model pixels
        """

        model_w, model_h = _check_size("model_size", model_size)
        origin_w, origin_h = _check_size("origin_size", origin_size)

        r = min(model_w / origin_w, model_h / origin_h)
        pad_x = (model_w - origin_w * r) / 2
        pad_y = (model_h - origin_h * r) / 2
        if integer_padding:
            pad_x, pad_y = float(int(pad_x)), float(int(pad_y))

        magnification = max(origin_w / model_w, origin_h / model_h)

        return cls(
            model_size=(model_w, model_h),
            origin_size=(origin_w, origin_h),
            reduction_ratio=r,
            padding=(pad_x, pad_y),
            magnification_ratio=magnification,
        )

    def to_origin_ltrb(self, boxes_cxcywh: np.ndarray) -> np.ndarray:
        """
        Map (N, 4) model-space [cx, cy, w, h] boxes to (N, 4) integer
        [left, top, right, bottom] in origin space, clamped to the image.
        """

        b = np.asarray(boxes_cxcywh, dtype=np.float64).reshape(-1, 4)
        cx, cy, w, h = b.T
        pad_x, pad_y = self.padding
        m = self.magnification_ratio

        ltrb = np.stack(
            [
                (cx - w / 2 - pad_x) * m,
                (cy - h / 2 - pad_y) * m,
                (cx + w / 2 - pad_x) * m,
                (cy + h / 2 - pad_y) * m,
            ],
            axis=1,
        )
        # Truncate toward zero before clamping; NaN maps to 0 so every edge lands in range.
        ltrb = np.nan_to_num(np.trunc(ltrb), nan=0.0)

        origin_w, origin_h = self.origin_size
        ltrb[:, [0, 2]] = np.clip(ltrb[:, [0, 2]], 0, origin_w)
        ltrb[:, [1, 3]] = np.clip(ltrb[:, [1, 3]], 0, origin_h)
        return ltrb.astype(np.int64)

    def to_origin(self, cx: float, cy: float, w: float, h: float) -> Rectangle:
        left, top, right, bottom = self.to_origin_ltrb(np.array([cx, cy, w, h]))[0]
        return Rectangle.from_ltrb(left, top, right, bottom)
