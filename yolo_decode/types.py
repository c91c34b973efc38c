from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Tuple

import numpy as np


class BoxKind(str, Enum):
    DETECTION = "detection"
    SEGMENTATION = "segmentation"
    POSE = "pose"


@dataclass(frozen=True)
class YoloClass:
    """
    One entry of the model's ordered class vocabulary.
    """

    id: int
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Point:
    x: int
    y: int


@dataclass(frozen=True)
class Rectangle:
    """
    Integer pixel rectangle in original image space (right/bottom exclusive).
    """

    left: int
    top: int
    right: int
    bottom: int

    @classmethod
    def from_ltrb(cls, left: int, top: int, right: int, bottom: int) -> "Rectangle":
        return cls(int(left), int(top), int(right), int(bottom))

    @classmethod
    def from_xywh(cls, x: int, y: int, width: int, height: int) -> "Rectangle":
        return cls(int(x), int(y), int(x) + int(width), int(y) + int(height))

    @property
    def x(self) -> int:
        return self.left

    @property
    def y(self) -> int:
        return self.top

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def area(self) -> int:
        return max(0, self.width) * max(0, self.height)

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        return self.left, self.top, self.right, self.bottom

    def as_xywh(self) -> Tuple[int, int, int, int]:
        return self.left, self.top, self.width, self.height


@dataclass(frozen=True)
class BoundingBox:
    """
    Detection result: class label, rectangle and confidence.
    """

    kind: ClassVar[BoxKind] = BoxKind.DETECTION

    label: YoloClass
    rectangle: Rectangle
    confidence: float


@dataclass(frozen=True, eq=False)
class Mask:
    """
    Per-pixel confidence grid, shaped (height, width), values in [0, 1].
    """

    data: np.ndarray

    def __post_init__(self) -> None:
        arr = np.array(self.data, dtype=np.float32)
        if arr.ndim != 2:
            raise ValueError(f"Mask data must be 2-D (height, width), got shape {arr.shape}")
        arr.setflags(write=False)
        object.__setattr__(self, "data", arr)

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    def get(self, x: int, y: int) -> float:
        return float(self.data[y, x])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mask):
            return NotImplemented
        return self.data.shape == other.data.shape and bool(np.array_equal(self.data, other.data))

    __hash__ = None  # type: ignore[assignment]


@dataclass(frozen=True)
class SegmentationBoundingBox(BoundingBox):
    kind: ClassVar[BoxKind] = BoxKind.SEGMENTATION

    mask: Mask

    def __post_init__(self) -> None:
        rect = self.rectangle
        if (self.mask.width, self.mask.height) != (max(0, rect.width), max(0, rect.height)):
            raise ValueError(
                f"Mask size {self.mask.width}x{self.mask.height} does not match "
                f"rectangle size {rect.width}x{rect.height}"
            )


@dataclass(frozen=True)
class Keypoint:
    index: int
    point: Point
    confidence: float


@dataclass(frozen=True)
class PoseBoundingBox(BoundingBox):
    kind: ClassVar[BoxKind] = BoxKind.POSE

    keypoints: Tuple[Keypoint, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        keypoints = tuple(self.keypoints)
        indices = [kp.index for kp in keypoints]
        if len(set(indices)) != len(indices):
            raise ValueError(f"Duplicate keypoint indices: {sorted(indices)}")
        object.__setattr__(self, "keypoints", keypoints)

    def get_keypoint(self, index: int) -> Optional[Keypoint]:
        for kp in self.keypoints:
            if kp.index == index:
                return kp
        return None
