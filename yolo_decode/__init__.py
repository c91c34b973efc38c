"""
Post-processing for YOLOv8-style detection and segmentation outputs.

Takes the raw NumPy tensors returned by an inference backend plus the size of
the original image, and returns typed boxes (and masks) in original image
pixels. Depends on NumPy, and on OpenCV for mask rasters.
"""

from .types import (
    BoundingBox,
    BoxKind,
    Keypoint,
    Mask,
    Point,
    PoseBoundingBox,
    Rectangle,
    SegmentationBoundingBox,
    YoloClass,
)
from .config import ParserConfig, load_parser_config
from .metadata import ModelMetadata
from .letterbox import LetterboxGeometry
from .decode import BoxDecoder, Candidate
from .nms import NMSConfig, box_iou, nms, non_max_suppression
from .masks import MaskDecoder, MaskWeightMismatchError, from_luminance, to_luminance
from .postprocess import DetectionOutputParser, SegmentationOutputParser, create_parser

__all__ = [
    "BoundingBox",
    "BoxKind",
    "Keypoint",
    "Mask",
    "Point",
    "PoseBoundingBox",
    "Rectangle",
    "SegmentationBoundingBox",
    "YoloClass",
    "ParserConfig",
    "load_parser_config",
    "ModelMetadata",
    "LetterboxGeometry",
    "BoxDecoder",
    "Candidate",
    "NMSConfig",
    "box_iou",
    "nms",
    "non_max_suppression",
    "MaskDecoder",
    "MaskWeightMismatchError",
    "from_luminance",
    "to_luminance",
    "DetectionOutputParser",
    "SegmentationOutputParser",
    "create_parser",
]
