from __future__ import annotations

from typing import Union

import numpy as np

from .letterbox import LetterboxGeometry
from .types import Mask, Rectangle


class MaskWeightMismatchError(ValueError):
    """
    Mask weight vector and prototype tensor disagree on the channel count.

    This means the metadata does not describe the model that produced the
    outputs; it is never recoverable for the parse call that hit it.
    """


def sigmoid(values: np.ndarray) -> np.ndarray:
    """
    Logistic function e^x / (1 + e^x).
    """

    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-values))


def to_luminance(confidence: Union[float, np.ndarray]) -> np.ndarray:
    """
    Quantize confidence in [0, 1] to an 8-bit luminance, inverted (1.0 -> 0).
    """

    c = np.clip(np.asarray(confidence, dtype=np.float64), 0.0, 1.0)
    return np.rint(255.0 - c * 255.0).astype(np.uint8)


def from_luminance(luminance: Union[int, np.ndarray]) -> np.ndarray:
    """
    Inverse of `to_luminance`; exact up to 1/255.
    """

    return ((255.0 - np.asarray(luminance, dtype=np.float32)) / 255.0).astype(np.float32)


_INTERPOLATION_NAMES = {
    "nearest": "INTER_NEAREST",
    "linear": "INTER_LINEAR",
    "cubic": "INTER_CUBIC",
    "area": "INTER_AREA",
    "lanczos": "INTER_LANCZOS4",
}


def _cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for mask decoding. Install with `pip install opencv-python`.") from e
    return cv2


class MaskDecoder:
    """
    Rebuild a full-resolution confidence mask for one box from the prototype
    tensor (1, M, Hm, Wm) and the box's M mask weights.

    The low-res activation grid goes through an 8-bit raster so that padding
    removal, resizing and cropping happen on an image; confidences read back
    from the raster are within 1/255 of the sigmoid output.
    """

    def __init__(self, interpolation: str = "cubic"):
        if interpolation not in _INTERPOLATION_NAMES:
            raise ValueError(f"Unsupported interpolation {interpolation!r}, expected one of {sorted(_INTERPOLATION_NAMES)}")
        self.interpolation = interpolation

    def decode(
        self,
        prototypes: np.ndarray,
        weights: np.ndarray,
        rectangle: Rectangle,
        geometry: LetterboxGeometry,
    ) -> Mask:
        cv2 = _cv2()

        protos = np.asarray(prototypes, dtype=np.float32)
        if protos.ndim == 4:
            if protos.shape[0] != 1:
                raise ValueError(f"Batch > 1 is not supported (got prototype shape {protos.shape}).")
            protos = protos[0]
        if protos.ndim != 3:
            raise ValueError(f"Expected prototype shape (1, M, H, W), got {np.shape(prototypes)}")

        weights = np.asarray(weights, dtype=np.float32).reshape(-1)
        channels, mask_h, mask_w = protos.shape
        if weights.shape[0] != channels:
            raise MaskWeightMismatchError(
                f"Got {weights.shape[0]} mask weights for a prototype tensor with {channels} channels"
            )

        # Activations come out in the head's (x, y) order: shape (Wm, Hm).
        activations = np.einsum("k,kyx->xy", weights, protos)
        column_major = to_luminance(sigmoid(activations))

        # Rotate 90 + horizontal flip brings (x, y) into raster (row, col) order.
        raster = cv2.flip(cv2.rotate(column_major, cv2.ROTATE_90_CLOCKWISE), 1)

        model_w, model_h = geometry.model_size
        pad_x, pad_y = geometry.padding
        # Truncating conversion; can be off by one mask pixel on small grids.
        mask_pad_x = int(pad_x) * mask_w // model_w
        mask_pad_y = int(pad_y) * mask_h // model_h
        raster = raster[mask_pad_y : mask_h - mask_pad_y, mask_pad_x : mask_w - mask_pad_x]

        origin_w, origin_h = geometry.origin_size
        flag = getattr(cv2, _INTERPOLATION_NAMES[self.interpolation])
        raster = cv2.resize(np.ascontiguousarray(raster), (origin_w, origin_h), interpolation=flag)

        left, top, right, bottom = rectangle.as_xyxy()
        raster = raster[top:bottom, left:right]

        return Mask(from_luminance(raster))
