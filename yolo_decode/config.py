from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

MASK_INTERPOLATIONS = ("nearest", "linear", "cubic", "area", "lanczos")


@dataclass(frozen=True)
class ParserConfig:
    """
    Runtime parameters shared by the output parsers.

    - confidence: candidates need a score strictly above this
    - iou: overlap above which the lower-confidence box is suppressed
    - max_detections: optional cap on survivors (None = no cap)
    - workers: thread count for decoding; None picks from the CPU count, 1 runs inline
    - mask_interpolation: resampling used when scaling masks to the original image
    """

    confidence: float = 0.3
    iou: float = 0.45
    max_detections: Optional[int] = None
    workers: Optional[int] = None
    mask_interpolation: str = "cubic"

    def __post_init__(self) -> None:
        if not (0.0 < self.confidence < 1.0):
            raise ValueError(f"confidence must be in (0, 1), got {self.confidence}")
        if not (0.0 < self.iou < 1.0):
            raise ValueError(f"iou must be in (0, 1), got {self.iou}")
        if self.max_detections is not None and self.max_detections < 1:
            raise ValueError(f"max_detections must be >= 1, got {self.max_detections}")
        if self.workers is not None and self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.mask_interpolation not in MASK_INTERPOLATIONS:
            raise ValueError(f"mask_interpolation must be one of {MASK_INTERPOLATIONS}")

    def resolved_workers(self) -> int:
        if self.workers is not None:
            return self.workers
        # Same default as ThreadPoolExecutor.
        return min(32, (os.cpu_count() or 1) + 4)


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _optional_int(payload: Dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer or null")
    return int(value)


def load_parser_config(path: PathLike) -> ParserConfig:
    """
    Load a ParserConfig from a JSON object, e.g.

        {"confidence": 0.4, "iou": 0.5, "workers": 4}

    Missing keys keep their defaults; unknown keys are rejected.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Parser config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid parser config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Parser config must be a JSON object")

    allowed = {"confidence", "iou", "max_detections", "workers", "mask_interpolation"}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown parser config keys: {unknown}")

    kwargs: Dict[str, Any] = {}
    for key in ("confidence", "iou"):
        if key in payload:
            kwargs[key] = _require_number(payload, key)
    for key in ("max_detections", "workers"):
        if key in payload:
            kwargs[key] = _optional_int(payload, key)
    if "mask_interpolation" in payload:
        value = payload["mask_interpolation"]
        if not isinstance(value, str):
            raise ValueError("mask_interpolation must be a string")
        kwargs["mask_interpolation"] = value

    cfg = ParserConfig(**kwargs)
    logger.info("Loaded parser config from %s: %s", path, cfg)
    return cfg
