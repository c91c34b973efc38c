from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence, Tuple, Union

from .types import YoloClass


TASKS = ("detect", "segment", "pose")


@dataclass(frozen=True)
class ModelMetadata:
    """
    What the parsers need to know about a loaded model.

    - image_size: (width, height) of the model input tensor
    - classes: ordered vocabulary; class `j` is read from output channel `4 + j`
    - task: "detect", "segment" or "pose"
    """

    image_size: Tuple[int, int]
    classes: Tuple[YoloClass, ...]
    task: str = "detect"

    def __post_init__(self) -> None:
        w, h = self.image_size
        if int(w) <= 0 or int(h) <= 0:
            raise ValueError(f"image_size must be positive, got {self.image_size}")
        if not self.classes:
            raise ValueError("classes must not be empty")
        if self.task not in TASKS:
            raise ValueError(f"task must be one of {TASKS}, got {self.task!r}")
        object.__setattr__(self, "image_size", (int(w), int(h)))
        object.__setattr__(self, "classes", tuple(self.classes))

    @classmethod
    def from_names(
        cls,
        names: Union[Sequence[str], Mapping[int, str]],
        image_size: Tuple[int, int] = (640, 640),
        task: str = "detect",
    ) -> "ModelMetadata":
        """
        Build metadata from class names, either an ordered list or an `{id: name}`
        mapping such as the one stored under `names:` in `metadata.yaml`.
        """

        if isinstance(names, Mapping):
            lookup = {int(k): str(v) for k, v in names.items()}
            ids = sorted(lookup)
            if ids != list(range(len(ids))):
                raise ValueError(f"Class ids must be contiguous from 0, got {ids}")
            classes = tuple(YoloClass(i, lookup[i]) for i in ids)
        else:
            classes = tuple(YoloClass(i, str(name)) for i, name in enumerate(names))
        return cls(image_size=image_size, classes=classes, task=task)

    @property
    def class_count(self) -> int:
        return len(self.classes)
