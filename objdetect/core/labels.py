# -*- coding: utf-8 -*-
"""
Label table management.

A label table maps the class ids produced by a model to human-readable
names. It is loaded once when an engine is created and never changes
afterwards.

Sources, in order of precedence:
    1. An explicit list (configuration or caller)
    2. A sidecar file next to the model: <stem>.names, <stem>.txt or <stem>.yaml
    3. Class names declared by the model backend
    4. The COCO-80 table shared by the public YOLO checkpoints
"""

from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

import yaml

from objdetect.core.exceptions import UnknownClassId


COCO80 = (
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train",
    "truck", "boat", "traffic light", "fire hydrant", "stop sign",
    "parking meter", "bench", "bird", "cat", "dog", "horse", "sheep", "cow",
    "elephant", "bear", "zebra", "giraffe", "backpack", "umbrella", "handbag",
    "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball", "kite",
    "baseball bat", "baseball glove", "skateboard", "surfboard",
    "tennis racket", "bottle", "wine glass", "cup", "fork", "knife", "spoon",
    "bowl", "banana", "apple", "sandwich", "orange", "broccoli", "carrot",
    "hot dog", "pizza", "donut", "cake", "chair", "couch", "potted plant",
    "bed", "dining table", "toilet", "tv", "laptop", "mouse", "remote",
    "keyboard", "cell phone", "microwave", "oven", "toaster", "sink",
    "refrigerator", "book", "clock", "vase", "scissors", "teddy bear",
    "hair drier", "toothbrush",
)

SIDECAR_SUFFIXES = (".names", ".txt", ".yaml", ".yml")


class LabelTable:
    """
    Immutable, ordered sequence of class names.

    Example:
        >>> table = LabelTable(["cat", "dog"])
        >>> table.name_for(1)
        'dog'
        >>> table.name_for(2)
        Traceback (most recent call last):
        ...
        objdetect.core.exceptions.UnknownClassId: ...
    """

    __slots__ = ("_names",)

    def __init__(self, names: Sequence[str]) -> None:
        names = tuple(str(n) for n in names)
        if not names:
            raise ValueError("Label table must contain at least one class name")
        self._names = names

    @classmethod
    def coco80(cls) -> "LabelTable":
        return cls(COCO80)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "LabelTable":
        """
        Load a label table from a file.

        Plain text files hold one name per line (blank lines ignored).
        YAML files hold either a list of names, a mapping of id to name,
        or a mapping with a ``names`` key (Ultralytics dataset format).

        Args:
            path: Path to the label file.

        Returns:
            The loaded label table.

        Raises:
            OSError: If the file cannot be read.
            ValueError: If the file holds no usable names.
        """
        path = Path(path)
        text = path.read_text(encoding="utf-8")

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
            if isinstance(data, dict) and "names" in data:
                data = data["names"]
            if isinstance(data, dict):
                return cls([data[k] for k in sorted(data, key=int)])
            if isinstance(data, list):
                return cls(data)
            raise ValueError(f"Unrecognised label file layout in {path}")

        return cls([line.strip() for line in text.splitlines() if line.strip()])

    def name_for(self, class_id: int) -> str:
        """
        Resolve a class id to its name.

        Raises:
            UnknownClassId: If the id is out of range.
        """
        if not 0 <= class_id < len(self._names):
            raise UnknownClassId(class_id, len(self._names))
        return self._names[class_id]

    @property
    def names(self) -> tuple:
        return self._names

    def __getitem__(self, class_id: int) -> str:
        return self.name_for(class_id)

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, LabelTable):
            return self._names == other._names
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._names)

    def __repr__(self) -> str:
        return f"LabelTable({len(self._names)} classes)"


def find_sidecar(model_path: Union[str, Path]) -> Optional[Path]:
    """
    Find a label file shipped next to a model file.

    Args:
        model_path: Path to the model artifact.

    Returns:
        Path of the first existing sidecar, or None.
    """
    model_path = Path(model_path)
    for suffix in SIDECAR_SUFFIXES:
        candidate = model_path.with_suffix(suffix)
        if candidate.is_file():
            return candidate
    return None


def resolve_label_table(
    model_path: Union[str, Path],
    labels: Optional[Union[LabelTable, Sequence[str]]] = None,
    backend_names: Optional[List[str]] = None,
) -> LabelTable:
    """
    Pick the label table for a model following the precedence order
    documented at module level.
    """
    if labels is not None:
        return labels if isinstance(labels, LabelTable) else LabelTable(labels)

    sidecar = find_sidecar(model_path)
    if sidecar is not None:
        return LabelTable.from_file(sidecar)

    if backend_names:
        return LabelTable(backend_names)

    return LabelTable.coco80()
