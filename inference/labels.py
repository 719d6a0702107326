from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)


class LabelTable:
    """
    Ordered class names, index-aligned with the model's output vector.

    Loaded once at startup and read-only afterwards. A missing file is
    not an error: the table stays empty and every index resolves to a
    synthetic "Index N" name.
    """

    def __init__(self, labels: Optional[Iterable[str]] = None) -> None:
        self._labels: List[str] = list(labels or [])

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "LabelTable":
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError:
            logger.warning("Labels not found at %s. Predictions will show indices.", path)
            return cls()

        labels = [line.strip() for line in content.splitlines() if line.strip()]
        logger.info("Loaded %d labels from %s", len(labels), path)
        return cls(labels)

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self):
        return iter(self._labels)

    @property
    def labels(self) -> List[str]:
        return list(self._labels)

    def name_for(self, index: int) -> str:
        index = int(index)
        if 0 <= index < len(self._labels):
            return self._labels[index]
        return f"Index {index}"
