from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .crop import CropRect


@dataclass
class RankedPrediction:
    """
    One (label, score) entry produced by the ranker.

    `score` is the classifier's own output (softmax-like, roughly 0..1),
    not a pixel value.
    """

    index: int
    label: str
    score: float

    @property
    def confidence_pct(self) -> float:
        return float(self.score) * 100.0

    def display_text(self) -> str:
        return f"{self.label} ({self.confidence_pct:.1f}%)"


@dataclass
class ClassificationResult:
    """
    Result of one classification pass, handed to the presentation layer.

    Attributes
    ----------
    predictions : list of RankedPrediction
        Best-first, at most top_k entries.
    scores : np.ndarray
        Raw output vector (float32).
    inference_ms : float
        Wall time for preprocess + forward pass.
    crop : CropRect or None
        Region of the source frame that was classified.
    frame_id : int
        Id of the source frame.
    """

    predictions: List[RankedPrediction] = field(default_factory=list)
    scores: Optional[np.ndarray] = None
    inference_ms: float = 0.0
    crop: Optional[CropRect] = None
    frame_id: int = 0

    @property
    def top(self) -> Optional[RankedPrediction]:
        return self.predictions[0] if self.predictions else None

    @property
    def fps(self) -> float:
        if self.inference_ms <= 0:
            return 0.0
        return 1000.0 / self.inference_ms

    def display_text(self) -> str:
        top = self.top
        if top is None:
            return "No result"
        return top.display_text()
