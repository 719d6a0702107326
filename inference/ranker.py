"""
inference/ranker.py

Output vector -> ranked, labelled predictions.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import numpy as np

from schemas import RankedPrediction

from .labels import LabelTable


def top_k(scores: Sequence[float], k: int) -> List[Tuple[int, float]]:
    """
    Return the k best (index, score) pairs, highest score first.

    Scores are compared in float64, so float32 model output and wider
    float inputs both keep their full precision. Equal scores keep their
    original order (lower index first) because `sorted` is stable. If k
    exceeds the vector length, the whole sorted vector is returned;
    k <= 0 returns an empty list.
    """
    if k <= 0:
        return []
    values = np.asarray(scores, dtype=np.float64).reshape(-1)
    ranked = sorted(enumerate(values.tolist()), key=lambda item: item[1], reverse=True)
    return [(int(i), float(s)) for i, s in ranked[:k]]


def argmax_with_score(scores: Sequence[float]) -> Optional[Tuple[int, float]]:
    """Index and value of the first maximum, or None for an empty vector."""
    values = np.asarray(scores, dtype=np.float64).reshape(-1)
    if values.size == 0:
        return None
    idx = int(np.argmax(values))
    return idx, float(values[idx])


def rank(
    scores: Sequence[float],
    labels: Optional[LabelTable] = None,
    k: int = 1,
) -> List[RankedPrediction]:
    labels = labels or LabelTable()
    return [
        RankedPrediction(index=idx, label=labels.name_for(idx), score=score)
        for idx, score in top_k(scores, k)
    ]
