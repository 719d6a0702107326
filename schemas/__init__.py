"""
schemas/__init__.py
Central exports for lightweight data structures used across LeafScan.

We keep each schema in its own module (frame, crop, prediction) and
re-export them here for convenience:

    from schemas import Frame, CropRect, RankedPrediction, ...

This file should remain VERY lightweight (no heavy imports or model code).
"""

from .frame import Frame, PIXEL_FORMATS
from .crop import CropRect
from .prediction import RankedPrediction, ClassificationResult

__all__ = [
    "Frame",
    "PIXEL_FORMATS",
    "CropRect",
    "RankedPrediction",
    "ClassificationResult",
]
