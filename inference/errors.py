"""
inference/errors.py

Error taxonomy for the inference pipeline.

Every failure is raised as a PipelineError subclass carrying a `kind`
tag, so callers can branch on the category without string matching.
Only ModelLoadError is unrecoverable (no classifier, nothing to run);
everything else leaves the pipeline usable for the next call.
"""

from __future__ import annotations

from enum import Enum


class PipelineErrorKind(str, Enum):
    ASSET = "asset"
    PREPROCESS = "preprocess"
    TENSOR_SIZE = "tensor_size"
    ENGINE = "engine"


class PipelineError(Exception):
    kind: PipelineErrorKind = PipelineErrorKind.ENGINE


class ModelLoadError(PipelineError):
    """Model asset missing or interpreter could not be created (fatal)."""

    kind = PipelineErrorKind.ASSET


class PreprocessError(PipelineError):
    """Crop / resize / channel extraction failed for one frame."""

    kind = PipelineErrorKind.PREPROCESS


class TensorSizeError(PipelineError):
    """Input tensor byte length does not match the model contract."""

    kind = PipelineErrorKind.TENSOR_SIZE

    def __init__(self, expected_bytes: int, actual_bytes: int) -> None:
        self.expected_bytes = int(expected_bytes)
        self.actual_bytes = int(actual_bytes)
        super().__init__(
            f"Provided data count {self.actual_bytes} must match the required "
            f"count {self.expected_bytes}. Check image resize scale and input "
            f"preprocessing."
        )


class EngineError(PipelineError):
    """Copy / invoke / output read failed inside the interpreter."""

    kind = PipelineErrorKind.ENGINE
