"""
inference/config.py

Configuration objects for the leaf-disease inference pipeline.

This module does **not** load any model; it only defines typed
configuration for the model asset, its tensor contract and the
occlusion-saliency routine.

Other modules (preprocess, engine, saliency, pipeline) should **only**
depend on these dataclasses instead of hard-coding paths, sizes or
thread counts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

FLOAT32_BYTES = 4


@dataclass
class InputSpec:
    """
    Tensor contract at the model boundary.

    The shipped model takes [1, 224, 224, 3] float32 in the raw 0..255
    range. Pixel values are NOT divided by 255 anywhere in the pipeline.
    """

    width: int = 224
    height: int = 224
    channels: int = 3

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def num_values(self) -> int:
        return self.width * self.height * self.channels

    @property
    def expected_bytes(self) -> int:
        return self.num_values * FLOAT32_BYTES

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.height, self.width, self.channels


@dataclass
class ModelConfig:
    """
    Model asset + interpreter options.

    Attributes
    ----------
    file_name / file_type :
        Asset referenced as "<models_dir>/<file_name>.<file_type>",
        e.g. "efficientnet_b0_aug" / "tflite".
    labels_file :
        Plain-text label list inside models_dir (one name per line).
    thread_count :
        Threads the interpreter may use for one forward pass. Fixed at
        startup, never tuned at runtime.
    top_k :
        How many ranked predictions to report per pass.
    """

    file_name: str = "efficientnet_b0_aug"
    file_type: str = "tflite"
    labels_file: str = "labels.txt"
    thread_count: int = 5
    top_k: int = 1
    input: InputSpec = field(default_factory=InputSpec)

    def model_path(self, models_dir: str | Path) -> Path:
        return Path(models_dir) / f"{self.file_name}.{self.file_type}"

    def labels_path(self, models_dir: str | Path) -> Path:
        return Path(models_dir) / self.labels_file

    def validate(self) -> None:
        if int(self.thread_count) <= 0:
            raise ValueError(f"model.thread_count must be positive, got {self.thread_count}")
        if int(self.top_k) <= 0:
            raise ValueError(f"model.top_k must be positive, got {self.top_k}")
        for name in ("width", "height", "channels"):
            value = int(getattr(self.input, name))
            if value <= 0:
                raise ValueError(f"model.input.{name} must be positive, got {value}")


@dataclass
class SaliencyConfig:
    """
    Occlusion-sensitivity parameters.

    patch_size / stride are in model-input pixels. fill_value is the
    mid-gray used to blank a patch; overlay_alpha is the fixed alpha of
    every heatmap pixel.
    """

    patch_size: int = 28
    stride: int = 14
    fill_value: int = 128
    overlay_alpha: int = 160
    epsilon: float = 1e-8

    def validate(self) -> None:
        for name in ("patch_size", "stride"):
            value = int(getattr(self, name))
            if value <= 0:
                raise ValueError(f"saliency.{name} must be positive, got {value}")
        for name in ("fill_value", "overlay_alpha"):
            value = int(getattr(self, name))
            if not 0 <= value <= 255:
                raise ValueError(f"saliency.{name} must be in 0..255, got {value}")
        if float(self.epsilon) <= 0:
            raise ValueError(f"saliency.epsilon must be positive, got {self.epsilon}")


def default_model_config(overrides: Optional[Mapping[str, Any]] = None) -> ModelConfig:
    """
    Build a ModelConfig from defaults plus an optional mapping (YAML section).

    Unknown keys are ignored with a debug log; the nested "input" mapping
    updates InputSpec.
    """
    cfg = ModelConfig()
    if not overrides:
        return cfg

    for key, value in overrides.items():
        if key == "input" and isinstance(value, Mapping):
            for ik, iv in value.items():
                if hasattr(cfg.input, ik):
                    setattr(cfg.input, ik, int(iv))
            continue
        if hasattr(cfg, key):
            setattr(cfg, key, value)
        else:
            logger.debug("Ignoring unknown model config key %r", key)

    cfg.validate()
    return cfg


def default_saliency_config(overrides: Optional[Mapping[str, Any]] = None) -> SaliencyConfig:
    cfg = SaliencyConfig()
    for key, value in (overrides or {}).items():
        if hasattr(cfg, key):
            setattr(cfg, key, value)
        else:
            logger.debug("Ignoring unknown saliency config key %r", key)
    cfg.validate()
    return cfg
