from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict

import yaml

from inference.config import (
    ModelConfig,
    SaliencyConfig,
    default_model_config,
    default_saliency_config,
)

logger = logging.getLogger(__name__)



@dataclass
class CameraConfig:
    index: int = 0
    width: int = 1280
    height: int = 720
    fps: int = 30


@dataclass
class PathsConfig:
    models_dir: str = "models"
    logs_dir: str = "logs"
    output_dir: str = "output"


@dataclass
class RuntimeConfig:
    log_level: str = "INFO"
    log_inference_metrics: bool = True
    metrics_window_sec: float = 5.0
    metrics_log_every_sec: float = 5.0


@dataclass
class ThrottleConfig:
    """
    Live-video gate. 0.05 s between accepted frames (~20 inferences/s).
    Single photos are never throttled.
    """
    min_interval_sec: float = 0.05


@dataclass
class UiConfig:
    show_crop_box: bool = True
    show_prediction: bool = True
    show_fps: bool = True
    window_title: str = "LeafScan"
    heatmap_blend: float = 0.5


@dataclass
class Config:
    camera: CameraConfig = field(default_factory=CameraConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    throttle: ThrottleConfig = field(default_factory=ThrottleConfig)
    saliency: SaliencyConfig = field(default_factory=SaliencyConfig)
    ui: UiConfig = field(default_factory=UiConfig)

    @property
    def model_path(self) -> Path:
        return self.model.model_path(self.paths.models_dir)

    @property
    def labels_path(self) -> Path:
        return self.model.labels_path(self.paths.models_dir)




def _update_dataclass_from_dict(obj: Any, data: Dict[str, Any]) -> Any:
    """Copy known keys onto the dataclass; unknown YAML keys are logged and skipped."""
    for key, value in data.items():
        if hasattr(obj, key):
            setattr(obj, key, value)
        else:
            logger.debug("Ignoring unknown config key %s.%s", type(obj).__name__, key)
    return obj


# section name -> builder(mapping) returning the section object
_SECTIONS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "camera": lambda d: _update_dataclass_from_dict(CameraConfig(), d),
    "paths": lambda d: _update_dataclass_from_dict(PathsConfig(), d),
    "runtime": lambda d: _update_dataclass_from_dict(RuntimeConfig(), d),
    "model": default_model_config,
    "throttle": lambda d: _update_dataclass_from_dict(ThrottleConfig(), d),
    "saliency": default_saliency_config,
    "ui": lambda d: _update_dataclass_from_dict(UiConfig(), d),
}


def default_config() -> Config:
    """Config with every section at its defaults (no YAML involved)."""
    return Config()


def load_config(path: str | Path = "config/default.yaml") -> Config:
    """
    Read a YAML file into a Config.

    Every section is optional; missing keys keep their defaults. Sections:
      - cfg.camera
      - cfg.paths
      - cfg.runtime
      - cfg.model      (asset names, thread_count, input tensor contract)
      - cfg.throttle
      - cfg.saliency
      - cfg.ui
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be a mapping, got: {type(raw)}")

    sections = {}
    for name, build in _SECTIONS.items():
        data = raw.get(name) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config section '{name}' must be a mapping, got: {type(data)}")
        sections[name] = build(data)

    cfg = Config(**sections)

    logger.info(
        "Config loaded from %s | model=%s, labels=%s, threads=%d, "
        "throttle=%.3fs, saliency patch=%d stride=%d",
        path,
        cfg.model_path,
        cfg.labels_path,
        int(cfg.model.thread_count),
        float(cfg.throttle.min_interval_sec),
        int(cfg.saliency.patch_size),
        int(cfg.saliency.stride),
    )

    return cfg
