"""
ui/overlay.py

Live preview overlay + heatmap compositing.

Responsibilities:
  - draw the centre-third crop box the model actually sees (yellow)
  - render the top prediction ("<label> (<pct>%)") in the top-right corner
  - render "FPS: x.x" under the prediction when enabled
  - alpha-composite an occlusion heatmap (RGBA) over an image

Config flags in cfg.ui (all optional):
  - show_crop_box   : bool (default True)
  - show_prediction : bool (default True)
  - show_fps        : bool (default True)
  - heatmap_blend   : float in [0, 1] (default 0.5), used by callers
                      that want a weaker overlay than the heatmap alpha

The pipeline never calls into this module; the runner wires the
preprocessor's crop callback to a CropOverlayState and draws from it.
"""

from __future__ import annotations

import threading
from typing import Any, Optional, Tuple

import cv2
import numpy as np

from schemas import ClassificationResult, CropRect

CROP_BOX_COLOR = (0, 255, 255)  # yellow in BGR
TEXT_COLOR = (255, 255, 255)
TEXT_BG_COLOR = (0, 0, 0)


def _get_ui_flag(ui_cfg: Any, name: str, default: bool) -> bool:
    """
    Safe helper to read boolean flags from cfg.ui.

    Works if ui_cfg is:
      - a dataclass (attributes)
      - a simple object with attributes
      - a dict-like object (with .get)
    """
    if ui_cfg is None:
        return default

    if isinstance(ui_cfg, dict):
        val = ui_cfg.get(name, default)
    else:
        val = getattr(ui_cfg, name, default)

    try:
        return bool(val)
    except Exception:
        return default


class CropOverlayState:
    """
    Latest crop rectangle published by the preprocessor.

    `update` is handed to TensorPreprocessor as its on_crop callback and
    may run on a different thread than the drawing code, hence the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._crop: Optional[CropRect] = None
        self._frame_size: Optional[Tuple[int, int]] = None

    def update(self, crop: CropRect, frame_size: Tuple[int, int]) -> None:
        with self._lock:
            self._crop = crop
            self._frame_size = (int(frame_size[0]), int(frame_size[1]))

    def get(self) -> Tuple[Optional[CropRect], Optional[Tuple[int, int]]]:
        with self._lock:
            return self._crop, self._frame_size

    def view_rect(self, view_size: Tuple[int, int]) -> Optional[Tuple[int, int, int, int]]:
        """Crop box mapped into an aspect-fit view, as integer (x, y, w, h)."""
        crop, frame_size = self.get()
        if crop is None or frame_size is None:
            return None
        x, y, w, h = crop.map_to_view(frame_size, view_size)
        return int(round(x)), int(round(y)), int(round(w)), int(round(h))


def _put_label(
    img: np.ndarray,
    text: str,
    top_right: Tuple[int, int],
    scale: float = 0.7,
) -> int:
    """Draw `text` right-aligned at `top_right`; returns the label's bottom y."""
    font = cv2.FONT_HERSHEY_SIMPLEX
    (tw, th), baseline = cv2.getTextSize(text, font, scale, 2)
    x2, y1 = top_right
    x1 = max(0, x2 - tw - 10)
    y2 = y1 + th + baseline + 8

    cv2.rectangle(img, (x1, y1), (x2, y2), TEXT_BG_COLOR, -1)
    cv2.putText(img, text, (x1 + 5, y2 - baseline - 4), font, scale, TEXT_COLOR, 2, cv2.LINE_AA)
    return y2


def draw_overlay(
    img: np.ndarray,
    box: Optional[Tuple[int, int, int, int]] = None,
    result: Optional[ClassificationResult] = None,
    fps: Optional[float] = None,
    ui_cfg: Any = None,
) -> np.ndarray:
    """
    Draw crop box, prediction and FPS onto a copy of a BGR frame.

    `box` is (x, y, w, h) in the coordinates of `img`, typically
    CropOverlayState.view_rect(img size).
    """
    out = img.copy()
    h, w = out.shape[:2]

    if box is not None and _get_ui_flag(ui_cfg, "show_crop_box", True):
        x, y0, bw, bh = box
        cv2.rectangle(out, (x, y0), (x + bw, y0 + bh), CROP_BOX_COLOR, 3)

    y = 10
    if _get_ui_flag(ui_cfg, "show_prediction", True):
        text = result.display_text() if result is not None else "No result"
        y = _put_label(out, text, (w - 10, y)) + 5

    if fps is not None and _get_ui_flag(ui_cfg, "show_fps", True):
        _put_label(out, f"FPS: {fps:.1f}", (w - 10, y), scale=0.6)

    return out


def heatmap_to_bgra(heatmap_rgba: np.ndarray) -> np.ndarray:
    """RGBA heatmap -> BGRA (for cv2.imwrite / imshow)."""
    return cv2.cvtColor(heatmap_rgba, cv2.COLOR_RGBA2BGRA)


def blend_heatmap(
    base_bgr: np.ndarray,
    heatmap_rgba: np.ndarray,
    strength: float = 1.0,
) -> np.ndarray:
    """
    Alpha-composite an RGBA heatmap over a BGR image.

    The heatmap is resized to the base image if needed; each pixel uses
    the heatmap's own alpha, scaled by `strength` (0..1).
    """
    bh, bw = base_bgr.shape[:2]
    heat = heatmap_rgba
    if heat.shape[0] != bh or heat.shape[1] != bw:
        heat = cv2.resize(heat, (bw, bh), interpolation=cv2.INTER_LINEAR)

    heat_bgr = cv2.cvtColor(heat, cv2.COLOR_RGBA2BGR).astype(np.float32)
    alpha = (heat[..., 3:4].astype(np.float32) / 255.0) * float(np.clip(strength, 0.0, 1.0))

    out = base_bgr.astype(np.float32) * (1.0 - alpha) + heat_bgr * alpha
    return np.clip(out, 0, 255).astype(np.uint8)
