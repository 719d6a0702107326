from __future__ import annotations

import argparse
import logging
import sys
import threading
import time
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from inference.errors import ModelLoadError
from inference.pipeline import LeafClassifier
from inference.preprocess import resize_to_input
from schemas import ClassificationResult
from ui.overlay import CropOverlayState, blend_heatmap, draw_overlay

from .camera import CameraSource
from .config import load_config
from .logging_setup import setup_logging
from .metrics import InferenceMetrics

ESC_KEY = 27


class _LatestValue:
    """Single-slot mailbox between background callbacks and the UI loop."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = None

    def set(self, value) -> None:
        with self._lock:
            self._value = value

    def get(self):
        with self._lock:
            return self._value

    def pop(self):
        with self._lock:
            value, self._value = self._value, None
            return value


def run(config_path: str | Path = "config/default.yaml") -> int:
    """
    Run the live LeafScan pipeline.

    Pipeline:
        Frame (camera) ->
        Throttle (drop frames closer than min_interval_sec) ->
        Preprocess (centre-third crop, 224x224, raw RGB floats) ->
        TFLite forward pass ->
        Ranker (top-k + labels) ->
        UI overlay (crop box, prediction, FPS)

    Keys:
        h    explain the current frame (occlusion heatmap, background job)
        ESC  exit

    Returns a process exit code (1 if the model asset or the camera is
    unavailable).
    """
    cfg = load_config(config_path)
    setup_logging(cfg.paths.logs_dir, level=cfg.runtime.log_level)
    log = logging.getLogger("leafscan.main")

    crop_state = CropOverlayState()
    classifier = LeafClassifier.from_config(cfg, on_crop=crop_state.update)

    try:
        classifier.load_model()
    except ModelLoadError as exc:
        log.critical("Cannot start without a classifier: %s", exc)
        classifier.close()
        return 1
    classifier.load_labels()

    metrics: Optional[InferenceMetrics] = None
    if cfg.runtime.log_inference_metrics:
        metrics = InferenceMetrics(
            window_sec=float(cfg.runtime.metrics_window_sec),
            log_every_sec=float(cfg.runtime.metrics_log_every_sec),
        )

    latest_result = _LatestValue()
    pending_heatmap = _LatestValue()
    heatmap_busy = threading.Event()
    stop_heatmaps = threading.Event()

    def on_heatmap(heatmap: Optional[np.ndarray], base: np.ndarray) -> None:
        heatmap_busy.clear()
        if heatmap is None:
            if not stop_heatmaps.is_set():
                log.warning("Heatmap generation failed")
            return
        pending_heatmap.set(blend_heatmap(base, heatmap, strength=cfg.ui.heatmap_blend))

    window = cfg.ui.window_title
    src: Optional[CameraSource] = None
    try:
        try:
            src = CameraSource(
                cam_index=cfg.camera.index,
                w=cfg.camera.width,
                h=cfg.camera.height,
                fps=cfg.camera.fps,
                buffersize=1,
            )
        except RuntimeError as exc:
            log.critical("Cannot start without a camera: %s", exc)
            return 1
        src.start()

        log.info(
            "LeafScan pipeline started (model=%s, throttle=%.3fs). "
            "Press 'h' for a heatmap, ESC to exit.",
            classifier.engine.model_path,
            classifier.throttle.min_interval_sec,
        )

        while True:
            frame = src.read_latest(timeout=1.0)
            if frame is None:
                continue

            result: Optional[ClassificationResult] = classifier.run_model(
                frame, on_result=latest_result.set
            )
            if metrics is not None:
                metrics.update(result, time.perf_counter())

            shown = latest_result.get()
            vis = draw_overlay(
                frame.image,
                box=crop_state.view_rect(frame.size),
                result=shown,
                fps=shown.fps if shown is not None else None,
                ui_cfg=cfg.ui,
            )
            cv2.imshow(window, vis)

            heat_vis = pending_heatmap.pop()
            if heat_vis is not None:
                cv2.imshow(f"{window} - heatmap", heat_vis)

            key = cv2.waitKey(1) & 0xFF
            if key == ESC_KEY:
                break
            if key == ord("h") and not heatmap_busy.is_set():
                heatmap_busy.set()
                base = cv2.cvtColor(
                    resize_to_input(frame.image, frame.pixel_format, cfg.model.input),
                    cv2.COLOR_RGBA2BGR,
                )
                log.info("Generating occlusion heatmap for frame %d", frame.frame_id)
                classifier.generate_occlusion_heatmap(
                    frame,
                    patch_size=cfg.saliency.patch_size,
                    stride=cfg.saliency.stride,
                    completion=lambda hm, b=base: on_heatmap(hm, b),
                    cancel=stop_heatmaps,
                )
    except KeyboardInterrupt:
        log.info("Interrupted")
    finally:
        # a running heatmap job stops at its next tile
        stop_heatmaps.set()
        if src is not None:
            src.stop()
        classifier.close()
        cv2.destroyAllWindows()
        log.info("LeafScan pipeline stopped")

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="python -m core.main_loop",
        description="Live leaf-disease classification from a webcam.",
    )
    parser.add_argument(
        "--config",
        default="config/default.yaml",
        help="YAML config file (default: config/default.yaml)",
    )
    args = parser.parse_args(argv)
    return run(args.config)


if __name__ == "__main__":
    sys.exit(main())
