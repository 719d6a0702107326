"""
inference/pipeline.py

Caller-facing facade of the leaf-disease pipeline.

Entry points (the only ones the UI / runner layers use):

    load_model()                       fatal if the asset is missing
    load_labels()                      never fatal
    run_model(frame, on_result)        live video, throttled, drop-on-busy
    classify_image(frame)              single photo, never throttled
    run_inference(tensor)              raw forward pass
    generate_occlusion_heatmap(...)    background job, callback + Future

The pipeline never touches presentation objects; it emits values
(ClassificationResult, heatmap arrays, crop rectangles) through callbacks
and lets the presentation layer decide what to do with them.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional, Union

import numpy as np

from core.throttle import FrameThrottle
from schemas import ClassificationResult, Frame

from .config import ModelConfig, SaliencyConfig
from .engine import InterpreterFactory, TensorLike, TFLiteEngine
from .errors import EngineError, PipelineError
from .labels import LabelTable
from .preprocess import CropCallback, TensorPreprocessor
from .ranker import rank
from .saliency import OcclusionSaliency

logger = logging.getLogger(__name__)

ResultCallback = Callable[[ClassificationResult], None]
HeatmapCallback = Callable[[Optional[np.ndarray]], None]


class LeafClassifier:
    """
    Owns the engine, label table, throttle and heatmap worker.

    Parameters
    ----------
    model_cfg : ModelConfig
    saliency_cfg : SaliencyConfig
    models_dir : str or Path
        Directory holding the model asset and the label file.
    min_interval_sec : float
        Live-video throttle interval.
    interpreter_factory : callable, optional
        Passed to TFLiteEngine (tests inject a fake interpreter here).
    on_crop : callable, optional
        Receives the crop rectangle of every preprocessed frame.
    """

    def __init__(
        self,
        model_cfg: Optional[ModelConfig] = None,
        saliency_cfg: Optional[SaliencyConfig] = None,
        models_dir: Union[str, Path] = "models",
        min_interval_sec: float = 0.05,
        interpreter_factory: Optional[InterpreterFactory] = None,
        on_crop: Optional[CropCallback] = None,
    ) -> None:
        self.model_cfg = model_cfg or ModelConfig()
        self.saliency_cfg = saliency_cfg or SaliencyConfig()
        self.models_dir = Path(models_dir)

        self.engine = TFLiteEngine(self.model_cfg, interpreter_factory=interpreter_factory)
        self.preprocessor = TensorPreprocessor(self.model_cfg.input, on_crop=on_crop)
        self.saliency = OcclusionSaliency(self.engine, self.model_cfg.input, self.saliency_cfg)
        self.throttle = FrameThrottle(min_interval_sec)
        self.labels = LabelTable()

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="heatmap")
        self._closed = False

    @classmethod
    def from_config(
        cls,
        cfg,
        interpreter_factory: Optional[InterpreterFactory] = None,
        on_crop: Optional[CropCallback] = None,
    ) -> "LeafClassifier":
        """Build from a core.config.Config."""
        return cls(
            model_cfg=cfg.model,
            saliency_cfg=cfg.saliency,
            models_dir=cfg.paths.models_dir,
            min_interval_sec=cfg.throttle.min_interval_sec,
            interpreter_factory=interpreter_factory,
            on_crop=on_crop,
        )

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------
    def load_model(self, path: Optional[Union[str, Path]] = None) -> None:
        """Raises ModelLoadError; the caller should treat it as fatal."""
        self.engine.load_model(path or self.model_cfg.model_path(self.models_dir))

    def load_labels(self, path: Optional[Union[str, Path]] = None) -> LabelTable:
        self.labels = LabelTable.from_file(path or self.model_cfg.labels_path(self.models_dir))
        return self.labels

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------
    def run_model(
        self,
        frame: Frame,
        on_result: Optional[ResultCallback] = None,
    ) -> Optional[ClassificationResult]:
        """
        Live-video entry point.

        Frames arriving faster than the throttle interval are dropped
        silently. Frames that fail preprocessing or inference are logged
        and skipped; the next frame will come anyway.
        """
        if not self.throttle.try_acquire(frame.ts):
            return None

        try:
            result = self._classify(frame)
        except PipelineError as exc:
            logger.debug("Skipping frame %d (%s): %s", frame.frame_id, exc.kind.value, exc)
            return None

        logger.debug(
            "Inference Time: %.1f ms, FPS: %.1f, Result: %s",
            result.inference_ms,
            result.fps,
            result.display_text(),
        )

        if on_result is not None:
            try:
                on_result(result)
            except Exception:
                logger.exception("on_result callback failed")
        return result

    def classify_image(self, frame: Frame) -> ClassificationResult:
        """
        Single-photo entry point. Bypasses the throttle; errors propagate
        so the caller can show a message.
        """
        return self._classify(frame)

    def run_inference(self, tensor: TensorLike) -> np.ndarray:
        return self.engine.infer(tensor)

    def _classify(self, frame: Frame) -> ClassificationResult:
        t0 = time.perf_counter()
        tensor = self.preprocessor.preprocess(frame)
        scores = self.engine.infer(tensor)
        inference_ms = (time.perf_counter() - t0) * 1000.0

        return ClassificationResult(
            predictions=rank(scores, self.labels, int(self.model_cfg.top_k)),
            scores=scores,
            inference_ms=inference_ms,
            crop=self.preprocessor.crop_rect(frame),
            frame_id=frame.frame_id,
        )

    # ------------------------------------------------------------------
    # Explainability
    # ------------------------------------------------------------------
    def generate_occlusion_heatmap(
        self,
        image: Union[Frame, np.ndarray],
        patch_size: Optional[int] = None,
        stride: Optional[int] = None,
        completion: Optional[HeatmapCallback] = None,
        pixel_format: str = "RGB",
        cancel: Optional[threading.Event] = None,
    ) -> "Future[Optional[np.ndarray]]":
        """
        Schedule a heatmap on the background worker and return at once.

        `completion(heatmap_or_None)` runs on the worker thread when the
        job finishes; the returned Future resolves to the same value.
        Raises EngineError once the classifier has been closed.
        """
        if self._closed:
            raise EngineError("Classifier is closed; no new heatmap jobs accepted")

        def job() -> Optional[np.ndarray]:
            heatmap = self.saliency.generate(
                image,
                pixel_format=pixel_format,
                patch_size=patch_size,
                stride=stride,
                cancel=cancel,
            )
            if completion is not None:
                try:
                    completion(heatmap)
                except Exception:
                    logger.exception("Heatmap completion callback failed")
            return heatmap

        return self._executor.submit(job)

    def close(self) -> None:
        self._closed = True
        self._executor.shutdown(wait=True)
        self.engine.close()
