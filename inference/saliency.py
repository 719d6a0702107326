"""
inference/saliency.py

Occlusion-sensitivity heatmap for one image.

Algorithm:
  1. resize the whole image to the model canvas once, baseline = infer,
  2. target class = arg-max of the baseline scores,
  3. slide a mid-gray patch over the canvas (step = stride); for every
     position re-infer and record baseline[target] - occluded[target]
     on each pixel the patch covers,
  4. average per pixel over the tiles that covered it,
  5. min/max normalise to [0, 1],
  6. render RGBA: red = hot, blue = 255 - red, green = 0, alpha fixed.

Cost is one forward pass per tile, ~(224 / stride)^2 passes, so this is
always run off the interactive path (see LeafClassifier).
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Union

import numpy as np

from schemas import Frame

from .config import InputSpec, SaliencyConfig
from .errors import PipelineError
from .preprocess import image_to_tensor, resize_to_input

logger = logging.getLogger(__name__)


class OcclusionSaliency:
    """
    Parameters
    ----------
    engine :
        Anything with `infer(tensor) -> np.ndarray` (normally TFLiteEngine).
    spec : InputSpec
        Model canvas size.
    cfg : SaliencyConfig
        Default patch/stride, fill gray and overlay alpha.
    """

    def __init__(
        self,
        engine,
        spec: Optional[InputSpec] = None,
        cfg: Optional[SaliencyConfig] = None,
    ) -> None:
        self.engine = engine
        self.spec = spec or InputSpec()
        self.cfg = cfg or SaliencyConfig()

    def generate(
        self,
        image: Union[Frame, np.ndarray],
        pixel_format: str = "RGB",
        patch_size: Optional[int] = None,
        stride: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Optional[np.ndarray]:
        """
        Build the heatmap.

        Parameters
        ----------
        image :
            Frame, or a uint8 array in `pixel_format`.
        patch_size, stride :
            Occluder size and step in model pixels (default from cfg).
        cancel :
            Optional event; when set, generation stops before the next
            tile and None is returned.

        Returns
        -------
        np.ndarray or None
            (H, W, 4) uint8 RGBA heatmap at model size, or None if the
            baseline pass failed or generation was cancelled.
        """
        patch = int(patch_size if patch_size is not None else self.cfg.patch_size)
        step = int(stride if stride is not None else self.cfg.stride)
        if patch <= 0 or step <= 0:
            raise ValueError(f"patch_size and stride must be positive (got {patch}, {step})")

        if isinstance(image, Frame):
            pixel_format = image.pixel_format
            image = image.image

        try:
            canvas = resize_to_input(image, pixel_format, self.spec)
            baseline = self.engine.infer(image_to_tensor(canvas, self.spec))
        except PipelineError as exc:
            logger.warning("Heatmap baseline failed: %s", exc)
            return None

        if baseline.size == 0:
            logger.warning("Heatmap baseline produced an empty output vector")
            return None

        target = int(np.argmax(baseline))
        base_score = float(baseline[target])

        H, W = self.spec.height, self.spec.width
        heat = np.zeros((H, W), dtype=np.float32)
        counts = np.zeros((H, W), dtype=np.float32)
        fill = np.array([self.cfg.fill_value] * 3 + [255], dtype=np.uint8)

        passes = 0
        skipped = 0
        for y in range(0, H, step):
            for x in range(0, W, step):
                if cancel is not None and cancel.is_set():
                    logger.info("Heatmap generation cancelled after %d passes", passes)
                    return None

                y2 = min(y + patch, H)
                x2 = min(x + patch, W)

                occluded = canvas.copy()
                occluded[y:y2, x:x2] = fill

                try:
                    scores = self.engine.infer(image_to_tensor(occluded, self.spec))
                except PipelineError as exc:
                    logger.debug("Occlusion tile (%d, %d) failed: %s", x, y, exc)
                    skipped += 1
                    continue
                passes += 1

                if scores.size <= target:
                    skipped += 1
                    continue

                importance = base_score - float(scores[target])
                heat[y:y2, x:x2] += importance
                counts[y:y2, x:x2] += 1.0

        np.divide(heat, counts, out=heat, where=counts > 0)

        v_min = float(heat.min())
        v_max = float(heat.max())
        norm = (heat - v_min) / (v_max - v_min + self.cfg.epsilon)

        logger.info(
            "Heatmap done: target=%d baseline=%.4f passes=%d skipped=%d range=[%.4f, %.4f]",
            target,
            base_score,
            passes,
            skipped,
            v_min,
            v_max,
        )
        return render_heatmap(norm, alpha=self.cfg.overlay_alpha)


def render_heatmap(norm: np.ndarray, alpha: int = 160) -> np.ndarray:
    """
    [0, 1] importance map -> RGBA uint8 red/blue diverging image.

    red + blue == 255 and green == 0 for every pixel.
    """
    red = np.clip(norm * 255.0, 0.0, 255.0).astype(np.uint8)
    out = np.zeros(norm.shape + (4,), dtype=np.uint8)
    out[..., 0] = red
    out[..., 2] = 255 - red
    out[..., 3] = np.uint8(alpha)
    return out
