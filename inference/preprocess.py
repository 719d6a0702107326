"""
inference/preprocess.py

Frame -> model input tensor.

Procedure (must stay bit-for-bit in this order for model compatibility):
  1. centred 1/3 x 1/3 crop (integer floor division),
  2. bilinear resize of the crop to the model canvas (224 x 224),
  3. render as 32-bit RGBA (alpha ignored),
  4. take R, G, B per pixel in scan order and cast to float32,
     WITHOUT dividing by 255 (the shipped model expects raw 0..255).

The crop rectangle is also published through an optional `on_crop`
callback so an overlay can draw it; that side channel never affects the
tensor.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

from schemas import CropRect, Frame

from .config import InputSpec
from .errors import PreprocessError

logger = logging.getLogger(__name__)

CropCallback = Callable[[CropRect, Tuple[int, int]], None]

_TO_RGBA = {
    "BGRA": cv2.COLOR_BGRA2RGBA,
    "RGBA": None,
    "BGR": cv2.COLOR_BGR2RGBA,
    "RGB": cv2.COLOR_RGB2RGBA,
}

_CHANNELS = {"BGRA": 4, "RGBA": 4, "BGR": 3, "RGB": 3}


def _check_image(image: np.ndarray, pixel_format: str) -> None:
    if pixel_format not in _TO_RGBA:
        raise PreprocessError(f"Unsupported pixel format {pixel_format!r}")
    if image is None or not isinstance(image, np.ndarray):
        raise PreprocessError("Frame has no image data")
    if image.ndim != 3 or image.shape[2] != _CHANNELS[pixel_format]:
        raise PreprocessError(
            f"Image shape {getattr(image, 'shape', None)} does not match "
            f"pixel format {pixel_format}"
        )
    if image.dtype != np.uint8:
        raise PreprocessError(f"Expected uint8 pixels, got {image.dtype}")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise PreprocessError("Frame is empty")


def to_rgba(image: np.ndarray, pixel_format: str) -> np.ndarray:
    """Render `image` into a dense (H, W, 4) RGBA uint8 buffer."""
    code = _TO_RGBA[pixel_format]
    try:
        if code is None:
            return np.ascontiguousarray(image)
        return cv2.cvtColor(np.ascontiguousarray(image), code)
    except cv2.error as exc:
        raise PreprocessError(f"RGBA conversion failed: {exc}") from exc


def resize_to_input(
    image: np.ndarray,
    pixel_format: str,
    spec: Optional[InputSpec] = None,
) -> np.ndarray:
    """
    Resize a whole image (no crop) to the model canvas, as RGBA uint8.

    Used by the saliency generator, which explains the full picture.
    """
    spec = spec or InputSpec()
    _check_image(image, pixel_format)
    try:
        resized = cv2.resize(
            np.ascontiguousarray(image),
            spec.size,
            interpolation=cv2.INTER_LINEAR,
        )
    except cv2.error as exc:
        raise PreprocessError(f"Resize failed: {exc}") from exc
    return to_rgba(resized, pixel_format)


def image_to_tensor(rgba: np.ndarray, spec: Optional[InputSpec] = None) -> np.ndarray:
    """
    Model-sized RGBA (or RGB) uint8 image -> float32 (H, W, 3) tensor.

    Alpha is dropped, values stay in 0..255.
    """
    spec = spec or InputSpec()
    if rgba is None or rgba.ndim != 3 or rgba.shape[2] not in (3, 4):
        raise PreprocessError(f"Expected (H, W, 3|4) image, got {getattr(rgba, 'shape', None)}")
    if rgba.shape[0] != spec.height or rgba.shape[1] != spec.width:
        raise PreprocessError(
            f"Image is {rgba.shape[1]}x{rgba.shape[0]}, model needs {spec.width}x{spec.height}"
        )

    tensor = rgba[:, :, : spec.channels].astype(np.float32)
    if tensor.size != spec.num_values:
        raise PreprocessError(
            f"Tensor has {tensor.size} values, expected {spec.num_values}"
        )
    return np.ascontiguousarray(tensor)


class TensorPreprocessor:
    """
    Frame -> float32 input tensor for the classifier.

    Parameters
    ----------
    spec : InputSpec
        Target tensor contract (224 x 224 x 3 by default).
    on_crop : callable, optional
        Called as on_crop(crop_rect, (frame_w, frame_h)) after each
        successful crop. Presentation only; errors raised inside it are
        logged and ignored.
    """

    def __init__(
        self,
        spec: Optional[InputSpec] = None,
        on_crop: Optional[CropCallback] = None,
    ) -> None:
        self.spec = spec or InputSpec()
        self.on_crop = on_crop

    def crop_rect(self, frame: Frame) -> CropRect:
        return CropRect.centered_third(frame.width, frame.height)

    def preprocess(self, frame: Frame) -> np.ndarray:
        """
        Returns
        -------
        np.ndarray
            float32 array of shape (H, W, 3); `.tobytes()` is the
            R,G,B,R,G,B... buffer the interpreter expects.

        Raises
        ------
        PreprocessError
            On any failure. No partial tensor is ever returned.
        """
        image = frame.image
        _check_image(image, frame.pixel_format)

        rect = self.crop_rect(frame)
        if rect.is_empty:
            raise PreprocessError(
                f"Frame {frame.width}x{frame.height} too small for a centre-third crop"
            )

        region = image[rect.y:rect.y2, rect.x:rect.x2]

        try:
            resized = cv2.resize(
                np.ascontiguousarray(region),
                self.spec.size,
                interpolation=cv2.INTER_LINEAR,
            )
        except cv2.error as exc:
            raise PreprocessError(f"Resize failed: {exc}") from exc

        rgba = to_rgba(resized, frame.pixel_format)
        tensor = image_to_tensor(rgba, self.spec)

        self._publish_crop(rect, frame.size)

        logger.debug(
            "preprocess(): frame %d %dx%d crop=%s -> %d values",
            frame.frame_id,
            frame.width,
            frame.height,
            rect.as_xyxy(),
            tensor.size,
        )
        return tensor

    def _publish_crop(self, rect: CropRect, frame_size: Tuple[int, int]) -> None:
        if self.on_crop is None:
            return
        try:
            self.on_crop(rect, frame_size)
        except Exception:
            logger.exception("on_crop callback failed; ignoring")
