from dataclasses import dataclass
from typing import Tuple

import numpy as np

PIXEL_FORMATS = ("BGRA", "RGBA", "BGR", "RGB")


@dataclass
class Frame:
    """
    One image sample: a live video frame or a still photo.

    Attributes
    ----------
    frame_id : int
        Incremental counter for live streams (0 for single photos).
    ts       : float
        Capture timestamp in seconds (time.perf_counter() for live frames).
    image    : np.ndarray
        uint8 pixels, shape (H, W, 3) or (H, W, 4), rows already unpadded.
    pixel_format : str
        Channel order of `image`: "BGRA", "RGBA", "BGR" or "RGB".
        OpenCV cameras deliver "BGR"; iOS style capture buffers are "BGRA".
    camera_id : str
        Identifier of the source ("cam0", "photo", ...).

    NOTE:
    - The pipeline only reads a Frame; it never keeps a reference past
      the call that received it.
    """

    frame_id: int
    ts: float
    image: np.ndarray
    pixel_format: str = "BGR"
    camera_id: str = "cam0"

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @classmethod
    def from_buffer(
        cls,
        buffer: bytes,
        width: int,
        height: int,
        bytes_per_row: int,
        pixel_format: str = "BGRA",
        frame_id: int = 0,
        ts: float = 0.0,
        camera_id: str = "cam0",
    ) -> "Frame":
        """
        Build a Frame from a packed 32-bit pixel buffer.

        `bytes_per_row` may exceed width * 4 (row padding); the padding
        bytes are dropped so `image` is a dense (H, W, 4) array.
        """
        if pixel_format not in ("BGRA", "RGBA"):
            raise ValueError(f"Packed buffers must be BGRA or RGBA, got {pixel_format!r}")
        if bytes_per_row < width * 4:
            raise ValueError(
                f"bytes_per_row={bytes_per_row} is smaller than width*4={width * 4}"
            )

        raw = np.frombuffer(buffer, dtype=np.uint8)
        needed = bytes_per_row * height
        if raw.size < needed:
            raise ValueError(
                f"Buffer holds {raw.size} bytes, expected at least {needed}"
            )

        rows = raw[:needed].reshape(height, bytes_per_row)
        image = rows[:, : width * 4].reshape(height, width, 4).copy()

        return cls(
            frame_id=frame_id,
            ts=ts,
            image=image,
            pixel_format=pixel_format,
            camera_id=camera_id,
        )
