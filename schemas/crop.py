from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class CropRect:
    """
    Axis-aligned pixel rectangle (top-left corner + size).

    All inference runs on the centred third of the frame; see
    `centered_third`. The policy is fixed and not exposed in config.
    """

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def centered_third(cls, frame_width: int, frame_height: int) -> "CropRect":
        box_w = frame_width // 3
        box_h = frame_height // 3
        x1 = (frame_width - box_w) // 2
        y1 = (frame_height - box_h) // 2
        return cls(x=x1, y=y1, width=box_w, height=box_h)

    @property
    def x2(self) -> int:
        return self.x + self.width

    @property
    def y2(self) -> int:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.x2, self.y2

    def map_to_view(
        self,
        frame_size: Tuple[int, int],
        view_size: Tuple[int, int],
    ) -> Tuple[float, float, float, float]:
        """
        Map this rectangle from frame pixels into a display view that shows
        the whole frame aspect-fit (letterboxed) and centred.

        Returns (x, y, w, h) in view coordinates.
        """
        fw, fh = frame_size
        vw, vh = view_size
        if fw <= 0 or fh <= 0 or vw <= 0 or vh <= 0:
            return 0.0, 0.0, 0.0, 0.0

        scale = min(vw / fw, vh / fh)
        fit_w = fw * scale
        fit_h = fh * scale
        off_x = (vw - fit_w) / 2.0
        off_y = (vh - fit_h) / 2.0

        return (
            off_x + self.x * scale,
            off_y + self.y * scale,
            self.width * scale,
            self.height * scale,
        )
