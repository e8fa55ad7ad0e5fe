from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from PIL import Image

Point = Tuple[float, float]


class SelectionKind(str, Enum):
    TEXT = "text"
    EQUATION = "equation"
    IMAGE = "image"
    REGION = "region"

    @property
    def is_spatial(self) -> bool:
        return self in (SelectionKind.IMAGE, SelectionKind.REGION)


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_points(cls, start: Point, end: Point) -> "Rect":
        x1, y1 = float(start[0]), float(start[1])
        x2, y2 = float(end[0]), float(end[1])
        return cls(
            x=min(x1, x2),
            y=min(y1, y2),
            width=abs(x2 - x1),
            height=abs(y2 - y1),
        )

    def scaled(self, sx: float, sy: Optional[float] = None) -> "Rect":
        sy = sx if sy is None else sy
        return Rect(self.x * sx, self.y * sy, self.width * sx, self.height * sy)

    def to_render_space(self, current_scale: float, capture_scale: float) -> "Rect":
        """Re-derive this rect for a page rendered at ``current_scale``.

        Rects are stored in the pixel space of the surface they were captured
        from; a page shown at another zoom needs the ratio applied.
        """
        if capture_scale <= 0:
            raise ValueError("capture_scale must be positive")
        return self.scaled(float(current_scale) / float(capture_scale))

    def to_dict(self) -> Dict[str, float]:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Rect"]:
        if not isinstance(data, dict):
            return None
        try:
            return cls(
                x=float(data["x"]),
                y=float(data["y"]),
                width=float(data["width"]),
                height=float(data["height"]),
            )
        except (KeyError, TypeError, ValueError):
            return None


@dataclass
class PageSurface:
    """A page raster plus the logical size it is displayed at.

    ``image`` holds the pixels produced by the renderer; ``display_width`` and
    ``display_height`` are the viewport size pointer coordinates refer to.
    ``render_scale`` is the zoom the page was rasterised at.
    """

    image: Image.Image
    page_number: int
    display_width: float
    display_height: float
    render_scale: float = 1.0

    @property
    def pixel_width(self) -> int:
        return int(self.image.width)

    @property
    def pixel_height(self) -> int:
        return int(self.image.height)

    @property
    def scale_x(self) -> float:
        if self.display_width <= 0:
            return 1.0
        return self.pixel_width / float(self.display_width)

    @property
    def scale_y(self) -> float:
        if self.display_height <= 0:
            return 1.0
        return self.pixel_height / float(self.display_height)


@dataclass
class Selection:
    kind: SelectionKind
    text: str
    page_number: int
    image_bytes: Optional[bytes] = field(default=None, repr=False)
    rect: Optional[Rect] = None
    capture_scale: float = 1.0

    @property
    def has_image(self) -> bool:
        return bool(self.image_bytes)

    def preview(self, limit: int = 100) -> str:
        text = self.text or ""
        if len(text) <= limit:
            return text
        return text[:limit] + "..."
