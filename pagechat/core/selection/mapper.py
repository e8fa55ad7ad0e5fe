from __future__ import annotations

import io
from typing import Callable, List, Optional

from PIL import Image

from pagechat.utils.logger import logger

from .classifier import classify
from .types import PageSurface, Point, Rect, Selection, SelectionKind

# Drags at or below this size (viewport pixels) are treated as clicks.
MIN_REGION_SIZE = 10.0

SelectionCallback = Callable[[Selection], None]


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def pixel_box(surface: PageSurface, rect: Rect) -> tuple[int, int, int, int]:
    """Map a viewport rect to a ``(left, top, right, bottom)`` raster box."""
    sx, sy = surface.scale_x, surface.scale_y
    left = int(round(rect.x * sx))
    top = int(round(rect.y * sy))
    width = int(round(rect.width * sx))
    height = int(round(rect.height * sy))
    return left, top, left + width, top + height


def extract_region(surface: PageSurface, rect: Rect) -> Image.Image:
    """Copy the addressed pixel block out of the surface.

    ``Image.crop`` returns a new image, so the page raster is never touched.
    Areas outside the raster come back as zero (transparent) pixels.
    """
    return surface.image.crop(pixel_box(surface, rect))


class CoordinateMapper:
    """Turn pointer gestures and text selections into :class:`Selection` objects."""

    def __init__(
        self,
        on_selection: Optional[SelectionCallback] = None,
        *,
        min_region_size: float = MIN_REGION_SIZE,
    ) -> None:
        self._subscribers: List[SelectionCallback] = []
        if on_selection is not None:
            self._subscribers.append(on_selection)
        self.min_region_size = float(min_region_size)

    def subscribe(self, callback: SelectionCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _emit(self, selection: Selection) -> Selection:
        for callback in list(self._subscribers):
            callback(selection)
        return selection

    def capture_region(
        self,
        surface: Optional[PageSurface],
        start: Point,
        end: Point,
    ) -> Optional[Selection]:
        if surface is None:
            return None
        viewport_rect = Rect.from_points(start, end)
        if (
            viewport_rect.width <= self.min_region_size
            or viewport_rect.height <= self.min_region_size
        ):
            return None

        region = extract_region(surface, viewport_rect)
        left, top, right, bottom = pixel_box(surface, viewport_rect)
        page_rect = Rect(
            float(left), float(top), float(right - left), float(bottom - top)
        )
        logger.debug(
            "Captured region page=%s viewport=%s pixels=%sx%s",
            surface.page_number,
            viewport_rect,
            region.width,
            region.height,
        )
        return self._emit(
            Selection(
                kind=SelectionKind.REGION,
                text=f"Region selected from Page {surface.page_number}",
                page_number=surface.page_number,
                image_bytes=encode_png(region),
                rect=page_rect,
                capture_scale=surface.render_scale,
            )
        )

    def capture_page(self, surface: Optional[PageSurface]) -> Optional[Selection]:
        if surface is None:
            return None
        return self._emit(
            Selection(
                kind=SelectionKind.IMAGE,
                text=f"Full page {surface.page_number} image",
                page_number=surface.page_number,
                image_bytes=encode_png(surface.image.copy()),
                rect=Rect(0.0, 0.0, float(surface.pixel_width), float(surface.pixel_height)),
                capture_scale=surface.render_scale,
            )
        )

    def capture_text(
        self,
        text: Optional[str],
        page_number: Optional[int] = None,
    ) -> Optional[Selection]:
        cleaned = (text or "").strip()
        if not cleaned:
            return None
        # Without a page hint from the caller the first page is assumed.
        page = int(page_number) if page_number else 1
        return self._emit(
            Selection(
                kind=classify(cleaned),
                text=cleaned,
                page_number=page,
            )
        )
