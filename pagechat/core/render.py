from __future__ import annotations

from pathlib import Path
from typing import Union

from PIL import Image

from pagechat.core.selection.types import PageSurface

DocumentSource = Union[str, Path, bytes]

MIN_ZOOM = 0.5
MAX_ZOOM = 2.5
ZOOM_STEP = 0.2
DEFAULT_ZOOM = 1.2


def clamp_zoom(value: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, float(value)))


def _open(source: DocumentSource):
    import fitz  # type: ignore[import]

    if isinstance(source, (bytes, bytearray)):
        return fitz.open(stream=bytes(source), filetype="pdf")
    return fitz.open(str(source))


def page_count(source: DocumentSource) -> int:
    doc = _open(source)
    try:
        return int(doc.page_count)
    finally:
        doc.close()


def page_text(source: DocumentSource, page_number: int) -> str:
    doc = _open(source)
    try:
        if page_number < 1 or page_number > doc.page_count:
            return ""
        return (doc.load_page(page_number - 1).get_text("text") or "").strip()
    finally:
        doc.close()


def render_page(
    source: DocumentSource,
    page_number: int,
    zoom: float = DEFAULT_ZOOM,
    device_pixel_ratio: float = 1.0,
) -> PageSurface:
    """Rasterise one page (1-based) into a :class:`PageSurface`.

    The raster is produced at ``zoom * device_pixel_ratio`` while the display
    size stays at ``zoom``, so pointer coordinates map to more than one pixel
    on high-DPI screens.
    """
    import fitz  # type: ignore[import]

    dpr = max(1.0, float(device_pixel_ratio))
    doc = _open(source)
    try:
        if page_number < 1 or page_number > doc.page_count:
            raise IndexError(
                f"Page {page_number} out of range (document has {doc.page_count})"
            )
        page = doc.load_page(page_number - 1)
        scale = float(zoom) * dpr
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
    finally:
        doc.close()
    return PageSurface(
        image=image,
        page_number=page_number,
        display_width=image.width / dpr,
        display_height=image.height / dpr,
        render_scale=scale,
    )
