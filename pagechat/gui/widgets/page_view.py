from __future__ import annotations

from typing import List, Optional, Tuple

from qtpy import QtCore, QtGui, QtWidgets

from pagechat.core.annotations import Annotation, AnnotationStatus
from pagechat.core.selection import PageSurface, Rect
from pagechat.core.selection.types import Point

_STATUS_COLORS = {
    AnnotationStatus.COMPLETE: QtGui.QColor(34, 197, 94, 70),
    AnnotationStatus.INCOMPLETE: QtGui.QColor(239, 68, 68, 70),
    AnnotationStatus.PENDING: QtGui.QColor(234, 179, 8, 70),
    AnnotationStatus.NOTE: QtGui.QColor(59, 130, 246, 70),
}


def surface_to_pixmap(surface: PageSurface) -> QtGui.QPixmap:
    """Wrap the page raster in a pixmap shown at the surface's display size."""
    image = surface.image.convert("RGB")
    data = image.tobytes("raw", "RGB")
    qimage = QtGui.QImage(
        data, image.width, image.height, 3 * image.width, QtGui.QImage.Format_RGB888
    ).copy()
    pixmap = QtGui.QPixmap.fromImage(qimage)
    if surface.display_width > 0:
        pixmap.setDevicePixelRatio(surface.pixel_width / float(surface.display_width))
    return pixmap


class PageView(QtWidgets.QLabel):
    """Displays one rendered page; Ctrl+drag selects a rectangular region.

    ``region_selected`` carries the drag start and end in display
    coordinates, which is what :class:`CoordinateMapper` expects.
    """

    region_selected = QtCore.Signal(object, object)

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self.setAlignment(QtCore.Qt.AlignLeft | QtCore.Qt.AlignTop)
        self.setMouseTracking(False)
        self._surface: Optional[PageSurface] = None
        self._annotations: List[Annotation] = []
        self._rubber_band = QtWidgets.QRubberBand(QtWidgets.QRubberBand.Rectangle, self)
        self._drag_origin: Optional[QtCore.QPoint] = None

    @property
    def surface(self) -> Optional[PageSurface]:
        return self._surface

    def set_surface(self, surface: Optional[PageSurface]) -> None:
        self._surface = surface
        if surface is None:
            self.clear()
            return
        self.setPixmap(surface_to_pixmap(surface))
        self.setFixedSize(int(round(surface.display_width)), int(round(surface.display_height)))

    def set_annotations(self, annotations: List[Annotation]) -> None:
        self._annotations = list(annotations)
        self.update()

    def display_rect(self, annotation: Annotation) -> Optional[Rect]:
        """Where ``annotation`` lands on the page as currently rendered."""
        surface = self._surface
        if surface is None:
            return None
        raster = annotation.rect.to_render_space(
            surface.render_scale, annotation.capture_scale
        )
        return raster.scaled(1.0 / surface.scale_x, 1.0 / surface.scale_y)

    # ------------------------------------------------------------------ events
    def mousePressEvent(self, event) -> None:
        if (
            event.button() == QtCore.Qt.LeftButton
            and event.modifiers() & QtCore.Qt.ControlModifier
            and self._surface is not None
        ):
            self._drag_origin = event.pos()
            self._rubber_band.setGeometry(QtCore.QRect(self._drag_origin, QtCore.QSize()))
            self._rubber_band.show()
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event) -> None:
        if self._drag_origin is not None:
            self._rubber_band.setGeometry(
                QtCore.QRect(self._drag_origin, event.pos()).normalized()
            )
            event.accept()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event) -> None:
        if self._drag_origin is not None and event.button() == QtCore.Qt.LeftButton:
            origin = self._drag_origin
            self._drag_origin = None
            self._rubber_band.hide()
            self.finish_drag((origin.x(), origin.y()), (event.pos().x(), event.pos().y()))
            event.accept()
            return
        super().mouseReleaseEvent(event)

    def finish_drag(self, start: Point, end: Point) -> Tuple[Point, Point]:
        start = (float(start[0]), float(start[1]))
        end = (float(end[0]), float(end[1]))
        self.region_selected.emit(start, end)
        return start, end

    def paintEvent(self, event) -> None:
        super().paintEvent(event)
        if not self._annotations or self._surface is None:
            return
        painter = QtGui.QPainter(self)
        try:
            for annotation in self._annotations:
                rect = self.display_rect(annotation)
                if rect is None:
                    continue
                color = _STATUS_COLORS.get(annotation.status, _STATUS_COLORS[AnnotationStatus.NOTE])
                outline = QtGui.QColor(color)
                outline.setAlpha(200)
                painter.setPen(QtGui.QPen(outline, 2))
                painter.setBrush(color)
                painter.drawRect(QtCore.QRectF(rect.x, rect.y, rect.width, rect.height))
        finally:
            painter.end()
