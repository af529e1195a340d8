"""
canvas/view.py

QGraphicsView that shows the rendered diagram and turns clicks on nodes
and clusters into pointer events on the diagram graphic.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from PyQt6.QtCore import QByteArray, QPointF, QRectF, Qt
from PyQt6.QtGui import QColor, QFont, QPainter
from PyQt6.QtSvg import QSvgRenderer
from PyQt6.QtSvgWidgets import QGraphicsSvgItem
from PyQt6.QtWidgets import QGraphicsScene, QGraphicsTextItem, QGraphicsView

from debug_trace import trace
from utils import hex_to_qcolor
from mermaid.pipeline import RenderGeneration, VisualElement
from settings import get_settings

PLACEHOLDER_TEXT = (
    "Generate a diagram to see it here.\n"
    "Input your code or open a folder and click \"Generate Diagram\"."
)
ERROR_PREFIX = "MermaidLib Error: "


def smallest_containing(hits: List[Tuple[QRectF, VisualElement]], point: QPointF) -> Optional[VisualElement]:
    """The element with the smallest bounds containing *point*.

    A node drawn inside a cluster wins over the cluster.
    """
    best: Optional[VisualElement] = None
    best_area = 0.0
    for rect, ve in hits:
        if not rect.contains(point):
            continue
        area = rect.width() * rect.height()
        if best is None or area < best_area:
            best, best_area = ve, area
    return best


class DiagramView(QGraphicsView):
    """
    Diagram panel.

    - Shows the live generation's graphic through a shared QSvgRenderer
    - Click on a node/cluster dispatches a pointer event on the graphic
    - Wheel zoom, fit/reset, and text for the placeholder and errors
    - Dropped files or folders are handed to ``on_drop_path``
    """

    def __init__(self, on_drop_path: Optional[Callable[[str], None]] = None, parent=None):
        self._scene = QGraphicsScene()
        super().__init__(self._scene, parent)
        self.setObjectName("diagramView")
        self.setAcceptDrops(True)
        self.on_drop_path = on_drop_path
        self.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        self.setRenderHint(QPainter.RenderHint.TextAntialiasing, True)
        self.setDragMode(QGraphicsView.DragMode.ScrollHandDrag)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.AnchorUnderMouse)
        self.setMouseTracking(True)

        self._renderer = QSvgRenderer()
        self._svg_item: Optional[QGraphicsSvgItem] = None
        self._generation: Optional[RenderGeneration] = None
        self._hits: List[Tuple[QRectF, VisualElement]] = []
        self._text_color = QColor("#64748b")

        self.show_placeholder()

    # ----------------------------
    # Content
    # ----------------------------

    @property
    def generation(self) -> Optional[RenderGeneration]:
        return self._generation

    def set_text_color(self, color: str) -> None:
        self._text_color = hex_to_qcolor(color, self._text_color)

    def _reset_scene(self) -> None:
        self._scene.clear()
        self._svg_item = None
        self._generation = None
        self._hits = []
        self.resetTransform()

    def show_message(self, text: str, is_error: bool = False) -> None:
        """Replace the diagram with a centred message."""
        self._reset_scene()
        item = QGraphicsTextItem(text)
        font = QFont()
        font.setPointSize(11)
        item.setFont(font)
        item.setDefaultTextColor(QColor("#dc2626") if is_error else self._text_color)
        item.setTextWidth(420)
        self._scene.addItem(item)
        self._scene.setSceneRect(item.boundingRect())
        self.centerOn(item)

    def show_placeholder(self) -> None:
        self.show_message(PLACEHOLDER_TEXT)

    def show_error(self, message: str) -> None:
        self.show_message(f"{ERROR_PREFIX}{message}", is_error=True)

    def show_busy(self, message: str = "Generating diagram...") -> None:
        self.show_message(message)

    def show_generation(self, generation: RenderGeneration) -> None:
        """Display *generation*'s graphic and index its elements for clicks."""
        self._reset_scene()
        if not self._renderer.load(QByteArray(generation.graphic.to_bytes())):
            self.show_error("Qt could not display the rendered SVG.")
            return

        self._generation = generation
        self._svg_item = QGraphicsSvgItem()
        self._svg_item.setSharedRenderer(self._renderer)
        self._scene.addItem(self._svg_item)
        self._scene.setSceneRect(self._svg_item.boundingRect())
        self._hits = self._element_rects(generation)
        trace(f"View shows generation {generation.number} "
              f"({len(self._hits)} clickable element(s))", "RENDER")
        self.zoom_fit()

    def refresh_graphic(self) -> None:
        """Reload the current graphic after a restyle, keeping zoom."""
        if self._generation is None or self._generation.graphic.disposed:
            return
        self._renderer.load(QByteArray(self._generation.graphic.to_bytes()))
        if self._svg_item is not None:
            self._svg_item.update()

    # ----------------------------
    # Hit testing
    # ----------------------------

    def _svg_to_item(self, rect: QRectF) -> QRectF:
        """Map a rect in SVG user units to item coordinates."""
        vb = self._renderer.viewBoxF()
        size = self._renderer.defaultSize()
        if vb.isEmpty() or size.isEmpty():
            return rect
        sx = size.width() / vb.width()
        sy = size.height() / vb.height()
        return QRectF((rect.x() - vb.x()) * sx, (rect.y() - vb.y()) * sy,
                      rect.width() * sx, rect.height() * sy)

    def _element_rects(self, generation: RenderGeneration) -> List[Tuple[QRectF, VisualElement]]:
        hits = []
        for ve in generation.interactive_elements():
            if not ve.svg_id or not self._renderer.elementExists(ve.svg_id):
                continue
            bounds = self._renderer.boundsOnElement(ve.svg_id)
            rect = self._renderer.transformForElement(ve.svg_id).mapRect(bounds)
            if rect.isEmpty():
                continue
            hits.append((self._svg_to_item(rect), ve))
        return hits

    def element_at(self, view_pos) -> Optional[VisualElement]:
        if self._svg_item is None:
            return None
        item_pos = self._svg_item.mapFromScene(self.mapToScene(view_pos))
        return smallest_containing(self._hits, item_pos)

    def mousePressEvent(self, event):
        """Left click on an element dispatches a pointer event to it."""
        if event.button() == Qt.MouseButton.LeftButton and self._generation is not None:
            ve = self.element_at(event.position().toPoint())
            if ve is not None:
                graphic = self._generation.graphic
                called = graphic.dispatch(ve.element)
                trace(f"Click on {ve.svg_id} ({ve.identity!r}), {called} handler(s)", "SYNC")
                event.accept()
                return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        super().mouseMoveEvent(event)
        if event.buttons() != Qt.MouseButton.NoButton:
            return
        if self.element_at(event.position().toPoint()) is not None:
            self.viewport().setCursor(Qt.CursorShape.PointingHandCursor)
        else:
            self.viewport().setCursor(Qt.CursorShape.OpenHandCursor)

    # ----------------------------
    # Zoom
    # ----------------------------

    def wheelEvent(self, event):
        """Zoom with mouse wheel."""
        delta = event.angleDelta().y()
        # Zoom factor from settings. Default: 1.15 (15% per scroll step)
        zoom_factor = get_settings().settings.canvas.zoom.wheel_factor
        factor = zoom_factor if delta > 0 else 1 / zoom_factor
        self.scale(factor, factor)

    def zoom_fit(self):
        """Zoom to fit the entire scene in the view."""
        scene_rect = self._scene.itemsBoundingRect()
        if scene_rect.isNull() or scene_rect.isEmpty():
            scene_rect = self._scene.sceneRect()
        if not scene_rect.isNull() and not scene_rect.isEmpty():
            margin = 20
            scene_rect = scene_rect.adjusted(-margin, -margin, margin, margin)
            self.fitInView(scene_rect, Qt.AspectRatioMode.KeepAspectRatio)

    def zoom_reset(self):
        """Reset zoom to 100% (1:1 scale)."""
        self.resetTransform()

    def zoom_in(self):
        """Zoom in by the configured factor."""
        zoom_factor = get_settings().settings.canvas.zoom.wheel_factor
        self.scale(zoom_factor, zoom_factor)

    def zoom_out(self):
        """Zoom out by the configured factor."""
        zoom_factor = get_settings().settings.canvas.zoom.wheel_factor
        self.scale(1 / zoom_factor, 1 / zoom_factor)

    # ----------------------------
    # Drag & drop
    # ----------------------------

    def dragEnterEvent(self, event):
        """Accept local file and folder drops."""
        if self.on_drop_path is not None and event.mimeData().hasUrls():
            for u in event.mimeData().urls():
                if u.isLocalFile():
                    event.acceptProposedAction()
                    return
        event.ignore()

    def dragMoveEvent(self, event):
        event.acceptProposedAction()

    def dropEvent(self, event):
        """Hand the first dropped path to the window."""
        if self.on_drop_path is not None and event.mimeData().hasUrls():
            for u in event.mimeData().urls():
                if u.isLocalFile():
                    self.on_drop_path(u.toLocalFile())
                    event.acceptProposedAction()
                    return
        event.ignore()
