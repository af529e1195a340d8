"""
export.py

Export the current diagram as Mermaid source, SVG or PNG.

PNG export rasterises through Qt, then pads the image with Pillow onto a
background canvas of at least ``MIN_PNG_SIZE``.
"""

from __future__ import annotations

import io
from typing import Optional, Tuple

from PIL import Image
from PyQt6.QtCore import QBuffer, QIODevice
from PyQt6.QtGui import QColor

from debug_trace import trace
from mermaid.graphic import DiagramGraphic
from mermaid.renderer import render_svg_to_image
from models import DiagramDocument

MIN_PNG_SIZE = (600, 400)


def export_mermaid_source(document: Optional[DiagramDocument], path: str) -> str:
    """Write the raw Mermaid text to *path*."""
    if document is None or not document.text.strip():
        raise ValueError("No diagram content to export.")
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        f.write(document.text)
        if not document.text.endswith("\n"):
            f.write("\n")
    trace(f"Exported Mermaid source to {path}", "EXPORT")
    return path


def export_svg(graphic: Optional[DiagramGraphic], path: str) -> str:
    """Write the current graphic, including highlight styling, as SVG."""
    if graphic is None or graphic.disposed:
        raise ValueError("No diagram rendered to export.")
    with open(path, "wb") as f:
        f.write(graphic.to_bytes())
    trace(f"Exported SVG to {path}", "EXPORT")
    return path


def pad_image(image: Image.Image, min_size: Tuple[int, int] = MIN_PNG_SIZE,
              background: str = "#FFFFFF") -> Image.Image:
    """Centre *image* on a background canvas at least *min_size* large."""
    w = max(image.width, min_size[0])
    h = max(image.height, min_size[1])
    canvas = Image.new("RGBA", (w, h), background)
    src = image.convert("RGBA")
    canvas.alpha_composite(src, ((w - src.width) // 2, (h - src.height) // 2))
    return canvas


def _qimage_to_pil(qimage) -> Image.Image:
    buf = QBuffer()
    buf.open(QIODevice.OpenModeFlag.WriteOnly)
    qimage.save(buf, "PNG")
    data = bytes(buf.data())
    buf.close()
    return Image.open(io.BytesIO(data))


def export_png(graphic: Optional[DiagramGraphic], path: str, scale: float = 2.0,
               background: str = "#FFFFFF") -> str:
    """Rasterise the current graphic at *scale* and write a PNG."""
    if graphic is None or graphic.disposed:
        raise ValueError("No diagram rendered to export as PNG.")
    qimage = render_svg_to_image(graphic.to_bytes(), scale=scale, background=QColor(background))
    image = pad_image(_qimage_to_pil(qimage), MIN_PNG_SIZE, background)
    image.convert("RGB").save(path, "PNG")
    trace(f"Exported PNG {image.width}x{image.height} to {path}", "EXPORT")
    return path
