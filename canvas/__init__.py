"""
canvas package

Diagram view: displays the rendered Mermaid graphic and routes clicks.
"""

from canvas.view import DiagramView

__all__ = [
    "DiagramView",
]
