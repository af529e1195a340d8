"""
highlight package

Selection state shared by the diagram view and the code panel.
"""

from highlight.synchronizer import HighlightSynchronizer, apply_highlight

__all__ = ["HighlightSynchronizer", "apply_highlight"]
