"""
editor package

Source code panel: line numbers, syntax colouring and occurrence
highlighting of the identity selected in the diagram.
"""

from editor.highlighter import CodeHighlighter
from editor.code_editor import LineNumberArea, CodeEditor

__all__ = [
    "CodeHighlighter",
    "LineNumberArea",
    "CodeEditor",
]
