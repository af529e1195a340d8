"""
editor/code_editor.py

Source code editor with line numbers and occurrence highlighting for the
identity currently selected in the diagram.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Set

from PyQt6.QtCore import Qt, QSize, pyqtSignal
from PyQt6.QtGui import QColor, QFont, QPainter, QTextCharFormat, QTextCursor, QTextDocument
from PyQt6.QtWidgets import QPlainTextEdit, QTextEdit, QWidget

from settings import get_settings


# =============================================================================
# Cached editor settings - initialized once to avoid repeated lookups during paint
# =============================================================================

class _CachedEditorSettings:
    """Cache for editor settings values to avoid repeated lookups during paint."""

    _instance = None

    def __init__(self):
        self._initialized = False
        # Default values (used until settings are read)
        self.left_margin = 8
        self.right_margin = 4
        self.highlight_bar_width = 4
        self.font_family = "Consolas"
        self.font_size = 10
        self.tab_width = 4

    def _ensure_initialized(self):
        """Load settings on first access."""
        if self._initialized:
            return
        s = get_settings().settings.editor
        self.left_margin = s.line_numbers.left_margin
        self.right_margin = s.line_numbers.right_margin
        self.highlight_bar_width = s.line_numbers.highlight_bar_width
        self.font_family = s.font.family
        self.font_size = s.font.size
        self.tab_width = s.font.tab_width
        self._initialized = True

    @classmethod
    def get(cls) -> "_CachedEditorSettings":
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        cls._instance._ensure_initialized()
        return cls._instance


class LineNumberArea(QWidget):
    """Widget that displays line numbers alongside the code editor."""

    def __init__(self, editor: "CodeEditor"):
        super().__init__(editor)
        self.editor = editor

    def sizeHint(self):
        return self.editor.line_number_area_size_hint()

    def paintEvent(self, event):
        self.editor.line_number_area_paint_event(event)


class CodeEditor(QPlainTextEdit):
    """
    Plain-text source editor with:
    - Line numbers
    - A read-only mode for files shown from the diagram
    - Occurrence highlighting of the selected diagram identity
    """

    # Emitted for edits made by the user, not for set_code() calls
    user_edited = pyqtSignal(str)

    # Default line number colors (Tailwind theme)
    DEFAULT_LINE_COLORS = {
        "background": "#f1f5f9",
        "text": "#94a3b8",
        "text_active": "#1e293b",
        "highlight_bg": "#fef3c7",
        "highlight_bar": "#f59e0b",
        "current_line_bg": "#e2e8f0",
        "occurrence_bg": "#fde68a",
    }

    def __init__(self, parent=None):
        super().__init__(parent)

        self.line_number_area = LineNumberArea(self)

        self._highlight_term: str = ""
        self._highlighted_lines: Set[int] = set()

        # Path of the uploaded file on display (read-only), "" for free text
        self._shown_path: str = ""

        # Flag to tell programmatic edits apart from typing
        self._suppress_edit_signal = False

        self._line_colors = dict(self.DEFAULT_LINE_COLORS)

        self.blockCountChanged.connect(self._update_margins)
        self.updateRequest.connect(self._update_line_number_area)
        self.cursorPositionChanged.connect(self.line_number_area.update)
        self.textChanged.connect(self._on_text_changed)

        self._update_margins()

        # Monospace font from settings. Defaults: "Consolas", 10pt
        cached = _CachedEditorSettings.get()
        font = QFont(cached.font_family, cached.font_size)
        font.setStyleHint(QFont.StyleHint.Monospace)
        self.setFont(font)

        # Tab width from settings. Default: 4 characters
        self.setTabStopDistance(self.fontMetrics().horizontalAdvance(' ') * cached.tab_width)
        self.setPlaceholderText("Paste your code here, or open a file or folder...")

    # ----------------------------
    # Content
    # ----------------------------

    @property
    def shown_path(self) -> str:
        return self._shown_path

    def set_code(self, text: str, read_only: bool = False, path: str = "") -> None:
        """Replace the content without emitting ``user_edited``."""
        self._suppress_edit_signal = True
        try:
            self.setPlainText(text)
        finally:
            self._suppress_edit_signal = False
        self._shown_path = path if read_only else ""
        self.setReadOnly(read_only)
        # Re-polish so the [readOnly="true"] stylesheet rule applies
        self.style().unpolish(self)
        self.style().polish(self)
        self._refresh_occurrences()

    def _on_text_changed(self):
        self._refresh_occurrences()
        if not self._suppress_edit_signal and not self.isReadOnly():
            self.user_edited.emit(self.toPlainText())

    # ----------------------------
    # Occurrence highlighting
    # ----------------------------

    def set_highlight_term(self, term: Optional[str]) -> None:
        """Highlight every occurrence of *term* (None or "" clears)."""
        self._highlight_term = term or ""
        self._refresh_occurrences()

    def _refresh_occurrences(self) -> None:
        selections: List[QTextEdit.ExtraSelection] = []
        lines: Set[int] = set()
        term = self._highlight_term
        if term:
            fmt = QTextCharFormat()
            fmt.setBackground(QColor(self._line_colors["occurrence_bg"]))
            doc = self.document()
            cursor = doc.find(term, 0, QTextDocument.FindFlag.FindCaseSensitively)
            while not cursor.isNull():
                sel = QTextEdit.ExtraSelection()
                sel.cursor = cursor
                sel.format = fmt
                selections.append(sel)
                lines.add(cursor.block().blockNumber())
                cursor = doc.find(term, cursor, QTextDocument.FindFlag.FindCaseSensitively)
        self.setExtraSelections(selections)
        self._highlighted_lines = lines
        self.line_number_area.update()

    def occurrence_count(self) -> int:
        return len(self.extraSelections())

    def scroll_to_first_occurrence(self) -> None:
        if not self._highlighted_lines:
            return
        block = self.document().findBlockByNumber(min(self._highlighted_lines))
        cursor = QTextCursor(block)
        self.setTextCursor(cursor)
        self.centerCursor()

    # ----------------------------
    # Line number area
    # ----------------------------

    def set_line_number_colors(self, colors: Dict[str, str]):
        """
        Set the line number area colors.

        Args:
            colors: Dict with keys: background, text, text_active, highlight_bg,
                   highlight_bar, current_line_bg, occurrence_bg
        """
        self._line_colors = dict(self.DEFAULT_LINE_COLORS)
        self._line_colors.update(colors)
        self._refresh_occurrences()

    def line_number_area_width(self) -> int:
        """Calculate the width needed for line numbers."""
        digits = len(str(max(1, self.blockCount())))
        cached = _CachedEditorSettings.get()
        return (cached.left_margin + cached.right_margin + cached.highlight_bar_width
                + self.fontMetrics().horizontalAdvance('9') * digits)

    def line_number_area_size_hint(self):
        return QSize(self.line_number_area_width(), 0)

    def _update_margins(self):
        self.setViewportMargins(self.line_number_area_width(), 0, 0, 0)

    def _update_line_number_area(self, rect, dy):
        """Update line number area when scrolling or content changes."""
        if dy:
            self.line_number_area.scroll(0, dy)
        else:
            self.line_number_area.update(0, rect.y(), self.line_number_area.width(), rect.height())

        if rect.contains(self.viewport().rect()):
            self._update_margins()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        cr = self.contentsRect()
        self.line_number_area.setGeometry(cr.left(), cr.top(), self.line_number_area_width(), cr.height())

    def line_number_area_paint_event(self, event):
        """Paint the line numbers, marking lines that mention the selection."""
        painter = QPainter(self.line_number_area)
        colors = self._line_colors

        painter.fillRect(event.rect(), QColor(colors["background"]))

        block = self.firstVisibleBlock()
        block_number = block.blockNumber()
        top = int(self.blockBoundingGeometry(block).translated(self.contentOffset()).top())
        bottom = top + int(self.blockBoundingRect(block).height())

        current_block = self.textCursor().block().blockNumber()

        # Defaults: highlight_bar=4px, right_margin=4px
        cached = _CachedEditorSettings.get()
        bar = cached.highlight_bar_width
        right_margin = cached.right_margin
        width = self.line_number_area.width()

        while block.isValid() and top <= event.rect().bottom():
            if block.isVisible() and bottom >= event.rect().top():
                block_height = int(self.blockBoundingRect(block).height())
                highlighted = block_number in self._highlighted_lines

                if highlighted:
                    painter.fillRect(0, top, bar, block_height, QColor(colors["highlight_bar"]))

                if block_number == current_block:
                    painter.fillRect(bar, top, width - bar, block_height, QColor(colors["current_line_bg"]))
                    painter.setPen(QColor(colors["text_active"]))
                elif highlighted:
                    painter.fillRect(bar, top, width - bar, block_height, QColor(colors["highlight_bg"]))
                    painter.setPen(QColor(colors["text_active"]))
                else:
                    painter.setPen(QColor(colors["text"]))

                painter.drawText(bar, top, width - bar - right_margin, block_height,
                                 Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter,
                                 str(block_number + 1))

            block = block.next()
            top = bottom
            bottom = top + int(self.blockBoundingRect(block).height())
            block_number += 1

        painter.end()
