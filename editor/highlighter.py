"""
editor/highlighter.py

Language-agnostic source highlighter for the code editor.
"""

from __future__ import annotations

from typing import List, Tuple

from PyQt6.QtCore import QRegularExpression
from PyQt6.QtGui import QSyntaxHighlighter, QTextCharFormat, QColor

from settings import get_settings

# Keywords common to the languages people paste most often
KEYWORDS = (
    "abstract", "async", "await", "break", "case", "catch", "class", "const",
    "continue", "def", "default", "defer", "del", "do", "elif", "else", "enum",
    "export", "extends", "false", "final", "finally", "fn", "for", "from",
    "func", "function", "go", "if", "impl", "implements", "import", "in",
    "interface", "lambda", "let", "match", "mod", "module", "mut", "new",
    "nil", "none", "None", "null", "package", "pass", "private", "protected",
    "pub", "public", "raise", "return", "self", "static", "struct", "super",
    "switch", "this", "throw", "trait", "true", "True", "False", "try",
    "type", "typeof", "use", "var", "void", "while", "with", "yield",
)


class CodeHighlighter(QSyntaxHighlighter):
    """
    Lightweight highlighter for arbitrary source code.

    Highlights:
    - Keywords (blue, bold)
    - String literals (green)
    - Numbers (purple)
    - Line comments ``//`` and ``#`` (gray, italic)
    """

    def __init__(self, parent):
        super().__init__(parent)

        self.rules: List[Tuple[QRegularExpression, QTextCharFormat]] = []

        # Defaults: keyword=#2E86C1, string=#27AE60, number=#8E44AD, comment=#7F8C8D
        syntax = get_settings().settings.editor.syntax

        def fmt(color_hex: str, bold: bool = False, italic: bool = False) -> QTextCharFormat:
            f = QTextCharFormat()
            f.setForeground(QColor(color_hex))
            if bold:
                f.setFontWeight(700)
            if italic:
                f.setFontItalic(True)
            return f

        kw_fmt = fmt(syntax.keyword_color, bold=syntax.keyword_bold)
        self.rules.append((QRegularExpression(r"\b(?:" + "|".join(KEYWORDS) + r")\b"), kw_fmt))

        num_fmt = fmt(syntax.number_color)
        self.rules.append((QRegularExpression(r"\b(?:0[xX][0-9a-fA-F]+|\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)\b"), num_fmt))

        str_fmt = fmt(syntax.string_color)
        self.rules.append((QRegularExpression(r'"[^"\\]*(?:\\.[^"\\]*)*"'), str_fmt))
        self.rules.append((QRegularExpression(r"'[^'\\]*(?:\\.[^'\\]*)*'"), str_fmt))
        self.rules.append((QRegularExpression(r"`[^`]*`"), str_fmt))

        # Comments last so they win over everything on their span
        comment_fmt = fmt(syntax.comment_color, italic=syntax.comment_italic)
        self.rules.append((QRegularExpression(r"(?://|#(?![\w\[!])).*$"), comment_fmt))

    def highlightBlock(self, text: str) -> None:
        """Apply highlighting rules to a block of text."""
        for regex, f in self.rules:
            it = regex.globalMatch(text)
            while it.hasNext():
                m = it.next()
                self.setFormat(m.capturedStart(), m.capturedLength(), f)
