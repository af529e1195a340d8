"""
utils.py

Utility functions for CodeFlow.
"""

from __future__ import annotations

import re
from typing import List, Optional

from PyQt6.QtGui import QColor


def strip_markdown_fences(s: str) -> str:
    """
    Strip markdown code fences from a string.

    Handles formats like:
    - ```mermaid ... ```
    - ``` ... ```

    Args:
        s: The string potentially wrapped in markdown fences

    Returns:
        The string with markdown fences removed
    """
    ss = (s or "").strip()

    # Pattern matches: ```<optional language>\n<content>\n```
    pattern = r'^```(?:[\w-]+)?\s*\n?(.*?)\n?```\s*$'
    match = re.match(pattern, ss, re.DOTALL)
    if match:
        return match.group(1).strip()

    return ss


_FENCE_RE = re.compile(r"```([\w-]*)[^\n]*\n(.*?)```", re.DOTALL)


def iter_fenced_blocks(s: str) -> List[tuple]:
    """
    Return every fenced code block in *s* as ``(language, body)`` pairs.

    The language tag is lower-cased ("" when absent) and the body is
    stripped.  Unterminated fences are ignored.
    """
    return [
        (m.group(1).lower(), m.group(2).strip())
        for m in _FENCE_RE.finditer(s or "")
    ]


def qcolor_to_hex(c: QColor, include_alpha: bool = False) -> str:
    """
    Convert a QColor to a hex string.

    Args:
        c: The QColor to convert
        include_alpha: If True, include alpha channel as 4th byte

    Returns:
        Hex string like "#RRGGBB" or "#RRGGBBAA"
    """
    if include_alpha:
        return "#{:02X}{:02X}{:02X}{:02X}".format(c.red(), c.green(), c.blue(), c.alpha())
    return "#{:02X}{:02X}{:02X}".format(c.red(), c.green(), c.blue())


def hex_to_qcolor(s: str, fallback: QColor) -> QColor:
    """
    Parse a hex string to a QColor.

    Args:
        s: Hex string like "#RRGGBB" or "#RRGGBBAA"
        fallback: Color to return if parsing fails

    Returns:
        Parsed QColor or fallback
    """
    try:
        if not s:
            return QColor(fallback)
        s = s.strip()
        if s.startswith("#"):
            s = s[1:]
        if len(s) == 6:
            return QColor(int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16))
        if len(s) == 8:
            return QColor(int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16), int(s[6:8], 16))
    except ValueError:
        pass
    return QColor(fallback)


# "221 83% 53%", "221deg 83% 53%", "221, 83%, 53%"
_HSL_COMPONENTS_RE = re.compile(
    r"^\s*([-+]?\d*\.?\d+)(?:deg)?\s*[,\s]\s*(\d*\.?\d+)%?\s*[,\s]\s*(\d*\.?\d+)%?\s*$"
)
_FUNC_RE = re.compile(r"^\s*(hsla?|rgba?)\(\s*(.*?)\s*\)\s*$", re.IGNORECASE)


def _split_func_args(args: str) -> List[str]:
    # Accept both "a, b, c" and "a b c / alpha"
    args = args.split("/")[0]
    return [p for p in re.split(r"[,\s]+", args.strip()) if p]


def _hsl_to_qcolor(h: float, s: float, l: float) -> Optional[QColor]:
    if not (0.0 <= s <= 100.0 and 0.0 <= l <= 100.0):
        return None
    return QColor.fromHslF((h % 360.0) / 360.0, s / 100.0, l / 100.0)


def parse_color_value(value: str) -> Optional[QColor]:
    """
    Parse a style value into a QColor.

    Accepts the forms a style source may carry:

    - direct colors: ``#RRGGBB``, ``#RGB``, SVG/X11 names (``teal``)
    - functional colors: ``rgb(r, g, b)``, ``hsl(h, s%, l%)``
    - bare HSL components as stored in CSS custom properties:
      ``"221 83% 53%"``

    Args:
        value: The raw token value.

    Returns:
        A valid QColor, or None when the value cannot be interpreted
        (for example an unresolved ``var(--x)`` reference).
    """
    if not value or not isinstance(value, str):
        return None
    v = value.strip()
    if not v or "var(" in v:
        return None

    m = _HSL_COMPONENTS_RE.match(v)
    if m:
        return _hsl_to_qcolor(float(m.group(1)), float(m.group(2)), float(m.group(3)))

    fm = _FUNC_RE.match(v)
    if fm:
        kind = fm.group(1).lower()
        parts = _split_func_args(fm.group(2))
        if len(parts) < 3:
            return None
        try:
            if kind.startswith("hsl"):
                h = float(parts[0].replace("deg", ""))
                s = float(parts[1].rstrip("%"))
                l = float(parts[2].rstrip("%"))
                return _hsl_to_qcolor(h, s, l)
            rgb = []
            for p in parts[:3]:
                if p.endswith("%"):
                    rgb.append(round(float(p[:-1]) * 2.55))
                else:
                    rgb.append(round(float(p)))
        except ValueError:
            return None
        if not all(0 <= c <= 255 for c in rgb):
            return None
        return QColor(*rgb)

    c = QColor(v)
    if c.isValid():
        return c
    return None
