"""
mermaid/syntax.py

Best-effort checks on Mermaid text before it is handed to the renderer,
and extraction of the diagram from a model reply.
"""

from __future__ import annotations

import re
from typing import List, Optional

from utils import iter_fenced_blocks, strip_markdown_fences

# Diagram keywords Mermaid accepts as the first statement
DIAGRAM_KEYWORDS = (
    "graph",
    "flowchart",
    "sequenceDiagram",
    "classDiagram",
    "classDiagram-v2",
    "stateDiagram",
    "stateDiagram-v2",
    "erDiagram",
    "journey",
    "gantt",
    "pie",
    "quadrantChart",
    "requirementDiagram",
    "gitGraph",
    "C4Context",
    "C4Container",
    "C4Component",
    "C4Dynamic",
    "C4Deployment",
    "mindmap",
    "timeline",
    "sankey-beta",
    "xychart-beta",
    "block-beta",
    "packet-beta",
    "kanban",
    "architecture-beta",
    "zenuml",
)

# Longest first so "stateDiagram-v2" wins over "stateDiagram"
_KEYWORD_RE = re.compile(
    r"^(" + "|".join(re.escape(k) for k in sorted(DIAGRAM_KEYWORDS, key=len, reverse=True)) + r")(?=$|[\s;:])"
)


def _meaningful_lines(text: str) -> List[str]:
    """Lines of *text* with front matter, blanks and ``%%`` comments removed."""
    lines = (text or "").splitlines()
    i = 0
    # Skip leading blank lines before a possible front-matter block
    while i < len(lines) and not lines[i].strip():
        i += 1
    if i < len(lines) and lines[i].strip() == "---":
        j = i + 1
        while j < len(lines) and lines[j].strip() != "---":
            j += 1
        # An unterminated block is not front matter
        if j < len(lines):
            i = j + 1

    out = []
    for line in lines[i:]:
        s = line.strip()
        if not s or s.startswith("%%"):
            continue
        out.append(s)
    return out


def diagram_keyword(text: str) -> Optional[str]:
    """Return the diagram keyword the text starts with, or None."""
    lines = _meaningful_lines(text)
    if not lines:
        return None
    m = _KEYWORD_RE.match(lines[0])
    return m.group(1) if m else None


def looks_like_mermaid(text: str) -> bool:
    """True if the first meaningful line starts with a known diagram keyword."""
    return diagram_keyword(text) is not None


def extract_mermaid_block(reply: str) -> str:
    """Pull the Mermaid diagram out of a model reply.

    Preference order: a ```mermaid fenced block, any other fenced block
    that looks like Mermaid, the whole reply with fences stripped.
    Returns ``""`` when nothing usable is present.
    """
    if not reply or not reply.strip():
        return ""

    blocks = iter_fenced_blocks(reply)
    for lang, body in blocks:
        if lang == "mermaid" and body:
            return body
    for _lang, body in blocks:
        if looks_like_mermaid(body):
            return body

    stripped = strip_markdown_fences(reply)
    if looks_like_mermaid(stripped):
        return stripped

    # Prose before the diagram: start at the first keyword line
    lines = stripped.splitlines()
    for idx, line in enumerate(lines):
        if _KEYWORD_RE.match(line.strip()):
            return "\n".join(lines[idx:]).strip()
    return ""
