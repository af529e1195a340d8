"""
mermaid/renderer.py

Render Mermaid text to SVG with the Mermaid CLI (``mmdc``) and make the
result usable from Qt.

Qt's ``QSvgRenderer`` ignores ``<style>`` blocks and cannot draw
``<foreignObject>``, so rendered SVGs are pre-processed in memory: CSS
class rules are inlined as presentation attributes and each
``<foreignObject>`` is replaced with a native SVG ``<text>`` element.
"""

from __future__ import annotations

import json
import os
import re
import shutil
import subprocess
import tempfile
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from PyQt6.QtCore import QByteArray, QSize
from PyQt6.QtGui import QColor, QImage, QPainter
from PyQt6.QtSvg import QSvgRenderer

from debug_trace import trace, trace_call
from mermaid.graphic import class_tokens, local_tag

# Register namespaces so ET.tostring() doesn't mangle them with ns0/ns1 prefixes
ET.register_namespace("", "http://www.w3.org/2000/svg")
ET.register_namespace("xlink", "http://www.w3.org/1999/xlink")

_SVG_NS = "http://www.w3.org/2000/svg"
_XHTML_NS = "http://www.w3.org/1999/xhtml"

# Presentation attributes that Qt's SVG renderer honours
_SVG_ATTRS = {
    "stroke", "fill", "stroke-width", "stroke-dasharray",
    "stroke-linecap", "stroke-linejoin", "stroke-opacity",
    "fill-opacity", "opacity", "font-size", "font-family",
    "font-weight", "font-style", "text-anchor",
    "dominant-baseline", "visibility",
}

_COMPOUND_RE = re.compile(r"([a-zA-Z][\w-]*)?(?:\.([\w-]+))?")


class RenderError(RuntimeError):
    """Mermaid text could not be turned into a graphic."""


@dataclass(frozen=True)
class RenderOutput:
    """What the rendering library hands back for one render call.

    Attributes:
        svg: The SVG markup.
        bind_functions: Optional hook run against the parsed graphic
            before interaction handlers are attached.
    """
    svg: str
    bind_functions: Optional[Callable[[Any], None]] = None


def find_mmdc() -> str | None:
    """Find the Mermaid CLI (mmdc) executable.

    Search order:
        1. CodeFlow settings (render.mmdc_path)
        2. MMDC_PATH environment variable
        3. mmdc on system PATH

    Returns:
        Path to mmdc executable if found, None otherwise.
    """
    # 1. CodeFlow settings
    from settings import get_settings
    configured = get_settings().settings.render.mmdc_path
    if configured and os.path.isfile(configured):
        return configured

    # 2. Environment variable
    env_path = os.environ.get("MMDC_PATH")
    if env_path and os.path.isfile(env_path):
        return env_path

    # 3. System PATH
    return shutil.which("mmdc")


def build_mermaid_config(tokens: Mapping[str, str], node_spacing: int = 60,
                         rank_spacing: int = 60, font_size: str = "14px") -> Dict[str, Any]:
    """Mermaid configuration derived from the resolved theme tokens.

    Plain SVG text labels (``htmlLabels: false``) keep every label
    readable by both Qt and the element walker.
    """
    return {
        "theme": "base",
        "securityLevel": "loose",
        "flowchart": {
            "htmlLabels": False,
            "nodeSpacing": node_spacing,
            "rankSpacing": rank_spacing,
        },
        "themeVariables": {
            "background": tokens["background"],
            "primaryColor": tokens["default-fill"],
            "primaryTextColor": tokens["default-text"],
            "primaryBorderColor": tokens["default-border"],
            "lineColor": tokens["line"],
            "secondaryColor": tokens["accent"],
            "tertiaryColor": tokens["cluster-fill"],
            "clusterBkg": tokens["cluster-fill"],
            "clusterBorder": tokens["border"],
            "mainBkg": tokens["default-fill"],
            "nodeBorder": tokens["default-border"],
            "textColor": tokens["default-text"],
            "titleColor": tokens["default-text"],
            "fontSize": font_size,
        },
    }


class MermaidRenderer:
    """Callable rendering library around ``mmdc``.

    ``renderer(render_id, text) -> RenderOutput``.  The Mermaid config is
    written by ``initialize`` and reused for every render.
    """

    def __init__(self, mmdc: Optional[str] = None, timeout_s: Optional[int] = None):
        self._mmdc = mmdc
        self._timeout_s = timeout_s
        self._config: Optional[Dict[str, Any]] = None

    @property
    def config(self) -> Optional[Dict[str, Any]]:
        return self._config

    def initialize(self, tokens: Mapping[str, str]) -> None:
        """Configure the Mermaid palette and layout from *tokens*."""
        from settings import get_settings
        r = get_settings().settings.render
        self._config = build_mermaid_config(
            tokens,
            node_spacing=r.node_spacing,
            rank_spacing=r.rank_spacing,
            font_size=r.font_size,
        )
        trace(f"Mermaid config: {json.dumps(self._config['themeVariables'])}", "MMDC")

    def __call__(self, render_id: str, text: str) -> RenderOutput:
        return self.render(render_id, text)

    @trace_call("MMDC")
    def render(self, render_id: str, text: str) -> RenderOutput:
        """Render *text* to SVG, using *render_id* as the SVG element id.

        Raises:
            RenderError: If mmdc cannot be found, fails, or times out.
        """
        from settings import get_settings
        r = get_settings().settings.render

        mmdc = self._mmdc or find_mmdc()
        if mmdc is None:
            raise RenderError(
                "Mermaid CLI (mmdc) not found.\n\n"
                "Install with:  npm install -g @mermaid-js/mermaid-cli\n\n"
                "Or set the MMDC_PATH environment variable to the mmdc executable."
            )

        tmp_dir = tempfile.mkdtemp(prefix="codeflow_mmd_")
        try:
            src = Path(tmp_dir) / "diagram.mmd"
            src.write_text(text, encoding="utf-8")
            out = Path(tmp_dir) / "diagram.svg"

            cmd = [mmdc, "-i", str(src), "-o", str(out), "-I", render_id, "-b", "transparent"]
            if self._config is not None:
                cfg = Path(tmp_dir) / "config.json"
                cfg.write_text(json.dumps(self._config), encoding="utf-8")
                cmd += ["-c", str(cfg)]

            # Chromium refuses to start sandboxed as root (containers, CI)
            if hasattr(os, "geteuid") and os.geteuid() == 0:
                puppeteer_cfg = Path(tmp_dir) / "puppeteerrc.json"
                puppeteer_cfg.write_text(json.dumps({"args": ["--no-sandbox"]}), encoding="utf-8")
                cmd += ["-p", str(puppeteer_cfg)]

            trace(f"mmdc command: {' '.join(cmd)}", "MMDC")

            timeout = self._timeout_s or r.timeout_s
            try:
                result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
            except subprocess.TimeoutExpired:
                raise RenderError(f"mmdc timed out after {timeout}s")
            except OSError as e:
                raise RenderError(f"Could not run mmdc: {e}")

            if result.returncode != 0:
                raise RenderError(
                    f"mmdc rendering failed (exit {result.returncode}):\n"
                    f"{_clean_mmdc_error(result.stderr)}"
                )

            if not out.is_file():
                raise RenderError(
                    "mmdc ran successfully but produced no SVG output.\n"
                    f"stdout: {result.stdout.strip()}\n"
                    f"stderr: {result.stderr.strip()}"
                )
            svg = out.read_text(encoding="utf-8")
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

        trace(f"Rendered {render_id}: {len(svg)} chars of SVG", "MMDC")
        return RenderOutput(svg=svg)


def _clean_mmdc_error(stderr: str) -> str:
    """Keep the parser diagnostic, drop the Node.js stack trace."""
    lines = []
    for line in (stderr or "").strip().splitlines():
        if line.lstrip().startswith("at "):
            break
        lines.append(line)
    return "\n".join(lines).strip() or (stderr or "").strip()


def render_svg_to_image(svg_data: bytes, scale: float = 2.0,
                        background: Optional[QColor] = None) -> QImage:
    """Rasterise SVG bytes with ``QSvgRenderer``.

    Args:
        svg_data: Qt-compatible SVG (see ``prepare_svg_tree``).
        scale: Scale factor applied to the SVG's default size.
        background: Fill colour; transparent when None.

    Raises:
        RuntimeError: If the SVG cannot be loaded or has no size.
    """
    renderer = QSvgRenderer(QByteArray(svg_data))
    if not renderer.isValid():
        raise RuntimeError("QSvgRenderer could not load the diagram SVG")

    default_size = renderer.defaultSize()
    if default_size.isEmpty():
        raise RuntimeError("Diagram SVG has no intrinsic size")

    target_w = max(1, int(default_size.width() * scale))
    target_h = max(1, int(default_size.height() * scale))

    image = QImage(QSize(target_w, target_h), QImage.Format.Format_ARGB32_Premultiplied)
    image.fill(background if background is not None else QColor(0, 0, 0, 0))

    painter = QPainter(image)
    renderer.render(painter)
    painter.end()
    return image


# ─────────────────────────────────────────────────────────
# SVG pre-processing for Qt compatibility
# ─────────────────────────────────────────────────────────


def _parse_declarations(body: str) -> Dict[str, str]:
    props: Dict[str, str] = {}
    for prop_m in re.finditer(r'([\w-]+)\s*:\s*([^;]+)', body):
        prop_name = prop_m.group(1).strip()
        prop_val = prop_m.group(2).replace("!important", "").strip()
        if prop_name in _SVG_ATTRS:
            props[prop_name] = prop_val
    return props


def _parse_compound(text: str) -> Optional[Tuple[str, str]]:
    """Split ``rect``, ``.label`` or ``g.node`` into ``(tag, class)``."""
    m = _COMPOUND_RE.fullmatch(text)
    if m is None or not (m.group(1) or m.group(2)):
        return None
    return m.group(1) or "", m.group(2) or ""


def _compound_matches(el: ET.Element, compound: Tuple[str, str]) -> bool:
    tag, cls = compound
    if tag and local_tag(el) != tag:
        return False
    return not cls or cls in class_tokens(el)


def _inline_css_classes(root: ET.Element, ns: str) -> None:
    """Inline CSS rules as SVG presentation attributes on matching elements.

    Qt's ``QSvgRenderer`` does not apply ``<style>`` rules.  This function
    parses SVG-namespace ``<style>`` text and resolves each comma-separated
    selector by its last two compounds, which covers what Mermaid emits:
    ``#id .edge``, ``#id .node rect`` and ``#id .cluster .label text``.
    Pseudo-classes, attribute selectors and at-rules are skipped.

    Descendant rules outrank single-compound rules, later rules outrank
    earlier ones, and explicit attributes on an element always win.

    Modifies *root* in-place and removes the ``<style>`` elements.
    """
    style_text_parts: List[str] = []
    parent_map = {c: p for p in root.iter() for c in p}
    for style_el in list(root.iter(f"{{{ns}}}style")):
        if style_el.text:
            style_text_parts.append(style_el.text)
        parent = parent_map.get(style_el)
        if parent is not None:
            parent.remove(style_el)

    if not style_text_parts:
        return

    css_text = re.sub(r"/\*.*?\*/", "", "\n".join(style_text_parts), flags=re.S)
    css_text = re.sub(r"@[^{};]*;", "", css_text)

    # (ancestor compound or None, target compound, props)
    rules: List[Tuple[Optional[Tuple[str, str]], Tuple[str, str], Dict[str, str]]] = []
    for m in re.finditer(r'([^{}]+)\{([^{}]*)\}', css_text):
        props = _parse_declarations(m.group(2))
        if not props:
            continue
        for selector in m.group(1).split(","):
            parts = selector.split()
            while parts and parts[0].startswith("#"):
                parts = parts[1:]
            if not parts or len(parts) > 3:
                continue
            target = _parse_compound(parts[-1])
            if target is None:
                continue
            if len(parts) == 1:
                if not target[1]:
                    # Bare tag rules ("rect{...}") are too broad to inline
                    continue
                rules.append((None, target, props))
            else:
                ancestor = _parse_compound(parts[-2])
                if ancestor is not None:
                    rules.append((ancestor, target, props))

    if not rules:
        return

    # Stable sort keeps source order within each rank
    rules.sort(key=lambda r: r[0] is not None)

    for el in root.iter():
        computed: Dict[str, str] = {}
        ancestors: Optional[List[ET.Element]] = None
        for ancestor, target, props in rules:
            if not _compound_matches(el, target):
                continue
            if ancestor is not None:
                if ancestors is None:
                    ancestors = []
                    p = parent_map.get(el)
                    while p is not None:
                        ancestors.append(p)
                        p = parent_map.get(p)
                if not any(_compound_matches(a, ancestor) for a in ancestors):
                    continue
            computed.update(props)
        for prop, val in computed.items():
            # Explicit attributes win over stylesheet rules
            if el.get(prop) is None:
                el.set(prop, val)


def prepare_svg_tree(markup: str, text_fill: str = "#333") -> ET.Element:
    """Parse Mermaid SVG markup into a Qt-compatible element tree.

    - adds a viewBox when the size only lives in the root style
    - inlines CSS class rules
    - drops XHTML ``<style>`` elements (Font Awesome ``@import``)
    - replaces each ``<foreignObject>`` with a centred ``<text>``

    Raises:
        ET.ParseError: If *markup* is not well-formed XML.
    """
    root = ET.fromstring(markup)

    if not root.get("viewBox"):
        style_attr = root.get("style", "")
        m_w = re.search(r"width:\s*([\d.]+)px", style_attr)
        m_h = re.search(r"height:\s*([\d.]+)px", style_attr)
        if m_w and m_h:
            sw, sh = m_w.group(1), m_h.group(1)
            root.set("viewBox", f"0 0 {sw} {sh}")
            root.set("width", sw)
            root.set("height", sh)
    elif (root.get("width") or "").endswith("%"):
        # mmdc emits width="100%" plus a max-width style; Qt needs numbers
        parts = root.get("viewBox").replace(",", " ").split()
        if len(parts) == 4:
            root.set("width", parts[2])
            root.set("height", parts[3])

    _inline_css_classes(root, _SVG_NS)

    parent_map = {c: p for p in root.iter() for c in p}

    for style_el in list(root.iter(f"{{{_XHTML_NS}}}style")):
        parent = parent_map.get(style_el)
        if parent is not None:
            parent.remove(style_el)

    for fo in list(root.iter(f"{{{_SVG_NS}}}foreignObject")):
        parent = parent_map.get(fo)
        if parent is None:
            continue

        text_content = _extract_fo_text(fo)

        fo_w_str = fo.get("width", "0") or "0"
        fo_h_str = fo.get("height", "0") or "0"
        fo_w = 0.0 if fo_w_str.endswith("%") else float(fo_w_str)
        fo_h = 0.0 if fo_h_str.endswith("%") else float(fo_h_str)

        idx = list(parent).index(fo)
        parent.remove(fo)

        # Empty label placeholder
        if not text_content or fo_w < 1 or fo_h < 1:
            continue

        text_el = ET.Element(f"{{{_SVG_NS}}}text")
        text_el.set("x", str(round(fo_w / 2, 2)))
        text_el.set("y", str(round(fo_h / 2, 2)))
        text_el.set("text-anchor", "middle")
        text_el.set("dominant-baseline", "central")
        text_el.set("font-family", "trebuchet ms, verdana, arial, sans-serif")
        text_el.set("font-size", str(_guess_font_size(parent)))
        text_el.set("fill", text_fill)
        text_el.text = text_content

        parent.insert(idx, text_el)

    return root


def _extract_fo_text(fo: ET.Element) -> str:
    """Extract readable text from a ``<foreignObject>``'s XHTML children.

    Skips the ``.text`` of Font Awesome icon elements (``<i class="fa ...">``),
    but still collects their ``.tail``.
    """
    texts: List[str] = []
    for el in fo.iter():
        tag = el.tag.split("}")[-1] if "}" in el.tag else el.tag
        is_icon = tag == "i" and "fa" in el.get("class", "")
        if not is_icon and el.text and el.text.strip():
            texts.append(el.text.strip())
        if el.tail and el.tail.strip():
            texts.append(el.tail.strip())
    return " ".join(texts)


def _guess_font_size(label_g: ET.Element) -> int:
    """Edge labels use a slightly smaller font than node labels."""
    if "edgeLabel" in label_g.get("class", ""):
        return 12
    if label_g.get("data-id", "").startswith("L_"):
        return 12
    return 14
