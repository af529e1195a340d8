"""Mermaid CLI wrapper configuration and SVG preparation for Qt."""
from __future__ import annotations

import os
import sys
import xml.etree.ElementTree as ET

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mermaid.graphic import local_tag
from mermaid.renderer import (
    MermaidRenderer,
    RenderError,
    _clean_mmdc_error,
    build_mermaid_config,
    prepare_svg_tree,
)
from theme import resolve_theme_tokens

SVG_NS = "http://www.w3.org/2000/svg"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def test_config_uses_theme_tokens():
    tokens = resolve_theme_tokens({"primary": "#112233", "card": "#445566"})

    cfg = build_mermaid_config(tokens, node_spacing=40, rank_spacing=70, font_size="16px")

    assert cfg["theme"] == "base"
    assert cfg["flowchart"] == {"htmlLabels": False, "nodeSpacing": 40, "rankSpacing": 70}
    tv = cfg["themeVariables"]
    assert tv["primaryBorderColor"] == "#112233"
    assert tv["lineColor"] == "#112233"
    assert tv["clusterBkg"] == "#445566"
    assert tv["fontSize"] == "16px"


def test_initialize_stores_config():
    renderer = MermaidRenderer()
    assert renderer.config is None

    renderer.initialize(resolve_theme_tokens({}))

    assert renderer.config["themeVariables"]["background"] == "#FFFFFF"


def test_unrunnable_mmdc_is_a_render_error(tmp_path):
    renderer = MermaidRenderer(mmdc=str(tmp_path / "no-such-mmdc"), timeout_s=5)
    with pytest.raises(RenderError, match="Could not run mmdc"):
        renderer("codeflow-diagram-1", "graph TD\n  A")


def test_clean_mmdc_error_drops_stack_trace():
    stderr = (
        "Error: Parse error on line 2:\n"
        "...A --> \n"
        "Expecting 'NODE_STRING', got 'EOF'\n"
        "    at Parser.parseError (mermaid.js:1:1)\n"
        "    at Parser.parse (mermaid.js:2:2)\n"
    )
    assert _clean_mmdc_error(stderr) == (
        "Error: Parse error on line 2:\n...A --> \nExpecting 'NODE_STRING', got 'EOF'"
    )


# ---------------------------------------------------------------------------
# SVG preparation
# ---------------------------------------------------------------------------

def test_percent_width_takes_viewbox_size():
    root = prepare_svg_tree(
        f'<svg xmlns="{SVG_NS}" viewBox="0 0 320 180" width="100%" style="max-width: 320px;"/>')
    assert root.get("width") == "320"
    assert root.get("height") == "180"


def test_size_from_style_adds_viewbox():
    root = prepare_svg_tree(f'<svg xmlns="{SVG_NS}" style="width: 200px; height: 100px;"/>')
    assert root.get("viewBox") == "0 0 200 100"


def test_css_classes_become_attributes():
    root = prepare_svg_tree(
        f'<svg xmlns="{SVG_NS}" viewBox="0 0 10 10">'
        f'<style>#codeflow-diagram-1 .label-container{{fill:#ECECFF !important;stroke:#9370DB;}}</style>'
        f'<g class="node"><rect class="basic label-container" stroke="#000"/></g></svg>'
    )
    rect = root.find(f".//{{{SVG_NS}}}rect")
    assert rect.get("fill") == "#ECECFF"
    # Explicit attributes win
    assert rect.get("stroke") == "#000"
    assert root.find(f".//{{{SVG_NS}}}style") is None


def test_foreign_object_becomes_text():
    root = prepare_svg_tree(
        f'<svg xmlns="{SVG_NS}" viewBox="0 0 100 40">'
        f'<g class="label"><foreignObject width="80" height="24">'
        f'<div xmlns="http://www.w3.org/1999/xhtml"><span class="nodeLabel">src/app.ts</span></div>'
        f'</foreignObject></g></svg>'
    )
    label = root.find(f"{{{SVG_NS}}}g")
    assert [local_tag(c) for c in label] == ["text"]
    assert label[0].text == "src/app.ts"
    assert label[0].get("x") == "40.0"


def test_bad_markup_raises_parse_error():
    with pytest.raises(ET.ParseError):
        prepare_svg_tree("<svg><g></svg>")


MMDC_STYLE = (
    "@import url(\"https://example.invalid/fa.css\");"
    "#codeflow-diagram-1{font-family:\"trebuchet ms\",verdana,arial,sans-serif;fill:#333;}"
    "#codeflow-diagram-1 .label text{fill:#0F172A;}"
    "#codeflow-diagram-1 .node rect,#codeflow-diagram-1 .node polygon"
    "{fill:#FFFFFF;stroke:#2563EB;stroke-width:1px;}"
    "#codeflow-diagram-1 .cluster rect{fill:#F1F5F9;stroke:#94A3B8;stroke-width:1px;}"
    "#codeflow-diagram-1 .node .label-container{stroke:#1D4ED8;}"
    "#codeflow-diagram-1 .node:hover rect{fill:#FF0000;}"
    "@keyframes dash{to{stroke-dashoffset:0;}}"
)


def _mmdc_shaped_svg():
    return (
        f'<svg xmlns="{SVG_NS}" id="codeflow-diagram-1" viewBox="0 0 300 200">'
        f'<style>{MMDC_STYLE}</style>'
        f'<g class="cluster" id="cluster-app"><rect x="0" y="0" width="280" height="180"/>'
        f'<g class="cluster-label"><g class="label"><text>src/app.ts</text></g></g></g>'
        f'<g class="node default" id="node-a">'
        f'<rect class="basic label-container" x="10" y="40" width="80" height="40"/>'
        f'<g class="label"><text>Start</text></g></g>'
        f'<g class="node default" id="node-b"><polygon points="0,0 10,0 5,8"/></g>'
        f'</svg>'
    )


def test_descendant_rules_reach_node_and_cluster_shapes():
    root = prepare_svg_tree(_mmdc_shaped_svg())
    by_id = {g.get("id"): g for g in root.iter(f"{{{SVG_NS}}}g") if g.get("id")}

    node_rect = by_id["node-a"].find(f"{{{SVG_NS}}}rect")
    assert node_rect.get("fill") == "#FFFFFF"
    # Later, more specific rule for the same element
    assert node_rect.get("stroke") == "#1D4ED8"
    assert node_rect.get("stroke-width") == "1px"

    polygon = by_id["node-b"].find(f"{{{SVG_NS}}}polygon")
    assert polygon.get("fill") == "#FFFFFF"
    assert polygon.get("stroke") == "#2563EB"

    cluster_rect = by_id["cluster-app"].find(f"{{{SVG_NS}}}rect")
    assert cluster_rect.get("fill") == "#F1F5F9"
    assert cluster_rect.get("stroke") == "#94A3B8"


def test_label_text_rule_is_inlined_and_pseudo_classes_are_skipped():
    root = prepare_svg_tree(_mmdc_shaped_svg())

    texts = list(root.iter(f"{{{SVG_NS}}}text"))
    assert texts and all(t.get("fill") == "#0F172A" for t in texts)
    # ":hover" and keyframe rules never land on elements
    assert all(el.get("fill") != "#FF0000" for el in root.iter())
    assert all(el.get("stroke-dashoffset") is None for el in root.iter())
