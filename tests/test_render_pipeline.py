"""Render pipeline: generations, stale renders, bindings and element identities.

A fake rendering library returns fixed Mermaid-like SVG, so these tests
need neither mmdc nor a display.
"""
from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mermaid.graphic import local_tag
from mermaid.pipeline import RENDER_ID_PREFIX, RenderPipeline
from mermaid.renderer import RenderError, RenderOutput
from models import DiagramDocument, ElementKind


# A cluster holding two nodes, one node outside it with the same label as
# a node inside, and one node without a label (and without an id)
DIAGRAM_SVG = """<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 400 300" width="100%">
  <g class="root">
    <g class="cluster" id="cluster-src">
      <rect x="0" y="0" width="300" height="200"/>
      <g class="cluster-label"><text>src/app.ts</text></g>
      <g class="node default" id="node-a">
        <rect class="basic label-container" x="10" y="40" width="80" height="40"/>
        <g class="label"><text><tspan>Start</tspan></text></g>
      </g>
      <g class="node default" id="node-b">
        <rect class="basic label-container" x="110" y="40" width="80" height="40"/>
        <g class="label"><text><tspan>Process</tspan></text></g>
      </g>
    </g>
    <g class="node default" id="node-c">
      <polygon class="label-container" points="320,10 380,10 380,50 320,50"/>
      <g class="label"><text>Start</text></g>
    </g>
    <g class="node default">
      <rect x="320" y="100" width="40" height="40"/>
    </g>
  </g>
</svg>"""

DOC_A = DiagramDocument('graph TD\n  subgraph s["src/app.ts"]\n    a["Start"]\n  end')
DOC_B = DiagramDocument('flowchart LR\n  a["Start"] --> b["Process"]')


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class FakeLibrary:
    def __init__(self, svg=DIAGRAM_SVG, error=None, bind_functions=None):
        self.svg = svg
        self.error = error
        self.bind_functions = bind_functions
        self.calls = []

    def __call__(self, render_id, text):
        self.calls.append((render_id, text))
        if self.error is not None:
            raise self.error
        return RenderOutput(svg=self.svg, bind_functions=self.bind_functions)


class Recorder:
    def __init__(self):
        self.selected = []
        self.rendered = []
        self.cleared = []


@pytest.fixture()
def rec():
    return Recorder()


@pytest.fixture()
def pipeline(rec):
    p = RenderPipeline(FakeLibrary(), on_select=rec.selected.append)
    p.add_listener(on_rendered=rec.rendered.append, on_cleared=rec.cleared.append)
    return p


def _by_svg_id(generation, svg_id):
    for ve in generation.elements:
        if ve.svg_id == svg_id:
            return ve
    raise KeyError(svg_id)


# ---------------------------------------------------------------------------
# Element extraction
# ---------------------------------------------------------------------------

def test_identities_are_trimmed_labels(pipeline):
    gen = pipeline.render(DOC_A)
    assert gen.identities() == ["src/app.ts", "Start", "Process", "Start"]


def test_element_kinds_and_shapes(pipeline):
    gen = pipeline.render(DOC_A)

    cluster = _by_svg_id(gen, "cluster-src")
    assert cluster.kind == ElementKind.CLUSTER
    assert local_tag(cluster.shape) == "rect"

    node_c = _by_svg_id(gen, "node-c")
    assert node_c.kind == ElementKind.NODE
    assert local_tag(node_c.shape) == "polygon"
    assert [local_tag(el) for el in node_c.labels] == ["text"]

    node_a = _by_svg_id(gen, "node-a")
    assert [local_tag(el) for el in node_a.labels] == ["text", "tspan"]


def test_cluster_does_not_take_nested_node_labels(pipeline):
    gen = pipeline.render(DOC_A)
    cluster = _by_svg_id(gen, "cluster-src")
    assert cluster.identity == "src/app.ts"
    assert "class" not in cluster.shape.attrib


def test_unlabelled_element_is_not_interactive(pipeline):
    gen = pipeline.render(DOC_A)
    assert len(gen.elements) == 5
    assert len(gen.interactive_elements()) == 4

    unlabelled = [ve for ve in gen.elements if not ve.interactive]
    assert len(unlabelled) == 1
    assert unlabelled[0].identity == ""
    assert unlabelled[0].svg_id.startswith(f"{RENDER_ID_PREFIX}-1-el-")
    assert unlabelled[0].element.get("id") == unlabelled[0].svg_id


def test_only_interactive_elements_are_bound(pipeline):
    gen = pipeline.render(DOC_A)
    assert len(gen.bindings) == 4
    assert gen.graphic.binding_count == 4


def test_extraction_is_repeatable(pipeline):
    first = pipeline.render(DOC_A).identities()
    second = pipeline.render(DOC_A).identities()
    assert first == second


def test_render_ids_are_unique_per_render(pipeline):
    a = pipeline.render(DOC_A)
    b = pipeline.render(DOC_B)
    assert a.ticket.render_id != b.ticket.render_id
    assert b.number == a.number + 1


def test_bind_functions_receive_the_graphic(rec):
    seen = []
    p = RenderPipeline(FakeLibrary(bind_functions=seen.append))
    gen = p.render(DOC_A)
    assert seen == [gen.graphic]


# ---------------------------------------------------------------------------
# Pointer activation
# ---------------------------------------------------------------------------

def test_click_on_node_inside_cluster_selects_only_the_node(pipeline, rec):
    gen = pipeline.render(DOC_A)
    node_a = _by_svg_id(gen, "node-a")

    called = gen.graphic.dispatch(node_a.shape)

    assert called == 1
    assert rec.selected == ["Start"]


def test_click_on_cluster_background_selects_the_cluster(pipeline, rec):
    gen = pipeline.render(DOC_A)
    cluster = _by_svg_id(gen, "cluster-src")

    gen.graphic.dispatch(cluster.shape)

    assert rec.selected == ["src/app.ts"]


def test_click_on_unlabelled_element_does_nothing(pipeline, rec):
    gen = pipeline.render(DOC_A)
    unlabelled = [ve for ve in gen.elements if not ve.interactive][0]

    assert gen.graphic.dispatch(unlabelled.shape) == 0
    assert rec.selected == []


# ---------------------------------------------------------------------------
# Generations
# ---------------------------------------------------------------------------

def test_new_render_detaches_previous_bindings(pipeline, rec):
    gen_a = pipeline.render(DOC_A)
    old_bindings = list(gen_a.bindings)

    gen_b = pipeline.render(DOC_B)

    assert pipeline.current is gen_b
    assert gen_a.graphic.disposed
    assert all(not b.attached for b in old_bindings)
    # A handler captured from the old graphic is inert
    assert old_bindings[0].fire() is False
    assert rec.selected == []


def test_stale_completion_is_discarded(pipeline, rec):
    ticket_a = pipeline.begin(DOC_A)
    ticket_b = pipeline.begin(DOC_B)

    assert pipeline.complete(ticket_a, RenderOutput(svg=DIAGRAM_SVG)) is None
    assert pipeline.current is None
    assert rec.rendered == []

    gen_b = pipeline.complete(ticket_b, RenderOutput(svg=DIAGRAM_SVG))
    assert gen_b is not None
    assert pipeline.current is gen_b
    assert rec.rendered == [gen_b]


def test_stale_failure_is_ignored(pipeline, rec):
    ticket_a = pipeline.begin(DOC_A)
    pipeline.begin(DOC_B)

    assert pipeline.fail(ticket_a, "boom") is None
    assert rec.cleared == []


def test_live_failure_clears_with_error(pipeline, rec):
    ticket = pipeline.begin(DOC_A)

    error = pipeline.fail(ticket, "Parse error on line 2")

    assert isinstance(error, RenderError)
    assert str(error) == "Parse error on line 2"
    assert rec.cleared == [error]


def test_library_exception_surfaces_as_render_error(rec):
    p = RenderPipeline(FakeLibrary(error=RuntimeError("Lexical error on line 1")))
    p.add_listener(on_cleared=rec.cleared.append)

    with pytest.raises(RenderError, match="Lexical error"):
        p.render(DOC_A)
    assert p.current is None
    assert len(rec.cleared) == 1


def test_text_without_diagram_keyword_is_rejected(pipeline, rec):
    gen = pipeline.render(DOC_A)

    with pytest.raises(RenderError):
        pipeline.begin(DiagramDocument("Here is your diagram!"))

    assert pipeline.current is None
    assert gen.graphic.disposed
    assert len(rec.cleared) == 1
    assert isinstance(rec.cleared[0], RenderError)


def test_unparseable_markup_is_a_render_error(rec):
    p = RenderPipeline(FakeLibrary(svg="<svg><g></svg"))
    p.add_listener(on_cleared=rec.cleared.append)

    with pytest.raises(RenderError, match="could not be parsed"):
        p.render(DOC_A)
    assert p.current is None
    assert len(rec.cleared) == 1


def test_clear_invalidates_in_flight_render(pipeline, rec):
    ticket = pipeline.begin(DOC_A)
    pipeline.clear()

    assert pipeline.complete(ticket, RenderOutput(svg=DIAGRAM_SVG)) is None
    assert rec.cleared == [None]


def test_teardown_refuses_later_work(pipeline, rec):
    ticket = pipeline.begin(DOC_A)
    pipeline.teardown()

    assert not pipeline.alive
    assert pipeline.complete(ticket, RenderOutput(svg=DIAGRAM_SVG)) is None
    assert pipeline.fail(ticket, "late") is None
    with pytest.raises(RenderError):
        pipeline.begin(DOC_B)
    assert rec.rendered == []


def test_teardown_disposes_current_generation(pipeline, rec):
    gen = pipeline.render(DOC_A)
    binding = gen.bindings[0]

    pipeline.teardown()

    assert gen.graphic.disposed
    assert not binding.attached
    assert pipeline.graphic is None
