"""
mermaid/pipeline.py

Diagram render pipeline.

Each render is a *generation*: a graphic, the visual elements found in it
and the pointer bindings attached to them.  Starting a new render disposes
the previous generation first, and a render that completes after it has
been superseded is discarded without touching shared state.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from debug_trace import trace
from mermaid.graphic import Binding, DiagramGraphic, PointerEvent, class_tokens, local_tag
from mermaid.renderer import RenderError, RenderOutput, prepare_svg_tree
from mermaid.syntax import looks_like_mermaid
from models import DiagramDocument, ElementKind

RENDER_ID_PREFIX = "codeflow-diagram"

# Class tokens that mark a label sub-element, in search order
_LABEL_CLASSES = ("nodeLabel", "cluster-label", "label")
_SHAPE_TAGS = ("rect", "circle", "polygon", "ellipse", "path")
_TEXT_TAGS = ("text", "tspan")


@dataclass
class VisualElement:
    """One node or cluster of the current graphic."""
    identity: str                      # trimmed label text, "" when absent
    kind: str                          # ElementKind
    element: ET.Element                # the <g> group
    shape: Optional[ET.Element] = None
    labels: List[ET.Element] = field(default_factory=list)
    svg_id: str = ""

    @property
    def interactive(self) -> bool:
        return bool(self.identity)


@dataclass(frozen=True)
class RenderTicket:
    """Handle for an in-flight render."""
    number: int
    render_id: str
    document: DiagramDocument


class RenderGeneration:
    """Scoped owner of one render's graphic, elements and bindings."""

    def __init__(self, ticket: RenderTicket, graphic: DiagramGraphic,
                 elements: List[VisualElement]):
        self.ticket = ticket
        self.graphic = graphic
        self.elements = elements
        self.bindings: List[Binding] = []

    @property
    def number(self) -> int:
        return self.ticket.number

    @property
    def document(self) -> DiagramDocument:
        return self.ticket.document

    def identities(self) -> List[str]:
        return [e.identity for e in self.elements if e.identity]

    def interactive_elements(self) -> List[VisualElement]:
        return [e for e in self.elements if e.interactive]

    def dispose(self) -> None:
        for binding in self.bindings:
            binding.detach()
        self.bindings.clear()
        self.graphic.dispose()


# ----------------------------
# Element extraction
# ----------------------------

def _element_kind(g: ET.Element) -> Optional[str]:
    tokens = class_tokens(g)
    if "node" in tokens:
        return ElementKind.NODE
    if "cluster" in tokens:
        return ElementKind.CLUSTER
    return None


def _iter_own(group: ET.Element):
    """Descendants of *group*, not entering nested nodes or clusters."""
    for child in group:
        if local_tag(child) == "g" and _element_kind(child) is not None:
            continue
        yield child
        yield from _iter_own(child)


def _collect_text(el: ET.Element) -> str:
    parts = []
    for sub in el.iter():
        if sub.text:
            parts.append(sub.text)
        if sub is not el and sub.tail:
            parts.append(sub.tail)
    return " ".join(p.strip() for p in parts if p.strip())


def _find_label(group: ET.Element) -> Optional[ET.Element]:
    own = list(_iter_own(group))
    for cls in _LABEL_CLASSES:
        for el in own:
            if cls in class_tokens(el):
                return el
    for el in own:
        if local_tag(el) == "text":
            return el
    for el in own:
        if local_tag(el) == "foreignObject":
            return el
    return None


def _find_shape(group: ET.Element, label: Optional[ET.Element]) -> Optional[ET.Element]:
    label_subtree = set(label.iter()) if label is not None else set()
    own = [el for el in _iter_own(group) if el not in label_subtree]
    for el in own:
        if "label-container" in class_tokens(el):
            return el
    for el in own:
        if local_tag(el) in _SHAPE_TAGS:
            return el
    return None


def _label_elements(label: Optional[ET.Element]) -> List[ET.Element]:
    if label is None:
        return []
    found = [el for el in label.iter() if local_tag(el) in _TEXT_TAGS]
    return found or [label]


def extract_elements(graphic: DiagramGraphic, render_id: str = RENDER_ID_PREFIX) -> List[VisualElement]:
    """Find every node and cluster group and derive its identity.

    Groups without an ``id`` get a synthetic one so the view can locate
    them by id.
    """
    elements: List[VisualElement] = []
    for index, g in enumerate(graphic.iter_groups()):
        kind = _element_kind(g)
        if kind is None:
            continue
        label = _find_label(g)
        identity = _collect_text(label) if label is not None else ""
        svg_id = g.get("id") or ""
        if not svg_id:
            svg_id = f"{render_id}-el-{index}"
            g.set("id", svg_id)
        elements.append(VisualElement(
            identity=identity,
            kind=kind,
            element=g,
            shape=_find_shape(g, label),
            labels=_label_elements(label),
            svg_id=svg_id,
        ))
    return elements


# ----------------------------
# Pipeline
# ----------------------------

Library = Callable[[str, str], RenderOutput]


class RenderPipeline:
    """Turns diagram documents into interactive graphics.

    Args:
        library: ``library(render_id, text) -> RenderOutput``; may raise.
        on_select: Receives the identity of an activated element.
        prepare: Parses SVG markup into an element tree.

    Listeners added with ``add_listener`` are told about every completed
    render (``on_rendered(generation)``) and every time the view must be
    emptied (``on_cleared(error_or_None)``).
    """

    def __init__(self, library: Library, on_select: Optional[Callable[[str], None]] = None,
                 prepare: Callable[[str], ET.Element] = prepare_svg_tree):
        self._library = library
        self.on_select = on_select
        self._prepare = prepare
        self._counter = 0
        self._alive = True
        self._current: Optional[RenderGeneration] = None
        self._rendered_listeners: List[Callable[[RenderGeneration], None]] = []
        self._cleared_listeners: List[Callable[[Optional[RenderError]], None]] = []

    # -- accessors --

    @property
    def current(self) -> Optional[RenderGeneration]:
        return self._current

    @property
    def graphic(self) -> Optional[DiagramGraphic]:
        return self._current.graphic if self._current else None

    @property
    def alive(self) -> bool:
        return self._alive

    def is_live(self, number: int) -> bool:
        return self._alive and number == self._counter

    def add_listener(self, on_rendered: Optional[Callable[[RenderGeneration], None]] = None,
                     on_cleared: Optional[Callable[[Optional[RenderError]], None]] = None) -> None:
        if on_rendered is not None:
            self._rendered_listeners.append(on_rendered)
        if on_cleared is not None:
            self._cleared_listeners.append(on_cleared)

    def _notify_cleared(self, error: Optional[RenderError]) -> None:
        for cb in list(self._cleared_listeners):
            cb(error)

    def _notify_rendered(self, generation: RenderGeneration) -> None:
        for cb in list(self._rendered_listeners):
            cb(generation)

    def _dispose_current(self) -> None:
        if self._current is not None:
            trace(f"Disposing generation {self._current.number}", "RENDER")
            self._current.dispose()
            self._current = None

    # -- render protocol --

    def begin(self, document: DiagramDocument) -> RenderTicket:
        """Supersede the current generation and issue a ticket for *document*.

        Raises:
            RenderError: The pipeline is torn down, or the text does not
                start with a known diagram keyword.
        """
        if not self._alive:
            raise RenderError("Render pipeline has been torn down")

        self._dispose_current()
        self._counter += 1
        ticket = RenderTicket(self._counter, f"{RENDER_ID_PREFIX}-{self._counter}", document)
        trace(f"Begin render {ticket.render_id} ({len(document.text)} chars)", "RENDER")

        if not looks_like_mermaid(document.text):
            error = RenderError(
                "Diagram text does not start with a recognised Mermaid diagram type "
                "(e.g. 'graph TD' or 'flowchart LR')."
            )
            self._notify_cleared(error)
            raise error
        return ticket

    def complete(self, ticket: RenderTicket, output: RenderOutput) -> Optional[RenderGeneration]:
        """Install the library's output for *ticket*.

        Returns:
            The new live generation, or None if *ticket* was superseded.

        Raises:
            RenderError: The markup could not be parsed.
        """
        if not self.is_live(ticket.number):
            trace(f"Discarding stale render {ticket.render_id}", "RENDER")
            return None

        try:
            root = self._prepare(output.svg)
        except (ET.ParseError, ValueError, TypeError) as e:
            error = RenderError(f"Rendered SVG could not be parsed: {e}")
            self._notify_cleared(error)
            raise error from e

        graphic = DiagramGraphic(root)
        if output.bind_functions is not None:
            output.bind_functions(graphic)

        elements = extract_elements(graphic, ticket.render_id)
        generation = RenderGeneration(ticket, graphic, elements)
        for ve in elements:
            if ve.interactive:
                generation.bindings.append(
                    graphic.bind(ve.element, self._make_handler(ticket.number, ve.identity))
                )

        self._current = generation
        trace(f"Render {ticket.render_id} complete: {len(elements)} element(s), "
              f"{len(generation.bindings)} interactive", "RENDER")
        self._notify_rendered(generation)
        return generation

    def fail(self, ticket: RenderTicket, error: BaseException | str) -> Optional[RenderError]:
        """Record a library failure for *ticket*.

        Returns:
            The RenderError to show, or None if *ticket* was superseded.
        """
        if not self.is_live(ticket.number):
            trace(f"Ignoring failure of stale render {ticket.render_id}", "RENDER")
            return None
        if isinstance(error, RenderError):
            render_error = error
        else:
            render_error = RenderError(str(error) or "Unknown Mermaid rendering error")
        trace(f"Render {ticket.render_id} failed: {render_error}", "RENDER")
        self._notify_cleared(render_error)
        return render_error

    def render(self, document: DiagramDocument) -> RenderGeneration:
        """Synchronous render: ``begin`` + library call + ``complete``."""
        ticket = self.begin(document)
        try:
            output = self._library(ticket.render_id, document.text)
        except Exception as e:
            error = self.fail(ticket, e)
            raise (error or RenderError(str(e))) from e
        generation = self.complete(ticket, output)
        if generation is None:
            raise RenderError("Render was superseded")
        return generation

    def _make_handler(self, number: int, identity: str):
        def handler(event: PointerEvent) -> None:
            event.stop_propagation()
            if self.is_live(number) and self.on_select is not None:
                trace(f"Element activated: {identity!r}", "SYNC")
                self.on_select(identity)
        return handler

    # -- teardown --

    def clear(self) -> None:
        """Dispose the current generation and invalidate in-flight renders."""
        self._dispose_current()
        self._counter += 1
        self._notify_cleared(None)

    def teardown(self) -> None:
        """Clear and refuse every later completion."""
        self.clear()
        self._alive = False
        trace("Render pipeline torn down", "RENDER")
