"""
mermaid/graphic.py

In-memory diagram graphic: the prepared SVG element tree plus a small
pointer-event layer (bindings, dispatch with bubbling, stop-propagation).

Qt draws the graphic from ``to_bytes()``; clicks in the view are
hit-tested against element bounds and fed back through ``dispatch``.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Callable, Dict, Iterator, List, Optional

from debug_trace import trace

_SVG_NS = "http://www.w3.org/2000/svg"


# ----------------------------
# Inline style helpers
# ----------------------------

def get_style(el: ET.Element) -> Dict[str, str]:
    """Parse an element's inline ``style`` attribute into a dict."""
    props: Dict[str, str] = {}
    for decl in (el.get("style") or "").split(";"):
        if ":" not in decl:
            continue
        name, _, value = decl.partition(":")
        name = name.strip()
        if name:
            props[name] = value.strip()
    return props


def _write_style(el: ET.Element, props: Dict[str, str]) -> None:
    if props:
        el.set("style", ";".join(f"{k}:{v}" for k, v in props.items()))
    elif "style" in el.attrib:
        del el.attrib["style"]


def set_style_property(el: ET.Element, name: str, value: str) -> None:
    """Set one inline style property, e.g. ``fill``."""
    props = get_style(el)
    # Drop and re-add so the override is the last declaration
    props.pop(name, None)
    props[name] = value
    _write_style(el, props)


def remove_style_property(el: ET.Element, name: str) -> None:
    """Remove one inline style property, leaving the others untouched."""
    props = get_style(el)
    if props.pop(name, None) is not None:
        _write_style(el, props)


def class_tokens(el: ET.Element) -> List[str]:
    return (el.get("class") or "").split()


def local_tag(el: ET.Element) -> str:
    tag = el.tag
    return tag.split("}", 1)[1] if tag.startswith("{") else tag


# ----------------------------
# Pointer events
# ----------------------------

class PointerEvent:
    """A pointer activation travelling from *target* up to the root."""

    def __init__(self, target: ET.Element):
        self.target = target
        self.current_target: Optional[ET.Element] = None
        self.propagation_stopped = False

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


Handler = Callable[[PointerEvent], None]


class Binding:
    """A handler attached to one element of a graphic.

    Once detached the binding is inert: ``fire`` returns False and never
    calls the handler, even if someone still holds a reference to it.
    """

    def __init__(self, graphic: "DiagramGraphic", element: ET.Element, handler: Handler):
        self._graphic: Optional[DiagramGraphic] = graphic
        self.element = element
        self._handler: Optional[Handler] = handler

    @property
    def attached(self) -> bool:
        return self._handler is not None

    def fire(self, event: Optional[PointerEvent] = None) -> bool:
        """Invoke the handler directly; returns False when detached."""
        handler = self._handler
        if handler is None:
            return False
        if event is None:
            event = PointerEvent(self.element)
            event.current_target = self.element
        handler(event)
        return True

    def detach(self) -> None:
        if self._handler is None:
            return
        graphic = self._graphic
        self._handler = None
        self._graphic = None
        if graphic is not None:
            graphic._forget(self)


class DiagramGraphic:
    """Owns a prepared SVG tree and the bindings attached to it."""

    def __init__(self, root: ET.Element):
        self.root: Optional[ET.Element] = root
        self._parents: Dict[ET.Element, ET.Element] = {c: p for p in root.iter() for c in p}
        self._bindings: Dict[ET.Element, List[Binding]] = {}

    # -- tree --

    @property
    def disposed(self) -> bool:
        return self.root is None

    def parent(self, el: ET.Element) -> Optional[ET.Element]:
        return self._parents.get(el)

    def ancestors(self, el: ET.Element) -> Iterator[ET.Element]:
        """*el* itself, then each parent up to the root."""
        cur: Optional[ET.Element] = el
        while cur is not None:
            yield cur
            cur = self._parents.get(cur)

    def iter_groups(self) -> Iterator[ET.Element]:
        if self.root is None:
            return iter(())
        return self.root.iter(f"{{{_SVG_NS}}}g")

    def find_by_id(self, element_id: str) -> Optional[ET.Element]:
        if self.root is None:
            return None
        for el in self.root.iter():
            if el.get("id") == element_id:
                return el
        return None

    def view_box(self) -> Optional[List[float]]:
        if self.root is None:
            return None
        parts = (self.root.get("viewBox") or "").replace(",", " ").split()
        if len(parts) != 4:
            return None
        try:
            return [float(p) for p in parts]
        except ValueError:
            return None

    # -- bindings --

    def bind(self, element: ET.Element, handler: Handler) -> Binding:
        if self.root is None:
            raise RuntimeError("Cannot bind to a disposed graphic")
        binding = Binding(self, element, handler)
        self._bindings.setdefault(element, []).append(binding)
        return binding

    def _forget(self, binding: Binding) -> None:
        lst = self._bindings.get(binding.element)
        if not lst:
            return
        if binding in lst:
            lst.remove(binding)
        if not lst:
            del self._bindings[binding.element]

    @property
    def binding_count(self) -> int:
        return sum(len(v) for v in self._bindings.values())

    def bindings_for(self, element: ET.Element) -> List[Binding]:
        return list(self._bindings.get(element, ()))

    def dispatch(self, target: ET.Element) -> int:
        """Deliver a pointer activation at *target*, bubbling to the root.

        Returns:
            Number of handlers that ran.
        """
        if self.root is None:
            return 0
        event = PointerEvent(target)
        called = 0
        for el in self.ancestors(target):
            bindings = self._bindings.get(el)
            if not bindings:
                continue
            event.current_target = el
            for binding in list(bindings):
                if binding.fire(event):
                    called += 1
            if event.propagation_stopped:
                break
        return called

    def detach_all(self) -> int:
        count = 0
        for bindings in list(self._bindings.values()):
            for binding in list(bindings):
                binding.detach()
                count += 1
        self._bindings.clear()
        return count

    # -- lifecycle / serialisation --

    def to_bytes(self) -> bytes:
        if self.root is None:
            raise RuntimeError("Graphic has been disposed")
        return ET.tostring(self.root, encoding="utf-8", xml_declaration=True)

    def to_string(self) -> str:
        return self.to_bytes().decode("utf-8")

    def dispose(self) -> None:
        """Detach every binding and release the element tree."""
        if self.root is None:
            return
        detached = self.detach_all()
        trace(f"Graphic disposed ({detached} binding(s) detached)", "RENDER")
        self._parents.clear()
        self.root = None
