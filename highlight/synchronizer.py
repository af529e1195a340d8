"""
highlight/synchronizer.py

Keeps the diagram and the code panel in step with one selection identity.

Selecting an identity restyles every element of the current graphic
(matching elements emphasised, all others reset) and, when the identity is
the path of an uploaded file, asks the code panel to show that file.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Mapping, Optional, Sequence

from debug_trace import trace
from mermaid.graphic import remove_style_property, set_style_property
from mermaid.pipeline import RenderGeneration, RenderPipeline, VisualElement
from models import HighlightState, UploadedFile

_SHAPE_PROPS = ("fill", "stroke", "stroke-width")


def apply_highlight(elements: Iterable[VisualElement], identity: Optional[str],
                    tokens: Mapping[str, str]) -> int:
    """Restyle *elements* for the current *identity*.

    Every element is touched on every pass: exact matches get the emphasis
    fill, border and stroke width on their shape and the emphasis text
    colour on their labels; everything else has those overrides removed so
    the rendered defaults show through.

    Returns:
        Number of emphasised elements.
    """
    emphasised = 0
    for ve in elements:
        match = bool(identity) and ve.identity == identity

        if ve.shape is not None:
            if match:
                set_style_property(ve.shape, "fill", tokens["emphasis-fill"])
                set_style_property(ve.shape, "stroke", tokens["emphasis-border"])
                set_style_property(ve.shape, "stroke-width", tokens["emphasis-stroke-width"])
            else:
                for prop in _SHAPE_PROPS:
                    remove_style_property(ve.shape, prop)

        for label in ve.labels:
            if match:
                set_style_property(label, "fill", tokens["emphasis-text"])
            else:
                remove_style_property(label, "fill")

        if match:
            emphasised += 1
    return emphasised


class HighlightSynchronizer:
    """Owns the selection identity and propagates it to both panels.

    Args:
        resolve_tokens: Returns fresh theme tokens; called on every pass.
        on_file_selected: Called with the UploadedFile whose path equals the
            selected identity.
        on_restyled: Called with ``(generation, emphasised_count)`` after
            each restyle so the view can repaint.
    """

    def __init__(self, resolve_tokens: Callable[[], Mapping[str, str]],
                 on_file_selected: Optional[Callable[[UploadedFile], None]] = None,
                 on_restyled: Optional[Callable[[RenderGeneration, int], None]] = None):
        self._resolve_tokens = resolve_tokens
        self.on_file_selected = on_file_selected
        self.on_restyled = on_restyled
        self.state = HighlightState()
        self._files: List[UploadedFile] = []
        self._pipeline: Optional[RenderPipeline] = None

    @property
    def identity(self) -> Optional[str]:
        return self.state.identity

    @property
    def files(self) -> List[UploadedFile]:
        return list(self._files)

    def attach(self, pipeline: RenderPipeline) -> None:
        """Follow *pipeline*: restyle every freshly rendered generation."""
        self._pipeline = pipeline
        pipeline.add_listener(on_rendered=self._on_rendered, on_cleared=self._on_cleared)

    def select(self, identity: Optional[str]) -> None:
        """Make *identity* current (None clears), restyle, then redirect."""
        self.state.identity = identity or None
        trace(f"Selected {self.state.identity!r}", "SYNC")
        self.restyle()
        self._redirect()

    def set_files(self, files: Optional[Sequence[UploadedFile]]) -> None:
        """Replace the uploaded collection and re-check the redirection."""
        self._files = list(files or [])
        self._redirect()

    def find_file(self, identity: Optional[str]) -> Optional[UploadedFile]:
        if not identity:
            return None
        for f in self._files:
            if f.path == identity:
                return f
        return None

    def restyle(self) -> int:
        generation = self._pipeline.current if self._pipeline is not None else None
        if generation is None:
            return 0
        tokens = self._resolve_tokens()
        count = apply_highlight(generation.elements, self.state.identity, tokens)
        trace(f"Restyled generation {generation.number}: {count} emphasised", "SYNC")
        if self.on_restyled is not None:
            self.on_restyled(generation, count)
        return count

    def _redirect(self) -> None:
        f = self.find_file(self.state.identity)
        if f is None:
            return
        trace(f"Showing uploaded file {f.path}", "SYNC")
        if self.on_file_selected is not None:
            self.on_file_selected(f)

    def _on_rendered(self, generation: RenderGeneration) -> None:
        self.restyle()

    def _on_cleared(self, error) -> None:
        if error is not None:
            trace(f"View cleared after render error; keeping {self.state.identity!r}", "SYNC")
