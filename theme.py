"""
theme.py

Resolves the semantic style tokens used to colour rendered diagrams.

A *style source* is a plain ``{name: value}`` snapshot.  Values may be
direct colours (``#2563eb``, ``rgb(...)``, ``teal``) or bare HSL components
as stored in CSS custom properties (``"221 83% 53%"``).  Resolution is a
pure function of the snapshot so that highlight colours track live theme
changes without any module-level cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, Mapping, Optional

from debug_trace import trace
from utils import parse_color_value, qcolor_to_hex

# Base tokens read from the style source, with the colour used when the
# source is missing a token or holds something unparseable.
BASE_TOKEN_DEFAULTS: Dict[str, str] = {
    "primary": "#2563EB",
    "background": "#FFFFFF",
    "foreground": "#0F172A",
    "accent": "#F59E0B",
    "accent-foreground": "#FFFFFF",
    "card": "#F8FAFC",
    "border": "#E2E8F0",
}

# Semantic token -> base token it is derived from
SEMANTIC_TOKENS: Dict[str, str] = {
    "emphasis-fill": "accent",
    "emphasis-border": "primary",
    "emphasis-text": "accent-foreground",
    "default-fill": "background",
    "default-border": "primary",
    "default-text": "foreground",
    "cluster-fill": "card",
    "line": "primary",
}

EMPHASIS_STROKE_WIDTH = "3px"


@dataclass(frozen=True)
class ThemeTokens(Mapping):
    """Immutable mapping of token name to resolved ``#RRGGBB`` value.

    Holds the base tokens, the derived semantic tokens and
    ``emphasis-stroke-width``.
    """
    values: Dict[str, str] = field(default_factory=dict)

    def __getitem__(self, key: str) -> str:
        return self.values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def as_dict(self) -> Dict[str, str]:
        return dict(self.values)


def _resolve_base(name: str, raw: Optional[str]) -> str:
    color = parse_color_value(raw) if raw is not None else None
    if color is None:
        if raw is not None:
            trace(f"Token '{name}' has unusable value {raw!r}; using default", "THEME")
        return BASE_TOKEN_DEFAULTS[name]
    return qcolor_to_hex(color)


def resolve_theme_tokens(source: Mapping[str, str]) -> ThemeTokens:
    """Resolve a style-source snapshot into concrete theme tokens.

    Args:
        source: Mapping of base token name to raw value.  Keys may carry a
            leading ``--`` as CSS custom properties do.

    Returns:
        ThemeTokens with every base and semantic token present.
    """
    normalized = {str(k).lstrip("-"): v for k, v in (source or {}).items()}

    values: Dict[str, str] = {}
    for name in BASE_TOKEN_DEFAULTS:
        values[name] = _resolve_base(name, normalized.get(name))
    for name, base in SEMANTIC_TOKENS.items():
        values[name] = values[base]
    values["emphasis-stroke-width"] = EMPHASIS_STROKE_WIDTH
    return ThemeTokens(values)


def current_style_source() -> Dict[str, str]:
    """Snapshot of the active theme's tokens with settings overrides applied."""
    # Imported here so tests can resolve tokens without touching settings
    from settings import get_settings
    from styles import DEFAULT_STYLE, THEME_TOKENS

    s = get_settings().settings
    base = THEME_TOKENS.get(s.theme) or THEME_TOKENS[DEFAULT_STYLE]
    source = dict(base)
    source.update(s.theme_tokens or {})
    return source


class ThemeResolver:
    """Resolves tokens from a style source on demand.

    The only retained state is the one-shot ``initialized`` flag set when
    the rendering library has been configured with the palette.
    """

    def __init__(self, source_provider: Callable[[], Mapping[str, str]] = current_style_source):
        self._source_provider = source_provider
        self.initialized = False

    def resolve(self) -> ThemeTokens:
        """Read a fresh snapshot and resolve it."""
        return resolve_theme_tokens(self._source_provider())

    def initialize(self, configure: Callable[[ThemeTokens], None]) -> bool:
        """Run ``configure(tokens)`` the first time only.

        Returns:
            True if ``configure`` ran on this call.
        """
        if self.initialized:
            return False
        tokens = self.resolve()
        configure(tokens)
        self.initialized = True
        trace("Rendering palette initialized", "THEME")
        return True
