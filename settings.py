"""
settings.py

Persistent settings management for CodeFlow.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/codeflow/settings.toml
    - macOS: ~/Library/Application Support/codeflow/settings.toml
    - Linux: ~/.config/codeflow/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

from debug_trace import trace

APP_NAME = "codeflow"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


# =============================================================================
# Editor Settings
# =============================================================================

@dataclass
class EditorFontSettings:
    """Editor font settings.

    Defaults:
        family: "Consolas"
        size: 10
        tab_width: 4
    """
    family: str = "Consolas"  # Default: "Consolas"
    size: int = 10            # Default: 10 points
    tab_width: int = 4        # Default: 4 characters


@dataclass
class EditorLineNumberSettings:
    """Line number gutter settings.

    Defaults:
        left_margin: 8
        right_margin: 4
        highlight_bar_width: 4
    """
    left_margin: int = 8           # Default: 8 pixels
    right_margin: int = 4          # Default: 4 pixels
    highlight_bar_width: int = 4   # Default: 4 pixels


@dataclass
class EditorSyntaxSettings:
    """Source code syntax highlighting colors.

    Defaults:
        keyword_color: "#2E86C1"
        keyword_bold: True
        string_color: "#27AE60"
        number_color: "#8E44AD"
        comment_color: "#7F8C8D"
        comment_italic: True
    """
    keyword_color: str = "#2E86C1"   # Default: blue
    keyword_bold: bool = True        # Default: True
    string_color: str = "#27AE60"    # Default: green
    number_color: str = "#8E44AD"    # Default: purple
    comment_color: str = "#7F8C8D"   # Default: gray
    comment_italic: bool = True      # Default: True


@dataclass
class EditorSettings:
    """All editor-related settings."""
    font: EditorFontSettings = field(default_factory=EditorFontSettings)
    line_numbers: EditorLineNumberSettings = field(default_factory=EditorLineNumberSettings)
    syntax: EditorSyntaxSettings = field(default_factory=EditorSyntaxSettings)


# =============================================================================
# Canvas Settings
# =============================================================================

@dataclass
class CanvasZoomSettings:
    """Zoom behavior settings.

    Defaults:
        wheel_factor: 1.15
    """
    wheel_factor: float = 1.15  # Default: 1.15 (15% per scroll step)


@dataclass
class CanvasSettings:
    """All diagram canvas settings."""
    zoom: CanvasZoomSettings = field(default_factory=CanvasZoomSettings)


# =============================================================================
# Generation Settings
# =============================================================================

@dataclass
class GenerationSettings:
    """Gemini generation and retry settings.

    The retry budget and delay are fixed constants for a run; they are
    never derived from anything the service reports.

    Defaults:
        model: "gemini-2.5-flash"
        api_key_env: "GOOGLE_API_KEY"
        max_attempts: 3
        retry_delay_ms: 3000
    """
    model: str = "gemini-2.5-flash"    # Default: "gemini-2.5-flash"
    api_key_env: str = "GOOGLE_API_KEY"  # Default: "GOOGLE_API_KEY"
    max_attempts: int = 3              # Default: 3 (initial call + 2 retries)
    retry_delay_ms: int = 3000         # Default: 3000 ms


# =============================================================================
# Render Settings
# =============================================================================

@dataclass
class RenderSettings:
    """Mermaid CLI rendering settings.

    Defaults:
        mmdc_path: "" (search MMDC_PATH, then PATH)
        timeout_s: 60
        png_scale: 2.0
        node_spacing: 60
        rank_spacing: 60
        font_size: "14px"
    """
    mmdc_path: str = ""        # Default: "" (auto-detect)
    timeout_s: int = 60        # Default: 60 seconds
    png_scale: float = 2.0     # Default: 2.0 (2x raster on export)
    node_spacing: int = 60     # Default: 60
    rank_spacing: int = 60     # Default: 60
    font_size: str = "14px"    # Default: "14px"


# =============================================================================
# Ingest Settings
# =============================================================================

def _default_ignored_dirs() -> List[str]:
    return [
        ".git", ".hg", ".svn", ".idea", ".vscode", "__pycache__",
        "node_modules", ".venv", "venv", "dist", "build", ".next",
        "coverage", ".mypy_cache", ".pytest_cache",
    ]


def _default_ignored_extensions() -> List[str]:
    return [
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".svg", ".webp",
        ".pdf", ".zip", ".gz", ".tar", ".7z", ".exe", ".dll", ".so",
        ".dylib", ".pyc", ".class", ".jar", ".woff", ".woff2", ".ttf",
        ".mp3", ".mp4", ".lock", ".map",
    ]


@dataclass
class IngestSettings:
    """Folder ingestion filters.

    Defaults:
        max_file_size_kb: 256
        max_files: 200
        ignored_dirs: VCS, tooling and build output directories
        ignored_extensions: binary, media and lock files
    """
    max_file_size_kb: int = 256   # Default: 256 KB per file
    max_files: int = 200          # Default: 200 files per folder
    ignored_dirs: List[str] = field(default_factory=_default_ignored_dirs)
    ignored_extensions: List[str] = field(default_factory=_default_ignored_extensions)


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        theme: The UI theme name (must match a key in styles.STYLES).
        workspace_dir: Default directory for open/export dialogs.
        editor: Editor-related settings.
        canvas: Diagram canvas settings.
        generation: Gemini and retry settings.
        render: Mermaid CLI settings.
        ingest: Folder ingestion filters.
        theme_tokens: Overrides for the theme's style tokens
            (e.g. ``accent = "38 92% 50%"``).
    """
    # UI Settings
    theme: str = "Tailwind"  # Default: "Tailwind"

    # Directory for open/export dialogs (empty = ~/Documents/CodeFlow)
    workspace_dir: str = ""

    # Nested settings categories
    editor: EditorSettings = field(default_factory=EditorSettings)
    canvas: CanvasSettings = field(default_factory=CanvasSettings)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    render: RenderSettings = field(default_factory=RenderSettings)
    ingest: IngestSettings = field(default_factory=IngestSettings)
    theme_tokens: Dict[str, str] = field(default_factory=dict)


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        config_dir: Explicit directory for settings.toml (overrides the
            platform default).
    """

    def __init__(self, app_name: str = APP_NAME, config_dir: Optional[Path] = None):
        if config_dir is not None:
            self.settings_dir = Path(config_dir)
        else:
            self.settings_dir = Path(platformdirs.user_config_dir(app_name))
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)

            return self._parse_toml(data)
        except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError, AttributeError) as e:
            # If file is corrupted or invalid, return defaults
            trace(f"Could not read {self.settings_file}: {e}; using defaults", "SETTINGS")
            return AppSettings()

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        # General section
        general = data.get("general", {})
        settings.theme = general.get("theme", settings.theme)
        settings.workspace_dir = general.get("workspace_dir", settings.workspace_dir)

        # Editor section
        editor = data.get("editor", {})
        if "font" in editor:
            font = editor["font"]
            settings.editor.font.family = font.get("family", settings.editor.font.family)
            settings.editor.font.size = font.get("size", settings.editor.font.size)
            settings.editor.font.tab_width = font.get("tab_width", settings.editor.font.tab_width)
        if "line_numbers" in editor:
            ln = editor["line_numbers"]
            settings.editor.line_numbers.left_margin = ln.get("left_margin", settings.editor.line_numbers.left_margin)
            settings.editor.line_numbers.right_margin = ln.get("right_margin", settings.editor.line_numbers.right_margin)
            settings.editor.line_numbers.highlight_bar_width = ln.get("highlight_bar_width", settings.editor.line_numbers.highlight_bar_width)
        if "syntax" in editor:
            syn = editor["syntax"]
            settings.editor.syntax.keyword_color = syn.get("keyword_color", settings.editor.syntax.keyword_color)
            settings.editor.syntax.keyword_bold = syn.get("keyword_bold", settings.editor.syntax.keyword_bold)
            settings.editor.syntax.string_color = syn.get("string_color", settings.editor.syntax.string_color)
            settings.editor.syntax.number_color = syn.get("number_color", settings.editor.syntax.number_color)
            settings.editor.syntax.comment_color = syn.get("comment_color", settings.editor.syntax.comment_color)
            settings.editor.syntax.comment_italic = syn.get("comment_italic", settings.editor.syntax.comment_italic)

        # Canvas section
        canvas = data.get("canvas", {})
        if "zoom" in canvas:
            zm = canvas["zoom"]
            settings.canvas.zoom.wheel_factor = zm.get("wheel_factor", settings.canvas.zoom.wheel_factor)

        # Generation section
        gen = data.get("generation", {})
        settings.generation.model = gen.get("model", settings.generation.model)
        settings.generation.api_key_env = gen.get("api_key_env", settings.generation.api_key_env)
        settings.generation.max_attempts = max(1, int(gen.get("max_attempts", settings.generation.max_attempts)))
        settings.generation.retry_delay_ms = max(0, int(gen.get("retry_delay_ms", settings.generation.retry_delay_ms)))

        # Render section
        render = data.get("render", {})
        settings.render.mmdc_path = render.get("mmdc_path", settings.render.mmdc_path)
        settings.render.timeout_s = render.get("timeout_s", settings.render.timeout_s)
        settings.render.png_scale = render.get("png_scale", settings.render.png_scale)
        settings.render.node_spacing = render.get("node_spacing", settings.render.node_spacing)
        settings.render.rank_spacing = render.get("rank_spacing", settings.render.rank_spacing)
        settings.render.font_size = render.get("font_size", settings.render.font_size)

        # Ingest section
        ingest = data.get("ingest", {})
        settings.ingest.max_file_size_kb = ingest.get("max_file_size_kb", settings.ingest.max_file_size_kb)
        settings.ingest.max_files = ingest.get("max_files", settings.ingest.max_files)
        settings.ingest.ignored_dirs = list(ingest.get("ignored_dirs", settings.ingest.ignored_dirs))
        settings.ingest.ignored_extensions = [
            e.lower() for e in ingest.get("ignored_extensions", settings.ingest.ignored_extensions)
        ]

        # Theme token overrides (flat string table)
        tokens = data.get("theme_tokens", {})
        settings.theme_tokens = {str(k): str(v) for k, v in tokens.items()}

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        # Ensure directory exists
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        # Convert settings to TOML structure
        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)
        trace(f"Settings saved to {self.settings_file}", "SETTINGS")

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "general": {
                "theme": s.theme,
                "workspace_dir": s.workspace_dir,
            },
            "editor": {
                "font": {
                    "family": s.editor.font.family,
                    "size": s.editor.font.size,
                    "tab_width": s.editor.font.tab_width,
                },
                "line_numbers": {
                    "left_margin": s.editor.line_numbers.left_margin,
                    "right_margin": s.editor.line_numbers.right_margin,
                    "highlight_bar_width": s.editor.line_numbers.highlight_bar_width,
                },
                "syntax": {
                    "keyword_color": s.editor.syntax.keyword_color,
                    "keyword_bold": s.editor.syntax.keyword_bold,
                    "string_color": s.editor.syntax.string_color,
                    "number_color": s.editor.syntax.number_color,
                    "comment_color": s.editor.syntax.comment_color,
                    "comment_italic": s.editor.syntax.comment_italic,
                },
            },
            "canvas": {
                "zoom": {
                    "wheel_factor": s.canvas.zoom.wheel_factor,
                },
            },
            "generation": {
                "model": s.generation.model,
                "api_key_env": s.generation.api_key_env,
                "max_attempts": s.generation.max_attempts,
                "retry_delay_ms": s.generation.retry_delay_ms,
            },
            "render": {
                "mmdc_path": s.render.mmdc_path,
                "timeout_s": s.render.timeout_s,
                "png_scale": s.render.png_scale,
                "node_spacing": s.render.node_spacing,
                "rank_spacing": s.render.rank_spacing,
                "font_size": s.render.font_size,
            },
            "ingest": {
                "max_file_size_kb": s.ingest.max_file_size_kb,
                "max_files": s.ingest.max_files,
                "ignored_dirs": list(s.ingest.ignored_dirs),
                "ignored_extensions": list(s.ingest.ignored_extensions),
            },
            "theme_tokens": dict(s.theme_tokens),
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        data = self._to_toml_dict()
        return tomli_w.dumps(data)

    def get_workspace_dir(self) -> Path:
        """Get the resolved workspace directory path.

        Returns:
            Path to workspace directory. Falls back to ~/Documents/CodeFlow
            if workspace_dir setting is empty.
        """
        if self.settings.workspace_dir:
            return Path(self.settings.workspace_dir)
        return Path.home() / "Documents" / "CodeFlow"

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
