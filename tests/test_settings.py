"""Settings persistence: defaults, TOML round trip and recovery from bad files."""
from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from settings import AppSettings, SettingsManager, tomllib


def test_missing_file_gives_defaults(tmp_path):
    sm = SettingsManager(config_dir=tmp_path)

    s = sm.settings
    assert s.theme == "Tailwind"
    assert s.generation.max_attempts == 3
    assert s.generation.retry_delay_ms == 3000
    assert s.generation.api_key_env == "GOOGLE_API_KEY"
    assert s.render.timeout_s == 60
    assert "node_modules" in s.ingest.ignored_dirs
    assert s.theme_tokens == {}


def test_ensure_file_complete_writes_every_section(tmp_path):
    sm = SettingsManager(config_dir=tmp_path)
    sm.ensure_file_complete()

    assert sm.get_settings_path().is_file()
    with open(sm.get_settings_path(), "rb") as f:
        data = tomllib.load(f)
    for section in ("general", "editor", "canvas", "generation", "render", "ingest"):
        assert section in data


def test_round_trip(tmp_path):
    sm = SettingsManager(config_dir=tmp_path)
    sm.settings.theme = "Foundation (Dark)"
    sm.settings.generation.model = "gemini-2.5-pro"
    sm.settings.generation.max_attempts = 5
    sm.settings.generation.retry_delay_ms = 1500
    sm.settings.render.png_scale = 3.0
    sm.settings.ingest.max_files = 10
    sm.settings.theme_tokens = {"accent": "#FF00FF"}
    sm.save()

    again = SettingsManager(config_dir=tmp_path).settings
    assert again.theme == "Foundation (Dark)"
    assert again.generation.model == "gemini-2.5-pro"
    assert again.generation.max_attempts == 5
    assert again.generation.retry_delay_ms == 1500
    assert again.render.png_scale == 3.0
    assert again.ingest.max_files == 10
    assert again.theme_tokens == {"accent": "#FF00FF"}


def test_retry_values_are_clamped(tmp_path):
    (tmp_path / "settings.toml").write_text(
        "[generation]\nmax_attempts = 0\nretry_delay_ms = -50\n", encoding="utf-8")

    s = SettingsManager(config_dir=tmp_path).settings
    assert s.generation.max_attempts == 1
    assert s.generation.retry_delay_ms == 0


def test_ignored_extensions_are_lowercased(tmp_path):
    (tmp_path / "settings.toml").write_text(
        '[ingest]\nignored_extensions = [".PNG", ".Lock"]\n', encoding="utf-8")

    s = SettingsManager(config_dir=tmp_path).settings
    assert s.ingest.ignored_extensions == [".png", ".lock"]


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    (tmp_path / "settings.toml").write_text("this is [not toml", encoding="utf-8")

    s = SettingsManager(config_dir=tmp_path).settings
    assert s == AppSettings()


def test_to_toml_mentions_theme(tmp_path):
    sm = SettingsManager(config_dir=tmp_path)
    assert 'theme = "Tailwind"' in sm.to_toml()
