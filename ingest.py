"""
ingest.py

Loading source text for generation: single files, filtered folder trees,
and the choice between an uploaded folder and the editor text.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Sequence

from debug_trace import trace
from models import FOLDER_SUMMARY_PREFIX, SINGLE_FILE_PATH, UploadedFile
from settings import IngestSettings

SUMMARY_PREVIEW_COUNT = 5


def load_file(path: str) -> str:
    """Read a text file, replacing undecodable bytes."""
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


def _is_ignored_dir(name: str, settings: IngestSettings) -> bool:
    return name in set(settings.ignored_dirs)


def collect_folder(root: str, settings: Optional[IngestSettings] = None) -> List[UploadedFile]:
    """Collect the text files under *root*.

    Skips ignored directories and extensions, files larger than
    ``max_file_size_kb`` and files that are not UTF-8 text, and stops at
    ``max_files``.  Paths are relative to *root* with forward slashes,
    sorted.
    """
    if settings is None:
        from settings import get_settings
        settings = get_settings().settings.ingest

    root_path = Path(root)
    if not root_path.is_dir():
        raise NotADirectoryError(root)

    ignored_ext = {e.lower() for e in settings.ignored_extensions}
    max_bytes = settings.max_file_size_kb * 1024

    candidates: List[str] = []
    for dirpath, dirnames, filenames in os.walk(root_path):
        dirnames[:] = sorted(d for d in dirnames if not _is_ignored_dir(d, settings))
        for name in filenames:
            if Path(name).suffix.lower() in ignored_ext:
                continue
            full = Path(dirpath) / name
            rel = full.relative_to(root_path).as_posix()
            candidates.append(rel)

    files: List[UploadedFile] = []
    skipped = 0
    for rel in sorted(candidates):
        if len(files) >= settings.max_files:
            trace(f"File limit {settings.max_files} reached; ignoring the rest", "INGEST")
            break
        full = root_path / rel
        try:
            if full.stat().st_size > max_bytes:
                skipped += 1
                continue
            content = full.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError):
            skipped += 1
            continue
        files.append(UploadedFile(path=rel, content=content))

    trace(f"Collected {len(files)} file(s) from {root_path} ({skipped} skipped)", "INGEST")
    return files


def folder_summary(files: Sequence[UploadedFile]) -> str:
    """Editor placeholder text shown after a folder upload."""
    n = len(files)
    lines = [f"{FOLDER_SUMMARY_PREFIX} {n} file{'s' if n != 1 else ''} ready for analysis.", ""]
    lines += [f"- {f.path}" for f in files[:SUMMARY_PREVIEW_COUNT]]
    if n > SUMMARY_PREVIEW_COUNT:
        lines.append("...")
    return "\n".join(lines)


def is_folder_summary(text: str) -> bool:
    return (text or "").startswith(FOLDER_SUMMARY_PREFIX)


def resolve_generation_input(code: str, folder_files: Optional[Sequence[UploadedFile]]) -> List[UploadedFile]:
    """Pick what to send: the folder if any, else the editor text.

    Returns an empty list when there is nothing usable (blank editor, or
    only the folder placeholder).
    """
    if folder_files:
        return list(folder_files)
    if code and code.strip() and not is_folder_summary(code):
        return [UploadedFile(path=SINGLE_FILE_PATH, content=code)]
    return []
