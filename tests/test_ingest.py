"""Folder ingestion, the folder placeholder text, and choosing what to send."""
from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from ingest import (
    collect_folder,
    folder_summary,
    is_folder_summary,
    load_file,
    resolve_generation_input,
)
from models import SINGLE_FILE_PATH, UploadedFile
from settings import IngestSettings


def _write(root, rel, content="x = 1\n"):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# collect_folder
# ---------------------------------------------------------------------------

def test_paths_are_relative_sorted_and_posix(tmp_path):
    _write(tmp_path, "src/b.ts")
    _write(tmp_path, "src/a.ts")
    _write(tmp_path, "README.md")
    _write(tmp_path, "src/lib/util.ts")

    files = collect_folder(str(tmp_path), IngestSettings())

    assert [f.path for f in files] == ["README.md", "src/a.ts", "src/b.ts", "src/lib/util.ts"]
    assert files[1].content == "x = 1\n"


def test_ignored_dirs_and_extensions_are_skipped(tmp_path):
    _write(tmp_path, "src/app.py")
    _write(tmp_path, "node_modules/pkg/index.js")
    _write(tmp_path, ".git/config")
    _write(tmp_path, "logo.PNG", b"\x89PNG")

    files = collect_folder(str(tmp_path), IngestSettings())

    assert [f.path for f in files] == ["src/app.py"]


def test_oversize_and_binary_files_are_skipped(tmp_path):
    _write(tmp_path, "big.txt", "a" * 2048)
    _write(tmp_path, "blob.dat", b"\xff\xfe\x00\x81")
    _write(tmp_path, "ok.txt", "fine")

    files = collect_folder(str(tmp_path), IngestSettings(max_file_size_kb=1))

    assert [f.path for f in files] == ["ok.txt"]


def test_file_limit(tmp_path):
    for i in range(5):
        _write(tmp_path, f"f{i}.txt")

    files = collect_folder(str(tmp_path), IngestSettings(max_files=3))

    assert [f.path for f in files] == ["f0.txt", "f1.txt", "f2.txt"]


def test_not_a_directory(tmp_path):
    path = _write(tmp_path, "single.txt")
    with pytest.raises(NotADirectoryError):
        collect_folder(str(path), IngestSettings())


def test_load_file_replaces_bad_bytes(tmp_path):
    path = _write(tmp_path, "mixed.txt", b"ok \xff end")
    assert load_file(str(path)) == "ok \ufffd end"


# ---------------------------------------------------------------------------
# Folder placeholder
# ---------------------------------------------------------------------------

def test_folder_summary_lists_the_first_five():
    files = [UploadedFile(path=f"src/f{i}.ts", content="") for i in range(7)]

    text = folder_summary(files)

    lines = text.splitlines()
    assert lines[0] == "Folder uploaded: 7 files ready for analysis."
    assert lines[1] == ""
    assert lines[2:7] == [f"- src/f{i}.ts" for i in range(5)]
    assert lines[7] == "..."
    assert is_folder_summary(text)


def test_folder_summary_singular():
    text = folder_summary([UploadedFile(path="main.go", content="")])
    assert text == "Folder uploaded: 1 file ready for analysis.\n\n- main.go"


# ---------------------------------------------------------------------------
# resolve_generation_input
# ---------------------------------------------------------------------------

def test_folder_takes_precedence_over_editor_text():
    folder = [UploadedFile(path="a.py", content="pass")]
    assert resolve_generation_input("print(1)", folder) == folder


def test_editor_text_becomes_a_single_file():
    files = resolve_generation_input("print(1)", None)
    assert files == [UploadedFile(path=SINGLE_FILE_PATH, content="print(1)")]


@pytest.mark.parametrize("code", ["", "   \n", "Folder uploaded: 3 files ready for analysis."])
def test_nothing_to_send(code):
    assert resolve_generation_input(code, []) == []
