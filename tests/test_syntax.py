"""Mermaid text checks and diagram extraction from model replies."""
from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mermaid.syntax import diagram_keyword, extract_mermaid_block, looks_like_mermaid
from utils import iter_fenced_blocks, strip_markdown_fences


# ---------------------------------------------------------------------------
# Keyword detection
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("text, keyword", [
    ("graph TD\n  A --> B", "graph"),
    ("flowchart LR\n  A --> B", "flowchart"),
    ("stateDiagram-v2\n  [*] --> S", "stateDiagram-v2"),
    ("sequenceDiagram\n  A->>B: hi", "sequenceDiagram"),
    ("\n\n%% generated\ngraph TD\n  A", "graph"),
    ("---\ntitle: Demo\n---\nflowchart TD\n  A", "flowchart"),
    ("graph;A-->B", "graph"),
])
def test_diagram_keyword(text, keyword):
    assert diagram_keyword(text) == keyword
    assert looks_like_mermaid(text)


@pytest.mark.parametrize("text", [
    "",
    "   \n  ",
    "Here is the diagram you asked for.",
    "graphical overview",
    "%% only a comment",
    "---\ntitle: unterminated\ngraph TD",
])
def test_not_mermaid(text):
    assert not looks_like_mermaid(text)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def test_mermaid_fence_preferred():
    reply = (
        "Some notes:\n```text\nnot this\n```\n"
        "```mermaid\ngraph TD\n  A --> B\n```\nDone."
    )
    assert extract_mermaid_block(reply) == "graph TD\n  A --> B"


def test_unlabelled_fence_that_looks_like_mermaid():
    reply = "```\nflowchart LR\n  A --> B\n```"
    assert extract_mermaid_block(reply) == "flowchart LR\n  A --> B"


def test_bare_diagram_is_returned_as_is():
    assert extract_mermaid_block("graph TD\n  A --> B\n") == "graph TD\n  A --> B"


def test_prose_before_the_diagram_is_dropped():
    reply = "Sure! Here it is:\n\ngraph TD\n  A --> B"
    assert extract_mermaid_block(reply) == "graph TD\n  A --> B"


@pytest.mark.parametrize("reply", ["", "  ", "I could not find any code to analyse."])
def test_nothing_usable(reply):
    assert extract_mermaid_block(reply) == ""


# ---------------------------------------------------------------------------
# Fence helpers
# ---------------------------------------------------------------------------

def test_strip_markdown_fences():
    assert strip_markdown_fences("```mermaid\ngraph TD\n```") == "graph TD"
    assert strip_markdown_fences("  plain  ") == "plain"
    assert strip_markdown_fences(None) == ""


def test_iter_fenced_blocks_lowercases_language():
    blocks = iter_fenced_blocks("```Mermaid\ngraph TD\n```\n```\nx\n```\n```open")
    assert blocks == [("mermaid", "graph TD"), ("", "x")]
