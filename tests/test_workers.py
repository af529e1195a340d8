"""Background workers and the Gemini service wrapper.

Workers are driven by calling ``run()`` on the test thread; the Gemini
client is a stand-in object with the same ``models.generate_content`` shape.
"""
from __future__ import annotations

import os
import sys
from types import SimpleNamespace

import pytest
from PyQt6.QtWidgets import QApplication

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from gemini.service import GeminiDiagramService, build_prompt
from gemini.worker import GenerateWorker
from mermaid.pipeline import RenderPipeline
from mermaid.renderer import RenderError, RenderOutput
from mermaid.worker import RenderWorker
from models import DiagramDocument, GenerationResult, UploadedFile


FILES = [
    UploadedFile(path="src/app.ts", content="export function main() {}"),
    UploadedFile(path="src/util.ts", content="export const x = 1;"),
]


@pytest.fixture(scope="session")
def qapp():
    """Provide a single QApplication for the entire test session."""
    app = QApplication.instance() or QApplication(sys.argv)
    yield app


class _Recorder:
    def __init__(self, worker):
        self.events = []
        for name in ("progress", "finished", "failed", "tokens_used"):
            sig = getattr(worker, name, None)
            if sig is not None:
                sig.connect(lambda *args, n=name: self.events.append((n,) + args))

    def names(self):
        return [e[0] for e in self.events]


# ---------------------------------------------------------------------------
# GenerateWorker
# ---------------------------------------------------------------------------

def test_generate_worker_reports_progress_then_success(qapp):
    outcomes = [GenerationResult(error="503 overloaded", tokens=3),
                GenerationResult(diagram="graph TD\n  A", tokens=4)]
    worker = GenerateWorker(FILES, lambda files: outcomes.pop(0), max_attempts=3,
                            retry_delay_ms=10, sleep=lambda ms: None)
    rec = _Recorder(worker)

    worker.run()

    assert rec.names() == ["progress", "tokens_used", "finished"]
    assert rec.events[0][1].attempt == 1
    assert rec.events[1] == ("tokens_used", 7)
    assert rec.events[2] == ("finished", "graph TD\n  A")


def test_generate_worker_passes_service_message_through(qapp):
    worker = GenerateWorker(FILES, lambda files: GenerationResult(error="API key not valid"),
                            sleep=lambda ms: None)
    rec = _Recorder(worker)

    worker.run()

    assert rec.events == [("failed", "API key not valid")]


def test_generate_worker_reports_missing_input(qapp):
    worker = GenerateWorker([], lambda files: GenerationResult(diagram="graph TD"))
    rec = _Recorder(worker)

    worker.run()

    assert rec.names() == ["failed"]
    assert "Please enter some code" in rec.events[0][1]


# ---------------------------------------------------------------------------
# RenderWorker
# ---------------------------------------------------------------------------

def test_render_worker_hands_back_ticket_and_output(qapp):
    pipeline = RenderPipeline(lambda rid, text: RenderOutput(svg="<svg/>"))
    ticket = pipeline.begin(DiagramDocument("graph TD\n  A"))
    calls = []

    def library(render_id, text):
        calls.append((render_id, text))
        return RenderOutput(svg="<svg/>")

    worker = RenderWorker(library, ticket)
    rec = _Recorder(worker)
    worker.run()

    assert calls == [(ticket.render_id, "graph TD\n  A")]
    assert rec.events == [("finished", ticket, RenderOutput(svg="<svg/>"))]


def test_render_worker_reports_render_errors(qapp):
    pipeline = RenderPipeline(lambda rid, text: RenderOutput(svg="<svg/>"))
    ticket = pipeline.begin(DiagramDocument("graph TD\n  A"))

    def library(render_id, text):
        raise RenderError("Parse error on line 1")

    worker = RenderWorker(library, ticket)
    rec = _Recorder(worker)
    worker.run()

    assert rec.events == [("failed", ticket, "Parse error on line 1")]


# ---------------------------------------------------------------------------
# Gemini service
# ---------------------------------------------------------------------------

class FakeModels:
    def __init__(self, text=None, error=None, tokens=0):
        self.text = text
        self.error = error
        self.tokens = tokens
        self.requests = []

    def generate_content(self, model, contents):
        self.requests.append((model, contents))
        if self.error is not None:
            raise self.error
        usage = SimpleNamespace(total_token_count=self.tokens)
        return SimpleNamespace(text=self.text, usage_metadata=usage)


def _service(models):
    return GeminiDiagramService(model="gemini-test", client=SimpleNamespace(models=models))


def test_prompt_keeps_file_order_and_paths():
    prompt = build_prompt(FILES)
    assert prompt.index("--- src/app.ts ---") < prompt.index("--- src/util.ts ---")
    assert "export const x = 1;" in prompt
    assert "graph TD" in prompt


def test_service_extracts_the_diagram():
    models = FakeModels(text="Here:\n```mermaid\ngraph TD\n  A --> B\n```", tokens=12)

    result = _service(models)(FILES)

    assert result == GenerationResult(diagram="graph TD\n  A --> B", tokens=12)
    assert models.requests[0][0] == "gemini-test"


def test_service_reply_without_diagram_is_empty():
    result = _service(FakeModels(text="I cannot help with that."))(FILES)
    assert result.diagram is None
    assert result.error is None


def test_service_exceptions_become_error_results():
    result = _service(FakeModels(error=RuntimeError("503 UNAVAILABLE")))(FILES)
    assert result.error == "503 UNAVAILABLE"


def test_missing_api_key_is_an_error_result(monkeypatch):
    monkeypatch.delenv("CODEFLOW_TEST_KEY", raising=False)
    service = GeminiDiagramService(api_key_env="CODEFLOW_TEST_KEY")

    result = service(FILES)

    assert result.error == "CODEFLOW_TEST_KEY is not set."
