"""
gemini/service.py

Generation service: turns uploaded source files into Mermaid text with
Gemini.

The service never raises for service-side problems; every failure is
reported as ``GenerationResult(error=...)`` so the orchestrator can
classify the message.
"""

from __future__ import annotations

import os
from typing import Optional, Sequence

from google import genai

from debug_trace import trace
from mermaid.syntax import extract_mermaid_block
from models import GenerationResult, UploadedFile


def build_prompt(files: Sequence[UploadedFile]) -> str:
    """Build the diagram prompt for *files* in their given order."""
    sections = []
    for f in files:
        sections.append(f"--- {f.path} ---\n{f.content}")
    sources = "\n\n".join(sections)

    return f"""You are an expert at creating Mermaid diagrams to visualize code structure.

Analyze the source files below and produce ONE Mermaid flowchart that shows
the important classes, functions, components and the relationships between them
(calls, imports, inheritance, data flow).

Rules:
- Start the diagram with "graph TD".
- Put the elements of each file in their own subgraph. The subgraph label must be
  EXACTLY the file path as written in the "--- path ---" header, in double quotes,
  for example: subgraph file_1["src/app.ts"]
- Give every node a simple identifier and a quoted, single-line label,
  for example: fn_main["main"]
- Do not use HTML, line breaks or markdown inside labels.
- Return only the Mermaid diagram inside a ```mermaid code block.

Source files:

{sources}
"""


class GeminiDiagramService:
    """Callable generation service backed by ``google-genai``.

    Args:
        model: Gemini model name.
        api_key_env: Environment variable holding the API key.
        client: Pre-built ``genai.Client``; created lazily when None.
    """

    def __init__(self, model: str = "gemini-2.5-flash", api_key_env: str = "GOOGLE_API_KEY",
                 client: Optional[object] = None):
        self.model = model
        self.api_key_env = api_key_env
        self._client = client

    def _get_client(self):
        if self._client is None:
            api_key = os.environ.get(self.api_key_env, "").strip()
            if not api_key:
                raise RuntimeError(f"{self.api_key_env} is not set.")
            self._client = genai.Client(api_key=api_key)
        return self._client

    def __call__(self, files: Sequence[UploadedFile]) -> GenerationResult:
        try:
            client = self._get_client()
            prompt = build_prompt(files)
            trace(f"Requesting diagram from {self.model} for {len(files)} file(s), "
                  f"{len(prompt)} prompt chars", "GEN")

            response = client.models.generate_content(
                model=self.model,
                contents=[prompt],
            )

            text = getattr(response, "text", None) or ""
            tokens = 0
            usage = getattr(response, "usage_metadata", None)
            if usage:
                tokens = getattr(usage, "total_token_count", 0) or 0

            diagram = extract_mermaid_block(text)
            trace(f"Reply: {len(text)} chars, diagram {len(diagram)} chars, {tokens} tokens", "GEN")
            return GenerationResult(diagram=diagram or None, tokens=tokens)

        except Exception as e:
            trace(f"Generation call failed: {type(e).__name__}: {e}", "GEN")
            return GenerationResult(error=str(e) or type(e).__name__)
