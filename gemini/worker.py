"""
gemini/worker.py

Background worker that runs one generation request off the GUI thread.
"""

from __future__ import annotations

import traceback
from typing import Callable, List, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from gemini.orchestrator import GenerationOrchestrator, InputError, ServiceError, ServiceCall
from models import GenerationProgress, UploadedFile


class GenerateWorker(QObject):
    """
    Runs ``GenerationOrchestrator.generate`` on a worker thread.

    Signals:
        progress(object): GenerationProgress before each retry delay
        finished(str): Mermaid text on success
        failed(str): Terminal error message (verbatim for service errors)
        tokens_used(int): Total tokens reported across all attempts
    """

    progress = pyqtSignal(object)
    finished = pyqtSignal(str)
    failed = pyqtSignal(str)
    tokens_used = pyqtSignal(int)

    def __init__(self, files: List[UploadedFile], call: ServiceCall,
                 max_attempts: int = 3, retry_delay_ms: int = 3000,
                 sleep: Optional[Callable[[int], None]] = None):
        super().__init__()
        self.files = files
        self.orchestrator = GenerationOrchestrator(
            call,
            max_attempts=max_attempts,
            retry_delay_ms=retry_delay_ms,
            sleep=sleep,
            on_progress=self._emit_progress,
        )

    def _emit_progress(self, progress: GenerationProgress) -> None:
        self.progress.emit(progress)

    def run(self):
        """Execute the generation request."""
        try:
            document = self.orchestrator.generate(self.files)
            if self.orchestrator.tokens_used > 0:
                self.tokens_used.emit(self.orchestrator.tokens_used)
            self.finished.emit(document.text)
        except ServiceError as e:
            if self.orchestrator.tokens_used > 0:
                self.tokens_used.emit(self.orchestrator.tokens_used)
            self.failed.emit(e.message)
        except InputError as e:
            self.failed.emit(str(e))
        except Exception as e:
            msg = f"{e}\n\n{traceback.format_exc()}"
            self.failed.emit(msg)
