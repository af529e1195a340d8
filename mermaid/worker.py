"""
mermaid/worker.py

Background worker that runs the Mermaid CLI off the GUI thread.
"""

from __future__ import annotations

import traceback

from PyQt6.QtCore import QObject, pyqtSignal

from mermaid.pipeline import Library, RenderTicket
from mermaid.renderer import RenderError


class RenderWorker(QObject):
    """
    Calls the rendering library for one ticket.

    The result is handed back untouched; the GUI thread decides whether
    the ticket is still live.

    Signals:
        finished(object, object): (RenderTicket, RenderOutput)
        failed(object, str): (RenderTicket, error message)
    """

    finished = pyqtSignal(object, object)
    failed = pyqtSignal(object, str)

    def __init__(self, library: Library, ticket: RenderTicket):
        super().__init__()
        self.library = library
        self.ticket = ticket

    def run(self):
        """Execute the render."""
        try:
            output = self.library(self.ticket.render_id, self.ticket.document.text)
            self.finished.emit(self.ticket, output)
        except RenderError as e:
            self.failed.emit(self.ticket, str(e))
        except Exception as e:
            msg = f"{e}\n\n{traceback.format_exc()}"
            self.failed.emit(self.ticket, msg)
