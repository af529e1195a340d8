"""
main.py

CodeFlow - Code to Interactive Diagram

PyQt6 application that:
- Sends source code (typed, a file, or a folder tree) to Gemini
- Renders the returned Mermaid diagram with the Mermaid CLI
- Highlights every diagram element sharing the clicked label
- Shows an uploaded file in the code panel when its subgraph is clicked

Usage:
    python main.py

Dependencies:
    pip install PyQt6 pillow google-genai platformdirs tomli-w
    npm install -g @mermaid-js/mermaid-cli

Environment:
    GOOGLE_API_KEY=... (required for generation)
    MMDC_PATH=...      (optional, path to mmdc)
"""

from __future__ import annotations

import os
import sys
from typing import Dict, List, Optional

from PyQt6.QtCore import Qt, QThread
from PyQt6.QtGui import QAction, QActionGroup, QKeySequence
from PyQt6.QtWidgets import (
    QApplication,
    QFileDialog,
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from canvas.view import DiagramView
from debug_trace import close_log, trace, trace_exception
from editor.code_editor import CodeEditor
from editor.highlighter import CodeHighlighter
from export import export_mermaid_source, export_png, export_svg
from gemini.orchestrator import GenerationOrchestrator, InputError
from gemini.service import GeminiDiagramService
from gemini.worker import GenerateWorker
from highlight.synchronizer import HighlightSynchronizer
from ingest import collect_folder, folder_summary, is_folder_summary, load_file, resolve_generation_input
from mermaid.pipeline import RenderGeneration, RenderPipeline, RenderTicket
from mermaid.renderer import MermaidRenderer, RenderError, RenderOutput
from mermaid.worker import RenderWorker
from models import DiagramDocument, GenerationProgress, UploadedFile
from settings import SettingsManager, get_settings
from styles import DEFAULT_STYLE, LINE_NUMBER_COLORS, STYLES
from theme import ThemeResolver


def _make_panel(title: str, hint: str) -> tuple:
    """Framed panel with a title and hint line; returns (frame, layout)."""
    frame = QFrame()
    frame.setObjectName("panel")
    layout = QVBoxLayout(frame)
    layout.setContentsMargins(12, 8, 12, 12)
    layout.setSpacing(6)

    title_lbl = QLabel(title)
    title_lbl.setObjectName("panelTitle")
    layout.addWidget(title_lbl)

    hint_lbl = QLabel(hint)
    hint_lbl.setObjectName("panelHint")
    hint_lbl.setWordWrap(True)
    layout.addWidget(hint_lbl)
    return frame, layout


class MainWindow(QMainWindow):
    """
    Main application window.

    Left: code panel (editor, inspect label, open/generate buttons).
    Right: diagram panel.
    """

    def __init__(self, settings_manager: SettingsManager):
        super().__init__()
        self.settings_manager = settings_manager
        self.setWindowTitle("CodeFlow - Visualize Code as Interactive Diagrams")

        # Rendering core
        self.theme = ThemeResolver()
        self.renderer = MermaidRenderer()
        self.theme.initialize(self.renderer.initialize)

        self.pipeline = RenderPipeline(self.renderer, on_select=self._on_element_selected)
        # The view must show a generation before the synchronizer restyles it
        self.pipeline.add_listener(on_rendered=self._on_rendered, on_cleared=self._on_cleared)
        self.sync = HighlightSynchronizer(
            self.theme.resolve,
            on_file_selected=self._show_uploaded_file,
            on_restyled=self._on_restyled,
        )
        self.sync.attach(self.pipeline)

        # Input state
        self._folder_files: Optional[List[UploadedFile]] = None
        self._document: Optional[DiagramDocument] = None
        self._busy = False

        # Worker threads
        self._gen_thread: Optional[QThread] = None
        self._gen_worker: Optional[GenerateWorker] = None
        self._render_jobs: Dict[int, tuple] = {}

        self._build_ui()
        self._build_menus()

        style = getattr(QApplication.instance(), "_current_style", DEFAULT_STYLE)
        self.editor.set_line_number_colors(LINE_NUMBER_COLORS.get(style, {}))
        self.view.set_text_color(self.theme.resolve()["foreground"])
        self.view.show_placeholder()

        self.statusBar().showMessage("Paste code or open a file/folder, then click Generate Diagram.")

    # ----------------------------
    # UI construction
    # ----------------------------

    def _build_ui(self):
        """Build the two panels."""
        code_frame, code_layout = _make_panel("Code Input", "Paste your code or upload a file or folder.")

        self.editor = CodeEditor()
        self.highlighter = CodeHighlighter(self.editor.document())
        self.editor.user_edited.connect(self._on_code_edited)
        code_layout.addWidget(self.editor, 1)

        self.inspect_label = QLabel()
        self.inspect_label.setObjectName("inspectLabel")
        self.inspect_label.setWordWrap(True)
        self.inspect_label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        self.inspect_label.hide()
        code_layout.addWidget(self.inspect_label)

        buttons = QHBoxLayout()
        self.open_file_btn = QPushButton("Upload File")
        self.open_file_btn.clicked.connect(self.open_file_dialog)
        buttons.addWidget(self.open_file_btn)

        self.open_folder_btn = QPushButton("Upload Folder")
        self.open_folder_btn.clicked.connect(self.open_folder_dialog)
        buttons.addWidget(self.open_folder_btn)

        buttons.addStretch(1)

        self.generate_btn = QPushButton("Generate Diagram")
        self.generate_btn.setObjectName("generateButton")
        self.generate_btn.clicked.connect(self.generate_diagram)
        buttons.addWidget(self.generate_btn)
        code_layout.addLayout(buttons)

        diagram_frame, diagram_layout = _make_panel(
            "Diagram View", "Visual representation of your code. Click nodes to highlight.")
        self.view = DiagramView(self._on_drop_path)
        diagram_layout.addWidget(self.view, 1)

        self.main_splitter = QSplitter(Qt.Orientation.Horizontal)
        self.main_splitter.addWidget(code_frame)
        self.main_splitter.addWidget(diagram_frame)
        self.main_splitter.setStretchFactor(0, 2)
        self.main_splitter.setStretchFactor(1, 3)

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.addWidget(self.main_splitter)
        self.setCentralWidget(central)

    def _build_menus(self):
        """Build the application menu bar."""
        menubar = self.menuBar()

        # File menu
        file_menu = menubar.addMenu("&File")

        open_file = QAction("Open File...", self)
        open_file.setShortcut(QKeySequence.StandardKey.Open)
        open_file.triggered.connect(self.open_file_dialog)
        file_menu.addAction(open_file)

        open_folder = QAction("Open Folder...", self)
        open_folder.setShortcut("Ctrl+Shift+O")
        open_folder.triggered.connect(self.open_folder_dialog)
        file_menu.addAction(open_folder)

        file_menu.addSeparator()

        self.generate_act = QAction("Generate Diagram", self)
        self.generate_act.setShortcut("Ctrl+Return")
        self.generate_act.triggered.connect(self.generate_diagram)
        file_menu.addAction(self.generate_act)

        file_menu.addSeparator()

        export_mmd = QAction("Export Mermaid (.mmd)...", self)
        export_mmd.triggered.connect(self.export_mermaid_dialog)
        file_menu.addAction(export_mmd)

        export_svg_act = QAction("Export SVG...", self)
        export_svg_act.triggered.connect(self.export_svg_dialog)
        file_menu.addAction(export_svg_act)

        export_png_act = QAction("Export PNG...", self)
        export_png_act.triggered.connect(self.export_png_dialog)
        file_menu.addAction(export_png_act)

        file_menu.addSeparator()

        exit_act = QAction("&Quit", self)
        exit_act.setShortcut(QKeySequence.StandardKey.Quit)
        exit_act.triggered.connect(self.close)
        file_menu.addAction(exit_act)

        # View menu
        view_menu = menubar.addMenu("&View")

        zoom_in_act = QAction("Zoom In", self)
        zoom_in_act.setShortcut(QKeySequence.StandardKey.ZoomIn)
        zoom_in_act.triggered.connect(lambda: self.view.zoom_in())
        view_menu.addAction(zoom_in_act)

        zoom_out_act = QAction("Zoom Out", self)
        zoom_out_act.setShortcut(QKeySequence.StandardKey.ZoomOut)
        zoom_out_act.triggered.connect(lambda: self.view.zoom_out())
        view_menu.addAction(zoom_out_act)

        view_menu.addSeparator()

        zoom_fit_act = QAction("Zoom to Fit", self)
        zoom_fit_act.setShortcut("Ctrl+0")
        zoom_fit_act.triggered.connect(lambda: self.view.zoom_fit())
        view_menu.addAction(zoom_fit_act)

        zoom_reset_act = QAction("Zoom 100%", self)
        zoom_reset_act.setShortcut("Ctrl+1")
        zoom_reset_act.triggered.connect(lambda: self.view.zoom_reset())
        view_menu.addAction(zoom_reset_act)

        view_menu.addSeparator()

        clear_act = QAction("Clear Highlight", self)
        clear_act.setShortcut(QKeySequence(Qt.Key.Key_Escape))
        clear_act.triggered.connect(lambda: self._on_element_selected(None))
        view_menu.addAction(clear_act)

        view_menu.addSeparator()

        theme_menu = view_menu.addMenu("Theme")
        self._theme_group = QActionGroup(self)
        self._theme_group.setExclusive(True)
        current = getattr(QApplication.instance(), "_current_style", DEFAULT_STYLE)
        for name in STYLES:
            act = QAction(name, self)
            act.setCheckable(True)
            act.setChecked(name == current)
            act.triggered.connect(lambda _checked, n=name: self.apply_style(n))
            self._theme_group.addAction(act)
            theme_menu.addAction(act)

    # ----------------------------
    # Theme
    # ----------------------------

    def apply_style(self, name: str):
        """Switch the application theme and re-colour the diagram."""
        app = QApplication.instance()
        if name not in STYLES or name == getattr(app, "_current_style", None):
            return
        trace(f"Switching theme to {name}", "THEME")
        app.setStyleSheet(STYLES[name])
        app._current_style = name
        self.settings_manager.settings.theme = name
        self.editor.set_line_number_colors(LINE_NUMBER_COLORS.get(name, {}))
        self.view.set_text_color(self.theme.resolve()["foreground"])

        # Rendered defaults come from the Mermaid config, so re-render
        self.renderer.initialize(self.theme.resolve())
        if self._document is not None and not self._busy:
            self._start_render(self._document)

    # ----------------------------
    # Input
    # ----------------------------

    def _drop_folder(self):
        if self._folder_files is not None:
            trace("Folder upload dropped", "INGEST")
        self._folder_files = None
        self.sync.set_files([])

    def _on_code_edited(self, text: str):
        """Typing after a folder upload means the typed code should be analysed."""
        if self._folder_files and not is_folder_summary(text):
            self._drop_folder()
            self.statusBar().showMessage("Folder cleared; the editor text will be analysed.")

    def open_file_dialog(self):
        start_dir = str(self.settings_manager.get_workspace_dir())
        path, _ = QFileDialog.getOpenFileName(self, "Open Source File", start_dir, "All Files (*)")
        if path:
            self.open_file(path)

    def open_file(self, path: str):
        try:
            content = load_file(path)
        except OSError as e:
            QMessageBox.critical(self, "Open failed", str(e))
            return
        self._drop_folder()
        self.editor.set_code(content)
        self.statusBar().showMessage(f"Loaded {os.path.basename(path)}")
        trace(f"Loaded file {path} ({len(content)} chars)", "INGEST")

    def open_folder_dialog(self):
        start_dir = str(self.settings_manager.get_workspace_dir())
        path = QFileDialog.getExistingDirectory(self, "Open Source Folder", start_dir)
        if path:
            self.open_folder(path)

    def open_folder(self, path: str):
        try:
            files = collect_folder(path, self.settings_manager.settings.ingest)
        except OSError as e:
            QMessageBox.critical(self, "Open failed", str(e))
            return
        if not files:
            QMessageBox.information(self, "No files", "The folder contains no readable source files.")
            return
        self._folder_files = files
        self.editor.set_code(folder_summary(files))
        self.sync.set_files(files)
        self.statusBar().showMessage(f"Folder uploaded: {len(files)} file(s) ready for analysis.")

    def _on_drop_path(self, path: str):
        if os.path.isdir(path):
            self.open_folder(path)
        else:
            self.open_file(path)

    def _show_uploaded_file(self, f: UploadedFile):
        self.editor.set_code(f.content, read_only=True, path=f.path)
        self.editor.scroll_to_first_occurrence()
        self.statusBar().showMessage(f"File loaded in editor: {f.path}")

    def _restore_input(self):
        """Leave a file shown from the diagram and return to the editable input."""
        summary = folder_summary(self._folder_files) if self._folder_files else ""
        self.editor.set_code(summary)
        self.statusBar().showMessage("Back to input.")

    # ----------------------------
    # Generation
    # ----------------------------

    def _set_busy(self, busy: bool):
        self._busy = busy
        self.generate_btn.setEnabled(not busy)
        self.generate_act.setEnabled(not busy)
        self.generate_btn.setText("Generating..." if busy else "Generate Diagram")

    def generate_diagram(self):
        """Start a generation request for the current input."""
        if self._busy:
            return

        try:
            files = GenerationOrchestrator.validate_input(
                resolve_generation_input(self.editor.toPlainText(), self._folder_files)
            )
        except InputError as e:
            QMessageBox.warning(self, "Input Required", str(e))
            return

        gen = self.settings_manager.settings.generation
        service = GeminiDiagramService(model=gen.model, api_key_env=gen.api_key_env)

        self._set_busy(True)
        self._document = None
        self.pipeline.clear()
        self.view.show_busy()
        self.statusBar().showMessage(f"Sending {len(files)} file(s) to {gen.model} ...")

        self._gen_thread = QThread()
        self._gen_worker = GenerateWorker(files, service, gen.max_attempts, gen.retry_delay_ms)
        self._gen_worker.moveToThread(self._gen_thread)

        self._gen_thread.started.connect(self._gen_worker.run)
        self._gen_worker.progress.connect(self.on_generation_progress)
        self._gen_worker.tokens_used.connect(self.on_tokens_used)
        self._gen_worker.finished.connect(self.on_generation_finished)
        self._gen_worker.failed.connect(self.on_generation_failed)

        self._gen_worker.finished.connect(self._gen_thread.quit)
        self._gen_worker.failed.connect(self._gen_thread.quit)

        def _reenable():
            self._set_busy(False)

        self._gen_thread.finished.connect(_reenable)
        self._gen_thread.finished.connect(self._gen_thread.deleteLater)

        self._gen_thread.start()

    def on_generation_progress(self, progress: GenerationProgress):
        self.statusBar().showMessage(progress.describe())
        self.view.show_busy(f"Generating diagram...\n\n{progress.describe()}")

    def on_tokens_used(self, total: int):
        trace(f"Tokens used: {total}", "GEN")

    def on_generation_finished(self, text: str):
        self._document = DiagramDocument(text)
        self.statusBar().showMessage("Diagram generated. Rendering...")
        self._start_render(self._document)

    def on_generation_failed(self, err: str):
        QMessageBox.critical(self, "Generation Failed", err)
        self.view.show_message(err, is_error=True)
        self.statusBar().showMessage("Generation failed.")

    # ----------------------------
    # Rendering
    # ----------------------------

    def _start_render(self, document: DiagramDocument):
        try:
            ticket = self.pipeline.begin(document)
        except RenderError:
            # Already reported through the pipeline's clear notification
            return
        self.view.show_busy("Rendering diagram...")

        thread = QThread()
        worker = RenderWorker(self.renderer, ticket)
        worker.moveToThread(thread)

        thread.started.connect(worker.run)
        worker.finished.connect(self.on_render_finished)
        worker.failed.connect(self.on_render_failed)
        worker.finished.connect(thread.quit)
        worker.failed.connect(thread.quit)

        def _forget(number=ticket.number):
            self._render_jobs.pop(number, None)

        thread.finished.connect(_forget)
        thread.finished.connect(thread.deleteLater)

        self._render_jobs[ticket.number] = (thread, worker)
        thread.start()

    def on_render_finished(self, ticket: RenderTicket, output: RenderOutput):
        try:
            self.pipeline.complete(ticket, output)
        except RenderError:
            pass  # shown by _on_cleared

    def on_render_failed(self, ticket: RenderTicket, err: str):
        self.pipeline.fail(ticket, err)

    def _on_rendered(self, generation: RenderGeneration):
        self.view.show_generation(generation)
        n = len(generation.interactive_elements())
        self.statusBar().showMessage(f"Diagram rendered: {n} clickable element(s).")

    def _on_cleared(self, error: Optional[RenderError]):
        if error is not None:
            self.view.show_error(str(error))
            self.statusBar().showMessage("Diagram rendering failed.")
        elif not self._busy:
            self.view.show_placeholder()

    def _on_restyled(self, generation: RenderGeneration, count: int):
        if self.view.generation is generation:
            self.view.refresh_graphic()

    # ----------------------------
    # Selection
    # ----------------------------

    def _on_element_selected(self, identity: Optional[str]):
        # Term first, so a file shown by the redirect is highlighted too
        self.editor.set_highlight_term(identity)
        self.sync.select(identity)
        current = self.sync.identity
        if self.editor.shown_path and self.sync.find_file(current) is None:
            self._restore_input()
        if current:
            self.inspect_label.setText(f"<b>Inspecting in diagram:</b> {current}")
            self.inspect_label.show()
        else:
            self.inspect_label.hide()

    # ----------------------------
    # Export
    # ----------------------------

    def _export_path(self, title: str, default_name: str, filt: str) -> str:
        start = os.path.join(str(self.settings_manager.get_workspace_dir()), default_name)
        path, _ = QFileDialog.getSaveFileName(self, title, start, filt)
        return path

    def export_mermaid_dialog(self):
        if self._document is None:
            QMessageBox.information(self, "Nothing to export", "No diagram content to export.")
            return
        path = self._export_path("Export Mermaid", "diagram.mmd", "Mermaid (*.mmd)")
        if not path:
            return
        try:
            export_mermaid_source(self._document, path)
        except (OSError, ValueError) as e:
            QMessageBox.critical(self, "Export failed", str(e))
            return
        self.statusBar().showMessage(f"Mermaid source saved to {path}")

    def export_svg_dialog(self):
        if self.pipeline.graphic is None:
            QMessageBox.information(self, "Nothing to export", "No diagram rendered to export.")
            return
        path = self._export_path("Export SVG", "diagram.svg", "SVG (*.svg)")
        if not path:
            return
        try:
            export_svg(self.pipeline.graphic, path)
        except (OSError, ValueError) as e:
            QMessageBox.critical(self, "Export failed", str(e))
            return
        self.statusBar().showMessage(f"SVG saved to {path}")

    def export_png_dialog(self):
        if self.pipeline.graphic is None:
            QMessageBox.information(self, "Nothing to export", "No diagram rendered to export as PNG.")
            return
        path = self._export_path("Export PNG", "diagram.png", "PNG (*.png)")
        if not path:
            return
        scale = self.settings_manager.settings.render.png_scale
        background = self.theme.resolve()["background"]
        try:
            export_png(self.pipeline.graphic, path, scale=scale, background=background)
        except (OSError, ValueError, RuntimeError) as e:
            QMessageBox.critical(self, "Export failed", str(e))
            return
        self.statusBar().showMessage(f"PNG saved to {path}")

    # ----------------------------
    # Shutdown
    # ----------------------------

    def closeEvent(self, event):
        trace("Main window closing", "MAIN")
        self.pipeline.teardown()
        super().closeEvent(event)


def main():
    """Application entry point."""
    trace("Application starting", "MAIN")
    app = QApplication(sys.argv)

    # Load settings (use singleton to ensure single instance)
    trace("Loading settings", "MAIN")
    settings_manager = get_settings()

    # Ensure settings file has all sections
    settings_manager.ensure_file_complete()

    # Apply saved theme (or default if not set)
    initial_style = settings_manager.settings.theme
    if initial_style not in STYLES:
        initial_style = DEFAULT_STYLE
        settings_manager.settings.theme = initial_style

    app.setStyleSheet(STYLES[initial_style])
    app._current_style = initial_style

    # Save settings on application quit
    def save_on_quit():
        trace("Saving settings on quit", "MAIN")
        settings_manager.save()
        close_log()

    app.aboutToQuit.connect(save_on_quit)

    trace("Creating MainWindow", "MAIN")
    w = MainWindow(settings_manager)
    w.resize(1400, 900)
    trace("Showing MainWindow", "MAIN")
    w.show()
    trace("Entering event loop", "MAIN")
    sys.exit(app.exec())


if __name__ == "__main__":
    # Set up global exception handler to catch crashes
    def excepthook(exc_type, exc_value, exc_tb):
        import traceback
        trace("UNCAUGHT EXCEPTION:", "CRASH")
        trace("".join(traceback.format_exception(exc_type, exc_value, exc_tb)), "CRASH")
        close_log()
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = excepthook

    try:
        main()
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        close_log()
        raise
