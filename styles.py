"""
styles.py

Application stylesheets - Tailwind (light) and Foundation (dark) themes -
plus the per-theme style tokens that drive diagram colors.
"""

TAILWIND_STYLE = """
/* === Tailwind CSS-inspired Theme === */
/* Primary: #2563eb (Blue-600), Slate grays, amber accent for highlights */

QMainWindow {
    background-color: #f8fafc;
}

QWidget {
    background-color: #f8fafc;
    color: #1e293b;
    font-family: "Inter", "Segoe UI", sans-serif;
    font-size: 13px;
}

/* === Menu Bar === */
QMenuBar {
    background-color: #ffffff;
    color: #475569;
    border-bottom: 1px solid #e2e8f0;
    padding: 2px;
}

QMenuBar::item {
    background-color: transparent;
    padding: 8px 14px;
    border-radius: 6px;
}

QMenuBar::item:selected {
    background-color: #f1f5f9;
    color: #2563eb;
}

QMenu {
    background-color: #ffffff;
    border: 1px solid #e2e8f0;
    border-radius: 8px;
    padding: 4px;
}

QMenu::item {
    padding: 10px 20px;
    border-radius: 6px;
    margin: 2px;
}

QMenu::item:selected {
    background-color: #f1f5f9;
    color: #2563eb;
}

QMenu::separator {
    height: 1px;
    background-color: #e2e8f0;
    margin: 6px 10px;
}

/* === Panels === */
QFrame#panel {
    background-color: #ffffff;
    border: 1px solid #e2e8f0;
    border-radius: 8px;
}

QLabel#panelTitle {
    background-color: transparent;
    color: #0f172a;
    font-size: 16px;
    font-weight: 600;
    padding: 6px 2px 0 2px;
}

QLabel#panelHint {
    background-color: transparent;
    color: #64748b;
    padding: 0 2px 6px 2px;
}

QLabel#inspectLabel {
    background-color: #fffbeb;
    color: #92400e;
    border: 1px dashed #f59e0b;
    border-radius: 6px;
    padding: 6px 8px;
}

/* === Buttons === */
QPushButton {
    background-color: #ffffff;
    color: #334155;
    border: 1px solid #cbd5e1;
    border-radius: 6px;
    padding: 8px 16px;
    font-weight: 500;
}

QPushButton:hover {
    background-color: #f1f5f9;
    border-color: #94a3b8;
}

QPushButton:disabled {
    background-color: #f1f5f9;
    color: #94a3b8;
    border-color: #e2e8f0;
}

QPushButton#generateButton {
    background-color: #f59e0b;
    color: #ffffff;
    border: none;
    font-weight: 600;
}

QPushButton#generateButton:hover {
    background-color: #d97706;
}

QPushButton#generateButton:disabled {
    background-color: #fcd34d;
    color: #fffbeb;
}

/* === Editor === */
QPlainTextEdit {
    background-color: #ffffff;
    color: #1e293b;
    border: 1px solid #e2e8f0;
    border-radius: 6px;
    selection-background-color: #bfdbfe;
}

QPlainTextEdit[readOnly="true"] {
    background-color: #f8fafc;
}

/* === Diagram View === */
QGraphicsView#diagramView {
    background-color: #ffffff;
    border: 1px solid #e2e8f0;
    border-radius: 6px;
}

/* === Splitter === */
QSplitter::handle {
    background-color: #e2e8f0;
}

QSplitter::handle:horizontal {
    width: 4px;
}

/* === Scrollbars === */
QScrollBar:vertical {
    background-color: #f1f5f9;
    width: 10px;
    border-radius: 5px;
}

QScrollBar::handle:vertical {
    background-color: #cbd5e1;
    border-radius: 5px;
    min-height: 30px;
    margin: 1px;
}

QScrollBar:horizontal {
    background-color: #f1f5f9;
    height: 10px;
    border-radius: 5px;
}

QScrollBar::handle:horizontal {
    background-color: #cbd5e1;
    border-radius: 5px;
    min-width: 30px;
    margin: 1px;
}

QScrollBar::add-line,
QScrollBar::sub-line {
    width: 0;
    height: 0;
}

/* === Status Bar === */
QStatusBar {
    background-color: #ffffff;
    color: #475569;
    border-top: 1px solid #e2e8f0;
}
"""

FOUNDATION_STYLE = """
/* === Base Colors === */
QMainWindow {
    background-color: #1e1e1e;
}

QWidget {
    background-color: #252526;
    color: #cccccc;
    font-family: "Segoe UI", "SF Pro Display", sans-serif;
    font-size: 13px;
}

/* === Menu Bar === */
QMenuBar {
    background-color: #333333;
    color: #cccccc;
    border-bottom: 1px solid #404040;
    padding: 2px;
}

QMenuBar::item {
    background-color: transparent;
    padding: 6px 12px;
    border-radius: 4px;
}

QMenuBar::item:selected {
    background-color: #094771;
}

QMenu {
    background-color: #2d2d30;
    border: 1px solid #404040;
    border-radius: 6px;
    padding: 4px;
}

QMenu::item {
    padding: 8px 24px;
    border-radius: 4px;
}

QMenu::item:selected {
    background-color: #094771;
}

QMenu::separator {
    height: 1px;
    background-color: #404040;
    margin: 4px 8px;
}

/* === Panels === */
QFrame#panel {
    background-color: #1e1e1e;
    border: 1px solid #404040;
    border-radius: 6px;
}

QLabel#panelTitle {
    background-color: transparent;
    color: #ffffff;
    font-size: 16px;
    font-weight: 600;
    padding: 6px 2px 0 2px;
}

QLabel#panelHint {
    background-color: transparent;
    color: #888888;
    padding: 0 2px 6px 2px;
}

QLabel#inspectLabel {
    background-color: #3a3220;
    color: #f0c674;
    border: 1px dashed #d19a66;
    border-radius: 4px;
    padding: 6px 8px;
}

/* === Buttons === */
QPushButton {
    background-color: #3c3c3c;
    color: #cccccc;
    border: 1px solid #505050;
    border-radius: 4px;
    padding: 8px 16px;
}

QPushButton:hover {
    background-color: #4a4a4a;
    border-color: #606060;
}

QPushButton:disabled {
    background-color: #2a2a2a;
    color: #666666;
    border-color: #404040;
}

QPushButton#generateButton {
    background-color: #0e639c;
    color: #ffffff;
    border: 1px solid #1177bb;
    font-weight: bold;
}

QPushButton#generateButton:hover {
    background-color: #1177bb;
}

QPushButton#generateButton:disabled {
    background-color: #2a3a4a;
    color: #7a8a9a;
}

/* === Editor === */
QPlainTextEdit {
    background-color: #1e1e1e;
    color: #d4d4d4;
    border: 1px solid #404040;
    border-radius: 4px;
    selection-background-color: #264f78;
}

QPlainTextEdit[readOnly="true"] {
    background-color: #232323;
}

/* === Diagram View === */
QGraphicsView#diagramView {
    background-color: #1e1e1e;
    border: 1px solid #404040;
    border-radius: 4px;
}

/* === Splitter === */
QSplitter::handle {
    background-color: #404040;
}

QSplitter::handle:horizontal {
    width: 4px;
}

/* === Scrollbars === */
QScrollBar:vertical {
    background-color: #1e1e1e;
    width: 12px;
}

QScrollBar::handle:vertical {
    background-color: #424242;
    border-radius: 4px;
    min-height: 30px;
    margin: 2px;
}

QScrollBar:horizontal {
    background-color: #1e1e1e;
    height: 12px;
}

QScrollBar::handle:horizontal {
    background-color: #424242;
    border-radius: 4px;
    min-width: 30px;
    margin: 2px;
}

QScrollBar::add-line,
QScrollBar::sub-line {
    width: 0;
    height: 0;
}

/* === Status Bar === */
QStatusBar {
    background-color: #007acc;
    color: #ffffff;
}
"""

STYLES = {
    "Tailwind": TAILWIND_STYLE,
    "Foundation (Dark)": FOUNDATION_STYLE,
}

DEFAULT_STYLE = "Tailwind"

# Style tokens per theme.  Values are either bare HSL components (the way
# CSS custom properties store them) or direct colors; theme.py reassembles
# both forms into concrete colors.
THEME_TOKENS = {
    "Tailwind": {
        "primary": "221 83% 53%",           # blue-600
        "background": "0 0% 100%",          # white
        "foreground": "222 47% 11%",        # slate-900
        "accent": "38 92% 50%",             # amber-500
        "accent-foreground": "0 0% 100%",   # white
        "card": "210 40% 98%",              # slate-50
        "border": "214 32% 91%",            # slate-200
    },
    "Foundation (Dark)": {
        "primary": "#3794ff",
        "background": "#1e1e1e",
        "foreground": "#d4d4d4",
        "accent": "#d19a66",
        "accent-foreground": "#1e1e1e",
        "card": "#252526",
        "border": "#404040",
    },
}

# Line number area colors for the code editor
# background: slightly different from main editor background
# text: dimmed numbers, text_active for the current and highlighted lines
# highlight: accent color for lines that mention the selected identity
LINE_NUMBER_COLORS = {
    "Tailwind": {
        "background": "#f1f5f9",      # Slightly darker than editor (#ffffff)
        "text": "#94a3b8",            # Dimmed text (slate-400)
        "text_active": "#1e293b",     # Active line text (slate-800)
        "highlight_bg": "#fef3c7",    # Highlighted line background (amber-100)
        "highlight_bar": "#f59e0b",   # Highlight bar color (amber-500)
        "current_line_bg": "#e2e8f0", # Current line background (slate-200)
        "occurrence_bg": "#fde68a",   # Occurrence of the selected identity
    },
    "Foundation (Dark)": {
        "background": "#1a1a1a",      # Slightly darker than editor (#1e1e1e)
        "text": "#606060",            # Dimmed text
        "text_active": "#ffffff",     # Active line text
        "highlight_bg": "#3a3220",    # Highlighted line background
        "highlight_bar": "#d19a66",   # Highlight bar color
        "current_line_bg": "#2d2d2d", # Current line background
        "occurrence_bg": "#5a4a2a",   # Occurrence of the selected identity
    },
}
