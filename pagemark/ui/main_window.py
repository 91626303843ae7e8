"""
Main window for pagemark.

Hosts the annotation canvas with a tool bar (tools, color, stroke width,
circle mode, text format, page and zoom) and a status bar that reports store errors.
"""

from typing import Optional

from PySide6.QtGui import QAction, QColor, QKeySequence
from PySide6.QtWidgets import (
    QButtonGroup,
    QCheckBox,
    QColorDialog,
    QLabel,
    QMainWindow,
    QPushButton,
    QSpinBox,
    QToolBar,
    QToolButton,
    QWidget,
)

from pagemark.editor.annotation_canvas import AnnotationCanvas
from pagemark.editor.engine import AnnotationEngine
from pagemark.editor.store import AnnotationStoreError
from pagemark.editor.tools import ToolType
from pagemark.services.config_service import ConfigService
from pagemark.services.logging_service import get_logger

# (tool, label, shortcut)
TOOL_BUTTONS = [
    (ToolType.SELECT, "Select", "V"),
    (ToolType.DRAG, "Pan", "H"),
    (ToolType.FREEHAND, "Pen", "P"),
    (ToolType.LINE, "Line", "L"),
    (ToolType.ARROW, "Arrow", "A"),
    (ToolType.DOUBLE_ARROW, "Double Arrow", ""),
    (ToolType.RECTANGLE, "Rectangle", "R"),
    (ToolType.CIRCLE, "Circle", "C"),
    (ToolType.TRIANGLE, "Triangle", ""),
    (ToolType.STAR, "Star", ""),
    (ToolType.HIGHLIGHT, "Highlight", "G"),
    (ToolType.TEXT, "Text", "T"),
    (ToolType.STICKY_NOTE, "Sticky Note", "N"),
    (ToolType.STAMP_APPROVED, "Approved", ""),
    (ToolType.STAMP_REJECTED, "Rejected", ""),
    (ToolType.STAMP_REVISION, "Revision", ""),
]


class ColorButton(QPushButton):
    """Button that shows a color and opens a color picker on click."""

    def __init__(self, color: QColor, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._color = QColor(color)
        self.setFixedSize(28, 28)
        self._update_style()

    @property
    def color(self) -> QColor:
        return self._color

    def pick(self) -> bool:
        color = QColorDialog.getColor(self._color, self, "Select Color")
        if not color.isValid():
            return False
        self._color = color
        self._update_style()
        return True

    def _update_style(self) -> None:
        self.setStyleSheet(
            f"QPushButton {{ background-color: {self._color.name()};"
            f" border: 2px solid #555; border-radius: 4px; }}"
        )


class MainWindow(QMainWindow):
    """
    Main application window for pagemark.

    The canvas owns the view; this window only forwards tool, style, page
    and zoom choices to it and to its engine.
    """

    def __init__(
        self,
        engine: AnnotationEngine,
        config_service: Optional[ConfigService] = None,
        page_count: int = 1,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._config = config_service
        self._engine = engine
        self._page_count = max(1, page_count)

        self._canvas = AnnotationCanvas(engine, parent=self)
        self.setCentralWidget(self._canvas)

        self._setup_window()
        self._setup_toolbar()
        self._setup_status_bar()
        self._connect_signals()

        self._logger.info("MainWindow initialized")

    def _setup_window(self) -> None:
        self.setWindowTitle(f"pagemark - {self._engine.document_id}")
        self.setMinimumSize(800, 600)
        self.resize(1200, 900)

    def _setup_toolbar(self) -> None:
        toolbar = QToolBar("Tools", self)
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        self._tool_group = QButtonGroup(self)
        self._tool_group.setExclusive(True)
        for tool_type, label, shortcut in TOOL_BUTTONS:
            btn = QToolButton()
            btn.setText(label)
            btn.setToolTip(f"{label} ({shortcut})" if shortcut else label)
            btn.setCheckable(True)
            if shortcut:
                btn.setShortcut(QKeySequence(shortcut))
            btn.setProperty("tool_type", tool_type)
            btn.clicked.connect(lambda checked, t=tool_type: self._engine.set_tool(t))
            self._tool_group.addButton(btn)
            toolbar.addWidget(btn)
            if tool_type == self._engine.tool_type:
                btn.setChecked(True)

        toolbar.addSeparator()

        self._color_btn = ColorButton(self._engine.style.color)
        self._color_btn.setToolTip("Stroke color")
        self._color_btn.clicked.connect(self._on_color_clicked)
        toolbar.addWidget(self._color_btn)

        self._width_spin = QSpinBox()
        self._width_spin.setRange(1, 20)
        self._width_spin.setValue(int(self._engine.style.line_width))
        self._width_spin.setToolTip("Stroke width")
        self._width_spin.valueChanged.connect(self._on_width_changed)
        toolbar.addWidget(self._width_spin)

        self._diameter_check = QCheckBox("Diameter")
        self._diameter_check.setToolTip("Drag circles edge to edge instead of from the center")
        self._diameter_check.setChecked(self._engine.style.circle_diameter_mode)
        self._diameter_check.toggled.connect(self._on_diameter_toggled)
        toolbar.addWidget(self._diameter_check)

        toolbar.addSeparator()

        options = self._engine.style.text_options
        self._font_spin = QSpinBox()
        self._font_spin.setRange(8, 72)
        self._font_spin.setValue(int(options.font_size))
        self._font_spin.setToolTip("Font size")
        self._font_spin.valueChanged.connect(self._on_text_format_changed)
        toolbar.addWidget(self._font_spin)

        self._bold_btn = self._format_button("B", "Bold", options.bold)
        toolbar.addWidget(self._bold_btn)
        self._italic_btn = self._format_button("I", "Italic", options.italic)
        toolbar.addWidget(self._italic_btn)
        self._underline_btn = self._format_button("U", "Underline", options.underline)
        toolbar.addWidget(self._underline_btn)

        toolbar.addSeparator()

        toolbar.addWidget(QLabel(" Page "))
        self._page_spin = QSpinBox()
        self._page_spin.setRange(1, self._page_count)
        self._page_spin.setValue(self._engine.page_number)
        self._page_spin.valueChanged.connect(self._on_page_changed)
        toolbar.addWidget(self._page_spin)

        toolbar.addSeparator()

        zoom_in = QAction("Zoom In", self)
        zoom_in.setShortcut(QKeySequence("Ctrl++"))
        zoom_in.triggered.connect(self._canvas.zoom_in)
        toolbar.addAction(zoom_in)

        zoom_out = QAction("Zoom Out", self)
        zoom_out.setShortcut(QKeySequence("Ctrl+-"))
        zoom_out.triggered.connect(self._canvas.zoom_out)
        toolbar.addAction(zoom_out)

    def _format_button(self, label: str, tooltip: str, checked: bool) -> QToolButton:
        btn = QToolButton()
        btn.setText(label)
        btn.setToolTip(tooltip)
        btn.setCheckable(True)
        btn.setChecked(checked)
        btn.toggled.connect(self._on_text_format_changed)
        return btn

    def _setup_status_bar(self) -> None:
        self._zoom_label = QLabel()
        self.statusBar().addPermanentWidget(self._zoom_label)
        self._on_zoom_changed(self._canvas.zoom)

    def _connect_signals(self) -> None:
        self._engine.tool_changed.connect(self._on_tool_changed)
        self._engine.selection_changed.connect(self._on_selection_changed)
        self._canvas.zoom_changed.connect(self._on_zoom_changed)
        self._canvas.store_failed.connect(self._on_store_failed)

    # ─── Handlers ─────────────────────────────────────────────────────────

    def _on_tool_changed(self, tool_type: ToolType) -> None:
        for btn in self._tool_group.buttons():
            if btn.property("tool_type") == tool_type:
                btn.setChecked(True)
                break

    def _on_color_clicked(self) -> None:
        if not self._color_btn.pick():
            return
        style = self._engine.style.clone()
        style.color = QColor(self._color_btn.color)
        self._engine.set_style(style)
        self._remember_style(style)

    def _on_width_changed(self, value: int) -> None:
        style = self._engine.style.clone()
        style.line_width = value
        self._engine.set_style(style)
        self._remember_style(style)

    def _on_diameter_toggled(self, checked: bool) -> None:
        style = self._engine.style.clone()
        style.circle_diameter_mode = checked
        self._engine.set_style(style)

    def _on_text_format_changed(self, *_) -> None:
        style = self._engine.style.clone()
        options = style.text_options
        options.font_size = self._font_spin.value()
        options.bold = self._bold_btn.isChecked()
        options.italic = self._italic_btn.isChecked()
        options.underline = self._underline_btn.isChecked()
        self._engine.set_style(style)

    def _remember_style(self, style) -> None:
        """Keep the last pen as the default for the next session."""
        if self._config is None:
            return
        default_style = self._config.default_style
        default_style["color"] = style.color.name()
        default_style["line_width"] = style.line_width
        self._config.set("default_style", default_style)
        self._config.save()

    def _on_page_changed(self, page_number: int) -> None:
        try:
            self._engine.set_page(page_number)
        except AnnotationStoreError as e:
            self._logger.error(f"Could not load page {page_number}: {e}")
            self.statusBar().showMessage(f"Could not load page {page_number}: {e}", 5000)

    def _on_selection_changed(self, ids: list) -> None:
        if ids:
            self.statusBar().showMessage(f"{len(ids)} selected", 2000)

    def _on_zoom_changed(self, zoom: float) -> None:
        self._zoom_label.setText(f"{zoom * 100:.0f}%")

    def _on_store_failed(self, message: str) -> None:
        self.statusBar().showMessage(f"Could not save annotation: {message}", 5000)

    def closeEvent(self, event) -> None:
        self._logger.info("MainWindow closing")
        self._engine.shutdown()
        super().closeEvent(event)
