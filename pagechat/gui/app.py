from __future__ import annotations

import html
from pathlib import Path
from typing import Optional, Sequence

from qtpy import QtCore, QtGui, QtWidgets
from qtpy.QtCore import QThreadPool

from pagechat.core import render
from pagechat.core.annotations import Annotation, AnnotationStatus, StatusFilter
from pagechat.core.chat import Role
from pagechat.core.documents import DOCUMENT_STATUSES, DocumentRegistry
from pagechat.core.selection import ACTIONS, PageSurface, Selection
from pagechat.core.storage import BlobStore
from pagechat.core.chat.providers import StreamingChatProvider
from pagechat.core.viewer_session import ViewerSession, chat_session_from_config
from pagechat.gui.widgets import PageView, StreamingChatTask
from pagechat.utils.llm_settings import LLMConfig, resolve_llm_config
from pagechat.utils.logger import logger

_ROLE_LABELS = {Role.USER: "You", Role.ASSISTANT: "Assistant"}


class ViewerWindow(QtWidgets.QMainWindow):
    """Document library, page view, annotation list and chat in one window."""

    def __init__(
        self,
        registry: Optional[DocumentRegistry] = None,
        blob_store: Optional[BlobStore] = None,
        config: Optional[LLMConfig] = None,
        provider: Optional[StreamingChatProvider] = None,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self.setWindowTitle("PDF Selection Viewer")
        self.blob_store = blob_store or BlobStore()
        self.registry = registry or DocumentRegistry(blob_store=self.blob_store)
        self.config = config
        self.thread_pool = QThreadPool.globalInstance()
        # One conversation per window; document viewers share it.
        self.chat = chat_session_from_config(self.blob_store, config, provider)
        self.chat.restore()
        self._turn_pending = False

        self.viewer: Optional[ViewerSession] = None
        self._document_bytes: Optional[bytes] = None
        self._page_count = 0
        self._page_number = 1
        self._zoom = render.DEFAULT_ZOOM

        self._build_ui()
        self.refresh_documents()
        self.refresh_chat()

    # ---------------------------------------------------------------- layout
    def _build_ui(self) -> None:
        toolbar = self.addToolBar("Main")
        toolbar.addAction("Open PDF...", self.import_document)
        toolbar.addSeparator()
        toolbar.addAction("Previous", lambda: self.go_to_page(self._page_number - 1))
        toolbar.addAction("Next", lambda: self.go_to_page(self._page_number + 1))
        self.page_label = QtWidgets.QLabel("-")
        toolbar.addWidget(self.page_label)
        toolbar.addSeparator()
        toolbar.addAction("Zoom out", lambda: self.set_zoom(self._zoom - render.ZOOM_STEP))
        toolbar.addAction("Zoom in", lambda: self.set_zoom(self._zoom + render.ZOOM_STEP))
        self.zoom_label = QtWidgets.QLabel(self._zoom_text())
        toolbar.addWidget(self.zoom_label)
        toolbar.addSeparator()
        toolbar.addAction("Capture page", self.capture_page)
        toolbar.addAction("Use highlighted text", self.capture_highlighted_text)

        # Library
        self.document_list = QtWidgets.QListWidget()
        self.document_list.itemActivated.connect(self._on_document_activated)
        self.status_combo = QtWidgets.QComboBox()
        self.status_combo.addItems(list(DOCUMENT_STATUSES))
        self.status_combo.activated.connect(self._on_document_status_chosen)
        delete_doc = QtWidgets.QPushButton("Delete document")
        delete_doc.clicked.connect(self.delete_current_document)
        library = QtWidgets.QWidget()
        library_layout = QtWidgets.QVBoxLayout(library)
        library_layout.addWidget(QtWidgets.QLabel("Documents"))
        library_layout.addWidget(self.document_list)
        library_layout.addWidget(self.status_combo)
        library_layout.addWidget(delete_doc)

        # Page + text
        self.page_view = PageView()
        self.page_view.region_selected.connect(self._on_region_selected)
        scroll = QtWidgets.QScrollArea()
        scroll.setWidget(self.page_view)
        scroll.setWidgetResizable(False)
        self.text_view = QtWidgets.QPlainTextEdit()
        self.text_view.setReadOnly(True)
        page_split = QtWidgets.QSplitter(QtCore.Qt.Vertical)
        page_split.addWidget(scroll)
        page_split.addWidget(self.text_view)
        page_split.setStretchFactor(0, 4)

        # Selection, annotations and chat
        self.selection_label = QtWidgets.QLabel("No selection")
        self.selection_label.setWordWrap(True)
        action_row = QtWidgets.QHBoxLayout()
        self.action_buttons = []
        for action in ACTIONS:
            button = QtWidgets.QPushButton(action.capitalize())
            button.clicked.connect(lambda _=False, a=action: self.run_action(a))
            action_row.addWidget(button)
            self.action_buttons.append(button)
        status_row = QtWidgets.QHBoxLayout()
        for status in AnnotationStatus:
            button = QtWidgets.QPushButton(status.value.capitalize())
            button.clicked.connect(lambda _=False, s=status: self.annotate(s))
            status_row.addWidget(button)

        self.filter_combo = QtWidgets.QComboBox()
        self.filter_combo.addItems([f.value for f in StatusFilter])
        self.filter_combo.currentIndexChanged.connect(lambda _: self.refresh_annotations())
        self.annotation_list = QtWidgets.QListWidget()
        delete_annotation = QtWidgets.QPushButton("Delete annotation")
        delete_annotation.clicked.connect(self.delete_selected_annotation)

        self.chat_view = QtWidgets.QTextBrowser()
        self.chat_input = QtWidgets.QLineEdit()
        self.chat_input.setPlaceholderText("Ask about the page or the selection...")
        self.chat_input.returnPressed.connect(self.send_chat)
        self.send_button = QtWidgets.QPushButton("Send")
        self.send_button.clicked.connect(self.send_chat)
        clear_button = QtWidgets.QPushButton("Clear chat")
        clear_button.clicked.connect(self.clear_chat)
        input_row = QtWidgets.QHBoxLayout()
        input_row.addWidget(self.chat_input)
        input_row.addWidget(self.send_button)
        input_row.addWidget(clear_button)

        side = QtWidgets.QWidget()
        side_layout = QtWidgets.QVBoxLayout(side)
        side_layout.addWidget(self.selection_label)
        side_layout.addLayout(action_row)
        side_layout.addLayout(status_row)
        side_layout.addWidget(self.filter_combo)
        side_layout.addWidget(self.annotation_list, 1)
        side_layout.addWidget(delete_annotation)
        side_layout.addWidget(self.chat_view, 2)
        side_layout.addLayout(input_row)

        splitter = QtWidgets.QSplitter(QtCore.Qt.Horizontal)
        splitter.addWidget(library)
        splitter.addWidget(page_split)
        splitter.addWidget(side)
        splitter.setStretchFactor(1, 3)
        splitter.setStretchFactor(2, 2)
        self.setCentralWidget(splitter)
        self._update_selection_ui(None)

    def _zoom_text(self) -> str:
        return f"{int(round(self._zoom * 100))}%"

    # ------------------------------------------------------------- documents
    def refresh_documents(self) -> None:
        self.document_list.clear()
        for record in self.registry.list():
            item = QtWidgets.QListWidgetItem(f"{record.name} [{record.status}]")
            item.setData(QtCore.Qt.UserRole, record.id)
            self.document_list.addItem(item)

    def import_document(self) -> None:
        path, _ = QtWidgets.QFileDialog.getOpenFileName(
            self, "Open PDF", str(Path.home()), "PDF files (*.pdf)"
        )
        if not path:
            return
        document_id = self.registry.create(Path(path).name, Path(path).read_bytes())
        self.refresh_documents()
        self.open_document(document_id)

    def _on_document_activated(self, item: QtWidgets.QListWidgetItem) -> None:
        self.open_document(int(item.data(QtCore.Qt.UserRole)))

    def _on_document_status_chosen(self, index: int) -> None:
        if self.viewer is None:
            return
        self.registry.update_status(int(self.viewer.document_id), DOCUMENT_STATUSES[index])
        self.refresh_documents()

    def open_document(self, document_id: int) -> None:
        self.close_document()
        try:
            raw = self.registry.read_bytes(document_id)
            count = render.page_count(raw)
        except (KeyError, OSError, RuntimeError) as exc:
            logger.error("Failed to open document %s: %s", document_id, exc)
            QtWidgets.QMessageBox.warning(self, "Open failed", str(exc))
            return
        self._document_bytes = raw
        self._page_count = count
        self._page_number = 1
        self.viewer = ViewerSession(
            document_id,
            blob_store=self.blob_store,
            chat=self.chat,
            on_annotation_created=self._on_annotation_created,
            on_selection_changed=self._update_selection_ui,
        ).open()
        self.registry.touch(document_id)
        record = self.registry.get(document_id)
        self.status_combo.setCurrentIndex(DOCUMENT_STATUSES.index(record.status))
        self.render_current_page()
        self.refresh_chat()

    def close_document(self) -> None:
        if self.viewer is not None:
            self.viewer.close()
        self.viewer = None
        self._document_bytes = None
        self._page_count = 0
        self.page_view.set_surface(None)
        self.text_view.clear()
        self.annotation_list.clear()
        self._update_selection_ui(None)

    def delete_current_document(self) -> None:
        if self.viewer is None:
            return
        document_id = int(self.viewer.document_id)
        self.close_document()
        self.registry.delete(document_id)
        self.refresh_documents()

    # ----------------------------------------------------------------- pages
    def go_to_page(self, page_number: int) -> None:
        if self._document_bytes is None:
            return
        if page_number < 1 or page_number > self._page_count:
            return
        self._page_number = page_number
        if self.viewer is not None:
            self.viewer.clear_selection()
        self.render_current_page()

    def set_zoom(self, value: float) -> None:
        self._zoom = round(render.clamp_zoom(value), 2)
        self.zoom_label.setText(self._zoom_text())
        self.render_current_page()

    def render_current_page(self) -> None:
        if self._document_bytes is None:
            return
        surface = render.render_page(
            self._document_bytes,
            self._page_number,
            zoom=self._zoom,
            device_pixel_ratio=self.devicePixelRatioF(),
        )
        self.page_view.set_surface(surface)
        self.text_view.setPlainText(render.page_text(self._document_bytes, self._page_number))
        self.page_label.setText(f"{self._page_number} / {self._page_count}")
        self.refresh_annotations()

    @property
    def surface(self) -> Optional[PageSurface]:
        return self.page_view.surface

    # ------------------------------------------------------------- selection
    def _on_region_selected(self, start, end) -> None:
        if self.viewer is not None:
            self.viewer.capture_region(self.surface, start, end)

    def capture_page(self) -> None:
        if self.viewer is not None:
            self.viewer.capture_page(self.surface)

    def capture_highlighted_text(self) -> None:
        if self.viewer is None:
            return
        text = self.text_view.textCursor().selectedText().replace("\u2029", "\n")
        self.viewer.capture_text(text, self._page_number)

    def _update_selection_ui(self, selection: Optional[Selection]) -> None:
        if selection is None:
            self.selection_label.setText("No selection")
        else:
            self.selection_label.setText(
                f"[{selection.kind.value}] page {selection.page_number}: {selection.preview()}"
            )
        for button in self.action_buttons:
            button.setEnabled(selection is not None and not self.chat_busy)

    # ----------------------------------------------------------- annotations
    def annotate(self, status: AnnotationStatus) -> None:
        if self.viewer is None or self.viewer.selection is None:
            return
        note = None
        if status is AnnotationStatus.NOTE:
            note, ok = QtWidgets.QInputDialog.getText(self, "Note", "Note text:")
            if not ok:
                return
        self.viewer.annotate(status, note)

    def _on_annotation_created(self, annotation: Annotation) -> None:
        logger.info(
            "Annotation %s created on page %d (%s)",
            annotation.id,
            annotation.page_number,
            annotation.status.value,
        )
        self.refresh_annotations()

    def refresh_annotations(self) -> None:
        self.annotation_list.clear()
        if self.viewer is None:
            self.page_view.set_annotations([])
            return
        status_filter = StatusFilter(self.filter_combo.currentText())
        records = self.viewer.annotations.list(self._page_number, status_filter)
        for annotation in records:
            label = f"{annotation.status.value}: {annotation.source_text or '(region)'}"
            if annotation.note:
                label += f" - {annotation.note}"
            item = QtWidgets.QListWidgetItem(label)
            item.setData(QtCore.Qt.UserRole, annotation.id)
            self.annotation_list.addItem(item)
        self.page_view.set_annotations(records)

    def delete_selected_annotation(self) -> None:
        item = self.annotation_list.currentItem()
        if self.viewer is None or item is None:
            return
        self.viewer.annotations.delete(str(item.data(QtCore.Qt.UserRole)))
        self.refresh_annotations()

    # ------------------------------------------------------------------ chat
    def run_action(self, action: str) -> None:
        if self.viewer is None or self.viewer.selection is None or self.chat_busy:
            return
        prompt, image = self.viewer.take_turn(action=action)
        self._start_turn(prompt, image)

    def send_chat(self) -> None:
        if self.viewer is None or self.chat_busy:
            return
        text = self.chat_input.text().strip()
        if not text and self.viewer.selection is None:
            return
        prompt, image = self.viewer.take_turn(text)
        self.chat_input.clear()
        self._start_turn(prompt, image)

    @property
    def chat_busy(self) -> bool:
        """A turn was started and has not finished yet."""
        return self._turn_pending or self.chat.is_loading

    def _start_turn(self, prompt: str, image: Optional[bytes]) -> None:
        self._turn_pending = True
        self._set_input_enabled(False)
        self.thread_pool.start(StreamingChatTask(self.chat, prompt, image, widget=self))

    def clear_chat(self) -> None:
        self.chat.clear()
        self.refresh_chat()

    def _set_input_enabled(self, enabled: bool) -> None:
        self.chat_input.setEnabled(enabled)
        self.send_button.setEnabled(enabled)
        has_selection = self.viewer is not None and self.viewer.selection is not None
        for button in self.action_buttons:
            button.setEnabled(enabled and has_selection)

    @QtCore.Slot()
    def refresh_chat(self) -> None:
        chat = self.chat
        blocks = []
        for message in chat.messages:
            body = html.escape(message.content).replace("\n", "<br>")
            if message.is_streaming and not message.content:
                body = "<i>Thinking...</i>"
            if message.image_bytes:
                body = "<i>[image]</i> " + body
            blocks.append(f"<p><b>{_ROLE_LABELS[message.role]}:</b> {body}</p>")
        self.chat_view.setHtml("".join(blocks))
        self.chat_view.moveCursor(QtGui.QTextCursor.End)
        self._set_input_enabled(not self.chat_busy)

    @QtCore.Slot(bool)
    def chat_turn_finished(self, ok: bool) -> None:
        self._turn_pending = False
        if not ok:
            logger.warning("Chat turn ended without a reply")
        self.refresh_chat()

    def closeEvent(self, event) -> None:
        self.close_document()
        super().closeEvent(event)


def create_qapp(argv: Optional[Sequence[str]] = None) -> QtWidgets.QApplication:
    """Create (or return) the singleton QApplication instance."""
    existing_app = QtWidgets.QApplication.instance()
    if existing_app is not None:
        return existing_app
    return QtWidgets.QApplication(list(argv) if argv is not None else [])


def resolve_window_config(
    provider: Optional[str] = None, model: Optional[str] = None
) -> Optional[LLMConfig]:
    try:
        return resolve_llm_config(provider=provider, model=model)
    except ValueError as exc:
        logger.warning("LLM settings incomplete: %s", exc)
        return None
