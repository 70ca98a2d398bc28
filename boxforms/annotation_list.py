"""Box list panel for selection, naming and removal."""

from typing import Optional, Callable

from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QListWidget, QListWidgetItem,
    QPushButton, QLabel, QLineEdit, QMenu
)
from PySide6.QtCore import Qt, Signal

from .export import duplicate_field_names
from .models import Annotation, AnnotationStore, StoreEvent


class AnnotationListItem(QListWidgetItem):
    """List item representing a box."""

    def __init__(self, annotation: Annotation):
        super().__init__()
        self.annotation_id = annotation.id
        self.update_display(annotation)

    def update_display(self, annotation: Annotation):
        self.setText(f"{annotation.display_name()} - Page {annotation.page}")


class AnnotationListPanel(QWidget):
    """Panel listing every box of the document in drawing order."""

    jump_to_annotation = Signal(object)  # Annotation

    def __init__(self, parent=None):
        super().__init__(parent)
        self._annotations: Optional[AnnotationStore] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._items: dict[int, AnnotationListItem] = {}

        self._setup_ui()

    def _setup_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(4)

        header = QLabel("Boxes")
        header.setStyleSheet("font-weight: bold;")
        layout.addWidget(header)

        self._list = QListWidget()
        self._list.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self._list.customContextMenuRequested.connect(self._show_context_menu)
        self._list.itemDoubleClicked.connect(self._on_double_click)
        self._list.currentItemChanged.connect(self._on_current_changed)
        layout.addWidget(self._list)

        self._status_label = QLabel("0 boxes")
        self._status_label.setStyleSheet("color: #666; font-size: 10px;")
        layout.addWidget(self._status_label)

        # Name of the selected box
        layout.addWidget(QLabel("Field name:"))
        self._name_edit = QLineEdit()
        self._name_edit.setEnabled(False)
        self._name_edit.textEdited.connect(self._on_name_edited)
        layout.addWidget(self._name_edit)

        btn_layout = QHBoxLayout()

        self._jump_btn = QPushButton("Go to")
        self._jump_btn.setEnabled(False)
        self._jump_btn.clicked.connect(self._on_jump)
        btn_layout.addWidget(self._jump_btn)

        self._delete_btn = QPushButton("Delete")
        self._delete_btn.setEnabled(False)
        self._delete_btn.clicked.connect(self._on_delete)
        btn_layout.addWidget(self._delete_btn)

        layout.addLayout(btn_layout)

    def set_annotations(self, annotations: AnnotationStore):
        """Show and follow the given store."""
        if self._unsubscribe:
            self._unsubscribe()
        self._annotations = annotations
        self._unsubscribe = annotations.subscribe(self._on_store_event)
        self.refresh()

    def _on_store_event(self, event: StoreEvent, annotation: Optional[Annotation]):
        if event == StoreEvent.RENAMED and annotation and annotation.id in self._items:
            self._items[annotation.id].update_display(annotation)
            self._update_status()
        elif event == StoreEvent.SELECTED:
            self._sync_selection()
        elif event != StoreEvent.UPDATED:
            self.refresh()

    def refresh(self):
        """Rebuild the list from the store."""
        self._list.blockSignals(True)
        self._list.clear()
        self._items.clear()

        if self._annotations:
            for annotation in self._annotations.all():
                item = AnnotationListItem(annotation)
                self._list.addItem(item)
                self._items[annotation.id] = item

        self._list.blockSignals(False)
        self._update_status()
        self._sync_selection()

    def _update_status(self):
        if not self._annotations:
            self._status_label.setText("0 boxes")
            return

        count = self._annotations.count()
        duplicates = duplicate_field_names(self._annotations.all())
        if duplicates:
            self._status_label.setText(f"{count} boxes - duplicate names: {', '.join(duplicates)}")
            self._status_label.setStyleSheet("color: #CC0000; font-size: 10px;")
        else:
            self._status_label.setText(f"{count} boxes")
            self._status_label.setStyleSheet("color: #666; font-size: 10px;")

    def _sync_selection(self):
        """Mirror the store selection in the list and the name field."""
        selected = self._annotations.selected() if self._annotations else None

        self._list.blockSignals(True)
        if selected and selected.id in self._items:
            item = self._items[selected.id]
            self._list.setCurrentItem(item)
            self._list.scrollToItem(item)
        else:
            self._list.setCurrentItem(None)
            self._list.clearSelection()
        self._list.blockSignals(False)

        self._name_edit.setEnabled(selected is not None)
        self._name_edit.setText(selected.name if selected else "")
        self._name_edit.setPlaceholderText(selected.field_name() if selected else "")
        self._jump_btn.setEnabled(selected is not None)
        self._delete_btn.setEnabled(selected is not None)

    def _on_current_changed(self, current, previous):
        if self._annotations is None:
            return
        if isinstance(current, AnnotationListItem):
            self._annotations.select(current.annotation_id)
        else:
            self._annotations.select(None)

    def _on_name_edited(self, text: str):
        selected = self._annotations.selected() if self._annotations else None
        if selected:
            self._annotations.rename(selected.id, text)

    def _on_double_click(self, item):
        if isinstance(item, AnnotationListItem) and self._annotations:
            annotation = self._annotations.get(item.annotation_id)
            if annotation:
                self.jump_to_annotation.emit(annotation)

    def _on_jump(self):
        selected = self._annotations.selected() if self._annotations else None
        if selected:
            self.jump_to_annotation.emit(selected)

    def _on_delete(self):
        selected = self._annotations.selected() if self._annotations else None
        if selected:
            self._annotations.remove(selected.id)

    def _show_context_menu(self, pos):
        item = self._list.itemAt(pos)
        if not isinstance(item, AnnotationListItem) or not self._annotations:
            return

        annotation = self._annotations.get(item.annotation_id)
        if annotation is None:
            return
        menu = QMenu(self)

        jump_action = menu.addAction(f"Go to {annotation.display_name()}")
        jump_action.triggered.connect(lambda: self.jump_to_annotation.emit(annotation))

        menu.addSeparator()

        delete_action = menu.addAction("Delete")
        delete_action.triggered.connect(lambda: self._annotations.remove(annotation.id))

        menu.exec(self._list.mapToGlobal(pos))
