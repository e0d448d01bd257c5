"""PyQt6 desktop shell wired to the SrtForge engine."""
from __future__ import annotations

import os
import shutil
import sys
import tempfile
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import QThread, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QDragEnterEvent, QDragLeaveEvent, QDropEvent
from PyQt6.QtWidgets import (
    QApplication,
    QComboBox,
    QFileDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from ..config.loader import ConfigError, load_config
from ..config.model import AppConfig
from ..core.engine import SubtitleEngine
from ..core.media import (
    MediaKind,
    classify,
    generate_subtitle_file_name,
    generate_translated_file_name,
)
from ..core.results import CommandAction, CommandResult
from ..logging import get_logger, setup_logging

logger = get_logger(__name__)

DRAG_STYLE = "#centralPanel { background-color: rgb(230, 247, 255); border: 2px dashed blue; }"


class CommandWorker(QThread):
    progress = pyqtSignal(int, int)  # done, total
    succeeded = pyqtSignal(object)  # CommandResult
    failed = pyqtSignal(str)

    def __init__(
        self,
        config: AppConfig,
        action: CommandAction,
        source: Path,
        dest: Path,
        target_lang: Optional[str] = None,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self.config = config
        self.action = action
        self.source = source
        self.dest = dest
        self.target_lang = target_lang

    def run(self) -> None:  # pragma: no cover - UI thread
        engine = SubtitleEngine(self.config)
        kwargs = {
            "progress": self.progress.emit,
            "should_cancel": self.isInterruptionRequested,
        }
        if self.action is CommandAction.TRANSLATE_SUBTITLE and self.target_lang:
            kwargs["target_lang"] = self.target_lang
        result = engine.run(self.action, self.source, self.dest, **kwargs)
        if self.isInterruptionRequested():
            self.failed.emit("Cancelled by user.")
        elif result.succeeded and result.result is not None:
            self.succeeded.emit(result.result)
        else:
            self.failed.emit(result.error or "Unknown error")


class MainWindow(QMainWindow):
    def __init__(self, config_path: Optional[Path] = None) -> None:  # pragma: no cover - UI
        super().__init__()
        self.setWindowTitle("SrtForge - Subtitle Generator")
        self.setMinimumSize(360, 260)
        self.resize(360, 260)
        self.setAcceptDrops(True)

        try:
            self.config = load_config(config_path)
        except ConfigError as exc:
            QMessageBox.critical(self, "Configuration error", str(exc))
            self.config = AppConfig()

        self.worker: Optional[CommandWorker] = None
        self.selected_file: Optional[Path] = None
        self.dest_file: Optional[Path] = None
        self.command_action: Optional[CommandAction] = None
        self.command_result: Optional[CommandResult] = None
        self._temp_files: List[Path] = []
        self._drag_active = False
        self._drag_reset_timer = QTimer(self)
        self._drag_reset_timer.setSingleShot(True)
        self._drag_reset_timer.setInterval(100)
        self._drag_reset_timer.timeout.connect(self._restore_appearance)

        self.stack = QStackedWidget()
        self.stack.setObjectName("centralPanel")
        self.setCentralWidget(self.stack)

        self._build_file_select_page()
        self._build_actions_page()
        self._build_handling_page()
        self._build_error_page()
        self._build_done_page()
        self.stack.setCurrentWidget(self.file_select_page)

    # pages

    def _page(self) -> tuple[QWidget, QVBoxLayout]:
        page = QWidget()
        layout = QVBoxLayout()
        layout.setAlignment(Qt.AlignmentFlag.AlignCenter)
        page.setLayout(layout)
        self.stack.addWidget(page)
        return page, layout

    def _build_file_select_page(self) -> None:
        self.file_select_page, layout = self._page()
        self.file_selector_btn = QPushButton("Select file")
        self.file_selector_btn.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        self.file_selector_btn.clicked.connect(self.browse_file)
        hint = QLabel("or drop a video, audio or subtitle file here")
        hint.setStyleSheet("color: gray; font-size: 11px;")
        layout.addWidget(self.file_selector_btn, alignment=Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(hint, alignment=Qt.AlignmentFlag.AlignCenter)

    def _build_actions_page(self) -> None:
        self.actions_page, layout = self._page()
        self.file_label = QLabel()
        self.file_label.setStyleSheet("color: gray; font-size: 11px;")
        self.generate_btn = QPushButton("Generate subtitle")
        self.generate_btn.clicked.connect(lambda: self.start_command(CommandAction.GENERATE_SUBTITLE))
        self.language_combo = QComboBox()
        for language in self.config.translation.supported_languages:
            self.language_combo.addItem(language.name, language.name)
        index = self.language_combo.findData(self.config.translation.target_lang)
        if index >= 0:
            self.language_combo.setCurrentIndex(index)
        self.translate_btn = QPushButton("Translate subtitle")
        self.translate_btn.clicked.connect(lambda: self.start_command(CommandAction.TRANSLATE_SUBTITLE))
        self.cancel_btn = QPushButton("Cancel")
        self.cancel_btn.setStyleSheet("color: gray;")
        self.cancel_btn.clicked.connect(self.return_to_file_selection)
        for widget in (self.file_label, self.generate_btn, self.language_combo, self.translate_btn, self.cancel_btn):
            layout.addWidget(widget, alignment=Qt.AlignmentFlag.AlignCenter)

    def _build_handling_page(self) -> None:
        self.handling_page, layout = self._page()
        label = QLabel("Processing…")
        self.progress_bar = QProgressBar()
        self.progress_bar.setRange(0, 0)
        self.progress_bar.setFixedWidth(220)
        self.status_label = QLabel("")
        self.status_label.setStyleSheet("color: gray; font-size: 11px;")
        self.abort_btn = QPushButton("Cancel")
        self.abort_btn.setStyleSheet("color: gray;")
        self.abort_btn.clicked.connect(self.cancel_processing)
        for widget in (label, self.progress_bar, self.status_label, self.abort_btn):
            layout.addWidget(widget, alignment=Qt.AlignmentFlag.AlignCenter)

    def _build_error_page(self) -> None:
        self.error_page, layout = self._page()
        title = QLabel("Something went wrong")
        self.error_label = QLabel()
        self.error_label.setWordWrap(True)
        self.error_label.setStyleSheet("color: gray; font-size: 11px;")
        self.error_label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        retry_btn = QPushButton("Retry")
        retry_btn.clicked.connect(self.return_to_file_selection)
        for widget in (title, self.error_label, retry_btn):
            layout.addWidget(widget, alignment=Qt.AlignmentFlag.AlignCenter)

    def _build_done_page(self) -> None:
        self.done_page, layout = self._page()
        self.time_label = QLabel()
        self.time_label.setStyleSheet("color: gray;")
        next_btn = QPushButton("Next")
        next_btn.clicked.connect(self.return_to_file_selection)
        save_btn = QPushButton("Save subtitle")
        save_btn.clicked.connect(self.save_result)
        for widget in (self.time_label, next_btn, save_btn):
            layout.addWidget(widget, alignment=Qt.AlignmentFlag.AlignCenter)

    # file selection

    def browse_file(self) -> None:
        file_path, _ = QFileDialog.getOpenFileName(self, "Select file")
        if file_path:
            self.handle_file_selection(Path(file_path))

    def handle_file_selection(self, path: Path) -> None:
        self.selected_file = path
        self._update_actions(classify(path))
        self.file_label.setText(path.name)
        if self.stack.currentWidget() is self.file_select_page:
            self.stack.setCurrentWidget(self.actions_page)

    def _update_actions(self, kind: MediaKind) -> None:
        is_subtitle = kind is MediaKind.SUBTITLE
        is_media = kind in (MediaKind.VIDEO, MediaKind.AUDIO)
        self.translate_btn.setVisible(not is_media)
        self.language_combo.setVisible(not is_media)
        self.generate_btn.setVisible(not is_subtitle)

    # drag and drop

    def dragEnterEvent(self, event: QDragEnterEvent) -> None:
        if self.stack.currentWidget() is self.file_select_page and event.mimeData().hasUrls():
            event.acceptProposedAction()
            self._show_drag_feedback()
        else:
            event.ignore()
            self._schedule_appearance_reset()

    def dragLeaveEvent(self, event: QDragLeaveEvent) -> None:
        self._schedule_appearance_reset()
        super().dragLeaveEvent(event)

    def dropEvent(self, event: QDropEvent) -> None:
        try:
            if self.stack.currentWidget() is not self.file_select_page:
                event.ignore()
                return
            local_files = [Path(url.toLocalFile()) for url in event.mimeData().urls() if url.isLocalFile()]
            if local_files and local_files[0].is_file():
                event.acceptProposedAction()
                QTimer.singleShot(0, lambda: self.handle_file_selection(local_files[0]))
            else:
                event.ignore()
        finally:
            self._restore_appearance()

    def _show_drag_feedback(self) -> None:
        self._drag_reset_timer.stop()
        if not self._drag_active:
            self.stack.setStyleSheet(DRAG_STYLE)
            self._drag_active = True

    def _schedule_appearance_reset(self) -> None:
        if self._drag_active:
            self._drag_reset_timer.start()

    def _restore_appearance(self) -> None:
        self._drag_reset_timer.stop()
        if self._drag_active:
            self.stack.setStyleSheet("")
            self._drag_active = False

    # commands

    def _new_temp_file(self, action: CommandAction) -> Path:
        fd, name = tempfile.mkstemp(prefix="processed", suffix=action.output_suffix)
        os.close(fd)
        path = Path(name)
        self._temp_files.append(path)
        return path

    def start_command(self, action: CommandAction) -> None:
        if self.selected_file is None:
            return
        self.command_action = action
        self.status_label.setText("")
        self.progress_bar.setRange(0, 0)
        self.abort_btn.setEnabled(True)
        self.stack.setCurrentWidget(self.handling_page)

        target_lang = self.language_combo.currentData() if action is CommandAction.TRANSLATE_SUBTITLE else None
        self.worker = CommandWorker(
            config=self.config,
            action=action,
            source=self.selected_file,
            dest=self._new_temp_file(action),
            target_lang=target_lang,
            parent=self,
        )
        self.worker.finished.connect(self.worker.deleteLater)
        self.worker.progress.connect(self.on_progress)
        self.worker.succeeded.connect(self.on_succeeded)
        self.worker.failed.connect(self.on_failed)
        self.worker.start()

    def cancel_processing(self) -> None:
        if self.worker is not None and self.worker.isRunning():
            self.status_label.setText("Cancelling…")
            self.worker.requestInterruption()
        self.abort_btn.setEnabled(False)

    def on_progress(self, done: int, total: int) -> None:
        self.progress_bar.setRange(0, total)
        self.progress_bar.setValue(done)
        self.status_label.setText(f"{done}/{total}")

    def on_succeeded(self, result: CommandResult) -> None:
        self.worker = None
        self.command_result = result
        self.dest_file = result.result_file
        self.time_label.setText(f"{result.action_description} finished in {result.formatted_time}")
        self.stack.setCurrentWidget(self.done_page)

    def on_failed(self, message: str) -> None:
        self.worker = None
        logger.error("Command failed: %s", message)
        self.error_label.setText(message)
        self.stack.setCurrentWidget(self.error_page)

    def default_save_name(self) -> str:
        if self.selected_file is None:
            return "subtitle.srt"
        if self.command_action is CommandAction.TRANSLATE_SUBTITLE:
            return generate_translated_file_name(self.selected_file, self.language_combo.currentData())
        return generate_subtitle_file_name(self.selected_file)

    def save_result(self) -> None:
        if self.dest_file is None:
            return
        start_dir = self.selected_file.parent if self.selected_file else Path.home()
        file_path, _ = QFileDialog.getSaveFileName(
            self,
            "Save subtitle file",
            str(start_dir / self.default_save_name()),
            "Subtitles (*.srt);;All files (*)",
        )
        if not file_path:
            return
        try:
            shutil.copyfile(self.dest_file, file_path)
        except OSError as exc:
            QMessageBox.critical(self, "Save failed", str(exc))
            return
        self.dest_file = Path(file_path)
        QMessageBox.information(self, "Saved", "Subtitle file saved.")

    def return_to_file_selection(self) -> None:
        self.selected_file = None
        self.dest_file = None
        self.command_result = None
        self.command_action = None
        self._cleanup_temp_files()
        self.stack.setCurrentWidget(self.file_select_page)

    def _cleanup_temp_files(self) -> None:
        for path in self._temp_files:
            path.unlink(missing_ok=True)
        self._temp_files.clear()

    def closeEvent(self, event) -> None:
        if self.worker is not None and self.worker.isRunning():
            self.worker.requestInterruption()
            # the worker only stops at its next cancel check, so block until it has
            self.worker.wait()
        self._cleanup_temp_files()
        super().closeEvent(event)


def run_app(config_path: Optional[Path] = None) -> int:  # pragma: no cover - UI
    setup_logging()
    app = QApplication(sys.argv)
    app.setStyle("Fusion")
    window = MainWindow(config_path)
    window.show()
    return app.exec()


def main() -> None:  # pragma: no cover - UI
    sys.exit(run_app())


if __name__ == "__main__":  # pragma: no cover
    main()
