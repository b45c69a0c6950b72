from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel,
    QProgressBar, QPlainTextEdit, QPushButton
)
from PySide6.QtCore import Qt

from ffqueue import BatchOrchestrator
from ffqueue.models import BatchOutcome, BatchStatus, ProgressSnapshot
from ffqueue.progress import DEFAULT_MAX_LOG_LINES


_BAR_STYLE = """
    QProgressBar {{
        border: 1px solid #444;
        border-radius: 4px;
        background-color: #1a1a1a;
        text-align: center;
        height: 18px;
    }}
    QProgressBar::chunk {{ background-color: {color}; }}
"""


def _progress_bar(color: str) -> QProgressBar:
    bar = QProgressBar()
    bar.setStyleSheet(_BAR_STYLE.format(color=color))
    bar.setRange(0, 1000)
    bar.setValue(0)
    bar.setTextVisible(False)
    return bar


class ProcessingWindow(QMainWindow):
    """
    Watches one BatchOrchestrator: current item, item and overall
    progress, time remaining, live log, and the failure text if any.
    """

    def __init__(self, orchestrator: BatchOrchestrator, total_items: int,
                 max_log_lines: int = DEFAULT_MAX_LOG_LINES, parent=None):
        super().__init__(parent)
        self.orchestrator = orchestrator
        self._total = total_items

        self.setWindowTitle("FFQueue — Processing")
        self.resize(720, 520)

        central = QWidget()
        central.setStyleSheet("background-color: #121212;")
        self.setCentralWidget(central)
        root = QVBoxLayout(central)
        root.setContentsMargins(16, 16, 16, 16)
        root.setSpacing(10)

        # ── Current item ──────────────────────────────────────────────────────
        self.item_label = QLabel("Preparing…")
        self.item_label.setStyleSheet("color: #e0e0e0; font-size: 11pt; font-weight: 600;")
        root.addWidget(self.item_label)

        item_row = QHBoxLayout()
        self.item_bar = _progress_bar("#3d7ec9")
        self.item_pct = QLabel("0%")
        self.item_pct.setFixedWidth(48)
        self.item_pct.setAlignment(Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter)
        self.item_pct.setStyleSheet("color: #999; font-size: 9pt;")
        item_row.addWidget(self.item_bar, 1)
        item_row.addWidget(self.item_pct)
        root.addLayout(item_row)

        # ── Overall ───────────────────────────────────────────────────────────
        self.overall_label = QLabel(f"Overall: (0/{total_items})")
        self.overall_label.setStyleSheet("color: #aaaaaa; font-size: 9pt;")
        root.addWidget(self.overall_label)

        self.overall_bar = _progress_bar("#558B6E")
        root.addWidget(self.overall_bar)

        self.etr_label = QLabel("Time remaining: Calculating…")
        self.etr_label.setStyleSheet("color: #888; font-size: 9pt;")
        root.addWidget(self.etr_label)

        # ── Log ───────────────────────────────────────────────────────────────
        self.log_view = QPlainTextEdit()
        self.log_view.setReadOnly(True)
        self.log_view.setMaximumBlockCount(max_log_lines)
        self.log_view.setStyleSheet(
            "background-color: #1a1a1a; color: #bbbbbb; font-family: monospace; font-size: 8pt;"
        )
        root.addWidget(self.log_view, 1)

        # ── Error label ───────────────────────────────────────────────────────
        self.error_label = QLabel()
        self.error_label.setStyleSheet("color: #e74c3c; font-size: 8pt;")
        self.error_label.setWordWrap(True)
        self.error_label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        self.error_label.setVisible(False)
        root.addWidget(self.error_label)

        # ── Buttons ───────────────────────────────────────────────────────────
        btn_row = QHBoxLayout()
        btn_row.addStretch()
        self.cancel_btn = QPushButton("■  Cancel")
        self.cancel_btn.setFixedHeight(30)
        self.cancel_btn.setCursor(Qt.CursorShape.PointingHandCursor)
        self.cancel_btn.clicked.connect(self._on_cancel_clicked)
        btn_row.addWidget(self.cancel_btn)
        root.addLayout(btn_row)

        # Connect orchestrator signals
        orchestrator.item_started.connect(self._on_item_started)
        orchestrator.item_progress.connect(self._on_item_progress)
        orchestrator.overall_progress.connect(self._on_overall_progress)
        orchestrator.etr_changed.connect(self._on_etr_changed)
        orchestrator.log_line.connect(self.log_view.appendPlainText)
        orchestrator.status_changed.connect(self._on_status_changed)
        orchestrator.batch_finished.connect(self._on_batch_finished)

    # ── Orchestrator signal handlers ──────────────────────────────────────────

    def _on_item_started(self, index: int, source):
        self.item_label.setText(f"Processing: {source.name}")
        self.item_bar.setValue(0)
        self.item_pct.setText("0%")
        self.overall_label.setText(f"Overall: ({index}/{self._total})")

    def _on_item_progress(self, snapshot: ProgressSnapshot):
        self.item_bar.setValue(int(min(snapshot.fraction_complete, 1.0) * 1000))
        self.item_pct.setText(f"{min(snapshot.percentage, 100)}%")

    def _on_overall_progress(self, fraction: float):
        self.overall_bar.setValue(int(fraction * 1000))

    def _on_etr_changed(self, text: str):
        self.etr_label.setText(f"Time remaining: {text}" if text else "")

    def _on_status_changed(self, status: BatchStatus):
        if status is BatchStatus.PROBING:
            self.item_label.setText("Reading media information…")

    def _on_batch_finished(self, outcome: BatchOutcome):
        self.cancel_btn.setText("Close")
        self.overall_label.setText(
            f"Overall: ({outcome.completed_items}/{outcome.total_items})"
        )
        if outcome.status is BatchStatus.COMPLETED:
            self.item_label.setText("All items finished")
        elif outcome.status is BatchStatus.CANCELLED:
            self.item_label.setText("Cancelled")
        else:
            self.item_label.setText("Failed")
            self.error_label.setText(outcome.message.strip())
            self.error_label.setVisible(True)

    def _on_cancel_clicked(self):
        if self.orchestrator.is_active:
            self.orchestrator.cancel()
        else:
            self.close()

    def closeEvent(self, event):
        if self.orchestrator.is_active:
            self.orchestrator.cancel()
        self.orchestrator.supervisor.wait()
        super().closeEvent(event)
