# workers.py
"""
Background execution of deck renders for Qt front ends.
Defines a Worker for QRunnable tasks and a PreviewScheduler that debounces
edits into preview renders on the global QThreadPool.
"""
import logging
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, QTimer, Signal

from . import config
from .controllers import DeckSessionController
from .models import GenerationProgress, GenerationStatus

logger = logging.getLogger("deckmaker.workers")


class WorkerSignals(QObject):
    started = Signal()
    finished = Signal()
    error = Signal(str)
    result = Signal(object)


class Worker(QRunnable):
    """Wraps any function to run in a QThreadPool."""
    def __init__(self, fn: Callable, *args, **kwargs):
        super().__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.signals = WorkerSignals()

    def run(self) -> None:
        try:
            self.signals.started.emit()
            result = self.fn(*self.args, **self.kwargs)
            self.signals.result.emit(result)
        except Exception as e:
            logger.error("Worker error: %s", e)
            self.signals.error.emit(str(e))
        finally:
            self.signals.finished.emit()


class PreviewScheduler(QObject):
    """Coalesce bursts of edits into a single background preview render.

    Each call to :meth:`schedule` restarts a single-shot timer; when it fires
    a request token is taken from the session and the render runs on the
    thread pool.  Superseded renders finish but their result is dropped by the
    session, so only the latest preview is ever emitted.
    """

    preview_ready = Signal(object)
    progress_changed = Signal(object)
    failed = Signal(str)

    def __init__(
        self,
        session: DeckSessionController,
        parent: Optional[QObject] = None,
        *,
        interval_ms: int = config.PREVIEW_DEBOUNCE_MS,
        thread_pool: Optional[QThreadPool] = None,
    ):
        super().__init__(parent)
        self.session = session
        self.thread_pool = thread_pool or QThreadPool.globalInstance()
        self.timer = QTimer(self)
        self.timer.setSingleShot(True)
        self.timer.setInterval(interval_ms)
        self.timer.timeout.connect(self.run_now)

    def schedule(self) -> None:
        """Request a preview after the debounce interval."""
        self.timer.start()

    def run_now(self) -> int:
        """Start a preview render immediately and return its token."""
        self.timer.stop()
        token = self.session.begin_request()
        worker = Worker(self._render, token)
        worker.signals.result.connect(self._on_result)
        worker.signals.error.connect(self.failed)
        self.thread_pool.start(worker)
        return token

    def _render(self, token: int) -> Any:
        result = self.session.regenerate_preview(token, on_progress=self.progress_changed.emit)
        progress: GenerationProgress = self.session.progress
        if self.session.is_current(token) and progress.status is GenerationStatus.ERROR:
            self.failed.emit(progress.message or "Deck generation failed")
        return result

    def _on_result(self, result: Any) -> None:
        if result is not None:
            self.preview_ready.emit(result)
