from PySide6.QtCore import QObject, QTimer, Signal
import logging

logger = logging.getLogger(__name__)


class UpdateEngine(QObject):
    """
    Periodic consumer cycle.
    On every tick drains the tag client's pending notifications on the
    thread that owns the engine (normally the GUI thread).
    """
    # Emitted after each drain with the number of updates applied
    tick = Signal(int)

    def __init__(self, interval_ms: int = 100):
        super().__init__()
        self._timer = QTimer(self)
        self._timer.timeout.connect(self._on_timeout)
        self._interval = interval_ms
        self._running = False
        self.tag_client = None

    def set_tag_client(self, tag_client):
        """Inject the TagClientCore whose queue is drained each tick."""
        self.tag_client = tag_client

    def is_running(self) -> bool:
        return self._running

    def start(self):
        """Starts the update timer."""
        if not self._running:
            self._timer.start(self._interval)
            self._running = True
            logger.info(f"UpdateEngine started (interval={self._interval}ms)")

    def stop(self):
        """Stops the update timer."""
        if self._running:
            self._timer.stop()
            self._running = False
            logger.info("UpdateEngine stopped")

    def _on_timeout(self):
        """Called when timer expires."""
        applied = 0
        if self.tag_client is not None:
            applied = self.tag_client.process_pending()
        self.tick.emit(applied)
