from typing import Any, Callable, Optional
import logging
from PySide6.QtCore import QObject, Signal as QtSignal

from opc_tag_client.core.tag_client import TagClientCore
from opc_tag_client.core.update_engine import UpdateEngine
from opc_tag_client.models.client_config import ClientConfig
from opc_tag_client.protocols.opc.base_opc import OPCClientInterface

logger = logging.getLogger(__name__)


class QtTagClient(QObject):
    """
    Qt facade over TagClientCore for GUI hosts.
    An UpdateEngine timer drains notifications on the GUI thread, and core
    events are re-emitted as Qt signals.
    """
    tag_updated = QtSignal(object)  # Tag
    connection_state_changed = QtSignal(str, str)  # old, new
    reconnect_exhausted = QtSignal()

    def __init__(self, config: ClientConfig,
                 protocol_factory: Optional[Callable[[], OPCClientInterface]] = None,
                 interval_ms: int = 100):
        super().__init__()
        self.core = TagClientCore(config, protocol_factory=protocol_factory)
        self.update_engine = UpdateEngine(interval_ms=interval_ms)
        self.update_engine.set_tag_client(self.core)
        self._task = None

        self.core.on("tag_updated", self.tag_updated.emit)
        # Emitted from the reconnect thread; Qt queues delivery to receivers
        self.core.on("state_changed",
                     lambda old, new: self.connection_state_changed.emit(old.value, new.value))
        self.core.on("reconnect_exhausted", self.reconnect_exhausted.emit)

    def start(self):
        self.update_engine.start()
        self._task = self.core.start()
        return self._task

    def write_tag(self, name: str, value: Any):
        """Submit a write without blocking the GUI thread. Returns a Future."""
        return self.core.write_tag_async(name, value)

    def get_tag(self, name: str):
        return self.core.get_tag(name)

    def shutdown(self):
        logger.info("Shutting down Qt tag client...")
        self.update_engine.stop()
        self.core.shutdown()
