import concurrent.futures
import logging
from typing import Any, Callable, List, Optional

from opc_tag_client.core.action_queue import ActionQueue
from opc_tag_client.core.address_resolver import AddressResolver
from opc_tag_client.core.connection_manager import ConnectionManager, ConnectionTask
from opc_tag_client.core.events import EventEmitter
from opc_tag_client.core.subscription_dispatcher import SubscriptionDispatcher
from opc_tag_client.core.tag_registry import TagRegistry
from opc_tag_client.core.write_coordinator import WriteCoordinator
from opc_tag_client.models.client_config import ClientConfig
from opc_tag_client.models.tag_models import ConnectionState, Tag
from opc_tag_client.protocols.opc.base_opc import OPCClientInterface

logger = logging.getLogger(__name__)


def _default_protocol_factory(config: ClientConfig) -> Callable[[], OPCClientInterface]:
    from opc_tag_client.protocols.opc.ua_client import UAClient
    return lambda: UAClient(timeout=config.request_timeout_s)


class TagClientCore(EventEmitter):
    """
    Wires registry, resolver, queue, connection, dispatcher and writer
    together. Framework-agnostic; the Qt wrapper lives in tag_client_qt.

    The host calls `process_pending()` once per cycle on its consumer
    thread. That is the only place tag values change.

    Events:
        tag_updated(tag: Tag)              consumer thread, once per applied update
        state_changed(old, new)            reconnect thread
        reconnect_exhausted()              reconnect thread
    """

    def __init__(self, config: ClientConfig,
                 protocol_factory: Optional[Callable[[], OPCClientInterface]] = None):
        super().__init__()
        self.config = config
        self.registry = TagRegistry.from_catalog(config.tags)
        self.resolver = AddressResolver(config.address_table())
        self.queue = ActionQueue()
        self.dispatcher = SubscriptionDispatcher(
            self.registry, self.resolver, self.queue,
            publishing_interval_ms=config.publishing_interval_ms,
            extra_items=config.extra_items,
            accept_unknown_tags=config.accept_unknown_tags,
        )
        self.connection = ConnectionManager(
            config,
            protocol_factory or _default_protocol_factory(config),
            on_session=self.dispatcher.setup,
            on_session_closing=self.dispatcher.teardown,
        )
        self.writer = WriteCoordinator(self.registry, self.resolver, self.connection)

        self.dispatcher.on("tag_updated", lambda tag: self.emit("tag_updated", tag))
        self.connection.on("state_changed", lambda old, new: self.emit("state_changed", old, new))
        self.connection.on("reconnect_exhausted", lambda: self.emit("reconnect_exhausted"))

    @classmethod
    def from_file(cls, filepath: str, **kwargs) -> 'TagClientCore':
        return cls(ClientConfig.load(filepath), **kwargs)

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    def start(self) -> ConnectionTask:
        """Begin connecting in the background. Returns the loop handle."""
        logger.info(f"Starting tag client for {self.config.endpoint} ({len(self.registry)} tags)")
        return self.connection.start()

    def process_pending(self) -> int:
        """Apply queued notifications. Call once per cycle from the consumer thread."""
        return self.queue.drain_all()

    def get_tag(self, name: str) -> Optional[Tag]:
        return self.registry.find(name)

    def tags(self) -> List[Tag]:
        return self.registry.tags()

    def write_tag(self, name: str, value: Any) -> Any:
        return self.writer.submit_write(name, value)

    def write_tag_async(self, name: str, value: Any) -> concurrent.futures.Future:
        return self.writer.submit_write_async(name, value)

    def shutdown(self):
        """Stop reconnecting, delete the subscription and close the session."""
        self.connection.shutdown()
        self.writer.shutdown(wait=False)
        dropped = self.queue.clear()
        if dropped:
            logger.debug(f"Discarded {dropped} pending updates on shutdown")
