import logging
import threading
from typing import Any, Dict, Optional

from opc_tag_client.core.action_queue import ActionQueue
from opc_tag_client.core.address_resolver import AddressResolver
from opc_tag_client.core.events import EventEmitter
from opc_tag_client.core.tag_registry import TagRegistry
from opc_tag_client.models.tag_models import PendingAction, Tag, TagDataType
from opc_tag_client.protocols.opc.base_opc import DataChangeHandler, OPCClientInterface

logger = logging.getLogger(__name__)


class _GenerationHandler(DataChangeHandler):
    """Handler bound to one `setup()`; carries the generation it belongs to."""

    def __init__(self, dispatcher: 'SubscriptionDispatcher', generation: int):
        self.dispatcher = dispatcher
        self.generation = generation

    def on_data_change(self, display_name: str, value: Any, source_timestamp: Optional[str],
                       data_type: TagDataType) -> None:
        self.dispatcher._enqueue(self.generation, display_name, value, source_timestamp, data_type)

    def on_status_change(self, status: Any) -> None:
        logger.warning(f"Subscription status change: {status}")


class SubscriptionDispatcher(EventEmitter):
    """
    Creates one monitored item per registered tag on a live session and
    turns notifications into PendingActions on the ActionQueue.

    Notifications arrive on the OPC library's thread. Nothing here mutates a
    Tag; the registry is only touched when the consumer drains the queue.
    Each `setup()` gets its own handler; notifications from a subscription
    that has since been torn down are dropped, both on arrival and on drain.

    Events (fired on the consumer thread):
        tag_updated(tag: Tag)
    """

    def __init__(self, registry: TagRegistry, resolver: AddressResolver, queue: ActionQueue,
                 publishing_interval_ms: int = 1000,
                 extra_items: Optional[Dict[str, str]] = None,
                 accept_unknown_tags: bool = True):
        EventEmitter.__init__(self)
        self.registry = registry
        self.resolver = resolver
        self.queue = queue
        self.publishing_interval_ms = publishing_interval_ms
        self.extra_items: Dict[str, str] = dict(extra_items or {})
        self.accept_unknown_tags = accept_unknown_tags
        self._session: Optional[OPCClientInterface] = None
        self._subscription: Any = None
        self._lock = threading.Lock()
        self._generation = 0
        # Generation whose notifications are accepted; None when torn down
        self._active: Optional[int] = None
        self.monitored: Dict[str, str] = {}

    @property
    def subscription(self) -> Any:
        return self._subscription

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return self._active == generation

    def setup(self, session: OPCClientInterface) -> Any:
        """Subscribe every registered tag (plus extra items) on `session`.

        Tags without an address are skipped with a log entry.
        """
        items: Dict[str, str] = {}
        for name in self.registry.names():
            address = self.resolver.resolve(name)
            if address is None:
                logger.warning(f"No node address for tag '{name}', not subscribing")
                continue
            items[name] = address
        for name, address in self.extra_items.items():
            items.setdefault(name, address)

        # Initial values can arrive before setup returns
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._active = generation
        handler = _GenerationHandler(self, generation)
        try:
            subscription = session.create_subscription(self.publishing_interval_ms, handler)
        except Exception:
            with self._lock:
                if self._active == generation:
                    self._active = None
            raise

        monitored = {}
        for name, address in items.items():
            try:
                session.create_monitored_item(subscription, address, name)
                monitored[name] = address
            except Exception as e:
                logger.error(f"Failed to monitor '{name}' at {address}: {e}")

        with self._lock:
            self._session = session
            self._subscription = subscription
            self.monitored = monitored
        logger.info(f"Subscribed to {len(monitored)} tags "
                    f"(publishing interval {self.publishing_interval_ms} ms)")
        return subscription

    def teardown(self):
        """Delete the active subscription on the server, if any.

        Notifications still in flight for it are discarded.
        """
        with self._lock:
            session, subscription = self._session, self._subscription
            self._session = None
            self._subscription = None
            self._active = None
            self.monitored = {}
        if session is None or subscription is None:
            return
        try:
            session.delete_subscription(subscription)
            logger.info("Subscription deleted")
        except Exception as e:
            logger.warning(f"Failed to delete subscription: {e}")

    # -- notification path (library thread) --------------------------------

    def _enqueue(self, generation: int, display_name: str, value: Any,
                 source_timestamp: Optional[str], data_type: TagDataType) -> None:
        if not self.is_current(generation):
            logger.debug(f"Ignoring notification for '{display_name}' from a closed subscription")
            return
        action = PendingAction(
            display_name=display_name,
            value="" if value is None else str(value),
            source_timestamp=source_timestamp or "",
            data_type=data_type,
        )
        self.queue.push(lambda: self._apply(generation, action))

    # -- consumer thread ---------------------------------------------------

    def _apply(self, generation: int, action: PendingAction) -> Optional[Tag]:
        if not self.is_current(generation):
            logger.debug(f"Discarding stale update for '{action.display_name}'")
            return None
        if not self.accept_unknown_tags and action.display_name not in self.registry:
            logger.warning(f"Dropping notification for unknown tag '{action.display_name}'")
            return None
        tag = self.registry.upsert(action.display_name, action.value,
                                   action.source_timestamp, action.data_type)
        logger.debug(f"{tag.display_name}: Value: {tag.value}, SourceTimestamp: "
                     f"{tag.source_timestamp}, DataType: {tag.data_type.value}")
        self.emit("tag_updated", tag)
        return tag
