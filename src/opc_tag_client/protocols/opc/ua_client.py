"""OPC UA session wrapper built on python-opcua.

Implements `OPCClientInterface` for the tag client. Library exceptions are
translated into the tag client's error taxonomy here so the core never sees
python-opcua types other than status codes.
"""
from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Any, Dict, List, Optional

from opc_tag_client.errors import ConnectionError, ProtocolError, WriteRejectedError
from opc_tag_client.models.client_config import ClientConfig
from opc_tag_client.models.tag_models import TagDataType
from .base_opc import DataChangeHandler, OPCClientInterface

log = logging.getLogger(__name__)

try:  # optional dependency
    from opcua import Client, ua
except Exception:  # pragma: no cover - optional dependency
    Client = None  # type: ignore
    ua = None  # type: ignore

# Policies python-opcua can speak, most secure first
_SUPPORTED_POLICIES = ("Basic256Sha256", "Basic256", "Basic128Rsa15")


def _format_timestamp(data_value) -> Optional[str]:
    ts = getattr(data_value, 'SourceTimestamp', None) or getattr(data_value, 'ServerTimestamp', None)
    return ts.isoformat() if ts is not None else None


class _SubscriptionHandler(object):
    """python-opcua handler that maps node ids back to display names."""

    def __init__(self, handler: DataChangeHandler):
        self._handler = handler
        self._names: Dict[str, str] = {}
        self._lock = threading.Lock()

    def add(self, nodeid: str, display_name: str) -> bool:
        with self._lock:
            if nodeid in self._names:
                return False
            self._names[nodeid] = display_name
            return True

    def datachange_notification(self, node, val, data):
        nodeid = node.nodeid.to_string()
        with self._lock:
            name = self._names.get(nodeid)
        if name is None:
            log.warning("Notification for unmonitored node %s", nodeid)
            return
        data_value = data.monitored_item.Value
        variant = getattr(data_value, 'Value', None)
        data_type = TagDataType.from_variant_type(getattr(variant, 'VariantType', None))
        try:
            self._handler.on_data_change(name, val, _format_timestamp(data_value), data_type)
        except Exception:
            log.exception("OPC UA data change handler error for %s", name)

    def event_notification(self, event):
        log.debug("Ignoring event notification: %s", event)

    def status_change_notification(self, status):
        log.warning("Subscription status changed: %s", status)
        try:
            self._handler.on_status_change(status)
        except Exception:
            log.exception("OPC UA status change handler error")


class UASubscription(object):
    """Subscription handle returned by `UAClient.create_subscription`."""

    def __init__(self, subscription, handler: _SubscriptionHandler):
        self.subscription = subscription
        self.handler = handler
        self.item_handles: List[Any] = []


class UAClient(OPCClientInterface):
    """Small wrapper around `opcua.Client` (python-opcua).

    - Fails at construction time with an actionable error if the package is missing.
    - Subscription callbacks run in the library thread; the tag client marshals
      them to its consumer through the ActionQueue.
    """

    def __init__(self, timeout: float = 10.0) -> None:
        if Client is None:
            raise RuntimeError(
                "python-opcua package not installed. Install with: pip install opcua"
            )
        self._client: Optional[Client] = None
        self._timeout = timeout
        self._endpoint: Optional[str] = None

    def _new_client(self, config: ClientConfig) -> Client:
        self._timeout = config.request_timeout_s or self._timeout
        client = Client(config.endpoint, timeout=self._timeout)
        client.name = config.application_name
        client.application_uri = config.application_uri
        client.session_timeout = config.session_timeout_ms
        if config.security.username:
            client.set_user(config.security.username)
            if config.security.password:
                client.set_password(config.security.password)
        return client

    def _select_security(self, client: Client, config: ClientConfig) -> None:
        """Pick the most secure endpoint this library supports and configure it."""
        sec = config.security
        if not sec.enabled:
            log.info("No client certificate configured; using SecurityPolicy None for %s", config.endpoint)
            return

        endpoints = client.connect_and_get_server_endpoints()
        candidates = []
        for ep in endpoints:
            policy = str(ep.SecurityPolicyUri).split('#')[-1]
            mode = ua.MessageSecurityMode(ep.SecurityMode)
            if policy in _SUPPORTED_POLICIES and mode != ua.MessageSecurityMode.None_:
                candidates.append((ep.SecurityLevel, policy, mode))
        if not candidates:
            raise ConnectionError(f"Server {config.endpoint} offers no supported secure endpoint")

        level, policy, mode = max(candidates, key=lambda c: c[0])
        parts = [policy, mode.name, sec.certificate_path, sec.private_key_path]
        if sec.server_certificate_path:
            parts.append(sec.server_certificate_path)
        client.set_security_string(",".join(parts))
        log.info("Selected endpoint %s/%s (security level %s)", policy, mode.name, level)

    def connect(self, config: ClientConfig) -> None:
        self.disconnect()
        client = self._new_client(config)
        try:
            self._select_security(client, config)
            client.connect()
        except ConnectionError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to connect to {config.endpoint}: {e}") from e
        self._client = client
        self._endpoint = config.endpoint
        log.info("Connected to OPC UA server: %s", config.endpoint)

    def disconnect(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            client.disconnect()
        except Exception:
            log.exception("OPC UA disconnect failed for %s", self._endpoint)

    def is_connected(self) -> bool:
        if self._client is None:
            return False
        try:
            state = self._client.get_node(ua.NodeId(ua.ObjectIds.Server_ServerStatus_State))
            state.get_value()
            return True
        except Exception as e:
            log.debug("Liveness check failed: %s", e)
            return False

    def create_subscription(self, publishing_interval_ms: int, handler: DataChangeHandler) -> UASubscription:
        if self._client is None:
            raise ConnectionError("not connected")
        ua_handler = _SubscriptionHandler(handler)
        sub = self._client.create_subscription(publishing_interval_ms, ua_handler)
        return UASubscription(sub, ua_handler)

    def create_monitored_item(self, subscription: UASubscription, address: str, display_name: str) -> Any:
        if self._client is None:
            raise ConnectionError("not connected")
        node = self._client.get_node(address)
        nodeid = node.nodeid.to_string()
        if not subscription.handler.add(nodeid, display_name):
            log.warning("Node %s already monitored; skipping duplicate item '%s'", nodeid, display_name)
            return None
        handle = subscription.subscription.subscribe_data_change(node)
        subscription.item_handles.append(handle)
        return handle

    def delete_subscription(self, subscription: UASubscription) -> None:
        subscription.subscription.delete()

    def write(self, address: str, value: Any, data_type: TagDataType) -> List[Any]:
        """Write through the raw service call so the status code is returned, not raised.

        Bounded by the request timeout the client was connected with.
        """
        if self._client is None:
            raise ConnectionError("not connected")

        write_value = ua.WriteValue()
        write_value.NodeId = ua.NodeId.from_string(address)
        write_value.AttributeId = ua.AttributeIds.Value
        write_value.Value = ua.DataValue(ua.Variant(value, getattr(ua.VariantType, data_type.value)))
        params = ua.WriteParameters()
        params.NodesToWrite = [write_value]

        try:
            return list(self._client.uaclient.write(params) or [])
        except ua.UaStatusCodeError as e:
            raise WriteRejectedError(ua.StatusCode(e.code), address) from e
        except concurrent.futures.TimeoutError as e:
            raise ProtocolError(f"Write to {address} timed out after {self._timeout}s") from e
        except (OSError, AttributeError) as e:
            # AttributeError: socket already torn down by the library
            raise ProtocolError(f"Write to {address} failed: {e}") from e
