"""Small OPC UA server simulator used by tests and demos.

Exposes writable variables at arbitrary string node ids (for example the
CODESYS-style `ns=4;s=|var|...` addresses of a tag catalog) so the tag client
can be exercised end-to-end without a PLC.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from opc_tag_client.models.client_config import ClientConfig
from opc_tag_client.models.tag_models import TagDataType

log = logging.getLogger(__name__)

try:
    from opcua import Server, ua
except Exception:  # pragma: no cover - optional dependency
    Server = None  # type: ignore
    ua = None  # type: ignore

_INITIAL_VALUES = {
    TagDataType.BOOLEAN: False,
    TagDataType.FLOAT: 0.0,
    TagDataType.DOUBLE: 0.0,
    TagDataType.STRING: "",
}


class OPCSimulator:
    def __init__(self, endpoint: str = "opc.tcp://127.0.0.1:4840",
                 server_name: str = "OPC Tag Client Simulator") -> None:
        if Server is None:
            raise RuntimeError("python-opcua not installed. Install with: pip install opcua")
        self._server = Server()
        self._server.set_endpoint(endpoint)
        self._server.set_server_name(server_name)
        self._endpoint = endpoint
        self._objects = self._server.get_objects_node()
        self._points: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._running = False

    def _ensure_namespace(self, index: int) -> None:
        while len(self._server.get_namespace_array()) <= index:
            count = len(self._server.get_namespace_array())
            self._server.register_namespace(f"urn:opc-tag-client:simulator:{count}")

    def add_point(self, address: str, value: Any, data_type: TagDataType = TagDataType.NULL,
                  writable: bool = True) -> Any:
        """Create a variable at `address` (a NodeId string)."""
        nodeid = ua.NodeId.from_string(address)
        self._ensure_namespace(nodeid.NamespaceIndex)
        browse_name = str(nodeid.Identifier).split('.')[-1]
        variant_type = None
        if data_type != TagDataType.NULL:
            variant_type = getattr(ua.VariantType, data_type.value)
        with self._lock:
            node = self._objects.add_variable(nodeid, browse_name, value, variant_type)
            if writable:
                node.set_writable()
            self._points[address] = node
        return node

    def add_catalog(self, config: ClientConfig) -> None:
        """Create one point per catalog tag that has an address."""
        for tag in config.tags:
            if not tag.address:
                continue
            self.add_point(tag.address, _INITIAL_VALUES.get(tag.data_type, 0), tag.data_type)

    def set_point(self, address: str, value: Any) -> None:
        with self._lock:
            node = self._points.get(address)
        if node is None:
            raise KeyError(address)
        node.set_value(value, node.get_data_type_as_variant_type())

    def get_point(self, address: str) -> Any:
        with self._lock:
            node = self._points.get(address)
        if node is None:
            raise KeyError(address)
        return node.get_value()

    def start(self) -> None:
        self._server.start()
        self._running = True
        log.info("OPC UA simulator started on %s", self._endpoint)

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        try:
            self._server.stop()
        except Exception:
            log.exception("error stopping OPC UA simulator")
