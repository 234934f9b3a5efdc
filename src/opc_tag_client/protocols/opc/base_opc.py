"""Abstract OPC UA collaborator interfaces (no external deps).

The tag client core depends only on these interfaces; the python-opcua
implementation lives in `ua_client.py` and tests use in-memory fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from opc_tag_client.models.client_config import ClientConfig
from opc_tag_client.models.tag_models import TagDataType


class DataChangeHandler(ABC):
    """Receives notifications on the library's thread.

    Implementations must not block and must not touch consumer-owned state.
    """

    @abstractmethod
    def on_data_change(self, display_name: str, value: Any, source_timestamp: Optional[str],
                       data_type: TagDataType) -> None:
        """One value delivered for one monitored item, in arrival order."""

    def on_status_change(self, status: Any) -> None:
        """Subscription-level status change (e.g. server shutting down)."""


class OPCClientInterface(ABC):
    """Session-level OPC UA operations required by the tag client."""

    @abstractmethod
    def connect(self, config: ClientConfig) -> None:
        """Select an endpoint and open a session. Raises ConnectionError."""

    @abstractmethod
    def disconnect(self) -> None:
        """Close the session. Safe to call when not connected."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Liveness check used by the reconnect loop."""

    @abstractmethod
    def create_subscription(self, publishing_interval_ms: int, handler: DataChangeHandler) -> Any:
        """Create and activate a subscription. Returns its handle."""

    @abstractmethod
    def create_monitored_item(self, subscription: Any, address: str, display_name: str) -> Any:
        """Monitor `address`; notifications are reported under `display_name`."""

    @abstractmethod
    def delete_subscription(self, subscription: Any) -> None:
        """Delete the subscription on the server."""

    @abstractmethod
    def write(self, address: str, value: Any, data_type: TagDataType) -> List[Any]:
        """Write the Value attribute of `address`. Returns one status code per node written.

        The wait is bounded by the session's request timeout (`request_timeout_s`).

        Status codes expose `is_good()`.
        """
