"""OPC UA tag client: live tag mirroring with automatic reconnection and validated writes.

The Qt bridge (`opc_tag_client.core.tag_client_qt`) is imported separately so
headless hosts do not need PySide6.
"""

from opc_tag_client.core.tag_client import TagClientCore
from opc_tag_client.core.value_conversion import convert_value
from opc_tag_client.errors import (
    ConfigurationError, ConnectionError, ConversionError, ProtocolError, TagClientError,
    UnknownAddressError, UnknownTagError, UnsupportedTypeError, WriteRejectedError,
)
from opc_tag_client.models.client_config import ClientConfig, ReconnectPolicy, SecurityConfig, TagDefinition
from opc_tag_client.models.tag_models import ConnectionState, Tag, TagDataType

__version__ = "1.0.0"

__all__ = [
    "TagClientCore",
    "convert_value",
    "ClientConfig",
    "ReconnectPolicy",
    "SecurityConfig",
    "TagDefinition",
    "ConnectionState",
    "Tag",
    "TagDataType",
    "TagClientError",
    "ConfigurationError",
    "ConnectionError",
    "ConversionError",
    "ProtocolError",
    "UnknownAddressError",
    "UnknownTagError",
    "UnsupportedTypeError",
    "WriteRejectedError",
]
