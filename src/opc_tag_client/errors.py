"""Exception taxonomy for the tag client.

Connection failures are self-healing inside ConnectionManager; everything
else is raised to the caller of the failing operation.
"""
import builtins
from typing import Any


class TagClientError(Exception):
    """Base class for all tag client errors."""


class ConfigurationError(TagClientError):
    """Invalid client configuration (endpoint, catalog, intervals)."""


class ConnectionError(TagClientError, builtins.ConnectionError):
    """Session could not be opened, or an operation needs a live session."""


class UnknownTagError(TagClientError, KeyError):
    def __init__(self, display_name: str):
        super().__init__(display_name)
        self.display_name = display_name

    def __str__(self):
        return f"Tag '{self.display_name}' not found"


class UnknownAddressError(TagClientError, KeyError):
    def __init__(self, display_name: str):
        super().__init__(display_name)
        self.display_name = display_name

    def __str__(self):
        return f"No node address for tag '{self.display_name}'"


class ConversionError(TagClientError, ValueError):
    """Raw value could not be parsed into the tag's data type."""

    def __init__(self, value: str, data_type: Any, reason: str = ""):
        self.value = value
        self.data_type = data_type
        self.reason = reason
        type_name = getattr(data_type, 'value', data_type)
        msg = f"Cannot convert '{value}' to {type_name}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class UnsupportedTypeError(TagClientError, TypeError):
    def __init__(self, data_type: Any):
        self.data_type = data_type
        super().__init__(f"Unsupported data type for write: {getattr(data_type, 'value', data_type)}")


class WriteRejectedError(TagClientError):
    """Server answered a write with a non-Good status code."""

    def __init__(self, status_code: Any, address: str = ""):
        self.status_code = status_code
        self.address = address
        name = getattr(status_code, 'name', None) or str(status_code)
        msg = f"Write rejected with status {name}"
        if address:
            msg += f" for {address}"
        super().__init__(msg)


class ProtocolError(TagClientError):
    """Unexpected response shape or transport failure during a request."""
