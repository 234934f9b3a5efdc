from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class TagDataType(Enum):
    """OPC UA built-in types a tag can carry (values match ua.VariantType names)."""
    NULL = "Null"
    BOOLEAN = "Boolean"
    SBYTE = "SByte"
    BYTE = "Byte"
    INT16 = "Int16"
    UINT16 = "UInt16"
    INT32 = "Int32"
    UINT32 = "UInt32"
    INT64 = "Int64"
    UINT64 = "UInt64"
    FLOAT = "Float"
    DOUBLE = "Double"
    STRING = "String"
    DATETIME = "DateTime"
    GUID = "Guid"
    BYTESTRING = "ByteString"
    XMLELEMENT = "XmlElement"
    NODEID = "NodeId"
    STATUSCODE = "StatusCode"
    QUALIFIEDNAME = "QualifiedName"
    LOCALIZEDTEXT = "LocalizedText"
    EXTENSIONOBJECT = "ExtensionObject"
    DATAVALUE = "DataValue"
    VARIANT = "Variant"

    @classmethod
    def from_name(cls, name: Optional[str]) -> 'TagDataType':
        """Case-insensitive lookup by type name ("Double", "int16", ...)."""
        if isinstance(name, cls):
            return name
        if not name:
            return cls.NULL
        wanted = str(name).strip().lower()
        for dt in cls:
            if dt.value.lower() == wanted or dt.name.lower() == wanted:
                return dt
        raise ValueError(f"Unknown data type: {name}")

    @classmethod
    def from_variant_type(cls, variant_type: Any) -> 'TagDataType':
        """Map an observed ua.VariantType (or anything with .name) to a TagDataType."""
        name = getattr(variant_type, 'name', variant_type)
        try:
            return cls.from_name(name)
        except ValueError:
            return cls.NULL


class ConnectionState(Enum):
    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    RECONNECTING = "Reconnecting"


@dataclass
class Tag:
    """A named, typed data point mirrored from the server.

    `display_name` is the registry key and never changes. The other fields are
    written only by TagRegistry.upsert on the consumer thread.
    """
    display_name: str
    value: str = ""
    source_timestamp: str = ""
    data_type: TagDataType = TagDataType.NULL

    def __setattr__(self, name, value):
        if name == 'display_name' and 'display_name' in self.__dict__:
            raise AttributeError("display_name is immutable")
        super().__setattr__(name, value)


@dataclass(frozen=True)
class PendingAction:
    """One notification waiting to be applied on the consumer thread."""
    display_name: str
    value: str
    source_timestamp: str
    data_type: TagDataType
