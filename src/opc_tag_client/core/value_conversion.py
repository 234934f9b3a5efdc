"""Convert user-entered strings into typed values for OPC UA writes.

Parsing is locale-invariant: ASCII digits only, '.' as the decimal
separator, no thousands separators. Booleans accept only "true" / "false"
(any case). Input is trimmed before parsing.
"""
import math
import re
import struct
from typing import Any, Callable, Dict

from opc_tag_client.errors import ConversionError, UnsupportedTypeError
from opc_tag_client.models.tag_models import TagDataType

_INT_RE = re.compile(r'[+-]?[0-9]+\Z', re.ASCII)
_FLOAT_RE = re.compile(r'[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?\Z', re.ASCII)
_SPECIAL_FLOATS = {
    'nan': math.nan,
    'infinity': math.inf,
    '+infinity': math.inf,
    '-infinity': -math.inf,
}

_INT_RANGES = {
    TagDataType.SBYTE: (-2 ** 7, 2 ** 7 - 1),
    TagDataType.BYTE: (0, 2 ** 8 - 1),
    TagDataType.INT16: (-2 ** 15, 2 ** 15 - 1),
    TagDataType.UINT16: (0, 2 ** 16 - 1),
    TagDataType.INT32: (-2 ** 31, 2 ** 31 - 1),
    TagDataType.UINT32: (0, 2 ** 32 - 1),
    TagDataType.INT64: (-2 ** 63, 2 ** 63 - 1),
    TagDataType.UINT64: (0, 2 ** 64 - 1),
}


def _parse_int(text: str, data_type: TagDataType) -> int:
    if not _INT_RE.match(text):
        raise ConversionError(text, data_type, "not an integer")
    value = int(text)
    low, high = _INT_RANGES[data_type]
    if not low <= value <= high:
        raise ConversionError(text, data_type, f"out of range [{low}, {high}]")
    return value


def _parse_double(text: str, data_type: TagDataType = TagDataType.DOUBLE) -> float:
    special = _SPECIAL_FLOATS.get(text.lower())
    if special is not None:
        return special
    if not _FLOAT_RE.match(text):
        raise ConversionError(text, data_type, "not a number")
    value = float(text)
    if math.isinf(value):
        raise ConversionError(text, data_type, "out of range")
    return value


def _parse_float(text: str, data_type: TagDataType = TagDataType.FLOAT) -> float:
    value = _parse_double(text, data_type)
    if math.isfinite(value):
        try:
            struct.pack('<f', value)
        except OverflowError:
            raise ConversionError(text, data_type, "out of range for a 32-bit float") from None
    return value


def _parse_bool(text: str, data_type: TagDataType = TagDataType.BOOLEAN) -> bool:
    lowered = text.lower()
    if lowered == 'true':
        return True
    if lowered == 'false':
        return False
    raise ConversionError(text, data_type, "expected 'true' or 'false'")


_CONVERTERS: Dict[TagDataType, Callable[[str, TagDataType], Any]] = {
    TagDataType.BOOLEAN: _parse_bool,
    TagDataType.FLOAT: _parse_float,
    TagDataType.DOUBLE: _parse_double,
    TagDataType.STRING: lambda text, _dt: text,
}
_CONVERTERS.update({dt: _parse_int for dt in _INT_RANGES})


def is_writable_type(data_type: TagDataType) -> bool:
    return data_type in _CONVERTERS


def convert_value(raw_value: Any, data_type: TagDataType) -> Any:
    """Parse `raw_value` as `data_type`.

    Raises ConversionError when the text does not parse and
    UnsupportedTypeError for types that cannot be written.
    """
    converter = _CONVERTERS.get(data_type)
    if converter is None:
        raise UnsupportedTypeError(data_type)
    if raw_value is None:
        raise ConversionError("", data_type, "no value")
    text = str(raw_value).strip()
    return converter(text, data_type)
