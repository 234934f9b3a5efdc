import concurrent.futures
import logging
from typing import Any, Optional

from opc_tag_client.core.address_resolver import AddressResolver
from opc_tag_client.core.connection_manager import ConnectionManager
from opc_tag_client.core.tag_registry import TagRegistry
from opc_tag_client.core.value_conversion import convert_value
from opc_tag_client.errors import (
    ConnectionError, ProtocolError, TagClientError, UnknownAddressError, UnknownTagError,
    WriteRejectedError,
)

logger = logging.getLogger(__name__)


def _is_good(status: Any) -> bool:
    is_good = getattr(status, 'is_good', None)
    if callable(is_good):
        return bool(is_good())
    return status == 0


class WriteCoordinator:
    """
    Validates, converts and submits tag writes.

    Writes are at-most-once: failures are raised to the caller and never
    retried. A successful write does not touch the tag cache; the new value
    arrives through the subscription like any other change.
    """

    def __init__(self, registry: TagRegistry, resolver: AddressResolver,
                 connection: ConnectionManager):
        self.registry = registry
        self.resolver = resolver
        self.connection = connection
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None

    def submit_write(self, display_name: str, raw_value: Any) -> Any:
        """Write `raw_value` to the tag `display_name`. Returns the Good status code.

        Raises ConnectionError, UnknownTagError, UnknownAddressError,
        ConversionError, UnsupportedTypeError, WriteRejectedError or
        ProtocolError.
        """
        try:
            return self._submit(display_name, raw_value)
        except TagClientError as e:
            logger.error(f"Write to '{display_name}' failed: {e}")
            raise

    def _submit(self, display_name: str, raw_value: Any) -> Any:
        session = self.connection.session
        if session is None or not self.connection.is_connected():
            raise ConnectionError("not connected")

        tag = self.registry.snapshot(display_name)
        if tag is None:
            raise UnknownTagError(display_name)

        address = self.resolver.resolve(display_name)
        if address is None:
            raise UnknownAddressError(display_name)

        value = convert_value(raw_value, tag.data_type)
        logger.info(f"Attempting to write value '{value}' ({tag.data_type.value}) to node: {address}")

        results = session.write(address, value, tag.data_type)
        if not results:
            raise ProtocolError("no results")

        status = results[0]
        if not _is_good(status):
            raise WriteRejectedError(status, address)

        logger.info(f"Successfully wrote value to tag: {display_name}")
        return status

    def submit_write_async(self, display_name: str, raw_value: Any) -> concurrent.futures.Future:
        """Run `submit_write` on the write worker thread.

        Writes are submitted in call order on a single worker.
        """
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="opc-write")
        return self._executor.submit(self.submit_write, display_name, raw_value)

    def shutdown(self, wait: bool = True):
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
