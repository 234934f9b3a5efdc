import pytest

from opc_tag_client.core.action_queue import ActionQueue
from opc_tag_client.core.address_resolver import AddressResolver
from opc_tag_client.core.connection_manager import ConnectionManager
from opc_tag_client.core.subscription_dispatcher import SubscriptionDispatcher
from opc_tag_client.core.tag_registry import TagRegistry
from opc_tag_client.core.write_coordinator import WriteCoordinator
from opc_tag_client.errors import (
    ConnectionError, ConversionError, ProtocolError, UnknownAddressError, UnknownTagError,
    UnsupportedTypeError, WriteRejectedError,
)
from opc_tag_client.models.tag_models import TagDataType

from opc_fakes import FakeSession, FakeStatus


@pytest.fixture
def rig(small_config):
    session = FakeSession()
    registry = TagRegistry.from_catalog(small_config.tags)
    resolver = AddressResolver(small_config.address_table())
    queue = ActionQueue()
    dispatcher = SubscriptionDispatcher(registry, resolver, queue)
    connection = ConnectionManager(small_config, lambda: session, on_session=dispatcher.setup)
    writer = WriteCoordinator(registry, resolver, connection)
    yield session, registry, queue, connection, writer
    writer.shutdown()
    connection.shutdown()


def test_write_requires_connection(rig):
    session, _, _, _, writer = rig

    with pytest.raises(ConnectionError, match="not connected"):
        writer.submit_write("X_postion", "1.0")
    assert session.writes == []


def test_write_unknown_tag(rig):
    _, _, _, connection, writer = rig
    connection.connect()

    with pytest.raises(UnknownTagError):
        writer.submit_write("Nope", "1")


def test_write_tag_without_address(rig):
    _, registry, _, connection, writer = rig
    connection.connect()
    registry.register("Local_Only", TagDataType.DOUBLE)

    with pytest.raises(UnknownAddressError):
        writer.submit_write("Local_Only", "1")


def test_write_conversion_failure(rig):
    session, _, _, connection, writer = rig
    connection.connect()

    with pytest.raises(ConversionError) as exc:
        writer.submit_write("Counter", "3.14")
    assert exc.value.value == "3.14"
    assert exc.value.data_type == TagDataType.INT16
    assert session.writes == []


def test_write_unsupported_type(rig):
    _, registry, _, connection, writer = rig
    connection.connect()
    registry.upsert("X_postion", "", "", TagDataType.DATETIME)

    with pytest.raises(UnsupportedTypeError):
        writer.submit_write("X_postion", "2024-05-01")


def test_round_trip_updates_cache_only_after_notification(rig):
    session, registry, queue, connection, writer = rig
    connection.connect()

    status = writer.submit_write("X_postion", "12.5")

    assert status.is_good()
    assert session.writes == [("ns=4;s=PLC_PRG.Position.X", 12.5, TagDataType.DOUBLE)]
    assert registry.find("X_postion").value == ""

    session.notify("X_postion", 12.5, TagDataType.DOUBLE)
    queue.drain_all()

    tag = registry.find("X_postion")
    assert tag.value == "12.5"
    assert tag.data_type == TagDataType.DOUBLE


def test_rejected_write_keeps_cache(rig):
    session, registry, _, connection, writer = rig
    connection.connect()
    registry.upsert("Power_system", "False", "", TagDataType.BOOLEAN)
    bad = FakeStatus("BadNotWritable")
    session.write_results = [bad]

    with pytest.raises(WriteRejectedError) as exc:
        writer.submit_write("Power_system", "true")

    assert exc.value.status_code is bad
    assert registry.find("Power_system").value == "False"
    assert connection.is_connected()


def test_empty_result_is_protocol_error(rig):
    session, _, _, connection, writer = rig
    connection.connect()
    session.write_results = []

    with pytest.raises(ProtocolError, match="no results"):
        writer.submit_write("Power_system", "true")


def test_async_write_returns_future(rig):
    session, _, _, connection, writer = rig
    connection.connect()

    ok = writer.submit_write_async("Counter", " 7 ")
    bad = writer.submit_write_async("Counter", "seven")

    assert ok.result(timeout=2.0).is_good()
    with pytest.raises(ConversionError):
        bad.result(timeout=2.0)
    assert session.writes == [("ns=4;s=PLC_PRG.Counter", 7, TagDataType.INT16)]
