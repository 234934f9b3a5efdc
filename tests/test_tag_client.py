from opc_tag_client import TagClientCore
from opc_tag_client.models.tag_models import ConnectionState, TagDataType

from opc_fakes import FakeSessionFactory, wait_for


def test_client_end_to_end_with_fake_session(small_config):
    factory = FakeSessionFactory(failures=1)
    client = TagClientCore(small_config, protocol_factory=factory)
    updates = []
    states = []
    client.on("tag_updated", updates.append)
    client.on("state_changed", lambda old, new: states.append(new))

    task = client.start()
    try:
        assert wait_for(lambda: client.state == ConnectionState.CONNECTED)
        session = factory.sessions[-1]
        assert len(session.items) == 3

        session.notify("Power_system", True, TagDataType.BOOLEAN)
        session.notify("X_postion", 1.5)
        assert client.get_tag("Power_system").value == ""

        assert client.process_pending() == 2
        assert [t.display_name for t in updates] == ["Power_system", "X_postion"]
        assert client.get_tag("Power_system").value == "True"

        client.write_tag("Counter", "12")
        assert session.writes[0][1] == 12
        assert client.write_tag_async("X_postion", "2.5").result(timeout=2.0).is_good()
    finally:
        client.shutdown()

    assert task.done()
    assert session.deleted == [session.subscriptions[0]]
    assert client.state == ConnectionState.DISCONNECTED
    assert ConnectionState.RECONNECTING in states


def test_shutdown_discards_pending_updates(small_config):
    factory = FakeSessionFactory()
    client = TagClientCore(small_config, protocol_factory=factory)
    client.start()
    assert wait_for(lambda: client.state == ConnectionState.CONNECTED)
    factory.sessions[0].notify("X_postion", 3.0)

    client.shutdown()

    assert client.process_pending() == 0
    assert client.get_tag("X_postion").value == ""


def test_shutdown_before_start(small_config):
    client = TagClientCore(small_config, protocol_factory=FakeSessionFactory())

    client.shutdown()

    assert client.state == ConnectionState.DISCONNECTED


def test_from_file_builds_full_catalog(gantry_config_path):
    client = TagClientCore.from_file(gantry_config_path, protocol_factory=FakeSessionFactory())

    assert len(client.tags()) == 21
    assert client.get_tag("Open_Gripper").data_type == TagDataType.BOOLEAN
    assert client.resolver.resolve("Open_Gripper").endswith("AxisGroup_GVL.Open_Gripper")
    assert client.dispatcher.extra_items == {"CurrentTime": "i=2258"}


def test_stale_notification_after_reconnect_is_ignored(small_config):
    factory = FakeSessionFactory()
    client = TagClientCore(small_config, protocol_factory=factory)

    client.start()
    try:
        assert wait_for(lambda: client.state == ConnectionState.CONNECTED)
        old = factory.sessions[0]
        old.connected = False
        assert wait_for(lambda: len(factory.sessions) == 2
                        and client.state == ConnectionState.CONNECTED)
        new = factory.sessions[1]

        new.notify("X_postion", 5.0)
        old.notify("X_postion", 99.0)
        client.process_pending()

        assert client.get_tag("X_postion").value == "5.0"
    finally:
        client.shutdown()


def test_notification_after_shutdown_is_ignored(small_config):
    factory = FakeSessionFactory()
    client = TagClientCore(small_config, protocol_factory=factory)
    updates = []
    client.on("tag_updated", updates.append)

    client.start()
    assert wait_for(lambda: client.state == ConnectionState.CONNECTED)
    session = factory.sessions[0]
    session.notify("X_postion", 1.0)
    client.shutdown()

    session.notify("X_postion", 7.0)

    assert client.process_pending() == 0
    assert client.get_tag("X_postion").value == ""
    assert updates == []
