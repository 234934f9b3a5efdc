"""In-memory stand-ins for the OPC UA collaborator."""
import threading
import time

from opc_tag_client.errors import ConnectionError
from opc_tag_client.models.tag_models import TagDataType
from opc_tag_client.protocols.opc.base_opc import OPCClientInterface


class FakeStatus:
    def __init__(self, name="Good"):
        self.name = name

    def is_good(self):
        return self.name == "Good"

    def __repr__(self):
        return f"FakeStatus({self.name})"


class FakeSession(OPCClientInterface):
    def __init__(self, fail_connect=False, write_results=None, connect_delay=0.0):
        self.fail_connect = fail_connect
        self.connect_delay = connect_delay
        self.write_results = [FakeStatus()] if write_results is None else write_results
        self.connected = False
        self.handler = None
        self.subscriptions = []
        self.items = []
        self.deleted = []
        self.writes = []
        self.disconnect_calls = 0
        self.connect_times = []
        self.connected_at = None

    def connect(self, config):
        self.connect_times.append(time.monotonic())
        if self.connect_delay:
            time.sleep(self.connect_delay)
        if self.fail_connect:
            raise ConnectionError(f"cannot reach {config.endpoint}")
        self.connected = True
        self.connected_at = time.monotonic()

    def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False

    def is_connected(self):
        return self.connected

    def create_subscription(self, publishing_interval_ms, handler):
        self.handler = handler
        subscription = {'interval': publishing_interval_ms}
        self.subscriptions.append(subscription)
        return subscription

    def create_monitored_item(self, subscription, address, display_name):
        self.items.append((address, display_name))
        return len(self.items)

    def delete_subscription(self, subscription):
        self.deleted.append(subscription)

    def write(self, address, value, data_type):
        self.writes.append((address, value, data_type))
        return self.write_results

    def notify(self, display_name, value, data_type=TagDataType.DOUBLE,
               source_timestamp="2024-05-01T12:00:00"):
        """Simulate the library delivering a data change."""
        self.handler.on_data_change(display_name, value, source_timestamp, data_type)


class FakeSessionFactory:
    """Hands out sessions; the first `failures` of them refuse to connect."""

    def __init__(self, failures=0, connect_delay=0.0):
        self.failures = failures
        self.connect_delay = connect_delay
        self.sessions = []
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            session = FakeSession(fail_connect=len(self.sessions) < self.failures,
                                  connect_delay=self.connect_delay)
            self.sessions.append(session)
            return session

    @property
    def connect_times(self):
        return [t for s in self.sessions for t in s.connect_times]

    @property
    def live(self):
        return [s for s in self.sessions if s.connected]


def wait_for(predicate, timeout=2.0, interval=0.005):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
