"""Session lifecycle and the reconnect loop.

State machine:
    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTING -> RECONNECTING            (attempt failed)
    CONNECTED -> RECONNECTING -> CONNECTING (liveness check failed)

The loop runs on its own thread, started by `start()`, which returns a
`ConnectionTask` the host can join or cancel. Connection failures never leave
the loop; they are logged and retried on the policy's schedule.
"""
import logging
import threading
from typing import Callable, Optional

from opc_tag_client.core.events import EventEmitter
from opc_tag_client.errors import ConfigurationError, ConnectionError
from opc_tag_client.models.client_config import ClientConfig
from opc_tag_client.models.tag_models import ConnectionState
from opc_tag_client.protocols.opc.base_opc import OPCClientInterface

logger = logging.getLogger(__name__)


class ConnectionTask:
    """Handle to the background reconnect loop."""

    def __init__(self, thread: threading.Thread, stop_event: threading.Event):
        self._thread = thread
        self._stop_event = stop_event

    def cancel(self):
        self._stop_event.set()

    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop to end. Returns True if it has finished."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def is_running(self) -> bool:
        return self._thread.is_alive()

    def done(self) -> bool:
        return not self._thread.is_alive()


class ConnectionManager(EventEmitter):
    """
    Owns the single OPC UA session of the tag client.

    Events:
        state_changed(old: ConnectionState, new: ConnectionState)
        connected(session)
        reconnect_exhausted()
    """

    def __init__(self, config: ClientConfig, protocol_factory: Callable[[], OPCClientInterface],
                 on_session: Optional[Callable[[OPCClientInterface], object]] = None,
                 on_session_closing: Optional[Callable[[], None]] = None):
        super().__init__()
        self.config = config
        self._protocol_factory = protocol_factory
        self._on_session = on_session
        self._on_session_closing = on_session_closing
        self._session: Optional[OPCClientInterface] = None
        self._state = ConnectionState.DISCONNECTED
        self._lock = threading.RLock()
        self._connect_lock = threading.Lock()
        self._closed = False
        self._stop_event = threading.Event()
        self._task: Optional[ConnectionTask] = None
        self._failures = 0
        self.attempts = 0

    # -- state -------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def session(self) -> Optional[OPCClientInterface]:
        with self._lock:
            return self._session

    def is_connected(self) -> bool:
        with self._lock:
            return self._state == ConnectionState.CONNECTED and self._session is not None

    def _set_state(self, new_state: ConnectionState):
        with self._lock:
            old_state = self._state
            if old_state == new_state:
                return
            self._state = new_state
        logger.info(f"Connection state: {old_state.value} -> {new_state.value}")
        self.emit("state_changed", old_state, new_state)

    # -- connect -----------------------------------------------------------

    def connect(self):
        """Open a new session and hand it to the subscription setup.

        Calls are serialized; a host call waits for a connect running on the
        loop thread. Raises ConnectionError on any failure; the state is then
        RECONNECTING. If `shutdown()` starts while the session is being opened
        the new session is closed again and the state stays DISCONNECTED.
        Calling it after `shutdown()` reopens the manager.
        """
        with self._connect_lock:
            with self._lock:
                self._closed = False
            self._connect()

    def _reconnect(self):
        # Loop thread: a shutdown that began before the lock was acquired wins
        with self._connect_lock:
            if self._closed:
                return
            self._connect()

    def _connect(self):
        self.attempts += 1
        self._set_state(ConnectionState.CONNECTING)
        self._close_session()
        logger.info(f"Connecting to {self.config.endpoint} (attempt {self.attempts})")

        subscribed = False
        try:
            try:
                self.config.validate()
            except ConfigurationError as e:
                raise ConnectionError(f"Invalid application configuration: {e}") from e

            session = self._protocol_factory()
            try:
                session.connect(self.config)
            except ConnectionError:
                raise
            except Exception as e:
                raise ConnectionError(f"Failed to connect to {self.config.endpoint}: {e}") from e

            if self._closed:
                self._discard(session, subscribed)
                return

            if self._on_session is not None:
                try:
                    self._on_session(session)
                    subscribed = True
                except Exception as e:
                    self._safe_disconnect(session)
                    raise ConnectionError(f"Subscription setup failed: {e}") from e
        except ConnectionError as e:
            logger.error(f"Connection failed: {e}")
            self._set_state(ConnectionState.DISCONNECTED if self._closed
                            else ConnectionState.RECONNECTING)
            raise

        with self._lock:
            installed = not self._closed
            if installed:
                self._session = session
                self._failures = 0
                old_state, self._state = self._state, ConnectionState.CONNECTED
        if not installed:
            self._discard(session, subscribed)
            return

        logger.info(f"Connection state: {old_state.value} -> {ConnectionState.CONNECTED.value}")
        self.emit("state_changed", old_state, ConnectionState.CONNECTED)
        logger.info(f"Connected to OPC UA server at {self.config.endpoint}")
        self.emit("connected", session)

    def _discard(self, session: OPCClientInterface, subscribed: bool):
        """Close a session that finished opening after shutdown began."""
        logger.info("Shutdown requested while connecting, closing new session")
        if subscribed and self._on_session_closing is not None:
            try:
                self._on_session_closing()
            except Exception:
                logger.exception("Subscription teardown failed")
        self._safe_disconnect(session)
        self._set_state(ConnectionState.DISCONNECTED)

    # -- reconnect loop ----------------------------------------------------

    def start(self) -> ConnectionTask:
        """Start the connect/reconnect loop in the background."""
        with self._lock:
            if self._task is not None and self._task.is_running():
                return self._task
            self._stop_event.clear()
            self._closed = False
            thread = threading.Thread(target=self._run, name="opc-reconnect", daemon=True)
            self._task = ConnectionTask(thread, self._stop_event)
        thread.start()
        return self._task

    def _session_alive(self) -> bool:
        session = self.session
        if session is None:
            return False
        try:
            return bool(session.is_connected())
        except Exception:
            logger.exception("Liveness check raised")
            return False

    def _run(self):
        policy = self.config.reconnect
        while not self._stop_event.is_set():
            delay = policy.interval_s
            if not self._session_alive():
                if self.state == ConnectionState.CONNECTED:
                    logger.warning("Lost connection to OPC UA server")
                    self._set_state(ConnectionState.RECONNECTING)
                if self.attempts:
                    logger.info("Attempting to reconnect...")
                try:
                    self._reconnect()
                except ConnectionError:
                    if self._closed:
                        return
                    with self._lock:
                        self._failures += 1
                        failures = self._failures
                    if policy.max_attempts is not None and failures >= policy.max_attempts:
                        logger.error(f"Giving up after {failures} failed connection attempts")
                        self._set_state(ConnectionState.DISCONNECTED)
                        self.emit("reconnect_exhausted")
                        return
                    delay = policy.delay_for(failures)
                except Exception:
                    # Never let the loop die on an unexpected error
                    logger.exception("Reconnection failed")
            self._stop_event.wait(delay)

    # -- shutdown ----------------------------------------------------------

    def _safe_disconnect(self, session: OPCClientInterface):
        try:
            session.disconnect()
        except Exception:
            logger.exception("Session close failed")

    def _close_session(self):
        with self._lock:
            session, self._session = self._session, None
        if session is None:
            return
        if self._on_session_closing is not None:
            try:
                self._on_session_closing()
            except Exception:
                logger.exception("Subscription teardown failed")
        self._safe_disconnect(session)

    def shutdown(self, timeout: Optional[float] = 5.0):
        """Stop the loop, delete the subscription and close the session. Idempotent.

        A connect still in progress after `timeout` closes its own session when
        it completes.
        """
        with self._lock:
            self._closed = True
        self._stop_event.set()
        task = self._task
        if task is not None and threading.current_thread() is not task._thread:
            task.join(timeout)
        self._close_session()
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("Connection shut down")
