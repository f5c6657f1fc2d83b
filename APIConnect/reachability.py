import logging
import threading

logger = logging.getLogger(__name__)


class Reachability:
    """Reports whether the network is reachable.

    The client reads `is_connected` once per dispatch. Monitors that watch
    the network do so between `start()` and `stop()`.
    """

    @property
    def is_connected(self) -> bool:
        raise NotImplementedError

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass


class StaticReachability(Reachability):
    """A reachability value set by hand, e.g. from tests or a host application's own monitor."""

    def __init__(self, connected: bool = True):
        self._connected = connected
        self._running = False
        self._lock = threading.Lock()

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    def set_connected(self, connected: bool) -> None:
        with self._lock:
            changed = self._connected != connected
            self._connected = connected
        if changed:
            logger.info(f"Network {'reachable' if connected else 'unreachable'}")

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._running = True

    def stop(self) -> None:
        self._running = False
