"""Observable connectivity signal fed by the host environment."""

from __future__ import annotations

import inspect
import logging
from threading import RLock
from typing import Any, Awaitable, Callable, List, Literal, Union

logger = logging.getLogger(__name__)

ConnectivityEvent = Literal["online", "offline"]
ConnectivityListener = Callable[[ConnectivityEvent], Union[None, Awaitable[Any]]]


class ConnectivityMonitor:
    """Tracks whether the network is reachable and publishes transitions."""

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._listeners: List[ConnectivityListener] = []
        self._lock = RLock()

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    async def set_online(self, online: bool) -> bool:
        """Record the new state; listeners only hear about actual transitions."""
        with self._lock:
            changed = online != self._online
            self._online = online
            listeners = list(self._listeners)
        if not changed:
            return False

        event: ConnectivityEvent = "online" if online else "offline"
        logger.info("Connectivity changed: %s", event)
        for listener in listeners:
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                logger.exception("Connectivity listener failed for %s", event)
        return True


__all__ = ["ConnectivityEvent", "ConnectivityListener", "ConnectivityMonitor"]
