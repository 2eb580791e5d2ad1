from __future__ import annotations

from typing import Callable, Protocol

from ..common.logging import get_logger

logger = get_logger(__name__)

ConnectivityListener = Callable[[bool], None]


class ConnectivityProvider(Protocol):
    """Reachability reported by the hosting environment."""

    def is_online(self) -> bool:
        raise NotImplementedError

    def subscribe(self, listener: ConnectivityListener) -> None:
        raise NotImplementedError

    def unsubscribe(self, listener: ConnectivityListener) -> None:
        raise NotImplementedError


class ManualConnectivity(ConnectivityProvider):
    """Connectivity driven by explicit online/offline signals.

    Listeners are only notified on an actual state change.
    """

    def __init__(self, online: bool = True):
        self._online = bool(online)
        self._listeners: list[ConnectivityListener] = []

    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: ConnectivityListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ConnectivityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_online(self) -> None:
        self._set(True)

    def set_offline(self) -> None:
        self._set(False)

    def _set(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            listener(online)
