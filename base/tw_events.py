import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger("TagWatch Events")

EVENT_KINDS = ("error", "push", "fetch")


class EventRegistry:
    """
    Ordered multi-listener registry keyed by event kind.

    Listeners are invoked synchronously in registration order. A listener that
    raises is logged and skipped; the remaining listeners still run.
    """

    def __init__(self, kinds: Iterable[str] = EVENT_KINDS):
        self._listeners: Dict[str, List[Callable[..., Any]]] = {kind: [] for kind in kinds}
        self._lock = threading.Lock()

    def _check_kind(self, kind: str) -> None:
        if kind not in self._listeners:
            raise ValueError(f"Unknown event kind '{kind}', expected one of {', '.join(self._listeners)}.")

    def add_listener(self, kind: str, callback: Callable[..., Any]) -> None:
        self._check_kind(kind)
        if not callable(callback):
            raise TypeError(f"Listener for '{kind}' must be callable, got {callback!r}.")
        with self._lock:
            self._listeners[kind].append(callback)

    def remove_listener(self, kind: str, callback: Callable[..., Any]) -> None:
        # Every registration of the callback under this kind is dropped.
        self._check_kind(kind)
        with self._lock:
            self._listeners[kind] = [cb for cb in self._listeners[kind] if cb != callback]

    def remove_all_listeners(self, kind: Optional[str] = None) -> None:
        if kind is not None:
            self._check_kind(kind)
        with self._lock:
            for name in self._listeners:
                if kind is None or name == kind:
                    self._listeners[name] = []

    def listeners(self, kind: str) -> List[Callable[..., Any]]:
        self._check_kind(kind)
        with self._lock:
            return list(self._listeners[kind])

    def emit(self, kind: str, *args: Any) -> int:
        """Deliver an event and return how many listeners received it."""
        delivered = 0
        for callback in self.listeners(kind):
            try:
                callback(*args)
                delivered += 1
            except Exception:
                logger.exception(f"Listener {callback!r} for '{kind}' event raised")
        return delivered
