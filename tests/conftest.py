from typing import Any, Callable, List, Optional

import pytest

from base.tw_base import WatcherOptions
from registry.dockerhub import TagWatcher


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 400
        self._body = body

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class ScriptedFetch:
    """Returns queued responses (or raises queued exceptions) and records URLs."""

    def __init__(self):
        self.queue: List[Any] = []
        self.urls: List[str] = []

    def push(self, *items: Any) -> "ScriptedFetch":
        self.queue.extend(items)
        return self

    def pushed(self, timestamp: str, **extra) -> "ScriptedFetch":
        return self.push(FakeResponse(200, dict({"name": "latest", "tag_last_pushed": timestamp}, **extra)))

    def __call__(self, url: str):
        self.urls.append(url)
        item = self.queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class ManualTimer:
    """Timer stand-in that only ticks when the test calls fire()."""

    created: List["ManualTimer"] = []

    def __init__(self, interval_seconds: float, action: Callable[[], None]):
        self.interval_seconds = interval_seconds
        self.action = action
        self.started = False
        self.cancelled = False
        ManualTimer.created.append(self)

    def start(self):
        self.started = True
        return self

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.action()


@pytest.fixture
def scripted_fetch():
    return ScriptedFetch()


@pytest.fixture
def timers():
    ManualTimer.created = []
    return ManualTimer.created


@pytest.fixture
def make_watcher(scripted_fetch, timers):
    def factory(image: str = "debian", tag: str = "latest", interval: int = 1000,
                registry_url: Optional[str] = None) -> TagWatcher:
        kwargs = {"registry_url": registry_url} if registry_url else {}
        return TagWatcher(WatcherOptions(image=image, tag=tag, interval=interval),
                          fetch=scripted_fetch, timer_factory=ManualTimer, **kwargs)

    return factory


@pytest.fixture
def recorder():
    return EventRecorder()


class EventRecorder:
    def __init__(self):
        self.events: List[tuple] = []

    def attach(self, watcher: TagWatcher) -> TagWatcher:
        for kind in ("error", "push", "fetch"):
            watcher.on(kind, lambda payload, kind=kind: self.events.append((kind, payload)))
        return watcher

    def kinds(self) -> List[str]:
        return [kind for kind, _ in self.events]

    def payloads(self, kind: str) -> List[Any]:
        return [payload for k, payload in self.events if k == kind]
