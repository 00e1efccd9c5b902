import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional, Tuple

from base.tw_base import (
    MalformedResponseError,
    RegistryStatusError,
    WatcherOptions,
    WatchTarget,
    parse_image,
)
from base.tw_events import EventRegistry
from base.tw_scheduler import IntervalTimer
from utils import tw_utils

logger = logging.getLogger("TagWatch Docker Hub")

DOCKERHUB_URL = "https://hub.docker.com"
PUSHED_FIELD = "tag_last_pushed"


class PushBaseline:
    """Last observed push time for one start()-to-stop() session."""

    def __init__(self):
        self._lock = threading.Lock()
        self.value: Optional[datetime] = None

    def observe(self, pushed_at: datetime) -> bool:
        """Record a timestamp and return True only if it is a new push."""
        with self._lock:
            if self.value is None:
                self.value = pushed_at
                return False
            if pushed_at > self.value:
                self.value = pushed_at
                return True
            return False


class TagWatcher:
    """
    Poll Docker Hub for one image tag and emit events when it is re-pushed.

    Events:
      - "fetch": parsed response body of every successful tick
      - "push":  new 'tag_last_pushed' datetime, strictly later than the last one seen
      - "error": the exception that made a tick fail
    """

    def __init__(
        self,
        options: WatcherOptions,
        fetch: Optional[Callable[[str], Any]] = None,
        timer_factory: Optional[Callable[[float, Callable[[], None]], Any]] = None,
        registry_url: str = DOCKERHUB_URL,
    ):
        self.options = options
        self.target: WatchTarget = parse_image(options.image, options.tag)
        self.registry_url = registry_url.rstrip("/")
        self._fetch = fetch or tw_utils.make_fetcher()
        self._timer_factory = timer_factory or IntervalTimer
        self._timer = None
        self._baseline = PushBaseline()
        self._events = EventRegistry()

    @property
    def api_url(self) -> str:
        return f"{self.registry_url}/v2/repositories/{self.target.image_name}/tags/{self.target.tag}"

    @property
    def is_watching(self) -> bool:
        return self._timer is not None

    @property
    def last_pushed(self) -> Optional[datetime]:
        return self._baseline.value

    def on(self, kind: str, callback: Callable[..., Any]) -> "TagWatcher":
        self._events.add_listener(kind, callback)
        return self

    def off(self, kind: str, callback: Callable[..., Any]) -> "TagWatcher":
        self._events.remove_listener(kind, callback)
        return self

    def off_all(self, kind: Optional[str] = None) -> "TagWatcher":
        self._events.remove_all_listeners(kind)
        return self

    def start(self) -> "TagWatcher":
        if self.is_watching:
            self.stop()
        fetcher = self._create_fetcher()
        logger.info(f"Watching {self.target.image_name}:{self.target.tag} every {self.options.interval} ms")
        self._timer = self._timer_factory(self.options.interval / 1000, fetcher)
        self._timer.start()
        fetcher()
        return self

    def stop(self) -> "TagWatcher":
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.info(f"Stopped watching {self.target.image_name}:{self.target.tag}")
        return self

    def _create_fetcher(self) -> Callable[[], None]:
        baseline = PushBaseline()
        self._baseline = baseline

        def fetcher() -> None:
            try:
                result, pushed_at = self._fetch_tag()
            except Exception as e:
                logger.error(f"Fetching {self.api_url} failed: {e}")
                self._events.emit("error", e)
                return

            self._events.emit("fetch", result)
            if baseline.observe(pushed_at):
                logger.info(f"New push detected for {self.target.image_name}:{self.target.tag} at {pushed_at}")
                self._events.emit("push", pushed_at)

        return fetcher

    def _fetch_tag(self) -> Tuple[dict, datetime]:
        response = self._fetch(self.api_url)
        if not response.ok:
            raise RegistryStatusError(response.status_code)
        result = response.json()
        if not isinstance(result, dict) or not result.get(PUSHED_FIELD):
            raise MalformedResponseError(f"Docker Hub API response does not include '{PUSHED_FIELD}' key.")
        try:
            pushed_at = tw_utils.parse_push_time(result[PUSHED_FIELD])
        except ValueError as e:
            raise MalformedResponseError(f"Cannot parse '{PUSHED_FIELD}' value {result[PUSHED_FIELD]!r}: {e}") from e
        return result, pushed_at
