from dataclasses import dataclass

DEFAULT_INTERVAL_MS = 60 * 1000
OFFICIAL_NAMESPACE = "library"


class RegistryStatusError(Exception):
    """Raised when the registry answers with a non-success status code."""

    def __init__(self, status_code: int):
        super().__init__(f"Docker Hub API response is not OK: {status_code}")
        self.status_code = status_code


class MalformedResponseError(Exception):
    """Raised when a successful response lacks a usable 'tag_last_pushed'."""


@dataclass(frozen=True)
class WatchTarget:
    namespace: str
    repository: str
    tag: str

    @property
    def image_name(self) -> str:
        return f"{self.namespace}/{self.repository}"


def parse_image(image: str, tag: str) -> WatchTarget:
    """
    Derive the registry namespace and repository from an image string.

    Only the first and last segments are used, so "a/b/c" resolves to "a/c".
    Bare names and the "_" namespace map to the official "library" namespace.
    """
    parts = image.split("/")
    if len(parts) == 1 or parts[0] == "_":
        namespace = OFFICIAL_NAMESPACE
    else:
        namespace = parts[0]
    return WatchTarget(namespace=namespace, repository=parts[-1], tag=tag)


@dataclass(frozen=True)
class WatcherOptions:
    image: str
    tag: str
    interval: int = DEFAULT_INTERVAL_MS  # milliseconds

    def __post_init__(self):
        if not isinstance(self.image, str) or not self.image.strip():
            raise ValueError("Option 'image' must be a non-empty string.")
        if not isinstance(self.tag, str) or not self.tag.strip():
            raise ValueError("Option 'tag' must be a non-empty string.")
        if isinstance(self.interval, bool) or not isinstance(self.interval, int) or self.interval <= 0:
            raise ValueError(f"Option 'interval' must be a positive integer of milliseconds, got {self.interval!r}.")

