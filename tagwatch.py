import logging
import os
import sys
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from base.tw_config_parser import build_watch_settings, clear_config_cache, load_config
from registry.dockerhub import TagWatcher
from utils import tw_utils

# Set up logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger("TagWatch")


def resolve_config_path() -> str:
    """
    Resolve runtime config path: explicit env var first, then the usual locations.
    """
    explicit = os.environ.get("TAGWATCH_CONFIG") or os.environ.get("TAGWATCH_CONFIG_PATH")
    if explicit:
        return explicit

    for candidate in ("config/config.yaml", "config.yaml"):
        if Path(candidate).is_file():
            return candidate
    return "config/config.yaml"


def build_watcher(settings: Dict[str, Any]) -> TagWatcher:
    fetch = tw_utils.make_fetcher(timeout=settings["request_timeout_seconds"])
    return TagWatcher(settings["options"], fetch=fetch, registry_url=settings["registry_url"])


def attach_default_handlers(watcher: TagWatcher, health_file: Optional[str] = None, on_push=None) -> TagWatcher:
    """
    Log every event, keep the health file in sync and run the on-push command.
    """
    name = f"{watcher.target.image_name}:{watcher.target.tag}"

    def handle_fetch(result: Dict[str, Any]) -> None:
        logger.info(f"Fetched {name}, last pushed at {result.get('tag_last_pushed')}")
        tw_utils.mark_healthy(health_file)

    def handle_push(pushed_at) -> None:
        logger.info(f"New image pushed for {name} at {pushed_at.isoformat()}")
        if on_push:
            tw_utils.run_push_command(on_push, pushed_at)

    def handle_error(error: Exception) -> None:
        tw_utils.mark_unhealthy(health_file)

    return watcher.on("fetch", handle_fetch).on("push", handle_push).on("error", handle_error)


def main() -> int:
    # 1) Load config ONCE (env vars alone are enough when no file exists)
    config_path = resolve_config_path()
    explicit = os.environ.get("TAGWATCH_CONFIG") or os.environ.get("TAGWATCH_CONFIG_PATH")
    if explicit and not Path(explicit).is_file():
        logger.error(f"Configuration file '{explicit}' does not exist. Exiting.")
        return 1
    clear_config_cache()
    config = load_config(config_path) if Path(config_path).is_file() else {}
    if config is None:
        logger.error("Failed to load configuration. Exiting.")
        return 1

    # 2) Validate settings
    try:
        settings = build_watch_settings(config)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    # 3) Build and start
    watcher = build_watcher(settings)
    attach_default_handlers(watcher, settings["health_file"], settings["on_push"])
    watcher.start()

    # Keep main thread alive
    try:
        while True:
            threading.Event().wait(3600)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        watcher.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
