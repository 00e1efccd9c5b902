import os
import logging
from typing import Any, Optional, Dict
import yaml
import threading

from base.tw_base import DEFAULT_INTERVAL_MS, WatcherOptions

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger("TagWatch Config Parser")

DEFAULT_REGISTRY_URL = "https://hub.docker.com"
DEFAULT_HTTP_TIMEOUT_SECONDS = 15
DEFAULT_HEALTH_FILE = "/tmp/healthz"

# Global cached config and lock
_config_cache: Optional[Dict[str, Any]] = None
_config_lock = threading.Lock()


def load_config(config_path: str = "config/config.yaml") -> Optional[Dict[str, Any]]:
    """
    Load a YAML configuration file once and cache it in process.
    Subsequent calls return the cached dictionary.
    """
    global _config_cache
    if _config_cache is not None:
        return _config_cache

    with _config_lock:
        if _config_cache is not None:
            return _config_cache
        try:
            with open(config_path, "r") as file:
                logger.info(f"Loading configuration from '{config_path}'...")
                loaded = yaml.safe_load(file) or {}
        except FileNotFoundError:
            logger.error(f"Configuration file '{config_path}' not found.")
            return None
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML file '{config_path}': {e}")
            return None
        if not isinstance(loaded, dict):
            logger.error(f"Configuration file '{config_path}' must contain a mapping.")
            return None
        _config_cache = loaded
        logger.info("Configuration successfully loaded.")
        return _config_cache


def clear_config_cache() -> None:
    global _config_cache
    with _config_lock:
        _config_cache = None


def get_nested_config_value(keys: str, config: Dict[str, Any], separator: str = ".") -> Optional[Any]:
    if not config:
        logger.warning("Cannot fetch nested key from configuration as it is not loaded.")
        return None
    current_value = config
    for key in keys.split(separator):
        if isinstance(current_value, dict) and key in current_value:
            current_value = current_value[key]
        else:
            logger.debug(f"Nested key '{keys}' not found in the configuration.")
            return None
    return current_value


def _resolve_interval_ms(section: Dict[str, Any]) -> int:
    if section.get("interval") is not None:
        return int(section["interval"])
    seconds = section.get("poll_interval_seconds") or os.environ.get("POLL_INTERVAL_SECONDS")
    if seconds:
        return int(float(seconds) * 1000)
    return DEFAULT_INTERVAL_MS


def _resolve_tag(section: Dict[str, Any]) -> str:
    tag = section.get("tag")
    if tag is None:
        return os.environ.get("DOCKERHUB_TAG", "")
    # YAML turns unquoted 3.10 into the float 3.1, so only str and int are safe.
    if isinstance(tag, bool) or not isinstance(tag, (str, int)):
        raise ValueError(f"Tag {tag!r} was read as {type(tag).__name__}; quote it in the config file.")
    return str(tag)


def build_watch_settings(config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build watcher settings from the 'dockerhub' config section with env fallbacks.

    Returns:
        Dict[str, Any]: 'options' (WatcherOptions), 'registry_url', 'request_timeout_seconds',
                        'health_file' and 'on_push'.

    Raises:
        ValueError: If the image, tag or interval is missing or invalid.
    """
    section = get_nested_config_value("dockerhub", config or {}) or {}
    if not isinstance(section, dict):
        raise ValueError("Config section 'dockerhub' must be a mapping.")

    try:
        interval = _resolve_interval_ms(section)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid poll interval: {e}") from e

    options = WatcherOptions(
        image=section.get("image") or os.environ.get("DOCKERHUB_IMAGE", ""),
        tag=_resolve_tag(section),
        interval=interval,
    )
    timeout = section.get("request_timeout_seconds") or os.environ.get("HTTP_TIMEOUT_SECONDS")
    return {
        "options": options,
        "registry_url": section.get("registry_url") or os.environ.get("DOCKERHUB_REGISTRY_URL") or DEFAULT_REGISTRY_URL,
        "request_timeout_seconds": float(timeout) if timeout else DEFAULT_HTTP_TIMEOUT_SECONDS,
        "health_file": section.get("health_file", os.environ.get("HEALTH_FILE_PATH", DEFAULT_HEALTH_FILE)),
        "on_push": section.get("on_push"),
    }
