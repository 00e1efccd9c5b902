import os
import logging
import subprocess
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Union

import requests
from dateutil import parser as dateparser

logger = logging.getLogger("TagWatch Utils")

HTTP_TIMEOUT_SECONDS = 15
USER_AGENT = "tagwatch/0.1"


def parse_push_time(value: Any) -> datetime:
    """
    Parse a Docker Hub timestamp such as "2024-03-01T10:15:30.41853Z".

    Fractions of any length are accepted; Docker Hub trims trailing zeros.

    Args:
        value (Any): The raw 'tag_last_pushed' value.

    Returns:
        datetime: A timezone-aware datetime. Naive values are taken as UTC.

    Raises:
        ValueError: If the value is not an ISO-8601 timestamp string.
    """
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")
    pushed_at = dateparser.isoparse(value.strip())
    if pushed_at.tzinfo is None:
        pushed_at = pushed_at.replace(tzinfo=timezone.utc)
    return pushed_at


def make_fetcher(timeout: Optional[float] = HTTP_TIMEOUT_SECONDS,
                 session: Optional[requests.Session] = None) -> Callable[[str], requests.Response]:
    """
    Build a fetch(url) callable backed by a shared requests session.

    Transport failures propagate as requests.RequestException; status codes
    are left for the caller to inspect.
    """
    http = session or requests.Session()
    http.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})

    def fetch(url: str) -> requests.Response:
        logger.debug(f"GET {url}")
        return http.get(url, timeout=timeout)

    return fetch


def mark_healthy(health_file: Optional[str]) -> None:
    if not health_file:
        return
    try:
        with open(health_file, "w") as f:
            f.write("healthy")
    except OSError as e:
        logger.error(f"Could not write health file '{health_file}': {e}")


def mark_unhealthy(health_file: Optional[str]) -> None:
    if not health_file:
        return
    if os.path.exists(health_file):
        try:
            os.remove(health_file)
        except OSError as e:
            logger.error(f"Could not remove health file '{health_file}': {e}")


def run_push_command(command: Union[str, List[str]], pushed_at: datetime) -> bool:
    """
    Run the configured on-push command with TAGWATCH_PUSHED_AT in its environment.

    Args:
        command (Union[str, List[str]]): A shell string or an argument list.
        pushed_at (datetime): The new push timestamp.

    Returns:
        bool: True if the command exited successfully, otherwise False.
    """
    env = dict(os.environ, TAGWATCH_PUSHED_AT=pushed_at.isoformat())
    logger.info(f"Running on-push command: {command}")
    try:
        subprocess.run(command, shell=isinstance(command, str), env=env, check=True)
        return True
    except (subprocess.CalledProcessError, OSError) as e:
        logger.error(f"On-push command failed: {e}")
        return False
