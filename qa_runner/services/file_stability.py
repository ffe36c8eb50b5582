"""
Guards for reading files that another process may still be writing.

The cucumber JSON is flushed by the test runner at session end; these
helpers wait until it exists, wait until it stops changing, and check
that it looks like a results document before anything is uploaded.
"""

import json
import logging
import time
from pathlib import Path
from typing import Callable, Optional, Tuple

from qa_runner.utils.errors import FileNotStableError, StateInvalidError

logger = logging.getLogger(__name__)

DEFAULT_POLL_SECONDS = 0.2


def wait_until_exists(
    path: Path,
    timeout: float = 30.0,
    poll: float = DEFAULT_POLL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep
) -> None:
    """
    Wait for a file to appear.

    Raises:
        StateInvalidError: If the file does not exist after ``timeout`` seconds
    """
    path = Path(path)
    deadline = clock() + timeout
    while clock() < deadline:
        if path.exists():
            return
        sleep(poll)

    if path.exists():
        return
    logger.error(f"File did not appear after waiting: {path}")
    raise StateInvalidError(f"File {path} does not exist after waiting {timeout}s")


def _snapshot(path: Path) -> Tuple[int, int]:
    stat = path.stat()
    return stat.st_size, stat.st_mtime_ns


def wait_until_stable(
    path: Path,
    timeout: float = 100.0,
    poll: float = DEFAULT_POLL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep
) -> Tuple[int, int]:
    """
    Wait until two consecutive polls see the same non-zero size and mtime.

    Transient I/O errors (the file being replaced, for instance) are retried
    until the deadline.

    Args:
        path: File to watch
        timeout: Maximum seconds to wait
        poll: Seconds between polls

    Returns:
        The stable (size, mtime_ns) pair

    Raises:
        FileNotStableError: If the file keeps changing past ``timeout``
    """
    path = Path(path)
    deadline = clock() + timeout
    previous: Optional[Tuple[int, int]] = None

    while clock() < deadline:
        try:
            current = _snapshot(path)
        except OSError as e:
            logger.debug(f"Transient error reading {path}: {e}")
            previous = None
        else:
            if current[0] > 0 and current == previous:
                logger.info(f"File is stable: {path} ({current[0]} bytes)")
                return current
            previous = current
        sleep(poll)

    logger.error(f"File did not stabilize in time: {path}")
    raise FileNotStableError(f"File {path} did not stabilize within {timeout}s (still being written?)")


def assert_results_shape(path: Path) -> int:
    """
    Check that a results file is a non-empty JSON array.

    Returns:
        Number of elements in the array

    Raises:
        StateInvalidError: If the file cannot be parsed, is not an array or is empty
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            root = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Could not read or parse results JSON: {path}")
        raise StateInvalidError(f"Could not read or parse results JSON {path}") from e

    if not isinstance(root, list):
        logger.error(f"Results file is not a JSON array: {path}")
        raise StateInvalidError(f"Results file {path} is not a JSON array (cucumber format expected)")
    if not root:
        logger.error(f"Results file is empty: {path}")
        raise StateInvalidError(f"Results file {path} is empty")

    return len(root)
