import logging
import os
import re
from contextlib import contextmanager

from filelock import FileLock, Timeout
from flask import current_app

from errors import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 10


def _lock_path(key) -> str:
    lock_dir = current_app.config.get('BRACKET_LOCK_DIR') or current_app.instance_path
    os.makedirs(lock_dir, exist_ok=True)
    safe_slug = re.sub(r'[^A-Za-z0-9_-]', '_', key.slug)
    return os.path.join(lock_dir, f'{safe_slug}.lock')


@contextmanager
def bracket_lock(key):
    """Serialize every writer of one bracket key, across threads and worker processes."""
    timeout = current_app.config.get('BRACKET_LOCK_TIMEOUT', DEFAULT_LOCK_TIMEOUT)
    lock = FileLock(_lock_path(key), timeout=timeout)
    try:
        lock.acquire()
    except Timeout as exc:
        logger.error('Timed out waiting for bracket lock %s', key.slug)
        raise PersistenceError(f'Bracket {key.slug} is busy, try again') from exc
    try:
        yield
    finally:
        lock.release()
