"""Atomic, cross-process-safe JSON file I/O for the compass store.

Uses `filelock.FileLock` for exclusive advisory locking and an atomic
temp-file + os.replace() pattern so that a task list is never half-written.
Holding the lock across read, dependency validation and write is what keeps
two concurrent edits from jointly introducing a dependency cycle.
"""

import copy
import json
import os
import tempfile
from contextlib import contextmanager

from filelock import FileLock

# Seconds to wait for another process to release the lock before giving up.
_LOCK_TIMEOUT = 30


def _lock_for(path: str) -> FileLock:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    return FileLock(path + ".lock", timeout=_LOCK_TIMEOUT)


def _atomic_dump(path: str, data) -> None:
    dir_name = os.path.dirname(os.path.abspath(path))
    os.makedirs(dir_name, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as fh:
            json.dump(data, fh, indent=2)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


@contextmanager
def locked_json_rw(path: str, default=None):
    """Context manager for atomic read-modify-write of a JSON file.

    Acquires an exclusive lock on ``path + ".lock"``, yields the parsed object
    for in-place modification and, when the block exits cleanly, writes it
    back atomically. If the block raises, the file is left untouched.

    When ``path`` does not exist, a deep copy of ``default`` is yielded
    instead; with no default a missing file raises ``FileNotFoundError``.

    Usage::

        with locked_json_rw("tasks.json", default={"tasks": []}) as data:
            data["tasks"].append(task)
    """
    with _lock_for(path):
        if os.path.exists(path) or default is None:
            with open(path) as fh:
                data = json.load(fh)
        else:
            data = copy.deepcopy(default)

        yield data

        _atomic_dump(path, data)


def read_json(path: str, default=None):
    """Read and parse a JSON file without acquiring a lock.

    Returns ``default`` when the file is missing and a default is given.
    """
    if default is not None and not os.path.exists(path):
        return copy.deepcopy(default)
    with open(path) as fh:
        return json.load(fh)


def write_json(path: str, data) -> None:
    """Atomically write *data* as JSON to *path* under the file lock."""
    with _lock_for(path):
        _atomic_dump(path, data)
