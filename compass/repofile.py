"""Repo-local project link.

A checkout is linked to a project by a ``.compass-project`` file holding the
project key. Lookups walk up from the working directory, so every
subdirectory of a linked repo resolves to the same project.
"""

import os

FILE_NAME = ".compass-project"


def read(directory: str) -> str:
    """Return the key linked in ``directory``, or "" if there is no link file."""
    path = os.path.join(directory, FILE_NAME)
    if not os.path.exists(path):
        return ""
    with open(path) as f:
        return f.read().strip()


def find(start_dir: str) -> tuple[str, str]:
    """Walk up from ``start_dir`` and return ``(key, directory)`` of the nearest link.

    Returns ``("", "")`` when no directory up to the filesystem root has one.
    """
    directory = os.path.abspath(start_dir)
    while True:
        key = read(directory)
        if key:
            return key, directory
        parent = os.path.dirname(directory)
        if parent == directory:
            return "", ""
        directory = parent


def write(directory: str, key: str) -> str:
    path = os.path.join(directory, FILE_NAME)
    with open(path, "w") as f:
        f.write(key + "\n")
    return path


def remove(directory: str) -> bool:
    """Delete the link file in ``directory``; return False if there was none."""
    try:
        os.remove(os.path.join(directory, FILE_NAME))
    except FileNotFoundError:
        return False
    return True
