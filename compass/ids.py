"""Project keys and entity ids.

A project key is 2-5 uppercase alphanumerics (``AUTH``). Task and document ids
are the key, a dash, a type marker (``T`` for tasks, ``D`` for documents) and a
five-character random hash (``AUTH-T7K2QM``, ``AUTH-D3XRWN``).
"""

import secrets

CHARSET = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"
HASH_LEN = 5

KIND_PROJECT = "project"
KIND_TASK = "task"
KIND_DOCUMENT = "document"

_KIND_MARKERS = {"T": KIND_TASK, "D": KIND_DOCUMENT}


def generate_key(name: str) -> str:
    """Derive a project key from the first four letters of ``name``."""
    letters = [c.upper() for c in name if c.isalpha()][:4]
    if len(letters) < 2:
        raise ValueError(
            f"cannot auto-generate key from '{name}': need at least 2 alpha characters (use --key)"
        )
    return "".join(letters)


def validate_key(key: str) -> None:
    if not 2 <= len(key) <= 5:
        raise ValueError(f"invalid key '{key}': must be 2-5 characters")
    for c in key:
        if not (c.isascii() and (c.isdigit() or c.isupper())):
            raise ValueError(f"invalid key '{key}': must be uppercase alphanumeric (no dashes)")


def _random_hash() -> str:
    return "".join(secrets.choice(CHARSET) for _ in range(HASH_LEN))


def new_task_id(key: str) -> str:
    validate_key(key)
    return f"{key}-T{_random_hash()}"


def new_doc_id(key: str) -> str:
    validate_key(key)
    return f"{key}-D{_random_hash()}"


def parse_id(entity_id: str) -> tuple[str, str, str]:
    """Split an id into ``(key, kind, hash)``.

    A bare key is a project id and has an empty hash.
    """
    key, sep, suffix = entity_id.rpartition("-")
    if not sep:
        try:
            validate_key(entity_id)
        except ValueError as e:
            raise ValueError(f"invalid id '{entity_id}': {e}") from e
        return entity_id, KIND_PROJECT, ""

    try:
        validate_key(key)
    except ValueError as e:
        raise ValueError(f"invalid id '{entity_id}': bad key: {e}") from e

    if len(suffix) != HASH_LEN + 1:
        raise ValueError(
            f"invalid id '{entity_id}': suffix must be {HASH_LEN + 1} chars "
            f"(type indicator + {HASH_LEN} hash)"
        )
    kind = _KIND_MARKERS.get(suffix[0])
    if kind is None:
        raise ValueError(f"invalid id '{entity_id}': unknown type indicator '{suffix[0]}'")
    for c in suffix[1:]:
        if c not in CHARSET:
            raise ValueError(f"invalid id '{entity_id}': invalid character '{c}' in hash")
    return key, kind, suffix[1:]


def project_key_from(entity_id: str) -> str:
    return parse_id(entity_id)[0]
