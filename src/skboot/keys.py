"""
Object key naming.

Every object lives at ``<env>/<prefix>/<revision>/<relative-path>``. The
first three segments form the namespace root of one sync; stripping the
root from a key gives back the relative path inside the local tree.
"""

from __future__ import annotations

import posixpath

from .errors import KeyNamespaceError

SEPARATOR = "/"


def make_key(
    environment: str,
    prefix: str,
    revision: str,
    relative_path: str = "",
) -> str:
    """Join the namespace segments and a relative path into an object key.

    Empty segments are dropped so an empty prefix or relative path never
    produces a doubled separator.

    Args:
        environment: Environment name, e.g. ``dev``.
        prefix: Optional path prefix inside the bucket.
        revision: Revision name, e.g. ``latest``.
        relative_path: POSIX path relative to the synced directory.

    Returns:
        The object key, without leading or trailing separator.
    """
    parts = [
        p.strip(SEPARATOR)
        for p in (environment, prefix, revision, relative_path)
    ]
    joined = SEPARATOR.join(p for p in parts if p)
    if not joined:
        return ""
    return posixpath.normpath(joined)


def namespace_root(environment: str, prefix: str, revision: str) -> str:
    """Return the key prefix shared by every object of one revision."""
    return make_key(environment, prefix, revision)


def strip_root(key: str, environment: str, prefix: str, revision: str) -> str:
    """Recover the relative path of ``key`` inside its namespace.

    Args:
        key: Full object key.
        environment: Environment name the key was built with.
        prefix: Prefix the key was built with.
        revision: Revision the key was built with.

    Returns:
        The relative path below the namespace root.

    Raises:
        KeyNamespaceError: If ``key`` does not start with the root.
    """
    root = namespace_root(environment, prefix, revision)
    if not root:
        return key
    head = root + SEPARATOR
    if not key.startswith(head) or len(key) == len(head):
        raise KeyNamespaceError(
            "keys:strip_root", key, f"not under namespace root {root!r}"
        )
    return key[len(head):]
