"""Storage key addressing.

Objects are addressed by a flat key derived from a logical file name and an
optional logical path. The key namespace itself is the directory structure:
there is no separate index.
"""

from __future__ import annotations

KEY_SEPARATOR = "/"


def derive_key(path: str | None, name: str) -> str:
    """Build the storage key for a name under an optional path.

    Distinct (path, name) pairs that produce the same key address the same
    object; no normalization is applied to either part.

    Args:
        path: Logical path prefix. None or "" means the namespace root.
        name: Logical file name.

    Returns:
        ``f"{path}/{name}"`` when path is non-empty, otherwise ``name``.

    Note:
        An empty path does not follow the ``path/name`` rule: it yields
        ``name``, never ``"/" + name``. A leading separator would be a
        distinct S3 key and an absolute path on the filesystem backend, so
        ``derive_key("", "a.txt")`` and ``derive_key(None, "a.txt")`` both
        address ``"a.txt"``.
    """
    if path:
        return f"{path}{KEY_SEPARATOR}{name}"
    return name


def list_prefix(path: str | None) -> str:
    """Build the listing prefix for an optional logical path.

    Callers pass the path without a trailing separator; one is appended so
    that listing "docs" does not match "docs-archive/...".
    """
    if path:
        return f"{path}{KEY_SEPARATOR}"
    return ""
