"""Root-relative path conversion for persisted file locations.

Paths under the storage root are stored relative to it (with forward
slashes) so the whole root can be moved or synced to another machine.
Anything outside the root is stored as-is.
"""

import os


def to_relative_path(root: str, candidate: str | None) -> str | None:
    """Convert an absolute path under ``root`` to a root-relative one.

    Args:
        root: Absolute, normalized storage root
        candidate: Path to convert (may be None)

    Returns:
        Relative path using ``/`` separators, or ``candidate`` unchanged when
        it is blank, already relative, or outside the root
    """
    if candidate is None or not candidate.strip():
        return candidate
    if not os.path.isabs(candidate):
        return candidate

    try:
        relative = os.path.relpath(candidate, root)
    except ValueError:
        # Different drive on Windows
        return candidate

    if relative == os.pardir or relative.startswith(os.pardir + os.sep):
        return candidate

    return relative.replace(os.sep, "/")


def to_absolute_path(root: str, candidate: str | None) -> str | None:
    """Resolve a persisted path against the current storage root.

    Absolute paths and blank values are returned unchanged.
    """
    if candidate is None or not candidate.strip():
        return candidate
    if os.path.isabs(candidate):
        return candidate

    parts = [part for part in candidate.split("/") if part]
    return os.path.normpath(os.path.join(root, *parts))


def normalize_root(root: str | os.PathLike[str]) -> str:
    """Expand ``~`` and return an absolute, normalized root path."""
    return os.path.abspath(os.path.expanduser(os.fspath(root)))
