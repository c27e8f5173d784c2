"""Site-relative path handling for Bollard.

Site paths identify content independently of where the source and output trees
live on disk. They use ``/`` as separator and always begin with ``/``. This
module converts site paths to physical paths and back, and refuses any
conversion that would leave the configured root directory.

Key items:
- SitePaths: Maps site paths into the source and output roots.
- combine: Join two site paths with ``.``, ``..`` and reset-to-root handling.
- relative_url: Relative link from one site path to another.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from .errors import PathEscapeError

_SEPARATOR_RE = re.compile(r"[/\\]")


def combine(base: str, sub: str) -> str:
    """Combine a site path with a sub-path.

    ``.`` segments are ignored, ``..`` removes the previous segment (never
    going above the root) and an empty segment, as produced by a leading
    slash or ``//``, restarts from the root. This lets an absolute sub-path
    replace the base instead of being appended to it.

    Args:
        base: Site path to start from.
        sub: Relative or absolute path to apply.

    Returns:
        The combined site path, always beginning with ``/``.

    Examples:
        >>> combine("/blog", "post.html")
        '/blog/post.html'
        >>> combine("/blog/2024", "../about.html")
        '/blog/about.html'
        >>> combine("/blog", "/images/logo.png")
        '/images/logo.png'
    """
    segments: list[str] = []
    _add_segments(segments, base)
    _add_segments(segments, sub)
    return "/" + "/".join(segments)


def _add_segments(segments: list[str], path: str) -> None:
    trimmed = path.rstrip("/\\")
    if not trimmed:
        if path:
            # Only separators: the root itself
            segments.clear()
        return
    for part in _SEPARATOR_RE.split(trimmed):
        if not part:
            segments.clear()
        elif part == ".":
            continue
        elif part == "..":
            if segments:
                segments.pop()
        else:
            segments.append(part)


def relative_url(from_path: str, to_path: str) -> str:
    """Compute a relative link from one site path to another.

    Args:
        from_path: Site path of the page containing the link.
        to_path: Site path of the link target.

    Returns:
        Relative URL usable from ``from_path``.

    Examples:
        >>> relative_url("/blog/post.html", "/images/a.jpg")
        '../images/a.jpg'
        >>> relative_url("/index.html", "/images/a.jpg")
        'images/a.jpg'
    """
    from_parts = _SEPARATOR_RE.split(from_path)
    to_parts = _SEPARATOR_RE.split(to_path)
    same = 0
    while (
        same < len(from_parts) - 1
        and same < len(to_parts) - 1
        and from_parts[same] == to_parts[same]
    ):
        same += 1
    ups = "../" * (len(from_parts) - same - 1)
    downs = "".join(f"{part}/" for part in to_parts[same:-1])
    return f"{ups}{downs}{to_parts[-1]}"


class SitePaths:
    """Resolves site paths against the source and output roots.

    Every physical path handed out is a strict descendant of its root.
    Resolution is lexical: ``..`` segments are collapsed before the check,
    so a path that climbs out of the root fails even if it would come back
    in through a symlink.

    Attributes:
        source_root: Directory holding the site sources.
        dest_root: Directory the built site is written to.
    """

    combine = staticmethod(combine)

    def __init__(self, source_root: Path, dest_root: Path):
        """Initialize the resolver.

        Args:
            source_root: Directory holding the site sources.
            dest_root: Directory the built site is written to.
        """
        self.source_root = Path(os.path.abspath(source_root))
        self.dest_root = Path(os.path.abspath(dest_root))

    def source_path(self, site_path: str) -> Path:
        """Return the physical source path for a site path.

        Raises:
            PathEscapeError: If the result is not inside the source root.
        """
        return _resolve_within(self.source_root, site_path)

    def dest_path(self, site_path: str) -> Path:
        """Return the physical output path for a site path.

        Raises:
            PathEscapeError: If the result is not inside the output root.
        """
        return _resolve_within(self.dest_root, site_path)

    def site_relative_of(self, dest_path: Path) -> str:
        """Return the site path of a physical path in the output tree.

        Raises:
            PathEscapeError: If the path is not inside the output root.
        """
        physical = os.path.normpath(os.path.abspath(dest_path))
        if not _is_strict_descendant(str(self.dest_root), physical):
            raise PathEscapeError(str(dest_path), self.dest_root)
        rel = os.path.relpath(physical, self.dest_root)
        return "/" + rel.replace(os.sep, "/")


def _resolve_within(root: Path, site_path: str) -> Path:
    rel = site_path[1:] if site_path.startswith("/") else site_path
    joined = os.path.normpath(os.path.join(str(root), *rel.split("/")))
    if not _is_strict_descendant(str(root), joined):
        raise PathEscapeError(site_path, root)
    return Path(joined)


def _is_strict_descendant(root: str, path: str) -> bool:
    if path == root:
        return False
    try:
        return os.path.commonpath([root, path]) == root
    except ValueError:
        # Different drives on Windows
        return False
