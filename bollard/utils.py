"""Utility functions for Bollard.

Key functions:
    is_reserved: Check if a file or folder name is hidden from the published site.
    is_markdown: Check if a path is a Markdown file.
    is_template: Check if a path is a Jinja template.
    output_site_path: Site path a page is written to.
    page_name_info: Name, Path and Url attributes for a page.
"""

from __future__ import annotations

import posixpath
from pathlib import PurePath
from typing import Any

from .html_utils import join_root_url

RESERVED_PREFIX = "_"
TEMPLATE_SUFFIX = ".jinja"
MARKDOWN_SUFFIX = ".md"


def is_reserved(name: str) -> bool:
    """Check if a file or folder name is reserved.

    Reserved names start with an underscore. Layouts, includes, photo
    sources, configuration and the default output folder use them to stay
    out of the published tree.

    Args:
        name: File or folder name (not a path).

    Returns:
        True if the name starts with the reserved prefix.
    """
    return name.startswith(RESERVED_PREFIX)


def is_markdown(path: str | PurePath) -> bool:
    """Check if a path is a Markdown file (case-insensitive)."""
    return str(path).lower().endswith(MARKDOWN_SUFFIX)


def is_template(path: str | PurePath) -> bool:
    """Check if a path is a Jinja template (``.jinja`` or ``.html.jinja``)."""
    return str(path).lower().endswith(TEMPLATE_SUFFIX)


def output_site_path(site_path: str) -> str:
    """Return the site path a page source renders to.

    Markdown files become ``.html``. Templates lose their ``.jinja``
    suffix and gain ``.html`` only when no other extension remains.

    Args:
        site_path: Site path of a Markdown or template source.

    Returns:
        Site path of the output file.

    Raises:
        ValueError: If the path is neither Markdown nor a template.

    Examples:
        >>> output_site_path("/blog/post.md")
        '/blog/post.html'
        >>> output_site_path("/feed.xml.jinja")
        '/feed.xml'
        >>> output_site_path("/about.jinja")
        '/about.html'
    """
    if is_markdown(site_path):
        return site_path[: -len(MARKDOWN_SUFFIX)] + ".html"
    if is_template(site_path):
        stem = site_path[: -len(TEMPLATE_SUFFIX)]
        if posixpath.splitext(posixpath.basename(stem))[1]:
            return stem
        return stem + ".html"
    raise ValueError(f"Not a page source: {site_path}")


def page_name_info(site_path: str, root_url: str) -> dict[str, Any]:
    """Compute the naming attributes of a rendered page.

    Args:
        site_path: Site path of the page source.
        root_url: Site root URL (may be empty).

    Returns:
        Dictionary with ``Name`` (output file name), ``Path`` (output site
        path) and ``Url`` (root URL joined with the path).
    """
    path = output_site_path(site_path)
    return {
        "Name": posixpath.basename(path),
        "Path": path,
        "Url": join_root_url(root_url, path),
    }
