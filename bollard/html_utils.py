"""HTML and URL string helpers for Bollard.

Functions:
    escape_html: Escape special HTML characters in a string.
    join_root_url: Join a site root URL with a site path.
"""

from __future__ import annotations


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Examples:
        >>> escape_html('<script>alert("XSS")</script>')
        '&lt;script&gt;alert(&quot;XSS&quot;)&lt;/script&gt;'

        >>> escape_html('Tom & Jerry')
        'Tom &amp; Jerry'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/blog).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling. Without a root URL the
        path itself is returned, with a leading slash.

    Examples:
        >>> join_root_url('https://example.com', '/about.html')
        'https://example.com/about.html'

        >>> join_root_url('https://example.com/', 'about.html')
        'https://example.com/about.html'
    """
    suffix = path if path.startswith("/") else f"/{path}"
    if not root_url:
        return suffix
    return f"{root_url.rstrip('/')}{suffix}"
