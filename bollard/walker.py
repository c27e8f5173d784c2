"""Source tree traversal for Bollard.

The walker visits every published file of the source tree and hands it to
the site for rendering or copying. Names starting with an underscore are
not published: such files are skipped and such folders are not entered.

Key items:
- PageKind: How a source file is published.
- classify: Determine the PageKind of a site path.
- RenderWalker: Visits the source tree and renders each file.
- WalkReport: What a walk did.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import FATAL_ERRORS, BuildError, format_error_message
from .paths import combine
from .utils import is_markdown, is_reserved, is_template

if TYPE_CHECKING:
    from .build import Site

logger = logging.getLogger(__name__)


class PageKind(Enum):
    TEMPLATE = "template"
    MARKUP = "markup"
    STATIC = "static"


def classify(site_path: str) -> PageKind:
    """Determine how a file is published from its extension.

    Examples:
        >>> classify("/index.html.jinja")
        <PageKind.TEMPLATE: 'template'>
        >>> classify("/blog/post.MD")
        <PageKind.MARKUP: 'markup'>
        >>> classify("/css/site.css")
        <PageKind.STATIC: 'static'>
    """
    if is_template(site_path):
        return PageKind.TEMPLATE
    if is_markdown(site_path):
        return PageKind.MARKUP
    return PageKind.STATIC


@dataclass
class WalkReport:
    """Outcome of a walk, by site path.

    Attributes:
        rendered: Templates and Markdown pages that were rendered.
        copied: Static files that were copied.
        unchanged: Static files whose output was already up to date.
        failures: Files that failed.
    """

    rendered: list[str] = field(default_factory=list)
    copied: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failures: list[BuildError] = field(default_factory=list)


class RenderWalker:
    """Visits the published files of a site in a stable order.

    In directory mode the tree is walked depth first: the files of a folder
    in name order, then its subfolders in name order. In single-file mode
    only that file is visited.
    """

    def __init__(self, site: Site):
        self.site = site

    def iter_site_paths(self) -> Iterator[str]:
        """Yield the site path of every file to publish."""
        if self.site.single_file is not None:
            yield self.site.single_file
            return
        yield from self._walk_folder("/", self.site.paths.source_root)

    def _walk_folder(self, site_path: str, folder: Path) -> Iterator[str]:
        entries = sorted(folder.iterdir(), key=lambda p: p.name)
        subfolders = []
        for entry in entries:
            if is_reserved(entry.name):
                continue
            if entry.is_dir():
                if not self._is_output_root(entry):
                    subfolders.append(entry)
            elif entry.is_file():
                yield combine(site_path, entry.name)
        for entry in subfolders:
            yield from self._walk_folder(combine(site_path, entry.name), entry)

    def _is_output_root(self, folder: Path) -> bool:
        return os.path.abspath(folder) == str(self.site.paths.dest_root)

    def render_file(self, site_path: str) -> bool:
        """Publish one file.

        Returns:
            False if the file was static and already up to date, True
            otherwise.
        """
        kind = classify(site_path)
        if kind is PageKind.TEMPLATE:
            self.site.render_template(site_path)
            return True
        if kind is PageKind.MARKUP:
            self.site.render_markdown(site_path)
            return True
        return self.site.copy_static(site_path)

    def walk(self) -> WalkReport:
        """Publish every file, isolating failures to the file at fault.

        Returns:
            WalkReport of the walk.

        Raises:
            ConfigurationError: On a configuration problem.
            PathEscapeError: If a path resolves outside its root.
        """
        report = WalkReport()
        for site_path in self.iter_site_paths():
            try:
                changed = self.render_file(site_path)
            except FATAL_ERRORS:
                raise
            except Exception as exc:
                error = BuildError(site_path, format_error_message(exc), exc)
                logger.error("Failed: %s: %s", site_path, error.message)
                report.failures.append(error)
                continue
            if classify(site_path) is not PageKind.STATIC:
                report.rendered.append(site_path)
            elif changed:
                report.copied.append(site_path)
            else:
                report.unchanged.append(site_path)
        return report
