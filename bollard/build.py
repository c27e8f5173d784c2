"""Site building for Bollard.

This module holds the Site, the object a build revolves around. It knows
where sources live and where output goes, which defaults apply to which
pages, and how each kind of file is published. A build runs in two phases:
``prep`` lets every collection compute its pages (and generate images), then
``render`` renders the collections and walks the source tree.

Key items:
- Site: Paths, defaults, template engine and collections of one build.
- open_site: Create the Site for a directory or a single file.
- build_site: Build a site and report what happened.
- BuildResult: Outcome of a build.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import TemplateNotFound

from .collections import Collection, DerivativeCollection
from .config import SiteConfig, load_config
from .defaults import DefaultsResolver, DefaultsRule
from .errors import BuildError, TemplateLookupError
from .paths import SitePaths
from .renderers import MarkdownConverter, extract_front_matter
from .templates import TemplateEngine, TemplateSession
from .utils import page_name_info
from .walker import RenderWalker, WalkReport

logger = logging.getLogger(__name__)

LAYOUT_ATTRIBUTE = "Layout"


class Site:
    """Everything one build needs to know about a site.

    Attributes:
        paths: Source and output roots.
        url: Base URL of the published site (may be empty).
        defaults: Default page attributes by scope.
        engine: Template engine over the source root.
        markdown: Markdown converter.
        collections: Collections by name, in configuration order.
        single_file: Site path of the only file to build, in single-file mode.
        values: Extra attributes exposed to templates as ``site``.
    """

    def __init__(
        self,
        paths: SitePaths,
        url: str = "",
        rules: Iterable[DefaultsRule] = (),
        values: Mapping[str, Any] | None = None,
        single_file: str | None = None,
    ):
        self.paths = paths
        self.url = url
        self.defaults = DefaultsResolver(rules)
        self.engine = TemplateEngine(paths.source_root)
        self.markdown = MarkdownConverter()
        self.collections: dict[str, Collection] = {}
        self.single_file = single_file
        self.values = dict(values or {})
        self._created_dirs: set[Path] = set()

    @classmethod
    def from_config(cls, config: SiteConfig, metadata_store: Any = None) -> Site:
        """Create a site for a configured source directory.

        Args:
            config: Loaded site configuration.
            metadata_store: Photo metadata reader; Pillow EXIF by default.
        """
        site = cls(
            SitePaths(config.source_dir, config.output_dir),
            url=config.site_root,
            rules=config.defaults,
            values=config.site,
        )
        for collection_config in config.collections:
            site.add_collection(
                DerivativeCollection(site, collection_config, metadata_store)
            )
        return site

    @classmethod
    def for_file(cls, path: Path) -> Site:
        """Create a site that builds one file next to itself."""
        path = Path(path).resolve()
        return cls(SitePaths(path.parent, path.parent), single_file="/" + path.name)

    def add_collection(self, collection: Collection) -> None:
        self.collections[collection.name] = collection

    def attributes(self) -> dict[str, Any]:
        """Site object exposed to templates as ``site``."""
        attributes = dict(self.values)
        attributes.update(
            {
                "Url": self.url,
                "Source": str(self.paths.source_root),
                "Output": str(self.paths.dest_root),
                "Collections": {
                    name: collection.attributes()
                    for name, collection in self.collections.items()
                },
            }
        )
        return attributes

    def ensure_dir(self, directory: Path) -> None:
        """Create a directory (and parents) once per build."""
        if directory in self._created_dirs:
            return
        directory.mkdir(parents=True, exist_ok=True)
        self._created_dirs.add(directory)

    def write_page(self, site_path: str, text: str) -> Path:
        """Write rendered text to the output file for a site path."""
        dest = self.paths.dest_path(site_path)
        self.ensure_dir(dest.parent)
        with open(dest, "w", encoding="utf-8") as f:
            f.write(text)
        return dest

    def page_attributes(
        self, site_path: str, overrides: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """Attributes of a page: defaults, then overrides, then its names."""
        page = self.defaults.resolve(site_path)
        if overrides:
            page.update(overrides)
        page.update(page_name_info(site_path, self.url))
        return page

    def layout_session(self, name: str) -> TemplateSession:
        """Instantiate a layout named by page attributes.

        Raises:
            TemplateLookupError: If there is no such layout.
        """
        try:
            return self.engine.lookup(name)
        except TemplateNotFound as exc:
            raise TemplateLookupError(
                name, f'{LAYOUT_ATTRIBUTE}="{name}"', exc.message
            ) from exc

    def render_template(self, site_path: str) -> Path:
        """Render a template page to its output file."""
        page = self.page_attributes(site_path)
        session = self.engine.load(site_path)
        text = session.run(site=self.attributes(), page=page)
        dest = self.write_page(page["Path"], text)
        logger.info("Render: %s", page["Path"])
        return dest

    def render_markdown(self, site_path: str) -> Path:
        """Render a Markdown page, wrapped in its layout if it has one.

        Front matter values override the defaults that apply to the page.
        """
        source = self.paths.source_path(site_path).read_text(encoding="utf-8")
        front_matter, body = extract_front_matter(source)
        page = self.page_attributes(site_path, front_matter)
        html = self.markdown.to_html(body)

        layout = page.get(LAYOUT_ATTRIBUTE)
        if layout:
            session = self.layout_session(str(layout))
            page[LAYOUT_ATTRIBUTE] = None
            html = session.run(site=self.attributes(), page=page, included_body=html)

        dest = self.write_page(page["Path"], html)
        logger.info("Render: %s", site_path)
        return dest

    def copy_static(self, site_path: str) -> bool:
        """Copy a file unless its output is at least as new.

        Returns:
            True if the file was copied.
        """
        source = self.paths.source_path(site_path)
        dest = self.paths.dest_path(site_path)
        if dest.exists() and dest.stat().st_mtime >= source.stat().st_mtime:
            return False
        self.ensure_dir(dest.parent)
        shutil.copy2(source, dest)
        logger.info("Copy: %s", site_path)
        return True

    def prep(self) -> None:
        """Prepare every collection."""
        for collection in self.collections.values():
            collection.prep()

    def render(self) -> WalkReport:
        """Render every collection, then publish the source tree."""
        for collection in self.collections.values():
            collection.render()
        return RenderWalker(self).walk()

    def build(self) -> BuildResult:
        """Run both build phases."""
        self.prep()
        report = self.render()
        return BuildResult(
            output_dir=self.paths.dest_root,
            report=report,
            collections={
                name: len(collection.pages)
                for name, collection in self.collections.items()
            },
            collection_failures=[
                failure
                for collection in self.collections.values()
                for failure in collection.failures
            ],
        )


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        output_dir: Directory where the site was built.
        report: What the source tree walk did.
        collections: Number of pages per collection.
        collection_failures: Photos and collection pages that failed.
    """

    output_dir: Path
    report: WalkReport
    collections: dict[str, int] = field(default_factory=dict)
    collection_failures: list[BuildError] = field(default_factory=list)

    @property
    def failures(self) -> list[BuildError]:
        return self.collection_failures + self.report.failures

    @property
    def ok(self) -> bool:
        return not self.failures


def open_site(path: Path, metadata_store: Any = None) -> Site:
    """Create the Site for a path.

    A file is built on its own, next to itself. A directory is built from
    its configuration file, or with defaults if it has none.

    Raises:
        ConfigurationError: If the configuration is malformed.
    """
    path = Path(path)
    if path.is_file():
        return Site.for_file(path)
    return Site.from_config(load_config(path), metadata_store)


def build_site(path: Path, metadata_store: Any = None) -> BuildResult:
    """Build the site for a directory or a single file.

    Args:
        path: Source directory or file.
        metadata_store: Photo metadata reader; Pillow EXIF by default.

    Returns:
        BuildResult describing the build.

    Raises:
        ConfigurationError: If the configuration is malformed.
        PathEscapeError: If a path resolves outside its root.
    """
    return open_site(path, metadata_store).build()
