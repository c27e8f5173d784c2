"""Collections of generated pages.

A collection owns a list of page attribute dictionaries and renders each of
them through one layout. The build runs in two phases: every collection is
prepared (``prep``) before any page of the site is rendered, so templates can
list collection pages, then every collection renders its own pages
(``render``).

Key classes:
- PageList: Read-only sequence of pages with helpers for templates.
- Collection: Base class for page collections.
- DerivativeCollection: A folder of photos published as image derivatives
  with one HTML page per photo.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import TemplateNotFound

from .config import CollectionConfig
from .errors import (
    FATAL_ERRORS,
    BuildError,
    ConfigurationError,
    TemplateCompileError,
    TemplateLookupError,
    format_error_message,
)
from .html_utils import join_root_url
from .images import SOURCE_EXTENSIONS, DerivativeGenerator, base_name
from .metadata import MetadataStore, read_asset_metadata
from .paths import combine

if TYPE_CHECKING:
    from .build import Site

logger = logging.getLogger(__name__)

IMAGE_FOLDER = "images"
# Derivatives are twice the size they are shown at, for high-density screens
DISPLAY_DIVISOR = 2


class PageList(Sequence[dict]):
    """Lightweight helper for working with lists of pages in templates."""

    def __init__(self, pages: Iterable[dict[str, Any]]):
        self._pages = list(pages)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        return self._pages[item]

    def with_tag(self, tag: str) -> PageList:
        return PageList(p for p in self._pages if tag in (p.get("Tags") or ()))

    def sorted(self, reverse: bool = True) -> PageList:
        """Sort pages by date, newest first unless ``reverse`` is False."""
        return PageList(sorted(self._pages, key=lambda p: p["Date"], reverse=reverse))

    def latest(self, count: int = 5) -> PageList:
        return PageList(self.sorted()[:count])

    def previous(self, page: dict[str, Any]) -> dict[str, Any] | None:
        """Return the page before ``page`` in collection order, if any."""
        index = self._position(page)
        if index is None or index == 0:
            return None
        return self._pages[index - 1]

    def next(self, page: dict[str, Any]) -> dict[str, Any] | None:
        """Return the page after ``page`` in collection order, if any."""
        index = self._position(page)
        if index is None or index + 1 >= len(self._pages):
            return None
        return self._pages[index + 1]

    def _position(self, page: dict[str, Any]) -> int | None:
        for i, candidate in enumerate(self._pages):
            if candidate is page:
                return i
        return None

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageList({len(self._pages)} pages)"


class Collection(ABC):
    """A named group of pages rendered through one layout.

    Attributes:
        site: The site being built.
        name: Collection name.
        layout: Name of the layout every page is rendered with.
        pages: Page attributes, in collection order.
        failures: Files that failed during the last prep or render.
    """

    def __init__(self, site: Site, name: str, layout: str):
        self.site = site
        self.name = name
        self.layout = layout
        self.pages: list[dict[str, Any]] = []
        self.failures: list[BuildError] = []

    @property
    def path(self) -> str:
        """Site path of the collection's output folder."""
        return "/" + self.name

    def attributes(self) -> dict[str, Any]:
        """Collection object exposed to templates as ``collection``."""
        return {"Name": self.name, "Path": self.path, "Pages": PageList(self.pages)}

    @abstractmethod
    def prep(self) -> None:
        """Populate ``pages`` and produce any assets they need."""

    @abstractmethod
    def render(self) -> None:
        """Render every page of the collection."""

    def _record_failure(self, source: str, exc: Exception) -> None:
        error = BuildError(source, format_error_message(exc), exc)
        logger.error("Failed: %s: %s", source, error.message)
        self.failures.append(error)


class DerivativeCollection(Collection):
    """Photos published as resized derivatives with one page each.

    Each JPEG in the source folder becomes a set of derivatives under
    ``/<name>/images/`` and a page ``/<name>/<base name>.html`` rendered
    through the collection layout.
    """

    def __init__(
        self,
        site: Site,
        config: CollectionConfig,
        metadata_store: Any = None,
    ):
        super().__init__(site, config.name, config.layout)
        self.source_dir = config.source_dir
        self.sizes = dict(config.sizes)
        self.metadata_store = metadata_store or MetadataStore()
        self.generated_count = 0

    @property
    def image_path(self) -> str:
        return combine(self.path, IMAGE_FOLDER)

    def iter_sources(self) -> list[Path]:
        """Return the source photos in name order.

        Raises:
            ConfigurationError: If the source folder does not exist.
        """
        if not self.source_dir.is_dir():
            raise ConfigurationError(
                f"collection '{self.name}': source folder not found: {self.source_dir}"
            )
        return sorted(
            p
            for p in self.source_dir.iterdir()
            if p.is_file() and p.suffix.lower() in SOURCE_EXTENSIONS
        )

    def prep(self) -> None:
        """Generate derivatives and build the page list.

        Photos that cannot be read or lack a title or date are reported and
        left out; the rest of the collection is still prepared.
        """
        self.pages = []
        self.failures = []
        self.generated_count = 0

        image_dir = self.site.paths.dest_path(self.image_path)
        self.site.ensure_dir(image_dir)
        generator = DerivativeGenerator(image_dir, self.sizes)
        owners: dict[str, str] = {}

        for source in self.iter_sources():
            label = f"{self.name}/{source.name}"
            try:
                metadata = read_asset_metadata(self.metadata_store, source)
                base = base_name(metadata.date_taken, metadata.title)
                self._check_collision(base, owners, label)
                derivatives = generator.process(
                    source, metadata.size, metadata.orientation, base
                )
            except FATAL_ERRORS:
                raise
            except Exception as exc:
                self._record_failure(label, exc)
                continue

            if derivatives.generated:
                logger.info("Generated images for: %s", metadata.title)
                self.generated_count += 1

            page_path = f"{self.path}/{base}.html"
            page = self.site.defaults.resolve(page_path, self.name)
            for size_name, size, filename in zip(
                self.sizes, derivatives.sizes, derivatives.filenames
            ):
                shown = size.divide(DISPLAY_DIVISOR)
                page[f"{size_name}Image"] = f"{self.image_path}/{filename}"
                page[f"{size_name}Width"] = shown.width
                page[f"{size_name}Height"] = shown.height
            page.update(
                {
                    "Title": metadata.title,
                    "Comment": metadata.comment,
                    "Date": metadata.date_taken,
                    "Latitude": metadata.latitude,
                    "Longitude": metadata.longitude,
                    "Tags": metadata.tags,
                    "OriginalWidth": metadata.size.width,
                    "OriginalHeight": metadata.size.height,
                    "Orientation": metadata.orientation,
                    "Name": base,
                    "Collection": self.name,
                    "Path": page_path,
                    "Url": join_root_url(self.site.url, page_path),
                }
            )
            self.pages.append(page)

        # list.sort is stable: photos taken at the same time keep name order
        self.pages.sort(key=lambda p: p["Date"])
        for index, page in enumerate(self.pages):
            page["Index"] = index

        logger.info("%d posts in the '%s' collection.", len(self.pages), self.name)
        logger.info("%d posts for which images were generated.", self.generated_count)

    def render(self) -> None:
        """Render one page per photo through the collection layout."""
        try:
            layout = self.site.engine.lookup(self.layout)
        except TemplateNotFound as exc:
            error = TemplateLookupError(self.layout, f'layout="{self.layout}"', exc.message)
            self._record_failure(self.path, error)
            return
        except TemplateCompileError as exc:
            self._record_failure(self.path, exc)
            return

        layout.set_context(collection=self.attributes())
        site_attributes = self.site.attributes()
        rendered = 0
        for page in self.pages:
            try:
                text = layout.run(site=site_attributes, page=page)
                self.site.write_page(page["Path"], text)
            except FATAL_ERRORS:
                raise
            except Exception as exc:
                self._record_failure(page["Path"], exc)
                continue
            rendered += 1
        logger.info("Rendered collection '%s': %d entries.", self.name, rendered)

    def _check_collision(self, base: str, owners: dict[str, str], label: str) -> None:
        owner = owners.setdefault(base, label)
        if owner != label:
            logger.warning(
                "%s: name %s is already used by %s; the two photos share one page "
                "and one set of images",
                label,
                base,
                owner,
            )
