"""Site configuration for Bollard.

The configuration lives in the source directory in the first of
``_bollard.yaml``, ``_bollard.yml`` or ``_bollard_config.json`` that exists
(JSON is valid YAML, so one parser reads them all). Its name starts with an
underscore, so the file itself is never published. A directory without a
configuration file builds with the defaults below.

Older configuration files name the source folder ``srcFolder``, the base URL
``siteRoot`` and set up their one photo collection with a top-level
``images: <folder>``; these are still read.

Key items:
- load_config: Read and validate the configuration of a site directory.
- SiteConfig: Validated configuration.
- CollectionConfig: One derivative collection.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .defaults import DefaultsRule
from .errors import ConfigurationError
from .images import Size

CONFIG_FILENAMES = ("_bollard.yaml", "_bollard.yml", "_bollard_config.json")

DEFAULT_CONFIG: dict[str, Any] = {
    "source": ".",
    "output": "_site",
    "site_root": "",
    "site": {},
    "defaults": [],
    "collections": {},
}

# Old key names still accepted
_ALIASES = {"srcFolder": "source", "siteRoot": "site_root"}

DEFAULT_SIZES = {
    "Thumb": Size(800, 600),
    "Post": Size(1600, 1200),
    "Large": Size.square(3200),
}

# Single photo collection configured with the old top-level ``images`` key
LEGACY_COLLECTION = "bollards"
LEGACY_LAYOUT = "bollard"


@dataclass
class CollectionConfig:
    """Configuration of one derivative collection.

    Attributes:
        name: Collection name; also the output folder.
        source_dir: Directory holding the source photos.
        layout: Layout every photo page is rendered with.
        sizes: Bounding box per derivative name, in output order.
    """

    name: str
    source_dir: Path
    layout: str
    sizes: dict[str, Size] = field(default_factory=lambda: dict(DEFAULT_SIZES))


@dataclass
class SiteConfig:
    """Validated site configuration.

    Attributes:
        source_dir: Directory walked for pages and files.
        output_dir: Directory the site is written to.
        site_root: Base URL of the published site (may be empty).
        site: Extra attributes exposed to templates as ``site``.
        defaults: Default attribute rules, in configuration order.
        collections: Derivative collections, in configuration order.
        config_path: File the configuration was read from, if any.
    """

    source_dir: Path
    output_dir: Path
    site_root: str = ""
    site: dict[str, Any] = field(default_factory=dict)
    defaults: list[DefaultsRule] = field(default_factory=list)
    collections: list[CollectionConfig] = field(default_factory=list)
    config_path: Path | None = None


def find_config_file(directory: Path) -> Path | None:
    """Return the configuration file of a directory, if there is one."""
    for filename in CONFIG_FILENAMES:
        candidate = directory / filename
        if candidate.is_file():
            return candidate
    return None


def load_config(directory: Path) -> SiteConfig:
    """Load site configuration from a directory.

    Args:
        directory: Directory holding the configuration file.

    Returns:
        SiteConfig with defaults applied and relative paths resolved.

    Raises:
        ConfigurationError: If the file cannot be parsed or holds a bad value.
    """
    directory = Path(directory).resolve()
    config_path = find_config_file(directory)
    config = dict(DEFAULT_CONFIG)
    if config_path is not None:
        config.update(_read_file(config_path))

    source_dir = (directory / _string(config, "source", config_path)).resolve()
    output_dir = (source_dir / _string(config, "output", config_path)).resolve()
    if output_dir == source_dir:
        raise ConfigurationError("output must differ from source", config_path)

    site = config.get("site") or {}
    if not isinstance(site, Mapping):
        raise ConfigurationError("site must be a mapping", config_path)

    defaults = config.get("defaults") or []
    if not isinstance(defaults, list):
        raise ConfigurationError("defaults must be a list", config_path)

    collections = _parse_collections(
        config.get("collections") or {}, source_dir, config_path
    )
    images = config.get("images")
    if images is not None:
        collections.append(_legacy_collection(images, collections, source_dir, config_path))

    return SiteConfig(
        source_dir=source_dir,
        output_dir=output_dir,
        site_root=_string(config, "site_root", config_path),
        site={str(k): v for k, v in site.items()},
        defaults=[DefaultsRule.from_mapping(entry, config_path) for entry in defaults],
        collections=collections,
        config_path=config_path,
    )


def _read_file(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"cannot parse: {exc}", config_path) from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError("top level must be a mapping", config_path)
    return {_ALIASES.get(key, key): value for key, value in loaded.items()}


def _string(config: Mapping[str, Any], key: str, config_path: Path | None) -> str:
    value = config.get(key)
    if value is None:
        return DEFAULT_CONFIG[key]
    if not isinstance(value, str):
        raise ConfigurationError(f"{key} must be a string, got {value!r}", config_path)
    return value


def _parse_collections(
    data: Any, source_dir: Path, config_path: Path | None
) -> list[CollectionConfig]:
    if not isinstance(data, Mapping):
        raise ConfigurationError("collections must be a mapping", config_path)
    collections = []
    for name, entry in data.items():
        if not isinstance(name, str) or not name or "/" in name:
            raise ConfigurationError(f"invalid collection name {name!r}", config_path)
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"collection '{name}' must be a mapping", config_path)
        source = entry.get("source")
        layout = entry.get("layout")
        if not isinstance(source, str) or not source:
            raise ConfigurationError(f"collection '{name}' needs a source", config_path)
        if not isinstance(layout, str) or not layout:
            raise ConfigurationError(f"collection '{name}' needs a layout", config_path)
        sizes = entry.get("sizes")
        collections.append(
            CollectionConfig(
                name=name,
                source_dir=(source_dir / source).resolve(),
                layout=layout,
                sizes=(
                    _parse_sizes(sizes, name, config_path)
                    if sizes is not None
                    else dict(DEFAULT_SIZES)
                ),
            )
        )
    return collections


def _legacy_collection(
    images: Any,
    collections: list[CollectionConfig],
    source_dir: Path,
    config_path: Path | None,
) -> CollectionConfig:
    if not isinstance(images, str) or not images:
        raise ConfigurationError(f"images must be a folder name, got {images!r}", config_path)
    if any(c.name == LEGACY_COLLECTION for c in collections):
        raise ConfigurationError(
            f"images conflicts with collection '{LEGACY_COLLECTION}'", config_path
        )
    return CollectionConfig(
        name=LEGACY_COLLECTION,
        source_dir=(source_dir / images).resolve(),
        layout=LEGACY_LAYOUT,
    )


def _parse_sizes(data: Any, collection: str, config_path: Path | None) -> dict[str, Size]:
    if not isinstance(data, Mapping) or not data:
        raise ConfigurationError(
            f"collection '{collection}' sizes must be a non-empty mapping", config_path
        )
    sizes: dict[str, Size] = {}
    for name, value in data.items():
        if isinstance(value, int) and not isinstance(value, bool):
            size = Size.square(value)
        elif (
            isinstance(value, list)
            and len(value) == 2
            and all(isinstance(v, int) and not isinstance(v, bool) for v in value)
        ):
            size = Size(value[0], value[1])
        else:
            raise ConfigurationError(
                f"size '{name}' of collection '{collection}' must be an integer "
                f"or [width, height], got {value!r}",
                config_path,
            )
        if size.width <= 0 or size.height <= 0:
            raise ConfigurationError(
                f"size '{name}' of collection '{collection}' must be positive",
                config_path,
            )
        sizes[str(name)] = size
    return sizes
