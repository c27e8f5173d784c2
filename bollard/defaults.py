"""Cascading default attributes for Bollard.

A site configuration holds a list of default rules. Each rule is scoped by an
optional path prefix, file extension and collection name, and carries a map of
attribute values. For every page the most specific matching rule supplies the
starting attributes.

Key classes:
- DefaultsRule: One scoped set of attribute values.
- DefaultsResolver: Chooses the best rule for a site path.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigurationError

EXT_SCORE = 250
COLLECTION_SCORE = 250

_SCALAR_TYPES = (str, int, float, bool)


@dataclass(frozen=True)
class DefaultsRule:
    """A scoped set of default page attributes.

    Attributes:
        path: Site path prefix the rule applies to, or None.
        ext: File extension (with leading dot) the rule applies to, or None.
        collection: Collection name the rule applies to, or None.
        values: Attribute values supplied by the rule.
    """

    path: str | None = None
    ext: str | None = None
    collection: str | None = None
    values: Mapping[str, Any] = field(default_factory=dict)

    @property
    def unscoped(self) -> bool:
        return self.path is None and self.ext is None and self.collection is None

    def score(self, site_path: str, ext: str, collection: str | None) -> int:
        """Score how specifically this rule matches a target.

        Args:
            site_path: Site path of the target page.
            ext: Extension of the target, lower case with leading dot.
            collection: Collection of the target, if any.

        Returns:
            250 for a matching extension, 250 for a matching collection and
            the prefix length for a matching path prefix, summed.
        """
        rank = 0
        if self.ext is not None and self.ext.lower() == ext:
            rank += EXT_SCORE
        if self.collection is not None and self.collection == collection:
            rank += COLLECTION_SCORE
        if self.path is not None and site_path.lower().startswith(self.path.lower()):
            rank += len(self.path)
        return rank

    @classmethod
    def from_mapping(
        cls, data: Any, config_path: Path | None = None
    ) -> DefaultsRule:
        """Build a rule from one ``defaults`` entry of the configuration.

        Args:
            data: Mapping with optional ``scope`` and ``values`` keys.
            config_path: Configuration file, for error messages.

        Returns:
            The parsed rule.

        Raises:
            ConfigurationError: If the entry is malformed.
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("defaults entries must be mappings", config_path)
        scope = data.get("scope") or {}
        if not isinstance(scope, Mapping):
            raise ConfigurationError("defaults scope must be a mapping", config_path)
        raw_values = data.get("values") or {}
        if not isinstance(raw_values, Mapping):
            raise ConfigurationError("defaults values must be a mapping", config_path)

        fields: dict[str, str | None] = {}
        for key in ("path", "ext", "collection"):
            value = scope.get(key)
            if value is not None and not isinstance(value, str):
                raise ConfigurationError(
                    f"defaults scope '{key}' must be a string, got {value!r}",
                    config_path,
                )
            fields[key] = value or None
        ext = fields["ext"]
        if ext is not None and not ext.startswith("."):
            ext = f".{ext}"

        values: dict[str, Any] = {}
        for key, value in raw_values.items():
            if value is None:
                continue
            if not isinstance(value, _SCALAR_TYPES):
                raise ConfigurationError(
                    f"defaults value '{key}' must be a scalar, got {type(value).__name__}",
                    config_path,
                )
            values[str(key)] = value

        return cls(
            path=fields["path"],
            ext=ext,
            collection=fields["collection"],
            values=values,
        )


FALLBACK_RULE = DefaultsRule()


class DefaultsResolver:
    """Selects default page attributes for a site path.

    Attributes:
        rules: Rules in declaration order.
    """

    def __init__(self, rules: Iterable[DefaultsRule] = ()):
        self.rules = list(rules)

    def best_rule(self, site_path: str, collection: str | None = None) -> DefaultsRule:
        """Return the rule that applies to a site path.

        A rule competes when it scores above zero or has no scope at all.
        The first rule with the highest score wins; without any competitor
        the fallback rule (no attributes) applies.

        Args:
            site_path: Site path of the target page.
            collection: Name of the collection the page belongs to, if any.

        Returns:
            The winning rule.
        """
        ext = posixpath.splitext(site_path)[1].lower()
        best = FALLBACK_RULE
        best_rank = -1
        for rule in self.rules:
            rank = rule.score(site_path, ext, collection)
            if rank == 0 and not rule.unscoped:
                continue
            if rank > best_rank:
                best_rank = rank
                best = rule
        return best

    def resolve(self, site_path: str, collection: str | None = None) -> dict[str, Any]:
        """Return a fresh copy of the default attributes for a site path.

        Args:
            site_path: Site path of the target page.
            collection: Name of the collection the page belongs to, if any.

        Returns:
            A new attribute dictionary the caller may modify freely.
        """
        return dict(self.best_rule(site_path, collection).values)
