"""Template rendering engine for Bollard.

This module uses Jinja2 to compile templates and wraps each compiled template
in a TemplateSession, the runtime contract every rendered page goes through:
context injection, execution into a fresh output buffer, layout wrapping and
sibling inclusion.

A template asks to be wrapped in a layout with a top-level assignment::

    {% set layout = "base" %}

The layout splices the wrapped output in with ``{{ render_body() }}`` and may
itself set a further layout. Siblings are pulled in with
``{{ include("nav") }}``.

Key classes:
- TemplateEngine: Compiles, caches and looks up templates by name.
- TemplateSession: One runnable template with its context and output buffer.
- HtmlTemplateSession: Session for HTML output; spliced markup is not re-escaped.
- TextTemplateSession: Session for plain text output.
- RenderStack: Active sessions, bounded to turn layout cycles into errors.
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any
from urllib.parse import urljoin

from jinja2 import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    Template,
    TemplateNotFound,
    TemplatesNotFound,
    TemplateSyntaxError,
)
from markupsafe import Markup

from .errors import TemplateCompileError, TemplateLookupError, TemplateRecursionError
from .paths import relative_url
from .renderers import pygments_css

__all__ = [
    "HtmlTemplateSession",
    "RenderStack",
    "TemplateEngine",
    "TemplateSession",
    "TextTemplateSession",
    "is_html_unit",
]

MAX_RENDER_DEPTH = 16
LAYOUT_VARIABLE = "layout"

# Lookup by name: as given, then the conventional layout and include folders
_LOOKUP_DIRS = ("", "_layouts/", "_includes/")
_LOOKUP_SUFFIXES = ("", ".html.jinja", ".jinja", ".html")
_HTML_EXTENSIONS = {".html", ".htm", ".xml", ".svg"}

TemplateLookup = Callable[[str], "TemplateSession"]


def is_html_unit(name: str | None) -> bool:
    """Check whether a template produces HTML (and is therefore autoescaped).

    The ``.jinja`` suffix is ignored; what remains decides. Templates without
    an inner extension, and templates compiled from strings, produce HTML.

    Args:
        name: Template name, or None for templates compiled from strings.

    Returns:
        True if output of the template is HTML or XML.
    """
    if not name:
        return True
    base = posixpath.basename(name)
    if base.lower().endswith(".jinja"):
        base = base[: -len(".jinja")]
    ext = posixpath.splitext(base)[1].lower()
    return not ext or ext in _HTML_EXTENSIONS


class RenderStack:
    """Names of the sessions currently running, outermost first.

    Attributes:
        max_depth: Deepest allowed nesting of layouts and includes.
        frames: Active session names.
    """

    def __init__(self, max_depth: int = MAX_RENDER_DEPTH):
        self.max_depth = max_depth
        self.frames: list[str] = []

    @contextmanager
    def frame(self, name: str) -> Iterator[None]:
        """Push a frame for the duration of a ``with`` block.

        Raises:
            TemplateRecursionError: If the stack is already full.
        """
        if len(self.frames) >= self.max_depth:
            raise TemplateRecursionError(self.frames + [name], self.max_depth)
        self.frames.append(name)
        try:
            yield
        finally:
            self.frames.pop()


class TemplateSession:
    """A compiled template together with its context and output buffer.

    Context is configured additively: every argument that is not None
    replaces the stored value, anything left as None keeps what was there.
    Each run starts a new buffer.

    Attributes:
        unit: The compiled Jinja2 template.
        name: Name used in error messages and the render stack.
        site: Site attributes.
        page: Attributes of the page being rendered.
        model: Free-form data model for the template.
        collection: Collection the page belongs to, if any.
        included_body: Output of the template this one wraps as a layout.
        lookup: Callback that instantiates a template by name.
        layout: Layout requested by the last run, if any.
    """

    def __init__(
        self,
        unit: Template,
        name: str | None = None,
        lookup: TemplateLookup | None = None,
        stack: RenderStack | None = None,
    ):
        """Initialize the session.

        Args:
            unit: Compiled Jinja2 template.
            name: Display name; defaults to the template's own name.
            lookup: Callback used by layouts and includes.
            stack: Shared render stack; a private one is created if omitted.
        """
        self.unit = unit
        self.name = name or unit.name or "<string>"
        self.site: Any = None
        self.page: Any = None
        self.model: Any = None
        self.collection: Any = None
        self.included_body: str | None = None
        self.lookup = lookup
        self.layout: str | None = None
        self._stack = stack or RenderStack()
        self._buffer: list[str] = []

    def set_context(
        self,
        site: Any = None,
        page: Any = None,
        model: Any = None,
        collection: Any = None,
        included_body: str | None = None,
        lookup: TemplateLookup | None = None,
    ) -> None:
        """Set context for later runs. None arguments leave values unchanged."""
        if site is not None:
            self.site = site
        if page is not None:
            self.page = page
        if model is not None:
            self.model = model
        if collection is not None:
            self.collection = collection
        if included_body is not None:
            self.included_body = included_body
        if lookup is not None:
            self.lookup = lookup

    def run(
        self,
        site: Any = None,
        page: Any = None,
        model: Any = None,
        included_body: str | None = None,
        lookup: TemplateLookup | None = None,
    ) -> str:
        """Render the template, then the layout it asks for, if any.

        Arguments are merged into the stored context as in set_context.

        Returns:
            The final output. When the template set a layout, this is the
            layout's output with this template's output spliced in.

        Raises:
            TemplateLookupError: If the requested layout does not exist.
            TemplateRecursionError: If layouts nest too deeply.
        """
        self.set_context(
            site=site,
            page=page,
            model=model,
            included_body=included_body,
            lookup=lookup,
        )
        with self._stack.frame(self.name):
            self._execute()
            if self.layout is None:
                return self.output
            layout = self._instantiate(self.layout, f'layout="{self.layout}"')
            layout.set_context(collection=self.collection)
            return layout.run(
                site=self.site,
                page=self.page,
                model=self.model,
                included_body=self.output,
                lookup=self.lookup,
            )

    @property
    def output(self) -> str:
        """Text written to the buffer by the most recent execution."""
        return "".join(self._buffer)

    def write_literal(self, text: str) -> None:
        """Append text to the output buffer as-is."""
        if text:
            self._buffer.append(str(text))

    def wrap_output(self, text: str) -> str:
        """Prepare already-rendered text for splicing into this template."""
        return text

    def include(self, name: str, model: Any = None) -> str:
        """Render a sibling template for insertion at the call site.

        The sibling receives this session's site and page, and either the
        given model or this session's model. Layouts requested by the
        sibling are ignored.

        Args:
            name: Name of the template to include.
            model: Optional model for the included template.

        Returns:
            The sibling's output, which the template writes where the
            ``include`` call appears.

        Raises:
            TemplateLookupError: If no template has that name.
        """
        session = self._instantiate(name, f'include("{name}")')
        session.set_context(
            site=self.site,
            page=self.page,
            model=self.model if model is None else model,
            collection=self.collection,
            lookup=self.lookup,
        )
        with self._stack.frame(session.name):
            session._execute()
        return self.wrap_output(session.output)

    def render_body(self) -> str:
        """Return the wrapped template's output for splicing into a layout.

        Empty when this session was not given a body.
        """
        return self.wrap_output(self.included_body or "")

    def relative_url(self, site_path: str) -> str:
        """Convert a site path into a link relative to the current page.

        Raises:
            ValueError: If the page has no ``Path`` attribute.
        """
        current = _attribute(self.page, "Path")
        if not current:
            raise ValueError("relative_url: no Path set for the current page")
        return relative_url(current, site_path)

    def absolute_url(self, path: str) -> str:
        """Convert a relative or site path into a full URL.

        Raises:
            ValueError: If the page has no ``Url`` attribute.
        """
        current = _attribute(self.page, "Url")
        if not current:
            raise ValueError("absolute_url: no Url set for the current page")
        return urljoin(current, path)

    def _execute(self) -> None:
        self._buffer = []
        self.layout = None
        if self.site is None:
            self.site = {}
        if self.page is None:
            self.page = {}
        if self.model is None:
            self.model = {}

        module = self.unit.make_module(self._template_vars())
        self.write_literal(str(module))
        requested = getattr(module, LAYOUT_VARIABLE, None)
        self.layout = str(requested) if requested else None

    def _template_vars(self) -> dict[str, Any]:
        return {
            "site": self.site,
            "page": self.page,
            "model": self.model,
            "collection": self.collection,
            "include": self.include,
            "render_body": self.render_body,
            "relative_url": self.relative_url,
            "absolute_url": self.absolute_url,
        }

    def _instantiate(self, name: str, directive: str) -> TemplateSession:
        if self.lookup is None:
            raise TemplateLookupError(name, directive, "no template lookup configured")
        try:
            session = self.lookup(name)
        except TemplateLookupError as exc:
            raise TemplateLookupError(name, directive, exc.reason) from exc
        except TemplateNotFound as exc:
            raise TemplateLookupError(name, directive, exc.message) from exc
        session._stack = self._stack
        return session

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"{type(self).__name__}({self.name!r})"


class HtmlTemplateSession(TemplateSession):
    """Session for HTML templates.

    Jinja2 autoescapes values written by HTML templates. Output spliced in by
    ``include`` and ``render_body`` is already HTML, so it is marked safe.
    """

    def wrap_output(self, text: str) -> str:
        return Markup(text)


class TextTemplateSession(TemplateSession):
    """Session for plain text templates; everything is written verbatim."""


class TemplateEngine:
    """Template engine using Jinja2.

    Templates are named by their path relative to the source directory.
    Compiled templates are cached by the Jinja2 environment for the
    lifetime of the engine, which is one build.

    Attributes:
        source_dir: Directory templates are loaded from.
        env: Jinja2 environment.
        stack: Render stack shared by all sessions of this engine.
    """

    def __init__(self, source_dir: Path, max_depth: int = MAX_RENDER_DEPTH):
        """Initialize the template engine.

        Args:
            source_dir: Directory with templates.
            max_depth: Deepest allowed nesting of layouts and includes.
        """
        self.source_dir = source_dir
        self._sources: dict[str, str] = {}
        self.env = Environment(
            loader=ChoiceLoader(
                [DictLoader(self._sources), FileSystemLoader(str(source_dir))]
            ),
            autoescape=is_html_unit,
            keep_trailing_newline=True,
        )
        self.env.globals["pygments_css"] = pygments_css
        self.stack = RenderStack(max_depth)

    def compile(self, source: str, name: str | None = None) -> Template:
        """Compile a template from text.

        Args:
            source: Template source.
            name: Optional name under which later lookups find the template.

        Returns:
            The compiled template.

        Raises:
            TemplateCompileError: If the source has a syntax error.
        """
        try:
            if name is None:
                return self.env.from_string(source)
            self._sources[name] = source
            return self.env.get_template(name)
        except TemplateSyntaxError as exc:
            raise TemplateCompileError(exc.name or name, exc.message, exc.lineno) from exc

    def get_unit(self, name: str) -> Template:
        """Load a template by its path relative to the source directory.

        Raises:
            TemplateNotFound: If there is no such template.
            TemplateCompileError: If the template has a syntax error.
        """
        name = name.lstrip("/")
        try:
            return self.env.get_template(name)
        except TemplateSyntaxError as exc:
            raise TemplateCompileError(exc.name or name, exc.message, exc.lineno) from exc

    def resolve(self, name: str) -> Template:
        """Find a template referenced by name from a layout or include.

        The name is tried as given, then inside ``_layouts/`` and
        ``_includes/``, each with the suffixes ``.html.jinja``, ``.jinja``
        and ``.html``.

        Raises:
            TemplatesNotFound: If no candidate exists.
        """
        base = name.lstrip("/")
        tried: list[str] = []
        for directory in _LOOKUP_DIRS:
            for suffix in _LOOKUP_SUFFIXES:
                candidate = f"{directory}{base}{suffix}"
                if not base or candidate in tried:
                    continue
                tried.append(candidate)
                try:
                    return self.get_unit(candidate)
                except TemplateNotFound:
                    continue
        raise TemplatesNotFound(tried or [name])

    def instantiate(self, unit: Template, name: str | None = None) -> TemplateSession:
        """Create a session for a compiled template.

        Args:
            unit: Compiled template.
            name: Display name; defaults to the template's own name.

        Returns:
            An HtmlTemplateSession or TextTemplateSession, matching the
            template's autoescaping.
        """
        session_class = (
            HtmlTemplateSession if is_html_unit(unit.name) else TextTemplateSession
        )
        return session_class(unit, name, lookup=self.lookup, stack=self.stack)

    def load(self, name: str) -> TemplateSession:
        """Create a session for the template at a source-relative path."""
        return self.instantiate(self.get_unit(name))

    def lookup(self, name: str) -> TemplateSession:
        """Create a session for a template referenced by name."""
        return self.instantiate(self.resolve(name))


def _attribute(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)
