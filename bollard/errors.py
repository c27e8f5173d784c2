"""Error types for Bollard.

Errors fall in two groups. Fatal errors (configuration problems and attempts to
escape the source or output directory) abort the whole build. Everything else
is scoped to one file or one photo: the failure is reported and the build
carries on with the remaining files.

Key classes:
- BollardError: Base class for all Bollard errors.
- ConfigurationError: Malformed site configuration.
- PathEscapeError: A path resolved outside its sandbox root.
- AssetMetadataError: A photo is missing mandatory metadata or cannot be read.
- TemplateLookupError: A named layout or include could not be found.
- TemplateRecursionError: Layouts or includes nested past the depth limit.
- TemplateCompileError: A template failed to compile.
- BuildError: A single file failed to render, with file context.
"""

from __future__ import annotations

from pathlib import Path


class BollardError(Exception):
    """Base exception for all Bollard errors."""


class ConfigurationError(BollardError):
    """Raised when site configuration is malformed.

    Attributes:
        config_path: Configuration file that holds the bad value, if known.
    """

    def __init__(self, message: str, config_path: Path | None = None):
        self.config_path = config_path
        self.message = message
        prefix = f"{config_path}: " if config_path else ""
        super().__init__(f"{prefix}{message}")


class PathEscapeError(BollardError):
    """Raised when a site path resolves outside its root directory.

    Attributes:
        site_path: The offending site-relative path or physical path.
        root: The root directory the path had to stay within.
    """

    def __init__(self, site_path: str, root: Path):
        self.site_path = site_path
        self.root = root
        super().__init__(f"Path escapes {root}: {site_path}")


class AssetMetadataError(BollardError):
    """Raised when a photo's metadata is unreadable or incomplete.

    Attributes:
        asset_path: Path to the photo.
        message: Human-readable error message.
    """

    def __init__(self, asset_path: Path, message: str):
        self.asset_path = asset_path
        self.message = message
        super().__init__(f"Image '{asset_path.name}': {message}")


class TemplateLookupError(BollardError):
    """Raised when a template referenced by name cannot be resolved.

    Attributes:
        name: The template name that failed to resolve.
        directive: The construct that asked for it, e.g. ``include("nav")``.
    """

    def __init__(self, name: str, directive: str, reason: str | None = None):
        self.name = name
        self.directive = directive
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"{directive}: template '{name}' not found{detail}")


class TemplateRecursionError(BollardError):
    """Raised when layout or include nesting exceeds the depth limit.

    Attributes:
        frames: Names of the active templates, outermost first.
    """

    def __init__(self, frames: list[str], max_depth: int):
        self.frames = list(frames)
        self.max_depth = max_depth
        chain = " -> ".join(self.frames)
        super().__init__(
            f"Template nesting deeper than {max_depth} levels (cycle?): {chain}"
        )


class TemplateCompileError(BollardError):
    """Raised when a template source fails to compile.

    Attributes:
        name: Template name, if known.
        lineno: Line of the error, if known.
        message: Compiler message.
    """

    def __init__(self, name: str | None, message: str, lineno: int | None = None):
        self.name = name
        self.lineno = lineno
        self.message = message
        where = name or "<string>"
        if lineno is not None:
            where = f"{where}, line {lineno}"
        super().__init__(f"{where}: {message}")


class BuildError(BollardError):
    """Error during site build with file context.

    Attributes:
        source_path: Site path of the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: str,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


FATAL_ERRORS = (ConfigurationError, PathEscapeError)


def format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    if isinstance(exc, BollardError):
        return str(exc)

    error_type = type(exc).__name__
    error_msg = str(exc)

    # Jinja2 reports syntax errors with a line number
    lineno = getattr(exc, "lineno", None)
    if error_type == "TemplateSyntaxError" and lineno is not None:
        return f"Template syntax error on line {lineno}: {getattr(exc, 'message', error_msg)}"
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"
    if isinstance(exc, OSError) and exc.filename:
        return f"{error_type}: {exc.strerror or error_msg} ({exc.filename})"

    return f"{error_type}: {error_msg}"
