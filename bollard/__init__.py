"""Bollard static site generator.

This package builds a static website from a source tree. Jinja2 templates and
Markdown pages are rendered, other files are copied incrementally, and folders
of photos become collections of resized, orientation-corrected images with one
generated page per photo.

The main entry point is the CLI module, which provides the build command.

Architecture:
- paths: Site-relative path algebra and sandboxing of source/output roots.
- defaults: Cascading default attributes chosen by path, extension and collection.
- templates: Jinja2 engine and the template session (layouts, includes, body splicing).
- walker: Recursive, incremental render dispatch over the source tree.
- collections: Photo collections with derivative image generation.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
