"""Rendering of generated project artefacts (README, tests, config)."""

from .engine import TemplateEngine, package_name

__all__ = [
    "TemplateEngine",
    "package_name",
]
