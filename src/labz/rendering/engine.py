"""Jinja2-based rendering of generated project artefacts."""

import os
import re
from pathlib import Path
from typing import Dict, Any, List, Optional

from jinja2 import ChoiceLoader, DictLoader, Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

from ..core.exceptions import TemplateError


def package_name(value: str) -> str:
    """npm-style package name."""
    return re.sub(r"\s+", "-", value.strip()).lower()


class TemplateEngine:
    """
    Renders README, test and config files for generated projects.

    Templates are looked up in user-supplied templates first, then any extra
    directories, then the builtin templates shipped with the package.
    """

    BUILTIN_DIR = Path(__file__).parent / "builtin"

    def __init__(
        self,
        template_dirs: Optional[List[str]] = None,
        custom_templates: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the template engine.

        Args:
            template_dirs: Additional directories to search for templates
            custom_templates: Dictionary of template_name -> template_content
        """
        self.template_dirs = template_dirs or []
        self.custom_templates = dict(custom_templates or {})

        self.env = Environment(
            loader=self._build_loader(),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        self._register_filters()

    def _build_loader(self) -> ChoiceLoader:
        loaders = []
        if self.custom_templates:
            loaders.append(DictLoader(self.custom_templates))
        for dir_path in self.template_dirs:
            if os.path.isdir(dir_path):
                loaders.append(FileSystemLoader(dir_path))
        if self.BUILTIN_DIR.exists():
            loaders.append(FileSystemLoader(str(self.BUILTIN_DIR)))
        return ChoiceLoader(loaders)

    def _register_filters(self) -> None:
        """Register custom Jinja2 filters."""

        def code_list(items: List[str]) -> str:
            """Inline code spans joined by commas."""
            return ", ".join(f"`{item}`" for item in items)

        self.env.filters["code_list"] = code_list

    def render(
        self,
        template_name: str,
        variables: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> str:
        """
        Render a template with the given variables.

        Args:
            template_name: Name of the template file or registered template
            variables: Dictionary of template variables
            **kwargs: Additional variables as keyword arguments

        Returns:
            Rendered text, ending with exactly one newline
        """
        all_vars = {**(variables or {}), **kwargs}

        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise TemplateError(f"Template '{template_name}' not found", template=template_name, cause=e)
        return template.render(**all_vars).rstrip("\n") + "\n"

    def add_template(self, name: str, content: str) -> None:
        """Add or override a template by name."""
        self.custom_templates[name] = content
        self.env.loader = self._build_loader()

    def list_templates(self) -> List[str]:
        """Names of all resolvable templates."""
        return sorted(self.env.list_templates())
