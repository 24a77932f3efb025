"""
Lab-Z - Composable FHE Contract Templates

Assembles Solidity projects from a base contract skeleton plus feature
modules, after validating that the combination is legal.

Basic Usage:
    >>> from labz import Composer
    >>> composer = Composer(templates_dir="./templates")
    >>>
    >>> # Check a combination without generating anything
    >>> report = composer.validate_only("token", ["acl/transient", "admin/roles"])
    >>> print(report.valid, [e.message for e in report.errors])
    >>>
    >>> # Merge into files (nothing is written unless output_dir is given)
    >>> result = composer.merge("token", ["acl/transient"], project_name="my-token")
    >>> print(result.files["contracts/MyToken.sol"])
    >>>
    >>> # Human readable preview
    >>> print(composer.preview("token", ["acl/transient"], project_name="my-token"))

For more control, use the individual modules:
    - labz.composer: Template stores, resolver, merger, materializer
    - labz.blocks: Visual block-builder validation and code generation
    - labz.rendering: Jinja2 rendering of generated artefacts
    - labz.cli: Command-line interface
"""

import logging
from typing import Optional, Dict, List

from .core.types import (
    BaseTemplate,
    Module,
    MergeRequest,
    MergeResult,
    ValidationIssue,
    ValidationReport,
    InjectionMode,
)
from .core.exceptions import (
    LabzError,
    NotFoundError,
    TemplateError,
    ValidationError,
    MergeRefusedError,
    BlockError,
    ConfigurationError,
)
from .core.config import Settings, get_settings
from .composer import (
    TemplateStore,
    InMemoryTemplateStore,
    FileSystemTemplateStore,
    DependencyResolver,
    Merger,
    ProjectMaterializer,
)
from .rendering import TemplateEngine
from .blocks import BlockCatalog, ProjectBuilder

logger = logging.getLogger(__name__)

__version__ = "0.1.0"
__all__ = [
    # Main class
    "Composer",
    # Core types
    "BaseTemplate",
    "Module",
    "MergeRequest",
    "MergeResult",
    "ValidationIssue",
    "ValidationReport",
    "InjectionMode",
    # Exceptions
    "LabzError",
    "NotFoundError",
    "TemplateError",
    "ValidationError",
    "MergeRefusedError",
    "BlockError",
    "ConfigurationError",
    # Individual components (for advanced use)
    "TemplateStore",
    "InMemoryTemplateStore",
    "FileSystemTemplateStore",
    "DependencyResolver",
    "Merger",
    "ProjectMaterializer",
    "TemplateEngine",
    "BlockCatalog",
    "ProjectBuilder",
]


class Composer:
    """
    Main interface for composing projects from bases and modules.

    Each Composer owns its template store; nothing is cached across
    instances.

    Example:
        >>> composer = Composer(store=InMemoryTemplateStore(bases, modules))
        >>> composer.validate_only("counter", ["functions/encrypted-add"]).valid
        False
    """

    def __init__(
        self,
        store: Optional[TemplateStore] = None,
        templates_dir: Optional[str] = None,
        settings: Optional[Settings] = None,
        materializer: Optional[ProjectMaterializer] = None,
        engine: Optional[TemplateEngine] = None,
    ):
        """
        Initialize the Composer.

        Args:
            store: Template store to read bases and modules from
            templates_dir: Root of a template tree, used when no store is given
            settings: Settings (defaults to the environment)
            materializer: Sink for merged projects; defaults to writing files
            engine: Template engine for README and test generation
        """
        self.settings = settings or get_settings()

        if store is None:
            root = templates_dir or self.settings.composer.templates_dir
            if not root:
                raise ConfigurationError(
                    "No template store or templates directory configured",
                    config_key="LABZ_TEMPLATES_DIR",
                )
            store = FileSystemTemplateStore(root, default_order=self.settings.composer.default_order)

        self.store = store
        self.resolver = DependencyResolver(store, self.settings.composer)
        self.merger = Merger(engine or TemplateEngine())
        self.materializer = materializer or ProjectMaterializer(self.settings.output)

    def _request(
        self,
        base: str,
        modules: Optional[List[str]],
        project_name: Optional[str] = None,
        type_params: Optional[Dict[str, str]] = None,
        **kwargs
    ) -> MergeRequest:
        return MergeRequest(
            base=base,
            modules=list(modules or []),
            project_name=project_name or base,
            type_params=dict(type_params or {}),
            **kwargs
        )

    def validate_only(
        self,
        base: str,
        modules: Optional[List[str]] = None,
        type_params: Optional[Dict[str, str]] = None,
    ) -> ValidationReport:
        """
        Run every validation phase without merging.

        Raises:
            NotFoundError: If the base or a requested module does not exist
        """
        return self.resolver.resolve(self._request(base, modules, type_params=type_params)).report

    def merge(
        self,
        base: str,
        modules: Optional[List[str]] = None,
        project_name: Optional[str] = None,
        type_params: Optional[Dict[str, str]] = None,
        output_dir: Optional[str] = None,
        dry_run: bool = False,
    ) -> MergeResult:
        """
        Validate and merge a base with modules.

        Args:
            base: Base template name
            modules: Module identifiers (``category/name``), in request order
            project_name: Project name (defaults to the base name)
            type_params: Type-parameter overrides
            output_dir: Where to materialize the project, if anywhere
            dry_run: Merge in memory only, even if output_dir is given

        Returns:
            MergeResult; ``success`` is False when validation failed, in
            which case nothing is written
        """
        request = self._request(
            base, modules, project_name, type_params, output_dir=output_dir, dry_run=dry_run
        )
        return self.merge_request(request)

    def merge_request(self, request: MergeRequest) -> MergeResult:
        """Merge a prepared request, materializing it when asked to."""
        resolution = self.resolver.resolve(request)
        result = self.merger.merge(resolution, request)

        if result.success and request.output_dir and not request.dry_run:
            self.materializer.write(request.output_dir, result)
        return result

    def preview(
        self,
        base: str,
        modules: Optional[List[str]] = None,
        project_name: Optional[str] = None,
        type_params: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Summary of a merge followed by the merged contract sources.

        Nothing is written. If validation fails the summary lists the
        errors and no sources are rendered.
        """
        request = self._request(base, modules, project_name, type_params, dry_run=True)
        resolution = self.resolver.resolve(request)
        text = self.merger.preview(resolution, request)

        if resolution.valid:
            for path, content in self.merger.render_files(resolution, request).items():
                text += f"\n// ---- {path} ----\n{content}"
        return text

    def list_bases(self) -> List[str]:
        return self.store.list_bases()

    def list_modules(self, base: Optional[str] = None, category: Optional[str] = None) -> List[Module]:
        """Modules, optionally filtered by base compatibility and category."""
        if base:
            modules = self.store.modules_for_base(base)
        else:
            modules = list(self.store.load_all_modules().values())
        if category:
            modules = [m for m in modules if m.category == category]
        return sorted(modules, key=lambda m: m.id)

    def get_base(self, name: str) -> BaseTemplate:
        return self.store.load_base_template(name)

    def get_module(self, identifier: str) -> Module:
        return self.store.load_module(identifier)
