"""
Template stores: sources of base templates and modules.

Stores are ordinary objects constructed per invocation. A store caches
what it has loaded for its own lifetime only, so separate stores (and
separate test runs) never observe each other's state.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Iterable

from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import NotFoundError, TemplateError
from ..core.registry import Registry
from ..core.types import BaseTemplate, Module
from .schema import BaseMeta, ModuleMeta

logger = logging.getLogger(__name__)

PROJECTS_DIR = "buildable/projects"
MODULES_DIR = "buildable/modules"
META_FILE = "meta.json"


class TemplateStore:
    """Interface for anything that can supply bases and modules."""

    def load_base_template(self, name: str) -> BaseTemplate:
        raise NotImplementedError

    def load_module(self, identifier: str) -> Module:
        raise NotImplementedError

    def list_bases(self) -> List[str]:
        raise NotImplementedError

    def list_modules(self) -> List[str]:
        raise NotImplementedError

    def load_all_modules(self) -> Dict[str, Module]:
        """Load every module, keyed by ``category/name``."""
        return {identifier: self.load_module(identifier) for identifier in self.list_modules()}

    def has_module(self, identifier: str) -> bool:
        return identifier in self.list_modules()

    def modules_for_base(self, base_name: str) -> List[Module]:
        """Modules whose allow-list admits the base and whose deny-list does not name it."""
        return [
            m for m in self.load_all_modules().values()
            if (not m.compatible_with or base_name in m.compatible_with)
            and base_name not in m.incompatible_with
        ]


class InMemoryTemplateStore(TemplateStore):
    """Store backed by records already in memory."""

    def __init__(
        self,
        bases: Optional[Iterable[BaseTemplate]] = None,
        modules: Optional[Iterable[Module]] = None,
    ):
        self._bases: Registry[BaseTemplate] = Registry("base template")
        self._modules: Registry[Module] = Registry("module")
        for base in bases or []:
            self.add_base(base)
        for module in modules or []:
            self.add_module(module)

    def add_base(self, base: BaseTemplate) -> None:
        self._bases.register(base.name, base)

    def add_module(self, module: Module) -> None:
        self._modules.register(module.id, module, metadata={"category": module.category})

    def load_base_template(self, name: str) -> BaseTemplate:
        base = self._bases.find(name)
        if base is None:
            raise NotFoundError(f"Base template not found: {name}", kind="base", identifier=name)
        return base

    def load_module(self, identifier: str) -> Module:
        module = self._modules.find(identifier)
        if module is None:
            raise NotFoundError(f"Module not found: {identifier}", kind="module", identifier=identifier)
        return module

    def list_bases(self) -> List[str]:
        return self._bases.list_registered()

    def list_modules(self) -> List[str]:
        return self._modules.list_registered()


class FileSystemTemplateStore(TemplateStore):
    """
    Store reading the ``buildable`` template tree.

    Layout::

        <root>/buildable/projects/<base>/meta.json
        <root>/buildable/projects/<base>/**/*.tmpl
        <root>/buildable/modules/<category>/<name>/meta.json
        <root>/buildable/modules/<category>/<name>/files/**   (additional files)
        <root>/buildable/modules/<category>/<name>/test/*.ts  (module test)
    """

    def __init__(self, root: str, default_order: int = 100):
        self.root = Path(root)
        self.default_order = default_order
        self._bases: Dict[str, BaseTemplate] = {}
        self._modules: Dict[str, Module] = {}

    @property
    def projects_dir(self) -> Path:
        return self.root / PROJECTS_DIR

    @property
    def modules_dir(self) -> Path:
        return self.root / MODULES_DIR

    def _read_meta(self, directory: Path, kind: str, identifier: str) -> dict:
        if not directory.is_dir():
            raise NotFoundError(
                f"{kind.capitalize()} not found: {identifier}", kind=kind, identifier=identifier
            )
        meta_path = directory / META_FILE
        if not meta_path.is_file():
            raise NotFoundError(
                f"{kind.capitalize()} missing {META_FILE}: {identifier}", kind=kind, identifier=identifier
            )
        try:
            return json.loads(meta_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise TemplateError(f"Invalid {META_FILE} for {identifier}: {e}", template=identifier, cause=e)

    @staticmethod
    def _read_tree(directory: Path, suffixes: Optional[tuple] = None) -> Dict[str, str]:
        files = {}
        for path in sorted(directory.rglob("*")):
            if not path.is_file() or path.name == META_FILE:
                continue
            if suffixes and not path.name.endswith(suffixes):
                continue
            files[path.relative_to(directory).as_posix()] = path.read_text(encoding="utf-8")
        return files

    def load_base_template(self, name: str) -> BaseTemplate:
        """
        Load a base template.

        Raises:
            NotFoundError: If the directory or its meta.json is absent
            TemplateError: If meta.json is malformed
        """
        if name in self._bases:
            return self._bases[name]

        base_dir = self.projects_dir / name
        raw = self._read_meta(base_dir, "base template", name)
        try:
            meta = BaseMeta.model_validate(raw)
        except PydanticValidationError as e:
            raise TemplateError(f"Invalid base template metadata: {name}", template=name, cause=e)

        base = meta.to_template(name, self._read_tree(base_dir, suffixes=(".tmpl",)))
        logger.debug("Loaded base %s with %d file(s)", name, len(base.files))
        self._bases[name] = base
        return base

    def load_module(self, identifier: str) -> Module:
        """
        Load a module by ``category/name``.

        Injection content starting with ``./`` or ``file:`` is read from the
        module directory.

        Raises:
            NotFoundError: If the directory, meta.json or a referenced
                content file is absent
            TemplateError: If meta.json is malformed
        """
        if identifier in self._modules:
            return self._modules[identifier]

        category, _, name = identifier.partition("/")
        if not category or not name:
            raise NotFoundError(
                f"Module identifier must be 'category/name': {identifier}",
                kind="module", identifier=identifier,
            )

        module_dir = self.modules_dir / category / name
        raw = self._read_meta(module_dir, "module", identifier)
        try:
            meta = ModuleMeta.model_validate(raw)
        except PydanticValidationError as e:
            raise TemplateError(f"Invalid module metadata: {identifier}", template=identifier, cause=e)

        contents = {}
        for slot, injection in meta.injections.items():
            if not injection.is_file_reference:
                continue
            path = module_dir / injection.file_reference
            if not path.is_file():
                raise NotFoundError(
                    f"Module {identifier} references missing file: {injection.file_reference}",
                    kind="file", identifier=str(path),
                )
            contents[slot] = path.read_text(encoding="utf-8")

        files_dir = module_dir / "files"
        additional_files = self._read_tree(files_dir) if files_dir.is_dir() else {}

        test_file = None
        test_dir = module_dir / "test"
        if test_dir.is_dir():
            tests = sorted(p for p in test_dir.iterdir() if p.is_file() and p.suffix == ".ts")
            if tests:
                test_file = tests[0].read_text(encoding="utf-8")

        module = meta.to_module(
            name, category, contents, additional_files, test_file, default_order=self.default_order
        )
        logger.debug("Loaded module %s (%d injection(s))", identifier, len(module.injections))
        self._modules[identifier] = module
        return module

    def list_bases(self) -> List[str]:
        if not self.projects_dir.is_dir():
            return []
        return sorted(
            d.name for d in self.projects_dir.iterdir()
            if d.is_dir() and not d.name.startswith("_")
        )

    def list_modules(self) -> List[str]:
        if not self.modules_dir.is_dir():
            return []
        identifiers = []
        for category in sorted(self.modules_dir.iterdir()):
            if not category.is_dir() or category.name.startswith("_"):
                continue
            for module in sorted(category.iterdir()):
                if module.is_dir() and not module.name.startswith("_"):
                    identifiers.append(f"{category.name}/{module.name}")
        return identifiers

    def has_module(self, identifier: str) -> bool:
        return (self.modules_dir / identifier / META_FILE).is_file()
