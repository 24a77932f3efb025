"""Core type definitions for the template composition system."""

import re
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple, Iterator
from enum import Enum


class InjectionMode(Enum):
    """How an injected fragment combines with existing slot content."""
    APPEND = "append"
    PREPEND = "prepend"
    REPLACE = "replace"


class IssueSeverity(Enum):
    """Severity of a validation issue."""
    ERROR = "error"      # Blocks the merge
    WARNING = "warning"  # Informational only


class ValidationPhase(Enum):
    """Resolver phases, in the order they are reported."""
    BASE = "base"
    COMPATIBILITY = "compatibility"
    DEPENDENCY = "dependency"
    SLOT = "slot"
    TYPE = "type"
    COLLISION = "collision"
    EXCLUSIVITY = "exclusivity"
    SIZE = "size"
    SEMANTIC = "semantic"

    @property
    def number(self) -> int:
        return list(ValidationPhase).index(self) + 1


@dataclass(frozen=True)
class SlotDefinition:
    """A named insertion point declared by a base template."""
    name: str
    description: str = ""
    required: bool = False
    default_content: str = ""


@dataclass(frozen=True)
class TypeParam:
    """A scalar type parameter such as the main encrypted integer type."""
    name: str
    default: str
    options: Tuple[str, ...] = ()
    description: str = ""

    @property
    def is_closed(self) -> bool:
        """Whether the parameter only accepts its declared options."""
        return bool(self.options)

    def accepts(self, value: str) -> bool:
        return not self.is_closed or value in self.options


@dataclass(frozen=True)
class Exposes:
    """Symbols a base template already defines."""
    variables: Tuple[str, ...] = ()
    functions: Tuple[str, ...] = ()
    events: Tuple[str, ...] = ()

    def symbols(self) -> Iterator[Tuple[str, str]]:
        """Yield (kind, name) pairs."""
        for name in self.variables:
            yield "variable", name
        for name in self.functions:
            yield "function", name
        for name in self.events:
            yield "event", name


@dataclass(frozen=True)
class ModuleProvides:
    """Symbols a module introduces into the generated contract."""
    state_variables: Tuple[str, ...] = ()
    functions: Tuple[str, ...] = ()
    modifiers: Tuple[str, ...] = ()
    events: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()

    def symbols(self) -> Iterator[Tuple[str, str]]:
        """Yield (kind, name) pairs."""
        for name in self.state_variables:
            yield "variable", name
        for name in self.functions:
            yield "function", name
        for name in self.modifiers:
            yield "modifier", name
        for name in self.events:
            yield "event", name
        for name in self.errors:
            yield "error", name


@dataclass(frozen=True)
class Injection:
    """A fragment a module places into one slot of the base."""
    slot: str
    content: str
    mode: InjectionMode = InjectionMode.APPEND
    order: int = 100
    condition: Optional[str] = None


@dataclass(frozen=True)
class BaseTemplate:
    """
    A named, versioned contract skeleton with slots.

    Files map relative output paths to raw template text. Text may contain
    ``{{slot}}`` markers, ``[[PARAM]]`` type tokens, and the project
    placeholders ``{{PROJECT_NAME}}``, ``{{CONTRACT_NAME}}``, ``{{IMPORTS}}``
    and ``{{INHERITS}}``.
    """
    name: str
    version: str = "1.0.0"
    description: str = ""
    files: Dict[str, str] = field(default_factory=dict)
    slots: Tuple[SlotDefinition, ...] = ()
    type_params: Dict[str, TypeParam] = field(default_factory=dict)
    exposes: Exposes = field(default_factory=Exposes)
    inherits: Tuple[str, ...] = ()
    imports: Tuple[str, ...] = ()

    @property
    def slot_names(self) -> List[str]:
        return [s.name for s in self.slots]

    def get_slot(self, name: str) -> Optional[SlotDefinition]:
        for slot in self.slots:
            if slot.name == name:
                return slot
        return None

    @property
    def type_defaults(self) -> Dict[str, str]:
        return {name: p.default for name, p in self.type_params.items()}


@dataclass(frozen=True)
class Module:
    """
    A feature fragment addressable as ``category/name``.

    Records are read-only and may be shared by any number of merges.
    ``requires_types`` maps a type-parameter name (or ``*`` for any
    parameter) to the values the module accepts.
    """
    name: str
    category: str
    version: str = "1.0.0"
    description: str = ""
    author: Optional[str] = None
    tags: Tuple[str, ...] = ()
    compatible_with: Tuple[str, ...] = ()
    incompatible_with: Tuple[str, ...] = ()
    requires: Tuple[str, ...] = ()
    enhances: Tuple[str, ...] = ()
    requires_slots: Tuple[str, ...] = ()
    requires_types: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    requires_version: Optional[str] = None
    exclusive: bool = False
    semantics: Tuple[str, ...] = ()
    injections: Dict[str, Injection] = field(default_factory=dict)
    provides: ModuleProvides = field(default_factory=ModuleProvides)
    imports: Tuple[str, ...] = ()
    inherits: Tuple[str, ...] = ()
    additional_files: Dict[str, str] = field(default_factory=dict)
    test_file: Optional[str] = None
    estimated_size: Optional[int] = None
    estimated_gas: Dict[str, int] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return f"{self.category}/{self.name}"


def contract_name_for(project_name: str) -> str:
    """PascalCase contract name derived from a project name."""
    parts = [p for p in re.split(r"[-_\s]+", project_name) if p]
    return "".join(p[:1].upper() + p[1:] for p in parts)


@dataclass
class MergeRequest:
    """A single build request: base, ordered modules and overrides."""
    base: str
    modules: List[str] = field(default_factory=list)
    project_name: str = "my-fhe-project"
    type_params: Dict[str, str] = field(default_factory=dict)
    output_dir: Optional[str] = None
    dry_run: bool = False

    @property
    def contract_name(self) -> str:
        return contract_name_for(self.project_name)


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation problem, tagged with the phase that found it."""
    phase: ValidationPhase
    message: str
    severity: IssueSeverity = IssueSeverity.ERROR
    module: Optional[str] = None
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "message": self.message,
            "severity": self.severity.value,
            "module": self.module,
            "suggestion": self.suggestion,
        }


@dataclass
class ValidationReport:
    """Outcome of resolving a base and module selection."""
    issues: List[ValidationIssue] = field(default_factory=list)
    modules: List[str] = field(default_factory=list)  # Expanded selection
    auto_added: List[str] = field(default_factory=list)
    type_params: Dict[str, str] = field(default_factory=dict)
    estimated_size: int = 0

    @property
    def errors(self) -> List[ValidationIssue]:
        """Get only error-level issues."""
        return [i for i in self.issues if i.severity == IssueSeverity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        """Get only warning-level issues."""
        return [i for i in self.issues if i.severity == IssueSeverity.WARNING]

    @property
    def valid(self) -> bool:
        return not self.errors

    def error(self, phase: ValidationPhase, message: str, **kwargs: Any) -> None:
        self.issues.append(ValidationIssue(phase, message, IssueSeverity.ERROR, **kwargs))

    def warn(self, phase: ValidationPhase, message: str, **kwargs: Any) -> None:
        self.issues.append(ValidationIssue(phase, message, IssueSeverity.WARNING, **kwargs))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "valid": self.valid,
            "errors": [i.to_dict() for i in self.errors],
            "warnings": [i.to_dict() for i in self.warnings],
        }


@dataclass(frozen=True)
class MergeManifest:
    """Summary of what a merge applied."""
    base: str
    project_name: str
    modules_applied: Tuple[str, ...] = ()
    auto_added: Tuple[str, ...] = ()
    slots_used: Tuple[str, ...] = ()
    type_params: Dict[str, str] = field(default_factory=dict)
    estimated_size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base": self.base,
            "projectName": self.project_name,
            "modulesApplied": list(self.modules_applied),
            "autoAdded": list(self.auto_added),
            "slotsUsed": list(self.slots_used),
            "typeParams": dict(self.type_params),
            "estimatedSize": self.estimated_size,
        }


@dataclass(frozen=True)
class MergeResult:
    """Result of a merge. ``files`` is empty when the merge was refused."""
    success: bool
    report: ValidationReport
    files: Dict[str, str] = field(default_factory=dict)
    manifest: Optional[MergeManifest] = None
    package_patch: Dict[str, Any] = field(default_factory=dict)

    @property
    def diagnostics(self) -> Dict[str, List[str]]:
        return {
            "errors": [i.message for i in self.report.errors],
            "warnings": [i.message for i in self.report.warnings],
        }

    def raise_for_refusal(self) -> None:
        """Raise MergeRefusedError if this result was refused."""
        if not self.success:
            from .exceptions import MergeRefusedError
            raise MergeRefusedError(
                f"Merge refused with {len(self.report.errors)} validation error(s)",
                report=self.report,
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "files": sorted(self.files),
            "diagnostics": self.diagnostics,
            "manifest": self.manifest.to_dict() if self.manifest else None,
        }
