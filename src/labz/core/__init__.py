"""Core types, configuration, and shared utilities."""

from .types import (
    InjectionMode,
    IssueSeverity,
    ValidationPhase,
    SlotDefinition,
    TypeParam,
    Exposes,
    ModuleProvides,
    Injection,
    BaseTemplate,
    Module,
    MergeRequest,
    ValidationIssue,
    ValidationReport,
    MergeManifest,
    MergeResult,
    contract_name_for,
)
from .exceptions import (
    LabzError,
    NotFoundError,
    TemplateError,
    ValidationError,
    MergeRefusedError,
    BlockError,
    ConfigurationError,
)
from .config import Settings, get_settings, reload_settings
from .registry import Registry

__all__ = [
    # Types
    "InjectionMode",
    "IssueSeverity",
    "ValidationPhase",
    "SlotDefinition",
    "TypeParam",
    "Exposes",
    "ModuleProvides",
    "Injection",
    "BaseTemplate",
    "Module",
    "MergeRequest",
    "ValidationIssue",
    "ValidationReport",
    "MergeManifest",
    "MergeResult",
    "contract_name_for",
    # Exceptions
    "LabzError",
    "NotFoundError",
    "TemplateError",
    "ValidationError",
    "MergeRefusedError",
    "BlockError",
    "ConfigurationError",
    # Config
    "Settings",
    "get_settings",
    "reload_settings",
    # Registry
    "Registry",
]
