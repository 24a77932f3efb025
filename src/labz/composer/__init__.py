"""Template composition: loading, validation and merging."""

from .parser import (
    TextSegment,
    SlotMarker,
    ParsedFile,
    parse_base,
    parse_text,
    apply_type_params,
    resolve_type_params,
)
from .conditions import ConditionEvaluator, ConditionError
from .loader import TemplateStore, InMemoryTemplateStore, FileSystemTemplateStore
from .resolver import DependencyResolver, Resolution, ScheduledInjection
from .merger import Merger
from .materializer import ProjectMaterializer

__all__ = [
    # Parser
    "TextSegment",
    "SlotMarker",
    "ParsedFile",
    "parse_base",
    "parse_text",
    "apply_type_params",
    "resolve_type_params",
    # Conditions
    "ConditionEvaluator",
    "ConditionError",
    # Stores
    "TemplateStore",
    "InMemoryTemplateStore",
    "FileSystemTemplateStore",
    # Resolution and merging
    "DependencyResolver",
    "Resolution",
    "ScheduledInjection",
    "Merger",
    "ProjectMaterializer",
]
