"""Visual block builder: block catalog, drop validation, code generation."""

from .types import (
    ZoneType,
    BlockCategory,
    BlockParam,
    Block,
    ProjectBlock,
    FunctionParam,
    ProjectFunction,
    ProjectState,
    DropResult,
    BlockLineMapping,
)
from .catalog import BlockCatalog, builtin_blocks
from .validator import BlockValidator
from .generator import CodeGenerator, GeneratedContract, empty_project, render_block_template
from .builder import ProjectBuilder

__all__ = [
    # Types
    "ZoneType",
    "BlockCategory",
    "BlockParam",
    "Block",
    "ProjectBlock",
    "FunctionParam",
    "ProjectFunction",
    "ProjectState",
    "DropResult",
    "BlockLineMapping",
    # Catalog
    "BlockCatalog",
    "builtin_blocks",
    # Validation and generation
    "BlockValidator",
    "CodeGenerator",
    "GeneratedContract",
    "empty_project",
    "render_block_template",
    "ProjectBuilder",
]
