"""Block-builder type definitions."""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple, Iterator
from enum import Enum


class ZoneType(Enum):
    """Places in a contract a block can be dropped into."""
    IMPORTS = "imports"
    STATE = "state"
    CONSTRUCTOR = "constructor"
    FUNCTION_PARAMS = "function-params"
    FUNCTION_BODY = "function-body"
    MODIFIER_BODY = "modifier-body"


class BlockCategory(Enum):
    """Block categories."""
    IMPORT = "import"
    STATE = "state"
    FUNCTION = "function"
    INPUT_CONVERSION = "input-conversion"
    ARITHMETIC = "arithmetic"
    COMPARISON = "comparison"
    BITWISE = "bitwise"
    CONDITIONAL = "conditional"
    ACL = "acl"
    DECRYPT = "decrypt"
    MODIFIER = "modifier"
    REQUIRE = "require"


ENCRYPTED_TYPES = ("ebool", "euint8", "euint16", "euint32", "euint64", "euint128", "euint256", "eaddress")


@dataclass(frozen=True)
class BlockParam:
    """A template parameter of a block."""
    id: str
    label: str
    type: str = "string"  # string | variable | address | type-select
    default: Optional[str] = None
    options: Tuple[str, ...] = ()
    variable_type: Optional[str] = None
    required: bool = False


@dataclass(frozen=True)
class Block:
    """
    A code block definition.

    ``must_come_after``/``must_come_before`` and ``requires`` entries may
    be prefix wildcards such as ``op-*``. ``input_types`` entries are
    ``+``-joined type patterns, e.g. ``euint32+euint32`` or ``euint*``.
    """
    id: str
    name: str
    description: str
    category: BlockCategory
    can_drop_in: Tuple[ZoneType, ...]
    template: str
    requires: Tuple[str, ...] = ()
    incompatible_with: Tuple[str, ...] = ()
    must_come_after: Tuple[str, ...] = ()
    must_come_before: Tuple[str, ...] = ()
    input_types: Tuple[str, ...] = ()
    output_type: Optional[str] = None
    auto_adds: Tuple[str, ...] = ()
    params: Tuple[BlockParam, ...] = ()
    tags: Tuple[str, ...] = ()

    def defaults(self) -> Dict[str, str]:
        """Parameter defaults, for params that have one."""
        return {p.id: p.default for p in self.params if p.default is not None}


@dataclass
class ProjectBlock:
    """A placed instance of a block."""
    id: str
    block_id: str
    zone: ZoneType
    config: Dict[str, str] = field(default_factory=dict)
    order: int = 0
    parent_id: Optional[str] = None


@dataclass
class FunctionParam:
    name: str
    type: str


@dataclass
class ProjectFunction:
    """A function being built from blocks."""
    id: str
    name: str
    visibility: str = "external"
    state_mutability: Optional[str] = None
    params: List[FunctionParam] = field(default_factory=list)
    returns: List[FunctionParam] = field(default_factory=list)
    body: List[ProjectBlock] = field(default_factory=list)


@dataclass
class ProjectState:
    """Everything the user has built so far."""
    name: str
    version: str = "1.0.0"
    inherits: List[str] = field(default_factory=list)
    imports: List[ProjectBlock] = field(default_factory=list)
    state_variables: List[ProjectBlock] = field(default_factory=list)
    constructor_body: List[ProjectBlock] = field(default_factory=list)
    functions: List[ProjectFunction] = field(default_factory=list)
    modifiers: List[ProjectBlock] = field(default_factory=list)

    def all_blocks(self) -> Iterator[ProjectBlock]:
        yield from self.imports
        yield from self.state_variables
        yield from self.constructor_body
        for fn in self.functions:
            yield from fn.body
        yield from self.modifiers

    def block_ids(self) -> List[str]:
        return [b.block_id for b in self.all_blocks()]

    def get_function(self, function_id: str) -> Optional[ProjectFunction]:
        for fn in self.functions:
            if fn.id == function_id:
                return fn
        return None


@dataclass
class DropResult:
    """Outcome of validating a block drop."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    auto_add: List[str] = field(default_factory=list)
    insert_position: Optional[int] = None

    @property
    def can_drop(self) -> bool:
        return self.valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "canDrop": self.can_drop,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "autoAdd": list(self.auto_add),
            "insertPosition": self.insert_position,
        }


@dataclass(frozen=True)
class BlockLineMapping:
    """Where a placed block ended up in the generated contract (1-based lines)."""
    block_id: str
    source_block_id: str
    line_start: int
    line_end: int
    zone: ZoneType
