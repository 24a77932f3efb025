"""In-memory project model for the block builder."""

import itertools
import logging
from typing import Dict, List, Optional

from ..core.exceptions import BlockError
from .catalog import BlockCatalog
from .generator import CodeGenerator, GeneratedContract, empty_project
from .types import (
    DropResult,
    FunctionParam,
    ProjectBlock,
    ProjectFunction,
    ProjectState,
    ZoneType,
)
from .validator import BlockValidator

logger = logging.getLogger(__name__)

# Zone an auto-added block goes into, by the zones it accepts.
_AUTO_ADD_ZONES = (ZoneType.IMPORTS, ZoneType.STATE)


class ProjectBuilder:
    """
    Mutable project being assembled block by block.

    Every drop is validated first. Required blocks missing from the project
    are added automatically when they live in the imports or state zones.

    Example:
        >>> builder = ProjectBuilder("Counter")
        >>> fn = builder.add_function("increment", params=[("inputHandle", "externalEuint32")])
        >>> builder.drop("op-fromExternal", ZoneType.FUNCTION_BODY, function_id=fn.id)
    """

    def __init__(
        self,
        name: str,
        catalog: Optional[BlockCatalog] = None,
        state: Optional[ProjectState] = None,
    ):
        self.catalog = catalog or BlockCatalog()
        self.validator = BlockValidator(self.catalog)
        self.generator = CodeGenerator(self.catalog)
        self.state = state or empty_project(name)
        self._ids = itertools.count(len(list(self.state.all_blocks())) + 1)
        self._function_ids = itertools.count(len(self.state.functions) + 1)

    @classmethod
    def create_empty(cls, name: str, catalog: Optional[BlockCatalog] = None) -> "ProjectBuilder":
        """Builder for a fresh project with the FHE imports in place."""
        return cls(name, catalog=catalog, state=empty_project(name))

    def _zone_list(self, zone: ZoneType, function_id: Optional[str]) -> List[ProjectBlock]:
        if zone == ZoneType.IMPORTS:
            return self.state.imports
        if zone == ZoneType.STATE:
            return self.state.state_variables
        if zone == ZoneType.CONSTRUCTOR:
            return self.state.constructor_body
        if zone == ZoneType.MODIFIER_BODY:
            return self.state.modifiers
        if zone == ZoneType.FUNCTION_BODY:
            fn = self.state.get_function(function_id) if function_id else None
            if fn is None:
                raise BlockError(f"Unknown function: {function_id}", details={"zone": zone.value})
            return fn.body
        raise BlockError(f"Blocks cannot be placed in {zone.value}")

    @staticmethod
    def _renumber(blocks: List[ProjectBlock]) -> None:
        for index, block in enumerate(blocks):
            block.order = index

    def add_function(
        self,
        name: str,
        params: Optional[List[tuple]] = None,
        visibility: str = "external",
        state_mutability: Optional[str] = None,
        returns: Optional[List[tuple]] = None,
    ) -> ProjectFunction:
        """Add an empty function. Params and returns are (name, type) pairs."""
        if any(fn.name == name for fn in self.state.functions):
            raise BlockError(f"Function {name} already exists")
        fn = ProjectFunction(
            id=f"fn-{next(self._function_ids)}",
            name=name,
            visibility=visibility,
            state_mutability=state_mutability,
            params=[FunctionParam(n, t) for n, t in (params or [])],
            returns=[FunctionParam(n, t) for n, t in (returns or [])],
        )
        self.state.functions.append(fn)
        return fn

    def add_state(self, block_id: str, name: str, **config: str) -> DropResult:
        """Declare an encrypted state variable using a ``state-*`` block."""
        return self.drop(block_id, ZoneType.STATE, config={"name": name, **config})

    def remove_function(self, function_id: str) -> None:
        fn = self.state.get_function(function_id)
        if fn is None:
            raise BlockError(f"Unknown function: {function_id}")
        self.state.functions.remove(fn)

    def check(
        self,
        block_id: str,
        zone: ZoneType,
        position: Optional[int] = None,
        function_id: Optional[str] = None,
    ) -> DropResult:
        """Validate a drop without applying it."""
        block = self.catalog.get(block_id)
        if block is None:
            return DropResult(valid=False, errors=[f"Unknown block: {block_id}"])
        target = self._zone_list(zone, function_id) if zone in block.can_drop_in else []
        at = len(target) if position is None else position
        return self.validator.validate_drop(block, zone, at, self.state, function_id)

    def drop(
        self,
        block_id: str,
        zone: ZoneType,
        position: Optional[int] = None,
        function_id: Optional[str] = None,
        config: Optional[Dict[str, str]] = None,
    ) -> DropResult:
        """
        Validate and place a block. Nothing changes if validation fails.

        Args:
            block_id: Catalog id of the block
            zone: Target zone
            position: Index within the zone (defaults to the end)
            function_id: Target function for function-body drops
            config: Template parameter values

        Returns:
            The validation result; ``auto_add`` lists every block that was
            placed or suggested alongside it
        """
        result = self.check(block_id, zone, position, function_id)
        if not result.valid:
            logger.debug("Rejected drop of %s into %s: %s", block_id, zone.value, result.errors)
            return result

        target = self._zone_list(zone, function_id)
        at = len(target) if position is None else min(max(position, 0), len(target))
        target.insert(at, ProjectBlock(
            id=f"block-{next(self._ids)}",
            block_id=block_id,
            zone=zone,
            config=dict(config or {}),
            parent_id=function_id,
        ))
        self._renumber(target)

        for dependency in result.auto_add:
            self._auto_add(dependency)
        return result

    def _auto_add(self, block_id: str) -> None:
        if self.validator.has_block(self.state, block_id):
            return
        block = self.catalog.get(block_id)
        if block is None:
            return
        for zone in _AUTO_ADD_ZONES:
            if zone in block.can_drop_in:
                target = self._zone_list(zone, None)
                target.append(ProjectBlock(f"block-{next(self._ids)}", block_id, zone, block.defaults()))
                self._renumber(target)
                logger.info("Auto-added %s", block_id)
                return

    def _locate(self, placed_id: str) -> List[ProjectBlock]:
        for blocks in [self.state.imports, self.state.state_variables, self.state.constructor_body,
                       self.state.modifiers] + [fn.body for fn in self.state.functions]:
            if any(b.id == placed_id for b in blocks):
                return blocks
        raise BlockError(f"Block not in project: {placed_id}", block_id=placed_id)

    def remove(self, placed_id: str) -> None:
        """Remove a placed block."""
        blocks = self._locate(placed_id)
        blocks[:] = [b for b in blocks if b.id != placed_id]
        self._renumber(blocks)

    def move(self, placed_id: str, position: int) -> DropResult:
        """Move a placed block within its zone, re-validating ordering rules."""
        blocks = self._locate(placed_id)
        index = next(i for i, b in enumerate(blocks) if b.id == placed_id)
        block = self.catalog.get(blocks[index].block_id)
        if block is None:
            raise BlockError(f"Unknown block: {blocks[index].block_id}", block_id=placed_id)
        placed = blocks.pop(index)

        at = min(max(position, 0), len(blocks))
        result = self.validator.validate_drop(block, placed.zone, at, self.state, placed.parent_id)
        blocks.insert(at if result.valid else index, placed)
        self._renumber(blocks)
        return result

    def validate(self) -> DropResult:
        return self.validator.validate_project(self.state)

    def render(self) -> str:
        return self.generator.generate_contract(self.state)

    def render_with_mapping(self) -> GeneratedContract:
        return self.generator.generate_contract_with_mapping(self.state)

    def files(self) -> Dict[str, str]:
        return self.generator.generate_project(self.state)
