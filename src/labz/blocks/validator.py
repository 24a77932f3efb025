"""
Drop validation for the block builder.

A smaller sibling of the module resolver: it checks one block against one
zone of the current project instead of a whole module selection.
"""

from typing import List, Optional

from ..core.matching import expand, is_wildcard, matches
from .catalog import BlockCatalog
from .types import Block, BlockCategory, DropResult, ProjectBlock, ProjectState, ZoneType

OPERATION_CATEGORIES = (BlockCategory.ARITHMETIC, BlockCategory.COMPARISON)


class BlockValidator:
    """Validates block drops and whole projects against a catalog."""

    def __init__(self, catalog: Optional[BlockCatalog] = None):
        self.catalog = catalog or BlockCatalog()

    def _expand(self, pattern: str, exclude: Optional[Block] = None) -> List[str]:
        """Catalog ids for a pattern; wildcards skip blocks of the excluded block's category."""
        if not is_wildcard(pattern):
            return [pattern]
        ids = expand(pattern, self.catalog.ids)
        if exclude is None:
            return ids
        return [i for i in ids if self.catalog.require(i).category != exclude.category]

    def has_block(self, state: ProjectState, pattern: str) -> bool:
        return any(matches(pattern, block_id) for block_id in state.block_ids())

    def available_types(self, state: ProjectState) -> List[str]:
        """Output types of the declared state variables."""
        types = []
        for placed in state.state_variables:
            block = self.catalog.get(placed.block_id)
            if block is not None and block.output_type:
                types.append(block.output_type)
        return types

    @staticmethod
    def _zone_blocks(state: ProjectState, zone: ZoneType, function_id: Optional[str]) -> List[ProjectBlock]:
        if zone == ZoneType.IMPORTS:
            return state.imports
        if zone == ZoneType.STATE:
            return state.state_variables
        if zone == ZoneType.CONSTRUCTOR:
            return state.constructor_body
        if zone == ZoneType.FUNCTION_BODY and function_id:
            fn = state.get_function(function_id)
            return fn.body if fn else []
        return []

    def validate_drop(
        self,
        block: Block,
        zone: ZoneType,
        position: int,
        state: ProjectState,
        function_id: Optional[str] = None,
    ) -> DropResult:
        """
        Check whether a block may be dropped at a position in a zone.

        Zone compatibility is checked first and stops validation. Missing
        dependencies that exist in the catalog become auto-adds with a
        warning; unknown ones are errors. Ordering constraints only apply
        inside function bodies. Type mismatches are warnings.
        """
        errors: List[str] = []
        warnings: List[str] = []
        auto_add: List[str] = []

        if zone not in block.can_drop_in:
            return DropResult(valid=False, errors=[f"{block.name} cannot be placed in {zone.value}"])

        for dependency in block.requires:
            if self.has_block(state, dependency):
                continue
            dependency_block = self.catalog.get(dependency)
            if dependency_block is not None:
                auto_add.append(dependency)
                warnings.append(f"Will auto-add: {dependency_block.name}")
            else:
                errors.append(f"Requires {dependency}")

        for conflict in block.incompatible_with:
            if self.has_block(state, conflict):
                conflict_block = self.catalog.get(conflict)
                errors.append(f"Conflicts with {conflict_block.name if conflict_block else conflict}")

        if zone == ZoneType.FUNCTION_BODY:
            placed = self._zone_blocks(state, zone, function_id)

            for pattern in block.must_come_after:
                ids = set(self._expand(pattern, block))
                positions = [i for i, b in enumerate(placed) if b.block_id in ids]
                if positions and position <= max(positions):
                    errors.append(f"{block.name} must come after {pattern.replace('*', '...')}")

            for pattern in block.must_come_before:
                ids = set(self._expand(pattern, block))
                positions = [i for i, b in enumerate(placed) if b.block_id in ids]
                if positions and position > min(positions):
                    errors.append(f"{block.name} must come before {pattern.replace('*', '...')}")

        if block.input_types:
            available = self.available_types(state)
            compatible = any(
                all(any(matches(t, a) for a in available) for t in pattern.split("+"))
                for pattern in block.input_types
            )
            if available and not compatible:
                warnings.append(f"{block.name} may need compatible type: {block.input_types[0]}")

        for suggestion in block.auto_adds:
            if not self.has_block(state, suggestion) and suggestion not in auto_add:
                auto_add.append(suggestion)

        return DropResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            auto_add=auto_add,
            insert_position=position,
        )

    def valid_zones(self, block: Block, state: ProjectState) -> List[ZoneType]:
        """Zones the block could be dropped into at the start."""
        return [
            zone for zone in block.can_drop_in
            if self.validate_drop(block, zone, 0, state).valid
        ]

    def validate_project(self, state: ProjectState) -> DropResult:
        """
        Whole-project checks: FHE operations need the FHE import, and
        functions doing arithmetic or comparisons should grant ACL access.
        """
        errors: List[str] = []
        warnings: List[str] = []

        has_import_fhe = any(b.block_id == "import-fhe" for b in state.imports)
        uses_fhe = any(
            "import-fhe" in self.catalog.require(b.block_id).requires
            for fn in state.functions for b in fn.body
            if b.block_id in self.catalog
        )
        if uses_fhe and not has_import_fhe:
            errors.append("FHE operations require import-fhe")

        for fn in state.functions:
            categories = [
                self.catalog.require(b.block_id).category
                for b in fn.body if b.block_id in self.catalog
            ]
            if any(c in OPERATION_CATEGORIES for c in categories) and BlockCategory.ACL not in categories:
                warnings.append(f"Function {fn.name}: Consider adding ACL operations after FHE operations")

        unknown = sorted({b.block_id for b in state.all_blocks() if b.block_id not in self.catalog})
        errors.extend(f"Unknown block: {block_id}" for block_id in unknown)

        return DropResult(valid=not errors, errors=errors, warnings=warnings)

    def suggested_blocks(self, state: ProjectState, zone: ZoneType) -> List[Block]:
        """Blocks that fit the zone and whose dependencies are already present."""
        existing = set(state.block_ids())
        suggestions = []
        for block in self.catalog.all():
            if block.category == BlockCategory.IMPORT and block.id in existing:
                continue
            if zone not in block.can_drop_in:
                continue
            if all(self.has_block(state, dep) for dep in block.requires):
                suggestions.append(block)
        return suggestions
