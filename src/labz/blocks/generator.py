"""Rendering a block-builder project to Solidity and Hardhat files."""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from ..rendering.engine import TemplateEngine, package_name
from .catalog import BlockCatalog
from .types import BlockLineMapping, ProjectBlock, ProjectFunction, ProjectState, ZoneType

logger = logging.getLogger(__name__)

SOLIDITY_VERSION = "0.8.24"
INDENT = "    "

_PARAM_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

TSCONFIG = {
    "compilerOptions": {
        "target": "ES2020",
        "module": "commonjs",
        "strict": True,
        "esModuleInterop": True,
        "skipLibCheck": True,
        "forceConsistentCasingInFileNames": True,
        "resolveJsonModule": True,
    },
    "include": ["./scripts", "./test"],
    "files": ["./hardhat.config.ts"],
}

DEV_DEPENDENCIES = {
    "@fhevm/hardhat-plugin": "^0.1.0",
    "@fhevm/solidity": "^0.10.0",
    "@nomicfoundation/hardhat-toolbox": "^5.0.0",
    "hardhat": "^2.19.0",
    "typescript": "^5.0.0",
}


def render_block_template(template: str, config: Mapping[str, str]) -> str:
    """Fill ``{{param}}`` placeholders; unknown placeholders are left as-is."""
    return _PARAM_PATTERN.sub(lambda m: config.get(m.group(1), m.group(0)), template)


@dataclass
class GeneratedContract:
    """Contract source plus where each placed block landed."""
    code: str
    mappings: List[BlockLineMapping] = field(default_factory=list)


class _ContractWriter:
    """Accumulates lines and records block line ranges."""

    def __init__(self):
        self.lines: List[str] = []
        self.mappings: List[BlockLineMapping] = []

    def add(self, line: str = "") -> None:
        self.lines.append(line)

    def add_block(self, placed: ProjectBlock, rendered: str, indent: str) -> None:
        start = len(self.lines) + 1
        for line in rendered.split("\n"):
            self.lines.append(indent + line)
        self.mappings.append(BlockLineMapping(
            block_id=placed.id,
            source_block_id=placed.block_id,
            line_start=start,
            line_end=len(self.lines),
            zone=placed.zone,
        ))


class CodeGenerator:
    """
    Renders a ProjectState into a contract, a test, and Hardhat scaffolding.

    Blocks are rendered from their templates with each placement's config
    (falling back to parameter defaults) and appended in position order.
    Placements that reference unknown blocks are skipped.
    """

    def __init__(self, catalog: Optional[BlockCatalog] = None, engine: Optional[TemplateEngine] = None):
        self.catalog = catalog or BlockCatalog()
        self.engine = engine or TemplateEngine()

    def render_block(self, placed: ProjectBlock) -> Optional[str]:
        block = self.catalog.get(placed.block_id)
        if block is None:
            logger.warning("Skipping unknown block %s (%s)", placed.block_id, placed.id)
            return None
        return render_block_template(block.template, {**block.defaults(), **placed.config})

    @staticmethod
    def function_signature(fn: ProjectFunction) -> str:
        params = ", ".join(f"{p.type} {p.name}" for p in fn.params)
        mutability = f" {fn.state_mutability}" if fn.state_mutability else ""
        returns = ""
        if fn.returns:
            returns = " returns (" + ", ".join(
                f"{r.type} {r.name}" if r.name else r.type for r in fn.returns
            ) + ")"
        return f"function {fn.name}({params}) {fn.visibility or 'external'}{mutability}{returns} {{"

    def _write_section(self, writer: _ContractWriter, blocks: List[ProjectBlock], indent: str) -> int:
        count = 0
        for placed in sorted(blocks, key=lambda b: b.order):
            rendered = self.render_block(placed)
            if rendered is not None:
                writer.add_block(placed, rendered, indent)
                count += 1
        return count

    def generate_contract_with_mapping(self, state: ProjectState) -> GeneratedContract:
        """Contract source with a 1-based line range per rendered block."""
        writer = _ContractWriter()
        writer.add("// SPDX-License-Identifier: MIT")
        writer.add(f"pragma solidity ^{SOLIDITY_VERSION};")
        writer.add()

        if self._write_section(writer, state.imports, ""):
            writer.add()

        inherits = f" is {', '.join(state.inherits)}" if state.inherits else ""
        writer.add(f"contract {state.name}{inherits} {{")

        if self._write_section(writer, state.state_variables, INDENT):
            writer.add()

        if state.constructor_body:
            writer.add(f"{INDENT}constructor() {{")
            self._write_section(writer, state.constructor_body, INDENT * 2)
            writer.add(f"{INDENT}}}")
            writer.add()

        for fn in state.functions:
            writer.add(INDENT + self.function_signature(fn))
            self._write_section(writer, fn.body, INDENT * 2)
            writer.add(f"{INDENT}}}")
            writer.add()

        writer.add("}")
        return GeneratedContract("\n".join(writer.lines) + "\n", writer.mappings)

    def generate_contract(self, state: ProjectState) -> str:
        return self.generate_contract_with_mapping(state).code

    def generate_test(self, state: ProjectState) -> str:
        """Hardhat test with one placeholder case per function."""
        return self.engine.render("block.test.ts.j2", state=state)

    @staticmethod
    def generate_package_json(state: ProjectState) -> str:
        return json.dumps({
            "name": package_name(state.name),
            "version": state.version or "1.0.0",
            "scripts": {
                "compile": "hardhat compile",
                "test": "hardhat test",
                "deploy": "hardhat run deploy/deploy.ts",
            },
            "devDependencies": DEV_DEPENDENCIES,
        }, indent=2) + "\n"

    def generate_hardhat_config(self) -> str:
        return self.engine.render("hardhat.config.ts.j2", solidity_version=SOLIDITY_VERSION)

    def generate_deploy_script(self, state: ProjectState) -> str:
        return self.engine.render("deploy.ts.j2", contract_name=state.name)

    @staticmethod
    def generate_tsconfig() -> str:
        return json.dumps(TSCONFIG, indent=2) + "\n"

    def generate_project(self, state: ProjectState) -> Dict[str, str]:
        """Every file of the project, keyed by relative path."""
        return {
            f"contracts/{state.name}.sol": self.generate_contract(state),
            f"test/{state.name}.test.ts": self.generate_test(state),
            "deploy/deploy.ts": self.generate_deploy_script(state),
            "package.json": self.generate_package_json(state),
            "hardhat.config.ts": self.generate_hardhat_config(),
            "tsconfig.json": self.generate_tsconfig(),
        }


def empty_project(name: str) -> ProjectState:
    """A new project importing the FHE library and network config."""
    return ProjectState(
        name=name,
        inherits=["SepoliaConfig"],
        imports=[
            ProjectBlock("import-1", "import-fhe", ZoneType.IMPORTS, {"types": "euint32, externalEuint32"}, order=0),
            ProjectBlock("import-2", "import-config", ZoneType.IMPORTS, {}, order=1),
        ],
    )
