"""Tests for the visual block builder."""

import json

import pytest

from labz.core.exceptions import BlockError
from labz.blocks import (
    Block,
    BlockCatalog,
    BlockCategory,
    BlockValidator,
    CodeGenerator,
    FunctionParam,
    ProjectBlock,
    ProjectBuilder,
    ProjectFunction,
    ProjectState,
    ZoneType,
    builtin_blocks,
    empty_project,
    render_block_template,
)

BODY = ZoneType.FUNCTION_BODY


@pytest.fixture
def catalog():
    return BlockCatalog()


@pytest.fixture
def builder():
    return ProjectBuilder.create_empty("Counter")


@pytest.fixture
def counter_builder(builder):
    """Builder with a state variable and an increment function."""
    builder.add_state("state-euint32", "_count")
    fn = builder.add_function(
        "increment",
        params=[("inputHandle", "externalEuint32"), ("inputProof", "bytes calldata")],
    )
    builder.drop("op-fromExternal", BODY, function_id=fn.id,
                 config={"output": "value", "input": "inputHandle", "proof": "inputProof"})
    builder.drop("op-add", BODY, function_id=fn.id, config={"target": "_count", "a": "_count", "b": "value"})
    builder.drop("acl-allowThis", BODY, function_id=fn.id, config={"variable": "_count"})
    return builder


class TestCatalog:
    """Tests for the block catalog."""

    def test_builtin_ids_unique(self):
        ids = [b.id for b in builtin_blocks()]
        assert len(ids) == len(set(ids))

    def test_lookup(self, catalog):
        assert catalog.get("op-add").name == "FHE.add()"
        assert catalog.get("op-nothing") is None
        assert "acl-allowThis" in catalog
        with pytest.raises(KeyError):
            catalog.require("op-nothing")

    def test_expected_blocks(self, catalog):
        for block_id in ("import-fhe", "import-config", "state-euint64", "state-eaddress", "op-select",
                         "op-randEuint8", "op-asEbool", "op-le", "acl-makePubliclyDecryptable"):
            assert block_id in catalog

    def test_by_category(self, catalog):
        imports = catalog.by_category(BlockCategory.IMPORT)
        assert [b.id for b in imports] == ["import-config", "import-fhe"]
        assert BlockCategory.ACL in catalog.categories()

    def test_search(self, catalog):
        ids = [b.id for b in catalog.search("TRANSIENT")]
        assert ids == ["acl-allowTransient"]
        assert "op-add" in [b.id for b in catalog.search("sum")]

    def test_custom_catalog(self):
        catalog = BlockCatalog([Block("x", "X", "custom", BlockCategory.STATE, (ZoneType.STATE,), "uint x;")])
        assert len(catalog) == 1
        assert catalog.ids == ["x"]


class TestRenderTemplate:
    """Tests for block template rendering."""

    def test_fill_and_keep_unknown(self):
        assert render_block_template("{{a}} = {{ b }} + {{c}};", {"a": "x", "b": "y"}) == "x = y + {{c}};"

    def test_defaults_used(self, catalog):
        generator = CodeGenerator(catalog)
        rendered = generator.render_block(ProjectBlock("b1", "acl-allow", BODY, {"variable": "_count"}))
        assert rendered == "FHE.allow(_count, msg.sender);"

    def test_unknown_block_skipped(self, catalog):
        assert CodeGenerator(catalog).render_block(ProjectBlock("b1", "mystery", BODY)) is None


class TestValidateDrop:
    """Tests for single-drop validation."""

    @pytest.fixture
    def validator(self, catalog):
        return BlockValidator(catalog)

    @pytest.fixture
    def state(self):
        state = empty_project("Counter")
        state.functions.append(ProjectFunction(id="fn-1", name="increment"))
        return state

    def test_zone_mismatch_short_circuits(self, validator, catalog, state):
        result = validator.validate_drop(catalog.get("state-euint32"), BODY, 0, state, "fn-1")
        assert not result.valid
        assert result.errors == ["euint32 cannot be placed in function-body"]

    def test_requires_present(self, validator, catalog, state):
        result = validator.validate_drop(catalog.get("state-euint32"), ZoneType.STATE, 0, state)
        assert result.valid
        assert result.warnings == []

    def test_requires_auto_add(self, validator, catalog):
        state = ProjectState(name="Bare")
        result = validator.validate_drop(catalog.get("state-euint32"), ZoneType.STATE, 0, state)
        assert result.valid
        assert result.auto_add == ["import-fhe"]
        assert result.warnings == ["Will auto-add: FHE Library"]

    def test_unknown_requirement(self, state):
        ghost = Block("ghosted", "Ghosted", "", BlockCategory.STATE, (ZoneType.STATE,), "", requires=("ghost",))
        result = BlockValidator(BlockCatalog([ghost])).validate_drop(ghost, ZoneType.STATE, 0, state)
        assert result.errors == ["Requires ghost"]

    def test_conflict(self, catalog, state):
        local = Block("local-config", "Local Config", "", BlockCategory.IMPORT, (ZoneType.IMPORTS,), "",
                      incompatible_with=("import-config",))
        catalog.add(local)
        result = BlockValidator(catalog).validate_drop(local, ZoneType.IMPORTS, 2, state)
        assert result.errors == ["Conflicts with Network Config"]

    def test_must_come_after(self, validator, catalog, state):
        state.functions[0].body.append(ProjectBlock("b1", "op-fromExternal", BODY, parent_id="fn-1"))
        before = validator.validate_drop(catalog.get("op-add"), BODY, 0, state, "fn-1")
        assert before.errors == ["FHE.add() must come after op-fromExternal"]
        after = validator.validate_drop(catalog.get("op-add"), BODY, 1, state, "fn-1")
        assert after.valid

    def test_must_come_before_with_wildcard(self, validator, catalog, state):
        state.functions[0].body.append(ProjectBlock("b1", "acl-allowThis", BODY, parent_id="fn-1"))
        result = validator.validate_drop(catalog.get("op-add"), BODY, 1, state, "fn-1")
        assert result.errors == ["FHE.add() must come before acl-..."]
        assert validator.validate_drop(catalog.get("op-add"), BODY, 0, state, "fn-1").valid

    def test_wildcard_excludes_own_category(self, validator, catalog, state):
        """An input conversion is not ordered against other input conversions."""
        state.functions[0].body.append(ProjectBlock("b1", "op-asEuint32", BODY, parent_id="fn-1"))
        assert validator.validate_drop(catalog.get("op-fromExternal"), BODY, 1, state, "fn-1").valid

    def test_ordering_only_in_function_body(self, validator, catalog, state):
        state.constructor_body.append(ProjectBlock("b1", "acl-allowThis", ZoneType.CONSTRUCTOR))
        block = Block("c-op", "C", "", BlockCategory.ARITHMETIC, (ZoneType.CONSTRUCTOR,), "",
                      must_come_before=("acl-*",))
        assert validator.validate_drop(block, ZoneType.CONSTRUCTOR, 1, state).valid

    def test_type_mismatch_is_warning(self, validator, catalog, state):
        state.state_variables.append(ProjectBlock("s1", "state-ebool", ZoneType.STATE, {"name": "_flag"}))
        result = validator.validate_drop(catalog.get("op-add"), BODY, 0, state, "fn-1")
        assert result.valid
        assert result.warnings == ["FHE.add() may need compatible type: euint8+euint8"]

    def test_type_match(self, validator, catalog, state):
        state.state_variables.append(ProjectBlock("s1", "state-euint64", ZoneType.STATE, {"name": "_v"}))
        result = validator.validate_drop(catalog.get("op-add"), BODY, 0, state, "fn-1")
        assert result.warnings == []
        assert result.auto_add == ["acl-allowThis"]

    def test_to_dict(self, validator, catalog, state):
        d = validator.validate_drop(catalog.get("op-add"), BODY, 0, state, "fn-1").to_dict()
        assert d["canDrop"] is True
        assert d["insertPosition"] == 0

    def test_valid_zones(self, validator, catalog, state):
        assert validator.valid_zones(catalog.get("state-euint32"), state) == [ZoneType.STATE]


class TestValidateProject:
    """Tests for whole-project validation."""

    @pytest.fixture
    def validator(self, catalog):
        return BlockValidator(catalog)

    def test_missing_fhe_import(self, validator):
        state = ProjectState(name="C", functions=[
            ProjectFunction(id="fn-1", name="f", body=[ProjectBlock("b1", "op-add", BODY)]),
        ])
        result = validator.validate_project(state)
        assert "FHE operations require import-fhe" in result.errors

    def test_acl_suggestion(self, validator):
        state = empty_project("C")
        state.functions.append(ProjectFunction(id="fn-1", name="f", body=[ProjectBlock("b1", "op-gt", BODY)]))
        result = validator.validate_project(state)
        assert result.valid
        assert result.warnings == ["Function f: Consider adding ACL operations after FHE operations"]

    def test_unknown_block(self, validator):
        state = empty_project("C")
        state.state_variables.append(ProjectBlock("s1", "mystery", ZoneType.STATE))
        assert validator.validate_project(state).errors == ["Unknown block: mystery"]

    def test_suggested_blocks(self, validator):
        state = empty_project("C")
        assert validator.suggested_blocks(state, ZoneType.IMPORTS) == []
        suggested = [b.id for b in validator.suggested_blocks(state, ZoneType.STATE)]
        assert "state-euint32" in suggested
        assert all(block_id.startswith("state-") for block_id in suggested)


class TestBuilder:
    """Tests for ProjectBuilder."""

    def test_empty_project(self, builder):
        assert [b.block_id for b in builder.state.imports] == ["import-fhe", "import-config"]
        assert builder.state.inherits == ["SepoliaConfig"]
        assert builder.validate().valid

    def test_rejected_drop_changes_nothing(self, builder):
        fn = builder.add_function("f")
        builder.drop("op-fromExternal", BODY, function_id=fn.id)
        result = builder.drop("op-add", BODY, position=0, function_id=fn.id)
        assert not result.valid
        assert [b.block_id for b in fn.body] == ["op-fromExternal"]

    def test_auto_adds_required_import(self):
        builder = ProjectBuilder("Bare", state=ProjectState(name="Bare"))
        result = builder.add_state("state-euint32", "_count")
        assert result.valid
        assert [b.block_id for b in builder.state.imports] == ["import-fhe"]

    def test_unknown_block(self, builder):
        result = builder.drop("op-nothing", ZoneType.STATE)
        assert result.errors == ["Unknown block: op-nothing"]

    def test_unknown_function(self, builder):
        with pytest.raises(BlockError):
            builder.drop("op-add", BODY, function_id="fn-404")

    def test_duplicate_function(self, builder):
        builder.add_function("f")
        with pytest.raises(BlockError):
            builder.add_function("f")

    def test_positions_renumbered(self, counter_builder):
        body = counter_builder.state.functions[0].body
        assert [b.block_id for b in body] == ["op-fromExternal", "op-add", "acl-allowThis"]
        assert [b.order for b in body] == [0, 1, 2]

    def test_move_rejected_by_ordering(self, counter_builder):
        body = counter_builder.state.functions[0].body
        result = counter_builder.move(body[0].id, 2)
        assert not result.valid
        assert [b.block_id for b in body] == ["op-fromExternal", "op-add", "acl-allowThis"]

    def test_move_within_rules(self, builder):
        fn = builder.add_function("f")
        builder.drop("op-fromExternal", BODY, function_id=fn.id)
        builder.drop("op-asEuint8", BODY, function_id=fn.id)
        result = builder.move(fn.body[1].id, 0)
        assert result.valid
        assert [b.block_id for b in fn.body] == ["op-asEuint8", "op-fromExternal"]

    def test_move_unknown_block_keeps_project(self, builder):
        fn = builder.add_function("f")
        fn.body.append(ProjectBlock("block-99", "op-vanished", BODY, parent_id=fn.id))
        with pytest.raises(BlockError):
            builder.move("block-99", 0)
        assert [b.id for b in fn.body] == ["block-99"]

    def test_remove(self, counter_builder):
        body = counter_builder.state.functions[0].body
        counter_builder.remove(body[-1].id)
        assert [b.block_id for b in body] == ["op-fromExternal", "op-add"]
        with pytest.raises(BlockError):
            counter_builder.remove("block-404")

    def test_remove_function(self, builder):
        fn = builder.add_function("f")
        builder.remove_function(fn.id)
        assert builder.state.functions == []


class TestGenerator:
    """Tests for code generation."""

    def test_empty_contract(self, builder):
        assert builder.render() == (
            "// SPDX-License-Identifier: MIT\n"
            "pragma solidity ^0.8.24;\n"
            "\n"
            'import { FHE, euint32, externalEuint32 } from "@fhevm/solidity/lib/FHE.sol";\n'
            'import { SepoliaConfig } from "@fhevm/solidity/config/Config.sol";\n'
            "\n"
            "contract Counter is SepoliaConfig {\n"
            "}\n"
        )

    def test_counter_contract(self, counter_builder):
        code = counter_builder.render()
        assert "    euint32 private _count;\n" in code
        assert (
            "    function increment(externalEuint32 inputHandle, bytes calldata inputProof) external {\n"
            "        euint32 value = FHE.fromExternal(inputHandle, inputProof);\n"
            "        _count = FHE.add(_count, value);\n"
            "        FHE.allowThis(_count);\n"
            "    }\n"
        ) in code

    def test_line_mappings(self, counter_builder):
        generated = counter_builder.render_with_mapping()
        lines = generated.code.split("\n")
        by_block = {m.source_block_id: m for m in generated.mappings}
        state = by_block["state-euint32"]
        assert lines[state.line_start - 1] == "    euint32 private _count;"
        add = by_block["op-add"]
        assert add.line_start == add.line_end
        assert lines[add.line_start - 1].strip() == "_count = FHE.add(_count, value);"
        assert add.zone == BODY

    def test_signature(self):
        fn = ProjectFunction(id="f", name="get", visibility="public", state_mutability="view")
        assert CodeGenerator.function_signature(fn) == "function get() public view {"

    def test_signature_with_returns(self):
        fn = ProjectFunction(id="f", name="get", state_mutability="view",
                             returns=[FunctionParam("", "euint32"), FunctionParam("ok", "bool")])
        assert CodeGenerator.function_signature(fn) == "function get() external view returns (euint32, bool ok) {"

    def test_project_files(self, counter_builder):
        files = counter_builder.files()
        assert sorted(files) == [
            "contracts/Counter.sol",
            "deploy/deploy.ts",
            "hardhat.config.ts",
            "package.json",
            "test/Counter.test.ts",
            "tsconfig.json",
        ]
        package = json.loads(files["package.json"])
        assert package["name"] == "counter"
        assert package["scripts"]["test"] == "hardhat test"
        assert 'version: "0.8.24"' in files["hardhat.config.ts"]
        assert 'getContractFactory("Counter")' in files["deploy/deploy.ts"]
        assert 'describe("increment"' in files["test/Counter.test.ts"]
        assert json.loads(files["tsconfig.json"])["compilerOptions"]["strict"] is True
