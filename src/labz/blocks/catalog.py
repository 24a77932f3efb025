"""The catalog of available FHE code blocks."""

from typing import Iterable, List, Optional

from ..core.registry import Registry
from .types import Block, BlockCategory, BlockParam, ZoneType, ENCRYPTED_TYPES

BODY = (ZoneType.FUNCTION_BODY,)

_STATE_DEFAULT_NAMES = {
    "ebool": "_flag",
    "euint8": "_value8",
    "euint16": "_value16",
    "euint32": "_value",
    "euint64": "_value64",
    "euint128": "_value128",
    "euint256": "_value256",
    "eaddress": "_hiddenAddress",
}

_UINT_WIDTHS = ("euint8", "euint16", "euint32", "euint64", "euint128", "euint256")


def _operand(param_id: str, label: str, variable_type: Optional[str] = "euint*") -> BlockParam:
    return BlockParam(param_id, label, type="variable", variable_type=variable_type, required=True)


def _pairs(types: Iterable[str]) -> tuple:
    return tuple(f"{t}+{t}" for t in types)


def _import_blocks() -> List[Block]:
    return [
        Block(
            id="import-fhe",
            name="FHE Library",
            description="Import FHE library with encrypted types",
            category=BlockCategory.IMPORT,
            can_drop_in=(ZoneType.IMPORTS,),
            template='import { FHE, {{types}} } from "@fhevm/solidity/lib/FHE.sol";',
            params=(BlockParam("types", "Types to import", default="euint32, externalEuint32"),),
            tags=("import", "fhe", "library", "start"),
        ),
        Block(
            id="import-config",
            name="Network Config",
            description="Import network configuration (SepoliaConfig)",
            category=BlockCategory.IMPORT,
            can_drop_in=(ZoneType.IMPORTS,),
            template='import { SepoliaConfig } from "@fhevm/solidity/config/Config.sol";',
            tags=("import", "config", "network", "sepolia"),
        ),
    ]


def _state_blocks() -> List[Block]:
    return [
        Block(
            id=f"state-{t}",
            name=t,
            description=f"Encrypted {t} state variable",
            category=BlockCategory.STATE,
            can_drop_in=(ZoneType.STATE,),
            requires=("import-fhe",),
            template=f"{t} private {{{{name}}}};",
            params=(BlockParam("name", "Variable name", default=_STATE_DEFAULT_NAMES[t], required=True),),
            output_type=t,
            tags=("state", "variable", t, "encrypted"),
        )
        for t in ENCRYPTED_TYPES
    ]


def _operation_blocks() -> List[Block]:
    blocks = [
        Block(
            id="op-fromExternal",
            name="FHE.fromExternal()",
            description="Convert external encrypted input to internal type",
            category=BlockCategory.INPUT_CONVERSION,
            can_drop_in=BODY,
            requires=("import-fhe",),
            must_come_before=("op-*", "acl-*"),
            template="{{outputType}} {{output}} = FHE.fromExternal({{input}}, {{proof}});",
            params=(
                BlockParam("outputType", "Output type", type="type-select", options=ENCRYPTED_TYPES, default="euint32"),
                BlockParam("output", "Output variable", default="eValue"),
                BlockParam("input", "External input", default="inputHandle"),
                BlockParam("proof", "Proof parameter", default="inputProof"),
            ),
            output_type="euint*",
            tags=("fromExternal", "input", "convert", "external", "proof"),
        ),
    ]

    arithmetic = {
        "add": ("Add two encrypted values", _UINT_WIDTHS, ("add", "addition", "plus", "sum", "+")),
        "sub": ("Subtract two encrypted values", _UINT_WIDTHS, ("sub", "subtract", "minus", "-")),
        "mul": ("Multiply two encrypted values", _UINT_WIDTHS[:4], ("mul", "multiply", "times", "*")),
        "div": ("Divide two encrypted values", _UINT_WIDTHS[:4], ("div", "divide", "quotient", "/")),
        "rem": ("Remainder of two encrypted values", _UINT_WIDTHS[:4], ("rem", "remainder", "modulo", "%")),
        "min": ("Minimum of two encrypted values", _UINT_WIDTHS[:4], ("min", "minimum", "smallest")),
        "max": ("Maximum of two encrypted values", _UINT_WIDTHS[:4], ("max", "maximum", "largest")),
    }
    for op, (description, widths, tags) in arithmetic.items():
        blocks.append(Block(
            id=f"op-{op}",
            name=f"FHE.{op}()",
            description=description,
            category=BlockCategory.ARITHMETIC,
            can_drop_in=BODY,
            requires=("import-fhe",),
            must_come_after=("op-fromExternal",),
            must_come_before=("acl-*",),
            input_types=_pairs(widths),
            output_type="same-as-input",
            auto_adds=("acl-allowThis",),
            template=f"{{{{target}}}} = FHE.{op}({{{{a}}}}, {{{{b}}}});",
            params=(_operand("target", "Target variable"), _operand("a", "First operand"), _operand("b", "Second operand")),
            tags=tags + ("arithmetic", "math"),
        ))

    comparison = {
        "eq": ("equal", "=="),
        "ne": ("not equal", "!="),
        "gt": ("greater than", ">"),
        "ge": ("greater or equal", ">="),
        "lt": ("less than", "<"),
        "le": ("less or equal", "<="),
    }
    for op, (meaning, symbol) in comparison.items():
        blocks.append(Block(
            id=f"op-{op}",
            name=f"FHE.{op}()",
            description=f"Check if two encrypted values are {meaning}",
            category=BlockCategory.COMPARISON,
            can_drop_in=BODY,
            requires=("import-fhe",),
            must_come_after=("op-fromExternal",),
            input_types=("euint*+euint*",) + (("ebool+ebool", "eaddress+eaddress") if op in ("eq", "ne") else ()),
            output_type="ebool",
            template=f"ebool {{{{result}}}} = FHE.{op}({{{{a}}}}, {{{{b}}}});",
            params=(
                BlockParam("result", "Result variable", default="result", required=True),
                _operand("a", "First value"),
                _operand("b", "Second value"),
            ),
            tags=(op, "compare", "comparison", symbol),
        ))

    for op in ("and", "or", "xor"):
        blocks.append(Block(
            id=f"op-{op}",
            name=f"FHE.{op}()",
            description=f"Bitwise {op.upper()} of two encrypted values",
            category=BlockCategory.BITWISE,
            can_drop_in=BODY,
            requires=("import-fhe",),
            must_come_after=("op-fromExternal",),
            must_come_before=("acl-*",),
            input_types=("euint*+euint*", "ebool+ebool"),
            output_type="same-as-input",
            auto_adds=("acl-allowThis",),
            template=f"{{{{target}}}} = FHE.{op}({{{{a}}}}, {{{{b}}}});",
            params=(_operand("target", "Target variable"), _operand("a", "First operand"), _operand("b", "Second operand")),
            tags=(op, "bitwise", "logic"),
        ))

    blocks.append(Block(
        id="op-select",
        name="FHE.select()",
        description="Select between two values based on encrypted condition",
        category=BlockCategory.CONDITIONAL,
        can_drop_in=BODY,
        requires=("import-fhe",),
        must_come_after=("op-fromExternal",),
        must_come_before=("acl-*",),
        input_types=("ebool+euint*+euint*",),
        output_type="same-as-second",
        auto_adds=("acl-allowThis",),
        template="{{target}} = FHE.select({{condition}}, {{ifTrue}}, {{ifFalse}});",
        params=(
            _operand("target", "Target variable", None),
            _operand("condition", "Condition (ebool)", "ebool"),
            _operand("ifTrue", "Value if true", None),
            _operand("ifFalse", "Value if false", None),
        ),
        tags=("select", "conditional", "ternary", "if", "else"),
    ))

    for t in ("euint8", "euint16", "euint32", "euint64"):
        suffix = t[1:].capitalize()
        blocks.append(Block(
            id=f"op-rand{t[0].upper()}{t[1:]}",
            name=f"FHE.randE{t[1:]}()",
            description=f"Generate random encrypted {t} value",
            category=BlockCategory.ARITHMETIC,
            can_drop_in=BODY,
            requires=("import-fhe",),
            must_come_before=("acl-*",),
            output_type=t,
            auto_adds=("acl-allowThis",),
            template=f"{t} {{{{output}}}} = FHE.randE{t[1:]}();",
            params=(BlockParam("output", "Output variable", default=f"random{suffix}", required=True),),
            tags=("random", "rand", t),
        ))

    for t in ("euint8", "euint16", "euint32", "euint64", "ebool"):
        cast = f"asE{t[1:]}"
        blocks.append(Block(
            id=f"op-{cast}",
            name=f"FHE.{cast}()",
            description=f"Convert plaintext value to encrypted {t}",
            category=BlockCategory.INPUT_CONVERSION,
            can_drop_in=BODY,
            requires=("import-fhe",),
            must_come_before=("op-*", "acl-*"),
            output_type=t,
            template=f"{t} {{{{output}}}} = FHE.{cast}({{{{value}}}});",
            params=(
                BlockParam("output", "Output variable", default="eValue", required=True),
                BlockParam("value", "Plaintext value", default="0", required=True),
            ),
            tags=(cast, "convert", "encrypt", "plaintext", "cast"),
        ))

    return blocks


def _acl_blocks() -> List[Block]:
    variable = _operand("variable", "Variable")
    address = BlockParam("address", "Address", default="msg.sender", required=True)
    return [
        Block(
            id="acl-allowThis",
            name="FHE.allowThis()",
            description="Allow this contract to use the encrypted value",
            category=BlockCategory.ACL,
            can_drop_in=BODY,
            requires=("import-fhe",),
            must_come_after=("op-*",),
            template="FHE.allowThis({{variable}});",
            params=(variable,),
            tags=("allowThis", "acl", "permission", "contract"),
        ),
        Block(
            id="acl-allow",
            name="FHE.allow()",
            description="Allow an address to decrypt the encrypted value",
            category=BlockCategory.ACL,
            can_drop_in=BODY,
            requires=("import-fhe",),
            must_come_after=("op-*",),
            template="FHE.allow({{variable}}, {{address}});",
            params=(variable, address),
            tags=("allow", "acl", "permission", "decrypt", "grant"),
        ),
        Block(
            id="acl-allowTransient",
            name="FHE.allowTransient()",
            description="Allow temporary access for this transaction only",
            category=BlockCategory.ACL,
            can_drop_in=BODY,
            requires=("import-fhe",),
            must_come_after=("op-*",),
            template="FHE.allowTransient({{variable}}, {{address}});",
            params=(variable, address),
            tags=("allowTransient", "acl", "temporary", "transaction"),
        ),
        Block(
            id="acl-isAllowed",
            name="FHE.isAllowed()",
            description="Check if an address has access to encrypted value",
            category=BlockCategory.ACL,
            can_drop_in=BODY,
            requires=("import-fhe",),
            output_type="bool",
            template="bool {{result}} = FHE.isAllowed({{variable}}, {{address}});",
            params=(BlockParam("result", "Result variable", default="hasAccess", required=True), variable, address),
            tags=("isAllowed", "acl", "check", "permission"),
        ),
        Block(
            id="acl-isSenderAllowed",
            name="FHE.isSenderAllowed()",
            description="Check if msg.sender has access to encrypted value",
            category=BlockCategory.ACL,
            can_drop_in=BODY,
            requires=("import-fhe",),
            output_type="bool",
            template="bool {{result}} = FHE.isSenderAllowed({{variable}});",
            params=(BlockParam("result", "Result variable", default="senderAllowed", required=True), variable),
            tags=("isSenderAllowed", "acl", "check", "sender"),
        ),
        Block(
            id="acl-makePubliclyDecryptable",
            name="FHE.makePubliclyDecryptable()",
            description="Mark handle as publicly decryptable",
            category=BlockCategory.DECRYPT,
            can_drop_in=BODY,
            requires=("import-fhe",),
            must_come_after=("op-*", "acl-*"),
            template="FHE.makePubliclyDecryptable({{variable}});",
            params=(variable,),
            tags=("makePubliclyDecryptable", "decrypt", "public", "reveal"),
        ),
    ]


def builtin_blocks() -> List[Block]:
    """Every block shipped with the package."""
    return _import_blocks() + _state_blocks() + _operation_blocks() + _acl_blocks()


class BlockCatalog:
    """
    Lookup over a set of block definitions.

    Each catalog is its own instance; tests and embedders can build one
    from custom blocks without touching any shared state.
    """

    def __init__(self, blocks: Optional[Iterable[Block]] = None):
        self._registry: Registry[Block] = Registry("block")
        for block in (builtin_blocks() if blocks is None else blocks):
            self.add(block)

    def add(self, block: Block) -> None:
        self._registry.register(block.id, block, metadata={"category": block.category.value})

    def get(self, block_id: str) -> Optional[Block]:
        return self._registry.find(block_id)

    def require(self, block_id: str) -> Block:
        """Get a block or raise KeyError."""
        return self._registry.get(block_id)

    @property
    def ids(self) -> List[str]:
        return self._registry.list_registered()

    def all(self) -> List[Block]:
        return self._registry.filter(lambda b: True)

    def by_category(self, category: BlockCategory) -> List[Block]:
        return self._registry.filter(lambda b: b.category == category)

    def categories(self) -> List[BlockCategory]:
        seen: List[BlockCategory] = []
        for block in self.all():
            if block.category not in seen:
                seen.append(block.category)
        return seen

    def search(self, query: str) -> List[Block]:
        """Blocks whose name, description or tags contain the query (case-insensitive)."""
        q = query.lower()
        return self._registry.filter(
            lambda b: q in b.name.lower()
            or q in b.description.lower()
            or any(q in t.lower() for t in b.tags)
        )

    def __contains__(self, block_id: str) -> bool:
        return block_id in self._registry

    def __len__(self) -> int:
        return len(self._registry)
