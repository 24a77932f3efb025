"""Shared pytest fixtures for Lab-Z tests."""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from labz import Composer  # noqa: E402
from labz.core.config import Settings  # noqa: E402
from labz.core.types import (  # noqa: E402
    BaseTemplate,
    Exposes,
    Injection,
    InjectionMode,
    Module,
    ModuleProvides,
    SlotDefinition,
    TypeParam,
)
from labz.composer.loader import InMemoryTemplateStore  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"
TEMPLATES_DIR = FIXTURES_DIR / "templates"

COUNTER_SOURCE = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.24;

import { FHE, [[COUNTER_TYPE]], [[EXTERNAL_TYPE]] } from "@fhevm/solidity/lib/FHE.sol";
import { SepoliaConfig } from "@fhevm/solidity/config/Config.sol";
{{IMPORTS}}

/// @title {{PROJECT_NAME}}
contract {{CONTRACT_NAME}} is {{INHERITS}} {
    [[COUNTER_TYPE]] private _count;
    {{state-vars}}

    constructor() {
        {{constructor}}
    }

    function increment([[EXTERNAL_TYPE]] inputHandle, bytes calldata inputProof) external {
        {{increment-pre}}
        [[COUNTER_TYPE]] value = FHE.fromExternal(inputHandle, inputProof);
        _count = FHE.add(_count, value);
        FHE.allowThis(_count);
        {{increment-post}}
    }

    function getCount() external view returns ([[COUNTER_TYPE]]) {
        return _count;
    }

    {{functions}}
}
"""

TOKEN_SOURCE = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.24;

import { FHE, [[BALANCE_TYPE]] } from "@fhevm/solidity/lib/FHE.sol";
import { SepoliaConfig } from "@fhevm/solidity/config/Config.sol";
{{IMPORTS}}

contract {{CONTRACT_NAME}} is {{INHERITS}} {
    mapping(address => [[BALANCE_TYPE]]) private _balances;
    {{state-vars}}

    function transfer(address to, [[BALANCE_TYPE]] amount) external {
        {{transfer-pre}}
        _balances[msg.sender] = FHE.sub(_balances[msg.sender], amount);
        _balances[to] = FHE.add(_balances[to], amount);
        {{transfer-post}}
    }

    function balanceOf(address account) external view returns ([[BALANCE_TYPE]]) {
        return _balances[account];
    }

    {{functions}}
}
"""

VOTING_SOURCE = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.24;

import { FHE, ebool, euint32 } from "@fhevm/solidity/lib/FHE.sol";
import { SepoliaConfig } from "@fhevm/solidity/config/Config.sol";

contract {{CONTRACT_NAME}} is {{INHERITS}} {
    euint32 private _yes;
    {{state-vars}}

    function vote(ebool support) external {
        _yes = FHE.select(support, FHE.add(_yes, 1), _yes);
        {{vote-post}}
    }

    {{functions}}
}
"""


def inject(slot, content, mode=InjectionMode.APPEND, order=100, condition=None):
    """Injection dict entry for a module."""
    return {slot: Injection(slot=slot, content=content, mode=mode, order=order, condition=condition)}


def make_module(category, name, injections=None, **kwargs):
    """Module with its injections merged from ``inject()`` entries."""
    merged = {}
    for entry in injections or []:
        merged.update(entry)
    return Module(name=name, category=category, injections=merged, **kwargs)


@pytest.fixture
def counter_base():
    """Counter base with a closed main type parameter."""
    return BaseTemplate(
        name="counter",
        version="1.2.0",
        description="Encrypted counter",
        files={"contracts/{{CONTRACT_NAME}}.sol.tmpl": COUNTER_SOURCE},
        slots=(
            SlotDefinition("state-vars"),
            SlotDefinition("constructor"),
            SlotDefinition("increment-pre"),
            SlotDefinition("increment-post"),
            SlotDefinition("functions"),
        ),
        type_params={
            "COUNTER_TYPE": TypeParam(
                "COUNTER_TYPE", "euint32", options=("euint8", "euint16", "euint32", "euint64")
            ),
            "EXTERNAL_TYPE": TypeParam("EXTERNAL_TYPE", "externalEuint32"),
        },
        exposes=Exposes(variables=("_count",), functions=("increment", "getCount")),
        inherits=("SepoliaConfig",),
    )


@pytest.fixture
def token_base():
    return BaseTemplate(
        name="token",
        description="Confidential token",
        files={"contracts/{{CONTRACT_NAME}}.sol.tmpl": TOKEN_SOURCE},
        slots=(
            SlotDefinition("state-vars"),
            SlotDefinition("transfer-pre"),
            SlotDefinition("transfer-post"),
            SlotDefinition("functions"),
        ),
        type_params={
            "BALANCE_TYPE": TypeParam("BALANCE_TYPE", "euint64", options=("euint32", "euint64")),
        },
        exposes=Exposes(variables=("_balances",), functions=("transfer", "balanceOf")),
        inherits=("SepoliaConfig",),
    )


@pytest.fixture
def voting_base():
    return BaseTemplate(
        name="voting",
        description="Encrypted yes/no voting",
        files={"contracts/{{CONTRACT_NAME}}.sol.tmpl": VOTING_SOURCE},
        slots=(SlotDefinition("state-vars"), SlotDefinition("vote-post"), SlotDefinition("functions")),
        exposes=Exposes(variables=("_yes",), functions=("vote",)),
        inherits=("SepoliaConfig",),
    )


@pytest.fixture
def modules():
    """Module catalogue shared by the composer tests."""
    return [
        make_module(
            "acl", "transient",
            description="Transient access grants",
            compatible_with=("counter", "token"),
            injections=[inject("functions", """
                function grantTransientAccess(address user) external {
                    emit TransientAccessGranted(user);
                }
            """)],
            provides=ModuleProvides(functions=("grantTransientAccess",), events=("TransientAccessGranted",)),
        ),
        make_module(
            "admin", "roles",
            description="Role based administration",
            exclusive=True,
            semantics=("access:restrictive",),
            injections=[
                inject("state-vars", "mapping(address => bool) private _admins;"),
                inject("functions", """
                    function isAdmin(address account) external view returns (bool) {
                        return _admins[account];
                    }
                """),
            ],
            provides=ModuleProvides(state_variables=("_admins",), functions=("isAdmin",)),
        ),
        make_module(
            "admin", "ownable",
            description="Single owner",
            exclusive=True,
            semantics=("manages:ownership",),
            imports=('import { Ownable } from "@openzeppelin/contracts/access/Ownable.sol";',),
            injections=[
                inject("state-vars", "address private _owner;", order=10),
                inject("functions", """
                    function owner() external view returns (address) {
                        return _owner;
                    }
                """),
            ],
            provides=ModuleProvides(state_variables=("_owner",), functions=("owner",), modifiers=("onlyOwner",)),
        ),
        make_module(
            "security", "pausable",
            description="Emergency stop",
            exclusive=True,
            requires=("admin/ownable",),
            injections=[
                inject("state-vars", "bool private _paused;"),
                inject("functions", "function pause() external { _paused = true; }"),
            ],
            provides=ModuleProvides(state_variables=("_paused",), functions=("pause",)),
        ),
        make_module(
            "security", "pausable-v2",
            description="Emergency stop with per-function switches",
            exclusive=True,
            injections=[inject("functions", "function pauseAll() external {}")],
            provides=ModuleProvides(state_variables=("_pausedAll",), functions=("pauseAll",)),
        ),
        make_module(
            "functions", "encrypted-add",
            description="Adds an encrypted increment",
            injections=[inject("functions", "function increment() external {}")],
            provides=ModuleProvides(functions=("increment",)),
        ),
        make_module(
            "acl", "voting-results",
            description="Publishes voting results",
            requires_slots=("tally-hook",),
            injections=[inject("tally-hook", "FHE.makePubliclyDecryptable(_yes);")],
        ),
        make_module(
            "math", "wide",
            description="Needs a 64-bit counter",
            requires_types={"COUNTER_TYPE": ("euint64",)},
            injections=[inject("functions", "function widen() external {}")],
            provides=ModuleProvides(functions=("widen",)),
        ),
        make_module(
            "legacy", "token-only",
            compatible_with=("token",),
        ),
        make_module(
            "broken", "orphan",
            requires=("nothing/there",),
        ),
        make_module(
            "access", "open",
            semantics=("access:permissive",),
        ),
        make_module("cycle", "a", requires=("cycle/b",)),
        make_module("cycle", "b", requires=("cycle/a",)),
        make_module("order", "late", injections=[inject("functions", "// late", order=20)]),
        make_module("order", "early", injections=[inject("functions", "// early", order=5)]),
        make_module("order", "middle", injections=[inject("functions", "// middle", order=10)]),
        make_module(
            "replace", "first",
            injections=[inject("constructor", "_count = FHE.asEuint32(1);", mode=InjectionMode.REPLACE)],
        ),
        make_module(
            "replace", "second",
            injections=[inject("constructor", "_count = FHE.asEuint32(2);", mode=InjectionMode.REPLACE)],
        ),
        make_module(
            "math", "wide-note",
            injections=[inject("functions", "// wide counter", condition="COUNTER_TYPE == 'euint64'")],
        ),
    ]


@pytest.fixture
def store(counter_base, token_base, voting_base, modules):
    """In-memory template store with the three bases and all modules."""
    return InMemoryTemplateStore([counter_base, token_base, voting_base], modules)


@pytest.fixture
def settings():
    """Settings built from defaults only."""
    return Settings()


@pytest.fixture
def composer(store, settings):
    return Composer(store=store, settings=settings)


@pytest.fixture
def templates_dir():
    """Root of the on-disk template tree."""
    return str(TEMPLATES_DIR)
