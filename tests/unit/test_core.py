"""Tests for core module - types, exceptions, config, registry and matching."""

import logging

import pytest
from labz.core.types import (
    BaseTemplate,
    Injection,
    InjectionMode,
    IssueSeverity,
    MergeManifest,
    MergeRequest,
    MergeResult,
    Module,
    ModuleProvides,
    Exposes,
    TypeParam,
    ValidationPhase,
    ValidationReport,
    contract_name_for,
)
from labz.core.exceptions import (
    LabzError,
    NotFoundError,
    TemplateError,
    ValidationError,
    MergeRefusedError,
    BlockError,
    ConfigurationError,
)
from labz.core.config import ComposerSettings, LoggingSettings, get_settings, reload_settings
from labz.core.logging import configure_logging
from labz.core.matching import expand, matches, matches_any, version_at_least, version_tuple
from labz.core.registry import Registry


class TestContractName:
    """Tests for contract name derivation."""

    def test_kebab_case(self):
        """Test kebab-case project names."""
        assert contract_name_for("my-counter") == "MyCounter"

    def test_snake_and_spaces(self):
        """Test underscores and spaces."""
        assert contract_name_for("private_vote box") == "PrivateVoteBox"

    def test_keeps_inner_capitals(self):
        """Test that existing capitals are preserved."""
        assert contract_name_for("myFHE-token") == "MyFHEToken"

    def test_request_contract_name(self):
        """Test MergeRequest.contract_name."""
        assert MergeRequest(base="counter", project_name="secret-counter").contract_name == "SecretCounter"


class TestTypeParam:
    """Tests for TypeParam."""

    def test_open_param_accepts_anything(self):
        param = TypeParam("EXTERNAL_TYPE", "externalEuint32")
        assert not param.is_closed
        assert param.accepts("whatever")

    def test_closed_param(self):
        param = TypeParam("COUNTER_TYPE", "euint32", options=("euint32", "euint64"))
        assert param.is_closed
        assert param.accepts("euint64")
        assert not param.accepts("euint8")


class TestModule:
    """Tests for Module and symbol enumeration."""

    def test_id(self):
        assert Module(name="transient", category="acl").id == "acl/transient"

    def test_defaults_are_empty(self):
        """Test that optional fields default to empty values."""
        module = Module(name="m", category="c")
        assert module.requires == ()
        assert module.injections == {}
        assert module.requires_types == {}
        assert module.exclusive is False

    def test_provides_symbols(self):
        provides = ModuleProvides(
            state_variables=("_owner",), functions=("owner",), modifiers=("onlyOwner",),
            events=("OwnerChanged",), errors=("NotOwner",),
        )
        assert list(provides.symbols()) == [
            ("variable", "_owner"),
            ("function", "owner"),
            ("modifier", "onlyOwner"),
            ("event", "OwnerChanged"),
            ("error", "NotOwner"),
        ]

    def test_injection_defaults(self):
        injection = Injection(slot="functions", content="x")
        assert injection.mode == InjectionMode.APPEND
        assert injection.order == 100
        assert injection.condition is None


class TestBaseTemplate:
    """Tests for BaseTemplate."""

    def test_type_defaults(self, counter_base):
        assert counter_base.type_defaults == {"COUNTER_TYPE": "euint32", "EXTERNAL_TYPE": "externalEuint32"}

    def test_slot_lookup(self, counter_base):
        assert counter_base.get_slot("functions").name == "functions"
        assert counter_base.get_slot("missing") is None

    def test_exposes_symbols(self):
        base = BaseTemplate("b", exposes=Exposes(variables=("_x",), functions=("f",), events=("E",)))
        assert list(base.exposes.symbols()) == [("variable", "_x"), ("function", "f"), ("event", "E")]


class TestValidationReport:
    """Tests for ValidationReport."""

    def test_empty_report_is_valid(self):
        report = ValidationReport()
        assert report.valid
        assert report.to_dict() == {"valid": True, "errors": [], "warnings": []}

    def test_warnings_do_not_invalidate(self):
        report = ValidationReport()
        report.warn(ValidationPhase.SIZE, "big")
        assert report.valid
        assert len(report.warnings) == 1
        assert report.warnings[0].severity == IssueSeverity.WARNING

    def test_errors_invalidate(self):
        report = ValidationReport()
        report.error(ValidationPhase.COLLISION, "dup", module="a/b")
        assert not report.valid
        d = report.to_dict()
        assert d["valid"] is False
        assert d["errors"][0]["phase"] == "collision"
        assert d["errors"][0]["module"] == "a/b"

    def test_phase_numbers(self):
        assert ValidationPhase.BASE.number == 1
        assert ValidationPhase.SEMANTIC.number == 9


class TestMergeResult:
    """Tests for MergeResult."""

    def test_refused_result_raises(self):
        report = ValidationReport()
        report.error(ValidationPhase.SLOT, "missing slot")
        result = MergeResult(success=False, report=report)

        with pytest.raises(MergeRefusedError) as exc_info:
            result.raise_for_refusal()
        assert exc_info.value.details["errors"] == ["missing slot"]

    def test_successful_result_does_not_raise(self):
        MergeResult(success=True, report=ValidationReport()).raise_for_refusal()

    def test_to_dict(self):
        manifest = MergeManifest(base="counter", project_name="c", modules_applied=("acl/transient",))
        result = MergeResult(success=True, report=ValidationReport(), files={"b": "", "a": ""}, manifest=manifest)
        d = result.to_dict()
        assert d["files"] == ["a", "b"]
        assert d["manifest"]["modulesApplied"] == ["acl/transient"]
        assert d["diagnostics"] == {"errors": [], "warnings": []}


class TestExceptions:
    """Tests for custom exceptions."""

    def test_base_exception(self):
        """Test LabzError."""
        error = LabzError("Test error", details={"key": "value"})
        assert error.message == "Test error"
        assert error.details["key"] == "value"
        assert "Details" in str(error)

    def test_not_found(self):
        error = NotFoundError("Module not found: x/y", kind="module", identifier="x/y")
        assert error.details == {"kind": "module", "identifier": "x/y"}
        assert isinstance(error, LabzError)

    def test_template_error(self):
        cause = ValueError("bad")
        error = TemplateError("Invalid meta", template="counter", cause=cause)
        assert error.template == "counter"
        assert error.cause is cause

    def test_validation_error(self):
        error = ValidationError("Invalid", validation_errors=["a", "b"])
        assert error.validation_errors == ["a", "b"]

    def test_block_and_configuration_errors(self):
        assert BlockError("bad drop", block_id="op-add").details["block_id"] == "op-add"
        assert ConfigurationError("missing", config_key="LABZ_TEMPLATES_DIR").config_key == "LABZ_TEMPLATES_DIR"

    def test_exception_hierarchy(self):
        """Test all exceptions inherit from LabzError."""
        for cls in (NotFoundError, TemplateError, ValidationError, MergeRefusedError, BlockError, ConfigurationError):
            assert issubclass(cls, LabzError)


class TestSettings:
    """Tests for pydantic settings."""

    def test_defaults(self):
        settings = ComposerSettings()
        assert settings.max_contract_size == 24576
        assert settings.warn_contract_size == 20480
        assert settings.size_factor == 0.6
        assert settings.default_order == 100

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("LABZ_MAX_CONTRACT_SIZE", "1000")
        monkeypatch.setenv("LABZ_TEMPLATES_DIR", "/tmp/templates")
        settings = ComposerSettings()
        assert settings.max_contract_size == 1000
        assert settings.templates_dir == "/tmp/templates"

    def test_construct_by_field_name(self):
        assert ComposerSettings(size_factor=1.0).size_factor == 1.0

    def test_conflict_pairs(self):
        settings = ComposerSettings(semantic_conflicts=["a:x|a:y", "solo"])
        assert settings.conflict_pairs() == [("a:x", "a:y"), ("solo", "solo")]

    def test_reload_settings(self):
        first = get_settings()
        assert get_settings() is first
        assert reload_settings() is not first


class TestLogging:
    """Tests for logging setup."""

    def test_plain_format(self):
        configure_logging(LoggingSettings(level="INFO", format="plain"))
        logger = logging.getLogger("labz")
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        assert not logger.propagate

    def test_rich_handler_and_level_override(self):
        from rich.logging import RichHandler

        configure_logging(LoggingSettings(), level="debug")
        logger = logging.getLogger("labz")
        assert isinstance(logger.handlers[0], RichHandler)
        assert logger.level == logging.DEBUG


class TestRegistry:
    """Tests for Registry."""

    def test_register_and_get(self):
        registry = Registry("module")
        registry.register("acl/transient", 1, aliases=["transient"], metadata={"category": "acl"})
        assert registry.get("acl/transient") == 1
        assert registry.get("transient") == 1
        assert registry.get_metadata("transient") == {"category": "acl"}
        assert "transient" in registry

    def test_missing_raises_key_error(self):
        registry = Registry("module")
        with pytest.raises(KeyError):
            registry.get("nope")
        assert registry.find("nope") is None

    def test_sorted_listing_and_filter(self):
        registry = Registry()
        for name in ("b", "c", "a"):
            registry.register(name, name.upper())
        assert registry.list_registered() == ["a", "b", "c"]
        assert list(registry) == ["a", "b", "c"]
        assert registry.filter(lambda item: item != "B") == ["A", "C"]

    def test_unregister_removes_aliases(self):
        registry = Registry()
        registry.register("a", 1, aliases=["alpha"])
        registry.unregister("a")
        assert "alpha" not in registry
        assert len(registry) == 0


class TestMatching:
    """Tests for wildcard and version matching."""

    def test_exact_and_prefix(self):
        assert matches("op-add", "op-add")
        assert not matches("op-add", "op-sub")
        assert matches("op-*", "op-sub")
        assert not matches("op-*", "acl-allow")

    def test_matches_any_and_expand(self):
        assert matches_any(["token", "count*"], "counter")
        assert expand("acl-*", ["acl-allow", "op-add", "acl-allowThis"]) == ["acl-allow", "acl-allowThis"]

    def test_versions(self):
        assert version_tuple("1.2") == (1, 2, 0)
        assert version_tuple("v2.0.1") == (2, 0, 1)
        assert version_at_least("1.10.0", "1.9.0")
        assert not version_at_least("1.0.0", "1.0.1")
