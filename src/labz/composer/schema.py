"""
Metadata document schemas for bases and modules.

``meta.json`` documents are loosely typed; these models accept their
camelCase keys, fill every optional field with an empty value, and convert
to the immutable records in :mod:`labz.core.types`.
"""

from typing import Optional, List, Dict, Any, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..core.types import (
    BaseTemplate,
    Exposes,
    Injection,
    InjectionMode,
    Module,
    ModuleProvides,
    SlotDefinition,
    TypeParam,
)


class MetaModel(BaseModel):
    """Base for metadata models: camelCase aliases, unknown keys ignored."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class SlotSchema(MetaModel):
    """Slot declaration in a base document."""
    name: str = Field(..., description="Slot name used in {{name}} markers")
    description: str = Field("", description="What belongs in the slot")
    required: bool = Field(False, description="Whether a module must fill it")
    default_content: str = Field("", description="Content kept when nothing replaces it")


class TypeParamSchema(MetaModel):
    """Type parameter declaration in a base document."""
    default: str = Field(..., description="Value used when not overridden")
    options: List[str] = Field(default_factory=list, description="Closed set of values, empty for open")
    description: str = Field("", description="Human readable purpose")


class ExposesSchema(MetaModel):
    variables: List[str] = Field(default_factory=list)
    functions: List[str] = Field(default_factory=list)
    events: List[str] = Field(default_factory=list)


class BaseMeta(MetaModel):
    """Metadata document of a base template."""
    name: Optional[str] = None
    version: str = "1.0.0"
    description: str = ""
    slots: List[Union[str, SlotSchema]] = Field(default_factory=list)
    type_params: Dict[str, Union[str, TypeParamSchema]] = Field(default_factory=dict)
    exposes: ExposesSchema = Field(default_factory=ExposesSchema)
    inherits: List[str] = Field(default_factory=list)
    imports: List[str] = Field(default_factory=list)

    def to_template(self, name: str, files: Dict[str, str]) -> BaseTemplate:
        """Build the immutable base record."""
        slots = tuple(
            SlotDefinition(name=s) if isinstance(s, str) else SlotDefinition(
                name=s.name,
                description=s.description,
                required=s.required,
                default_content=s.default_content,
            )
            for s in self.slots
        )
        type_params = {}
        for param, spec in self.type_params.items():
            if isinstance(spec, str):
                type_params[param] = TypeParam(name=param, default=spec)
            else:
                type_params[param] = TypeParam(
                    name=param,
                    default=spec.default,
                    options=tuple(spec.options),
                    description=spec.description,
                )
        return BaseTemplate(
            name=self.name or name,
            version=self.version,
            description=self.description,
            files=dict(files),
            slots=slots,
            type_params=type_params,
            exposes=Exposes(
                variables=tuple(self.exposes.variables),
                functions=tuple(self.exposes.functions),
                events=tuple(self.exposes.events),
            ),
            inherits=tuple(self.inherits),
            imports=tuple(self.imports),
        )


class InjectionSchema(MetaModel):
    """Injection descriptor in a module document."""
    content: str = Field("", description="Inline content, or ./path / file:path")
    mode: InjectionMode = Field(InjectionMode.APPEND, description="append, prepend or replace")
    order: Optional[int] = Field(None, description="Lower runs earlier within a slot")
    condition: Optional[str] = Field(None, description="Expression over type params and modules")

    @property
    def is_file_reference(self) -> bool:
        return self.content.startswith("./") or self.content.startswith("file:")

    @property
    def file_reference(self) -> str:
        return self.content[5:] if self.content.startswith("file:") else self.content


class ProvidesSchema(MetaModel):
    state_variables: List[str] = Field(default_factory=list)
    functions: List[str] = Field(default_factory=list)
    modifiers: List[str] = Field(default_factory=list)
    events: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class InheritanceSchema(MetaModel):
    contracts: List[str] = Field(default_factory=list)
    imports: List[str] = Field(default_factory=list)


class ModuleMeta(MetaModel):
    """Metadata document of a module."""
    name: Optional[str] = None
    version: str = "1.0.0"
    description: str = ""
    author: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    compatible_with: List[str] = Field(default_factory=list)
    incompatible_with: List[str] = Field(default_factory=list)
    requires: List[str] = Field(default_factory=list)
    enhances: List[str] = Field(default_factory=list)
    requires_slots: List[str] = Field(default_factory=list)
    requires_types: Union[List[str], Dict[str, Union[str, List[str]]]] = Field(default_factory=list)
    requires_version: Optional[str] = None
    exclusive: bool = False
    semantics: Union[Dict[str, Any], List[str], str] = Field(default_factory=list)
    injections: Dict[str, InjectionSchema] = Field(default_factory=dict)
    provides: ProvidesSchema = Field(default_factory=ProvidesSchema)
    imports: List[str] = Field(default_factory=list)
    inherits: Union[InheritanceSchema, List[str]] = Field(default_factory=list)
    estimated_size: Optional[int] = None
    estimated_gas: Dict[str, int] = Field(default_factory=dict)

    @field_validator("compatible_with", "incompatible_with", "requires", "requires_slots", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    def semantic_tags(self) -> tuple:
        """Semantics as ``key:value`` tags, whichever form the document used."""
        if isinstance(self.semantics, str):
            return (self.semantics,)
        if isinstance(self.semantics, list):
            return tuple(self.semantics)
        tags = []
        for key, value in self.semantics.items():
            values = value if isinstance(value, list) else [value]
            tags.extend(f"{key}:{v}" for v in values if v is not None)
        return tuple(tags)

    def type_constraints(self) -> Dict[str, tuple]:
        """``requiresTypes`` as parameter -> accepted values (``*`` = any parameter)."""
        if isinstance(self.requires_types, list):
            return {"*": tuple(self.requires_types)} if self.requires_types else {}
        return {
            param: tuple(values) if isinstance(values, list) else (values,)
            for param, values in self.requires_types.items()
        }

    def to_module(
        self,
        name: str,
        category: str,
        injection_contents: Optional[Dict[str, str]] = None,
        additional_files: Optional[Dict[str, str]] = None,
        test_file: Optional[str] = None,
        default_order: int = 100,
    ) -> Module:
        """
        Build the immutable module record.

        Args:
            name: Module leaf name (the directory name)
            category: Module category (the parent directory name, which
                also forms the module identifier)
            injection_contents: Resolved text for file-referenced injections
            additional_files: Extra output files shipped with the module
            test_file: Module test source, if any
            default_order: Order for injections that do not give one
        """
        contents = injection_contents or {}
        injections = {
            slot: Injection(
                slot=slot,
                content=contents.get(slot, spec.content),
                mode=spec.mode,
                order=default_order if spec.order is None else spec.order,
                condition=spec.condition,
            )
            for slot, spec in self.injections.items()
        }

        if isinstance(self.inherits, InheritanceSchema):
            inherits = list(self.inherits.contracts)
            imports = list(self.imports) + [i for i in self.inherits.imports if i not in self.imports]
        else:
            inherits = list(self.inherits)
            imports = list(self.imports)

        return Module(
            name=name,
            category=category,
            version=self.version,
            description=self.description,
            author=self.author,
            tags=tuple(self.tags),
            compatible_with=tuple(self.compatible_with),
            incompatible_with=tuple(self.incompatible_with),
            requires=tuple(self.requires),
            enhances=tuple(self.enhances),
            requires_slots=tuple(self.requires_slots),
            requires_types=self.type_constraints(),
            requires_version=self.requires_version,
            exclusive=self.exclusive,
            semantics=self.semantic_tags(),
            injections=injections,
            provides=ModuleProvides(
                state_variables=tuple(self.provides.state_variables),
                functions=tuple(self.provides.functions),
                modifiers=tuple(self.provides.modifiers),
                events=tuple(self.provides.events),
                errors=tuple(self.provides.errors),
            ),
            imports=tuple(imports),
            inherits=tuple(inherits),
            additional_files=dict(additional_files or {}),
            test_file=test_file,
            estimated_size=self.estimated_size,
            estimated_gas=dict(self.estimated_gas),
        )
