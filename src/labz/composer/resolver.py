"""
Dependency and conflict resolution for a base + module selection.

Resolution runs before any text is produced. Dependencies are expanded to
a fixed point first; every phase then runs against the expanded selection
and collects its issues, so one report shows every problem at once.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..core.config import ComposerSettings
from ..core.matching import matches, matches_any, version_at_least
from ..core.types import (
    BaseTemplate,
    Injection,
    InjectionMode,
    MergeRequest,
    Module,
    ValidationPhase,
    ValidationReport,
)
from .conditions import ConditionError, ConditionEvaluator
from .loader import TemplateStore
from .parser import resolve_type_params

logger = logging.getLogger(__name__)

BASE = ValidationPhase.BASE
COMPATIBILITY = ValidationPhase.COMPATIBILITY
DEPENDENCY = ValidationPhase.DEPENDENCY
SLOT = ValidationPhase.SLOT
TYPE = ValidationPhase.TYPE
COLLISION = ValidationPhase.COLLISION
EXCLUSIVITY = ValidationPhase.EXCLUSIVITY
SIZE = ValidationPhase.SIZE
SEMANTIC = ValidationPhase.SEMANTIC

HIGH_GAS_TAG = "gas:high"


@dataclass(frozen=True)
class ScheduledInjection:
    """An active injection with its position in the selection."""
    module: Module
    injection: Injection
    position: int

    @property
    def sort_key(self) -> Tuple[int, int, str]:
        return (self.injection.order, self.position, self.module.id)


@dataclass
class Resolution:
    """Everything the merger needs from a successful resolve."""
    base: BaseTemplate
    modules: List[Module]
    type_params: Dict[str, str]
    report: ValidationReport
    injections: Dict[str, List[ScheduledInjection]] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return self.report.valid

    @property
    def module_ids(self) -> List[str]:
        return [m.id for m in self.modules]


class DependencyResolver:
    """
    Decides whether a merge request is admissible.

    Phases, in report order:
        1. base: type-parameter overrides are known and allowed
        2. compatibility: allow-lists, deny-lists, minimum base version
        3. dependency: requires are satisfiable, acyclic, not excluded
        4. slot: required and targeted slots exist, conditions evaluate,
           no slot receives two replace injections
        5. type: requiresTypes hold for the resolved parameters
        6. collision: one namespace across base exposes and module provides
        7. exclusivity: one exclusive module per category
        8. size: advisory contract size estimate (warnings only)
        9. semantic: known incompatible semantic tags, high gas totals
    """

    def __init__(
        self,
        store: TemplateStore,
        settings: Optional[ComposerSettings] = None,
        evaluator: Optional[ConditionEvaluator] = None,
    ):
        self.store = store
        self.settings = settings or ComposerSettings()
        self.evaluator = evaluator or ConditionEvaluator()

    def resolve(self, request: MergeRequest) -> Resolution:
        """
        Resolve a request into a validated selection.

        Raises:
            NotFoundError: If the base or an explicitly requested module
                does not exist
        """
        base = self.store.load_base_template(request.base)
        report = ValidationReport()

        requested: List[Module] = []
        for identifier in request.modules:
            if any(m.id == identifier for m in requested):
                report.warn(DEPENDENCY, f'Module "{identifier}" was requested more than once', module=identifier)
                continue
            requested.append(self.store.load_module(identifier))

        type_params = resolve_type_params(base, request.type_params)
        modules = self._expand(requested, report)

        report.modules = [m.id for m in modules]
        report.type_params = dict(type_params)

        self._check_type_params(base, request.type_params, report)
        self._check_compatibility(base, modules, report)
        self._check_dependencies(modules, report)
        injections = self._check_slots(base, modules, type_params, report)
        self._check_types(modules, type_params, report)
        self._check_collisions(base, modules, report)
        self._check_exclusivity(modules, report)
        self._estimate_size(base, modules, report)
        self._check_semantics(modules, report)

        # Expansion notices were recorded first; present everything by phase.
        report.issues.sort(key=lambda issue: issue.phase.number)

        logger.info(
            "Resolved %s + %s: %d error(s), %d warning(s)",
            base.name, report.modules, len(report.errors), len(report.warnings),
        )
        return Resolution(base, modules, type_params, report, injections)

    def _expand(self, requested: List[Module], report: ValidationReport) -> List[Module]:
        """Append unresolved dependencies until the selection is closed."""
        selected = list(requested)
        selected_ids = {m.id for m in selected}
        index = 0

        while index < len(selected):
            module = selected[index]
            index += 1
            for dependency in module.requires:
                if dependency in selected_ids:
                    continue
                if not self.store.has_module(dependency):
                    report.error(
                        DEPENDENCY,
                        f'Missing dependency: "{module.id}" requires "{dependency}", which cannot be satisfied',
                        module=module.id,
                        suggestion=f'Provide a module named "{dependency}" or drop "{module.id}"',
                    )
                    continue
                selected.append(self.store.load_module(dependency))
                selected_ids.add(dependency)
                report.auto_added.append(dependency)
                report.warn(
                    DEPENDENCY,
                    f'Auto-added "{dependency}" (required by "{module.id}")',
                    module=dependency,
                )

        return selected

    def _check_type_params(
        self, base: BaseTemplate, overrides: Dict[str, str], report: ValidationReport
    ) -> None:
        for name, value in overrides.items():
            param = base.type_params.get(name)
            if param is None:
                report.error(
                    BASE,
                    f'Base "{base.name}" has no type parameter "{name}"',
                    suggestion=f"Known parameters: {', '.join(base.type_params) or 'none'}",
                )
            elif not param.accepts(value):
                report.error(
                    BASE,
                    f'Type parameter {name}="{value}" is not supported by base "{base.name}"',
                    suggestion=f"Options: {', '.join(param.options)}",
                )

    def _check_compatibility(
        self, base: BaseTemplate, modules: List[Module], report: ValidationReport
    ) -> None:
        reported_pairs = set()

        for module in modules:
            if module.compatible_with and not matches_any(module.compatible_with, base.name):
                report.error(
                    COMPATIBILITY,
                    f'Module "{module.id}" is not compatible with base "{base.name}"',
                    module=module.id,
                    suggestion=f"Compatible bases: {', '.join(module.compatible_with)}",
                )

            for pattern in module.incompatible_with:
                if matches(pattern, base.name):
                    report.error(
                        COMPATIBILITY,
                        f'Module "{module.id}" is incompatible with base "{base.name}"',
                        module=module.id,
                    )
                for other in modules:
                    if other is module or not _refers_to(pattern, other):
                        continue
                    pair = frozenset((module.id, other.id))
                    if pair in reported_pairs:
                        continue
                    reported_pairs.add(pair)
                    report.error(
                        COMPATIBILITY,
                        f'Module "{module.id}" is incompatible with "{other.id}"',
                        module=module.id,
                        suggestion=f'Remove either "{module.id}" or "{other.id}"',
                    )

            if module.requires_version and not version_at_least(base.version, module.requires_version):
                report.error(
                    COMPATIBILITY,
                    f'Module "{module.id}" requires base version >= {module.requires_version}, '
                    f'"{base.name}" is {base.version}',
                    module=module.id,
                )

    def _check_dependencies(self, modules: List[Module], report: ValidationReport) -> None:
        by_id = {m.id: m for m in modules}

        for module in modules:
            for dependency in module.requires:
                if dependency not in by_id:
                    continue
                for other in modules:
                    if other is module or other.id == dependency:
                        continue
                    if any(_refers_to(p, by_id[dependency]) for p in other.incompatible_with):
                        report.error(
                            DEPENDENCY,
                            f'"{module.id}" requires "{dependency}", which "{other.id}" excludes',
                            module=module.id,
                        )

        for cycle in _find_cycles(modules, by_id):
            report.error(
                DEPENDENCY,
                f"Circular dependency: {' -> '.join(cycle + [cycle[0]])}",
                module=cycle[0],
            )

    def _check_slots(
        self,
        base: BaseTemplate,
        modules: List[Module],
        type_params: Dict[str, str],
        report: ValidationReport,
    ) -> Dict[str, List[ScheduledInjection]]:
        declared = set(base.slot_names)
        context = self.evaluator.build_context(type_params, [m.id for m in modules], base.name)
        scheduled: Dict[str, List[ScheduledInjection]] = {}

        for position, module in enumerate(modules):
            for slot in module.requires_slots:
                if slot not in declared:
                    report.error(
                        SLOT,
                        f'Module "{module.id}" requires slot "{slot}", which base "{base.name}" does not declare',
                        module=module.id,
                        suggestion=f"Available slots: {', '.join(base.slot_names) or 'none'}",
                    )

            for slot in sorted(module.injections):
                injection = module.injections[slot]
                if slot not in declared:
                    if slot not in module.requires_slots:
                        report.error(
                            SLOT,
                            f'Module "{module.id}" injects into unknown slot "{slot}"',
                            module=module.id,
                        )
                    continue
                try:
                    active = self.evaluator.evaluate(injection.condition, context)
                except ConditionError as e:
                    report.error(SLOT, f'Module "{module.id}": {e}', module=module.id)
                    continue
                if active:
                    scheduled.setdefault(slot, []).append(ScheduledInjection(module, injection, position))

        for slot in scheduled:
            scheduled[slot].sort(key=lambda s: s.sort_key)
            replacing = [s.module.id for s in scheduled[slot] if s.injection.mode == InjectionMode.REPLACE]
            if len(replacing) > 1:
                report.error(
                    SLOT,
                    f'Conflicting replace on slot "{slot}": {", ".join(replacing)}',
                    suggestion="Only one module may replace a slot",
                )

        for definition in base.slots:
            if definition.required and not definition.default_content and definition.name not in scheduled:
                report.warn(SLOT, f'Required slot "{definition.name}" is not filled by any module')

        return {slot: scheduled[slot] for slot in base.slot_names if slot in scheduled}

    def _check_types(
        self, modules: List[Module], type_params: Dict[str, str], report: ValidationReport
    ) -> None:
        for module in modules:
            for param, allowed in module.requires_types.items():
                if param == "*":
                    if not any(matches_any(allowed, v) for v in type_params.values()):
                        report.error(
                            TYPE,
                            f'Module "{module.id}" requires one of: {", ".join(allowed)}',
                            module=module.id,
                            suggestion="Set a type parameter to match module requirements",
                        )
                elif param not in type_params:
                    report.error(
                        TYPE,
                        f'Module "{module.id}" requires type parameter "{param}", which the base does not declare',
                        module=module.id,
                    )
                elif not matches_any(allowed, type_params[param]):
                    report.error(
                        TYPE,
                        f'Module "{module.id}" requires {param} in ({", ".join(allowed)}), '
                        f'got "{type_params[param]}"',
                        module=module.id,
                        suggestion=f"Use --set {param}={allowed[0]}",
                    )

    def _check_collisions(
        self, base: BaseTemplate, modules: List[Module], report: ValidationReport
    ) -> None:
        owners: Dict[str, str] = {}
        base_source = f"base:{base.name}"

        sources = [(base_source, base.exposes.symbols())]
        sources.extend((m.id, m.provides.symbols()) for m in modules)

        for source, symbols in sources:
            for kind, name in symbols:
                first = owners.get(name)
                if first is None:
                    owners[name] = source
                elif first != source:
                    report.error(
                        COLLISION,
                        f'{kind.capitalize()} "{name}" from "{source}" is already defined by "{first}"',
                        module=source,
                        suggestion=f'Rename "{name}" or drop one of "{first}" and "{source}"',
                    )

    def _check_exclusivity(self, modules: List[Module], report: ValidationReport) -> None:
        by_category: Dict[str, List[Module]] = {}
        for module in modules:
            if module.exclusive:
                by_category.setdefault(module.category, []).append(module)

        for category, exclusive in by_category.items():
            first = exclusive[0]
            for other in exclusive[1:]:
                report.error(
                    EXCLUSIVITY,
                    f'"{first.id}" and "{other.id}" are both exclusive in category "{category}"',
                    module=other.id,
                    suggestion=f'Choose only one "{category}" module',
                )

    def _estimate_size(
        self, base: BaseTemplate, modules: List[Module], report: ValidationReport
    ) -> None:
        factor = self.settings.size_factor
        total = sum(len(text) for text in base.files.values()) * factor
        for module in modules:
            if module.estimated_size is not None:
                total += module.estimated_size
            else:
                total += sum(len(i.content) for i in module.injections.values()) * factor

        report.estimated_size = int(total)
        kilobytes = report.estimated_size / 1024
        if report.estimated_size > self.settings.max_contract_size:
            report.warn(
                SIZE,
                f"Estimated contract size {kilobytes:.1f}KB exceeds the "
                f"{self.settings.max_contract_size / 1024:.0f}KB limit",
                suggestion="Remove modules or split the contract",
            )
        elif report.estimated_size > self.settings.warn_contract_size:
            report.warn(SIZE, f"Estimated contract size {kilobytes:.1f}KB is approaching the limit")

    def _check_semantics(self, modules: List[Module], report: ValidationReport) -> None:
        pairs = self.settings.conflict_pairs()

        for i, first in enumerate(modules):
            for second in modules[i + 1:]:
                for left, right in pairs:
                    if (left in first.semantics and right in second.semantics) or \
                            (right in first.semantics and left in second.semantics):
                        report.error(
                            SEMANTIC,
                            f'Semantic conflict between "{first.id}" ({left}) and "{second.id}" ({right})',
                            module=second.id,
                        )
                        break

        heavy = [m.id for m in modules if HIGH_GAS_TAG in m.semantics]
        if len(heavy) >= self.settings.high_gas_threshold:
            report.warn(SEMANTIC, f"Multiple high-gas modules selected: {', '.join(heavy)}")


def _refers_to(pattern: str, module: Module) -> bool:
    """Whether a deny-list entry names a module by id, leaf name or category."""
    return matches(pattern, module.id) or matches(pattern, module.name) or pattern == module.category


def _find_cycles(modules: List[Module], by_id: Dict[str, Module]) -> List[List[str]]:
    """Distinct ``requires`` cycles, each rotated to start at its smallest id."""
    cycles: List[List[str]] = []
    seen = set()
    done = set()

    def visit(module_id: str, path: List[str]) -> None:
        if module_id in path:
            cycle = path[path.index(module_id):]
            pivot = cycle.index(min(cycle))
            canonical = cycle[pivot:] + cycle[:pivot]
            if tuple(canonical) not in seen:
                seen.add(tuple(canonical))
                cycles.append(canonical)
            return
        if module_id in done:
            return
        path.append(module_id)
        for dependency in by_id[module_id].requires:
            if dependency in by_id:
                visit(dependency, path)
        path.pop()
        done.add(module_id)

    for module in modules:
        visit(module.id, [])
    return cycles
