"""
Injection of module fragments into base template slots.

The merger only runs on a valid :class:`Resolution`; given one, text
assembly cannot fail. It never touches the filesystem.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..core.types import (
    InjectionMode,
    MergeManifest,
    MergeRequest,
    MergeResult,
    SlotDefinition,
)
from ..rendering.engine import TemplateEngine
from .parser import (
    SlotMarker,
    apply_type_params,
    cleanup,
    output_path,
    parse_base,
    render_fragment,
    substitute_placeholders,
)
from .resolver import Resolution, ScheduledInjection

logger = logging.getLogger(__name__)

README_PATH = "README.md"


@dataclass(frozen=True)
class DeclaredFunction:
    """A function the generated contract will have, and where it comes from."""
    name: str
    source: str


def _unique(items: List[str]) -> List[str]:
    seen: List[str] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


class Merger:
    """
    Builds the output files of a project from a resolved selection.

    Per slot, fragments are applied in (order, selection position, module id)
    order: append adds after everything so far, prepend before everything so
    far, replace discards everything so far.
    """

    def __init__(self, engine: Optional[TemplateEngine] = None):
        self.engine = engine or TemplateEngine()

    def placeholders(self, resolution: Resolution, request: MergeRequest) -> Dict[str, str]:
        """Project placeholder values, excluding names the base declares as slots."""
        base = resolution.base
        imports = _unique(list(base.imports) + [i for m in resolution.modules for i in m.imports])
        inherits = _unique(list(base.inherits) + [c for m in resolution.modules for c in m.inherits])
        values = {
            "PROJECT_NAME": request.project_name,
            "CONTRACT_NAME": request.contract_name,
            "IMPORTS": "\n".join(imports),
            "INHERITS": ", ".join(inherits),
        }
        return {k: v for k, v in values.items() if k not in base.slot_names}

    def fill_slot(
        self,
        slot: SlotDefinition,
        scheduled: List[ScheduledInjection],
        indent: str,
        type_params: Dict[str, str],
        placeholders: Dict[str, str],
    ) -> str:
        """Content for one slot marker."""
        parts: List[str] = []
        if slot.default_content.strip():
            parts.append(slot.default_content)

        for item in scheduled:
            fragment = substitute_placeholders(
                apply_type_params(item.injection.content, type_params), placeholders
            )
            if item.injection.mode == InjectionMode.REPLACE:
                parts = [fragment]
            elif item.injection.mode == InjectionMode.PREPEND:
                parts.insert(0, fragment)
            else:
                parts.append(fragment)

        rendered = [render_fragment(p, indent) for p in parts if p.strip()]
        return ("\n" + indent).join(rendered)

    def render_files(self, resolution: Resolution, request: MergeRequest) -> Dict[str, str]:
        """Merged text of every base file, keyed by output path."""
        base = resolution.base
        placeholders = self.placeholders(resolution, request)
        files: Dict[str, str] = {}

        for parsed in parse_base(base, resolution.type_params):
            chunks = []
            for segment in parsed.segments:
                if isinstance(segment, SlotMarker):
                    chunks.append(self.fill_slot(
                        base.get_slot(segment.name),
                        resolution.injections.get(segment.name, []),
                        segment.indent,
                        resolution.type_params,
                        placeholders,
                    ))
                else:
                    chunks.append(substitute_placeholders(segment.text, placeholders))
            text = cleanup("".join(chunks)).rstrip("\n") + "\n"
            files[output_path(parsed.path, placeholders)] = text

        return files

    def declared_functions(self, resolution: Resolution) -> List[DeclaredFunction]:
        """Functions of the resulting contract: base first, then modules in selection order."""
        source = f"base:{resolution.base.name}"
        functions = [DeclaredFunction(name, source) for name in resolution.base.exposes.functions]
        for module in resolution.modules:
            functions.extend(DeclaredFunction(name, module.id) for name in module.provides.functions)
        return functions

    def merge(self, resolution: Resolution, request: MergeRequest) -> MergeResult:
        """
        Merge a resolved selection into project files.

        Returns:
            ``success=False`` with no files if the resolution is invalid
        """
        report = resolution.report
        if not report.valid:
            logger.warning("Refusing merge of %s: %d error(s)", request.base, len(report.errors))
            return MergeResult(success=False, report=report)

        placeholders = self.placeholders(resolution, request)
        files = self.render_files(resolution, request)
        base_outputs = set(files)

        for module in resolution.modules:
            for path, content in sorted(module.additional_files.items()):
                target = output_path(path, placeholders)
                if target in files:
                    logger.warning("Module %s file %s shadows an existing output, skipped", module.id, target)
                    continue
                files[target] = substitute_placeholders(
                    apply_type_params(content, resolution.type_params), placeholders
                )
            if module.test_file:
                target = f"test/{request.project_name}.{module.category}.{module.name}.test.ts"
                files[target] = substitute_placeholders(
                    apply_type_params(module.test_file, resolution.type_params), placeholders
                )

        contract = request.contract_name
        test_path = f"test/{contract}.test.ts"
        if test_path not in base_outputs:
            files[test_path] = self.engine.render(
                "contract.test.ts.j2",
                contract_name=contract,
                functions=self.declared_functions(resolution),
            )

        if README_PATH not in files:
            files[README_PATH] = cleanup(self.engine.render(
                "README.md.j2",
                project_name=request.project_name,
                contract_name=contract,
                base=resolution.base,
                modules=resolution.modules,
                type_params=resolution.type_params,
            ))

        slots_used = tuple(slot for slot in resolution.base.slot_names if slot in resolution.injections)
        manifest = MergeManifest(
            base=resolution.base.name,
            project_name=request.project_name,
            modules_applied=tuple(resolution.module_ids),
            auto_added=tuple(report.auto_added),
            slots_used=slots_used,
            type_params=dict(resolution.type_params),
            estimated_size=report.estimated_size,
        )

        logger.info("Merged %s into %d file(s)", resolution.base.name, len(files))
        return MergeResult(
            success=True,
            report=report,
            files=dict(sorted(files.items())),
            manifest=manifest,
            package_patch={"name": request.project_name.lower()},
        )

    def preview(self, resolution: Resolution, request: MergeRequest) -> str:
        """
        Text summary of what a merge would produce.

        Shows imports, inheritance, injections per slot with their source
        module, and the functions and state variables modules add.
        """
        placeholders = self.placeholders(resolution, request)
        lines = [
            f"{request.contract_name} (base: {resolution.base.name})",
            "=" * 60,
        ]

        imports = placeholders.get("IMPORTS", "")
        if imports:
            lines.append("Imports:")
            lines.extend(f"  {line}" for line in imports.split("\n"))
        inherits = placeholders.get("INHERITS", "")
        if inherits:
            lines.append(f"Inherits: {inherits}")

        for slot, scheduled in resolution.injections.items():
            lines.append("")
            lines.append(f"[{slot}]")
            for item in scheduled:
                mode = item.injection.mode.value
                lines.append(f"  + {item.module.id} ({mode}, order {item.injection.order})")
                content = apply_type_params(item.injection.content, resolution.type_params).strip("\n")
                snippet = content.split("\n")
                lines.extend(f"      {line.rstrip()}" for line in snippet[:3])
                if len(snippet) > 3:
                    lines.append(f"      ... ({len(snippet) - 3} more line(s))")

        functions = [f for f in self.declared_functions(resolution) if not f.source.startswith("base:")]
        if functions:
            lines.append("")
            lines.append("New functions:")
            lines.extend(f"  {f.name}()  <- {f.source}" for f in functions)

        variables = [(v, m.id) for m in resolution.modules for v in m.provides.state_variables]
        if variables:
            lines.append("")
            lines.append("New state variables:")
            lines.extend(f"  {name}  <- {source}" for name, source in variables)

        report = resolution.report
        if report.issues:
            lines.append("")
            lines.extend(f"{issue.severity.value.upper()}: {issue.message}" for issue in report.issues)

        return "\n".join(lines) + "\n"
