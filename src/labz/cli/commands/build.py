"""Composition CLI commands: build, check, preview."""

import os
import re
from typing import Dict, List, Optional

import click
from rich.console import Console
from rich.table import Table

from ...core.exceptions import LabzError
from ...core.types import BaseTemplate, IssueSeverity, ValidationReport

console = Console()

_ENCRYPTED_TYPE = re.compile(r"^e(uint\d+|int\d+|bool|address)$")


def get_composer(ctx: click.Context):
    """Composer for the templates directory given on the command line or in the environment."""
    from ... import Composer

    obj = ctx.find_root().obj or {}
    try:
        return Composer(templates_dir=obj.get("templates_dir"), settings=obj.get("settings"))
    except LabzError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        console.print("[dim]Pass --templates-dir or set LABZ_TEMPLATES_DIR[/dim]")
        ctx.exit(1)


def split_modules(values: List[str]) -> List[str]:
    """Flatten repeated and comma-separated ``--with`` values."""
    modules = []
    for value in values:
        modules.extend(m.strip() for m in value.split(",") if m.strip())
    return modules


def parse_assignments(values: List[str]) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` pairs from ``--set``."""
    params = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {value!r}", param_hint="--set")
        params[key.strip()] = val.strip()
    return params


def main_type_params(base: BaseTemplate, main_type: str) -> Dict[str, str]:
    """
    Expand ``--type`` into overrides for a base's type parameters.

    Parameters whose default is an encrypted type take the type itself;
    parameters whose default is an external handle type take its external
    form (``euint64`` -> ``externalEuint64``).
    """
    external = "external" + main_type[:1].upper() + main_type[1:]
    params = {}
    for name, param in base.type_params.items():
        if param.default.startswith("external"):
            params[name] = external
        elif _ENCRYPTED_TYPE.match(param.default):
            params[name] = main_type
    return params


def resolve_type_params(composer, base: str, main_type: Optional[str], assignments: List[str]) -> Dict[str, str]:
    params = main_type_params(composer.get_base(base), main_type) if main_type else {}
    params.update(parse_assignments(assignments))
    return params


def print_report(report: ValidationReport) -> None:
    """Print validation issues as a table."""
    if report.valid:
        console.print("\n[bold]Validation Result:[/bold] [green]Valid[/green]")
    else:
        console.print("\n[bold]Validation Result:[/bold] [red]Invalid[/red]")

    if report.modules:
        console.print(f"[bold]Modules:[/bold] {', '.join(report.modules)}")
    console.print(f"[bold]Estimated size:[/bold] {report.estimated_size} bytes")

    if not report.issues:
        console.print("[green]No issues found![/green]")
        return

    table = Table(title="Issues Found")
    table.add_column("Severity", style="bold")
    table.add_column("Phase")
    table.add_column("Module")
    table.add_column("Message")

    for issue in report.issues:
        color = "red" if issue.severity == IssueSeverity.ERROR else "yellow"
        table.add_row(
            f"[{color}]{issue.severity.value}[/{color}]",
            f"{issue.phase.number}. {issue.phase.value}",
            issue.module or "",
            issue.message,
        )
    console.print(table)

    suggestions = [i.suggestion for i in report.issues if i.suggestion]
    if suggestions:
        console.print("\n[bold]Suggestions:[/bold]")
        for suggestion in suggestions:
            console.print(f"  - {suggestion}")


def _selection_options(f):
    f = click.option("--set", "assignments", multiple=True, metavar="KEY=VALUE",
                     help="Set a type parameter (repeatable)")(f)
    f = click.option("-t", "--type", "main_type", default=None,
                     help="Main encrypted type (euint8, euint32, euint64)")(f)
    f = click.option("-w", "--with", "with_modules", multiple=True,
                     help="Module to include, e.g. acl/transient (repeatable or comma-separated)")(f)
    return f


@click.command()
@click.argument("base")
@click.argument("project_name", required=False)
@_selection_options
@click.option("-o", "--output", default=".", type=click.Path(file_okay=False), help="Parent output directory")
@click.option("--check", "check_only", is_flag=True, help="Only validate the selection")
@click.option("--preview", "preview_only", is_flag=True, help="Show what would be generated")
@click.option("--dry-run", is_flag=True, help="Merge without writing files")
@click.pass_context
def build(ctx, base, project_name, with_modules, main_type, assignments, output, check_only, preview_only, dry_run):
    """Build a project from a base template and modules.

    The project is written to OUTPUT/<project-name in lower case>.

    Examples:

        labz build counter my-counter --with acl/transient

        labz build token --with admin/ownable,security/pausable --type euint64

        labz build voting --set VOTE_TYPE=euint8 --dry-run
    """
    composer = get_composer(ctx)
    modules = split_modules(with_modules)

    try:
        type_params = resolve_type_params(composer, base, main_type, assignments)

        if check_only:
            report = composer.validate_only(base, modules, type_params)
            print_report(report)
            ctx.exit(0 if report.valid else 1)

        if preview_only:
            click.echo(composer.preview(base, modules, project_name, type_params))
            return

        name = project_name or base
        output_dir = os.path.join(output, name.lower())
        with console.status("[bold green]Generating..."):
            result = composer.merge(
                base, modules,
                project_name=name,
                type_params=type_params,
                output_dir=output_dir,
                dry_run=dry_run,
            )
    except LabzError as e:
        console.print(f"[red]Error:[/red] {e}")
        ctx.exit(1)

    if not result.success:
        console.print("[red]Validation failed; nothing was written[/red]")
        print_report(result.report)
        ctx.exit(1)

    for warning in result.report.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning.message}")

    if dry_run:
        console.print("[green]Validation passed (dry run)[/green]")
        console.print("\n[bold]Files that would be generated:[/bold]")
        for path in result.files:
            console.print(f"  [green]+[/green] {path}")
        return

    manifest = result.manifest
    console.print(f"\n[green]Created {name} at {output_dir}[/green]")
    console.print(f"  Base:       [cyan]{manifest.base}[/cyan]")
    console.print(f"  Modules:    [cyan]{', '.join(manifest.modules_applied) or 'none'}[/cyan]")
    if manifest.auto_added:
        console.print(f"  Auto-added: [cyan]{', '.join(manifest.auto_added)}[/cyan]")
    console.print(f"  Slots used: [cyan]{', '.join(manifest.slots_used) or 'none'}[/cyan]")

    console.print("\n[bold]Next steps:[/bold]")
    console.print(f"  cd {output_dir}")
    console.print("  npm install")
    console.print("  npx hardhat test")


@click.command()
@click.argument("base")
@_selection_options
@click.pass_context
def check(ctx, base, with_modules, main_type, assignments):
    """Validate a base and module selection without merging.

    Exits with status 1 if any validation error is found.

    Example:

        labz check counter --with acl/transient --with admin/ownable
    """
    composer = get_composer(ctx)
    try:
        type_params = resolve_type_params(composer, base, main_type, assignments)
        report = composer.validate_only(base, split_modules(with_modules), type_params)
    except LabzError as e:
        console.print(f"[red]Error:[/red] {e}")
        ctx.exit(1)

    print_report(report)
    if not report.valid:
        ctx.exit(1)


@click.command()
@click.argument("base")
@click.argument("project_name", required=False)
@_selection_options
@click.pass_context
def preview(ctx, base, project_name, with_modules, main_type, assignments):
    """Show what a merge would produce, without writing anything.

    Example:

        labz preview counter my-counter --with acl/transient
    """
    composer = get_composer(ctx)
    try:
        type_params = resolve_type_params(composer, base, main_type, assignments)
        text = composer.preview(base, split_modules(with_modules), project_name, type_params)
    except LabzError as e:
        console.print(f"[red]Error:[/red] {e}")
        ctx.exit(1)

    click.echo(text)
