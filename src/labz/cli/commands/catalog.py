"""Catalog CLI commands: bases, modules, blocks."""

import click
from rich.console import Console
from rich.table import Table

from ...core.exceptions import LabzError
from .build import get_composer

console = Console()


@click.command()
@click.pass_context
def bases(ctx):
    """List available base templates."""
    composer = get_composer(ctx)
    names = composer.list_bases()
    if not names:
        console.print("[yellow]No base templates found.[/yellow]")
        return

    table = Table(title="Base Templates")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Slots")
    table.add_column("Type Parameters")

    for name in names:
        try:
            base = composer.get_base(name)
        except LabzError as e:
            table.add_row(name, f"[red](error loading: {e.message})[/red]", "", "")
            continue
        table.add_row(
            name,
            base.description,
            ", ".join(base.slot_names),
            ", ".join(f"{k}={v}" for k, v in base.type_defaults.items()),
        )
    console.print(table)


@click.command()
@click.option("-f", "--for", "base", default=None, help="Only modules compatible with this base")
@click.option("-c", "--category", default=None, help="Only modules in this category")
@click.pass_context
def modules(ctx, base, category):
    """List available modules.

    Examples:

        labz modules

        labz modules --for counter --category acl
    """
    composer = get_composer(ctx)
    try:
        found = composer.list_modules(base=base, category=category)
    except LabzError as e:
        console.print(f"[red]Error:[/red] {e}")
        ctx.exit(1)

    if not found:
        console.print("[yellow]No modules found.[/yellow]")
        return

    title = f"Modules compatible with {base}" if base else "Modules"
    table = Table(title=title)
    table.add_column("Module", style="cyan")
    table.add_column("Description")
    table.add_column("Requires")
    table.add_column("Flags", style="yellow")

    for module in found:
        flags = []
        if module.exclusive:
            flags.append("exclusive")
        if "gas:high" in module.semantics:
            flags.append("high gas")
        table.add_row(module.id, module.description, ", ".join(module.requires), ", ".join(flags))
    console.print(table)


@click.command()
@click.option("-c", "--category", default=None, help="Only blocks in this category")
@click.option("-s", "--search", "query", default=None, help="Search names, descriptions and tags")
def blocks(category, query):
    """List the blocks available to the visual builder.

    Example:

        labz blocks --search allow
    """
    from ...blocks import BlockCatalog, BlockCategory

    catalog = BlockCatalog()
    if query:
        found = catalog.search(query)
    else:
        found = catalog.all()
    if category:
        try:
            wanted = BlockCategory(category)
        except ValueError:
            raise click.BadParameter(
                f"unknown category {category!r}; choose from "
                + ", ".join(c.value for c in catalog.categories()),
                param_hint="--category",
            )
        found = [b for b in found if b.category == wanted]

    table = Table(title="Blocks")
    table.add_column("Id", style="cyan")
    table.add_column("Category", style="green")
    table.add_column("Zones")
    table.add_column("Description")

    for block in found:
        table.add_row(
            block.id,
            block.category.value,
            ", ".join(z.value for z in block.can_drop_in),
            block.description,
        )
    console.print(table)
