"""Main CLI entry point."""

import click
from rich.console import Console

from .. import __version__
from ..core.config import get_settings
from ..core.logging import configure_logging
from .commands import build, check, preview, bases, modules, blocks

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="labz")
@click.option(
    "-d", "--templates-dir",
    type=click.Path(file_okay=False),
    envvar="LABZ_TEMPLATES_DIR",
    help="Root of the template tree (contains buildable/)",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.option("--log-level", default=None, help="Log level (overrides LABZ_LOG_LEVEL)")
@click.pass_context
def cli(ctx, templates_dir, verbose, log_level):
    """Lab-Z - Compose FHE contracts from base templates and modules.

    Merge a base template with feature modules into a Hardhat project,
    after validating that the modules fit together.

    \b
    Examples:
        labz bases
        labz modules --for counter
        labz check counter --with acl/transient
        labz build counter my-counter --with acl/transient -o ./my-counter

    Use --help on any command for more details.
    """
    settings = get_settings()
    configure_logging(settings.logging, level="DEBUG" if verbose else log_level)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["templates_dir"] = templates_dir


# Composition commands
cli.add_command(build)
cli.add_command(check)
cli.add_command(preview)

# Catalog commands
cli.add_command(bases)
cli.add_command(modules)
cli.add_command(blocks)


@cli.command()
def info():
    """Show information about Lab-Z."""
    from rich.panel import Panel

    info_text = """[bold]Lab-Z[/bold] - Composable FHE contract templates

[bold]Concepts:[/bold]
  • [cyan]Base[/cyan]: a complete contract with named slots
  • [cyan]Module[/cyan]: a feature that injects code into slots
  • [cyan]Validation[/cyan]: nine phases run before anything is written
  • [cyan]Blocks[/cyan]: single FHE operations for the visual builder

[bold]Usage:[/bold]
  • Python SDK: from labz import Composer
  • CLI: labz <command>

[bold]Configuration:[/bold]
  LABZ_TEMPLATES_DIR   template tree root
  LABZ_SKELETON_DIR    Hardhat skeleton copied into new projects
  LABZ_LOG_LEVEL       logging level (default WARNING)"""

    console.print(Panel(info_text, title=f"Lab-Z v{__version__}", border_style="green"))


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
