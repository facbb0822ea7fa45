"""
Command Line Interface for Freestyle Multibranch.
"""

import io
from pathlib import Path
from typing import List, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..bootstrap import initialize
from ..config import get_settings
from ..criteria import MarkerFilePresent
from ..errors import FreestyleMultibranchError
from ..project import MultiBranchProject
from ..scm.branch import Branch, encode_name
from ..scm.probe import DirectoryProbe, GitProbe, Probe
from ..steps import CAPABILITIES, step_registry
from ..workspace import Node, WorkspaceList, decide_workspace

app = typer.Typer(help="Freestyle Multibranch - one freestyle job per branch")
console = Console()


@app.callback()
def main_callback():
    """Initialize logging and record types before any command runs."""
    initialize()


@app.command()
def check_head(
    path: Path = typer.Argument(..., help="Checked-out tree, or git repository with --revision"),
    marker: Optional[str] = typer.Option(None, help="Marker file that must exist at the root"),
    revision: Optional[str] = typer.Option(None, help="Probe this git revision instead of the working tree"),
):
    """Evaluate the marker file criteria against one head.

    Exits 0 when the head would get a branch job, 1 when it would not.
    """
    if not path.is_dir():
        console.print(f"❌ {path} is not a directory")
        raise typer.Exit(code=2)

    criteria = MarkerFilePresent(marker if marker is not None else get_settings().default_marker_file)
    probe: Probe = GitProbe(path, revision) if revision else DirectoryProbe(path)
    log = io.StringIO()
    with probe:
        included = criteria.is_head(probe, log)

    for line in log.getvalue().splitlines():
        console.print(line, soft_wrap=True)
    if included:
        console.print(f"✅ {probe.name} is included")
    else:
        console.print(f"⏭️  {probe.name} is excluded: {criteria.file_name} not found")
        raise typer.Exit(code=1)


@app.command()
def encode(
    names: List[str] = typer.Argument(..., help="Branch names to encode"),
):
    """Show the job name each branch name maps to."""
    table = Table(title="Encoded Branch Names", show_header=True, header_style="bold cyan")
    table.add_column("Branch", style="yellow")
    table.add_column("Job Name", style="green")

    for name in names:
        try:
            table.add_row(name, encode_name(name))
        except ValueError as e:
            table.add_row(name, f"❌ {e}")

    console.print(table)


@app.command()
def workspace(
    project: str = typer.Argument(..., help="Multibranch project name"),
    branch: str = typer.Argument(..., help="Branch name"),
    root: Optional[Path] = typer.Option(None, help="Workspace root of the local node"),
):
    """Show the workspace a build of a branch would use on the local node."""
    node = Node("local", root or Path(get_settings().workspace_root))
    owner = MultiBranchProject(project)
    job = owner.factory.new_instance(Branch.of(branch))

    try:
        with decide_workspace(node, WorkspaceList(node.name), job) as lease:
            console.print(str(lease.path), soft_wrap=True)
    except FreestyleMultibranchError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)


@app.command()
def steps(
    capability: Optional[str] = typer.Option(None, help="wrapper, builder or publisher"),
):
    """List the registered build step types."""
    if capability is not None and capability not in CAPABILITIES:
        console.print(f"❌ Unknown capability. Use: {', '.join(CAPABILITIES)}")
        raise typer.Exit(code=2)

    table = Table(title="Build Step Types", show_header=True, header_style="bold magenta")
    table.add_column("Id", style="cyan")
    table.add_column("Capability", style="blue")
    table.add_column("Name")

    for cap in [capability] if capability else CAPABILITIES:
        for descriptor in step_registry.for_capability(cap):
            table.add_row(descriptor.id, descriptor.capability, descriptor.display_name)

    console.print(table)


@app.command()
def version():
    """Show version information."""
    from .. import __version__
    rprint(Panel.fit(f"Freestyle Multibranch v{__version__}", style="bold green"))


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
