import typer

from apps.membercheck import __version__
from apps.membercheck.check import check

app = typer.Typer(help="Detect drift between cloud fleet and Consul cluster membership")

app.command("check")(check)


@app.command("version")
def version() -> None:
    """Show version and exit."""

    typer.echo(__version__)
