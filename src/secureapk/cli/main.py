"""Root CLI application for secureapk."""

import typer

from secureapk import __version__
from secureapk.cli import scan

app = typer.Typer(
    name="secureapk",
    help="Static security analysis and dev-mode repackaging of Android APKs.",
    no_args_is_help=True,
)

# Register commands
app.command("scan")(scan.scan_package)
app.command("checks")(scan.list_checks)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"secureapk {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """secureapk - Android APK security analysis."""
    pass


if __name__ == "__main__":
    app()
