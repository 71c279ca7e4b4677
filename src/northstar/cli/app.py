"""Main CLI application."""

from typing import Annotated

import typer

from northstar.cli.commands import session
from northstar.logging import configure_logging

app = typer.Typer(
    name="northstar",
    help="North Star - session memory that survives provider switches",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
    log_file: Annotated[
        bool,
        typer.Option("--log-file", help="Also write JSONL logs under the home dir"),
    ] = False,
) -> None:
    configure_logging(
        level="DEBUG" if verbose else None, use_rich=True, log_to_file=log_file
    )


session.register(app)


if __name__ == "__main__":
    app()
