"""Console entry point for the membercheck CLI application."""

from __future__ import annotations

import sys
from typing import Sequence

import click
import typer

from apps.membercheck.app import app
from apps.membercheck.check import CHECK_NAME
from apps.membercheck.utils.errors import (
    ExitCode,
    MemberCheckConfigError,
    MemberCheckError,
)


def _handle_cli_error(exc: MemberCheckError) -> ExitCode:
    """Render the error as an UNKNOWN status line and return the exit code."""

    typer.echo(f"{CHECK_NAME} UNKNOWN: {exc.heading}: {exc}")
    return exc.exit_code


def main(argv: Sequence[str] | None = None) -> int:
    """Invoke the root Typer application."""

    try:
        result = app(
            args=list(argv) if argv is not None else None,
            standalone_mode=False,
        )
        if result is None:
            return int(ExitCode.OK)
        return int(result)
    except MemberCheckError as exc:
        exit_code = _handle_cli_error(exc)
        return int(exit_code)
    except click.ClickException as exc:
        # Unparseable or unknown flags.
        exit_code = _handle_cli_error(MemberCheckConfigError(exc.format_message()))
        return int(exit_code)


if __name__ == "__main__":
    sys.exit(main())
