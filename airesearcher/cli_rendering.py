"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics
and operation listings.
"""

from __future__ import annotations

from typing import Iterable, NoReturn

import typer

from .errors import ResearchServiceError


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, ResearchServiceError):
        typer.secho(f"{command_name} failed: {exc.detail}", fg=typer.colors.RED, err=True)
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_operation_list(operations: Iterable[str]) -> None:
    """Print known operations, one per line, in sorted order."""

    for operation in sorted(operations):
        typer.echo(operation)
