"""
CLI Error Handling
==================

Maps exceptions raised while running a command to a message on stderr
and a process exit code.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click

from fdc_sim.errors import FDCError, InvalidDriveError


class ExitCode(IntEnum):
    """Exit codes shared by every fdclink command."""
    SUCCESS = 0
    LINK_ERROR = 1       # Connection, timeout, protocol or transfer error
    INVALID_ARGS = 2     # Bad arguments, bad input file, no valid drive
    INTERNAL_ERROR = 3   # Anything unexpected


# First match wins; InvalidDriveError must precede FDCError
_EXIT_CODES: tuple[tuple[type[BaseException], ExitCode], ...] = (
    (InvalidDriveError, ExitCode.INVALID_ARGS),
    (FDCError, ExitCode.LINK_ERROR),
    (click.BadParameter, ExitCode.INVALID_ARGS),
    (ValueError, ExitCode.INVALID_ARGS),
    (OSError, ExitCode.INVALID_ARGS),
)


def exit_code_for(error: BaseException) -> ExitCode:
    """Exit code for `error`; INTERNAL_ERROR when nothing matches."""
    for error_class, code in _EXIT_CODES:
        if isinstance(error, error_class):
            return code
    return ExitCode.INTERNAL_ERROR


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Report `error` and exit.

    Link errors are prefixed with `error_type` when given (e.g. "Read
    error: ..."). A traceback is printed only for internal errors, and
    only with `verbose`.
    """
    code = exit_code_for(error)

    if code == ExitCode.INTERNAL_ERROR:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
    elif code == ExitCode.LINK_ERROR and error_type:
        click.echo(f"{error_type} error: {error}", err=True)
    else:
        click.echo(f"Error: {error}", err=True)

    sys.exit(code)
