"""
fdclink - FDC+ Serial Drive Command-Line Interface
==================================================

This module implements the command-line interface for the FDC+ serial
drive link. It plays the part of the FDC+ controller: it sends STAT,
READ and WRIT commands to a disk server and reports what comes back,
which makes it useful for bringing up and debugging a server.

Usage Examples
--------------
List available serial ports:
    $ fdclink ports

Ask the server which drives are mounted:
    $ fdclink stat
    $ fdclink stat --drive 0 --load 0

Read a track and save it:
    $ fdclink read 0 12 -o track12.bin

Write a track from a file, or a formatted (0xE5) track:
    $ fdclink write 0 12 -i track12.bin
    $ fdclink write 1 0

Poll STAT ten times a second, the way the FDC+ does:
    $ fdclink poll --interval 100

Configuration
-------------
Defaults come from `LinkConfig.from_env()` (FDC_SIM_* environment
variables) and are overridden by the options given here.

Exit Codes
----------
0 - Success
1 - Connection, timeout, protocol or transfer error
2 - Invalid arguments or configuration error
3 - Internal error
"""

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import click

from fdc_sim import __version__
from fdc_sim.cli.errors import ExitCode, handle_cli_exception
from fdc_sim.comms import (
    FORMAT_FILL_BYTE,
    MAX_DRIVE,
    DiskGeometry,
    LinkSession,
    SerialChannel,
    close_serial_port,
    find_serial_port,
    format_port_list,
    list_serial_ports,
    open_serial_port,
)
from fdc_sim.config import MIN_POLL_INTERVAL, VALID_BAUD_RATES, LinkConfig
from fdc_sim.errors import (
    CommsError,
    LinkTimeoutError,
    PartialTransferError,
    RemoteRefusalError,
    TagMismatchError,
)

# Configure logging
logger = logging.getLogger(__name__)


# =============================================================================
# CLI Context and Utilities
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Holds the link configuration assembled from the environment and the
    global options, plus verbosity.
    """

    def __init__(self) -> None:
        self.config: LinkConfig = LinkConfig()
        self.verbose: bool = False

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.WARNING
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(name)s: %(message)s" if self.verbose else "%(message)s",
        )


pass_context = click.make_pass_decorator(Context, ensure=True)


@contextmanager
def connect(ctx: Context) -> Iterator[LinkSession]:
    """
    Open the configured serial port and yield a session over it.

    The port is closed again when the block exits.
    """
    port_device = ctx.config.port or find_serial_port()
    if not port_device:
        click.echo("Error: No serial port specified and auto-detect failed.", err=True)
        click.echo("Use --port option or 'fdclink ports' to find available ports.", err=True)
        raise SystemExit(ExitCode.LINK_ERROR)

    logger.info("Connecting on %s at %d baud", port_device, ctx.config.baud_rate)
    serial_port = open_serial_port(port_device, baud_rate=ctx.config.baud_rate)
    try:
        yield LinkSession(SerialChannel(serial_port), ctx.config)
    finally:
        close_serial_port(serial_port)


def select_drive(session: LinkSession, drive: Optional[int], loaded: tuple[int, ...]) -> None:
    """Apply --drive and --load options to the session's drive state."""
    if drive is not None:
        session.drives.select(drive)
    for d in loaded:
        session.drives.set_head_loaded(d, True)


def format_mount_status(bitmap: int) -> str:
    """One line per controller drive: mounted or not."""
    lines = []
    for drive in range(MAX_DRIVE):
        state = "mounted" if bitmap & (1 << drive) else "not mounted"
        lines.append(f"  Drive {drive}: {state}")
    return "\n".join(lines)


def parse_byte(value: str) -> int:
    """Parse a byte given in decimal or 0x hex."""
    try:
        number = int(value, 0)
    except ValueError:
        raise click.BadParameter(f"Not a number: {value}")
    if not 0 <= number <= 0xFF:
        raise click.BadParameter(f"Byte must be 0-255, got {value}")
    return number


drive_argument = click.argument("drive", type=click.IntRange(0, 0xFE))
track_argument = click.argument("track", type=click.IntRange(0, 0x0FFF))


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option(
    "-p", "--port",
    type=str,
    default=None,
    help="Serial port device (auto-detect if not specified)",
)
@click.option(
    "-b", "--baud",
    type=click.Choice([str(b) for b in VALID_BAUD_RATES]),
    default=None,
    help="Baud rate (default: 403200)",
)
@click.option(
    "-g", "--geometry",
    type=click.Choice([g.label for g in DiskGeometry]),
    default=None,
    help="Disk geometry (default: 8in)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.version_option(version=__version__, prog_name="fdclink")
@pass_context
def main(
    ctx: Context,
    port: Optional[str],
    baud: Optional[str],
    geometry: Optional[str],
    verbose: bool,
) -> None:
    """
    Exercise an FDC+ serial drive server from the controller side.

    Every command is one exchange: the command frame is sent, the
    response is collected within its timeout, and the outcome is
    printed. Nothing is retried automatically.

    Use 'fdclink ports' to list available serial ports.
    """
    ctx.verbose = verbose
    ctx.setup_logging()

    ctx.config = LinkConfig.from_env()
    if port:
        ctx.config.port = port
    if baud:
        ctx.config.baud_rate = int(baud)
    if geometry:
        ctx.config.geometry = DiskGeometry.from_label(geometry)


# =============================================================================
# Ports Command
# =============================================================================

@main.command()
@click.option(
    "--detailed", "-d",
    is_flag=True,
    help="Show detailed port information",
)
def ports(detailed: bool) -> None:
    """
    List available serial ports.

    Shows all serial ports detected on the system. USB-serial adapters
    are marked with their vendor (e.g., FTDI, Silicon Labs).
    """
    port_list = list_serial_ports()

    if not port_list:
        click.echo("No serial ports found.")
        click.echo("\nTips:")
        click.echo("  - Connect your USB-serial adapter")
        click.echo("  - On Linux, ensure you have permission (dialout group)")
        return

    click.echo("Available serial ports:")
    click.echo(format_port_list(port_list, verbose=detailed))

    auto_port = find_serial_port()
    if auto_port:
        click.echo(f"\nSuggested port: {auto_port}")
    else:
        click.echo("\nNo USB-serial adapter auto-detected.")


# =============================================================================
# STAT Command
# =============================================================================

@main.command()
@click.option("--drive", "-d", type=click.IntRange(0, 0xFE), default=None,
              help="Drive to report as selected (default: none)")
@click.option("--load", "-l", type=click.IntRange(0, MAX_DRIVE - 1), multiple=True,
              help="Report this drive's head as loaded (repeatable)")
@pass_context
def stat(ctx: Context, drive: Optional[int], load: tuple[int, ...]) -> None:
    """
    Send one STAT command and show the drive mount status.

    Example:
        fdclink stat
        fdclink stat --drive 1 --load 1
    """
    try:
        with connect(ctx) as session:
            select_drive(session, drive, load)
            status = session.stat()
    except Exception as e:
        handle_cli_exception(e, ctx.verbose)

    click.echo(f"Received 'STAT' response 0x{status.mount_bitmap:04X}")
    click.echo(format_mount_status(status.mount_bitmap))


# =============================================================================
# READ Command
# =============================================================================

@main.command()
@drive_argument
@track_argument
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Save the received track to this file")
@pass_context
def read(ctx: Context, drive: int, track: int, output: Optional[str]) -> None:
    """
    Read TRACK from DRIVE.

    The server streams the whole track followed by its checksum. Use
    --output to keep the raw track bytes.

    Example:
        fdclink read 0 12
        fdclink -g minidisk read 1 34 -o track34.bin
    """
    try:
        with connect(ctx) as session:
            session.drives.select(drive)
            result = session.read_track(track)
    except PartialTransferError as e:
        click.echo(f"Received {e.received} of {e.expected} bytes", err=True)
        raise SystemExit(ExitCode.LINK_ERROR)
    except Exception as e:
        handle_cli_exception(e, ctx.verbose, "Read")

    click.echo(f"Received {result.length} byte track (checksum 0x{result.checksum:04X})")

    if output:
        try:
            Path(output).write_bytes(result.data)
        except OSError as e:
            click.echo(f"Error writing file: {e}", err=True)
            raise SystemExit(ExitCode.INVALID_ARGS)
        click.echo(f"Saved to: {output}")


# =============================================================================
# WRIT Command
# =============================================================================

@main.command()
@drive_argument
@track_argument
@click.option("--input", "-i", "input_file", type=click.Path(exists=True, dir_okay=False),
              default=None, help="File holding the track data")
@click.option("--fill", type=str, default=f"0x{FORMAT_FILL_BYTE:02X}",
              help="Fill byte when no input file is given (default: 0xE5)")
@click.option("--pad", is_flag=True,
              help="Pad a short input file to the track length with the fill byte")
@pass_context
def write(
    ctx: Context,
    drive: int,
    track: int,
    input_file: Optional[str],
    fill: str,
    pad: bool,
) -> None:
    """
    Write TRACK on DRIVE.

    The track is only sent after the server has accepted the WRIT
    command. The final status comes back in a WSTA response.

    Example:
        fdclink write 0 12 -i track12.bin
        fdclink write 0 12 --fill 0x00
    """
    fill_byte = parse_byte(fill)
    data = b""

    if input_file:
        try:
            data = Path(input_file).read_bytes()
        except OSError as e:
            click.echo(f"Error reading file: {e}", err=True)
            raise SystemExit(ExitCode.INVALID_ARGS)
    else:
        pad = True

    try:
        with connect(ctx) as session:
            session.drives.select(drive)
            result = session.write_track(track, data, pad=pad, fill=fill_byte)
    except RemoteRefusalError as e:
        click.echo(f"Received {e.description} WRIT response", err=True)
        raise SystemExit(ExitCode.LINK_ERROR)
    except Exception as e:
        handle_cli_exception(e, ctx.verbose, "Write")

    click.echo(f"Received WSTA {result.description} response")
    if not result.ok:
        raise SystemExit(ExitCode.LINK_ERROR)


# =============================================================================
# Poll Command
# =============================================================================

@main.command()
@click.option("--interval", type=click.IntRange(min=int(MIN_POLL_INTERVAL * 1000)),
              default=None, help="Milliseconds between STAT commands (default: 100)")
@click.option("--count", "-n", type=click.IntRange(min=0), default=0,
              help="Number of polls, 0 to poll until interrupted")
@click.option("--drive", "-d", type=click.IntRange(0, 0xFE), default=None,
              help="Drive to report as selected (default: none)")
@click.option("--load", "-l", type=click.IntRange(0, MAX_DRIVE - 1), multiple=True,
              help="Report this drive's head as loaded (repeatable)")
@pass_context
def poll(
    ctx: Context,
    interval: Optional[int],
    count: int,
    drive: Optional[int],
    load: tuple[int, ...],
) -> None:
    """
    Issue STAT repeatedly, printing the mount status when it changes.

    Missing or mismatched responses are reported and polling continues;
    the next STAT is the retry.

    Example:
        fdclink poll
        fdclink poll --interval 500 --count 20
    """
    delay = interval / 1000 if interval is not None else ctx.config.poll_interval
    last_bitmap: Optional[int] = None
    polls = 0
    misses = 0

    try:
        with connect(ctx) as session:
            select_drive(session, drive, load)

            while count == 0 or polls < count:
                polls += 1
                try:
                    status = session.stat()
                except (LinkTimeoutError, TagMismatchError) as e:
                    misses += 1
                    click.echo(f"Poll {polls}: {e}")
                else:
                    if status.mount_bitmap != last_bitmap:
                        last_bitmap = status.mount_bitmap
                        click.echo(f"Poll {polls}: Received 'STAT' response 0x{last_bitmap:04X}")
                        click.echo(format_mount_status(last_bitmap))

                if count == 0 or polls < count:
                    time.sleep(delay)

    except KeyboardInterrupt:
        click.echo("\nStopped")
    except CommsError as e:
        handle_cli_exception(e, ctx.verbose)

    click.echo(f"{polls} poll(s), {misses} without a valid response")


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
