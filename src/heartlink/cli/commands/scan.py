import asyncio

import typer

from heartlink.cli.runtime import (build_state_machine, build_transport,
                                   scan_finished)
from heartlink.utilities.logging import get_logger

logger = get_logger(__name__)


async def _scan(simulate: bool) -> int:
    machine = build_state_machine(build_transport(simulate))
    async with machine:
        machine.start_scan()
        snapshot = await machine.wait_until(scan_finished)

    if snapshot.session.last_error is not None:
        logger.error("Scan failed: %s", snapshot.session.last_error.message)
        return 1

    typer.echo(f"Found {len(snapshot.devices)} device(s).")
    for device in snapshot.devices:
        rssi = "?" if device.rssi is None else device.rssi
        typer.echo(f"- {device.display_name} ({device.id}) rssi={rssi}")
    return 0


def scan_command(
    simulate: bool = typer.Option(
        False, "--simulate", help="Use the in-memory simulated transport."
    ),
) -> None:
    """Run one scan window and list named peripherals."""

    code = asyncio.run(_scan(simulate))
    if code:
        raise typer.Exit(code=code)
