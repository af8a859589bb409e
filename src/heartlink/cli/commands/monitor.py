import asyncio
from typing import Annotated, Optional

import typer

from heartlink.cli.runtime import (build_state_machine, build_transport,
                                   describe, scan_finished)
from heartlink.session.machine import MonitorSnapshot
from heartlink.session.state import SessionState
from heartlink.transport.simulated import (SimulatedTransport,
                                           resting_heart_rate)
from heartlink.utilities.logging import get_logger

logger = get_logger(__name__)


def _link_settled(snapshot: MonitorSnapshot) -> bool:
    state = snapshot.session.state
    return state is SessionState.SUBSCRIBED or (
        state is SessionState.IDLE and snapshot.session.last_error is not None
    )


async def _monitor(device_id: str | None, simulate: bool, duration: float | None) -> int:
    transport = build_transport(simulate)
    machine = build_state_machine(transport)
    background: list[asyncio.Task[None]] = []

    async with machine:
        machine.start_scan()

        def target_found(snapshot: MonitorSnapshot) -> bool:
            ids = [device.id for device in snapshot.devices]
            return device_id in ids if device_id else bool(ids)

        snapshot = await machine.wait_until(
            lambda s: target_found(s) or scan_finished(s)
        )
        if not target_found(snapshot):
            logger.error("No matching heart rate monitor found")
            return 1

        target = device_id or snapshot.devices[0].id
        if isinstance(transport, SimulatedTransport):
            background.append(
                asyncio.create_task(transport.heartbeat(target, resting_heart_rate()))
            )

        subscription = machine.observe.subscribe(
            lambda s: typer.echo(describe(s))
        )
        try:
            machine.connect_to(target)
            settled = await machine.wait_until(_link_settled)
            if settled.session.state is not SessionState.SUBSCRIBED:
                return 1
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            subscription.dispose()
            for task in background:
                task.cancel()

        readings = machine.snapshot().readings
        machine.disconnect()
        await machine.drain()

    typer.echo("Recent readings:")
    for entry in readings:
        typer.echo(f"  {entry}")
    return 0


def monitor_command(
    device_id: Annotated[Optional[str], typer.Argument(help="Peripheral id to connect to.")] = None,
    simulate: bool = typer.Option(
        False, "--simulate", help="Use the in-memory simulated transport."
    ),
    duration: Optional[float] = typer.Option(
        None, "--duration", min=0.0, help="Stop after this many seconds."
    ),
) -> None:
    """Connect to a heart rate monitor and stream readings."""

    try:
        code = asyncio.run(_monitor(device_id, simulate, duration))
    except KeyboardInterrupt:
        code = 0
    if code:
        raise typer.Exit(code=code)
