"""Wiring shared by the CLI commands."""

from __future__ import annotations

from heartlink.peripheral.permissions import (PermissionGate,
                                              PlatformPermissionGate,
                                              StaticPermissionGate)
from heartlink.session.machine import MonitorSnapshot, SessionStateMachine
from heartlink.session.state import SessionState
from heartlink.transport.base import Transport
from heartlink.transport.simulated import DEMO_DEVICES, SimulatedTransport
from heartlink.utilities.env import Configuration, TransportBackend


def build_transport(simulate: bool) -> Transport:
    if simulate or Configuration.transport_backend() is TransportBackend.SIMULATED:
        return SimulatedTransport(DEMO_DEVICES)

    # Imported lazily so ``--simulate`` works on hosts without a BLE backend.
    from heartlink.transport.bleak_transport import BleakTransport

    return BleakTransport()


def build_permission_gate(transport: Transport) -> PermissionGate:
    if isinstance(transport, SimulatedTransport):
        return StaticPermissionGate(granted=True)
    return PlatformPermissionGate()


def build_state_machine(transport: Transport) -> SessionStateMachine:
    return SessionStateMachine(transport, build_permission_gate(transport))


def scan_finished(snapshot: MonitorSnapshot) -> bool:
    """True once a scan window has run and closed, or could not start."""

    session = snapshot.session
    if session.last_error is not None:
        return True
    return session.scan_generation > 0 and session.state is SessionState.IDLE


def describe(snapshot: MonitorSnapshot) -> str:
    session = snapshot.session
    parts = [f"[{session.state}]"]
    if session.peripheral is not None:
        parts.append(session.peripheral.label)
    if session.heart_rate is not None:
        parts.append(f"{session.heart_rate} bpm")
    if session.battery_level is not None:
        parts.append(f"battery {session.battery_level}%")
    if session.last_error is not None:
        parts.append(f"error: {session.last_error.message}")
    return " ".join(parts)
