"""Runner that serialises session transitions and owns the transport."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, replace
from functools import cached_property
from typing import Any, Awaitable, Callable, TypeVar

import reactivex
from reactivex import operators as ops
from reactivex.subject import BehaviorSubject

from heartlink.peripheral.gatt import (BATTERY_LEVEL, BATTERY_SERVICE,
                                       HEART_RATE_MEASUREMENT,
                                       HEART_RATE_SERVICE)
from heartlink.peripheral.models import Peripheral
from heartlink.peripheral.permissions import PermissionGate, PermissionStatus
from heartlink.peripheral.registry import DeviceRegistry
from heartlink.session.events import (AppendReading, ArmScanTimer,
                                      BatteryLevelRead, CancelScanTimer,
                                      CheckPermission, ClearReadings, Connect,
                                      Connected, ConnectFailed,
                                      ConnectRequested, DiscoverServices,
                                      Disconnect, DisconnectCompleted,
                                      DisconnectFailed, DisconnectRequested,
                                      DiscoveryFailed, DismissErrorRequested,
                                      Effect, EffectAborted, Event,
                                      ForgetPeripheral,
                                      NotificationFailed, NotificationReceived,
                                      NotificationsEnabled, ObservePeripheral,
                                      PermissionResolved,
                                      ReadBatteryLevel, ReconnectDue,
                                      ReleaseConnection, ReportDecodeFailure,
                                      ResetRegistry, ScanFailed, ScanResult,
                                      ScanTimedOut, ScheduleReconnect,
                                      ServicesDiscovered, StartScan,
                                      StartScanRequested, StopScan,
                                      SubscribeHeartRate, UnsolicitedDisconnect,
                                      UnsubscribeHeartRate)
from heartlink.session.readings import ReadingsLog
from heartlink.session.state import Session, SessionPolicy, SessionState
from heartlink.session.transitions import transition
from heartlink.transport.base import Connection, Transport
from heartlink.transport.errors import TransportError
from heartlink.utilities.env import Configuration
from heartlink.utilities.logging import get_logger
from heartlink.utilities.logging_control import get_logging_controller

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class MonitorSnapshot:
    """What the presentation layer renders."""

    devices: tuple[Peripheral, ...]
    session: Session
    readings: tuple[str, ...]


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class SessionStateMachine:
    """Owns the single BLE session.

    User commands and transport callbacks are posted to one queue. A single
    consumer task applies :func:`transition` to each event and then awaits the
    effects it returned, in order. Events produced by those effects are handled
    before the next queued event, so a connect, discover and subscribe chain
    never interleaves with another transition.
    """

    def __init__(
        self,
        transport: Transport,
        permission_gate: PermissionGate,
        *,
        registry: DeviceRegistry | None = None,
        readings: ReadingsLog | None = None,
        policy: SessionPolicy | None = None,
        scan_timeout_seconds: float | None = None,
        connect_timeout_seconds: float | None = None,
        scan_service_filter: bool | None = None,
    ) -> None:
        self._transport = transport
        self._permission_gate = permission_gate
        self._registry = registry if registry is not None else DeviceRegistry()
        self._readings = (
            readings
            if readings is not None
            else ReadingsLog(Configuration.readings_capacity())
        )
        self._policy = policy if policy is not None else SessionPolicy.from_configuration()
        self._scan_timeout = (
            scan_timeout_seconds
            if scan_timeout_seconds is not None
            else Configuration.scan_timeout_seconds()
        )
        self._connect_timeout = (
            connect_timeout_seconds
            if connect_timeout_seconds is not None
            else Configuration.connect_timeout_seconds()
        )
        filter_scan = (
            scan_service_filter
            if scan_service_filter is not None
            else Configuration.scan_service_filter()
        )
        self._service_filter = [HEART_RATE_SERVICE] if filter_scan else None

        self._session = Session()
        self._connection: Connection | None = None
        self._connection_generation = 0
        self._frames_received = 0

        self._loop: asyncio.AbstractEventLoop | None = None
        self._events: asyncio.Queue[Event] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._scan_timer: asyncio.Task[None] | None = None
        self._failure: Exception | None = None

        self._snapshots = BehaviorSubject(self.snapshot())
        self._logger = get_logger(f"{__name__}.{type(self).__name__}")
        self._log_controller = get_logging_controller()

    # ---------- lifecycle ----------

    async def start(self) -> None:
        if self._consumer is not None:
            raise RuntimeError("session state machine already started")
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()
        self._consumer = self._loop.create_task(
            self._consume(), name="SessionStateMachine consumer"
        )

    async def stop(self) -> None:
        """Stop consuming events and release the radio."""

        self._cancel_scan_timer()
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

        if self._session.state is SessionState.SCANNING:
            await self._best_effort("stop scan", self._transport.stop_scan())
        connection, self._connection = self._connection, None
        if connection is not None:
            await self._best_effort("disconnect", self._transport.disconnect(connection))

        self._snapshots.on_completed()
        if self._failure is not None:
            raise self._failure

    async def __aenter__(self) -> SessionStateMachine:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ---------- presentation boundary ----------

    def start_scan(self) -> None:
        self.post(StartScanRequested())

    def connect_to(self, peripheral_id: str) -> None:
        self.post(ConnectRequested(peripheral_id))

    def disconnect(self) -> None:
        self.post(DisconnectRequested())

    def dismiss_error(self) -> None:
        self.post(DismissErrorRequested())

    @property
    def session(self) -> Session:
        return self._session

    @property
    def frames_received(self) -> int:
        """Notifications handled on the current link."""

        return self._frames_received

    def snapshot(self) -> MonitorSnapshot:
        return MonitorSnapshot(
            devices=self._registry.list(),
            session=self._session,
            readings=self._readings.entries(),
        )

    @cached_property
    def observe(self) -> reactivex.Observable[MonitorSnapshot]:
        return self._snapshots.pipe(ops.distinct_until_changed())

    async def wait_until(
        self,
        predicate: Callable[[MonitorSnapshot], bool],
        timeout: float | None = None,
    ) -> MonitorSnapshot:
        """Resolve with the first published snapshot matching ``predicate``."""

        loop = asyncio.get_running_loop()
        matched: asyncio.Future[MonitorSnapshot] = loop.create_future()

        def on_next(snapshot: MonitorSnapshot) -> None:
            if not matched.done() and predicate(snapshot):
                matched.set_result(snapshot)

        subscription = self.observe.subscribe(on_next)
        try:
            return await asyncio.wait_for(matched, timeout)
        finally:
            subscription.dispose()

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""

        if self._events is None:
            raise RuntimeError("session state machine not started")
        await self._events.join()

    # ---------- event loop ----------

    def post(self, event: Event) -> None:
        """Queue ``event``; safe to call from any thread."""

        if self._loop is None or self._events is None:
            raise RuntimeError("session state machine not started")
        if self._on_loop_thread():
            self._events.put_nowait(event)
        else:
            self._loop.call_soon_threadsafe(self._events.put_nowait, event)

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    async def _consume(self) -> None:
        assert self._events is not None
        while True:
            event = await self._events.get()
            try:
                await self._dispatch(event)
            except Exception as exc:
                self._logger.exception("Failed to handle %s", type(event).__name__)
                self._record_failure(exc)
            finally:
                self._events.task_done()

    def _record_failure(self, exc: Exception) -> None:
        if self._failure is None:
            self._failure = exc

    async def _dispatch(self, event: Event) -> None:
        pending: deque[Event] = deque([event])
        while pending:
            current = self._resolve(pending.popleft())
            previous = self._session.state
            self._session, effects = transition(self._session, current, self._policy)
            if self._session.state is not previous:
                self._logger.info(
                    "Session %s -> %s on %s",
                    previous,
                    self._session.state,
                    type(current).__name__,
                )
            self._publish()
            for effect in effects:
                try:
                    pending.extend(await self._execute(effect))
                except Exception as exc:
                    if isinstance(current, EffectAborted):
                        raise
                    self._logger.exception("Effect %s failed", type(effect).__name__)
                    # The rest of the chain is dropped.
                    pending = deque([EffectAborted(_describe(exc))])
                    break
            if effects:
                self._publish()

    def _resolve(self, event: Event) -> Event:
        """Fill in event fields that depend on runner owned state."""

        match event:
            case ConnectRequested(peripheral_id=peripheral_id, peripheral=None):
                return replace(event, peripheral=self._registry.get(peripheral_id))
            case NotificationReceived(connection_generation=generation):
                if (
                    generation == self._connection_generation
                    and self._session.state is SessionState.SUBSCRIBED
                ):
                    self._frames_received += 1
                    self._log_controller.log(
                        key="session.notifications",
                        logger=self._logger,
                        level=logging.INFO,
                        msg="Heart rate stream frames=%s",
                        args=(self._frames_received,),
                    )
        return event

    def _publish(self) -> None:
        self._snapshots.on_next(self.snapshot())

    # ---------- effects ----------

    async def _execute(self, effect: Effect) -> list[Event]:
        match effect:
            case CheckPermission():
                status = await self._permission_gate.check()
                return [PermissionResolved(granted=status is PermissionStatus.GRANTED)]
            case ResetRegistry():
                self._registry.reset()
            case ObservePeripheral(peripheral=peripheral):
                self._registry.observe(peripheral)
            case ForgetPeripheral(peripheral_id=peripheral_id):
                self._registry.discard(peripheral_id)
            case StartScan(scan_generation=generation):
                return await self._start_scan(generation)
            case StopScan():
                await self._best_effort("stop scan", self._transport.stop_scan())
            case ArmScanTimer(scan_generation=generation):
                self._arm_scan_timer(generation)
            case CancelScanTimer():
                self._cancel_scan_timer()
            case Connect(peripheral_id=peripheral_id, connection_generation=generation):
                return await self._connect(peripheral_id, generation)
            case DiscoverServices(connection_generation=generation):
                return await self._discover(generation)
            case SubscribeHeartRate(connection_generation=generation):
                return await self._subscribe(generation)
            case ReadBatteryLevel(connection_generation=generation):
                return await self._read_battery(generation)
            case UnsubscribeHeartRate(connection_generation=generation):
                connection = self._current(generation)
                if connection is not None:
                    await self._best_effort(
                        "unsubscribe",
                        self._transport.unsubscribe_notifications(
                            connection, HEART_RATE_SERVICE, HEART_RATE_MEASUREMENT
                        ),
                    )
            case Disconnect(connection_generation=generation):
                return await self._disconnect(generation)
            case ReleaseConnection(connection_generation=generation):
                if self._current(generation) is not None:
                    self._connection = None
            case ScheduleReconnect(connection_generation=generation):
                return [ReconnectDue(generation)]
            case AppendReading(entry=entry):
                self._readings.push(entry)
            case ClearReadings():
                self._readings.clear()
            case ReportDecodeFailure(reason=reason, data=data):
                self._log_controller.log(
                    key="session.decode",
                    logger=self._logger,
                    level=logging.WARNING,
                    msg="Dropped frame %s: %s",
                    args=(data.hex(), reason),
                )
        return []

    def _current(self, generation: int) -> Connection | None:
        if self._connection_generation != generation:
            return None
        return self._connection

    async def _bounded(self, operation: Awaitable[T]) -> T:
        if self._connect_timeout is None:
            return await operation
        return await asyncio.wait_for(operation, self._connect_timeout)

    async def _best_effort(self, what: str, operation: Awaitable[Any]) -> None:
        try:
            await operation
        except TransportError as exc:
            self._logger.warning("Failed to %s: %s", what, _describe(exc))

    async def _start_scan(self, generation: int) -> list[Event]:
        # Results reported while start_scan is still running on this loop are
        # handled as follow-ups, ahead of commands queued behind the scan.
        immediate: list[Event] = []
        starting = True

        def on_scan(error: Exception | None, peripheral: Peripheral | None) -> None:
            if error is not None:
                event: Event = ScanFailed(generation, _describe(error))
            elif peripheral is not None:
                event = ScanResult(generation, peripheral)
            else:
                return
            if starting and self._on_loop_thread():
                immediate.append(event)
            else:
                self.post(event)

        try:
            await self._transport.start_scan(self._service_filter, on_scan)
        except TransportError as exc:
            return [ScanFailed(generation, _describe(exc))]
        finally:
            starting = False
        return immediate

    def _arm_scan_timer(self, generation: int) -> None:
        self._cancel_scan_timer()

        async def expire() -> None:
            await asyncio.sleep(self._scan_timeout)
            self.post(ScanTimedOut(generation))

        assert self._loop is not None
        self._scan_timer = self._loop.create_task(expire(), name="scan timeout")

    def _cancel_scan_timer(self) -> None:
        timer, self._scan_timer = self._scan_timer, None
        if timer is not None and not timer.done():
            timer.cancel()

    async def _connect(self, peripheral_id: str, generation: int) -> list[Event]:
        self._logger.info("Connecting to %s", peripheral_id)
        try:
            connection = await self._bounded(self._transport.connect(peripheral_id))
        except (TransportError, TimeoutError) as exc:
            return [ConnectFailed(generation, _describe(exc))]

        self._connection = connection
        self._connection_generation = generation
        self._frames_received = 0

        def on_disconnect(dropped_id: str) -> None:
            self.post(UnsolicitedDisconnect(generation, dropped_id))

        self._transport.on_unsolicited_disconnect(connection, on_disconnect)
        return [Connected(generation)]

    async def _discover(self, generation: int) -> list[Event]:
        connection = self._current(generation)
        if connection is None:
            return []
        try:
            await self._bounded(self._transport.discover_services(connection))
        except (TransportError, TimeoutError) as exc:
            return [DiscoveryFailed(generation, _describe(exc))]
        return [ServicesDiscovered(generation)]

    async def _subscribe(self, generation: int) -> list[Event]:
        connection = self._current(generation)
        if connection is None:
            return []

        def on_frame(error: Exception | None, data: bytes | None) -> None:
            if error is not None:
                self.post(NotificationFailed(generation, _describe(error)))
                return
            if data is not None:
                self.post(NotificationReceived(generation, bytes(data)))

        try:
            await self._bounded(
                self._transport.subscribe_notifications(
                    connection, HEART_RATE_SERVICE, HEART_RATE_MEASUREMENT, on_frame
                )
            )
        except (TransportError, TimeoutError) as exc:
            return [DiscoveryFailed(generation, f"subscribe failed: {_describe(exc)}")]
        return [NotificationsEnabled(generation)]

    async def _read_battery(self, generation: int) -> list[Event]:
        connection = self._current(generation)
        if connection is None:
            return []
        try:
            data = await self._transport.read_characteristic(
                connection, BATTERY_SERVICE, BATTERY_LEVEL
            )
        except TransportError as exc:
            # Battery service is optional on heart rate straps.
            self._logger.info("Battery level unavailable: %s", _describe(exc))
            return []
        return [BatteryLevelRead(generation, data)]

    async def _disconnect(self, generation: int) -> list[Event]:
        connection = self._current(generation)
        if connection is None:
            return [DisconnectCompleted(generation)]
        self._connection = None
        try:
            await self._transport.disconnect(connection)
        except TransportError as exc:
            return [DisconnectFailed(generation, _describe(exc))]
        return [DisconnectCompleted(generation)]
