"""Pure transition function for the BLE session lifecycle.

``transition(session, event, policy)`` returns the next session value and the
effects the runner has to carry out. Events that do not apply to the current
state, or that carry a scan/connection generation other than the current one,
leave the session untouched and produce no effects.
"""

from __future__ import annotations

from heartlink.peripheral.codec import (DecodeFailure, decode_battery_level,
                                        decode_heart_rate)
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
                                      NotificationsEnabled,
                                      ObservePeripheral, PermissionResolved,
                                      ReadBatteryLevel, ReconnectDue,
                                      ReleaseConnection, ReportDecodeFailure,
                                      ResetRegistry, ScanFailed, ScanResult,
                                      ScanTimedOut, ScheduleReconnect,
                                      ServicesDiscovered, StartScan,
                                      StartScanRequested, StopScan,
                                      SubscribeHeartRate, UnsolicitedDisconnect,
                                      UnsubscribeHeartRate)
from heartlink.session.readings import format_reading
from heartlink.session.state import (ErrorKind, ErrorRecord, Session,
                                     SessionPolicy, SessionState)
from heartlink.utilities.logging import get_logger

logger = get_logger(__name__)

Transition = tuple[Session, tuple[Effect, ...]]

DEFAULT_POLICY = SessionPolicy()


def transition(
    session: Session, event: Event, policy: SessionPolicy = DEFAULT_POLICY
) -> Transition:
    match event:
        case DismissErrorRequested():
            return session.evolve(last_error=None), ()
        case EffectAborted(reason=reason):
            return _effect_aborted(session, reason)
        case StartScanRequested():
            return _request_scan(session)
        case PermissionResolved(granted=granted):
            return _permission_resolved(session, granted)
        case ScanResult() | ScanFailed() | ScanTimedOut():
            return _scan_event(session, event)
        case ConnectRequested():
            return _request_connect(session, event)
        case DisconnectRequested():
            return _request_disconnect(session)
        case _:
            return _link_event(session, event, policy)


def _failed(session: Session, kind: ErrorKind, message: str) -> Session:
    return session.evolve(last_error=ErrorRecord.now(kind, message))


def _request_scan(session: Session) -> Transition:
    if session.state is not SessionState.IDLE:
        logger.warning("Scan rejected while %s", session.state)
        return session, ()
    return session, (CheckPermission(),)


def _permission_resolved(session: Session, granted: bool) -> Transition:
    if session.state is not SessionState.IDLE:
        return session, ()
    if not granted:
        return _failed(session, ErrorKind.PERMISSION_DENIED, "Bluetooth permission denied"), ()

    generation = session.scan_generation + 1
    scanning = session.evolve(
        state=SessionState.SCANNING,
        scan_generation=generation,
        last_error=None,
    )
    return scanning, (ResetRegistry(), StartScan(generation), ArmScanTimer(generation))


def _scan_event(session: Session, event: ScanResult | ScanFailed | ScanTimedOut) -> Transition:
    if (
        session.state is not SessionState.SCANNING
        or event.scan_generation != session.scan_generation
    ):
        return session, ()

    match event:
        case ScanResult(peripheral=peripheral):
            return session, (ObservePeripheral(peripheral),)
        case ScanFailed(reason=reason):
            idle = _failed(session.reset(), ErrorKind.SCAN_FAILURE, f"Scan error: {reason}")
            return idle, (CancelScanTimer(), StopScan())
        case ScanTimedOut():
            logger.info("Scan window elapsed")
            return session.reset(), (StopScan(),)
    return session, ()


def _request_connect(session: Session, event: ConnectRequested) -> Transition:
    if session.is_active:
        logger.warning(
            "Connect to %s rejected while %s", event.peripheral_id, session.state
        )
        return session, ()
    if event.peripheral is None:
        return _failed(
            session,
            ErrorKind.CONNECT_FAILURE,
            f"Unknown peripheral {event.peripheral_id}",
        ), ()

    effects: tuple[Effect, ...] = ()
    if session.state is SessionState.SCANNING:
        # The radio cannot scan and connect at once.
        effects = (CancelScanTimer(), StopScan())

    generation = session.connection_generation + 1
    connecting = session.evolve(
        state=SessionState.CONNECTING,
        peripheral=event.peripheral,
        heart_rate=None,
        battery_level=None,
        connection_generation=generation,
        reconnect_count=0,
    )
    return connecting, effects + (Connect(event.peripheral.id, generation),)


def _request_disconnect(session: Session) -> Transition:
    if session.state is not SessionState.SUBSCRIBED:
        logger.warning("Disconnect ignored while %s", session.state)
        return session, ()

    generation = session.connection_generation
    disconnecting = session.evolve(
        state=SessionState.DISCONNECTING,
        heart_rate=None,
        battery_level=None,
    )
    return disconnecting, (
        ClearReadings(),
        UnsubscribeHeartRate(generation),
        Disconnect(generation),
    )


_EXPECTED_STATES: dict[type, tuple[SessionState, ...]] = {
    Connected: (SessionState.CONNECTING,),
    ConnectFailed: (SessionState.CONNECTING,),
    ServicesDiscovered: (SessionState.DISCOVERING,),
    # Subscribing happens after the session entered SUBSCRIBED.
    DiscoveryFailed: (SessionState.DISCOVERING, SessionState.SUBSCRIBED),
    NotificationsEnabled: (SessionState.SUBSCRIBED,),
    NotificationReceived: (SessionState.SUBSCRIBED,),
    NotificationFailed: (SessionState.SUBSCRIBED,),
    BatteryLevelRead: (SessionState.SUBSCRIBED,),
    UnsolicitedDisconnect: (SessionState.SUBSCRIBED,),
    ReconnectDue: (SessionState.RECONNECTING,),
    DisconnectCompleted: (SessionState.DISCONNECTING,),
    DisconnectFailed: (SessionState.DISCONNECTING,),
}


def _link_event(session: Session, event: Event, policy: SessionPolicy) -> Transition:
    expected = _EXPECTED_STATES.get(type(event))
    generation = getattr(event, "connection_generation", None)
    if (
        expected is None
        or session.state not in expected
        or generation != session.connection_generation
    ):
        logger.debug("Ignoring %s while %s", type(event).__name__, session.state)
        return session, ()

    match event:
        case Connected():
            assert session.peripheral is not None
            discovering = session.evolve(state=SessionState.DISCOVERING)
            return discovering, (
                ForgetPeripheral(session.peripheral.id),
                DiscoverServices(generation),
            )

        case ConnectFailed(reason=reason):
            # No retry here: a failed automatic reconnect ends the chain too.
            prefix = "Reconnect failed" if session.reconnect_count else "Connection failed"
            idle = _failed(session.reset(), ErrorKind.CONNECT_FAILURE, f"{prefix}: {reason}")
            return idle, (ClearReadings(),)

        case ServicesDiscovered():
            subscribed = session.evolve(state=SessionState.SUBSCRIBED)
            return subscribed, (SubscribeHeartRate(generation),)

        case NotificationsEnabled():
            # Battery is read once notifications are flowing.
            return session, (ReadBatteryLevel(generation),)

        case DiscoveryFailed(reason=reason):
            tearing_down = _failed(
                session.evolve(
                    state=SessionState.DISCONNECTING,
                    heart_rate=None,
                    battery_level=None,
                ),
                ErrorKind.DISCOVERY_FAILURE,
                f"Service discovery failed: {reason}",
            )
            return tearing_down, (ClearReadings(), Disconnect(generation))

        case NotificationReceived(data=data, received_at=received_at):
            measurement = decode_heart_rate(data)
            if isinstance(measurement, DecodeFailure):
                return session, (ReportDecodeFailure(measurement.reason, data),)
            updated = session.evolve(heart_rate=measurement.bpm)
            return updated, (AppendReading(format_reading(measurement.bpm, received_at)),)

        case NotificationFailed(reason=reason):
            return _failed(session, ErrorKind.NOTIFICATION_FAILURE, f"Notification error: {reason}"), ()

        case BatteryLevelRead(data=data):
            level = decode_battery_level(data)
            if isinstance(level, DecodeFailure):
                return session, (ReportDecodeFailure(level.reason, data),)
            return session.evolve(battery_level=level), ()

        case UnsolicitedDisconnect(peripheral_id=peripheral_id):
            limit = policy.reconnect_limit
            if limit is not None and session.reconnect_count >= limit:
                idle = _failed(
                    session.reset(),
                    ErrorKind.CONNECT_FAILURE,
                    f"Connection to {peripheral_id} lost; reconnect limit reached",
                )
                return idle, (ReleaseConnection(generation), ClearReadings())

            logger.info("Link to %s dropped, reconnecting", peripheral_id)
            reconnecting = session.evolve(
                state=SessionState.RECONNECTING,
                reconnect_count=session.reconnect_count + 1,
            )
            return reconnecting, (ReleaseConnection(generation), ScheduleReconnect(generation))

        case ReconnectDue():
            assert session.peripheral is not None
            next_generation = generation + 1
            connecting = session.evolve(
                state=SessionState.CONNECTING,
                connection_generation=next_generation,
            )
            return connecting, (Connect(session.peripheral.id, next_generation),)

        case DisconnectCompleted():
            return session.reset(), ()

        case DisconnectFailed(reason=reason):
            return _failed(session.reset(), ErrorKind.DISCONNECT_FAILURE, f"Disconnect failed: {reason}"), ()

    return session, ()


_ABORT_OUTCOMES: dict[SessionState, tuple[ErrorKind, str]] = {
    SessionState.IDLE: (ErrorKind.PERMISSION_DENIED, "Permission check failed"),
    SessionState.SCANNING: (ErrorKind.SCAN_FAILURE, "Scan error"),
    SessionState.CONNECTING: (ErrorKind.CONNECT_FAILURE, "Connection failed"),
    SessionState.RECONNECTING: (ErrorKind.CONNECT_FAILURE, "Reconnect failed"),
    SessionState.DISCOVERING: (ErrorKind.DISCOVERY_FAILURE, "Service discovery failed"),
    SessionState.SUBSCRIBED: (ErrorKind.NOTIFICATION_FAILURE, "Notification error"),
    SessionState.DISCONNECTING: (ErrorKind.DISCONNECT_FAILURE, "Disconnect failed"),
}


def _effect_aborted(session: Session, reason: str) -> Transition:
    """Land in IDLE after the runner gave up on an effect chain.

    Whatever the aborted chain left behind (a running scan, a half open link)
    is released so the next command starts from a clean radio.
    """

    kind, prefix = _ABORT_OUTCOMES[session.state]
    idle = _failed(session.reset(), kind, f"{prefix}: {reason}")
    match session.state:
        case SessionState.SCANNING:
            return idle, (CancelScanTimer(), StopScan())
        case SessionState.IDLE:
            return idle, ()
    return idle, (ClearReadings(), Disconnect(session.connection_generation))
