"""Byte layouts for the Heart Rate Measurement and Battery Level characteristics."""

from __future__ import annotations

from dataclasses import dataclass, field

FLAG_UINT16_BPM = 0x01
FLAG_SENSOR_CONTACT_DETECTED = 0x02
FLAG_SENSOR_CONTACT_SUPPORTED = 0x04
FLAG_ENERGY_EXPENDED = 0x08
FLAG_RR_INTERVALS = 0x10

# RR intervals are transmitted with 1/1024 second resolution.
RR_UNITS_PER_SECOND = 1024


@dataclass(frozen=True, slots=True)
class HeartRateMeasurement:
    """Decoded Heart Rate Measurement (0x2A37) frame."""

    bpm: int
    sensor_contact_supported: bool = False
    sensor_contact_detected: bool = False
    energy_expended_kjoules: int | None = None
    rr_intervals_ms: tuple[float, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class DecodeFailure:
    """A frame that could not be decoded.

    Returned instead of raised so a single malformed notification never breaks
    the stream that delivered it.
    """

    reason: str
    data: bytes = b""


def decode_heart_rate(data: bytes | bytearray) -> HeartRateMeasurement | DecodeFailure:
    """Decode a Heart Rate Measurement frame.

    Bit 0 of the flags byte selects the width of the bpm field: a single byte
    at offset 1, or a little endian ``uint16`` at offsets 1-2.
    """

    raw = bytes(data)
    if not raw:
        return DecodeFailure("empty heart rate frame", raw)

    flags = raw[0]
    if flags & FLAG_UINT16_BPM:
        if len(raw) < 3:
            return DecodeFailure(
                f"uint16 heart rate needs 3 bytes, got {len(raw)}", raw
            )
        bpm = int.from_bytes(raw[1:3], "little")
        offset = 3
    else:
        if len(raw) < 2:
            return DecodeFailure(
                f"uint8 heart rate needs 2 bytes, got {len(raw)}", raw
            )
        bpm = raw[1]
        offset = 2

    energy: int | None = None
    if flags & FLAG_ENERGY_EXPENDED:
        if len(raw) < offset + 2:
            return DecodeFailure("energy expended flagged but missing", raw)
        energy = int.from_bytes(raw[offset : offset + 2], "little")
        offset += 2

    rr_intervals: list[float] = []
    if flags & FLAG_RR_INTERVALS:
        # A dangling odd byte cannot form an interval and is dropped.
        while offset + 2 <= len(raw):
            rr_raw = int.from_bytes(raw[offset : offset + 2], "little")
            rr_intervals.append(rr_raw * 1000.0 / RR_UNITS_PER_SECOND)
            offset += 2

    return HeartRateMeasurement(
        bpm=bpm,
        sensor_contact_supported=bool(flags & FLAG_SENSOR_CONTACT_SUPPORTED),
        sensor_contact_detected=bool(flags & FLAG_SENSOR_CONTACT_DETECTED),
        energy_expended_kjoules=energy,
        rr_intervals_ms=tuple(rr_intervals),
    )


def encode_heart_rate(measurement: HeartRateMeasurement) -> bytes:
    """Encode ``measurement`` using the narrowest bpm field that fits."""

    if not 0 <= measurement.bpm <= 0xFFFF:
        raise ValueError(f"bpm out of range: {measurement.bpm}")

    flags = 0
    body = bytearray()
    if measurement.bpm > 0xFF:
        flags |= FLAG_UINT16_BPM
        body += measurement.bpm.to_bytes(2, "little")
    else:
        body.append(measurement.bpm)

    if measurement.sensor_contact_supported:
        flags |= FLAG_SENSOR_CONTACT_SUPPORTED
    if measurement.sensor_contact_detected:
        flags |= FLAG_SENSOR_CONTACT_DETECTED

    if measurement.energy_expended_kjoules is not None:
        flags |= FLAG_ENERGY_EXPENDED
        body += measurement.energy_expended_kjoules.to_bytes(2, "little")

    if measurement.rr_intervals_ms:
        flags |= FLAG_RR_INTERVALS
        for rr_ms in measurement.rr_intervals_ms:
            rr_raw = round(rr_ms * RR_UNITS_PER_SECOND / 1000.0)
            body += rr_raw.to_bytes(2, "little")

    return bytes([flags]) + bytes(body)


def decode_battery_level(data: bytes | bytearray) -> int | DecodeFailure:
    """Decode a Battery Level (0x2A19) value.

    The device reported percentage is returned as-is, even above 100.
    """

    raw = bytes(data)
    if not raw:
        return DecodeFailure("empty battery level", raw)
    return raw[0]


def encode_battery_level(level: int) -> bytes:
    if not 0 <= level <= 0xFF:
        raise ValueError(f"battery level out of range: {level}")
    return bytes([level])
