from heartlink.peripheral.codec import DecodeFailure as DecodeFailure
from heartlink.peripheral.codec import \
    HeartRateMeasurement as HeartRateMeasurement
from heartlink.peripheral.codec import \
    decode_battery_level as decode_battery_level
from heartlink.peripheral.codec import decode_heart_rate as decode_heart_rate
from heartlink.peripheral.codec import \
    encode_battery_level as encode_battery_level
from heartlink.peripheral.codec import encode_heart_rate as encode_heart_rate
from heartlink.peripheral.models import Peripheral as Peripheral
from heartlink.peripheral.permissions import PermissionGate as PermissionGate
from heartlink.peripheral.permissions import \
    PermissionStatus as PermissionStatus
from heartlink.peripheral.permissions import \
    PlatformPermissionGate as PlatformPermissionGate
from heartlink.peripheral.permissions import \
    StaticPermissionGate as StaticPermissionGate
from heartlink.peripheral.registry import DeviceRegistry as DeviceRegistry
