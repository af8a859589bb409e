"""BLE heart rate monitor client."""

__version__ = "0.1.0"
