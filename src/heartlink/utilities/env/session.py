from heartlink.utilities.env.parsing import (_env_float, _env_int,
                                             _env_optional_float,
                                             _env_optional_int)

DEFAULT_SCAN_TIMEOUT_SECONDS = 10.0
DEFAULT_READINGS_CAPACITY = 10


class SessionConfiguration:
    @classmethod
    def scan_timeout_seconds(cls) -> float:
        timeout = _env_float(
            "HEARTLINK_SCAN_TIMEOUT_SECONDS",
            default=DEFAULT_SCAN_TIMEOUT_SECONDS,
            minimum=0.0,
        )
        if timeout == 0.0:
            raise ValueError("HEARTLINK_SCAN_TIMEOUT_SECONDS must be positive")
        return timeout

    @classmethod
    def readings_capacity(cls) -> int:
        return _env_int(
            "HEARTLINK_READINGS_CAPACITY",
            default=DEFAULT_READINGS_CAPACITY,
            minimum=1,
        )

    @classmethod
    def connect_timeout_seconds(cls) -> float | None:
        """Upper bound for connect, discovery and subscribe calls.

        Unset means the transport's own timeout applies.
        """

        return _env_optional_float("HEARTLINK_CONNECT_TIMEOUT_SECONDS", minimum=0.0)

    @classmethod
    def reconnect_limit(cls) -> int | None:
        """Consecutive automatic reconnects allowed between user connects."""

        return _env_optional_int("HEARTLINK_RECONNECT_LIMIT", minimum=0)
