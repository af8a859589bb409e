"""Sampling for log statements emitted on hot paths.

A heart rate strap notifies roughly once per second and a scan can report the
same advertisement many times a second, so per-event logging is throttled per
key. Rules come from ``HEARTLINK_LOG_RULES``, a comma separated list of
``key=interval[:LEVEL[:FALLBACK]]`` entries, for example
``session.notifications=5:INFO:none,session.decode=none:WARNING``.
"""

from __future__ import annotations

import logging
import os
import re
import threading
import time
from dataclasses import dataclass
from functools import cache
from typing import Callable, Sequence

LOG_RULES_ENV_VAR = "HEARTLINK_LOG_RULES"
DEFAULT_INTERVAL_ENV_VAR = "HEARTLINK_LOG_DEFAULT_INTERVAL"
DEFAULT_FALLBACK_LEVEL = logging.DEBUG
DEFAULT_INTERVAL_SECONDS = 1.0

_RULE_PATTERN = re.compile(
    r"^(?P<key>[^=]+)="
    r"(?P<interval>none|\d+(?:\.\d+)?)"
    r"(?::(?P<level>[A-Za-z]+))?"
    r"(?::(?P<fallback>[A-Za-z]+|none))?$"
)


@dataclass(frozen=True)
class LogRule:
    """How often a keyed log statement may be emitted at its primary level.

    ``interval_seconds`` of ``None`` disables sampling. ``fallback_level`` is
    used for suppressed statements; ``None`` drops them entirely.
    """

    interval_seconds: float | None
    level: int | None = None
    fallback_level: int | None = DEFAULT_FALLBACK_LEVEL


class LoggingController:
    def __init__(
        self,
        *,
        default_rule: LogRule,
        rules: dict[str, LogRule] | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_rule = default_rule
        self._rules = dict(rules or {})
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._next_emit: dict[str, float] = {}

    def rule_for(self, key: str) -> LogRule:
        return self._rules.get(key, self._default_rule)

    def log(
        self,
        *,
        key: str,
        logger: logging.Logger,
        level: int,
        msg: str,
        args: Sequence[object] = (),
    ) -> bool:
        """Emit ``msg`` under the sampling policy for ``key``.

        Returns ``True`` if the statement went out at its primary level.
        """

        rule = self.rule_for(key)
        primary_level = rule.level or level

        if rule.interval_seconds is None:
            logger.log(primary_level, msg, *args)
            return True

        now = self._monotonic()
        with self._lock:
            if now >= self._next_emit.get(key, 0.0):
                self._next_emit[key] = now + rule.interval_seconds
                logger.log(primary_level, msg, *args)
                return True

        if rule.fallback_level is not None:
            logger.log(rule.fallback_level, msg, *args)
        return False

    @classmethod
    def from_env(cls) -> LoggingController:
        default_raw = os.getenv(DEFAULT_INTERVAL_ENV_VAR)
        default_interval = (
            DEFAULT_INTERVAL_SECONDS
            if default_raw is None
            else _parse_interval(default_raw)
        )
        rules_raw = os.getenv(LOG_RULES_ENV_VAR, "")
        return cls(
            default_rule=LogRule(default_interval),
            rules=parse_rules(rules_raw) if rules_raw else {},
        )


def _parse_level(name: str | None) -> int | None:
    if not name:
        return None
    resolved = getattr(logging, name.upper(), None)
    if isinstance(resolved, int):
        return resolved
    raise ValueError(f"Unknown log level {name!r}")


def _parse_interval(value: str) -> float | None:
    if value.strip().lower() == "none":
        return None
    return float(value)


def parse_rules(raw_rules: str) -> dict[str, LogRule]:
    rules: dict[str, LogRule] = {}
    for chunk in filter(None, (part.strip() for part in raw_rules.split(","))):
        match = _RULE_PATTERN.match(chunk)
        if not match:
            raise ValueError(
                f"Invalid {LOG_RULES_ENV_VAR} entry {chunk!r}. "
                "Expected 'key=interval[:LEVEL[:FALLBACK]]'."
            )
        fallback_raw = match.group("fallback")
        if fallback_raw is None:
            fallback_level: int | None = DEFAULT_FALLBACK_LEVEL
        elif fallback_raw.lower() == "none":
            fallback_level = None
        else:
            fallback_level = _parse_level(fallback_raw)
        rules[match.group("key").strip()] = LogRule(
            interval_seconds=_parse_interval(match.group("interval")),
            level=_parse_level(match.group("level")),
            fallback_level=fallback_level,
        )
    return rules


@cache
def get_logging_controller() -> LoggingController:
    """Return the shared logging controller instance."""

    return LoggingController.from_env()
