import logging

import pytest

from heartlink.utilities import logging_control


class StubLogger:
    def __init__(self) -> None:
        self.records: list[tuple[int, str, tuple[object, ...]]] = []

    def log(self, level: int, msg: str, *args: object) -> None:
        self.records.append((level, msg, tuple(args)))


def test_logging_controller_applies_interval() -> None:
    """Verify per-key intervals throttle notification logs so a 1 Hz stream does not flood the log."""
    monotonic_values = [0.0]

    controller = logging_control.LoggingController(
        default_rule=logging_control.LogRule(interval_seconds=1.0),
        monotonic=lambda: monotonic_values[0],
    )
    logger = StubLogger()

    def emit(frames: int) -> bool:
        return controller.log(
            key="session.notifications",
            logger=logger,
            level=logging.INFO,
            msg="Heart rate stream frames=%s",
            args=(frames,),
        )

    assert emit(1) is True
    assert logger.records[-1] == (logging.INFO, "Heart rate stream frames=%s", (1,))

    assert emit(2) is False
    assert logger.records[-1][0] == logging.DEBUG

    monotonic_values[0] = 1.0
    assert emit(3) is True
    assert logger.records[-1][0] == logging.INFO


def test_logging_controller_respects_rule_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Confirm rule overrides adjust levels so operators can tune noisy keys without code changes."""
    monkeypatch.setenv("HEARTLINK_LOG_RULES", "session.decode=none:ERROR")
    controller = logging_control.get_logging_controller()
    logger = StubLogger()

    for _ in range(2):
        emitted = controller.log(
            key="session.decode",
            logger=logger,
            level=logging.WARNING,
            msg="Dropped frame %s: %s",
            args=("014b", "truncated"),
        )
        assert emitted is True

    assert [record[0] for record in logger.records] == [logging.ERROR, logging.ERROR]


def test_fallback_none_drops_suppressed_statements() -> None:
    controller = logging_control.LoggingController(
        default_rule=logging_control.LogRule(interval_seconds=1.0),
        rules=logging_control.parse_rules("scan=5:INFO:none"),
        monotonic=lambda: 0.0,
    )
    logger = StubLogger()

    for _ in range(3):
        controller.log(key="scan", logger=logger, level=logging.DEBUG, msg="seen")

    assert logger.records == [(logging.INFO, "seen", ())]


def test_default_interval_comes_from_the_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HEARTLINK_LOG_DEFAULT_INTERVAL", "none")

    controller = logging_control.get_logging_controller()

    assert controller.rule_for("anything").interval_seconds is None


class TestParseRules:
    """Group HEARTLINK_LOG_RULES parsing tests so bad rules fail at startup."""

    def test_parses_all_fields(self) -> None:
        rules = logging_control.parse_rules(
            "session.notifications=5:INFO:none, session.decode=none:WARNING"
        )

        assert rules["session.notifications"] == logging_control.LogRule(5.0, logging.INFO, None)
        assert rules["session.decode"] == logging_control.LogRule(
            None, logging.WARNING, logging.DEBUG
        )

    @pytest.mark.parametrize("raw", ["session.decode", "key=fast", "key=1:LOUD"])
    def test_invalid_entries_raise(self, raw: str) -> None:
        """Verify malformed entries raise ValueError instead of being silently ignored."""
        with pytest.raises(ValueError):
            logging_control.parse_rules(raw)
