"""Tests for env parsing helpers."""

from __future__ import annotations

import pytest

from heartlink.utilities.env.parsing import (_env_flag, _env_float, _env_int,
                                             _env_optional_float,
                                             _env_optional_int)


class TestEnvParsingHelpers:
    """Group env parsing helper tests so configuration parsing stays predictable across hosts."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("true", True),
            ("  YES ", True),
            ("1", True),
            ("on", True),
            ("false", False),
            ("0", False),
            ("off", False),
        ],
    )
    def test_env_flag_recognizes_truthy_tokens(
        self,
        monkeypatch: pytest.MonkeyPatch,
        value: str,
        expected: bool,
    ) -> None:
        """Confirm _env_flag recognizes truthy tokens and treats everything else as false."""
        monkeypatch.setenv("HEARTLINK_TEST_FLAG", value)

        assert _env_flag("HEARTLINK_TEST_FLAG") is expected

    def test_env_flag_returns_default_when_unset(
        self,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.delenv("HEARTLINK_TEST_FLAG", raising=False)

        assert _env_flag("HEARTLINK_TEST_FLAG", default=True) is True

    def test_env_int_enforces_minimum(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify _env_int rejects values below the minimum so misconfiguration is surfaced early."""
        monkeypatch.setenv("HEARTLINK_TEST_INT", "2")

        with pytest.raises(ValueError, match="at least 3"):
            _env_int("HEARTLINK_TEST_INT", default=0, minimum=3)

    def test_env_int_rejects_garbage(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEARTLINK_TEST_INT", "ten")

        with pytest.raises(ValueError, match="must be an integer"):
            _env_int("HEARTLINK_TEST_INT", default=0)

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_env_optional_int_treats_blank_as_unset(
        self,
        monkeypatch: pytest.MonkeyPatch,
        value: str | None,
    ) -> None:
        """Check blank optional ints read as None so callers can distinguish absence from zero."""
        if value is None:
            monkeypatch.delenv("HEARTLINK_TEST_OPTIONAL_INT", raising=False)
        else:
            monkeypatch.setenv("HEARTLINK_TEST_OPTIONAL_INT", value)

        assert _env_optional_int("HEARTLINK_TEST_OPTIONAL_INT") is None

    def test_env_float_enforces_bounds(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Confirm _env_float enforces min/max bounds so tuning values stay within safe limits."""
        monkeypatch.setenv("HEARTLINK_TEST_FLOAT", "1.5")

        with pytest.raises(ValueError):
            _env_float("HEARTLINK_TEST_FLOAT", default=0.5, minimum=2.0, maximum=3.0)

        with pytest.raises(ValueError):
            _env_float("HEARTLINK_TEST_FLOAT", default=0.5, minimum=0.0, maximum=1.0)

    def test_env_optional_float_parses_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEARTLINK_TEST_FLOAT", "2.5")

        assert _env_optional_float("HEARTLINK_TEST_FLOAT", minimum=0.0) == 2.5
