"""Tests for settings validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from natgas_trader.config import Settings, get_settings, require_broker_credentials
from natgas_trader.errors import ConfigInvalid


def _settings(**kwargs):
    return Settings(_env_file=None, **kwargs)


def test_defaults():
    s = _settings()
    assert s.symbols.primary == "BOIL"
    assert s.symbols.inverse == "KOLD"
    assert s.buy_threshold == 0.3
    assert s.sell_threshold == -0.3
    assert s.weights.temperature_weight == 0.5
    assert len(s.weather_regions) == 5


def test_symbols_normalized():
    s = _settings(symbol=" ung ", inverse_symbol="kold")
    assert s.symbols.primary == "UNG"


def test_inverted_thresholds_rejected():
    with pytest.raises(ValidationError, match="buy_threshold"):
        _settings(buy_threshold=-0.5, sell_threshold=0.5)


def test_equal_thresholds_allowed():
    assert _settings(buy_threshold=0.2, sell_threshold=0.2).buy_threshold == 0.2


def test_negative_weight_rejected():
    with pytest.raises(ValidationError):
        _settings(storm_weight=-0.1)


def test_non_positive_size_rejected():
    with pytest.raises(ValidationError):
        _settings(position_size=0)


def test_same_symbols_rejected():
    with pytest.raises(ValidationError, match="differ"):
        _settings(symbol="BOIL", inverse_symbol="boil")


def test_blank_symbol_rejected():
    with pytest.raises(ValidationError):
        _settings(symbol="  ")


def test_bad_region_rejected():
    with pytest.raises(ValidationError):
        _settings(weather_regions=["not-a-region"])


@pytest.mark.parametrize(
    "field", ["buy_threshold", "sell_threshold", "storm_weight", "temperature_weight", "position_size"],
)
@pytest.mark.parametrize("value", ["nan", "inf", "-inf"])
def test_non_finite_values_rejected(monkeypatch, field, value):
    monkeypatch.setenv(field.upper(), value)
    with pytest.raises(ConfigInvalid):
        get_settings()


def test_nan_threshold_rejected_in_code():
    with pytest.raises(ValidationError):
        _settings(buy_threshold=float("nan"))


def test_get_settings_wraps_validation_error(monkeypatch):
    monkeypatch.setenv("BUY_THRESHOLD", "-1")
    monkeypatch.setenv("SELL_THRESHOLD", "1")
    with pytest.raises(ConfigInvalid):
        get_settings()


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("POSITION_SIZE", "2500")
    monkeypatch.setenv("SYMBOL", "UNG")
    s = get_settings()
    assert s.position_size == 2500.0
    assert s.symbol == "UNG"


def test_require_broker_credentials():
    with pytest.raises(ConfigInvalid, match="ALPACA_API_KEY"):
        require_broker_credentials(_settings(alpaca_api_key="", alpaca_secret_key=""))
    require_broker_credentials(_settings(alpaca_api_key="k", alpaca_secret_key="s"))
