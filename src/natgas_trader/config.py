"""Application configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from natgas_trader.common.types import SymbolPair, parse_region
from natgas_trader.errors import ConfigInvalid
from natgas_trader.signals.models import WeightConfig

_DEFAULT_REGIONS = [
    "40.7128,-74.0060",  # New York
    "41.8781,-87.6298",  # Chicago
    "42.3601,-71.0589",  # Boston
    "39.9526,-75.1652",  # Philadelphia
    "42.3314,-83.0458",  # Detroit
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=("config.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        allow_inf_nan=False,
    )

    # Alpaca brokerage
    alpaca_api_key: str = ""
    alpaca_secret_key: str = ""
    alpaca_base_url: str = "https://paper-api.alpaca.markets"
    alpaca_data_url: str = "https://data.alpaca.markets"

    # Traded pair: symbol is long natural gas, inverse_symbol is short
    symbol: str = "BOIL"
    inverse_symbol: str = "KOLD"

    # Dollar amount committed per new position
    position_size: float = 1000.0

    # Composite score thresholds (buy_threshold must be >= sell_threshold)
    buy_threshold: float = 0.3
    sell_threshold: float = -0.3

    # Signal weights (relative, need not sum to 1)
    temperature_weight: float = 0.5
    inventory_weight: float = 0.4
    storm_weight: float = 0.1

    # Open-Meteo forecast API
    weather_api_url: str = "https://api.open-meteo.com/v1/forecast"
    weather_regions: list[str] = list(_DEFAULT_REGIONS)
    forecast_days: int = 7
    hdd_base_temp_f: float = 65.0
    # Average weekly HDD for the monitored regions, used as the temperature baseline
    historical_average_hdd: float = 25.0

    # EIA weekly storage API (optional source)
    eia_api_key: str = ""
    eia_api_url: str = "https://api.eia.gov/v2/natural-gas/stor/wkly/data/"

    # NOAA/NWS alerts
    noaa_api_url: str = "https://api.weather.gov"
    nws_user_agent: str = "natgas-trader (natgas-trader@example.com)"

    # HTTP request timeout seconds
    http_timeout: float = 30.0

    # Upper bound on a single source fetch, retries included
    source_timeout: float = 60.0

    # Order confirmation polling
    order_fill_wait: float = 2.0
    order_fill_polls: int = 3

    # Seconds before retrying a cycle that failed unexpectedly (continuous mode)
    retry_delay: float = 300.0

    # SQLite journal of snapshots, decisions, fills and events
    db_path: Path = Path.home() / ".natgas-trader" / "journal.db"

    log_level: str = "INFO"

    # Telegram notifications
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    telegram_enabled: bool = False

    @field_validator("temperature_weight", "inventory_weight", "storm_weight")
    @classmethod
    def _weight_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"signal weights must be >= 0, got {v}")
        return v

    @field_validator("position_size")
    @classmethod
    def _position_size_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"position_size must be > 0, got {v}")
        return v

    @field_validator("symbol", "inverse_symbol")
    @classmethod
    def _symbol_not_blank(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol must not be empty")
        return v

    @field_validator("weather_regions")
    @classmethod
    def _regions_parse(cls, v: list[str]) -> list[str]:
        for region in v:
            parse_region(region)
        return v

    @field_validator("order_fill_polls")
    @classmethod
    def _polls_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"order_fill_polls must be >= 1, got {v}")
        return v

    @model_validator(mode="after")
    def _check_pair(self) -> Settings:
        if self.buy_threshold < self.sell_threshold:
            raise ValueError(
                f"buy_threshold ({self.buy_threshold}) must be >= "
                f"sell_threshold ({self.sell_threshold})"
            )
        if self.symbol == self.inverse_symbol:
            raise ValueError(f"symbol and inverse_symbol must differ, both are {self.symbol}")
        return self

    @property
    def weights(self) -> WeightConfig:
        return WeightConfig(
            temperature_weight=self.temperature_weight,
            inventory_weight=self.inventory_weight,
            storm_weight=self.storm_weight,
        )

    @property
    def symbols(self) -> SymbolPair:
        return SymbolPair(primary=self.symbol, inverse=self.inverse_symbol)

    @property
    def has_broker_credentials(self) -> bool:
        return bool(self.alpaca_api_key and self.alpaca_secret_key)


def get_settings() -> Settings:
    """Load settings, raising ConfigInvalid if validation fails."""
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigInvalid(str(exc)) from exc


def require_broker_credentials(settings: Settings) -> None:
    if not settings.has_broker_credentials:
        raise ConfigInvalid(
            "Alpaca API credentials not found. "
            "Set ALPACA_API_KEY and ALPACA_SECRET_KEY in the environment or config.env"
        )
