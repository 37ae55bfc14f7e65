"""Configuration management utilities for the quote feed."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


DEFAULT_SETTINGS_PATH = Path(__file__).with_name("default_settings.json")

LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class ConfigError(Exception):
    """Raised when configuration files are missing or invalid."""


@dataclass
class CoinGeckoConfig:
    host: str = "api.coingecko.com"
    catalog_path: str = "/api/v3/coins/list"
    market_chart_path: str = "/api/v3/coins/{coin_id}/market_chart"
    interval: str = "daily"
    api_key: Optional[str] = None
    api_key_header: str = "x-cg-demo-api-key"

    def headers(self) -> Dict[str, str]:
        if not self.api_key:
            return {}
        return {self.api_key_header: str(self.api_key)}


@dataclass
class HttpConfig:
    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_seconds: float = 1.5
    rate_limit_sleep: float = 60.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(levelname)s: %(message)s"


@dataclass
class QuoteFeedConfig:
    coingecko: CoinGeckoConfig = field(default_factory=CoinGeckoConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigManager:
    """Loads and validates configuration data from files and environment variables."""

    def __init__(
        self,
        default_path: Path | str = DEFAULT_SETTINGS_PATH,
        user_path: Path | str = Path("config/settings.local.json"),
        env_prefix: str = "QF_",
    ) -> None:
        self.default_path = Path(default_path)
        self.user_path = Path(user_path)
        self.env_prefix = env_prefix
        self._cached_config: Optional[QuoteFeedConfig] = None

    def load(self, force_reload: bool = False) -> QuoteFeedConfig:
        """Load configuration from defaults, user overrides, and environment."""
        if self._cached_config is not None and not force_reload:
            return self._cached_config

        base_config = self._load_default_config()
        merged_config = self._merge_user_overrides(base_config)
        merged_config = self._apply_env_overrides(merged_config)

        config = self._build_config(merged_config)
        self._validate_config(config)

        self._cached_config = config
        return config

    def clear_cache(self) -> None:
        """Clear the cached configuration instance."""
        self._cached_config = None

    # ------------------------------------------------------------------
    # Loading helpers
    # ------------------------------------------------------------------
    def _load_default_config(self) -> Dict[str, Any]:
        if not self.default_path.exists():
            raise ConfigError(f"Default configuration file not found: {self.default_path}")

        with self.default_path.open("r", encoding="utf-8") as handle:
            try:
                return json.load(handle)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"Unable to parse default configuration: {exc}") from exc

    def _merge_user_overrides(self, base: Dict[str, Any]) -> Dict[str, Any]:
        data = json.loads(json.dumps(base))  # deep copy via JSON to keep types JSON-compatible
        if self.user_path.exists():
            with self.user_path.open("r", encoding="utf-8") as handle:
                try:
                    overrides = json.load(handle)
                except json.JSONDecodeError as exc:
                    raise ConfigError(f"Unable to parse user configuration: {exc}") from exc
            self._deep_merge(data, overrides)
        return data

    def _apply_env_overrides(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = json.loads(json.dumps(data))
        prefix_len = len(self.env_prefix)
        for key, value in os.environ.items():
            if not key.startswith(self.env_prefix):
                continue
            path_parts = key[prefix_len:].lower().split("__")
            parsed_value = self._parse_env_value(value)
            self._set_nested_value(result, path_parts, parsed_value)
        return result

    # ------------------------------------------------------------------
    # Build dataclasses
    # ------------------------------------------------------------------
    def _build_config(self, data: Dict[str, Any]) -> QuoteFeedConfig:
        try:
            coingecko = CoinGeckoConfig(**data.get("coingecko", {}))
            http_data = data.get("http", {})
            http = HttpConfig(
                timeout_seconds=float(http_data.get("timeout_seconds", 15.0)),
                max_retries=int(http_data.get("max_retries", 3)),
                backoff_seconds=float(http_data.get("backoff_seconds", 1.5)),
                rate_limit_sleep=float(http_data.get("rate_limit_sleep", 60.0)),
            )
            log_settings = LoggingConfig(**data.get("logging", {}))
        except (AttributeError, TypeError) as exc:
            raise ConfigError(f"Invalid configuration field: {exc}") from exc
        except ValueError as exc:
            raise ConfigError(f"Invalid configuration value: {exc}") from exc

        return QuoteFeedConfig(coingecko=coingecko, http=http, logging=log_settings)

    # ------------------------------------------------------------------
    # Validation & utilities
    # ------------------------------------------------------------------
    def _validate_config(self, config: QuoteFeedConfig) -> None:
        if not config.coingecko.host.strip():
            raise ConfigError("coingecko.host must not be empty")
        if "{coin_id}" not in config.coingecko.market_chart_path:
            raise ConfigError("coingecko.market_chart_path must contain a {coin_id} placeholder")
        if not config.coingecko.interval.strip():
            raise ConfigError("coingecko.interval must not be empty")

        if config.http.timeout_seconds <= 0:
            raise ConfigError("http.timeout_seconds must be positive")
        if config.http.max_retries < 1:
            raise ConfigError("http.max_retries must be at least 1")
        if config.http.backoff_seconds < 0:
            raise ConfigError("http.backoff_seconds must be non-negative")
        if config.http.rate_limit_sleep < 0:
            raise ConfigError("http.rate_limit_sleep must be non-negative")

        if config.logging.level.upper() not in LOG_LEVELS:
            raise ConfigError(f"logging.level must be one of {sorted(LOG_LEVELS)}")

    @staticmethod
    def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> None:
        for key, value in overrides.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                ConfigManager._deep_merge(base[key], value)
            else:
                base[key] = value

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        value = value.strip()
        if not value:
            return value
        lowered = value.lower()
        if lowered in {"true", "false"}:
            return lowered == "true"
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value

    @staticmethod
    def _set_nested_value(target: Dict[str, Any], path_parts: list[str], value: Any) -> None:
        current = target
        for part in path_parts[:-1]:
            if part not in current or not isinstance(current[part], dict):
                current[part] = {}
            current = current[part]
        current[path_parts[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """Return the currently cached configuration as a dictionary."""
        config = self.load()
        return config.as_dict()


def configure_logging(settings: LoggingConfig, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.level.upper())
    logging.basicConfig(level=level, format=settings.format)


__all__ = [
    "CoinGeckoConfig",
    "ConfigError",
    "ConfigManager",
    "DEFAULT_SETTINGS_PATH",
    "HttpConfig",
    "LoggingConfig",
    "QuoteFeedConfig",
    "configure_logging",
]
