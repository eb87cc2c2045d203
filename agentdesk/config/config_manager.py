"""
AgentDesk configuration.

``default_config.json`` holds the shipped defaults and ``config_schema.json``
describes their shape.  Environment variables override the automation and
risk sections; every merged result is checked against the schema again, so a
bad ``MAX_LEVERAGE=0`` fails loudly instead of reaching the trader.
"""

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from jsonschema import ValidationError, validate

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent
DEFAULTS_FILE = CONFIG_DIR / "default_config.json"
SCHEMA_FILE = CONFIG_DIR / "config_schema.json"


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        return json.loads(path.read_text())
    except FileNotFoundError:
        raise RuntimeError(f"Missing config file {path.name} in {path.parent}")
    except json.JSONDecodeError as e:
        raise RuntimeError(f"{path.name} is not valid JSON (line {e.lineno}): {e.msg}")


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Nested dicts merge key by key; any other value replaces."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = (
            deep_merge(current, value)
            if isinstance(current, dict) and isinstance(value, dict)
            else value
        )
    return merged


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return None


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


class ConfigurationManager:
    """Validated defaults plus environment overrides for automation and risk."""

    def __init__(self, default_config: Optional[Dict[str, Any]] = None):
        self.schema = _read_json(SCHEMA_FILE)
        self.default_config = default_config or _read_json(DEFAULTS_FILE)
        self.validate_config(self.default_config)

    def validate_config(self, config: Dict[str, Any]) -> bool:
        """
        Raise ``jsonschema.ValidationError`` when *config* breaks the schema
        or its trading window ends before it starts.
        """
        try:
            validate(instance=config, schema=self.schema)
        except ValidationError as e:
            where = "/".join(str(p) for p in e.absolute_path) or "<root>"
            raise ValidationError(f"Invalid configuration at {where}: {e.message}")
        self._validate_trading_hours(config)
        return True

    def _validate_trading_hours(self, config: Dict[str, Any]) -> None:
        hours = config.get('automation', {}).get('trading_hours', {})
        start, end = hours.get('start'), hours.get('end')
        if start and end and start > end:
            raise ValidationError(f"Trading hours start {start} is after end {end}")

    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for config in configs:
            merged = deep_merge(merged, config)
        return merged

    # ── Environment overrides ────────────────────────────────────

    def _automation_env(self) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}
        numeric = {
            'max_position_size': 'DEFAULT_MAX_POSITION_SIZE',
            'max_daily_loss': 'DEFAULT_MAX_DAILY_LOSS',
            'max_open_positions': 'MAX_OPEN_POSITIONS',
            'min_confidence_level': 'MIN_CONFIDENCE_LEVEL',
        }
        for key, env_name in numeric.items():
            value = _env_float(env_name)
            if value is not None:
                overrides[key] = int(value) if key == 'max_open_positions' else value

        hours: Dict[str, str] = {}
        if os.getenv('TRADING_HOURS_START'):
            hours['start'] = os.environ['TRADING_HOURS_START']
        if os.getenv('TRADING_HOURS_END'):
            hours['end'] = os.environ['TRADING_HOURS_END']
        if hours:
            overrides['trading_hours'] = hours
        return overrides

    def _risk_env(self) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}
        numeric = {
            'max_leverage': 'MAX_LEVERAGE',
            'stop_loss_percentage': 'DEFAULT_STOP_LOSS_PERCENTAGE',
            'take_profit_percentage': 'DEFAULT_TAKE_PROFIT_PERCENTAGE',
        }
        for key, env_name in numeric.items():
            value = _env_float(env_name)
            if value is not None:
                overrides[key] = value
        return overrides

    def get_automation_config(self) -> Dict[str, Any]:
        """Automation defaults with environment overrides applied"""
        config = self.merge_configs(
            self.default_config,
            {'automation': self._automation_env()},
        )
        self.validate_config(config)
        return config['automation']

    def get_risk_limits(self) -> Dict[str, Any]:
        """Risk limits with environment overrides applied"""
        config = self.merge_configs(
            self.default_config,
            {'risk_limits': self._risk_env()},
        )
        self.validate_config(config)
        return config['risk_limits']

    def get_interval(self, name: str, default: float = 30) -> float:
        """Background loop interval in seconds"""
        return self.default_config.get('monitor_intervals', {}).get(name, default)

    def get_cache_ttl(self, name: str, default: int = 60) -> int:
        """Cache TTL for a cached upstream call, in seconds"""
        return self.default_config.get('cache_settings', {}).get(f'{name}_ttl', default)

    def get_rate_limit(self, name: str, default: int = 60) -> int:
        limits = self.default_config.get('api_settings', {}).get('rate_limits', {})
        return limits.get(f'{name}_per_minute', default)

    def get_signal_validation(self) -> Dict[str, float]:
        return dict(self.default_config.get('signal_validation', {}))

    @staticmethod
    def emergency_stop() -> bool:
        return _env_flag('EMERGENCY_STOP')

    @staticmethod
    def paper_trading() -> bool:
        return _env_flag('PAPER_TRADING_MODE')


@lru_cache(maxsize=1)
def get_config_manager() -> ConfigurationManager:
    return ConfigurationManager()
