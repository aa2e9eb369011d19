"""Calculation configuration.

Calculations take a ``CalculationConfig`` argument explicitly; only the
CLI loads one from ``config.json`` at the project root.
"""

import dataclasses
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .exceptions import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalculationConfig:
    # positions at or below this share count are closed (float drift)
    dust_threshold: float = 1e-4
    irr_initial_guess: float = 0.10
    irr_max_iterations: int = 100
    irr_tolerance: float = 1e-4
    irr_min_rate: float = -0.99
    irr_max_rate: float = 10.0
    days_per_year: float = 365.25
    # Portfolio Performance stores BUY/SELL amounts gross of fees and taxes
    fees_included_in_amount: bool = True
    # valuations are taken before flows dated on the same day
    flows_at_period_start: bool = True
    base_currency: str = "EUR"


DEFAULT_CONFIG = CalculationConfig()

_cached: Optional[CalculationConfig] = None
_path_override: Optional[Path] = None


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (where pyproject.toml lives)."""
    current = Path(__file__).resolve().parent
    for _ in range(10):
        if (current / "pyproject.toml").exists():
            return current
        current = current.parent
    return Path.cwd()


def _config_path() -> Path:
    if _path_override is not None:
        return _path_override
    return _find_project_root() / "config.json"


def set_config_path(path: Optional[str]) -> None:
    """Point get_config/save_config at another file (None restores the default)."""
    global _cached, _path_override
    _path_override = Path(path) if path is not None else None
    _cached = None


def _coerce(name: str, raw):
    fields = {f.name: f for f in dataclasses.fields(CalculationConfig)}
    if name not in fields:
        raise ConfigError(f"Unknown config key: {name}")
    default = getattr(DEFAULT_CONFIG, name)
    try:
        if isinstance(default, bool):
            if isinstance(raw, str):
                lowered = raw.strip().lower()
                if lowered in ("1", "true", "yes", "on"):
                    return True
                if lowered in ("0", "false", "no", "off"):
                    return False
                raise ValueError(raw)
            return bool(raw)
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
        return str(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from e


def config_from_dict(data: dict) -> CalculationConfig:
    """Build a config from a plain dict; unknown keys are ignored."""
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a JSON object, got {type(data).__name__}")
    known = {f.name for f in dataclasses.fields(CalculationConfig)}
    values = {k: _coerce(k, v) for k, v in data.items() if k in known}
    return dataclasses.replace(DEFAULT_CONFIG, **values)


def get_config() -> CalculationConfig:
    global _cached
    if _cached is not None:
        return _cached
    path = _config_path()
    if not path.exists():
        _cached = DEFAULT_CONFIG
        return _cached
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        _cached = config_from_dict(data)
    except (OSError, ValueError, ConfigError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        _cached = DEFAULT_CONFIG
    return _cached


def save_config(cfg: CalculationConfig) -> None:
    global _cached
    _cached = cfg
    data = dataclasses.asdict(cfg)
    _config_path().write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def update_config(key: str, value: str) -> CalculationConfig:
    """Set one key from its string form and persist the result."""
    cfg = dataclasses.replace(get_config(), **{key: _coerce(key, value)})
    save_config(cfg)
    return cfg
