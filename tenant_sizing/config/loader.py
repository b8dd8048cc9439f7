"""
Configuration management and loading.

Handles sizing settings, the license solver endpoint and the membership
filter.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Type

import yaml

from tenant_sizing.core.forecast import REPORT_PERIODS, ForecastSettings, HistoryPolicy, StorageBasis
from tenant_sizing.core.growth import GrowthMethod
from tenant_sizing.reports.loader import load_membership_filter


@dataclass(frozen=True)
class ForecastConfig:
    """Growth and projection settings."""
    report_period_days: int = 180
    growth_method: GrowthMethod = GrowthMethod.ENDPOINTS
    custom_growth_percent: int = 30
    custom_horizon_years: int = 1
    insufficient_history: HistoryPolicy = HistoryPolicy.ASSUME_ZERO

    def __post_init__(self):
        """Validate forecast values."""
        if self.report_period_days not in REPORT_PERIODS:
            raise ValueError(f"report_period_days must be one of {list(REPORT_PERIODS)}")
        if self.custom_horizon_years < 1:
            raise ValueError("custom_horizon_years must be >= 1")


@dataclass(frozen=True)
class LicensingConfig:
    """License allocation settings."""
    storage_basis: StorageBasis = StorageBasis.ONE_YEAR
    solver_url: Optional[str] = None
    solver_timeout: float = 30

    def __post_init__(self):
        """Validate licensing values."""
        if self.solver_timeout <= 0:
            raise ValueError("solver_timeout must be > 0")


@dataclass(frozen=True)
class FilterConfig:
    """Membership filter settings."""
    membership_file: Optional[str] = None
    identifier_field: str = "identifier"


@dataclass(frozen=True)
class SizingConfig:
    """Complete sizing configuration."""
    forecast: ForecastConfig
    licensing: LicensingConfig
    filter: FilterConfig

    @classmethod
    def default(cls) -> "SizingConfig":
        return cls(forecast=ForecastConfig(), licensing=LicensingConfig(), filter=FilterConfig())

    def to_settings(self, membership: Optional[FrozenSet[str]] = None) -> ForecastSettings:
        """Build pipeline settings, loading the membership file if none is given."""
        if membership is None and self.filter.membership_file:
            membership = load_membership_filter(self.filter.membership_file)
        return ForecastSettings(
            report_period_days=self.forecast.report_period_days,
            growth_method=self.forecast.growth_method,
            custom_growth_percent=self.forecast.custom_growth_percent,
            custom_horizon_years=self.forecast.custom_horizon_years,
            insufficient_history=self.forecast.insufficient_history,
            storage_basis=self.licensing.storage_basis,
            membership_filter=membership,
            identifier_field=self.filter.identifier_field,
        )


def load_sizing_config(path: str) -> SizingConfig:
    """Load and validate sizing configuration from a YAML file.

    Every section is optional, but unknown keys and invalid values are
    rejected so a typo never silently falls back to a default.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated SizingConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Sizing config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'forecast', 'licensing', 'filter'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    return SizingConfig(
        forecast=_parse_forecast(_section(raw_config, 'forecast')),
        licensing=_parse_licensing(_section(raw_config, 'licensing')),
        filter=_parse_filter(_section(raw_config, 'filter')),
    )


def _section(raw_config: Dict, name: str) -> Dict:
    """Return a config section, empty when absent."""
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _check_keys(data: Dict, allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _parse_forecast(data: Dict) -> ForecastConfig:
    """Parse and validate the forecast section."""
    _check_keys(data, {
        'report_period_days', 'growth_method', 'custom_growth_percent',
        'custom_horizon_years', 'insufficient_history'
    }, "forecast")

    defaults = ForecastConfig()
    return ForecastConfig(
        report_period_days=_integer(data, 'report_period_days', defaults.report_period_days, "forecast"),
        growth_method=_choice(data, 'growth_method', GrowthMethod, defaults.growth_method, "forecast"),
        custom_growth_percent=_integer(data, 'custom_growth_percent', defaults.custom_growth_percent, "forecast"),
        custom_horizon_years=_integer(data, 'custom_horizon_years', defaults.custom_horizon_years, "forecast"),
        insufficient_history=_choice(
            data, 'insufficient_history', HistoryPolicy, defaults.insufficient_history, "forecast"
        ),
    )


def _parse_licensing(data: Dict) -> LicensingConfig:
    """Parse and validate the licensing section."""
    _check_keys(data, {'storage_basis', 'solver_url', 'solver_timeout'}, "licensing")

    solver_url = data.get('solver_url')
    if solver_url is not None and (not isinstance(solver_url, str) or not solver_url.strip()):
        raise ValueError("'solver_url' in licensing must be a non-empty string")

    timeout = data.get('solver_timeout', LicensingConfig.solver_timeout)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError("'solver_timeout' in licensing must be > 0")

    return LicensingConfig(
        storage_basis=_choice(data, 'storage_basis', StorageBasis, LicensingConfig.storage_basis, "licensing"),
        solver_url=solver_url,
        solver_timeout=float(timeout),
    )


def _parse_filter(data: Dict) -> FilterConfig:
    """Parse and validate the filter section."""
    _check_keys(data, {'membership_file', 'identifier_field'}, "filter")

    membership_file = data.get('membership_file')
    if membership_file is not None and not isinstance(membership_file, str):
        raise ValueError("'membership_file' in filter must be a string")

    identifier_field = data.get('identifier_field', FilterConfig.identifier_field)
    if not isinstance(identifier_field, str) or not identifier_field.strip():
        raise ValueError("'identifier_field' in filter must be a non-empty string")

    return FilterConfig(membership_file=membership_file, identifier_field=identifier_field)


def _integer(data: Dict, key: str, default: int, path: str) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' in {path} must be an integer")
    return value


def _choice(data: Dict, key: str, enum_type: Type[Enum], default: Enum, path: str) -> Any:
    """Parse an enum value given by its string name."""
    if key not in data:
        return default

    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"'{key}' in {path} must be a string")

    try:
        return enum_type(value.lower())
    except ValueError:
        valid = [member.value for member in enum_type]
        raise ValueError(f"'{key}' in {path} must be one of: {valid}")
