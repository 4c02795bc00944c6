"""
Configuration management and loading.

Handles engine settings: storage location, provider models and costs,
plan limits, timeouts and logging.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, Optional

import yaml

from caption_engine.core.orchestrator import DEFAULT_PROVIDER_TIMEOUT
from caption_engine.core.plans import PLAN_POLICY, Plan, PlanPolicy, UnknownPlanError, parse_plan
from caption_engine.core.routing import PROVIDER_COST_TABLE, ProviderChoice, ProviderCostTable
from caption_engine.providers.openai_adapter import DEFAULT_MODELS
from caption_engine.storage.db import DEFAULT_DB_PATH

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class ProviderConfig:
    """Model and unit cost for one provider tier."""
    model: str
    unit_cost: Decimal

    def __post_init__(self):
        """Validate provider values."""
        if not self.model or not self.model.strip():
            raise ValueError("model cannot be empty")
        if self.unit_cost < 0:
            raise ValueError("unit_cost must be >= 0")


def _default_providers() -> Dict[ProviderChoice, ProviderConfig]:
    return {
        choice: ProviderConfig(
            model=DEFAULT_MODELS[choice],
            unit_cost=PROVIDER_COST_TABLE.get_unit_cost(choice)
        )
        for choice in ProviderChoice
    }


@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration."""
    database_path: str = DEFAULT_DB_PATH
    provider_timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT
    plan_limits: Dict[Plan, int] = field(default_factory=dict)
    providers: Dict[ProviderChoice, ProviderConfig] = field(default_factory=_default_providers)
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate engine values."""
        if self.provider_timeout_seconds <= 0:
            raise ValueError("provider_timeout_seconds must be > 0")
        for plan, limit in self.plan_limits.items():
            if limit <= 0:
                raise ValueError(f"limit for plan '{plan.value}' must be > 0")
        missing = [c.value for c in ProviderChoice if c not in self.providers]
        if missing:
            raise ValueError(f"Missing provider configuration for: {missing}")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log level must be one of: {list(LOG_LEVELS)}")

    def plan_policy(self) -> PlanPolicy:
        """Default plan table with any configured limits applied."""
        return PLAN_POLICY.with_limits(self.plan_limits)

    def cost_table(self) -> ProviderCostTable:
        return ProviderCostTable({c: p.unit_cost for c, p in self.providers.items()})

    def models(self) -> Dict[ProviderChoice, str]:
        return {c: p.model for c, p in self.providers.items()}


def default_engine_config() -> EngineConfig:
    """Built-in configuration used when no file is given."""
    return EngineConfig()


def load_engine_config(path: Optional[str]) -> EngineConfig:
    """Load and validate engine configuration from a YAML file.

    Strict validation ensures no silent misconfigurations: unknown keys,
    unknown plans and non-positive limits are all rejected.

    Args:
        path: Path to YAML configuration file, or None for defaults

    Returns:
        Validated EngineConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return default_engine_config()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Engine config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'database', 'orchestrator', 'plans', 'providers', 'logging'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    database = _section(raw_config, 'database', {'path'})
    orchestrator = _section(raw_config, 'orchestrator', {'provider_timeout_seconds'})
    logging_section = _section(raw_config, 'logging', {'level'})

    database_path = database.get('path', DEFAULT_DB_PATH)
    if not isinstance(database_path, str) or not database_path.strip():
        raise ValueError("'database.path' must be a non-empty string")

    timeout = orchestrator.get('provider_timeout_seconds', DEFAULT_PROVIDER_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError("'orchestrator.provider_timeout_seconds' must be > 0")

    level = logging_section.get('level', 'INFO')
    if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
        raise ValueError(f"'logging.level' must be one of: {list(LOG_LEVELS)}")

    return EngineConfig(
        database_path=database_path,
        provider_timeout_seconds=float(timeout),
        plan_limits=_parse_plans(raw_config.get('plans') or {}),
        providers=_parse_providers(raw_config.get('providers') or {}),
        log_level=level.upper()
    )


def _section(raw_config: Dict, name: str, allowed_keys: set) -> Dict:
    """Fetch an optional dictionary section and reject unknown keys."""
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {name}: {unknown_keys}")
    return data


def _parse_plans(data: Dict) -> Dict[Plan, int]:
    """Parse and validate plan limit overrides.

    Raises:
        ValueError: If a plan is unknown or a limit is not a positive integer
    """
    if not isinstance(data, dict):
        raise ValueError("'plans' must be a dictionary")

    limits = {}
    for name, limit in data.items():
        try:
            plan = parse_plan(name)
        except UnknownPlanError as e:
            raise ValueError(f"Invalid plan in 'plans': {e}")
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValueError(f"'plans.{name}' must be a positive integer")
        limits[plan] = limit
    return limits


def _parse_providers(data: Dict) -> Dict[ProviderChoice, ProviderConfig]:
    """Parse and validate provider tier configuration.

    Tiers that are not mentioned keep their defaults.

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'providers' must be a dictionary")

    valid_tiers = [c.value for c in ProviderChoice]
    providers = _default_providers()
    for name, tier_data in data.items():
        try:
            choice = ProviderChoice(str(name).lower())
        except ValueError:
            raise ValueError(f"Unknown provider '{name}', must be one of: {valid_tiers}")

        path = f"providers.{name}"
        if not isinstance(tier_data, dict):
            raise ValueError(f"'{path}' must be a dictionary")
        unknown_keys = set(tier_data.keys()) - {'model', 'unit_cost'}
        if unknown_keys:
            raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

        model = tier_data.get('model', providers[choice].model)
        if not isinstance(model, str) or not model.strip():
            raise ValueError(f"'model' in {path} must be a non-empty string")

        unit_cost = tier_data.get('unit_cost', providers[choice].unit_cost)
        if isinstance(unit_cost, bool) or not isinstance(unit_cost, (int, float, Decimal)) or unit_cost < 0:
            raise ValueError(f"'unit_cost' in {path} must be >= 0")

        providers[choice] = ProviderConfig(model=model, unit_cost=Decimal(str(unit_cost)))
    return providers
