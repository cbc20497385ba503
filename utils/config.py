"""
Deployer Configuration
JSON config file with .env / environment overrides
"""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from loguru import logger

from deployer.exceptions import ConfigError
from deployer.types import DEFAULT_RESOURCE_LIMITS, ResourceLimits


DEFAULT_CONFIG_PATH = Path("config/deployer_config.json")

# Environment variable -> config field
ENV_OVERRIDES = {
    'DEPLOYER_WS_URL': 'ws_url',
    'DEPLOYER_ARTIFACT': 'artifact_path',
    'DEPLOYER_CONSTRUCTOR': 'constructor',
    'DEPLOYER_CONSTRUCTOR_ARGS': 'constructor_args',
    'DEPLOYER_GAS_LIMIT': 'compute_limit',
    'DEPLOYER_STORAGE_DEPOSIT_LIMIT': 'storage_deposit_limit',
    'DEPLOYER_ENDOWMENT': 'endowment',
    'DEPLOYER_TIMEOUT': 'timeout_seconds',
    'DEPLOYER_REQUEST_TIMEOUT': 'request_timeout',
    'DEPLOYER_MAX_FEE_GWEI': 'max_fee_gwei',
    'DEPLOYER_LOG_LEVEL': 'log_level',
    'DEPLOYER_LOG_FILE': 'log_file',
}


@dataclass
class DeployerConfig:
    """Settings for one deployer run; never holds key material"""

    ws_url: str = "ws://127.0.0.1:8546"
    artifact_path: Optional[str] = None
    constructor: Optional[Union[int, str]] = None
    constructor_args: List[Any] = field(default_factory=list)
    compute_limit: int = DEFAULT_RESOURCE_LIMITS.compute_limit
    storage_deposit_limit: Optional[int] = None
    endowment: int = 0
    timeout_seconds: Optional[float] = 300.0
    request_timeout: float = 30.0
    max_fee_gwei: Optional[float] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def limits(self) -> ResourceLimits:
        return ResourceLimits(
            compute_limit=self.compute_limit,
            storage_deposit_limit=self.storage_deposit_limit,
            endowment=self.endowment,
        )


def _parse_env_value(name: str, raw: str) -> Any:
    """Convert an environment string into the config field's type"""
    if name in ('compute_limit', 'endowment', 'storage_deposit_limit'):
        if name == 'storage_deposit_limit' and raw.lower() in ('', 'none', 'null'):
            return None
        return int(raw, 0)
    if name in ('timeout_seconds', 'max_fee_gwei'):
        if raw.lower() in ('', 'none', 'null'):
            return None
        return float(raw)
    if name == 'request_timeout':
        return float(raw)
    if name == 'constructor_args':
        return json.loads(raw)
    if name == 'constructor':
        return int(raw) if raw.isdigit() else raw
    return raw


def _validate(config: DeployerConfig):
    if not config.ws_url.startswith(('ws://', 'wss://')):
        raise ConfigError(f"ws_url must be a ws:// or wss:// endpoint, got {config.ws_url!r}")
    if not isinstance(config.constructor_args, list):
        raise ConfigError("constructor_args must be a JSON list")
    if config.timeout_seconds is not None and config.timeout_seconds <= 0:
        raise ConfigError("timeout_seconds must be positive or null")
    if config.request_timeout <= 0:
        raise ConfigError("request_timeout must be positive")


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    env_file: Optional[str] = None
) -> DeployerConfig:
    """
    Load deployer configuration

    Values come from the JSON file (if present), then from environment
    variables, which win. A .env file is loaded first without overriding
    variables already set.

    Args:
        config_path: JSON config (defaults to config/deployer_config.json)
        env_file: .env path (defaults to python-dotenv's search)

    Returns:
        DeployerConfig

    Raises:
        ConfigError: Unreadable file, unknown keys, or invalid values
    """
    load_dotenv(env_file)

    values: Dict[str, Any] = {}
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if path.exists():
        try:
            with open(path, 'r') as f:
                values.update(json.load(f))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file is not valid JSON: {path}: {e}") from e
        logger.debug(f"Loaded config file {path}")
    elif config_path is not None:
        raise ConfigError(f"Config file not found: {path}")

    known = {f.name for f in fields(DeployerConfig)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {sorted(unknown)}")

    for env_var, name in ENV_OVERRIDES.items():
        raw = os.getenv(env_var)
        if raw is None:
            continue
        try:
            values[name] = _parse_env_value(name, raw)
        except ValueError as e:
            raise ConfigError(f"Invalid value for {env_var}: {e}") from e

    config = DeployerConfig(**values)
    _validate(config)
    return config
