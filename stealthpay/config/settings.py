"""
Configuration management for StealthPay Core.

Loads YAML configuration from file with sensible defaults and validation.
Supports environment variable substitution using ${ENV_VAR} syntax.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from stealthpay.core.encoding import normalize_address
from stealthpay.exceptions import InvalidConfigurationError
from stealthpay.logging_config import get_logger

logger = get_logger(__name__)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_LOG_FORMATS = ["json", "console"]
VALID_REUSED_ROOT_POLICIES = ["overwrite", "reject"]


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.

    Supports ${ENV_VAR} syntax with optional default values: ${ENV_VAR:default}

    Args:
        value: Configuration value (string, dict, list, or other)

    Returns:
        Value with environment variables expanded

    Examples:
        "${STEALTHPAY_LEDGER}" -> value of STEALTHPAY_LEDGER env var
        "${STEALTHPAY_CHAIN_ID:1}" -> value of STEALTHPAY_CHAIN_ID or "1" if not set
    """
    if isinstance(value, str):
        # Pattern matches ${VAR} or ${VAR:default}
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


@dataclass
class LedgerConfig:
    """Identity and policy of the claim ledger."""

    address: str = ""
    chain_id: int = 1
    reused_root_policy: str = "overwrite"


@dataclass
class DomainConfig:
    """EIP-712 signing domain name and version."""

    name: str = "StealthPay"
    version: str = "1"


@dataclass
class StorageConfig:
    """File storage configuration."""

    state_file: str = ""
    event_log: str = ""
    backup_count: int = 3


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    format: str = "json"


@dataclass
class PerformanceConfig:
    """Retry tuning for file persistence."""

    max_retries: int = 3
    retry_base_delay: float = 0.1


@dataclass
class StealthPayConfig:
    """Main StealthPay Core configuration."""

    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    domain: DomainConfig = field(default_factory=DomainConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)


def get_default_config_path() -> str:
    """Get the default configuration file path."""
    return os.path.expanduser("~/.stealthpay/config.yaml")


def get_default_config() -> StealthPayConfig:
    """
    Get default configuration with sensible defaults.

    Returns:
        StealthPayConfig: Default configuration object
    """
    home_dir = os.path.expanduser("~/.stealthpay")

    storage = StorageConfig(
        state_file=os.path.join(home_dir, "ledger_state.json"),
        event_log=os.path.join(home_dir, "events.jsonl"),
        backup_count=3,
    )

    logging = LoggingConfig(
        level="INFO",
        file=os.path.join(home_dir, "stealthpay.log"),
        format="json",
    )

    return StealthPayConfig(
        ledger=LedgerConfig(),
        domain=DomainConfig(),
        storage=storage,
        logging=logging,
        performance=PerformanceConfig(),
    )


def load_config(config_path: Optional[str] = None) -> StealthPayConfig:
    """
    Load configuration from YAML file with validation.

    If config file is not found, returns default configuration.
    If config file is malformed or invalid, raises InvalidConfigurationError.

    Args:
        config_path: Path to configuration file. If None, uses default path.

    Returns:
        StealthPayConfig: Loaded and validated configuration

    Raises:
        InvalidConfigurationError: If configuration is invalid or malformed
    """
    if config_path is None:
        config_path = get_default_config_path()

    config_path = os.path.expanduser(config_path)

    if not os.path.exists(config_path):
        logger.info(f"Configuration file not found at {config_path}, using defaults")
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
        logger.debug(f"Loaded configuration from {config_path}")
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration file '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Failed to parse YAML configuration file '{config_path}': {e}"
        ) from e
    except OSError as e:
        logger.error(f"Failed to read configuration file '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Failed to read configuration file '{config_path}': {e}"
        ) from e

    if config_data is None:
        logger.info(f"Configuration file {config_path} is empty, using defaults")
        return get_default_config()

    if not isinstance(config_data, dict):
        raise InvalidConfigurationError(
            f"Configuration file '{config_path}' must contain a mapping at the top level"
        )

    config_data = _expand_env_vars(config_data)
    logger.debug("Expanded environment variables in configuration")

    try:
        config = _build_config_from_dict(config_data)
        _validate_config(config)
    except InvalidConfigurationError as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}")
        raise InvalidConfigurationError(f"Invalid configuration in '{config_path}': {e}") from e
    except (TypeError, ValueError, AttributeError) as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(f"Invalid configuration in '{config_path}': {e}") from e

    logger.info(f"Successfully loaded and validated configuration from {config_path}")
    return config


def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config_data.get(name) or {}
    if not isinstance(section, dict):
        raise InvalidConfigurationError(f"'{name}' section must be a mapping")
    return section


def _build_config_from_dict(config_data: Dict[str, Any]) -> StealthPayConfig:
    """
    Build StealthPayConfig from dictionary loaded from YAML.

    Merges user configuration with defaults. Every section is optional.

    Args:
        config_data: Dictionary loaded from YAML file

    Returns:
        StealthPayConfig: Configuration object
    """
    default_config = get_default_config()

    ledger_data = _section(config_data, 'ledger')
    ledger = LedgerConfig(
        address=str(ledger_data.get('address', default_config.ledger.address) or ""),
        chain_id=int(ledger_data.get('chain_id', default_config.ledger.chain_id)),
        reused_root_policy=str(
            ledger_data.get('reused_root_policy', default_config.ledger.reused_root_policy)
        ),
    )

    domain_data = _section(config_data, 'domain')
    domain = DomainConfig(
        name=str(domain_data.get('name', default_config.domain.name)),
        version=str(domain_data.get('version', default_config.domain.version)),
    )

    # Expand paths with user home directory
    storage_data = _section(config_data, 'storage')
    storage = StorageConfig(
        state_file=os.path.expanduser(
            storage_data.get('state_file', default_config.storage.state_file)
        ),
        event_log=os.path.expanduser(
            storage_data.get('event_log', default_config.storage.event_log)
        ),
        backup_count=int(storage_data.get('backup_count', default_config.storage.backup_count)),
    )

    logging_data = _section(config_data, 'logging')
    logging = LoggingConfig(
        level=str(logging_data.get('level', default_config.logging.level)),
        file=os.path.expanduser(logging_data.get('file', default_config.logging.file) or ""),
        format=str(logging_data.get('format', default_config.logging.format)),
    )

    performance_data = _section(config_data, 'performance')
    performance = PerformanceConfig(
        max_retries=int(performance_data.get('max_retries', default_config.performance.max_retries)),
        retry_base_delay=float(
            performance_data.get('retry_base_delay', default_config.performance.retry_base_delay)
        ),
    )

    return StealthPayConfig(
        ledger=ledger,
        domain=domain,
        storage=storage,
        logging=logging,
        performance=performance,
    )


def _validate_config(config: StealthPayConfig) -> None:
    """
    Validate configuration values.

    Args:
        config: Configuration to validate

    Raises:
        InvalidConfigurationError: If configuration is invalid
    """
    if config.ledger.address:
        try:
            config.ledger.address = normalize_address(config.ledger.address)
        except ValueError as e:
            raise InvalidConfigurationError(f"ledger address is not a valid address: {e}") from e

    if config.ledger.chain_id < 0:
        raise InvalidConfigurationError(
            f"chain_id must be non-negative, got {config.ledger.chain_id}"
        )

    if config.ledger.reused_root_policy not in VALID_REUSED_ROOT_POLICIES:
        raise InvalidConfigurationError(
            f"reused_root_policy must be one of {VALID_REUSED_ROOT_POLICIES}, "
            f"got '{config.ledger.reused_root_policy}'"
        )

    if not config.domain.name:
        raise InvalidConfigurationError("domain name cannot be empty")
    if not config.domain.version:
        raise InvalidConfigurationError("domain version cannot be empty")

    if not config.storage.event_log:
        logger.error("Configuration validation failed: event_log path cannot be empty")
        raise InvalidConfigurationError("event_log path cannot be empty")
    if not config.storage.state_file:
        logger.error("Configuration validation failed: state_file path cannot be empty")
        raise InvalidConfigurationError("state_file path cannot be empty")

    if config.storage.backup_count < 1:
        raise InvalidConfigurationError(
            f"backup_count must be at least 1, got {config.storage.backup_count}"
        )

    if config.logging.level.upper() not in VALID_LOG_LEVELS:
        raise InvalidConfigurationError(
            f"logging level must be one of {VALID_LOG_LEVELS}, "
            f"got '{config.logging.level}'"
        )
    if config.logging.format not in VALID_LOG_FORMATS:
        raise InvalidConfigurationError(
            f"logging format must be one of {VALID_LOG_FORMATS}, "
            f"got '{config.logging.format}'"
        )

    if config.performance.max_retries < 0:
        raise InvalidConfigurationError(
            f"max_retries must be non-negative, got {config.performance.max_retries}"
        )
    if config.performance.retry_base_delay < 0:
        raise InvalidConfigurationError(
            f"retry_base_delay must be non-negative, got {config.performance.retry_base_delay}"
        )
