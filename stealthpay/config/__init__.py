"""
Configuration management for StealthPay Core.

Handles loading and validation of configuration files.
"""

from stealthpay.config.settings import (
    DomainConfig,
    LedgerConfig,
    LoggingConfig,
    PerformanceConfig,
    StealthPayConfig,
    StorageConfig,
    get_default_config,
    get_default_config_path,
    load_config,
)

__all__ = [
    "DomainConfig",
    "LedgerConfig",
    "LoggingConfig",
    "PerformanceConfig",
    "StealthPayConfig",
    "StorageConfig",
    "get_default_config",
    "get_default_config_path",
    "load_config",
]
