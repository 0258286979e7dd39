"""
billing_config -- single public entrypoint for billing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration sits above ``billing_kernel`` and below
    ``billing_services``.  The kernel never imports from this package;
    services receive plain values (mode, prefixes, flags) from the
    returned ``BillingConfig``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ConfigError`` (a ``ValueError``) -- a value failed validation.

Every successful ``get_active_config()`` call emits a
``BILLING_CONFIG_TRACE`` log entry carrying the checksum of the parsed
configuration.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from billing_config.loader import apply_env_overrides, load_yaml_file, parse_config
from billing_config.schema import (
    BillingConfig,
    CascadeConfig,
    DatabaseConfig,
    FingerprintConfig,
    LoggingConfig,
    NumberingConfig,
)

_logger = logging.getLogger("billing_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> BillingConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to billing_config/defaults.yaml.
        environ: Environment used for overrides.  Defaults to os.environ.

    Returns:
        A validated, frozen BillingConfig.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigError: If configuration validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    data = apply_env_overrides(
        load_yaml_file(path),
        os.environ if environ is None else environ,
    )
    config = parse_config(data)

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "config_path": str(path),
            "checksum": config.checksum,
            "cascade_mode": config.cascade.mode,
            "sort_by_line_uid": config.fingerprint.sort_by_line_uid,
        },
    )
    return config


__all__ = [
    "BillingConfig",
    "CascadeConfig",
    "DatabaseConfig",
    "FingerprintConfig",
    "LoggingConfig",
    "NumberingConfig",
    "get_active_config",
]
