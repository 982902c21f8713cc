"""
quote_config -- single public entrypoint for kernel configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``quote_kernel``.  The kernel MUST NEVER
    import from ``quote_config``; callers read values from the returned
    ``KernelConfig`` and pass them into kernel constructors.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Load-time validation: the configuration must parse and validate
      before a ``KernelConfig`` is produced.
    - Deterministic checksum: the same YAML (and the same DATABASE_URL
      override) always produces the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or invalid values.

Audit relevance:
    Every successful call emits a ``quote_config_loaded`` log entry with
    the config_id, version and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from quote_config.loader import load_yaml_file, parse_config
from quote_config.schema import (
    ConversionConfig,
    DatabaseConfig,
    KernelConfig,
    QuotationConfig,
    TaxConfig,
)

_logger = logging.getLogger("quote_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(config_path: Path | None = None) -> KernelConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration file.
            Defaults to quote_config/defaults.yaml.

    Returns:
        A frozen, validated KernelConfig.  ``DATABASE_URL`` in the
        environment, when set, replaces ``database.url``.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value fails validation.
    """
    path = config_path or _DEFAULT_CONFIG_PATH
    data = load_yaml_file(path)
    config = parse_config(data, url_override=os.environ.get(DATABASE_URL_ENV) or None)

    _logger.info(
        "quote_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
        },
    )
    return config


__all__ = [
    "ConversionConfig",
    "DatabaseConfig",
    "KernelConfig",
    "QuotationConfig",
    "TaxConfig",
    "get_active_config",
]
