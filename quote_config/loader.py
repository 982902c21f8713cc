"""
Configuration Loader (``quote_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the frozen
``quote_config.schema`` dataclasses.  Runtime code never calls this
directly; the single public entry point is
``quote_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Expirable statuses must be quotation statuses with a legal transition
  to ``expired``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  canonical parsed data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, is_dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from quote_config.schema import (
    ConversionConfig,
    DatabaseConfig,
    KernelConfig,
    QuotationConfig,
    TaxConfig,
)
from quote_kernel.domain.status import (
    QUOTATION_TRANSITIONS,
    QuotationStatus,
    parse_quotation_status,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _parse_decimal(value: Any, field: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field} must be a decimal, got {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{field} must be finite, got {value!r}")
    return result


def parse_tax(data: dict[str, Any]) -> TaxConfig:
    rate = _parse_decimal(data["default_rate"], "tax.default_rate")
    if rate < 0:
        raise ValueError(f"tax.default_rate cannot be negative, got {rate}")
    return TaxConfig(default_rate=rate, default_name=str(data["default_name"]))


def parse_quotation(data: dict[str, Any]) -> QuotationConfig:
    validity = int(data["default_validity_days"])
    if validity <= 0:
        raise ValueError(
            f"quotation.default_validity_days must be positive, got {validity}"
        )
    statuses: list[str] = []
    for raw in data["expirable_statuses"]:
        status = parse_quotation_status(str(raw))
        if status is None:
            raise ValueError(f"quotation.expirable_statuses: unknown status {raw!r}")
        if QuotationStatus.EXPIRED not in QUOTATION_TRANSITIONS[status]:
            raise ValueError(
                f"quotation.expirable_statuses: {status.value} cannot transition to expired"
            )
        statuses.append(status.value)
    return QuotationConfig(
        default_validity_days=validity,
        expirable_statuses=tuple(statuses),
    )


def parse_conversion(data: dict[str, Any]) -> ConversionConfig:
    config = ConversionConfig(
        max_attempts=int(data["max_attempts"]),
        base_backoff_seconds=float(data["base_backoff_seconds"]),
        max_backoff_seconds=float(data["max_backoff_seconds"]),
        store_timeout_seconds=float(data["store_timeout_seconds"]),
    )
    if config.max_attempts < 1:
        raise ValueError(f"conversion.max_attempts must be >= 1, got {config.max_attempts}")
    if config.base_backoff_seconds < 0 or config.max_backoff_seconds < config.base_backoff_seconds:
        raise ValueError(
            "conversion backoff must satisfy 0 <= base_backoff_seconds <= max_backoff_seconds"
        )
    if config.store_timeout_seconds <= 0:
        raise ValueError("conversion.store_timeout_seconds must be positive")
    return config


def parse_database(data: dict[str, Any], url_override: str | None = None) -> DatabaseConfig:
    return DatabaseConfig(
        url=url_override or str(data["url"]),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 10)),
        max_overflow=int(data.get("max_overflow", 10)),
        busy_timeout_ms=int(data.get("busy_timeout_ms", 30000)),
    )


def parse_config(data: dict[str, Any], url_override: str | None = None) -> KernelConfig:
    """
    Parse a full configuration dict into a KernelConfig.

    The checksum covers the parsed data (after any URL override) so it
    identifies exactly what the kernel will run with.
    """
    config_without_checksum = {
        "config_id": str(data["config_id"]),
        "version": int(data["version"]),
        "tax": parse_tax(data["tax"]),
        "quotation": parse_quotation(data["quotation"]),
        "conversion": parse_conversion(data["conversion"]),
        "database": parse_database(data["database"], url_override),
    }
    checksum = compute_checksum(
        {
            key: asdict(value) if is_dataclass(value) else value
            for key, value in config_without_checksum.items()
        }
    )
    return KernelConfig(checksum=checksum, **config_without_checksum)
