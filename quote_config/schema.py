"""
KernelConfig schema.

Typed, frozen view of the kernel configuration.  YAML is parsed into these
types by ``loader.py`` and handed out only through
``quote_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class TaxConfig:
    """Fallback IVA used when the store holds no default tax configuration."""

    default_rate: Decimal
    default_name: str


@dataclass(frozen=True)
class QuotationConfig:
    default_validity_days: int
    expirable_statuses: tuple[str, ...]


@dataclass(frozen=True)
class ConversionConfig:
    """Retry and timeout policy for the conversion orchestrator."""

    max_attempts: int
    base_backoff_seconds: float
    max_backoff_seconds: float
    store_timeout_seconds: float


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    busy_timeout_ms: int = 30000


@dataclass(frozen=True)
class KernelConfig:
    config_id: str
    version: int
    tax: TaxConfig
    quotation: QuotationConfig
    conversion: ConversionConfig
    database: DatabaseConfig
    checksum: str
