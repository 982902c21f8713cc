"""
Config -> Kernel Bridges.

Functions that turn a KernelConfig into configured kernel objects.  These
live in quote_config (the producer) because the kernel must NEVER import
quote_config.

Usage:
    from quote_config import get_active_config
    from quote_config.bridges import build_engine, build_services

    config = get_active_config()
    engine = build_engine(config)
    services = build_services(session, SystemClock(), config)
    services.conversion.convert(quotation_id, admin_id)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from quote_config.schema import KernelConfig
from quote_kernel.db.engine import create_kernel_engine
from quote_kernel.domain.calculations import default_tax_configuration
from quote_kernel.domain.clock import Clock
from quote_kernel.domain.dtos import TaxConfiguration
from quote_kernel.domain.store import DocumentStore
from quote_kernel.services.conversion_orchestrator import ConversionOrchestrator, RetryPolicy
from quote_kernel.services.document_store import SqlDocumentStore
from quote_kernel.services.quotation_service import QuotationService
from quote_kernel.services.status_service import StatusService


@dataclass(frozen=True)
class KernelServices:
    """Services wired to one store and one configuration."""

    store: DocumentStore
    quotations: QuotationService
    conversion: ConversionOrchestrator
    status: StatusService


def build_engine(config: KernelConfig, url: str | None = None) -> Engine:
    db = config.database
    return create_kernel_engine(
        url or db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        busy_timeout_ms=db.busy_timeout_ms,
    )


def build_fallback_tax(config: KernelConfig) -> TaxConfiguration:
    """IVA applied when the store holds no active default tax."""
    return default_tax_configuration(config.tax.default_rate, config.tax.default_name)


def build_retry_policy(config: KernelConfig) -> RetryPolicy:
    return RetryPolicy.from_config(config.conversion)


def build_quotation_service(
    store: DocumentStore, clock: Clock, config: KernelConfig,
) -> QuotationService:
    return QuotationService(
        store,
        clock,
        default_validity_days=config.quotation.default_validity_days,
        timeout_seconds=config.conversion.store_timeout_seconds,
        fallback_tax=build_fallback_tax(config),
    )


def build_conversion_orchestrator(
    store: DocumentStore, clock: Clock, config: KernelConfig,
) -> ConversionOrchestrator:
    return ConversionOrchestrator(store, clock, retry_policy=build_retry_policy(config))


def build_status_service(
    store: DocumentStore, clock: Clock, config: KernelConfig,
) -> StatusService:
    return StatusService(
        store,
        clock,
        expirable_statuses=config.quotation.expirable_statuses,
        timeout_seconds=config.conversion.store_timeout_seconds,
    )


def build_services(session: Session, clock: Clock, config: KernelConfig) -> KernelServices:
    """Build a store over ``session`` and every service on top of it."""
    store = SqlDocumentStore(
        session,
        clock,
        default_timeout_seconds=config.conversion.store_timeout_seconds,
    )
    return KernelServices(
        store=store,
        quotations=build_quotation_service(store, clock, config),
        conversion=build_conversion_orchestrator(store, clock, config),
        status=build_status_service(store, clock, config),
    )
