#!/usr/bin/env python3
"""
Expire quotations whose validity period has ended.

Loads the active configuration, opens the configured database and moves
every expirable quotation past its validity window to ``expired``, one
history entry per quotation.  Intended for cron.

Usage:
  python3 scripts/run_expiry_sweep.py [--config path.yaml] [--db-url ...] [--create-tables]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main() -> int:
    parser = argparse.ArgumentParser(description="Expire stale quotations.")
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--db-url", type=str, default=None, help="Overrides database.url")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create kernel tables before sweeping (fresh databases)",
    )
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    from quote_config import get_active_config
    from quote_config.bridges import build_engine, build_services
    from quote_kernel.db.engine import create_session_factory, create_tables
    from quote_kernel.db.immutability import register_immutability_listeners
    from quote_kernel.domain.clock import SystemClock
    from quote_kernel.logging_config import configure_logging

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    config = get_active_config(args.config)
    engine = build_engine(config, args.db_url)
    if args.create_tables:
        create_tables(engine)
    register_immutability_listeners()

    factory = create_session_factory(engine)
    session = factory()
    try:
        services = build_services(session, SystemClock(), config)
        result = services.status.expire_stale_quotations()
    finally:
        session.close()
        engine.dispose()

    print(f"Expired {result.count} quotation(s)")
    for document_id in result.expired_ids:
        print(f"  {document_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
