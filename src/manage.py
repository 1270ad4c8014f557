"""Storefront ordering management CLI.

Creates the database schema and runs the scheduled shipment-tracking sync.
Run `sync-tracking` from cron (or any scheduler) to pull carrier status for
every order still in flight.

Usage:
    python src/manage.py setup-db                      # Create the order and inventory tables
    python src/manage.py drop-db                       # Drop them again
    python src/manage.py sync-tracking                 # Sync every in-flight order
    python src/manage.py sync-tracking --order <id>    # Sync a single order
"""

import argparse
import asyncio
import sys


def setup_database():
    """Create the schema on the configured database (DATABASE_URL)."""
    from ordering.domain import ordering
    from ordering.utils.db import setup_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Creating ordering database schema...")
    setup_db(ordering)
    print("  ordering schema ready.")
    print("Done.")


def drop_database():
    from ordering.domain import ordering
    from ordering.utils.db import drop_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Dropping ordering database schema...")
    drop_db(ordering)
    print("  ordering schema dropped.")
    print("Done.")


async def _sync(order_ids=None):
    from fulfillment.carrier import build_shipping_provider
    from fulfillment.carrier.config import ShippingConfig
    from ordering.order.lifecycle import OrderLifecycle, attempt

    config = ShippingConfig.from_env()
    provider = build_shipping_provider(config)
    lifecycle = OrderLifecycle(provider, config)
    try:
        if not provider.enabled:
            print("Shipping provider is not configured; nothing to sync.")
            return {"synced": 0, "failed": 0}
        if not order_ids:
            return await lifecycle.sync_all()

        summary = {"synced": 0, "failed": 0}
        for order_id in order_ids:
            outcome = await attempt("tracking_sync", lambda order_id=order_id: lifecycle.sync_tracking(order_id))
            summary["synced" if outcome.ok else "failed"] += 1
        return summary
    finally:
        await provider.aclose()


def sync_tracking(order_ids=None):
    """Pull carrier tracking for the given (or all in-flight) orders."""
    from ordering.domain import ordering
    from ordering.utils.logging import configure_logging

    configure_logging(log_file_prefix="sync")
    print("Initializing ordering domain...")
    ordering.init()

    with ordering.domain_context():
        summary = asyncio.run(_sync(order_ids))

    print(f"Synced {summary['synced']} order(s), {summary['failed']} failed.")
    return summary


def build_parser():
    parser = argparse.ArgumentParser(description="Storefront ordering management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    sync_parser = subparsers.add_parser("sync-tracking", help="Sync carrier tracking for in-flight orders")
    sync_parser.add_argument(
        "--order",
        dest="orders",
        action="append",
        help="Specific order id(s) to sync (default: every in-flight order)",
    )
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "sync-tracking":
        summary = sync_tracking(args.orders)
        sys.exit(1 if summary["failed"] else 0)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
