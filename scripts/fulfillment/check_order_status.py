"""Print live upstream status for the most recent orders.

Usage examples:
  # Show status only
  ENV_FILE=.env.prod python scripts/fulfillment/check_order_status.py

  # Also write the fresh status back to the local orders
  ENV_FILE=.env.prod python scripts/fulfillment/check_order_status.py --write --limit 50
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _load_env_file() -> None:
    env_file = os.environ.get("ENV_FILE", ".env")
    env_path = (PROJECT_ROOT / env_file).resolve()
    if not env_path.exists():
        if os.environ.get("DATABASE_URL") and os.environ.get("UPSTREAM_EMAIL"):
            print(f"Env file not found at {env_path}; using existing environment vars.")
            return
        raise FileNotFoundError(f"Env file not found: {env_path}")
    load_dotenv(env_path, override=True)


def _print_snapshot(order, snapshot) -> None:
    print(f"Order: {order.id}")
    print(f"  Upstream ID:     {order.upstream_order_id}")
    print(f"  Customer:        {order.customer_email}")
    print(f"  Local status:    {order.upstream_status or 'N/A'}")
    print(f"  Live status:     {snapshot.status}")
    print(f"  Transaction ID:  {snapshot.transaction_id}")
    print(f"  Amount:          {snapshot.amount if snapshot.amount is not None else 'N/A'}")
    print(f"  Date:            {snapshot.transaction_date}")
    print(f"  Tracking #s:     {', '.join(snapshot.tracking_numbers) or '(none yet)'}")
    if snapshot.shipping_address:
        address = snapshot.shipping_address
        print(f"  Ship to:         {address.get('addressee', '(no name)')}")
        print(f"                   {address.get('addr1', '(no address)')}")
        if address.get("addr2"):
            print(f"                   {address['addr2']}")
        print(
            f"                   {address.get('city', '')}, "
            f"{address.get('state', '')} {address.get('zip', '')}"
        )
    if snapshot.shipping_instruction:
        print(f"  Shipping type:   {snapshot.shipping_instruction.name}")
    if snapshot.payment_method:
        print(f"  Payment method:  {snapshot.payment_method.title}")
    for fulfillment in snapshot.fulfillments:
        print(f"  Fulfillment:     {fulfillment.ship_date} via {fulfillment.ship_method}")
        if fulfillment.tracking_numbers:
            print(f"                   tracking {', '.join(fulfillment.tracking_numbers)}")


async def _main() -> int:
    parser = argparse.ArgumentParser(
        description="Show live upstream status for recent orders."
    )
    parser.add_argument("--limit", type=int, default=20, help="Recent orders to check.")
    parser.add_argument(
        "--write",
        action="store_true",
        help="Store the fetched status on each local order.",
    )
    args = parser.parse_args()

    _load_env_file()
    sys.path.insert(0, str(PROJECT_ROOT))

    from libs.common.config import get_settings
    from libs.common.datetime_utils import utc_now
    from libs.common.logging import configure_logging
    from libs.db.config import AsyncSessionLocal
    from services.fulfillment_service.dependencies import (
        get_order_gateway,
        require_upstream_credentials,
    )
    from services.fulfillment_service.errors import FulfillmentError
    from services.fulfillment_service.reconciliation import apply_snapshot
    from services.fulfillment_service.store import SqlOrderStore
    from services.fulfillment_service.throttle import FixedDelayThrottle

    configure_logging()
    settings = get_settings()
    require_upstream_credentials(settings)
    gateway = get_order_gateway()
    throttle = FixedDelayThrottle(settings.STATUS_SYNC_DELAY_SECONDS)
    failures = 0

    async with AsyncSessionLocal() as db:
        store = SqlOrderStore(db)
        orders = [
            order
            for order in await store.list_recent(args.limit)
            if order.upstream_order_id is not None
        ]
        if not orders:
            print("No orders found with upstream order ids")
            return 0

        print(f"Found {len(orders)} order(s) to check")
        async for order in throttle.iterate(orders):
            print("")
            try:
                snapshot = await gateway.fetch_status(order.upstream_order_id)
            except FulfillmentError as exc:
                failures += 1
                print(f"Order {order.id}: error fetching upstream status: {exc.message}")
                continue

            _print_snapshot(order, snapshot)
            if args.write:
                apply_snapshot(order, snapshot, utc_now())
                await store.save(order)
                print("  Local order updated")

    print("")
    print(f"Status check complete ({failures} failure(s))")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(_main()))
