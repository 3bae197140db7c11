"""Repair orders stuck "On Hold - Contact Desk" upstream.

Resends each order's stored shipping address together with the required
shipping instruction. Orders with an incomplete stored address are listed
and left alone; fix them in the database first.

Usage examples:
  # Preview only (default dry-run)
  ENV_FILE=.env.prod python scripts/fulfillment/fix_onhold_orders.py

  # Apply changes
  ENV_FILE=.env.prod python scripts/fulfillment/fix_onhold_orders.py --apply
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
        # In containers, env vars are often injected without mounting the env file.
        if os.environ.get("DATABASE_URL") and os.environ.get("UPSTREAM_EMAIL"):
            print(f"Env file not found at {env_path}; using existing environment vars.")
            return
        raise FileNotFoundError(f"Env file not found: {env_path}")
    load_dotenv(env_path, override=True)


def _print_summary(summary) -> None:
    from services.fulfillment_service.models import RepairOutcome

    if summary.shipping_instruction is not None:
        print(
            f'Shipping instruction: "{summary.shipping_instruction.name}" '
            f"(ID: {summary.shipping_instruction.id})"
        )
    print("")
    for result in summary.results:
        print(
            f"  {result.order_id} (upstream {result.upstream_order_id}): "
            f"{result.outcome.value}"
            + (f" - {result.message}" if result.message else "")
        )
    print("")
    print(f"Total orders: {len(summary.results)}")
    if summary.dry_run:
        print(f"Would repair: {summary.count(RepairOutcome.WOULD_REPAIR)}")
    else:
        print(f"Repaired: {summary.count(RepairOutcome.REPAIRED)}")
        print(f"Failed: {summary.count(RepairOutcome.REPAIR_FAILED)}")
    print(
        "Skipped (incomplete address): "
        f"{summary.count(RepairOutcome.SKIPPED_INCOMPLETE_ADDRESS)}"
    )
    locked = summary.count(RepairOutcome.LOCKED)
    if locked:
        print(f"Locked upstream: {locked} - contact upstream support to unlock these.")


async def _main() -> int:
    parser = argparse.ArgumentParser(
        description="Repair orders stuck on hold at the upstream fulfillment API."
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Send updates upstream (default is dry-run).",
    )
    args = parser.parse_args()

    _load_env_file()
    sys.path.insert(0, str(PROJECT_ROOT))

    from libs.common.config import get_settings
    from libs.common.logging import configure_logging
    from services.fulfillment_service.dependencies import require_upstream_credentials
    from services.fulfillment_service.tasks import repair_on_hold_orders

    configure_logging()
    require_upstream_credentials(get_settings())

    summary = await repair_on_hold_orders(dry_run=not args.apply)
    _print_summary(summary)

    if not args.apply:
        print("")
        print("Dry-run only. Re-run with --apply to execute.")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(_main()))
