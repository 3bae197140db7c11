"""Reconciliation jobs: pull upstream truth into local orders, repair stuck ones.

Orders are processed one at a time with a fixed delay in between. A failure
on one order is written onto that order (error + error_at) and the batch
moves on.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional

from libs.common.config import Settings
from libs.common.datetime_utils import ensure_aware, utc_now
from libs.common.logging import get_logger
from services.fulfillment_service import address as address_normalizer
from services.fulfillment_service.errors import (
    AddressValidationError,
    ConfigError,
    FulfillmentError,
    LockedError,
    NotFoundError,
    ValidationError,
    looks_locked,
)
from services.fulfillment_service.gateway import OrderGateway
from services.fulfillment_service.models import FulfillmentOrder, RepairOutcome
from services.fulfillment_service.schemas import (
    OrderStatusSnapshot,
    OrderSyncResult,
    RefreshSummary,
    RepairResult,
    RepairSummary,
    ShippingInstruction,
)
from services.fulfillment_service.status_mapper import simplify
from services.fulfillment_service.store import OrderStore
from services.fulfillment_service.throttle import FixedDelayThrottle, SleepFn

logger = get_logger(__name__)

# Written to repair_status when the upstream update answers without a status.
ADDRESS_FIXED_SENTINEL = "Address Fixed - Verify Status"


def apply_snapshot(
    order: FulfillmentOrder, snapshot: OrderStatusSnapshot, synced_at: datetime
) -> None:
    """Overwrite the mirrored upstream fields with a fresh snapshot."""
    order.upstream_status = snapshot.status
    if snapshot.transaction_id:
        order.upstream_transaction_id = snapshot.transaction_id
    order.upstream_tracking_numbers = list(snapshot.tracking_numbers)
    order.upstream_fulfillments = [
        fulfillment.model_dump(mode="json") for fulfillment in snapshot.fulfillments
    ]
    order.fulfillment_status = simplify(snapshot.status, snapshot.tracking_numbers)
    order.last_synced_at = synced_at
    order.clear_error()


class ReconciliationJobs:
    def __init__(
        self,
        gateway: OrderGateway,
        store: OrderStore,
        *,
        on_hold_status: str,
        batch_size: int = 20,
        min_sync_interval: timedelta = timedelta(minutes=5),
        sync_throttle: Optional[FixedDelayThrottle] = None,
        repair_throttle: Optional[FixedDelayThrottle] = None,
        default_country: str = address_normalizer.DEFAULT_COUNTRY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.gateway = gateway
        self.store = store
        self.on_hold_status = on_hold_status
        self.batch_size = batch_size
        self.min_sync_interval = min_sync_interval
        self.sync_throttle = sync_throttle or FixedDelayThrottle(0.5)
        self.repair_throttle = repair_throttle or FixedDelayThrottle(1.0)
        self.default_country = default_country
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        gateway: OrderGateway,
        store: OrderStore,
        settings: Settings,
        sleep: SleepFn = asyncio.sleep,
    ) -> "ReconciliationJobs":
        return cls(
            gateway,
            store,
            on_hold_status=settings.ON_HOLD_STATUS,
            batch_size=settings.STATUS_SYNC_BATCH_SIZE,
            min_sync_interval=timedelta(seconds=settings.STATUS_SYNC_MIN_INTERVAL_SECONDS),
            sync_throttle=FixedDelayThrottle(settings.STATUS_SYNC_DELAY_SECONDS, sleep),
            repair_throttle=FixedDelayThrottle(settings.REPAIR_DELAY_SECONDS, sleep),
            default_country=settings.UPSTREAM_DEFAULT_COUNTRY,
        )

    # =========================================================================
    # Status sync
    # =========================================================================

    async def sync_order_by_id(self, order_id: str) -> OrderSyncResult:
        order = await self.store.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return await self.sync_order(order)

    async def sync_order(self, order: FulfillmentOrder) -> OrderSyncResult:
        """Refresh one order from upstream. Errors are recorded, then re-raised."""
        if order.upstream_order_id is None and not order.upstream_handle:
            raise ValidationError(f"Order {order.id} has not been submitted upstream yet")

        try:
            if order.upstream_order_id is None:
                if not await self._resolve_handle(order):
                    await self.store.save(order)
                    return self._sync_result(order, synced=False)

            snapshot = await self.gateway.fetch_status(order.upstream_order_id)
            apply_snapshot(order, snapshot, self._clock())
        except Exception as exc:
            message = exc.message if isinstance(exc, FulfillmentError) else str(exc)
            order.record_error(message, self._clock())
            await self.store.save(order)
            raise

        await self.store.save(order)
        logger.info(
            "Order %s synced: %s (tracking: %s)",
            order.id,
            order.upstream_status,
            ", ".join(order.upstream_tracking_numbers) or "none",
        )
        return self._sync_result(order, synced=True)

    async def _resolve_handle(self, order: FulfillmentOrder) -> bool:
        """Poll an asynchronous order. True once it has an upstream id."""
        poll = await self.gateway.poll_order(order.upstream_handle)
        if poll.upstream_order_id is not None:
            order.bind_upstream_order(poll.upstream_order_id, poll.transaction_id)
            logger.info(
                "Order %s resolved handle %s to upstream order %s",
                order.id,
                order.upstream_handle,
                poll.upstream_order_id,
            )
            return True

        if poll.sync_error:
            raise FulfillmentError(f"Upstream sync error: {poll.sync_error}")

        logger.info(
            "Order %s still pending upstream (%d attempts remaining)",
            order.id,
            poll.sync_attempts_remaining,
        )
        order.last_synced_at = self._clock()
        return False

    async def refresh_recent_statuses(self) -> RefreshSummary:
        """Sync the most recent orders that carry an upstream reference."""
        summary = RefreshSummary()
        now = self._clock()
        recent = await self.store.list_recent(self.batch_size)

        due = []
        for order in recent:
            if order.upstream_order_id is None and not order.upstream_handle:
                continue
            summary.checked += 1
            last_synced = ensure_aware(order.last_synced_at)
            if last_synced and now - last_synced < self.min_sync_interval:
                summary.skipped += 1
                summary.results.append(
                    self._sync_result(order, synced=False, skipped=True)
                )
                continue
            due.append(order)

        async for order in self.sync_throttle.iterate(due):
            try:
                result = await self.sync_order(order)
            except Exception as exc:
                logger.warning("Status sync failed for order %s: %s", order.id, exc)
                summary.failed += 1
                summary.results.append(
                    self._sync_result(order, synced=False, error=order.error or str(exc))
                )
                continue
            if result.synced:
                summary.synced += 1
            summary.results.append(result)

        logger.info(
            "Status refresh: %d checked, %d synced, %d skipped, %d failed",
            summary.checked,
            summary.synced,
            summary.skipped,
            summary.failed,
        )
        return summary

    @staticmethod
    def _sync_result(
        order: FulfillmentOrder,
        *,
        synced: bool,
        skipped: bool = False,
        error: Optional[str] = None,
    ) -> OrderSyncResult:
        return OrderSyncResult(
            order_id=order.id,
            synced=synced,
            skipped=skipped,
            upstream_order_id=order.upstream_order_id,
            upstream_status=order.upstream_status,
            customer_status=order.fulfillment_status,
            tracking_numbers=list(order.upstream_tracking_numbers or []),
            error=error,
        )

    # =========================================================================
    # On-hold repair
    # =========================================================================

    async def repair_on_hold_orders(self, *, dry_run: bool = False) -> RepairSummary:
        """
        Resubmit address and shipping instruction for orders stuck on hold.

        Per order: incomplete address -> SKIPPED_INCOMPLETE_ADDRESS (no
        upstream call); update accepted -> REPAIRED; update refused ->
        REPAIR_FAILED, or LOCKED when the refusal looks like a lock.
        A missing required shipping instruction aborts the run after recording
        it on the current order; any other failure fetching it fails only that
        order.
        """
        summary = RepairSummary(dry_run=dry_run)
        orders = [
            order
            for order in await self.store.list_by_upstream_status(self.on_hold_status)
            if not self._awaiting_verification(order)
        ]
        if not orders:
            logger.info("No orders with upstream status %r", self.on_hold_status)
            return summary

        logger.info(
            "Found %d order(s) with upstream status %r%s",
            len(orders),
            self.on_hold_status,
            " (dry run)" if dry_run else "",
        )

        async for order in self.repair_throttle.iterate(orders):
            result = await self._repair_one(order, summary, dry_run)
            summary.results.append(result)

        logger.info(
            "On-hold repair: %d repaired, %d skipped (incomplete address), "
            "%d failed, %d locked",
            summary.count(RepairOutcome.REPAIRED),
            summary.count(RepairOutcome.SKIPPED_INCOMPLETE_ADDRESS),
            summary.count(RepairOutcome.REPAIR_FAILED),
            summary.count(RepairOutcome.LOCKED),
        )
        return summary

    def _awaiting_verification(self, order: FulfillmentOrder) -> bool:
        # repaired without a status answer, not re-synced since
        fixed_at = ensure_aware(order.address_fixed_at)
        if fixed_at is None:
            return False
        last_synced = ensure_aware(order.last_synced_at)
        return last_synced is None or last_synced < fixed_at

    async def _required_instruction(self, summary: RepairSummary) -> ShippingInstruction:
        if summary.shipping_instruction is None:
            summary.shipping_instruction = (
                await self.gateway.get_required_shipping_instruction()
            )
            logger.info(
                "Using shipping instruction %r (id %s)",
                summary.shipping_instruction.name,
                summary.shipping_instruction.id,
            )
        return summary.shipping_instruction

    async def _repair_one(
        self, order: FulfillmentOrder, summary: RepairSummary, dry_run: bool
    ) -> RepairResult:
        now = self._clock()

        if order.upstream_order_id is None:
            message = "Order is on hold but has no upstream order id"
            logger.warning("Order %s: %s", order.id, message)
            if not dry_run:
                order.record_error(message, now)
                await self.store.save(order)
            return RepairResult(
                order_id=order.id, outcome=RepairOutcome.REPAIR_FAILED, message=message
            )

        try:
            upstream_address = address_normalizer.normalize(
                order.shipping_address, default_country=self.default_country
            )
        except AddressValidationError as exc:
            logger.warning(
                "Order %s skipped, fix the address manually: %s (%s)",
                order.id,
                exc.message,
                address_normalizer.format_one_line(order.shipping_address),
            )
            if not dry_run:
                order.record_error(exc.message, now)
                await self.store.save(order)
            return RepairResult(
                order_id=order.id,
                upstream_order_id=order.upstream_order_id,
                outcome=RepairOutcome.SKIPPED_INCOMPLETE_ADDRESS,
                upstream_status=order.upstream_status,
                missing_fields=exc.missing_fields,
                message=exc.message,
            )
        except ValidationError as exc:
            # stored address is not even shaped like an address
            logger.warning("Order %s skipped: %s", order.id, exc.message)
            if not dry_run:
                order.record_error(exc.message, now)
                await self.store.save(order)
            return RepairResult(
                order_id=order.id,
                upstream_order_id=order.upstream_order_id,
                outcome=RepairOutcome.SKIPPED_INCOMPLETE_ADDRESS,
                upstream_status=order.upstream_status,
                message=exc.message,
            )

        try:
            instruction = await self._required_instruction(summary)
        except ConfigError as exc:
            # affects every remaining order, so the run stops here
            await self._record_repair_failure(order, exc, now, dry_run)
            raise
        except FulfillmentError as exc:
            return await self._record_repair_failure(order, exc, now, dry_run)

        if dry_run:
            return RepairResult(
                order_id=order.id,
                upstream_order_id=order.upstream_order_id,
                outcome=RepairOutcome.WOULD_REPAIR,
                upstream_status=order.upstream_status,
                message=f"Would send {address_normalizer.format_one_line(order.shipping_address)}",
            )

        notes = (
            f"Fixed via repair job on {now.isoformat()}: updated shipping address "
            f'and instruction to "{instruction.name}"'
        )
        try:
            updated = await self.gateway.update_order(
                order.upstream_order_id,
                shipping_address=upstream_address,
                shipping_instruction_id=instruction.id,
                notes=notes,
            )
        except Exception as exc:
            return await self._record_repair_failure(order, exc, now, dry_run)

        order.repair_status = updated.status or ADDRESS_FIXED_SENTINEL
        if updated.status:
            order.upstream_status = updated.status
            order.fulfillment_status = simplify(
                updated.status, order.upstream_tracking_numbers
            )
        order.address_fixed_at = now
        order.clear_error()
        await self.store.save(order)

        logger.info(
            "Order %s repaired upstream (order %s): %s",
            order.id,
            order.upstream_order_id,
            order.repair_status,
        )
        return RepairResult(
            order_id=order.id,
            upstream_order_id=order.upstream_order_id,
            outcome=RepairOutcome.REPAIRED,
            upstream_status=order.repair_status,
        )

    async def _record_repair_failure(
        self,
        order: FulfillmentOrder,
        exc: Exception,
        now: datetime,
        dry_run: bool = False,
    ) -> RepairResult:
        if isinstance(exc, FulfillmentError):
            # lock classification happens once, in classify_response
            message = exc.message
            locked = isinstance(exc, LockedError)
        else:
            message = str(exc) or exc.__class__.__name__
            locked = looks_locked(None, message)

        if locked:
            logger.error(
                "Order %s (upstream %s) appears locked upstream; contact upstream "
                "support to unlock it rather than retrying: %s",
                order.id,
                order.upstream_order_id,
                message,
            )
        else:
            logger.warning(
                "Repair failed for order %s (upstream %s): %s",
                order.id,
                order.upstream_order_id,
                message,
            )

        if not dry_run:
            order.record_error(message, now)
            await self.store.save(order)
        return RepairResult(
            order_id=order.id,
            upstream_order_id=order.upstream_order_id,
            outcome=RepairOutcome.LOCKED if locked else RepairOutcome.REPAIR_FAILED,
            upstream_status=order.upstream_status,
            message=message,
        )
