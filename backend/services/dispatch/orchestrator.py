"""
Dispatch decision engine.

One dispatch cycle for one order:

1. No pickup coordinates      -> broadcast to every online approved driver
2. Locate drivers in radius   -> nobody: broadcast to online drivers elsewhere,
                                 or escalate when nobody is online
3. Best score > threshold     -> auto-assign under the pending/unassigned guard;
                                 a lost race restarts from 2 with a fresh query
4. Otherwise                  -> broadcast to the top N candidates
5. Escalation                 -> no_drivers_available + queue + urgent
                                 broadcast to all approved drivers + operator alert

Any failure while locating, scoring or assigning falls back to a broadcast to
all online drivers. If even that fails the order stays pending and the
sweeper picks it up again.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Set

from django.db import DatabaseError
from django.db.models import F
from django.utils import timezone

from common.utils import call_with_retry
from orders.models import Order, OrderRejection
from realtime.notifications import (
    NotificationGateway,
    Notice,
    OperatorAlertChannel,
    customer_order_notice,
    driver_order_notice,
)
from services.matching import DriverCandidate, DriverLocator, GeoScorer, ScoredCandidate
from services.order_management import guards
from services.order_management.order_lifecycle import record_rejection
from .config import DispatchConfig
from .queue import QueueManager

logger = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    AUTO_ASSIGNED = "auto_assigned"
    BROADCASTED = "broadcasted"
    QUEUED = "queued"
    ESCALATED = "escalated"
    SKIPPED = "skipped"


@dataclass
class DispatchResult:
    outcome: DispatchOutcome
    order_id: int
    driver_id: Optional[int] = None
    notified_driver_ids: List[int] = field(default_factory=list)
    reason: str = ""


class DispatchOrchestrator:
    def __init__(
        self,
        locator: DriverLocator,
        scorer: GeoScorer,
        gateway: NotificationGateway,
        alerts: OperatorAlertChannel,
        queue: QueueManager,
        config: Optional[DispatchConfig] = None,
    ):
        self.locator = locator
        self.scorer = scorer
        self.gateway = gateway
        self.alerts = alerts
        self.queue = queue
        self.config = config or DispatchConfig()

    # ---------------------- Entry points ----------------------

    def dispatch(
        self,
        order_id: int,
        radius_miles: Optional[float] = None,
        exclude_driver_ids: Iterable[int] = (),
        rejection: bool = False,
    ) -> DispatchResult:
        """
        Run one dispatch cycle for an order.

        Args:
            order_id: Order to dispatch
            radius_miles: Search radius (defaults to SEARCH_RADIUS_MILES)
            exclude_driver_ids: Drivers never to offer this order to
            rejection: True when re-dispatching after a driver declined

        Returns:
            DispatchResult describing what was done
        """
        radius = self.config.search_radius_miles if radius_miles is None else radius_miles

        try:
            order = self._load(order_id)
            excluded = set(exclude_driver_ids) | self._rejected_driver_ids(order_id)
        except DatabaseError:
            logger.exception("Could not load order %s for dispatch, leaving it for the sweeper", order_id)
            return DispatchResult(DispatchOutcome.SKIPPED, order_id, reason="store unavailable")

        if order is None:
            logger.warning("Order %s not found, nothing to dispatch", order_id)
            return DispatchResult(DispatchOutcome.SKIPPED, order_id, reason="not found")

        if order.status != Order.STATUS_PENDING:
            logger.debug("Order %s is %s, skipping dispatch", order_id, order.status)
            return DispatchResult(DispatchOutcome.SKIPPED, order_id, reason=f"status is {order.status}")

        try:
            result = self._run(order, radius, excluded, rejection)
        except Exception:
            logger.exception("Dispatch failed for order %s, falling back to broadcast", order_id)
            result = self._fallback(order, excluded)

        logger.info(
            "Dispatch order=%s outcome=%s driver=%s notified=%d %s",
            order_id, result.outcome.value, result.driver_id,
            len(result.notified_driver_ids), result.reason,
        )
        self._record(result)
        return result

    def handle_rejection(self, order_id: int, driver_id: int) -> DispatchResult:
        """
        React to a driver declining an order.

        Records the rejection, hands an assigned order back to the pool and
        re-dispatches over the wider rejection radius, excluding every driver
        who has declined this order so far.
        """
        self._call(record_rejection, order_id, driver_id)
        self._call(guards.release_assignment, order_id, driver_id)

        return self.dispatch(
            order_id,
            radius_miles=self.config.rejection_radius_miles,
            exclude_driver_ids=self._rejected_driver_ids(order_id),
            rejection=True,
        )

    # ---------------------- Decision flow ----------------------

    def _run(self, order: Order, radius: float, excluded: Set[int], rejection: bool) -> DispatchResult:
        if not order.has_pickup_coordinates:
            logger.info("Order %s has no pickup coordinates, broadcasting to online drivers", order.id)
            return self._broadcast_to_online(order, excluded, reason="no pickup coordinates")

        order_id = order.id
        ranked: List[ScoredCandidate] = []
        for attempt in range(1, self.config.max_assign_attempts + 1):
            candidates = self._call(
                self.locator.find_candidates,
                float(order.pickup_latitude),
                float(order.pickup_longitude),
                radius,
                excluded,
            )
            if not candidates:
                return self._no_candidates(order, excluded, rejection)

            ranked = self.scorer.rank(order, candidates)
            best = ranked[0]
            logger.debug(
                "Order %s best candidate driver=%s score=%.3f (%d candidates)",
                order.id, best.driver_id, best.score, len(ranked),
            )

            if best.score <= self.config.auto_assign_threshold:
                return self._broadcast(order, ranked[:self.config.broadcast_fanout], reason="below threshold")

            if self._call(guards.assign_if_pending, order.id, best.driver_id):
                self._notify(best.driver_id, driver_order_notice(order, "assigned"))
                order.driver_id = best.driver_id
                self._notify(order.customer_id, customer_order_notice(order, "assigned"))
                return DispatchResult(
                    DispatchOutcome.AUTO_ASSIGNED,
                    order.id,
                    driver_id=best.driver_id,
                    notified_driver_ids=[best.driver_id],
                    reason=f"score {best.score:.3f}",
                )

            # Lost the race; look again if the order is still up for grabs
            order = self._load(order_id)
            if order is None or order.status != Order.STATUS_PENDING:
                return DispatchResult(
                    DispatchOutcome.SKIPPED,
                    order_id,
                    reason="handled concurrently",
                )
            logger.info("Order %s auto-assign race lost (attempt %d), retrying", order.id, attempt)

        return self._broadcast(order, ranked[:self.config.broadcast_fanout], reason="assign attempts exhausted")

    def _no_candidates(self, order: Order, excluded: Set[int], rejection: bool) -> DispatchResult:
        if rejection:
            return self.escalate(
                order,
                excluded,
                title="No alternative driver",
                message=f"Order #{order.id} was declined and no alternative driver is available. "
                        "Manual intervention required.",
            )

        online = self._call(self.locator.online_drivers, excluded)
        if online:
            return self._broadcast(order, online, reason="no drivers in radius")

        return self.escalate(
            order,
            excluded,
            title="No drivers available",
            message=f"Order #{order.id} has no available drivers. Manual intervention required.",
        )

    def escalate(self, order: Order, excluded: Set[int], title: str, message: str) -> DispatchResult:
        """
        Hold the order for a driver and alert operators.

        The alert is raised once per holding period: if the order is already
        waiting in the queue the outcome is QUEUED and nobody is paged again.
        """
        if not self._call(guards.mark_no_drivers, order.id):
            current = self._load(order.id)
            if current is None or current.status != Order.STATUS_NO_DRIVERS:
                return DispatchResult(DispatchOutcome.SKIPPED, order.id, reason="handled concurrently")

        held = self.queue.enqueue(order.id)

        approved = self._call(self.locator.approved_drivers, excluded)
        notified = self._send_offers(order, approved, kind="urgent")

        if held is False:
            return DispatchResult(
                DispatchOutcome.QUEUED, order.id,
                notified_driver_ids=notified,
                reason="already waiting in queue",
            )

        self.alerts.alert(
            title,
            message,
            metadata={
                "order_id": order.id,
                "queued": bool(held),
                "notified_drivers": len(notified),
            },
        )
        return DispatchResult(
            DispatchOutcome.ESCALATED, order.id,
            notified_driver_ids=notified,
            reason=title.lower() + ("" if held else " (queue unavailable)"),
        )

    # ---------------------- Broadcasting ----------------------

    def _broadcast_to_online(self, order: Order, excluded: Set[int], reason: str) -> DispatchResult:
        online = self._call(self.locator.online_drivers, excluded)
        if not online:
            return self.escalate(
                order,
                excluded,
                title="No drivers available",
                message=f"Order #{order.id} has no available drivers. Manual intervention required.",
            )
        return self._broadcast(order, online, reason=reason)

    def _broadcast(self, order: Order, drivers: Sequence, reason: str = "") -> DispatchResult:
        notified = self._send_offers(order, drivers, kind="available")
        return DispatchResult(
            DispatchOutcome.BROADCASTED, order.id,
            notified_driver_ids=notified,
            reason=reason,
        )

    def _send_offers(self, order: Order, drivers: Sequence, kind: str) -> List[int]:
        notice = driver_order_notice(order, kind)
        notified = []
        for driver in drivers:
            driver_id = driver.driver_id if isinstance(driver, (DriverCandidate, ScoredCandidate)) else int(driver)
            if self._notify(driver_id, notice):
                notified.append(driver_id)
        return notified

    def _fallback(self, order: Order, excluded: Set[int]) -> DispatchResult:
        try:
            return self._broadcast_to_online(order, excluded, reason="fallback after error")
        except Exception:
            logger.exception("Fallback broadcast failed for order %s, left pending for sweep", order.id)
            return DispatchResult(DispatchOutcome.SKIPPED, order.id, reason="fallback failed")

    # ---------------------- Helpers ----------------------

    def _call(self, func, *args, **kwargs):
        return call_with_retry(
            func, *args,
            attempts=self.config.retry_attempts,
            delay=self.config.retry_delay_seconds,
            **kwargs,
        )

    def _notify(self, user_id: int, notice: Notice) -> bool:
        if self.gateway.notify(user_id, notice, attempts=self.config.retry_attempts):
            return True
        logger.warning("Notification to user %s failed: %s", user_id, notice.title)
        return False

    def _load(self, order_id: int) -> Optional[Order]:
        return self._call(lambda: Order.objects.filter(pk=order_id).first())

    def _rejected_driver_ids(self, order_id: int) -> Set[int]:
        return set(self._call(
            lambda: list(OrderRejection.objects.filter(order_id=order_id).values_list("driver_id", flat=True))
        ))

    def _record(self, result: DispatchResult) -> None:
        if result.outcome == DispatchOutcome.SKIPPED:
            return
        try:
            Order.objects.filter(pk=result.order_id).update(
                dispatch_attempts=F("dispatch_attempts") + 1,
                last_dispatched_at=timezone.now(),
                last_dispatch_outcome=result.outcome.value,
            )
        except DatabaseError:
            logger.warning("Could not record dispatch outcome for order %s", result.order_id, exc_info=True)
