"""
Dispatch engine wiring.

Builds every dispatch service once at process start (see OrdersConfig.ready)
and hands them to each other explicitly. Callers get the shared instance with
``get_engine()``.
"""

from dataclasses import dataclass
from typing import Optional

from django.apps import apps

from realtime.notifications import NotificationGateway, OperatorAlertChannel
from services.matching import DriverLocator, GeoScorer
from .config import DispatchConfig
from .intake import DispatchScheduler, OrderIntakeListener
from .orchestrator import DispatchOrchestrator
from .queue import QueueManager
from .sweeper import BackgroundSweeper


@dataclass
class DispatchEngine:
    config: DispatchConfig
    locator: DriverLocator
    scorer: GeoScorer
    gateway: NotificationGateway
    alerts: OperatorAlertChannel
    queue: QueueManager
    orchestrator: DispatchOrchestrator
    listener: OrderIntakeListener
    sweeper: BackgroundSweeper


def build_engine(
    config: Optional[DispatchConfig] = None,
    scheduler: Optional[DispatchScheduler] = None,
    gateway: Optional[NotificationGateway] = None,
    alerts: Optional[OperatorAlertChannel] = None,
    locator: Optional[DriverLocator] = None,
) -> DispatchEngine:
    config = config or DispatchConfig.from_settings()
    if scheduler is None:
        from orders.tasks import CeleryDispatchScheduler
        scheduler = CeleryDispatchScheduler()

    locator = locator or DriverLocator()
    scorer = GeoScorer(config)
    gateway = gateway or NotificationGateway()
    alerts = alerts or OperatorAlertChannel()
    queue = QueueManager(gateway, config)

    orchestrator = DispatchOrchestrator(locator, scorer, gateway, alerts, queue, config)
    listener = OrderIntakeListener(scheduler, queue, gateway)
    sweeper = BackgroundSweeper(scheduler, queue, locator, config)

    return DispatchEngine(
        config=config,
        locator=locator,
        scorer=scorer,
        gateway=gateway,
        alerts=alerts,
        queue=queue,
        orchestrator=orchestrator,
        listener=listener,
        sweeper=sweeper,
    )


def get_engine() -> DispatchEngine:
    return apps.get_app_config("orders").engine
