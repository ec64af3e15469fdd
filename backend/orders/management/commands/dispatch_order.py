from django.core.management.base import BaseCommand, CommandError

from orders.models import Order
from services.dispatch.engine import get_engine


class Command(BaseCommand):
    help = "Run one dispatch cycle for a pending order and print the outcome."

    def add_arguments(self, parser):
        parser.add_argument("order_id", type=int)
        parser.add_argument(
            "--radius",
            type=float,
            default=None,
            help="Search radius in miles (default: DISPATCH search radius).",
        )

    def handle(self, *args, **options):
        order_id = options["order_id"]
        if not Order.objects.filter(pk=order_id).exists():
            raise CommandError(f"Order {order_id} does not exist")

        result = get_engine().orchestrator.dispatch(order_id, radius_miles=options["radius"])

        self.stdout.write(f"Order {order_id}: {result.outcome.value}")
        if result.driver_id:
            self.stdout.write(f"  assigned driver: {result.driver_id}")
        if result.notified_driver_ids:
            self.stdout.write(f"  notified drivers: {', '.join(map(str, result.notified_driver_ids))}")
        if result.reason:
            self.stdout.write(f"  reason: {result.reason}")
