from django.core.management.base import BaseCommand

from services.dispatch.engine import get_engine


class Command(BaseCommand):
    help = "Re-dispatch orders stuck in pending (one sweeper pass)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--stale-minutes",
            type=int,
            default=None,
            help="Only orders pending longer than this (default: DISPATCH staleness, 5 minutes).",
        )
        parser.add_argument(
            "--all",
            action="store_true",
            help="Re-dispatch every pending order regardless of age.",
        )

    def handle(self, *args, **options):
        sweeper = get_engine().sweeper

        if options["all"]:
            report = sweeper.emergency_process_all_pending()
        else:
            minutes = options["stale_minutes"]
            stale_seconds = minutes * 60 if minutes is not None else None
            report = sweeper.sweep_pending_orders(stale_seconds=stale_seconds)

        style = self.style.SUCCESS if not report.failed else self.style.WARNING
        self.stdout.write(
            style(
                f"Re-dispatched {report.redispatched} order(s), "
                f"resurfaced {report.resurfaced} queued order(s), "
                f"{report.failed} failure(s)."
            )
        )
