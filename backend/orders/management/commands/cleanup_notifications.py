from django.core.management.base import BaseCommand
from django.utils import timezone
from datetime import timedelta
from realtime.models import NotificationRecord
import logging

from services.dispatch.engine import get_engine

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Delete notification history older than the retention window."

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Delete notifications older than this many days (default: DISPATCH retention, 7).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be deleted without actually deleting.",
        )

    def handle(self, *args, **options):
        days = options["days"]
        if days is None:
            days = get_engine().config.notification_retention_days
        cutoff = timezone.now() - timedelta(days=days)

        old_notifications = NotificationRecord.objects.filter(created_at__lt=cutoff)

        if options["dry_run"]:
            count = old_notifications.count()
            self.stdout.write(
                self.style.WARNING(
                    f"DRY RUN: Would delete {count} notifications older than {days} days."
                )
            )
            return

        count, _ = old_notifications.delete()
        logger.info("Cleaned up %d old notifications", count)
        self.stdout.write(
            self.style.SUCCESS(f"Deleted {count} notifications older than {days} days.")
        )
