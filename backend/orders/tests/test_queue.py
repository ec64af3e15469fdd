from datetime import timedelta
from unittest.mock import Mock, patch

from django.db import connection
from django.test import TestCase
from django.utils import timezone

from orders.models import Order, QueueEntry
from realtime.notifications import NotificationGateway
from services.dispatch.config import DispatchConfig
from services.dispatch.queue import QueueManager

from .helpers import make_customer, make_driver, make_order


class QueueManagerTests(TestCase):
	def setUp(self):
		self.gateway = Mock(spec=NotificationGateway)
		self.gateway.notify.return_value = True
		self.queue = QueueManager(self.gateway, DispatchConfig())
		self.customer = make_customer()

	def held_order(self, minutes_ago=0):
		order = make_order(self.customer, status=Order.STATUS_NO_DRIVERS)
		self.queue.enqueue(order.id)
		QueueEntry.objects.filter(order=order).update(enqueued_at=timezone.now() - timedelta(minutes=minutes_ago))
		return order

	def test_enqueue_is_idempotent(self):
		order = make_order(self.customer)

		self.assertIs(self.queue.enqueue(order.id), True)
		self.assertIs(self.queue.enqueue(order.id), False)
		self.assertEqual(QueueEntry.objects.filter(order=order).count(), 1)

	def test_served_entry_opens_a_new_holding_period(self):
		order = make_order(self.customer)
		self.queue.enqueue(order.id)
		self.assertTrue(self.queue.mark_assigned(order.id))

		self.assertIs(self.queue.enqueue(order.id), True)
		entry = QueueEntry.objects.get(order=order)
		self.assertEqual(entry.status, QueueEntry.STATUS_WAITING)

	def test_mark_assigned_without_entry_is_a_noop(self):
		order = make_order(self.customer)
		self.assertFalse(self.queue.mark_assigned(order.id))

	def test_list_waiting_is_oldest_first(self):
		newer = self.held_order(minutes_ago=1)
		older = self.held_order(minutes_ago=10)

		self.assertEqual([e.order_id for e in self.queue.list_waiting()], [older.id, newer.id])

	def test_disabled_queue_degrades_to_noops(self):
		queue = QueueManager(self.gateway, DispatchConfig.from_dict({"QUEUE_ENABLED": False}))
		order = make_order(self.customer)

		self.assertFalse(queue.is_available)
		self.assertIsNone(queue.enqueue(order.id))
		self.assertEqual(queue.list_waiting(), [])
		self.assertFalse(queue.mark_assigned(order.id))
		self.assertEqual(queue.stats()["available"], False)
		self.assertFalse(QueueEntry.objects.exists())

	def test_missing_table_disables_queue(self):
		queue = QueueManager(self.gateway, DispatchConfig())
		with patch.object(connection.introspection, 'table_names', return_value=['orders']):
			self.assertFalse(queue.is_available)

		# resolved once per process
		self.assertFalse(queue.is_available)

	def test_driver_coming_online_hears_about_oldest_three(self):
		driver = make_driver('driver_online', miles_north=1)
		orders = [self.held_order(minutes_ago=m) for m in (40, 30, 20, 10)]
		taken = orders[1]
		Order.objects.filter(pk=taken.pk).update(status=Order.STATUS_ACCEPTED, driver=driver)

		sent = self.queue.notify_driver_of_queue_on_coming_online(driver.id)

		# oldest three entries, one of which was already taken
		self.assertEqual(sent, 2)
		notified_orders = [c.args[1].metadata['order_id'] for c in self.gateway.notify.call_args_list]
		self.assertEqual(notified_orders, [orders[0].id, orders[2].id])
		self.assertTrue(all(c.args[0] == driver.id for c in self.gateway.notify.call_args_list))
		self.assertEqual(self.gateway.notify.call_args.args[1].title, 'Queued Order Available!')

		# nothing was assigned
		self.assertEqual(Order.objects.filter(driver=driver).count(), 1)

	def test_stats_cover_last_day(self):
		waiting = self.held_order()
		served = self.held_order()
		self.queue.mark_assigned(served.id)
		self.held_order(minutes_ago=60 * 25)

		stats = self.queue.stats()

		self.assertEqual(stats, {"waiting": 1, "assigned": 1, "total": 2, "available": True})
		self.assertTrue(QueueEntry.objects.filter(order=waiting).exists())
