from unittest.mock import Mock, patch

from django.core import mail
from django.test import TestCase, override_settings

from orders.models import Order
from orders.tests.helpers import make_customer, make_order
from realtime.models import NotificationRecord, OperatorAlert
from realtime.notifications import (
	Notice,
	NotificationGateway,
	OperatorAlertChannel,
	customer_order_notice,
	driver_order_notice,
)


class NotificationGatewayTests(TestCase):
	def setUp(self):
		self.gateway = NotificationGateway()
		self.customer = make_customer()

	def test_notify_records_and_pushes(self):
		delivered = self.gateway.notify(self.customer.id, Notice('Hello', 'World', {'order_id': 1}))

		self.assertTrue(delivered)
		record = NotificationRecord.objects.get(user=self.customer)
		self.assertEqual(record.title, 'Hello')
		self.assertEqual(record.metadata, {'order_id': 1})
		self.assertTrue(record.delivered)

	def test_push_failure_is_reported_not_raised(self):
		with patch('realtime.notifications.async_to_sync', side_effect=RuntimeError('layer down')):
			delivered = self.gateway.notify(self.customer.id, Notice('Hello', 'World'))

		self.assertFalse(delivered)
		self.assertFalse(NotificationRecord.objects.get(user=self.customer).delivered)

	def test_retried_push_keeps_a_single_history_row(self):
		with patch('realtime.notifications.async_to_sync', side_effect=RuntimeError('layer down')):
			delivered = self.gateway.notify(self.customer.id, Notice('Hello', 'World'), attempts=2)

		self.assertFalse(delivered)
		self.assertEqual(NotificationRecord.objects.filter(user=self.customer).count(), 1)

	def test_push_succeeds_on_second_attempt(self):
		send = Mock(side_effect=[RuntimeError('layer busy'), None])
		with patch('realtime.notifications.async_to_sync', return_value=send):
			delivered = self.gateway.notify(self.customer.id, Notice('Hello', 'World'), attempts=2)

		self.assertTrue(delivered)
		self.assertEqual(send.call_count, 2)
		record = NotificationRecord.objects.get(user=self.customer)
		self.assertTrue(record.delivered)

	def test_missing_channel_layer(self):
		with patch('realtime.notifications.get_channel_layer', return_value=None):
			self.assertFalse(self.gateway.notify(self.customer.id, Notice('Hello', 'World')))

	def test_no_user(self):
		self.assertFalse(self.gateway.notify(None, Notice('Hello', 'World')))
		self.assertFalse(NotificationRecord.objects.exists())


class OperatorAlertChannelTests(TestCase):
	@override_settings(ADMINS=[('Ops', 'ops@example.com')])
	def test_alert_is_stored_and_emailed(self):
		alert = OperatorAlertChannel().alert('No drivers available', 'Order #5 needs help', {'order_id': 5})

		self.assertEqual(OperatorAlert.objects.get().pk, alert.pk)
		self.assertEqual(alert.metadata, {'order_id': 5})
		self.assertEqual(len(mail.outbox), 1)
		self.assertIn('No drivers available', mail.outbox[0].subject)


class MessageBuilderTests(TestCase):
	def setUp(self):
		self.order = make_order(make_customer())

	def test_driver_notices(self):
		self.assertEqual(driver_order_notice(self.order, 'assigned').title, 'Order Assigned!')
		self.assertEqual(driver_order_notice(self.order, 'available').title, 'New Order Available!')
		urgent = driver_order_notice(self.order, 'urgent')
		self.assertEqual(urgent.title, 'URGENT: Order Needs a Driver')
		self.assertEqual(urgent.metadata['order_id'], self.order.id)
		self.assertEqual(urgent.metadata['total'], '25.00')

	def test_customer_notices(self):
		self.assertEqual(customer_order_notice(self.order, Order.STATUS_PICKED_UP).title, 'Order Picked Up')
		notice = customer_order_notice(self.order, Order.STATUS_DELIVERED)
		self.assertIn(self.order.short_id, notice.body)
		self.assertEqual(notice.metadata['status'], 'delivered')

	def test_unknown_status_gets_generic_notice(self):
		notice = customer_order_notice(self.order, 'teleported')
		self.assertEqual(notice.title, 'Order Update')
		self.assertIn('teleported', notice.body)
