from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from drivers.models import DriverProfile
from orders.models import Order, OrderRejection, QueueEntry
from orders.views import (
	CancelOrderView,
	DriverAcceptOrderView,
	DriverAdvanceOrderView,
	DriverRejectOrderView,
	OperatorDispatchOrderView,
	QueueListView,
	QueueStatsView,
)
from realtime.models import NotificationRecord

from .helpers import make_customer, make_driver, make_operator, make_order

accept_view = DriverAcceptOrderView.as_view()
reject_view = DriverRejectOrderView.as_view()
cancel_view = CancelOrderView.as_view()
pickup_view = DriverAdvanceOrderView.as_view(to_status=Order.STATUS_PICKED_UP)
deliver_view = DriverAdvanceOrderView.as_view(to_status=Order.STATUS_DELIVERED)
dispatch_view = OperatorDispatchOrderView.as_view()


class OrderActionTestCase(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.customer = make_customer()
		self.driver_one = make_driver('driver_one', miles_north=1)
		self.driver_two = make_driver('driver_two', miles_north=2)
		self.order = make_order(self.customer)

	def post(self, view, user, data=None, order_id=None):
		request = self.factory.post('/api/orders/', data or {}, format='json')
		force_authenticate(request, user=user)
		return view(request, order_id=order_id or self.order.id)


class AcceptOrderTests(OrderActionTestCase):
	def test_first_driver_to_accept_wins(self):
		first = self.post(accept_view, self.driver_one)
		second = self.post(accept_view, self.driver_two)

		self.assertEqual(first.status_code, 200)
		self.assertEqual(second.status_code, 409)
		self.assertEqual(second.data['error'], 'order_not_available')

		self.order.refresh_from_db()
		self.assertEqual(self.order.status, Order.STATUS_ACCEPTED)
		self.assertEqual(self.order.driver_id, self.driver_one.id)
		self.assertIsNotNone(self.order.accepted_at)

	def test_acceptance_marks_driver_busy_and_tells_customer(self):
		with self.captureOnCommitCallbacks(execute=True):
			response = self.post(accept_view, self.driver_one)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(DriverProfile.objects.get(user=self.driver_one).status, 'busy')
		notification = NotificationRecord.objects.get(user=self.customer)
		self.assertEqual(notification.title, 'Driver Accepted!')
		self.assertTrue(notification.delivered)

	def test_assigned_driver_confirms_assignment(self):
		Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_ASSIGNED, driver=self.driver_one)

		other = self.post(accept_view, self.driver_two)
		mine = self.post(accept_view, self.driver_one)

		self.assertEqual(other.status_code, 409)
		self.assertEqual(mine.status_code, 200)
		self.order.refresh_from_db()
		self.assertEqual(self.order.status, Order.STATUS_ACCEPTED)

	def test_held_order_can_be_claimed(self):
		Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_NO_DRIVERS)

		response = self.post(accept_view, self.driver_one)

		self.assertEqual(response.status_code, 200)

	def test_late_acceptance_after_cancel_is_rejected_cleanly(self):
		cancelled = self.post(cancel_view, self.customer, {'reason': 'Changed my mind'})
		late = self.post(accept_view, self.driver_one)

		self.assertEqual(cancelled.status_code, 200)
		self.assertEqual(late.status_code, 409)
		self.order.refresh_from_db()
		self.assertEqual(self.order.status, Order.STATUS_CANCELLED)
		self.assertIsNone(self.order.driver_id)
		self.assertEqual(self.order.cancellation_reason, 'Changed my mind')

	def test_driver_who_declined_cannot_accept(self):
		OrderRejection.objects.create(order=self.order, driver=self.driver_one)

		response = self.post(accept_view, self.driver_one)

		self.assertEqual(response.status_code, 409)

	def test_unapproved_driver_is_forbidden(self):
		profile = self.driver_one.driver_profile
		profile.is_approved = False
		profile.save(update_fields=['is_approved'])

		response = self.post(accept_view, self.driver_one)

		self.assertEqual(response.status_code, 403)

	def test_customers_cannot_accept(self):
		response = self.post(accept_view, self.customer)
		self.assertEqual(response.status_code, 403)

	def test_unknown_order_is_404(self):
		response = self.post(accept_view, self.driver_one, order_id=999999)
		self.assertEqual(response.status_code, 404)


class RejectOrderTests(OrderActionTestCase):
	def test_rejecting_an_assignment_redispatches_to_someone_else(self):
		wider = make_driver('driver_wider', miles_north=18)
		DriverProfile.objects.filter(user=self.driver_two).update(is_online=False, is_approved=False)
		Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_ASSIGNED, driver=self.driver_one)

		with self.captureOnCommitCallbacks(execute=True):
			response = self.post(reject_view, self.driver_one)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['first_rejection'])
		self.assertTrue(OrderRejection.objects.filter(order=self.order, driver=self.driver_one).exists())

		self.order.refresh_from_db()
		self.assertEqual(self.order.status, Order.STATUS_PENDING)
		self.assertIsNone(self.order.driver_id)
		self.assertEqual(self.order.last_dispatch_outcome, 'broadcasted')

		self.assertTrue(NotificationRecord.objects.filter(user=wider, title='New Order Available!').exists())
		self.assertFalse(NotificationRecord.objects.filter(user=self.driver_one).exists())
		self.assertTrue(NotificationRecord.objects.filter(user=self.customer, title='Finding Another Driver').exists())

	def test_rejecting_twice_only_counts_once(self):
		self.post(reject_view, self.driver_one)
		again = self.post(reject_view, self.driver_one)

		self.assertEqual(again.status_code, 200)
		self.assertFalse(again.data['first_rejection'])
		self.assertEqual(OrderRejection.objects.filter(order=self.order).count(), 1)

	def test_cannot_reject_someone_elses_order(self):
		Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_ASSIGNED, driver=self.driver_two)

		response = self.post(reject_view, self.driver_one)

		self.assertEqual(response.status_code, 409)


class ProgressOrderTests(OrderActionTestCase):
	def setUp(self):
		super().setUp()
		Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_ACCEPTED, driver=self.driver_one)

	def test_pickup_then_deliver(self):
		picked = self.post(pickup_view, self.driver_one)
		delivered = self.post(deliver_view, self.driver_one)

		self.assertEqual(picked.status_code, 200)
		self.assertEqual(delivered.status_code, 200)
		self.order.refresh_from_db()
		self.assertEqual(self.order.status, Order.STATUS_DELIVERED)
		self.assertIsNotNone(self.order.picked_up_at)
		self.assertIsNotNone(self.order.delivered_at)

	def test_cannot_deliver_before_pickup(self):
		response = self.post(deliver_view, self.driver_one)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'invalid_transition')

	def test_other_driver_cannot_progress_order(self):
		response = self.post(pickup_view, self.driver_two)
		self.assertEqual(response.status_code, 404)

	def test_delivery_frees_the_driver(self):
		DriverProfile.objects.filter(user=self.driver_one).update(status='busy')
		self.post(pickup_view, self.driver_one)

		with self.captureOnCommitCallbacks(execute=True):
			self.post(deliver_view, self.driver_one)

		self.assertEqual(DriverProfile.objects.get(user=self.driver_one).status, 'available')


class CancelOrderTests(OrderActionTestCase):
	def test_other_customers_cannot_cancel(self):
		stranger = make_customer('stranger')

		response = self.post(cancel_view, stranger)

		self.assertEqual(response.status_code, 404)

	def test_operator_can_cancel(self):
		response = self.post(cancel_view, make_operator())
		self.assertEqual(response.status_code, 200)

	def test_cannot_cancel_after_pickup(self):
		Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_PICKED_UP, driver=self.driver_one)

		response = self.post(cancel_view, self.customer)

		self.assertEqual(response.status_code, 409)

	def test_cancelling_accepted_order_tells_driver(self):
		Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_ACCEPTED, driver=self.driver_one)

		with self.captureOnCommitCallbacks(execute=True):
			response = self.post(cancel_view, self.customer)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['was_assigned'])
		self.assertTrue(NotificationRecord.objects.filter(user=self.driver_one, title='Order Cancelled').exists())


class OperatorViewTests(OrderActionTestCase):
	def setUp(self):
		super().setUp()
		self.operator = make_operator()

	def get(self, view, user):
		request = self.factory.get('/api/orders/operator/queue/')
		force_authenticate(request, user=user)
		return view(request)

	def test_manual_dispatch_of_pending_order(self):
		DriverProfile.objects.filter(user=self.driver_one).update(rating='4.9')

		response = self.post(dispatch_view, self.operator)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['outcome'], 'auto_assigned')
		self.assertEqual(response.data['driver_id'], self.driver_one.id)

	def test_manual_dispatch_reopens_held_order(self):
		Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_NO_DRIVERS)

		response = self.post(dispatch_view, self.operator)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['outcome'], 'reopened')
		self.order.refresh_from_db()
		self.assertEqual(self.order.status, Order.STATUS_PENDING)

	def test_manual_dispatch_of_accepted_order_conflicts(self):
		Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_ACCEPTED, driver=self.driver_one)

		response = self.post(dispatch_view, self.operator)

		self.assertEqual(response.status_code, 409)

	def test_only_operators_dispatch(self):
		response = self.post(dispatch_view, self.customer)
		self.assertEqual(response.status_code, 403)

	def test_queue_listing_and_stats(self):
		Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_NO_DRIVERS)
		QueueEntry.objects.create(order=self.order)

		listing = self.get(QueueListView.as_view(), self.operator)
		stats = self.get(QueueStatsView.as_view(), self.operator)

		self.assertEqual(listing.status_code, 200)
		self.assertEqual(listing.data['count'], 1)
		self.assertEqual(listing.data['entries'][0]['order_id'], self.order.id)
		self.assertEqual(stats.data['waiting'], 1)

	def test_drivers_cannot_see_queue(self):
		response = self.get(QueueListView.as_view(), self.driver_one)
		self.assertEqual(response.status_code, 403)
